"""Tests for the pull progress renderer and its backends."""
import io
import json

import pytest

from errors import ImageError
from utils.console import DOCKER_ICON, ERROR_ICON, format_line
from utils.progress import (
    PlainBackend,
    ProgressRenderer,
    TerminalBackend,
    backend_for,
    render_pull,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class RecordingBackend:
    """Backend double that records every call."""

    def __init__(self):
        self.calls: list[tuple] = []

    def new_line(self, text, icon=DOCKER_ICON):
        self.calls.append(("new", text, icon))

    def rewrite(self, offset, text, icon=DOCKER_ICON, transient=False):
        self.calls.append(("rewrite", offset, text))

    @property
    def new_lines(self) -> list[str]:
        return [c[1] for c in self.calls if c[0] == "new"]

    @property
    def rewrites(self) -> list[tuple[int, str]]:
        return [(c[1], c[2]) for c in self.calls if c[0] == "rewrite"]


def _line(**fields) -> str:
    return json.dumps(fields)


def _new_layer(ident: str, status: str = "Pulling fs layer") -> str:
    return _line(status=status, progressDetail={}, id=ident)


def _render(lines) -> tuple[ProgressRenderer, RecordingBackend]:
    backend = RecordingBackend()
    renderer = ProgressRenderer(backend)
    renderer.render(lines)
    return renderer, backend


class _TTYBuffer(io.StringIO):
    def isatty(self):
        return True


# ---------------------------------------------------------------------------
# Line offset bookkeeping
# ---------------------------------------------------------------------------

class TestOffsets:
    def test_new_identifier_starts_at_zero(self):
        renderer, _ = _render([_new_layer("A")])
        assert renderer.positions == {"A": 0}

    def test_each_new_identifier_pushes_earlier_ones_up(self):
        renderer, _ = _render([_new_layer("A"), _new_layer("B"), _new_layer("C")])
        assert renderer.positions == {"A": 2, "B": 1, "C": 0}

    def test_progress_update_targets_offset_after_later_identifiers(self):
        _, backend = _render([
            _new_layer("A"), _new_layer("B"), _new_layer("C"),
            _line(status="Downloading", progress="1/2", id="A", progressDetail={"current": 1}),
        ])
        assert backend.rewrites == [(2, "Downloading :: A :: 1/2")]

    def test_rewrites_do_not_move_offsets(self):
        renderer, _ = _render([
            _new_layer("A"), _new_layer("B"),
            _line(status="Downloading", progress="1/2", id="B"),
            _line(status="Downloading", progress="2/2", id="B"),
            _line(status="Download complete", progressDetail={}, id="A"),
        ])
        assert renderer.positions == {"A": 1, "B": 0}

    def test_status_with_id_but_no_detail_advances_all(self):
        renderer, backend = _render([_new_layer("A"), _line(status="Already exists", id="B")])
        assert renderer.positions == {"A": 1}
        assert backend.new_lines[-1] == "Already exists :: B"

    def test_bare_status_advances_all(self):
        renderer, backend = _render([_new_layer("A"), _line(status="Digest: sha256:abc")])
        assert renderer.positions == {"A": 1}
        assert backend.new_lines[-1] == "Digest: sha256:abc"

    def test_stream_output_advances_by_printed_rows(self):
        renderer, backend = _render([_new_layer("A"), _line(stream="one\ntwo\n")])
        assert backend.new_lines[-1] == "one\ntwo"
        assert renderer.positions == {"A": 2}

    def test_progress_for_untracked_identifier_targets_last_line(self):
        renderer, backend = _render([_line(status="Downloading", progress="1/2", id="ghost")])
        assert backend.rewrites == [(0, "Downloading :: ghost :: 1/2")]
        assert renderer.positions == {}

    def test_fixture_pull_final_offsets(self, pull_output_lines):
        renderer, backend = _render(pull_output_lines)
        assert renderer.positions == {"a3ed95caeb02": 3, "7bd8fb0ff2c3": 2}
        assert backend.new_lines[0] == "Pulling from goredis/grte :: latest"


# ---------------------------------------------------------------------------
# End-to-end scenarios
# ---------------------------------------------------------------------------

class TestScenarios:
    def test_single_layer_pull(self):
        renderer, backend = _render([
            '{"status":"Downloading","id":"layer1","progressDetail":{}}',
            '{"status":"Downloading","id":"layer1","progress":"5/10"}',
            '{"status":"Pull complete","id":"layer1"}',
        ])
        assert backend.new_lines == ["Downloading :: layer1", "Pull complete :: layer1"]
        assert backend.rewrites == [(0, "Downloading :: layer1 :: 5/10")]

    def test_error_event_stops_processing(self):
        consumed = []

        def lines():
            for line in ('{"error":"manifest not found"}', '{"status":"never"}'):
                consumed.append(line)
                yield line

        backend = RecordingBackend()
        with pytest.raises(ImageError, match="manifest not found"):
            ProgressRenderer(backend).render(lines())
        assert consumed == ['{"error":"manifest not found"}']
        assert backend.calls == [("new", "manifest not found", ERROR_ICON)]

    def test_error_detail_stops_processing(self):
        with pytest.raises(ImageError, match="unauthorized"):
            _render(['{"errorDetail":{"message":"unauthorized"}}', '{"status":"later"}'])

    def test_unhandled_line_is_reported_but_stream_continues(self):
        backend = RecordingBackend()
        renderer = ProgressRenderer(backend)
        with pytest.raises(ImageError, match="unable to handle line: {}"):
            renderer.render([_new_layer("A"), "{}", _line(status="Done")])
        assert backend.new_lines[-1] == "Done"
        assert ("new", "unable to handle line: {}", ERROR_ICON) in backend.calls
        assert renderer.positions == {"A": 2}

    def test_clean_stream_reports_no_error(self, pull_output_lines):
        _render(pull_output_lines)  # must not raise


# ---------------------------------------------------------------------------
# Failure precedence
# ---------------------------------------------------------------------------

class TestFailures:
    def test_decode_failure_is_not_fatal(self):
        backend = RecordingBackend()
        renderer = ProgressRenderer(backend)
        with pytest.raises(ImageError, match="unable to decode line"):
            renderer.render([_new_layer("A"), "garbage", _new_layer("B")])
        assert renderer.positions == {"A": 2, "B": 0}

    def test_last_soft_failure_wins(self):
        with pytest.raises(ImageError, match="unable to handle line"):
            _render(["garbage", "{}"])

    def test_error_event_takes_precedence_over_earlier_soft_failures(self):
        with pytest.raises(ImageError) as exc_info:
            _render(["garbage", '{"error":"pull access denied"}'])
        assert str(exc_info.value) == "pull access denied"


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------

class TestTerminalBackend:
    def test_new_line(self):
        out = io.StringIO()
        TerminalBackend(out).new_line("Pull complete :: a")
        assert out.getvalue() == format_line("Pull complete :: a", DOCKER_ICON) + "\n"

    def test_rewrite_moves_up_and_back_in_one_write(self):
        out = io.StringIO()
        TerminalBackend(out).rewrite(2, "Extracting :: a")
        assert out.getvalue() == (
            "\x1b[3A\r\x1b[K" + format_line("Extracting :: a", DOCKER_ICON) + "\x1b[3B\r"
        )

    def test_rewrite_of_last_line_moves_one_row(self):
        out = io.StringIO()
        TerminalBackend(out).rewrite(0, "x")
        assert out.getvalue().startswith("\x1b[1A\r\x1b[K")


class TestPlainBackend:
    def test_transient_rewrite_is_dropped(self):
        out = io.StringIO()
        PlainBackend(out).rewrite(0, "Downloading :: a :: 1/2", transient=True)
        assert out.getvalue() == ""

    def test_status_rewrite_is_appended(self):
        out = io.StringIO()
        PlainBackend(out).rewrite(3, "Pull complete :: a")
        assert out.getvalue() == format_line("Pull complete :: a", DOCKER_ICON) + "\n"

    def test_output_has_no_cursor_movement(self, pull_output_lines):
        out = io.StringIO()
        render_pull(pull_output_lines, out)
        assert "\x1b[K" not in out.getvalue()
        assert "Pull complete :: a3ed95caeb02" in out.getvalue()


def test_backend_for_picks_terminal_on_tty():
    assert isinstance(backend_for(_TTYBuffer()), TerminalBackend)


def test_backend_for_picks_plain_otherwise():
    assert isinstance(backend_for(io.StringIO()), PlainBackend)


def test_render_pull_on_terminal_rewrites_in_place(pull_output_lines):
    out = _TTYBuffer()
    positions = render_pull(pull_output_lines, out)
    assert positions == {"a3ed95caeb02": 3, "7bd8fb0ff2c3": 2}
    assert out.getvalue().count("\n") == 5  # latest, two layers, digest, status
