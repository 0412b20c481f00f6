"""Pull progress renderer.

Turns the decoded pull events into stable terminal output: repeated updates
for the same layer overwrite that layer's line in place instead of scrolling.

Line positions are tracked as offsets counted upward from the bottom:
offset 0 is the most recently printed line. Every new printed row pushes
every tracked line one row further up. Rewrites never print a new row and
therefore never move any offset.
"""
from collections.abc import Iterable
from typing import TextIO

from errors import ImageError
from models.events import ErrorEvent, PullEvent
from utils.console import DOCKER_ICON, ERROR_ICON, format_line
from utils.pull_decoder import DecodeError, decode_line


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------

class TerminalBackend:
    """Renders rewrites with cursor movement escape sequences.

    After each printed line the cursor rests at the start of the empty row
    below it, so the line at offset N sits N + 1 rows above the cursor.
    """

    def __init__(self, stream: TextIO):
        self._stream = stream

    def new_line(self, text: str, icon: str = DOCKER_ICON) -> None:
        self._stream.write(format_line(text, icon) + "\n")
        self._stream.flush()

    def rewrite(self, offset: int, text: str, icon: str = DOCKER_ICON, transient: bool = False) -> None:
        rows = offset + 1
        # one write so that buffered output cannot tear the sequence apart
        self._stream.write(f"\x1b[{rows}A\r\x1b[K{format_line(text, icon)}\x1b[{rows}B\r")
        self._stream.flush()


class PlainBackend:
    """Append-only output for logs and pipes.

    Transient rewrites (byte counters) are dropped; status rewrites are
    appended as ordinary lines.
    """

    def __init__(self, stream: TextIO):
        self._stream = stream

    def new_line(self, text: str, icon: str = DOCKER_ICON) -> None:
        self._stream.write(format_line(text, icon) + "\n")
        self._stream.flush()

    def rewrite(self, offset: int, text: str, icon: str = DOCKER_ICON, transient: bool = False) -> None:
        if transient:
            return
        self.new_line(text, icon)


def backend_for(stream: TextIO) -> TerminalBackend | PlainBackend:
    """Terminal backend when `stream` is a TTY, plain backend otherwise."""
    isatty = getattr(stream, "isatty", None)
    if isatty is not None and isatty():
        return TerminalBackend(stream)
    return PlainBackend(stream)


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------

class ProgressRenderer:
    """Renders one pull's output stream. Use a new instance per pull."""

    def __init__(self, backend: TerminalBackend | PlainBackend):
        self._backend = backend
        self._positions: dict[str, int] = {}
        self._pending_failure: str | None = None

    @property
    def positions(self) -> dict[str, int]:
        """Snapshot of identifier → line offset."""
        return dict(self._positions)

    def render(self, lines: Iterable[str]) -> None:
        """Consume pull output lines until the stream ends or reports an error.

        Raises ImageError immediately on an error event; no further line is
        read. Otherwise raises ImageError at the end of the stream if any
        line could not be decoded or handled, carrying the last such reason.
        """
        for line in lines:
            try:
                event = decode_line(line)
            except DecodeError as exc:
                self._fail_soft(str(exc))
                continue

            if isinstance(event, ErrorEvent):
                self._backend.new_line(event.message, ERROR_ICON)
                raise ImageError(event.message)

            self._handle(event, line)

        if self._pending_failure is not None:
            raise ImageError(self._pending_failure)

    def _handle(self, event: PullEvent, line: str) -> None:
        ident = event.identifier
        if event.status:
            if event.progress_text:
                self._backend.rewrite(
                    self._positions.get(ident, 0),
                    f"{event.status} :: {ident} :: {event.progress_text}",
                    transient=True,
                )
            elif event.has_progress_detail and ident:
                if ident in self._positions:
                    self._backend.rewrite(self._positions[ident], f"{event.status} :: {ident}")
                else:
                    self._print(f"{event.status} :: {ident}")
                    self._positions[ident] = 0
            elif ident:
                self._print(f"{event.status} :: {ident}")
            else:
                self._print(event.status)
        elif event.stream:
            self._print(event.stream.rstrip("\n"))
        else:
            self._fail_soft(f"unable to handle line: {line}")

    def _print(self, text: str, icon: str = DOCKER_ICON) -> None:
        self._backend.new_line(text, icon)
        self._advance(text.count("\n") + 1)

    def _fail_soft(self, reason: str) -> None:
        self._pending_failure = reason
        self._print(reason, ERROR_ICON)

    def _advance(self, rows: int) -> None:
        for ident in self._positions:
            self._positions[ident] += rows


def render_pull(lines: Iterable[str], stream: TextIO) -> dict[str, int]:
    """Render a whole pull to `stream` and return the final line offsets."""
    renderer = ProgressRenderer(backend_for(stream))
    renderer.render(lines)
    return renderer.positions
