"""Decoder for the newline-delimited JSON output of an image pull.

Each line is one JSON object such as

    {"status":"Downloading","progressDetail":{"current":1,"total":9},"progress":"[>  ] 1B/9B","id":"a3ed95caeb02"}

Only the keys the renderer needs are kept. Every line is decoded into a
fresh model, so a line that omits a key never sees the previous line's value.
"""
import codecs
from collections.abc import Iterable, Iterator
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from models.events import ErrorEvent, PullEvent


class DecodeError(Exception):
    """A pull output line that is not a JSON object of the expected shape."""

    def __init__(self, line: str, cause: Exception):
        super().__init__(f"unable to decode line [{line}] ==> {_describe(cause)}")
        self.line = line
        self.cause = cause


# ---------------------------------------------------------------------------
# Wire schema
# ---------------------------------------------------------------------------

class _ErrorDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: str = ""


class _WireMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = ""
    status: str = ""
    progress: str = ""
    progress_detail: Any = Field(default=None, alias="progressDetail")
    stream: str = ""
    error: str = ""
    error_detail: _ErrorDetail | None = Field(default=None, alias="errorDetail")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def iter_lines(chunks: Iterable[bytes | str]) -> Iterator[str]:
    """Reassemble lines from raw response chunks.

    Chunk boundaries do not have to match line boundaries. Lines are
    stripped and blank lines are dropped.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    for chunk in chunks:
        if isinstance(chunk, bytes):
            # a multi-byte character may straddle two chunks
            chunk = decoder.decode(chunk)
        buffer += chunk
        *complete, buffer = buffer.split("\n")
        for line in complete:
            line = line.strip()
            if line:
                yield line
    buffer += decoder.decode(b"", final=True)
    tail = buffer.strip()
    if tail:
        yield tail


def decode_line(line: str) -> PullEvent | ErrorEvent:
    """Decode one line of pull output.

    Returns an ErrorEvent when the line carries `error` or
    `errorDetail.message`, otherwise a PullEvent (possibly with no field set).
    Raises DecodeError when the line is not a JSON object of the expected shape.
    """
    try:
        wire = _WireMessage.model_validate_json(line)
    except ValidationError as exc:
        raise DecodeError(line, exc) from exc

    if wire.error:
        return ErrorEvent(message=wire.error)
    if wire.error_detail is not None and wire.error_detail.message:
        return ErrorEvent(message=wire.error_detail.message)

    return PullEvent(
        identifier=wire.id,
        status=wire.status.strip(),
        progress_text=wire.progress,
        has_progress_detail=wire.progress_detail is not None,
        stream=wire.stream,
    )


def _describe(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        errors = exc.errors()
        if errors:
            return errors[0]["msg"]
    return str(exc)
