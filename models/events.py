from pydantic import BaseModel


class PullEvent(BaseModel):
    """One decoded status update from an image pull.

    Empty strings stand for fields the line did not carry.
    """

    identifier: str = ""  # layer or resource ID, e.g. "a3ed95caeb02"
    status: str = ""      # e.g. "Downloading", "Pull complete"
    progress_text: str = ""  # e.g. "[=====>    ]  10MB/50MB"
    has_progress_detail: bool = False
    stream: str = ""      # unstructured log output


class ErrorEvent(BaseModel):
    """Terminal failure reported inside the pull output."""

    message: str
