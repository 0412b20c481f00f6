"""Error taxonomy shared by all stages.

Everything except ExecFailure is an internal failure and maps to exit code 1.
"""


class TestboxError(Exception):
    """Base class for every error the entry point reports."""

    __test__ = False  # keep pytest from collecting it


class ConfigError(TestboxError):
    """Project root missing, config unreadable or invalid, version gate failed."""


class ImageError(TestboxError):
    """The image could not be made available locally."""


class ContainerError(TestboxError):
    """Docker client, container or exec operation failed."""


class ExecFailure(TestboxError):
    """The command ran but exited non-zero."""

    def __init__(self, exit_code: int):
        super().__init__(f"exit with `FAILURE`: {exit_code}")
        self.exit_code = exit_code
