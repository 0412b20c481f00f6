import shlex
from pathlib import Path

from pydantic import BaseModel, Field

from models.config import ProjectConfig


class RunContext(BaseModel):
    """Everything one invocation needs, resolved once by Stage 1.

    Passed explicitly to the image and container stages.
    """

    command: list[str] = Field(min_length=1)
    work_dir: Path
    root_dir: Path
    tty: bool = False
    config: ProjectConfig = Field(default_factory=ProjectConfig)
    image: str

    @property
    def shell_command(self) -> str:
        """The command as one string for `sh -c`.

        A single argument is taken verbatim so that `testbox "a && b"` keeps
        its shell operators; several arguments are quoted and joined.
        """
        if len(self.command) == 1:
            return self.command[0]
        return shlex.join(self.command)

    @property
    def container_env(self) -> dict[str, str]:
        return dict(self.config.container_env or {})

    @property
    def privileged(self) -> bool:
        return True if self.config.privileged is None else self.config.privileged
