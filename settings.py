import logging
import tempfile
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VERSION = "v1.0.0"
VERSION_NUMBER = 100

DEFAULT_IMAGE = "goredis/grte:latest"


class Settings(BaseSettings):
    docker_host: str | None = Field(
        default=None, validation_alias=AliasChoices("docker_host", "DOCKER_HOST")
    )
    noraw: str = Field(default="", validation_alias=AliasChoices("noraw", "NORAW"))

    container_name: str = "testbox"
    config_filename: str = "testbox.yaml"
    default_image: str = DEFAULT_IMAGE
    cache_dir: Path = Path(tempfile.gettempdir()) / "testbox-cache"
    home_dir: Path = Field(default_factory=Path.home)
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TESTBOX_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("container_name")
    @classmethod
    def container_name_must_not_be_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("container_name must not be empty")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        if not isinstance(logging.getLevelName(v.upper()), int):
            raise ValueError(f"unknown log level {v!r}")
        return v.upper()

    @property
    def force_raw(self) -> bool:
        """NORAW set to any non-empty value disables TTY exec output."""
        return bool(self.noraw)

    @property
    def uses_ssh(self) -> bool:
        return bool(self.docker_host) and self.docker_host.startswith("ssh://")

    @property
    def root_markers(self) -> tuple[str, ...]:
        return (self.config_filename, ".github", ".git")

    @property
    def home_config_path(self) -> Path:
        return self.home_dir / f".{self.config_filename}"

    def project_config_path(self, root_dir: Path) -> Path:
        return root_dir / self.config_filename
