"""Project configuration model — typed representation of testbox.yaml.

Two layers are read: the project's `testbox.yaml` and the user's
`~/.testbox.yaml`. Every field is optional so that a layer only
contributes what it actually sets; `merged_with()` applies a higher
priority layer on top of a lower one.
"""
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class ProjectConfig(BaseModel):
    image: str | None = Field(default=None, alias="Image")
    min_version_number: int | None = Field(default=None, alias="MinVersionNumber")
    container_env: dict[str, str] | None = Field(default=None, alias="ContainerEnv")
    container_user: str | None = Field(default=None, alias="ContainerUser")
    cache_target: str | None = Field(default=None, alias="CacheTarget")
    privileged: bool | None = Field(default=None, alias="Privileged")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def load(cls, path: Path) -> "ProjectConfig":
        """Load one layer from a YAML file. An empty file is an empty layer.

        Raises FileNotFoundError if path does not exist, yaml.YAMLError on
        malformed YAML and pydantic.ValidationError on wrongly typed values.
        """
        import yaml  # lazy — only needed at load time
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return cls.model_validate(data)

    @classmethod
    def load_or_empty(cls, path: Path) -> "ProjectConfig":
        """Load from path if it exists, otherwise return a layer that sets nothing."""
        if path.exists():
            return cls.load(path)
        return cls()

    @property
    def explicit_fields(self) -> set[str]:
        """Names of the fields this layer sets to a non-null value."""
        return {name for name in self.model_fields_set if getattr(self, name) is not None}

    def merged_with(self, override: "ProjectConfig") -> "ProjectConfig":
        """Return a new config with every field `override` explicitly sets applied.

        Fields the override leaves unset keep this layer's value.
        `container_env` is merged key by key, with the override's keys winning.
        """
        update = {name: getattr(override, name) for name in override.explicit_fields}
        if "container_env" in update and self.container_env:
            update["container_env"] = {**self.container_env, **update["container_env"]}
        return self.model_copy(update=update)
