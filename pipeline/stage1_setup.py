"""Stage 1: Setup — locate the project and resolve the run configuration.

Reads:  <root>/testbox.yaml, ~/.testbox.yaml (both optional)
Writes: nothing
"""
import logging
import sys
from pathlib import Path

import yaml
from pydantic import ValidationError

from errors import ConfigError
from models.config import ProjectConfig
from models.run_context import RunContext
from settings import VERSION_NUMBER, Settings

logger = logging.getLogger(__name__)


def run(
    settings: Settings,
    command: list[str],
    work_dir: Path | None = None,
    tty: bool | None = None,
) -> RunContext:
    """Build the RunContext for `command` executed from `work_dir`.

    Raises ConfigError if no project root is found, a config layer cannot be
    read, or the config requires a newer tool version.
    """
    work_dir = (work_dir or Path.cwd()).resolve()
    if tty is None:
        tty = sys.stdout.isatty()

    root_dir = find_project_root(work_dir, settings.root_markers)
    config = load_config(settings, root_dir)
    _check_version(config)

    context = RunContext(
        command=command,
        work_dir=work_dir,
        root_dir=root_dir,
        tty=tty,
        config=config,
        image=config.image or settings.default_image,
    )
    logger.debug("Project root: %s", root_dir)
    logger.debug("Image: %s", context.image)
    return context


# ---------------------------------------------------------------------------
# Project root
# ---------------------------------------------------------------------------

def find_project_root(start: Path, markers: tuple[str, ...]) -> Path:
    """Walk upward from `start` to the first directory holding any marker."""
    for directory in (start, *start.parents):
        if directory.parent == directory:
            break  # filesystem root is never a project
        if any((directory / marker).exists() for marker in markers):
            return directory
    raise ConfigError("need to execute commands inside a project directory")


# ---------------------------------------------------------------------------
# Config layers
# ---------------------------------------------------------------------------

def load_config(settings: Settings, root_dir: Path) -> ProjectConfig:
    """Project layer first, then the home layer on top of it."""
    config = _load_layer(settings.project_config_path(root_dir))
    return config.merged_with(_load_layer(settings.home_config_path))


def _load_layer(path: Path) -> ProjectConfig:
    try:
        layer = ProjectConfig.load_or_empty(path)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"unable to read {path}: {exc}") from exc
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration in {path}: {exc}") from exc
    if layer.explicit_fields:
        logger.debug("Loaded %s: %s", path, sorted(layer.explicit_fields))
    return layer


def _check_version(config: ProjectConfig) -> None:
    if config.min_version_number is not None and VERSION_NUMBER < config.min_version_number:
        raise ConfigError("the tool version is too low, please upgrade the version")
