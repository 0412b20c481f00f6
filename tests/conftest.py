from pathlib import Path
from unittest.mock import MagicMock

import pytest

from models.config import ProjectConfig
from models.run_context import RunContext
from settings import Settings

FIXTURES_DIR = Path(__file__).parent / "fixtures"
SAMPLE_PROJECT_DIR = FIXTURES_DIR / "sample_project"
PULL_OUTPUT_PATH = FIXTURES_DIR / "pull_output.jsonl"


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch):
    """Keep the developer's Docker and testbox environment out of the tests."""
    for name in ("DOCKER_HOST", "NORAW", "TESTBOX_LOG_LEVEL", "TESTBOX_CONTAINER_NAME",
                 "TESTBOX_CACHE_DIR", "TESTBOX_HOME_DIR", "TESTBOX_DEFAULT_IMAGE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sample_project_dir() -> Path:
    """Project with a testbox.yaml at its root and a nested src/pkg directory."""
    return SAMPLE_PROJECT_DIR


@pytest.fixture
def pull_output_lines() -> list[str]:
    """A complete, successful pull of a two-layer image."""
    return PULL_OUTPUT_PATH.read_text(encoding="utf-8").splitlines()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with an empty home directory and a temp cache dir.

    Layout:
        tmp_path/home/    home directory (no ~/.testbox.yaml)
        tmp_path/cache/   host cache directory (created on demand)
    """
    home = tmp_path / "home"
    home.mkdir()
    return Settings(home_dir=home, cache_dir=tmp_path / "cache")


@pytest.fixture
def run_context(tmp_path: Path) -> RunContext:
    project = tmp_path / "project"
    (project / "pkg").mkdir(parents=True)
    return RunContext(
        command=["go", "test", "./..."],
        work_dir=project / "pkg",
        root_dir=project,
        tty=False,
        config=ProjectConfig(container_env={"A": "1"}),
        image="goredis/grte:latest",
    )


@pytest.fixture
def docker_client() -> MagicMock:
    """Docker client double with a successful exec of exit code 0."""
    client = MagicMock()
    client.api.containers.return_value = []
    client.api.create_container.return_value = {"Id": "c0ffee", "Warnings": []}
    client.api.exec_create.return_value = {"Id": "e1"}
    client.api.exec_start.return_value = iter([b"ok  \tpkg\t0.01s\n"])
    client.api.exec_inspect.return_value = {"ExitCode": 0}
    return client
