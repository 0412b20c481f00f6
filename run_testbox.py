#!/usr/bin/env python3
"""Run a project's test command inside a disposable Docker container.

Usage:
    testbox go test ./...           # run the command in the project's container
    testbox "go vet ./... && make"  # one argument is passed to sh -c verbatim
    testbox version                 # print the tool version
    testbox help                    # print usage
"""
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from pydantic import ValidationError

from errors import ConfigError, ExecFailure, TestboxError
from pipeline import stage1_setup, stage2_image, stage3_container
from settings import VERSION, Settings
from utils.console import NONE_ICON, SUCCESS_ICON, configure_logging
from utils.docker_client import get_docker_client

logger = logging.getLogger("testbox")

_PLAIN = {"icon": NONE_ICON}


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else list(argv)
    prog = Path(sys.argv[0]).name or "testbox"

    try:
        settings = load_settings()
    except ConfigError as exc:
        configure_logging("INFO")
        logger.error("%s", exc)
        return 1
    configure_logging(settings.log_level)

    if not argv:
        logger.info("please enter the test command, such as `%s go test ./...`", prog, extra=_PLAIN)
        return 2
    if len(argv) == 1:
        option = argv[0].lstrip("-").lower()
        if option in ("version", "v"):
            logger.info("%s -- %s", prog, VERSION, extra=_PLAIN)
            return 0
        if option in ("help", "h"):
            _print_usage(prog)
            return 0

    try:
        run(settings, argv)
    except ExecFailure as exc:
        logger.error("%s", exc)
        return exc.exit_code
    except TestboxError as exc:
        logger.error("%s", exc)
        return 1

    logger.info("Success!", extra={"icon": SUCCESS_ICON})
    return 0


def load_settings() -> Settings:
    """Read settings from the environment and `.env`.

    Raises ConfigError when a value is invalid.
    """
    try:
        return Settings()
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        raise ConfigError(f"invalid settings: {problems}") from exc


def run(settings: Settings, command: list[str]) -> None:
    """Setup → stale container cleanup → image → container."""
    context = stage1_setup.run(settings, command)
    client = get_docker_client(settings)
    stage3_container.remove_container(client, settings.container_name)
    stage2_image.run(settings, client, context)
    stage3_container.run(settings, client, context)


def _print_usage(prog: str) -> None:
    for line in (
        f"Usage: {prog} [OPTION | COMMAND]",
        "Option:",
        "    -h --help\tPrint help and quit",
        "    -v --version\tPrint version information and quit",
        "COMMAND: command to be executed",
        f"    {prog} go test ./...",
        f"    {prog} golangci-lint run",
    ):
        logger.info("%s", line, extra=_PLAIN)


if __name__ == "__main__":
    sys.exit(main())
