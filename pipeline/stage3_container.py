"""Stage 3: Container — run the command in a disposable container.

Creates the container, execs the command through `sh -c`, copies the
combined output to stdout and removes the container on every exit path.
"""
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import BinaryIO

import docker
from docker.errors import NotFound
from docker.types import Mount

from errors import ContainerError, ExecFailure
from models.run_context import RunContext
from settings import Settings
from utils.docker_client import DOCKER_ERRORS

logger = logging.getLogger(__name__)


def run(
    settings: Settings,
    client: docker.DockerClient,
    context: RunContext,
    out: BinaryIO | None = None,
) -> None:
    """Run `context.command` inside a fresh container.

    Returns normally when the command exits 0.
    Raises ExecFailure for a non-zero exit, ContainerError for Docker failures.
    """
    out = out or sys.stdout.buffer
    logger.info("Create docker container...")

    with container_session(settings, client, context) as container_id:
        _start(client, container_id)
        logger.info("ContainerID: %s", container_id)
        logger.info("WorkDir: %s", context.work_dir)
        logger.info("Command: %s", context.command)

        exit_code = _exec(settings, client, container_id, context, out)

    if exit_code != 0:
        raise ExecFailure(exit_code)


@contextmanager
def container_session(
    settings: Settings, client: docker.DockerClient, context: RunContext
) -> Iterator[str]:
    """Create the container and yield its ID; always remove it afterwards."""
    try:
        created = client.api.create_container(
            image=context.image,
            name=settings.container_name,
            environment=context.container_env,
            working_dir=str(context.work_dir),
            tty=context.tty,
            host_config=client.api.create_host_config(
                mounts=_mounts(settings, context),
                privileged=context.privileged,
                network_mode="host",
            ),
        )
    except DOCKER_ERRORS as exc:
        raise ContainerError(f"unable to create container: {exc}") from exc

    for warning in created.get("Warnings") or []:
        logger.warning("%s", warning)

    try:
        yield created["Id"]
    finally:
        try:
            remove_container(client, settings.container_name)
        except ContainerError as exc:
            logger.error("%s", exc)


def remove_container(client: docker.DockerClient, name: str) -> bool:
    """Force-remove the container called exactly `name`, if there is one.

    Returns True if a container was removed.
    """
    try:
        containers = client.api.containers(all=True, filters={"name": name})
    except DOCKER_ERRORS as exc:
        raise ContainerError(f"unable to list containers: {exc}") from exc

    for container in containers:
        # the API reports names with a leading slash
        if any(n.lstrip("/") == name for n in container.get("Names") or []):
            try:
                client.api.remove_container(container["Id"], force=True)
            except NotFound:
                return False
            except DOCKER_ERRORS as exc:
                raise ContainerError(f"unable to remove container {name}: {exc}") from exc
            logger.debug("Removed container %s", name)
            return True
    return False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _mounts(settings: Settings, context: RunContext) -> list[Mount]:
    root = str(context.root_dir)
    mounts = [Mount(target=root, source=root, type="bind")]
    if context.config.cache_target:
        settings.cache_dir.mkdir(parents=True, exist_ok=True)
        mounts.append(Mount(
            target=context.config.cache_target,
            source=str(settings.cache_dir),
            type="bind",
        ))
    return mounts


def _start(client: docker.DockerClient, container_id: str) -> None:
    try:
        client.api.start(container_id)
    except DOCKER_ERRORS as exc:
        raise ContainerError(f"unable to start container: {exc}") from exc


def _exec(
    settings: Settings,
    client: docker.DockerClient,
    container_id: str,
    context: RunContext,
    out: BinaryIO,
) -> int:
    tty = context.tty and not settings.force_raw
    try:
        exec_id = client.api.exec_create(
            container_id,
            ["sh", "-c", context.shell_command],
            stdout=True,
            stderr=True,
            tty=tty,
            workdir=str(context.work_dir),
            user=context.config.container_user or "",
        )["Id"]
        # without a TTY docker-py demultiplexes stdout and stderr into one stream
        for chunk in client.api.exec_start(exec_id, tty=tty, stream=True):
            out.write(chunk)
            out.flush()
        exit_code = client.api.exec_inspect(exec_id).get("ExitCode")
    except DOCKER_ERRORS as exc:
        raise ContainerError(f"unable to run command: {exc}") from exc

    if exit_code is None:
        raise ContainerError("command finished without an exit code")
    return exit_code
