"""Stage 2: Image — make sure the configured image is available locally.

The default image is always pulled so that it stays current. Any other image
is pulled only when it is not already present.
"""
import logging
import sys
from typing import TextIO

import docker
from docker.errors import ImageNotFound
from docker.utils import parse_repository_tag

from errors import ImageError
from models.run_context import RunContext
from settings import Settings
from utils.docker_client import DOCKER_ERRORS
from utils.pull_decoder import iter_lines
from utils.progress import render_pull

logger = logging.getLogger(__name__)

_DEFAULT_REGISTRY = "docker.io"


def run(
    settings: Settings,
    client: docker.DockerClient,
    context: RunContext,
    out: TextIO | None = None,
) -> None:
    """Ensure `context.image` exists locally, pulling it with live progress.

    Raises ImageError if the pull cannot be started or reports a failure.
    """
    out = out or sys.stdout
    logger.info("Prepare docker image ==> %s", context.image)

    if context.image != settings.default_image:
        cached_id = _cached_image_id(client, context.image)
        if cached_id:
            logger.info("Use image cache, ID ==> %s", cached_id)
            return

    _pull(client, image_reference(context.image), out)


def image_reference(image: str) -> str:
    """Qualify `image` with the default registry unless it names one itself."""
    image = image.lstrip("/")
    first, sep, _ = image.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        return image
    return f"{_DEFAULT_REGISTRY}/{image}"


def _cached_image_id(client: docker.DockerClient, image: str) -> str | None:
    try:
        return client.images.get(image).id or None
    except ImageNotFound:
        return None
    except DOCKER_ERRORS as exc:
        raise ImageError(f"unable to inspect image {image}: {exc}") from exc


def _pull(client: docker.DockerClient, reference: str, out: TextIO) -> None:
    repository, tag = parse_repository_tag(reference)
    try:
        chunks = client.api.pull(repository, tag=tag or "latest", stream=True, decode=False)
        render_pull(iter_lines(chunks), out)
    except DOCKER_ERRORS as exc:
        raise ImageError(f"unable to pull {reference}: {exc}") from exc
