"""Docker client acquisition.

`DOCKER_HOST=ssh://user@host` is served through the system `ssh` binary,
everything else through the usual environment (`DOCKER_HOST`,
`DOCKER_TLS_VERIFY`, `DOCKER_CERT_PATH`). A host read from `.env` takes
precedence over the process environment.
"""
import logging
import os

import docker
import requests
import urllib3
from docker.errors import DockerException

from errors import ContainerError
from settings import Settings

logger = logging.getLogger(__name__)

# docker-py leaves transport failures after connecting unwrapped
DOCKER_ERRORS = (
    DockerException,
    requests.exceptions.RequestException,
    urllib3.exceptions.HTTPError,
)


def get_docker_client(settings: Settings) -> docker.DockerClient:
    """Connect to the Docker daemon and negotiate the API version.

    Raises ContainerError if Docker is unreachable or not installed.
    """
    try:
        if settings.uses_ssh:
            logger.debug("Connecting to Docker over ssh: %s", settings.docker_host)
            client = docker.DockerClient(
                base_url=settings.docker_host, use_ssh_client=True, version="auto"
            )
        elif settings.docker_host:
            environment = {**os.environ, "DOCKER_HOST": settings.docker_host}
            client = docker.from_env(version="auto", environment=environment)
        else:
            client = docker.from_env(version="auto")
    except DOCKER_ERRORS as exc:
        raise ContainerError(f"unable to connect to Docker: {exc}") from exc
    return client
