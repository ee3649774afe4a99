"""
Provisioning of isolated execution environments.

An environment is a Docker container started from the language's base
image with a fixed set of restrictions: a memory ceiling with swap
disabled, a CPU cap, a process cap, no network, a read-only root
filesystem and a single read-write bind mount holding the request's
workspace.  The container idles on an interactive ``sh`` until commands
are executed in it with ``docker exec``.

Base images are pulled at most once per process and image, even when
several requests race to be the first to need one.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Set

from docker.errors import DockerException, ImageNotFound
from requests.exceptions import RequestException

from .errors import ImageUnavailable, ProvisionFailure


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceLimits:
    """Restrictions applied to every environment.

    Attributes
    ----------
    memory_bytes: int
        Hard memory ceiling.  Swap is disabled by setting the combined
        memory+swap limit to the same value.
    cpu_count: int
        Number of CPUs the container may use.
    pids_limit: int
        Maximum number of processes alive in the container at once.
    network_disabled: bool
        Whether the container is started without any network.
    read_only_root: bool
        Whether the root filesystem is mounted read-only.  The workspace
        mount is always read-write.
    workdir: str
        Path at which the workspace is mounted inside the container.
    """

    memory_bytes: int = 100 * 1000 * 1000
    cpu_count: int = 1
    pids_limit: int = 64
    network_disabled: bool = True
    read_only_root: bool = True
    workdir: str = "/app"


@dataclass
class Environment:
    """Handle on a live, started container."""

    id: str
    image: str
    workspace: Path
    limits: ResourceLimits
    container: Any

    @property
    def workdir(self) -> str:
        return self.limits.workdir


class EnvironmentProvisioner:
    """Create and tear down sandbox containers through a Docker client."""

    def __init__(self, client: Any, limits: ResourceLimits | None = None) -> None:
        self.client = client
        self.limits = limits or ResourceLimits()
        self._pull_lock = threading.Lock()
        self._available: Set[str] = set()

    def ensure_image_available(self, image: str) -> None:
        """Make ``image`` available locally, pulling it on first use.

        The decision is taken under a lock, so concurrent first callers
        wait for a single pull instead of starting their own.  A failed pull
        is not remembered and the next caller tries again.
        """
        if image in self._available:
            return
        with self._pull_lock:
            if image in self._available:
                return
            try:
                self.client.images.get(image)
                logger.info("Image %s already present", image)
            except ImageNotFound:
                logger.info("Pulling image %s", image)
                try:
                    self.client.images.pull(image)
                except (DockerException, RequestException) as exc:
                    logger.error("Pulling image %s failed: %s", image, exc)
                    raise ImageUnavailable(image, str(exc)) from exc
                logger.info("Pulled image %s", image)
            except (DockerException, RequestException) as exc:
                raise ImageUnavailable(image, str(exc)) from exc
            self._available.add(image)

    def create_environment(
        self,
        workspace: Path,
        image: str,
        limits: ResourceLimits | None = None,
    ) -> Environment:
        """Create and start a container with ``workspace`` mounted read-write."""
        limits = limits or self.limits
        workspace = Path(workspace).resolve()
        try:
            container = self.client.containers.create(
                image,
                command=["sh"],
                stdin_open=True,
                tty=True,
                working_dir=limits.workdir,
                volumes={str(workspace): {"bind": limits.workdir, "mode": "rw"}},
                mem_limit=limits.memory_bytes,
                memswap_limit=limits.memory_bytes,
                nano_cpus=int(limits.cpu_count * 1e9),
                pids_limit=limits.pids_limit,
                network_disabled=limits.network_disabled,
                read_only=limits.read_only_root,
                security_opt=["no-new-privileges"],
            )
        except (DockerException, RequestException) as exc:
            raise ProvisionFailure(f"Could not create container from {image}: {exc}") from exc

        try:
            container.start()
        except (DockerException, RequestException) as exc:
            self._remove(container)
            raise ProvisionFailure(f"Could not start container {container.id}: {exc}") from exc

        logger.info(
            "Started container %s from %s (workspace=%s, memory=%s, cpus=%s)",
            container.id[:12],
            image,
            workspace,
            limits.memory_bytes,
            limits.cpu_count,
        )
        return Environment(
            id=container.id,
            image=image,
            workspace=workspace,
            limits=limits,
            container=container,
        )

    def destroy(self, environment: Environment) -> None:
        """Remove the environment's container, killing whatever still runs in it."""
        if self._remove(environment.container):
            logger.info("Removed container %s", environment.id[:12])

    @staticmethod
    def _remove(container: Any) -> bool:
        try:
            container.remove(force=True)
        except (DockerException, RequestException) as exc:
            logger.warning("Failed to remove container %s: %s", container.id[:12], exc)
            return False
        return True
