"""
Wiring of the engine's components from configuration.

:class:`SandboxService` owns one Docker client, one provisioner (and so
one image cache), one runner and one workspace store for the whole
process, and leases a workspace to every request it executes.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import docker

from .config import Config
from .languages import LanguageRegistry
from .pipeline import ExecutionOutcome, ExecutionPipeline, ExecutionRequest
from .provisioner import EnvironmentProvisioner
from .runner import CommandRunner
from .workspace import WorkspaceStore


logger = logging.getLogger(__name__)


class SandboxService:
    """Execute requests end to end, including workspace bookkeeping."""

    def __init__(self, config: Config, client: Optional[Any] = None) -> None:
        self.config = config
        self.client = client if client is not None else docker.from_env()
        self.registry = LanguageRegistry.default().restricted_to(config.allowed_langs)
        self.provisioner = EnvironmentProvisioner(self.client, config.resource_limits())
        self.runner = CommandRunner(self.client, timeout_ms=config.timeout_ms)
        self.pipeline = ExecutionPipeline(self.registry, self.provisioner, self.runner)
        self.workspaces = WorkspaceStore(config.workspace_path, keep=config.keep_workspace)
        logger.info("Sandbox ready for languages: %s", ", ".join(self.registry.languages()))

    def execute(self, request: ExecutionRequest) -> ExecutionOutcome:
        # Resolve first so unknown languages never touch the disk.
        self.registry.get(request.language)
        with self.workspaces.lease() as workspace:
            return self.pipeline.execute(request, workspace)
