"""Configuration loader.

The sandbox service reads its configuration from environment variables so
the same container image can run in several deployments.  The defaults
reproduce the fixed limits the service has always enforced, so local
development works out of the box.

Environment variables:

``CODESANDBOX_API_KEY``
    Shared secret callers must present in the authentication header.  When
    empty, authentication is skipped (local development only).

``CODESANDBOX_AUTH_HEADER``
    Name of the header carrying the secret.  Defaults to ``auth``.

``CODESANDBOX_WORKSPACE_PATH``
    Host directory under which per-request workspaces are created and
    bind-mounted into containers.  Defaults to ``/tmp/codesandbox``.  When
    the service itself runs in a container this must be a path the Docker
    daemon can see.

``CODESANDBOX_ALLOWED_LANGS``
    Comma-separated list of languages permitted for execution.  Defaults to
    ``java,c,cpp,python``.

``CODESANDBOX_TIMEOUT_MS``
    Wall-clock timeout applied to every command (compile and run), in
    milliseconds.  Default is 5000.

``CODESANDBOX_MAX_MEMORY_MB``
    Memory ceiling of each container in megabytes (10^6 bytes).  Swap is
    always disabled.  Default is 100.

``CODESANDBOX_CPU_COUNT``
    Number of CPUs each container may use.  Default is 1.

``CODESANDBOX_PIDS_LIMIT``
    Maximum number of processes alive in each container at once.  Default
    is 64.

``CODESANDBOX_DISABLE_NETWORK``
    If ``true``, containers get no network.  Defaults to ``true``.

``CODESANDBOX_KEEP_WORKSPACE``
    If ``true``, workspaces are left on disk after a request for debugging.
    Defaults to ``false``.

``CODESANDBOX_LOG_LEVEL``
    Level of the ``codesandbox`` logger.  Defaults to ``INFO``.

``PORT``
    The port on which the API server listens.  Defaults to 8080.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List

from .provisioner import ResourceLimits


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y"}


def _int_var(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Invalid integer for {name}: {val}")


def _positive_int_var(name: str, default: int) -> int:
    val = _int_var(name, default)
    if val <= 0:
        raise ValueError(f"{name} must be positive, got {val}")
    return val


@dataclass
class Config:
    """Centralised configuration object."""

    api_key: str
    auth_header: str
    workspace_path: str
    allowed_langs: List[str]
    timeout_ms: int
    max_memory_mb: int
    cpu_count: int
    pids_limit: int
    disable_network: bool
    keep_workspace: bool
    log_level: str
    port: int

    @classmethod
    def load(cls) -> "Config":
        # API key may be empty in local development but should be set in production.
        api_key = os.getenv("CODESANDBOX_API_KEY", "")
        auth_header = os.getenv("CODESANDBOX_AUTH_HEADER", "auth").strip().lower() or "auth"
        workspace_path = os.getenv("CODESANDBOX_WORKSPACE_PATH", "/tmp/codesandbox")

        allowed_langs_env = os.getenv("CODESANDBOX_ALLOWED_LANGS", "java,c,cpp,python")
        allowed_langs = [lang.strip().lower() for lang in allowed_langs_env.split(",") if lang.strip()]

        log_level = os.getenv("CODESANDBOX_LOG_LEVEL", "INFO").upper()

        return cls(
            api_key=api_key,
            auth_header=auth_header,
            workspace_path=workspace_path,
            allowed_langs=allowed_langs,
            timeout_ms=_positive_int_var("CODESANDBOX_TIMEOUT_MS", 5000),
            max_memory_mb=_positive_int_var("CODESANDBOX_MAX_MEMORY_MB", 100),
            cpu_count=_positive_int_var("CODESANDBOX_CPU_COUNT", 1),
            pids_limit=_positive_int_var("CODESANDBOX_PIDS_LIMIT", 64),
            disable_network=_parse_bool(os.getenv("CODESANDBOX_DISABLE_NETWORK"), True),
            keep_workspace=_parse_bool(os.getenv("CODESANDBOX_KEEP_WORKSPACE"), False),
            log_level=log_level,
            port=_int_var("PORT", 8080),
        )

    @classmethod
    def from_env(cls) -> "Config":
        """
        Alternate constructor used by the API to load configuration.

        This wrapper calls :meth:`load` to construct the configuration.
        """
        return cls.load()

    def resource_limits(self) -> ResourceLimits:
        """Container limits derived from this configuration."""
        return ResourceLimits(
            memory_bytes=self.max_memory_mb * 1000 * 1000,
            cpu_count=self.cpu_count,
            pids_limit=self.pids_limit,
            network_disabled=self.disable_network,
        )
