"""Host-side workspaces for execution requests.

Each request gets a fresh directory under a configurable base directory.
The directory holds the user's source file and everything the compiler
produces, and is bind-mounted into the request's container.  Containers
usually run as a different user than the service, so workspaces are made
world-writable.

The store is safe to share between threads: every workspace has a unique
name and is only touched by the request that created it.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List


logger = logging.getLogger(__name__)


class WorkspaceStore:
    """Create and remove per-request workspace directories."""

    def __init__(self, base_dir: str | Path, keep: bool = False) -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.keep = keep

    def create(self) -> Path:
        workspace = self.base_dir / uuid.uuid4().hex
        workspace.mkdir()
        try:
            workspace.chmod(0o777)
        except PermissionError:
            logger.warning("Unable to chmod workspace %s; continuing", workspace)
        return workspace.resolve()

    def list(self) -> List[Path]:
        if not self.base_dir.exists():
            return []
        return sorted(p.resolve() for p in self.base_dir.iterdir() if p.is_dir())

    def delete(self, workspace: Path) -> None:
        workspace = Path(workspace)
        if not workspace.exists():
            return
        for path in workspace.rglob("*"):
            if path.is_file() or path.is_symlink():
                path.unlink()
        for path in sorted(workspace.rglob("*"), reverse=True):
            if path.is_dir():
                try:
                    path.rmdir()
                except OSError:
                    logger.warning("Could not remove directory %s", path)
        try:
            workspace.rmdir()
        except OSError:
            logger.warning("Could not remove workspace %s", workspace)

    @contextmanager
    def lease(self) -> Iterator[Path]:
        """Yield a fresh workspace and remove it afterwards unless ``keep`` is set."""
        workspace = self.create()
        try:
            yield workspace
        finally:
            if self.keep:
                logger.info("Keeping workspace %s", workspace)
            else:
                self.delete(workspace)
