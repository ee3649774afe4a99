"""
Shared fixtures and an in-memory stand-in for the Docker SDK client.

Only the parts of ``docker.DockerClient`` the engine uses are modelled:
``images.get/pull``, ``containers.create`` and the low-level
``api.exec_create/exec_start/exec_inspect`` calls.  What a command does is
decided by a script function mapping the command's argv to an
:class:`ExecScript`.
"""

from __future__ import annotations

import itertools
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest
from docker.errors import APIError, ImageNotFound

from codesandbox.runner import KILL_ALL_COMMAND


Frame = Tuple[Optional[bytes], Optional[bytes]]


@dataclass
class ExecScript:
    frames: List[Frame] = field(default_factory=list)
    exit_code: int = 0
    hang: bool = False
    start_error: Optional[Exception] = None
    stream_error: Optional[Exception] = None
    # Processes forked by the command that outlive it until killed.
    children: int = 0
    # Called with the host workspace when the command starts.
    tamper: Optional[Callable[[Path], None]] = None


def default_script(argv: List[str]) -> ExecScript:
    return ExecScript()


class FakeImages:
    def __init__(self) -> None:
        self.present: set = set()
        self.pull_calls: List[str] = []
        self.pull_delay = 0.0
        self.pull_error: Optional[Exception] = None

    def get(self, image: str):
        if image not in self.present:
            raise ImageNotFound(f"No such image: {image}")
        return image

    def pull(self, image: str):
        self.pull_calls.append(image)
        time.sleep(self.pull_delay)
        if self.pull_error is not None:
            raise self.pull_error
        self.present.add(image)
        return image


class FakeContainer:
    def __init__(self, container_id: str, image: str, kwargs: dict) -> None:
        self.id = container_id
        self.image = image
        self.kwargs = kwargs
        self.started = False
        self.removed = False
        self.start_error: Optional[Exception] = None
        self.remove_error: Optional[Exception] = None
        # One event per process still alive in the container, set when killed.
        self.live: List[threading.Event] = []

    @property
    def host_workspace(self) -> Path:
        (host, _), = self.kwargs["volumes"].items()
        return Path(host)

    def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    def remove(self, force: bool = False) -> None:
        if self.remove_error is not None:
            raise self.remove_error
        self.removed = True


class FakeContainers:
    def __init__(self) -> None:
        self.created: List[FakeContainer] = []
        self.by_id: Dict[str, FakeContainer] = {}
        self.create_error: Optional[Exception] = None
        self.start_error: Optional[Exception] = None
        self._ids = itertools.count(1)

    def create(self, image: str, **kwargs) -> FakeContainer:
        if self.create_error is not None:
            raise self.create_error
        container = FakeContainer(f"{next(self._ids):064x}", image, kwargs)
        container.start_error = self.start_error
        self.created.append(container)
        self.by_id[container.id] = container
        return container


@dataclass
class ExecRecord:
    exec_id: str
    container: FakeContainer
    cmd: List[str]
    kwargs: dict
    control: bool = False
    exit_code: Optional[int] = None
    killed: threading.Event = field(default_factory=threading.Event)

    @property
    def argv(self) -> List[str]:
        return list(self.cmd)


class FakeAPI:
    def __init__(self, containers: FakeContainers) -> None:
        self.containers = containers
        self.script: Callable[[List[str]], ExecScript] = default_script
        self.create_error: Optional[Exception] = None
        self.execs: Dict[str, ExecRecord] = {}
        self.order: List[ExecRecord] = []
        self.kill_alls: List[str] = []

    @property
    def commands(self) -> List[List[str]]:
        """argv of every user command, in dispatch order, excluding kills."""
        return [record.argv for record in self.order if not record.control]

    def exec_create(self, container_id: str, cmd: List[str], **kwargs) -> dict:
        if self.create_error is not None:
            raise self.create_error
        container = self.containers.by_id[container_id]
        exec_id = f"{len(self.order) + 1:064x}"
        record = ExecRecord(exec_id, container, list(cmd), kwargs, control=cmd == KILL_ALL_COMMAND)
        self.execs[exec_id] = record
        self.order.append(record)
        return {"Id": exec_id}

    def exec_start(self, exec_id: str, stream: bool = False, demux: bool = False):
        record = self.execs[exec_id]
        container = record.container
        if record.control:
            self.kill_alls.append(container.id)
            for process in container.live:
                process.set()
            container.live.clear()
            return b""

        script = self.script(record.argv)
        if script.start_error is not None:
            raise script.start_error
        if script.tamper is not None:
            script.tamper(container.host_workspace)
        if script.hang:
            container.live.append(record.killed)
        for _ in range(script.children):
            container.live.append(threading.Event())
        record.exit_code = script.exit_code
        return self._frames(record, script)

    def _frames(self, record: ExecRecord, script: ExecScript):
        for frame in script.frames:
            yield frame
        if script.stream_error is not None:
            raise script.stream_error
        if script.hang:
            record.killed.wait(10)
            record.exit_code = 137

    def exec_inspect(self, exec_id: str) -> dict:
        record = self.execs[exec_id]
        return {"ExitCode": record.exit_code, "Running": False}


class FakeDockerClient:
    def __init__(self) -> None:
        self.images = FakeImages()
        self.containers = FakeContainers()
        self.api = FakeAPI(self.containers)


def api_error(message: str = "boom") -> APIError:
    return APIError(message)


@pytest.fixture
def fake_client() -> FakeDockerClient:
    return FakeDockerClient()


@pytest.fixture
def workspace(tmp_path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path.resolve()
