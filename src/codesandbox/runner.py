"""
Command execution inside a provisioned environment.

:class:`CommandRunner` runs one already-tokenized command in a container
through ``docker exec`` and waits for it with a wall-clock deadline.

Output arrives as a stream of demultiplexed ``(stdout, stderr)`` chunks.
Each stream is accumulated in its own buffer for the whole invocation and
decoded once the invocation is over, so output delivered in several
chunks is never lost and multi-byte characters split across chunks decode
correctly.

A deadline bounds the processes, not only the wait.  Commands in one
environment never overlap, so when the deadline passes the runner signals
every process in the container except its idle PID 1 with ``kill -KILL -1``.
Children the command forked are killed with it, and nothing the command
writes into the workspace can redirect the kill.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

from docker.errors import DockerException
from requests.exceptions import RequestException

from .errors import ExecStartFailure, InterruptedWait
from .provisioner import Environment


logger = logging.getLogger(__name__)

# Signals every process the in-container shell may signal, which is all
# of them except PID 1 and the shell itself.
KILL_ALL_COMMAND = ["sh", "-c", "kill -KILL -1"]

# Extra time allowed after a kill for the stream to drain.
_KILL_GRACE_SECONDS = 1.0


class ExecutionStatus(str, enum.Enum):
    OK = "ok"
    TIMED_OUT = "timed_out"
    ERROR = "error"


@dataclass
class ExecutionResult:
    """Result of running one command.

    Attributes
    ----------
    stdout: str, optional
        Everything written to standard output, ``None`` if nothing was.
    stderr: str, optional
        Everything written to standard error, ``None`` if nothing was.
    time_ms: int
        Wall-clock time from start to completion, or to the deadline
        if the command timed out.
    exit_code: int, optional
        Exit status of the command, ``None`` if it never finished.
    status: ExecutionStatus
        ``ok`` when the command finished on its own (whatever its exit
        code), ``timed_out`` when it was killed at the deadline and
        ``error`` when it could not be dispatched or awaited.
    """

    stdout: Optional[str]
    stderr: Optional[str]
    time_ms: int
    exit_code: Optional[int] = None
    status: ExecutionStatus = ExecutionStatus.OK

    @property
    def timed_out(self) -> bool:
        return self.status is ExecutionStatus.TIMED_OUT

    @property
    def succeeded(self) -> bool:
        return self.status is ExecutionStatus.OK and self.exit_code == 0

    @classmethod
    def failure(cls, message: str, time_ms: int = 0) -> "ExecutionResult":
        return cls(stdout=None, stderr=message, time_ms=time_ms, status=ExecutionStatus.ERROR)


class _StreamCapture:
    """Accumulates the two output streams of one invocation."""

    def __init__(self) -> None:
        self._stdout = bytearray()
        self._stderr = bytearray()
        self._lock = threading.Lock()
        self.error: Optional[BaseException] = None
        self.done = threading.Event()

    def consume(self, frames: Iterable[Any]) -> None:
        try:
            for frame in frames:
                out, err = frame
                with self._lock:
                    if out:
                        self._stdout.extend(out)
                    if err:
                        self._stderr.extend(err)
        except Exception as exc:  # handed to the waiting thread
            self.error = exc
        finally:
            self.done.set()

    def snapshot(self) -> tuple[Optional[str], Optional[str]]:
        with self._lock:
            return _decode(self._stdout), _decode(self._stderr)


def _decode(buffer: bytearray) -> Optional[str]:
    if not buffer:
        return None
    return bytes(buffer).decode("utf-8", errors="replace")


class CommandRunner:
    """Run commands in an environment with a wall-clock deadline."""

    def __init__(self, client: Any, timeout_ms: int = 5000) -> None:
        self.client = client
        self.timeout_ms = timeout_ms

    def run(
        self,
        environment: Environment,
        command: List[str],
        timeout_ms: Optional[int] = None,
    ) -> ExecutionResult:
        """Run ``command`` in ``environment`` and capture its output.

        Parameters
        ----------
        environment: Environment
            Started container to run in.
        command: list[str]
            Fully tokenized command.  No shell interprets it.
        timeout_ms: int, optional
            Deadline for this command, defaults to the runner's timeout.

        Returns
        -------
        ExecutionResult
            Captured output, elapsed time, exit code and status.

        Raises
        ------
        ExecStartFailure
            If the command could not be dispatched to the container.
        InterruptedWait
            If the output stream broke before the command finished.
        """
        timeout_ms = self.timeout_ms if timeout_ms is None else timeout_ms

        api = self.client.api
        try:
            exec_id = api.exec_create(
                environment.id,
                command,
                stdout=True,
                stderr=True,
                tty=False,
                workdir=environment.workdir,
                environment={"TMPDIR": environment.workdir},
            )["Id"]
            start = time.perf_counter()
            frames = api.exec_start(exec_id, stream=True, demux=True)
        except (DockerException, RequestException) as exc:
            raise ExecStartFailure(f"Could not start {command[0]}: {exc}") from exc

        capture = _StreamCapture()
        reader = threading.Thread(
            target=capture.consume,
            args=(frames,),
            name=f"exec-{exec_id[:12]}",
            daemon=True,
        )
        reader.start()

        finished = capture.done.wait(timeout_ms / 1000)
        if finished:
            time_ms = int((time.perf_counter() - start) * 1000)
        else:
            time_ms = timeout_ms
            self._kill_all(environment)
            capture.done.wait(_KILL_GRACE_SECONDS)

        if finished and capture.error is not None:
            raise InterruptedWait(
                f"Output stream of {command[0]} broke: {capture.error}"
            ) from capture.error

        stdout, stderr = capture.snapshot()
        if not finished:
            logger.warning("Command %s timed out after %s ms", command, timeout_ms)
            return ExecutionResult(
                stdout=stdout,
                stderr=stderr,
                time_ms=time_ms,
                status=ExecutionStatus.TIMED_OUT,
            )

        exit_code = self._exit_code(exec_id)
        logger.info("Command %s exited with %s in %s ms", command, exit_code, time_ms)
        return ExecutionResult(stdout=stdout, stderr=stderr, time_ms=time_ms, exit_code=exit_code)

    def _exit_code(self, exec_id: str) -> Optional[int]:
        try:
            return self.client.api.exec_inspect(exec_id).get("ExitCode")
        except (DockerException, RequestException) as exc:
            logger.warning("Could not inspect exec %s: %s", exec_id[:12], exc)
            return None

    def _kill_all(self, environment: Environment) -> None:
        api = self.client.api
        try:
            exec_id = api.exec_create(environment.id, KILL_ALL_COMMAND)["Id"]
            api.exec_start(exec_id)
        except (DockerException, RequestException) as exc:
            logger.warning("Could not kill processes in %s: %s", environment.id[:12], exc)
            return
        logger.info("Killed all processes in %s", environment.id[:12])
