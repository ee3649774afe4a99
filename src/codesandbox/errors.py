"""
Exception hierarchy for the sandbox execution engine.

Every error raised by the engine derives from :class:`SandboxError` and
names the pipeline ``phase`` it belongs to, so that callers can report
which step of a request failed without inspecting the concrete type:

* ``request`` – the request itself is unusable (unknown language).
* ``provision`` – the image could not be fetched or the container could
  not be created.  Fatal for the whole request.
* ``compile`` – the compile command failed.  Fatal for the whole request.
* ``run`` – a single command could not be dispatched or awaited.  The
  pipeline scopes these to the input being processed.

Timeouts are deliberately absent: a command that runs past its deadline
produces an :class:`~codesandbox.runner.ExecutionResult` with status
``timed_out`` rather than an exception.
"""

from __future__ import annotations

from typing import Optional


class SandboxError(Exception):
    """Base class for all engine errors."""

    phase = "internal"


class UnsupportedLanguage(SandboxError, ValueError):
    """No language profile is registered for the requested identifier."""

    phase = "request"

    def __init__(self, language: str) -> None:
        super().__init__(f"Unsupported language: {language}")
        self.language = language


class ImageUnavailable(SandboxError):
    """The base image could not be pulled."""

    phase = "provision"

    def __init__(self, image: str, reason: str) -> None:
        super().__init__(f"Image {image} is unavailable: {reason}")
        self.image = image


class ProvisionFailure(SandboxError):
    """The isolated environment could not be created or started."""

    phase = "provision"


class CompileError(SandboxError):
    """The compile command exited non-zero, timed out or never started.

    Attributes
    ----------
    stderr: str
        Diagnostics written by the compiler (may be empty).
    stdout: str
        Anything the compiler wrote to standard output.
    exit_code: int, optional
        Exit status of the compiler, ``None`` if it never finished.
    """

    phase = "compile"

    def __init__(
        self,
        stderr: str = "",
        stdout: str = "",
        exit_code: Optional[int] = None,
    ) -> None:
        message = stderr.strip() or stdout.strip() or "Compilation failed"
        super().__init__(message)
        self.stderr = stderr
        self.stdout = stdout
        self.exit_code = exit_code


class ExecStartFailure(SandboxError):
    """A command could not be dispatched to the environment."""

    phase = "run"


class InterruptedWait(SandboxError):
    """The output stream of a running command broke while waiting on it."""

    phase = "run"
