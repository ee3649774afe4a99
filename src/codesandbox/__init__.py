"""Sandboxed compile-and-run service.

This package compiles untrusted source code and runs it once per input
inside a resource-limited Docker container, returning the captured output
of every run.

The top-level modules include:

* ``languages`` – data-driven language profiles and their registry.
* ``provisioner`` – image pulls and container creation with fixed limits.
* ``runner`` – command execution with streamed output capture and timeouts.
* ``pipeline`` – the compile-then-run state machine for one request.
* ``workspace`` – per-request host directories mounted into containers.
* ``config`` – configuration handling for environment variables.
* ``models`` – Pydantic models defining request and response schemas.
* ``api`` – FastAPI application exposing HTTP endpoints.
"""

from .errors import (
    CompileError,
    ExecStartFailure,
    ImageUnavailable,
    InterruptedWait,
    ProvisionFailure,
    SandboxError,
    UnsupportedLanguage,
)
from .languages import LanguageProfile, LanguageRegistry
from .pipeline import ExecutionOutcome, ExecutionPipeline, ExecutionRequest, PipelineState
from .provisioner import Environment, EnvironmentProvisioner, ResourceLimits
from .runner import CommandRunner, ExecutionResult, ExecutionStatus

__all__ = [
    "CommandRunner",
    "CompileError",
    "Environment",
    "EnvironmentProvisioner",
    "ExecStartFailure",
    "ExecutionOutcome",
    "ExecutionPipeline",
    "ExecutionRequest",
    "ExecutionResult",
    "ExecutionStatus",
    "ImageUnavailable",
    "InterruptedWait",
    "LanguageProfile",
    "LanguageRegistry",
    "PipelineState",
    "ProvisionFailure",
    "ResourceLimits",
    "SandboxError",
    "UnsupportedLanguage",
]
