"""
The compile-then-run pipeline for one execution request.

A request moves through the states of :class:`PipelineState`:

``CREATED -> SOURCE_WRITTEN -> PROVISIONED -> COMPILED -> RUNNING -> COMPLETED``

or to ``FAILED`` from any of them.  Failures before the run phase abort
the request with a :class:`~codesandbox.errors.SandboxError`; failures
while running one input are recorded as that input's result and the
remaining inputs still run.  The single environment of a request is
removed when the request ends, whichever way it ends.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .errors import CompileError, ExecStartFailure, InterruptedWait, SandboxError
from .languages import LanguageProfile, LanguageRegistry
from .provisioner import Environment, EnvironmentProvisioner
from .runner import CommandRunner, ExecutionResult


logger = logging.getLogger(__name__)


class PipelineState(str, enum.Enum):
    CREATED = "created"
    SOURCE_WRITTEN = "source_written"
    PROVISIONED = "provisioned"
    COMPILED = "compiled"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ExecutionRequest:
    """Source code, its language and one argument line per test case."""

    code: str
    language: str
    inputs: Sequence[str] = ()


@dataclass
class ExecutionOutcome:
    """Per-input results, in input order."""

    results: List[ExecutionResult] = field(default_factory=list)
    compile_result: Optional[ExecutionResult] = None

    @property
    def outputs(self) -> List[Optional[str]]:
        return [result.stdout for result in self.results]


def tokenize_input(line: str) -> List[str]:
    """Split an input line on whitespace into command arguments."""
    return (line or "").split()


class PipelineRun:
    """One pass of a request through the pipeline.

    Holds the state of the request so that callers and tests can see how
    far it got.  Use :meth:`ExecutionPipeline.execute` rather than creating
    these directly.
    """

    def __init__(
        self,
        pipeline: "ExecutionPipeline",
        request: ExecutionRequest,
        workspace: Path,
    ) -> None:
        self.pipeline = pipeline
        self.request = request
        self.workspace = Path(workspace)
        self.state = PipelineState.CREATED
        self.current_input: Optional[int] = None
        self.environment: Optional[Environment] = None

    def execute(self) -> ExecutionOutcome:
        try:
            profile = self.pipeline.registry.get(self.request.language)
            return self._execute(profile)
        except Exception as exc:
            self.state = PipelineState.FAILED
            if isinstance(exc, SandboxError):
                logger.warning("Request failed in %s phase: %s", exc.phase, exc)
            raise
        finally:
            if self.environment is not None:
                self.pipeline.provisioner.destroy(self.environment)

    def _execute(self, profile: LanguageProfile) -> ExecutionOutcome:
        source_path = self.workspace / profile.source_name
        source_path.write_text(self.request.code, encoding="utf-8")
        self.state = PipelineState.SOURCE_WRITTEN

        provisioner = self.pipeline.provisioner
        provisioner.ensure_image_available(profile.image)
        self.environment = provisioner.create_environment(self.workspace, profile.image)
        self.state = PipelineState.PROVISIONED

        outcome = ExecutionOutcome()
        outcome.compile_result = self._compile(profile)
        self.state = PipelineState.COMPILED

        for index, line in enumerate(self.request.inputs):
            self.state = PipelineState.RUNNING
            self.current_input = index
            outcome.results.append(self._run(profile, line))

        self.state = PipelineState.COMPLETED
        logger.info(
            "Completed %s request with %d input(s) in container %s",
            profile.language,
            len(outcome.results),
            self.environment.id[:12],
        )
        return outcome

    def _compile(self, profile: LanguageProfile) -> Optional[ExecutionResult]:
        if not profile.compiled:
            return None
        command = profile.build_compile_command(self.environment.workdir)
        try:
            result = self.pipeline.runner.run(self.environment, command)
        except (ExecStartFailure, InterruptedWait) as exc:
            raise CompileError(stderr=str(exc)) from exc
        if result.timed_out:
            raise CompileError(
                stderr=(result.stderr or "") + f"\nCompilation timed out after {result.time_ms} ms",
                stdout=result.stdout or "",
            )
        if result.exit_code != 0:
            raise CompileError(
                stderr=result.stderr or "",
                stdout=result.stdout or "",
                exit_code=result.exit_code,
            )
        return result

    def _run(self, profile: LanguageProfile, line: str) -> ExecutionResult:
        command = profile.build_run_command(self.environment.workdir, tokenize_input(line))
        try:
            return self.pipeline.runner.run(self.environment, command)
        except (ExecStartFailure, InterruptedWait) as exc:
            logger.warning("Input %d failed: %s", self.current_input, exc)
            return ExecutionResult.failure(str(exc))


class ExecutionPipeline:
    """Compile source once and run it once per input in a single environment."""

    def __init__(
        self,
        registry: LanguageRegistry,
        provisioner: EnvironmentProvisioner,
        runner: CommandRunner,
    ) -> None:
        self.registry = registry
        self.provisioner = provisioner
        self.runner = runner

    def start(self, request: ExecutionRequest, workspace: Path) -> PipelineRun:
        return PipelineRun(self, request, workspace)

    def execute(self, request: ExecutionRequest, workspace: Path) -> ExecutionOutcome:
        """Run ``request`` using ``workspace`` as the shared directory.

        Raises
        ------
        UnsupportedLanguage
            Before anything is written or provisioned.
        ImageUnavailable, ProvisionFailure
            If no environment could be created.
        CompileError
            If the compile command failed; no input is run.
        """
        return self.start(request, workspace).execute()
