"""Pydantic models for request and response bodies.

Field names follow the camelCase wire format of the original service
(``inputList``, ``outputList``); snake_case names are accepted on input
as well.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .runner import ExecutionResult


class ExecuteCodeRequest(BaseModel):
    """Request body for compiling and running code."""

    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(..., description="Source code to compile and run.")
    language: str = Field(..., description="Language identifier, e.g. 'java' or 'c'.")
    input_list: List[str] = Field(
        default_factory=list,
        alias="inputList",
        description="One argument line per run; each line is split on whitespace.",
    )


class RunResult(BaseModel):
    """Diagnostics for one run."""

    model_config = ConfigDict(populate_by_name=True)

    stdout: Optional[str] = None
    stderr: Optional[str] = None
    time_ms: int = Field(..., alias="timeMs")
    exit_code: Optional[int] = Field(default=None, alias="exitCode")
    status: str

    @classmethod
    def from_result(cls, result: ExecutionResult) -> "RunResult":
        return cls(
            stdout=result.stdout,
            stderr=result.stderr,
            time_ms=result.time_ms,
            exit_code=result.exit_code,
            status=result.status.value,
        )


class ExecuteCodeResponse(BaseModel):
    """Response body: the stdout of every run, plus full diagnostics."""

    model_config = ConfigDict(populate_by_name=True)

    output_list: List[Optional[str]] = Field(default_factory=list, alias="outputList")
    results: List[RunResult] = Field(default_factory=list)
