"""
FastAPI application for the code sandbox service.

This module configures logging and the FastAPI application, enforces
authentication via a shared secret header and exposes the execution
route.  Engine errors are translated to HTTP errors naming the phase that
failed:

* unsupported language -> 400
* compile error -> 422 with the compiler's diagnostics
* image or container could not be provisioned -> 503
* anything else -> 500
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Dict

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse

from ..config import Config
from ..errors import CompileError, SandboxError, UnsupportedLanguage
from ..models import ExecuteCodeRequest, ExecuteCodeResponse, RunResult
from ..pipeline import ExecutionRequest
from ..service import SandboxService


logger = logging.getLogger("codesandbox")

if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("[codesandbox] %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)


config = Config.from_env()

logger.setLevel(config.log_level)

logger.info(
    "Loaded config: workspace_path=%s, allowed_langs=%s, timeout_ms=%s, max_memory_mb=%s",
    config.workspace_path,
    config.allowed_langs,
    config.timeout_ms,
    config.max_memory_mb,
)

if not config.api_key:
    logger.warning("No API key configured; requests will not be authenticated")

UNAUTHENTICATED_PATHS = {"/health"}


@lru_cache(maxsize=1)
def get_service() -> SandboxService:
    """Build the process-wide service on first use."""
    return SandboxService(config)


app = FastAPI(title="Code Sandbox Service", version="0.1.0")


@app.middleware("http")
async def authenticate(request, call_next):
    """Middleware to enforce shared secret authentication."""
    path = request.url.path
    method = request.method
    client = getattr(request.client, "host", "unknown")

    logger.info("Incoming request: %s %s from %s", method, path, client)

    if config.api_key and path not in UNAUTHENTICATED_PATHS:
        provided_key = request.headers.get(config.auth_header)
        if provided_key != config.api_key:
            logger.warning("Rejected %s %s from %s: bad credentials", method, path, client)
            return JSONResponse(status_code=403, content={"detail": "Forbidden"})

    response = await call_next(request)
    logger.info("Response: %s %s -> %s", method, path, response.status_code)
    return response


@app.get("/health")
async def health() -> Dict[str, str]:
    """Return a simple health check response."""
    return {"status": "ok"}


@app.post("/executeCode", response_model=ExecuteCodeResponse)
def execute_code(
    req: ExecuteCodeRequest,
    service: SandboxService = Depends(get_service),
) -> ExecuteCodeResponse:
    """Compile the code once and run it once per entry of ``inputList``."""
    logger.info(
        "[/executeCode] language=%s, inputs=%d, code_bytes=%d",
        req.language,
        len(req.input_list),
        len(req.code),
    )
    request = ExecutionRequest(code=req.code, language=req.language, inputs=tuple(req.input_list))

    try:
        outcome = service.execute(request)
    except UnsupportedLanguage as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except CompileError as exc:
        raise HTTPException(
            status_code=422,
            detail={"phase": exc.phase, "message": exc.stderr or exc.stdout},
        )
    except SandboxError as exc:
        logger.error("[/executeCode] %s phase failed: %s", exc.phase, exc)
        raise HTTPException(status_code=503, detail={"phase": exc.phase, "message": str(exc)})
    except Exception as exc:
        logger.exception("[/executeCode] Unhandled error during execution: %s", exc)
        raise HTTPException(status_code=500, detail="Execution error")

    return ExecuteCodeResponse(
        output_list=outcome.outputs,
        results=[RunResult.from_result(result) for result in outcome.results],
    )
