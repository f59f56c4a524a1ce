import json
import logging
import time
from typing import Any, List, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from src.commands.executor.command_executor import CommandExecutor
from src.commands.interfaces.command_result import BatchResult, CommandResult
from src.commands.serializer.result_serializer import format_error
from src.config.settings import AdapterConfig
from src.core.errors import ErrorKind
from src.middleware.auth import require_auth
from src.models.responses import ErrorEnvelope, HealthResponse, ResultEnvelope
from src.routers.dependencies import get_command_executor, get_config

logger = logging.getLogger(__name__)

STATUS_BY_ERROR_KIND = {
    ErrorKind.PARSE: 400,
    ErrorKind.COMMAND_BLOCKED: 403,
    ErrorKind.BACKEND_COMMAND: 400,
    ErrorKind.TRANSACTION_ABORTED: 400,
    ErrorKind.CONNECTION: 503,
    ErrorKind.CLUSTER_CONFIG: 500,
}

_ERROR_RESPONSES = {
    400: {"model": ErrorEnvelope, "description": "Malformed command or store error"},
    401: {"model": ErrorEnvelope, "description": "Missing or invalid credentials"},
    403: {"model": ErrorEnvelope, "description": "Command blocked by the filter"},
    413: {"model": ErrorEnvelope, "description": "Request body too large"},
    503: {"model": ErrorEnvelope, "description": "Store unavailable"},
}

# Health probe stays outside the auth gate for load balancers
health_router = APIRouter(tags=["Health"])

router = APIRouter(
    tags=["Commands"],
    dependencies=[Depends(require_auth)],
    responses=_ERROR_RESPONSES,
)


def status_for(kind: ErrorKind) -> int:
    return STATUS_BY_ERROR_KIND.get(kind, 500)


async def read_json_body(request: Request, max_body_size: int) -> Any:
    """
    Read and decode the request body.

    Returns None for an empty body.

    Raises:
        HTTPException: 413 when the body exceeds max_body_size, 400 when
            it is not valid JSON
    """
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > max_body_size:
        raise HTTPException(status_code=413, detail="Request body too large")

    raw = await request.body()
    if len(raw) > max_body_size:
        raise HTTPException(status_code=413, detail="Request body too large")
    if not raw.strip():
        return None

    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON body")


def raw_path_segments(request: Request) -> List[str]:
    """
    Non-empty path segments exactly as sent, still percent-encoded.

    Decoding is left to the command parser so an encoded slash stays
    inside its segment.
    """
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    path = path.split("?", 1)[0]
    return [segment for segment in path.split("/") if segment]


def command_response(result: CommandResult) -> JSONResponse:
    if result.is_success():
        return JSONResponse(content=result.to_envelope())
    return JSONResponse(
        status_code=status_for(result.error_kind), content=result.to_envelope()
    )


def batch_response(result: BatchResult) -> JSONResponse:
    if result.failure is not None:
        return command_response(result.failure)
    return JSONResponse(content=result.to_envelope())


def sanitized_failure(result: CommandResult) -> Tuple[int, dict]:
    """
    Status and body for a failed path-addressed command.

    Parse errors and denials keep their message. Store errors are reduced
    to a generic message since the path form is often used from browsers
    and shell scripts that log responses.
    """
    kind = result.error_kind
    if kind in (ErrorKind.PARSE, ErrorKind.COMMAND_BLOCKED):
        return status_for(kind), result.to_envelope()
    if kind in (ErrorKind.BACKEND_COMMAND, ErrorKind.TRANSACTION_ABORTED):
        return 400, format_error("Redis command error")
    return 500, format_error("Internal server error")


@health_router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok", timestamp=int(time.time() * 1000))


@router.post("/", response_model=ResultEnvelope)
async def execute_body_command(
    request: Request,
    config: AdapterConfig = Depends(get_config),
    executor: CommandExecutor = Depends(get_command_executor),
) -> JSONResponse:
    """
    Execute one command given in the body.

    Body: ["SET", "key", "value"] or {"command": "SET", "args": ["key", "value"]}
    """
    body = await read_json_body(request, config.max_body_size)
    result = await executor.execute_body(body)
    return command_response(result)


@router.post("/pipeline")
async def execute_pipeline(
    request: Request,
    config: AdapterConfig = Depends(get_config),
    executor: CommandExecutor = Depends(get_command_executor),
) -> JSONResponse:
    """
    Execute commands as a pipeline.

    Body: [["SET", "k1", "v1"], ["GET", "k1"]]. The reply always holds one
    envelope per command; a failing command does not fail the request.
    """
    body = await read_json_body(request, config.max_body_size)
    result = await executor.pipeline_body(body)
    return batch_response(result)


@router.post("/multi-exec")
async def execute_transaction(
    request: Request,
    config: AdapterConfig = Depends(get_config),
    executor: CommandExecutor = Depends(get_command_executor),
) -> JSONResponse:
    """
    Execute commands atomically (MULTI/EXEC).

    Same body as /pipeline. Any failing command fails the whole request
    with a single error envelope.
    """
    body = await read_json_body(request, config.max_body_size)
    result = await executor.transaction_body(body)
    return batch_response(result)


@router.api_route(
    "/{command_path:path}",
    methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
    response_model=ResultEnvelope,
)
async def execute_path_command(
    command_path: str,
    request: Request,
    config: AdapterConfig = Depends(get_config),
    executor: CommandExecutor = Depends(get_command_executor),
) -> JSONResponse:
    """
    Execute a command addressed by the URL path.

    Examples:
    - GET /get/mykey -> GET mykey
    - GET /hget/myhash/myfield -> HGET myhash myfield
    - POST /set with body ["mykey", "myvalue"] -> SET mykey myvalue
    """
    segments = raw_path_segments(request)
    body = None
    if request.method != "GET":
        body = await read_json_body(request, config.max_body_size)

    if config.verbose:
        logger.info(f"[Command] {request.method} /{command_path}")

    result = await executor.execute_request(segments, body)
    if result.is_success():
        return JSONResponse(content=result.to_envelope())

    status_code, content = sanitized_failure(result)
    if status_code >= 500 or content.get("error") != result.error_message:
        logger.warning(f"Path command failed ({result.error_kind}): {result.error_message}")
    return JSONResponse(status_code=status_code, content=content)
