from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Any, AsyncGenerator
from .routers import commands
from contextlib import asynccontextmanager
import os
import logging
import uvicorn
from dotenv import load_dotenv

from src.commands.executor.command_executor import CommandExecutor
from src.commands.filter.command_filter import FilterPolicy, get_filter_summary
from src.commands.filter.security import mask_redis_url
from src.config.settings import AdapterConfig, load_config
from src.core.topology.manager import TopologyManager

# Configure logging at module level
logging.basicConfig(
    level=logging.WARNING,  # Set default to WARNING for all loggers
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

# Application loggers; lowered to DEBUG at startup when VERBOSE is set
logging.getLogger("src").setLevel(logging.INFO)  # All src.* modules
logging.getLogger("__main__").setLevel(logging.INFO)

# Keep third-party loggers at INFO or WARNING to reduce noise
logging.getLogger("uvicorn.access").setLevel(logging.INFO)
logging.getLogger("uvicorn.error").setLevel(logging.INFO)
logging.getLogger("redis").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def log_startup_summary(config: AdapterConfig, policy: FilterPolicy) -> None:
    filter_summary = get_filter_summary(policy)
    logger.info(f"Redis:   {mask_redis_url(config.redis_url)}")
    logger.info(f"Auth:    {'enabled (Bearer/Basic)' if config.token else 'DISABLED'}")
    logger.info(
        f"Filter:  {filter_summary['mode']} "
        f"({filter_summary['blocked_count']} blocked, {filter_summary['allowed_count']} allowed)"
    )

    if not config.token:
        logger.warning("Authentication is disabled! Set UPSTASH_TOKEN to enable.")
    if policy.mode == "none":
        logger.warning("Command filtering is disabled! This is dangerous.")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[Any, Any]:
    # Load environment variables at startup
    env_path = os.path.join(os.path.dirname(__file__), "..", ".env")
    if os.path.exists(env_path):
        load_dotenv(env_path)
        logger.info(f"Loaded environment from {env_path}")
    else:
        logger.info(f"No .env file found at {env_path}, using system environment variables")

    config = load_config()
    if config.verbose:
        logging.getLogger("src").setLevel(logging.DEBUG)

    policy = FilterPolicy.from_config(config)
    topology_manager = TopologyManager(config)

    app.state.config = config
    app.state.topology_manager = topology_manager
    app.state.command_executor = CommandExecutor(topology_manager, policy)

    log_startup_summary(config, policy)
    yield

    # Shutdown: release every store connection
    logger.info("Shutting down...")
    await topology_manager.close()


app = FastAPI(
    lifespan=lifespan,
    title="Redis REST Adapter",
    description="Upstash-compatible REST API for Redis: single commands, pipelines and MULTI/EXEC transactions over HTTP",
    version="1.0.0",
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render HTTP errors in the {"error": message} envelope clients expect"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.debug(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "Validation error"})


# Include routers; health first so the catch-all command route cannot shadow it
app.include_router(commands.health_router)
app.include_router(commands.router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=load_config().port)
