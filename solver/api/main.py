"""FastAPI application for the Memswap solver.

The process hosts both the HTTP surface and the fill queue workers. Both are
started by the lifespan handler, which builds the orchestration context from
the environment once per process. Jobs stored by a previous process are picked
up when the queue starts.
"""

import asyncio
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from solver.api.endpoints import router
from solver.config import SolverConfig
from solver.orchestrator import build_context

logger = structlog.get_logger()

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("SOLVER_HOST", "0.0.0.0")
PORT = int(os.environ.get("SOLVER_PORT", "8000"))
DEBUG = os.environ.get("SOLVER_DEBUG", "false").lower() in ("true", "1", "yes")


def log_unhandled_error(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """Event loop exception handler: log and keep the process alive."""
    error = context.get("exception")
    logger.error(
        "unhandled_error",
        message=context.get("message"),
        error=repr(error) if error is not None else None,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    config = SolverConfig.from_env()
    context, _, queue = build_context(config)
    app.state.context = context

    asyncio.get_running_loop().set_exception_handler(log_unhandled_error)
    queue.start()
    logger.info(
        "solver_started",
        chain_id=config.chain_id,
        solver=context.builder.address,
        relay_directly_when_possible=config.relay_directly_when_possible,
        solution_shape=config.solution_shape.value,
    )
    try:
        yield
    finally:
        queue.stop()


app = FastAPI(
    title="Memswap Solver (Python)",
    description="Fills Memswap intents through external routes and private bundles",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(router)


def run() -> None:
    """Run the solver API server.

    Configuration via environment variables:
    - SOLVER_HOST: Host to bind to (default: 0.0.0.0)
    - SOLVER_PORT: Port to bind to (default: 8000)
    - SOLVER_DEBUG: Enable debug/reload mode (default: false)
    """
    uvicorn.run(
        "solver.api.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
    )


if __name__ == "__main__":
    run()
