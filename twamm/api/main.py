"""FastAPI application for the TWAMM engine."""

import os

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from twamm import __version__
from twamm.api.endpoints import router, status_for_error
from twamm.errors import TwammError

logger = structlog.get_logger()

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("TWAMM_HOST", "0.0.0.0")
PORT = int(os.environ.get("TWAMM_PORT", "8000"))
DEBUG = os.environ.get("TWAMM_DEBUG", "false").lower() in ("true", "1", "yes")

app = FastAPI(
    title="TWAMM Engine",
    description="Time-weighted average market maker: constant product pool with long-term orders",
    version=__version__,
)


@app.exception_handler(TwammError)
async def handle_twamm_error(request: Request, err: TwammError) -> JSONResponse:
    """Translate engine errors into JSON error responses."""
    status_code = status_for_error(err)
    logger.info(
        "request_rejected",
        path=request.url.path,
        status_code=status_code,
        error_type=type(err).__name__,
        error=str(err),
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(err), "error": type(err).__name__},
    )


app.include_router(router)


@app.get("/health")
async def health() -> dict[str, object]:
    """Health check endpoint."""
    return {"status": "ok"}


def run() -> None:
    """Run the TWAMM API server.

    Configuration via environment variables:
    - TWAMM_HOST: Host to bind to (default: 0.0.0.0)
    - TWAMM_PORT: Port to bind to (default: 8000)
    - TWAMM_DEBUG: Enable debug/reload mode (default: false)

    Engine settings (tokens, interval, block time) come from the TWAMM_*
    variables read by EngineConfig.from_env().
    """
    uvicorn.run(
        "twamm.api.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
    )


if __name__ == "__main__":
    run()
