"""
FUTALYST Challenge Leagues - FastAPI Application

Provides the REST API for creating, joining and scoring challenge leagues.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__, config
from .api.dependencies import get_service
from .api.routes import router
from .errors import LeagueError
from .scheduler import complete_expired, start_background
from .services.league_service import LeagueService

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Leagues may have ended while the service was down
    print("[*] Checking for leagues past their end date...")
    completed = complete_expired()
    if completed:
        print(f"[+] Completed {completed} expired league(s)")

    stop = start_background() if config.SCHEDULER_ENABLED else None

    print("[*] App is ready.")

    yield

    print("[*] Shutting down...")
    if stop is not None:
        stop.set()


# Initialize FastAPI app with lifespan
app = FastAPI(
    title="FUTALYST Challenge Leagues",
    description="Private challenge leagues scored from weekly competitive runs",
    version=__version__,
    lifespan=lifespan
)

# Add CORS middleware
if config.CORS_ALLOW_ALL:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(LeagueError)
async def league_error_handler(request: Request, exc: LeagueError):
    """Map league errors to their HTTP status with the user-facing message."""
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": type(exc).__name__, "detail": exc.user_message},
    )


app.include_router(router)


@app.get("/health")
async def health(service: LeagueService = Depends(get_service)):
    """Health check endpoint."""
    db = service.db
    return {
        "status": "ok" if db.health_check() else "degraded",
        "version": __version__,
        "stats": db.get_stats(),
    }


# Run with: uvicorn futalyst.main:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
