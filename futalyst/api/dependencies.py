"""FastAPI dependencies for dependency injection."""

from typing import Optional

from fastapi import Header, HTTPException

from futalyst import config
from futalyst.api.rate_limit import RateLimiter
from futalyst.models import RequestContext
from futalyst.services.league_service import LeagueService, get_league_service

# Manual evaluation is throttled per league
evaluate_rate_limiter = RateLimiter(cooldown_seconds=config.EVALUATE_COOLDOWN_SECONDS)


def get_service() -> LeagueService:
    """Get league service dependency."""
    return get_league_service()


def get_request_context(
    x_user_id: Optional[str] = Header(None),
    x_game_version: Optional[str] = Header(None),
) -> RequestContext:
    """
    Build the request context from headers set by the auth proxy.

    Raises:
        HTTPException: 401 if the user id header is missing
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return RequestContext(
        user_id=x_user_id,
        game_version=x_game_version or config.DEFAULT_GAME_VERSION,
    )


def get_evaluate_rate_limiter() -> RateLimiter:
    """Get the evaluate endpoint rate limiter."""
    return evaluate_rate_limiter
