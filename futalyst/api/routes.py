"""API route definitions."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import JSONResponse

from futalyst import config
from futalyst.api.dependencies import get_evaluate_rate_limiter, get_request_context, get_service
from futalyst.api.rate_limit import RateLimiter
from futalyst.challenges import CATALOG_VERSION, list_challenges, random_selection
from futalyst.errors import LeagueError
from futalyst.models import RequestContext, Run
from futalyst.models.league import (
    CreateLeagueRequest,
    InviteResponseRequest,
    JoinLeagueRequest,
    LinkRunRequest,
)
from futalyst.services.league_service import LeagueService

logger = logging.getLogger(__name__)
router = APIRouter()


def _dump(value):
    if isinstance(value, list):
        return [v.model_dump(mode="json") for v in value]
    return value.model_dump(mode="json")


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Failed {action}")


# =============================================================================
# CHALLENGE CATALOG
# =============================================================================

@router.get("/api/challenges")
async def get_challenges(category: Optional[str] = Query(None, description="Filter by category")):
    """List catalog challenges."""
    return {
        "version": CATALOG_VERSION,
        "challenges": _dump(list_challenges(category)),
    }


@router.get("/api/challenges/random")
async def get_random_challenges(
    count: int = Query(
        config.LEAGUE_MIN_CHALLENGES,
        ge=config.LEAGUE_MIN_CHALLENGES,
        le=config.LEAGUE_MAX_CHALLENGES,
    )
):
    """Random challenge ids for the "randomize" button of the create form."""
    return {"challenge_ids": random_selection(count)}


# =============================================================================
# LEAGUES
# =============================================================================

@router.get("/api/leagues")
async def get_my_leagues(
    ctx: RequestContext = Depends(get_request_context),
    service: LeagueService = Depends(get_service),
):
    """Leagues the caller participates in."""
    try:
        return _dump(service.list_user_leagues(ctx))
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("listing leagues", e)


@router.post("/api/leagues", status_code=201)
async def create_league(
    body: CreateLeagueRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: LeagueService = Depends(get_service),
):
    """Create a league with the caller as admin."""
    try:
        details = service.create_league(
            ctx,
            name=body.name,
            end_date=body.champs_run_end_date,
            admin_run_id=body.admin_run_id,
            challenge_selections=body.challenges,
            invitee_ids=body.friend_ids_to_invite,
            description=body.description,
        )
        return _dump(details)
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("creating league", e)


@router.post("/api/leagues/join")
async def join_league(
    body: JoinLeagueRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: LeagueService = Depends(get_service),
):
    """Join a league by its code."""
    try:
        return _dump(service.join_league(ctx, body.code))
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("joining league", e)


@router.get("/api/leagues/preview/{code}")
async def preview_league(code: str, service: LeagueService = Depends(get_service)):
    """Public join-page summary. No user header needed."""
    try:
        return _dump(service.preview_league(code))
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("previewing league", e)


@router.get("/api/leagues/{league_id}")
async def get_league(league_id: str, service: LeagueService = Depends(get_service)):
    """League with its challenges, participants and standings."""
    try:
        return _dump(service.get_league_details(league_id))
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("fetching league", e)


@router.delete("/api/leagues/{league_id}", status_code=204)
async def delete_league(
    league_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: LeagueService = Depends(get_service),
):
    try:
        service.delete_league(ctx, league_id)
        return Response(status_code=204)
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("deleting league", e)


@router.put("/api/leagues/{league_id}/run")
async def link_run(
    league_id: str,
    body: LinkRunRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: LeagueService = Depends(get_service),
):
    """Link a run to the caller's slot (null unlinks)."""
    try:
        return _dump(service.link_run(ctx, league_id, body.weekly_performance_id))
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("linking run", e)


@router.post("/api/leagues/{league_id}/leave", status_code=204)
async def leave_league(
    league_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: LeagueService = Depends(get_service),
):
    try:
        service.leave_league(ctx, league_id)
        return Response(status_code=204)
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("leaving league", e)


@router.post("/api/leagues/{league_id}/evaluate")
async def evaluate_league(
    league_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: LeagueService = Depends(get_service),
    limiter: RateLimiter = Depends(get_evaluate_rate_limiter),
):
    """
    Recompute challenge results.

    Rate limited per league (EVALUATE_COOLDOWN_SECONDS).
    """
    try:
        allowed, wait_seconds = limiter.try_acquire(league_id)
        if not allowed:
            return JSONResponse(
                status_code=429,
                headers={"Retry-After": str(wait_seconds)},
                content={
                    "status": "rate_limited",
                    "message": f"Please wait {wait_seconds} seconds before evaluating again",
                    "retry_after": wait_seconds,
                },
            )

        standings = service.evaluate_league(league_id)
        return {"status": "evaluated", "standings": _dump(standings)}
    except LeagueError:
        # Failed lookups must not start the cooldown
        limiter.release(league_id)
        raise
    except Exception as e:
        raise _internal_error("evaluating league", e)


@router.post("/api/leagues/{league_id}/complete")
async def complete_league(
    league_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: LeagueService = Depends(get_service),
):
    """Final evaluation, then freeze the league (admin only)."""
    try:
        return _dump(service.complete_league(ctx, league_id))
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("completing league", e)


@router.get("/api/leagues/{league_id}/standings")
async def get_standings(league_id: str, service: LeagueService = Depends(get_service)):
    try:
        return _dump(service.get_standings(league_id))
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("fetching standings", e)


@router.get("/api/leagues/{league_id}/results")
async def get_results(league_id: str, service: LeagueService = Depends(get_service)):
    try:
        return _dump(service.get_results(league_id))
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("fetching results", e)


# =============================================================================
# INVITES
# =============================================================================

@router.get("/api/invites")
async def get_invites(
    ctx: RequestContext = Depends(get_request_context),
    service: LeagueService = Depends(get_service),
):
    """Pending invites for the caller."""
    try:
        return _dump(service.list_invites(ctx))
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("listing invites", e)


@router.post("/api/invites/{invite_id}/respond")
async def respond_to_invite(
    invite_id: str,
    body: InviteResponseRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: LeagueService = Depends(get_service),
):
    try:
        return _dump(service.respond_to_invite(ctx, invite_id, accept=body.action == "accept"))
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("responding to invite", e)


# =============================================================================
# RUNS
# =============================================================================

@router.post("/api/runs", status_code=201)
async def save_run(
    run: Run,
    ctx: RequestContext = Depends(get_request_context),
    service: LeagueService = Depends(get_service),
):
    """Store a run snapshot so it can be linked and evaluated."""
    try:
        return _dump(service.save_run(ctx, run))
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("saving run", e)


@router.get("/api/runs/{run_id}")
async def get_run(
    run_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: LeagueService = Depends(get_service),
):
    try:
        return _dump(service.get_run(ctx, run_id))
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("fetching run", e)


@router.delete("/api/runs/{run_id}", status_code=204)
async def delete_run(
    run_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: LeagueService = Depends(get_service),
):
    try:
        service.delete_run(ctx, run_id)
        return Response(status_code=204)
    except LeagueError:
        raise
    except Exception as e:
        raise _internal_error("deleting run", e)
