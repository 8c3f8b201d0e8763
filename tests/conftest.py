"""
Shared test fixtures and configuration.

Provides reusable fixtures for all test files including database instances,
run/game factories, a league service bound to a temporary database, and a
FastAPI test client.
"""

import pytest
import os
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from unittest.mock import patch

from fastapi.testclient import TestClient

from futalyst.api.dependencies import evaluate_rate_limiter, get_service
from futalyst.challenges import CHALLENGE_POOL
from futalyst.main import app
from futalyst.models import ChallengeSelection, Game, PlayerPerformance, RequestContext, Run, TeamStats
from futalyst.services.league_service import LeagueService
from futalyst.storage import get_database, reset_database


BASE_TIME = datetime(2025, 3, 7, 18, 0, tzinfo=timezone.utc)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def test_data_dir():
    """Provide a temporary directory for test data."""
    temp_dir = tempfile.mkdtemp(prefix="futalyst_test_")
    yield temp_dir

    # Cleanup
    if os.path.exists(temp_dir):
        try:
            shutil.rmtree(temp_dir)
        except PermissionError:
            pass  # Windows file locking, ignore


@pytest.fixture
def db_fixture(test_data_dir):
    """Provide a clean test database instance."""
    with patch.dict(os.environ, {'DB_TYPE': 'sqlite', 'DATA_DIR': test_data_dir}, clear=False):
        reset_database()
        db = get_database()
        yield db
        reset_database()  # Close connection before cleanup


@pytest.fixture
def service(db_fixture) -> LeagueService:
    """League service bound to the test database."""
    return LeagueService(db=db_fixture)


# =============================================================================
# CONTEXT FIXTURES
# =============================================================================

@pytest.fixture
def admin_ctx() -> RequestContext:
    return RequestContext(user_id='alice', game_version='FC25')


@pytest.fixture
def friend_ctx() -> RequestContext:
    return RequestContext(user_id='bob', game_version='FC25')


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

def _make_game(
    number: int,
    result: str = 'win',
    user_goals: int = 1,
    opponent_goals: int = 0,
    played_at: Optional[datetime] = None,
    red_cards: int = 0,
    game_context: str = 'normal',
    player_stats: Optional[List[PlayerPerformance]] = None,
    **team_stats
) -> Game:
    stats = TeamStats(red_cards=red_cards, **team_stats)
    return Game(
        id=f'g{number}',
        game_number=number,
        result=result,
        user_goals=user_goals,
        opponent_goals=opponent_goals,
        game_context=game_context,
        date_played=played_at or BASE_TIME + timedelta(hours=number),
        team_stats=stats,
        player_stats=player_stats or [],
    )


def _make_run(run_id: str, user_id: str, games: List[Game], game_version: str = 'FC25') -> Run:
    return Run(id=run_id, user_id=user_id, game_version=game_version, games=games)


@pytest.fixture
def make_game():
    """Factory for games; extra keyword arguments become team stats."""
    return _make_game


@pytest.fixture
def make_run():
    """Factory for runs."""
    return _make_run


@pytest.fixture
def selections() -> List[ChallengeSelection]:
    """A valid challenge set (the first 25 catalog entries)."""
    return [ChallengeSelection(id=c.id) for c in CHALLENGE_POOL[:25]]


@pytest.fixture
def admin_run(service, admin_ctx) -> Run:
    """A saved run owned by the admin."""
    run = _make_run('run_alice', admin_ctx.user_id, [
        _make_game(1, user_goals=3, opponent_goals=1),
        _make_game(2, result='loss', user_goals=0, opponent_goals=2),
    ])
    return service.save_run(admin_ctx, run)


@pytest.fixture
def friend_run(service, friend_ctx) -> Run:
    """A saved run owned by the friend."""
    run = _make_run('run_bob', friend_ctx.user_id, [
        _make_game(1, user_goals=2, opponent_goals=2, result='draw'),
    ])
    return service.save_run(friend_ctx, run)


@pytest.fixture
def league(service, admin_ctx, admin_run, selections):
    """An active league created by the admin with their run linked."""
    return service.create_league(
        admin_ctx,
        name='Weekend League',
        end_date=None,
        admin_run_id=admin_run.id,
        challenge_selections=selections,
        invitee_ids=['bob'],
    ).league


# =============================================================================
# FASTAPI TEST CLIENT
# =============================================================================

@pytest.fixture
def client(service):
    """Test client with the league service bound to the test database."""
    app.dependency_overrides[get_service] = lambda: service
    evaluate_rate_limiter.reset()
    yield TestClient(app)
    app.dependency_overrides.clear()
    evaluate_rate_limiter.reset()
