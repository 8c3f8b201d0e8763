"""Services for the FUTALYST challenge league application."""

from futalyst.services.league_service import LeagueService, get_league_service

__all__ = ["LeagueService", "get_league_service"]
