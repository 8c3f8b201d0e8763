"""Per-request context passed explicitly through every league operation."""

from pydantic import BaseModel

from futalyst import config


class RequestContext(BaseModel):
    """Who is acting, and for which game version."""

    user_id: str
    game_version: str = config.DEFAULT_GAME_VERSION

    class Config:
        """Pydantic configuration."""

        frozen = True
