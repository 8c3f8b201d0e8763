"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

import os


def _get_int(key: str, default: int) -> int:
    """Get integer from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_bool(key: str, default: bool) -> bool:
    """Get boolean from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    return value.lower() in ('true', '1', 'yes')


def _get_str(key: str, default: str) -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default)


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(value, upper))


# =============================================================================
# SERVER SETTINGS
# =============================================================================
PORT = _get_int('PORT', 8000)
HOST = _get_str('HOST', '0.0.0.0')
CORS_ALLOW_ALL = _get_bool('CORS_ALLOW_ALL', True)

# =============================================================================
# STORAGE SETTINGS
# =============================================================================
# Priority: DATA_DIR > /app/data (container) > data (local)
DATA_DIR = (
    os.environ.get('DATA_DIR') or
    ('/app/data' if os.path.exists('/app') else 'data')
)

# =============================================================================
# LEAGUE RULES
# =============================================================================
# Overrides may narrow these limits but never widen them
CHALLENGES_LOWER_BOUND = 25
CHALLENGES_UPPER_BOUND = 30
PARTICIPANTS_UPPER_BOUND = 20

LEAGUE_MIN_CHALLENGES = _clamp(
    _get_int('LEAGUE_MIN_CHALLENGES', CHALLENGES_LOWER_BOUND),
    CHALLENGES_LOWER_BOUND, CHALLENGES_UPPER_BOUND
)
LEAGUE_MAX_CHALLENGES = _clamp(
    _get_int('LEAGUE_MAX_CHALLENGES', CHALLENGES_UPPER_BOUND),
    LEAGUE_MIN_CHALLENGES, CHALLENGES_UPPER_BOUND
)

# Admin plus up to 19 invitees
LEAGUE_MAX_PARTICIPANTS = _clamp(
    _get_int('LEAGUE_MAX_PARTICIPANTS', PARTICIPANTS_UPPER_BOUND),
    2, PARTICIPANTS_UPPER_BOUND
)

LEAGUE_NAME_MIN_LENGTH = 3
LEAGUE_NAME_MAX_LENGTH = 50

# A league ends 4 days after creation unless the admin picks another date,
# at most 14 days out
LEAGUE_DEFAULT_DURATION_DAYS = _get_int('LEAGUE_DEFAULT_DURATION_DAYS', 4)
LEAGUE_MAX_DURATION_DAYS = _get_int('LEAGUE_MAX_DURATION_DAYS', 14)

DEFAULT_GAME_VERSION = _get_str('DEFAULT_GAME_VERSION', 'FC25')

# =============================================================================
# EVALUATION & SCHEDULING
# =============================================================================
# Cooldown between manual evaluation requests for the same league (seconds)
EVALUATE_COOLDOWN_SECONDS = _get_int('EVALUATE_COOLDOWN_SECONDS', 30)

# How often the scheduler looks for leagues past their end date (minutes)
COMPLETION_CHECK_MINUTES = _get_int('COMPLETION_CHECK_MINUTES', 15)

# Run the completion job inside the API process
SCHEDULER_ENABLED = _get_bool('SCHEDULER_ENABLED', True)

# =============================================================================
# LOGGING
# =============================================================================
LOG_LEVEL = _get_str('LOG_LEVEL', 'INFO')
