"""
Core configuration, league constants and exceptions.
"""

from .config import SimulationSettings, get_settings
from .exceptions import ConfigurationError, MissingRatingError, SimulationCancelledError
from .league import Conference, Division, CONFERENCES, DIVISIONS, WILDCARD_SPOTS, SEASON_GAMES

__all__ = [
    "SimulationSettings",
    "get_settings",
    "ConfigurationError",
    "MissingRatingError",
    "SimulationCancelledError",
    "Conference",
    "Division",
    "CONFERENCES",
    "DIVISIONS",
    "WILDCARD_SPOTS",
    "SEASON_GAMES",
]
