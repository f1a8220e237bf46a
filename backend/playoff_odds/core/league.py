"""
League structure constants.
"""

from enum import Enum


class Conference(str, Enum):
    """Conferences; teams only meet for seeding within their own conference."""
    AFC = "AFC"
    NFC = "NFC"


class Division(str, Enum):
    """Divisions within each conference."""
    NORTH = "North"
    SOUTH = "South"
    EAST = "East"
    WEST = "West"


CONFERENCES = tuple(c.value for c in Conference)
DIVISIONS = tuple(d.value for d in Division)

# Seeding: one berth per division winner plus wild cards
WILDCARD_SPOTS = 3

# Regular season length, used for expected-wins <-> rating conversion
SEASON_GAMES = 17
