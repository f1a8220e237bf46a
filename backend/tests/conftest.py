"""
Shared builders for simulator tests.
"""

import random

import pytest

from playoff_odds.core.config import SimulationSettings
from playoff_odds.simulator.models import Team, Game, SeasonStats


class LastPickRandom(random.Random):
    """Random source whose coin toss always lands on the last candidate."""

    def randrange(self, start, stop=None, step=1):
        return (start if stop is None else stop) - 1


@pytest.fixture
def make_team():
    """Factory for teams; defaults to an NFC North club with no games played."""
    def _make(team_id, conference="NFC", division="North", **record):
        return Team(id=team_id, name=team_id, conference=conference, division=division, **record)
    return _make


@pytest.fixture
def make_stats():
    """Factory for per-trial season stats."""
    def _make(**overrides):
        return SeasonStats(**overrides)
    return _make


@pytest.fixture
def make_game():
    """Factory for games; finished by default so tiebreak tests can supply results."""
    def _make(game_id, home, away, week=1, is_finished=True, winner_id=None):
        return Game(
            id=game_id,
            week=week,
            home_team_id=home,
            away_team_id=away,
            is_finished=is_finished,
            winner_id=winner_id
        )
    return _make


@pytest.fixture
def games_index():
    """Build team_id -> games from a list of games and the teams involved."""
    def _build(games, team_ids):
        index = {tid: [] for tid in team_ids}
        for game in games:
            index.setdefault(game.home_team_id, []).append(game)
            index.setdefault(game.away_team_id, []).append(game)
        return index
    return _build


@pytest.fixture
def nfc_only():
    """Settings for leagues that only populate the NFC."""
    return SimulationSettings(conferences=("NFC",))


@pytest.fixture
def rng():
    """Seeded random source."""
    return random.Random(1234)


@pytest.fixture
def last_pick_rng():
    return LastPickRandom()
