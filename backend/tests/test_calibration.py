"""
Tests for rating calibration.
"""

import random

import pytest

from playoff_odds.core.config import SimulationSettings
from playoff_odds.core.exceptions import ConfigurationError
from playoff_odds.simulator.calibration import calibrate_ratings


@pytest.fixture
def two_team_race(make_team, make_game):
    """Two level NFC North clubs with one game left and a single playoff berth."""
    teams = [make_team("A", wins=8, losses=8), make_team("B", wins=8, losses=8)]
    games = [make_game("final", "A", "B", week=17, is_finished=False)]
    ratings = {"A": 1500.0, "B": 1500.0}
    settings = SimulationSettings(conferences=("NFC",), wildcard_spots=0)
    return teams, games, ratings, settings


class TestCalibrateRatings:
    """Tests for calibrate_ratings."""

    def test_moves_toward_targets(self, two_team_race):
        """Ratings converge until simulated playoff odds match the targets."""
        teams, games, ratings, settings = two_team_race

        result = calibrate_ratings(
            teams, games, ratings, {"A": 0.8, "B": 0.2},
            batch_trials=2000, settings=settings, rng=random.Random(3)
        )

        assert result.ratings["A"] > 1500
        assert result.ratings["B"] < 1500
        assert result.final_rmse < 0.05
        assert 1 <= result.rounds_run <= 10

    def test_input_ratings_not_mutated(self, two_team_race):
        teams, games, ratings, settings = two_team_race

        calibrate_ratings(
            teams, games, ratings, {"A": 0.9}, iterations=2,
            batch_trials=200, settings=settings, rng=random.Random(1)
        )

        assert ratings == {"A": 1500.0, "B": 1500.0}

    def test_stops_when_within_threshold(self, two_team_race):
        """A generous threshold stops after the first round with ratings unchanged."""
        teams, games, ratings, settings = two_team_race

        result = calibrate_ratings(
            teams, games, ratings, {"A": 0.5, "B": 0.5}, threshold=0.9,
            batch_trials=100, settings=settings, rng=random.Random(1)
        )

        assert result.stopped_by_threshold
        assert result.rounds_run == 1
        assert result.ratings == ratings

    def test_final_round_still_adjusts_outliers(self, make_team):
        """A club missing by the threshold moves even when RMSE ends the run."""
        teams = [
            make_team("N1", wins=10, losses=7),
            make_team("N2", wins=9, losses=8),
            make_team("S1", division="South", wins=10, losses=7),
            make_team("S2", division="South", wins=2, losses=15),
        ]
        ratings = {tid: 1500.0 for tid in ("N1", "N2", "S1", "S2")}
        settings = SimulationSettings(conferences=("NFC",), wildcard_spots=1)

        result = calibrate_ratings(
            teams, [], ratings, {"N1": 1.0, "N2": 1.0, "S1": 1.0, "S2": 0.03},
            batch_trials=100, settings=settings, rng=random.Random(5)
        )

        assert result.stopped_by_threshold
        assert result.rounds_run == 1
        assert result.final_rmse == pytest.approx(0.015)
        assert result.ratings["S2"] == pytest.approx(1515.0)
        assert result.ratings["N1"] == 1500.0

    def test_targets_by_name(self, two_team_race):
        teams, games, ratings, settings = two_team_race
        teams[0].name = "Alphas"

        result = calibrate_ratings(
            teams, games, ratings, {"Alphas": 0.95}, iterations=1,
            batch_trials=500, settings=settings, rng=random.Random(2)
        )

        assert result.ratings["A"] > 1500
        # No target: untouched
        assert result.ratings["B"] == 1500.0

    def test_no_matching_targets(self, two_team_race):
        teams, games, ratings, settings = two_team_race

        with pytest.raises(ConfigurationError, match="targets"):
            calibrate_ratings(teams, games, ratings, {"Z": 0.5}, settings=settings)

    def test_result_to_dict(self, two_team_race):
        teams, games, ratings, settings = two_team_race

        result = calibrate_ratings(
            teams, games, ratings, {"A": 0.5}, iterations=1,
            batch_trials=50, settings=settings, rng=random.Random(4)
        )
        data = result.to_dict()

        assert data["iterations"] == 1
        assert data["threshold"] == 0.02
        assert set(data["ratings"]) == {"A", "B"}
