"""
Tests for strength of schedule / strength of victory.
"""

import pytest

from playoff_odds.simulator.schedule_strength import compute_schedule_strength


INDEX = {"A": 0, "X": 1, "Y": 2}


class TestScheduleStrength:
    """Tests for compute_schedule_strength."""

    def test_sos_is_combined_ratio(self, make_stats):
        """SOS weights each opponent by games played: 17/26, not the 0.70 average."""
        stats = {
            "A": make_stats(),
            "X": make_stats(wins=9, losses=1),
            "Y": make_stats(wins=8, losses=8),
        }
        schedule = {"A": ["X", "Y"], "X": ["A"], "Y": ["A"]}
        wins_against = {"A": [], "X": [], "Y": []}

        compute_schedule_strength(stats, schedule, wins_against, INDEX, 3)

        assert stats["A"].sos == pytest.approx(17 / 26)
        assert stats["A"].sos != pytest.approx(0.70)

    def test_sov_counts_each_win(self, make_stats):
        """Beating X twice counts X twice: (10 + 10 + 6) / 51."""
        stats = {
            "A": make_stats(),
            "X": make_stats(wins=10, losses=7),
            "Y": make_stats(wins=6, losses=11),
        }
        schedule = {"A": ["X", "X", "Y"], "X": ["A", "A"], "Y": ["A"]}
        wins_against = {"A": ["X", "X", "Y"], "X": [], "Y": []}

        compute_schedule_strength(stats, schedule, wins_against, INDEX, 3)

        assert stats["A"].sov == pytest.approx(26 / 51)

    def test_ties_count_as_half_wins(self, make_stats):
        """Opponent ties add half a win to the numerator and a full game to the denominator."""
        stats = {
            "A": make_stats(),
            "X": make_stats(wins=8, losses=7, ties=2),
            "Y": make_stats(),
        }
        schedule = {"A": ["X"], "X": ["A"], "Y": []}
        wins_against = {"A": ["X"], "X": [], "Y": []}

        compute_schedule_strength(stats, schedule, wins_against, INDEX, 3)

        assert stats["A"].sos == pytest.approx(9 / 17)
        assert stats["A"].sov == pytest.approx(9 / 17)

    def test_zero_denominator_is_zero(self, make_stats):
        """No wins (or no games) gives 0 rather than an undefined ratio."""
        stats = {
            "A": make_stats(sov=0.7, sos=0.7),
            "X": make_stats(),
            "Y": make_stats(),
        }
        schedule = {"A": ["X"], "X": ["A"], "Y": []}
        wins_against = {"A": [], "X": [], "Y": []}

        compute_schedule_strength(stats, schedule, wins_against, INDEX, 3)

        assert stats["A"].sov == 0.0
        assert stats["A"].sos == 0.0
        assert stats["Y"].sos == 0.0
