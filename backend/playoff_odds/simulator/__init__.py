"""
NFL Playoff Odds Simulator

Monte Carlo simulation of the remaining season with league tiebreakers.
"""

from .models import Team, Game, SeasonStats, SimulationResult, TiebreakKind, TIE, win_percentage
from .schedule_strength import compute_schedule_strength
from .tiebreakers import resolve_tiebreak, find_tiebreaker_winner, get_h2h_record
from .ratings import (
    win_probability,
    update_after_win,
    update_after_tie,
    wins_to_rating,
    rating_to_wins,
    expected_wins_from_thresholds,
    seed_ratings_from_expected_wins,
    fallback_odds,
)
from .engine import (
    run_simulation,
    run_simulation_parallel,
    determine_playoffs,
    ConferenceSeeding,
    SeasonPlan,
    SimulationTally,
)
from .calibration import calibrate_ratings, CalibrationResult

__all__ = [
    # Models
    "Team",
    "Game",
    "SeasonStats",
    "SimulationResult",
    "TiebreakKind",
    "TIE",
    "win_percentage",
    # Schedule strength
    "compute_schedule_strength",
    # Tiebreakers
    "resolve_tiebreak",
    "find_tiebreaker_winner",
    "get_h2h_record",
    # Ratings
    "win_probability",
    "update_after_win",
    "update_after_tie",
    "wins_to_rating",
    "rating_to_wins",
    "expected_wins_from_thresholds",
    "seed_ratings_from_expected_wins",
    "fallback_odds",
    # Engine
    "run_simulation",
    "run_simulation_parallel",
    "determine_playoffs",
    "ConferenceSeeding",
    "SeasonPlan",
    "SimulationTally",
    # Calibration
    "calibrate_ratings",
    "CalibrationResult",
]
