"""
Rating calibration against target playoff probabilities.

Runs short simulation batches and nudges each team's seed rating toward
the rating that reproduces its target playoff probability. Rounds run one
after another; each round sees the ratings produced by the previous one.
"""

import logging
import math
import random
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence

from ..core.config import SimulationSettings, get_settings
from ..core.exceptions import ConfigurationError
from .models import Team, Game
from .engine import run_simulation


logger = logging.getLogger(__name__)


@dataclass
class CalibrationResult:
    """Calibrated ratings plus the error of the last round."""

    ratings: Dict[str, float]
    rounds_run: int
    stopped_by_threshold: bool
    final_rmse: float
    final_mae: float
    final_max_diff: float
    threshold: float
    iterations: int

    def to_dict(self) -> dict:
        return {
            "ratings": dict(self.ratings),
            "rounds_run": self.rounds_run,
            "stopped_by_threshold": self.stopped_by_threshold,
            "final_rmse": self.final_rmse,
            "final_mae": self.final_mae,
            "final_max_diff": self.final_max_diff,
            "threshold": self.threshold,
            "iterations": self.iterations
        }


def _resolve_targets(teams: Sequence[Team], targets: Mapping[str, float]) -> Dict[str, float]:
    """Map targets keyed by team id or name onto team ids."""
    resolved = {}
    for team in teams:
        if team.id in targets:
            resolved[team.id] = float(targets[team.id])
        elif team.name in targets:
            resolved[team.id] = float(targets[team.name])
    return resolved


def calibrate_ratings(
    teams: Sequence[Team],
    all_games: Sequence[Game],
    seed_ratings: Mapping[str, float],
    target_playoff_probs: Mapping[str, float],
    market_odds: Optional[Mapping[str, float]] = None,
    forced_outcomes: Optional[Mapping[str, str]] = None,
    *,
    iterations: int = 10,
    batch_trials: int = 1000,
    learning_rate: float = 500.0,
    threshold: float = 0.02,
    settings: Optional[SimulationSettings] = None,
    rng: Optional[random.Random] = None
) -> CalibrationResult:
    """
    Fit seed ratings so simulated playoff odds match the targets.

    Args:
        teams: Current standings
        all_games: Full schedule
        seed_ratings: Starting ratings by team id (not modified)
        target_playoff_probs: Target playoff probability keyed by team id or name
        market_odds: game_id -> home win probability
        forced_outcomes: game_id -> winner id or TIE
        iterations: Maximum number of rounds
        batch_trials: Trials per round
        learning_rate: Rating points per unit of probability miss
        threshold: Misses smaller than this are left alone; RMSE below it stops after
            that round's adjustments are applied
        settings: Model settings
        rng: Random source shared by every round

    Returns:
        CalibrationResult with the new ratings by team id
    """
    if iterations <= 0:
        raise ConfigurationError(f"iterations must be positive, got {iterations}")
    if threshold < 0:
        raise ConfigurationError(f"threshold must be non-negative, got {threshold}")

    settings = settings or get_settings()
    if rng is None:
        rng = random.Random(settings.seed)

    targets = _resolve_targets(teams, target_playoff_probs)
    if not targets:
        raise ConfigurationError("No calibration targets match any team")

    ratings = dict(seed_ratings)
    market_odds = market_odds or {}

    rounds_run = 0
    stopped = False
    rmse = mae = max_diff = 0.0

    for round_num in range(1, iterations + 1):
        results, _ = run_simulation(
            teams, all_games, batch_trials, market_odds, ratings, forced_outcomes,
            settings=settings, rng=rng
        )
        simulated = {r.team_id: r.playoff_prob for r in results}
        rounds_run = round_num

        total_sq = 0.0
        total_abs = 0.0
        max_diff = 0.0
        adjustments = {}

        for team_id, target in targets.items():
            diff = target - simulated[team_id]
            abs_diff = abs(diff)
            total_sq += diff * diff
            total_abs += abs_diff
            max_diff = max(max_diff, abs_diff)

            if abs_diff >= threshold:
                adjustments[team_id] = diff * learning_rate
                logger.debug(
                    "Round %d: %s target %.3f simulated %.3f",
                    round_num, team_id, target, simulated[team_id]
                )

        rmse = math.sqrt(total_sq / len(targets))
        mae = total_abs / len(targets)

        logger.info(
            "Calibration round %d/%d: rmse=%.4f mae=%.4f max=%.4f",
            round_num, iterations, rmse, mae, max_diff
        )

        for team_id, change in adjustments.items():
            ratings[team_id] += change

        if rmse < threshold:
            stopped = True
            break

    return CalibrationResult(
        ratings=ratings,
        rounds_run=rounds_run,
        stopped_by_threshold=stopped,
        final_rmse=rmse,
        final_mae=mae,
        final_max_diff=max_diff,
        threshold=threshold,
        iterations=iterations
    )
