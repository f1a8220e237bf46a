"""
Simulation settings.

Model constants (home-field offset, rating step size, tie rate) can be
overridden per call or via environment.
"""

import os
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Optional, Tuple

from .league import CONFERENCES, DIVISIONS, WILDCARD_SPOTS, SEASON_GAMES
from .exceptions import ConfigurationError


@dataclass(frozen=True)
class SimulationSettings:
    """
    Settings for the rating model and the season simulator.

    Attributes:
        home_field_advantage: Rating points added to the home team (48 ~ 57% at equal ratings)
        k_factor: Rating step size per decisive game
        tie_probability: Probability mass reserved for a tie when drawing an outcome
        rating_scale: Logistic divisor for rating differences
        probability_floor: Lower clamp on rating-model win probability
        probability_ceiling: Upper clamp on rating-model win probability
        base_rating: Rating of a team expected to finish exactly .500
        rating_per_win: Rating points per expected win above/below .500
        season_games: Regular season length
        conferences: Conferences seeded independently
        divisions: Divisions within each conference
        wildcard_spots: Wild card berths per conference
        default_trials: Trial count used when a caller does not give one
        max_trials: Upper bound accepted at the API boundary
        seed: Seed for the default random source (None = OS entropy)
    """
    home_field_advantage: float = 48.0
    k_factor: float = 20.0
    tie_probability: float = 1 / 272
    rating_scale: float = 400.0
    probability_floor: float = 0.01
    probability_ceiling: float = 0.99
    base_rating: float = 1500.0
    rating_per_win: float = 28.0
    season_games: int = SEASON_GAMES
    conferences: Tuple[str, ...] = CONFERENCES
    divisions: Tuple[str, ...] = DIVISIONS
    wildcard_spots: int = WILDCARD_SPOTS
    default_trials: int = 10000
    max_trials: int = 100000
    seed: Optional[int] = None

    def replace(self, **changes) -> 'SimulationSettings':
        """Return a copy with the given fields changed."""
        return replace(self, **changes)

    def validate(self) -> 'SimulationSettings':
        """
        Check settings for values the simulator cannot work with.

        Raises:
            ConfigurationError: If any setting is out of range
        """
        if not 0.0 <= self.tie_probability < 1.0:
            raise ConfigurationError(
                f"tie_probability must be in [0, 1), got {self.tie_probability}"
            )
        if self.rating_scale <= 0:
            raise ConfigurationError(f"rating_scale must be positive, got {self.rating_scale}")
        if not 0.0 <= self.probability_floor <= self.probability_ceiling <= 1.0:
            raise ConfigurationError("probability clamp must satisfy 0 <= floor <= ceiling <= 1")
        if self.wildcard_spots < 0:
            raise ConfigurationError(f"wildcard_spots must be >= 0, got {self.wildcard_spots}")
        if not self.conferences:
            raise ConfigurationError("At least one conference must be configured")
        return self


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


@lru_cache(maxsize=1)
def get_settings() -> SimulationSettings:
    """
    Get the process-wide settings, applying environment overrides.

    Environment variables:
        PLAYOFF_SIM_HFA: Home field advantage in rating points
        PLAYOFF_SIM_K_FACTOR: Rating step size
        PLAYOFF_SIM_TIE_PROB: Tie probability per game
        PLAYOFF_SIM_TRIALS: Default trial count
        PLAYOFF_SIM_SEED: Seed for the default random source
    """
    defaults = SimulationSettings()
    settings = SimulationSettings(
        home_field_advantage=_env_float("PLAYOFF_SIM_HFA", defaults.home_field_advantage),
        k_factor=_env_float("PLAYOFF_SIM_K_FACTOR", defaults.k_factor),
        tie_probability=_env_float("PLAYOFF_SIM_TIE_PROB", defaults.tie_probability),
        default_trials=_env_int("PLAYOFF_SIM_TRIALS", defaults.default_trials),
        seed=_env_int("PLAYOFF_SIM_SEED", defaults.seed),
    )
    return settings.validate()
