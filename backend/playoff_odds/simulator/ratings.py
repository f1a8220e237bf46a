"""
Skill ratings (Elo-style) for game win probabilities.

Ratings are seeded from market-implied expected wins:
rating = base + (expected_wins - season_games / 2) * rating_per_win.
Win probability is logistic in the rating difference with a home-field
offset, and ratings move after every game by k * (actual - expected).
"""

import math
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from ..core.config import SimulationSettings
from ..core.exceptions import MissingRatingError
from .models import Game, Team


DEFAULT_SETTINGS = SimulationSettings()

# Assumed P(wins > 0) when no market exists for that threshold
ZERO_WIN_MARKET_DEFAULT = 0.99


def rating_diff_to_win_prob(diff: float, scale: float = 400.0) -> float:
    """P(win) for a rating advantage of ``diff`` points."""
    return 1.0 / (1.0 + 10 ** (-diff / scale))


def win_prob_to_rating_diff(prob: float, scale: float = 400.0) -> float:
    """Rating advantage implied by a win probability (clamped to [0.01, 0.99])."""
    p = max(0.01, min(0.99, prob))
    return -scale * math.log10(1.0 / p - 1.0)


def win_probability(
    team_rating: float,
    opponent_rating: float,
    is_home: bool,
    settings: SimulationSettings = DEFAULT_SETTINGS
) -> float:
    """
    Probability that a team beats an opponent.

    Args:
        team_rating: Rating of the team
        opponent_rating: Rating of the opponent
        is_home: Whether the team is at home
        settings: Model constants

    Returns:
        Win probability, clamped to the configured floor/ceiling
    """
    hfa = settings.home_field_advantage if is_home else -settings.home_field_advantage
    prob = rating_diff_to_win_prob(team_rating - opponent_rating + hfa, settings.rating_scale)
    return max(settings.probability_floor, min(settings.probability_ceiling, prob))


def update_after_win(
    winner_rating: float,
    loser_rating: float,
    winner_was_home: bool,
    settings: SimulationSettings = DEFAULT_SETTINGS
) -> Tuple[float, float]:
    """New (winner, loser) ratings after a decisive game."""
    expected = win_probability(winner_rating, loser_rating, winner_was_home, settings)
    change = settings.k_factor * (1.0 - expected)
    return winner_rating + change, loser_rating - change


def update_after_tie(
    team1_rating: float,
    team2_rating: float,
    team1_was_home: bool,
    settings: SimulationSettings = DEFAULT_SETTINGS
) -> Tuple[float, float]:
    """New (team1, team2) ratings after a tie; both move toward each other."""
    expected = win_probability(team1_rating, team2_rating, team1_was_home, settings)
    change = settings.k_factor * (0.5 - expected)
    return team1_rating + change, team2_rating - change


def wins_to_rating(expected_wins: float, settings: SimulationSettings = DEFAULT_SETTINGS) -> float:
    return settings.base_rating + (expected_wins - settings.season_games / 2) * settings.rating_per_win


def rating_to_wins(rating: float, settings: SimulationSettings = DEFAULT_SETTINGS) -> float:
    return settings.season_games / 2 + (rating - settings.base_rating) / settings.rating_per_win


def expected_wins_from_thresholds(
    thresholds: Mapping[int, float],
    season_games: int = DEFAULT_SETTINGS.season_games
) -> float:
    """
    Expected wins from "more than k wins" market probabilities.

    Uses the tail sum E[X] = sum of P(X > k) for k = 0 .. season_games - 1.
    A missing k=0 market counts as ZERO_WIN_MARKET_DEFAULT; any other missing
    threshold contributes nothing, which slightly underestimates.

    Args:
        thresholds: k -> P(wins > k)
        season_games: Regular season length

    Returns:
        Expected wins
    """
    expected = 0.0
    for k in range(season_games):
        if k in thresholds:
            expected += thresholds[k]
        elif k == 0:
            expected += ZERO_WIN_MARKET_DEFAULT
    return expected


def seed_ratings_from_expected_wins(
    teams: Iterable[Team],
    expected_wins: Mapping[str, float],
    settings: SimulationSettings = DEFAULT_SETTINGS
) -> Dict[str, float]:
    """
    Seed ratings keyed by team id.

    ``expected_wins`` may be keyed by team name or team id.

    Raises:
        MissingRatingError: If any team has no expected-wins value
    """
    ratings = {}
    for team in teams:
        wins = expected_wins.get(team.name)
        if wins is None:
            wins = expected_wins.get(team.id)
        if wins is None:
            raise MissingRatingError(team.name, team.id)
        ratings[team.id] = wins_to_rating(wins, settings)
    return ratings


def fallback_odds(
    games: Sequence[Game],
    teams: Sequence[Team],
    market_odds: Mapping[str, float],
    settings: SimulationSettings = DEFAULT_SETTINGS
) -> Dict[str, float]:
    """
    Display-only home win probabilities for unfinished games without market odds.

    Ratings here come from each team's current record, not from seeds. The
    simulator itself ignores these so that rating-based games stay path
    dependent within a trial.

    Returns:
        game_id -> home win probability, only for games that lacked market odds
    """
    record_ratings: Dict[str, float] = {}
    for team in teams:
        played = team.wins + team.losses + team.ties
        pct = team.win_pct if played > 0 else 0.5
        record_ratings[team.id] = wins_to_rating(pct * settings.season_games, settings)

    odds = {}
    for game in games:
        if game.is_finished or game.id in market_odds:
            continue
        home: Optional[float] = record_ratings.get(game.home_team_id)
        away: Optional[float] = record_ratings.get(game.away_team_id)
        if home is None or away is None:
            continue
        odds[game.id] = win_probability(home, away, True, settings)
    return odds
