"""
Strength of Schedule (SOS) and Strength of Victory (SOV).

Both are combined winning percentages: the opponents' wins (ties as half)
summed over every game played against them, divided by the opponents' total
games summed the same way. Opponents are counted once per game, so a team
met twice contributes twice.
"""

from typing import Dict, List

from .models import SeasonStats


def compute_schedule_strength(
    stats: Dict[str, SeasonStats],
    schedule_by_team: Dict[str, List[str]],
    wins_against_by_team: Dict[str, List[str]],
    team_index: Dict[str, int],
    team_count: int
) -> None:
    """
    Compute SOS and SOV for every team, writing them into ``stats`` in place.

    Args:
        stats: Final per-team records for this trial
        schedule_by_team: team_id -> opponent ids (one entry per game)
        wins_against_by_team: team_id -> defeated opponent ids (one entry per win)
        team_index: team_id -> dense index
        team_count: Number of indexed teams
    """
    opp_weighted_wins = [0.0] * team_count
    opp_totals = [0] * team_count

    for team_id, team_stats in stats.items():
        idx = team_index.get(team_id)
        if idx is None:
            continue
        opp_totals[idx] = team_stats.wins + team_stats.losses + team_stats.ties
        opp_weighted_wins[idx] = team_stats.wins + 0.5 * team_stats.ties

    def _combined(opponent_ids: List[str]) -> float:
        weighted = 0.0
        total = 0
        for opp_id in opponent_ids:
            opp_idx = team_index.get(opp_id)
            if opp_idx is None:
                continue
            weighted += opp_weighted_wins[opp_idx]
            total += opp_totals[opp_idx]
        return weighted / total if total > 0 else 0.0

    for team_id, team_stats in stats.items():
        team_stats.sos = _combined(schedule_by_team.get(team_id, []))
        team_stats.sov = _combined(wins_against_by_team.get(team_id, []))
