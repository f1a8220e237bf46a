"""
Tiebreaker resolution for division titles and wild card seeding.

Division order (teams within one division):
1. Head-to-head
2. Division record
3. Common games (min 4 games)
4. Conference record
5. Strength of victory
6. Strength of schedule
7. Coin toss

Wild card order (teams possibly from several divisions). Ties within a
division are broken first so only the top club of each division is compared:
1. Head-to-head
2. Conference record
3. Common games (min 4 games)
4. Strength of victory
5. Strength of schedule
6. Coin toss

Head-to-head for 3+ clubs only applies when one club beat each of the others
(it advances) or lost to each of the others (it is dropped).

Whenever a step drops at least one club, the procedure starts over from step
1 with the clubs that remain. Point-based steps are not implemented.
"""

import logging
import random
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Set, Union

from .models import (
    Team,
    Game,
    SeasonStats,
    TiebreakKind,
    GameResults,
    OpponentsMap,
    TIE,
    win_percentage,
)


logger = logging.getLogger(__name__)

EPSILON = 1e-9
MIN_COMMON_GAMES = 4

# Restarts are bounded by the pool size in practice; hitting this means a step is broken
MAX_ITERATIONS = 50


class H2HRecord(NamedTuple):
    """A team's record against a set of opponents."""
    wins: int
    losses: int
    ties: int
    opponents_played: frozenset

    @property
    def games(self) -> int:
        return self.wins + self.losses + self.ties

    @property
    def pct(self) -> float:
        return win_percentage(self.wins, self.losses, self.ties)


class StepResult(NamedTuple):
    """Outcome of one tiebreaker step."""
    survivors: List[Team]
    eliminated: bool


@dataclass(frozen=True)
class TiebreakContext:
    """Read-only inputs shared by every step of one resolution."""
    stats: Dict[str, SeasonStats]
    results: GameResults
    opponents_by_team: OpponentsMap
    games_by_team: Dict[str, List[Game]]
    rng: random.Random

    def stats_for(self, team: Team) -> SeasonStats:
        return self.stats.get(team.id) or SeasonStats()


Step = Callable[[List[Team], TiebreakContext], StepResult]


def build_games_by_team(games: Iterable[Game]) -> Dict[str, List[Game]]:
    """Index games by each participating team."""
    games_by_team: Dict[str, List[Game]] = {}
    for game in games:
        games_by_team.setdefault(game.home_team_id, []).append(game)
        games_by_team.setdefault(game.away_team_id, []).append(game)
    return games_by_team


def get_h2h_record(
    team_id: str,
    opponent_ids: Set[str],
    team_games: Sequence[Game],
    results: GameResults
) -> H2HRecord:
    """
    Record of ``team_id`` in decided games against any of ``opponent_ids``.

    Games without a result are ignored.
    """
    wins = losses = ties = 0
    played = set()

    for game in team_games:
        opp_id = game.opponent_of(team_id)
        if opp_id not in opponent_ids:
            continue

        winner_id = results.get(game.id)
        if not winner_id:
            continue

        played.add(opp_id)
        if winner_id == TIE:
            ties += 1
        elif winner_id == team_id:
            wins += 1
        else:
            losses += 1

    return H2HRecord(wins, losses, ties, frozenset(played))


# ============== Steps ==============

def _apply_best_metric(pool: List[Team], metric: Callable[[Team], float]) -> StepResult:
    """Keep only the teams within EPSILON of the best value."""
    if len(pool) <= 1:
        return StepResult(pool, False)

    scored = [(team, metric(team)) for team in pool]
    best_val = max(val for _, val in scored)
    best = [team for team, val in scored if abs(val - best_val) < EPSILON]

    return StepResult(best, len(best) < len(pool))


def _head_to_head(pool: List[Team], ctx: TiebreakContext) -> StepResult:
    if len(pool) <= 1:
        return StepResult(pool, False)

    ids = {t.id for t in pool}
    records = {
        t.id: get_h2h_record(t.id, ids - {t.id}, ctx.games_by_team.get(t.id, []), ctx.results)
        for t in pool
    }

    if len(pool) == 2:
        return _apply_best_metric(pool, lambda t: records[t.id].pct)

    # 3+ clubs: only a clean sweep (or clean sweep-out) counts
    others = len(pool) - 1

    sweepers = [
        t for t in pool
        if len(records[t.id].opponents_played) == others
        and records[t.id].losses == 0
        and records[t.id].ties == 0
        and records[t.id].wins > 0
    ]
    if len(sweepers) == 1:
        return StepResult(sweepers, True)

    swept = [
        t for t in pool
        if len(records[t.id].opponents_played) == others
        and records[t.id].wins == 0
        and records[t.id].ties == 0
        and records[t.id].losses > 0
    ]
    if swept and len(swept) < len(pool):
        swept_ids = {t.id for t in swept}
        return StepResult([t for t in pool if t.id not in swept_ids], True)

    return StepResult(pool, False)


def common_opponents(pool: Sequence[Team], opponents_by_team: OpponentsMap) -> Set[str]:
    """Opponents every team in ``pool`` has on its schedule, excluding the pool itself."""
    pool_ids = {t.id for t in pool}
    common: Optional[Set[str]] = None

    for team in pool:
        opps = {o for o in opponents_by_team.get(team.id, ()) if o not in pool_ids}
        common = opps if common is None else common & opps
        if not common:
            break

    return common or set()


def _common_games(pool: List[Team], ctx: TiebreakContext) -> StepResult:
    if len(pool) <= 1:
        return StepResult(pool, False)

    common = common_opponents(pool, ctx.opponents_by_team)
    if not common:
        return StepResult(pool, False)

    records = {
        t.id: get_h2h_record(t.id, common, ctx.games_by_team.get(t.id, []), ctx.results)
        for t in pool
    }

    # Minimum counts games, not distinct opponents
    if any(r.games < MIN_COMMON_GAMES for r in records.values()):
        return StepResult(pool, False)

    return _apply_best_metric(pool, lambda t: records[t.id].pct)


def _division_record(pool: List[Team], ctx: TiebreakContext) -> StepResult:
    return _apply_best_metric(pool, lambda t: ctx.stats_for(t).division_pct)


def _conference_record(pool: List[Team], ctx: TiebreakContext) -> StepResult:
    return _apply_best_metric(pool, lambda t: ctx.stats_for(t).conference_pct)


def _strength_of_victory(pool: List[Team], ctx: TiebreakContext) -> StepResult:
    return _apply_best_metric(pool, lambda t: ctx.stats_for(t).sov)


def _strength_of_schedule(pool: List[Team], ctx: TiebreakContext) -> StepResult:
    return _apply_best_metric(pool, lambda t: ctx.stats_for(t).sos)


TIEBREAKER_STEPS: Dict[TiebreakKind, Sequence[Step]] = {
    TiebreakKind.DIVISION: (
        _head_to_head,
        _division_record,
        _common_games,
        _conference_record,
        _strength_of_victory,
        _strength_of_schedule,
    ),
    TiebreakKind.WILDCARD: (
        _head_to_head,
        _conference_record,
        _common_games,
        _strength_of_victory,
        _strength_of_schedule,
    ),
}


def _coin_toss(pool: List[Team], rng: random.Random) -> Team:
    """Last resort: uniform random pick."""
    return pool[rng.randrange(len(pool))]


# ============== Resolution ==============

def _division_representatives(pool: List[Team], ctx: TiebreakContext) -> List[Team]:
    """Reduce a wild card pool to the best remaining team of each division."""
    by_division: Dict[str, List[Team]] = {}
    for team in pool:
        by_division.setdefault(team.division, []).append(team)

    representatives = []
    for div_teams in by_division.values():
        if len(div_teams) == 1:
            representatives.append(div_teams[0])
        else:
            representatives.append(
                find_tiebreaker_winner(div_teams, TiebreakKind.DIVISION, ctx)[0]
            )
    return representatives


def find_tiebreaker_winner(
    candidates: List[Team],
    kind: TiebreakKind,
    ctx: TiebreakContext
) -> List[Team]:
    """
    Pick the next team out of a tied pool.

    Args:
        candidates: Teams still tied
        kind: Division or wild card procedure
        ctx: Shared tiebreaker inputs

    Returns:
        A single-element list with the winning team (empty for an empty pool)
    """
    if not candidates:
        return []

    pool = list(candidates)

    if kind == TiebreakKind.WILDCARD:
        pool = _division_representatives(pool, ctx)

    if len(pool) == 1:
        return pool

    steps = TIEBREAKER_STEPS[kind]
    step_idx = 0
    iterations = 0

    while step_idx < len(steps) and iterations < MAX_ITERATIONS:
        iterations += 1
        survivors, eliminated = steps[step_idx](pool, ctx)

        if eliminated:
            pool = survivors
            if len(pool) == 1:
                return pool
            step_idx = 0
        else:
            step_idx += 1

    if step_idx < len(steps):
        logger.warning(
            "Tiebreaker hit iteration cap (%d) for %s pool %s",
            MAX_ITERATIONS, kind.value, [t.id for t in pool]
        )

    return [_coin_toss(pool, ctx.rng)]


def _resolve_tied_group(group: List[Team], kind: TiebreakKind, ctx: TiebreakContext) -> List[Team]:
    """Seat teams one at a time, re-running the procedure on whoever is left."""
    ranked: List[Team] = []
    remaining = list(group)

    while remaining:
        if len(remaining) == 1:
            ranked.append(remaining[0])
            break

        winners = find_tiebreaker_winner(remaining, kind, ctx)
        ranked.extend(winners)
        winner_ids = {w.id for w in winners}
        remaining = [t for t in remaining if t.id not in winner_ids]

    return ranked


def resolve_tiebreak(
    teams: Sequence[Team],
    stats: Dict[str, SeasonStats],
    games: Sequence[Game],
    results: GameResults,
    kind: Union[TiebreakKind, str],
    opponents_by_team: OpponentsMap,
    games_by_team: Optional[Dict[str, List[Game]]] = None,
    rng: Optional[random.Random] = None
) -> List[Team]:
    """
    Rank teams by win percentage, breaking ties with the league procedure.

    Args:
        teams: Teams to rank
        stats: team_id -> season record (with SOV/SOS already computed)
        games: All games; used to index games by team when ``games_by_team`` is None
        results: game_id -> winner id or TIE, for every decided game
        kind: "division" or "wildcard"
        opponents_by_team: team_id -> opponent ids (one entry per game)
        games_by_team: Optional prebuilt index of games per team
        rng: Random source for the coin toss

    Returns:
        Teams in ranked order (best first)
    """
    if not teams:
        return []

    kind = TiebreakKind(kind)
    if games_by_team is None:
        games_by_team = build_games_by_team(games)

    ctx = TiebreakContext(
        stats=stats,
        results=results,
        opponents_by_team=opponents_by_team,
        games_by_team=games_by_team,
        rng=rng if rng is not None else random.Random()
    )

    by_pct = sorted(teams, key=lambda t: ctx.stats_for(t).win_pct, reverse=True)

    ranked: List[Team] = []
    i = 0
    while i < len(by_pct):
        current_pct = ctx.stats_for(by_pct[i]).win_pct
        j = i + 1
        while j < len(by_pct) and abs(ctx.stats_for(by_pct[j]).win_pct - current_pct) < EPSILON:
            j += 1

        tied_group = by_pct[i:j]
        if len(tied_group) == 1:
            ranked.append(tied_group[0])
        else:
            ranked.extend(_resolve_tied_group(tied_group, kind, ctx))

        i = j

    return ranked
