"""
Monte Carlo simulation engine for playoff probability calculations.

Each trial replays every unplayed game in week order, moving team ratings
after each game, then seeds each conference with the tiebreaker procedure.
Counts are summed across trials and divided by the trial count.
"""

import logging
import os
import random
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from functools import reduce
from typing import Callable, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from ..core.config import SimulationSettings, get_settings
from ..core.exceptions import ConfigurationError, MissingRatingError, SimulationCancelledError
from .models import Team, Game, SeasonStats, SimulationResult, TiebreakKind, GameResults, TIE
from .ratings import win_probability, update_after_win, update_after_tie
from .schedule_strength import compute_schedule_strength
from .tiebreakers import resolve_tiebreak


logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 100


class PlannedGame(NamedTuple):
    """An unplayed game with everything the hot loop needs resolved up front."""
    game_id: str
    slot: int  # position in SeasonPlan.remaining_games
    home_id: str
    away_id: str
    home_idx: int
    away_idx: int
    same_conference: bool
    same_division: bool
    market_odds: Optional[float]
    forced: Optional[str]


@dataclass
class ConferenceSeeding:
    """Playoff field for one conference in one trial."""

    conference: str
    division_winners: List[Team]  # seeded order
    wildcards: List[Team]

    @property
    def first_seed(self) -> Optional[Team]:
        return self.division_winners[0] if self.division_winners else None

    @property
    def playoff_teams(self) -> List[Team]:
        return self.division_winners + self.wildcards


def _validate_trial_count(trial_count: int) -> None:
    if isinstance(trial_count, bool) or not isinstance(trial_count, int) or trial_count <= 0:
        raise ConfigurationError(f"trial_count must be a positive integer, got {trial_count!r}")


class SeasonPlan:
    """
    Season data that stays fixed across trials.

    Built once per run; validates every input so configuration problems
    surface before the first trial.
    """

    def __init__(
        self,
        teams: Sequence[Team],
        all_games: Sequence[Game],
        market_odds_by_game: Mapping[str, float],
        seed_ratings_by_team: Mapping[str, float],
        forced_outcomes_by_game: Optional[Mapping[str, str]],
        settings: SimulationSettings
    ):
        if not teams:
            raise ConfigurationError("At least one team is required")

        self.settings = settings
        self.teams = list(teams)
        self.team_index: Dict[str, int] = {}
        for idx, team in enumerate(self.teams):
            if team.id in self.team_index:
                raise ConfigurationError(f"Duplicate team id: {team.id}")
            self.team_index[team.id] = idx

        for team in self.teams:
            if team.id not in seed_ratings_by_team:
                raise MissingRatingError(team.name, team.id)
        self.base_ratings = [float(seed_ratings_by_team[t.id]) for t in self.teams]

        self.divisions_by_conference = self._partition()

        forced_outcomes_by_game = forced_outcomes_by_game or {}
        for game_id, prob in market_odds_by_game.items():
            if not 0.0 <= prob <= 1.0:
                raise ConfigurationError(f"Market odds for game {game_id} must be in [0, 1], got {prob}")

        self.schedule_by_team: Dict[str, List[str]] = {t.id: [] for t in self.teams}
        self.games_by_team: Dict[str, List[Game]] = {t.id: [] for t in self.teams}
        self.initial_wins_against: Dict[str, List[str]] = {t.id: [] for t in self.teams}
        self.finished_results: GameResults = {}
        self.stats_template = [SeasonStats.from_team(t) for t in self.teams]

        remaining: List[Game] = []
        for game in all_games:
            for team_id in (game.home_team_id, game.away_team_id):
                if team_id not in self.team_index:
                    raise ConfigurationError(f"Game {game.id} references unknown team {team_id}")

            self.schedule_by_team[game.home_team_id].append(game.away_team_id)
            self.schedule_by_team[game.away_team_id].append(game.home_team_id)
            self.games_by_team[game.home_team_id].append(game)
            self.games_by_team[game.away_team_id].append(game)

            if not game.is_finished:
                remaining.append(game)
            elif game.winner_id:
                self._record_finished(game)

        # Stable sort: games within a week keep their input order
        self.remaining_games = sorted(remaining, key=lambda g: g.week)
        self.planned = [
            self._plan_game(slot, game, market_odds_by_game, forced_outcomes_by_game)
            for slot, game in enumerate(self.remaining_games)
        ]

        remaining_ids = {g.id for g in self.remaining_games}
        stray = sorted(gid for gid in forced_outcomes_by_game if gid not in remaining_ids)
        if stray:
            raise ConfigurationError(
                f"Forced outcomes name games that are not left to play: {', '.join(stray)}"
            )

    @property
    def team_count(self) -> int:
        return len(self.teams)

    def _partition(self) -> Dict[str, List[List[Team]]]:
        """Group teams by conference, then by division (configured order)."""
        settings = self.settings
        by_conference: Dict[str, Dict[str, List[Team]]] = {
            conf: {div: [] for div in settings.divisions} for conf in settings.conferences
        }
        for team in self.teams:
            if team.conference not in by_conference:
                raise ConfigurationError(
                    f"Team {team.id} has unknown conference {team.conference!r}; "
                    f"expected one of {list(settings.conferences)}"
                )
            divisions = by_conference[team.conference]
            if team.division not in divisions:
                raise ConfigurationError(
                    f"Team {team.id} has unknown division {team.division!r}; "
                    f"expected one of {list(settings.divisions)}"
                )
            divisions[team.division].append(team)

        partition = {}
        for conf, divisions in by_conference.items():
            groups = [teams for teams in divisions.values() if teams]
            if not groups:
                raise ConfigurationError(f"Conference {conf} has no teams")
            partition[conf] = groups
        return partition

    def _record_finished(self, game: Game) -> None:
        home_id, away_id = game.home_team_id, game.away_team_id
        if game.winner_id not in (home_id, away_id, TIE):
            raise ConfigurationError(
                f"Game {game.id} winner {game.winner_id!r} is neither team nor {TIE}"
            )
        self.finished_results[game.id] = game.winner_id

        if game.winner_id == home_id:
            self.initial_wins_against[home_id].append(away_id)
        elif game.winner_id == away_id:
            self.initial_wins_against[away_id].append(home_id)

    def _plan_game(
        self,
        slot: int,
        game: Game,
        market_odds_by_game: Mapping[str, float],
        forced_outcomes_by_game: Mapping[str, str]
    ) -> PlannedGame:
        home = self.teams[self.team_index[game.home_team_id]]
        away = self.teams[self.team_index[game.away_team_id]]

        forced = forced_outcomes_by_game.get(game.id)
        if forced is not None and forced not in (home.id, away.id, TIE):
            raise ConfigurationError(
                f"Forced outcome for game {game.id} must be {home.id}, {away.id} or {TIE}, got {forced!r}"
            )

        same_conference = home.conference == away.conference
        return PlannedGame(
            game_id=game.id,
            slot=slot,
            home_id=home.id,
            away_id=away.id,
            home_idx=self.team_index[home.id],
            away_idx=self.team_index[away.id],
            same_conference=same_conference,
            same_division=same_conference and home.division == away.division,
            market_odds=market_odds_by_game.get(game.id),
            forced=forced
        )


@dataclass
class SimulationTally:
    """Outcome counters for a batch of trials, indexed by team / remaining game slot."""

    made_playoffs: List[int]
    won_division: List[int]
    made_wildcard: List[int]
    won_first_seed: List[int]
    home_wins: List[int]
    trials: int = 0

    @classmethod
    def empty(cls, team_count: int, game_count: int) -> 'SimulationTally':
        return cls(
            made_playoffs=[0] * team_count,
            won_division=[0] * team_count,
            made_wildcard=[0] * team_count,
            won_first_seed=[0] * team_count,
            home_wins=[0] * game_count
        )

    def record(self, seedings: Sequence[ConferenceSeeding], team_index: Mapping[str, int]) -> None:
        """Count one trial's playoff field."""
        for seeding in seedings:
            for team in seeding.division_winners:
                idx = team_index[team.id]
                self.made_playoffs[idx] += 1
                self.won_division[idx] += 1
            for team in seeding.wildcards:
                idx = team_index[team.id]
                self.made_playoffs[idx] += 1
                self.made_wildcard[idx] += 1
            if seeding.first_seed is not None:
                self.won_first_seed[team_index[seeding.first_seed.id]] += 1
        self.trials += 1

    def merge(self, other: 'SimulationTally') -> 'SimulationTally':
        """Sum two tallies into a new one."""
        def _add(a: List[int], b: List[int]) -> List[int]:
            return [x + y for x, y in zip(a, b)]

        return SimulationTally(
            made_playoffs=_add(self.made_playoffs, other.made_playoffs),
            won_division=_add(self.won_division, other.won_division),
            made_wildcard=_add(self.made_wildcard, other.made_wildcard),
            won_first_seed=_add(self.won_first_seed, other.won_first_seed),
            home_wins=_add(self.home_wins, other.home_wins),
            trials=self.trials + other.trials
        )

    def to_results(self, plan: SeasonPlan) -> Tuple[List[SimulationResult], Dict[str, float]]:
        """Convert counts into per-team results and per-game simulated home win odds."""
        team_results = [
            SimulationResult(
                team_id=team.id,
                team_name=team.name,
                made_playoffs=self.made_playoffs[idx],
                won_division=self.won_division[idx],
                made_wildcard=self.made_wildcard[idx],
                won_first_seed=self.won_first_seed[idx],
                total_simulations=self.trials
            )
            for idx, team in enumerate(plan.teams)
        ]
        team_results.sort(key=lambda r: r.playoff_prob, reverse=True)

        simulated_odds = {
            game.id: (self.home_wins[slot] / self.trials if self.trials else 0.0)
            for slot, game in enumerate(plan.remaining_games)
        }
        return team_results, simulated_odds


def determine_playoffs(
    divisions_by_conference: Mapping[str, Sequence[Sequence[Team]]],
    stats: Dict[str, SeasonStats],
    results: GameResults,
    opponents_by_team: Dict[str, List[str]],
    games_by_team: Dict[str, List[Game]],
    settings: SimulationSettings,
    rng: random.Random
) -> List[ConferenceSeeding]:
    """
    Determine each conference's playoff field from final standings.

    Args:
        divisions_by_conference: conference -> list of division team lists
        stats: Final records with SOV/SOS computed
        results: game_id -> winner id or TIE for every decided game
        opponents_by_team: team_id -> opponent ids (one per game)
        games_by_team: team_id -> games involving the team
        settings: League settings (wild card berths per conference)
        rng: Random source for coin tosses

    Returns:
        One ConferenceSeeding per conference
    """
    seedings = []
    for conference, divisions in divisions_by_conference.items():
        winners: List[Team] = []
        wildcard_pool: List[Team] = []

        for div_teams in divisions:
            ranked = resolve_tiebreak(
                div_teams, stats, (), results, TiebreakKind.DIVISION,
                opponents_by_team, games_by_team, rng
            )
            if ranked:
                winners.append(ranked[0])
                wildcard_pool.extend(ranked[1:])

        seeded_winners = resolve_tiebreak(
            winners, stats, (), results, TiebreakKind.WILDCARD,
            opponents_by_team, games_by_team, rng
        )
        seeded_wildcards = resolve_tiebreak(
            wildcard_pool, stats, (), results, TiebreakKind.WILDCARD,
            opponents_by_team, games_by_team, rng
        )

        seedings.append(ConferenceSeeding(
            conference=conference,
            division_winners=seeded_winners,
            wildcards=seeded_wildcards[:settings.wildcard_spots]
        ))

    return seedings


def _simulate_trial(plan: SeasonPlan, rng: random.Random, tally: SimulationTally) -> None:
    """Replay the rest of the season once and add the outcome to ``tally``."""
    settings = plan.settings
    tie_prob = settings.tie_probability

    stats = [s.clone() for s in plan.stats_template]
    ratings = list(plan.base_ratings)
    wins_against = {tid: list(opps) for tid, opps in plan.initial_wins_against.items()}
    results = dict(plan.finished_results)

    for pg in plan.planned:
        home_rating = ratings[pg.home_idx]
        away_rating = ratings[pg.away_idx]

        if pg.forced is not None:
            is_tie = pg.forced == TIE
            home_wins = pg.forced == pg.home_id
        else:
            if pg.market_odds is not None:
                win_prob = pg.market_odds
            else:
                win_prob = win_probability(home_rating, away_rating, True, settings)

            draw = rng.random()
            if draw < tie_prob:
                is_tie = True
                home_wins = False
            else:
                # Rescale the rest of the draw to [0, 1)
                is_tie = False
                home_wins = (draw - tie_prob) / (1.0 - tie_prob) < win_prob

        home_stats = stats[pg.home_idx]
        away_stats = stats[pg.away_idx]

        if is_tie:
            results[pg.game_id] = TIE
            home_stats.record_game("T", pg.same_conference, pg.same_division)
            away_stats.record_game("T", pg.same_conference, pg.same_division)
            ratings[pg.home_idx], ratings[pg.away_idx] = update_after_tie(
                home_rating, away_rating, True, settings
            )
        elif home_wins:
            results[pg.game_id] = pg.home_id
            home_stats.record_game("W", pg.same_conference, pg.same_division)
            away_stats.record_game("L", pg.same_conference, pg.same_division)
            wins_against[pg.home_id].append(pg.away_id)
            ratings[pg.home_idx], ratings[pg.away_idx] = update_after_win(
                home_rating, away_rating, True, settings
            )
            tally.home_wins[pg.slot] += 1
        else:
            results[pg.game_id] = pg.away_id
            away_stats.record_game("W", pg.same_conference, pg.same_division)
            home_stats.record_game("L", pg.same_conference, pg.same_division)
            wins_against[pg.away_id].append(pg.home_id)
            ratings[pg.away_idx], ratings[pg.home_idx] = update_after_win(
                away_rating, home_rating, False, settings
            )

    stats_by_id = {team.id: stats[idx] for idx, team in enumerate(plan.teams)}
    compute_schedule_strength(
        stats_by_id, plan.schedule_by_team, wins_against, plan.team_index, plan.team_count
    )

    seedings = determine_playoffs(
        plan.divisions_by_conference,
        stats_by_id,
        results,
        plan.schedule_by_team,
        plan.games_by_team,
        settings,
        rng
    )
    tally.record(seedings, plan.team_index)


def _run_trials(
    plan: SeasonPlan,
    trial_count: int,
    rng: random.Random,
    progress_callback: Optional[Callable[[float], None]] = None,
    should_cancel: Optional[Callable[[], bool]] = None
) -> SimulationTally:
    tally = SimulationTally.empty(plan.team_count, len(plan.remaining_games))

    for trial in range(trial_count):
        # Report progress periodically
        if progress_callback and trial % PROGRESS_INTERVAL == 0:
            progress_callback(trial / trial_count * 100)

        _simulate_trial(plan, rng, tally)

        if should_cancel is not None and should_cancel():
            logger.info("Simulation cancelled after %d/%d trials", trial + 1, trial_count)
            raise SimulationCancelledError(trial + 1)

    if progress_callback:
        progress_callback(100)

    return tally


def run_simulation(
    teams: Sequence[Team],
    all_games: Sequence[Game],
    trial_count: int,
    market_odds_by_game: Mapping[str, float],
    seed_ratings_by_team: Mapping[str, float],
    forced_outcomes_by_game: Optional[Mapping[str, str]] = None,
    *,
    settings: Optional[SimulationSettings] = None,
    rng: Optional[random.Random] = None,
    progress_callback: Optional[Callable[[float], None]] = None,
    should_cancel: Optional[Callable[[], bool]] = None
) -> Tuple[List[SimulationResult], Dict[str, float]]:
    """
    Run a Monte Carlo simulation of the remaining season.

    Args:
        teams: Current standings
        all_games: Full schedule, played and unplayed
        trial_count: Number of trials
        market_odds_by_game: game_id -> home win probability from markets
        seed_ratings_by_team: team_id -> starting rating (required for every team)
        forced_outcomes_by_game: game_id -> winner id or TIE, honored in every trial
        settings: Model and league settings (defaults to get_settings())
        rng: Random source (defaults to random.Random(settings.seed))
        progress_callback: Receives percent complete every 100 trials and at the end
        should_cancel: Checked after each trial; returning True abandons the run

    Returns:
        Tuple of (results per team sorted by playoff probability, game_id -> simulated home win odds)

    Raises:
        ConfigurationError: If inputs are unusable (checked before any trial)
        MissingRatingError: If a team has no seed rating
        SimulationCancelledError: If should_cancel returned True
    """
    settings = (settings or get_settings()).validate()
    _validate_trial_count(trial_count)
    plan = SeasonPlan(
        teams, all_games, market_odds_by_game, seed_ratings_by_team,
        forced_outcomes_by_game, settings
    )
    if rng is None:
        rng = random.Random(settings.seed)

    logger.info(
        "Simulating %d remaining games for %d teams, %d trials",
        len(plan.remaining_games), plan.team_count, trial_count
    )
    tally = _run_trials(plan, trial_count, rng, progress_callback, should_cancel)
    logger.info("Simulation complete: %d trials", tally.trials)

    return tally.to_results(plan)


def _run_shard(job: tuple) -> SimulationTally:
    """Worker entry point; rebuilds the plan in the worker process."""
    teams, all_games, trials, market_odds, seed_ratings, forced, settings, shard_seed = job
    plan = SeasonPlan(teams, all_games, market_odds, seed_ratings, forced, settings)
    return _run_trials(plan, trials, random.Random(shard_seed))


def run_simulation_parallel(
    teams: Sequence[Team],
    all_games: Sequence[Game],
    trial_count: int,
    market_odds_by_game: Mapping[str, float],
    seed_ratings_by_team: Mapping[str, float],
    forced_outcomes_by_game: Optional[Mapping[str, str]] = None,
    *,
    shards: Optional[int] = None,
    seed: Optional[int] = None,
    settings: Optional[SimulationSettings] = None
) -> Tuple[List[SimulationResult], Dict[str, float]]:
    """
    Run the simulation split across worker processes.

    Each shard owns its own random stream (seed + shard index, or OS entropy
    when seed is None) and its own counters; counters are summed at the end.

    Returns:
        Same shape as run_simulation
    """
    settings = (settings or get_settings()).validate()
    _validate_trial_count(trial_count)
    # Fail fast in the parent before spawning workers
    plan = SeasonPlan(
        teams, all_games, market_odds_by_game, seed_ratings_by_team,
        forced_outcomes_by_game, settings
    )

    shards = max(1, min(shards or os.cpu_count() or 1, trial_count))
    base, extra = divmod(trial_count, shards)
    jobs = [
        (
            list(teams), list(all_games), base + (1 if i < extra else 0),
            dict(market_odds_by_game), dict(seed_ratings_by_team),
            dict(forced_outcomes_by_game or {}), settings,
            None if seed is None else seed + i
        )
        for i in range(shards)
    ]

    logger.info("Simulating %d trials across %d shards", trial_count, shards)
    with ProcessPoolExecutor(max_workers=shards) as executor:
        tallies = list(executor.map(_run_shard, jobs))

    total = reduce(lambda a, b: a.merge(b), tallies)
    return total.to_results(plan)
