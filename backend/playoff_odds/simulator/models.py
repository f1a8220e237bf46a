"""
Data models for the playoff simulator.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


# Result sentinel for a tied game (game winner, result maps and forced outcomes)
TIE = "TIE"


def win_percentage(wins: int, losses: int, ties: int) -> float:
    """Win percentage with ties counted as half a win; 0.0 when no games played."""
    total = wins + losses + ties
    if total == 0:
        return 0.0
    return (wins + 0.5 * ties) / total


class TiebreakKind(str, Enum):
    """Which tiebreaking procedure to apply."""
    DIVISION = "division"
    WILDCARD = "wildcard"


@dataclass
class Team:
    """Represents a team with its current record and league grouping."""

    id: str
    name: str
    conference: str
    division: str
    abbreviation: Optional[str] = None
    wins: int = 0
    losses: int = 0
    ties: int = 0
    division_wins: int = 0
    division_losses: int = 0
    division_ties: int = 0
    conference_wins: int = 0
    conference_losses: int = 0
    conference_ties: int = 0

    def __post_init__(self):
        if self.abbreviation is None:
            self.abbreviation = self.id

    @property
    def record_str(self) -> str:
        if self.ties:
            return f"{self.wins}-{self.losses}-{self.ties}"
        return f"{self.wins}-{self.losses}"

    @property
    def win_pct(self) -> float:
        return win_percentage(self.wins, self.losses, self.ties)


@dataclass
class Game:
    """A scheduled game, played or not."""

    id: str
    week: int
    home_team_id: str
    away_team_id: str
    is_finished: bool = False
    winner_id: Optional[str] = None  # team id, TIE, or None if unplayed

    def opponent_of(self, team_id: str) -> str:
        return self.away_team_id if team_id == self.home_team_id else self.home_team_id


@dataclass
class SeasonStats:
    """
    Mutable per-trial record for one team.

    Built from a template snapshot of real standings at the start of each
    trial, updated once per simulated game and discarded afterwards.
    """

    wins: int = 0
    losses: int = 0
    ties: int = 0
    div_wins: int = 0
    div_losses: int = 0
    div_ties: int = 0
    conf_wins: int = 0
    conf_losses: int = 0
    conf_ties: int = 0
    sov: float = 0.0
    sos: float = 0.0

    @classmethod
    def from_team(cls, team: Team) -> 'SeasonStats':
        return cls(
            wins=team.wins,
            losses=team.losses,
            ties=team.ties,
            div_wins=team.division_wins,
            div_losses=team.division_losses,
            div_ties=team.division_ties,
            conf_wins=team.conference_wins,
            conf_losses=team.conference_losses,
            conf_ties=team.conference_ties
        )

    @property
    def games(self) -> int:
        return self.wins + self.losses + self.ties

    @property
    def win_pct(self) -> float:
        return win_percentage(self.wins, self.losses, self.ties)

    @property
    def division_pct(self) -> float:
        return win_percentage(self.div_wins, self.div_losses, self.div_ties)

    @property
    def conference_pct(self) -> float:
        return win_percentage(self.conf_wins, self.conf_losses, self.conf_ties)

    def clone(self) -> 'SeasonStats':
        """Independent copy; SOV/SOS are reset since they are derived per trial."""
        return SeasonStats(
            wins=self.wins,
            losses=self.losses,
            ties=self.ties,
            div_wins=self.div_wins,
            div_losses=self.div_losses,
            div_ties=self.div_ties,
            conf_wins=self.conf_wins,
            conf_losses=self.conf_losses,
            conf_ties=self.conf_ties
        )

    def record_game(self, outcome: str, same_conference: bool, same_division: bool) -> None:
        """
        Apply one result ("W", "L" or "T") to the overall and scoped counters.

        Division counters are only touched for same-conference games.
        """
        if outcome == "W":
            self.wins += 1
            if same_conference:
                self.conf_wins += 1
                if same_division:
                    self.div_wins += 1
        elif outcome == "L":
            self.losses += 1
            if same_conference:
                self.conf_losses += 1
                if same_division:
                    self.div_losses += 1
        else:
            self.ties += 1
            if same_conference:
                self.conf_ties += 1
                if same_division:
                    self.div_ties += 1


@dataclass
class SimulationResult:
    """Aggregated Monte Carlo outcome counts for one team."""

    team_id: str
    team_name: str
    made_playoffs: int = 0
    won_division: int = 0
    made_wildcard: int = 0
    won_first_seed: int = 0
    total_simulations: int = 0

    def _prob(self, count: int) -> float:
        if self.total_simulations == 0:
            return 0.0
        return count / self.total_simulations

    @property
    def playoff_prob(self) -> float:
        return self._prob(self.made_playoffs)

    @property
    def division_prob(self) -> float:
        return self._prob(self.won_division)

    @property
    def wildcard_prob(self) -> float:
        return self._prob(self.made_wildcard)

    @property
    def first_seed_prob(self) -> float:
        return self._prob(self.won_first_seed)

    def to_dict(self) -> dict:
        return {
            "team_id": self.team_id,
            "team_name": self.team_name,
            "made_playoffs": self.made_playoffs,
            "won_division": self.won_division,
            "made_wildcard": self.made_wildcard,
            "won_first_seed": self.won_first_seed,
            "total_simulations": self.total_simulations,
            "playoff_prob": self.playoff_prob,
            "division_prob": self.division_prob,
            "wildcard_prob": self.wildcard_prob,
            "first_seed_prob": self.first_seed_prob
        }


# Type aliases
GameResults = Dict[str, str]  # game_id -> winner team id or TIE
OpponentsMap = Dict[str, List[str]]  # team_id -> opponent ids, one entry per game
