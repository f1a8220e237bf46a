"""
Pydantic schemas for API request/response validation.
"""

from datetime import datetime
from typing import Optional, List, Dict
from pydantic import BaseModel, Field

from ..simulator import Team, Game


# ============== Standings Schemas ==============

class TeamIn(BaseModel):
    """A team with its current record."""
    id: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=100)
    conference: str
    division: str
    abbreviation: Optional[str] = None
    wins: int = Field(default=0, ge=0)
    losses: int = Field(default=0, ge=0)
    ties: int = Field(default=0, ge=0)
    division_wins: int = Field(default=0, ge=0)
    division_losses: int = Field(default=0, ge=0)
    division_ties: int = Field(default=0, ge=0)
    conference_wins: int = Field(default=0, ge=0)
    conference_losses: int = Field(default=0, ge=0)
    conference_ties: int = Field(default=0, ge=0)

    def to_team(self) -> Team:
        return Team(**self.model_dump())


class GameIn(BaseModel):
    """A scheduled game; winner_id is a team id or "TIE" once finished."""
    id: str = Field(..., min_length=1, max_length=50)
    week: int = Field(..., ge=1)
    home_team_id: str
    away_team_id: str
    is_finished: bool = False
    winner_id: Optional[str] = None

    def to_game(self) -> Game:
        return Game(**self.model_dump())


class SeasonInput(BaseModel):
    """Everything a simulation needs, fully resolved."""
    teams: List[TeamIn] = Field(..., min_length=1)
    games: List[GameIn] = Field(default_factory=list)
    market_odds: Dict[str, float] = Field(default_factory=dict)  # game_id -> home win prob
    seed_ratings: Dict[str, float] = Field(default_factory=dict)  # team_id -> rating
    forced_outcomes: Dict[str, str] = Field(default_factory=dict)  # game_id -> team id or TIE
    seed: Optional[int] = None

    def to_domain(self):
        return [t.to_team() for t in self.teams], [g.to_game() for g in self.games]


# ============== Simulation Schemas ==============

class SimulationRunRequest(SeasonInput):
    """Start a simulation request."""
    n_simulations: Optional[int] = Field(default=None, ge=1)  # None = configured default, capped by max_trials


class SimulationTaskResponse(BaseModel):
    """Simulation task status response."""
    task_id: str
    status: str  # pending, running, completed, failed, cancelled
    progress: int  # 0-100
    error: Optional[str] = None


class TeamResult(BaseModel):
    """Simulation results for a single team."""
    id: str
    name: str
    conference: str
    division: str
    record: str
    win_pct: float
    playoff_pct: float
    division_pct: float
    wildcard_pct: float
    first_seed_pct: float


class SimulationResultsResponse(BaseModel):
    """Full simulation results response."""
    n_simulations: int
    teams: List[TeamResult]
    simulated_odds: Dict[str, float]  # game_id -> simulated home win rate
    fallback_odds: Dict[str, float] = Field(default_factory=dict)
    completed_at: Optional[datetime] = None


# ============== Calibration Schemas ==============

class CalibrationRequest(SeasonInput):
    """Fit seed ratings to target playoff probabilities."""
    target_playoff_probs: Dict[str, float] = Field(..., min_length=1)  # team id or name -> prob
    iterations: int = Field(default=10, ge=1, le=50)
    batch_trials: int = Field(default=1000, ge=1, le=100000)
    learning_rate: float = Field(default=500.0, gt=0)
    threshold: float = Field(default=0.02, ge=0, le=1)


class CalibrationResponse(BaseModel):
    """Calibrated ratings and final error."""
    ratings: Dict[str, float]
    rounds_run: int
    stopped_by_threshold: bool
    final_rmse: float
    final_mae: float
    final_max_diff: float
    threshold: float
    iterations: int

