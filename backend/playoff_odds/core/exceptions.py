"""
Exceptions raised by the simulator.
"""


class ConfigurationError(ValueError):
    """Raised when simulation inputs are unusable; detected before any trial runs."""
    pass


class MissingRatingError(ConfigurationError):
    """Raised when a team has no seed rating."""

    def __init__(self, team_name: str, team_id: str):
        self.team_name = team_name
        self.team_id = team_id
        super().__init__(f"Missing seed rating for team: {team_name} ({team_id})")


class SimulationCancelledError(Exception):
    """Raised when a caller abandons a simulation between trials."""

    def __init__(self, completed_trials: int):
        self.completed_trials = completed_trials
        super().__init__(f"Simulation cancelled after {completed_trials} trials")
