from dataclasses import dataclass, field, replace
from typing import Optional

from boxcricket.errors import ValidationError

OVERS_RANGE = (1, 50)
PLAYERS_PER_TEAM_RANGE = (2, 11)
WIDE_RUNS_RANGE = (1, 2)
NO_BALL_RUNS_RANGE = (1, 2)
TEAM_NAME_MAX = 30


def _check_range(name: str, value: int, bounds: tuple[int, int]) -> None:
    low, high = bounds
    if not isinstance(value, int) or isinstance(value, bool) or not low <= value <= high:
        raise ValidationError(f"{name} must be between {low} and {high}")


@dataclass(frozen=True)
class MatchSettings:
    """Playing conditions agreed before the toss"""
    overs: int = 6
    players_per_team: int = 6
    wide_runs: int = 1
    no_ball_runs: int = 1
    free_hit_enabled: bool = True

    def __post_init__(self):
        _check_range("overs", self.overs, OVERS_RANGE)
        _check_range("players_per_team", self.players_per_team, PLAYERS_PER_TEAM_RANGE)
        _check_range("wide_runs", self.wide_runs, WIDE_RUNS_RANGE)
        _check_range("no_ball_runs", self.no_ball_runs, NO_BALL_RUNS_RANGE)

    @property
    def max_wickets(self) -> int:
        return self.players_per_team - 1

    @property
    def total_balls(self) -> int:
        return self.overs * 6

    def with_changes(self, **changes) -> "MatchSettings":
        unknown = set(changes) - {"overs", "players_per_team", "wide_runs", "no_ball_runs", "free_hit_enabled"}
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")
        return replace(self, **changes)


@dataclass(frozen=True)
class PlayerRef:
    """Stable reference to a registered user or a guest"""
    id: str
    name: str
    is_guest: bool = False
    is_captain: bool = False


@dataclass
class TeamSheet:
    name: str
    players: list[PlayerRef] = field(default_factory=list)

    def get(self, player_id: Optional[str]) -> Optional[PlayerRef]:
        return next((p for p in self.players if p.id == player_id), None)

    def __contains__(self, player_id: str) -> bool:
        return self.get(player_id) is not None


def validate_rosters(team_a: TeamSheet, team_b: TeamSheet, settings: MatchSettings) -> None:
    """Both teams named, large enough, and no player on both sides"""
    for team in (team_a, team_b):
        if not team.name or not team.name.strip():
            raise ValidationError("Team name is required")
        if len(team.name) > TEAM_NAME_MAX:
            raise ValidationError(f"Team name cannot exceed {TEAM_NAME_MAX} characters")
        if len(team.players) < settings.players_per_team:
            raise ValidationError(
                f"{team.name} needs at least {settings.players_per_team} players, got {len(team.players)}"
            )
    ids = [p.id for p in team_a.players + team_b.players]
    if len(ids) != len(set(ids)):
        raise ValidationError("A player cannot appear twice in the same match")
