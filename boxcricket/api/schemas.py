"""
Pydantic schemas for API request/response models

Range and rule checks are left to the scoring engine so that every rejected
scoring input comes back as the same 400 error shape.
"""
from pydantic import BaseModel
from typing import Optional


# Match setup
class PlayerIn(BaseModel):
    id: str  # registered user id or guest id
    name: str
    is_guest: bool = False
    is_captain: bool = False


class TeamIn(BaseModel):
    name: str
    players: list[PlayerIn]


class MatchCreateRequest(BaseModel):
    team_a: TeamIn
    team_b: TeamIn
    overs: Optional[int] = None  # server default when omitted
    players_per_team: Optional[int] = None
    wide_runs: int = 1
    no_ball_runs: int = 1
    free_hit_enabled: bool = True
    umpire_ref: Optional[str] = None


class SettingsUpdateRequest(BaseModel):
    overs: Optional[int] = None
    players_per_team: Optional[int] = None
    wide_runs: Optional[int] = None
    no_ball_runs: Optional[int] = None
    free_hit_enabled: Optional[bool] = None


class TossRequest(BaseModel):
    winner: str  # team_a or team_b
    decision: str  # bat or bowl


# Crease
class BatsmenRequest(BaseModel):
    striker_id: str
    non_striker_id: str


class NewBatsmanRequest(BaseModel):
    batsman_id: str


class BowlerRequest(BaseModel):
    bowler_id: str


# Deliveries
class WicketRequest(BaseModel):
    dismissal_type: Optional[str] = None
    batsman_out_id: Optional[str] = None  # defaults to the striker
    fielder_id: Optional[str] = None


class BallRecordRequest(BaseModel):
    outcome: str  # dot, 1, 2, 3, 4, 6, wide, no_ball, bye, leg_bye, wicket
    runs: int = 0
    wicket: Optional[WicketRequest] = None
    commentary: Optional[str] = None


class EndMatchRequest(BaseModel):
    reason: Optional[str] = None
    cancelled: bool = False


# Live score
class ScoreBrief(BaseModel):
    batting_team: str
    bowling_team: str
    runs: int
    wickets: int
    overs: str
    run_rate: float
    target: Optional[int] = None
    required_run_rate: Optional[float] = None
    extras: int = 0


class BatterBrief(BaseModel):
    id: str
    name: str
    runs: int = 0
    balls: int = 0
    fours: int = 0
    sixes: int = 0
    strike_rate: float = 0.0
    is_out: bool = False


class BowlerBrief(BaseModel):
    id: str
    name: str
    overs: str = "0.0"
    runs: int = 0
    wickets: int = 0
    wides: int = 0
    no_balls: int = 0
    economy: float = 0.0


class BatsmenPair(BaseModel):
    striker: Optional[BatterBrief] = None
    non_striker: Optional[BatterBrief] = None


class TossResponse(BaseModel):
    winner: str
    decision: str
    conducted_at: str


class ResultResponse(BaseModel):
    result_type: str
    winner: Optional[str] = None
    win_margin: dict
    result_text: str


class LiveScoreResponse(BaseModel):
    match_id: int
    match_status: str
    toss: Optional[TossResponse] = None
    current_innings: Optional[str] = None
    score: Optional[ScoreBrief] = None
    batsmen: Optional[BatsmenPair] = None
    bowler: Optional[BowlerBrief] = None
    this_over: list[str] = []
    last_ball: Optional[dict] = None
    free_hit: bool = False
    result: Optional[ResultResponse] = None


class BallRecordResponse(BaseModel):
    ball: dict
    over_completed: bool
    innings_completed: bool
    live: LiveScoreResponse


class UndoResponse(BaseModel):
    ball: dict
    innings_reopened: bool
    live: LiveScoreResponse


class NewBatsmanResponse(BaseModel):
    slot: str  # striker or non_striker
    live: LiveScoreResponse


class SecondInningsResponse(BaseModel):
    target: int
    live: LiveScoreResponse


class EndMatchResponse(BaseModel):
    status: str
    result: ResultResponse


# Listing
class MatchListItem(BaseModel):
    id: int
    status: str
    team_a: str
    team_b: str
    overs: int
    players_per_team: int
    current_innings: Optional[str] = None
    result_text: Optional[str] = None
    created_at: Optional[str] = None


class MatchListResponse(BaseModel):
    matches: list[MatchListItem]
    total: int
