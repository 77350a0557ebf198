from typing import Optional, List
from sqlalchemy import String, Integer, ForeignKey, Enum, DateTime, Text, Float, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
import enum
from boxcricket.database import Base


class MatchStatus(enum.Enum):
    SCHEDULED = "scheduled"
    TOSS = "toss"
    IN_PROGRESS = "in_progress"
    INNINGS_BREAK = "innings_break"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    CANCELLED = "cancelled"


TERMINAL_MATCH_STATUSES = (MatchStatus.COMPLETED, MatchStatus.ABANDONED, MatchStatus.CANCELLED)


class InningsStatus(enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TeamSide(enum.Enum):
    TEAM_A = "team_a"
    TEAM_B = "team_b"

    @property
    def opponent(self) -> "TeamSide":
        return TeamSide.TEAM_B if self is TeamSide.TEAM_A else TeamSide.TEAM_A


class TossDecision(enum.Enum):
    BAT = "bat"
    BOWL = "bowl"


class BallOutcomeType(enum.Enum):
    DOT = "dot"
    ONE = "1"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    SIX = "6"
    WIDE = "wide"
    NO_BALL = "no_ball"
    BYE = "bye"
    LEG_BYE = "leg_bye"
    WICKET = "wicket"


class DismissalType(enum.Enum):
    BOWLED = "bowled"
    CAUGHT = "caught"
    CAUGHT_AND_BOWLED = "caught_and_bowled"
    RUN_OUT = "run_out"
    STUMPED = "stumped"
    LBW = "lbw"
    HIT_WICKET = "hit_wicket"
    RETIRED_HURT = "retired_hurt"
    OBSTRUCTING_FIELD = "obstructing_field"
    TIMED_OUT = "timed_out"
    HANDLED_BALL = "handled_ball"


class ResultType(enum.Enum):
    TEAM_A_WON = "team_a_won"
    TEAM_B_WON = "team_b_won"
    TIE = "tie"
    NO_RESULT = "no_result"
    ABANDONED = "abandoned"


class Match(Base):
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[MatchStatus] = mapped_column(Enum(MatchStatus), default=MatchStatus.SCHEDULED)

    # Settings (frozen once the toss is done)
    overs: Mapped[int] = mapped_column(Integer)
    players_per_team: Mapped[int] = mapped_column(Integer)
    wide_runs: Mapped[int] = mapped_column(Integer, default=1)
    no_ball_runs: Mapped[int] = mapped_column(Integer, default=1)
    free_hit_enabled: Mapped[bool] = mapped_column(default=True)

    # Teams
    team_a_name: Mapped[str] = mapped_column(String(30))
    team_b_name: Mapped[str] = mapped_column(String(30))
    players: Mapped[List["MatchPlayer"]] = relationship(
        "MatchPlayer", back_populates="match", cascade="all, delete-orphan",
        order_by="MatchPlayer.position",
    )

    # Officials
    umpire_ref: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    host_ref: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Toss
    toss_winner: Mapped[Optional[TeamSide]] = mapped_column(Enum(TeamSide), nullable=True)
    toss_decision: Mapped[Optional[TossDecision]] = mapped_column(Enum(TossDecision), nullable=True)
    toss_conducted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    current_innings: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)  # "first" or "second"

    # Result
    result_winner: Mapped[Optional[TeamSide]] = mapped_column(Enum(TeamSide), nullable=True)
    result_type: Mapped[Optional[ResultType]] = mapped_column(Enum(ResultType), nullable=True)
    win_margin_runs: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    win_margin_wickets: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    result_text: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    innings: Mapped[List["Innings"]] = relationship(
        "Innings", back_populates="match", cascade="all, delete-orphan",
        order_by="Innings.innings_number",
    )
    performances: Mapped[List["PlayerPerformance"]] = relationship(
        "PlayerPerformance", back_populates="match", cascade="all, delete-orphan",
        order_by="PlayerPerformance.id",
    )

    # Bumped by MatchStore.save; a stale version fails the UPDATE
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    def __repr__(self):
        return f"<Match {self.id}: {self.team_a_name} vs {self.team_b_name} ({self.status.value})>"


class MatchPlayer(Base):
    """A roster entry; registered users and guests share one reference space"""
    __tablename__ = "match_players"

    id: Mapped[int] = mapped_column(primary_key=True)
    match_id: Mapped[int] = mapped_column(ForeignKey("matches.id"))
    match: Mapped["Match"] = relationship("Match", back_populates="players")

    team: Mapped[TeamSide] = mapped_column(Enum(TeamSide))
    position: Mapped[int] = mapped_column(Integer)
    player_ref: Mapped[str] = mapped_column(String(64))
    name: Mapped[str] = mapped_column(String(50))
    is_guest: Mapped[bool] = mapped_column(default=False)
    is_captain: Mapped[bool] = mapped_column(default=False)

    __table_args__ = (
        UniqueConstraint("match_id", "player_ref", name="unique_match_player"),
    )

    def __repr__(self):
        return f"<MatchPlayer {self.name} ({self.team.value})>"


class Innings(Base):
    __tablename__ = "innings"

    id: Mapped[int] = mapped_column(primary_key=True)
    match_id: Mapped[int] = mapped_column(ForeignKey("matches.id"))
    match: Mapped["Match"] = relationship("Match", back_populates="innings")

    innings_number: Mapped[int] = mapped_column(Integer)  # 1 or 2
    batting_team: Mapped[TeamSide] = mapped_column(Enum(TeamSide))
    bowling_team: Mapped[TeamSide] = mapped_column(Enum(TeamSide))
    status: Mapped[InningsStatus] = mapped_column(Enum(InningsStatus), default=InningsStatus.NOT_STARTED)

    # Score
    total_runs: Mapped[int] = mapped_column(Integer, default=0)
    total_wickets: Mapped[int] = mapped_column(Integer, default=0)
    total_overs: Mapped[int] = mapped_column(Integer, default=0)
    total_balls: Mapped[int] = mapped_column(Integer, default=0)

    # Extras
    wides: Mapped[int] = mapped_column(Integer, default=0)
    no_balls: Mapped[int] = mapped_column(Integer, default=0)
    byes: Mapped[int] = mapped_column(Integer, default=0)
    leg_byes: Mapped[int] = mapped_column(Integer, default=0)

    # Cursor and crease
    current_over: Mapped[int] = mapped_column(Integer, default=0)
    current_ball: Mapped[int] = mapped_column(Integer, default=0)
    striker_ref: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    non_striker_ref: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    bowler_ref: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    run_rate: Mapped[float] = mapped_column(Float, default=0.0)
    target: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Ball by ball
    ball_events: Mapped[List["BallEvent"]] = relationship(
        "BallEvent", back_populates="innings", cascade="all, delete-orphan",
        order_by="BallEvent.sequence",
    )
    fall_of_wickets: Mapped[List["FallOfWicket"]] = relationship(
        "FallOfWicket", back_populates="innings", cascade="all, delete-orphan",
        order_by="FallOfWicket.wicket_number",
    )

    @property
    def overs_display(self) -> str:
        return f"{self.total_overs}.{self.current_ball}"

    def __repr__(self):
        return f"<Innings {self.innings_number}: {self.total_runs}/{self.total_wickets} ({self.overs_display})>"


class BallEvent(Base):
    __tablename__ = "ball_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    innings_id: Mapped[int] = mapped_column(ForeignKey("innings.id"))
    innings: Mapped["Innings"] = relationship("Innings", back_populates="ball_events")

    sequence: Mapped[int] = mapped_column(Integer)  # 0-based position in the ledger
    over_number: Mapped[int] = mapped_column(Integer)
    ball_number: Mapped[int] = mapped_column(Integer)

    # Players involved
    bowler_ref: Mapped[str] = mapped_column(String(64))
    batsman_ref: Mapped[str] = mapped_column(String(64))
    non_striker_ref: Mapped[str] = mapped_column(String(64))

    # Outcome
    outcome: Mapped[BallOutcomeType] = mapped_column(Enum(BallOutcomeType))
    batsman_runs: Mapped[int] = mapped_column(Integer, default=0)
    extra_runs: Mapped[int] = mapped_column(Integer, default=0)
    total_runs: Mapped[int] = mapped_column(Integer, default=0)
    is_legal_delivery: Mapped[bool] = mapped_column(default=True)
    is_boundary: Mapped[bool] = mapped_column(default=False)
    is_free_hit: Mapped[bool] = mapped_column(default=False)

    # Wicket
    is_wicket: Mapped[bool] = mapped_column(default=False)
    dismissal_type: Mapped[Optional[DismissalType]] = mapped_column(Enum(DismissalType), nullable=True)
    batsman_out_ref: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    fielder_ref: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    commentary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("innings_id", "sequence", name="unique_ball_sequence"),
    )

    def __repr__(self):
        return f"<Ball {self.over_number}.{self.ball_number}: {self.outcome.value}>"


class FallOfWicket(Base):
    __tablename__ = "fall_of_wickets"

    id: Mapped[int] = mapped_column(primary_key=True)
    innings_id: Mapped[int] = mapped_column(ForeignKey("innings.id"))
    innings: Mapped["Innings"] = relationship("Innings", back_populates="fall_of_wickets")

    wicket_number: Mapped[int] = mapped_column(Integer)
    runs: Mapped[int] = mapped_column(Integer)
    over_number: Mapped[int] = mapped_column(Integer)
    ball_number: Mapped[int] = mapped_column(Integer)
    batsman_ref: Mapped[str] = mapped_column(String(64))


class PlayerPerformance(Base):
    __tablename__ = "player_performances"

    id: Mapped[int] = mapped_column(primary_key=True)
    match_id: Mapped[int] = mapped_column(ForeignKey("matches.id"))
    match: Mapped["Match"] = relationship("Match", back_populates="performances")

    player_ref: Mapped[str] = mapped_column(String(64))
    team: Mapped[TeamSide] = mapped_column(Enum(TeamSide))

    # Batting
    runs: Mapped[int] = mapped_column(Integer, default=0)
    balls_faced: Mapped[int] = mapped_column(Integer, default=0)
    fours: Mapped[int] = mapped_column(Integer, default=0)
    sixes: Mapped[int] = mapped_column(Integer, default=0)
    is_out: Mapped[bool] = mapped_column(default=False)
    dismissal_type: Mapped[Optional[DismissalType]] = mapped_column(Enum(DismissalType), nullable=True)
    dismissed_by_ref: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    batting_position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Bowling
    balls_bowled: Mapped[int] = mapped_column(Integer, default=0)
    runs_conceded: Mapped[int] = mapped_column(Integer, default=0)
    wickets: Mapped[int] = mapped_column(Integer, default=0)
    wides: Mapped[int] = mapped_column(Integer, default=0)
    no_balls: Mapped[int] = mapped_column(Integer, default=0)

    # Fielding
    catches: Mapped[int] = mapped_column(Integer, default=0)
    run_outs: Mapped[int] = mapped_column(Integer, default=0)
    stumpings: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint("match_id", "player_ref", name="unique_match_performance"),
    )

    def __repr__(self):
        return f"<PlayerPerformance {self.player_ref}: {self.runs} runs, {self.wickets} wkts>"
