from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from boxcricket.engine.ledger import Ball, BallLedger
from boxcricket.engine.performance import PlayerPerformance, apply_to_performances
from boxcricket.engine.roster import MatchSettings, TeamSheet
from boxcricket.errors import LedgerInconsistencyError, ValidationError
from boxcricket.models.match import (
    BallOutcomeType, DismissalType, InningsStatus, TeamSide,
)

BALLS_PER_OVER = 6
MAX_RUNS_PARAM = 7
COMMENTARY_MAX = 200

# Dismissals still possible on a free hit
FREE_HIT_DISMISSALS = {
    DismissalType.RUN_OUT,
    DismissalType.OBSTRUCTING_FIELD,
    DismissalType.HANDLED_BALL,
    DismissalType.RETIRED_HURT,
}

SCORING_SHOTS = {
    BallOutcomeType.DOT: 0,
    BallOutcomeType.ONE: 1,
    BallOutcomeType.TWO: 2,
    BallOutcomeType.THREE: 3,
    BallOutcomeType.FOUR: 4,
    BallOutcomeType.SIX: 6,
}


@dataclass
class Extras:
    wides: int = 0
    no_balls: int = 0
    byes: int = 0
    leg_byes: int = 0

    @property
    def total(self) -> int:
        return self.wides + self.no_balls + self.byes + self.leg_byes

    def add(self, outcome: BallOutcomeType, runs: int, sign: int = 1) -> None:
        """Post (or with sign=-1 reverse) the extras of one delivery to its bucket"""
        if outcome == BallOutcomeType.WIDE:
            self.wides += sign * runs
        elif outcome == BallOutcomeType.NO_BALL:
            self.no_balls += sign * runs
        elif outcome == BallOutcomeType.BYE:
            self.byes += sign * runs
        elif outcome == BallOutcomeType.LEG_BYE:
            self.leg_byes += sign * runs


@dataclass
class FallOfWicket:
    wicket_number: int
    runs: int
    over_number: int  # 1-based over in which the wicket fell
    ball_number: int  # legal balls of that over bowled, this one included
    batsman_id: str

    @property
    def overs_display(self) -> str:
        if self.ball_number >= BALLS_PER_OVER:
            return f"{self.over_number}.0"
        return f"{self.over_number - 1}.{self.ball_number}"


@dataclass
class WicketInfo:
    """How a batter got out; every field optional"""
    dismissal_type: Optional[DismissalType] = None
    batsman_out_id: Optional[str] = None
    fielder_id: Optional[str] = None


@dataclass
class InningsState:
    """One team's batting effort"""
    number: int
    batting_team: TeamSide
    bowling_team: TeamSide
    status: InningsStatus = InningsStatus.NOT_STARTED

    total_runs: int = 0
    total_wickets: int = 0
    total_overs: int = 0
    total_balls: int = 0
    extras: Extras = field(default_factory=Extras)

    current_over: int = 0
    current_ball: int = 0
    striker_id: Optional[str] = None
    non_striker_id: Optional[str] = None
    bowler_id: Optional[str] = None

    ledger: BallLedger = field(default_factory=BallLedger)
    fall_of_wickets: list[FallOfWicket] = field(default_factory=list)

    run_rate: float = 0.0
    target: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def overs_display(self) -> str:
        return f"{self.total_overs}.{self.current_ball}"

    def compute_run_rate(self) -> float:
        overs = self.total_overs + self.current_ball / BALLS_PER_OVER
        if overs == 0:
            return 0.0
        return round(self.total_runs / overs, 2)

    def required_run_rate(self, overs_limit: int) -> Optional[float]:
        if self.target is None:
            return None
        overs_remaining = overs_limit - (self.total_overs + self.current_ball / BALLS_PER_OVER)
        if overs_remaining <= 0:
            return None
        return round(max(self.target - self.total_runs, 0) / overs_remaining, 2)

    def next_ball_is_free_hit(self, free_hit_enabled: bool) -> bool:
        """A no-ball earns a free hit, which survives any wide or no-ball bowled on it"""
        if not free_hit_enabled:
            return False
        last = self.ledger.last
        if last is None:
            return False
        if last.outcome == BallOutcomeType.NO_BALL:
            return True
        return last.is_free_hit and not last.is_legal_delivery

    def snapshot(self, overs_limit: int) -> dict:
        """Minimal scoreboard for live viewers"""
        return {
            "innings": self.number,
            "batting_team": self.batting_team.value,
            "status": self.status.value,
            "runs": self.total_runs,
            "wickets": self.total_wickets,
            "overs": self.overs_display,
            "run_rate": self.run_rate,
            "target": self.target,
            "required_run_rate": self.required_run_rate(overs_limit),
        }


@dataclass
class BallResult:
    ball: Ball
    over_completed: bool = False
    innings_completed: bool = False


@dataclass
class UndoResult:
    ball: Ball
    innings_reopened: bool = False


class InningsEngine:
    """
    Applies scoring actions to one innings.

    Every action validates first and mutates afterwards, so a rejected call
    leaves the innings exactly as it was.
    """

    def __init__(
        self,
        innings: InningsState,
        settings: MatchSettings,
        batting_team: TeamSheet,
        bowling_team: TeamSheet,
        performances: dict[str, PlayerPerformance],
    ):
        self.innings = innings
        self.settings = settings
        self.batting_team = batting_team
        self.bowling_team = bowling_team
        self.performances = performances

    # ------------------------------------------------------------------
    # Crease management
    # ------------------------------------------------------------------

    def _check_batter(self, player_id: str, role: str) -> None:
        if player_id not in self.batting_team:
            raise ValidationError(f"{role} not found in batting team")
        if self.performances[player_id].is_out:
            raise ValidationError(f"{role} is already out")

    def _assign_batting_position(self, player_id: str) -> None:
        perf = self.performances[player_id]
        if perf.batting_position is not None:
            return
        batted = sum(
            1 for p in self.batting_team.players if self.performances[p.id].has_batted
        )
        perf.batting_position = batted + 1

    def set_batsmen(self, striker_id: str, non_striker_id: str) -> bool:
        """Put a batting pair at the crease. Returns True if this started the innings."""
        innings = self.innings
        if innings.status == InningsStatus.COMPLETED:
            raise ValidationError("Innings is already completed")
        self._check_batter(striker_id, "Striker")
        self._check_batter(non_striker_id, "Non-striker")
        if striker_id == non_striker_id:
            raise ValidationError("Striker and non-striker must be different players")

        innings.striker_id = striker_id
        innings.non_striker_id = non_striker_id
        self._assign_batting_position(striker_id)
        self._assign_batting_position(non_striker_id)

        if innings.status == InningsStatus.NOT_STARTED:
            innings.status = InningsStatus.IN_PROGRESS
            innings.start_time = datetime.utcnow()
            innings.current_over = 1
            innings.current_ball = 0
            return True
        return False

    def set_new_batsman(self, batsman_id: str) -> str:
        """Replace the dismissed batter at the crease. Returns the slot filled."""
        innings = self.innings
        if innings.status != InningsStatus.IN_PROGRESS:
            raise ValidationError("Innings is not in progress")
        self._check_batter(batsman_id, "Batsman")
        if batsman_id in (innings.striker_id, innings.non_striker_id):
            raise ValidationError("Batsman is already at the crease")

        if innings.striker_id and self.performances[innings.striker_id].is_out:
            innings.striker_id = batsman_id
            slot = "striker"
        elif innings.non_striker_id and self.performances[innings.non_striker_id].is_out:
            innings.non_striker_id = batsman_id
            slot = "non_striker"
        else:
            raise ValidationError("No dismissed batsman to replace")

        self._assign_batting_position(batsman_id)
        return slot

    def set_bowler(self, bowler_id: str) -> None:
        if self.innings.status == InningsStatus.COMPLETED:
            raise ValidationError("Innings is already completed")
        if bowler_id not in self.bowling_team:
            raise ValidationError("Bowler not found in bowling team")
        self.innings.bowler_id = bowler_id

    # ------------------------------------------------------------------
    # Deliveries
    # ------------------------------------------------------------------

    def score_delivery(self, outcome: BallOutcomeType, runs: int) -> tuple[int, int, bool, bool]:
        """(batsman_runs, extra_runs, is_legal, is_boundary) for one outcome"""
        if outcome in SCORING_SHOTS:
            value = SCORING_SHOTS[outcome]
            return value, 0, True, value in (4, 6)
        if outcome == BallOutcomeType.WIDE:
            return 0, self.settings.wide_runs + runs, False, False
        if outcome == BallOutcomeType.NO_BALL:
            return runs, self.settings.no_ball_runs, False, False
        if outcome in (BallOutcomeType.BYE, BallOutcomeType.LEG_BYE):
            return 0, runs or 1, True, False
        # Wicket on its own scores nothing
        return 0, 0, True, False

    def _validate_wicket(self, wicket: WicketInfo, is_free_hit: bool) -> WicketInfo:
        innings = self.innings
        batsman_out_id = wicket.batsman_out_id or innings.striker_id
        if batsman_out_id not in (innings.striker_id, innings.non_striker_id):
            raise ValidationError("Dismissed batsman must be at the crease")
        if wicket.fielder_id and wicket.fielder_id not in self.bowling_team:
            raise ValidationError("Fielder not found in bowling team")
        if is_free_hit and wicket.dismissal_type not in FREE_HIT_DISMISSALS:
            raise ValidationError("Only a run out, obstructing the field or handled ball can dismiss on a free hit")
        return WicketInfo(
            dismissal_type=wicket.dismissal_type,
            batsman_out_id=batsman_out_id,
            fielder_id=wicket.fielder_id,
        )

    def apply_ball(
        self,
        outcome,
        runs: int = 0,
        wicket: Optional[WicketInfo] = None,
        commentary: Optional[str] = None,
    ) -> BallResult:
        innings = self.innings

        # 1. Preconditions
        if innings.status != InningsStatus.IN_PROGRESS:
            raise ValidationError("Innings not started")
        if not innings.striker_id or not innings.non_striker_id or not innings.bowler_id:
            raise ValidationError("batsmen/bowler not set")
        for slot in (innings.striker_id, innings.non_striker_id):
            if self.performances[slot].is_out:
                raise ValidationError("A dismissed batsman is still at the crease, set the new batsman")
        try:
            outcome = BallOutcomeType(outcome)
        except ValueError:
            raise ValidationError(f"Unknown ball outcome: {outcome}")
        if not isinstance(runs, int) or isinstance(runs, bool) or not 0 <= runs <= MAX_RUNS_PARAM:
            raise ValidationError(f"Runs must be between 0 and {MAX_RUNS_PARAM}")
        if commentary is not None and len(commentary) > COMMENTARY_MAX:
            raise ValidationError(f"Commentary cannot exceed {COMMENTARY_MAX} characters")

        is_free_hit = innings.next_ball_is_free_hit(self.settings.free_hit_enabled)
        is_wicket = wicket is not None or outcome == BallOutcomeType.WICKET
        if is_wicket:
            wicket = self._validate_wicket(wicket or WicketInfo(), is_free_hit)

        # 2. Runs
        batsman_runs, extra_runs, is_legal, is_boundary = self.score_delivery(outcome, runs)
        total_runs = batsman_runs + extra_runs

        ball = Ball(
            over_number=innings.current_over,
            ball_number=innings.current_ball + 1,
            bowler_id=innings.bowler_id,
            striker_id=innings.striker_id,
            non_striker_id=innings.non_striker_id,
            outcome=outcome,
            batsman_runs=batsman_runs,
            extra_runs=extra_runs,
            total_runs=total_runs,
            is_legal_delivery=is_legal,
            is_boundary=is_boundary,
            is_free_hit=is_free_hit,
            is_wicket=is_wicket,
            dismissal_type=wicket.dismissal_type if is_wicket else None,
            batsman_out_id=wicket.batsman_out_id if is_wicket else None,
            fielder_id=wicket.fielder_id if is_wicket else None,
            commentary=commentary,
        )

        # 3. Wicket bookkeeping
        if is_wicket:
            innings.total_wickets += 1
            innings.fall_of_wickets.append(FallOfWicket(
                wicket_number=innings.total_wickets,
                runs=innings.total_runs + total_runs,
                over_number=innings.current_over,
                ball_number=innings.current_ball + (1 if is_legal else 0),
                batsman_id=ball.batsman_out_id,
            ))

        # 4. Ledger and totals
        innings.ledger.append(ball)
        innings.total_runs += total_runs
        innings.extras.add(outcome, extra_runs)
        apply_to_performances(self.performances, ball)

        # 5. Over progression
        over_completed = False
        if is_legal:
            innings.current_ball += 1
            innings.total_balls += 1
            if innings.current_ball >= BALLS_PER_OVER:
                innings.current_over += 1
                innings.total_overs += 1
                innings.current_ball = 0
                self._swap_strike()
                innings.bowler_id = None
                over_completed = True

        # 6. Odd runs change ends
        if is_legal and batsman_runs % 2 == 1:
            self._swap_strike()

        # 7. Run rate
        innings.run_rate = innings.compute_run_rate()

        # 8. Completion
        innings_completed = False
        if self.is_complete():
            innings.status = InningsStatus.COMPLETED
            innings.end_time = datetime.utcnow()
            innings_completed = True

        self.check_invariants()
        return BallResult(ball=ball, over_completed=over_completed, innings_completed=innings_completed)

    def _swap_strike(self) -> None:
        innings = self.innings
        innings.striker_id, innings.non_striker_id = innings.non_striker_id, innings.striker_id

    def is_complete(self) -> bool:
        innings = self.innings
        if innings.total_wickets >= self.settings.max_wickets:
            return True
        if innings.total_overs >= self.settings.overs:
            return True
        if innings.target is not None and innings.total_runs >= innings.target:
            return True
        return False

    def check_invariants(self) -> None:
        """Totals must always agree with the ledger"""
        innings = self.innings
        ledger = innings.ledger
        problems = []
        if innings.total_runs != ledger.total_runs():
            problems.append(f"runs {innings.total_runs} != ledger {ledger.total_runs()}")
        if innings.total_wickets != len(innings.fall_of_wickets) or innings.total_wickets != ledger.wicket_count():
            problems.append(f"wickets {innings.total_wickets} != fall of wickets {len(innings.fall_of_wickets)}")
        if innings.total_balls != ledger.legal_count():
            problems.append(f"balls {innings.total_balls} != legal deliveries {ledger.legal_count()}")
        if innings.total_overs * BALLS_PER_OVER + innings.current_ball != innings.total_balls:
            problems.append(f"cursor {innings.overs_display} != {innings.total_balls} balls")
        if innings.extras.total != sum(ball.extra_runs for ball in ledger):
            problems.append(f"extras {innings.extras.total} != ledger extras")
        if problems:
            raise LedgerInconsistencyError(f"Innings {innings.number} inconsistent: " + "; ".join(problems))
