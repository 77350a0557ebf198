from dataclasses import dataclass
from typing import Optional

from boxcricket.engine.ledger import Ball
from boxcricket.models.match import BallOutcomeType, DismissalType, TeamSide

# Dismissals credited to the bowler. An unspecified dismissal counts as the bowler's.
BOWLER_CREDITED = {
    None,
    DismissalType.BOWLED,
    DismissalType.CAUGHT,
    DismissalType.CAUGHT_AND_BOWLED,
    DismissalType.LBW,
    DismissalType.STUMPED,
    DismissalType.HIT_WICKET,
}


@dataclass
class PlayerPerformance:
    """One player's batting, bowling and fielding figures for a match"""
    player_id: str
    team: TeamSide

    # Batting
    runs: int = 0
    balls_faced: int = 0
    fours: int = 0
    sixes: int = 0
    is_out: bool = False
    dismissal_type: Optional[DismissalType] = None
    dismissed_by: Optional[str] = None
    batting_position: Optional[int] = None

    # Bowling
    balls_bowled: int = 0
    runs_conceded: int = 0
    wickets: int = 0
    wides: int = 0
    no_balls: int = 0

    # Fielding
    catches: int = 0
    run_outs: int = 0
    stumpings: int = 0

    @property
    def strike_rate(self) -> float:
        if self.balls_faced == 0:
            return 0.0
        return round((self.runs / self.balls_faced) * 100, 2)

    @property
    def overs_display(self) -> str:
        return f"{self.balls_bowled // 6}.{self.balls_bowled % 6}"

    @property
    def economy(self) -> float:
        if self.balls_bowled == 0:
            return 0.0
        return round((self.runs_conceded / self.balls_bowled) * 6, 2)

    @property
    def has_batted(self) -> bool:
        return self.batting_position is not None


def apply_to_performances(performances: dict[str, PlayerPerformance], ball: Ball, sign: int = 1) -> None:
    """
    Credit (sign=1) or debit (sign=-1) the figures one delivery contributes.

    Running the same ball through with sign=-1 exactly reverses sign=1,
    which is what undo relies on.
    """
    batter = performances[ball.striker_id]
    bowler = performances[ball.bowler_id]

    # Batting
    batter.runs += sign * ball.batsman_runs
    if ball.outcome != BallOutcomeType.WIDE:
        batter.balls_faced += sign
    if ball.is_boundary:
        if ball.batsman_runs == 6:
            batter.sixes += sign
        else:
            batter.fours += sign

    # Bowling
    if ball.is_legal_delivery:
        bowler.balls_bowled += sign
    charged = ball.batsman_runs
    if ball.outcome in (BallOutcomeType.WIDE, BallOutcomeType.NO_BALL):
        charged += ball.extra_runs
    bowler.runs_conceded += sign * charged
    if ball.outcome == BallOutcomeType.WIDE:
        bowler.wides += sign
    elif ball.outcome == BallOutcomeType.NO_BALL:
        bowler.no_balls += sign

    if not ball.is_wicket:
        return

    dismissed = performances[ball.batsman_out_id]
    bowler_credited = ball.dismissal_type in BOWLER_CREDITED
    if sign > 0:
        dismissed.is_out = True
        dismissed.dismissal_type = ball.dismissal_type
        dismissed.dismissed_by = ball.bowler_id if bowler_credited else ball.fielder_id
    else:
        dismissed.is_out = False
        dismissed.dismissal_type = None
        dismissed.dismissed_by = None

    if bowler_credited:
        bowler.wickets += sign

    if ball.dismissal_type == DismissalType.CAUGHT_AND_BOWLED:
        bowler.catches += sign
    elif ball.fielder_id and ball.fielder_id in performances:
        fielder = performances[ball.fielder_id]
        if ball.dismissal_type == DismissalType.CAUGHT:
            fielder.catches += sign
        elif ball.dismissal_type == DismissalType.RUN_OUT:
            fielder.run_outs += sign
        elif ball.dismissal_type == DismissalType.STUMPED:
            fielder.stumpings += sign
