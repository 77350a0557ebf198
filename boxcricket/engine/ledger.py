from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, Optional

from boxcricket.errors import EmptyLedgerError
from boxcricket.models.match import BallOutcomeType, DismissalType


@dataclass(frozen=True)
class Ball:
    """A single recorded delivery"""
    over_number: int
    ball_number: int
    bowler_id: str
    striker_id: str
    non_striker_id: str
    outcome: BallOutcomeType
    batsman_runs: int = 0
    extra_runs: int = 0
    total_runs: int = 0
    is_legal_delivery: bool = True
    is_boundary: bool = False
    is_free_hit: bool = False
    is_wicket: bool = False
    dismissal_type: Optional[DismissalType] = None
    batsman_out_id: Optional[str] = None
    fielder_id: Optional[str] = None
    commentary: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    @property
    def label(self) -> str:
        """Short form for the this-over strip"""
        if self.is_wicket:
            return "W"
        if self.outcome == BallOutcomeType.WIDE:
            return f"{self.extra_runs}wd"
        if self.outcome == BallOutcomeType.NO_BALL:
            return f"{self.total_runs}nb"
        if self.outcome == BallOutcomeType.BYE:
            return f"{self.extra_runs}b"
        if self.outcome == BallOutcomeType.LEG_BYE:
            return f"{self.extra_runs}lb"
        return str(self.total_runs)

    def to_dict(self) -> dict:
        return {
            "over_number": self.over_number,
            "ball_number": self.ball_number,
            "bowler": self.bowler_id,
            "batsman": self.striker_id,
            "non_striker": self.non_striker_id,
            "outcome": self.outcome.value,
            "runs": {
                "batsman_runs": self.batsman_runs,
                "extra_runs": self.extra_runs,
                "total_runs": self.total_runs,
            },
            "is_wicket": self.is_wicket,
            "wicket": {
                "dismissal_type": self.dismissal_type.value if self.dismissal_type else None,
                "batsman_out": self.batsman_out_id,
                "fielder": self.fielder_id,
            } if self.is_wicket else None,
            "is_legal_delivery": self.is_legal_delivery,
            "is_boundary": self.is_boundary,
            "is_free_hit": self.is_free_hit,
            "commentary": self.commentary,
            "timestamp": self.timestamp.isoformat(),
        }


class BallLedger:
    """
    Append-only record of the deliveries of one innings.

    The ledger knows nothing about cricket rules: it stores what the innings
    engine hands it and gives it back in order. The tail can be popped for undo.
    """

    def __init__(self, balls: Optional[list[Ball]] = None):
        self._balls: list[Ball] = list(balls or [])

    def append(self, ball: Ball) -> None:
        self._balls.append(ball)

    def pop_last(self) -> Ball:
        if not self._balls:
            raise EmptyLedgerError()
        return self._balls.pop()

    @property
    def last(self) -> Optional[Ball]:
        return self._balls[-1] if self._balls else None

    def __len__(self) -> int:
        return len(self._balls)

    def __iter__(self) -> Iterator[Ball]:
        return iter(self._balls)

    def __getitem__(self, index: int) -> Ball:
        return self._balls[index]

    def total_runs(self) -> int:
        return sum(ball.total_runs for ball in self._balls)

    def legal_count(self) -> int:
        return sum(1 for ball in self._balls if ball.is_legal_delivery)

    def wicket_count(self) -> int:
        return sum(1 for ball in self._balls if ball.is_wicket)

    def current_over_balls(self, over_number: int) -> list[Ball]:
        """Deliveries bowled so far in the given over, extras included"""
        return [ball for ball in self._balls if ball.over_number == over_number]

    def __repr__(self):
        return f"<BallLedger {len(self._balls)} balls>"
