from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
import enum


class EventType(enum.Enum):
    TOSS_RESULT = "toss_result"
    INNINGS_START = "innings_start"
    BALL_RECORDED = "ball_recorded"
    WICKET = "wicket"
    OVER_COMPLETE = "over_complete"
    INNINGS_END = "innings_end"
    BALL_UNDONE = "ball_undone"
    MATCH_END = "match_end"
    MATCH_ABANDONED = "match_abandoned"


@dataclass
class MatchEvent:
    """Point-in-time notification for live viewers, published after commit"""
    type: EventType
    match_id: Optional[int]
    payload: dict
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "event": self.type.value,
            "match_id": self.match_id,
            "timestamp": self.timestamp.isoformat(),
            **self.payload,
        }
