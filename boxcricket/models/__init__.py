from boxcricket.models.match import (
    Match,
    MatchPlayer,
    Innings,
    BallEvent,
    FallOfWicket,
    PlayerPerformance,
)

__all__ = [
    "Match",
    "MatchPlayer",
    "Innings",
    "BallEvent",
    "FallOfWicket",
    "PlayerPerformance",
]
