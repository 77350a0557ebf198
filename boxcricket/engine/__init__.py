from boxcricket.engine.match_engine import MatchEngine, MatchResult
from boxcricket.engine.innings import InningsEngine, InningsState, WicketInfo
from boxcricket.engine.ledger import Ball, BallLedger
from boxcricket.engine.roster import MatchSettings, PlayerRef, TeamSheet

__all__ = [
    "MatchEngine",
    "MatchResult",
    "InningsEngine",
    "InningsState",
    "WicketInfo",
    "Ball",
    "BallLedger",
    "MatchSettings",
    "PlayerRef",
    "TeamSheet",
]
