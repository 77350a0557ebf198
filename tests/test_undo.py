"""
Tests for single-step undo of the last delivery.

Run with: pytest tests/test_undo.py -v
"""
from dataclasses import asdict

import pytest

from boxcricket.engine.innings import InningsEngine, InningsState, WicketInfo
from boxcricket.engine.performance import PlayerPerformance
from boxcricket.engine.roster import MatchSettings, PlayerRef, TeamSheet
from boxcricket.engine.undo import undo_last_ball
from boxcricket.errors import ValidationError
from boxcricket.models.match import DismissalType, InningsStatus, TeamSide


def make_team(prefix: str, name: str, size: int = 6) -> TeamSheet:
    return TeamSheet(
        name=name,
        players=[PlayerRef(id=f"{prefix}{i}", name=f"{name} {i}") for i in range(1, size + 1)],
    )


def create_innings(**settings) -> InningsEngine:
    batting = make_team("a", "Strikers")
    bowling = make_team("b", "Titans")
    performances = {p.id: PlayerPerformance(player_id=p.id, team=TeamSide.TEAM_A) for p in batting.players}
    performances.update({p.id: PlayerPerformance(player_id=p.id, team=TeamSide.TEAM_B) for p in bowling.players})
    innings = InningsState(number=1, batting_team=TeamSide.TEAM_A, bowling_team=TeamSide.TEAM_B)

    engine = InningsEngine(innings, MatchSettings(**settings), batting, bowling, performances)
    engine.set_batsmen("a1", "a2")
    engine.set_bowler("b1")
    return engine


def snapshot(engine: InningsEngine) -> dict:
    """Everything undo must restore; strike and bowler are not part of it"""
    innings = engine.innings
    return {
        "runs": innings.total_runs,
        "wickets": innings.total_wickets,
        "balls": innings.total_balls,
        "overs": innings.total_overs,
        "cursor": (innings.current_over, innings.current_ball),
        "extras": asdict(innings.extras),
        "fall_of_wickets": len(innings.fall_of_wickets),
        "ledger": len(innings.ledger),
        "run_rate": innings.run_rate,
        "status": innings.status,
        "performances": {pid: asdict(p) for pid, p in engine.performances.items()},
    }


class TestUndoInverse:
    """apply then undo restores the innings for every kind of delivery"""

    @pytest.mark.parametrize("outcome,runs,wicket", [
        ("dot", 0, None),
        ("3", 0, None),
        ("6", 0, None),
        ("wide", 2, None),
        ("no_ball", 4, None),
        ("bye", 0, None),
        ("leg_bye", 2, None),
        ("wicket", 0, None),
        ("wicket", 0, WicketInfo(DismissalType.CAUGHT, fielder_id="b3")),
        ("1", 0, WicketInfo(DismissalType.RUN_OUT, batsman_out_id="a2", fielder_id="b2")),
        ("wide", 0, WicketInfo(DismissalType.STUMPED, fielder_id="b6")),
    ])
    def test_apply_then_undo(self, outcome, runs, wicket):
        engine = create_innings()
        engine.apply_ball("4")
        engine.apply_ball("1")
        before = snapshot(engine)

        engine.apply_ball(outcome, runs, wicket)
        result = undo_last_ball(engine)

        assert result.ball.outcome.value == outcome
        assert snapshot(engine) == before

    def test_undo_across_an_over(self):
        engine = create_innings()
        for _ in range(6):
            engine.apply_ball("dot")
        assert engine.innings.overs_display == "1.0"

        undo_last_ball(engine)
        innings = engine.innings
        assert innings.total_overs == 0
        assert innings.current_over == 1
        assert innings.current_ball == 5
        # Bowler clearing is not reversed
        assert innings.bowler_id is None

    def test_undo_wicket_restores_batter(self):
        engine = create_innings()
        engine.apply_ball("wicket", wicket=WicketInfo(DismissalType.CAUGHT, fielder_id="b2"))
        undo_last_ball(engine)

        assert not engine.performances["a1"].is_out
        assert engine.performances["a1"].dismissal_type is None
        assert engine.performances["b2"].catches == 0
        assert engine.innings.fall_of_wickets == []
        # a1 is back on strike and scoring resumes
        engine.apply_ball("dot")

    def test_undo_restores_free_hit(self):
        engine = create_innings()
        engine.apply_ball("no_ball")
        engine.apply_ball("dot")
        assert not engine.innings.next_ball_is_free_hit(True)
        undo_last_ball(engine)
        assert engine.innings.next_ball_is_free_hit(True)


class TestUndoEdges:
    """Empty ledger and completed innings"""

    def test_nothing_to_undo(self):
        engine = create_innings()
        with pytest.raises(ValidationError):
            undo_last_ball(engine)

    def test_undo_reopens_completed_innings(self):
        engine = create_innings(overs=1)
        for _ in range(6):
            engine.apply_ball("dot")
        assert engine.innings.status == InningsStatus.COMPLETED

        result = undo_last_ball(engine)
        assert result.innings_reopened
        assert engine.innings.status == InningsStatus.IN_PROGRESS
        assert engine.innings.end_time is None

    def test_undo_inside_open_innings_does_not_reopen(self):
        engine = create_innings()
        engine.apply_ball("4")
        result = undo_last_ball(engine)
        assert not result.innings_reopened

    def test_repeated_undo_empties_ledger(self):
        engine = create_innings()
        for outcome in ("4", "wide", "1", "no_ball"):
            engine.apply_ball(outcome)
        for _ in range(4):
            undo_last_ball(engine)
        assert engine.innings.total_runs == 0
        assert engine.innings.extras.total == 0
        assert engine.performances["a1"].runs == 0
