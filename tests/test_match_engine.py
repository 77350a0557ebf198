"""
Pytest tests for the match orchestrator: toss, innings hand-over, results and force-end.

Run with: pytest tests/test_match_engine.py -v
"""
import pytest

from boxcricket.engine.events import EventType
from boxcricket.engine.innings import WicketInfo
from boxcricket.engine.match_engine import MatchEngine
from boxcricket.engine.roster import MatchSettings, PlayerRef, TeamSheet
from boxcricket.errors import ValidationError
from boxcricket.models.match import (
    DismissalType, InningsStatus, MatchStatus, ResultType, TeamSide,
)


def make_team(prefix: str, name: str, size: int = 6) -> TeamSheet:
    """Create a team whose players are <prefix>1..<prefix>N"""
    return TeamSheet(
        name=name,
        players=[PlayerRef(id=f"{prefix}{i}", name=f"{name} {i}") for i in range(1, size + 1)],
    )


def create_match(**settings) -> MatchEngine:
    """Strikers (a1..a6) vs Titans (b1..b6), ready for the toss"""
    engine = MatchEngine(MatchSettings(**settings), make_team("a", "Strikers"), make_team("b", "Titans"))
    engine.open_toss()
    return engine


def open_innings(engine: MatchEngine) -> None:
    """Send in the first two batters of the batting side"""
    innings = engine.current_innings
    batting = engine.team(innings.batting_team).players
    engine.set_batsmen(batting[0].id, batting[1].id)


def play(engine: MatchEngine, deliveries) -> None:
    """
    Bowl a sequence of outcomes in the current innings.

    Bowlers are rotated one per over and the next batter in the roster walks
    in after each wicket.
    """
    innings = engine.current_innings
    bowling = engine.team(innings.bowling_team).players
    batting = engine.team(innings.batting_team).players
    for outcome in deliveries:
        if innings.bowler_id is None:
            engine.set_bowler(bowling[(innings.current_over - 1) % len(bowling)].id)
        engine.apply_ball(outcome)
        if outcome == "wicket" and innings.status == InningsStatus.IN_PROGRESS:
            engine.set_new_batsman(next(p.id for p in batting if not engine.performances[p.id].has_batted))


def first_innings_50_for_3(engine: MatchEngine) -> None:
    open_innings(engine)
    play(engine, ["4"] * 6)                            # 24
    play(engine, ["4"] * 5 + ["1"])                    # 45
    play(engine, ["wicket"] + ["1"] * 5)               # 50/1
    play(engine, ["wicket"] + ["dot"] * 5)             # 50/2
    play(engine, ["wicket"] + ["dot"] * 5)             # 50/3
    play(engine, ["dot"] * 6)


class TestToss:
    """Toss rules"""

    def test_bat_decision(self):
        engine = create_match()
        engine.conduct_toss("team_a", "bat")
        assert engine.status == MatchStatus.IN_PROGRESS
        assert engine.current_innings_key == "first"
        assert engine.innings1.batting_team == TeamSide.TEAM_A
        assert engine.innings2.batting_team == TeamSide.TEAM_B
        assert engine.innings1.status == InningsStatus.NOT_STARTED

    def test_bowl_decision(self):
        engine = create_match()
        engine.conduct_toss("team_a", "bowl")
        assert engine.innings1.batting_team == TeamSide.TEAM_B

    def test_toss_twice(self):
        engine = create_match()
        engine.conduct_toss("team_b", "bat")
        with pytest.raises(ValidationError, match="Toss already conducted"):
            engine.conduct_toss("team_a", "bat")

    def test_toss_before_opening(self):
        engine = MatchEngine(MatchSettings(), make_team("a", "Strikers"), make_team("b", "Titans"))
        with pytest.raises(ValidationError):
            engine.conduct_toss("team_a", "bat")

    def test_bad_toss_values(self):
        engine = create_match()
        with pytest.raises(ValidationError):
            engine.conduct_toss("team_c", "bat")
        assert engine.toss is None

    def test_scoring_before_toss(self):
        engine = create_match()
        with pytest.raises(ValidationError):
            engine.apply_ball("dot")
        with pytest.raises(ValidationError):
            engine.set_batsmen("a1", "a2")


class TestSettings:
    """Settings are frozen once the toss is done"""

    def test_update_before_toss(self):
        engine = create_match()
        engine.update_settings(overs=8, wide_runs=2)
        assert engine.settings.overs == 8
        assert engine.settings.wide_runs == 2

    def test_update_after_toss(self):
        engine = create_match()
        engine.conduct_toss("team_a", "bat")
        with pytest.raises(ValidationError):
            engine.update_settings(overs=10)
        assert engine.settings.overs == 6

    def test_out_of_range(self):
        engine = create_match()
        with pytest.raises(ValidationError):
            engine.update_settings(overs=51)
        with pytest.raises(ValidationError):
            engine.update_settings(no_ball_runs=3)

    def test_players_per_team_above_roster(self):
        engine = create_match()
        with pytest.raises(ValidationError):
            engine.update_settings(players_per_team=7)

    def test_unknown_setting(self):
        engine = create_match()
        with pytest.raises(ValidationError):
            engine.update_settings(powerplay=2)


class TestRosters:
    """Validation at creation"""

    def test_roster_too_small(self):
        with pytest.raises(ValidationError):
            MatchEngine(MatchSettings(), make_team("a", "Strikers", size=5), make_team("b", "Titans"))

    def test_player_on_both_sides(self):
        team_b = make_team("b", "Titans")
        team_b.players[0] = PlayerRef(id="a1", name="Turncoat")
        with pytest.raises(ValidationError):
            MatchEngine(MatchSettings(), make_team("a", "Strikers"), team_b)

    def test_team_name_length(self):
        with pytest.raises(ValidationError):
            MatchEngine(MatchSettings(), make_team("a", "S" * 31), make_team("b", "Titans"))


class TestInningsBreak:
    """First innings hands over to the second"""

    def test_first_innings_sets_target(self):
        engine = create_match()
        engine.conduct_toss("team_a", "bat")
        first_innings_50_for_3(engine)

        assert engine.innings1.total_runs == 50
        assert engine.innings1.total_wickets == 3
        assert engine.innings1.status == InningsStatus.COMPLETED
        assert engine.status == MatchStatus.INNINGS_BREAK
        assert engine.innings2.target == 51

    def test_scoring_during_break(self):
        engine = create_match(overs=1)
        engine.conduct_toss("team_a", "bat")
        open_innings(engine)
        play(engine, ["dot"] * 6)
        with pytest.raises(ValidationError):
            engine.apply_ball("dot")

    def test_start_second_innings(self):
        engine = create_match(overs=1)
        engine.conduct_toss("team_a", "bat")
        open_innings(engine)
        play(engine, ["4"] + ["dot"] * 5)

        assert engine.start_second_innings() == 5
        assert engine.current_innings_key == "second"
        assert engine.status == MatchStatus.IN_PROGRESS
        assert engine.innings2.status == InningsStatus.NOT_STARTED

    def test_start_second_innings_too_early(self):
        engine = create_match()
        engine.conduct_toss("team_a", "bat")
        with pytest.raises(ValidationError):
            engine.start_second_innings()


class TestResults:
    """Win by wickets, win by runs and tie"""

    def test_chase_completes_mid_over(self):
        engine = create_match(overs=6, players_per_team=6)
        engine.conduct_toss("team_a", "bat")
        first_innings_50_for_3(engine)
        engine.start_second_innings()
        open_innings(engine)

        play(engine, ["6"] * 6)                         # 36
        play(engine, ["4", "4"] + ["dot"] * 4)          # 44
        play(engine, ["wicket"] + ["dot"] * 5)          # 44/1
        play(engine, ["dot"] * 6)
        play(engine, ["2", "2", "dot", "4"])            # 52/1 in 4.4

        innings = engine.innings2
        assert innings.overs_display == "4.4"
        assert innings.status == InningsStatus.COMPLETED
        assert engine.status == MatchStatus.COMPLETED
        result = engine.result
        assert result.result_type == ResultType.TEAM_B_WON
        assert result.winner == TeamSide.TEAM_B
        assert result.margin_wickets == 4
        assert result.text == "Titans won by 4 wickets"
        assert engine.end_time is not None

    def test_no_balls_after_completion(self):
        engine = create_match(overs=1)
        engine.conduct_toss("team_a", "bat")
        open_innings(engine)
        play(engine, ["1"] + ["dot"] * 5)
        engine.start_second_innings()
        open_innings(engine)
        play(engine, ["4"])
        with pytest.raises(ValidationError):
            engine.apply_ball("dot")

    def test_win_by_runs(self):
        engine = create_match(overs=1)
        engine.conduct_toss("team_b", "bowl")
        open_innings(engine)
        play(engine, ["6", "4", "dot", "dot", "dot", "dot"])
        engine.start_second_innings()
        open_innings(engine)
        play(engine, ["1", "dot", "dot", "dot", "dot", "dot"])

        assert engine.result.result_type == ResultType.TEAM_A_WON
        assert engine.result.margin_runs == 9
        assert engine.result.text == "Strikers won by 9 runs"

    def test_singular_margin(self):
        engine = create_match(overs=1, players_per_team=2)
        engine.conduct_toss("team_a", "bat")
        open_innings(engine)
        play(engine, ["1"] + ["dot"] * 5)
        engine.start_second_innings()
        open_innings(engine)
        play(engine, ["4"])
        assert engine.result.text == "Titans won by 1 wicket"

    def test_tie(self):
        engine = create_match(overs=1)
        engine.conduct_toss("team_a", "bat")
        open_innings(engine)
        play(engine, ["4"] + ["dot"] * 5)
        engine.start_second_innings()
        open_innings(engine)
        play(engine, ["dot"] * 5 + ["4"])

        assert engine.status == MatchStatus.COMPLETED
        assert engine.result.result_type == ResultType.TIE
        assert engine.result.winner is None
        assert engine.result.text == "Match Tied"


class TestUndoAcrossStates:
    """Undo routed through the orchestrator"""

    def test_undo_before_toss(self):
        engine = create_match()
        with pytest.raises(ValidationError):
            engine.undo_last_ball()

    def test_undo_reopens_first_innings(self):
        engine = create_match(overs=1)
        engine.conduct_toss("team_a", "bat")
        open_innings(engine)
        play(engine, ["dot"] * 6)
        assert engine.status == MatchStatus.INNINGS_BREAK

        undone = engine.undo_last_ball()
        assert undone.innings_reopened
        assert engine.status == MatchStatus.IN_PROGRESS
        assert engine.innings2.target is None
        engine.set_bowler("b1")
        engine.apply_ball("4")
        assert engine.innings2.target == 5

    def test_undo_reopens_completed_match(self):
        engine = create_match(overs=1)
        engine.conduct_toss("team_a", "bat")
        open_innings(engine)
        play(engine, ["4"] + ["dot"] * 5)
        engine.start_second_innings()
        open_innings(engine)
        play(engine, ["dot"] * 5 + ["4"])
        assert engine.result is not None

        engine.undo_last_ball()
        assert engine.status == MatchStatus.IN_PROGRESS
        assert engine.result is None
        assert engine.end_time is None

    def test_undo_does_not_cross_into_first_innings(self):
        engine = create_match(overs=1)
        engine.conduct_toss("team_a", "bat")
        open_innings(engine)
        play(engine, ["dot"] * 6)
        engine.start_second_innings()
        with pytest.raises(ValidationError):
            engine.undo_last_ball()
        assert engine.innings1.total_balls == 6


class TestForceEnd:
    """Abandon and cancel"""

    def test_abandon(self):
        engine = create_match()
        engine.conduct_toss("team_a", "bat")
        result = engine.end_match("Rain")
        assert engine.status == MatchStatus.ABANDONED
        assert result.result_type == ResultType.ABANDONED
        assert result.text == "Rain"

    def test_cancel(self):
        engine = create_match()
        result = engine.end_match(cancelled=True)
        assert engine.status == MatchStatus.CANCELLED
        assert result.result_type == ResultType.NO_RESULT
        assert result.text == "Match cancelled"

    def test_end_twice(self):
        engine = create_match()
        engine.end_match()
        with pytest.raises(ValidationError):
            engine.end_match()

    def test_no_undo_after_abandon(self):
        engine = create_match()
        engine.conduct_toss("team_a", "bat")
        open_innings(engine)
        play(engine, ["4"])
        engine.end_match()
        with pytest.raises(ValidationError):
            engine.undo_last_ball()
        assert engine.innings1.total_runs == 4


class TestEvents:
    """Events collect until drained"""

    def test_event_sequence(self):
        engine = create_match(overs=1)
        engine.conduct_toss("team_a", "bat")
        open_innings(engine)
        play(engine, ["dot"] * 5 + ["wicket"])

        types = [event.type for event in engine.drain_events()]
        assert types[0] == EventType.TOSS_RESULT
        assert types[1] == EventType.INNINGS_START
        assert types.count(EventType.BALL_RECORDED) == 6
        assert types[-4:] == [
            EventType.BALL_RECORDED, EventType.WICKET, EventType.OVER_COMPLETE, EventType.INNINGS_END,
        ]
        assert engine.drain_events() == []

    def test_match_end_event(self):
        engine = create_match(overs=1)
        engine.conduct_toss("team_a", "bat")
        open_innings(engine)
        play(engine, ["dot"] * 6)
        engine.start_second_innings()
        open_innings(engine)
        engine.drain_events()
        play(engine, ["1"])

        events = engine.drain_events()
        assert events[-1].type == EventType.MATCH_END
        assert events[-1].to_dict()["result"]["result_text"] == "Titans won by 5 wickets"

    def test_ball_event_payload(self):
        engine = create_match()
        engine.conduct_toss("team_a", "bat")
        open_innings(engine)
        engine.drain_events()
        play(engine, ["no_ball"])

        data = engine.drain_events()[0].to_dict()
        assert data["event"] == "ball_recorded"
        assert data["score"]["runs"] == 1
        assert data["score"]["overs"] == "0.0"
        assert data["free_hit_next"] is True


class TestReadModels:
    """Live score and scorecard"""

    def test_live_score_before_toss(self):
        live = create_match().live_score()
        assert live["match_status"] == "toss"
        assert live["score"] is None

    def test_live_score(self):
        engine = create_match()
        engine.conduct_toss("team_a", "bat")
        open_innings(engine)
        play(engine, ["4", "wide", "no_ball"])

        live = engine.live_score()
        assert live["score"]["runs"] == 6
        assert live["score"]["overs"] == "0.1"
        assert live["this_over"] == ["4", "1wd", "1nb"]
        assert live["free_hit"] is True
        assert live["batsmen"]["striker"]["id"] == "a1"
        assert live["bowler"]["id"] == "b1"
        assert live["bowler"]["runs"] == 6

    def test_required_run_rate(self):
        engine = create_match(overs=2)
        engine.conduct_toss("team_a", "bat")
        open_innings(engine)
        play(engine, ["dot"] * 11 + ["6"])
        engine.start_second_innings()
        open_innings(engine)
        play(engine, ["dot"] * 6)

        live = engine.live_score()
        assert live["score"]["target"] == 7
        assert live["score"]["required_run_rate"] == 7.0

    def test_scorecard(self):
        engine = create_match()
        engine.conduct_toss("team_a", "bat")
        open_innings(engine)
        engine.set_bowler("b1")
        engine.apply_ball("4")
        engine.apply_ball("wicket", wicket=WicketInfo(DismissalType.CAUGHT, fielder_id="b2"))

        card = engine.scorecard()
        first = card["innings"][0]
        assert first["runs"] == 4
        assert first["batting"][0]["dismissal"] == "c Titans 2 b Titans 1"
        assert first["batting"][1]["dismissal"] == "not out"
        assert first["bowling"][0]["wickets"] == 1
        assert first["fall_of_wickets"][0]["batsman"] == "Strikers 1"
        assert "Strikers 3" in first["yet_to_bat"]
