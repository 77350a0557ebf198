from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from boxcricket.engine.events import EventType, MatchEvent
from boxcricket.engine.innings import (
    BallResult, InningsEngine, InningsState, UndoResult, WicketInfo,
)
from boxcricket.engine.performance import PlayerPerformance
from boxcricket.engine.roster import MatchSettings, TeamSheet, validate_rosters
from boxcricket.engine.undo import undo_last_ball
from boxcricket.errors import ValidationError
from boxcricket.models.match import (
    DismissalType, MatchStatus, ResultType, TeamSide,
    TossDecision, TERMINAL_MATCH_STATUSES,
)

FIRST = "first"
SECOND = "second"


@dataclass
class Toss:
    winner: TeamSide
    decision: TossDecision
    conducted_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "winner": self.winner.value,
            "decision": self.decision.value,
            "conducted_at": self.conducted_at.isoformat(),
        }


@dataclass
class MatchResult:
    result_type: ResultType
    winner: Optional[TeamSide] = None
    margin_runs: Optional[int] = None
    margin_wickets: Optional[int] = None
    text: str = ""

    def to_dict(self) -> dict:
        return {
            "result_type": self.result_type.value,
            "winner": self.winner.value if self.winner else None,
            "win_margin": {"runs": self.margin_runs, "wickets": self.margin_wickets},
            "result_text": self.text,
        }


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


class MatchEngine:
    """
    Box cricket match orchestrator.

    Owns the toss, both innings and the match status. Scoring calls are routed
    to the innings picked by `current_innings_key`; all run arithmetic lives in
    InningsEngine. Events raised by a call collect in `events` until the
    caller has persisted the match and drains them.
    """

    def __init__(
        self,
        settings: MatchSettings,
        team_a: TeamSheet,
        team_b: TeamSheet,
        umpire_id: Optional[str] = None,
        host_id: Optional[str] = None,
        match_id: Optional[int] = None,
    ):
        validate_rosters(team_a, team_b, settings)
        self.match_id = match_id
        self.version = 0
        self.settings = settings
        self.team_a = team_a
        self.team_b = team_b
        self.umpire_id = umpire_id
        self.host_id = host_id

        self.status = MatchStatus.SCHEDULED
        self.toss: Optional[Toss] = None
        self.current_innings_key: Optional[str] = None
        self.innings1: Optional[InningsState] = None
        self.innings2: Optional[InningsState] = None
        self.result: Optional[MatchResult] = None
        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None

        self.performances: dict[str, PlayerPerformance] = {}
        for side, team in ((TeamSide.TEAM_A, team_a), (TeamSide.TEAM_B, team_b)):
            for player in team.players:
                self.performances[player.id] = PlayerPerformance(player_id=player.id, team=side)

        self.events: list[MatchEvent] = []

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def team(self, side: TeamSide) -> TeamSheet:
        return self.team_a if side == TeamSide.TEAM_A else self.team_b

    def player_name(self, player_id: Optional[str]) -> Optional[str]:
        if player_id is None:
            return None
        player = self.team_a.get(player_id) or self.team_b.get(player_id)
        return player.name if player else player_id

    @property
    def current_innings(self) -> Optional[InningsState]:
        if self.current_innings_key == FIRST:
            return self.innings1
        if self.current_innings_key == SECOND:
            return self.innings2
        return None

    def _innings_engine(self, innings: InningsState) -> InningsEngine:
        return InningsEngine(
            innings,
            self.settings,
            self.team(innings.batting_team),
            self.team(innings.bowling_team),
            self.performances,
        )

    def _emit(self, event_type: EventType, **payload) -> None:
        self.events.append(MatchEvent(type=event_type, match_id=self.match_id, payload=payload))

    def drain_events(self) -> list[MatchEvent]:
        events, self.events = self.events, []
        return events

    def _score(self, innings: InningsState) -> dict:
        return innings.snapshot(self.settings.overs)

    # ------------------------------------------------------------------
    # Pre-match
    # ------------------------------------------------------------------

    def open_toss(self) -> None:
        if self.status != MatchStatus.SCHEDULED:
            raise ValidationError("Match has already been started")
        self.status = MatchStatus.TOSS
        self.start_time = datetime.utcnow()

    def update_settings(self, **changes) -> MatchSettings:
        if self.status not in (MatchStatus.SCHEDULED, MatchStatus.TOSS):
            raise ValidationError("Settings are locked once the toss is conducted")
        settings = self.settings.with_changes(**changes)
        validate_rosters(self.team_a, self.team_b, settings)
        self.settings = settings
        return settings

    def conduct_toss(self, winner, decision) -> Toss:
        if self.status != MatchStatus.TOSS:
            if self.toss is not None:
                raise ValidationError("Toss already conducted")
            raise ValidationError("Match is not ready for the toss")
        try:
            winner = TeamSide(winner)
            decision = TossDecision(decision)
        except ValueError:
            raise ValidationError("Toss winner must be team_a or team_b and decision bat or bowl")

        batting_first = winner if decision == TossDecision.BAT else winner.opponent
        bowling_first = batting_first.opponent

        self.toss = Toss(winner=winner, decision=decision)
        self.innings1 = InningsState(number=1, batting_team=batting_first, bowling_team=bowling_first)
        self.innings2 = InningsState(number=2, batting_team=bowling_first, bowling_team=batting_first)
        self.current_innings_key = FIRST
        self.status = MatchStatus.IN_PROGRESS

        self._emit(
            EventType.TOSS_RESULT,
            toss=self.toss.to_dict(),
            batting_first=self.team(batting_first).name,
            bowling_first=self.team(bowling_first).name,
        )
        return self.toss

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _scoring_innings(self) -> InningsState:
        if self.status in (MatchStatus.SCHEDULED, MatchStatus.TOSS):
            raise ValidationError("Toss has not been conducted")
        if self.status == MatchStatus.INNINGS_BREAK:
            raise ValidationError("Second innings has not started")
        if self.status != MatchStatus.IN_PROGRESS:
            raise ValidationError("Match is not in progress")
        return self.current_innings

    def set_batsmen(self, striker_id: str, non_striker_id: str) -> None:
        innings = self._scoring_innings()
        started = self._innings_engine(innings).set_batsmen(striker_id, non_striker_id)
        if started:
            self._emit(
                EventType.INNINGS_START,
                batting_team=self.team(innings.batting_team).name,
                striker=striker_id,
                non_striker=non_striker_id,
                score=self._score(innings),
            )

    def set_new_batsman(self, batsman_id: str) -> str:
        innings = self._scoring_innings()
        return self._innings_engine(innings).set_new_batsman(batsman_id)

    def set_bowler(self, bowler_id: str) -> None:
        innings = self._scoring_innings()
        self._innings_engine(innings).set_bowler(bowler_id)

    def apply_ball(
        self,
        outcome,
        runs: int = 0,
        wicket: Optional[WicketInfo] = None,
        commentary: Optional[str] = None,
    ) -> BallResult:
        innings = self._scoring_innings()
        result = self._innings_engine(innings).apply_ball(outcome, runs, wicket, commentary)
        ball = result.ball
        score = self._score(innings)

        self._emit(
            EventType.BALL_RECORDED,
            ball=ball.to_dict(),
            score=score,
            free_hit_next=innings.next_ball_is_free_hit(self.settings.free_hit_enabled),
        )
        if ball.is_wicket:
            self._emit(
                EventType.WICKET,
                fall_of_wicket={
                    "wicket_number": innings.fall_of_wickets[-1].wicket_number,
                    "runs": innings.fall_of_wickets[-1].runs,
                    "overs": innings.fall_of_wickets[-1].overs_display,
                    "batsman": ball.batsman_out_id,
                },
                dismissal_type=ball.dismissal_type.value if ball.dismissal_type else None,
                score=score,
            )
        if result.over_completed:
            completed_over = ball.over_number
            self._emit(
                EventType.OVER_COMPLETE,
                over=completed_over,
                bowler=ball.bowler_id,
                runs_in_over=sum(b.total_runs for b in innings.ledger.current_over_balls(completed_over)),
                score=score,
            )
        if result.innings_completed:
            self._complete_innings(innings)
        return result

    def _complete_innings(self, innings: InningsState) -> None:
        self._emit(EventType.INNINGS_END, score=self._score(innings))
        if self.current_innings_key == FIRST:
            self.innings2.target = innings.total_runs + 1
            self.status = MatchStatus.INNINGS_BREAK
            return
        self.status = MatchStatus.COMPLETED
        self.end_time = datetime.utcnow()
        self.result = self.determine_result()
        self._emit(EventType.MATCH_END, result=self.result.to_dict(), score=self._score(innings))

    def start_second_innings(self) -> int:
        if self.status != MatchStatus.INNINGS_BREAK:
            raise ValidationError("Match is not in innings break")
        self.current_innings_key = SECOND
        self.status = MatchStatus.IN_PROGRESS
        return self.innings2.target

    def undo_last_ball(self) -> UndoResult:
        if self.status in (MatchStatus.SCHEDULED, MatchStatus.TOSS):
            raise ValidationError("Toss has not been conducted")
        if self.status in (MatchStatus.ABANDONED, MatchStatus.CANCELLED):
            raise ValidationError("Match has been ended")
        innings = self.current_innings
        undone = undo_last_ball(self._innings_engine(innings))

        if undone.innings_reopened:
            if self.current_innings_key == FIRST:
                self.innings2.target = None
            else:
                self.result = None
                self.end_time = None
            self.status = MatchStatus.IN_PROGRESS

        self._emit(
            EventType.BALL_UNDONE,
            ball=undone.ball.to_dict(),
            score=self._score(innings),
        )
        return undone

    # ------------------------------------------------------------------
    # Result
    # ------------------------------------------------------------------

    def determine_result(self) -> MatchResult:
        first, second = self.innings1, self.innings2
        if second.total_runs > first.total_runs:
            wickets_left = self.settings.max_wickets - second.total_wickets
            winner = second.batting_team
            return MatchResult(
                result_type=ResultType(f"{winner.value}_won"),
                winner=winner,
                margin_wickets=wickets_left,
                text=f"{self.team(winner).name} won by {_plural(wickets_left, 'wicket')}",
            )
        if first.total_runs > second.total_runs:
            margin = first.total_runs - second.total_runs
            winner = first.batting_team
            return MatchResult(
                result_type=ResultType(f"{winner.value}_won"),
                winner=winner,
                margin_runs=margin,
                text=f"{self.team(winner).name} won by {_plural(margin, 'run')}",
            )
        return MatchResult(result_type=ResultType.TIE, text="Match Tied")

    def end_match(self, reason: Optional[str] = None, cancelled: bool = False) -> MatchResult:
        """Force-end from outside the scoring flow (host or admin decision)"""
        if self.status in TERMINAL_MATCH_STATUSES:
            raise ValidationError("Match is already over")
        if cancelled:
            self.status = MatchStatus.CANCELLED
            self.result = MatchResult(result_type=ResultType.NO_RESULT, text=reason or "Match cancelled")
        else:
            self.status = MatchStatus.ABANDONED
            self.result = MatchResult(result_type=ResultType.ABANDONED, text=reason or "Match abandoned")
        self.end_time = datetime.utcnow()
        self._emit(EventType.MATCH_ABANDONED, status=self.status.value, result=self.result.to_dict())
        return self.result

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def _batter_line(self, player_id: Optional[str]) -> Optional[dict]:
        if player_id is None:
            return None
        perf = self.performances[player_id]
        return {
            "id": player_id,
            "name": self.player_name(player_id),
            "runs": perf.runs,
            "balls": perf.balls_faced,
            "fours": perf.fours,
            "sixes": perf.sixes,
            "strike_rate": perf.strike_rate,
            "is_out": perf.is_out,
        }

    def _bowler_line(self, player_id: Optional[str]) -> Optional[dict]:
        if player_id is None:
            return None
        perf = self.performances[player_id]
        return {
            "id": player_id,
            "name": self.player_name(player_id),
            "overs": perf.overs_display,
            "runs": perf.runs_conceded,
            "wickets": perf.wickets,
            "wides": perf.wides,
            "no_balls": perf.no_balls,
            "economy": perf.economy,
        }

    def live_score(self) -> dict:
        innings = self.current_innings
        score = None
        batsmen = None
        bowler = None
        this_over = []
        last_ball = None
        free_hit = False
        if innings is not None:
            score = {
                "batting_team": self.team(innings.batting_team).name,
                "bowling_team": self.team(innings.bowling_team).name,
                "runs": innings.total_runs,
                "wickets": innings.total_wickets,
                "overs": innings.overs_display,
                "run_rate": innings.run_rate,
                "target": innings.target,
                "required_run_rate": innings.required_run_rate(self.settings.overs),
                "extras": innings.extras.total,
            }
            batsmen = {
                "striker": self._batter_line(innings.striker_id),
                "non_striker": self._batter_line(innings.non_striker_id),
            }
            bowler = self._bowler_line(innings.bowler_id)
            this_over = [b.label for b in innings.ledger.current_over_balls(innings.current_over)]
            last_ball = innings.ledger.last.to_dict() if innings.ledger.last else None
            free_hit = innings.next_ball_is_free_hit(self.settings.free_hit_enabled)

        return {
            "match_id": self.match_id,
            "match_status": self.status.value,
            "toss": self.toss.to_dict() if self.toss else None,
            "current_innings": self.current_innings_key,
            "score": score,
            "batsmen": batsmen,
            "bowler": bowler,
            "this_over": this_over,
            "last_ball": last_ball,
            "free_hit": free_hit,
            "result": self.result.to_dict() if self.result else None,
        }

    def _dismissal_text(self, innings: InningsState, player_id: str) -> str:
        perf = self.performances[player_id]
        if not perf.is_out:
            return "not out"
        ball = next((b for b in innings.ledger if b.batsman_out_id == player_id), None)
        if ball is None:
            return "out"
        bowler = self.player_name(ball.bowler_id)
        fielder = self.player_name(ball.fielder_id)
        kind = ball.dismissal_type
        if kind is None:
            return f"b {bowler}"
        if kind == DismissalType.CAUGHT:
            return f"c {fielder} b {bowler}" if fielder else f"c ? b {bowler}"
        if kind == DismissalType.CAUGHT_AND_BOWLED:
            return f"c & b {bowler}"
        if kind == DismissalType.STUMPED:
            return f"st {fielder} b {bowler}" if fielder else f"st b {bowler}"
        if kind == DismissalType.LBW:
            return f"lbw b {bowler}"
        if kind == DismissalType.BOWLED:
            return f"b {bowler}"
        if kind == DismissalType.HIT_WICKET:
            return f"hit wicket b {bowler}"
        if kind == DismissalType.RUN_OUT:
            return f"run out ({fielder})" if fielder else "run out"
        return kind.value.replace("_", " ")

    def _innings_card(self, innings: Optional[InningsState]) -> Optional[dict]:
        if innings is None:
            return None
        batting_team = self.team(innings.batting_team)
        bowling_team = self.team(innings.bowling_team)

        batted = sorted(
            (p for p in batting_team.players if self.performances[p.id].has_batted),
            key=lambda p: self.performances[p.id].batting_position,
        )
        bowled = [
            p for p in bowling_team.players
            if any(b.bowler_id == p.id for b in innings.ledger)
        ]
        return {
            "innings": innings.number,
            "status": innings.status.value,
            "batting_team": batting_team.name,
            "bowling_team": bowling_team.name,
            "runs": innings.total_runs,
            "wickets": innings.total_wickets,
            "overs": innings.overs_display,
            "run_rate": innings.run_rate,
            "target": innings.target,
            "extras": {
                "wides": innings.extras.wides,
                "no_balls": innings.extras.no_balls,
                "byes": innings.extras.byes,
                "leg_byes": innings.extras.leg_byes,
                "total": innings.extras.total,
            },
            "batting": [
                {**self._batter_line(p.id), "dismissal": self._dismissal_text(innings, p.id)}
                for p in batted
            ],
            "yet_to_bat": [p.name for p in batting_team.players if not self.performances[p.id].has_batted],
            "bowling": [self._bowler_line(p.id) for p in bowled],
            "fall_of_wickets": [
                {
                    "wicket_number": fow.wicket_number,
                    "runs": fow.runs,
                    "overs": fow.overs_display,
                    "batsman": self.player_name(fow.batsman_id),
                }
                for fow in innings.fall_of_wickets
            ],
        }

    def scorecard(self) -> dict:
        return {
            "match_id": self.match_id,
            "match_status": self.status.value,
            "team_a": self.team_a.name,
            "team_b": self.team_b.name,
            "settings": {
                "overs": self.settings.overs,
                "players_per_team": self.settings.players_per_team,
                "wide_runs": self.settings.wide_runs,
                "no_ball_runs": self.settings.no_ball_runs,
                "free_hit_enabled": self.settings.free_hit_enabled,
            },
            "toss": self.toss.to_dict() if self.toss else None,
            "innings": [card for card in (self._innings_card(self.innings1), self._innings_card(self.innings2)) if card],
            "result": self.result.to_dict() if self.result else None,
        }

    def __repr__(self):
        return f"<MatchEngine {self.team_a.name} vs {self.team_b.name} ({self.status.value})>"
