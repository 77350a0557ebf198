"""
Maps a MatchEngine to and from its SQLAlchemy rows.

The engine is rebuilt from the database at the start of every scoring call
and written back before commit. Balls and fall-of-wicket entries only ever
change at the tail, so saving reconciles the tail instead of rewriting the
whole ledger.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from boxcricket.engine.innings import Extras, FallOfWicket, InningsState
from boxcricket.engine.ledger import Ball, BallLedger
from boxcricket.engine.match_engine import MatchEngine, MatchResult, Toss
from boxcricket.engine.performance import PlayerPerformance
from boxcricket.engine.roster import MatchSettings, PlayerRef, TeamSheet
from boxcricket.errors import ConflictError, NotFoundError
from boxcricket.models.match import (
    BallEvent, FallOfWicket as FallOfWicketRow, Innings, Match, MatchPlayer,
    MatchStatus, PlayerPerformance as PerformanceRow, TeamSide,
)

logger = logging.getLogger(__name__)


def _ball_from_row(row: BallEvent) -> Ball:
    return Ball(
        over_number=row.over_number,
        ball_number=row.ball_number,
        bowler_id=row.bowler_ref,
        striker_id=row.batsman_ref,
        non_striker_id=row.non_striker_ref,
        outcome=row.outcome,
        batsman_runs=row.batsman_runs,
        extra_runs=row.extra_runs,
        total_runs=row.total_runs,
        is_legal_delivery=row.is_legal_delivery,
        is_boundary=row.is_boundary,
        is_free_hit=row.is_free_hit,
        is_wicket=row.is_wicket,
        dismissal_type=row.dismissal_type,
        batsman_out_id=row.batsman_out_ref,
        fielder_id=row.fielder_ref,
        commentary=row.commentary,
        timestamp=row.timestamp,
    )


def _ball_to_row(ball: Ball, sequence: int) -> BallEvent:
    return BallEvent(
        sequence=sequence,
        over_number=ball.over_number,
        ball_number=ball.ball_number,
        bowler_ref=ball.bowler_id,
        batsman_ref=ball.striker_id,
        non_striker_ref=ball.non_striker_id,
        outcome=ball.outcome,
        batsman_runs=ball.batsman_runs,
        extra_runs=ball.extra_runs,
        total_runs=ball.total_runs,
        is_legal_delivery=ball.is_legal_delivery,
        is_boundary=ball.is_boundary,
        is_free_hit=ball.is_free_hit,
        is_wicket=ball.is_wicket,
        dismissal_type=ball.dismissal_type,
        batsman_out_ref=ball.batsman_out_id,
        fielder_ref=ball.fielder_id,
        commentary=ball.commentary,
        timestamp=ball.timestamp,
    )


def _same_ball(row: BallEvent, ball: Ball) -> bool:
    return (
        row.over_number == ball.over_number
        and row.ball_number == ball.ball_number
        and row.outcome == ball.outcome
        and row.total_runs == ball.total_runs
        and row.timestamp == ball.timestamp
    )


def _same_wicket(row: FallOfWicketRow, fow: FallOfWicket) -> bool:
    return (
        row.wicket_number == fow.wicket_number
        and row.runs == fow.runs
        and row.batsman_ref == fow.batsman_id
    )


class MatchStore:
    """Loads and saves whole matches inside the caller's session"""

    def __init__(self, db: Session):
        self.db = db

    def get_row(self, match_id: int) -> Match:
        row = self.db.get(Match, match_id)
        if row is None:
            raise NotFoundError(f"Match {match_id} not found")
        return row

    def list_rows(self, status: Optional[MatchStatus] = None, limit: int = 20, offset: int = 0):
        query = self.db.query(Match)
        if status is not None:
            query = query.filter(Match.status == status)
        total = query.count()
        rows = query.order_by(Match.created_at.desc(), Match.id.desc()).offset(offset).limit(limit).all()
        return rows, total

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def add(self, engine: MatchEngine) -> int:
        """Insert a new match and return its id"""
        row = Match(version=1)
        self._write_header(row, engine)

        for side, team in ((TeamSide.TEAM_A, engine.team_a), (TeamSide.TEAM_B, engine.team_b)):
            for position, player in enumerate(team.players, start=1):
                row.players.append(MatchPlayer(
                    team=side,
                    position=position,
                    player_ref=player.id,
                    name=player.name,
                    is_guest=player.is_guest,
                    is_captain=player.is_captain,
                ))

        for perf in engine.performances.values():
            perf_row = PerformanceRow(player_ref=perf.player_id, team=perf.team)
            self._write_performance(perf_row, perf)
            row.performances.append(perf_row)

        self.db.add(row)
        self.db.flush()

        engine.match_id = row.id
        engine.version = row.version
        for event in engine.events:
            event.match_id = row.id
        logger.info("Created match %s: %s vs %s", row.id, row.team_a_name, row.team_b_name)
        return row.id

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load(self, match_id: int) -> MatchEngine:
        row = self.get_row(match_id)

        settings = MatchSettings(
            overs=row.overs,
            players_per_team=row.players_per_team,
            wide_runs=row.wide_runs,
            no_ball_runs=row.no_ball_runs,
            free_hit_enabled=row.free_hit_enabled,
        )
        team_a = TeamSheet(name=row.team_a_name)
        team_b = TeamSheet(name=row.team_b_name)
        for player in row.players:
            team = team_a if player.team == TeamSide.TEAM_A else team_b
            team.players.append(PlayerRef(
                id=player.player_ref,
                name=player.name,
                is_guest=player.is_guest,
                is_captain=player.is_captain,
            ))

        engine = MatchEngine(
            settings, team_a, team_b,
            umpire_id=row.umpire_ref,
            host_id=row.host_ref,
            match_id=row.id,
        )
        engine.version = row.version
        engine.status = row.status
        engine.current_innings_key = row.current_innings
        engine.start_time = row.start_time
        engine.end_time = row.end_time

        if row.toss_winner is not None:
            engine.toss = Toss(
                winner=row.toss_winner,
                decision=row.toss_decision,
                conducted_at=row.toss_conducted_at,
            )
        if row.result_type is not None:
            engine.result = MatchResult(
                result_type=row.result_type,
                winner=row.result_winner,
                margin_runs=row.win_margin_runs,
                margin_wickets=row.win_margin_wickets,
                text=row.result_text or "",
            )

        for innings_row in row.innings:
            innings = self._innings_from_row(innings_row)
            if innings.number == 1:
                engine.innings1 = innings
            else:
                engine.innings2 = innings

        for perf_row in row.performances:
            engine.performances[perf_row.player_ref] = PlayerPerformance(
                player_id=perf_row.player_ref,
                team=perf_row.team,
                runs=perf_row.runs,
                balls_faced=perf_row.balls_faced,
                fours=perf_row.fours,
                sixes=perf_row.sixes,
                is_out=perf_row.is_out,
                dismissal_type=perf_row.dismissal_type,
                dismissed_by=perf_row.dismissed_by_ref,
                batting_position=perf_row.batting_position,
                balls_bowled=perf_row.balls_bowled,
                runs_conceded=perf_row.runs_conceded,
                wickets=perf_row.wickets,
                wides=perf_row.wides,
                no_balls=perf_row.no_balls,
                catches=perf_row.catches,
                run_outs=perf_row.run_outs,
                stumpings=perf_row.stumpings,
            )
        return engine

    def _innings_from_row(self, row: Innings) -> InningsState:
        return InningsState(
            number=row.innings_number,
            batting_team=row.batting_team,
            bowling_team=row.bowling_team,
            status=row.status,
            total_runs=row.total_runs,
            total_wickets=row.total_wickets,
            total_overs=row.total_overs,
            total_balls=row.total_balls,
            extras=Extras(wides=row.wides, no_balls=row.no_balls, byes=row.byes, leg_byes=row.leg_byes),
            current_over=row.current_over,
            current_ball=row.current_ball,
            striker_id=row.striker_ref,
            non_striker_id=row.non_striker_ref,
            bowler_id=row.bowler_ref,
            ledger=BallLedger([_ball_from_row(b) for b in row.ball_events]),
            fall_of_wickets=[
                FallOfWicket(
                    wicket_number=fow.wicket_number,
                    runs=fow.runs,
                    over_number=fow.over_number,
                    ball_number=fow.ball_number,
                    batsman_id=fow.batsman_ref,
                )
                for fow in row.fall_of_wickets
            ],
            run_rate=row.run_rate,
            target=row.target,
            start_time=row.start_time,
            end_time=row.end_time,
        )

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save(self, engine: MatchEngine) -> None:
        """
        Write the engine back to its rows and flush.

        The version column guards the UPDATE, so a match saved by someone
        else since it was loaded fails the flush with StaleDataError.
        """
        row = self.get_row(engine.match_id)
        # Only catches an engine older than a row this same session already
        # saved; across sessions the version column does the work
        if row.version != engine.version:
            raise ConflictError()

        row.version = engine.version + 1
        self._write_header(row, engine)

        for innings in (engine.innings1, engine.innings2):
            if innings is None:
                continue
            innings_row = next((i for i in row.innings if i.innings_number == innings.number), None)
            if innings_row is None:
                innings_row = Innings(innings_number=innings.number)
                row.innings.append(innings_row)
            self._write_innings(innings_row, innings)

        rows_by_ref = {p.player_ref: p for p in row.performances}
        for perf in engine.performances.values():
            self._write_performance(rows_by_ref[perf.player_id], perf)

        self.db.flush()
        engine.version = row.version

    def _write_header(self, row: Match, engine: MatchEngine) -> None:
        row.status = engine.status
        row.overs = engine.settings.overs
        row.players_per_team = engine.settings.players_per_team
        row.wide_runs = engine.settings.wide_runs
        row.no_ball_runs = engine.settings.no_ball_runs
        row.free_hit_enabled = engine.settings.free_hit_enabled
        row.team_a_name = engine.team_a.name
        row.team_b_name = engine.team_b.name
        row.umpire_ref = engine.umpire_id
        row.host_ref = engine.host_id
        row.current_innings = engine.current_innings_key
        row.start_time = engine.start_time
        row.end_time = engine.end_time

        toss = engine.toss
        row.toss_winner = toss.winner if toss else None
        row.toss_decision = toss.decision if toss else None
        row.toss_conducted_at = toss.conducted_at if toss else None

        result = engine.result
        row.result_type = result.result_type if result else None
        row.result_winner = result.winner if result else None
        row.win_margin_runs = result.margin_runs if result else None
        row.win_margin_wickets = result.margin_wickets if result else None
        row.result_text = result.text if result else None

    def _write_innings(self, row: Innings, innings: InningsState) -> None:
        row.batting_team = innings.batting_team
        row.bowling_team = innings.bowling_team
        row.status = innings.status
        row.total_runs = innings.total_runs
        row.total_wickets = innings.total_wickets
        row.total_overs = innings.total_overs
        row.total_balls = innings.total_balls
        row.wides = innings.extras.wides
        row.no_balls = innings.extras.no_balls
        row.byes = innings.extras.byes
        row.leg_byes = innings.extras.leg_byes
        row.current_over = innings.current_over
        row.current_ball = innings.current_ball
        row.striker_ref = innings.striker_id
        row.non_striker_ref = innings.non_striker_id
        row.bowler_ref = innings.bowler_id
        row.run_rate = innings.run_rate
        row.target = innings.target
        row.start_time = innings.start_time
        row.end_time = innings.end_time

        balls = list(innings.ledger)
        kept = 0
        while kept < min(len(row.ball_events), len(balls)) and _same_ball(row.ball_events[kept], balls[kept]):
            kept += 1
        wickets = innings.fall_of_wickets
        kept_wickets = 0
        while (
            kept_wickets < min(len(row.fall_of_wickets), len(wickets))
            and _same_wicket(row.fall_of_wickets[kept_wickets], wickets[kept_wickets])
        ):
            kept_wickets += 1

        removed = len(row.ball_events) - kept
        if removed or len(row.fall_of_wickets) > kept_wickets:
            del row.ball_events[kept:]
            del row.fall_of_wickets[kept_wickets:]
            # Undone rows must be gone before a replacement reuses their sequence
            self.db.flush()

        for sequence in range(kept, len(balls)):
            row.ball_events.append(_ball_to_row(balls[sequence], sequence))
        for fow in wickets[kept_wickets:]:
            row.fall_of_wickets.append(FallOfWicketRow(
                wicket_number=fow.wicket_number,
                runs=fow.runs,
                over_number=fow.over_number,
                ball_number=fow.ball_number,
                batsman_ref=fow.batsman_id,
            ))

    def _write_performance(self, row: PerformanceRow, perf: PlayerPerformance) -> None:
        row.runs = perf.runs
        row.balls_faced = perf.balls_faced
        row.fours = perf.fours
        row.sixes = perf.sixes
        row.is_out = perf.is_out
        row.dismissal_type = perf.dismissal_type
        row.dismissed_by_ref = perf.dismissed_by
        row.batting_position = perf.batting_position
        row.balls_bowled = perf.balls_bowled
        row.runs_conceded = perf.runs_conceded
        row.wickets = perf.wickets
        row.wides = perf.wides
        row.no_balls = perf.no_balls
        row.catches = perf.catches
        row.run_outs = perf.run_outs
        row.stumpings = perf.stumpings
