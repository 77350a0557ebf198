"""
Scoring service - the single entry point for mutating a match.

Every mutating call runs one load -> authorize -> mutate -> save -> commit
cycle while holding the match's lock. Events raised by the engine are only
published once the commit has gone through.
"""
import logging
import threading
import weakref
from dataclasses import asdict
from typing import Callable, Optional, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from boxcricket.config import settings as app_settings
from boxcricket.database import SessionLocal
from boxcricket.engine.innings import WicketInfo
from boxcricket.engine.match_engine import MatchEngine
from boxcricket.engine.roster import MatchSettings, TeamSheet
from boxcricket.errors import AuthorizationError, ConflictError, ValidationError
from boxcricket.models.match import DismissalType, Match, MatchStatus
from boxcricket.services.broadcaster import Broadcaster, broadcaster
from boxcricket.services.match_store import MatchStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (match, caller_ref) -> may this caller score this match right now
AuthorizationPolicy = Callable[[MatchEngine, Optional[str]], bool]


def umpire_or_host(match: MatchEngine, caller_ref: Optional[str]) -> bool:
    """Default policy: the appointed umpire and the match host may score"""
    if caller_ref is None:
        return False
    return caller_ref in (match.umpire_id, match.host_id)


def host_only(match: MatchEngine, caller_ref: Optional[str]) -> bool:
    """Default force-end policy: only the host may abandon or cancel a match"""
    return caller_ref is not None and caller_ref == match.host_id


def wicket_from_dict(data: Optional[dict]) -> Optional[WicketInfo]:
    if data is None:
        return None
    dismissal_type = data.get("dismissal_type")
    if dismissal_type is not None:
        try:
            dismissal_type = DismissalType(dismissal_type)
        except ValueError:
            raise ValidationError(f"Unknown dismissal type: {dismissal_type}")
    return WicketInfo(
        dismissal_type=dismissal_type,
        batsman_out_id=data.get("batsman_out_id"),
        fielder_id=data.get("fielder_id"),
    )


def match_summary(engine: MatchEngine) -> dict:
    return {
        "id": engine.match_id,
        "status": engine.status.value,
        "team_a": {"name": engine.team_a.name, "players": [asdict(p) for p in engine.team_a.players]},
        "team_b": {"name": engine.team_b.name, "players": [asdict(p) for p in engine.team_b.players]},
        "settings": {
            "overs": engine.settings.overs,
            "players_per_team": engine.settings.players_per_team,
            "wide_runs": engine.settings.wide_runs,
            "no_ball_runs": engine.settings.no_ball_runs,
            "free_hit_enabled": engine.settings.free_hit_enabled,
        },
        "umpire_ref": engine.umpire_id,
        "host_ref": engine.host_id,
        "toss": engine.toss.to_dict() if engine.toss else None,
        "current_innings": engine.current_innings_key,
        "result": engine.result.to_dict() if engine.result else None,
    }


def _row_summary(row: Match) -> dict:
    return {
        "id": row.id,
        "status": row.status.value,
        "team_a": row.team_a_name,
        "team_b": row.team_b_name,
        "overs": row.overs,
        "players_per_team": row.players_per_team,
        "current_innings": row.current_innings,
        "result_text": row.result_text,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


class ScoringService:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        policy: AuthorizationPolicy = umpire_or_host,
        end_policy: AuthorizationPolicy = host_only,
        publisher: Broadcaster = broadcaster,
        max_retries: int = app_settings.SCORING_MAX_RETRIES,
    ):
        self.session_factory = session_factory
        self.policy = policy
        self.end_policy = end_policy
        self.publisher = publisher
        self.max_retries = max_retries
        # Entries vanish once no call holds the lock
        self._locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, match_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(match_id)
            if lock is None:
                lock = self._locks[match_id] = threading.Lock()
            return lock

    def _mutate(
        self,
        match_id: int,
        caller_ref: Optional[str],
        operation: str,
        action: Callable[[MatchEngine], T],
        policy: Optional[AuthorizationPolicy] = None,
    ) -> T:
        """Run `action` against a freshly loaded match and commit it, or leave nothing behind"""
        with self._lock_for(match_id):
            attempt = 0
            while True:
                attempt += 1
                db = self.session_factory()
                try:
                    store = MatchStore(db)
                    engine = store.load(match_id)
                    if not (policy or self.policy)(engine, caller_ref):
                        logger.warning("Refused %s on match %s for %s", operation, match_id, caller_ref)
                        raise AuthorizationError()
                    result = action(engine)
                    store.save(engine)
                    db.commit()
                except (StaleDataError, ConflictError):
                    db.rollback()
                    logger.warning(
                        "Version conflict on match %s during %s (attempt %s/%s)",
                        match_id, operation, attempt, self.max_retries,
                    )
                    if attempt >= self.max_retries:
                        raise ConflictError()
                    continue
                except Exception:
                    db.rollback()
                    raise
                finally:
                    db.close()

                innings = engine.current_innings
                if innings is not None:
                    logger.info(
                        "Match %s %s: %s/%s (%s) [%s]",
                        match_id, operation, innings.total_runs, innings.total_wickets,
                        innings.overs_display, engine.status.value,
                    )
                else:
                    logger.info("Match %s %s [%s]", match_id, operation, engine.status.value)
                try:
                    self.publisher.publish_all(engine.drain_events())
                except Exception:
                    # Already committed; viewers catch up on their next event
                    logger.exception("Publishing events for match %s after %s failed", match_id, operation)
                return result

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def create_match(
        self,
        team_a: TeamSheet,
        team_b: TeamSheet,
        settings: Optional[MatchSettings] = None,
        umpire_ref: Optional[str] = None,
        host_ref: Optional[str] = None,
    ) -> dict:
        """Create a match and open it for the toss. The creator becomes the host."""
        if settings is None:
            settings = MatchSettings(
                overs=app_settings.DEFAULT_OVERS,
                players_per_team=app_settings.DEFAULT_PLAYERS_PER_TEAM,
            )
        engine = MatchEngine(settings, team_a, team_b, umpire_id=umpire_ref, host_id=host_ref)
        engine.open_toss()

        db = self.session_factory()
        try:
            MatchStore(db).add(engine)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        return match_summary(engine)

    def update_settings(self, match_id: int, caller_ref: Optional[str], **changes) -> dict:
        def action(engine: MatchEngine) -> dict:
            engine.update_settings(**changes)
            return match_summary(engine)
        return self._mutate(match_id, caller_ref, "update_settings", action)

    def conduct_toss(self, match_id: int, caller_ref: Optional[str], winner: str, decision: str) -> dict:
        def action(engine: MatchEngine) -> dict:
            engine.conduct_toss(winner, decision)
            return engine.live_score()
        return self._mutate(match_id, caller_ref, "toss", action)

    # ------------------------------------------------------------------
    # Crease
    # ------------------------------------------------------------------

    def set_batsmen(self, match_id: int, caller_ref: Optional[str], striker_id: str, non_striker_id: str) -> dict:
        def action(engine: MatchEngine) -> dict:
            engine.set_batsmen(striker_id, non_striker_id)
            return engine.live_score()
        return self._mutate(match_id, caller_ref, "set_batsmen", action)

    def set_new_batsman(self, match_id: int, caller_ref: Optional[str], batsman_id: str) -> dict:
        def action(engine: MatchEngine) -> dict:
            slot = engine.set_new_batsman(batsman_id)
            return {"slot": slot, "live": engine.live_score()}
        return self._mutate(match_id, caller_ref, "set_new_batsman", action)

    def set_bowler(self, match_id: int, caller_ref: Optional[str], bowler_id: str) -> dict:
        def action(engine: MatchEngine) -> dict:
            engine.set_bowler(bowler_id)
            return engine.live_score()
        return self._mutate(match_id, caller_ref, "set_bowler", action)

    # ------------------------------------------------------------------
    # Deliveries
    # ------------------------------------------------------------------

    def record_ball(
        self,
        match_id: int,
        caller_ref: Optional[str],
        outcome: str,
        runs: int = 0,
        wicket: Optional[dict] = None,
        commentary: Optional[str] = None,
    ) -> dict:
        wicket_info = wicket_from_dict(wicket)

        def action(engine: MatchEngine) -> dict:
            result = engine.apply_ball(outcome, runs, wicket_info, commentary)
            return {
                "ball": result.ball.to_dict(),
                "over_completed": result.over_completed,
                "innings_completed": result.innings_completed,
                "live": engine.live_score(),
            }
        return self._mutate(match_id, caller_ref, "ball", action)

    def undo_last_ball(self, match_id: int, caller_ref: Optional[str]) -> dict:
        def action(engine: MatchEngine) -> dict:
            undone = engine.undo_last_ball()
            return {
                "ball": undone.ball.to_dict(),
                "innings_reopened": undone.innings_reopened,
                "live": engine.live_score(),
            }
        return self._mutate(match_id, caller_ref, "undo", action)

    def start_second_innings(self, match_id: int, caller_ref: Optional[str]) -> dict:
        def action(engine: MatchEngine) -> dict:
            target = engine.start_second_innings()
            return {"target": target, "live": engine.live_score()}
        return self._mutate(match_id, caller_ref, "start_second_innings", action)

    def end_match(
        self,
        match_id: int,
        caller_ref: Optional[str],
        reason: Optional[str] = None,
        cancelled: bool = False,
    ) -> dict:
        def action(engine: MatchEngine) -> dict:
            result = engine.end_match(reason, cancelled=cancelled)
            return {"status": engine.status.value, "result": result.to_dict()}
        return self._mutate(match_id, caller_ref, "end_match", action, policy=self.end_policy)

    # ------------------------------------------------------------------
    # Reads (no lock, snapshot of the last commit)
    # ------------------------------------------------------------------

    def _read(self, match_id: int, view: Callable[[MatchEngine], T]) -> T:
        db = self.session_factory()
        try:
            return view(MatchStore(db).load(match_id))
        finally:
            db.close()

    def get_match(self, match_id: int) -> dict:
        return self._read(match_id, match_summary)

    def get_live_score(self, match_id: int) -> dict:
        return self._read(match_id, lambda engine: engine.live_score())

    def get_scorecard(self, match_id: int) -> dict:
        return self._read(match_id, lambda engine: engine.scorecard())

    def list_matches(self, status: Optional[str] = None, limit: int = 20, offset: int = 0) -> dict:
        if status is not None:
            try:
                status = MatchStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown match status: {status}")
        db = self.session_factory()
        try:
            rows, total = MatchStore(db).list_rows(status, limit, offset)
            return {"matches": [_row_summary(row) for row in rows], "total": total}
        finally:
            db.close()


scoring_service = ScoringService()
