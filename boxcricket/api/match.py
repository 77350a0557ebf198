from fastapi import APIRouter, Depends
from typing import Optional

from boxcricket.auth.utils import get_current_user_ref
from boxcricket.engine.roster import MatchSettings, PlayerRef, TeamSheet
from boxcricket.config import settings as app_settings
from boxcricket.services.scoring_service import ScoringService, scoring_service
from boxcricket.api.schemas import (
    MatchCreateRequest, SettingsUpdateRequest, TossRequest, BatsmenRequest,
    NewBatsmanRequest, BowlerRequest, BallRecordRequest, EndMatchRequest,
    LiveScoreResponse, BallRecordResponse, UndoResponse, NewBatsmanResponse,
    SecondInningsResponse, EndMatchResponse, MatchListResponse, TeamIn,
)

router = APIRouter(prefix="/matches", tags=["Matches"])


def get_scoring_service() -> ScoringService:
    return scoring_service


def _team_sheet(team: TeamIn) -> TeamSheet:
    return TeamSheet(
        name=team.name,
        players=[
            PlayerRef(id=p.id, name=p.name, is_guest=p.is_guest, is_captain=p.is_captain)
            for p in team.players
        ],
    )


# ----------------------------------------------------------------------
# Setup
# ----------------------------------------------------------------------

@router.post("", status_code=201)
def create_match(
    request: MatchCreateRequest,
    caller_ref: str = Depends(get_current_user_ref),
    service: ScoringService = Depends(get_scoring_service),
):
    """Create a match in the toss state; the caller becomes its host"""
    match_settings = MatchSettings(
        overs=request.overs if request.overs is not None else app_settings.DEFAULT_OVERS,
        players_per_team=(
            request.players_per_team if request.players_per_team is not None
            else app_settings.DEFAULT_PLAYERS_PER_TEAM
        ),
        wide_runs=request.wide_runs,
        no_ball_runs=request.no_ball_runs,
        free_hit_enabled=request.free_hit_enabled,
    )
    return service.create_match(
        _team_sheet(request.team_a),
        _team_sheet(request.team_b),
        settings=match_settings,
        umpire_ref=request.umpire_ref,
        host_ref=caller_ref,
    )


@router.get("", response_model=MatchListResponse)
def list_matches(
    status: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
    service: ScoringService = Depends(get_scoring_service),
):
    return service.list_matches(status=status, limit=limit, offset=offset)


@router.get("/{match_id}")
def get_match(match_id: int, service: ScoringService = Depends(get_scoring_service)):
    return service.get_match(match_id)


@router.patch("/{match_id}/settings")
def update_settings(
    match_id: int,
    request: SettingsUpdateRequest,
    caller_ref: str = Depends(get_current_user_ref),
    service: ScoringService = Depends(get_scoring_service),
):
    changes = request.model_dump(exclude_none=True)
    return service.update_settings(match_id, caller_ref, **changes)


@router.post("/{match_id}/toss", response_model=LiveScoreResponse)
def conduct_toss(
    match_id: int,
    request: TossRequest,
    caller_ref: str = Depends(get_current_user_ref),
    service: ScoringService = Depends(get_scoring_service),
):
    return service.conduct_toss(match_id, caller_ref, request.winner, request.decision)


# ----------------------------------------------------------------------
# Crease
# ----------------------------------------------------------------------

@router.post("/{match_id}/batsmen", response_model=LiveScoreResponse)
def set_batsmen(
    match_id: int,
    request: BatsmenRequest,
    caller_ref: str = Depends(get_current_user_ref),
    service: ScoringService = Depends(get_scoring_service),
):
    return service.set_batsmen(match_id, caller_ref, request.striker_id, request.non_striker_id)


@router.post("/{match_id}/new-batsman", response_model=NewBatsmanResponse)
def set_new_batsman(
    match_id: int,
    request: NewBatsmanRequest,
    caller_ref: str = Depends(get_current_user_ref),
    service: ScoringService = Depends(get_scoring_service),
):
    return service.set_new_batsman(match_id, caller_ref, request.batsman_id)


@router.post("/{match_id}/bowler", response_model=LiveScoreResponse)
def set_bowler(
    match_id: int,
    request: BowlerRequest,
    caller_ref: str = Depends(get_current_user_ref),
    service: ScoringService = Depends(get_scoring_service),
):
    return service.set_bowler(match_id, caller_ref, request.bowler_id)


# ----------------------------------------------------------------------
# Deliveries
# ----------------------------------------------------------------------

@router.post("/{match_id}/ball", response_model=BallRecordResponse)
def record_ball(
    match_id: int,
    request: BallRecordRequest,
    caller_ref: str = Depends(get_current_user_ref),
    service: ScoringService = Depends(get_scoring_service),
):
    return service.record_ball(
        match_id,
        caller_ref,
        outcome=request.outcome,
        runs=request.runs,
        wicket=request.wicket.model_dump() if request.wicket else None,
        commentary=request.commentary,
    )


@router.delete("/{match_id}/ball", response_model=UndoResponse)
def undo_last_ball(
    match_id: int,
    caller_ref: str = Depends(get_current_user_ref),
    service: ScoringService = Depends(get_scoring_service),
):
    return service.undo_last_ball(match_id, caller_ref)


@router.post("/{match_id}/innings/second", response_model=SecondInningsResponse)
def start_second_innings(
    match_id: int,
    caller_ref: str = Depends(get_current_user_ref),
    service: ScoringService = Depends(get_scoring_service),
):
    return service.start_second_innings(match_id, caller_ref)


@router.post("/{match_id}/end", response_model=EndMatchResponse)
def end_match(
    match_id: int,
    request: EndMatchRequest,
    caller_ref: str = Depends(get_current_user_ref),
    service: ScoringService = Depends(get_scoring_service),
):
    return service.end_match(match_id, caller_ref, reason=request.reason, cancelled=request.cancelled)


# ----------------------------------------------------------------------
# Read models
# ----------------------------------------------------------------------

@router.get("/{match_id}/live", response_model=LiveScoreResponse)
def get_live_score(match_id: int, service: ScoringService = Depends(get_scoring_service)):
    return service.get_live_score(match_id)


@router.get("/{match_id}/scorecard")
def get_scorecard(match_id: int, service: ScoringService = Depends(get_scoring_service)):
    return service.get_scorecard(match_id)
