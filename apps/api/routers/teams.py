"""
Team API endpoints.

Team management, rosters, evaluation cycles, leaderboards and the latest
evaluation of a player.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.auth import get_current_principal
from core.database import get_db
from schemas import (
    EvaluationDetail,
    EvaluationSummary,
    LatestEvaluationResponse,
    LeaderboardResponse,
    MessageResponse,
    PlayerCreate,
    PlayerResponse,
    TeamCreate,
    TeamResponse,
    TeamUpdate,
)
from services import evaluations, leaderboards, players, teams
from services.authorization import Principal

router = APIRouter(prefix="/v1/teams", tags=["teams"])


@router.get("", response_model=List[TeamResponse])
def list_teams(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    """Every team in the company for owner/admin; coached teams for a coach."""
    return teams.list_teams(db, principal)


@router.post("", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
def create_team(
    payload: TeamCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return teams.create_team(db, principal, payload)


@router.put("/{team_id}", response_model=TeamResponse)
def update_team(
    team_id: UUID,
    payload: TeamUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return teams.update_team(db, principal, team_id, payload)


@router.delete("/{team_id}", response_model=MessageResponse)
def delete_team(
    team_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    teams.delete_team(db, principal, team_id)
    return MessageResponse(message="Team deleted")


@router.get("/{team_id}/players", response_model=List[PlayerResponse])
def list_roster(
    team_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return teams.list_roster(db, principal, team_id)


@router.post("/{team_id}/players", response_model=PlayerResponse, status_code=status.HTTP_201_CREATED)
def add_player(
    team_id: UUID,
    payload: PlayerCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    player = players.add_player(db, principal, team_id, payload)
    return players.player_view(player)


@router.delete("/{team_id}/players/{player_id}", response_model=MessageResponse)
def remove_player(
    team_id: UUID,
    player_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Delete the player record. The supervising account stays."""
    teams.remove_player(db, principal, team_id, player_id)
    return MessageResponse(message="Player removed")


@router.get("/{team_id}/evaluations", response_model=List[EvaluationSummary])
def list_evaluations(
    team_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return evaluations.list_team_evaluations(db, principal, team_id)


@router.get("/{team_id}/evaluations/{evaluation_id}", response_model=EvaluationDetail)
def get_evaluation(
    team_id: UUID,
    evaluation_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return evaluations.get_team_evaluation(db, principal, team_id, evaluation_id)


@router.get("/{team_id}/leaderboards", response_model=LeaderboardResponse)
def get_leaderboards(
    team_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return leaderboards.team_leaderboards(db, principal, team_id)


@router.get(
    "/{team_id}/players/{player_id}/latest-evaluation",
    response_model=LatestEvaluationResponse,
)
def latest_evaluation(
    team_id: UUID,
    player_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Latest evaluation of a player in a team with test scores, overall
    scores, DNA, cluster and attempt summaries. ``playerEvaluation`` is
    null when the player has not been evaluated.
    """
    return evaluations.latest_evaluation(db, principal, team_id, player_id)
