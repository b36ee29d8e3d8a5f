"""
Teams: creation, coach and curriculum assignment, rosters.

Creating, editing and deleting teams and removing players from them is
owner/admin work. Coaches read the teams they coach and their rosters.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.exceptions import AuthorizationError, NotFoundError, ValidationError
from models import Curriculum, Player, Team, User
from schemas import TeamCreate, TeamUpdate
from services.authorization import (
    Action,
    Principal,
    Role,
    Scope,
    authorize,
    ensure_allowed,
    scope_for,
)
from services.players import player_view
from services.tenancy import get_team, require_company_id, team_target

logger = logging.getLogger(__name__)

# A new team needs a real coach; an existing one may be handed to staff
CREATE_COACH_ROLES: FrozenSet[str] = frozenset({Role.coach.value})
ASSIGN_COACH_ROLES: FrozenSet[str] = frozenset({Role.coach.value, Role.admin.value, Role.owner.value})


def team_view(team: Team, player_count: int = 0) -> Dict[str, Any]:
    return {
        "id": team.id,
        "name": team.name,
        "description": team.description,
        "age_group": team.age_group,
        "curriculum_id": team.curriculum_id,
        "coach_id": team.coach_id,
        "coach_name": team.coach.name if team.coach else None,
        "player_count": player_count,
        "created_at": team.created_at,
    }


def _player_count(db: Session, team_id: UUID) -> int:
    return db.query(func.count(Player.id)).filter(Player.team_id == team_id).scalar() or 0


def list_teams(db: Session, principal: Principal) -> List[Dict[str, Any]]:
    scope = scope_for(principal, Action.view_teams)
    if scope is None:
        ensure_allowed(principal, Action.view_teams, error_code="ACCESS_DENIED")

    company_id = require_company_id(principal)
    query = db.query(Team).filter(Team.company_id == company_id)
    if scope is Scope.coached:
        query = query.filter(Team.coach_id == principal.user_id)
    teams = [
        t for t in query.order_by(Team.created_at.desc()).all()
        if authorize(principal, Action.view_teams, team_target(t))
    ]

    counts = dict(
        db.query(Player.team_id, func.count(Player.id))
        .filter(Player.team_id.in_([t.id for t in teams]))
        .group_by(Player.team_id)
        .all()
    ) if teams else {}

    return [team_view(t, counts.get(t.id, 0)) for t in teams]


def _resolve_coach(db: Session, company_id: UUID, coach_id: UUID, roles: FrozenSet[str]) -> User:
    coach = db.query(User).filter(User.id == coach_id).first()
    if coach is None:
        raise NotFoundError("Coach", error_code="COACH_NOT_FOUND")
    if coach.company_id != company_id:
        raise AuthorizationError(error_code="COACH_NOT_IN_COMPANY")
    if coach.role not in roles:
        raise ValidationError("Selected user cannot coach a team", error_code="INVALID_COACH")
    return coach


def _resolve_curriculum(db: Session, company_id: UUID, curriculum_id: UUID) -> Curriculum:
    curriculum = (
        db.query(Curriculum)
        .filter(Curriculum.id == curriculum_id, Curriculum.company_id == company_id)
        .first()
    )
    if curriculum is None:
        raise NotFoundError("Curriculum", error_code="CURRICULUM_NOT_FOUND")
    return curriculum


def _clean_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Team name cannot be empty", details={"name": "empty"})
    return name


def create_team(db: Session, principal: Principal, payload: TeamCreate) -> Dict[str, Any]:
    company_id = require_company_id(principal)
    ensure_allowed(principal, Action.edit_teams, error_code="ACCESS_DENIED")

    team = Team(
        company_id=company_id,
        name=_clean_name(payload.name),
        description=payload.description,
        age_group=payload.age_group,
    )
    if payload.coach_id is not None:
        team.coach_id = _resolve_coach(db, company_id, payload.coach_id, CREATE_COACH_ROLES).id
    if payload.curriculum_id is not None:
        team.curriculum_id = _resolve_curriculum(db, company_id, payload.curriculum_id).id

    db.add(team)
    db.commit()
    logger.info(f"Team {team.id} created in company {company_id} by {principal.user_id}")
    return team_view(team)


def update_team(db: Session, principal: Principal, team_id: UUID, payload: TeamUpdate) -> Dict[str, Any]:
    """
    Partial update. An explicit null ``coachId`` or ``curriculumId`` clears
    the assignment; omitted fields are left untouched.
    """
    team = get_team(db, team_id)
    ensure_allowed(principal, Action.edit_teams, team_target(team), error_code="ACCESS_DENIED")

    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update", error_code="NO_FIELDS")

    if "name" in changes:
        team.name = _clean_name(changes["name"])
    if "description" in changes:
        team.description = changes["description"]
    if "age_group" in changes:
        team.age_group = changes["age_group"]
    if "coach_id" in changes:
        coach_id = changes["coach_id"]
        team.coach_id = (
            _resolve_coach(db, team.company_id, coach_id, ASSIGN_COACH_ROLES).id
            if coach_id is not None
            else None
        )
    if "curriculum_id" in changes:
        curriculum_id = changes["curriculum_id"]
        team.curriculum_id = (
            _resolve_curriculum(db, team.company_id, curriculum_id).id
            if curriculum_id is not None
            else None
        )

    db.commit()
    db.refresh(team)
    return team_view(team, _player_count(db, team.id))


def delete_team(db: Session, principal: Principal, team_id: UUID) -> None:
    """Delete a team; its players and evaluation cycles go with it."""
    team = get_team(db, team_id)
    ensure_allowed(principal, Action.edit_teams, team_target(team), error_code="ACCESS_DENIED")
    db.delete(team)
    db.commit()
    logger.info(f"Team {team_id} deleted by {principal.user_id}")


def list_roster(db: Session, principal: Principal, team_id: UUID) -> List[Dict[str, Any]]:
    """Players of one team, ordered by last name, then first name."""
    team = get_team(db, team_id)
    ensure_allowed(principal, Action.view_teams, team_target(team), error_code="ACCESS_DENIED")
    players = (
        db.query(Player)
        .filter(Player.team_id == team.id)
        .order_by(Player.last_name, Player.first_name)
        .all()
    )
    return [player_view(p) for p in players]


def remove_player(db: Session, principal: Principal, team_id: UUID, player_id: UUID) -> None:
    """Delete a player row. The supervising account is kept."""
    team = get_team(db, team_id)
    ensure_allowed(principal, Action.edit_teams, team_target(team), error_code="ACCESS_DENIED")
    player = (
        db.query(Player)
        .filter(Player.id == player_id, Player.team_id == team.id)
        .first()
    )
    if player is None:
        raise NotFoundError("Player", error_code="PLAYER_NOT_FOUND")
    db.delete(player)
    db.commit()
    logger.info(f"Player {player_id} removed from team {team_id} by {principal.user_id}")
