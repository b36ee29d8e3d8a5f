"""
Players, scoped by role.

Each listing narrows its query to the caller's scope and then passes every
row through the guard, so a row is listed exactly when it could be fetched
on its own.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from core.database import atomic
from core.exceptions import ConflictError, ValidationError
from core.security import generate_password, get_password_hash
from models import Player, Team, User
from schemas import PlayerCreate, PlayerUpdate
from services.authorization import (
    Action,
    Principal,
    Role,
    Scope,
    authorize,
    ensure_allowed,
    scope_for,
)
from services.email_service import email_service
from services.tenancy import (
    compute_age,
    get_player,
    get_team,
    normalize_email,
    player_target,
    require_company_id,
    team_target,
)

logger = logging.getLogger(__name__)


def player_view(player: Player, today: Optional[date] = None) -> Dict[str, Any]:
    team = player.team
    coach = team.coach if team else None
    return {
        "id": player.id,
        "team_id": player.team_id,
        "team_name": team.name if team else None,
        "parent_user_id": player.parent_user_id,
        "first_name": player.first_name,
        "last_name": player.last_name,
        "full_name": f"{player.first_name} {player.last_name}",
        "dob": player.dob,
        "age": compute_age(player.dob, today),
        "age_group": player.age_group,
        "gender": player.gender,
        "dominant_foot": player.dominant_foot,
        "notes": player.notes,
        "self_supervised": bool(player.self_supervised),
        "coach_id": team.coach_id if team else None,
        "coach_name": coach.name if coach else None,
        "created_at": player.created_at,
    }


def list_players(db: Session, principal: Principal) -> List[Player]:
    """
    Players visible to the principal: the whole tenant for owner/admin,
    coached teams for a coach, supervised players for parent/player.
    Ordered by last name, then first name.
    """
    scope = scope_for(principal, Action.view_players)
    if scope is None:
        ensure_allowed(principal, Action.view_players, error_code="ACCESS_DENIED")

    query = db.query(Player).join(Team, Player.team_id == Team.id)
    if scope is Scope.supervised:
        query = query.filter(Player.parent_user_id == principal.user_id)
    else:
        query = query.filter(Team.company_id == require_company_id(principal))
        if scope is Scope.coached:
            query = query.filter(Team.coach_id == principal.user_id)

    rows = query.order_by(Player.last_name, Player.first_name).all()
    return [p for p in rows if authorize(principal, Action.view_players, player_target(p))]


def get_player_for(db: Session, principal: Principal, player_id: UUID) -> Player:
    player = get_player(db, player_id)
    ensure_allowed(principal, Action.view_players, player_target(player), error_code="ACCESS_DENIED")
    return player


def add_player(db: Session, principal: Principal, team_id: UUID, payload: PlayerCreate) -> Player:
    """
    Create a player on a team with its supervising account.

    The supervising account is found by email or created (role parent, or
    player when self-supervised) with a generated password. It must belong
    to the team's company.
    """
    team = get_team(db, team_id)
    ensure_allowed(principal, Action.manage_teams, team_target(team), error_code="ACCESS_DENIED")

    role = Role.player.value if payload.self_supervised else Role.parent.value
    email = normalize_email(payload.supervisor_email)
    supervisor = db.query(User).filter(User.email == email).first()
    if supervisor is not None:
        if supervisor.company_id != team.company_id:
            raise ConflictError("Account belongs to another company", error_code="EMAIL_IN_USE")
        if supervisor.role not in (Role.parent.value, Role.player.value):
            raise ValidationError(
                "Supervising account must be a parent or player",
                error_code="INVALID_SUPERVISOR",
            )

    password = None
    with atomic(db):
        if supervisor is None:
            password = generate_password()
            supervisor = User(
                email=email,
                name=payload.supervisor_name.strip(),
                password_hash=get_password_hash(password),
                role=role,
                company_id=team.company_id,
                email_verified=True,
                onboarded=False,
            )
            db.add(supervisor)
            db.flush()

        player = Player(
            team_id=team.id,
            parent_user_id=supervisor.id,
            first_name=payload.first_name.strip(),
            last_name=payload.last_name.strip(),
            dob=payload.dob,
            age_group=payload.age_group,
            gender=payload.gender,
            dominant_foot=payload.dominant_foot,
            notes=payload.notes,
            self_supervised=payload.self_supervised,
        )
        db.add(player)
        db.flush()

    player_name = f"{player.first_name} {player.last_name}"
    if not email_service.send_player_invitation(
        supervisor.email, supervisor.name, player_name, team.name, password
    ):
        logger.warning(f"Player invitation to {supervisor.email} failed")

    logger.info(f"Player {player.id} added to team {team.id}")
    return player


def update_player(db: Session, principal: Principal, player_id: UUID, payload: PlayerUpdate) -> Player:
    player = get_player(db, player_id)
    ensure_allowed(principal, Action.edit_player, player_target(player), error_code="ACCESS_DENIED")

    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update", error_code="NO_FIELDS")
    for field in ("first_name", "last_name"):
        if field in changes:
            value = (changes[field] or "").strip()
            if not value:
                raise ValidationError(f"{field} cannot be empty")
            changes[field] = value

    for field, value in changes.items():
        setattr(player, field, value)
    db.commit()
    return player
