"""
Tenant graph helpers.

Company → teams → players, with users attached to a company through
``company_id`` (members) or ``Company.owner_id`` (the owner). These helpers
resolve tenants, load rows with their attribution and describe them as
authorization targets.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from models import Company, Curriculum, Player, Team, User
from services.authorization import Principal, Role, Target, TenantNotFound

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def resolve_company_id(db: Session, user: User) -> Optional[UUID]:
    """
    The user's tenant: owners through ``Company.owner_id``, everyone else
    through ``company_id``. None when neither resolves.
    """
    if user.role == Role.owner.value:
        company = db.query(Company).filter(Company.owner_id == user.id).first()
        if company is None:
            return None
        if user.company_id is not None and user.company_id != company.id:
            logger.error(
                f"Owner {user.id} company_id disagrees with owned company",
                extra={
                    "extra_fields": {
                        "event": "tenant_mismatch",
                        "user_id": str(user.id),
                        "company_id": str(user.company_id),
                        "owned_company_id": str(company.id),
                    }
                },
            )
        return company.id
    return user.company_id


def build_principal(db: Session, user: User) -> Principal:
    return Principal(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=Role(user.role),
        company_id=resolve_company_id(db, user),
        email_verified=bool(user.email_verified),
        onboarded=bool(user.onboarded),
    )


def require_company_id(principal: Principal) -> UUID:
    if principal.company_id is None:
        raise TenantNotFound(principal.user_id)
    return principal.company_id


def get_company(db: Session, principal: Principal) -> Company:
    company_id = require_company_id(principal)
    company = db.query(Company).filter(Company.id == company_id).first()
    if company is None:
        raise TenantNotFound(principal.user_id)
    return company


def get_user(db: Session, user_id: UUID) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFoundError("User", error_code="USER_NOT_FOUND")
    return user


def get_team(db: Session, team_id: UUID) -> Team:
    team = db.query(Team).filter(Team.id == team_id).first()
    if team is None:
        raise NotFoundError("Team", error_code="TEAM_NOT_FOUND")
    return team


def get_player(db: Session, player_id: UUID) -> Player:
    player = db.query(Player).filter(Player.id == player_id).first()
    if player is None:
        raise NotFoundError("Player", error_code="PLAYER_NOT_FOUND")
    return player


def company_target(company_id: UUID) -> Target:
    return Target(company_id=company_id)


def team_target(team: Team) -> Target:
    return Target(company_id=team.company_id, coach_id=team.coach_id)


def player_target(player: Player) -> Target:
    team = player.team
    return Target(
        company_id=team.company_id,
        coach_id=team.coach_id,
        supervisor_id=player.parent_user_id,
    )


def member_target(user: User) -> Target:
    return Target(company_id=user.company_id, member_role=Role(user.role))


def curriculum_target(curriculum: Curriculum) -> Target:
    return Target(company_id=curriculum.company_id, author_id=curriculum.created_by)


def compute_age(dob: Optional[date], today: Optional[date] = None) -> Optional[int]:
    """Whole years since ``dob``; one less until this year's birthday."""
    if dob is None:
        return None
    today = today or date.today()
    age = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        age -= 1
    return age
