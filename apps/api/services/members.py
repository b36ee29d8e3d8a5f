"""
Company members: listing, inviting, editing and removing the staff and
supervising accounts of a tenant.

Invited accounts get a generated password and ``email_verified=True``; they
set their own password during onboarding.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import case
from sqlalchemy.orm import Session

from core.exceptions import (
    AuthorizationError,
    ConflictError,
    ExternalCapabilityError,
    NotFoundError,
    ValidationError,
)
from core.security import generate_password, get_password_hash
from models import Company, Player, User
from schemas import MemberCreate, MemberUpdate
from services.authorization import Action, Principal, Role, Target, ensure_allowed
from services.email_service import email_service
from services.tenancy import (
    company_target,
    get_company,
    get_user,
    member_target,
    normalize_email,
    require_company_id,
)

logger = logging.getLogger(__name__)

STAFF_INVITE_ROLES = {Role.admin.value, Role.coach.value}

_ROLE_ORDER = case(
    {
        Role.owner.value: 0,
        Role.admin.value: 1,
        Role.coach.value: 2,
        Role.parent.value: 3,
    },
    value=User.role,
    else_=4,
)


def list_members(db: Session, principal: Principal) -> List[User]:
    """Everyone in the tenant except player accounts, owner first."""
    ensure_allowed(principal, Action.view_members, Target(company_id=principal.company_id), error_code="ACCESS_DENIED")
    company_id = require_company_id(principal)
    return (
        db.query(User)
        .filter(User.company_id == company_id, User.role != Role.player.value)
        .order_by(_ROLE_ORDER, User.name)
        .all()
    )


def list_admins(db: Session, principal: Principal) -> List[User]:
    ensure_allowed(
        principal,
        Action.list_admins,
        Target(company_id=principal.company_id),
        error_code="NOT_OWNER",
    )
    company = get_company(db, principal)
    return (
        db.query(User)
        .filter(User.company_id == company.id, User.role == Role.admin.value)
        .order_by(User.name)
        .all()
    )


def attach_or_create_member(
    db: Session,
    company_id: UUID,
    *,
    name: str,
    email: str,
    role: str,
) -> Tuple[User, Optional[str]]:
    """
    Put an account into ``company_id`` with ``role``.

    An existing account without a company (or already in this one) is moved
    over; its password is untouched. Otherwise a new account is created and
    its generated password returned so the caller can send it. Accounts of
    another tenant and owners are never taken over.
    """
    email = normalize_email(email)
    existing = db.query(User).filter(User.email == email).first()
    if existing is not None:
        if existing.role == Role.owner.value:
            raise ConflictError(f"{email} owns a company", error_code="EMAIL_IN_USE")
        if existing.company_id is not None and existing.company_id != company_id:
            raise ConflictError(f"{email} belongs to another company", error_code="EMAIL_IN_USE")
        existing.company_id = company_id
        existing.role = role
        db.flush()
        return existing, None

    password = generate_password()
    user = User(
        email=email,
        name=name.strip(),
        password_hash=get_password_hash(password),
        role=role,
        company_id=company_id,
        email_verified=True,
        onboarded=False,
    )
    db.add(user)
    db.flush()
    return user, password


def send_invitation(db: Session, member: User, company: Company, password: str) -> bool:
    """Deliver credentials to an invited account. Returns the delivery result."""
    if member.role in STAFF_INVITE_ROLES:
        return email_service.send_staff_invitation(
            member.email, member.name, member.role, company.name, password
        )
    player = (
        db.query(Player)
        .filter(Player.parent_user_id == member.id)
        .order_by(Player.created_at, Player.id)
        .first()
    )
    player_name = f"{player.first_name} {player.last_name}" if player else member.name
    team_name = player.team.name if player else company.name
    return email_service.send_player_invitation(
        member.email, member.name, player_name, team_name, password
    )


def add_member(db: Session, principal: Principal, payload: MemberCreate) -> User:
    company_id = require_company_id(principal)
    ensure_allowed(principal, Action.manage_members, company_target(company_id), error_code="ACCESS_DENIED")
    company = get_company(db, principal)

    member, password = attach_or_create_member(
        db, company.id, name=payload.name, email=payload.email, role=payload.role
    )
    db.commit()

    if password and not send_invitation(db, member, company, password):
        # Non-blocking: the account exists, resend-invitation can retry delivery
        logger.warning(f"Invitation email to {member.email} failed")

    logger.info(f"Member {member.id} added to company {company.id} as {member.role}")
    return member


def _get_member(db: Session, member_id: UUID) -> User:
    member = get_user(db, member_id)
    if member.company_id is None:
        # Company-less accounts are outside every tenant
        raise NotFoundError("User", error_code="USER_NOT_FOUND")
    return member


def _member_error_code(principal: Principal, member: User) -> str:
    # Only named for the admin's own owner; other tenants stay opaque
    if (
        member.role == Role.owner.value
        and principal.role is Role.admin
        and member.company_id == principal.company_id
    ):
        return "ADMIN_CANNOT_EDIT_OWNER"
    return "ACCESS_DENIED"


def update_member(db: Session, principal: Principal, member_id: UUID, payload: MemberUpdate) -> User:
    member = _get_member(db, member_id)
    ensure_allowed(principal, Action.manage_members, member_target(member), error_code=_member_error_code(principal, member))

    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update", error_code="NO_FIELDS")

    if "role" in changes:
        role = changes.pop("role")
        # The owner's role only changes through ownership transfer
        if member.role != Role.owner.value:
            if role not in STAFF_INVITE_ROLES:
                raise ValidationError("Role must be admin or coach", error_code="INVALID_ROLE")
            member.role = role

    if "email" in changes:
        email = normalize_email(changes.pop("email") or "")
        if not email:
            raise ValidationError("Email cannot be empty")
        taken = db.query(User).filter(User.email == email, User.id != member.id).first()
        if taken:
            raise ConflictError("Email already in use", error_code="EMAIL_IN_USE")
        member.email = email

    if "name" in changes:
        name = (changes.pop("name") or "").strip()
        if not name:
            raise ValidationError("Name cannot be empty")
        member.name = name

    for field, value in changes.items():
        setattr(member, field, value)

    db.commit()
    return member


def delete_member(db: Session, principal: Principal, member_id: UUID) -> None:
    member = _get_member(db, member_id)
    ensure_allowed(principal, Action.manage_members, member_target(member), error_code=_member_error_code(principal, member))
    if member.role == Role.owner.value:
        raise AuthorizationError(error_code="CANNOT_DELETE_OWNER")

    db.delete(member)
    db.commit()
    logger.info(f"Member {member_id} removed by {principal.user_id}")


def resend_invitation(db: Session, principal: Principal, member_id: UUID) -> None:
    """
    Rotate the member's password and email the new credentials.

    The rotation is committed before delivery is attempted, so a failed
    send leaves the account with a password nobody has received.
    """
    member = _get_member(db, member_id)
    ensure_allowed(principal, Action.manage_members, member_target(member), error_code=_member_error_code(principal, member))
    company = get_company(db, principal)

    password = generate_password()
    member.password_hash = get_password_hash(password)
    db.commit()

    if not send_invitation(db, member, company, password):
        logger.error(
            f"Invitation resend to {member.email} failed after password rotation",
            extra={"extra_fields": {"event": "invitation_resend_failed", "member_id": str(member.id)}},
        )
        raise ExternalCapabilityError("Failed to send invitation email", error_code="EMAIL_SEND_FAILED")
