"""Onboarding lifecycle.

User stages, strictly in order:
    UNVERIFIED → VERIFIED_PENDING_ONBOARDING → ONBOARDED

Verification moves an account out of UNVERIFIED by presenting its current
``email_code``. A role-specific completion call moves it to ONBOARDED; each
role has its own completion operation and payload. ONBOARDED is terminal.

Independently, every player a parent/player account supervises is either
PLAYER_INCOMPLETE (dob, gender or dominant foot missing) or
PLAYER_COMPLETE. Incomplete players are surfaced one at a time, oldest
first, even after the account itself is ONBOARDED.

Stages are derived from persisted flags on every call; nothing is cached.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.database import atomic
from core.exceptions import (
    ConflictError,
    ExternalCapabilityError,
    NotFoundError,
    ValidationError,
)
from core.password_policy import ensure_valid_password
from core.security import generate_verification_code, get_password_hash
from models import Company, Player, User
from schemas import (
    OwnerOnboardingRequest,
    ParentOnboardingRequest,
    PlayerOnboardingRequest,
    PlayerProfileCompletion,
    StaffOnboardingRequest,
)
from services.authorization import Action, Principal, Role, ensure_allowed
from services.email_service import email_service
from services.members import attach_or_create_member, send_invitation
from services.tenancy import get_player, get_user, normalize_email, player_target

logger = logging.getLogger(__name__)


class OnboardingStage(str, Enum):
    unverified = "UNVERIFIED"
    verified_pending_onboarding = "VERIFIED_PENDING_ONBOARDING"
    onboarded = "ONBOARDED"


class PlayerProfileState(str, Enum):
    incomplete = "PLAYER_INCOMPLETE"
    complete = "PLAYER_COMPLETE"


class NextStep(str, Enum):
    verify_email = "verify-email"
    onboarding = "onboarding"
    parent_onboarding = "onboarding/parent"
    player_onboarding = "onboarding/player"
    player_profile = "player-profile"
    dashboard = "dashboard"


STAFF_ROLES = {Role.owner.value, Role.admin.value, Role.coach.value}
SUPERVISOR_ROLES = {Role.parent.value, Role.player.value}

PLAYER_PROFILE_FIELDS = ("dob", "gender", "dominant_foot")


def derive_stage(subject: Any) -> OnboardingStage:
    """Stage of a User or Principal from its persisted flags."""
    if not subject.email_verified:
        return OnboardingStage.unverified
    if not subject.onboarded:
        return OnboardingStage.verified_pending_onboarding
    return OnboardingStage.onboarded


def _role_value(subject: Any) -> str:
    role = subject.role
    return role.value if isinstance(role, Role) else role


def needs_onboarding(subject: Any) -> bool:
    return (
        derive_stage(subject) is OnboardingStage.verified_pending_onboarding
        and _role_value(subject) in STAFF_ROLES
    )


def needs_parent_onboarding(subject: Any) -> bool:
    return (
        derive_stage(subject) is OnboardingStage.verified_pending_onboarding
        and _role_value(subject) == Role.parent.value
    )


def needs_player_onboarding(subject: Any) -> bool:
    return (
        derive_stage(subject) is OnboardingStage.verified_pending_onboarding
        and _role_value(subject) == Role.player.value
    )


def player_profile_state(player: Player) -> PlayerProfileState:
    if any(getattr(player, field) in (None, "") for field in PLAYER_PROFILE_FIELDS):
        return PlayerProfileState.incomplete
    return PlayerProfileState.complete


def first_incomplete_player(db: Session, supervisor_id) -> Optional[Player]:
    return (
        db.query(Player)
        .filter(
            Player.parent_user_id == supervisor_id,
            or_(
                Player.dob.is_(None),
                Player.gender.is_(None),
                Player.gender == "",
                Player.dominant_foot.is_(None),
                Player.dominant_foot == "",
            ),
        )
        .order_by(Player.created_at.asc(), Player.id)
        .first()
    )


def incomplete_player_view(player: Player) -> Dict[str, Any]:
    return {
        "id": player.id,
        "team_id": player.team_id,
        "first_name": player.first_name,
        "last_name": player.last_name,
        "team_name": player.team.name if player.team else None,
        "dob": player.dob,
        "gender": player.gender,
        "dominant_foot": player.dominant_foot,
    }


def onboarding_status(db: Session, principal: Principal) -> Dict[str, Any]:
    """Stage, routing target and the incomplete player to surface, if any."""
    stage = derive_stage(principal)
    role = principal.role.value
    incomplete = None

    if stage is OnboardingStage.unverified:
        next_step = NextStep.verify_email
    elif needs_onboarding(principal):
        next_step = NextStep.onboarding
    elif needs_parent_onboarding(principal):
        next_step = NextStep.parent_onboarding
    elif needs_player_onboarding(principal):
        next_step = NextStep.player_onboarding
    else:
        next_step = NextStep.dashboard
        if role in SUPERVISOR_ROLES:
            incomplete = first_incomplete_player(db, principal.user_id)
            if incomplete is not None:
                next_step = NextStep.player_profile

    return {
        "email_verified": principal.email_verified,
        "onboarded": principal.onboarded,
        "role": role,
        "stage": stage.value,
        "needs_onboarding": needs_onboarding(principal),
        "next_step": next_step.value,
        "incomplete_player": incomplete_player_view(incomplete) if incomplete else None,
    }


# ---------------------------------------------------------------------------
# UNVERIFIED → VERIFIED_PENDING_ONBOARDING
# ---------------------------------------------------------------------------

def resend_verification_code(db: Session, principal: Principal) -> None:
    """Replace the pending code and send it. Only while unverified."""
    user = get_user(db, principal.user_id)
    if user.email_verified:
        raise ConflictError("Email already verified", error_code="ALREADY_VERIFIED", status_code=400)

    code = generate_verification_code()
    user.email_code = code
    db.commit()

    if not email_service.send_verification_email(user.email, code, user.name):
        raise ExternalCapabilityError("Failed to send verification email", error_code="EMAIL_SEND_FAILED")


def verify_email(db: Session, principal: Principal, code: str) -> User:
    user = db.query(User).filter(User.id == principal.user_id).first()
    if user is None:
        raise NotFoundError("User", error_code="USER_NOT_FOUND")
    if user.email_verified:
        raise ConflictError("Email already verified", error_code="ALREADY_VERIFIED", status_code=400)
    if not user.email_code or (code or "").strip() != user.email_code:
        raise ValidationError("Invalid verification code", error_code="INVALID_CODE")

    user.email_verified = True
    user.email_code = None
    db.commit()
    logger.info(f"Email verified for user {user.id}")
    return user


# ---------------------------------------------------------------------------
# VERIFIED_PENDING_ONBOARDING → ONBOARDED
# ---------------------------------------------------------------------------

def _begin_completion(db: Session, principal: Principal, roles: Iterable[Role]) -> User:
    """Load the user for a completion call and check it is in the right state."""
    user = (
        db.query(User)
        .filter(User.id == principal.user_id)
        .with_for_update()
        .first()
    )
    if user is None:
        raise NotFoundError("User", error_code="USER_NOT_FOUND")
    if user.onboarded:
        raise ConflictError("Already onboarded", error_code="ALREADY_ONBOARDED", status_code=400)
    if user.role not in {r.value for r in roles}:
        raise ValidationError(
            f"This onboarding step is not for role {user.role}",
            error_code="WRONG_ROLE_ENDPOINT",
        )
    if not user.email_verified:
        raise ValidationError("Verify your email first", error_code="EMAIL_NOT_VERIFIED")
    return user


def complete_owner_onboarding(db: Session, principal: Principal, payload: OwnerOnboardingRequest) -> User:
    """
    Finish owner setup: company details, the owner's flags and any admin
    invitations, all in one transaction. Invitation emails go out after
    commit and do not block.
    """
    user = _begin_completion(db, principal, (Role.owner,))

    company_name = payload.company_name.strip()
    if not company_name:
        raise ValidationError("Company name is required", details={"companyName": "required"})

    invite_emails = [normalize_email(i.email) for i in payload.admin_invites]
    if len(set(invite_emails)) != len(invite_emails):
        raise ValidationError("Duplicate admin invitation", details={"adminInvites": "duplicate email"})
    if user.email in invite_emails:
        raise ValidationError("You cannot invite yourself", details={"adminInvites": "own email"})

    company = db.query(Company).filter(Company.owner_id == user.id).first()

    with atomic(db):
        if company is None:
            company = Company(owner_id=user.id, name=company_name)
            db.add(company)
            db.flush()
        company.name = company_name
        if payload.company_url is not None:
            company.website_url = payload.company_url.strip() or None
        if payload.phone_number is not None:
            company.phone_number = payload.phone_number
            user.phone_number = payload.phone_number

        user.company_id = company.id
        user.onboarded = True

        invited = [
            attach_or_create_member(
                db, company.id, name=invite.name, email=invite.email, role=Role.admin.value
            )
            for invite in payload.admin_invites
        ]

    for member, password in invited:
        if password and not send_invitation(db, member, company, password):
            logger.warning(f"Admin invitation to {member.email} failed during onboarding")

    logger.info(
        f"Owner {user.id} onboarded",
        extra={"extra_fields": {"event": "owner_onboarded", "company_id": str(company.id), "invites": len(invited)}},
    )
    return user


def complete_staff_onboarding(db: Session, principal: Principal, payload: StaffOnboardingRequest) -> User:
    user = _begin_completion(db, principal, (Role.admin, Role.coach))
    ensure_valid_password(payload.new_password)

    user.password_hash = get_password_hash(payload.new_password)
    if payload.phone_number is not None:
        user.phone_number = payload.phone_number
    user.onboarded = True
    db.commit()
    logger.info(f"{user.role.capitalize()} {user.id} onboarded")
    return user


def complete_parent_onboarding(db: Session, principal: Principal, payload: ParentOnboardingRequest) -> User:
    user = _begin_completion(db, principal, (Role.parent,))
    ensure_valid_password(payload.new_password)

    user.password_hash = get_password_hash(payload.new_password)
    if payload.name is not None and payload.name.strip():
        user.name = payload.name.strip()
    if payload.phone_number is not None:
        user.phone_number = payload.phone_number
    user.onboarded = True
    db.commit()
    logger.info(f"Parent {user.id} onboarded")
    return user


def _apply_player_profile(player: Player, payload: PlayerProfileCompletion) -> None:
    player.dob = payload.dob
    player.gender = payload.gender.strip()
    player.dominant_foot = payload.dominant_foot.strip()
    if payload.age_group is not None:
        player.age_group = payload.age_group
    if payload.notes is not None:
        player.notes = payload.notes


def complete_player_onboarding(db: Session, principal: Principal, payload: PlayerOnboardingRequest) -> User:
    """
    Player accounts set a password and complete their own player row. The
    user and player updates commit together or not at all.
    """
    user = _begin_completion(db, principal, (Role.player,))
    ensure_valid_password(payload.new_password)

    if payload.player_id is not None:
        player = get_player(db, payload.player_id)
        ensure_allowed(principal, Action.edit_player, player_target(player), error_code="ACCESS_DENIED")
    else:
        player = (
            db.query(Player)
            .filter(Player.parent_user_id == user.id)
            .order_by(Player.created_at.asc(), Player.id)
            .first()
        )
        if player is None:
            raise NotFoundError("Player", error_code="PLAYER_NOT_FOUND")

    with atomic(db):
        user.password_hash = get_password_hash(payload.new_password)
        if payload.phone_number is not None:
            user.phone_number = payload.phone_number
        user.onboarded = True
        _apply_player_profile(player, payload)
        db.flush()

    logger.info(f"Player {user.id} onboarded with player row {player.id}")
    return user


def complete_player_profile(
    db: Session,
    principal: Principal,
    player_id,
    payload: PlayerProfileCompletion,
) -> Player:
    """Fill in a supervised player's required profile fields."""
    player = get_player(db, player_id)
    ensure_allowed(principal, Action.edit_player, player_target(player), error_code="ACCESS_DENIED")
    _apply_player_profile(player, payload)
    db.commit()
    return player
