"""
Account lifecycle outside onboarding: signup, login, profile, password and
email changes.

Self-service signup always creates an owner together with the company it
owns; the owner's ``company_id`` is written in the same transaction.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from core.database import atomic
from core.exceptions import (
    AuthenticationError,
    ConflictError,
    ExternalCapabilityError,
    ValidationError,
)
from core.password_policy import ensure_valid_password
from core.security import (
    create_access_token,
    generate_verification_code,
    get_password_hash,
    verify_password,
)
from models import Company, User
from schemas import EmailChangeVerify, PasswordChange, ProfileUpdate, SignupRequest
from services.authorization import Action, Principal, Role, ensure_allowed
from services.blob_storage import store_image
from services.email_service import email_service
from services.tenancy import get_user, normalize_email

logger = logging.getLogger(__name__)


def issue_token(user: User) -> str:
    return create_access_token({"sub": str(user.id), "email": user.email})


def signup(db: Session, payload: SignupRequest) -> User:
    email = normalize_email(payload.email)
    name = payload.name.strip()
    if not name:
        raise ValidationError("Name is required")
    ensure_valid_password(payload.password)

    if db.query(User).filter(User.email == email).first():
        raise ConflictError("Email already registered", error_code="EMAIL_IN_USE")

    code = generate_verification_code()
    company_name = (payload.company_name or "").strip() or f"{name}'s Club"

    with atomic(db):
        user = User(
            email=email,
            name=name,
            password_hash=get_password_hash(payload.password),
            role=Role.owner.value,
            email_verified=False,
            onboarded=False,
            email_code=code,
        )
        db.add(user)
        db.flush()
        company = Company(owner_id=user.id, name=company_name)
        db.add(company)
        db.flush()
        user.company_id = company.id

    logger.info(f"New owner registered: {user.id}")

    if not email_service.send_verification_email(user.email, code, user.name):
        # Non-blocking: the user can request a new code
        logger.warning(
            f"Verification email to {user.email} failed at signup",
            extra={"extra_fields": {"event": "verification_email_failed", "user_id": str(user.id)}},
        )
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if not user or not verify_password(password, user.password_hash):
        logger.warning(f"Failed login attempt for email: {normalize_email(email)}")
        raise AuthenticationError("Incorrect email or password", error_code="INVALID_CREDENTIALS")
    return user


def get_profile(db: Session, principal: Principal) -> Tuple[User, Optional[Company]]:
    user = get_user(db, principal.user_id)
    company = None
    if principal.company_id is not None:
        company = db.query(Company).filter(Company.id == principal.company_id).first()
    return user, company


def update_profile(db: Session, principal: Principal, payload: ProfileUpdate) -> User:
    ensure_allowed(principal, Action.edit_own_profile)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update", error_code="NO_FIELDS")

    user = get_user(db, principal.user_id)
    if "name" in changes:
        changes["name"] = (changes["name"] or "").strip()
        if not changes["name"]:
            raise ValidationError("Name cannot be empty")
    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    return user


def update_profile_image(db: Session, principal: Principal, data: bytes, content_type: Optional[str]) -> User:
    ensure_allowed(principal, Action.edit_own_profile)
    user = get_user(db, principal.user_id)
    user.image = store_image("profile-images", user.id, data, content_type)
    db.commit()
    return user


def change_password(db: Session, principal: Principal, payload: PasswordChange) -> None:
    ensure_allowed(principal, Action.edit_own_profile)
    ensure_valid_password(payload.new_password)

    user = get_user(db, principal.user_id)
    if not verify_password(payload.old_password, user.password_hash):
        raise AuthenticationError("Current password is incorrect", error_code="INVALID_PASSWORD")

    user.password_hash = get_password_hash(payload.new_password)
    db.commit()
    logger.info(f"Password changed for user {user.id}")


def email_change_hash(email: str) -> str:
    """Short binding of a pending email change to its target address."""
    return f"{len(email)}{email[:9]}"[:10]


def request_email_change(db: Session, principal: Principal, new_email: str) -> None:
    ensure_allowed(principal, Action.edit_own_profile)
    email = normalize_email(new_email)
    if db.query(User).filter(User.email == email).first():
        raise ConflictError("Email already in use", error_code="EMAIL_IN_USE")

    user = get_user(db, principal.user_id)
    code = generate_verification_code()
    user.email_code = code
    user.password_reset_code = email_change_hash(email)
    db.commit()

    if not email_service.send_email_change_code(email, code, user.name):
        user.email_code = None
        user.password_reset_code = None
        db.commit()
        raise ExternalCapabilityError("Failed to send verification email", error_code="EMAIL_SEND_FAILED")


def verify_email_change(db: Session, principal: Principal, payload: EmailChangeVerify) -> User:
    ensure_allowed(principal, Action.edit_own_profile)
    email = normalize_email(payload.new_email)
    user = get_user(db, principal.user_id)

    if not user.email_code or not user.password_reset_code:
        raise ValidationError("No pending email change", error_code="NO_PENDING_CHANGE")
    if payload.code.strip() != user.email_code:
        raise ValidationError("Invalid verification code", error_code="INVALID_CODE")
    if email_change_hash(email) != user.password_reset_code:
        raise ValidationError("Email does not match the pending change", error_code="EMAIL_MISMATCH")
    if db.query(User).filter(User.email == email, User.id != user.id).first():
        raise ConflictError("Email already in use", error_code="EMAIL_IN_USE")

    user.email = email
    user.email_code = None
    user.password_reset_code = None
    user.email_verified = True
    db.commit()
    logger.info(f"Email changed for user {user.id}")
    return user
