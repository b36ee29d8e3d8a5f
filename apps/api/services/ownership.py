"""
Ownership transfer and account deletion.

Exactly one owner per company, resolvable two ways: ``Company.owner_id`` and
the owner's own ``company_id``. Transfer rewrites the company row and both
user rows in one transaction. Owners cannot delete their account; they
transfer ownership first.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from core.database import atomic
from core.exceptions import AuthorizationError, NotFoundError, ValidationError
from models import Company, User
from services.authorization import (
    Action,
    Principal,
    Role,
    Target,
    TenantNotFound,
    ensure_allowed,
)
from services.tenancy import get_user

logger = logging.getLogger(__name__)


def transfer_ownership(db: Session, principal: Principal, new_owner_id: UUID) -> Company:
    """
    Hand the company to one of its admins.

    The company row and both user rows are locked before the preconditions
    are read, so two transfers racing from the same owner serialize and the
    loser sees the new ``owner_id``.
    """
    ensure_allowed(
        principal,
        Action.transfer_ownership,
        Target(company_id=principal.company_id),
        error_code="NOT_OWNER",
    )

    with atomic(db):
        company = (
            db.query(Company)
            .filter(Company.id == principal.company_id)
            .with_for_update()
            .first()
        )
        if company is None:
            raise TenantNotFound(principal.user_id)
        if company.owner_id != principal.user_id:
            raise AuthorizationError(error_code="NOT_OWNER")

        new_owner = db.query(User).filter(User.id == new_owner_id).with_for_update().first()
        if (
            new_owner is None
            or new_owner.role != Role.admin.value
            or new_owner.company_id != company.id
        ):
            raise ValidationError(
                "New owner must be an admin of this company",
                error_code="NEW_OWNER_NOT_ADMIN",
            )

        current_owner = db.query(User).filter(User.id == principal.user_id).with_for_update().first()
        if current_owner is None:
            raise NotFoundError("User", error_code="USER_NOT_FOUND")

        company.owner_id = new_owner.id
        current_owner.role = Role.admin.value
        current_owner.company_id = company.id
        new_owner.role = Role.owner.value
        new_owner.company_id = company.id
        db.flush()

    logger.info(
        f"Ownership of company {company.id} transferred",
        extra={
            "extra_fields": {
                "event": "ownership_transferred",
                "company_id": str(company.id),
                "from_user_id": str(current_owner.id),
                "to_user_id": str(new_owner.id),
            }
        },
    )
    return company


def delete_own_account(db: Session, principal: Principal) -> None:
    ensure_allowed(
        principal,
        Action.delete_own_account,
        error_code="CANNOT_DELETE_OWNER" if principal.role is Role.owner else None,
    )
    user = get_user(db, principal.user_id)
    db.delete(user)
    db.commit()
    logger.info(f"Account {principal.user_id} deleted")
