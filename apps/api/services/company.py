"""Company profile reads and owner-only edits."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from core.exceptions import ValidationError
from models import Company
from schemas import CompanyUpdate
from services.authorization import Action, Principal, Target, ensure_allowed
from services.blob_storage import store_image
from services.tenancy import get_company

logger = logging.getLogger(__name__)


def view_company(db: Session, principal: Principal) -> Company:
    ensure_allowed(principal, Action.view_company, Target(company_id=principal.company_id), error_code="ACCESS_DENIED")
    return get_company(db, principal)


def update_company(db: Session, principal: Principal, payload: CompanyUpdate) -> Company:
    ensure_allowed(principal, Action.edit_company, Target(company_id=principal.company_id), error_code="NOT_OWNER")
    company = get_company(db, principal)

    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update", error_code="NO_FIELDS")
    if "name" in changes:
        changes["name"] = (changes["name"] or "").strip()
        if not changes["name"]:
            raise ValidationError("Company name cannot be empty", details={"name": "required"})

    for field, value in changes.items():
        setattr(company, field, value)
    db.commit()
    logger.info(f"Company {company.id} updated: {sorted(changes)}")
    return company


def update_logo(db: Session, principal: Principal, data: bytes, content_type: Optional[str]) -> Company:
    ensure_allowed(principal, Action.edit_company, Target(company_id=principal.company_id), error_code="NOT_OWNER")
    company = get_company(db, principal)
    company.logo = store_image("company-logos", company.id, data, content_type)
    db.commit()
    return company
