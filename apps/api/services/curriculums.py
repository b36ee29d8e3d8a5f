"""
Curriculums: named, ordered lists of test identifiers.

Owner/admin see and manage every curriculum in their company; coaches only
the ones they authored. Parents and players have no access.
"""

from __future__ import annotations

import logging
from typing import List
from uuid import UUID

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, ValidationError
from models import Curriculum
from schemas import CurriculumCreate, CurriculumUpdate
from services.authorization import (
    Action,
    Principal,
    Scope,
    Target,
    authorize,
    ensure_allowed,
    scope_for,
)
from services.tenancy import curriculum_target, require_company_id

logger = logging.getLogger(__name__)


def _clean_tests(tests: List[str]) -> List[str]:
    cleaned = [t.strip() for t in tests]
    if any(not t for t in cleaned):
        raise ValidationError("Test identifiers cannot be empty", details={"tests": "empty identifier"})
    return cleaned


def list_curriculums(db: Session, principal: Principal) -> List[Curriculum]:
    scope = scope_for(principal, Action.view_curriculums)
    if scope is None:
        ensure_allowed(principal, Action.view_curriculums, error_code="ACCESS_DENIED")

    query = db.query(Curriculum).filter(Curriculum.company_id == require_company_id(principal))
    if scope is Scope.authored:
        query = query.filter(Curriculum.created_by == principal.user_id)
    rows = query.order_by(Curriculum.created_at.desc(), Curriculum.name).all()
    return [c for c in rows if authorize(principal, Action.view_curriculums, curriculum_target(c))]


def get_curriculum(db: Session, principal: Principal, curriculum_id: UUID, action: Action = Action.view_curriculums) -> Curriculum:
    # Role first, so parents get ACCESS_DENIED whether or not the id exists
    if scope_for(principal, action) is None:
        ensure_allowed(principal, action, error_code="ACCESS_DENIED")
    curriculum = db.query(Curriculum).filter(Curriculum.id == curriculum_id).first()
    if curriculum is None:
        raise NotFoundError("Curriculum", error_code="CURRICULUM_NOT_FOUND")
    ensure_allowed(principal, action, curriculum_target(curriculum), error_code="ACCESS_DENIED")
    return curriculum


def create_curriculum(db: Session, principal: Principal, payload: CurriculumCreate) -> Curriculum:
    ensure_allowed(
        principal,
        Action.manage_curriculum,
        Target(company_id=principal.company_id, author_id=principal.user_id),
        error_code="ACCESS_DENIED",
    )
    name = payload.name.strip()
    if not name:
        raise ValidationError("Name is required", details={"name": "required"})

    curriculum = Curriculum(
        company_id=require_company_id(principal),
        name=name,
        description=payload.description,
        tests=_clean_tests(payload.tests),
        created_by=principal.user_id,
    )
    db.add(curriculum)
    db.commit()
    logger.info(f"Curriculum {curriculum.id} created by {principal.user_id}")
    return curriculum


def update_curriculum(db: Session, principal: Principal, curriculum_id: UUID, payload: CurriculumUpdate) -> Curriculum:
    curriculum = get_curriculum(db, principal, curriculum_id, Action.manage_curriculum)

    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update", error_code="NO_FIELDS")
    if "name" in changes:
        changes["name"] = (changes["name"] or "").strip()
        if not changes["name"]:
            raise ValidationError("Name cannot be empty", details={"name": "required"})
    if "tests" in changes:
        if changes["tests"] is None:
            raise ValidationError("Tests must be a list", details={"tests": "must be a list"})
        changes["tests"] = _clean_tests(changes["tests"])

    for field, value in changes.items():
        setattr(curriculum, field, value)
    db.commit()
    return curriculum


def delete_curriculum(db: Session, principal: Principal, curriculum_id: UUID) -> None:
    curriculum = get_curriculum(db, principal, curriculum_id, Action.manage_curriculum)
    db.delete(curriculum)
    db.commit()
    logger.info(f"Curriculum {curriculum_id} deleted by {principal.user_id}")
