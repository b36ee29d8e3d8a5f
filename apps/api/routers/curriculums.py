"""
Curriculum API endpoints.

Owner/admin manage every curriculum in the company, coaches only their own.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.auth import get_current_principal
from core.database import get_db
from schemas import CurriculumCreate, CurriculumResponse, CurriculumUpdate, MessageResponse
from services import curriculums
from services.authorization import Principal

router = APIRouter(prefix="/v1/curriculums", tags=["curriculums"])


@router.get("", response_model=List[CurriculumResponse])
def list_curriculums(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return curriculums.list_curriculums(db, principal)


@router.post("", response_model=CurriculumResponse, status_code=status.HTTP_201_CREATED)
def create_curriculum(
    payload: CurriculumCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return curriculums.create_curriculum(db, principal, payload)


@router.get("/{curriculum_id}", response_model=CurriculumResponse)
def get_curriculum(
    curriculum_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return curriculums.get_curriculum(db, principal, curriculum_id)


@router.put("/{curriculum_id}", response_model=CurriculumResponse)
def update_curriculum(
    curriculum_id: UUID,
    payload: CurriculumUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return curriculums.update_curriculum(db, principal, curriculum_id, payload)


@router.delete("/{curriculum_id}", response_model=MessageResponse)
def delete_curriculum(
    curriculum_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    curriculums.delete_curriculum(db, principal, curriculum_id)
    return MessageResponse(message="Curriculum deleted")
