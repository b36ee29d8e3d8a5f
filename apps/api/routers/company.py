"""
Company API endpoints.

Company profile, members, admins and ownership transfer. All operations
are scoped to the caller's company.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.orm import Session

from core.auth import get_current_principal
from core.database import get_db
from schemas import (
    CompanyResponse,
    CompanyUpdate,
    MemberCreate,
    MemberListResponse,
    MemberResponse,
    MemberUpdate,
    MessageResponse,
    TransferOwnershipRequest,
)
from services import company as company_service
from services import members as members_service
from services.authorization import Principal
from services.ownership import transfer_ownership

router = APIRouter(prefix="/v1/company", tags=["company"])


@router.get("", response_model=CompanyResponse)
def get_company(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return company_service.view_company(db, principal)


@router.put("", response_model=CompanyResponse)
def update_company(
    payload: CompanyUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return company_service.update_company(db, principal, payload)


@router.put("/logo", response_model=CompanyResponse)
def upload_logo(
    file: UploadFile = File(...),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    # Sync handler: runs in the threadpool with the blocking store and upload
    data = file.file.read()
    return company_service.update_logo(db, principal, data, file.content_type)


@router.get("/admins", response_model=List[MemberResponse])
def list_admins(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return members_service.list_admins(db, principal)


@router.post("/transfer-ownership", response_model=CompanyResponse)
def transfer(
    payload: TransferOwnershipRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Hand ownership to an admin of this company. The caller becomes an admin."""
    return transfer_ownership(db, principal, payload.new_owner_id)


@router.get("/members", response_model=MemberListResponse)
def list_members(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    members = members_service.list_members(db, principal)
    return {"members": members, "current_user_role": principal.role.value}


@router.post("/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
def add_member(
    payload: MemberCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return members_service.add_member(db, principal, payload)


@router.put("/members/{member_id}", response_model=MemberResponse)
def update_member(
    member_id: UUID,
    payload: MemberUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return members_service.update_member(db, principal, member_id, payload)


@router.delete("/members/{member_id}", response_model=MessageResponse)
def delete_member(
    member_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    members_service.delete_member(db, principal, member_id)
    return MessageResponse(message="Member deleted")


@router.post("/members/{member_id}/resend-invitation", response_model=MessageResponse)
def resend_invitation(
    member_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    members_service.resend_invitation(db, principal, member_id)
    return MessageResponse(message="Invitation sent")
