"""
User self-service API endpoints.

Profile, profile image, password, email change and account deletion for
the authenticated account.
"""
from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session
import logging

from core.auth import get_current_principal
from core.database import get_db
from schemas import (
    EmailChangeRequest,
    EmailChangeVerify,
    MessageResponse,
    PasswordChange,
    ProfileResponse,
    ProfileUpdate,
    UserResponse,
)
from services import accounts
from services.authorization import Principal
from services.ownership import delete_own_account

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/user", tags=["user"])


@router.get("/profile", response_model=ProfileResponse)
def get_profile(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    user, company = accounts.get_profile(db, principal)
    return {"user": user, "company": company}


@router.put("/profile", response_model=UserResponse)
def update_profile(
    payload: ProfileUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return accounts.update_profile(db, principal, payload)


@router.put("/profile/image", response_model=UserResponse)
def upload_profile_image(
    file: UploadFile = File(...),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    # Sync handler: runs in the threadpool with the blocking store and upload
    data = file.file.read()
    return accounts.update_profile_image(db, principal, data, file.content_type)


@router.put("/password", response_model=MessageResponse)
def change_password(
    payload: PasswordChange,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    accounts.change_password(db, principal, payload)
    return MessageResponse(message="Password updated")


@router.post("/email/request", response_model=MessageResponse)
def request_email_change(
    payload: EmailChangeRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Send a 6-digit code to the new address. The change is applied on verify."""
    accounts.request_email_change(db, principal, payload.new_email)
    return MessageResponse(message="Verification code sent")


@router.post("/email/verify", response_model=UserResponse)
def verify_email_change(
    payload: EmailChangeVerify,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return accounts.verify_email_change(db, principal, payload)


@router.delete("/account", response_model=MessageResponse)
def delete_account(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    """Delete the caller's account. Owners must transfer ownership first."""
    delete_own_account(db, principal)
    logger.info(f"Account deleted: {principal.user_id}")
    return MessageResponse(message="Account deleted")
