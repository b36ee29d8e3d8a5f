"""
Onboarding API endpoints.

Email verification and the role-specific completion steps that gate
dashboard access, plus the status/routing read the web app polls.
"""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.auth import get_current_principal
from core.database import get_db
from schemas import (
    IncompletePlayerResponse,
    MessageResponse,
    OnboardingStatus,
    OwnerOnboardingRequest,
    ParentOnboardingRequest,
    PlayerOnboardingRequest,
    PlayerProfileCompletion,
    PlayerResponse,
    StaffOnboardingRequest,
    UserResponse,
    VerifyEmailRequest,
)
from services import onboarding
from services.authorization import Principal
from services.players import player_view

router = APIRouter(prefix="/v1/onboarding", tags=["onboarding"])


@router.get("/status", response_model=OnboardingStatus)
def status(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return onboarding.onboarding_status(db, principal)


@router.post("/verification-code", response_model=MessageResponse)
def request_verification_code(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    onboarding.resend_verification_code(db, principal)
    return MessageResponse(message="Verification code sent")


@router.post("/verify-email", response_model=UserResponse)
def verify_email(
    payload: VerifyEmailRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return onboarding.verify_email(db, principal, payload.code)


@router.post("/owner", response_model=UserResponse)
def complete_owner(
    payload: OwnerOnboardingRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return onboarding.complete_owner_onboarding(db, principal, payload)


@router.post("/staff", response_model=UserResponse)
def complete_staff(
    payload: StaffOnboardingRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return onboarding.complete_staff_onboarding(db, principal, payload)


@router.post("/parent", response_model=UserResponse)
def complete_parent(
    payload: ParentOnboardingRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return onboarding.complete_parent_onboarding(db, principal, payload)


@router.post("/player", response_model=UserResponse)
def complete_player(
    payload: PlayerOnboardingRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return onboarding.complete_player_onboarding(db, principal, payload)


@router.get("/incomplete-player", response_model=IncompletePlayerResponse)
def incomplete_player(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    player = onboarding.first_incomplete_player(db, principal.user_id)
    if player is None:
        return IncompletePlayerResponse(has_incomplete=False)
    return {"has_incomplete": True, "player": onboarding.incomplete_player_view(player)}


@router.post("/players/{player_id}", response_model=PlayerResponse)
def complete_player_profile(
    player_id: UUID,
    payload: PlayerProfileCompletion,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    player = onboarding.complete_player_profile(db, principal, player_id, payload)
    return player_view(player)
