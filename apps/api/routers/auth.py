"""
Authentication API endpoints.

Provides:
- Owner signup (creates the owner and its company)
- Login (JWT token generation)
- Current principal
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
import logging

from core.auth import get_current_user
from core.database import get_db
from models import User
from schemas import AuthResponse, LoginRequest, SignupRequest, UserResponse
from services import accounts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    """
    Register an owner account and its company.

    A 6-digit verification code is emailed; delivery failure does not fail
    signup (the code can be re-requested).
    """
    user = accounts.signup(db, payload)
    return AuthResponse(access_token=accounts.issue_token(user), user=user)


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = accounts.authenticate(db, payload.email, payload.password)
    logger.info(f"User logged in: {user.id}")
    return AuthResponse(access_token=accounts.issue_token(user), user=user)


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    """The caller's account, freshly read from the database."""
    return current_user
