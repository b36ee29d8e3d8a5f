"""
Authentication dependencies.

Provides FastAPI dependencies for:
- Getting the current authenticated user row
- Materializing the current ``Principal`` (role, tenant, onboarding flags)

Role, tenant and onboarding flags are re-read from the database on every
request; token claims other than the subject are never trusted.
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
import logging

from core.database import get_db
from core.exceptions import AuthenticationError
from core.security import decode_access_token
from models import User
from services.authorization import Principal
from services.tenancy import build_principal

logger = logging.getLogger(__name__)

# Use auto_error=False to handle missing credentials manually and return 401 (not 403)
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Get the current authenticated user from JWT token.

    Raises AuthenticationError if token is invalid or user not found.
    """
    if not credentials:
        raise AuthenticationError()

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise AuthenticationError("Invalid authentication credentials")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    try:
        user_id_uuid = UUID(user_id)
    except ValueError:
        raise AuthenticationError("Invalid user ID format")

    user = db.query(User).filter(User.id == user_id_uuid).first()
    if not user:
        raise AuthenticationError("User not found")

    return user


def get_current_principal(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Principal:
    """The acting principal for this request, with its tenant resolved."""
    return build_principal(db, current_user)
