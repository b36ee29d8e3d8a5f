"""
Password policy validation.

Requirements:
- Minimum 8 characters
- Maximum 72 characters (bcrypt limit)
"""
from typing import Tuple, List

from core.exceptions import ValidationError

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 72


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """
    Validate password against the policy.

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    errors = []

    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    if len(password.encode("utf-8")) > MAX_PASSWORD_LENGTH:
        errors.append(f"Password must not exceed {MAX_PASSWORD_LENGTH} characters (bcrypt limit)")

    return len(errors) == 0, errors


def ensure_valid_password(password: str) -> None:
    """Raise a 400 VALIDATION_ERROR when the password breaks the policy."""
    is_valid, errors = validate_password(password or "")
    if not is_valid:
        raise ValidationError(errors[0], details={"password": errors})
