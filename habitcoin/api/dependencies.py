"""
API Dependencies

FastAPI dependencies for authentication and database access.
"""
import logging
from typing import Optional
from fastapi import Depends, HTTPException, Header, status
from sqlalchemy.orm import Session

from habitcoin.database import get_db
from habitcoin.services.firebase import firebase_service
from habitcoin.models.db_models import User

logger = logging.getLogger(__name__)


def _bearer_token(authorization: Optional[str]) -> str:
    """
    Extract the token from "Bearer <token>".

    Raises:
        HTTPException: If the header is missing or malformed.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Use: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return parts[1]


def get_firebase_user_info(
    authorization: Optional[str] = Header(None),
) -> dict:
    """
    Get Firebase user info without requiring a database user.

    Used for registration flow where user doesn't exist in DB yet.

    Returns:
        Dict with uid, email, display_name from Firebase token.

    Raises:
        HTTPException: If token is missing or invalid.
    """
    token = _bearer_token(authorization)
    user_info = firebase_service.get_user_info(token)

    if not user_info:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user_info


def get_current_user(
    user_info: dict = Depends(get_firebase_user_info),
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency to get the current authenticated user.

    Expects Authorization header in format: "Bearer <firebase_id_token>"

    Raises:
        HTTPException: If token is missing, invalid, or user not found.
    """
    user = db.query(User).filter(User.id == user_info["uid"]).first()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found. Please register first.",
        )

    return user
