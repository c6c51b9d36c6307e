"""
Dependency injection for FastAPI endpoints.
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from sqlalchemy.orm import Session

from assessment_engine.core.assessment.attempt_manager import AttemptManager
from assessment_engine.core.config import settings
from assessment_engine.core.security import decode_token
from assessment_engine.db.base import get_db
from assessment_engine.services.security_recorder import SecurityEventRecorder

# Token URL belongs to the external auth service
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

ADMIN_ROLES = ("admin", "instructor")


class Principal(BaseModel):
    """Caller identity taken from the bearer token."""
    id: int
    role: str = "trainee"


def get_current_principal(token: str = Depends(oauth2_scheme)) -> Principal:
    """
    Get the caller from the JWT token.

    Raises:
        HTTPException: If token is invalid or has no usable subject
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(token)
    if payload is None:
        raise credentials_exception

    subject: Optional[str] = payload.get("sub")
    try:
        principal_id = int(subject)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise credentials_exception

    return Principal(id=principal_id, role=str(payload.get("role", "trainee")))


def get_current_trainee_id(principal: Principal = Depends(get_current_principal)) -> int:
    """Trainee id of the caller."""
    return principal.id


def get_current_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    """
    Require an admin or instructor.

    Raises:
        HTTPException: If the caller has another role
    """
    if principal.role not in ADMIN_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return principal


def get_security_recorder(request: Request) -> SecurityEventRecorder:
    """Shared recorder created at application startup."""
    return request.app.state.security_recorder


def get_attempt_manager(
    db: Session = Depends(get_db),
    recorder: SecurityEventRecorder = Depends(get_security_recorder),
) -> AttemptManager:
    return AttemptManager(db, recorder, grace_seconds=settings.SUBMISSION_GRACE_SECONDS)


def get_client_info(request: Request) -> dict:
    """IP address and user agent of the caller, for the security log."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.client.host if request.client else None
    return {
        "ip_address": ip_address,
        "user_agent": request.headers.get("user-agent"),
    }
