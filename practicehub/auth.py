"""Bearer token helpers for the PracticeHub API.

Tokens are issued elsewhere (login is handled by the practice portal); this
module only signs tokens for scripts and tests and verifies them on requests.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from practicehub.config import get_settings
from practicehub.db.models import Clinician
from practicehub.db.session import get_session

security = HTTPBearer()


@dataclass(frozen=True)
class Actor:
    """The authenticated caller recorded against report mutations."""

    username: str
    role: str
    clinician_id: Optional[int]


def create_access_token(
    username: str,
    role: str = "clinician",
    *,
    user_id: Optional[int] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a signed JWT access token for the given user."""

    settings = get_settings()
    minutes = expires_minutes or settings.access_token_minutes
    payload: Dict[str, Any] = {
        "sub": username,
        "role": role,
        "type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    if user_id is not None:
        payload["uid"] = user_id
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    required_role: Optional[str] = None,
) -> Dict[str, Any]:
    """Decode the provided JWT and optionally enforce a required role."""

    settings = get_settings()
    try:
        data = jwt.decode(
            credentials.credentials, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    if not data.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is missing a subject",
        )
    if required_role and data.get("role") not in (required_role, "admin"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient privileges",
        )
    return data


def resolve_actor(session: Session, claims: Dict[str, Any]) -> Actor:
    """Map token claims onto a clinician row.

    The ``uid`` claim wins when present; otherwise ``sub`` is matched against
    ``Clinician.username``.  Callers without a clinician record are still
    allowed through but are recorded without an id.
    """

    clinician_id: Optional[int] = None
    uid = claims.get("uid")
    if isinstance(uid, int) and not isinstance(uid, bool):
        if session.get(Clinician, uid) is not None:
            clinician_id = uid
    if clinician_id is None:
        clinician_id = session.execute(
            select(Clinician.id).where(Clinician.username == claims["sub"])
        ).scalar_one_or_none()
    return Actor(username=claims["sub"], role=claims.get("role") or "", clinician_id=clinician_id)


def require_role(role: str):
    """Dependency factory ensuring the current user has a given role.

    Users with the ``admin`` role pass every check.
    """

    def checker(
        credentials: HTTPAuthorizationCredentials = Depends(security),
        session: Session = Depends(get_session),
    ) -> Actor:
        data = get_current_user(credentials, required_role=role)
        return resolve_actor(session, data)

    return checker


__all__ = [
    "Actor",
    "security",
    "create_access_token",
    "get_current_user",
    "resolve_actor",
    "require_role",
]
