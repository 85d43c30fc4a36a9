from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from adboard.domain.access import Subject

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MIN = int(os.getenv("JWT_EXPIRES_MIN", "60"))


class InvalidSubjectError(ValueError):
    pass


def create_access_token(subject: Subject, *, expires_minutes: int | None = None) -> str:
    now = datetime.now(UTC)
    expire_delta = timedelta(minutes=expires_minutes or JWT_EXPIRES_MIN)
    payload: dict[str, Any] = {
        "sub": subject.user_id,
        "role_id": subject.role_id,
        "role_name": subject.role_name,
        "role_level": subject.role_level,
        "iat": int(now.timestamp()),
        "exp": int((now + expire_delta).timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    decoded = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    if not isinstance(decoded, dict):
        raise ValueError("Invalid token payload")
    return decoded


def subject_from_claims(claims: dict[str, Any]) -> Subject:
    user_id = claims.get("sub")
    role_id = claims.get("role_id")
    role_name = claims.get("role_name")
    role_level = claims.get("role_level")
    if not isinstance(user_id, str) or not user_id:
        raise InvalidSubjectError("token has no subject")
    if not isinstance(role_id, str) or not role_id:
        raise InvalidSubjectError("token has no role")
    if not isinstance(role_name, str):
        raise InvalidSubjectError("token has no role name")
    if isinstance(role_level, bool) or not isinstance(role_level, int):
        raise InvalidSubjectError("token has no role level")
    return Subject(user_id=user_id, role_id=role_id, role_name=role_name, role_level=role_level)
