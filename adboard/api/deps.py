from __future__ import annotations

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from adboard.domain.access import Decision, DecisionReason, Subject
from adboard.infra.auth import decode_access_token, subject_from_claims
from adboard.services.authorization_service import UNAVAILABLE_MESSAGE, AuthorizationEngine

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/identity/token")


def get_authorization_engine() -> AuthorizationEngine:
    return AuthorizationEngine()


def get_current_subject(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> Subject:
    try:
        subject = subject_from_claims(decode_access_token(token))
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    request.state.subject = subject
    return subject


def raise_for_decision(decision: Decision) -> None:
    if decision.allowed:
        return
    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE
        if decision.reason == DecisionReason.UNAVAILABLE
        else status.HTTP_403_FORBIDDEN
    )
    raise HTTPException(status_code=status_code, detail=decision.as_detail())


def raise_store_unavailable() -> None:
    raise_for_decision(Decision.deny(DecisionReason.UNAVAILABLE, UNAVAILABLE_MESSAGE))


def require_access(module: str, action: str) -> Callable[..., Subject]:
    def _checker(
        subject: Annotated[Subject, Depends(get_current_subject)],
        engine: Annotated[AuthorizationEngine, Depends(get_authorization_engine)],
    ) -> Subject:
        raise_for_decision(engine.check(subject, module, action))
        return subject

    return _checker


def require_all_access(*keys: tuple[str, str]) -> Callable[..., Subject]:
    expected = [item for item in keys if item]

    def _checker(
        subject: Annotated[Subject, Depends(get_current_subject)],
        engine: Annotated[AuthorizationEngine, Depends(get_authorization_engine)],
    ) -> Subject:
        if expected:
            raise_for_decision(engine.check_all(subject, expected))
        return subject

    return _checker


def require_any_access(*keys: tuple[str, str]) -> Callable[..., Subject]:
    expected = [item for item in keys if item]

    def _checker(
        subject: Annotated[Subject, Depends(get_current_subject)],
        engine: Annotated[AuthorizationEngine, Depends(get_authorization_engine)],
    ) -> Subject:
        if expected:
            raise_for_decision(engine.check_any(subject, expected))
        return subject

    return _checker
