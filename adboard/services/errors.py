from __future__ import annotations

from adboard.domain.access import Decision


class AccessError(Exception):
    pass


class NotFoundError(AccessError):
    pass


class ConflictError(AccessError):
    """The write violates a store constraint; retrying cannot succeed."""


class StoreUnavailableError(AccessError):
    pass


class UnscopedResourceError(AccessError):
    pass


class AccessDeniedError(AccessError):
    def __init__(self, decision: Decision) -> None:
        super().__init__(decision.message or decision.reason.value)
        self.decision = decision
