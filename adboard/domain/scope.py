from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TypeVar

from sqlalchemy import true
from sqlalchemy.sql.elements import ColumnElement

RowT = TypeVar("RowT")
StatementT = TypeVar("StatementT")


class PredicateKind(StrEnum):
    ALWAYS_TRUE = "ALWAYS_TRUE"
    OWNER_EQUALS = "OWNER_EQUALS"


@dataclass(frozen=True)
class Predicate:
    """Row-visibility filter for owned resources.

    Only narrows a row set. Applying it to a select adds a ``WHERE`` term
    joined with AND to whatever the caller already filtered on; ordering,
    offsets, limits and aggregates are left alone.
    """

    kind: PredicateKind
    owner_id: str | None = None

    @classmethod
    def always_true(cls) -> Predicate:
        return cls(kind=PredicateKind.ALWAYS_TRUE)

    @classmethod
    def owner_equals(cls, owner_id: str) -> Predicate:
        if not owner_id:
            raise ValueError("owner scope requires a user id")
        return cls(kind=PredicateKind.OWNER_EQUALS, owner_id=owner_id)

    @property
    def is_unrestricted(self) -> bool:
        return self.kind == PredicateKind.ALWAYS_TRUE

    def clause(self, owner_column: Any) -> ColumnElement[bool]:
        if self.is_unrestricted:
            return true()
        return owner_column == self.owner_id

    def apply(self, statement: StatementT, owner_column: Any) -> StatementT:
        if self.is_unrestricted:
            return statement
        return statement.where(self.clause(owner_column))  # type: ignore[attr-defined]

    def matches(self, owner_id: str | None) -> bool:
        if self.is_unrestricted:
            return True
        return owner_id is not None and owner_id == self.owner_id

    def filter(
        self,
        rows: Iterable[RowT],
        owner_of: Callable[[RowT], str | None] | None = None,
    ) -> list[RowT]:
        getter = owner_of or (lambda row: getattr(row, "owner_id", None))
        return [row for row in rows if self.matches(getter(row))]
