"""Paging and sorting parameters for listing queries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

CREATED_AT = "created_at"


@dataclass
class Pagination:
    """A page request; ``count`` is filled in with the total number of rows."""

    page: int
    per_page: int
    count: int = 0

    def offset(self) -> int:
        """Number of rows that come before this page."""
        if self.page < 1:
            raise ValueError("page numbers start at 1")
        return (self.page - 1) * self.per_page


class SortDirection(str, Enum):
    ASCENDING = "ASC"
    DESCENDING = "DESC"


@dataclass
class SortField:
    name: str
    direction: SortDirection = SortDirection.ASCENDING


@dataclass
class SortParams:
    fields: list[SortField] = field(default_factory=list)