from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from vitalstore.core.errors import ValidationError


T = TypeVar("T")
U = TypeVar("U")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class PaginationParams:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def normalized(
        self,
        *,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> "PaginationParams":
        page = self.page if self.page >= 1 else 1
        page_size = self.page_size if self.page_size >= 1 else default_page_size
        return PaginationParams(page=page, page_size=min(page_size, max_page_size))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def map(self, fn: Callable[[T], U]) -> "Page[U]":
        return Page(
            items=[fn(item) for item in self.items],
            page=self.page,
            page_size=self.page_size,
            total=self.total,
        )


def paginate(db: Session, statement: Select[Any], params: PaginationParams) -> Page[Any]:
    """Run ``statement`` for one page of scalars plus a total count.

    ``params`` is expected to be normalized already.
    """
    total = db.scalar(select(func.count()).select_from(statement.order_by(None).subquery())) or 0
    items = list(db.scalars(statement.offset(params.offset).limit(params.limit)))
    return Page(items=items, page=params.page, page_size=params.page_size, total=int(total))


@dataclass(frozen=True)
class TimeRange:
    """Inclusive ``[start, end]`` bound on an instant column; ``None`` leaves a side open."""

    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        start = to_utc(self.start) if self.start is not None else None
        end = to_utc(self.end) if self.end is not None else None
        if start is not None and end is not None and start > end:
            raise ValidationError("'from' must not be after 'to'")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    def resolve(self, now: datetime | None = None) -> "TimeRange":
        """Fill the open sides: since epoch, until now.

        Only bounds the caller supplied are checked against each other. A start
        later than the filled-in "now" gives an empty range, not an error.
        """
        resolved = object.__new__(TimeRange)
        object.__setattr__(resolved, "start", self.start if self.start is not None else EPOCH)
        end = self.end if self.end is not None else to_utc(now or datetime.now(timezone.utc))
        object.__setattr__(resolved, "end", end)
        return resolved

    @property
    def is_empty(self) -> bool:
        return self.start is not None and self.end is not None and self.start > self.end

    def apply(self, statement: Select[Any], column: Any) -> Select[Any]:
        if self.start is not None:
            statement = statement.where(column >= self.start)
        if self.end is not None:
            statement = statement.where(column <= self.end)
        return statement

    def contains(self, instant: datetime) -> bool:
        instant = to_utc(instant)
        if self.start is not None and instant < self.start:
            return False
        if self.end is not None and instant > self.end:
            return False
        return True


def to_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
