from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

from vitalstore.repositories.pagination import Page


ItemT = TypeVar("ItemT")


class PageResponse(BaseModel, Generic[ItemT]):
    items: list[ItemT]
    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def from_page(cls, page: Page, items: list[ItemT]) -> "PageResponse[ItemT]":
        return cls(
            items=items,
            page=page.page,
            page_size=page.page_size,
            total=page.total,
            total_pages=page.total_pages,
            has_next=page.has_next,
            has_prev=page.has_prev,
        )
