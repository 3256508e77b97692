from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest import TestCase

from tests.support import make_session_factory, utc
from vitalstore.core.errors import ValidationError
from vitalstore.domain.catalog import ValueType
from vitalstore.repositories.metrics import create_metric, list_metrics
from vitalstore.repositories.pagination import EPOCH, Page, PaginationParams, TimeRange, to_utc


class PaginationParamsTests(TestCase):
    def test_zero_page_and_size_fall_back_to_defaults(self) -> None:
        params = PaginationParams(page=0, page_size=0).normalized()

        self.assertEqual(params, PaginationParams(page=1, page_size=20))

    def test_page_size_is_capped(self) -> None:
        params = PaginationParams(page=3, page_size=500).normalized()

        self.assertEqual(params.page_size, 100)
        self.assertEqual(params.offset, 200)
        self.assertEqual(params.limit, 100)

    def test_custom_limits(self) -> None:
        params = PaginationParams(page=1, page_size=0).normalized(default_page_size=5, max_page_size=10)

        self.assertEqual(params.page_size, 5)


class PageTests(TestCase):
    def test_navigation_flags(self) -> None:
        page = Page(items=[1, 2], page=2, page_size=2, total=5)

        self.assertEqual(page.total_pages, 3)
        self.assertTrue(page.has_next)
        self.assertTrue(page.has_prev)

    def test_empty_page(self) -> None:
        page: Page[int] = Page(items=[], page=1, page_size=20, total=0)

        self.assertEqual(page.total_pages, 0)
        self.assertFalse(page.has_next)
        self.assertFalse(page.has_prev)

    def test_map_keeps_paging_fields(self) -> None:
        page = Page(items=[1, 2], page=1, page_size=2, total=3).map(str)

        self.assertEqual(page.items, ["1", "2"])
        self.assertEqual(page.total, 3)

    def test_paginate_counts_all_rows(self) -> None:
        session_factory = make_session_factory()
        with session_factory() as db:
            for index in range(5):
                create_metric(db, code=f"m{index}", name=f"Metric {index}", unit=None, value_type=ValueType.FLOAT)
            page = list_metrics(db, params=PaginationParams(page=2, page_size=2))

        self.assertEqual(page.total, 5)
        self.assertEqual(len(page.items), 2)
        self.assertEqual(page.total_pages, 3)


class TimeRangeTests(TestCase):
    def test_bounds_are_inclusive(self) -> None:
        time_range = TimeRange(start=utc(2024, 1, 1), end=utc(2024, 1, 2))

        self.assertTrue(time_range.contains(utc(2024, 1, 1)))
        self.assertTrue(time_range.contains(utc(2024, 1, 2)))
        self.assertFalse(time_range.contains(utc(2024, 1, 2, microsecond=1)))

    def test_start_after_end_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            TimeRange(start=utc(2024, 1, 2), end=utc(2024, 1, 1))

    def test_naive_bounds_are_utc(self) -> None:
        time_range = TimeRange(start=datetime(2024, 1, 1))

        self.assertEqual(time_range.start, utc(2024, 1, 1))

    def test_offset_bounds_are_converted(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        time_range = TimeRange(end=datetime(2024, 1, 1, 2, 0, tzinfo=plus_two))

        self.assertEqual(time_range.end, utc(2024, 1, 1))

    def test_resolve_fills_open_sides(self) -> None:
        now = utc(2026, 10, 18, 12)

        resolved = TimeRange().resolve(now)

        self.assertEqual(resolved.start, EPOCH)
        self.assertEqual(resolved.end, now)

    def test_resolve_with_future_start_is_empty(self) -> None:
        now = utc(2026, 10, 18, 12)

        resolved = TimeRange(start=utc(2026, 10, 19)).resolve(now)

        self.assertTrue(resolved.is_empty)
        self.assertEqual(resolved.end, now)
        self.assertFalse(resolved.contains(now))
        self.assertFalse(TimeRange().resolve(now).is_empty)

    def test_to_utc_keeps_instant(self) -> None:
        value = datetime(2024, 6, 1, 8, 30, tzinfo=timezone(timedelta(hours=-4)))

        self.assertEqual(to_utc(value), utc(2024, 6, 1, 12, 30))
