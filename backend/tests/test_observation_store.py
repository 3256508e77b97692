from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest import TestCase

from tests.support import make_session_factory, utc
from vitalstore.domain.catalog import ObservationValue, ValueType
from vitalstore.repositories.metrics import create_metric
from vitalstore.repositories.observations import get_observation, iter_series, query_series, record_observation
from vitalstore.repositories.pagination import TimeRange
from vitalstore.repositories.subjects import create_data_source, create_subject


class ObservationStoreTests(TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        with self.session_factory() as db:
            self.subject_id = create_subject(db, kind="user").id
            self.metric_id = create_metric(
                db,
                code="weight",
                name="Body weight",
                unit="kg",
                value_type=ValueType.DECIMAL,
            ).id

    def test_round_trip(self) -> None:
        observed_at = utc(2024, 1, 1, 7, 30)
        before = datetime.now(timezone.utc)

        with self.session_factory() as db:
            observation = record_observation(
                db,
                subject_id=self.subject_id,
                metric_id=self.metric_id,
                value="72.4",
                observed_at=observed_at,
            )
            points = query_series(db, subject_id=self.subject_id, metric_id=self.metric_id)
            stored = get_observation(db, observation.id)

        self.assertEqual(len(points), 1)
        self.assertEqual(points[0].value, ObservationValue("72.4"))
        self.assertEqual(points[0].observed_at, observed_at)
        self.assertIsNotNone(stored)
        self.assertGreaterEqual(stored.recorded_at, before - timedelta(seconds=1))
        self.assertIsNone(stored.source_id)

    def test_recorded_at_is_server_time_not_observed_at(self) -> None:
        observed_at = utc(2020, 5, 5)

        with self.session_factory() as db:
            observation = record_observation(
                db,
                subject_id=self.subject_id,
                metric_id=self.metric_id,
                value="70",
                observed_at=observed_at,
            )

        self.assertNotEqual(observation.recorded_at, observed_at)
        self.assertGreater(observation.recorded_at, observed_at)

    def test_series_is_ordered_by_observed_at(self) -> None:
        instants = [utc(2024, 1, 3), utc(2024, 1, 1), utc(2024, 1, 2)]
        with self.session_factory() as db:
            for index, observed_at in enumerate(instants):
                record_observation(
                    db,
                    subject_id=self.subject_id,
                    metric_id=self.metric_id,
                    value=str(70 + index),
                    observed_at=observed_at,
                )
            points = list(iter_series(db, subject_id=self.subject_id, metric_id=self.metric_id, yield_per=1))

        self.assertEqual([point.observed_at for point in points], sorted(instants))
        self.assertEqual([point.value.raw for point in points], ["71", "72", "70"])

    def test_range_bounds_are_inclusive(self) -> None:
        start = utc(2024, 1, 1)
        end = utc(2024, 1, 31)
        with self.session_factory() as db:
            for observed_at in (start - timedelta(seconds=1), start, end, end + timedelta(seconds=1)):
                record_observation(
                    db,
                    subject_id=self.subject_id,
                    metric_id=self.metric_id,
                    value="70",
                    observed_at=observed_at,
                )
            points = query_series(
                db,
                subject_id=self.subject_id,
                metric_id=self.metric_id,
                time_range=TimeRange(start=start, end=end),
            )

        self.assertEqual([point.observed_at for point in points], [start, end])

    def test_non_utc_input_is_stored_as_the_same_instant(self) -> None:
        observed_at = datetime(2024, 1, 1, 9, 0, tzinfo=timezone(timedelta(hours=9)))

        with self.session_factory() as db:
            record_observation(
                db,
                subject_id=self.subject_id,
                metric_id=self.metric_id,
                value="70",
                observed_at=observed_at,
            )
            points = query_series(db, subject_id=self.subject_id, metric_id=self.metric_id)

        self.assertEqual(points[0].observed_at, utc(2024, 1, 1, 0, 0))

    def test_source_is_kept(self) -> None:
        with self.session_factory() as db:
            source = create_data_source(db, kind="device", name="Scale")
            observation = record_observation(
                db,
                subject_id=self.subject_id,
                metric_id=self.metric_id,
                value="70",
                observed_at=utc(2024, 1, 1),
                source_id=source.id,
            )

        self.assertEqual(observation.source_id, source.id)
