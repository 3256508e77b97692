from __future__ import annotations

from datetime import datetime
from typing import Any


class ObservationCoreError(RuntimeError):
    """Base class for every error raised by the observation core."""


class NotFoundError(ObservationCoreError):
    def __init__(self, entity: str, identifier: Any):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found: {identifier}")


class AlreadyExistsError(ObservationCoreError):
    def __init__(self, entity: str, field: str, value: Any):
        self.entity = entity
        self.field = field
        self.value = value
        super().__init__(f"{entity} with {field}={value!r} already exists")


class ValidationError(ObservationCoreError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class ParseError(ValidationError):
    def __init__(self, *, metric_id: int, value: str | None):
        self.metric_id = metric_id
        self.value = value
        super().__init__(f"value {value!r} of metric {metric_id} is not numeric")


class MissingDependencyError(ObservationCoreError):
    def __init__(self, *, metric_id: int, observed_at: datetime | None = None):
        self.metric_id = metric_id
        self.observed_at = observed_at
        where = f" at {observed_at.isoformat()}" if observed_at is not None else ""
        super().__init__(f"dependency metric {metric_id} has no observation{where}")


class UnknownCalculationError(ObservationCoreError):
    def __init__(self, calc_key: str):
        self.calc_key = calc_key
        super().__init__(f"unknown calculation: {calc_key!r}")


class CalculationError(ObservationCoreError):
    def __init__(self, *, calc_key: str, detail: str):
        self.calc_key = calc_key
        self.detail = detail
        super().__init__(f"calculation {calc_key!r} failed: {detail}")


class StorageError(ObservationCoreError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"storage failure: {detail}")


# Errors that make a single derived row unusable without invalidating the series.
ROW_EVALUATION_ERRORS = (ParseError, MissingDependencyError, CalculationError)
