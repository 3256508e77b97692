"""Catalog vocabulary: what can be observed, about whom, and from where.

The enums read stored strings leniently. A dirty row must never make a whole
listing fail, so unknown visualizations fall back to ``single_value``, unknown
statuses to ``active`` and unknown value types to ``text``.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from vitalstore.core.errors import ValidationError


NUMERIC_PATTERN = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


class ValueType(str, Enum):
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    TEXT = "text"

    @classmethod
    def from_alias(cls, raw: str | None) -> "ValueType | None":
        normalized = (raw or "").strip().lower()
        aliases = {
            "int": cls.INTEGER,
            "integer": cls.INTEGER,
            "float": cls.FLOAT,
            "decimal": cls.DECIMAL,
            "bool": cls.BOOLEAN,
            "boolean": cls.BOOLEAN,
            "text": cls.TEXT,
            "string": cls.TEXT,
        }
        return aliases.get(normalized)

    @classmethod
    def parse(cls, raw: str | None) -> "ValueType":
        return cls.from_alias(raw) or cls.TEXT

    @property
    def is_numeric(self) -> bool:
        return self in (ValueType.INTEGER, ValueType.FLOAT, ValueType.DECIMAL)


class Visualization(str, Enum):
    LINE_CHART = "line_chart"
    BAR_CHART = "bar_chart"
    VALUE_LIST = "value_list"
    SINGLE_VALUE = "single_value"

    @classmethod
    def parse(cls, raw: str | None) -> "Visualization":
        normalized = (raw or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.SINGLE_VALUE


class CatalogStatus(str, Enum):
    ACTIVE = "active"
    DEPRECATED = "deprecated"

    @classmethod
    def parse(cls, raw: str | None) -> "CatalogStatus":
        if (raw or "").strip().lower() == cls.DEPRECATED.value:
            return cls.DEPRECATED
        return cls.ACTIVE


class SubjectKind(str, Enum):
    USER = "user"
    MEMBER = "member"
    DEVICE = "device"


class DataSourceKind(str, Enum):
    DEVICE = "device"
    MANUAL = "manual"
    IMPORT = "import"
    SYSTEM = "system"


def normalize_kind(raw: str, known: type[Enum]) -> str:
    """Return the canonical spelling of a known kind, or the trimmed custom kind."""
    normalized = raw.strip()
    if normalized == "":
        raise ValidationError("kind must not be empty")
    lowered = normalized.lower()
    for member in known:
        if member.value == lowered:
            return member.value
    return normalized


@dataclass(frozen=True)
class ObservationValue:
    """A stored observation value.

    Values are persisted as opaque strings; the owning metric's value type
    decides at read time whether the string lands on a numeric axis.
    """

    raw: str

    def __str__(self) -> str:
        return self.raw

    def try_parse_float(self) -> float | None:
        text = self.raw.strip()
        if NUMERIC_PATTERN.fullmatch(text) is None:
            return None
        parsed = float(text)
        if not math.isfinite(parsed):
            return None
        return parsed

    def try_parse_numeric(self, value_type: ValueType) -> float | None:
        if value_type is ValueType.INTEGER:
            return self.try_parse_float()
        if value_type is ValueType.FLOAT:
            return self.try_parse_float()
        if value_type is ValueType.DECIMAL:
            return self.try_parse_float()
        if value_type is ValueType.BOOLEAN:
            return None
        if value_type is ValueType.TEXT:
            return None
        raise ValueError(f"unhandled value_type: {value_type!r}")

    @classmethod
    def of(cls, value: Any) -> "ObservationValue":
        if isinstance(value, ObservationValue):
            return value
        if isinstance(value, bool):
            return cls("true" if value else "false")
        return cls(str(value))


@dataclass(frozen=True)
class Subject:
    id: int
    kind: str
    created_at: datetime


@dataclass(frozen=True)
class DataSource:
    id: int
    kind: str
    name: str
    metadata: dict[str, Any] | None
    created_at: datetime


@dataclass(frozen=True)
class NewDataSource:
    kind: str
    name: str
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class Metric:
    id: int
    code: str
    name: str
    unit: str | None
    value_type: ValueType
    visualization: Visualization
    status: CatalogStatus
    created_at: datetime

    @property
    def is_selectable(self) -> bool:
        return self.status is CatalogStatus.ACTIVE

    def try_parse_numeric(self, value: ObservationValue) -> float | None:
        return value.try_parse_numeric(self.value_type)


@dataclass(frozen=True)
class SelectableMetric:
    id: int
    name: str
    unit: str | None


@dataclass(frozen=True)
class Observation:
    id: int
    subject_id: int
    metric_id: int
    value: ObservationValue
    observed_at: datetime
    recorded_at: datetime
    source_id: int | None


@dataclass(frozen=True)
class ObservationPoint:
    value: ObservationValue
    observed_at: datetime
