from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

from vitalstore.core.errors import MissingDependencyError, ParseError
from vitalstore.domain.catalog import ObservationValue, ValueType
from vitalstore.services.calculations import CalculationRegistry


class DerivedEvaluator:
    """Evaluate one derived point from one aligned row. No I/O."""

    def __init__(self, registry: CalculationRegistry):
        self._registry = registry

    @property
    def registry(self) -> CalculationRegistry:
        return self._registry

    def evaluate(
        self,
        calc_key: str,
        values: Mapping[int, str],
        *,
        bindings: Mapping[str, int],
        value_types: Mapping[int, ValueType],
        observed_at: datetime | None = None,
    ) -> float:
        calculation = self._registry.require(calc_key)

        inputs: dict[str, float] = {}
        for param in calculation.params:
            metric_id = bindings[param]
            raw = values.get(metric_id)
            if raw is None:
                raise MissingDependencyError(metric_id=metric_id, observed_at=observed_at)
            value_type = value_types.get(metric_id, ValueType.TEXT)
            parsed = ObservationValue(raw).try_parse_numeric(value_type)
            if parsed is None:
                raise ParseError(metric_id=metric_id, value=raw)
            inputs[param] = parsed

        return calculation(inputs)
