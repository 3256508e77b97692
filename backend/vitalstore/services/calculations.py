"""Registry of the numeric formulas behind derived metrics.

A calculation is addressed by a versioned key (``tyg_v1``) that recipes store.
The formula behind a key never changes; a corrected formula gets a new key so
that existing recipes keep their meaning.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from vitalstore.core.errors import CalculationError, UnknownCalculationError


CalculationFn = Callable[[Mapping[str, float]], float]


@dataclass(frozen=True)
class Calculation:
    key: str
    params: tuple[str, ...]
    fn: CalculationFn
    description: str = ""

    def __call__(self, inputs: Mapping[str, float]) -> float:
        missing = [name for name in self.params if name not in inputs]
        if missing:
            raise CalculationError(calc_key=self.key, detail=f"missing input(s): {', '.join(missing)}")
        try:
            result = float(self.fn(inputs))
        except CalculationError:
            raise
        except (ArithmeticError, ValueError) as exc:
            raise CalculationError(calc_key=self.key, detail=str(exc)) from exc
        if not math.isfinite(result):
            raise CalculationError(calc_key=self.key, detail=f"result is not finite: {result}")
        return result


class CalculationRegistry:
    """Immutable ``calc_key -> Calculation`` mapping."""

    def __init__(self, calculations: Iterable[Calculation] = ()):
        entries: dict[str, Calculation] = {}
        for calculation in calculations:
            if calculation.key in entries:
                raise ValueError(f"duplicate calculation key: {calculation.key}")
            entries[calculation.key] = calculation
        self._entries: Mapping[str, Calculation] = MappingProxyType(entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[Calculation]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, key: str) -> Calculation | None:
        return self._entries.get(key)

    def require(self, key: str) -> Calculation:
        calculation = self._entries.get(key)
        if calculation is None:
            raise UnknownCalculationError(key)
        return calculation

    def keys(self) -> list[str]:
        return sorted(self._entries)

    def with_calculation(self, calculation: Calculation) -> "CalculationRegistry":
        return CalculationRegistry([*self._entries.values(), calculation])


def _tyg(inputs: Mapping[str, float]) -> float:
    product = inputs["tg"] * inputs["fpg"]
    if product <= 0:
        raise CalculationError(calc_key="tyg_v1", detail="tg * fpg must be positive")
    return math.log(product)


def _bmi(inputs: Mapping[str, float]) -> float:
    height_m = inputs["height_cm"] / 100.0
    if height_m <= 0:
        raise CalculationError(calc_key="bmi_v1", detail="height_cm must be positive")
    return inputs["weight_kg"] / (height_m * height_m)


def _homa_ir(inputs: Mapping[str, float]) -> float:
    return inputs["fpg"] * inputs["insulin"] / 22.5


def _non_hdl_c(inputs: Mapping[str, float]) -> float:
    return inputs["tc"] - inputs["hdl_c"]


def _mean_arterial_pressure(inputs: Mapping[str, float]) -> float:
    return (inputs["sbp"] + 2.0 * inputs["dbp"]) / 3.0


BUILTIN_CALCULATIONS: tuple[Calculation, ...] = (
    Calculation(
        key="tyg_v1",
        params=("tg", "fpg"),
        fn=_tyg,
        description="Triglyceride-glucose index, ln(TG * FPG)",
    ),
    Calculation(
        key="bmi_v1",
        params=("weight_kg", "height_cm"),
        fn=_bmi,
        description="Body mass index, weight_kg / (height_cm / 100)^2",
    ),
    Calculation(
        key="homa_ir_v1",
        params=("fpg", "insulin"),
        fn=_homa_ir,
        description="HOMA insulin resistance, FPG [mmol/L] * insulin [uU/mL] / 22.5",
    ),
    Calculation(
        key="non_hdl_c_v1",
        params=("tc", "hdl_c"),
        fn=_non_hdl_c,
        description="Non-HDL cholesterol, TC - HDL-C",
    ),
    Calculation(
        key="map_v1",
        params=("sbp", "dbp"),
        fn=_mean_arterial_pressure,
        description="Mean arterial pressure, (SBP + 2 * DBP) / 3",
    ),
)


def default_registry() -> CalculationRegistry:
    return CalculationRegistry(BUILTIN_CALCULATIONS)
