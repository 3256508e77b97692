"""Recipe definitions.

A recipe is either a primitive alias over one metric or a derived formula over
several dependency metrics. The two variants are separate classes so that a
primitive recipe cannot carry a calculation and a derived recipe cannot lack
one; the nullable storage shape only exists at the repository boundary.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Union

from vitalstore.core.errors import ValidationError
from vitalstore.domain.catalog import CatalogStatus, ValueType, Visualization


PRIMITIVE = "primitive"
DERIVED = "derived"
RECIPE_KINDS = (PRIMITIVE, DERIVED)


def _require_text(name: str, value: Any) -> str:
    if not isinstance(value, str) or value.strip() == "":
        raise ValidationError(f"derived recipe requires a non-empty {name}")
    return value.strip()


def _metric_id(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"metric id must be an integer, got {value!r}")
    if value <= 0:
        raise ValidationError(f"metric id must be positive, got {value}")
    return value


@dataclass(frozen=True)
class DerivedMetadata:
    """Presentation fields of a derived recipe, which is selectable like a metric."""

    code: str
    name: str
    unit: str
    value_type: ValueType
    visualization: Visualization = Visualization.LINE_CHART
    status: CatalogStatus = CatalogStatus.ACTIVE

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", _require_text("code", self.code))
        object.__setattr__(self, "name", _require_text("name", self.name))
        object.__setattr__(self, "unit", _require_text("unit", self.unit))
        if not isinstance(self.value_type, ValueType):
            raise ValidationError("derived recipe requires a value_type")
        if not isinstance(self.visualization, Visualization):
            raise ValidationError("derived recipe requires a visualization")
        if not isinstance(self.status, CatalogStatus):
            raise ValidationError("derived recipe requires a status")


@dataclass(frozen=True)
class PrimitiveRecipe:
    metric_id: int
    id: int | None = None
    created_at: datetime | None = None

    kind: ClassVar[str] = PRIMITIVE

    def __post_init__(self) -> None:
        _metric_id(self.metric_id)

    @property
    def deps(self) -> tuple[int, ...]:
        return (self.metric_id,)


@dataclass(frozen=True)
class DerivedRecipe:
    deps: tuple[int, ...]
    calc_key: str
    metadata: DerivedMetadata
    arg_map: Mapping[str, int] | None = field(default=None, hash=False)
    expr: dict[str, Any] | None = field(default=None, hash=False)
    id: int | None = None
    created_at: datetime | None = None

    kind: ClassVar[str] = DERIVED

    def __post_init__(self) -> None:
        if isinstance(self.deps, (str, bytes)) or not isinstance(self.deps, Iterable):
            raise ValidationError("derived recipe deps must be a list of metric ids")
        deps = tuple(_metric_id(dep) for dep in self.deps)
        if not deps:
            raise ValidationError("derived recipe requires at least one dependency")
        if len(set(deps)) != len(deps):
            raise ValidationError("derived recipe deps must not repeat a metric id")
        object.__setattr__(self, "deps", deps)
        object.__setattr__(self, "calc_key", _require_text("calc_key", self.calc_key))
        if not isinstance(self.metadata, DerivedMetadata):
            raise ValidationError("derived recipe requires presentation metadata")

        if self.arg_map is not None:
            if not isinstance(self.arg_map, Mapping) or not self.arg_map:
                raise ValidationError("arg_map must be a non-empty object when given")
            normalized: dict[str, int] = {}
            for name, metric_id in self.arg_map.items():
                if not isinstance(name, str) or name.strip() == "":
                    raise ValidationError("arg_map keys must be non-empty parameter names")
                metric_id = _metric_id(metric_id)
                if metric_id not in deps:
                    raise ValidationError(
                        f"arg_map parameter {name!r} points at metric {metric_id} which is not a dependency"
                    )
                normalized[name.strip()] = metric_id
            object.__setattr__(self, "arg_map", normalized)

    @property
    def is_selectable(self) -> bool:
        return self.metadata.status is CatalogStatus.ACTIVE

    def bind(self, params: Sequence[str]) -> dict[str, int]:
        """Map calculation parameter names to dependency metric ids.

        An explicit ``arg_map`` wins; without one the parameters bind to the
        dependencies in order, which requires the counts to match.
        """
        if self.arg_map is not None:
            missing = [name for name in params if name not in self.arg_map]
            if missing:
                raise ValidationError(f"arg_map does not bind parameter(s): {', '.join(missing)}")
            unknown = sorted(set(self.arg_map) - set(params))
            if unknown:
                raise ValidationError(f"arg_map names unknown parameter(s): {', '.join(unknown)}")
            return {name: self.arg_map[name] for name in params}

        if len(params) != len(self.deps):
            raise ValidationError(
                f"calculation {self.calc_key!r} takes {len(params)} input(s) "
                f"but the recipe has {len(self.deps)} dependencies"
            )
        return dict(zip(params, self.deps))


Recipe = Union[PrimitiveRecipe, DerivedRecipe]


def build_recipe(
    *,
    kind: str,
    deps: Sequence[int],
    calc_key: str | None = None,
    arg_map: Mapping[str, int] | None = None,
    expr: dict[str, Any] | None = None,
    code: str | None = None,
    name: str | None = None,
    unit: str | None = None,
    value_type: ValueType | str | None = None,
    visualization: Visualization | str | None = None,
    status: CatalogStatus | str | None = None,
    id: int | None = None,
    created_at: datetime | None = None,
) -> Recipe:
    """Build a recipe variant from loose, nullable fields.

    This is the single place where the flat request/storage shape is checked
    against the tagged union; illegal combinations raise ``ValidationError``.
    """
    normalized_kind = (kind or "").strip().lower()
    if normalized_kind not in RECIPE_KINDS:
        raise ValidationError(f"recipe kind must be one of {', '.join(RECIPE_KINDS)}")

    if isinstance(deps, (str, bytes)) or not isinstance(deps, Sequence):
        raise ValidationError("recipe deps must be a list of metric ids")

    if normalized_kind == PRIMITIVE:
        extras = {
            "calc_key": calc_key,
            "arg_map": arg_map,
            "expr": expr,
            "code": code,
            "name": name,
            "unit": unit,
            "value_type": value_type,
            "visualization": visualization,
            "status": status,
        }
        present = [field_name for field_name, value in extras.items() if value is not None]
        if present:
            raise ValidationError(f"primitive recipe must not set: {', '.join(present)}")
        if len(deps) != 1:
            raise ValidationError("primitive recipe must alias exactly one metric")
        return PrimitiveRecipe(metric_id=_metric_id(deps[0]), id=id, created_at=created_at)

    if value_type is None or visualization is None or status is None:
        raise ValidationError("derived recipe requires value_type, visualization and status")
    metadata = DerivedMetadata(
        code=code,  # type: ignore[arg-type]
        name=name,  # type: ignore[arg-type]
        unit=unit,  # type: ignore[arg-type]
        value_type=_coerce_enum(ValueType, value_type, "value_type"),
        visualization=_coerce_enum(Visualization, visualization, "visualization"),
        status=_coerce_enum(CatalogStatus, status, "status"),
    )
    return DerivedRecipe(
        deps=tuple(deps),
        calc_key=calc_key,  # type: ignore[arg-type]
        metadata=metadata,
        arg_map=arg_map,
        expr=expr,
        id=id,
        created_at=created_at,
    )


def _coerce_enum(enum_type: type, value: Any, field_name: str) -> Any:
    if isinstance(value, enum_type):
        return value
    if enum_type is ValueType:
        parsed = ValueType.from_alias(str(value))
        if parsed is None:
            raise ValidationError(f"invalid {field_name}: {value!r}")
        return parsed
    try:
        return enum_type(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"invalid {field_name}: {value!r}") from None
