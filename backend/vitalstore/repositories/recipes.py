from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from vitalstore.db.models import Recipe as RecipeRow
from vitalstore.domain.catalog import CatalogStatus, ValueType, Visualization
from vitalstore.domain.recipes import DERIVED, DerivedRecipe, PrimitiveRecipe, Recipe, build_recipe
from vitalstore.repositories.pagination import to_utc


def create_recipe(db: Session, recipe: Recipe) -> Recipe:
    row = RecipeRow(**recipe_to_columns(recipe), created_at=datetime.now(timezone.utc))
    db.add(row)
    db.commit()
    db.refresh(row)
    return recipe_from_row(row)


def get_recipe(db: Session, recipe_id: int) -> Recipe | None:
    row = db.get(RecipeRow, recipe_id)
    return recipe_from_row(row) if row is not None else None


def recipe_code_exists(db: Session, code: str) -> bool:
    return bool(db.scalar(select(exists().where(RecipeRow.code == code))))


def list_recipes(db: Session, *, calc_key: str | None = None) -> list[Recipe]:
    statement = select(RecipeRow)
    if calc_key is not None:
        statement = statement.where(RecipeRow.calc_key == calc_key)
    rows = db.scalars(statement.order_by(RecipeRow.created_at.desc(), RecipeRow.id.desc()))
    return [recipe_from_row(row) for row in rows]


def list_selectable_recipes(db: Session) -> list[DerivedRecipe]:
    rows = db.scalars(
        select(RecipeRow)
        .where(
            RecipeRow.kind == DERIVED,
            RecipeRow.status == CatalogStatus.ACTIVE.value,
        )
        .order_by(RecipeRow.name.asc(), RecipeRow.id.asc())
    )
    recipes = [recipe_from_row(row) for row in rows]
    return [recipe for recipe in recipes if isinstance(recipe, DerivedRecipe)]


def deprecate_recipe(db: Session, recipe_id: int) -> Recipe | None:
    row = db.get(RecipeRow, recipe_id)
    if row is None:
        return None
    if row.kind == DERIVED and row.status != CatalogStatus.DEPRECATED.value:
        row.status = CatalogStatus.DEPRECATED.value
        db.add(row)
        db.commit()
        db.refresh(row)
    return recipe_from_row(row)


def recipe_to_columns(recipe: Recipe) -> dict[str, Any]:
    if isinstance(recipe, PrimitiveRecipe):
        return {
            "kind": recipe.kind,
            "deps": [recipe.metric_id],
            "calc_key": None,
            "arg_map": None,
            "expr": None,
            "code": None,
            "name": None,
            "unit": None,
            "value_type": None,
            "visualization": None,
            "status": None,
        }
    metadata = recipe.metadata
    return {
        "kind": recipe.kind,
        "deps": list(recipe.deps),
        "calc_key": recipe.calc_key,
        "arg_map": dict(recipe.arg_map) if recipe.arg_map is not None else None,
        "expr": recipe.expr,
        "code": metadata.code,
        "name": metadata.name,
        "unit": metadata.unit,
        "value_type": metadata.value_type.value,
        "visualization": metadata.visualization.value,
        "status": metadata.status.value,
    }


def recipe_from_row(row: RecipeRow) -> Recipe:
    derived = row.kind == DERIVED
    return build_recipe(
        kind=row.kind,
        deps=[int(dep) for dep in (row.deps or [])],
        calc_key=row.calc_key,
        arg_map={str(key): int(value) for key, value in row.arg_map.items()} if row.arg_map else None,
        expr=row.expr,
        code=row.code,
        name=row.name,
        unit=row.unit,
        value_type=ValueType.parse(row.value_type) if derived else None,
        visualization=Visualization.parse(row.visualization) if derived else None,
        status=CatalogStatus.parse(row.status) if derived else None,
        id=row.id,
        created_at=to_utc(row.created_at),
    )
