from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from vitalstore.core.errors import UnknownCalculationError
from vitalstore.dependencies import get_catalog_service, get_observation_service
from vitalstore.domain.recipes import Recipe, build_recipe
from vitalstore.repositories.recipes import recipe_to_columns
from vitalstore.schemas.catalog import RecipeCreateRequest, RecipeResponse
from vitalstore.services.catalog import CatalogService
from vitalstore.services.observations import ObservationService


router = APIRouter(prefix="/api", tags=["recipes"])


@router.post("/recipes", response_model=RecipeResponse, status_code=status.HTTP_201_CREATED)
def post_recipe(
    payload: RecipeCreateRequest,
    catalog: CatalogService = Depends(get_catalog_service),
) -> RecipeResponse:
    definition = build_recipe(**payload.model_dump())
    try:
        recipe = catalog.create_recipe(definition)
    except UnknownCalculationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return recipe_to_response(recipe)


@router.get("/recipes", response_model=list[RecipeResponse])
def get_recipes(
    calc_key: str | None = None,
    catalog: CatalogService = Depends(get_catalog_service),
) -> list[RecipeResponse]:
    return [recipe_to_response(recipe) for recipe in catalog.list_recipes(calc_key=calc_key)]


@router.get("/recipes/selectable", response_model=list[RecipeResponse])
def get_selectable_recipes(
    observations: ObservationService = Depends(get_observation_service),
) -> list[RecipeResponse]:
    return [recipe_to_response(recipe) for recipe in observations.list_selectable_recipes()]


@router.get("/recipes/{recipe_id}", response_model=RecipeResponse)
def get_recipe(
    recipe_id: int,
    catalog: CatalogService = Depends(get_catalog_service),
) -> RecipeResponse:
    return recipe_to_response(catalog.get_recipe(recipe_id))


@router.post("/recipes/{recipe_id}/deprecate", response_model=RecipeResponse)
def post_deprecate_recipe(
    recipe_id: int,
    catalog: CatalogService = Depends(get_catalog_service),
) -> RecipeResponse:
    return recipe_to_response(catalog.deprecate_recipe(recipe_id))


def recipe_to_response(recipe: Recipe) -> RecipeResponse:
    return RecipeResponse(
        id=recipe.id,
        created_at=recipe.created_at,
        **recipe_to_columns(recipe),
    )
