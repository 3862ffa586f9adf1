"""
Recipe routes for the FastAPI application.

Provides endpoints for:
- Browsing and filtering the catalog
- AI search
- AI recipe generation
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from ...main import MealPlanningAssistant
from ..dependencies import get_assistant, llm_error_to_http, run_blocking

logger = logging.getLogger(__name__)

router = APIRouter()


class RecipeListResponse(BaseModel):
    """Response for catalog listings."""
    recipes: List[dict]
    count: int


class RecipeResponse(BaseModel):
    """Response wrapping a single recipe."""
    recipe: dict


class SearchResponse(BaseModel):
    """Response from the AI search endpoint."""
    recipes: List[dict]
    ai_enabled: bool
    tier: str
    message: Optional[str] = None


class GenerateRecipeRequest(BaseModel):
    """Request body for generating a recipe."""
    prompt: str


@router.get("/recipes", response_model=RecipeListResponse)
async def list_recipes(
    query: Optional[str] = None,
    cuisine: Optional[str] = None,
    dietary: List[str] = Query(default=[]),
    max_time: Optional[int] = None,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """
    List catalog recipes.

    Args:
        query: Substring of title or description
        cuisine: Cuisine type ("all" for any)
        dietary: Required dietary tags (repeatable)
        max_time: Maximum prep + cook minutes

    Returns:
        RecipeListResponse in catalog order
    """
    recipes = assistant.list_recipes(
        query=query,
        cuisine_type=cuisine,
        dietary_restrictions=dietary,
        max_time=max_time,
    )
    return RecipeListResponse(recipes=[r.to_dict() for r in recipes], count=len(recipes))


@router.get("/recipes/filters")
async def recipe_filters(assistant: MealPlanningAssistant = Depends(get_assistant)):
    """Distinct cuisines and dietary tags for filter pickers."""
    return {
        "cuisines": assistant.recipe_store.get_cuisines(),
        "dietary_restrictions": assistant.recipe_store.get_dietary_tags(),
    }


@router.get("/recipes/{recipe_id}", response_model=RecipeResponse)
async def get_recipe(recipe_id: str, assistant: MealPlanningAssistant = Depends(get_assistant)):
    """Get one catalog or generated recipe."""
    return RecipeResponse(recipe=assistant.get_recipe(recipe_id).to_dict())


@router.get("/search", response_model=SearchResponse)
async def search_recipes(query: str = "", assistant: MealPlanningAssistant = Depends(get_assistant)):
    """
    Search recipes with AI assistance.

    Falls back to plain substring search when the LLM is unavailable; the
    tier field reports which strategy produced the results.
    """
    outcome = await run_blocking(assistant.search_recipes, query)
    return SearchResponse(**outcome.to_dict())


@router.post("/generate-recipe", response_model=RecipeResponse)
async def generate_recipe(
    generate_request: GenerateRecipeRequest,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """
    Generate a recipe from a free-text request.

    Returns:
        RecipeResponse; 503 when no LLM key is configured, 502 when the LLM
        fails or returns an invalid recipe
    """
    result = await run_blocking(assistant.generate_recipe, generate_request.prompt)
    if not result.ok:
        logger.warning(f"[GENERATE] Generation failed: {result.message}")
        raise llm_error_to_http(result)
    return RecipeResponse(recipe=result.value.to_dict())
