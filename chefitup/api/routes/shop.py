"""
Shop routes for the FastAPI application.

Provides endpoints for:
- Generating a week's shopping list from its meal plan
- Editing items (add, check off, remove, clear checked)
- Exporting to Instacart
"""
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ...data.models import ShoppingList
from ...main import MealPlanningAssistant
from ...shopping.aggregator import group_by_category
from ..dependencies import get_assistant, run_blocking

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shopping-lists/{user_id}/{week_start}")


class AddItemRequest(BaseModel):
    """Request body for a manual item."""
    name: str
    quantity: str = "1"
    unit: str = ""


class AddRecipeRequest(BaseModel):
    """Request body for adding one recipe's ingredients."""
    recipe_id: str
    servings: Optional[int] = None


class ExportRequest(BaseModel):
    """Request body for exporting to Instacart."""
    title: Optional[str] = None


class ShoppingListResponse(BaseModel):
    """Shopping list plus its items grouped by category."""
    shopping_list: dict
    sections: Dict[str, List[dict]]
    total_items: int
    checked_items: int
    stale: bool = False


class ExportResponse(BaseModel):
    """Response from the Instacart export endpoint."""
    success: bool
    url: str
    mock: bool = False
    expires_at: Optional[str] = None


def _to_response(shopping_list: ShoppingList, stale: bool = False) -> ShoppingListResponse:
    return ShoppingListResponse(
        shopping_list=shopping_list.to_dict(),
        stale=stale,
        sections={
            category: [item.to_dict() for item in items]
            for category, items in group_by_category(shopping_list).items()
        },
        total_items=len(shopping_list.items),
        checked_items=sum(1 for item in shopping_list.items if item.checked),
    )


@router.post("/generate", response_model=ShoppingListResponse)
async def generate_shopping_list(
    user_id: str,
    week_start: str,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """Regenerate the list from the week's meal plan (discards manual edits)."""
    shopping_list = assistant.create_shopping_list(user_id, week_start)
    return _to_response(shopping_list, assistant.is_shopping_list_stale(user_id, week_start))


@router.get("", response_model=ShoppingListResponse)
async def get_shopping_list(
    user_id: str,
    week_start: str,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """
    Get the week's list, generating it on first access.

    A stored list is not rebuilt when the meal plan changes later; such a
    list comes back with stale=True until it is regenerated.
    """
    shopping_list = assistant.get_shopping_list(user_id, week_start)
    return _to_response(shopping_list, assistant.is_shopping_list_stale(user_id, week_start))


@router.get("/text")
async def get_shopping_list_text(
    user_id: str,
    week_start: str,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """Plain-text checklist for sharing."""
    return {"text": assistant.format_shopping_list(user_id, week_start)}


@router.post("/items", response_model=ShoppingListResponse)
async def add_item(
    user_id: str,
    week_start: str,
    item_request: AddItemRequest,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """Add a manual item (category "Other")."""
    shopping_list = assistant.add_shopping_item(
        user_id, week_start, item_request.name, item_request.quantity, item_request.unit
    )
    return _to_response(shopping_list, assistant.is_shopping_list_stale(user_id, week_start))


@router.post("/recipes", response_model=ShoppingListResponse)
async def add_recipe(
    user_id: str,
    week_start: str,
    recipe_request: AddRecipeRequest,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """Merge one recipe's ingredients into the list."""
    shopping_list = assistant.add_recipe_to_shopping_list(
        user_id, week_start, recipe_request.recipe_id, recipe_request.servings
    )
    return _to_response(shopping_list, assistant.is_shopping_list_stale(user_id, week_start))


@router.post("/items/{item_id}/toggle", response_model=ShoppingListResponse)
async def toggle_item(
    user_id: str,
    week_start: str,
    item_id: str,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """Check or uncheck an item."""
    shopping_list = assistant.toggle_shopping_item(user_id, week_start, item_id)
    return _to_response(shopping_list, assistant.is_shopping_list_stale(user_id, week_start))


@router.delete("/items/{item_id}", response_model=ShoppingListResponse)
async def remove_item(
    user_id: str,
    week_start: str,
    item_id: str,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """Remove an item."""
    shopping_list = assistant.remove_shopping_item(user_id, week_start, item_id)
    return _to_response(shopping_list, assistant.is_shopping_list_stale(user_id, week_start))


@router.post("/clear-checked", response_model=ShoppingListResponse)
async def clear_checked(
    user_id: str,
    week_start: str,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """Remove every checked item."""
    shopping_list = assistant.clear_checked_items(user_id, week_start)
    return _to_response(shopping_list, assistant.is_shopping_list_stale(user_id, week_start))


@router.post("/export", response_model=ExportResponse)
async def export_to_instacart(
    user_id: str,
    week_start: str,
    export_request: Optional[ExportRequest] = None,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """
    Send the unchecked items to Instacart.

    Returns:
        ExportResponse with the cart URL; 400 for an empty list, 502 when
        Instacart rejects the request or cannot be reached
    """
    title = export_request.title if export_request else None
    result = await run_blocking(assistant.export_shopping_list, user_id, week_start, title)
    if not result.ok:
        logger.warning(f"[INSTACART] Export failed for {user_id}/{week_start}: {result.message}")
        raise HTTPException(status_code=400 if result.invalid_input else 502, detail=result.message)
    return ExportResponse(**result.to_dict())
