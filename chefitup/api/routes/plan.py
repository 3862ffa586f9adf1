"""
Meal plan routes for the FastAPI application.

Provides endpoints for:
- Getting a week's plan
- Setting and clearing meal slots
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...main import MealPlanningAssistant
from ..dependencies import get_assistant

logger = logging.getLogger(__name__)

router = APIRouter()


class PlanMealRequest(BaseModel):
    """Request body for putting a recipe in a slot."""
    recipe_id: str
    servings: Optional[int] = None


class PlanResponse(BaseModel):
    """Response model for a meal plan."""
    meal_plan: dict


class PlanListResponse(BaseModel):
    """Response model for a user's meal plans."""
    meal_plans: List[dict]


@router.get("/meal-plans/{user_id}", response_model=PlanListResponse)
async def list_meal_plans(user_id: str, assistant: MealPlanningAssistant = Depends(get_assistant)):
    """All of a user's meal plans, oldest week first."""
    return PlanListResponse(meal_plans=[p.to_dict() for p in assistant.meal_plans.list_meal_plans(user_id)])


@router.get("/meal-plans/{user_id}/{week_start}", response_model=PlanResponse)
async def get_meal_plan(user_id: str, week_start: str, assistant: MealPlanningAssistant = Depends(get_assistant)):
    """
    Get (or create) the meal plan for a week.

    Args:
        user_id: User identifier
        week_start: ISO date of the week's Monday
    """
    return PlanResponse(meal_plan=assistant.get_meal_plan(user_id, week_start).to_dict())


@router.put("/meal-plans/{user_id}/{week_start}/{day}/{slot}", response_model=PlanResponse)
async def plan_meal(
    user_id: str,
    week_start: str,
    day: str,
    slot: str,
    plan_request: PlanMealRequest,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """Put a recipe in a slot; servings default to the recipe's base servings."""
    plan = assistant.plan_meal(
        user_id, week_start, day, slot,
        recipe_id=plan_request.recipe_id,
        servings=plan_request.servings,
    )
    return PlanResponse(meal_plan=plan.to_dict())


@router.delete("/meal-plans/{user_id}/{week_start}/{day}/{slot}", response_model=PlanResponse)
async def remove_meal(
    user_id: str,
    week_start: str,
    day: str,
    slot: str,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """Clear a slot (no-op when already empty)."""
    return PlanResponse(meal_plan=assistant.remove_meal(user_id, week_start, day, slot).to_dict())
