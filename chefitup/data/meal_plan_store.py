"""
Meal Plan Store: per-user weekly meal grids.

Weeks start on Monday across the whole system. The store does not normalize
dates; callers convert with week_start_for() and the store rejects anything
that is not an ISO-formatted Monday.
"""

import json
import logging
import uuid
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Dict, List, Tuple, Union

from ..errors import InvalidInputError
from .models import MealPlan, PlannedMeal, DAYS_OF_WEEK, MEAL_SLOTS

logger = logging.getLogger(__name__)

SAMPLE_PLANS_PATH = Path(__file__).parent / "sample_meal_plans.json"

_DAY_LOOKUP = {d.lower(): d for d in DAYS_OF_WEEK}


def week_start_for(value: Union[date, datetime, str]) -> str:
    """
    Get the canonical week start (Monday) for any date.

    Args:
        value: date, datetime, or ISO date string

    Returns:
        ISO date string of the Monday on or before value
    """
    if isinstance(value, str):
        value = date.fromisoformat(value)
    elif isinstance(value, datetime):
        value = value.date()
    monday = value - timedelta(days=value.weekday())
    return monday.isoformat()


def validate_week_start(week_start: str) -> str:
    """Reject week starts that are not ISO-formatted Mondays."""
    try:
        parsed = date.fromisoformat(week_start)
    except (TypeError, ValueError):
        raise InvalidInputError(f"Week start must be an ISO date (YYYY-MM-DD), got {week_start!r}")
    if parsed.weekday() != 0:
        raise InvalidInputError(
            f"Week start {week_start} is a {DAYS_OF_WEEK[parsed.weekday()]}; "
            f"weeks start on Monday ({week_start_for(parsed)})"
        )
    return parsed.isoformat()


def _normalize_day(day: str) -> str:
    canonical = _DAY_LOOKUP.get((day or "").strip().lower())
    if canonical is None:
        raise InvalidInputError(f"Unknown day '{day}' (expected one of {', '.join(DAYS_OF_WEEK)})")
    return canonical


def _normalize_slot(slot: str) -> str:
    normalized = (slot or "").strip().lower()
    if normalized not in MEAL_SLOTS:
        raise InvalidInputError(f"Unknown meal slot '{slot}' (expected one of {', '.join(MEAL_SLOTS)})")
    return normalized


class MealPlanStore:
    """In-memory meal plans keyed by (user_id, week_start).

    Concurrent edits to the same plan are last-write-wins.
    """

    def __init__(self):
        self._plans: Dict[Tuple[str, str], MealPlan] = {}

    @classmethod
    def with_sample_data(cls, path: Path = SAMPLE_PLANS_PATH) -> "MealPlanStore":
        """Create a store seeded with the sample meal plans (preview mode)."""
        store = cls()
        with open(path, encoding="utf-8") as f:
            for data in json.load(f):
                plan = MealPlan.from_dict(data)
                validate_week_start(plan.week_start)
                store._plans[(plan.user_id, plan.week_start)] = plan
        logger.info(f"Meal plan store seeded with {len(store._plans)} sample plans")
        return store

    def get_meal_plan(self, user_id: str, week_start: str) -> MealPlan:
        """
        Get the meal plan for a user's week, creating an empty one if needed.

        Args:
            user_id: User identifier
            week_start: ISO date of the week's Monday

        Returns:
            The stored MealPlan (same plan on repeated calls)
        """
        if not user_id:
            raise InvalidInputError("User id is required")
        week_start = validate_week_start(week_start)

        key = (user_id, week_start)
        plan = self._plans.get(key)
        if plan is None:
            plan = MealPlan(id=f"meal-plan-{uuid.uuid4().hex[:8]}", user_id=user_id, week_start=week_start)
            self._plans[key] = plan
            logger.debug(f"Created empty meal plan {plan.id} for user={user_id}, week={week_start}")
        return plan

    def add_meal(
        self,
        user_id: str,
        week_start: str,
        day: str,
        slot: str,
        recipe_id: str,
        servings: int,
    ) -> None:
        """
        Put a recipe in a slot, replacing whatever was there.

        Args:
            user_id: User identifier
            week_start: ISO date of the week's Monday
            day: Day name ("Monday", case-insensitive)
            slot: "breakfast", "lunch" or "dinner"
            recipe_id: Recipe to plan
            servings: Positive integer; callers default it to the recipe's base servings
        """
        day = _normalize_day(day)
        slot = _normalize_slot(slot)
        if not recipe_id:
            raise InvalidInputError("Recipe id is required")
        try:
            meal = PlannedMeal(recipe_id=recipe_id, servings=servings)
        except ValueError as e:
            raise InvalidInputError(str(e)) from e

        plan = self.get_meal_plan(user_id, week_start)
        previous = plan.days[day][slot]
        plan.days[day][slot] = meal

        if previous is not None:
            logger.info(f"Replaced {day} {slot} ({previous.recipe_id} -> {recipe_id}) in plan {plan.id}")
        else:
            logger.info(f"Added {recipe_id} to {day} {slot} in plan {plan.id}")

    def remove_meal(self, user_id: str, week_start: str, day: str, slot: str) -> None:
        """Clear a slot; clearing an unset slot is a no-op."""
        day = _normalize_day(day)
        slot = _normalize_slot(slot)
        plan = self.get_meal_plan(user_id, week_start)
        if plan.days[day][slot] is not None:
            plan.days[day][slot] = None
            logger.info(f"Removed {day} {slot} from plan {plan.id}")

    def list_meal_plans(self, user_id: str) -> List[MealPlan]:
        """All of a user's plans, oldest week first."""
        plans = [plan for (uid, _), plan in self._plans.items() if uid == user_id]
        return sorted(plans, key=lambda p: p.week_start)
