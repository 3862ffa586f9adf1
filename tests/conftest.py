"""
Pytest configuration and shared fixtures.

Fixtures are reusable test setup that can be injected into tests.
"""

import json
from typing import List, Optional, Union

import pytest

from chefitup.data.meal_plan_store import MealPlanStore
from chefitup.data.models import Ingredient, MealPlan, NutritionInfo, PlannedMeal, Recipe
from chefitup.data.recipe_store import RecipeStore
from chefitup.instacart.client import InstacartClient
from chefitup.llm_provider import LLMProvider, NullLLMProvider
from chefitup.main import MealPlanningAssistant
from chefitup.session.backend import InMemoryBackend


class ScriptedLLMProvider(LLMProvider):
    """
    LLM provider that replays canned responses in order.

    Each scripted entry is either response text or an exception to raise.
    Every call is recorded so tests can assert prompts and call counts.
    """

    model = "scripted-llm"

    def __init__(self, responses: Optional[List[Union[str, Exception]]] = None):
        self.responses = list(responses or [])
        self.calls = []

    def _next(self, kind: str, prompt: str, **kwargs) -> str:
        self.calls.append({"kind": kind, "prompt": prompt, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected {kind} call: no scripted responses left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def complete(self, prompt, system=None, temperature=0.7, max_tokens=2000) -> str:
        return self._next("complete", prompt, system=system, temperature=temperature, max_tokens=max_tokens)

    def generate_object(self, prompt, schema, system=None, temperature=0.7, max_tokens=2000) -> str:
        return self._next(
            "generate_object", prompt, schema=schema, system=system,
            temperature=temperature, max_tokens=max_tokens,
        )

    @property
    def is_null(self) -> bool:
        return False


@pytest.fixture
def recipe_store():
    """The packaged ten-recipe catalog."""
    return RecipeStore.from_json()


@pytest.fixture
def meal_plan_store():
    """Empty meal plan store."""
    return MealPlanStore()


@pytest.fixture
def scripted_llm():
    """Scripted LLM with no responses; tests append to .responses."""
    return ScriptedLLMProvider()


@pytest.fixture
def null_llm():
    return NullLLMProvider()


@pytest.fixture
def backend():
    """In-memory hosted backend seeded with dietary restriction names."""
    return InMemoryBackend()


@pytest.fixture
def simple_recipe():
    """Small recipe with numeric, fractional and free-text quantities."""
    return Recipe(
        id="r-simple",
        title="Simple Oats",
        description="Overnight oats with berries",
        prep_time=5,
        cook_time=0,
        servings=2,
        difficulty="easy",
        cuisine_type="American",
        dietary_restrictions=["vegetarian"],
        ingredients=[
            Ingredient(id="ing-1", name="Rolled oats", quantity="1", unit="cup", category="Pasta & Grains"),
            Ingredient(id="ing-2", name="Milk", quantity="1/2", unit="cup", category="Dairy"),
            Ingredient(id="ing-3", name="Cinnamon", quantity="a pinch", unit="", category="Spices"),
        ],
        instructions=["Mix everything", "Refrigerate overnight"],
        nutrition=NutritionInfo(calories=300, protein=10, carbs=45, fat=6, glycemic_index=55),
    )


@pytest.fixture
def week_plan():
    """Plan with Pasta Primavera twice (4 and 2 servings) and one Buddha Bowl."""
    plan = MealPlan(id="meal-plan-test", user_id="user-1", week_start="2024-01-01")
    plan.days["Monday"]["dinner"] = PlannedMeal(recipe_id="recipe-1", servings=4)
    plan.days["Tuesday"]["lunch"] = PlannedMeal(recipe_id="recipe-1", servings=2)
    plan.days["Wednesday"]["dinner"] = PlannedMeal(recipe_id="recipe-3", servings=2)
    return plan


@pytest.fixture
def assistant(recipe_store, null_llm):
    """Assistant on the real catalog with no LLM and mock-mode Instacart."""
    return MealPlanningAssistant(
        recipe_store=recipe_store,
        meal_plans=MealPlanStore(),
        llm=null_llm,
        instacart=InstacartClient(api_key=None),
    )


@pytest.fixture
def make_recipe_json():
    """Factory for JSON text of a valid generated recipe, with optional field overrides."""

    def _make(**overrides) -> str:
        data = {
            "title": "Thai Basil Chicken",
            "description": "Quick stir fry with fresh basil",
            "prep_time": 10,
            "cook_time": 15,
            "servings": 2,
            "difficulty": "easy",
            "cuisine_type": "Thai",
            "dietary_restrictions": ["gluten-free"],
            "ingredients": [
                {"name": "Chicken thighs", "quantity": "1", "unit": "lb"},
                {"name": "Thai basil", "quantity": "1", "unit": "cup"},
            ],
            "instructions": ["Stir fry chicken", "Add basil"],
            "nutrition": {"calories": 420, "protein": 35, "carbs": 12, "fat": 22},
        }
        data.update(overrides)
        return json.dumps(data)

    return _make
