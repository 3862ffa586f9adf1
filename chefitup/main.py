#!/usr/bin/env python3
"""
Main orchestrator for ChefItUp.

Wires the recipe catalog, meal plans, shopping lists, AI search/generation
and Instacart export behind one object that the API layer (and the CLI
below) call into.
"""

import argparse
import logging
import threading
from typing import Dict, List, Optional, Set, Tuple, Union

from .ai.recipe_generator import RecipeGenerator
from .ai.results import Ok, ParseError, ProviderError
from .ai.search import AISearchPipeline, SearchOutcome
from .cancellation import CancellationToken
from .config import Settings
from .data.meal_plan_store import MealPlanStore, validate_week_start, week_start_for
from .data.models import MealPlan, Recipe, ShoppingList
from .data.recipe_store import RecipeFilter, RecipeStore
from .errors import RecipeNotFoundError
from .instacart.client import DEFAULT_TITLE, ExportResult, InstacartClient, InstacartError
from .llm_provider import LLMProvider, get_llm_provider
from .session.backend import HostedBackend, InMemoryBackend, create_backend
from .session.bridge import SessionBridge
from .shopping import aggregator

logger = logging.getLogger(__name__)


class MealPlanningAssistant:
    """Main orchestrator for the meal planning system."""

    def __init__(
        self,
        recipe_store: RecipeStore,
        meal_plans: MealPlanStore,
        llm: LLMProvider,
        instacart: InstacartClient,
        ai_search_enabled: bool = True,
        backend: Optional[HostedBackend] = None,
    ):
        """
        Initialize the assistant.

        Args:
            recipe_store: Recipe catalog
            meal_plans: Meal plan store
            llm: LLM provider for search and generation
            instacart: Instacart export client
            ai_search_enabled: Allow the LLM search tiers
            backend: Hosted auth and profile backend (in-memory preview when None)
        """
        self.recipe_store = recipe_store
        self.meal_plans = meal_plans
        self.llm = llm
        self.instacart = instacart
        self.backend = backend or InMemoryBackend()
        self.search = AISearchPipeline(recipe_store, llm, ai_search_enabled=ai_search_enabled)
        self.generator = RecipeGenerator(llm)

        self.generated_recipes: Dict[str, Recipe] = {}
        self.shopping_lists: Dict[Tuple[str, str], ShoppingList] = {}
        self._stale_lists: Set[Tuple[str, str]] = set()
        self._lock = threading.Lock()

        logger.info(
            f"ChefItUp initialized (recipes={len(recipe_store)}, llm={llm.model}, "
            f"ai_search={self.search.ai_enabled}, instacart_mock={instacart.uses_mock})"
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "MealPlanningAssistant":
        """Build the assistant from environment configuration."""
        settings = settings or Settings.from_env()
        meal_plans = MealPlanStore.with_sample_data() if settings.preview_sample_data else MealPlanStore()
        return cls(
            recipe_store=RecipeStore.from_json(),
            meal_plans=meal_plans,
            llm=get_llm_provider(settings),
            instacart=InstacartClient.from_settings(settings),
            ai_search_enabled=settings.ai_search_enabled,
            backend=create_backend(settings),
        )

    # Sessions

    def open_session(self, access_token: Optional[str] = None) -> SessionBridge:
        """
        Session bridge for one caller.

        Args:
            access_token: Token from an earlier sign-in; the bridge adopts it
                and loads the user

        Raises:
            AuthError: If the token is rejected
        """
        bridge = SessionBridge(self.backend)
        if access_token:
            bridge.resume(access_token)
        return bridge

    # Recipes

    def get_recipe(self, recipe_id: str) -> Recipe:
        """
        Look up a catalog or previously generated recipe.

        Raises:
            RecipeNotFoundError: If the id is unknown
        """
        recipe = self._resolve_recipe(recipe_id)
        if recipe is None:
            raise RecipeNotFoundError(f"Recipe {recipe_id} not found")
        return recipe

    def _resolve_recipe(self, recipe_id: str) -> Optional[Recipe]:
        return self.recipe_store.get_recipe(recipe_id) or self.generated_recipes.get(recipe_id)

    def list_recipes(
        self,
        query: Optional[str] = None,
        cuisine_type: Optional[str] = None,
        dietary_restrictions: Optional[List[str]] = None,
        max_time: Optional[int] = None,
    ) -> List[Recipe]:
        return self.recipe_store.list_recipes(RecipeFilter(
            query=query,
            cuisine_type=cuisine_type,
            dietary_restrictions=list(dietary_restrictions or []),
            max_time=max_time,
        ))

    def search_recipes(self, query: str, cancel_token: Optional[CancellationToken] = None) -> SearchOutcome:
        return self.search.search_recipes(query, cancel_token=cancel_token)

    def generate_recipe(
        self,
        prompt: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Union[Ok, ParseError, ProviderError]:
        """Generate a recipe; successful results can be planned like catalog recipes."""
        result = self.generator.generate_recipe(prompt, cancel_token=cancel_token)
        if result.ok:
            with self._lock:
                self.generated_recipes[result.value.id] = result.value
        return result

    # Meal plans

    def get_meal_plan(self, user_id: str, week_start: str) -> MealPlan:
        return self.meal_plans.get_meal_plan(user_id, week_start)

    def plan_meal(
        self,
        user_id: str,
        week_start: str,
        day: str,
        slot: str,
        recipe_id: str,
        servings: Optional[int] = None,
    ) -> MealPlan:
        """
        Put a recipe in a meal slot.

        Args:
            servings: Defaults to the recipe's base servings

        Returns:
            The updated MealPlan
        """
        recipe = self.get_recipe(recipe_id)
        self.meal_plans.add_meal(
            user_id, week_start, day, slot, recipe.id,
            recipe.servings if servings is None else servings,
        )
        self._mark_stale(user_id, week_start)
        return self.meal_plans.get_meal_plan(user_id, week_start)

    def remove_meal(self, user_id: str, week_start: str, day: str, slot: str) -> MealPlan:
        self.meal_plans.remove_meal(user_id, week_start, day, slot)
        self._mark_stale(user_id, week_start)
        return self.meal_plans.get_meal_plan(user_id, week_start)

    # Shopping lists

    def _key(self, user_id: str, week_start: str) -> Tuple[str, str]:
        return (user_id, validate_week_start(week_start))

    def _mark_stale(self, user_id: str, week_start: str):
        key = self._key(user_id, week_start)
        with self._lock:
            if key in self.shopping_lists:
                self._stale_lists.add(key)

    def is_shopping_list_stale(self, user_id: str, week_start: str) -> bool:
        """True when the meal plan changed after the stored list was generated."""
        with self._lock:
            return self._key(user_id, week_start) in self._stale_lists

    def create_shopping_list(self, user_id: str, week_start: str) -> ShoppingList:
        """Regenerate the week's shopping list from its meal plan, replacing any edits."""
        plan = self.meal_plans.get_meal_plan(user_id, week_start)
        shopping_list = aggregator.generate_from_meal_plan(plan, self._resolve_recipe)
        key = self._key(user_id, week_start)
        with self._lock:
            self.shopping_lists[key] = shopping_list
            self._stale_lists.discard(key)
        return shopping_list

    def get_shopping_list(self, user_id: str, week_start: str) -> ShoppingList:
        """
        The week's shopping list, generated from the meal plan on first access.

        Later meal plan edits do not rebuild a stored list (that would drop
        manual edits); is_shopping_list_stale reports them instead.
        """
        with self._lock:
            existing = self.shopping_lists.get(self._key(user_id, week_start))
        if existing is not None:
            return existing
        return self.create_shopping_list(user_id, week_start)

    def _update_list(self, user_id: str, week_start: str, operation, *args, **kwargs) -> ShoppingList:
        key = self._key(user_id, week_start)
        current = self.get_shopping_list(user_id, week_start)
        updated = operation(current, *args, **kwargs)
        with self._lock:
            self.shopping_lists[key] = updated
        return updated

    def add_shopping_item(self, user_id: str, week_start: str, name: str, quantity: str = "1", unit: str = "") -> ShoppingList:
        return self._update_list(user_id, week_start, aggregator.add_manual_item, name, quantity, unit)

    def add_recipe_to_shopping_list(
        self,
        user_id: str,
        week_start: str,
        recipe_id: str,
        servings: Optional[int] = None,
    ) -> ShoppingList:
        recipe = self.get_recipe(recipe_id)
        return self._update_list(user_id, week_start, aggregator.add_recipe_to_list, recipe, servings)

    def toggle_shopping_item(self, user_id: str, week_start: str, item_id: str) -> ShoppingList:
        return self._update_list(user_id, week_start, aggregator.toggle_checked, item_id)

    def remove_shopping_item(self, user_id: str, week_start: str, item_id: str) -> ShoppingList:
        return self._update_list(user_id, week_start, aggregator.remove_item, item_id)

    def clear_checked_items(self, user_id: str, week_start: str) -> ShoppingList:
        return self._update_list(user_id, week_start, aggregator.clear_checked)

    def format_shopping_list(self, user_id: str, week_start: str) -> str:
        shopping_list = self.get_shopping_list(user_id, week_start)
        titles = {}
        for item in shopping_list.items:
            for rid in item.recipe_ids:
                recipe = self._resolve_recipe(rid)
                if recipe is not None:
                    titles[rid] = recipe.title
        return aggregator.format_shopping_list(shopping_list, titles)

    def export_shopping_list(
        self,
        user_id: str,
        week_start: str,
        title: Optional[str] = None,
    ) -> Union[ExportResult, InstacartError]:
        """Send the unchecked items of the week's list to Instacart."""
        shopping_list = self.get_shopping_list(user_id, week_start)
        items = [item for item in shopping_list.items if not item.checked]
        return self.instacart.export_list(items, title or DEFAULT_TITLE)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="ChefItUp meal planning assistant")
    parser.add_argument(
        "command",
        choices=["search", "generate", "shop"],
        help="Command to run",
    )
    parser.add_argument(
        "text",
        nargs="?",
        default="",
        help="Search query or recipe prompt",
    )
    parser.add_argument(
        "--user",
        type=str,
        default="user-1",
        help="User id for the shopping list (default: user-1)",
    )
    parser.add_argument(
        "--week",
        type=str,
        help="Any date in the week to shop for (YYYY-MM-DD)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    assistant = MealPlanningAssistant.from_settings()

    if args.command == "search":
        outcome = assistant.search_recipes(args.text)
        print(f"\n{len(outcome.recipes)} recipes ({outcome.tier.value})")
        if outcome.message:
            print(outcome.message)
        for recipe in outcome.recipes:
            print(f"  • {recipe}")

    elif args.command == "generate":
        if not args.text.strip():
            print("❌ Error: a prompt is required for 'generate'")
            return
        result = assistant.generate_recipe(args.text)
        if result.ok:
            recipe = result.value
            print(f"\n✓ {recipe.title}\n{recipe.description}\n")
            for ingredient in recipe.ingredients:
                print(f"  - {ingredient}")
        else:
            print(f"❌ Error: {result.message}")

    elif args.command == "shop":
        if not args.week:
            print("❌ Error: --week required for 'shop' command")
            return
        print("\n" + assistant.format_shopping_list(args.user, week_start_for(args.week)))


if __name__ == "__main__":
    main()
