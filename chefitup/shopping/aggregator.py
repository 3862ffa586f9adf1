"""
Shopping List Aggregator.

Derives a categorized, quantity-summed shopping list from a meal plan and
applies user edits (manual items, check/uncheck, removal). Every operation
returns a new ShoppingList; the input list is never mutated.
"""

import logging
import uuid
from dataclasses import replace
from fractions import Fraction
from typing import Callable, Dict, List, Optional, Tuple, Union

from ..data.models import MealPlan, Recipe, ShoppingList, ShoppingListItem
from ..errors import InvalidInputError, ItemNotFoundError
from .quantities import Quantity, parse_quantity

logger = logging.getLogger(__name__)

MANUAL_CATEGORY = "Other"

RecipeResolver = Callable[[str], Optional[Recipe]]


def _new_item_id() -> str:
    return f"item-{uuid.uuid4().hex[:8]}"


def _merge_key(name: str, unit: str) -> Tuple[str, str]:
    return (name.strip().lower(), (unit or "").strip().lower())


class _ItemAccumulator:
    """Collects scaled ingredients and merges matching name + unit pairs."""

    def __init__(self, items: Optional[List[ShoppingListItem]] = None):
        self.items: List[ShoppingListItem] = [replace(i, recipe_ids=list(i.recipe_ids)) for i in (items or [])]
        self._index: Dict[Tuple[str, str], int] = {}
        for position, item in enumerate(self.items):
            self._index.setdefault(_merge_key(item.name, item.unit), position)

    def add(self, name: str, quantity: Union[Quantity, str], unit: str, category: str, recipe_id: str):
        key = _merge_key(name, unit)
        position = self._index.get(key)

        if position is None:
            self._index[key] = len(self.items)
            self.items.append(ShoppingListItem(
                id=_new_item_id(),
                name=name,
                quantity=str(quantity),
                unit=unit,
                category=category,
                recipe_ids=[recipe_id] if recipe_id else [],
            ))
            return

        existing = self.items[position]
        existing.quantity = _combine_quantities(existing.quantity, quantity)
        if recipe_id and recipe_id not in existing.recipe_ids:
            existing.recipe_ids.append(recipe_id)


def _combine_quantities(current: str, addition: Union[Quantity, str]) -> str:
    """Sum two quantities; non-numeric text is kept once or joined with ' + '."""
    current_qty = parse_quantity(current)
    addition_qty = addition if isinstance(addition, Quantity) else parse_quantity(addition)

    if current_qty is not None and addition_qty is not None:
        return str(current_qty + addition_qty)

    addition_text = str(addition)
    if current.strip().lower() == addition_text.strip().lower():
        return current
    if not current.strip():
        return addition_text
    if not addition_text.strip():
        return current
    return f"{current} + {addition_text}"


def _scaled_ingredients(recipe: Recipe, servings: int):
    """Yield (ingredient, quantity) with quantities scaled to servings.

    Quantities that cannot be parsed pass through as the original text.
    """
    factor = Fraction(servings, recipe.servings)
    for ingredient in recipe.ingredients:
        quantity = parse_quantity(ingredient.quantity)
        if quantity is None:
            if ingredient.quantity.strip():
                logger.debug(f"[SHOPPING] Not scaling non-numeric quantity '{ingredient.quantity}' for {ingredient.name}")
            yield ingredient, ingredient.quantity
        else:
            yield ingredient, quantity.scale(factor)


def generate_from_meal_plan(
    meal_plan: MealPlan,
    recipe_resolver: RecipeResolver,
    list_id: Optional[str] = None,
) -> ShoppingList:
    """
    Build a shopping list from every planned meal in a meal plan.

    Args:
        meal_plan: Plan to shop for
        recipe_resolver: Looks up a Recipe by id (returns None if unknown)
        list_id: Optional id for the new list

    Returns:
        ShoppingList with scaled, merged items in first-seen order
    """
    accumulator = _ItemAccumulator()
    meal_count = 0

    for day, slot, meal in meal_plan.planned_meals():
        recipe = recipe_resolver(meal.recipe_id)
        if recipe is None:
            logger.warning(f"[SHOPPING] Skipping {day} {slot}: recipe {meal.recipe_id} not found")
            continue
        meal_count += 1
        for ingredient, quantity in _scaled_ingredients(recipe, meal.servings):
            accumulator.add(ingredient.name, quantity, ingredient.unit, ingredient.category, recipe.id)

    shopping_list = ShoppingList(
        id=list_id or f"shopping-list-{uuid.uuid4().hex[:8]}",
        user_id=meal_plan.user_id,
        week_start=meal_plan.week_start,
        items=accumulator.items,
    )
    logger.info(
        f"[SHOPPING] Generated list {shopping_list.id} with {len(shopping_list.items)} items "
        f"from {meal_count} meals (plan {meal_plan.id})"
    )
    return shopping_list


def add_recipe_to_list(shopping_list: ShoppingList, recipe: Recipe, servings: Optional[int] = None) -> ShoppingList:
    """
    Merge one recipe's ingredients into an existing list.

    Args:
        shopping_list: List to extend
        recipe: Recipe whose ingredients are added
        servings: Servings to shop for (defaults to the recipe's base servings)

    Returns:
        New ShoppingList with the recipe's items merged in
    """
    servings = recipe.servings if servings is None else servings
    if isinstance(servings, bool) or not isinstance(servings, int) or servings < 1:
        raise InvalidInputError(f"Servings must be a positive integer, got {servings!r}")

    accumulator = _ItemAccumulator(shopping_list.items)
    for ingredient, quantity in _scaled_ingredients(recipe, servings):
        accumulator.add(ingredient.name, quantity, ingredient.unit, ingredient.category, recipe.id)

    logger.info(f"[SHOPPING] Added {recipe.title} ({servings} servings) to list {shopping_list.id}")
    return replace(shopping_list, items=accumulator.items)


def add_manual_item(shopping_list: ShoppingList, name: str, quantity: str = "1", unit: str = "") -> ShoppingList:
    """
    Add a user-entered item. Manual items always go under "Other".

    Raises:
        InvalidInputError: If name is empty
    """
    name = (name or "").strip()
    if not name:
        raise InvalidInputError("Item name is required")

    item = ShoppingListItem(
        id=_new_item_id(),
        name=name,
        quantity=(quantity or "").strip() or "1",
        unit=(unit or "").strip(),
        category=MANUAL_CATEGORY,
        recipe_ids=[],
    )
    return replace(shopping_list, items=[*shopping_list.items, item])


def _require_item(shopping_list: ShoppingList, item_id: str) -> ShoppingListItem:
    item = shopping_list.find_item(item_id)
    if item is None:
        raise ItemNotFoundError(f"Item {item_id} not found in shopping list {shopping_list.id}")
    return item


def toggle_checked(shopping_list: ShoppingList, item_id: str) -> ShoppingList:
    """Flip one item's checked flag."""
    _require_item(shopping_list, item_id)
    items = [
        replace(item, checked=not item.checked) if item.id == item_id else item
        for item in shopping_list.items
    ]
    return replace(shopping_list, items=items)


def remove_item(shopping_list: ShoppingList, item_id: str) -> ShoppingList:
    """Remove one item."""
    _require_item(shopping_list, item_id)
    return replace(shopping_list, items=[item for item in shopping_list.items if item.id != item_id])


def clear_checked(shopping_list: ShoppingList) -> ShoppingList:
    """Remove every checked item; a no-op when nothing is checked."""
    remaining = [item for item in shopping_list.items if not item.checked]
    if len(remaining) == len(shopping_list.items):
        return shopping_list
    logger.info(f"[SHOPPING] Cleared {len(shopping_list.items) - len(remaining)} checked items from {shopping_list.id}")
    return replace(shopping_list, items=remaining)


def group_by_category(shopping_list: ShoppingList) -> Dict[str, List[ShoppingListItem]]:
    """
    Group items by category for display.

    Returns:
        Dictionary mapping category to items, in order of each category's
        first occurrence
    """
    sections: Dict[str, List[ShoppingListItem]] = {}
    for item in shopping_list.items:
        sections.setdefault(item.category, []).append(item)
    return sections


def format_shopping_list(shopping_list: ShoppingList, recipe_titles: Optional[Dict[str, str]] = None) -> str:
    """
    Format a shopping list as a plain-text checklist.

    Args:
        shopping_list: List to render
        recipe_titles: Optional recipe id -> title map for the "For:" lines

    Returns:
        Formatted shopping list string
    """
    lines = [
        f"Shopping List for Week of {shopping_list.week_start}",
        f"{'=' * 60}",
        f"\nTotal Items: {len(shopping_list.items)}",
    ]

    for section, items in group_by_category(shopping_list).items():
        lines.append(f"\n{section.upper()}")
        lines.append("-" * 30)

        for item in items:
            checkbox = "☑" if item.checked else "☐"
            lines.append(f"  {checkbox} {item}")
            if item.recipe_ids:
                names = [(recipe_titles or {}).get(rid, rid) for rid in item.recipe_ids]
                recipes = ", ".join(names[:2])
                if len(names) > 2:
                    recipes += f", +{len(names) - 2} more"
                lines.append(f"      For: {recipes}")

    return "\n".join(lines)
