"""
Unit tests for the Shopping List Aggregator.
"""

import pytest

from chefitup.data.models import Ingredient, MealPlan, NutritionInfo, PlannedMeal, Recipe, ShoppingList
from chefitup.errors import InvalidInputError, ItemNotFoundError
from chefitup.shopping.aggregator import (
    _combine_quantities,
    add_manual_item,
    add_recipe_to_list,
    clear_checked,
    format_shopping_list,
    generate_from_meal_plan,
    group_by_category,
    remove_item,
    toggle_checked,
)


def by_name(shopping_list, name, unit=None):
    matches = [
        item for item in shopping_list.items
        if item.name == name and (unit is None or item.unit == unit)
    ]
    assert len(matches) == 1, f"expected one '{name}' item, found {len(matches)}"
    return matches[0]


@pytest.fixture
def week_list(week_plan, recipe_store):
    return generate_from_meal_plan(week_plan, recipe_store.get_recipe)


@pytest.fixture
def empty_list():
    return ShoppingList(id="shopping-list-test", user_id="user-1", week_start="2024-01-01")


class TestGenerateFromMealPlan:
    """Test generate_from_meal_plan()."""

    def test_scales_and_sums_same_recipe(self, week_list):
        """Pasta at 4 servings (x1) plus 2 servings (x1/2) of a 4-serving recipe."""
        assert by_name(week_list, "Penne pasta").quantity == "18"
        assert by_name(week_list, "Parmesan cheese").quantity == "3/8"
        assert by_name(week_list, "Black pepper").quantity == "3/4"
        assert by_name(week_list, "Zucchini").quantity == "1 1/2"

    def test_merges_across_recipes(self, week_list):
        """Same name and unit from different recipes merge and union recipe ids."""
        olive_oil = by_name(week_list, "Olive oil")
        assert olive_oil.quantity == "5"
        assert olive_oil.unit == "tbsp"
        assert olive_oil.recipe_ids == ["recipe-1", "recipe-3"]

        salt = by_name(week_list, "Salt")
        assert salt.quantity == "2 1/2"

    def test_different_units_do_not_merge(self, week_list):
        assert by_name(week_list, "Garlic", unit="cloves").quantity == "4 1/2"
        assert by_name(week_list, "Garlic", unit="clove").quantity == "1"

    def test_item_count(self, week_list):
        # 11 pasta ingredients + 13 bowl ingredients - 2 merged (olive oil, salt)
        assert len(week_list.items) == 22

    def test_list_metadata(self, week_list, week_plan):
        assert week_list.user_id == week_plan.user_id
        assert week_list.week_start == week_plan.week_start
        assert week_list.id.startswith("shopping-list-")
        assert all(not item.checked for item in week_list.items)

    def test_unknown_recipe_skipped(self, recipe_store):
        plan = MealPlan(id="p", user_id="user-1", week_start="2024-01-01")
        plan.days["Monday"]["dinner"] = PlannedMeal(recipe_id="recipe-999", servings=2)
        assert generate_from_meal_plan(plan, recipe_store.get_recipe).items == []

    def test_empty_plan(self, recipe_store):
        plan = MealPlan(id="p", user_id="user-1", week_start="2024-01-01")
        assert generate_from_meal_plan(plan, recipe_store.get_recipe).items == []

    def test_category_order_is_first_occurrence(self, week_list):
        assert list(group_by_category(week_list)) == [
            "Pasta & Grains",
            "Produce",
            "Oils & Vinegars",
            "Dairy",
            "Spices",
            "Canned Goods",
            "Condiments",
        ]


def flour_recipe(recipe_id, name, unit):
    return Recipe(
        id=recipe_id,
        title=f"Bake {recipe_id}",
        description="Flour-based bake",
        prep_time=10,
        cook_time=30,
        servings=4,
        difficulty="easy",
        cuisine_type="American",
        ingredients=[Ingredient(id="ing-1", name=name, quantity="2", unit=unit, category="Baking")],
        instructions=["Mix", "Bake"],
        nutrition=NutritionInfo(calories=200, protein=5, carbs=40, fat=2),
    )


class TestMergeRules:
    """Items merge on name and unit, ignoring case."""

    def plan_with(self, *recipes):
        plan = MealPlan(id="p", user_id="user-1", week_start="2024-01-01")
        for day, recipe in zip(["Monday", "Tuesday"], recipes):
            plan.days[day]["dinner"] = PlannedMeal(recipe_id=recipe.id, servings=recipe.servings)
        resolver = {recipe.id: recipe for recipe in recipes}.get
        return generate_from_meal_plan(plan, resolver)

    def test_two_cups_twice_is_four_cups(self):
        shopping_list = self.plan_with(flour_recipe("bread", "Flour", "cups"), flour_recipe("cake", "Flour", "cups"))
        assert len(shopping_list.items) == 1
        flour = shopping_list.items[0]
        assert (flour.quantity, flour.unit) == ("4", "cups")
        assert flour.recipe_ids == ["bread", "cake"]

    def test_case_insensitive_name_and_unit(self):
        shopping_list = self.plan_with(flour_recipe("bread", "Flour", "Cups"), flour_recipe("cake", "flour", "cups"))
        assert len(shopping_list.items) == 1
        flour = shopping_list.items[0]
        assert flour.name == "Flour"
        assert flour.quantity == "4"
        assert flour.recipe_ids == ["bread", "cake"]


class TestCombineQuantities:
    """Test merging of non-numeric quantities."""

    def test_identical_text_kept_once(self):
        assert _combine_quantities("a pinch", "a pinch") == "a pinch"

    def test_different_text_joined(self):
        assert _combine_quantities("a pinch", "a dash") == "a pinch + a dash"

    def test_numeric_and_text_joined(self):
        assert _combine_quantities("2", "to taste") == "2 + to taste"

    def test_numeric_summed(self):
        assert _combine_quantities("1/3", "1/3") == "2/3"


class TestAddRecipeToList:
    """Test add_recipe_to_list()."""

    def test_scales_to_servings(self, empty_list, simple_recipe):
        result = add_recipe_to_list(empty_list, simple_recipe, servings=4)
        assert by_name(result, "Rolled oats").quantity == "2"
        assert by_name(result, "Milk").quantity == "1"
        assert by_name(result, "Cinnamon").quantity == "a pinch"

    def test_defaults_to_base_servings_and_merges(self, empty_list, simple_recipe):
        result = add_recipe_to_list(add_recipe_to_list(empty_list, simple_recipe, servings=4), simple_recipe)
        assert by_name(result, "Rolled oats").quantity == "3"
        assert by_name(result, "Milk").quantity == "1 1/2"
        assert by_name(result, "Cinnamon").quantity == "a pinch"
        assert len(result.items) == 3

    def test_input_list_not_mutated(self, empty_list, simple_recipe):
        add_recipe_to_list(empty_list, simple_recipe)
        assert empty_list.items == []

    def test_invalid_servings(self, empty_list, simple_recipe):
        with pytest.raises(InvalidInputError):
            add_recipe_to_list(empty_list, simple_recipe, servings=0)


class TestEdits:
    """Test manual items, toggling, removal and clearing."""

    def test_manual_item(self, empty_list):
        result = add_manual_item(empty_list, "Paper towels")
        item = result.items[0]
        assert (item.name, item.quantity, item.unit, item.category) == ("Paper towels", "1", "", "Other")
        assert item.recipe_ids == []

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_manual_item_requires_name(self, empty_list, name):
        with pytest.raises(InvalidInputError):
            add_manual_item(empty_list, name)

    def test_toggle_is_its_own_inverse(self, week_list):
        item_id = week_list.items[0].id
        once = toggle_checked(week_list, item_id)
        twice = toggle_checked(once, item_id)
        assert once.find_item(item_id).checked is True
        assert twice.find_item(item_id).checked is False
        assert week_list.find_item(item_id).checked is False

    def test_toggle_unknown_item(self, week_list):
        with pytest.raises(ItemNotFoundError):
            toggle_checked(week_list, "item-missing")

    def test_remove_item(self, week_list):
        item_id = week_list.items[0].id
        result = remove_item(week_list, item_id)
        assert result.find_item(item_id) is None
        assert len(result.items) == len(week_list.items) - 1

    def test_remove_unknown_item(self, week_list):
        with pytest.raises(ItemNotFoundError):
            remove_item(week_list, "item-missing")

    def test_clear_checked(self, week_list):
        checked = toggle_checked(toggle_checked(week_list, week_list.items[0].id), week_list.items[1].id)
        result = clear_checked(checked)
        assert len(result.items) == len(week_list.items) - 2
        assert not any(item.checked for item in result.items)

    def test_clear_checked_noop(self, week_list):
        assert clear_checked(week_list) is week_list


class TestFormatShoppingList:
    """Test format_shopping_list()."""

    def test_format(self, week_list):
        text = format_shopping_list(week_list, {"recipe-1": "Vegetarian Pasta Primavera"})
        assert "Shopping List for Week of 2024-01-01" in text
        assert "Total Items: 22" in text
        assert "PASTA & GRAINS" in text
        assert "☐ 18 oz Penne pasta" in text
        assert "For: Vegetarian Pasta Primavera" in text

    def test_checked_items_marked(self, week_list):
        item = week_list.items[0]
        text = format_shopping_list(toggle_checked(week_list, item.id))
        assert f"☑ {item}" in text
