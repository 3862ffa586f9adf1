"""
Data models for ChefItUp.

These models define the core entities used throughout the system:
- Recipe: Catalog recipes with ingredients and nutrition
- MealPlan: Weekly 7-day x 3-slot meal grid
- ShoppingList: Categorized shopping items derived from a meal plan
- User: Signed-in user with household and dietary preferences
"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Iterator, Tuple

DAYS_OF_WEEK = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
MEAL_SLOTS = ("breakfast", "lunch", "dinner")
DIFFICULTIES = ("easy", "medium", "hard")


@dataclass
class Ingredient:
    """A recipe ingredient as listed on the recipe card.

    Quantity is kept as text because recipes use fractions ("1/4") and
    free-form amounts ("a pinch").
    """
    id: str
    name: str
    quantity: str
    unit: str = ""
    category: str = "Other"  # Shopping category (e.g., "Produce", "Spices")

    def __str__(self) -> str:
        return " ".join(part for part in (self.quantity, self.unit, self.name) if part)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "unit": self.unit,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Ingredient":
        return cls(
            id=data["id"],
            name=data["name"],
            quantity=str(data.get("quantity", "")),
            unit=data.get("unit") or "",
            category=data.get("category") or "Other",
        )


@dataclass
class NutritionInfo:
    """Nutrition information per serving."""
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0
    glycemic_index: Optional[int] = None

    def __str__(self) -> str:
        parts = [f"{self.calories:g} cal", f"{self.carbs:g}g carbs", f"{self.protein:g}g protein"]
        if self.glycemic_index is not None:
            parts.append(f"GI {self.glycemic_index}")
        return ", ".join(parts)

    def to_dict(self) -> Dict:
        return {
            "calories": self.calories,
            "protein": self.protein,
            "carbs": self.carbs,
            "fat": self.fat,
            "glycemic_index": self.glycemic_index,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "NutritionInfo":
        return cls(
            calories=data.get("calories", 0),
            protein=data.get("protein", 0),
            carbs=data.get("carbs", 0),
            fat=data.get("fat", 0),
            glycemic_index=data.get("glycemic_index"),
        )


@dataclass
class Recipe:
    """Catalog recipe."""

    id: str
    title: str
    description: str
    prep_time: int  # Minutes
    cook_time: int  # Minutes
    servings: int  # Base servings the ingredient quantities are written for
    difficulty: str  # "easy", "medium", "hard"
    cuisine_type: str
    dietary_restrictions: List[str] = field(default_factory=list)
    ingredients: List[Ingredient] = field(default_factory=list)
    instructions: List[str] = field(default_factory=list)
    nutrition: NutritionInfo = field(default_factory=NutritionInfo)
    image: str = ""

    def __post_init__(self):
        """Validate numeric ranges and the difficulty enum."""
        if self.prep_time < 0 or self.cook_time < 0:
            raise ValueError(f"Recipe '{self.title}' has a negative prep or cook time")
        if self.servings < 1:
            raise ValueError(f"Recipe '{self.title}' must serve at least 1")
        if self.difficulty not in DIFFICULTIES:
            raise ValueError(
                f"Recipe '{self.title}' has invalid difficulty '{self.difficulty}' "
                f"(expected one of {', '.join(DIFFICULTIES)})"
            )

    @property
    def total_time(self) -> int:
        """Prep plus cook time in minutes."""
        return self.prep_time + self.cook_time

    def has_tags(self, tags: List[str]) -> bool:
        """Check that the recipe carries every requested dietary tag.

        Args:
            tags: Dietary tags, compared case-insensitively

        Returns:
            True if the recipe's tag set is a superset of tags
        """
        own = {t.lower() for t in self.dietary_restrictions}
        return {t.lower() for t in tags} <= own

    def __str__(self) -> str:
        return f"{self.title} ({self.cuisine_type}, {self.total_time} min, serves {self.servings})"

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "image": self.image,
            "prep_time": self.prep_time,
            "cook_time": self.cook_time,
            "servings": self.servings,
            "difficulty": self.difficulty,
            "cuisine_type": self.cuisine_type,
            "dietary_restrictions": list(self.dietary_restrictions),
            "ingredients": [ing.to_dict() for ing in self.ingredients],
            "instructions": list(self.instructions),
            "nutrition": self.nutrition.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Recipe":
        """Create Recipe from dictionary.

        Args:
            data: Dictionary representation of Recipe

        Returns:
            Recipe object with nested ingredients and nutrition parsed
        """
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description", ""),
            image=data.get("image", ""),
            prep_time=int(data.get("prep_time", 0)),
            cook_time=int(data.get("cook_time", 0)),
            servings=int(data.get("servings", 1)),
            difficulty=data.get("difficulty", "medium"),
            cuisine_type=data.get("cuisine_type", ""),
            dietary_restrictions=list(data.get("dietary_restrictions", [])),
            ingredients=[Ingredient.from_dict(i) for i in data.get("ingredients", [])],
            instructions=list(data.get("instructions", [])),
            nutrition=NutritionInfo.from_dict(data.get("nutrition") or {}),
        )


@dataclass
class PlannedMeal:
    """A recipe placed in a meal plan slot."""

    recipe_id: str
    servings: int  # May differ from recipe.servings; used as a scaling factor

    def __post_init__(self):
        if isinstance(self.servings, bool) or not isinstance(self.servings, int) or self.servings < 1:
            raise ValueError(f"Servings must be a positive integer, got {self.servings!r}")

    def to_dict(self) -> Dict:
        return {"recipe_id": self.recipe_id, "servings": self.servings}

    @classmethod
    def from_dict(cls, data: Dict) -> "PlannedMeal":
        return cls(recipe_id=data["recipe_id"], servings=int(data["servings"]))


def empty_week() -> Dict[str, Dict[str, Optional[PlannedMeal]]]:
    """Build a 7-day x 3-slot grid with every slot unset."""
    return {day: {slot: None for slot in MEAL_SLOTS} for day in DAYS_OF_WEEK}


@dataclass
class MealPlan:
    """Weekly meal plan for one user."""

    id: str
    user_id: str
    week_start: str  # ISO format: "2025-01-20" (Monday of the week)
    days: Dict[str, Dict[str, Optional[PlannedMeal]]] = field(default_factory=empty_week)

    def get_meal(self, day: str, slot: str) -> Optional[PlannedMeal]:
        """Get the meal in a slot, or None when unset."""
        return self.days[day][slot]

    def planned_meals(self) -> Iterator[Tuple[str, str, PlannedMeal]]:
        """
        Iterate over set slots.

        Yields:
            (day, slot, PlannedMeal) in day order, then breakfast/lunch/dinner
        """
        for day in DAYS_OF_WEEK:
            for slot in MEAL_SLOTS:
                meal = self.days[day][slot]
                if meal is not None:
                    yield day, slot, meal

    def is_empty(self) -> bool:
        return next(self.planned_meals(), None) is None

    def get_summary(self) -> str:
        count = sum(1 for _ in self.planned_meals())
        return f"Meal Plan: week of {self.week_start} ({count} meals)"

    def __str__(self) -> str:
        return self.get_summary()

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "week_start": self.week_start,
            "days": {
                day: {
                    slot: (meal.to_dict() if meal else None)
                    for slot, meal in slots.items()
                }
                for day, slots in self.days.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "MealPlan":
        """Create MealPlan from dictionary; missing days or slots are unset."""
        days = empty_week()
        for day, slots in (data.get("days") or {}).items():
            if day not in days:
                raise ValueError(f"Unknown day '{day}' in meal plan {data.get('id')}")
            for slot, meal in (slots or {}).items():
                if slot not in MEAL_SLOTS:
                    raise ValueError(f"Unknown meal slot '{slot}' in meal plan {data.get('id')}")
                days[day][slot] = PlannedMeal.from_dict(meal) if meal else None

        return cls(
            id=data["id"],
            user_id=data["user_id"],
            week_start=data["week_start"],
            days=days,
        )


@dataclass
class ShoppingListItem:
    """Single item on a shopping list."""

    id: str
    name: str  # "Olive oil"
    quantity: str  # "4" (text; may be non-numeric)
    unit: str  # "tbsp"
    category: str  # "Oils & Vinegars"
    checked: bool = False
    recipe_ids: List[str] = field(default_factory=list)  # Recipes that need this item; empty for manual items

    def __str__(self) -> str:
        return " ".join(part for part in (self.quantity, self.unit, self.name) if part)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "unit": self.unit,
            "category": self.category,
            "checked": self.checked,
            "recipe_ids": list(self.recipe_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ShoppingListItem":
        return cls(
            id=data["id"],
            name=data["name"],
            quantity=str(data.get("quantity", "")),
            unit=data.get("unit") or "",
            category=data.get("category") or "Other",
            checked=bool(data.get("checked", False)),
            recipe_ids=list(data.get("recipe_ids", [])),
        )


@dataclass
class ShoppingList:
    """Shopping list for a week of meals."""

    id: str
    user_id: str
    week_start: str  # ISO format: "2025-01-20"
    items: List[ShoppingListItem] = field(default_factory=list)

    def find_item(self, item_id: str) -> Optional[ShoppingListItem]:
        return next((item for item in self.items if item.id == item_id), None)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "week_start": self.week_start,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ShoppingList":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            week_start=data["week_start"],
            items=[ShoppingListItem.from_dict(i) for i in data.get("items", [])],
        )


@dataclass
class UserPreferences:
    """Household and dietary preferences stored in the hosted backend."""

    household_size: int = 1
    dietary_restrictions: List[str] = field(default_factory=list)
    instacart_connected: bool = False

    def to_dict(self) -> Dict:
        return {
            "household_size": self.household_size,
            "dietary_restrictions": list(self.dietary_restrictions),
            "instacart_connected": self.instacart_connected,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "UserPreferences":
        return cls(
            household_size=data.get("household_size", 1),
            dietary_restrictions=list(data.get("dietary_restrictions", [])),
            instacart_connected=data.get("instacart_connected", False),
        )


@dataclass
class User:
    """Signed-in user."""

    id: str
    name: str
    email: str
    preferences: UserPreferences = field(default_factory=UserPreferences)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "preferences": self.preferences.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "User":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            email=data.get("email", ""),
            preferences=UserPreferences.from_dict(data.get("preferences") or {}),
        )
