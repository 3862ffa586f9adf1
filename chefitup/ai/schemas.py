"""
Pydantic schemas for structured LLM output.

The LLM is asked for snake_case keys; the camelCase keys used by the original
web client are accepted too since models often echo them back.
"""

import math
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from ..data.models import Ingredient, NutritionInfo, Recipe
from ..data.recipe_store import RecipeFilter

GENERATED_INGREDIENT_CATEGORY = "Other"


def _none_to_list(value):
    return [] if value is None else value


class GeneratedIngredient(BaseModel):
    name: str = Field(min_length=1)
    quantity: str
    unit: str = ""

    @field_validator("quantity", "unit", mode="before")
    @classmethod
    def _stringify(cls, value):
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return f"{value:g}"
        return value


class GeneratedNutrition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    calories: float = Field(ge=0)
    protein: float = Field(ge=0)
    carbs: float = Field(ge=0)
    fat: float = Field(ge=0)
    glycemic_index: Optional[int] = Field(
        default=None, ge=0, le=100, validation_alias=AliasChoices("glycemic_index", "glycemicIndex")
    )


class GeneratedRecipe(BaseModel):
    """Recipe shape requested from the LLM (no id or image)."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    description: str
    prep_time: int = Field(ge=0, validation_alias=AliasChoices("prep_time", "prepTime"))
    cook_time: int = Field(ge=0, validation_alias=AliasChoices("cook_time", "cookTime"))
    servings: int = Field(ge=1)
    difficulty: Literal["easy", "medium", "hard"]
    cuisine_type: str = Field(validation_alias=AliasChoices("cuisine_type", "cuisineType"))
    dietary_restrictions: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("dietary_restrictions", "dietaryRestrictions")
    )
    ingredients: List[GeneratedIngredient] = Field(min_length=1)
    instructions: List[str] = Field(min_length=1)
    nutrition: GeneratedNutrition = Field(validation_alias=AliasChoices("nutrition", "nutritionInfo"))

    @field_validator("difficulty", mode="before")
    @classmethod
    def _lower_difficulty(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("dietary_restrictions", mode="before")
    @classmethod
    def _default_tags(cls, value):
        return _none_to_list(value)

    def to_recipe(self, recipe_id: str, image: str) -> Recipe:
        """Build a catalog Recipe, synthesizing ids and categories."""
        return Recipe(
            id=recipe_id,
            title=self.title,
            description=self.description,
            image=image,
            prep_time=self.prep_time,
            cook_time=self.cook_time,
            servings=self.servings,
            difficulty=self.difficulty,
            cuisine_type=self.cuisine_type,
            dietary_restrictions=list(self.dietary_restrictions),
            ingredients=[
                Ingredient(
                    id=f"ing-{n}",
                    name=ing.name,
                    quantity=ing.quantity,
                    unit=ing.unit,
                    category=GENERATED_INGREDIENT_CATEGORY,
                )
                for n, ing in enumerate(self.ingredients, start=1)
            ],
            instructions=list(self.instructions),
            nutrition=NutritionInfo(
                calories=self.nutrition.calories,
                protein=self.nutrition.protein,
                carbs=self.nutrition.carbs,
                fat=self.nutrition.fat,
                glycemic_index=self.nutrition.glycemic_index,
            ),
        )


class SearchParams(BaseModel):
    """Search filters extracted from a free-text query."""

    model_config = ConfigDict(populate_by_name=True)

    keywords: List[str] = Field(default_factory=list)
    dietary_restrictions: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("dietary_restrictions", "dietaryRestrictions")
    )
    cuisine_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("cuisine_type", "cuisineType"))
    max_time: Optional[int] = Field(default=None, validation_alias=AliasChoices("max_time", "maxTime"))

    @field_validator("keywords", "dietary_restrictions", mode="before")
    @classmethod
    def _default_lists(cls, value):
        return _none_to_list(value)

    @field_validator("cuisine_type", mode="before")
    @classmethod
    def _blank_cuisine(cls, value):
        if isinstance(value, str) and value.strip().lower() in ("", "null", "none", "any", "all"):
            return None
        return value

    @field_validator("max_time", mode="before")
    @classmethod
    def _positive_time(cls, value):
        if isinstance(value, float):
            if not math.isfinite(value):
                raise ValueError(f"max_time must be a finite number, got {value}")
            value = int(value)
        if isinstance(value, int) and not isinstance(value, bool) and value <= 0:
            return None
        return value

    def is_empty(self) -> bool:
        return not (self.keywords or self.dietary_restrictions or self.cuisine_type or self.max_time)

    def to_filter(self) -> RecipeFilter:
        return RecipeFilter(
            keywords=list(self.keywords),
            cuisine_type=self.cuisine_type,
            dietary_restrictions=list(self.dietary_restrictions),
            max_time=self.max_time,
        )


RankedRecipeIds = TypeAdapter(List[str])
