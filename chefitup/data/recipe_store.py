"""
Recipe Store: read-only recipe catalog with filtered lookup.

The catalog is loaded once from the packaged recipes.json sample dataset and
never mutated afterwards.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Iterable

from .models import Recipe

logger = logging.getLogger(__name__)

CATALOG_PATH = Path(__file__).parent / "recipes.json"


@dataclass
class RecipeFilter:
    """Conjunctive recipe filter; unset fields do not filter.

    query matches title OR description as a case-insensitive substring.
    keywords pass when ANY keyword matches title or description.
    dietary_restrictions require every tag (superset semantics).
    max_time is inclusive on prep + cook time; None or <= 0 disables it.
    """
    query: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    cuisine_type: Optional[str] = None
    dietary_restrictions: List[str] = field(default_factory=list)
    max_time: Optional[int] = None

    def matches(self, recipe: Recipe) -> bool:
        text = f"{recipe.title.lower()} {recipe.description.lower()}"

        if self.query and self.query.strip():
            q = self.query.strip().lower()
            if q not in recipe.title.lower() and q not in recipe.description.lower():
                return False

        keywords = [k.strip().lower() for k in self.keywords if k and k.strip()]
        if keywords and not any(k in text for k in keywords):
            return False

        if self.cuisine_type and self.cuisine_type.strip().lower() not in ("", "all"):
            if recipe.cuisine_type.lower() != self.cuisine_type.strip().lower():
                return False

        if self.dietary_restrictions and not recipe.has_tags(self.dietary_restrictions):
            return False

        if self.max_time and self.max_time > 0 and recipe.total_time > self.max_time:
            return False

        return True


class RecipeStore:
    """In-memory recipe catalog."""

    def __init__(self, recipes: Iterable[Recipe]):
        """
        Initialize the store.

        Args:
            recipes: Catalog recipes; ids must be unique
        """
        self._recipes: List[Recipe] = list(recipes)
        self._by_id = {}
        for recipe in self._recipes:
            if recipe.id in self._by_id:
                raise ValueError(f"Duplicate recipe id in catalog: {recipe.id}")
            self._by_id[recipe.id] = recipe
        logger.info(f"Recipe store loaded with {len(self._recipes)} recipes")

    @classmethod
    def from_json(cls, path: Path = CATALOG_PATH) -> "RecipeStore":
        """Load a catalog from a JSON array of recipe dictionaries."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return cls(Recipe.from_dict(r) for r in data)

    def __len__(self) -> int:
        return len(self._recipes)

    def list_recipes(self, recipe_filter: Optional[RecipeFilter] = None) -> List[Recipe]:
        """
        List recipes matching a filter.

        Args:
            recipe_filter: Optional filter; None returns the full catalog

        Returns:
            Matching recipes in catalog order
        """
        if recipe_filter is None:
            return list(self._recipes)
        return [r for r in self._recipes if recipe_filter.matches(r)]

    def get_recipe(self, recipe_id: str) -> Optional[Recipe]:
        """Get a recipe by id, or None when it is not in the catalog."""
        return self._by_id.get(recipe_id)

    def get_cuisines(self) -> List[str]:
        """Distinct cuisine types, sorted."""
        return sorted({r.cuisine_type for r in self._recipes if r.cuisine_type})

    def get_dietary_tags(self) -> List[str]:
        """Distinct dietary tags, sorted."""
        return sorted({t for r in self._recipes for t in r.dietary_restrictions})
