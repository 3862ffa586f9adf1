"""
AI recipe search and generation.
"""

from chefitup.ai.recipe_generator import RecipeGenerator
from chefitup.ai.results import Ok, ParseError, ProviderError
from chefitup.ai.search import AISearchPipeline, SearchOutcome, SearchTier

__all__ = [
    "AISearchPipeline",
    "Ok",
    "ParseError",
    "ProviderError",
    "RecipeGenerator",
    "SearchOutcome",
    "SearchTier",
]
