"""
AI-assisted recipe search.

Search runs through an ordered list of tiers; each tier either produces a
non-empty result or hands over to the next one:

    EXTRACT_FILTERS -> RANK_CATALOG -> PLAIN_FILTER

EXTRACT_FILTERS asks the LLM to turn the query into structured filters,
RANK_CATALOG asks it to pick the most relevant catalog entries, and
PLAIN_FILTER is a substring match that never fails. A blank query skips all
tiers and returns the whole catalog.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..cancellation import CancellationToken, check_cancelled
from ..data.models import Recipe
from ..data.recipe_store import RecipeFilter, RecipeStore
from ..errors import LLMProviderError, OperationCancelled
from ..llm_provider import JSON_SYSTEM_PROMPT, LLMProvider
from .json_parsing import parse_json_response
from .prompts import build_extract_filters_prompt, build_rank_prompt
from .results import Ok, ParseError, ProviderError
from .schemas import RankedRecipeIds, SearchParams

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 5
SEARCH_TEMPERATURE = 0.0
SEARCH_MAX_TOKENS = 500


class SearchTier(str, Enum):
    FULL_CATALOG = "full_catalog"
    EXTRACT_FILTERS = "extract_filters"
    RANK_CATALOG = "rank_catalog"
    PLAIN_FILTER = "plain_filter"


# Where each LLM tier hands over on failure
NEXT_TIER = {
    SearchTier.EXTRACT_FILTERS: SearchTier.RANK_CATALOG,
    SearchTier.RANK_CATALOG: SearchTier.PLAIN_FILTER,
}


@dataclass
class SearchOutcome:
    """Result of a search plus which tier produced it."""
    recipes: List[Recipe]
    tier: SearchTier
    ai_enabled: bool
    message: Optional[str] = None
    failures: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipes": [r.to_dict() for r in self.recipes],
            "tier": self.tier.value,
            "ai_enabled": self.ai_enabled,
            "message": self.message,
        }


class AISearchPipeline:
    """Tiered recipe search over a RecipeStore."""

    def __init__(
        self,
        recipe_store: RecipeStore,
        llm: LLMProvider,
        ai_search_enabled: bool = True,
        top_n: int = DEFAULT_TOP_N,
    ):
        self.recipe_store = recipe_store
        self.llm = llm
        self.ai_search_enabled = ai_search_enabled
        self.top_n = top_n
        self._tiers = {
            SearchTier.EXTRACT_FILTERS: self._extract_filters,
            SearchTier.RANK_CATALOG: self._rank_catalog,
        }

    @property
    def ai_enabled(self) -> bool:
        return self.ai_search_enabled and not self.llm.is_null

    def search_recipes(self, query: str, cancel_token: Optional[CancellationToken] = None) -> SearchOutcome:
        """
        Search the catalog with a free-text query.

        Args:
            query: What the user typed (or dictated)
            cancel_token: Optional token; a cancelled token abandons the search

        Returns:
            SearchOutcome; tier failures are logged, never raised

        Raises:
            OperationCancelled: If cancel_token was cancelled
        """
        if not query or not query.strip():
            return SearchOutcome(self.recipe_store.list_recipes(), SearchTier.FULL_CATALOG, self.ai_enabled)

        query = query.strip()
        failures: List[str] = []

        if self.ai_enabled:
            tier = SearchTier.EXTRACT_FILTERS
        else:
            reason = "AI search is disabled" if not self.ai_search_enabled else "LLM API key is missing"
            logger.info(f"[SEARCH] {reason}, using plain search for '{query}'")
            failures.append(reason)
            tier = SearchTier.PLAIN_FILTER

        while tier != SearchTier.PLAIN_FILTER:
            check_cancelled(cancel_token, "Recipe search")
            result = self._run_tier(tier, query)
            check_cancelled(cancel_token, "Recipe search")

            if result.ok and result.value:
                logger.info(f"[SEARCH] {tier.value} returned {len(result.value)} recipes for '{query}'")
                return SearchOutcome(result.value, tier, True, failures=failures)

            reason = result.message if not result.ok else "no matching recipes"
            failures.append(f"{tier.value}: {reason}")
            logger.warning(f"[SEARCH] {tier.value} failed ({reason}), falling back to {NEXT_TIER[tier].value}")
            tier = NEXT_TIER[tier]

        check_cancelled(cancel_token, "Recipe search")
        recipes = self.recipe_store.list_recipes(RecipeFilter(query=query))
        if self.ai_enabled:
            message = "AI search was unavailable, showing basic search results"
        elif not self.ai_search_enabled:
            message = "AI search is disabled"
        else:
            message = "AI search is unavailable without an API key"
        logger.info(f"[SEARCH] plain_filter returned {len(recipes)} recipes for '{query}'")
        return SearchOutcome(recipes, SearchTier.PLAIN_FILTER, self.ai_enabled, message, failures)

    def _run_tier(self, tier: SearchTier, query: str) -> Union[Ok, ParseError, ProviderError]:
        try:
            return self._tiers[tier](query)
        except OperationCancelled:
            raise
        except Exception as e:
            logger.exception(f"[SEARCH] {tier.value} raised unexpectedly")
            return ParseError(f"{type(e).__name__}: {e}")

    def _call_llm(self, prompt: str) -> Union[str, ProviderError]:
        try:
            return self.llm.complete(
                prompt,
                system=JSON_SYSTEM_PROMPT,
                temperature=SEARCH_TEMPERATURE,
                max_tokens=SEARCH_MAX_TOKENS,
            )
        except LLMProviderError as e:
            return ProviderError(str(e))

    def _extract_filters(self, query: str) -> Union[Ok, ParseError, ProviderError]:
        raw = self._call_llm(build_extract_filters_prompt(query))
        if isinstance(raw, ProviderError):
            return raw

        parsed = parse_json_response(raw, SearchParams)
        if not parsed.ok:
            return parsed

        params: SearchParams = parsed.value
        logger.debug(f"[SEARCH] Extracted filters: {params.model_dump()}")
        if params.is_empty():
            return ParseError("LLM extracted no filters", raw=raw)
        return Ok(self.recipe_store.list_recipes(params.to_filter()))

    def _rank_catalog(self, query: str) -> Union[Ok, ParseError, ProviderError]:
        catalog = self.recipe_store.list_recipes()
        raw = self._call_llm(build_rank_prompt(query, catalog, self.top_n))
        if isinstance(raw, ProviderError):
            return raw

        parsed = parse_json_response(raw, RankedRecipeIds)
        if not parsed.ok:
            return parsed

        ranked: List[Recipe] = []
        for recipe_id in parsed.value:
            recipe = self.recipe_store.get_recipe(recipe_id)
            if recipe is None:
                logger.debug(f"[SEARCH] Dropping unknown ranked id {recipe_id}")
                continue
            if all(r.id != recipe.id for r in ranked):
                ranked.append(recipe)
            if len(ranked) >= self.top_n:
                break
        return Ok(ranked)
