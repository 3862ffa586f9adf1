"""
Unit tests for the tiered AI recipe search.

Uses ScriptedLLMProvider so each tier's LLM response is controlled.
"""

import pytest

from chefitup.ai.search import AISearchPipeline, SearchTier
from chefitup.cancellation import CancellationToken
from chefitup.errors import LLMProviderError, OperationCancelled
from chefitup.llm_provider import JSON_SYSTEM_PROMPT
from tests.conftest import ScriptedLLMProvider


def ids(recipes):
    return [r.id for r in recipes]


@pytest.fixture
def pipeline(recipe_store, scripted_llm):
    return AISearchPipeline(recipe_store, scripted_llm)


class TestBlankQuery:
    """A blank query returns the catalog without calling the LLM."""

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_full_catalog(self, pipeline, scripted_llm, query):
        outcome = pipeline.search_recipes(query)
        assert outcome.tier == SearchTier.FULL_CATALOG
        assert len(outcome.recipes) == 10
        assert outcome.message is None
        assert scripted_llm.calls == []


class TestExtractFilters:
    """Test the first tier."""

    def test_success(self, pipeline, scripted_llm):
        scripted_llm.responses.append('{"keywords": ["curry"], "cuisine_type": "Indian", "max_time": null}')

        outcome = pipeline.search_recipes("quick indian curry")

        assert outcome.tier == SearchTier.EXTRACT_FILTERS
        assert ids(outcome.recipes) == ["recipe-7"]
        assert outcome.ai_enabled is True
        assert outcome.message is None
        assert len(scripted_llm.calls) == 1

        call = scripted_llm.calls[0]
        assert call["kind"] == "complete"
        assert '"quick indian curry"' in call["prompt"]
        assert call["system"] == JSON_SYSTEM_PROMPT
        assert call["temperature"] == 0.0
        assert call["max_tokens"] == 500

    def test_fenced_response(self, pipeline, scripted_llm):
        scripted_llm.responses.append('```json\n{"dietary_restrictions": ["vegan"]}\n```')
        outcome = pipeline.search_recipes("vegan dinner")
        assert outcome.tier == SearchTier.EXTRACT_FILTERS
        assert ids(outcome.recipes) == ["recipe-3", "recipe-7"]


class TestFallback:
    """Test tier hand-over on failure."""

    def test_empty_filter_result_falls_to_ranking(self, pipeline, scripted_llm):
        scripted_llm.responses.extend([
            '{"keywords": [], "cuisine_type": "French"}',
            '["recipe-10", "recipe-999", "recipe-4", "recipe-10"]',
        ])

        outcome = pipeline.search_recipes("something fishy")

        assert outcome.tier == SearchTier.RANK_CATALOG
        assert ids(outcome.recipes) == ["recipe-10", "recipe-4"]
        assert outcome.failures == ["extract_filters: no matching recipes"]
        assert '"recipe-1"' in scripted_llm.calls[1]["prompt"]

    def test_no_extracted_filters_falls_to_ranking(self, pipeline, scripted_llm):
        scripted_llm.responses.extend(['{"keywords": null, "cuisine_type": "any"}', '["recipe-2"]'])
        outcome = pipeline.search_recipes("dinner ideas")
        assert outcome.tier == SearchTier.RANK_CATALOG
        assert "no filters" in outcome.failures[0]

    def test_ranking_capped_at_top_n(self, recipe_store, scripted_llm):
        pipeline = AISearchPipeline(recipe_store, scripted_llm, top_n=2)
        scripted_llm.responses.extend([
            "not json",
            '["recipe-1", "recipe-2", "recipe-3", "recipe-4"]',
        ])
        outcome = pipeline.search_recipes("anything")
        assert ids(outcome.recipes) == ["recipe-1", "recipe-2"]

    def test_all_llm_tiers_fail(self, pipeline, scripted_llm, caplog):
        scripted_llm.responses.extend([
            "Here are some filters!",
            LLMProviderError("OpenAI API error: rate limited"),
        ])

        with caplog.at_level("WARNING", logger="chefitup.ai.search"):
            outcome = pipeline.search_recipes("salmon")

        assert outcome.tier == SearchTier.PLAIN_FILTER
        assert ids(outcome.recipes) == ["recipe-4", "recipe-10"]
        assert outcome.ai_enabled is True
        assert outcome.message == "AI search was unavailable, showing basic search results"
        assert len(outcome.failures) == 2
        assert "rate limited" in outcome.failures[1]
        assert "falling back to rank_catalog" in caplog.text
        assert "falling back to plain_filter" in caplog.text

    def test_ranking_only_unknown_ids(self, pipeline, scripted_llm):
        scripted_llm.responses.extend([LLMProviderError("down"), '["recipe-404"]'])
        outcome = pipeline.search_recipes("pasta")
        assert outcome.tier == SearchTier.PLAIN_FILTER
        assert ids(outcome.recipes) == ["recipe-1"]

    def test_infinite_time_falls_to_ranking(self, pipeline, scripted_llm):
        scripted_llm.responses.extend(['{"max_time": Infinity}', '["recipe-4"]'])

        outcome = pipeline.search_recipes("salmon")

        assert outcome.tier == SearchTier.RANK_CATALOG
        assert ids(outcome.recipes) == ["recipe-4"]
        assert outcome.failures[0].startswith("extract_filters: Response did not match schema")

    def test_unexpected_tier_exception_falls_through(self, pipeline, scripted_llm):
        scripted_llm.responses.extend([RuntimeError("socket closed"), RuntimeError("socket closed")])

        outcome = pipeline.search_recipes("salmon")

        assert outcome.tier == SearchTier.PLAIN_FILTER
        assert ids(outcome.recipes) == ["recipe-4", "recipe-10"]
        assert outcome.failures == [
            "extract_filters: RuntimeError: socket closed",
            "rank_catalog: RuntimeError: socket closed",
        ]


class TestWithoutAI:
    """Plain search when AI is off or has no key."""

    def test_no_api_key(self, recipe_store, null_llm):
        outcome = AISearchPipeline(recipe_store, null_llm).search_recipes("Salmon")
        assert outcome.tier == SearchTier.PLAIN_FILTER
        assert outcome.ai_enabled is False
        assert outcome.message == "AI search is unavailable without an API key"
        assert ids(outcome.recipes) == ["recipe-4", "recipe-10"]
        assert null_llm.call_count == 0

    def test_disabled(self, recipe_store, scripted_llm):
        pipeline = AISearchPipeline(recipe_store, scripted_llm, ai_search_enabled=False)
        outcome = pipeline.search_recipes("bowl")
        assert outcome.tier == SearchTier.PLAIN_FILTER
        assert outcome.message == "AI search is disabled"
        assert ids(outcome.recipes) == ["recipe-2", "recipe-3", "recipe-4"]
        assert scripted_llm.calls == []


class CancellingLLMProvider(ScriptedLLMProvider):
    """Cancels a token while the call is in flight."""

    def __init__(self, token, responses):
        super().__init__(responses)
        self.token = token

    def complete(self, prompt, system=None, temperature=0.7, max_tokens=2000) -> str:
        self.token.cancel()
        return super().complete(prompt, system, temperature, max_tokens)


class TestCancellation:
    """A cancelled search raises instead of returning results."""

    def test_cancelled_before_start(self, pipeline, scripted_llm):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelled):
            pipeline.search_recipes("salmon", cancel_token=token)
        assert scripted_llm.calls == []

    def test_cancelled_during_call(self, recipe_store):
        token = CancellationToken()
        llm = CancellingLLMProvider(token, ['{"keywords": ["salmon"]}'])
        with pytest.raises(OperationCancelled):
            AISearchPipeline(recipe_store, llm).search_recipes("salmon", cancel_token=token)
        assert len(llm.calls) == 1


class TestSearchOutcome:
    def test_to_dict(self, pipeline, scripted_llm):
        scripted_llm.responses.append('{"keywords": ["frittata"]}')
        data = pipeline.search_recipes("frittata").to_dict()
        assert data["tier"] == "extract_filters"
        assert data["ai_enabled"] is True
        assert [r["id"] for r in data["recipes"]] == ["recipe-6"]
