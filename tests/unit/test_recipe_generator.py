"""
Unit tests for AI recipe generation.
"""

import pytest

from chefitup.ai.prompts import GENERATE_SYSTEM_PROMPT
from chefitup.ai.recipe_generator import MISSING_KEY_MESSAGE, PLACEHOLDER_IMAGE, RecipeGenerator
from chefitup.ai.results import Ok, ParseError, ProviderError
from chefitup.ai.schemas import GeneratedRecipe
from chefitup.cancellation import CancellationToken
from chefitup.errors import InvalidInputError, LLMProviderError, OperationCancelled
from tests.conftest import ScriptedLLMProvider

FIXED_CLOCK = 1700000000.0


@pytest.fixture
def generator(scripted_llm):
    return RecipeGenerator(scripted_llm, clock=lambda: FIXED_CLOCK)


class TestGenerateRecipe:
    """Test generate_recipe()."""

    def test_success(self, generator, scripted_llm, make_recipe_json):
        scripted_llm.responses.append(make_recipe_json())

        result = generator.generate_recipe("  a quick thai dinner  ")

        assert isinstance(result, Ok)
        recipe = result.value
        assert recipe.id == "generated-1700000000000"
        assert recipe.image == PLACEHOLDER_IMAGE
        assert recipe.title == "Thai Basil Chicken"
        assert [i.id for i in recipe.ingredients] == ["ing-1", "ing-2"]
        assert all(i.category == "Other" for i in recipe.ingredients)

    def test_structured_call(self, generator, scripted_llm, make_recipe_json):
        """One generate_object call with the recipe schema and creative temperature."""
        scripted_llm.responses.append(make_recipe_json())
        generator.generate_recipe("a quick thai dinner")

        assert len(scripted_llm.calls) == 1
        call = scripted_llm.calls[0]
        assert call["kind"] == "generate_object"
        assert '"a quick thai dinner"' in call["prompt"]
        assert call["schema"] == GeneratedRecipe.model_json_schema()
        assert call["system"] == GENERATE_SYSTEM_PROMPT
        assert call["temperature"] == 0.7
        assert call["max_tokens"] == 2000

    @pytest.mark.parametrize("prompt", ["", "   ", None])
    def test_empty_prompt(self, generator, scripted_llm, prompt):
        with pytest.raises(InvalidInputError):
            generator.generate_recipe(prompt)
        assert scripted_llm.calls == []

    def test_missing_api_key(self, null_llm):
        result = RecipeGenerator(null_llm).generate_recipe("soup")
        assert isinstance(result, ProviderError)
        assert result.missing_credential is True
        assert result.message == MISSING_KEY_MESSAGE
        assert null_llm.call_count == 0

    def test_provider_failure(self, generator, scripted_llm):
        scripted_llm.responses.append(LLMProviderError("OpenAI API error: 500"))
        result = generator.generate_recipe("soup")
        assert isinstance(result, ProviderError)
        assert result.missing_credential is False
        assert "500" in result.message

    def test_unparseable_output(self, generator, scripted_llm):
        scripted_llm.responses.append("I'm sorry, I can't help with that.")
        result = generator.generate_recipe("soup")
        assert isinstance(result, ParseError)
        assert not result.ok

    def test_invalid_recipe(self, generator, scripted_llm, make_recipe_json):
        scripted_llm.responses.append(make_recipe_json(difficulty="extreme"))
        assert isinstance(generator.generate_recipe("soup"), ParseError)


class CancellingGenerateProvider(ScriptedLLMProvider):
    def __init__(self, token, responses):
        super().__init__(responses)
        self.token = token

    def generate_object(self, prompt, schema, system=None, temperature=0.7, max_tokens=2000) -> str:
        self.token.cancel()
        return super().generate_object(prompt, schema, system, temperature, max_tokens)


class TestCancellation:
    def test_cancelled_before_call(self, generator, scripted_llm):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelled):
            generator.generate_recipe("soup", cancel_token=token)
        assert scripted_llm.calls == []

    def test_result_dropped_after_cancel(self, make_recipe_json):
        """A response arriving after cancellation is discarded."""
        token = CancellationToken()
        llm = CancellingGenerateProvider(token, [make_recipe_json()])
        with pytest.raises(OperationCancelled):
            RecipeGenerator(llm).generate_recipe("soup", cancel_token=token)
        assert len(llm.calls) == 1
