"""
AI recipe generation.

Turns a free-text request ("a low-carb Thai curry for two") into a validated
Recipe through a single structured LLM call.
"""

import logging
import time
from typing import Callable, Optional, Union

from ..cancellation import CancellationToken, check_cancelled
from ..errors import InvalidInputError, LLMProviderError
from ..llm_provider import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, LLMProvider
from .json_parsing import parse_json_response
from .prompts import GENERATE_SYSTEM_PROMPT, build_generate_prompt
from .results import Ok, ParseError, ProviderError
from .schemas import GeneratedRecipe

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "/images/pasta-primavera.jpg"
MISSING_KEY_MESSAGE = "LLM API key is missing"


class RecipeGenerator:
    """Generates recipes with an LLM provider."""

    def __init__(self, llm: LLMProvider, clock: Callable[[], float] = time.time):
        """
        Initialize the generator.

        Args:
            llm: Provider used for the structured call
            clock: Seconds-since-epoch source used for generated ids
        """
        self.llm = llm
        self.clock = clock
        self.schema = GeneratedRecipe.model_json_schema()

    def generate_recipe(
        self,
        prompt: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Union[Ok, ParseError, ProviderError]:
        """
        Generate a recipe from a free-text request.

        Args:
            prompt: What the user asked for
            cancel_token: Optional token; a cancelled token abandons the result

        Returns:
            Ok(Recipe), ParseError when the output is not a valid recipe, or
            ProviderError when the provider is unavailable or failed

        Raises:
            InvalidInputError: If prompt is empty
            OperationCancelled: If cancel_token was cancelled
        """
        if not prompt or not prompt.strip():
            raise InvalidInputError("Recipe prompt is required")

        if self.llm.is_null:
            logger.warning(f"[GENERATE] {MISSING_KEY_MESSAGE}; cannot generate recipe")
            return ProviderError(MISSING_KEY_MESSAGE, missing_credential=True)

        check_cancelled(cancel_token, "Recipe generation")
        logger.info(f"[GENERATE] Generating recipe for prompt: {prompt[:80]}")

        try:
            raw = self.llm.generate_object(
                build_generate_prompt(prompt.strip()),
                self.schema,
                system=GENERATE_SYSTEM_PROMPT,
                temperature=DEFAULT_TEMPERATURE,
                max_tokens=DEFAULT_MAX_TOKENS,
            )
        except LLMProviderError as e:
            logger.error(f"[GENERATE] Provider call failed: {e}")
            check_cancelled(cancel_token, "Recipe generation")
            return ProviderError(str(e))

        check_cancelled(cancel_token, "Recipe generation")

        parsed = parse_json_response(raw, GeneratedRecipe)
        if not parsed.ok:
            logger.warning(f"[GENERATE] Invalid recipe output: {parsed.message}")
            return parsed

        recipe = parsed.value.to_recipe(
            recipe_id=f"generated-{int(self.clock() * 1000)}",
            image=PLACEHOLDER_IMAGE,
        )
        logger.info(f"[GENERATE] Generated recipe: {recipe.title}")
        return Ok(recipe)
