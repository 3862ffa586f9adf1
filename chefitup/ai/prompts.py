"""Prompt templates for recipe generation and AI search."""

import json
from typing import List

from ..data.models import Recipe

GENERATE_SYSTEM_PROMPT = (
    "You are a recipe developer for people managing diabetes. "
    "Favor whole foods, fiber and lean protein, and keep added sugar low. "
    "Respond with ONLY valid JSON; no markdown, no code blocks, no additional text."
)


def build_generate_prompt(request: str) -> str:
    return f"""Generate a detailed recipe based on this request: "{request}"

The recipe should include:
- A creative title
- A brief description
- Preparation time in minutes
- Cooking time in minutes
- Number of servings
- Difficulty level (easy, medium, or hard)
- Cuisine type
- Dietary restrictions (e.g., vegetarian, vegan, gluten-free, etc.)
- A list of ingredients with quantities and units
- Step-by-step instructions
- Nutrition information per serving (calories, protein, carbs, fat, and an estimated glycemic index if you can)"""


def build_extract_filters_prompt(query: str) -> str:
    return f"""I need to search for recipes based on this query: "{query}"

Extract the following information from the query:
1. Keywords (ingredients, dish types, etc.)
2. Dietary restrictions (vegetarian, vegan, gluten-free, etc.)
3. Cuisine type (Italian, Mexican, Asian, etc.)
4. Maximum total cooking time (in minutes)

Format your response as a JSON object with these fields:
{{
  "keywords": ["keyword1", "keyword2"],
  "dietary_restrictions": ["restriction1", "restriction2"],
  "cuisine_type": "cuisine or null if not specified",
  "max_time": number or null if not specified
}}

IMPORTANT: Return ONLY the JSON object with no markdown formatting, no code blocks, and no additional text."""


def summarize_catalog(recipes: List[Recipe]) -> str:
    """Compact JSON summary of the catalog for ranking prompts."""
    return json.dumps([
        {
            "id": r.id,
            "title": r.title,
            "description": r.description,
            "cuisine_type": r.cuisine_type,
            "dietary_restrictions": r.dietary_restrictions,
            "prep_time": r.prep_time,
            "cook_time": r.cook_time,
        }
        for r in recipes
    ])


def build_rank_prompt(query: str, recipes: List[Recipe], top_n: int) -> str:
    return f"""I'm looking for recipes based on this query: "{query}"

Here are all the available recipes:
{summarize_catalog(recipes)}

Return the IDs of the {top_n} most relevant recipes, most relevant first, as a JSON array:
["recipe-id-1", "recipe-id-2", ...]

IMPORTANT: Return ONLY the JSON array with no markdown formatting, no code blocks, and no additional text."""
