"""OpenAI service for menu analysis, photo enhancement and dish lookup."""

import base64
import logging
import time

from joblib import Memory
from openai import Client
from openai import OpenAIError
from pydantic import ValidationError

from src.config import CACHE_DIR
from src.config import DEFAULT_IMAGE_MODEL
from src.config import DEFAULT_OPENAI_MODEL
from src.config import DEFAULT_TARGET_LANGUAGE
from src.datamodels import Allergen
from src.datamodels import AnalyzerMenuItem
from src.datamodels import AnalyzerResponse
from src.datamodels import DietaryLabel
from src.datamodels import MenuItem
from src.values import OPENAI_API_KEY

logger = logging.getLogger(__name__)

memory = Memory(CACHE_DIR / "openai_menu_analysis", verbose=0)


class AnalysisError(Exception):
    """Exception raised when a menu image cannot be analyzed."""


class ImageEnhancementError(Exception):
    """Exception raised when a menu photo cannot be edited."""


# Model pricing per 1M tokens (input, output)
MODEL_PRICING = {
    "gpt-4.1-nano": {"input": 0.20, "output": 0.80},
    "gpt-5-mini": {"input": 0.25, "output": 2.00},
    "gpt-4.1-mini": {"input": 0.80, "output": 3.20},
    "gpt-5.2": {"input": 1.75, "output": 14.00},
    "gpt-4.1": {"input": 3.00, "output": 12.00},
}


def calculate_request_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Calculate the cost of an OpenAI API request in USD."""
    pricing = MODEL_PRICING.get(model, MODEL_PRICING.get("gpt-5-mini"))
    input_cost = (prompt_tokens / 1_000_000) * pricing["input"]
    output_cost = (completion_tokens / 1_000_000) * pricing["output"]
    return input_cost + output_cost


def _log_usage(model: str, usage, finish_reason: str, elapsed_time: float) -> None:
    """Log OpenAI API usage, cost, and timing."""
    prompt_tokens = usage.prompt_tokens
    completion_tokens = usage.completion_tokens
    cost = calculate_request_cost(model, prompt_tokens, completion_tokens)

    logger.info(
        f"Token usage - Model: {model}, Input: {prompt_tokens}, Output: {completion_tokens}, "
        f"Total: {usage.total_tokens}, Cost: ${cost:.6f}, Finish: {finish_reason}, Time: {elapsed_time:.2f}s"
    )


def build_prompt(target_language: str) -> str:
    """Build the menu analysis prompt for the given target language."""
    return f"""You are a menu translator. Analyze this menu image and extract all menu items.

Return a JSON object with this structure:
{{
  "items": [
    {{
      "original": "dish name in source language",
      "translated": "dish name in {target_language}",
      "description": "2-3 sentence description with taste, preparation, origin",
      "ingredients": ["ingredient1", "ingredient2", "ingredient3"],
      "dietary": ["Vegetarian", "Vegan", "Gluten-Free"],
      "spice_level": "Mild/Medium/Hot",
      "category": "Appetizer/Main/Dessert/Beverage",
      "price": "$12",
      "allergens": ["dairy", "nuts"]
    }}
  ]
}}

Only use these dietary labels: {", ".join(DietaryLabel)}.
Only use these allergen labels: {", ".join(Allergen)}.
Extract all menu items. If unclear, make best effort. Be culturally accurate."""


def _client() -> Client:
    return Client(api_key=OPENAI_API_KEY)


def _call_openai_api(image_data_base64: str, prompt: str, model: str) -> AnalyzerResponse:
    """Call OpenAI API with Pydantic structured output.

    Raises:
        AnalysisError: If response is invalid or truncated.
    """
    start_time = time.time()

    response = _client().beta.chat.completions.parse(
        model=model,
        messages=[
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:image/jpeg;base64,{image_data_base64}"},
                    },
                ],
            }
        ],
        response_format=AnalyzerResponse,
    )

    elapsed_time = time.time() - start_time

    if not response.choices:
        raise AnalysisError("OpenAI API returned no choices")

    choice = response.choices[0]
    finish_reason = choice.finish_reason

    _log_usage(model, response.usage, finish_reason, elapsed_time)

    if finish_reason == "length":
        raise AnalysisError(
            f"Response truncated at token limit. "
            f"Received {response.usage.completion_tokens} output tokens. "
            f"Menu may be too complex or response too long."
        )

    parsed = choice.message.parsed
    if parsed is None:
        raise AnalysisError(f"Failed to parse OpenAI response (finish_reason: {finish_reason})")

    return parsed


@memory.cache
def _cached_analyze(image_data_base64: str, prompt: str, model: str) -> dict:
    """Cached analysis - returns dict for pickle compatibility."""
    result = _call_openai_api(image_data_base64, prompt, model)
    return result.model_dump()


def _canonical_labels(labels: list[str], vocabulary: type[DietaryLabel] | type[Allergen], dish: str) -> list[str]:
    canonical = []
    for label in labels:
        try:
            value = vocabulary(label).value
        except ValueError:
            logger.warning(f"Dropping unknown {vocabulary.__name__} label '{label}' for '{dish}'")
            continue
        if value not in canonical:
            canonical.append(value)
    return canonical


def to_menu_item(dish: AnalyzerMenuItem) -> MenuItem:
    """Build a MenuItem, mapping free-form labels onto the known vocabularies."""
    return MenuItem(
        original=dish.original,
        translated=dish.translated,
        description=dish.description,
        ingredients=dish.ingredients,
        dietary=_canonical_labels(dish.dietary, DietaryLabel, dish.original),
        allergens=_canonical_labels(dish.allergens, Allergen, dish.original),
        spice_level=dish.spice_level,
        category=dish.category,
        price=dish.price,
    )


def analyze_menu(
    image_data: str,
    target_language: str = DEFAULT_TARGET_LANGUAGE,
    model: str = DEFAULT_OPENAI_MODEL,
) -> list[MenuItem]:
    """Extract and translate the dishes on a menu photo.

    Args:
        image_data: Base64 encoded menu image.
        target_language: Language to translate dish names into.
        model: OpenAI model to use.

    Returns:
        MenuItems in menu order.

    Raises:
        AnalysisError: On any failure, whatever the cause.
    """
    prompt = build_prompt(target_language)

    try:
        cached_dict = _cached_analyze(image_data, prompt, model)
        response = AnalyzerResponse.model_validate(cached_dict)
    except AnalysisError:
        raise
    except (OpenAIError, ValidationError) as e:
        raise AnalysisError(f"Menu analysis failed: {e}") from e

    logger.info(f"Number of dishes: {len(response.items)}, Language: {target_language}")
    return [to_menu_item(dish) for dish in response.items]


def enhance_image(image_data: str, prompt: str, model: str = DEFAULT_IMAGE_MODEL) -> str:
    """Edit a menu photo according to a prompt (e.g. "make it brighter").

    Returns:
        The edited image, base64 encoded.

    Raises:
        ImageEnhancementError: If the edit fails or no image comes back.
    """
    image_bytes = base64.b64decode(image_data)
    try:
        response = _client().images.edit(
            model=model,
            image=("menu.jpg", image_bytes, "image/jpeg"),
            prompt=prompt,
        )
    except OpenAIError as e:
        logger.error(f"Error enhancing image: {e}")
        raise ImageEnhancementError(f"Image edit failed: {e}") from e

    for image in response.data or []:
        if image.b64_json:
            return image.b64_json
    raise ImageEnhancementError("No image generated")


def search_dish_info(dish_name: str, model: str = DEFAULT_OPENAI_MODEL) -> str:
    """Look up a dish's origin, key ingredients and cultural significance on the web."""
    try:
        response = _client().responses.create(
            model=model,
            tools=[{"type": "web_search_preview"}],
            input=(
                f'Find detailed information about the dish "{dish_name}" including its origin, '
                f"key ingredients, and cultural significance."
            ),
        )
    except OpenAIError as e:
        logger.error(f"Error searching dish info for '{dish_name}': {e}")
        return "Failed to retrieve information."
    return response.output_text or "No information found."
