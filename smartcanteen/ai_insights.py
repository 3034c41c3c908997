import json
import logging
import re

from anthropic import Anthropic

from smartcanteen.config import get_settings

logger = logging.getLogger(__name__)

client = None

_FENCE = re.compile(r"```(?:json)?")

FALLBACK_DISH_NAME = "Chef's Daily Surprise Fusion"


def get_client():
    global client
    settings = get_settings()
    if not settings.ai_enabled or not settings.ANTHROPIC_API_KEY:
        return None
    if client is None:
        # One attempt per call: callers own the fallback, not the SDK
        client = Anthropic(
            api_key=settings.ANTHROPIC_API_KEY,
            timeout=settings.FORECAST_TIMEOUT_SECONDS,
            max_retries=0,
        )
    return client


def reset_client():
    global client
    client = None


def ask(c, prompt, max_tokens=None):
    """Send one user prompt and return the raw text of the reply."""
    settings = get_settings()
    response = c.messages.create(
        model=settings.FORECAST_MODEL,
        max_tokens=max_tokens or settings.FORECAST_MAX_TOKENS,
        messages=[{"role": "user", "content": prompt}],
    )
    return response.content[0].text


def parse_json_reply(text):
    """Strip markdown fences and parse. Raises ValueError on anything that isn't JSON."""
    return json.loads(_FENCE.sub("", text).strip())


def generate_surprise_dish(leftovers):
    """Invent one zero-waste dish from leftover menu items.

    Returns a dict with name, description, calories, allergens and ingredients.
    Falls back to a fixed fusion dish when the service is unavailable.
    """
    names = [item.name for item in leftovers]
    fallback = {
        "name": FALLBACK_DISH_NAME,
        "description": (
            "A balanced bowl combining today's surplus ingredients into a "
            "limited-edition zero-waste feast."
        ),
        "calories": 550,
        "allergens": ["See Staff"],
        "ingredients": names,
    }

    c = get_client()
    if not c:
        return fallback

    leftover_list = "\n".join(f"- {n}" for n in names)
    prompt = f"""You are the head chef of a campus canteen focused on zero waste.
Create one NEW "Surprise Dish" combining these leftovers:
{leftover_list}

Rules:
1. The name must be catchy and sound fresh, not like leftovers.
2. The description should explain the fusion in one or two sentences.
3. Return ONLY a JSON object in this format:
{{
  "name": "Catchy Name",
  "description": "Creative description",
  "calories": 500,
  "allergens": ["allergen1"],
  "ingredients": ["item1", "item2"]
}}"""

    try:
        dish = parse_json_reply(ask(c, prompt, max_tokens=512))
        if not isinstance(dish, dict) or not dish.get("name"):
            raise ValueError("reply is not a dish object")
        return {**fallback, **dish}
    except Exception as e:
        logger.warning("Surprise dish generation failed, using fallback: %s", e)
        return fallback


def waste_strategy(history):
    """Weekly optimisation advice for the canteen, as plain text."""
    if not history:
        return "No audit logs yet. Record a few shifts to get a strategy."

    total_prepared = sum(e.prepared for e in history)
    total_waste = sum(e.waste for e in history)
    summary = (
        f"{len(history)} audit logs: {total_prepared} prepared, {total_waste} wasted "
        f"({round(total_waste / total_prepared * 100, 1) if total_prepared else 0}% waste)."
    )

    c = get_client()
    if not c:
        return summary

    rows = [e.to_document() for e in history]
    prompt = (
        "Give a short weekly optimisation strategy for a campus canteen, "
        "focused on cutting food waste, using this audit data:\n"
        + json.dumps(rows, indent=2, default=str)
    )
    try:
        return ask(c, prompt, max_tokens=1024)
    except Exception as e:
        logger.warning("Waste strategy unavailable: %s", e)
        return f"AI strategy temporarily unavailable. {summary}"
