"""Claude LLM inference for structured bean attributes."""

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

_PROMPT_TEMPLATE = """You are a specialty coffee analyst. Analyze the coffee bean listing below and
return the result as JSON.

Price: {price}
Description: {description}

Extract the following fields. Use null when the description does not say.

- country: origin country (e.g. Ethiopia, Kenya, Colombia)
- region: growing region (e.g. Yirgacheffe, Huila, Kirinyaga)
- farm: farm, washing station or cooperative name
- altitude: altitude range in metres, numbers only (e.g. "1600-1800")
- variety: cultivar(s) (e.g. SL28, Gesha, Bourbon, Heirloom)
- process: processing method (e.g. Washed, Natural, Honey, Anaerobic)
- roast_level: one of Light, Light-Medium, Medium, Medium-Dark, Dark
- intended_use: one of Filter, Espresso, Both
- flavor_notes: comma separated flavor descriptors
- acidity, sweetness, body: integers 1-5
- seasonality: one of FreshArrival, PeakSeason, LateHarvest, PastCrop
- seasonality_note: one sentence justifying the seasonality (harvest months if known)
- freshness_score: 1-5 based on harvest and roast dates when present
- rare_variety: true/false
- micro_lot: true/false/null
- special_process: e.g. Anaerobic, Carbonic Maceration, Co-ferment; "" if none
- v60_score, espresso_score, french_press_score, cold_brew_score: integers 1-5
- weight_grams: bag weight in grams if stated
- value_score: 0-10, how good the price is for the quality on offer
- recommended_for: one short sentence
- avoid_if: one short sentence, or ""

Scoring guidance:
1. V60: high acidity (4-5) + light roast + washed = 4-5; natural = 3
2. Espresso: medium roast + strong body (4-5) + high sweetness = high; high acidity = low
3. French press: strong body + natural or honey process = high
4. Cold brew: low acidity (1-2) + high sweetness + strong body = high
5. Every score must be a number, never text

Respond with JSON only, no markdown."""


def _strip_fences(text: str) -> str:
    text = text.strip()
    # Handle potential markdown code blocks
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        text = text.rsplit("```", 1)[0]
    return text.strip()


def parse_json_response(text: str) -> Any | None:
    """Parse a model reply as JSON, or None when it is malformed."""
    try:
        return json.loads(_strip_fences(text))
    except (json.JSONDecodeError, IndexError):
        return None


class AnthropicClient:
    """Thin wrapper over the Anthropic messages API returning reply text."""

    def __init__(self, api_key: str, model: str, max_tokens: int = 1500, client=None):
        if client is None:
            from anthropic import Anthropic
            # Retries are handled by RetryPolicy
            client = Anthropic(api_key=api_key, max_retries=0)
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    def complete(self, prompt: str) -> str:
        response = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        if not response.content:
            return ""
        return getattr(response.content[0], "text", "") or ""


class AnthropicInferer:
    """Infer structured attributes from a description and price.

    API failures propagate so the caller can classify throttling; a reply that
    is not a JSON object is reported as None (parse failure).
    """

    def __init__(self, client: AnthropicClient, max_description_chars: int = 800):
        self.client = client
        self.max_description_chars = max_description_chars

    def infer(self, description: str, price: str) -> dict | None:
        prompt = _PROMPT_TEMPLATE.format(
            price=price or "unknown",
            description=(description or "")[: self.max_description_chars],
        )
        text = self.client.complete(prompt)
        data = parse_json_response(text)
        if not isinstance(data, dict):
            logger.warning(f"Malformed enrichment response: {text[:200]!r}")
            return None
        return data
