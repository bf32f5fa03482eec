"""Cost estimates from the configured per-model price table."""

import logging

from config import ModelPrice

logger = logging.getLogger(__name__)


def lookup_price(model: str, pricing: dict[str, ModelPrice]) -> ModelPrice | None:
    """Exact model id first, then the longest configured prefix.

    "claude-3-haiku-20240307" resolves to the "claude-3-haiku" entry.
    """
    if model in pricing:
        return pricing[model]
    prefixes = [key for key in pricing if model.startswith(key)]
    if not prefixes:
        return None
    return pricing[max(prefixes, key=len)]


def estimate_cost(
    model: str,
    prompt_tokens: int,
    completion_tokens: int,
    pricing: dict[str, ModelPrice],
) -> float:
    price = lookup_price(model, pricing)
    if price is None:
        logger.warning("No price configured for model %s, cost reported as 0", model)
        return 0.0
    cost = (
        prompt_tokens * price.input_per_1k / 1000
        + completion_tokens * price.output_per_1k / 1000
    )
    return round(cost, 8)
