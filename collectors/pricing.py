from dataclasses import dataclass


@dataclass(frozen=True)
class ModelPricing:
    input_per_mtok: float
    output_per_mtok: float


# USD per million tokens; cache writes and reads are priced off the input rate
CACHE_WRITE_MULT = 1.25
CACHE_READ_MULT = 0.10

MODEL_PRICING = {
    "claude-opus-4": ModelPricing(15.00, 75.00),
    "claude-opus-4-5": ModelPricing(5.00, 25.00),
    "claude-sonnet-4": ModelPricing(3.00, 15.00),
    "claude-3-7-sonnet": ModelPricing(3.00, 15.00),
    "claude-3-5-sonnet": ModelPricing(3.00, 15.00),
    "claude-haiku-4-5": ModelPricing(1.00, 5.00),
    "claude-3-5-haiku": ModelPricing(0.80, 4.00),
}

# Family fallbacks for ids not listed above (dated or newer releases).
_FAMILY_PRICING = {
    "opus": MODEL_PRICING["claude-opus-4-5"],
    "sonnet": MODEL_PRICING["claude-sonnet-4"],
    "haiku": MODEL_PRICING["claude-haiku-4-5"],
}


def get_pricing(model: str) -> ModelPricing | None:
    """Longest listed prefix wins, then the family fallback."""
    best = ""
    for key in MODEL_PRICING:
        if model.startswith(key) and len(key) > len(best):
            best = key
    if best:
        return MODEL_PRICING[best]
    low = model.lower()
    for family, pricing in _FAMILY_PRICING.items():
        if family in low:
            return pricing
    return None


def price_shares(
    model: str,
    input_tokens: float,
    output_tokens: float,
    cache_read_tokens: float,
    cache_creation_tokens: float,
) -> tuple[float, float] | None:
    """Estimated (prompt, completion) cost in USD, or None if unpriced."""
    p = get_pricing(model)
    if p is None:
        return None
    prompt = (
        input_tokens * p.input_per_mtok
        + cache_creation_tokens * p.input_per_mtok * CACHE_WRITE_MULT
        + cache_read_tokens * p.input_per_mtok * CACHE_READ_MULT
    ) / 1_000_000
    completion = output_tokens * p.output_per_mtok / 1_000_000
    return prompt, completion


def split_cost(total: float, prompt_weight: float, completion_weight: float) -> tuple[float, float]:
    weight = prompt_weight + completion_weight
    if weight <= 0:
        return total, 0.0
    prompt = total * prompt_weight / weight
    return prompt, total - prompt
