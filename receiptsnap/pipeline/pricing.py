"""
Token cost model for the vision LLM.

Prices are USD per million tokens, taken from the provider's public pricing
page. Unknown model ids use a deliberately high default.
"""
from __future__ import annotations

from typing import NamedTuple

from receiptsnap.schemas import CostCalculation


class ModelPricing(NamedTuple):
    input_per_million: float
    output_per_million: float


MODEL_PRICING: dict[str, ModelPricing] = {
    # Qwen3 VL 30B A3B Instruct, the receipt extraction model
    "accounts/fireworks/models/qwen3-vl-30b-a3b-instruct": ModelPricing(0.15, 0.60),
}

DEFAULT_PRICING = ModelPricing(1.00, 1.00)


def calculate_cost(model_id: str, input_tokens: int, output_tokens: int) -> CostCalculation:
    """Return the cost breakdown of one call to *model_id*."""
    pricing = MODEL_PRICING.get(model_id, DEFAULT_PRICING)

    input_cost = (input_tokens / 1_000_000) * pricing.input_per_million
    output_cost = (output_tokens / 1_000_000) * pricing.output_per_million

    return CostCalculation(
        input_cost=input_cost,
        output_cost=output_cost,
        total_cost=input_cost + output_cost,
        input_price_per_million=pricing.input_per_million,
        output_price_per_million=pricing.output_per_million,
    )
