"""Cost ledger: token usage to USD, per provider pricing model."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Final

logger = logging.getLogger(__name__)

_PRECISION: Final[Decimal] = Decimal("0.000001")
_PER_MILLION: Final[Decimal] = Decimal(1_000_000)
_ZERO: Final[Decimal] = Decimal("0")


@dataclass(frozen=True)
class ModelPricing:
  """USD per one million input and output tokens."""

  input_per_million: Decimal
  output_per_million: Decimal


@dataclass(frozen=True)
class CostBreakdown:
  input_cost: Decimal
  output_cost: Decimal
  total_cost: Decimal

  def as_dict(self) -> dict[str, float]:
    return {"input_cost": float(self.input_cost), "output_cost": float(self.output_cost), "total_cost": float(self.total_cost)}


ZERO_COST: Final[CostBreakdown] = CostBreakdown(_ZERO, _ZERO, _ZERO)

PricingTable = dict[str, ModelPricing]

ANTHROPIC_PRICES: Final[PricingTable] = {
  "claude-opus-4-20250514": ModelPricing(Decimal("5"), Decimal("25")),
  "claude-sonnet-4-20250514": ModelPricing(Decimal("3"), Decimal("15")),
  "claude-haiku-4-5-20251001": ModelPricing(Decimal("1"), Decimal("5")),
}

GEMINI_PRICES: Final[PricingTable] = {
  "gemini-2.5-flash": ModelPricing(Decimal("0.15"), Decimal("0.60")),
  "gemini-2.5-pro": ModelPricing(Decimal("1.25"), Decimal("10")),
}

OPENAI_PRICES: Final[PricingTable] = {
  "gpt-4o": ModelPricing(Decimal("2.5"), Decimal("10")),
  "gpt-4o-mini": ModelPricing(Decimal("0.15"), Decimal("0.60")),
}

PRICE_TABLES: Final[dict[str, PricingTable]] = {"anthropic": ANTHROPIC_PRICES, "gemini": GEMINI_PRICES, "openai": OPENAI_PRICES}


def _quantize(value: Decimal) -> Decimal:
  return value.quantize(_PRECISION, rounding=ROUND_HALF_UP)


def _per_token_cost(tokens: int, price_per_million: Decimal) -> Decimal:
  if tokens < 0:
    raise ValueError("Token counts must be non-negative.")
  return _quantize(Decimal(tokens) * price_per_million / _PER_MILLION)


def price_tokens(input_tokens: int, output_tokens: int, pricing: ModelPricing) -> CostBreakdown:
  """Price token counts against one model's rates."""
  input_cost = _per_token_cost(input_tokens, pricing.input_per_million)
  output_cost = _per_token_cost(output_tokens, pricing.output_per_million)
  return CostBreakdown(input_cost=input_cost, output_cost=output_cost, total_cost=_quantize(input_cost + output_cost))


def _priced(table: PricingTable, provider: str, model: str, input_tokens: int, output_tokens: int) -> CostBreakdown:
  pricing = table.get(model)
  if pricing is None:
    logger.warning("No %s pricing for model %s; recording zero cost.", provider, model)
    return ZERO_COST
  return price_tokens(input_tokens, output_tokens, pricing)


def anthropic_cost(model: str, input_tokens: int, output_tokens: int, table: PricingTable | None = None) -> CostBreakdown:
  return _priced(table or ANTHROPIC_PRICES, "anthropic", model, input_tokens, output_tokens)


def gemini_cost(model: str, input_tokens: int, output_tokens: int, table: PricingTable | None = None) -> CostBreakdown:
  return _priced(table or GEMINI_PRICES, "gemini", model, input_tokens, output_tokens)


def openai_cost(model: str, input_tokens: int, output_tokens: int, table: PricingTable | None = None) -> CostBreakdown:
  return _priced(table or OPENAI_PRICES, "openai", model, input_tokens, output_tokens)


def free_tier_cost(model: str, input_tokens: int, output_tokens: int, table: PricingTable | None = None) -> CostBreakdown:
  """Free-tier calls always cost zero."""
  return ZERO_COST


_PROVIDER_FUNCS = {"anthropic": anthropic_cost, "gemini": gemini_cost, "openai": openai_cost, "free": free_tier_cost}


def cost_for(provider: str, model: str, input_tokens: int, output_tokens: int) -> CostBreakdown:
  """Dispatch to the provider's pricing function."""
  key = str(provider or "").strip().lower()
  func = _PROVIDER_FUNCS.get(key)
  if func is None:
    logger.warning("Unknown provider %s for cost calculation; recording zero cost.", provider)
    return ZERO_COST
  return func(model, input_tokens, output_tokens)
