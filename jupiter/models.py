# jupiter/models.py
import math
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Quote(BaseModel):
    """Aggregator quote; unknown fields are kept so the payload round-trips to /swap."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    input_mint: str = Field(alias="inputMint")
    in_amount: str = Field(alias="inAmount")
    output_mint: str = Field(alias="outputMint")
    out_amount: str = Field(alias="outAmount")
    other_amount_threshold: Optional[str] = Field(default=None, alias="otherAmountThreshold")
    swap_mode: Optional[str] = Field(default=None, alias="swapMode")
    slippage_bps: Optional[int] = Field(default=None, alias="slippageBps")
    price_impact_pct: Optional[str] = Field(default=None, alias="priceImpactPct")
    route_plan: list[dict[str, Any]] = Field(default_factory=list, alias="routePlan")

    @field_validator("in_amount", "out_amount", "other_amount_threshold", "price_impact_pct", mode="before")
    @classmethod
    def numbers_as_str(cls, value):
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @property
    def price_impact(self) -> float:
        try:
            impact = float(self.price_impact_pct)
        except (TypeError, ValueError):
            impact = float("nan")
        # missing or unreadable impact must never pass the guard
        return float("inf") if math.isnan(impact) else impact

    def to_api(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class SwapTransaction(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    swap_transaction: str = Field(alias="swapTransaction")
    last_valid_block_height: Optional[int] = Field(default=None, alias="lastValidBlockHeight")
    prioritization_fee_lamports: Optional[int] = Field(default=None, alias="prioritizationFeeLamports")


@dataclass
class SwapResult:
    success: bool
    signature: Optional[str] = None
    error: Optional[str] = None
    quote: Optional[Quote] = None
