"""RawRecommendation, SynthesisEnvelope, TradeRecommendation Pydantic models."""

from __future__ import annotations

import enum
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TradeAction(str, enum.Enum):
    BUY = "BUY"
    SELL = "SELL"
    CLOSE = "CLOSE"


class RawRecommendation(BaseModel):
    """Untrusted proposal as emitted by the reasoning service."""

    model_config = ConfigDict(populate_by_name=True)

    action: str
    asset: str
    leverage: float | None = None
    stop_loss: float | None = Field(default=None, alias="stopLoss")
    take_profit: float | None = Field(default=None, alias="takeProfit")
    suggested_price: float | None = Field(default=None, alias="suggestedPrice")
    suggested_quantity: float | None = Field(default=None, alias="suggestedQuantity")
    reasoning_summary: str | None = Field(default=None, alias="reasoningSummary")
    risk_level: str | None = Field(default=None, alias="riskLevel")


class SynthesisData(BaseModel):
    text: str = ""
    recommendations: list[Any] = []

    @field_validator("text", mode="before")
    @classmethod
    def _null_text(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("recommendations", mode="before")
    @classmethod
    def _null_recommendations(cls, v: Any) -> Any:
        return [] if v is None else v


class SynthesisEnvelope(BaseModel):
    type: str = "analysis_result"
    data: SynthesisData


class TradeRecommendation(BaseModel):
    """Validated, executable recommendation. Serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    symbol: str
    action: TradeAction
    original_action: str
    quantity: Decimal
    leverage: int = 1
    stop_loss: float = 0.0
    take_profit: float = 0.0
    reason: str = ""
    confidence: float = 0.0
    price: Decimal
