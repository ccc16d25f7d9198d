"""Balance, Position, PortfolioContext, PriceMap models."""

from __future__ import annotations

import re
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

_SYMBOL_SEPARATORS = re.compile(r"[/\s-]")


def normalize_symbol(symbol: str) -> str:
    """'btc/usdt' -> 'BTCUSDT'."""
    return _SYMBOL_SEPARATORS.sub("", symbol.upper())


class Balance(BaseModel):
    asset: str
    free: Decimal = Decimal("0")


class Position(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    unrealized_profit: Decimal = Field(default=Decimal("0"), alias="unrealizedProfit")
    age_hours: float | None = Field(default=None, alias="ageHours")
    opening_reason: str | None = Field(default=None, alias="openingReason")
    opening_confidence: float | None = Field(default=None, alias="openingConfidence")


class PortfolioContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    balances: list[Balance] = []
    positions: list[Position] = []
    user_id: str = Field(default="anonymous", alias="userId")

    def quote_balance(self, asset: str) -> Decimal | None:
        for balance in self.balances:
            if balance.asset.upper() == asset.upper():
                return balance.free
        return None


class PriceMap:
    """Normalized symbol -> price. Grows only; a symbol's first price is kept."""

    def __init__(self) -> None:
        self._prices: dict[str, Decimal] = {}

    def add(self, symbol: str, price: Decimal) -> bool:
        key = normalize_symbol(symbol)
        if key in self._prices:
            return False
        self._prices[key] = price
        return True

    def get(self, symbol: str) -> Decimal | None:
        return self._prices.get(normalize_symbol(symbol))

    def symbols(self) -> list[str]:
        return list(self._prices)

    def render(self) -> str:
        return ", ".join(f"{symbol}: ${price}" for symbol, price in self._prices.items())

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and normalize_symbol(symbol) in self._prices

    def __len__(self) -> int:
        return len(self._prices)
