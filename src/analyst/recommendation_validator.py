"""Hardcoded trade constraints: the model CANNOT override these rules."""

from __future__ import annotations

import math
import re
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from analyst.exceptions import ValidationRejected
from analyst.models.portfolio import normalize_symbol
from analyst.models.recommendation import RawRecommendation, TradeAction, TradeRecommendation

if TYPE_CHECKING:
    from analyst.cancellation import CancellationToken
    from analyst.config import Settings
    from analyst.models.portfolio import PortfolioContext
    from analyst.price_client import PriceClient

logger = structlog.get_logger()

# English plus the Turkish tokens the model answers with when asked to reply in Turkish.
HOLD_TOKENS = {"HOLD", "STAY", "WAIT", "BEKLE", "TUT"}
ACTION_SYNONYMS: list[tuple[TradeAction, set[str]]] = [
    (TradeAction.BUY, {"BUY", "LONG", "AL", "ALIM"}),
    (TradeAction.SELL, {"SELL", "SHORT", "SAT", "SATIM", "SATIS", "SATIŞ"}),
    (TradeAction.CLOSE, {"CLOSE", "EXIT", "KAPAT"}),
]

_TOKEN_SPLIT = re.compile(r"[\W_]+")


def normalize_action(raw: str | None) -> TradeAction | None:
    """Map a loosely-worded action onto BUY/SELL/CLOSE. None means no trade."""
    action = (raw or "").strip().upper()
    if not action or action in HOLD_TOKENS:
        return None
    tokens = {t for t in _TOKEN_SPLIT.split(action) if t}
    for normalized, synonyms in ACTION_SYNONYMS:
        if tokens & synonyms:
            return normalized
    return None


def clamp_leverage(value: float | None, max_leverage: int) -> int:
    if value is None or not math.isfinite(value):
        return 1
    return int(min(max(value, 1), max_leverage))


def compute_budget(portfolio: PortfolioContext, settings: Settings) -> Decimal:
    """budget = max(floor, total_equity * fraction)."""
    return max(settings.MIN_POSITION_BUDGET, total_equity(portfolio, settings) * settings.POSITION_FRACTION)


def available_quote_balance(portfolio: PortfolioContext, settings: Settings) -> Decimal:
    free = portfolio.quote_balance(settings.QUOTE_ASSET)
    return free if free is not None else settings.FALLBACK_QUOTE_BALANCE


def total_equity(portfolio: PortfolioContext, settings: Settings) -> Decimal:
    unrealized = sum((p.unrealized_profit for p in portfolio.positions), Decimal("0"))
    return unrealized + available_quote_balance(portfolio, settings)


class RecommendationValidator:
    """
    Per raw recommendation, in emission order:
    | Step               | Rule                                          | On failure |
    |--------------------|-----------------------------------------------|------------|
    | Shape              | action + asset present, numeric fields        | DROP       |
    | Action             | HOLD-equivalent or unknown                    | DROP       |
    | Live price         | must be verifiable                            | DROP       |
    | Quantity           | notional >= MIN_NOTIONAL, else re-derived     | DROP       |
    | Notional cap       | MAX_POSITION_NOTIONAL, when set               | CLAMP      |
    | Leverage           | clamped to [1, MAX_LEVERAGE]                  | CLAMP      |
    """

    def __init__(self, settings: Settings, price_client: PriceClient) -> None:
        self.settings = settings
        self.price_client = price_client

    async def validate(
        self, raw_items: list, budget: Decimal, token: CancellationToken
    ) -> list[TradeRecommendation]:
        accepted: list[TradeRecommendation] = []
        for item in raw_items:
            token.raise_if_cancelled()
            try:
                accepted.append(await self._validate_one(item, budget, token))
            except ValidationRejected as e:
                logger.info("recommendation_rejected", symbol=e.symbol, reason=e.reason)
        logger.info("recommendations_validated", proposed=len(raw_items), accepted=len(accepted))
        return accepted

    async def _validate_one(
        self, item: object, budget: Decimal, token: CancellationToken
    ) -> TradeRecommendation:
        try:
            raw = RawRecommendation.model_validate(item)
        except ValidationError as e:
            asset = item.get("asset", "?") if isinstance(item, dict) else "?"
            raise ValidationRejected(str(asset), f"malformed recommendation ({e.error_count()} errors)") from e

        action = normalize_action(raw.action)
        if action is None:
            raise ValidationRejected(raw.asset, f"non-trade action '{raw.action}'")

        symbol = normalize_symbol(raw.asset)
        price = await self.price_client.fetch_price(symbol, token)
        if price is None:
            raise ValidationRejected(symbol, "no verified price")

        quantity = self.resolve_quantity(raw.suggested_quantity, price, budget)
        notional = quantity * price
        if quantity <= 0 or notional < self.settings.MIN_NOTIONAL:
            raise ValidationRejected(
                symbol, f"notional {notional:.2f} below minimum {self.settings.MIN_NOTIONAL}"
            )

        logger.info(
            "recommendation_accepted",
            symbol=symbol,
            action=action.value,
            quantity=str(quantity),
            price=str(price),
            notional=f"{notional:.2f}",
        )
        return TradeRecommendation(
            symbol=symbol,
            action=action,
            original_action=raw.action.strip().upper(),
            quantity=quantity,
            leverage=clamp_leverage(raw.leverage, self.settings.MAX_LEVERAGE),
            stop_loss=raw.stop_loss or 0.0,
            take_profit=raw.take_profit or 0.0,
            reason=raw.reasoning_summary or "",
            confidence=self.settings.DEFAULT_CONFIDENCE,
            price=price,
        )

    def resolve_quantity(self, suggested: float | None, price: Decimal, budget: Decimal) -> Decimal:
        """
        Suggested quantity meeting the minimum notional is kept verbatim; a positive
        one below it is raised to minimum/price; missing or non-positive falls back
        to max(budget, minimum)/price.

        The budget only sizes trades the model left unsized. A verbatim suggestion may
        exceed it; set MAX_POSITION_NOTIONAL to cap verbatim and budget-sized notionals
        (rounded down). A cap below MIN_NOTIONAL makes those trades drop.
        """
        minimum = self.settings.MIN_NOTIONAL
        if suggested is not None and math.isfinite(suggested) and suggested > 0:
            quantity = Decimal(str(suggested))
            if quantity * price >= minimum:
                return self._cap(quantity, price)
            logger.warning(
                "suggested_quantity_too_small",
                quantity=str(quantity),
                notional=f"{quantity * price:.2f}",
            )
            return self._round(minimum / price)
        return self._cap(self._round(max(budget, minimum) / price), price)

    def _cap(self, quantity: Decimal, price: Decimal) -> Decimal:
        cap = self.settings.MAX_POSITION_NOTIONAL
        if cap is None or quantity * price <= cap:
            return quantity
        step = Decimal(1).scaleb(-self.settings.QUANTITY_DECIMALS)
        capped = (cap / price).quantize(step, rounding=ROUND_DOWN)
        logger.warning("quantity_capped", quantity=str(quantity), capped=str(capped), cap=str(cap))
        return capped

    def _round(self, quantity: Decimal) -> Decimal:
        step = Decimal(1).scaleb(-self.settings.QUANTITY_DECIMALS)
        return quantity.quantize(step, rounding=ROUND_HALF_UP)
