"""Binance futures ticker price lookup."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

import httpx
import structlog

from analyst.exceptions import AdapterUnavailable
from analyst.models.portfolio import normalize_symbol

if TYPE_CHECKING:
    from analyst.cancellation import CancellationToken
    from analyst.config import Settings

logger = structlog.get_logger()


class PriceClient:
    def __init__(self, settings: Settings, http: httpx.AsyncClient) -> None:
        self.settings = settings
        self.http = http

    async def fetch_price(self, symbol: str, token: CancellationToken) -> Decimal | None:
        """Current price for `symbol`, or None when it cannot be verified."""
        clean = normalize_symbol(symbol)
        token.raise_if_cancelled()
        try:
            return await token.guard(self._request(clean))
        except AdapterUnavailable as e:
            logger.info("price_unavailable", symbol=clean, reason=e.message)
            return None

    async def _request(self, symbol: str) -> Decimal:
        try:
            response = await self.http.get(
                self.settings.BINANCE_PRICE_URL,
                params={"symbol": symbol},
                timeout=self.settings.HTTP_TIMEOUT_SECONDS,
            )
        except httpx.HTTPError as e:
            raise AdapterUnavailable("price", f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            raise AdapterUnavailable("price", f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise AdapterUnavailable("price", "invalid JSON body") from e

        raw = data.get("price") if isinstance(data, dict) else None
        if raw in (None, ""):
            raise AdapterUnavailable("price", "missing price field")
        try:
            price = Decimal(str(raw))
        except InvalidOperation as e:
            raise AdapterUnavailable("price", f"invalid price {raw!r}") from e
        if not price.is_finite() or price <= 0:
            raise AdapterUnavailable("price", f"invalid price {raw!r}")
        return price
