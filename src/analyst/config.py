"""Settings (pydantic-settings, loaded from env vars)."""

from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # --- Reasoning service ---
    REASONING_PROVIDER: str = "openai"  # openai | anthropic
    REASONING_MAX_TOKENS: int = 4000
    REASONING_TIMEOUT_SECONDS: float = 120.0
    OPENAI_API_KEY: str = ""
    OPENAI_API_URL: str = "https://api.openai.com/v1/chat/completions"
    OPENAI_MODEL: str = "gpt-4o-mini"
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_MODEL: str = "claude-haiku-4-5-20251001"

    # --- Tavily ---
    TAVILY_API_KEY: str = ""
    TAVILY_API_URL: str = "https://api.tavily.com/search"
    SEARCH_DEPTH: str = "advanced"
    SEARCH_MAX_RESULTS: int = 5

    # --- Binance ---
    BINANCE_PRICE_URL: str = "https://fapi.binance.com/fapi/v1/ticker/price"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # --- Pipeline ---
    BENCHMARK_SYMBOLS: list[str] = ["BTCUSDT", "ETHUSDT"]
    MAX_RESEARCH_STEPS: int = 2
    MAX_CANDIDATE_TICKERS: int = 5
    DISCOVERY_RESEARCH_CHARS: int = 15000
    SYNTHESIS_RESEARCH_CHARS: int = 25000
    RESPONSE_LANGUAGE: str = "English"
    DEFAULT_GOAL: str = "Optimize my portfolio based on current market conditions."

    # --- Trade constraints (Hardcoded) ---
    QUOTE_ASSET: str = "USDT"
    FALLBACK_QUOTE_BALANCE: Decimal = Decimal("200")
    MIN_POSITION_BUDGET: Decimal = Decimal("15")
    POSITION_FRACTION: Decimal = Decimal("0.10")
    MIN_NOTIONAL: Decimal = Decimal("100")
    MAX_POSITION_NOTIONAL: Decimal | None = None  # unset: suggested quantities are not capped
    MAX_LEVERAGE: int = 20
    QUANTITY_DECIMALS: int = 4
    DEFAULT_CONFIDENCE: float = 0.9

    model_config = {"env_prefix": "", "case_sensitive": True}
