"""Unit tests for PromptBuilder: context and constraints embedded in each phase prompt."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from analyst.config import Settings
from analyst.models.portfolio import Balance, PortfolioContext, Position
from analyst.models.research import AuditResult, Snippet, StepResult
from analyst.prompt_builder import PromptBuilder


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings():
    return Settings(
        RESPONSE_LANGUAGE="Turkish",
        MIN_NOTIONAL=Decimal("100"),
        MAX_LEVERAGE=20,
        MAX_CANDIDATE_TICKERS=5,
        DISCOVERY_RESEARCH_CHARS=300,
        SYNTHESIS_RESEARCH_CHARS=25000,
    )


@pytest.fixture
def builder(settings):
    return PromptBuilder(settings)


@pytest.fixture
def portfolio():
    return PortfolioContext(
        balances=[Balance(asset="USDT", free=Decimal("1000"))],
        positions=[
            Position(
                symbol="SOLUSDT",
                unrealized_profit=Decimal("-4.5"),
                age_hours=1.5,
                opening_reason="Breakout above 150",
                opening_confidence=0.8,
            ),
            Position(symbol="XRPUSDT", unrealized_profit=Decimal("2")),
        ],
        user_id="u-1",
    )


@pytest.fixture
def step_results():
    return [
        StepResult(
            step="Technical analysis",
            query="btc technical analysis",
            snippets=[Snippet(title="BTC", url="https://news.test/btc", content="x" * 1000)],
        )
    ]


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestSystemPrompts:
    def test_language_applied(self, builder):
        prompts = builder.system_prompts()
        assert "Turkish" in prompts["audit"]
        assert "Turkish" in prompts["plan"]
        assert "Turkish" in prompts["synthesis"]
        assert prompts["ticker"] == "You are a data extractor. Output JSON only."

    def test_synthesis_system_prompt_has_prices(self, builder):
        assert "BTCUSDT: $50000" in builder.build_synthesis_system_prompt("BTCUSDT: $50000")


class TestAuditPrompt:
    def test_contains_date_prices_goal_portfolio(self, builder, portfolio):
        prompt = builder.build_audit_prompt(
            "grow safely", portfolio, "BTCUSDT: $50000", date(2026, 10, 18)
        )
        assert "Today is 2026-10-18." in prompt
        assert "BTCUSDT: $50000" in prompt
        assert '"grow safely"' in prompt
        assert '"userId":"u-1"' in prompt
        assert "audit_findings" in prompt


class TestPlanPrompt:
    def test_contains_audit_findings(self, builder):
        audit = AuditResult(findings="SOL is under water", recommended_adjustments=[])
        prompt = builder.build_plan_prompt("grow", audit, date(2026, 10, 18))
        assert "SOL is under water" in prompt
        assert "searchQuery" in prompt


class TestTickerPrompt:
    def test_research_truncated(self, builder, step_results):
        prompt = builder.build_ticker_prompt(step_results)
        research_line = next(line for line in prompt.splitlines() if line.startswith("Research Data: "))
        assert len(research_line) == len("Research Data: ") + 300
        assert "up to 5 ticker symbols" in prompt


class TestSynthesisPrompt:
    def test_binding_constraints(self, builder, portfolio, step_results):
        prompt = builder.build_synthesis_prompt(
            goal="grow",
            portfolio=portfolio,
            price_context="BTCUSDT: $50000, SOLUSDT: $150",
            audit=AuditResult(findings="fine", recommended_adjustments=["Close XRP"]),
            step_results=step_results,
            available=Decimal("1000"),
            budget=Decimal("99.55"),
        )
        assert "Available USDT balance: $1000.00" in prompt
        assert "Max position size per trade: $99.55" in prompt
        assert "quantity x price >= 100 USDT" in prompt
        assert "between 1 and 20" in prompt
        assert "Verified Prices: BTCUSDT: $50000, SOLUSDT: $150" in prompt
        assert '["Close XRP"]' in prompt
        assert '"type": "analysis_result"' in prompt

    def test_open_positions_context(self, builder, portfolio):
        prompt = builder.build_synthesis_prompt(
            goal="grow",
            portfolio=portfolio,
            price_context="",
            audit=AuditResult.neutral(),
            step_results=[],
            available=Decimal("1000"),
            budget=Decimal("100"),
        )
        assert 'SOLUSDT: opened 1.5h ago. Reason: "Breakout above 150". Confidence: 80%' in prompt
        assert "XRPUSDT: manual trade (no history)" in prompt

    def test_no_positions(self, builder):
        prompt = builder.build_synthesis_prompt(
            goal="grow",
            portfolio=PortfolioContext(),
            price_context="",
            audit=AuditResult.neutral(),
            step_results=[],
            available=Decimal("200"),
            budget=Decimal("20"),
        )
        assert "No open positions" in prompt
