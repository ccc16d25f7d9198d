"""Build prompts for the audit, planning, ticker discovery and synthesis phases."""

from __future__ import annotations

import json
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from analyst.config import Settings
    from analyst.models.portfolio import PortfolioContext
    from analyst.models.research import AuditResult, StepResult

logger = structlog.get_logger()

AUDIT_SYSTEM_PROMPT = """You are an experienced portfolio risk manager.
Always use the CURRENT MARKET PRICES provided for every calculation.
Write all explanations in {language}."""

PLAN_SYSTEM_PROMPT = """You are a senior financial researcher.
Plan every research step in {language}."""

TICKER_SYSTEM_PROMPT = "You are a data extractor. Output JSON only."

SYNTHESIS_SYSTEM_PROMPT = """You are a trading synthesis desk.
Respect every numeric constraint you are given; orders that violate them are discarded.
Use only the verified prices provided. Never invent prices.
Write concisely and in {language}. End your answer with a ```json``` block."""


class PromptBuilder:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def system_prompts(self) -> dict[str, str]:
        language = self.settings.RESPONSE_LANGUAGE
        return {
            "audit": AUDIT_SYSTEM_PROMPT.format(language=language),
            "plan": PLAN_SYSTEM_PROMPT.format(language=language),
            "ticker": TICKER_SYSTEM_PROMPT,
            "synthesis": SYNTHESIS_SYSTEM_PROMPT.format(language=language),
        }

    def build_audit_prompt(
        self, goal: str, portfolio: PortfolioContext, price_context: str, today: date
    ) -> str:
        parts = [
            f"Today is {today.isoformat()}.",
            f"CURRENT MARKET PRICES: {price_context or 'unavailable'}",
            f'USER GOAL: "{goal}"',
            f"PORTFOLIO: {_portfolio_json(portfolio)}",
            "",
            "Analyze the portfolio using the verified MARKET PRICES above.",
            "1. Evaluate open positions (PnL, risk, size).",
            f"2. Check available {self.settings.QUOTE_ASSET} liquidity.",
            "3. Identify positions in immediate danger or that should be closed.",
            "",
            f"Output ONLY a JSON object, text in {self.settings.RESPONSE_LANGUAGE}:",
            '{"audit_findings": "...", "recommended_adjustments": ["..."]}',
        ]
        return "\n".join(parts)

    def build_plan_prompt(self, goal: str, audit: AuditResult, today: date) -> str:
        parts = [
            f"Today is {today.isoformat()}.",
            f'USER GOAL: "{goal}"',
            f'PORTFOLIO AUDIT: "{audit.findings}"',
            "",
            "We trade crypto and precious metals/commodities.",
            f"Generate a research plan with {self.settings.MAX_RESEARCH_STEPS} targeted web search queries.",
            "Do not use the user goal itself as a query. Cover:",
            "1. Crypto price action and technical trends.",
            "2. Precious metals or macro/commodity catalysts.",
            "",
            f"Output ONLY a JSON object, descriptions in {self.settings.RESPONSE_LANGUAGE}:",
            '{"steps": [{"action": "market_search", "description": "...", "searchQuery": "..."}]}',
        ]
        return "\n".join(parts)

    def build_ticker_prompt(self, step_results: list[StepResult]) -> str:
        research = _research_json(step_results, self.settings.DISCOVERY_RESEARCH_CHARS)
        parts = [
            f"List up to {self.settings.MAX_CANDIDATE_TICKERS} ticker symbols "
            "(e.g. BTCUSDT, SOLUSDT, PAXGUSDT) relevant for trading based on the research below.",
            "Start with the ones the research mentions explicitly.",
            f"Research Data: {research}",
            "",
            "Output ONLY a JSON object:",
            '{"candidate_tickers": ["BTCUSDT", "ETHUSDT"]}',
        ]
        return "\n".join(parts)

    def build_synthesis_system_prompt(self, price_context: str) -> str:
        return f"{self.system_prompts()['synthesis']}\nCurrent prices: {price_context}"

    def build_synthesis_prompt(
        self,
        goal: str,
        portfolio: PortfolioContext,
        price_context: str,
        audit: AuditResult,
        step_results: list[StepResult],
        available: Decimal,
        budget: Decimal,
    ) -> str:
        """Synthesis prompt embedding all prior phases and the binding numeric constraints."""
        minimum = self.settings.MIN_NOTIONAL
        quote = self.settings.QUOTE_ASSET
        parts = []

        parts.append("<constraints>")
        parts.append(f"Goal: {goal}")
        parts.append(f"Available {quote} balance: ${available:.2f}")
        parts.append(f"Max position size per trade: ${budget:.2f}")
        parts.append(f"Total margin of ALL new positions must not exceed ${available:.2f}.")
        parts.append(f"Minimum notional per order: quantity x price >= {minimum} {quote}.")
        parts.append("suggested_quantity must be > 0.")
        parts.append(f"Leverage must be between 1 and {self.settings.MAX_LEVERAGE}.")
        parts.append("</constraints>")

        parts.append("<context>")
        parts.append(f"Verified Prices: {price_context}")
        parts.append(f"Audit Findings: {audit.findings}")
        parts.append(f"Adjustments Needed: {json.dumps(audit.recommended_adjustments, ensure_ascii=False)}")
        parts.append(f"Market Research: {_research_json(step_results, self.settings.SYNTHESIS_RESEARCH_CHARS)}")
        parts.append(f"Portfolio: {_portfolio_json(portfolio)}")
        parts.append("</context>")

        parts.append("<open_positions>")
        if portfolio.positions:
            for pos in portfolio.positions:
                if pos.age_hours:
                    confidence = f"{(pos.opening_confidence or 0) * 100:.0f}%"
                    parts.append(
                        f"  - {pos.symbol}: opened {pos.age_hours}h ago. "
                        f'Reason: "{pos.opening_reason or ""}". Confidence: {confidence}'
                    )
                else:
                    parts.append(f"  - {pos.symbol}: manual trade (no history)")
        else:
            parts.append("  No open positions")
        parts.append("</open_positions>")

        parts.append("<output_format>")
        parts.append("```json")
        parts.append(
            json.dumps(
                {
                    "type": "analysis_result",
                    "data": {
                        "text": f"Narrative explaining the audit and research, in {self.settings.RESPONSE_LANGUAGE}.",
                        "recommendations": [
                            {
                                "action": "BUY/SELL/CLOSE",
                                "asset": "BTCUSDT",
                                "leverage": 1,
                                "stop_loss": 0,
                                "take_profit": 0,
                                "risk_level": "LOW",
                                "reasoning_summary": "Short rationale.",
                                "suggested_price": 0,
                                "suggested_quantity": 0.001,
                            }
                        ],
                    },
                },
                indent=2,
            )
        )
        parts.append("```")
        parts.append("Stop loss and take profit apply only to new BUY/SELL positions.")
        parts.append("</output_format>")

        prompt = "\n".join(parts)
        logger.debug("synthesis_prompt_built", chars=len(prompt))
        return prompt


def _portfolio_json(portfolio: PortfolioContext) -> str:
    return portfolio.model_dump_json(by_alias=True)


def _research_json(step_results: list[StepResult], limit: int) -> str:
    payload = json.dumps([r.model_dump(mode="json") for r in step_results], ensure_ascii=False)
    return payload[:limit]
