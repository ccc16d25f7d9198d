"""Analysis pipeline: price injection -> audit -> planning -> research -> ticker discovery -> synthesis."""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

import structlog

from analyst.exceptions import (
    ExtractionFailed,
    PipelineCancelled,
    ReasoningServiceError,
)
from analyst.json_extractor import parse_model
from analyst.models.analysis import AnalysisOutcome, AnalysisResponse, OutcomeStatus
from analyst.models.portfolio import PriceMap, normalize_symbol
from analyst.models.recommendation import SynthesisEnvelope
from analyst.models.research import (
    AuditResult,
    CandidateTickers,
    ResearchPlan,
    ResearchStep,
    StepResult,
)
from analyst.recommendation_validator import available_quote_balance, compute_budget

if TYPE_CHECKING:
    from analyst.cancellation import CancellationToken
    from analyst.config import Settings
    from analyst.models.analysis import AnalysisRequest
    from analyst.models.portfolio import PortfolioContext
    from analyst.price_client import PriceClient
    from analyst.prompt_builder import PromptBuilder
    from analyst.reasoning_client import ReasoningClient
    from analyst.recommendation_validator import RecommendationValidator
    from analyst.search_client import SearchClient

logger = structlog.get_logger()

AUDIT_TEMPERATURE = 0.2
PLAN_TEMPERATURE = 0.2
TICKER_TEMPERATURE = 0.1
SYNTHESIS_TEMPERATURE = 0.4
DEFAULT_NARRATIVE = "Analysis Complete"


class PipelinePhase(enum.Enum):
    IDLE = "idle"
    PRICE_INJECTION = "price_injection"
    AUDIT = "audit"
    PLANNING = "planning"
    RESEARCH = "research"
    TICKER_DISCOVERY = "ticker_discovery"
    SYNTHESIS = "synthesis"
    DONE = "done"


@dataclass
class _RunState:
    """Everything one run accumulates. Later phases read earlier fields only."""

    goal: str
    portfolio: PortfolioContext
    token: CancellationToken
    today: date
    phase: PipelinePhase = PipelinePhase.IDLE
    prices: PriceMap = field(default_factory=PriceMap)
    audit: AuditResult | None = None
    plan: ResearchPlan | None = None
    step_results: list[StepResult] = field(default_factory=list)


class AnalystPipeline:
    def __init__(
        self,
        settings: Settings,
        price_client: PriceClient,
        reasoning_client: ReasoningClient,
        search_client: SearchClient,
        prompt_builder: PromptBuilder,
        validator: RecommendationValidator,
    ) -> None:
        self.settings = settings
        self.price_client = price_client
        self.reasoning_client = reasoning_client
        self.search_client = search_client
        self.prompt_builder = prompt_builder
        self.validator = validator

    async def run(self, request: AnalysisRequest, token: CancellationToken) -> AnalysisOutcome:
        """Run one analysis. Always returns a completed, canceled or failed outcome."""
        state = _RunState(
            goal=request.resolved_goal(self.settings.DEFAULT_GOAL),
            portfolio=request.portfolio(),
            token=token,
            today=date.today(),
        )
        log = logger.bind(user_id=state.portfolio.user_id)
        log.info("pipeline_started", goal=state.goal[:120])
        try:
            response = await self._execute(state)
        except PipelineCancelled as e:
            log.info("pipeline_canceled", phase=state.phase.value, reason=e.message)
            return AnalysisOutcome(status=OutcomeStatus.CANCELED, error="canceled")
        except asyncio.CancelledError:
            token.cancel("task cancelled")
            raise
        except Exception as e:
            log.exception("pipeline_failed", phase=state.phase.value)
            return AnalysisOutcome(status=OutcomeStatus.FAILED, error=str(e))

        log.info(
            "pipeline_completed",
            recommendations=len(response.trade_recommendations),
            prices=len(state.prices),
        )
        return AnalysisOutcome(status=OutcomeStatus.COMPLETED, response=response)

    async def _execute(self, state: _RunState) -> AnalysisResponse:
        await self._inject_prices(state)
        await self._audit(state)
        await self._plan_research(state)
        await self._execute_research(state)
        await self._discover_tickers(state)
        response = await self._synthesize(state)
        self._set_phase(state, PipelinePhase.DONE)
        return response

    def _set_phase(self, state: _RunState, new_phase: PipelinePhase) -> None:
        """Update phase with logging."""
        state.token.raise_if_cancelled()
        old = state.phase
        state.phase = new_phase
        logger.info("phase_transition", old=old.value, new=new_phase.value)

    # --- 1. PRICE_INJECTION ---

    async def _inject_prices(self, state: _RunState) -> None:
        self._set_phase(state, PipelinePhase.PRICE_INJECTION)
        tracked = [normalize_symbol(s) for s in self.settings.BENCHMARK_SYMBOLS]
        tracked += [normalize_symbol(p.symbol) for p in state.portfolio.positions if p.symbol]
        for symbol in dict.fromkeys(tracked):
            price = await self.price_client.fetch_price(symbol, state.token)
            if price is not None:
                state.prices.add(symbol, price)
        logger.info("price_context_initial", prices=state.prices.render())

    # --- 2. AUDIT ---

    async def _audit(self, state: _RunState) -> None:
        self._set_phase(state, PipelinePhase.AUDIT)
        prompt = self.prompt_builder.build_audit_prompt(
            state.goal, state.portfolio, state.prices.render(), state.today
        )
        text = await self.reasoning_client.complete(
            self.prompt_builder.system_prompts()["audit"], prompt, AUDIT_TEMPERATURE, state.token
        )
        try:
            state.audit = parse_model(text, AuditResult)
        except ExtractionFailed as e:
            logger.warning("audit_fallback", reason=e.reason)
            state.audit = AuditResult.neutral()

    # --- 3. PLANNING ---

    async def _plan_research(self, state: _RunState) -> None:
        self._set_phase(state, PipelinePhase.PLANNING)
        prompt = self.prompt_builder.build_plan_prompt(state.goal, state.audit, state.today)
        text = await self.reasoning_client.complete(
            self.prompt_builder.system_prompts()["plan"], prompt, PLAN_TEMPERATURE, state.token
        )
        try:
            plan = parse_model(text, ResearchPlan)
        except ExtractionFailed as e:
            logger.warning("plan_fallback", reason=e.reason)
            plan = None
        if plan is None or not plan.steps:
            plan = self.fallback_plan(state.goal, state.today)
        state.plan = plan

    @staticmethod
    def fallback_plan(goal: str, today: date) -> ResearchPlan:
        """Deterministic two-step plan derived from the goal, no model call."""
        year = today.year
        return ResearchPlan(
            steps=[
                ResearchStep(description="Technical analysis", search_query=f"{goal} {year} technical analysis"),
                ResearchStep(description="Macro news", search_query=f"crypto macro news {year}"),
            ]
        )

    # --- 4. RESEARCH ---

    async def _execute_research(self, state: _RunState) -> None:
        self._set_phase(state, PipelinePhase.RESEARCH)
        steps = state.plan.steps[: self.settings.MAX_RESEARCH_STEPS]
        if len(state.plan.steps) > len(steps):
            logger.debug("research_steps_dropped", dropped=len(state.plan.steps) - len(steps))
        for step in steps:
            query = step.search_query or state.goal
            logger.info("research_step", description=step.description[:80])
            result = await self.search_client.search(query, state.token)
            state.step_results.append(
                StepResult(step=step.description, query=query, snippets=result.snippets)
            )

    # --- 5. TICKER_DISCOVERY ---

    async def _discover_tickers(self, state: _RunState) -> None:
        self._set_phase(state, PipelinePhase.TICKER_DISCOVERY)
        candidates: list[str] = []
        try:
            text = await self.reasoning_client.complete(
                self.prompt_builder.system_prompts()["ticker"],
                self.prompt_builder.build_ticker_prompt(state.step_results),
                TICKER_TEMPERATURE,
                state.token,
            )
            candidates = parse_model(text, CandidateTickers).candidate_tickers
        except (ReasoningServiceError, ExtractionFailed) as e:
            logger.warning("ticker_discovery_failed", error=e.message)

        added = 0
        fresh = [normalize_symbol(c) for c in candidates if c and c.strip()]
        for symbol in list(dict.fromkeys(fresh))[: self.settings.MAX_CANDIDATE_TICKERS]:
            if symbol in state.prices:
                continue
            price = await self.price_client.fetch_price(symbol, state.token)
            if price is not None and state.prices.add(symbol, price):
                added += 1
        logger.info("price_context_updated", added=added, prices=state.prices.render())

    # --- 6. SYNTHESIS ---

    async def _synthesize(self, state: _RunState) -> AnalysisResponse:
        self._set_phase(state, PipelinePhase.SYNTHESIS)
        available = available_quote_balance(state.portfolio, self.settings)
        budget = compute_budget(state.portfolio, self.settings)
        logger.info("budget_computed", available=f"{available:.2f}", budget=f"{budget:.2f}")

        price_context = state.prices.render()
        prompt = self.prompt_builder.build_synthesis_prompt(
            goal=state.goal,
            portfolio=state.portfolio,
            price_context=price_context,
            audit=state.audit,
            step_results=state.step_results,
            available=available,
            budget=budget,
        )
        text = await self.reasoning_client.complete(
            self.prompt_builder.build_synthesis_system_prompt(price_context),
            prompt,
            SYNTHESIS_TEMPERATURE,
            state.token,
        )
        envelope = parse_model(text, SynthesisEnvelope)

        recommendations = await self.validator.validate(
            envelope.data.recommendations, budget, state.token
        )
        return AnalysisResponse(
            text=envelope.data.text or DEFAULT_NARRATIVE,
            trade_recommendations=recommendations,
            plan=state.plan,
        )
