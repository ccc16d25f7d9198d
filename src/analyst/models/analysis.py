"""AnalysisRequest, AnalysisResponse, AnalysisOutcome Pydantic models."""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from analyst.models.portfolio import Balance, PortfolioContext, Position
from analyst.models.recommendation import TradeRecommendation
from analyst.models.research import ResearchPlan

PLACEHOLDER_GOALS = {"", "undefined", "null"}


class AnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    goal: str | None = Field(default=None, alias="userQuery")
    balances: list[Balance] | None = Field(default=None, alias="userBalances")
    positions: list[Position] | None = Field(default=None, alias="userPositions")
    user_id: str | None = Field(default=None, alias="userId")

    def resolved_goal(self, default_goal: str) -> str:
        if self.goal is None or self.goal.strip() in PLACEHOLDER_GOALS:
            return default_goal
        return self.goal

    def portfolio(self) -> PortfolioContext:
        return PortfolioContext(
            balances=self.balances or [],
            positions=self.positions or [],
            user_id=self.user_id or "anonymous",
        )


class AnalysisResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    text: str
    trade_recommendations: list[TradeRecommendation] = []
    plan: ResearchPlan


class OutcomeStatus(str, enum.Enum):
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"


class AnalysisOutcome(BaseModel):
    status: OutcomeStatus
    response: AnalysisResponse | None = None
    error: str | None = None
