"""AuditResult, ResearchPlan, SearchResult Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AuditResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    findings: str = Field(alias="audit_findings")
    recommended_adjustments: list[str] = []

    @classmethod
    def neutral(cls) -> AuditResult:
        return cls(findings="", recommended_adjustments=[])


class ResearchStep(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str = "market_search"
    description: str = ""
    search_query: str = Field(default="", alias="searchQuery")


class ResearchPlan(BaseModel):
    steps: list[ResearchStep]


class Snippet(BaseModel):
    title: str | None = None
    url: str | None = None
    content: str | None = None
    published_date: str | None = None


class SearchResult(BaseModel):
    snippets: list[Snippet] = []
    error: str | None = None


class StepResult(BaseModel):
    step: str = ""
    query: str = ""
    snippets: list[Snippet] = []


class CandidateTickers(BaseModel):
    candidate_tickers: list[str] = []
