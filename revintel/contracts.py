"""Core data contracts for the revintel workflow engine."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from .constants import SUCCESS_STATUS


class WorkflowKind(str, Enum):
    """The analytical workflows a user can run."""

    LEADS = "leads"
    PRICE = "price"
    REVIEW = "review"
    SEO = "seo"
    SOCIAL = "social"
    EMAIL = "email"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def is_simulated(self) -> bool:
        """``True`` when results are computed locally instead of by the AI service."""
        return self in (WorkflowKind.PRICE, WorkflowKind.REVIEW, WorkflowKind.SOCIAL)

    @property
    def requires_input(self) -> bool:
        """Price monitoring runs unattended; every other kind needs input."""
        return self is not WorkflowKind.PRICE


_DISPLAY_NAMES = {
    WorkflowKind.LEADS: "Content-to-Leads Analyzer",
    WorkflowKind.PRICE: "Competitor Price Monitor",
    WorkflowKind.REVIEW: "Review Sentiment Analyzer",
    WorkflowKind.SEO: "SEO Content Gap Finder",
    WorkflowKind.SOCIAL: "Social Media Predictor",
    WorkflowKind.EMAIL: "Email Campaign Optimizer",
}


class ResultModel(BaseModel):
    """Base for result shapes; serializes with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LeadMagnet(ResultModel):
    name: str
    conversion_rate: str


class RevenueEstimate(ResultModel):
    monthly_traffic: int
    conversion_rate: str
    leads_per_month: int
    avg_lead_value: str
    monthly_revenue: str


class KeywordGap(ResultModel):
    keyword: str
    volume: int
    difficulty: float


class LeadsResult(ResultModel):
    """Lead-gap analysis of a piece of content."""

    kind: Literal[WorkflowKind.LEADS] = WorkflowKind.LEADS
    pain_points: List[str]
    target_audience: str
    quick_wins: List[str]
    monthly_traffic: Optional[int] = None
    monthly_revenue: Optional[str] = None
    lead_magnets: List[LeadMagnet] = Field(default_factory=list)
    revenue_estimate: RevenueEstimate
    status: str = SUCCESS_STATUS


class SeoResult(ResultModel):
    """Keyword gaps found against a competitor domain."""

    kind: Literal[WorkflowKind.SEO] = WorkflowKind.SEO
    gap_keywords: List[KeywordGap]
    content_strategy: str
    competitor_domain: str
    estimated_traffic_value: str
    status: str = SUCCESS_STATUS


class EmailResult(ResultModel):
    """Subject line and A/B suggestions for an email campaign."""

    kind: Literal[WorkflowKind.EMAIL] = WorkflowKind.EMAIL
    subject_line_improvement: str
    ab_test_suggestions: List[str]
    current_open_rate: str
    current_click_rate: str
    predicted_improvement: str
    status: str = SUCCESS_STATUS


class PriceResult(ResultModel):
    kind: Literal[WorkflowKind.PRICE] = WorkflowKind.PRICE
    current_price: str
    competitor_price: str
    price_change: float
    alert_level: Literal["CRITICAL", "OPPORTUNITY", "NORMAL"]
    recommendation: str
    status: str = SUCCESS_STATUS


class ReviewResult(ResultModel):
    kind: Literal[WorkflowKind.REVIEW] = WorkflowKind.REVIEW
    overall_sentiment: float
    key_complaints: List[str]
    improvement_opportunities: List[str]
    churn_reduction: float
    status: str = SUCCESS_STATUS


class SocialResult(ResultModel):
    kind: Literal[WorkflowKind.SOCIAL] = WorkflowKind.SOCIAL
    content_idea: str
    predicted_engagement: int
    confidence: int
    optimal_time: str
    recommendation: str
    status: str = SUCCESS_STATUS


NormalizedResult = Annotated[
    Union[LeadsResult, PriceResult, ReviewResult, SeoResult, SocialResult, EmailResult],
    Field(discriminator="kind"),
]
NORMALIZED_RESULT = TypeAdapter(NormalizedResult)

SimulatedResult = Union[PriceResult, ReviewResult, SocialResult]

# Parsed service payload for AI-backed kinds, or a ready simulated result.
RawResult = Union[Dict[str, Any], SimulatedResult]


class AttemptState(BaseModel):
    """Progress of one retry-coordinated run."""

    attempt: int = 0
    max_attempts: int
    backoff_elapsed: float = 0.0
    last_error: Optional[str] = None


class RunSuccess(BaseModel):
    ok: Literal[True] = True
    result: NormalizedResult
    attempts: int


class RunFailure(BaseModel):
    ok: Literal[False] = False
    message: str
    reason: Literal["validation", "exhausted", "superseded"]


RunOutcome = Union[RunSuccess, RunFailure]
