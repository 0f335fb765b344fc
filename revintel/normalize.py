"""Map raw workflow outputs to their presentation-ready result shapes."""

from __future__ import annotations

import math
from typing import Any, Mapping

from .constants import (
    ASSUMED_MONTHLY_TRAFFIC,
    AVG_LEAD_VALUE,
    CURRENT_CLICK_RATE,
    CURRENT_OPEN_RATE,
    LEAD_CONVERSION_RATE,
    SUCCESS_STATUS,
)
from .contracts import (
    EmailResult,
    LeadMagnet,
    LeadsResult,
    NormalizedResult,
    PriceResult,
    RawResult,
    RevenueEstimate,
    ReviewResult,
    SeoResult,
    SocialResult,
    WorkflowKind,
)

LEAD_MAGNETS = (
    LeadMagnet(name="QCC Roadmap PDF", conversion_rate="4.5%"),
    LeadMagnet(name="Ethical Veto Code Snippet", conversion_rate="3.2%"),
)
DEFAULT_COMPETITOR_DOMAIN = "Competitor.com"
ESTIMATED_TRAFFIC_VALUE = "$25,000 / month"
PREDICTED_EMAIL_IMPROVEMENT = "18% increase in Open Rate"


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def estimate_revenue(
    monthly_traffic: int | None = None, monthly_revenue: str | None = None
) -> RevenueEstimate:
    """Project lead revenue from traffic at a fixed conversion rate and lead value.

    Halves round up. Revenue is ``leads_per_month`` times the lead value.
    """
    traffic = monthly_traffic or ASSUMED_MONTHLY_TRAFFIC
    leads_per_month = _round_half_up(traffic * LEAD_CONVERSION_RATE)
    if not monthly_revenue:
        monthly_revenue = f"${leads_per_month * AVG_LEAD_VALUE:,}"
    return RevenueEstimate(
        monthly_traffic=traffic,
        conversion_rate=f"{LEAD_CONVERSION_RATE:.0%}",
        leads_per_month=leads_per_month,
        avg_lead_value=f"${AVG_LEAD_VALUE}",
        monthly_revenue=monthly_revenue,
    )


class ResultNormalizer:
    """Derive the stable result shape for each workflow kind.

    Deterministic: the same inputs always give equal results. Raw results
    reaching this point have already passed schema validation.
    """

    def normalize(
        self, kind: WorkflowKind, raw_input: str, raw_result: RawResult
    ) -> NormalizedResult:
        if kind is WorkflowKind.LEADS:
            return self._leads(_as_mapping(raw_result))
        if kind is WorkflowKind.SEO:
            return self._seo(raw_input, _as_mapping(raw_result))
        if kind is WorkflowKind.EMAIL:
            return self._email(_as_mapping(raw_result))
        if kind in (WorkflowKind.PRICE, WorkflowKind.REVIEW, WorkflowKind.SOCIAL):
            return self._simulated(kind, raw_result)
        raise ValueError(f"Unknown workflow kind: {kind!r}")

    def _leads(self, raw: Mapping[str, Any]) -> LeadsResult:
        return LeadsResult.model_validate(
            {
                **raw,
                "kind": WorkflowKind.LEADS,
                "leadMagnets": [m.model_copy() for m in LEAD_MAGNETS],
                "revenueEstimate": estimate_revenue(
                    raw.get("monthlyTraffic"), raw.get("monthlyRevenue")
                ),
                "status": SUCCESS_STATUS,
            }
        )

    def _seo(self, raw_input: str, raw: Mapping[str, Any]) -> SeoResult:
        return SeoResult.model_validate(
            {
                **raw,
                "kind": WorkflowKind.SEO,
                "competitorDomain": raw_input.strip() or DEFAULT_COMPETITOR_DOMAIN,
                "estimatedTrafficValue": ESTIMATED_TRAFFIC_VALUE,
                "status": SUCCESS_STATUS,
            }
        )

    def _email(self, raw: Mapping[str, Any]) -> EmailResult:
        return EmailResult.model_validate(
            {
                **raw,
                "kind": WorkflowKind.EMAIL,
                "currentOpenRate": CURRENT_OPEN_RATE,
                "currentClickRate": CURRENT_CLICK_RATE,
                "predictedImprovement": PREDICTED_EMAIL_IMPROVEMENT,
                "status": SUCCESS_STATUS,
            }
        )

    def _simulated(self, kind: WorkflowKind, raw: RawResult) -> NormalizedResult:
        expected = {
            WorkflowKind.PRICE: PriceResult,
            WorkflowKind.REVIEW: ReviewResult,
            WorkflowKind.SOCIAL: SocialResult,
        }[kind]
        result = raw if isinstance(raw, expected) else expected.model_validate(raw)
        return result.model_copy(update={"status": SUCCESS_STATUS})


def _as_mapping(raw: RawResult) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    return raw.model_dump(by_alias=True)
