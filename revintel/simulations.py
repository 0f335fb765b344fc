"""Locally simulated workflows.

These stand in for backend integrations that do not exist yet. Values are
drawn from documented ranges using the supplied random generator, so a seeded
``random.Random`` gives reproducible results.
"""

from __future__ import annotations

import random
from typing import Callable, Dict

from .contracts import PriceResult, ReviewResult, SimulatedResult, SocialResult, WorkflowKind

CURRENT_PRICE = 49.99


def simulate_price(raw_input: str, rng: random.Random) -> PriceResult:
    """Competitor price check; change is drawn from [-10, 10)."""
    change = round(rng.random() * 20 - 10, 2)
    if change > 5:
        alert_level = "CRITICAL"
        recommendation = (
            "Competitor raised price. Raise yours by 3% for immediate margin gain."
        )
    elif change < -5:
        alert_level = "OPPORTUNITY"
        recommendation = (
            "Competitor dropped price. Match their price temporarily to capture "
            "market share."
        )
    else:
        alert_level = "NORMAL"
        recommendation = "Maintain current price; market is stable."

    return PriceResult(
        current_price=f"${CURRENT_PRICE:.2f}",
        competitor_price=f"${CURRENT_PRICE + change:.2f}",
        price_change=change,
        alert_level=alert_level,
        recommendation=recommendation,
    )


def simulate_review(raw_input: str, rng: random.Random) -> ReviewResult:
    """Sentiment in [8.0, 10.0], churn reduction in [15, 25)."""
    return ReviewResult(
        overall_sentiment=round(rng.random() * 2 + 8, 1),
        key_complaints=[
            "The UI is confusing on mobile.",
            "Pricing tiers are not clearly defined.",
            "Needs better integration with existing tools.",
        ],
        improvement_opportunities=[
            "Develop a dedicated mobile-first design layer (React Native).",
            "Simplify pricing page with clear visual comparison.",
        ],
        churn_reduction=round(rng.random() * 10 + 15, 2),
    )


def simulate_social(raw_input: str, rng: random.Random) -> SocialResult:
    """Engagement in [300, 320], confidence in [85, 95]."""
    return SocialResult(
        content_idea=raw_input or "Post about new AI feature.",
        predicted_engagement=round(rng.random() * 20 + 300),
        confidence=round(rng.random() * 10 + 85),
        optimal_time="Tuesday @ 10:30 AM EST",
        recommendation=(
            "Use a short-form video instead of static image to boost predicted "
            "engagement by 40%."
        ),
    )


SIMULATIONS: Dict[WorkflowKind, Callable[[str, random.Random], SimulatedResult]] = {
    WorkflowKind.PRICE: simulate_price,
    WorkflowKind.REVIEW: simulate_review,
    WorkflowKind.SOCIAL: simulate_social,
}
