"""Translate a workflow selection into a completion request."""

from __future__ import annotations

from typing import Union

from pydantic import BaseModel, ConfigDict

from .constants import (
    ASSUMED_MONTHLY_TRAFFIC,
    AVG_LEAD_VALUE,
    CURRENT_CLICK_RATE,
    CURRENT_OPEN_RATE,
)
from .contracts import WorkflowKind
from .errors import RunValidationError
from .schemas import OutputSchema, schema_for


class AiRequest(BaseModel):
    """Request for a schema-constrained completion."""

    kind: WorkflowKind
    system_instruction: str
    user_query: str
    output_schema: OutputSchema

    model_config = ConfigDict(frozen=True)


class SimulatedRequest(BaseModel):
    """Request served by a local simulation instead of the AI service."""

    kind: WorkflowKind
    raw_input: str = ""

    model_config = ConfigDict(frozen=True)


RequestSpec = Union[AiRequest, SimulatedRequest]


SYSTEM_INSTRUCTIONS = {
    WorkflowKind.LEADS: (
        "You are an expert marketing analyst. Analyze the provided content/topic to "
        "determine key pain points, target audience, and quick win actions. "
        "Respond only with the JSON object."
    ),
    WorkflowKind.SEO: (
        "You are an expert SEO strategist. Analyze the provided competitor domain to "
        "identify high-value, low-difficulty content gaps. "
        "Provide the output as a JSON object only."
    ),
    WorkflowKind.EMAIL: (
        "You are a conversion optimization expert specializing in email marketing. "
        "Suggest improvements for an email campaign based on its performance metrics. "
        "Provide the output as a JSON object only."
    ),
}


def _leads_query(raw_input: str) -> str:
    return (
        f'Analyze the topic/content: "{raw_input}" to extract 3 core user pain points, '
        "define the primary target audience (1 sentence), and provide 3 immediate "
        "quick win actions to generate leads. "
        f"Assume {ASSUMED_MONTHLY_TRAFFIC:,} monthly traffic and an average lead "
        f"value of ${AVG_LEAD_VALUE}."
    )


def _seo_query(raw_input: str) -> str:
    return (
        f'For the competitor domain "{raw_input}", generate 3 plausible, high-potential '
        "keyword gaps. Include estimated search volume (INTEGER, 500-2500) and "
        "difficulty (NUMBER, 4.0-9.0). Also, provide one unique long-form content "
        "strategy recommendation for the highest value keyword."
    )


def _email_query(raw_input: str) -> str:
    return (
        f"Given a current open rate of {CURRENT_OPEN_RATE} and a click rate of "
        f"{CURRENT_CLICK_RATE}, suggest the single best subject line improvement and "
        "3 distinct A/B test suggestions for the content of the email campaign "
        f'"{raw_input}".'
    )


USER_QUERIES = {
    WorkflowKind.LEADS: _leads_query,
    WorkflowKind.SEO: _seo_query,
    WorkflowKind.EMAIL: _email_query,
}


class RequestBuilder:
    """Build the request spec for a workflow run. Pure, no I/O."""

    def build(self, kind: WorkflowKind, raw_input: str) -> RequestSpec:
        raw_input = (raw_input or "").strip()
        if kind.is_simulated:
            return SimulatedRequest(kind=kind, raw_input=raw_input)

        if not raw_input:
            raise RunValidationError(f"{kind.display_name} requires a non-empty input.")

        return AiRequest(
            kind=kind,
            system_instruction=SYSTEM_INSTRUCTIONS[kind],
            user_query=USER_QUERIES[kind](raw_input),
            output_schema=schema_for(kind),
        )
