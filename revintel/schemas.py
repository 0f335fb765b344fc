"""Output schemas expected from the completion service, keyed by workflow."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from jsonschema import Draft202012Validator
from pydantic import BaseModel, ConfigDict, Field

from .contracts import WorkflowKind

SchemaType = Literal["OBJECT", "ARRAY", "STRING", "INTEGER", "NUMBER", "BOOLEAN"]


class OutputSchema(BaseModel):
    """Declarative shape of a structured completion.

    Uses the uppercase type names the Gemini ``responseSchema`` expects. The
    same tree converts to a JSON Schema for local validation of responses.
    """

    type: SchemaType
    properties: Optional[Dict[str, "OutputSchema"]] = None
    items: Optional["OutputSchema"] = None
    required: List[str] = Field(default_factory=list)
    description: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def to_wire(self) -> dict[str, Any]:
        """Serialize for the ``generationConfig.responseSchema`` field."""
        data = self.model_dump(exclude_none=True)
        return _drop_empty_required(data)

    def to_json_schema(self) -> dict[str, Any]:
        node: dict[str, Any] = {"type": self.type.lower()}
        if self.properties is not None:
            node["properties"] = {
                name: prop.to_json_schema() for name, prop in self.properties.items()
            }
        if self.items is not None:
            node["items"] = self.items.to_json_schema()
        if self.required:
            node["required"] = list(self.required)
        return node

    def validate_payload(self, payload: Any) -> list[str]:
        """Return structural errors for ``payload``; empty when it conforms."""
        validator = Draft202012Validator(self.to_json_schema())
        errors = sorted(validator.iter_errors(payload), key=lambda e: [str(p) for p in e.path])
        return [_describe(e) for e in errors]


def _drop_empty_required(node: dict[str, Any]) -> dict[str, Any]:
    if not node.get("required"):
        node.pop("required", None)
    for prop in (node.get("properties") or {}).values():
        _drop_empty_required(prop)
    if "items" in node:
        _drop_empty_required(node["items"])
    return node


def _describe(error: Any) -> str:
    location = ".".join(str(part) for part in error.path)
    return f"{location}: {error.message}" if location else error.message


def _string(description: Optional[str] = None) -> OutputSchema:
    return OutputSchema(type="STRING", description=description)


def _string_list(description: Optional[str] = None) -> OutputSchema:
    return OutputSchema(type="ARRAY", items=_string(), description=description)


LEADS_SCHEMA = OutputSchema(
    type="OBJECT",
    properties={
        "painPoints": _string_list("3 main user pain points addressed by the content."),
        "targetAudience": _string("A detailed profile of the target lead."),
        "quickWins": _string_list("3 immediate, actionable steps to generate leads."),
        "monthlyTraffic": OutputSchema(type="INTEGER"),
        "monthlyRevenue": OutputSchema(type="STRING"),
    },
    required=["painPoints", "targetAudience", "quickWins"],
)

SEO_SCHEMA = OutputSchema(
    type="OBJECT",
    properties={
        "gapKeywords": OutputSchema(
            type="ARRAY",
            items=OutputSchema(
                type="OBJECT",
                properties={
                    "keyword": OutputSchema(type="STRING"),
                    "volume": OutputSchema(type="INTEGER"),
                    "difficulty": OutputSchema(type="NUMBER"),
                },
                required=["keyword", "volume", "difficulty"],
            ),
        ),
        "contentStrategy": _string(
            "A unique, long-form content strategy recommendation for the highest value keyword."
        ),
    },
    required=["gapKeywords", "contentStrategy"],
)

EMAIL_SCHEMA = OutputSchema(
    type="OBJECT",
    properties={
        "subjectLineImprovement": _string(
            "The single best suggested subject line based on conversion psychology."
        ),
        "abTestSuggestions": _string_list("3 actionable A/B test suggestions."),
    },
    required=["subjectLineImprovement", "abTestSuggestions"],
)

SCHEMA_REGISTRY: Dict[WorkflowKind, Optional[OutputSchema]] = {
    WorkflowKind.LEADS: LEADS_SCHEMA,
    WorkflowKind.SEO: SEO_SCHEMA,
    WorkflowKind.EMAIL: EMAIL_SCHEMA,
    WorkflowKind.PRICE: None,
    WorkflowKind.REVIEW: None,
    WorkflowKind.SOCIAL: None,
}


def schema_for(kind: WorkflowKind) -> Optional[OutputSchema]:
    """Return the output schema for ``kind``; ``None`` for simulated kinds."""
    return SCHEMA_REGISTRY[kind]
