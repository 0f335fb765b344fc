"""Data models for persisted workflow history."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..constants import HISTORY_COLLECTION
from ..contracts import NORMALIZED_RESULT, NormalizedResult, WorkflowKind


def history_collection_key(app_id: str, identity: str) -> str:
    """Collection holding the history of one identity within one application."""
    return f"/artifacts/{app_id}/users/{identity}/{HISTORY_COLLECTION}"


class StoredDocument(BaseModel):
    """A document as held by a history store backend."""

    id: str
    created_at: Optional[datetime] = None
    data: dict[str, Any] = Field(default_factory=dict)


class HistoryEntry(BaseModel):
    """One completed workflow run."""

    id: str
    workflow: WorkflowKind
    input: str
    output: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    def result(self) -> NormalizedResult:
        """Parse the stored output back into its result variant."""
        return NORMALIZED_RESULT.validate_python(self.output)
