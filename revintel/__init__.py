"""revintel: schema-constrained analytical workflows with durable history."""

from .builder import AiRequest, RequestBuilder, SimulatedRequest
from .config import RevintelConfig, load_config
from .contracts import NormalizedResult, RunFailure, RunSuccess, WorkflowKind
from .coordinator import RetryCoordinator
from .history import HistoryRecorder, HistorySubscriber
from .invoke import CompletionInvoker
from .normalize import ResultNormalizer
from .orchestrator import WorkflowOrchestrator
from .persistence import get_history_store
from .schemas import schema_for
from .transports import get_transport

__version__ = "0.1.0"
__all__ = [
    "AiRequest",
    "CompletionInvoker",
    "HistoryRecorder",
    "HistorySubscriber",
    "NormalizedResult",
    "RequestBuilder",
    "ResultNormalizer",
    "RetryCoordinator",
    "RevintelConfig",
    "RunFailure",
    "RunSuccess",
    "SimulatedRequest",
    "WorkflowKind",
    "WorkflowOrchestrator",
    "get_history_store",
    "get_transport",
    "load_config",
    "schema_for",
]
