from .database import Database
from .engine import ProcurementEngine
from .errors import (
    ProcurementError, NotFoundError, InvalidTransitionError,
    ProviderFailure, ProviderTimeout,
)
from .ingestor import SuggestionIngestor
from .llm_provider import LLMAnalysisProvider
from .store import InventoryStore
from .workflow import ProcurementWorkflow

__all__ = [
    "Database", "ProcurementEngine",
    "ProcurementError", "NotFoundError", "InvalidTransitionError",
    "ProviderFailure", "ProviderTimeout",
    "SuggestionIngestor", "LLMAnalysisProvider",
    "InventoryStore", "ProcurementWorkflow",
]
