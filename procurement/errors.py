"""
Exception types raised by the procurement core.

NotFoundError and InvalidTransitionError reject a user action and leave the
store untouched.  ProviderFailure (and ProviderTimeout) come from the analysis
provider and are recovered by ProcurementEngine, never propagated to the CLI.
"""
from typing import Optional


class ProcurementError(Exception):
    """Base class for all recoverable procurement errors."""


class NotFoundError(ProcurementError):
    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id!r} not found")


class InvalidTransitionError(ProcurementError):
    def __init__(self, entity: str, entity_id: str, current: str, requested: str):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"{entity} {entity_id!r} cannot move from {current} to {requested}"
        )


class ProviderFailure(ProcurementError):
    """The analysis provider failed or returned an unusable response."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class ProviderTimeout(ProviderFailure):
    """The analysis provider did not answer within the configured timeout."""
