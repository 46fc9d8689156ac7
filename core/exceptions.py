"""Shared exception types for core trading logic."""

from typing import Optional


class ConfigurationError(ValueError):
    """Raised at startup when config or credentials are invalid. Fatal."""


class ExternalServiceError(RuntimeError):
    """Raised when a collaborator (market data, metadata, swap service) call fails."""

    def __init__(self, source: str, original: Optional[Exception] = None):
        message = source if original is None else f"{source}: {original}"
        super().__init__(message)
        self.source = source
        self.original = original


class DecisionParseError(ValueError):
    """Raised when the decision source returns an unusable structure."""


class IterationFatalError(RuntimeError):
    """Raised when portfolio valuation fails while constraints are required."""

    def __init__(self, source: str, original: Optional[Exception] = None):
        message = source if original is None else f"{source}: {original}"
        super().__init__(message)
        self.source = source
        self.original = original
