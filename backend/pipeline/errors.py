"""
Error types raised by the analysis pipeline.
"""

from typing import Optional


class AnalysisError(Exception):
    """Base class for failures surfaced to the caller of an analysis."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InsufficientDataError(AnalysisError):
    """Raised when a required input (DNA profile, medications, baseline vitals) is missing."""

    def __init__(self, message: str = "Please complete all steps before analysis") -> None:
        super().__init__(message)


class TransportFailureError(AnalysisError):
    """Raised when the text service cannot be reached."""

    def __init__(self, message: str = "Network connection failed") -> None:
        super().__init__(message)


class InvalidResponseError(AnalysisError):
    """Raised for a non-2xx status or a malformed body from the text service."""

    def __init__(self, status_code: Optional[int], message: str) -> None:
        self.status_code = status_code
        shown = status_code if status_code is not None else "n/a"
        super().__init__(f"Invalid response from server (HTTP {shown}). {message}")
        self.detail = message


class GenotypeParseError(Exception):
    """Raised when a raw DNA file cannot be parsed."""
    pass


class ConfigurationError(Exception):
    """Raised at startup when required configuration is missing or invalid."""
    pass
