"""
Error taxonomy for TradeCopilot.

Only ValidationError, UpstreamProviderError and NotFoundError ever reach a
caller. MalformedResponseError and PersonalizationLoadError are recovered
internally (by the normalizer and the orchestrator respectively).
"""

from typing import Optional


class CopilotError(Exception):
    """Base class for all TradeCopilot errors."""

    http_status = 500


class ValidationError(CopilotError):
    """The analysis request carried neither images nor text."""

    http_status = 400


class NotFoundError(CopilotError):
    """Record does not exist or is not owned by the requesting user."""

    http_status = 404


class UpstreamProviderError(CopilotError):
    """The completion provider answered with a non-success status (or not at all)."""

    http_status = 502

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
        retryable: Optional[bool] = None,
    ):
        self.status_code = status_code
        self.body = body or ""
        self.retryable = retryable
        detail = f"Completion provider error: {status_code if status_code is not None else 'no response'}"
        if self.body:
            detail += f" {self.body}"
        super().__init__(f"{message} ({detail})" if message else detail)

    def is_retryable(self, retry_statuses) -> bool:
        """
        An explicit `retryable` wins. Otherwise connection failures are
        retryable and HTTP errors only for listed statuses.
        """
        if self.retryable is not None:
            return self.retryable
        if self.status_code is None:
            return True
        return self.status_code in retry_statuses


class MalformedResponseError(CopilotError):
    """Provider text could not be decoded into an analysis object."""

    def __init__(self, message: str, raw_text: str = ""):
        self.raw_text = raw_text
        super().__init__(message)


class PersonalizationLoadError(CopilotError):
    """Settings, memories or history could not be loaded."""
