"""Errors that abort an aggregation cycle or a panel request."""

from __future__ import annotations

from typing import Optional


class PanelError(RuntimeError):
    """Base class for failures talking to the Pelican panel."""


class ConfigurationError(PanelError):
    """Raised when a required panel endpoint or credential is missing."""


class UpstreamError(PanelError):
    """Raised when the panel answers with a non-success response."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(UpstreamError):
    """Raised when a panel response body does not match the expected envelope."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=None)
