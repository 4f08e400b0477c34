"""Error taxonomy shared by the services and the HTTP layer.

The API maps each class to a status code; see ``plancoach.api.main``.
"""

from __future__ import annotations

from typing import Optional


class PlanCoachError(Exception):
    status_code: int = 500
    public_message: str = "Failed to process chat request"
    retry_after: Optional[int] = None


class ValidationError(PlanCoachError):
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.public_message = message


class NotFoundError(PlanCoachError):
    status_code = 404

    def __init__(self, message: str = "Business plan not found") -> None:
        super().__init__(message)
        self.public_message = message


class GatewayError(PlanCoachError):
    """The remote assistant service failed or rejected a request."""

    status_code = 503
    public_message = "There was an issue with the conversation. Please try again."
    retry_after = 3

    def __init__(self, message: str, *, upstream_status: Optional[int] = None) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status


class AssistantNotConfigured(GatewayError):
    pass


class ThreadBusy(GatewayError):
    """A run is still active on the thread, so no message can be appended."""


class RateLimited(GatewayError):
    status_code = 429
    public_message = "Service is currently busy. Please try again in a few moments."
    retry_after = 5

    def __init__(self, message: str, *, retry_after: Optional[int] = None) -> None:
        super().__init__(message, upstream_status=429)
        if retry_after is not None and retry_after > 0:
            self.retry_after = retry_after


class RunFailed(GatewayError):
    def __init__(self, message: str, *, run_id: Optional[str] = None, status: Optional[str] = None) -> None:
        super().__init__(message)
        self.run_id = run_id
        self.status = status


class RunTimedOut(RunFailed):
    pass


class NoAssistantResponse(GatewayError):
    pass


class ExtractionFailure(PlanCoachError):
    """Raised inside the extraction pass; never leaves it."""

    def __init__(self, reason: str, message: str = "") -> None:
        super().__init__(message or reason)
        self.reason = reason
