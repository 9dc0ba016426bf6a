"""Exception taxonomy for ShareAudit."""

from typing import Optional


class ShareAuditError(Exception):
    """Base class for ShareAudit errors."""


class RequestError(ShareAuditError):
    """A Graph request that failed terminally or is eligible for retry.

    ``status_code`` is None for transport failures (connection reset,
    timeout) where the server never answered.
    """

    def __init__(
        self,
        status_code: Optional[int],
        message: str,
        *,
        retry_after: Optional[float] = None,
        uri: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.retry_after = retry_after
        self.uri = uri

    @property
    def is_transient(self) -> bool:
        """Throttling, server errors and transport failures are retryable."""
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    def __str__(self) -> str:
        status = self.status_code if self.status_code is not None else "transport"
        return f"[{status}] {self.message}"


class AuthenticationError(ShareAuditError):
    """Credentials are missing or the token endpoint refused them."""


class PlanError(ShareAuditError):
    """The remediation plan is missing, unreadable or empty."""
