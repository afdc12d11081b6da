"""Error taxonomy for the adapter management plane.

Every error carries a stable ``code`` so callers (and any transport built on
top) can map failures without matching on class names:

- VALIDATION   - malformed request, rejected before touching store or cluster
- FORBIDDEN    - permission provider denied the caller
- NOT_FOUND    - record or workload does not exist
- CONFLICT     - optimistic concurrency precondition failed; re-read and retry
- UNAVAILABLE  - transient infrastructure failure; retried internally
- UNAUTHORIZED - the control plane identity lacks cluster permission; fatal
- FAILED       - terminal reconciliation failure, recorded on adapter status
"""

from typing import Optional


class ManagementError(Exception):
    """Base error with a code."""

    code = "INTERNAL"

    def __init__(self, message: str, code: Optional[str] = None):
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(f"[{self.code}] {message}")


class ValidationError(ManagementError):
    """Request shape or content is invalid."""

    code = "VALIDATION"


class ForbiddenError(ManagementError):
    """Caller is not allowed to perform the action on the scope."""

    code = "FORBIDDEN"


class NotFoundError(ManagementError):
    """Record or workload does not exist."""

    code = "NOT_FOUND"


class ConflictError(ManagementError):
    """Generation precondition or resource version mismatch."""

    code = "CONFLICT"


class UnavailableError(ManagementError):
    """Store or control plane unreachable, or a call exceeded its deadline."""

    code = "UNAVAILABLE"


class UnauthorizedError(ManagementError):
    """Cluster identity lacks permission. Never retried."""

    code = "UNAUTHORIZED"


class ReconciliationFailedError(ManagementError):
    """Reconciliation gave up after exhausting retries."""

    code = "FAILED"

    def __init__(self, adapter_id: str, message: str):
        self.adapter_id = adapter_id
        super().__init__(f"adapter '{adapter_id}': {message}")


__all__ = [
    "ManagementError",
    "ValidationError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "UnavailableError",
    "UnauthorizedError",
    "ReconciliationFailedError",
]
