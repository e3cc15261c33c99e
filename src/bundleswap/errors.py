"""Error types raised by the swap engine.

Every error aborts the operation that raised it. ``kind`` is the stable,
client-facing error code; ``status_code`` is what the HTTP layer answers with.
"""

from typing import Optional


class SwapError(Exception):
    """Base class for all swap engine failures."""

    kind: str = "SwapError"
    status_code: int = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        """Serialize for API responses."""
        return {"error": self.kind, "detail": self.message}


class NotFoundError(SwapError):
    """Order or offer does not exist."""

    kind = "NotFound"
    status_code = 404


class NotActiveError(SwapError):
    """Operation against an order that is already settled or canceled."""

    kind = "NotActive"
    status_code = 409


class UnauthorizedError(SwapError):
    """Caller is not the order owner."""

    kind = "Unauthorized"
    status_code = 403


class InvalidInputError(SwapError):
    """Malformed request (empty or mismatched bundle, unknown registry, ...)."""

    kind = "InvalidInput"
    status_code = 400


class NotApprovedError(SwapError):
    """The escrow is not authorized to move an asset."""

    kind = "NotApproved"
    status_code = 403


class OwnershipMismatchError(SwapError):
    """An asset is not owned by the identity the operation expects."""

    kind = "OwnershipMismatch"
    status_code = 409


class CustodyViolationError(SwapError):
    """A listed asset is unexpectedly absent from escrow custody."""

    kind = "CustodyViolation"
    status_code = 409


class ReentrantCallError(SwapError):
    """A mutating operation was invoked while another is still in flight."""

    kind = "ReentrantCall"
    status_code = 409

    def __init__(self, operation: str, active: Optional[str] = None):
        self.operation = operation
        self.active = active
        super().__init__(
            f"Re-entrant call to {operation} rejected"
            + (f" while {active} is in flight" if active else "")
        )


class LockTimeoutError(SwapError):
    """The in-flight operation did not finish within the configured timeout."""

    kind = "Busy"
    status_code = 503


class RegistryUnavailableError(SwapError):
    """A remote asset registry could not be reached or answered unexpectedly."""

    kind = "RegistryUnavailable"
    status_code = 502


class NativeValueRejectedError(SwapError):
    """The escrow never accepts transfers of native value."""

    kind = "ValueRejected"
    status_code = 405
