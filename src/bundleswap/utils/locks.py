"""Concurrency control for mutating escrow operations.

Provides a per-orchestrator guard: at most one mutating operation is in flight
at a time, and an operation that calls back into the same orchestrator (for
example through an asset registry) is rejected instead of deadlocking.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from itertools import count
from typing import AsyncIterator, Optional

from bundleswap.errors import LockTimeoutError, ReentrantCallError

logger = logging.getLogger(__name__)

# guard id -> operation name, for every guard the current call chain is inside.
# Copied into tasks spawned from inside an operation, so they count as re-entrant too.
_in_flight: ContextVar[tuple[tuple[int, str], ...]] = ContextVar(
    "bundleswap_operations_in_flight", default=()
)
_guard_ids = count(1)


class OperationGuard:
    """Single "operation in progress" flag shared by every mutating entry point.

    Example:
        async with guard.hold("cancel_order"):
            # Only one mutating operation runs here at a time
            ...
    """

    def __init__(self, timeout: Optional[float] = 30.0):
        """Initialize the guard.

        Args:
            timeout: Maximum time an independent caller waits for the
                in-flight operation (None = wait forever)
        """
        self.timeout = timeout
        self._id = next(_guard_ids)
        self._lock = asyncio.Lock()

    def active_operation(self) -> Optional[str]:
        """Operation of this guard the current call chain is inside, if any."""
        for guard_id, operation in _in_flight.get():
            if guard_id == self._id:
                return operation
        return None

    @property
    def busy(self) -> bool:
        """Whether any operation currently holds the guard."""
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self, operation: str) -> AsyncIterator[None]:
        """Enter the guard for one mutating operation.

        Raises:
            ReentrantCallError: the current call chain already holds this guard
            LockTimeoutError: another operation held the guard past the timeout
        """
        active = self.active_operation()
        if active is not None:
            logger.warning(f"Re-entrant call to {operation} rejected while {active} is in flight")
            raise ReentrantCallError(operation, active)

        try:
            if self.timeout:
                await asyncio.wait_for(self._lock.acquire(), timeout=self.timeout)
            else:
                await self._lock.acquire()
        except asyncio.TimeoutError:
            logger.warning(f"Operation guard timeout after {self.timeout}s: {operation}")
            raise LockTimeoutError(
                f"Could not start {operation} within {self.timeout}s"
            )

        token = _in_flight.set(_in_flight.get() + ((self._id, operation),))
        logger.debug(f"Operation guard acquired: {operation}")
        try:
            yield
        finally:
            _in_flight.reset(token)
            self._lock.release()
            logger.debug(f"Operation guard released: {operation}")
