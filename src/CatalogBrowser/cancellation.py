"""Cooperative cancellation primitives shared by fetch and publish routines.

Catalog refreshes run inside request handlers that carry their own deadline.
This module offers the light-weight :class:`CancellationToken` used to stop a
conditional fetch or a decomposition gracefully.  The implementation avoids
thread interruption in favour of explicit checks so that an abandoned publish
only ever leaves an unlinked staging directory behind.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from .errors import OperationCancelled


class CancellationToken:
    """Thread-safe cancellation token with an optional monotonic deadline.

    Examples:
        >>> token = CancellationToken.with_timeout(5.0)
        >>> token.is_cancelled()
        False
        >>> token.cancel()
        >>> token.is_cancelled()
        True
    """

    def __init__(
        self,
        deadline: Optional[float] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize a new cancellation token.

        Args:
            deadline: Absolute value of ``clock`` after which the token counts
                as cancelled. ``None`` means no deadline.
            clock: Monotonic time source, injectable for tests.
        """
        self._is_cancelled = threading.Event()
        self._lock = threading.Lock()
        self._deadline = deadline
        self._clock = clock

    @classmethod
    def with_timeout(
        cls, timeout_s: float, *, clock: Callable[[], float] = time.monotonic
    ) -> "CancellationToken":
        """Return a token whose deadline is ``timeout_s`` seconds from now."""
        return cls(clock() + timeout_s, clock=clock)

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        with self._lock:
            self._is_cancelled.set()

    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested or the deadline passed."""
        if self._is_cancelled.is_set():
            return True
        return self._deadline is not None and self._clock() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, ``None`` when unbounded."""
        if self._deadline is None:
            return None
        return max(self._deadline - self._clock(), 0.0)

    def raise_if_cancelled(self, stage: str = "operation") -> None:
        """Raise :class:`OperationCancelled` when the token has fired.

        Args:
            stage: Short label included in the error message.
        """
        if self.is_cancelled():
            raise OperationCancelled(f"{stage} cancelled")


__all__ = ["CancellationToken"]

# === NAVMAP v1 ===
# {
#   "module": "CatalogBrowser.cancellation",
#   "purpose": "Provide cooperative cancellation tokens with deadlines for fetch and publish",
#   "sections": [
#     {"id": "token", "name": "CancellationToken", "anchor": "TOK", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
