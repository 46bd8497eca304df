"""Cancellation signal shared by every phase of a sync run."""

import threading
import time
from typing import Optional

from ..exceptions import SyncCancelledError


class CancelToken:
    """Cancellation flag with an optional deadline.

    One token governs a whole run: the scanner checks it per file and per
    listing page, the executor checks it before dispatching each operation.

    Examples:
        >>> token = CancelToken(timeout=300)
        >>> token.cancel()
        >>> token.cancelled
        True
    """

    def __init__(self, timeout: Optional[float] = None):
        """Initialize the token.

        Args:
            timeout: Seconds from now after which the token counts as
                cancelled (None for no deadline)
        """
        self._event = threading.Event()
        self._deadline: Optional[float] = None
        if timeout is not None:
            self._deadline = time.monotonic() + timeout

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def deadline_exceeded(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.deadline_exceeded

    def raise_if_cancelled(self, during: str = "") -> None:
        """Raise SyncCancelledError if cancellation was requested.

        Args:
            during: Description of the interrupted step for the message
        """
        if not self.cancelled:
            return
        reason = "cancelled" if self._event.is_set() else "deadline exceeded"
        message = f"sync {reason}"
        if during:
            message = f"sync {reason} during {during}"
        raise SyncCancelledError(message, reason=reason)
