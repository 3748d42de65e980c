"""Cross-module exceptions raised by the core infrastructure."""

from __future__ import annotations


class Busy(Exception):
    """A row lock could not be acquired within the configured timeout.

    Callers should retry with backoff.  ``retry_after`` is a hint in
    seconds.
    """

    def __init__(self, message: str = "Resource is busy, try again.", retry_after: int = 1):
        super().__init__(message)
        self.retry_after = retry_after
