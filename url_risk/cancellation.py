"""Cooperative cancellation for one analysis cycle."""

from __future__ import annotations

from .errors import CancelledFailure


class CancellationToken:
    """Advisory flag checked when each source check starts.

    It never interrupts a check that is already running. A new token is
    created per analysis cycle, so cancelling one cycle cannot leak into the
    next navigation.
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise CancelledFailure()
