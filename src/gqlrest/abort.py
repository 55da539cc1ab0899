"""Cooperative cancellation token for subscription push loops.

Every active subscription owns one ``AbortSignal``.  ``stop`` sets it;
the push loop checks it between stream items and registered callbacks
let the manager cancel a loop that is parked on the stream.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class AbortSignal:
    """One-shot cancellation flag keyed to a subscription id.

    Once set it cannot be unset.  Callbacks registered with
    ``on_abort`` fire exactly once, immediately if the signal is
    already set.

    Usage::

        signal = AbortSignal(subscription_id)
        signal.on_abort(task.cancel)

        # In the push loop:
        if signal.is_set:
            break

        # From stop():
        signal.set()
    """

    def __init__(self, owner: str = "") -> None:
        self.owner = owner
        self._is_set: bool = False
        self._callbacks: list[Callable[[], object]] = []

    @property
    def is_set(self) -> bool:
        """Whether termination has been requested."""
        return self._is_set

    def set(self) -> None:
        """Request termination. Fires all registered callbacks."""
        if self._is_set:
            return
        self._is_set = True
        callbacks, self._callbacks = self._callbacks, []
        for cb in callbacks:
            self._fire(cb)

    def on_abort(self, callback: Callable[[], object]) -> None:
        """Register a callback to fire when termination is requested."""
        if self._is_set:
            self._fire(callback)
            return
        self._callbacks.append(callback)

    def _fire(self, callback: Callable[[], object]) -> None:
        try:
            callback()
        except Exception:  # noqa: BLE001
            logger.exception("Abort callback failed for %s", self.owner or "<anonymous>")
