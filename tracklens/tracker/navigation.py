# ==============================================================================
# SPA Navigation Interception
# ==============================================================================
"""
Explicit interception of history mutations for single-page apps.

Contract: ``push_state()`` / ``replace_state()`` call the page's native
method first, then notify subscribers on the next scheduler tick (so the
host's router has finished updating before anyone reads the location).
``pop_state()`` is wired to the page's "popstate" event and notifies the
same way.

Nothing is monkey-patched: hosts route their history calls through the
interceptor, and subscribers never see a half-applied navigation.
"""

from collections.abc import Callable

from tracklens.tracker.page import Page, Scheduler
from tracklens.tracker.recorder import swallow_errors


class HistoryInterceptor:
    """Wraps history mutation methods and broadcasts navigation changes."""

    def __init__(self, page: Page, scheduler: Scheduler):
        self._page = page
        self._scheduler = scheduler
        self._subscribers: list[Callable[[], None]] = []
        self._attached = False

    def subscribe(self, callback: Callable[[], None]) -> None:
        """Register a callback run after every history change."""
        self._subscribers.append(callback)

    def attach(self) -> None:
        """Start listening for native popstate events (idempotent)."""
        if not self._attached:
            self._page.add_event_listener("popstate", self.pop_state)
            self._attached = True

    def detach(self) -> None:
        if self._attached:
            self._page.remove_event_listener("popstate", self.pop_state)
            self._attached = False

    def push_state(self, url: str) -> None:
        self._page.push_state(url)
        self._notify_soon()

    def replace_state(self, url: str) -> None:
        self._page.replace_state(url)
        self._notify_soon()

    def pop_state(self, event=None) -> None:
        self._notify_soon()

    def _notify_soon(self) -> None:
        self._scheduler.set_timeout(self._notify, 0)

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            swallow_errors(callback)()
