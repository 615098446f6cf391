from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from utils.logger import get_logger

_logger = get_logger(__name__)

LOOKAHEAD_ROWS = 6  # load the next page this many rows before the real bottom
ADVANCE_DELAY = 0.2  # seconds


class InfiniteScrollController:
    """
    Watches the last rendered item and asks for the next page when it comes
    into view.

    Only one sentinel is observed at a time; observing a new one (or tearing
    down) disconnects the previous watcher and cancels any pending advance.
    Nothing is attached or triggered while a page is loading.
    """

    def __init__(
        self,
        is_loading: Callable[[], bool],
        has_more: Callable[[], bool],
        advance: Callable[[], Any],
        delay: float = ADVANCE_DELAY,
        margin: int = LOOKAHEAD_ROWS,
    ) -> None:
        self._is_loading = is_loading
        self._has_more = has_more
        self._advance = advance
        self.delay = delay
        self.margin = margin
        self._sentinel: Any = None
        self._pending: Optional[asyncio.TimerHandle] = None

    @property
    def sentinel(self) -> Any:
        return self._sentinel

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def observe(self, sentinel: Any) -> bool:
        """Re-attach to a new last item. Returns False when suppressed by loading."""
        self.disconnect()
        if sentinel is None or self._is_loading():
            return False
        self._sentinel = sentinel
        return True

    def disconnect(self) -> None:
        self._sentinel = None
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def is_visible(self, sentinel_top: int, viewport_top: int, viewport_height: int) -> bool:
        """Whether the sentinel's top edge is inside the viewport plus the look-ahead margin."""
        return sentinel_top <= viewport_top + viewport_height + self.margin

    def check(self, sentinel_top: int, viewport_top: int, viewport_height: int) -> bool:
        """Geometry entry point: call on every scroll or resize."""
        if not self.is_visible(sentinel_top, viewport_top, viewport_height):
            return False
        return self.on_intersect(self._sentinel)

    def on_intersect(self, sentinel: Any) -> bool:
        """Schedule one advance after ``delay``. Returns True when scheduled."""
        if sentinel is None or sentinel is not self._sentinel:
            return False
        if self._pending is not None:
            return False
        if self._is_loading() or not self._has_more():
            return False

        loop = asyncio.get_running_loop()
        self._pending = loop.call_later(self.delay, self._fire, sentinel)
        return True

    def _fire(self, sentinel: Any) -> None:
        self._pending = None
        if sentinel is not self._sentinel:
            return
        if self._is_loading() or not self._has_more():
            return
        _logger.debug("Sentinel visible, requesting next page.")
        # one trigger per sentinel; the next list render attaches a fresh one
        self._sentinel = None
        self._advance()
