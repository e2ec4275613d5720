from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

logger = logging.getLogger(__name__)

PAGE_SIZE = 20


@dataclass(frozen=True)
class Progress:
    loaded: int
    total: int

    @property
    def percent(self) -> int:
        if not self.total:
            return 100
        return round(self.loaded / self.total * 100)

    def label(self) -> str:
        return f"Loading more... ({self.loaded}/{self.total} - {self.percent}%)"


class NearEndTrigger:
    """
    Event source for "the end of the rendered list is near".

    A platform binding (scroll polling, a visibility API...) calls fire()
    when the sentinel reported through observe() comes into view. Firing
    while disconnected does nothing.
    """

    def __init__(self):
        self._callback: Optional[Callable[[], None]] = None
        self.sentinel: Optional[Progress] = None

    @property
    def connected(self) -> bool:
        return self._callback is not None

    def connect(self, callback: Callable[[], None]) -> None:
        self._callback = callback
        self.sentinel = None

    def observe(self, progress: Optional[Progress]) -> None:
        self.sentinel = progress

    def disconnect(self) -> None:
        self._callback = None
        self.sentinel = None

    def fire(self) -> bool:
        if self._callback is None or self.sentinel is None:
            return False
        self._callback()
        return True


class IncrementalRenderer:
    def __init__(
        self,
        render: Callable[[Sequence], None],
        trigger: Optional[NearEndTrigger] = None,
        page_size: int = PAGE_SIZE,
        on_sentinel: Optional[Callable[[Optional[Progress]], None]] = None,
    ):
        self.render = render
        self.trigger = trigger or NearEndTrigger()
        self.page_size = page_size
        self.on_sentinel = on_sentinel
        self.items: List = []
        self.cursor = 0

    @property
    def loaded(self) -> int:
        return min(self.cursor * self.page_size, len(self.items))

    @property
    def has_more(self) -> bool:
        return self.loaded < len(self.items)

    def stop(self) -> None:
        self.trigger.disconnect()
        if self.on_sentinel:
            self.on_sentinel(None)

    def reset(self, items: Sequence) -> None:
        """Swap in a new item set. The old trigger is gone before anything changes."""
        self.stop()
        self.items = list(items)
        self.cursor = 0
        self.trigger.connect(self.load_next_page)

    def load_next_page(self) -> list:
        start = self.cursor * self.page_size
        page = self.items[start:start + self.page_size]
        if not page:
            logger.debug("No more items to load (%d total)", len(self.items))
            self.stop()
            return []

        self.render(page)
        self.cursor += 1

        progress = Progress(self.loaded, len(self.items)) if self.has_more else None
        self.trigger.observe(progress)
        if self.on_sentinel:
            self.on_sentinel(progress)
        return page
