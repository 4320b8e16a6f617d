from __future__ import annotations

import asyncio
from collections.abc import Callable

from loguru import logger

from scrollystory.tracker.document import Document, Element

Predicate = Callable[[Element], bool]


async def wait_for_element(
    document: Document,
    predicate: Predicate,
    *,
    interval: float = 0.1,
) -> Element:
    """Poll ``document`` every ``interval`` seconds until ``predicate`` matches."""
    if interval <= 0:
        raise ValueError(f"interval must be > 0, got {interval}")
    while True:
        element = document.find(predicate)
        if element is not None:
            return element
        await asyncio.sleep(interval)


class ElementWatch:
    """Cancellable discovery task that hands the found element to ``on_found``."""

    def __init__(
        self,
        document: Document,
        predicate: Predicate,
        on_found: Callable[[Element], None],
        *,
        label: str,
        interval: float = 0.1,
        timeout: float | None = None,
    ) -> None:
        self.label = label
        self._document = document
        self._predicate = predicate
        self._on_found = on_found
        self._interval = interval
        self._timeout = timeout
        self._task: asyncio.Task[Element | None] | None = None

    @property
    def task(self) -> asyncio.Task[Element | None] | None:
        return self._task

    def start(self) -> asyncio.Task[Element | None]:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run(), name=f"watch:{self.label}")
        return self._task

    async def _run(self) -> Element | None:
        waiter = wait_for_element(self._document, self._predicate, interval=self._interval)
        try:
            if self._timeout is None:
                element = await waiter
            else:
                element = await asyncio.wait_for(waiter, timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Gave up waiting for {} after {}s", self.label, self._timeout)
            return None
        logger.debug("Found {}: {}", self.label, element)
        try:
            self._on_found(element)
        except Exception:
            logger.exception("Handler for {} failed on {}", self.label, element)
        return element

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
