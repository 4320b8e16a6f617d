from __future__ import annotations

import re

from loguru import logger

from scrollystory.tracker.document import Element, MutationRecord

_INTEGER = re.compile(r"^\s*([+-]?\d+)")


def fragment_integer(location: str | None) -> int | None:
    """Leading integer of the last ``#`` segment, read the way ``parseInt`` reads it.

    ``None`` when there is no fragment or it does not start with a number.
    """
    if not location or "#" not in location:
        return None
    match = _INTEGER.match(location.rsplit("#", 1)[1])
    return int(match.group(1)) if match is not None else None


def parse_slide_index(location: str | None) -> int:
    """Slide number encoded after the last ``#`` of ``location``.

    A missing fragment, a non-numeric fragment or a negative number gives 0.
    """
    value = fragment_integer(location)
    return max(value, 0) if value is not None else 0


class SlideIndexResolver:
    """Keeps the active slide index in sync with an embedded frame's ``src``."""

    def __init__(self, attribute: str = "src") -> None:
        self.attribute = attribute
        self.index = 0

    def reset(self) -> None:
        self.index = 0

    def read(self, frame: Element) -> int:
        return parse_slide_index(frame.get_attribute(self.attribute))

    def on_mutations(self, frame: Element, records: list[MutationRecord]) -> int:
        # Batches may coalesce several src changes; only the current value matters.
        self.index = self.read(frame)
        logger.debug("Updated current slide: {} ({} record(s))", self.index, len(records))
        return self.index

    def reconcile(self, frame: Element | None) -> int:
        """Re-read ``src`` synchronously and trust it over the observed value."""
        if frame is None:
            return self.index
        detected = self.read(frame)
        if detected != self.index:
            logger.debug("Slide index corrected from {} to {}", self.index, detected)
            self.index = detected
        return self.index
