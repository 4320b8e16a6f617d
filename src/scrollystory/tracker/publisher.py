from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from scrollystory.channel import Envelope, MessageChannel, ProgressPayload
from scrollystory.config import NodeConfig
from scrollystory.tracker.document import Document, Element
from scrollystory.tracker.dock import DockTracker, ScrollDirection
from scrollystory.tracker.geometry import PanelBox, finite_progress, panel_progress
from scrollystory.tracker.slide_index import SlideIndexResolver


@dataclass
class ScrollState:
    last_scroll_y: float = 0.0
    direction: ScrollDirection = ScrollDirection.down

    def update(self, scroll_y: float) -> ScrollDirection:
        if scroll_y > self.last_scroll_y:
            self.direction = ScrollDirection.down
        elif scroll_y < self.last_scroll_y:
            self.direction = ScrollDirection.up
        self.last_scroll_y = scroll_y
        return self.direction


@dataclass
class TrackingContext:
    """All mutable tracking state of one story session."""

    dock: DockTracker = field(default_factory=DockTracker)
    scroll: ScrollState = field(default_factory=ScrollState)
    slides: SlideIndexResolver = field(default_factory=SlideIndexResolver)
    frame: Element | None = None

    @property
    def slide_index(self) -> int:
        return self.slides.index


class ScrollProgressPublisher:
    """Turns scroll events into progress envelopes for the embedded map."""

    def __init__(
        self,
        document: Document,
        channel: MessageChannel,
        context: TrackingContext,
        node_config: NodeConfig | None = None,
        *,
        frame_lookup: Callable[[], Element | None] | None = None,
    ) -> None:
        self.document = document
        self.channel = channel
        self.context = context
        self.node_config = node_config or NodeConfig()
        self._frame_lookup = frame_lookup or (lambda: self.context.frame)

    def panels(self) -> list[PanelBox]:
        cfg = self.node_config
        elements = self.document.find_all(lambda el: el.tag == "div" and el.has_class(cfg.panel_class))
        return [
            PanelBox.from_element(el, first_class=cfg.first_panel_class, last_class=cfg.last_panel_class)
            for el in elements
        ]

    def on_scroll(self, scroll_y: float) -> ProgressPayload | None:
        ctx = self.context
        ctx.scroll.update(scroll_y)

        anchor = ctx.dock.anchor
        if anchor is None:
            return None

        panels = self.panels()
        frame = self._frame_lookup()
        slide = ctx.slides.reconcile(frame)
        if slide >= len(panels):
            logger.debug("Slide {} has no panel ({} panels); skipping", slide, len(panels))
            return None

        progress = finite_progress(panel_progress(panels, slide, scroll_y, anchor))
        payload = ProgressPayload.from_progress(slide, progress)
        logger.debug("Scroll: [slide {}], [progress: {}]", slide, payload.progress)
        if frame is not None:
            self.channel.post(Envelope(payload=payload))
        return payload
