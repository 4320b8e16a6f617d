from __future__ import annotations

from loguru import logger

from scrollystory.channel import Envelope, InitPayload, MessageChannel
from scrollystory.config import NodeConfig
from scrollystory.tracker.discovery import ElementWatch
from scrollystory.tracker.document import Document, Element, MutationRecord, Subscription
from scrollystory.tracker.publisher import ScrollProgressPublisher, TrackingContext

OBSERVED_MARKER = "data-observed"


class StoryScrollListener:
    """Scroll tracking session for one story block.

    ``start`` must run inside an event loop: element discovery is done by
    cancellable tasks. ``dispose`` tears every watch, observer and listener
    down and may be called more than once.
    """

    def __init__(
        self,
        document: Document,
        channel: MessageChannel,
        node_config: NodeConfig | None = None,
        *,
        discovery_timeout: float | None = None,
    ) -> None:
        self.document = document
        self.channel = channel
        self.node_config = node_config or NodeConfig()
        self.context = TrackingContext()
        self.publisher = ScrollProgressPublisher(
            document,
            channel,
            self.context,
            self.node_config,
            frame_lookup=self._query_frame,
        )
        self._discovery_timeout = discovery_timeout
        self._watches: list[ElementWatch] = []
        self._subscriptions: list[Subscription] = []
        self._node: Element | None = None
        self._started = False
        self._disposed = False

    # predicates -----------------------------------------------------------
    def _is_node(self, element: Element) -> bool:
        return element.id == self.node_config.node_id

    def _is_dock_container(self, element: Element) -> bool:
        if element.tag != "div":
            return False
        node = self._node or self.document.get_element_by_id(self.node_config.node_id)
        if node is None or not node.contains(element):
            return False
        classes = element.get_attribute("class") or ""
        return all(fragment in classes for fragment in self.node_config.dock_container_fragments)

    def _is_frame(self, element: Element) -> bool:
        return element.tag == self.node_config.frame_tag

    def _query_frame(self) -> Element | None:
        node = self._node or self.document.get_element_by_id(self.node_config.node_id)
        return node.find(self._is_frame) if node is not None else None

    # lifecycle ------------------------------------------------------------
    @property
    def watches(self) -> list[ElementWatch]:
        return list(self._watches)

    def start(self) -> None:
        if self._started:
            return
        if self._disposed:
            raise RuntimeError("Cannot restart a disposed StoryScrollListener")
        self._started = True
        self.context.scroll.last_scroll_y = self.document.scroll_y
        interval = self.node_config.poll_interval

        dock_watch = ElementWatch(
            self.document,
            self._is_dock_container,
            self._attach_dock_observer,
            label="dock container",
            interval=interval,
            timeout=self._discovery_timeout,
        )
        node_watch = ElementWatch(
            self.document,
            self._is_node,
            self._attach_frame_watcher,
            label=f"story node #{self.node_config.node_id}",
            interval=interval,
            timeout=self._discovery_timeout,
        )
        self._watches.extend([dock_watch, node_watch])
        dock_watch.start()
        node_watch.start()

        self._subscriptions.append(self.document.add_scroll_listener(self.publisher.on_scroll))
        logger.info("Scroll listener initialized for #{}", self.node_config.node_id)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        for watch in self._watches:
            watch.cancel()
        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions.clear()
        logger.debug("Scroll tracking session for #{} disposed", self.node_config.node_id)

    # observers ------------------------------------------------------------
    def _attach_dock_observer(self, container: Element) -> None:
        if self._disposed:
            return

        def on_class_change(records: list[MutationRecord]) -> None:
            self.context.dock.observe(
                container.has_class(self.node_config.docked_class),
                self.document.scroll_y,
                self.context.scroll.direction,
            )

        self._subscriptions.append(
            self.document.observe(container, on_class_change, attribute_filter=["class"])
        )
        logger.debug("Docking observer attached.")

    def _attach_frame_watcher(self, node: Element) -> None:
        if self._disposed:
            return
        self._node = node

        def on_subtree_change(records: list[MutationRecord]) -> None:
            self._adopt_frame(node)

        self._subscriptions.append(
            self.document.observe(node, on_subtree_change, child_list=True, subtree=True)
        )
        logger.debug("Watching #{} for frame (re)insertion.", self.node_config.node_id)
        self._adopt_frame(node)

    def _adopt_frame(self, node: Element) -> None:
        frame = node.find(self._is_frame)
        if frame is None or frame.get_attribute(OBSERVED_MARKER):
            return
        logger.debug("Frame (re)found under #{}, attaching observer.", self.node_config.node_id)
        frame.set_attribute(OBSERVED_MARKER, "true")
        self.context.frame = frame
        self.context.slides.reset()
        self.channel.post(Envelope(payload=InitPayload(is_embedded=True)))

        def on_src_change(records: list[MutationRecord]) -> None:
            self.context.slides.on_mutations(frame, records)

        self._subscriptions.append(
            self.document.observe(frame, on_src_change, attribute_filter=["src"])
        )
