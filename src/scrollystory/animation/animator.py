from __future__ import annotations

from typing import Any

from loguru import logger

from scrollystory.animation.discrete import DiscreteSlideApplier
from scrollystory.animation.interpolation import InterpolationEngine
from scrollystory.channel import Envelope, MessageChannel, ProgressPayload, parse_envelope
from scrollystory.choreography.store import ChoreographyStore, LoadError
from scrollystory.config import AnimationConfig
from scrollystory.mapview.host import MapView, TimeSlider
from scrollystory.tracker.document import Subscription
from scrollystory.tracker.slide_index import fragment_integer


class MapAnimator:
    """Receiving side: turns controller messages and hash changes into map state."""

    def __init__(
        self,
        config: AnimationConfig,
        map_view: MapView,
        time_slider: TimeSlider | None = None,
        *,
        store: ChoreographyStore | None = None,
    ) -> None:
        self.config = config
        self.map_view = map_view
        self.time_slider = time_slider
        self.store = store or ChoreographyStore()
        self.engine = InterpolationEngine(config)
        self.applier = DiscreteSlideApplier(config)
        self.is_embedded = False
        self.current_slide_index: int | None = None
        self.current_progress: float | None = None
        self._last_discrete_index: int | None = None
        self._subscription: Subscription | None = None

    def start(self, channel: MessageChannel | None = None, **load_options: Any) -> None:
        """Load the choreography, configure the host and listen on ``channel``.

        Raises :class:`LoadError` when the choreography cannot be loaded.
        """
        try:
            self.store = ChoreographyStore.load(self.config.map_choreography, **load_options)
        except LoadError:
            logger.error("Map animator start aborted: no choreography")
            raise
        self.configure_host()
        if channel is not None:
            self.listen(channel)

    def configure_host(self) -> None:
        if self.time_slider is not None and self.config.time_play_rate is not None:
            self.time_slider.set_play_rate(self.config.time_play_rate)
        if self.config.disable_map_nav:
            self.map_view.set_navigation_enabled(False)
        logger.debug("Configured map with {}", self.config.as_summary())

    def listen(self, channel: MessageChannel) -> Subscription:
        if self._subscription is not None:
            self._subscription.dispose()
        self._subscription = channel.subscribe(self.on_message)
        return self._subscription

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.dispose()
            self._subscription = None

    def on_view_ready(self) -> list[str]:
        first = self.store.get(0)
        if first is None:
            logger.warning("View ready but the choreography has no slides")
            return []
        return self.applier.apply(first, self.map_view, self.time_slider, is_embedded=self.is_embedded)

    def on_message(self, message: Envelope | dict[str, Any]) -> bool:
        envelope = parse_envelope(message)
        if envelope is None:
            return False
        payload = envelope.payload
        self.is_embedded = payload.is_embedded
        if not isinstance(payload, ProgressPayload):
            logger.debug("Embedding state set to {}", self.is_embedded)
            return True

        current, upcoming = self.store.pair(payload.slide)
        if current is None:
            logger.warning("Slide {} is not in the choreography ({} slides)", payload.slide, len(self.store))
            return False

        self.current_slide_index = payload.slide
        self.current_progress = payload.value
        self.engine.apply(current, upcoming, payload.value, self.map_view, self.time_slider)

        if payload.slide != self._last_discrete_index:
            self._last_discrete_index = payload.slide
            self.applier.apply(current, self.map_view, self.time_slider, is_embedded=self.is_embedded)
        return True

    def on_hash_change(self, location: str) -> bool:
        if self.is_embedded:
            logger.debug("Ignoring hash change {} while embedded", location)
            return False
        index = fragment_integer(location)
        slide = self.store.get(index) if index is not None else None
        if index is None or slide is None:
            logger.info("No valid hash index found in {!r}", location)
            return False
        logger.debug("Hash changed to {}", location)
        self.current_slide_index = index
        self.applier.apply(slide, self.map_view, self.time_slider, is_embedded=False)
        return True
