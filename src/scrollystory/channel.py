"""Cross-context message protocol between the story page and the embedded map.

Envelopes always carry the full current state, so delivery is fire-and-forget:
a lost or late message is superseded by the next one.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from typing import Any, Literal, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from scrollystory.tracker.document import Subscription

CONTROLLER_SOURCE = "storymap-controller"


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class InitPayload(_WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="forbid")

    is_embedded: bool


class ProgressPayload(_WireModel):
    type: Literal["progress"] = "progress"
    slide: int = Field(ge=0)
    progress: str
    is_embedded: bool = True

    @field_validator("progress", mode="before")
    @classmethod
    def format_progress(cls, value: Any) -> str:
        try:
            number = float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"progress must be numeric, got {value!r}") from exc
        if not 0.0 <= number <= 1.0:
            raise ValueError(f"progress must be within [0, 1], got {number}")
        return f"{number:.2f}"

    @property
    def value(self) -> float:
        return float(self.progress)

    @classmethod
    def from_progress(cls, slide: int, progress: float) -> ProgressPayload:
        return cls(slide=slide, progress=progress)


Payload = Union[ProgressPayload, InitPayload]


class Envelope(_WireModel):
    source: Literal["storymap-controller"] = CONTROLLER_SOURCE
    payload: Payload

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def parse_envelope(raw: Any) -> Envelope | None:
    """Return the envelope if ``raw`` came from the controller, ``None`` otherwise."""
    if isinstance(raw, Envelope):
        return raw
    if not isinstance(raw, dict) or raw.get("source") != CONTROLLER_SOURCE:
        return None
    try:
        return Envelope.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Dropping malformed controller message: {}", exc.errors()[0].get("msg"))
        return None


Handler = Callable[[Envelope], None]


class MessageChannel:
    """In-process stand-in for a cross-context postMessage channel.

    ``post`` never blocks and never reports delivery. In queued mode messages
    wait for :meth:`drain`, which emulates an asynchronous boundary.
    """

    def __init__(self, *, queued: bool = False) -> None:
        self.queued = queued
        self._handlers: list[Handler] = []
        self._pending: deque[Envelope] = deque()
        self.posted = 0

    def subscribe(self, handler: Handler) -> Subscription:
        self._handlers.append(handler)
        return Subscription(lambda: self._handlers.remove(handler))

    def post(self, envelope: Envelope) -> None:
        self.posted += 1
        if self.queued:
            self._pending.append(envelope)
            return
        self._deliver(envelope)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def drain(self) -> int:
        delivered = 0
        while self._pending:
            self._deliver(self._pending.popleft())
            delivered += 1
        return delivered

    def discard_pending(self) -> int:
        dropped = len(self._pending)
        self._pending.clear()
        return dropped

    def _deliver(self, envelope: Envelope) -> None:
        for handler in list(self._handlers):
            try:
                handler(envelope)
            except Exception:
                logger.exception("Message handler failed for {}", type(envelope.payload).__name__)
