from __future__ import annotations

import pytest
from pydantic import ValidationError

from scrollystory.channel import (
    CONTROLLER_SOURCE,
    Envelope,
    InitPayload,
    MessageChannel,
    ProgressPayload,
    parse_envelope,
)


def test_progress_envelope_wire_shape() -> None:
    envelope = Envelope(payload=ProgressPayload.from_progress(2, 0.456))

    assert envelope.to_wire() == {
        "source": CONTROLLER_SOURCE,
        "payload": {"type": "progress", "slide": 2, "progress": "0.46", "isEmbedded": True},
    }


def test_init_envelope_wire_shape() -> None:
    envelope = Envelope(payload=InitPayload(is_embedded=True))

    assert envelope.to_wire() == {"source": CONTROLLER_SOURCE, "payload": {"isEmbedded": True}}


def test_progress_is_formatted_with_two_decimals() -> None:
    assert ProgressPayload.from_progress(0, 1 / 3).progress == "0.33"
    assert ProgressPayload.from_progress(0, 1.0).progress == "1.00"
    assert ProgressPayload.from_progress(0, 0.0).value == 0.0


@pytest.mark.parametrize("progress", [-0.1, 1.5, "abc", None])
def test_progress_outside_unit_interval_is_rejected(progress: object) -> None:
    with pytest.raises(ValidationError):
        ProgressPayload(slide=0, progress=progress)


def test_parse_envelope_accepts_wire_messages() -> None:
    progress = parse_envelope(
        {
            "source": CONTROLLER_SOURCE,
            "payload": {"type": "progress", "slide": 1, "progress": "0.50", "isEmbedded": True},
        }
    )
    init = parse_envelope({"source": CONTROLLER_SOURCE, "payload": {"isEmbedded": False}})

    assert progress is not None and isinstance(progress.payload, ProgressPayload)
    assert progress.payload.slide == 1
    assert progress.payload.value == 0.5
    assert init is not None and isinstance(init.payload, InitPayload)
    assert init.payload.is_embedded is False


@pytest.mark.parametrize(
    "raw",
    [
        {"source": "some-other-widget", "payload": {"isEmbedded": True}},
        {"payload": {"isEmbedded": True}},
        "storymap-controller",
        None,
        {"source": CONTROLLER_SOURCE, "payload": {"type": "progress", "slide": -1, "progress": "0.5"}},
        {"source": CONTROLLER_SOURCE, "payload": {"isEmbedded": True, "unexpected": 1}},
    ],
)
def test_parse_envelope_ignores_foreign_or_malformed_messages(raw: object) -> None:
    assert parse_envelope(raw) is None


def test_queued_channel_delivers_in_order_on_drain() -> None:
    channel = MessageChannel(queued=True)
    received: list[int] = []
    channel.subscribe(lambda envelope: received.append(envelope.payload.slide))

    channel.post(Envelope(payload=ProgressPayload.from_progress(2, 0.1)))
    channel.post(Envelope(payload=ProgressPayload.from_progress(1, 0.2)))

    assert received == []
    assert channel.pending == 2
    assert channel.drain() == 2
    assert received == [2, 1]
    assert channel.posted == 2


def test_discarded_messages_are_never_delivered() -> None:
    channel = MessageChannel(queued=True)
    received: list[Envelope] = []
    channel.subscribe(received.append)

    channel.post(Envelope(payload=InitPayload(is_embedded=True)))

    assert channel.discard_pending() == 1
    assert channel.drain() == 0
    assert received == []


def test_failing_handler_does_not_stop_delivery() -> None:
    channel = MessageChannel()
    received: list[Envelope] = []

    def broken(envelope: Envelope) -> None:
        raise RuntimeError("boom")

    channel.subscribe(broken)
    subscription = channel.subscribe(received.append)
    channel.post(Envelope(payload=InitPayload(is_embedded=True)))
    subscription.dispose()
    channel.post(Envelope(payload=InitPayload(is_embedded=True)))

    assert len(received) == 1
