from __future__ import annotations

import asyncio

from scrollystory.channel import Envelope, InitPayload, MessageChannel, ProgressPayload
from scrollystory.config import NodeConfig
from scrollystory.simulation import PanelSpec, ScrollScenario, build_story_document
from scrollystory.tracker.document import Document, Element
from scrollystory.tracker.session import OBSERVED_MARKER, StoryScrollListener

FRAME_SRC = "https://maps.example.org/map/index.html"


def _story() -> tuple[Document, Element, Element]:
    scenario = ScrollScenario(panels=[PanelSpec(height=200)] * 3, scroll=[0], frame_src=FRAME_SRC)
    return build_story_document(scenario, NodeConfig(poll_interval=0.01))


async def _started(document: Document, channel: MessageChannel) -> StoryScrollListener:
    listener = StoryScrollListener(document, channel, NodeConfig(poll_interval=0.01))
    listener.start()
    await asyncio.gather(*(watch.task for watch in listener.watches if watch.task is not None))
    return listener


def test_session_tracks_docking_slides_and_progress() -> None:
    document, container, frame = _story()
    channel = MessageChannel()
    received: list[Envelope] = []
    channel.subscribe(received.append)

    async def scenario() -> StoryScrollListener:
        listener = await _started(document, channel)

        document.scroll_to(50)
        container.add_class("docked")
        document.flush_mutations()
        document.scroll_to(150)

        frame.set_attribute("src", f"{FRAME_SRC}#1")
        document.flush_mutations()
        document.scroll_to(350)
        return listener

    listener = asyncio.run(scenario())

    assert isinstance(received[0].payload, InitPayload)
    assert received[0].payload.is_embedded is True
    assert frame.get_attribute(OBSERVED_MARKER) == "true"
    assert listener.context.dock.anchor == 50
    progress = [envelope.payload for envelope in received[1:]]
    assert all(isinstance(payload, ProgressPayload) for payload in progress)
    assert [(payload.slide, payload.progress) for payload in progress] == [(0, "0.50"), (1, "0.50")]
    listener.dispose()


def test_upward_dock_entry_publishes_nothing() -> None:
    document, container, _ = _story()
    channel = MessageChannel()
    received: list[Envelope] = []
    channel.subscribe(received.append)
    document.scroll_to(900, dispatch=False)

    async def scenario() -> StoryScrollListener:
        listener = await _started(document, channel)
        document.scroll_to(500)
        container.add_class("docked")
        document.flush_mutations()
        document.scroll_to(450)
        return listener

    listener = asyncio.run(scenario())

    assert listener.context.dock.is_docked is True
    assert listener.context.dock.anchor is None
    assert [type(envelope.payload) for envelope in received] == [InitPayload]
    listener.dispose()


def test_reinserted_frame_is_observed_again() -> None:
    document, container, frame = _story()
    channel = MessageChannel()
    received: list[Envelope] = []
    channel.subscribe(received.append)

    async def scenario() -> StoryScrollListener:
        listener = await _started(document, channel)
        frame.set_attribute("src", f"{FRAME_SRC}#2")
        document.flush_mutations()
        assert listener.context.slide_index == 2

        container.remove_child(frame)
        document.flush_mutations()
        replacement = container.append_child(Element("iframe", attributes={"src": f"{FRAME_SRC}#0"}))
        document.flush_mutations()
        assert replacement.get_attribute(OBSERVED_MARKER) == "true"
        assert listener.context.frame is replacement
        return listener

    listener = asyncio.run(scenario())

    assert listener.context.slide_index == 0
    assert [type(envelope.payload) for envelope in received] == [InitPayload, InitPayload]
    listener.dispose()


def test_dispose_cancels_pending_discovery_and_stops_publishing() -> None:
    document = Document()
    channel = MessageChannel()
    received: list[Envelope] = []
    channel.subscribe(received.append)

    async def scenario() -> StoryScrollListener:
        listener = StoryScrollListener(document, channel, NodeConfig(poll_interval=0.01))
        listener.start()
        await asyncio.sleep(0.03)
        listener.dispose()
        listener.dispose()
        tasks = [watch.task for watch in listener.watches if watch.task is not None]
        await asyncio.gather(*tasks, return_exceptions=True)
        assert all(task.cancelled() for task in tasks)
        return listener

    listener = asyncio.run(scenario())
    document.scroll_to(300)

    assert received == []
    assert listener.context.scroll.last_scroll_y == 0
