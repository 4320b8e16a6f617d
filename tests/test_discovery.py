from __future__ import annotations

import asyncio

import pytest

from scrollystory.tracker.discovery import ElementWatch, wait_for_element
from scrollystory.tracker.document import Document, Element


def test_wait_for_element_returns_once_element_appears() -> None:
    document = Document()

    async def scenario() -> Element:
        task = asyncio.create_task(wait_for_element(document, lambda el: el.id == "late", interval=0.01))
        await asyncio.sleep(0.03)
        assert not task.done()
        document.root.append_child(Element("div", attributes={"id": "late"}))
        return await asyncio.wait_for(task, timeout=1.0)

    found = asyncio.run(scenario())
    assert found.id == "late"


def test_wait_for_element_rejects_non_positive_interval() -> None:
    with pytest.raises(ValueError):
        asyncio.run(wait_for_element(Document(), lambda el: True, interval=0))


def test_watch_hands_found_element_to_callback() -> None:
    document = Document()
    node = document.root.append_child(Element("div", attributes={"id": "story"}))
    found: list[Element] = []

    async def scenario() -> Element | None:
        watch = ElementWatch(document, lambda el: el.id == "story", found.append, label="story", interval=0.01)
        return await watch.start()

    assert asyncio.run(scenario()) is node
    assert found == [node]


def test_failing_callback_is_logged_inside_the_watch(log_messages: list[str]) -> None:
    document = Document()
    node = document.root.append_child(Element("div", attributes={"id": "story"}))

    def broken(element: Element) -> None:
        raise RuntimeError("boom")

    async def scenario() -> Element | None:
        watch = ElementWatch(document, lambda el: el.id == "story", broken, label="story", interval=0.01)
        return await watch.start()

    assert asyncio.run(scenario()) is node
    assert any("Handler for story failed" in message for message in log_messages)


def test_cancelled_watch_never_calls_back() -> None:
    document = Document()
    found: list[Element] = []

    async def scenario() -> bool:
        watch = ElementWatch(document, lambda el: el.id == "never", found.append, label="never", interval=0.01)
        task = watch.start()
        await asyncio.sleep(0.02)
        watch.cancel()
        await asyncio.gather(task, return_exceptions=True)
        document.root.append_child(Element("div", attributes={"id": "never"}))
        await asyncio.sleep(0.03)
        return task.cancelled()

    assert asyncio.run(scenario()) is True
    assert found == []


def test_watch_gives_up_after_timeout(log_messages: list[str]) -> None:
    document = Document()
    found: list[Element] = []

    async def scenario() -> Element | None:
        watch = ElementWatch(
            document,
            lambda el: el.id == "missing",
            found.append,
            label="missing node",
            interval=0.01,
            timeout=0.05,
        )
        return await watch.start()

    assert asyncio.run(scenario()) is None
    assert found == []
    assert any("Gave up waiting for missing node" in message for message in log_messages)
