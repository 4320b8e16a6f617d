"""In-memory observable element tree.

This is the surface the tracker consumes from a story document: attributes,
class tokens, layout boxes, a scroll position and batched mutation observation.
Anything that exposes the same methods (for example a bridge to a live page)
can be handed to the tracker instead.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Literal

from loguru import logger

MutationKind = Literal["attributes", "childList"]


@dataclass(frozen=True)
class BoxStyle:
    margin_top: float = 0.0
    margin_bottom: float = 0.0
    padding_bottom: float = 0.0


@dataclass(frozen=True)
class MutationRecord:
    kind: MutationKind
    target: Element
    attribute_name: str | None = None
    old_value: str | None = None


class Subscription:
    """Handle returned by every observer/listener registration."""

    def __init__(self, on_dispose: Callable[[], None]) -> None:
        self._on_dispose = on_dispose
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._on_dispose()


@dataclass(eq=False)
class _Observer:
    target: Element
    callback: Callable[[list[MutationRecord]], None]
    attribute_filter: frozenset[str] | None
    attributes: bool
    child_list: bool
    subtree: bool
    pending: list[MutationRecord] = field(default_factory=list)

    def matches(self, record: MutationRecord) -> bool:
        if record.target is not self.target:
            if not self.subtree or not self.target.contains(record.target):
                return False
        if record.kind == "childList":
            return self.child_list
        if not self.attributes:
            return False
        return self.attribute_filter is None or record.attribute_name in self.attribute_filter


class Element:
    def __init__(
        self,
        tag: str,
        *,
        attributes: dict[str, str] | None = None,
        offset_height: float = 0.0,
        style: BoxStyle | None = None,
    ) -> None:
        self.tag = tag.lower()
        self._attributes: dict[str, str] = dict(attributes or {})
        self.offset_height = float(offset_height)
        self.style = style or BoxStyle()
        self.children: list[Element] = []
        self.parent: Element | None = None
        self.document: Document | None = None

    def __repr__(self) -> str:
        ident = self._attributes.get("id")
        return f"<{self.tag}{' #' + ident if ident else ''}>"

    # attributes -------------------------------------------------------
    def get_attribute(self, name: str) -> str | None:
        return self._attributes.get(name)

    def set_attribute(self, name: str, value: str) -> None:
        old_value = self._attributes.get(name)
        self._attributes[name] = value
        if old_value != value:
            self._record("attributes", attribute_name=name, old_value=old_value)

    def remove_attribute(self, name: str) -> None:
        if name not in self._attributes:
            return
        old_value = self._attributes.pop(name)
        self._record("attributes", attribute_name=name, old_value=old_value)

    @property
    def id(self) -> str | None:
        return self._attributes.get("id")

    @property
    def class_list(self) -> list[str]:
        return self._attributes.get("class", "").split()

    def has_class(self, token: str) -> bool:
        return token in self.class_list

    def add_class(self, token: str) -> None:
        tokens = self.class_list
        if token not in tokens:
            self.set_attribute("class", " ".join([*tokens, token]))

    def remove_class(self, token: str) -> None:
        tokens = self.class_list
        if token in tokens:
            self.set_attribute("class", " ".join(t for t in tokens if t != token))

    # tree ---------------------------------------------------------------
    def append_child(self, child: Element) -> Element:
        if child.parent is not None:
            child.parent.remove_child(child)
        child.parent = self
        child._adopt(self.document)
        self.children.append(child)
        self._record("childList")
        return child

    def remove_child(self, child: Element) -> None:
        self.children.remove(child)
        child.parent = None
        child._adopt(None)
        self._record("childList")

    def contains(self, other: Element) -> bool:
        node: Element | None = other
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False

    def iter_descendants(self) -> Iterator[Element]:
        for child in self.children:
            yield child
            yield from child.iter_descendants()

    def find(self, predicate: Callable[[Element], bool]) -> Element | None:
        return next((el for el in self.iter_descendants() if predicate(el)), None)

    def find_all(self, predicate: Callable[[Element], bool]) -> list[Element]:
        return [el for el in self.iter_descendants() if predicate(el)]

    def _adopt(self, document: Document | None) -> None:
        self.document = document
        for child in self.children:
            child._adopt(document)

    def _record(self, kind: MutationKind, **details: Any) -> None:
        if self.document is not None:
            self.document.queue_mutation(MutationRecord(kind=kind, target=self, **details))


class Document:
    def __init__(self) -> None:
        self.root = Element("body")
        self.root.document = self
        self.scroll_y = 0.0
        self._observers: list[_Observer] = []
        self._scroll_listeners: list[Callable[[float], None]] = []

    def find(self, predicate: Callable[[Element], bool]) -> Element | None:
        return self.root.find(predicate)

    def find_all(self, predicate: Callable[[Element], bool]) -> list[Element]:
        return self.root.find_all(predicate)

    def get_element_by_id(self, element_id: str) -> Element | None:
        return self.find(lambda el: el.id == element_id)

    # scrolling ----------------------------------------------------------
    def add_scroll_listener(self, listener: Callable[[float], None]) -> Subscription:
        self._scroll_listeners.append(listener)
        return Subscription(lambda: self._scroll_listeners.remove(listener))

    def scroll_to(self, scroll_y: float, *, dispatch: bool = True) -> None:
        self.scroll_y = float(scroll_y)
        if dispatch:
            self.dispatch_scroll()

    def dispatch_scroll(self) -> None:
        for listener in list(self._scroll_listeners):
            listener(self.scroll_y)

    # mutation observation ----------------------------------------------
    def observe(
        self,
        target: Element,
        callback: Callable[[list[MutationRecord]], None],
        *,
        attributes: bool = False,
        attribute_filter: list[str] | None = None,
        child_list: bool = False,
        subtree: bool = False,
    ) -> Subscription:
        if not (attributes or attribute_filter or child_list):
            raise ValueError("observe() needs attributes, attribute_filter or child_list")
        observer = _Observer(
            target=target,
            callback=callback,
            attribute_filter=frozenset(attribute_filter) if attribute_filter else None,
            attributes=attributes or bool(attribute_filter),
            child_list=child_list,
            subtree=subtree,
        )
        self._observers.append(observer)
        return Subscription(lambda: self._observers.remove(observer))

    def queue_mutation(self, record: MutationRecord) -> None:
        for observer in self._observers:
            if observer.matches(record):
                observer.pending.append(record)

    def flush_mutations(self) -> int:
        """Deliver queued records, one callback per observer. Returns callbacks made."""
        delivered = 0
        # Callbacks may mutate the tree again; keep flushing until quiet.
        while True:
            ready = [obs for obs in self._observers if obs.pending]
            if not ready:
                return delivered
            for observer in ready:
                records, observer.pending = observer.pending, []
                if observer not in self._observers:
                    continue
                try:
                    observer.callback(records)
                except Exception:
                    logger.exception("Mutation observer callback failed for {}", observer.target)
                delivered += 1
