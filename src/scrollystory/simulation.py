"""Offline replay of a scroll session.

A scenario describes the story panels and a list of scroll positions. The
replay builds an in-memory story document, emulates the story page (docking
the container and moving the frame's ``#slide`` fragment) and runs the real
tracker, channel and animator against a recording map host.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from scrollystory.animation.animator import MapAnimator
from scrollystory.channel import MessageChannel
from scrollystory.choreography.models import KeyframeSlide
from scrollystory.choreography.store import ChoreographyStore
from scrollystory.config import AnimationConfig, NodeConfig
from scrollystory.mapview.host import GoToTarget
from scrollystory.mapview.recording import RecordingMapView, RecordingTimeSlider
from scrollystory.tracker.document import BoxStyle, Document, Element
from scrollystory.tracker.geometry import PanelBox, panel_height
from scrollystory.tracker.session import StoryScrollListener

DEFAULT_FRAME_SRC = "https://maps.example.org/map/index.html"


class PanelSpec(BaseModel):
    height: float = Field(gt=0)
    margin_top: float = Field(default=0.0, ge=0)
    margin_bottom: float = Field(default=0.0, ge=0)
    padding_bottom: float = Field(default=0.0, ge=0)


class ScrollScenario(BaseModel):
    panels: list[PanelSpec] = Field(min_length=1)
    scroll: list[float] = Field(min_length=1)
    dock_at: float = Field(default=0.0, ge=0)
    undock_at: float | None = None
    frame_src: str = DEFAULT_FRAME_SRC
    three_d: bool = False

    @field_validator("scroll")
    @classmethod
    def validate_scroll(cls, value: list[float]) -> list[float]:
        if any(position < 0 for position in value):
            raise ValueError("scroll positions must be >= 0")
        return value

    @model_validator(mode="after")
    def validate_undock(self) -> ScrollScenario:
        if self.undock_at is not None and self.undock_at <= self.dock_at:
            raise ValueError("undock_at must be greater than dock_at")
        return self


@dataclass(frozen=True)
class SimulationStep:
    scroll_y: float
    docked: bool
    slide: int | None
    progress: float | None
    target: GoToTarget | None
    time_end: datetime | None

    def as_row(self) -> dict[str, Any]:
        return {
            "scroll_y": self.scroll_y,
            "docked": self.docked,
            "slide": self.slide,
            "progress": self.progress,
            "target": type(self.target).__name__ if self.target is not None else None,
            "time_end": self.time_end.isoformat() if self.time_end is not None else None,
        }


def load_scenario(path: str | Path) -> ScrollScenario:
    scenario_path = Path(path)
    if not scenario_path.exists():
        raise FileNotFoundError(f"Scenario file does not exist: {scenario_path}")
    try:
        return ScrollScenario.model_validate(json.loads(scenario_path.read_text(encoding="utf-8")))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Scenario is not valid JSON: {scenario_path} ({exc.msg})") from exc
    except ValidationError as exc:
        message = exc.errors()[0].get("msg", "Invalid scenario")
        raise ValueError(f"{scenario_path}: {message}") from exc


def _panel_boxes(scenario: ScrollScenario) -> list[PanelBox]:
    last = len(scenario.panels) - 1
    return [
        PanelBox(
            offset_height=spec.height,
            margin_top=spec.margin_top,
            margin_bottom=spec.margin_bottom,
            padding_bottom=spec.padding_bottom,
            is_first=index == 0,
            is_last=index == last and index != 0,
        )
        for index, spec in enumerate(scenario.panels)
    ]


def build_story_document(scenario: ScrollScenario, node_config: NodeConfig) -> tuple[Document, Element, Element]:
    """Return the document, the dockable container and the map frame."""
    document = Document()
    node = document.root.append_child(Element("div", attributes={"id": node_config.node_id}))
    wrapper = node.append_child(Element("div"))
    container = wrapper.append_child(
        Element("div", attributes={"class": " ".join(node_config.dock_container_fragments)})
    )
    for box in _panel_boxes(scenario):
        classes = [node_config.panel_class]
        if box.is_first:
            classes.append(node_config.first_panel_class)
        if box.is_last:
            classes.append(node_config.last_panel_class)
        container.append_child(
            Element(
                "div",
                attributes={"class": " ".join(classes)},
                offset_height=box.offset_height,
                style=BoxStyle(
                    margin_top=box.margin_top,
                    margin_bottom=box.margin_bottom,
                    padding_bottom=box.padding_bottom,
                ),
            )
        )
    frame = container.append_child(Element(node_config.frame_tag, attributes={"src": f"{scenario.frame_src}#0"}))
    document.flush_mutations()
    return document, container, frame


def _active_slide(boxes: list[PanelBox], origin: float, scroll_y: float) -> int:
    position = origin
    for index, box in enumerate(boxes):
        position += panel_height(box)
        if scroll_y < position:
            return index
    return len(boxes) - 1


async def run_simulation(
    scenario: ScrollScenario,
    slides: list[KeyframeSlide],
    config: AnimationConfig | None = None,
    node_config: NodeConfig | None = None,
) -> list[SimulationStep]:
    config = config or AnimationConfig()
    node_config = node_config or NodeConfig()
    document, container, frame = build_story_document(scenario, node_config)
    boxes = _panel_boxes(scenario)
    undock_at = scenario.undock_at
    if undock_at is None:
        undock_at = scenario.dock_at + sum(panel_height(box) for box in boxes)

    channel = MessageChannel(queued=True)
    map_view = RecordingMapView(three_d=scenario.three_d)
    time_slider = RecordingTimeSlider()
    animator = MapAnimator(config, map_view, time_slider, store=ChoreographyStore(slides))
    animator.configure_host()
    animator.listen(channel)
    animator.on_view_ready()

    listener = StoryScrollListener(document, channel, node_config)
    listener.start()
    await asyncio.gather(*(watch.task for watch in listener.watches if watch.task is not None))
    channel.drain()

    steps: list[SimulationStep] = []
    try:
        for scroll_y in scenario.scroll:
            document.scroll_to(scroll_y, dispatch=False)
            if scenario.dock_at <= scroll_y < undock_at:
                container.add_class(node_config.docked_class)
            else:
                container.remove_class(node_config.docked_class)
            slide = _active_slide(boxes, scenario.dock_at, scroll_y)
            frame.set_attribute("src", f"{scenario.frame_src}#{slide}")

            document.dispatch_scroll()
            document.flush_mutations()
            channel.drain()
            steps.append(
                SimulationStep(
                    scroll_y=scroll_y,
                    docked=listener.context.dock.is_docked,
                    slide=animator.current_slide_index,
                    progress=animator.current_progress,
                    target=map_view.target,
                    time_end=time_slider.extent.end if time_slider.extent is not None else None,
                )
            )
    finally:
        listener.dispose()
        animator.close()
    return steps


def simulate(
    scenario: ScrollScenario,
    slides: list[KeyframeSlide],
    config: AnimationConfig | None = None,
    node_config: NodeConfig | None = None,
) -> list[SimulationStep]:
    return asyncio.run(run_simulation(scenario, slides, config, node_config))
