from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from scrollystory.tracker.document import Element


@dataclass(frozen=True)
class PanelBox:
    offset_height: float
    margin_top: float = 0.0
    margin_bottom: float = 0.0
    padding_bottom: float = 0.0
    is_first: bool = False
    is_last: bool = False

    @classmethod
    def from_element(
        cls,
        element: Element,
        *,
        first_class: str = "first",
        last_class: str = "last",
    ) -> PanelBox:
        return cls(
            offset_height=element.offset_height,
            margin_top=element.style.margin_top,
            margin_bottom=element.style.margin_bottom,
            padding_bottom=element.style.padding_bottom,
            is_first=element.has_class(first_class),
            is_last=element.has_class(last_class),
        )


@dataclass(frozen=True)
class ScrollBounds:
    start: float
    end: float


def panel_height(panel: PanelBox) -> float:
    # Lead-in margin of the first panel and lead-out padding of the last one are not scrollable.
    if panel.is_first:
        return panel.offset_height - panel.margin_top
    if panel.is_last:
        return panel.offset_height - panel.padding_bottom
    return panel.offset_height + panel.margin_top + panel.margin_bottom


def scroll_bounds(
    panels: Sequence[PanelBox],
    slide_index: int,
    dock_start_scroll: float | None,
) -> ScrollBounds:
    """Scroll-pixel bounds of ``panels[slide_index]`` measured from the dock anchor.

    A missing anchor yields NaN bounds; callers guard on the anchor first.
    """
    if slide_index < 0 or slide_index >= len(panels):
        raise IndexError(f"slide_index {slide_index} out of range for {len(panels)} panels")
    anchor = np.nan if dock_start_scroll is None else float(dock_start_scroll)
    heights = np.asarray([panel_height(panel) for panel in panels[: slide_index + 1]], dtype=np.float64)
    start = anchor + float(heights[:slide_index].sum())
    return ScrollBounds(start=start, end=start + float(heights[slide_index]))


def panel_progress(
    panels: Sequence[PanelBox],
    slide_index: int,
    scroll_y: float,
    dock_start_scroll: float | None,
) -> float:
    """Normalized position of ``scroll_y`` inside the slide's bounds, clamped to [0, 1].

    Degenerate panels (zero height) or a missing anchor produce a non-finite
    ratio; see :func:`finite_progress`.
    """
    bounds = scroll_bounds(panels, slide_index, dock_start_scroll)
    span = bounds.end - bounds.start
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = np.float64(scroll_y - bounds.start) / np.float64(span)
    if np.isnan(ratio):
        return float("nan")
    return float(np.clip(ratio, 0.0, 1.0))


def finite_progress(value: float) -> float:
    return value if np.isfinite(value) else 0.0
