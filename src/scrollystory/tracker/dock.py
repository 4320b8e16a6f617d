from __future__ import annotations

from enum import Enum

from loguru import logger


class DockPhase(str, Enum):
    undocked = "undocked"
    docked = "docked"


class DockTransition(str, Enum):
    dock = "dock"
    undock = "undock"


class ScrollDirection(str, Enum):
    up = "up"
    down = "down"


class DockTracker:
    """Two-state machine fed by observations of the pinned container's class list.

    The anchor (``dock_start_scroll``) is recorded only when docking happens
    while scrolling down. Entering the dock while scrolling up keeps whatever
    anchor the previous downward entry recorded. The stored value survives an
    undock but :attr:`anchor` reports ``None`` until the next dock.
    """

    def __init__(self) -> None:
        self.phase = DockPhase.undocked
        self._anchor: float | None = None

    @property
    def is_docked(self) -> bool:
        return self.phase is DockPhase.docked

    @property
    def anchor(self) -> float | None:
        return self._anchor if self.is_docked else None

    @property
    def last_anchor(self) -> float | None:
        return self._anchor

    def observe(
        self,
        docked_marker: bool,
        scroll_y: float,
        direction: ScrollDirection,
    ) -> DockTransition | None:
        """Feed one observation; repeated identical observations are no-ops."""
        if docked_marker and self.phase is DockPhase.undocked:
            self.phase = DockPhase.docked
            if direction is ScrollDirection.down:
                self._anchor = float(scroll_y)
            logger.debug("Docked at scroll {} ({}); tracking from {}", scroll_y, direction.value, self._anchor)
            return DockTransition.dock
        if not docked_marker and self.phase is DockPhase.docked:
            self.phase = DockPhase.undocked
            logger.debug("Undocked at scroll {}", scroll_y)
            return DockTransition.undock
        return None
