from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from scrollystory.config import GoToOptions
from scrollystory.mapview.host import (
    Camera,
    Environment,
    GeometryTarget,
    GoToTarget,
    NavigationError,
    TimeExtent,
    Viewpoint,
)


@dataclass(frozen=True)
class HostCall:
    name: str
    args: tuple[Any, ...]


@dataclass
class RecordingMapView:
    """Map host that keeps the last applied state and a log of every call."""

    three_d: bool = False
    reject_navigation: bool = False
    calls: list[HostCall] = field(default_factory=list)
    target: GoToTarget | None = None
    last_options: GoToOptions | None = None
    environment: Environment | None = None
    layers: dict[str, bool] = field(default_factory=dict)
    track_renderer: Mapping[str, Any] | None = None
    navigation_enabled: bool = True

    @property
    def has_camera(self) -> bool:
        return self.three_d

    @property
    def camera(self) -> Camera | None:
        return self.target if isinstance(self.target, Camera) else None

    @property
    def viewpoint(self) -> Viewpoint | None:
        return self.target if isinstance(self.target, Viewpoint) else None

    @property
    def geometry_target(self) -> GeometryTarget | None:
        return self.target if isinstance(self.target, GeometryTarget) else None

    def go_to(self, target: GoToTarget, options: GoToOptions) -> None:
        self.calls.append(HostCall("go_to", (target, options)))
        if self.reject_navigation:
            raise NavigationError(f"Target rejected: {target!r}")
        self.target = target
        self.last_options = options

    def set_environment(self, environment: Environment) -> None:
        self.calls.append(HostCall("set_environment", (environment,)))
        self.environment = environment

    def set_layer_visibility(self, layer_id: str, visible: bool) -> None:
        self.calls.append(HostCall("set_layer_visibility", (layer_id, visible)))
        self.layers[layer_id] = visible

    def set_track_renderer(self, renderer: Mapping[str, Any]) -> None:
        self.calls.append(HostCall("set_track_renderer", (renderer,)))
        self.track_renderer = renderer

    def set_navigation_enabled(self, enabled: bool) -> None:
        self.calls.append(HostCall("set_navigation_enabled", (enabled,)))
        self.navigation_enabled = enabled

    def call_names(self) -> list[str]:
        return [call.name for call in self.calls]


@dataclass
class RecordingTimeSlider:
    extent: TimeExtent | None = None
    playing: bool = True
    play_rate: int | None = None
    calls: list[HostCall] = field(default_factory=list)

    def set_time_extent(self, extent: TimeExtent) -> None:
        self.calls.append(HostCall("set_time_extent", (extent,)))
        self.extent = extent

    def stop(self) -> None:
        self.calls.append(HostCall("stop", ()))
        self.playing = False

    def set_play_rate(self, milliseconds: int) -> None:
        self.calls.append(HostCall("set_play_rate", (milliseconds,)))
        self.play_rate = milliseconds
