"""Value types and capability surface of the host map widget.

Only the contract lives here; any widget binding that satisfies
:class:`MapView` and :class:`TimeSlider` can be animated.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol, Union, runtime_checkable

from scrollystory.config import GoToOptions


class NavigationError(RuntimeError):
    """The host rejected a navigation target."""


@dataclass(frozen=True)
class Point:
    x: float | None = None
    y: float | None = None
    z: float | None = None
    spatial_reference: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class Camera:
    position: Point
    heading: float | None = None
    tilt: float | None = None


@dataclass(frozen=True)
class Extent:
    xmin: float | None = None
    ymin: float | None = None
    xmax: float | None = None
    ymax: float | None = None
    spatial_reference: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class Viewpoint:
    rotation: float | None = None
    scale: float | None = None
    target_geometry: Extent | None = None
    camera: Camera | None = None


@dataclass(frozen=True)
class GeometryTarget:
    """Fit ``target`` and force ``rotation``; the host picks the scale."""

    target: Extent
    rotation: float | None = None


GoToTarget = Union[Camera, Viewpoint, GeometryTarget]


@dataclass(frozen=True)
class TimeExtent:
    start: datetime | None
    end: datetime | None


@dataclass(frozen=True)
class Lighting:
    type: str | None = None
    date: datetime | None = None
    display_utc_offset: float | None = None


@dataclass(frozen=True)
class Weather:
    type: str | None = None
    cloud_cover: float | str | None = None
    precipitation: float | str | None = None


@dataclass(frozen=True)
class Environment:
    lighting: Lighting
    weather: Weather
    atmosphere_enabled: bool | None = None
    stars_enabled: bool | None = None


@runtime_checkable
class MapView(Protocol):
    @property
    def has_camera(self) -> bool:
        """True for 3D scene views."""

    def go_to(self, target: GoToTarget, options: GoToOptions) -> None:
        """Navigate; raises :class:`NavigationError` when the target is rejected."""

    def set_environment(self, environment: Environment) -> None: ...

    def set_layer_visibility(self, layer_id: str, visible: bool) -> None: ...

    def set_track_renderer(self, renderer: Mapping[str, Any]) -> None: ...

    def set_navigation_enabled(self, enabled: bool) -> None: ...


@runtime_checkable
class TimeSlider(Protocol):
    def set_time_extent(self, extent: TimeExtent) -> None: ...

    def stop(self) -> None: ...

    def set_play_rate(self, milliseconds: int) -> None: ...


def parse_instant(value: Any) -> datetime:
    """Parse an ISO-8601 string or epoch milliseconds into an aware UTC datetime.

    Date-only and naive strings are read as UTC.
    """
    if isinstance(value, datetime):
        instant = value
    elif isinstance(value, bool):
        raise ValueError(f"Not an instant: {value!r}")
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            instant = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"Not an ISO-8601 instant: {value!r}") from exc
    else:
        raise ValueError(f"Not an instant: {value!r}")
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_epoch_ms(instant: datetime) -> float:
    return instant.timestamp() * 1000.0


def from_epoch_ms(milliseconds: float) -> datetime:
    return datetime.fromtimestamp(milliseconds / 1000.0, tz=timezone.utc)


def _optional_float(payload: Mapping[str, Any], key: str) -> float | None:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"'{key}' must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{key}' must be a number, got {value!r}") from exc


def camera_from_json(payload: Mapping[str, Any]) -> Camera:
    position = payload.get("position")
    if not isinstance(position, Mapping):
        raise ValueError("camera is missing 'position'")
    return Camera(
        position=Point(
            x=_optional_float(position, "x"),
            y=_optional_float(position, "y"),
            z=_optional_float(position, "z"),
            spatial_reference=position.get("spatialReference"),
        ),
        heading=_optional_float(payload, "heading"),
        tilt=_optional_float(payload, "tilt"),
    )


def extent_from_json(payload: Mapping[str, Any]) -> Extent:
    return Extent(
        xmin=_optional_float(payload, "xmin"),
        ymin=_optional_float(payload, "ymin"),
        xmax=_optional_float(payload, "xmax"),
        ymax=_optional_float(payload, "ymax"),
        spatial_reference=payload.get("spatialReference"),
    )


def viewpoint_from_json(payload: Mapping[str, Any]) -> Viewpoint:
    geometry = payload.get("targetGeometry")
    camera = payload.get("camera")
    if geometry is not None and not isinstance(geometry, Mapping):
        raise ValueError("viewpoint 'targetGeometry' must be an object")
    if camera is not None and not isinstance(camera, Mapping):
        raise ValueError("viewpoint 'camera' must be an object")
    return Viewpoint(
        rotation=_optional_float(payload, "rotation"),
        scale=_optional_float(payload, "scale"),
        target_geometry=extent_from_json(geometry) if geometry is not None else None,
        camera=camera_from_json(camera) if camera is not None else None,
    )
