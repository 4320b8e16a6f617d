from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np
from loguru import logger

from scrollystory.choreography.models import KeyframeSlide
from scrollystory.config import AnimationConfig, GoToOptions, MapFit
from scrollystory.mapview.host import (
    Camera,
    Environment,
    Extent,
    GeometryTarget,
    GoToTarget,
    Lighting,
    MapView,
    NavigationError,
    Point,
    TimeExtent,
    TimeSlider,
    Viewpoint,
    Weather,
    camera_from_json,
    from_epoch_ms,
    parse_instant,
    to_epoch_ms,
    viewpoint_from_json,
)

DAY_MS = 24 * 60 * 60 * 1000
UNIT_TO_MS: dict[str, float] = {
    "milliseconds": 1,
    "seconds": 1000,
    "minutes": 60 * 1000,
    "hours": 60 * 60 * 1000,
    "days": DAY_MS,
    "weeks": 7 * DAY_MS,
    "months": 30 * DAY_MS,
    "years": 365 * DAY_MS,
}
SCRUB_OPTIONS = GoToOptions(animate=False, duration=None)
STEP_RATIO_DECIMALS = 9


class InterpolationError(ValueError):
    """A keyframe field is malformed; only that field's animation is skipped."""


def ease_in_out(t: float) -> float:
    t = float(np.clip(t, 0.0, 1.0))
    return 2 * t * t if t < 0.5 else -1 + (4 - 2 * t) * t


def lerp(a: float | None, b: float | None, t: float) -> float | None:
    if a is None or b is None:
        return a if a is not None else b
    # Weighted form: exactly a at t=0 and exactly b at t=1.
    return a * (1.0 - t) + b * t


def step_to_ms(step: Any, unit: str | None) -> float:
    try:
        amount = float(step)
    except (TypeError, ValueError) as exc:
        raise InterpolationError(f"time slider step must be numeric, got {step!r}") from exc
    return amount * UNIT_TO_MS.get(unit or "", 0)


def snap_instant_ms(value_ms: float, start_ms: float, end_ms: float, step_ms: float) -> float:
    """Snap ``value_ms`` up to the next step boundary after ``start_ms`` and clamp to the window."""
    if step_ms > 0:
        ratio = np.round((value_ms - start_ms) / step_ms, STEP_RATIO_DECIMALS)
        value_ms = start_ms + float(np.ceil(ratio)) * step_ms
    return float(np.clip(value_ms, start_ms, end_ms)) if start_ms <= end_ms else value_ms


def time_window(spec: Mapping[str, Any]) -> tuple[float, float, Any, str | None]:
    def pick(*keys: str) -> Any:
        return next((spec[key] for key in keys if spec.get(key) is not None), None)

    try:
        start = parse_instant(pick("start", "timeSliderStart"))
        end = parse_instant(pick("end", "timeSliderEnd"))
    except ValueError as exc:
        raise InterpolationError(f"time slider window: {exc}") from exc
    step = pick("step", "timeSliderStep")
    unit = pick("unit", "timeSliderUnit")
    return to_epoch_ms(start), to_epoch_ms(end), 0 if step is None else step, unit


def navigate(map_view: MapView, target: GoToTarget, options: GoToOptions) -> bool:
    try:
        map_view.go_to(target, options)
    except NavigationError as exc:
        logger.error("Error setting {}: {}", type(target).__name__.lower(), exc)
        return False
    return True


def _to_number(value: Any) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if np.isnan(number) else number


def _interpolate_weather_value(
    current: Mapping[str, Any],
    upcoming: Mapping[str, Any],
    key: str,
    progress: float,
) -> Any:
    raw = current.get(key)
    a = _to_number(raw)
    b = _to_number(upcoming.get(key))
    if a is None or b is None:
        return raw
    return lerp(a, b, progress)


@dataclass(frozen=True)
class InterpolationContext:
    current: KeyframeSlide
    upcoming: KeyframeSlide | None
    progress: float
    map_view: MapView
    time_slider: TimeSlider | None


Handler = Callable[[InterpolationContext], bool]


class InterpolationEngine:
    """Blends the current and next keyframes for a scroll progress value."""

    def __init__(self, config: AnimationConfig | None = None) -> None:
        self.config = config or AnimationConfig()
        self.handlers: dict[str, Handler] = {
            "viewpoint": self.interpolate_viewpoint,
            "timeSlider": self.interpolate_time_slider,
            "environment": self.interpolate_environment,
        }

    def apply(
        self,
        current: KeyframeSlide,
        upcoming: KeyframeSlide | None,
        progress: float,
        map_view: MapView,
        time_slider: TimeSlider | None = None,
    ) -> list[str]:
        """Run the handler of every key present on ``current``; returns the keys applied."""
        context = InterpolationContext(
            current=current,
            upcoming=upcoming,
            progress=float(np.clip(progress, 0.0, 1.0)),
            map_view=map_view,
            time_slider=time_slider,
        )
        applied: list[str] = []
        for key in current.present_keys():
            handler = self.handlers.get(key)
            if handler is None:
                continue
            try:
                if handler(context):
                    applied.append(key)
            except InterpolationError as exc:
                logger.warning("Error processing '{}': {}", key, exc)
            except Exception:
                logger.exception("Error processing '{}'", key)
        return applied

    # viewpoint ------------------------------------------------------------
    def interpolate_viewpoint(self, ctx: InterpolationContext) -> bool:
        current_vp = ctx.current.viewpoint
        next_vp = ctx.upcoming.viewpoint if ctx.upcoming is not None else None
        u = ease_in_out(ctx.progress)

        current_camera = (current_vp or {}).get("camera")
        next_camera = (next_vp or {}).get("camera")
        if ctx.map_view.has_camera and (current_camera or next_camera):
            if not (current_camera and next_camera):
                return False
            try:
                a = camera_from_json(current_camera)
                b = camera_from_json(next_camera)
            except ValueError as exc:
                raise InterpolationError(f"camera: {exc}") from exc
            return navigate(ctx.map_view, blend_camera(a, b, u), SCRUB_OPTIONS)

        if not current_vp or not next_vp:
            return False
        try:
            a_vp = viewpoint_from_json(current_vp)
            b_vp = viewpoint_from_json(next_vp)
        except ValueError as exc:
            raise InterpolationError(f"viewpoint: {exc}") from exc
        if a_vp.target_geometry is None:
            raise InterpolationError("current viewpoint has no targetGeometry")

        blended = blend_viewpoint(a_vp, b_vp, u)
        target: GoToTarget = blended
        if self.config.map_fit is not MapFit.scale and blended.target_geometry is not None:
            target = GeometryTarget(target=blended.target_geometry, rotation=blended.rotation)
        return navigate(ctx.map_view, target, self.config.go_to_config)

    # time slider ----------------------------------------------------------
    def interpolate_time_slider(self, ctx: InterpolationContext) -> bool:
        if ctx.time_slider is None:
            logger.debug("No time slider on the host; skipping timeSlider")
            return False
        spec = ctx.current.time_slider or {}
        start_ms, end_ms, step, unit = time_window(spec)
        value_ms = start_ms * (1.0 - ctx.progress) + end_ms * ctx.progress
        snapped = snap_instant_ms(value_ms, start_ms, end_ms, step_to_ms(step, unit))
        ctx.time_slider.set_time_extent(TimeExtent(start=None, end=from_epoch_ms(snapped)))
        ctx.time_slider.stop()
        return True

    # environment ----------------------------------------------------------
    def interpolate_environment(self, ctx: InterpolationContext) -> bool:
        current_env = ctx.current.environment
        next_env = ctx.upcoming.environment if ctx.upcoming is not None else None
        if not current_env or not next_env:
            return False

        current_lighting = current_env.get("lighting") or {}
        next_lighting = next_env.get("lighting") or {}
        try:
            start_ms = to_epoch_ms(parse_instant(current_lighting.get("datetime")))
            end_ms = to_epoch_ms(parse_instant(next_lighting.get("datetime")))
        except ValueError as exc:
            raise InterpolationError(f"lighting datetime: {exc}") from exc
        lighting_ms = start_ms * (1.0 - ctx.progress) + end_ms * ctx.progress

        current_weather = current_env.get("weather") or {}
        next_weather = next_env.get("weather") or {}
        # Types snap to the upcoming slide; magnitudes blend underneath.
        environment = Environment(
            lighting=Lighting(
                type=next_lighting.get("type"),
                date=from_epoch_ms(lighting_ms),
                display_utc_offset=_to_number(next_lighting.get("displayUTCOffset")),
            ),
            weather=Weather(
                type=next_weather.get("type"),
                cloud_cover=_interpolate_weather_value(
                    current_weather, next_weather, "cloudCover", ctx.progress
                ),
                precipitation=_interpolate_weather_value(
                    current_weather, next_weather, "precipitation", ctx.progress
                ),
            ),
            atmosphere_enabled=current_env.get("atmosphereEnabled"),
            stars_enabled=current_env.get("starsEnabled"),
        )
        ctx.map_view.set_environment(environment)
        return True


def blend_camera(a: Camera, b: Camera, u: float) -> Camera:
    return Camera(
        position=Point(
            x=lerp(a.position.x, b.position.x, u),
            y=lerp(a.position.y, b.position.y, u),
            z=lerp(a.position.z, b.position.z, u),
            spatial_reference=a.position.spatial_reference or b.position.spatial_reference,
        ),
        heading=lerp(a.heading, b.heading, u),
        tilt=lerp(a.tilt, b.tilt, u),
    )


def blend_viewpoint(a: Viewpoint, b: Viewpoint, u: float) -> Viewpoint:
    ga = a.target_geometry or Extent()
    gb = b.target_geometry or Extent()
    return Viewpoint(
        rotation=lerp(a.rotation, b.rotation, u),
        scale=lerp(a.scale, b.scale, u),
        target_geometry=Extent(
            xmin=lerp(ga.xmin, gb.xmin, u),
            ymin=lerp(ga.ymin, gb.ymin, u),
            xmax=lerp(ga.xmax, gb.xmax, u),
            ymax=lerp(ga.ymax, gb.ymax, u),
            spatial_reference=ga.spatial_reference or gb.spatial_reference,
        ),
    )
