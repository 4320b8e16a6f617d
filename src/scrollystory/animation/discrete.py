from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from scrollystory.animation.interpolation import InterpolationError, navigate, time_window
from scrollystory.choreography.models import KeyframeSlide
from scrollystory.config import AnimationConfig, MapFit
from scrollystory.mapview.host import (
    Environment,
    GeometryTarget,
    GoToTarget,
    Lighting,
    MapView,
    TimeExtent,
    TimeSlider,
    Weather,
    from_epoch_ms,
    parse_instant,
    viewpoint_from_json,
)

Step = Callable[[KeyframeSlide, MapView, TimeSlider | None], bool]


class DiscreteSlideApplier:
    """Puts the map in a slide's exact state, without interpolation.

    Used on first load, on hash navigation and whenever the embedded scroll
    tracker reports a new slide index. When embedded, the keys listed in
    ``AnimationConfig.embedded_muted_keys`` are left to the continuous
    interpolation so they are not applied twice.
    """

    def __init__(self, config: AnimationConfig | None = None) -> None:
        self.config = config or AnimationConfig()
        self.steps: dict[str, Step] = {
            "viewpoint": self.apply_viewpoint,
            "timeSlider": self.apply_time_slider,
            "environment": self.apply_environment,
            "layerVisibility": self.apply_layer_visibility,
            "trackRenderer": self.apply_track_renderer,
        }

    def apply(
        self,
        slide: KeyframeSlide,
        map_view: MapView,
        time_slider: TimeSlider | None = None,
        *,
        is_embedded: bool = False,
    ) -> list[str]:
        muted = set(self.config.embedded_muted_keys) if is_embedded else set()
        applied: list[str] = []
        for key in slide.present_keys():
            if key in muted:
                continue
            try:
                if self.steps[key](slide, map_view, time_slider):
                    applied.append(key)
            except InterpolationError as exc:
                logger.warning("Error applying '{}': {}", key, exc)
            except Exception:
                logger.exception("Error applying '{}'", key)
        return applied

    def apply_viewpoint(self, slide: KeyframeSlide, map_view: MapView, time_slider: TimeSlider | None) -> bool:
        try:
            viewpoint = viewpoint_from_json(slide.viewpoint or {})
        except ValueError as exc:
            raise InterpolationError(f"viewpoint: {exc}") from exc

        target: GoToTarget
        if map_view.has_camera and viewpoint.camera is not None:
            target = viewpoint.camera
        elif viewpoint.target_geometry is None:
            raise InterpolationError("viewpoint has neither a camera nor a targetGeometry")
        elif self.config.map_fit is MapFit.scale:
            target = viewpoint
        else:
            target = GeometryTarget(target=viewpoint.target_geometry, rotation=viewpoint.rotation)
        return navigate(map_view, target, self.config.go_to_config)

    def apply_time_slider(self, slide: KeyframeSlide, map_view: MapView, time_slider: TimeSlider | None) -> bool:
        if time_slider is None:
            return False
        start_ms, end_ms, _, _ = time_window(slide.time_slider or {})
        time_slider.set_time_extent(TimeExtent(start=from_epoch_ms(start_ms), end=from_epoch_ms(end_ms)))
        time_slider.stop()
        return True

    def apply_environment(self, slide: KeyframeSlide, map_view: MapView, time_slider: TimeSlider | None) -> bool:
        env = slide.environment or {}
        lighting = env.get("lighting") or {}
        weather = env.get("weather") or {}
        date = None
        if lighting.get("datetime") is not None:
            try:
                date = parse_instant(lighting["datetime"])
            except ValueError as exc:
                raise InterpolationError(f"lighting datetime: {exc}") from exc
        map_view.set_environment(
            Environment(
                lighting=Lighting(
                    type=lighting.get("type"),
                    date=date,
                    display_utc_offset=lighting.get("displayUTCOffset"),
                ),
                weather=Weather(
                    type=weather.get("type"),
                    cloud_cover=weather.get("cloudCover"),
                    precipitation=weather.get("precipitation"),
                ),
                atmosphere_enabled=env.get("atmosphereEnabled"),
                stars_enabled=env.get("starsEnabled"),
            )
        )
        return True

    def apply_layer_visibility(
        self, slide: KeyframeSlide, map_view: MapView, time_slider: TimeSlider | None
    ) -> bool:
        layers = slide.layer_visibility or {}
        invalid = sorted(layer_id for layer_id, visible in layers.items() if not isinstance(visible, bool))
        if invalid:
            raise InterpolationError(f"layer visibility must be true/false for: {', '.join(invalid)}")
        for layer_id, visible in layers.items():
            map_view.set_layer_visibility(layer_id, visible)
        return bool(layers)

    def apply_track_renderer(self, slide: KeyframeSlide, map_view: MapView, time_slider: TimeSlider | None) -> bool:
        if not slide.track_renderer:
            return False
        map_view.set_track_renderer(slide.track_renderer)
        return True
