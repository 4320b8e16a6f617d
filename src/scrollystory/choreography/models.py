from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

HANDLED_KEYS = ("viewpoint", "timeSlider", "environment", "layerVisibility", "trackRenderer")


class KeyframeSlide(BaseModel):
    """One keyframe of the choreography.

    Fields stay as raw JSON objects; they are parsed lazily by the animation
    handlers so that one malformed field only disables its own animation.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    viewpoint: dict[str, Any] | None = None
    time_slider: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("timeSlider", "time_slider"),
        serialization_alias="timeSlider",
    )
    environment: dict[str, Any] | None = None
    layer_visibility: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("layerVisibility", "layer_visibility"),
        serialization_alias="layerVisibility",
    )
    track_renderer: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("trackRenderer", "track_renderer"),
        serialization_alias="trackRenderer",
    )

    def get(self, key: str) -> Any:
        """Field value by its JSON key (``timeSlider``, ``viewpoint``, ...)."""
        attribute = {
            "timeSlider": "time_slider",
            "layerVisibility": "layer_visibility",
            "trackRenderer": "track_renderer",
        }.get(key, key)
        if attribute in type(self).model_fields:
            return getattr(self, attribute)
        return (self.model_extra or {}).get(key)

    def present_keys(self) -> list[str]:
        return [key for key in HANDLED_KEYS if self.get(key) is not None]
