from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_CHOREOGRAPHY = "mapChoreography.json"
DEFAULT_MUTED_KEYS = ("viewpoint", "timeSlider", "environment")


class ItemType(str, Enum):
    webmap = "webmap"
    webscene = "webscene"


class MapFit(str, Enum):
    extent = "extent"
    scale = "scale"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class GoToOptions(_CamelModel):
    animate: bool = True
    duration: int | None = Field(default=1000, description="Animation duration in ms")

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, value: int | None) -> int | None:
        if value is not None and value < 0:
            raise ValueError(f"duration must be >= 0, got {value}")
        return value


class AnimationConfig(_CamelModel):
    item_type: ItemType = ItemType.webmap
    item_id: str | None = None
    zoom: float | None = None
    center: str | None = None
    time_play_rate: int | None = Field(default=None, description="Time slider play rate in ms")
    debug_mode: bool = False
    disable_map_nav: bool = False
    map_fit: MapFit = MapFit.extent
    map_choreography: str = DEFAULT_CHOREOGRAPHY
    go_to_config: GoToOptions = Field(default_factory=GoToOptions)
    embedded_muted_keys: tuple[str, ...] = DEFAULT_MUTED_KEYS

    @field_validator("time_play_rate")
    @classmethod
    def validate_play_rate(cls, value: int | None) -> int | None:
        if value is not None and value <= 0:
            raise ValueError(f"timePlayRate must be > 0, got {value}")
        return value

    @field_validator("map_choreography")
    @classmethod
    def validate_choreography(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("mapChoreography must not be empty")
        return value

    def resolve_choreography(self, base_dir: str | Path) -> str:
        if _is_url(self.map_choreography):
            return self.map_choreography
        path = Path(self.map_choreography)
        if path.is_absolute():
            return str(path)
        return str(Path(base_dir) / path)

    def as_summary(self) -> dict[str, str]:
        return {
            "item_type": self.item_type.value,
            "map_fit": self.map_fit.value,
            "map_choreography": self.map_choreography,
            "embedded_muted_keys": ", ".join(self.embedded_muted_keys),
        }


class NodeConfig(_CamelModel):
    node_id: str = Field(default="n-HBRFEg", description="Id of the story block hosting the map")
    dock_container_fragments: tuple[str, ...] = ("jsx-", "container", "main")
    docked_class: str = "docked"
    panel_class: str = "immersive-narrative-panel"
    first_panel_class: str = "first"
    last_panel_class: str = "last"
    frame_tag: str = "iframe"
    poll_interval: float = Field(default=0.1, description="Element discovery interval in seconds")

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError(f"poll_interval must be > 0, got {value}")
        return value

    @field_validator("dock_container_fragments")
    @classmethod
    def validate_fragments(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("dock_container_fragments must not be empty")
        return value


def _is_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def load_animation_config(path: str | Path) -> AnimationConfig:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Animation config does not exist: {config_path}")
    try:
        payload: Any = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Animation config is not valid JSON: {config_path} ({exc.msg})") from exc
    if not isinstance(payload, dict):
        raise ValueError(f"Animation config must be a JSON object: {config_path}")
    try:
        config = AnimationConfig.model_validate(payload)
    except ValidationError as exc:
        message = exc.errors()[0].get("msg", "Invalid animation config")
        raise ValueError(f"{config_path}: {message}") from exc
    resolved = config.resolve_choreography(config_path.parent)
    return config.model_copy(update={"map_choreography": resolved})
