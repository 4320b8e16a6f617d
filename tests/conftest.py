from __future__ import annotations

import copy
import json
import sys
from pathlib import Path
from typing import Any

import pytest
from loguru import logger

from scrollystory.choreography.models import KeyframeSlide

SLIDES: list[dict[str, Any]] = [
    {
        "viewpoint": {
            "rotation": 0,
            "scale": 1000,
            "targetGeometry": {"xmin": 0, "ymin": 0, "xmax": 10, "ymax": 10, "spatialReference": {"wkid": 4326}},
        },
        "timeSlider": {"start": "2020-01-01", "end": "2020-01-10", "step": 1, "unit": "days"},
        "layerVisibility": {"roads": True, "rivers": False},
    },
    {
        "viewpoint": {
            "rotation": 90,
            "scale": 500,
            "targetGeometry": {"xmin": 10, "ymin": 20, "xmax": 30, "ymax": 40, "spatialReference": {"wkid": 4326}},
        },
        "timeSlider": {"start": "2020-02-01", "end": "2020-03-01", "step": 1, "unit": "weeks"},
        "layerVisibility": {"rivers": True},
    },
    {
        "viewpoint": {
            "rotation": 180,
            "scale": 250,
            "targetGeometry": {"xmin": 20, "ymin": 30, "xmax": 40, "ymax": 50},
        },
        "trackRenderer": {"type": "simple", "symbol": {"color": [255, 0, 0]}},
    },
]


@pytest.fixture(autouse=True)
def _reset_loguru():
    yield
    logger.remove()
    logger.add(lambda message: sys.stderr.write(message), level="WARNING")


@pytest.fixture()
def log_messages():
    messages: list[str] = []
    sink_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    yield messages
    logger.remove(sink_id)


@pytest.fixture()
def slide_payloads() -> list[dict[str, Any]]:
    return copy.deepcopy(SLIDES)


@pytest.fixture()
def slides(slide_payloads: list[dict[str, Any]]) -> list[KeyframeSlide]:
    return [KeyframeSlide.model_validate(item) for item in slide_payloads]


@pytest.fixture()
def choreography_file(tmp_path: Path, slide_payloads: list[dict[str, Any]]) -> Path:
    path = tmp_path / "mapChoreography.json"
    path.write_text(json.dumps(slide_payloads), encoding="utf-8")
    return path
