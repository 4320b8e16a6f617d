from __future__ import annotations

from pathlib import Path

import pytest

from scrollystory.animation.animator import MapAnimator
from scrollystory.channel import CONTROLLER_SOURCE, Envelope, InitPayload, MessageChannel, ProgressPayload
from scrollystory.choreography.models import KeyframeSlide
from scrollystory.choreography.store import ChoreographyStore, LoadError
from scrollystory.config import AnimationConfig
from scrollystory.mapview.host import GeometryTarget
from scrollystory.mapview.recording import RecordingMapView, RecordingTimeSlider


def _animator(slides: list[KeyframeSlide], **config: object) -> MapAnimator:
    return MapAnimator(
        AnimationConfig(**config),
        RecordingMapView(),
        RecordingTimeSlider(),
        store=ChoreographyStore(slides),
    )


def _progress(slide: int, progress: float) -> Envelope:
    return Envelope(payload=ProgressPayload.from_progress(slide, progress))


def _layer_calls(animator: MapAnimator) -> int:
    return animator.map_view.call_names().count("set_layer_visibility")


def test_view_ready_applies_first_slide(slides: list[KeyframeSlide]) -> None:
    animator = _animator(slides)

    assert animator.on_view_ready() == ["viewpoint", "timeSlider", "layerVisibility"]
    assert animator.map_view.layers == {"roads": True, "rivers": False}


def test_init_message_sets_embedding_state(slides: list[KeyframeSlide]) -> None:
    animator = _animator(slides)

    assert animator.on_message({"source": CONTROLLER_SOURCE, "payload": {"isEmbedded": True}}) is True
    assert animator.is_embedded is True


def test_foreign_messages_are_ignored(slides: list[KeyframeSlide]) -> None:
    animator = _animator(slides)

    assert animator.on_message({"source": "analytics", "payload": {"isEmbedded": True}}) is False
    assert animator.on_message("hello") is False
    assert animator.is_embedded is False
    assert animator.map_view.calls == []


def test_progress_interpolates_and_applies_discrete_state_once_per_slide(slides: list[KeyframeSlide]) -> None:
    animator = _animator(slides)
    animator.on_message(Envelope(payload=InitPayload(is_embedded=True)))

    assert animator.on_message(_progress(0, 0.5)) is True
    assert _layer_calls(animator) == 2
    assert animator.on_message(_progress(0, 0.75)) is True
    assert _layer_calls(animator) == 2
    assert animator.on_message(_progress(1, 0.0)) is True
    assert _layer_calls(animator) == 3

    assert (animator.current_slide_index, animator.current_progress) == (1, 0.0)
    target = animator.map_view.geometry_target
    assert isinstance(target, GeometryTarget)
    assert target.rotation == 90.0


def test_latest_message_wins(slides: list[KeyframeSlide]) -> None:
    animator = _animator(slides)
    channel = MessageChannel(queued=True)
    animator.listen(channel)

    channel.post(_progress(2, 0.3))
    channel.post(_progress(1, 0.0))
    channel.drain()

    assert animator.current_slide_index == 1
    assert animator.map_view.geometry_target.target.xmin == 10.0


def test_unknown_slide_is_ignored(slides: list[KeyframeSlide]) -> None:
    animator = _animator(slides)
    animator.on_message(_progress(0, 0.2))

    assert animator.on_message(_progress(5, 0.5)) is False
    assert animator.current_slide_index == 0
    assert animator.current_progress == 0.2


def test_hash_navigation_applies_slide_when_standalone(slides: list[KeyframeSlide]) -> None:
    animator = _animator(slides)

    assert animator.on_hash_change("https://maps.example.org/map/index.html#1") is True
    assert animator.current_slide_index == 1
    assert animator.map_view.geometry_target.rotation == 90.0
    assert animator.time_slider.extent is not None


def test_hash_navigation_reads_leading_digits(slides: list[KeyframeSlide]) -> None:
    animator = _animator(slides)

    assert animator.on_hash_change("index.html#2abc") is True
    assert animator.current_slide_index == 2
    assert animator.map_view.track_renderer is not None


@pytest.mark.parametrize(
    "location",
    ["index.html", "index.html#", "index.html#abc", "index.html#9", "index.html#-1"],
)
def test_hash_navigation_ignores_invalid_fragments(slides: list[KeyframeSlide], location: str) -> None:
    animator = _animator(slides)

    assert animator.on_hash_change(location) is False
    assert animator.map_view.calls == []


def test_hash_navigation_is_ignored_when_embedded(slides: list[KeyframeSlide]) -> None:
    animator = _animator(slides)
    animator.on_message(Envelope(payload=InitPayload(is_embedded=True)))

    assert animator.on_hash_change("index.html#1") is False
    assert animator.map_view.calls == []


def test_start_loads_choreography_and_configures_host(choreography_file: Path) -> None:
    animator = MapAnimator(
        AnimationConfig(map_choreography=str(choreography_file), time_play_rate=500, disable_map_nav=True),
        RecordingMapView(),
        RecordingTimeSlider(),
    )
    channel = MessageChannel()

    animator.start(channel)
    channel.post(Envelope(payload=InitPayload(is_embedded=True)))

    assert len(animator.store) == 3
    assert animator.time_slider.play_rate == 500
    assert animator.map_view.navigation_enabled is False
    assert animator.is_embedded is True


def test_start_without_choreography_raises(tmp_path: Path) -> None:
    animator = MapAnimator(
        AnimationConfig(map_choreography=str(tmp_path / "missing.json")),
        RecordingMapView(),
    )

    with pytest.raises(LoadError):
        animator.start()
    assert len(animator.store) == 0


def test_closed_animator_stops_listening(slides: list[KeyframeSlide]) -> None:
    animator = _animator(slides)
    channel = MessageChannel()
    animator.listen(channel)

    animator.close()
    channel.post(_progress(0, 0.5))

    assert animator.current_slide_index is None
