from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from scrollystory.animation.interpolation import InterpolationEngine
from scrollystory.choreography.models import HANDLED_KEYS
from scrollystory.choreography.store import ChoreographyStore, LoadError
from scrollystory.config import AnimationConfig, MapFit, load_animation_config
from scrollystory.logging_setup import configure_logging
from scrollystory.mapview.recording import RecordingMapView, RecordingTimeSlider
from scrollystory.simulation import load_scenario, simulate

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Scroll-driven map choreography tools for scrollytelling stories.",
)
console = Console()


def _bool_mark(value: bool) -> str:
    return "[x]" if value else "[ ]"


def _jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {"kind": type(value).__name__, **asdict(value)}
    return value


def _resolve_config(config_path: Path | None, map_fit: MapFit | None) -> AnimationConfig:
    try:
        config = load_animation_config(config_path) if config_path is not None else AnimationConfig()
    except (FileNotFoundError, ValueError) as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc
    if config.debug_mode:
        configure_logging(debug=True)
    if map_fit is not None:
        config = config.model_copy(update={"map_fit": map_fit})
    return config


def _load_store(choreography: Path) -> ChoreographyStore:
    try:
        return ChoreographyStore.load(choreography)
    except LoadError as exc:
        raise typer.BadParameter(str(exc), param_hint="--choreography") from exc


@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", help="Enable DEBUG logging."),
) -> None:
    configure_logging(debug)


@app.command("validate")
def validate(
    choreography: Path = typer.Option(
        ...,
        "--choreography",
        "-c",
        help="Choreography JSON file (array of keyframe slides).",
    ),
) -> None:
    store = _load_store(choreography)
    table = Table(title=f"Choreography: {choreography.name} ({len(store)} slides)")
    table.add_column("slide")
    for key in HANDLED_KEYS:
        table.add_column(key)
    for index, slide in enumerate(store.slides):
        present = set(slide.present_keys())
        table.add_row(
            str(index),
            *(_bool_mark(key in present) for key in HANDLED_KEYS),
        )
    console.print(table)


@app.command("interpolate")
def interpolate(
    choreography: Path = typer.Option(
        ...,
        "--choreography",
        "-c",
        help="Choreography JSON file (array of keyframe slides).",
    ),
    slide: int = typer.Option(..., "--slide", "-s", min=0, help="Current slide index."),
    progress: float = typer.Option(..., "--progress", "-p", min=0.0, max=1.0, help="Progress through the slide."),
    three_d: bool = typer.Option(False, "--three-d/--two-d", help="Animate a 3D scene (camera) instead of a 2D map."),
    map_fit: Optional[MapFit] = typer.Option(None, "--map-fit", help="Override the configured map fit mode."),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Animation config JSON file."),
) -> None:
    config = _resolve_config(config_path, map_fit)
    store = _load_store(choreography)
    current, upcoming = store.pair(slide)
    if current is None:
        raise typer.BadParameter(
            f"Slide {slide} is out of range (choreography has {len(store)} slides)",
            param_hint="--slide",
        )

    map_view = RecordingMapView(three_d=three_d)
    time_slider = RecordingTimeSlider()
    applied = InterpolationEngine(config).apply(current, upcoming, progress, map_view, time_slider)

    state = {
        "slide": slide,
        "progress": progress,
        "applied": applied,
        "target": _jsonable(map_view.target),
        "time_extent": _jsonable(time_slider.extent),
        "environment": _jsonable(map_view.environment),
    }
    console.print_json(json.dumps(state, default=str))


@app.command("simulate")
def simulate_command(
    choreography: Path = typer.Option(
        ...,
        "--choreography",
        "-c",
        help="Choreography JSON file (array of keyframe slides).",
    ),
    scenario_path: Path = typer.Option(
        ...,
        "--scenario",
        help="Scroll scenario JSON file (panels, dock position, scroll positions).",
    ),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Animation config JSON file."),
) -> None:
    config = _resolve_config(config_path, None)
    store = _load_store(choreography)
    try:
        scenario = load_scenario(scenario_path)
    except (FileNotFoundError, ValueError) as exc:
        raise typer.BadParameter(str(exc), param_hint="--scenario") from exc

    steps = simulate(scenario, list(store.slides), config)

    table = Table(title=f"Scroll replay: {scenario_path.name}")
    for column in ("scroll_y", "docked", "slide", "progress", "target", "time_end"):
        table.add_column(column)
    for step in steps:
        row = step.as_row()
        table.add_row(
            f"{row['scroll_y']:.0f}",
            _bool_mark(row["docked"]),
            "-" if row["slide"] is None else str(row["slide"]),
            "-" if row["progress"] is None else f"{row['progress']:.2f}",
            row["target"] or "-",
            row["time_end"] or "-",
        )
    console.print(table)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
