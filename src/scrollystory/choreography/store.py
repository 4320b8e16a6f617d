from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from scrollystory.choreography.models import KeyframeSlide

DEFAULT_TIMEOUT = 30.0


class LoadError(RuntimeError):
    """The choreography could not be fetched or parsed."""


def _is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def _fetch_text(location: str, *, client: httpx.Client | None, timeout: float) -> str:
    if _is_url(location):
        try:
            if client is not None:
                response = client.get(location)
            else:
                with httpx.Client(timeout=timeout, follow_redirects=True) as owned:
                    response = owned.get(location)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise LoadError(
                f"Failed to fetch choreography: {exc.response.status_code} ({location})"
            ) from exc
        except httpx.HTTPError as exc:
            raise LoadError(f"Failed to fetch choreography: {exc} ({location})") from exc
        return response.text

    path = Path(location)
    if not path.exists():
        raise LoadError(f"Choreography file not found: {path}")
    if not path.is_file():
        raise LoadError(f"Choreography path is not a file: {path}")
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise LoadError(f"Failed to read choreography: {path} ({exc})") from exc


def parse_choreography(text: str, *, source: str = "<memory>") -> list[KeyframeSlide]:
    try:
        payload: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise LoadError(f"Choreography is not valid JSON: {source} ({exc.msg})") from exc
    if not isinstance(payload, list):
        raise LoadError(f"Choreography must be a JSON array of slides: {source}")

    slides: list[KeyframeSlide] = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            raise LoadError(f"Slide {index} is not a JSON object: {source}")
        try:
            slides.append(KeyframeSlide.model_validate(item))
        except ValidationError as exc:
            error = exc.errors()[0]
            field = ".".join(str(part) for part in error.get("loc", ()))
            raise LoadError(f"Slide {index} is invalid at '{field}': {error.get('msg')}") from exc
    return slides


def load_choreography(
    location: str | Path,
    *,
    client: httpx.Client | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> list[KeyframeSlide]:
    source = str(location)
    try:
        slides = parse_choreography(_fetch_text(source, client=client, timeout=timeout), source=source)
    except LoadError as exc:
        logger.error("Failed to load choreography: {}", exc)
        raise
    logger.info("Loaded {} slides from {}", len(slides), source)
    return slides


class ChoreographyStore:
    """Ordered, read-only keyframe slides; index N is slide N of the story."""

    def __init__(self, slides: list[KeyframeSlide] | None = None) -> None:
        self._slides: tuple[KeyframeSlide, ...] = tuple(slides or ())

    @classmethod
    def load(cls, location: str | Path, **kwargs: Any) -> ChoreographyStore:
        return cls(load_choreography(location, **kwargs))

    @property
    def slides(self) -> tuple[KeyframeSlide, ...]:
        return self._slides

    def __len__(self) -> int:
        return len(self._slides)

    def get(self, index: int) -> KeyframeSlide | None:
        if 0 <= index < len(self._slides):
            return self._slides[index]
        return None

    def pair(self, index: int) -> tuple[KeyframeSlide | None, KeyframeSlide | None]:
        return self.get(index), self.get(index + 1)
