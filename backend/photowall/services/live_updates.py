"""Apply photo-added / photo-removed notifications to a wall."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Union

from pydantic import ValidationError

from ..models.schemas import PhotoAddedEvent, PhotoPayload, live_event_adapter
from ..models.wall import Photo
from .placement import PlacementEngine

logger = logging.getLogger(__name__)


class LiveUpdateAdapter:
    """Feed the initial photo list and the live event stream into the engine.

    Events are applied once, as received; duplicates and removals of absent
    keys fall through to the engine's no-op paths. Malformed events are
    logged and skipped.
    """

    def __init__(self, engine: PlacementEngine) -> None:
        self._engine = engine

    def load_initial(self, photos: Iterable[Union[Photo, PhotoPayload, dict]]) -> int:
        """Insert existing photos oldest-first, then pre-shrink a crowded wall.

        Returns the number of photos tracked afterwards.
        """
        for item in photos:
            try:
                photo = _coerce_photo(item)
            except (ValidationError, TypeError) as exc:
                logger.warning("Skipping malformed initial photo %r: %s", item, exc)
                continue
            self._engine.insert(photo, is_new=False)
        self._engine.density.optimize(self._engine)
        return len(self._engine)

    def on_live_event(self, message: Any) -> bool:
        """Apply one event. Returns True when the wall changed."""
        try:
            event = live_event_adapter.validate_python(message)
        except ValidationError as exc:
            logger.warning("Skipping malformed live event %r: %s", message, exc.errors(include_url=False))
            return False

        if isinstance(event, PhotoAddedEvent):
            return self._engine.insert(event.photo.to_photo(), is_new=True)
        return self._engine.remove(event.key)


def _coerce_photo(item: Union[Photo, PhotoPayload, dict]) -> Photo:
    if isinstance(item, Photo):
        return item
    if isinstance(item, PhotoPayload):
        return item.to_photo()
    if isinstance(item, dict):
        return PhotoPayload.model_validate(item).to_photo()
    raise TypeError(f"unsupported photo entry: {type(item).__name__}")
