"""One viewer's wall: engine, density policy, live feed and drag handling."""

from __future__ import annotations

import random
from typing import Any, Dict, Iterable, List, Optional, Union

from ..config import Settings, settings as default_settings
from ..models.schemas import PhotoPayload
from ..models.wall import GridState, Photo
from .density import DensityController
from .drag import Clock, DragController
from .live_updates import LiveUpdateAdapter
from .placement import PlacementEngine


class PhotoWall:
    """Inbound operations for a single wall view, each a synchronous transition."""

    def __init__(
        self,
        viewport_width: Optional[float] = None,
        viewport_height: Optional[float] = None,
        *,
        config: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        density: Optional[DensityController] = None,
        clock: Optional[Clock] = None,
        scale: float = 1.0,
    ) -> None:
        cfg = config or default_settings
        grid = GridState(
            viewport_width=viewport_width or cfg.default_viewport_width,
            viewport_height=viewport_height or cfg.default_viewport_height,
            base_cell_size=cfg.base_cell_size,
            scale=scale,
        )
        self.engine = PlacementEngine(grid, rng=rng, density=density)
        self.live = LiveUpdateAdapter(self.engine)
        self.drag = DragController(self.engine, clock=clock)

    @property
    def grid(self) -> GridState:
        return self.engine.grid

    def load(self, photos: Iterable[Union[Photo, PhotoPayload, dict]]) -> int:
        return self.live.load_initial(photos)

    def on_live_event(self, message: Any) -> bool:
        return self.live.on_live_event(message)

    def on_resize(self, viewport_width: float, viewport_height: float) -> None:
        self.engine.resize(viewport_width, viewport_height)

    def on_pointer_down(self, key: str, x: float, y: float) -> bool:
        return self.drag.on_pointer_down(key, x, y)

    def on_pointer_move(self, x: float, y: float) -> bool:
        return self.drag.on_pointer_move(x, y)

    def on_pointer_up(self) -> bool:
        return self.drag.on_pointer_up()

    def on_click(self, key: str) -> Optional[Photo]:
        """Photo to show in full view, or None if the click belongs to a drag."""
        if self.drag.is_click_suppressed(key):
            return None
        return self.engine.get(key)

    def snapshot(self) -> List[Photo]:
        return self.engine.snapshot()

    def to_payload(self) -> Dict[str, Any]:
        photos = []
        for photo in self.engine:
            placement = self.engine.placement(photo.key)
            entry = photo.to_payload()
            entry["display_caption"] = photo.display_caption
            if placement is not None:
                entry.update(placement.to_payload())
            photos.append(entry)
        return {
            "grid": self.grid.to_payload(),
            "capacity": self.grid.capacity,
            "max_photos": self.engine.max_photos,
            "photo_count": len(self.engine),
            "dragging": self.drag.dragging_key,
            "photos": photos,
        }
