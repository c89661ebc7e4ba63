"""Photo placement on the wall grid, with FIFO eviction at capacity."""

from __future__ import annotations

import logging
import math
import random
from typing import Dict, Iterator, List, Optional

from ..models.wall import (
    CARD_HEIGHT,
    CARD_WIDTH,
    JITTER_RANGE,
    MAX_ROTATION_DEG,
    Cell,
    GridState,
    Photo,
    Placement,
)
from .density import MAX_SCALE, DensityController
from .grid import OccupancyTracker, refresh_grid

logger = logging.getLogger(__name__)

# Fraction of grid cells that may hold photos before the oldest are evicted.
CAPACITY_LIMIT = 0.8


class PlacementEngine:
    """Own the wall's grid, occupancy, photo map and insertion order.

    ``insert``, ``remove``, ``rescale``, ``resize`` and ``relayout`` are the only
    mutation paths; each one leaves occupied cells, placements, photos and
    the insertion order mutually consistent before returning.
    """

    def __init__(
        self,
        grid: GridState,
        *,
        rng: Optional[random.Random] = None,
        density: Optional[DensityController] = None,
    ) -> None:
        self.density = density or DensityController()
        if not self.density.min_scale <= grid.scale <= MAX_SCALE:
            raise ValueError(
                f"scale must be between {self.density.min_scale} and {MAX_SCALE}, got {grid.scale}"
            )
        self.grid = refresh_grid(grid)
        self._rng = rng or random.Random()
        self.occupancy = OccupancyTracker(self.grid, self._rng)
        self._photos: Dict[str, Photo] = {}
        self._placements: Dict[str, Placement] = {}
        self._order: List[str] = []

    def __len__(self) -> int:
        return len(self._photos)

    def __contains__(self, key: object) -> bool:
        return key in self._photos

    def __iter__(self) -> Iterator[Photo]:
        return (self._photos[key] for key in self._order)

    @property
    def order(self) -> List[str]:
        return list(self._order)

    @property
    def max_photos(self) -> int:
        return math.floor(self.grid.capacity * CAPACITY_LIMIT)

    def get(self, key: str) -> Optional[Photo]:
        return self._photos.get(key)

    def placement(self, key: str) -> Optional[Placement]:
        return self._placements.get(key)

    def snapshot(self) -> List[Photo]:
        """Tracked photos, oldest first."""
        return list(self)

    def insert(self, photo: Photo, is_new: bool = False) -> bool:
        """Place ``photo`` on the wall.

        Returns False when the key is already tracked or no cell can be
        found even after zooming out; the photo is dropped in that case.
        """
        if photo.key in self._photos:
            logger.debug("Ignoring duplicate photo %s", photo.key)
            return False

        self.density.check_before_insert(self)

        cell = self.occupancy.find_free_cell()
        if cell is None and self.density.can_shrink(self.grid.scale):
            self.density.zoom_out(self)
            cell = self.occupancy.find_free_cell()
        if cell is None:
            logger.warning(
                "Wall is full at scale %.2f (%d slots); dropping photo %s",
                self.grid.scale,
                self.grid.capacity,
                photo.key,
            )
            return False

        self._place(photo, cell, is_new=is_new)
        self._enforce_limit()
        return photo.key in self._photos

    def remove(self, key: str) -> bool:
        if key not in self._photos:
            return False
        self._discard(key)
        self._order.remove(key)
        return True

    def rescale(self, scale: float) -> None:
        """Shrink to ``scale`` and relayout every tracked photo."""
        if scale > self.grid.scale:
            raise ValueError(f"scale may only decrease ({self.grid.scale} -> {scale})")
        self.grid.scale = max(self.density.min_scale, scale)
        refresh_grid(self.grid)
        self.relayout()

    def resize(self, viewport_width: float, viewport_height: float) -> bool:
        """Adopt a new viewport, zooming out before anything is trimmed.

        The bulk density check runs against the new capacity first; only if
        it leaves the scale unchanged and a photo's cell has left the grid is
        the wall relaid out at the current scale. Returns True when a
        relayout happened.
        """
        self.grid.viewport_width = viewport_width
        self.grid.viewport_height = viewport_height
        refresh_grid(self.grid)
        if self.density.optimize(self):
            return True
        stranded = [key for key, p in self._placements.items() if not self.grid.contains(p.cell)]
        if stranded or len(self._photos) > self.max_photos:
            self.relayout()
            return True
        return False

    def relayout(self) -> None:
        """Clear the layout and re-place every photo in insertion order.

        New cells and jitter are drawn for each photo; photos beyond the
        capacity limit are evicted oldest-first before placing.
        """
        photos = [self._photos[key] for key in self._order]
        self.occupancy.clear()
        self._placements.clear()
        self._photos.clear()
        self._order.clear()

        overflow = max(0, len(photos) - self.max_photos)
        for photo in photos[:overflow]:
            logger.info("Evicting photo %s during relayout", photo.key)
        for photo in photos[overflow:]:
            cell = self.occupancy.find_free_cell()
            if cell is None:
                logger.warning("No free cell for photo %s during relayout; dropping it", photo.key)
                continue
            self._place(photo, cell, is_new=False)

    def _place(self, photo: Photo, cell: Cell, *, is_new: bool) -> None:
        scale = self.grid.scale
        cell_size = self.grid.cell_size
        width = CARD_WIDTH * scale
        height = CARD_HEIGHT * scale
        offset_range = JITTER_RANGE * scale

        base_x = cell.col * cell_size + (cell_size - width) / 2
        base_y = cell.row * cell_size + (cell_size - height) / 2
        offset_x = (self._rng.random() - 0.5) * offset_range
        offset_y = (self._rng.random() - 0.5) * offset_range
        angle = round(self._rng.random() * 2 * MAX_ROTATION_DEG - MAX_ROTATION_DEG, 2)

        self.occupancy.mark(cell)
        self._photos[photo.key] = photo
        self._placements[photo.key] = Placement(
            cell=cell,
            x=base_x + offset_x,
            y=base_y + offset_y,
            rotation=angle,
            width=width,
            height=height,
            is_new=is_new,
        )
        self._order.append(photo.key)

    def _enforce_limit(self) -> List[str]:
        evicted: List[str] = []
        limit = self.max_photos
        while len(self._photos) > limit and self._order:
            key = self._order.pop(0)
            self._discard(key)
            evicted.append(key)
        if evicted:
            logger.info("Evicted %d oldest photo(s): %s", len(evicted), ", ".join(evicted))
        return evicted

    def _discard(self, key: str) -> None:
        placement = self._placements.pop(key, None)
        if placement is not None:
            self.occupancy.unmark(placement.cell)
        self._photos.pop(key, None)
