"""Auto-zoom policy: shrink the wall scale before the grid runs out of cells."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .grid import recompute

if TYPE_CHECKING:  # pragma: no cover
    from .placement import PlacementEngine

logger = logging.getLogger(__name__)

MIN_SCALE = 0.4
MAX_SCALE = 1.0
ZOOM_FACTOR = 0.9
# Checked before every single insert.
REACTIVE_THRESHOLD = 0.7
# Checked after a bulk load or a resize; deliberately lower than the reactive one.
BULK_THRESHOLD = 0.6


def occupancy_ratio(photo_count: int, capacity: int) -> float:
    if capacity <= 0:
        return float("inf") if photo_count > 0 else 1.0
    return photo_count / capacity


class DensityController:
    """Decide when to zoom out and drive the resulting relayout."""

    def __init__(
        self,
        *,
        reactive_threshold: float = REACTIVE_THRESHOLD,
        bulk_threshold: float = BULK_THRESHOLD,
        zoom_factor: float = ZOOM_FACTOR,
        min_scale: float = MIN_SCALE,
    ) -> None:
        if not 0 < zoom_factor < 1:
            raise ValueError("zoom_factor must be between 0 and 1")
        self.reactive_threshold = reactive_threshold
        self.bulk_threshold = bulk_threshold
        self.zoom_factor = zoom_factor
        self.min_scale = min_scale

    def can_shrink(self, scale: float) -> bool:
        return scale > self.min_scale

    def next_scale(self, scale: float) -> float:
        return max(self.min_scale, scale * self.zoom_factor)

    def check_before_insert(self, engine: "PlacementEngine") -> bool:
        """Zoom out once if the wall is at least ``reactive_threshold`` full."""
        grid = engine.grid
        ratio = occupancy_ratio(len(engine), grid.capacity)
        if ratio >= self.reactive_threshold and self.can_shrink(grid.scale):
            logger.info(
                "Auto-zooming: %d photos in %d slots (%.1f%% full)",
                len(engine),
                grid.capacity,
                min(ratio, 1.0) * 100,
            )
            self.zoom_out(engine)
            return True
        return False

    def optimize(self, engine: "PlacementEngine") -> int:
        """Zoom out while the wall is more than ``bulk_threshold`` full.

        Zoom steps are evaluated against the prospective grid and the wall is
        relaid out once at the final scale, so no photo is evicted by an
        intermediate grid. Returns the number of zoom steps taken.
        """
        grid = engine.grid
        count = len(engine)
        scale = grid.scale
        capacity = grid.capacity
        steps = 0
        while count > capacity * self.bulk_threshold and self.can_shrink(scale):
            logger.info(
                "Optimizing zoom: %d photos need more space than %d slots allow",
                count,
                capacity,
            )
            scale = self.next_scale(scale)
            rows, cols = recompute(grid.viewport_width, grid.viewport_height, grid.base_cell_size * scale)
            capacity = rows * cols
            steps += 1
        if steps:
            old_scale = grid.scale
            engine.rescale(scale)
            logger.debug(
                "Rescaled wall %.3f -> %.3f in %d steps (%dx%d grid)",
                old_scale,
                scale,
                steps,
                grid.rows,
                grid.cols,
            )
        return steps

    def zoom_out(self, engine: "PlacementEngine") -> float:
        old_scale = engine.grid.scale
        new_scale = self.next_scale(old_scale)
        engine.rescale(new_scale)
        logger.debug(
            "Rescaled wall %.3f -> %.3f (%dx%d grid)",
            old_scale,
            new_scale,
            engine.grid.rows,
            engine.grid.cols,
        )
        return new_scale
