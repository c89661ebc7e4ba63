"""Manual repositioning of placed photos. Visual only: cells never change."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..models.wall import Placement
from .placement import PlacementEngine

Clock = Callable[[], float]

Z_INDEX_START = 1000
# Clicks within this window after a drag ends are not treated as clicks.
CLICK_SUPPRESSION_SECONDS = 0.1


@dataclass
class _Capture:
    key: str
    # The placement the offsets were measured against; a relayout replaces it.
    placement: Placement
    offset_x: float
    offset_y: float


class DragController:
    """Pointer-driven drag state for one wall.

    The z-order counter belongs to this instance, so independent walls never
    share stacking state.
    """

    def __init__(
        self,
        engine: PlacementEngine,
        *,
        clock: Optional[Clock] = None,
        suppression_seconds: float = CLICK_SUPPRESSION_SECONDS,
    ) -> None:
        self._engine = engine
        self._clock: Clock = clock or time.monotonic
        self._suppression_seconds = suppression_seconds
        self._z_counter = Z_INDEX_START
        self._capture: Optional[_Capture] = None
        self._suppressed_key: Optional[str] = None
        self._suppressed_until = 0.0

    @property
    def dragging_key(self) -> Optional[str]:
        capture = self._live_capture()
        return capture.key if capture else None

    def _live_capture(self) -> Optional[_Capture]:
        """Current capture, dropped once its photo is gone or was re-placed."""
        if self._capture is None:
            return None
        if self._engine.placement(self._capture.key) is not self._capture.placement:
            self._capture = None
        return self._capture

    def on_pointer_down(self, key: str, pointer_x: float, pointer_y: float) -> bool:
        placement = self._engine.placement(key)
        if placement is None:
            return False
        self._z_counter += 1
        placement.z_index = self._z_counter
        self._capture = _Capture(
            key=key,
            placement=placement,
            offset_x=pointer_x - placement.x,
            offset_y=pointer_y - placement.y,
        )
        return True

    def on_pointer_move(self, pointer_x: float, pointer_y: float) -> bool:
        # evicted, removed or relaid out mid-drag ends the gesture
        capture = self._live_capture()
        if capture is None:
            return False
        capture.placement.x = pointer_x - capture.offset_x
        capture.placement.y = pointer_y - capture.offset_y
        return True

    def on_pointer_up(self) -> bool:
        if self._capture is None:
            return False
        self._suppressed_key = self._capture.key
        self._suppressed_until = self._clock() + self._suppression_seconds
        self._capture = None
        return True

    def is_click_suppressed(self, key: str) -> bool:
        if self._capture is not None and self._capture.key == key:
            return True
        return key == self._suppressed_key and self._clock() < self._suppressed_until
