"""Core wall data types shared by the layout engine and the exporter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, NamedTuple

# Polaroid card geometry at scale 1.0, in pixels.
CARD_WIDTH = 220
CARD_HEIGHT = 280
CARD_PADDING = 15
IMAGE_HEIGHT = 200
CAPTION_MARGIN = 12
MIN_CAPTION_HEIGHT = 40
CARD_RADIUS = 12
IMAGE_RADIUS = 8
JITTER_RANGE = 40
MAX_ROTATION_DEG = 10.0

EMPTY_CAPTION = "No caption"


@dataclass(frozen=True)
class Photo:
    key: str
    image_ref: str
    caption: str = ""

    @property
    def display_caption(self) -> str:
        return self.caption or EMPTY_CAPTION

    def to_payload(self) -> Dict[str, Any]:
        return {"key": self.key, "image_ref": self.image_ref, "caption": self.caption}


class Cell(NamedTuple):
    row: int
    col: int


@dataclass
class GridState:
    """Current layout grid. ``cell_size`` always equals ``base_cell_size * scale``."""

    viewport_width: float
    viewport_height: float
    base_cell_size: float
    scale: float = 1.0
    rows: int = 0
    cols: int = 0

    @property
    def cell_size(self) -> float:
        return self.base_cell_size * self.scale

    @property
    def capacity(self) -> int:
        return self.rows * self.cols

    def contains(self, cell: Cell) -> bool:
        return 0 <= cell.row < self.rows and 0 <= cell.col < self.cols

    def to_payload(self) -> Dict[str, Any]:
        return {
            "rows": self.rows,
            "cols": self.cols,
            "cell_size": self.cell_size,
            "scale": self.scale,
            "viewport_width": self.viewport_width,
            "viewport_height": self.viewport_height,
        }


@dataclass
class Placement:
    """On-screen position of a placed photo.

    ``cell`` is the logical slot; ``x``/``y``/``z_index`` are visual and may be
    changed by dragging without affecting occupancy.
    """

    cell: Cell
    x: float
    y: float
    rotation: float
    width: float
    height: float
    is_new: bool = False
    z_index: int = 0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "row": self.cell.row,
            "col": self.cell.col,
            "x": round(self.x, 2),
            "y": round(self.y, 2),
            "rotation": self.rotation,
            "width": self.width,
            "height": self.height,
            "is_new": self.is_new,
            "z_index": self.z_index,
        }
