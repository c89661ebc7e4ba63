"""Grid capacity and cell occupancy for the wall layout."""

from __future__ import annotations

import math
import random
from typing import Iterator, Optional, Set, Tuple

from ..models.wall import Cell, GridState


def recompute(viewport_width: float, viewport_height: float, cell_size: float) -> Tuple[int, int]:
    """Return ``(rows, cols)`` that fit the viewport at ``cell_size``."""
    if cell_size <= 0:
        raise ValueError("cell_size must be positive")
    rows = max(0, math.floor(viewport_height / cell_size))
    cols = max(0, math.floor(viewport_width / cell_size))
    return rows, cols


def refresh_grid(grid: GridState) -> GridState:
    """Recompute ``grid.rows``/``grid.cols`` in place from its viewport and cell size.

    Existing placements are not reconciled here; cells that fall outside the
    new bounds are the caller's to vacate.
    """
    grid.rows, grid.cols = recompute(grid.viewport_width, grid.viewport_height, grid.cell_size)
    return grid


class OccupancyTracker:
    """Set of filled cells with uniform random selection among free ones."""

    def __init__(self, grid: GridState, rng: Optional[random.Random] = None) -> None:
        self._grid = grid
        self._rng = rng or random.Random()
        self._occupied: Set[Cell] = set()

    def __len__(self) -> int:
        return len(self._occupied)

    def __contains__(self, cell: object) -> bool:
        return cell in self._occupied

    def __iter__(self) -> Iterator[Cell]:
        return iter(self._occupied)

    def free_cells(self) -> list[Cell]:
        available: list[Cell] = []
        for r in range(self._grid.rows):
            for c in range(self._grid.cols):
                cell = Cell(r, c)
                if cell not in self._occupied:
                    available.append(cell)
        return available

    def find_free_cell(self) -> Optional[Cell]:
        available = self.free_cells()
        if not available:
            return None
        return available[self._rng.randrange(len(available))]

    def mark(self, cell: Cell) -> None:
        if not self._grid.contains(cell):
            raise ValueError(f"cell {cell} is outside the {self._grid.rows}x{self._grid.cols} grid")
        if cell in self._occupied:
            raise ValueError(f"cell {cell} is already occupied")
        self._occupied.add(cell)

    def unmark(self, cell: Cell) -> None:
        self._occupied.discard(cell)

    def clear(self) -> None:
        self._occupied.clear()
