"""Pytest configuration and shared fixtures."""

import random
import tempfile
from pathlib import Path
from typing import Callable, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from photowall.api import wall as wall_api
from photowall.config import Settings
from photowall.main import app
from photowall.models.wall import GridState, Photo
from photowall.services.placement import PlacementEngine
from photowall.services.wall import PhotoWall
from photowall.services.wall_sessions import WallSessionManager


@pytest.fixture
def session_manager(monkeypatch) -> WallSessionManager:
    """Fresh wall registry wired into the API module."""
    manager = WallSessionManager()
    monkeypatch.setattr(wall_api, "wall_sessions", manager)
    return manager


@pytest.fixture
def client(session_manager: WallSessionManager) -> Generator[TestClient, None, None]:
    """FastAPI test client with an empty wall registry."""
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Settings pointing at temporary photo/export dirs and a 100px base cell."""
    (temp_dir / "photos").mkdir()
    return Settings(
        base_cell_size=100,
        photos_dir=str(temp_dir / "photos"),
        export_dir=str(temp_dir / "exports"),
    )


@pytest.fixture
def make_engine() -> Callable[..., PlacementEngine]:
    def factory(width: float, height: float, *, base: float = 100, scale: float = 1.0, seed: int = 7) -> PlacementEngine:
        grid = GridState(viewport_width=width, viewport_height=height, base_cell_size=base, scale=scale)
        return PlacementEngine(grid, rng=random.Random(seed))

    return factory


@pytest.fixture
def make_wall(test_settings: Settings) -> Callable[..., PhotoWall]:
    def factory(width: float, height: float, *, seed: int = 7, clock=None, scale: float = 1.0) -> PhotoWall:
        return PhotoWall(
            width,
            height,
            config=test_settings,
            rng=random.Random(seed),
            clock=clock,
            scale=scale,
        )

    return factory


def make_photos(count: int, prefix: str = "p") -> list[Photo]:
    return [Photo(key=f"{prefix}{i}", image_ref=f"{prefix}{i}.png", caption=f"photo {i}") for i in range(count)]


@pytest.fixture
def photos() -> Callable[..., list[Photo]]:
    return make_photos


def assert_layout_consistent(engine: PlacementEngine) -> None:
    """Occupied cells, placements, photos and insertion order agree."""
    keys = engine.order
    assert len(keys) == len(set(keys)) == len(engine)
    cells = [engine.placement(key).cell for key in keys]
    assert len(set(cells)) == len(cells)
    assert set(cells) == set(engine.occupancy)
    assert len(engine.occupancy) == len(engine)
    for cell in cells:
        assert engine.grid.contains(cell)
    assert len(engine) <= max(engine.max_photos, 0)


@pytest.fixture
def layout_checker() -> Callable[[PlacementEngine], None]:
    return assert_layout_consistent


@pytest.fixture
def solid_image() -> Callable[..., Image.Image]:
    def factory(color=(255, 0, 0), size=(64, 48), mode: str = "RGB") -> Image.Image:
        return Image.new(mode, size, color)

    return factory


@pytest.fixture
def write_photo(test_settings: Settings) -> Callable[..., Path]:
    """Write a solid-color PNG into the photos dir and return its path."""

    def factory(name: str, color=(0, 128, 255), size=(32, 32), fmt: Optional[str] = "PNG") -> Path:
        path = Path(test_settings.photos_dir) / name
        Image.new("RGB", size, color).save(path, format=fmt)
        return path

    return factory
