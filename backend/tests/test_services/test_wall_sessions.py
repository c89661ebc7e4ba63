"""Tests for the per-client wall registry."""

import pytest

from photowall.models.wall import Photo
from photowall.services.wall_sessions import WallSessionManager


def _added(key):
    return {"type": "photo-added", "photo": {"key": key, "image_ref": f"{key}.png", "caption": key}}


@pytest.mark.asyncio
async def test_create_loads_initial_photos() -> None:
    manager = WallSessionManager()

    state = await manager.create(
        "tv-1",
        viewport_width=1920,
        viewport_height=1080,
        photos=[Photo("a", "a.png", "A"), {"id": 2, "imageRef": "b.png"}],
        seed=1,
    )

    assert state["photo_count"] == 2
    assert [p["key"] for p in state["photos"]] == ["a", "2"]
    assert state["photos"][1]["display_caption"] == "No caption"
    assert await manager.list_clients() == [{"client_id": "tv-1", "photo_count": 2}]


@pytest.mark.asyncio
async def test_seeded_walls_lay_out_identically() -> None:
    manager = WallSessionManager()
    photos = [Photo(f"p{i}", f"p{i}.png") for i in range(5)]

    first = await manager.create("a", viewport_width=1200, viewport_height=800, photos=photos, seed=3)
    second = await manager.create("b", viewport_width=1200, viewport_height=800, photos=photos, seed=3)

    assert first["photos"] == second["photos"]


@pytest.mark.asyncio
async def test_create_replaces_and_drop_forgets() -> None:
    manager = WallSessionManager()
    await manager.create("tv", photos=[Photo("a", "a.png")])
    await manager.create("tv", photos=[])

    wall = await manager.get("tv")
    assert wall is not None and len(wall.engine) == 0

    assert await manager.drop("tv") is True
    assert await manager.drop("tv") is False
    assert await manager.get("tv") is None


@pytest.mark.asyncio
async def test_run_on_unknown_wall_returns_none() -> None:
    manager = WallSessionManager()
    assert await manager.run("ghost", lambda wall: wall.to_payload()) is None
    assert await manager.apply_event("ghost", _added("a")) is None


@pytest.mark.asyncio
async def test_broadcast_reaches_every_wall() -> None:
    manager = WallSessionManager()
    await manager.create("left", seed=1)
    await manager.create("right", seed=2, photos=[Photo("x", "x.png")])

    results = await manager.broadcast_event(_added("x"))

    assert results == {"left": True, "right": False}
    clients = await manager.list_clients()
    assert clients == [
        {"client_id": "left", "photo_count": 1},
        {"client_id": "right", "photo_count": 1},
    ]

    assert await manager.apply_event("left", {"type": "photo-removed", "key": "x"}) is True
    right = await manager.get("right")
    assert "x" in right.engine
