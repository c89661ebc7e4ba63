"""Tests for the auto-zoom policy."""

import pytest

from photowall.services import density as density_module
from photowall.services.density import DensityController, occupancy_ratio


def test_thresholds_stay_distinct() -> None:
    assert density_module.BULK_THRESHOLD == 0.6
    assert density_module.REACTIVE_THRESHOLD == 0.7


def test_occupancy_ratio_handles_empty_grid() -> None:
    assert occupancy_ratio(3, 10) == pytest.approx(0.3)
    assert occupancy_ratio(0, 0) == 1.0
    assert occupancy_ratio(2, 0) == float("inf")


def test_next_scale_is_floored() -> None:
    controller = DensityController()
    assert controller.next_scale(1.0) == pytest.approx(0.9)
    assert controller.next_scale(0.42) == pytest.approx(0.4)
    assert controller.can_shrink(0.41) is True
    assert controller.can_shrink(0.4) is False


def test_invalid_zoom_factor_rejected() -> None:
    with pytest.raises(ValueError):
        DensityController(zoom_factor=1.2)


def test_reactive_check_below_threshold_is_noop(make_engine, photos) -> None:
    engine = make_engine(500, 200)
    for photo in photos(6):
        engine.insert(photo)

    assert engine.density.check_before_insert(engine) is False
    assert engine.grid.scale == 1.0


def test_reactive_check_zooms_once(make_engine, photos, layout_checker) -> None:
    engine = make_engine(500, 200)
    for photo in photos(7):
        engine.insert(photo)

    assert engine.density.check_before_insert(engine) is True
    assert engine.grid.scale == pytest.approx(0.9)
    assert len(engine) == 7
    layout_checker(engine)


def test_bulk_load_pre_shrinks_crowded_wall(make_wall, photos, layout_checker) -> None:
    wall = make_wall(500, 200)

    count = wall.load(photos(7))

    assert count == 7
    # 7 > 0.6 * 10 at scale 1.0 and 0.9; 0.81 gives a 2x6 grid
    assert wall.grid.scale == pytest.approx(0.81)
    assert wall.grid.capacity == 12
    layout_checker(wall.engine)


def test_optimize_stops_at_min_scale(make_engine, photos) -> None:
    engine = make_engine(200, 80, scale=0.4)
    for photo in photos(8):
        engine.insert(photo)

    assert engine.density.optimize(engine) == 0
    assert engine.grid.scale == 0.4


def test_resize_reruns_bulk_check(make_wall, photos, layout_checker) -> None:
    wall = make_wall(1000, 1000)
    batch = photos(20)
    wall.load(batch)
    assert wall.grid.scale == 1.0

    wall.on_resize(500, 500)

    # 0.9 still leaves a 5x5 grid; 0.81 gives 6x6 = 36 slots
    assert wall.grid.scale == pytest.approx(0.81)
    assert wall.engine.order == [photo.key for photo in batch]
    layout_checker(wall.engine)


def test_shrinking_viewport_zooms_before_evicting(make_wall, photos, layout_checker) -> None:
    wall = make_wall(1000, 1000)
    batch = photos(20)
    wall.load(batch)

    wall.on_resize(300, 300)

    # intermediate grids of 9 and 16 slots must not trim anything
    assert wall.grid.scale == pytest.approx(0.9**7)
    assert wall.grid.capacity == 36
    assert wall.engine.order == [photo.key for photo in batch]
    layout_checker(wall.engine)


def test_resize_evicts_only_below_min_scale(make_wall, photos, layout_checker) -> None:
    wall = make_wall(1000, 1000)
    batch = photos(20)
    wall.load(batch)

    wall.on_resize(100, 100)

    assert wall.grid.scale == pytest.approx(0.4)
    assert wall.grid.capacity == 4
    assert wall.engine.order == [photo.key for photo in batch[-3:]]
    layout_checker(wall.engine)
