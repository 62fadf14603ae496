from __future__ import annotations

import random

from hexclaim.content.modes import load_game_mode
from hexclaim.sim.spatial import AxialSpatialIndex
from hexclaim.sim.zone import build_trade_zone, pick_landing_cells


def test_lite_zone_is_ring_four_disk_with_outer_perimeter() -> None:
    spatial = AxialSpatialIndex()
    zone = build_trade_zone(spatial, load_game_mode("lite"))

    assert len(zone.cells) == 61
    assert len(zone.perimeter) == 24
    assert zone.monument_cell is None
    assert zone.monument_ring == ()
    for cell_id in zone.perimeter:
        assert any(neighbor not in zone.cells for neighbor in spatial.neighbors(cell_id))
    for cell_id in zone.cells - set(zone.perimeter):
        assert all(neighbor in zone.cells for neighbor in spatial.neighbors(cell_id))


def test_mars_zone_unions_every_anchor() -> None:
    spatial = AxialSpatialIndex()
    mode = load_game_mode("mars")
    zone = build_trade_zone(spatial, mode)

    for anchor in mode.zone.anchors:
        anchor_cell = spatial.cell_at(anchor.lat, anchor.lon)
        assert set(spatial.ring(anchor_cell, anchor.ring)) <= zone.cells
    assert zone.contains(zone.monument_cell)
    assert not zone.is_tradable(zone.monument_cell)


def test_lite4_monument_ring_has_six_cells_inside_zone() -> None:
    zone = build_trade_zone(AxialSpatialIndex(), load_game_mode("lite4"))

    assert zone.monument_cell is not None
    assert len(zone.monument_ring) == 6
    assert set(zone.monument_ring) <= zone.cells
    assert zone.monument_cell not in zone.monument_ring


def test_longitude_lookup_falls_back_to_zone_center() -> None:
    zone = build_trade_zone(AxialSpatialIndex(), load_game_mode("lite"))

    assert zone.longitude_of(None) == zone.longitude_by_cell[zone.center_cell]
    assert zone.longitude_of("9999,9999") == zone.longitude_by_cell[zone.center_cell]


def test_landing_cells_are_separated_perimeter_cells_away_from_monument() -> None:
    spatial = AxialSpatialIndex()
    mode = load_game_mode("lite4")
    zone = build_trade_zone(spatial, mode)

    picks = pick_landing_cells(zone, spatial, mode.player_ids, random.Random(5), separation=3)

    assert set(picks) == set(mode.player_ids)
    cells = list(picks.values())
    assert len(set(cells)) == 4
    for cell_id in cells:
        assert cell_id in zone.perimeter
        assert cell_id != zone.monument_cell
        assert cell_id not in zone.monument_ring
        others = [other for other in cells if other != cell_id]
        assert not set(spatial.ring(cell_id, 2)) & set(others)


def test_landing_picks_are_deterministic_for_a_seed() -> None:
    spatial = AxialSpatialIndex()
    mode = load_game_mode("mars")
    zone = build_trade_zone(spatial, mode)

    first = pick_landing_cells(zone, spatial, mode.player_ids, random.Random(42), separation=4)
    second = pick_landing_cells(zone, spatial, mode.player_ids, random.Random(42), separation=4)

    assert first == second


def test_impossible_separation_relaxes_to_distinct_perimeter_cells() -> None:
    spatial = AxialSpatialIndex()
    mode = load_game_mode("lite4")
    zone = build_trade_zone(spatial, mode)

    picks = pick_landing_cells(zone, spatial, mode.player_ids, random.Random(1), separation=50)

    assert len(set(picks.values())) == 4
    assert set(picks.values()) <= set(zone.perimeter)
