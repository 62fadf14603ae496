from __future__ import annotations

import math

import pytest

from hexclaim.sim.spatial import AxialSpatialIndex, HexCoord, build_spatial_index


def test_axial_cell_at_is_stable_and_center_maps_back() -> None:
    spatial = AxialSpatialIndex(cell_size_deg=0.05)
    cell_id = spatial.cell_at(-69.367621, 32.348126)

    assert cell_id == spatial.cell_at(-69.367621, 32.348126)
    lat, lon = spatial.center(cell_id)
    assert spatial.cell_at(lat, lon) == cell_id


def test_axial_ring_is_filled_disk() -> None:
    spatial = AxialSpatialIndex()
    origin = HexCoord(3, -2).to_cell_id()

    assert spatial.ring(origin, 0) == [origin]
    assert len(spatial.ring(origin, 1)) == 7
    assert len(spatial.ring(origin, 2)) == 19
    assert len(set(spatial.ring(origin, 4))) == 61


def test_axial_neighbors_exclude_self() -> None:
    spatial = AxialSpatialIndex()
    origin = HexCoord(0, 0).to_cell_id()
    neighbors = spatial.neighbors(origin)

    assert len(neighbors) == 6
    assert origin not in neighbors
    assert set(neighbors) | {origin} == set(spatial.ring(origin, 1))


def test_axial_boundary_surrounds_center() -> None:
    spatial = AxialSpatialIndex(cell_size_deg=0.1)
    cell_id = HexCoord(2, 1).to_cell_id()
    center_lat, center_lon = spatial.center(cell_id)
    boundary = spatial.boundary(cell_id)

    assert len(boundary) == 6
    for lat, lon in boundary:
        assert math.isclose(math.hypot(lat - center_lat, lon - center_lon), 0.1, rel_tol=1e-9)


@pytest.mark.parametrize("lat, lon", [(91.0, 0.0), (float("nan"), 0.0), (0.0, float("inf"))])
def test_invalid_coordinates_are_rejected(lat: float, lon: float) -> None:
    with pytest.raises(ValueError):
        AxialSpatialIndex().cell_at(lat, lon)


def test_malformed_axial_cell_id_is_rejected() -> None:
    with pytest.raises(ValueError, match="invalid axial cell id"):
        HexCoord.from_cell_id("not-a-cell")


def test_negative_ring_radius_is_rejected() -> None:
    with pytest.raises(ValueError, match="ring radius"):
        AxialSpatialIndex().ring("0,0", -1)


def test_unknown_spatial_kind_is_rejected() -> None:
    with pytest.raises(ValueError, match="unsupported spatial index kind"):
        build_spatial_index("square")


def test_h3_index_matches_grid_contract() -> None:
    pytest.importorskip("h3")
    spatial = build_spatial_index("h3", resolution=6)
    cell_id = spatial.cell_at(-14.5684, -34.1912)

    assert spatial.ring(cell_id, 0) == [cell_id]
    assert len(spatial.ring(cell_id, 1)) == 7
    assert len(spatial.neighbors(cell_id)) == 6
    assert len(spatial.boundary(cell_id)) == 6
    lat, lon = spatial.center(cell_id)
    assert spatial.cell_at(lat, lon) == cell_id
