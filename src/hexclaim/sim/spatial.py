from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol

CellId = str
LatLon = tuple[float, float]

DEFAULT_H3_RESOLUTION = 6
DEFAULT_AXIAL_CELL_SIZE_DEG = 0.05


class SpatialIndex(Protocol):
    """Deterministic mapping between coordinates and hex cell identifiers."""

    def cell_at(self, lat: float, lon: float) -> CellId:
        ...

    def ring(self, cell_id: CellId, k: int) -> list[CellId]:
        """Every cell within grid distance ``k``; ``k == 0`` yields the cell itself."""
        ...

    def neighbors(self, cell_id: CellId) -> list[CellId]:
        ...

    def boundary(self, cell_id: CellId) -> list[LatLon]:
        ...

    def center(self, cell_id: CellId) -> LatLon:
        ...


def validate_lat_lon(lat: float, lon: float) -> None:
    if not math.isfinite(lat) or not math.isfinite(lon):
        raise ValueError(f"coordinates must be finite (lat={lat}, lon={lon})")
    if abs(lat) > 90.0:
        raise ValueError(f"latitude out of range: {lat}")


def _require_radius(k: int) -> int:
    if isinstance(k, bool) or not isinstance(k, int) or k < 0:
        raise ValueError("ring radius must be an integer >= 0")
    return k


@dataclass(frozen=True, order=True)
class HexCoord:
    """Axial hex coordinate (q, r)."""

    q: int
    r: int

    def to_cell_id(self) -> CellId:
        return f"{self.q},{self.r}"

    @classmethod
    def from_cell_id(cls, cell_id: CellId) -> "HexCoord":
        parts = str(cell_id).split(",")
        if len(parts) != 2:
            raise ValueError(f"invalid axial cell id: {cell_id!r}")
        try:
            return cls(q=int(parts[0]), r=int(parts[1]))
        except ValueError as exc:
            raise ValueError(f"invalid axial cell id: {cell_id!r}") from exc


AXIAL_DIRECTIONS: tuple[HexCoord, ...] = (
    HexCoord(1, 0),
    HexCoord(1, -1),
    HexCoord(0, -1),
    HexCoord(-1, 0),
    HexCoord(-1, 1),
    HexCoord(0, 1),
)


def axial_to_world_xy(coord: HexCoord) -> tuple[float, float]:
    """Pointy-top axial to 2D coordinates."""
    x = math.sqrt(3.0) * (coord.q + coord.r / 2.0)
    y = 1.5 * coord.r
    return (x, y)


def world_xy_to_axial(x: float, y: float) -> HexCoord:
    frac_q = (math.sqrt(3.0) / 3.0 * x) - (y / 3.0)
    frac_r = 2.0 / 3.0 * y
    return _cube_round(frac_q, frac_r)


def _cube_round(frac_q: float, frac_r: float) -> HexCoord:
    frac_s = -frac_q - frac_r
    q = round(frac_q)
    r = round(frac_r)
    s = round(frac_s)
    dq = abs(q - frac_q)
    dr = abs(r - frac_r)
    ds = abs(s - frac_s)
    if dq > dr and dq > ds:
        q = -r - s
    elif dr > ds:
        r = -q - s
    return HexCoord(q=int(q), r=int(r))


class AxialSpatialIndex:
    """Planar axial hex grid laid over latitude/longitude degrees.

    Longitude maps to the grid x axis and latitude to the y axis, scaled so
    that one cell spans roughly ``cell_size_deg`` degrees. Good enough for a
    small play area and fully deterministic without native extensions.
    """

    def __init__(self, cell_size_deg: float = DEFAULT_AXIAL_CELL_SIZE_DEG) -> None:
        if not math.isfinite(cell_size_deg) or cell_size_deg <= 0:
            raise ValueError("cell_size_deg must be a finite number > 0")
        self.cell_size_deg = float(cell_size_deg)

    def cell_at(self, lat: float, lon: float) -> CellId:
        validate_lat_lon(lat, lon)
        return world_xy_to_axial(lon / self.cell_size_deg, lat / self.cell_size_deg).to_cell_id()

    def ring(self, cell_id: CellId, k: int) -> list[CellId]:
        radius = _require_radius(k)
        origin = HexCoord.from_cell_id(cell_id)
        cells: list[CellId] = []
        for dq in range(-radius, radius + 1):
            min_dr = max(-radius, -dq - radius)
            max_dr = min(radius, -dq + radius)
            for dr in range(min_dr, max_dr + 1):
                cells.append(HexCoord(origin.q + dq, origin.r + dr).to_cell_id())
        return cells

    def neighbors(self, cell_id: CellId) -> list[CellId]:
        origin = HexCoord.from_cell_id(cell_id)
        return [HexCoord(origin.q + delta.q, origin.r + delta.r).to_cell_id() for delta in AXIAL_DIRECTIONS]

    def boundary(self, cell_id: CellId) -> list[LatLon]:
        x, y = axial_to_world_xy(HexCoord.from_cell_id(cell_id))
        points: list[LatLon] = []
        for i in range(6):
            angle = math.radians(60 * i - 30)
            px = x + math.cos(angle)
            py = y + math.sin(angle)
            points.append((py * self.cell_size_deg, px * self.cell_size_deg))
        return points

    def center(self, cell_id: CellId) -> LatLon:
        x, y = axial_to_world_xy(HexCoord.from_cell_id(cell_id))
        return (y * self.cell_size_deg, x * self.cell_size_deg)


class H3SpatialIndex:
    """Uber H3 grid at one fixed resolution.

    Changing the resolution invalidates every persisted cell id.
    """

    def __init__(self, resolution: int = DEFAULT_H3_RESOLUTION) -> None:
        import h3

        if isinstance(resolution, bool) or not isinstance(resolution, int) or not 0 <= resolution <= 15:
            raise ValueError("h3 resolution must be an integer in [0, 15]")
        self._h3 = h3
        self.resolution = resolution

    def cell_at(self, lat: float, lon: float) -> CellId:
        validate_lat_lon(lat, lon)
        return str(self._h3.latlng_to_cell(lat, lon, self.resolution))

    def ring(self, cell_id: CellId, k: int) -> list[CellId]:
        radius = _require_radius(k)
        return sorted(str(cell) for cell in self._h3.grid_disk(cell_id, radius))

    def neighbors(self, cell_id: CellId) -> list[CellId]:
        return [cell for cell in self.ring(cell_id, 1) if cell != cell_id]

    def boundary(self, cell_id: CellId) -> list[LatLon]:
        return [(float(lat), float(lon)) for lat, lon in self._h3.cell_to_boundary(cell_id)]

    def center(self, cell_id: CellId) -> LatLon:
        lat, lon = self._h3.cell_to_latlng(cell_id)
        return (float(lat), float(lon))


SPATIAL_INDEX_KINDS = ("h3", "axial")


def build_spatial_index(kind: str, *, resolution: int = DEFAULT_H3_RESOLUTION, cell_size_deg: float = DEFAULT_AXIAL_CELL_SIZE_DEG) -> SpatialIndex:
    if kind == "h3":
        return H3SpatialIndex(resolution=resolution)
    if kind == "axial":
        return AxialSpatialIndex(cell_size_deg=cell_size_deg)
    raise ValueError(f"unsupported spatial index kind: {kind}")
