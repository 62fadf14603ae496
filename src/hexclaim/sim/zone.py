from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Sequence

from hexclaim.content.modes import GameModeDef
from hexclaim.sim.spatial import CellId, SpatialIndex


@dataclass(frozen=True)
class TradeZone:
    """Immutable set of playable cells plus the geometry derived from it."""

    cells: frozenset[CellId]
    perimeter: tuple[CellId, ...]
    center_cell: CellId
    monument_cell: CellId | None = None
    monument_ring: tuple[CellId, ...] = ()
    longitude_by_cell: dict[CellId, float] = field(default_factory=dict, compare=False)

    def contains(self, cell_id: CellId | None) -> bool:
        return cell_id is not None and cell_id in self.cells

    def is_monument(self, cell_id: CellId | None) -> bool:
        return self.monument_cell is not None and cell_id == self.monument_cell

    def is_tradable(self, cell_id: CellId | None) -> bool:
        return self.contains(cell_id) and not self.is_monument(cell_id)

    def longitude_of(self, cell_id: CellId | None) -> float:
        if cell_id is not None and cell_id in self.longitude_by_cell:
            return self.longitude_by_cell[cell_id]
        return self.longitude_by_cell.get(self.center_cell, 0.0)

    def sorted_cells(self) -> list[CellId]:
        return sorted(self.cells)


def build_trade_zone(spatial: SpatialIndex, mode: GameModeDef) -> TradeZone:
    cells: set[CellId] = set()
    for anchor in mode.zone.anchors:
        anchor_cell = spatial.cell_at(anchor.lat, anchor.lon)
        cells.update(spatial.ring(anchor_cell, anchor.ring))

    first_anchor = mode.zone.anchors[0]
    center_cell = spatial.cell_at(first_anchor.lat, first_anchor.lon)

    perimeter = sorted(
        cell_id for cell_id in cells if any(neighbor not in cells for neighbor in spatial.neighbors(cell_id))
    )

    monument_cell: CellId | None = None
    monument_ring: tuple[CellId, ...] = ()
    if mode.zone.monument is not None:
        candidate = spatial.cell_at(mode.zone.monument.lat, mode.zone.monument.lon)
        if candidate not in cells:
            raise ValueError(f"monument cell {candidate} for mode {mode.mode_id} lies outside the trade zone")
        monument_cell = candidate
        monument_ring = tuple(sorted(cell_id for cell_id in spatial.neighbors(candidate) if cell_id in cells))

    longitude_by_cell = {cell_id: spatial.center(cell_id)[1] for cell_id in cells}
    return TradeZone(
        cells=frozenset(cells),
        perimeter=tuple(perimeter),
        center_cell=center_cell,
        monument_cell=monument_cell,
        monument_ring=monument_ring,
        longitude_by_cell=longitude_by_cell,
    )


def _grid_distance_at_least(spatial: SpatialIndex, cell_id: CellId, others: Sequence[CellId], separation: int) -> bool:
    if separation <= 1 or not others:
        return True
    nearby = set(spatial.ring(cell_id, separation - 1))
    return not any(other in nearby for other in others)


def pick_landing_cells(
    zone: TradeZone,
    spatial: SpatialIndex,
    player_ids: Sequence[str],
    rng: random.Random,
    *,
    separation: int,
) -> dict[str, CellId]:
    """Pick one starting cell per player from the zone perimeter.

    Cells adjacent to the monument are never handed out. When the perimeter
    cannot host every player at ``separation`` grid steps, the constraint
    falls back to distinct perimeter cells, then to distinct zone cells.
    """
    excluded = set(zone.monument_ring)
    if zone.monument_cell is not None:
        excluded.add(zone.monument_cell)

    perimeter = [cell_id for cell_id in zone.perimeter if cell_id not in excluded]
    interior = [cell_id for cell_id in zone.sorted_cells() if cell_id not in excluded]

    attempts = (
        (perimeter, separation),
        (perimeter, 1),
        (interior, 1),
    )
    for pool, min_separation in attempts:
        if len(pool) < len(player_ids):
            continue
        candidates = list(pool)
        rng.shuffle(candidates)
        picked: list[CellId] = []
        for cell_id in candidates:
            if _grid_distance_at_least(spatial, cell_id, picked, min_separation):
                picked.append(cell_id)
                if len(picked) == len(player_ids):
                    return dict(zip(player_ids, picked))
    raise ValueError(f"trade zone too small to seat {len(player_ids)} players")
