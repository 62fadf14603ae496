from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from hexclaim.content.modes import GameModeDef
from hexclaim.sim.rng import RngStreams
from hexclaim.sim.spatial import CellId, SpatialIndex
from hexclaim.sim.zone import TradeZone, build_trade_zone, pick_landing_cells

MAX_EVENT_LOG = 64
MAX_TERRAFORMING_PROGRESS = 100.0
SYSTEM_PLAYER_ID = ""


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class OwnedCell:
    owner: str
    listed_price: int | None = None
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "listed_price": self.listed_price,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OwnedCell":
        listed_price = data.get("listed_price")
        return cls(
            owner=str(data["owner"]),
            listed_price=None if listed_price is None else int(listed_price),
            updated_at=str(data.get("updated_at", "")),
        )


@dataclass
class Inventory:
    ore: int = 0
    ice: int = 0
    artifact: int = 0
    rare_item: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "ore": self.ore,
            "ice": self.ice,
            "artifact": self.artifact,
            "rare_item": self.rare_item,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Inventory":
        if not data:
            return cls()
        return cls(
            ore=int(data.get("ore", 0)),
            ice=int(data.get("ice", 0)),
            artifact=int(data.get("artifact", 0)),
            rare_item=int(data.get("rare_item", 0)),
        )


@dataclass
class EnergyBudget:
    current: int
    capacity: int

    def to_dict(self) -> dict[str, int]:
        return {"current": self.current, "capacity": self.capacity}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EnergyBudget":
        return cls(current=int(data["current"]), capacity=int(data["capacity"]))


@dataclass
class TeamState:
    landing_cell_id: CellId | None
    lander_name: str
    rover_name: str
    base_level: int = 0
    solar_panels: int = 0
    energy: EnergyBudget | None = None
    inventory: Inventory = field(default_factory=Inventory)
    equipment: list[str] = field(default_factory=list)
    explored: list[CellId] = field(default_factory=list)

    def has_explored(self, cell_id: CellId | None) -> bool:
        return cell_id is not None and cell_id in self.explored

    def mark_explored(self, cell_id: CellId) -> None:
        if cell_id not in self.explored:
            self.explored.append(cell_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "landing_cell_id": self.landing_cell_id,
            "lander_name": self.lander_name,
            "rover_name": self.rover_name,
            "base_level": self.base_level,
            "solar_panels": self.solar_panels,
            "energy": self.energy.to_dict() if self.energy is not None else None,
            "inventory": self.inventory.to_dict(),
            "equipment": list(self.equipment),
            "explored": list(self.explored),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TeamState":
        energy = data.get("energy")
        return cls(
            landing_cell_id=data.get("landing_cell_id"),
            lander_name=str(data["lander_name"]),
            rover_name=str(data["rover_name"]),
            base_level=int(data.get("base_level", 0)),
            solar_panels=int(data.get("solar_panels", 0)),
            energy=EnergyBudget.from_dict(energy) if energy is not None else None,
            inventory=Inventory.from_dict(data.get("inventory")),
            equipment=[str(item) for item in data.get("equipment", [])],
            explored=[str(cell_id) for cell_id in data.get("explored", [])],
        )


@dataclass
class EventRecord:
    turn: int
    player_id: str
    action: str
    cell_id: CellId | None
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "turn": self.turn,
            "player_id": self.player_id,
            "action": self.action,
            "cell_id": self.cell_id,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EventRecord":
        return cls(
            turn=int(data["turn"]),
            player_id=str(data["player_id"]),
            action=str(data["action"]),
            cell_id=data.get("cell_id"),
            message=str(data.get("message", "")),
        )


@dataclass
class EconomyState:
    """Aggregate root persisted per game mode.

    Handlers in ``hexclaim.sim.actions`` treat an instance as immutable and
    return a modified deep copy.
    """

    mode_id: str
    wallets: dict[str, int]
    cells: dict[CellId, OwnedCell]
    teams: dict[str, TeamState]
    player_order: list[str]
    turn: int = 1
    elapsed_hours: int = 0
    active_player_index: int = 0
    terraforming_progress: float = 0.0
    monument_controller: str | None = None
    last_event: str = ""
    event_log: list[EventRecord] = field(default_factory=list)

    @property
    def active_player(self) -> str:
        return self.player_order[self.active_player_index]

    def owner_of(self, cell_id: CellId | None) -> str | None:
        if cell_id is None:
            return None
        owned = self.cells.get(cell_id)
        return owned.owner if owned is not None else None

    def wallet_total(self) -> int:
        return sum(self.wallets.values())

    def is_terraformed(self) -> bool:
        return self.terraforming_progress >= MAX_TERRAFORMING_PROGRESS

    def cells_owned_by(self, player_id: str) -> list[CellId]:
        return sorted(cell_id for cell_id, owned in self.cells.items() if owned.owner == player_id)

    def record_event(self, player_id: str, action: str, cell_id: CellId | None, message: str) -> None:
        self.event_log.append(
            EventRecord(turn=self.turn, player_id=player_id, action=action, cell_id=cell_id, message=message)
        )
        if len(self.event_log) > MAX_EVENT_LOG:
            overflow = len(self.event_log) - MAX_EVENT_LOG
            del self.event_log[:overflow]

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode_id": self.mode_id,
            "player_order": list(self.player_order),
            "wallets": {player_id: self.wallets[player_id] for player_id in sorted(self.wallets)},
            "cells": {cell_id: self.cells[cell_id].to_dict() for cell_id in sorted(self.cells)},
            "teams": {player_id: self.teams[player_id].to_dict() for player_id in sorted(self.teams)},
            "turn": self.turn,
            "elapsed_hours": self.elapsed_hours,
            "active_player_index": self.active_player_index,
            "terraforming_progress": self.terraforming_progress,
            "monument_controller": self.monument_controller,
            "last_event": self.last_event,
            "event_log": [event.to_dict() for event in self.event_log],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EconomyState":
        return cls(
            mode_id=str(data["mode_id"]),
            player_order=[str(player_id) for player_id in data["player_order"]],
            wallets={str(player_id): int(balance) for player_id, balance in data["wallets"].items()},
            cells={str(cell_id): OwnedCell.from_dict(row) for cell_id, row in data.get("cells", {}).items()},
            teams={str(player_id): TeamState.from_dict(row) for player_id, row in data["teams"].items()},
            turn=int(data.get("turn", 1)),
            elapsed_hours=int(data.get("elapsed_hours", 0)),
            active_player_index=int(data.get("active_player_index", 0)),
            terraforming_progress=float(data.get("terraforming_progress", 0.0)),
            monument_controller=data.get("monument_controller"),
            last_event=str(data.get("last_event", "")),
            event_log=[EventRecord.from_dict(row) for row in data.get("event_log", [])],
        )


@dataclass
class RulesContext:
    """Everything a transition needs besides the state itself."""

    mode: GameModeDef
    spatial: SpatialIndex
    zone: TradeZone
    rng: RngStreams
    clock: Callable[[], str] = utc_timestamp

    @classmethod
    def build(
        cls,
        mode: GameModeDef,
        spatial: SpatialIndex,
        *,
        seed: int = 0,
        clock: Callable[[], str] | None = None,
    ) -> "RulesContext":
        return cls(
            mode=mode,
            spatial=spatial,
            zone=build_trade_zone(spatial, mode),
            rng=RngStreams(seed),
            clock=clock if clock is not None else utc_timestamp,
        )


def new_team_state(ctx: RulesContext, player_id: str, landing_cell_id: CellId | None) -> TeamState:
    player = ctx.mode.player(player_id)
    energy_def = ctx.mode.energy
    return TeamState(
        landing_cell_id=landing_cell_id,
        lander_name=player.lander_name,
        rover_name=player.rover_name,
        base_level=0,
        solar_panels=energy_def.solar_panels if energy_def is not None else 0,
        energy=EnergyBudget(current=energy_def.initial, capacity=energy_def.capacity) if energy_def is not None else None,
        inventory=Inventory(),
        equipment=list(ctx.mode.equipment),
        explored=[landing_cell_id] if landing_cell_id is not None else [],
    )


def new_game_state(ctx: RulesContext, rng: random.Random | None = None) -> EconomyState:
    """Fresh state; landing cells are drawn from ``rng`` or the landing stream."""
    mode = ctx.mode
    player_ids = list(mode.player_ids)
    landing: dict[str, CellId] = {}
    if mode.seed_landing_cells:
        landing = pick_landing_cells(
            ctx.zone,
            ctx.spatial,
            player_ids,
            rng if rng is not None else ctx.rng.landing,
            separation=mode.landing_separation,
        )

    now = ctx.clock()
    cells = {cell_id: OwnedCell(owner=player_id, listed_price=None, updated_at=now) for player_id, cell_id in landing.items()}
    teams = {player_id: new_team_state(ctx, player_id, landing.get(player_id)) for player_id in player_ids}
    return EconomyState(
        mode_id=mode.mode_id,
        player_order=player_ids,
        wallets={player_id: mode.initial_tokens for player_id in player_ids},
        cells=cells,
        teams=teams,
        turn=1,
        elapsed_hours=mode.time.start_hour,
        active_player_index=0,
        terraforming_progress=0.0,
        monument_controller=None,
        last_event=f"{mode.title}: new game with {len(player_ids)} players.",
        event_log=[],
    )
