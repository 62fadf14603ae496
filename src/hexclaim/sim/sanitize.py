from __future__ import annotations

import logging
import math
from typing import Any

from hexclaim.sim.rng import RNG_REPAIR_STREAM_NAME
from hexclaim.sim.state import (
    MAX_EVENT_LOG,
    MAX_TERRAFORMING_PROGRESS,
    SYSTEM_PLAYER_ID,
    EconomyState,
    EnergyBudget,
    EventRecord,
    Inventory,
    OwnedCell,
    RulesContext,
    TeamState,
    new_game_state,
)

logger = logging.getLogger(__name__)

# largest integer a float holds exactly; stored counts are clamped to it
MAX_STORED_INT = 2**53 - 1


def _finite_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if not isinstance(value, (int, float)):
        return None
    return max(-MAX_STORED_INT, min(MAX_STORED_INT, value))


def _non_negative_int(value: Any, default: int) -> int:
    number = _finite_number(value)
    if number is None:
        return default
    return max(0, math.floor(number))


def _non_empty_str(value: Any, default: str) -> str:
    if isinstance(value, str) and value:
        return value
    return default


def _sanitize_listed_price(value: Any, floor_price: int) -> int | None:
    number = _finite_number(value)
    if number is None:
        return None
    return max(floor_price, math.floor(number))


def _sanitize_cells(raw: Any, ctx: RulesContext) -> dict[str, OwnedCell]:
    if not isinstance(raw, dict):
        return {}
    player_ids = ctx.mode.player_ids
    cells: dict[str, OwnedCell] = {}
    for cell_id in sorted(key for key in raw if isinstance(key, str)):
        row = raw[cell_id]
        if not ctx.zone.is_tradable(cell_id) or not isinstance(row, dict):
            continue
        owner = row.get("owner")
        if owner not in player_ids:
            continue
        updated_at = row.get("updated_at")
        cells[cell_id] = OwnedCell(
            owner=owner,
            listed_price=_sanitize_listed_price(row.get("listed_price"), ctx.mode.min_list_price),
            updated_at=updated_at if isinstance(updated_at, str) else ctx.clock(),
        )
    return cells


def _sanitize_energy(raw: Any, ctx: RulesContext, fallback: EnergyBudget | None) -> EnergyBudget | None:
    energy_def = ctx.mode.energy
    if energy_def is None or fallback is None:
        return None
    row = raw if isinstance(raw, dict) else {}
    capacity = max(energy_def.min_capacity, _non_negative_int(row.get("capacity"), fallback.capacity))
    current = min(capacity, _non_negative_int(row.get("current"), fallback.current))
    return EnergyBudget(current=current, capacity=capacity)


def _sanitize_inventory(raw: Any) -> Inventory:
    row = raw if isinstance(raw, dict) else {}
    return Inventory(
        ore=_non_negative_int(row.get("ore"), 0),
        ice=_non_negative_int(row.get("ice"), 0),
        artifact=_non_negative_int(row.get("artifact"), 0),
        rare_item=_non_negative_int(row.get("rare_item"), 0),
    )


def _sanitize_explored(raw: Any, ctx: RulesContext, fallback: list[str]) -> list[str]:
    if not isinstance(raw, list):
        return list(fallback)
    explored: list[str] = []
    for cell_id in raw:
        if isinstance(cell_id, str) and ctx.zone.contains(cell_id) and cell_id not in explored:
            explored.append(cell_id)
    return explored


def _sanitize_team(raw: Any, ctx: RulesContext, fallback: TeamState) -> TeamState:
    row = raw if isinstance(raw, dict) else {}

    landing_cell_id: str | None = None
    fallback_explored = fallback.explored
    if ctx.mode.seed_landing_cells:
        candidate = row.get("landing_cell_id")
        if isinstance(candidate, str) and ctx.zone.is_tradable(candidate):
            landing_cell_id = candidate
            fallback_explored = [candidate]
        else:
            landing_cell_id = fallback.landing_cell_id

    equipment = row.get("equipment")
    if isinstance(equipment, list):
        equipment = [item for item in equipment if isinstance(item, str)]
    else:
        equipment = list(fallback.equipment)

    return TeamState(
        landing_cell_id=landing_cell_id,
        lander_name=_non_empty_str(row.get("lander_name"), fallback.lander_name),
        rover_name=_non_empty_str(row.get("rover_name"), fallback.rover_name),
        base_level=_non_negative_int(row.get("base_level"), fallback.base_level),
        solar_panels=_non_negative_int(row.get("solar_panels"), fallback.solar_panels),
        energy=_sanitize_energy(row.get("energy"), ctx, fallback.energy),
        inventory=_sanitize_inventory(row.get("inventory")),
        equipment=equipment,
        explored=_sanitize_explored(row.get("explored"), ctx, fallback_explored),
    )


def _sanitize_event_log(raw: Any, ctx: RulesContext) -> list[EventRecord]:
    if not isinstance(raw, list):
        return []
    known_players = (*ctx.mode.player_ids, SYSTEM_PLAYER_ID)
    events: list[EventRecord] = []
    for row in raw[-MAX_EVENT_LOG:]:
        if not isinstance(row, dict):
            continue
        action = row.get("action")
        player_id = row.get("player_id")
        message = row.get("message")
        cell_id = row.get("cell_id")
        if not isinstance(action, str) or not action or player_id not in known_players or not isinstance(message, str):
            continue
        if cell_id is not None and not isinstance(cell_id, str):
            continue
        events.append(
            EventRecord(
                turn=max(1, _non_negative_int(row.get("turn"), 1)),
                player_id=player_id,
                action=action,
                cell_id=cell_id,
                message=message,
            )
        )
    return events


def sanitize_state(raw: Any, ctx: RulesContext) -> EconomyState:
    """Rebuild a valid :class:`EconomyState` from untrusted input.

    Never raises. Every field is validated on its own and falls back to the
    matching field of a fresh game drawn from a dedicated repair stream, so
    the result depends only on ``raw`` and the master seed.
    """
    fallback = new_game_state(ctx, rng=ctx.rng.fresh(RNG_REPAIR_STREAM_NAME))
    if not isinstance(raw, dict):
        if raw is not None:
            logger.warning("discarding non-object economy state (%s)", type(raw).__name__)
        return fallback

    mode = ctx.mode
    player_ids = list(mode.player_ids)

    raw_wallets = raw.get("wallets") if isinstance(raw.get("wallets"), dict) else {}
    wallets = {player_id: _non_negative_int(raw_wallets.get(player_id), mode.initial_tokens) for player_id in player_ids}

    raw_teams = raw.get("teams") if isinstance(raw.get("teams"), dict) else {}
    teams = {player_id: _sanitize_team(raw_teams.get(player_id), ctx, fallback.teams[player_id]) for player_id in player_ids}

    cells = _sanitize_cells(raw.get("cells"), ctx)
    if mode.seed_landing_cells:
        stamp = ctx.clock()
        for player_id in player_ids:
            landing_cell_id = teams[player_id].landing_cell_id
            if landing_cell_id is not None and landing_cell_id not in cells:
                cells[landing_cell_id] = OwnedCell(owner=player_id, listed_price=None, updated_at=stamp)

    active_index = _finite_number(raw.get("active_player_index"))
    active_player_index = math.floor(active_index) if active_index is not None else 0
    if not 0 <= active_player_index < len(player_ids):
        active_player_index = 0

    progress = _finite_number(raw.get("terraforming_progress"))
    terraforming_progress = float(min(MAX_TERRAFORMING_PROGRESS, max(0.0, progress))) if progress is not None else 0.0

    controller = raw.get("monument_controller")
    if controller not in player_ids or ctx.zone.monument_cell is None:
        controller = None

    state = EconomyState(
        mode_id=mode.mode_id,
        player_order=player_ids,
        wallets=wallets,
        cells=cells,
        teams=teams,
        turn=max(1, _non_negative_int(raw.get("turn"), 1)),
        elapsed_hours=_non_negative_int(raw.get("elapsed_hours"), mode.time.start_hour),
        active_player_index=active_player_index,
        terraforming_progress=terraforming_progress,
        monument_controller=controller,
        last_event=_non_empty_str(raw.get("last_event"), fallback.last_event),
        event_log=_sanitize_event_log(raw.get("event_log"), ctx),
    )
    if state.to_dict() != raw:
        logger.info("repaired economy state for mode %s", mode.mode_id)
    return state
