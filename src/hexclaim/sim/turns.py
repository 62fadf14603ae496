from __future__ import annotations

import logging
import math

from hexclaim.content.modes import EnergyDef, TimeDef
from hexclaim.sim.state import EconomyState, RulesContext, SYSTEM_PLAYER_ID, TeamState
from hexclaim.sim.zone import TradeZone

logger = logging.getLogger(__name__)

MONUMENT_BONUS_ACTION = "monument_bonus"


def local_hour(elapsed_hours: float, longitude: float, time_def: TimeDef) -> float:
    offset = longitude / 360.0 * time_def.hours_per_day
    return (elapsed_hours + offset) % time_def.hours_per_day


def illumination(elapsed_hours: float, longitude: float, time_def: TimeDef) -> float:
    """Daylight factor in [0, 1]: a half sine over the local daylight window, zero at night."""
    hour = local_hour(elapsed_hours, longitude, time_def)
    since_sunrise = (hour - time_def.sunrise_hour) % time_def.hours_per_day
    if since_sunrise >= time_def.daylight_hours:
        return 0.0
    value = math.sin(math.pi * since_sunrise / time_def.daylight_hours)
    return max(0.0, min(1.0, value))


def regen_amount(team: TeamState, energy_def: EnergyDef, light: float) -> int:
    solar = math.floor(team.solar_panels * energy_def.solar_yield * light)
    return solar + team.base_level * energy_def.base_regen + energy_def.trickle


def monument_control(state: EconomyState, zone: TradeZone, threshold: int) -> str | None:
    """Player owning at least ``threshold`` ring cells, if exactly one leads."""
    if zone.monument_cell is None:
        return None
    counts: dict[str, int] = {}
    for cell_id in zone.monument_ring:
        owner = state.owner_of(cell_id)
        if owner is not None:
            counts[owner] = counts.get(owner, 0) + 1
    qualifying = sorted(
        (player_id for player_id, count in counts.items() if count >= threshold),
        key=lambda player_id: (-counts[player_id], player_id),
    )
    if not qualifying:
        return None
    if len(qualifying) > 1 and counts[qualifying[0]] == counts[qualifying[1]]:
        return None
    return qualifying[0]


def advance_turn(state: EconomyState, ctx: RulesContext) -> None:
    """Advance ``state`` in place by one turn; callers pass a working copy."""
    mode = ctx.mode
    state.turn += 1
    state.elapsed_hours += mode.time.hours_per_turn

    if mode.energy is not None:
        for player_id in state.player_order:
            team = state.teams[player_id]
            if team.energy is None:
                continue
            light = illumination(state.elapsed_hours, ctx.zone.longitude_of(team.landing_cell_id), mode.time)
            regen = regen_amount(team, mode.energy, light)
            team.energy.current = min(team.energy.capacity, team.energy.current + regen)

    monument = mode.zone.monument
    if monument is not None:
        controller = monument_control(state, ctx.zone, monument.threshold)
        if controller != state.monument_controller:
            logger.debug("monument control changed: %s -> %s", state.monument_controller, controller)
        state.monument_controller = controller
        if controller is not None and monument.bonus > 0:
            state.wallets[controller] += monument.bonus
            state.record_event(
                SYSTEM_PLAYER_ID,
                MONUMENT_BONUS_ACTION,
                ctx.zone.monument_cell,
                f"{mode.label_for(controller)} holds the monument ring (+{monument.bonus} {mode.currency}).",
            )

    if mode.rotation == "auto":
        state.active_player_index = (state.active_player_index + 1) % len(state.player_order)
