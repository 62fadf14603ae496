from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any

from hexclaim.sim.spatial import CellId
from hexclaim.sim.state import (
    MAX_TERRAFORMING_PROGRESS,
    EconomyState,
    OwnedCell,
    RulesContext,
    TeamState,
    new_game_state,
)
from hexclaim.sim.turns import advance_turn, illumination

logger = logging.getLogger(__name__)

ACCEPTED = "accepted"
REJECTED = "rejected"
IGNORED = "ignored"

REJECTION_MESSAGES: dict[str, str] = {
    "unknown_player": "Unknown player.",
    "not_your_turn": "It is not this player's turn.",
    "cell_not_selected": "Select a cell first.",
    "outside_trade_zone": "That cell is outside the trade zone.",
    "already_explored": "This cell has already been explored.",
    "insufficient_energy": "Not enough energy.",
    "monument_not_tradable": "The monument cannot be owned or traded.",
    "not_explored": "Explore this cell first.",
    "already_owned": "This cell is already owned.",
    "insufficient_balance": "Not enough tokens.",
    "invalid_price": "Enter a whole-number price at or above the floor price.",
    "not_listed": "This cell is not for sale.",
    "own_cell": "You already own this cell.",
    "no_base": "Build a base first.",
    "insufficient_resources": "Not enough ore, ice or artifacts.",
    "terraforming_complete": "Terraforming is already complete.",
    "unavailable_in_mode": "That action is not available in this game mode.",
    "rotation_locked": "Players rotate automatically in this game mode.",
    "unknown_command": "Unknown command.",
    "not_owner": "You do not own this cell.",
}

ACTION_NAMES = ("explore", "claim", "list", "unlist", "buy", "build_base", "mine", "terraform", "harvest")


@dataclass(frozen=True)
class ActionResult:
    state: EconomyState
    outcome: str
    reason: str | None = None
    message: str = ""

    @property
    def accepted(self) -> bool:
        return self.outcome == ACCEPTED

    def to_dict(self) -> dict[str, Any]:
        return {"outcome": self.outcome, "reason": self.reason, "message": self.message}


def rejected(state: EconomyState, reason: str) -> ActionResult:
    logger.debug("action rejected: %s", reason)
    return ActionResult(state=state, outcome=REJECTED, reason=reason, message=REJECTION_MESSAGES[reason])


def _ignored(state: EconomyState, reason: str) -> ActionResult:
    return ActionResult(state=state, outcome=IGNORED, reason=reason, message="")


def _accept(
    working: EconomyState,
    ctx: RulesContext,
    player_id: str,
    action: str,
    cell_id: CellId | None,
    message: str,
) -> ActionResult:
    working.last_event = message
    working.record_event(player_id, action, cell_id, message)
    advance_turn(working, ctx)
    return ActionResult(state=working, outcome=ACCEPTED, reason=None, message=message)


def _label(ctx: RulesContext, player_id: str) -> str:
    return ctx.mode.label_for(player_id)


def _actor_gate(state: EconomyState, ctx: RulesContext, player_id: str) -> str | None:
    if player_id not in state.teams or player_id not in state.wallets:
        return "unknown_player"
    if ctx.mode.rotation == "auto" and state.active_player != player_id:
        return "not_your_turn"
    return None


def _cell_gate(state: EconomyState, ctx: RulesContext, player_id: str, cell_id: CellId | None) -> str | None:
    reason = _actor_gate(state, ctx, player_id)
    if reason is not None:
        return reason
    if not cell_id:
        return "cell_not_selected"
    if not ctx.zone.contains(cell_id):
        return "outside_trade_zone"
    return None


def _energy_short(team: TeamState, cost: int) -> bool:
    return team.energy is not None and team.energy.current < cost


def _spend_energy(team: TeamState, cost: int) -> None:
    if team.energy is not None:
        team.energy.current -= cost


def _clamp_progress(value: float) -> float:
    return max(0.0, min(MAX_TERRAFORMING_PROGRESS, value))


# -- precondition checks shared by the handlers and available_actions --------


def explore_rejection(state: EconomyState, ctx: RulesContext, player_id: str, cell_id: CellId | None) -> str | None:
    reason = _cell_gate(state, ctx, player_id, cell_id)
    if reason is not None:
        return reason
    team = state.teams[player_id]
    if team.has_explored(cell_id):
        return "already_explored"
    if _energy_short(team, ctx.mode.explore.energy_cost):
        return "insufficient_energy"
    return None


def claim_rejection(state: EconomyState, ctx: RulesContext, player_id: str, cell_id: CellId | None) -> str | None:
    reason = _cell_gate(state, ctx, player_id, cell_id)
    if reason is not None:
        return reason
    if ctx.zone.is_monument(cell_id):
        return "monument_not_tradable"
    if not state.teams[player_id].has_explored(cell_id):
        return "not_explored"
    if cell_id in state.cells:
        return "already_owned"
    if state.wallets[player_id] < ctx.mode.claim_price:
        return "insufficient_balance"
    return None


def _valid_price(ctx: RulesContext, price: Any) -> bool:
    return not isinstance(price, bool) and isinstance(price, int) and price >= ctx.mode.min_list_price


def list_rejection(
    state: EconomyState,
    ctx: RulesContext,
    player_id: str,
    cell_id: CellId | None,
    price: Any,
) -> str | None:
    reason = _cell_gate(state, ctx, player_id, cell_id)
    if reason is not None:
        return reason
    if ctx.zone.is_monument(cell_id):
        return "monument_not_tradable"
    if state.owner_of(cell_id) != player_id:
        return "not_owner"
    if not _valid_price(ctx, price):
        return "invalid_price"
    return None


def unlist_rejection(state: EconomyState, ctx: RulesContext, player_id: str, cell_id: CellId | None) -> str | None:
    reason = _cell_gate(state, ctx, player_id, cell_id)
    if reason is not None:
        return reason
    if ctx.zone.is_monument(cell_id):
        return "monument_not_tradable"
    if state.owner_of(cell_id) != player_id:
        return "not_owner"
    return None


def buy_rejection(state: EconomyState, ctx: RulesContext, player_id: str, cell_id: CellId | None) -> str | None:
    reason = _cell_gate(state, ctx, player_id, cell_id)
    if reason is not None:
        return reason
    if ctx.zone.is_monument(cell_id):
        return "monument_not_tradable"
    owned = state.cells.get(cell_id)
    if owned is None or owned.listed_price is None:
        return "not_listed"
    if owned.owner == player_id:
        return "own_cell"
    if state.wallets[player_id] < owned.listed_price:
        return "insufficient_balance"
    return None


def build_base_rejection(state: EconomyState, ctx: RulesContext, player_id: str) -> str | None:
    reason = _actor_gate(state, ctx, player_id)
    if reason is not None:
        return reason
    config = ctx.mode.build_base
    if config is None:
        return "unavailable_in_mode"
    if state.wallets[player_id] < config.token_cost:
        return "insufficient_balance"
    if _energy_short(state.teams[player_id], config.energy_cost):
        return "insufficient_energy"
    return None


def mine_rejection(state: EconomyState, ctx: RulesContext, player_id: str, cell_id: CellId | None) -> str | None:
    reason = _actor_gate(state, ctx, player_id)
    if reason is not None:
        return reason
    config = ctx.mode.mine
    if config is None:
        return "unavailable_in_mode"
    reason = _cell_gate(state, ctx, player_id, cell_id)
    if reason is not None:
        return reason
    team = state.teams[player_id]
    if not team.has_explored(cell_id):
        return "not_explored"
    if _energy_short(team, config.energy_cost):
        return "insufficient_energy"
    return None


def terraform_rejection(state: EconomyState, ctx: RulesContext, player_id: str) -> str | None:
    reason = _actor_gate(state, ctx, player_id)
    if reason is not None:
        return reason
    config = ctx.mode.terraform
    if config is None:
        return "unavailable_in_mode"
    if state.is_terraformed():
        return "terraforming_complete"
    team = state.teams[player_id]
    if team.base_level <= 0:
        return "no_base"
    if _energy_short(team, config.energy_cost):
        return "insufficient_energy"
    inventory = team.inventory
    if inventory.ore < config.ore_cost or inventory.ice < config.ice_cost or inventory.artifact < config.artifact_cost:
        return "insufficient_resources"
    return None


def harvest_rejection(state: EconomyState, ctx: RulesContext, player_id: str) -> str | None:
    reason = _actor_gate(state, ctx, player_id)
    if reason is not None:
        return reason
    if ctx.mode.harvest is None or ctx.mode.energy is None:
        return "unavailable_in_mode"
    return None


# -- transitions --------------------------------------------------------------


def explore(state: EconomyState, ctx: RulesContext, player_id: str, cell_id: CellId | None) -> ActionResult:
    reason = explore_rejection(state, ctx, player_id, cell_id)
    if reason is not None:
        return rejected(state, reason)

    config = ctx.mode.explore
    rng = ctx.rng.yields
    low, high = config.tokens
    tokens = rng.randint(low, high)
    if config.illumination_scaled:
        light = illumination(state.elapsed_hours, ctx.zone.longitude_of(cell_id), ctx.mode.time)
        tokens = max(low, min(high, round(tokens * (0.5 + 0.5 * light))))
    ore = rng.randint(*config.ore)
    ice = rng.randint(*config.ice)
    artifact = 1 if config.artifact_chance > 0 and rng.random() < config.artifact_chance else 0
    rare_item = 1 if config.rare_item_chance > 0 and rng.random() < config.rare_item_chance else 0
    tokens += rare_item * config.rare_item_token_bonus

    working = copy.deepcopy(state)
    team = working.teams[player_id]
    team.mark_explored(cell_id)
    _spend_energy(team, config.energy_cost)
    team.inventory.ore += ore
    team.inventory.ice += ice
    team.inventory.artifact += artifact
    team.inventory.rare_item += rare_item
    working.wallets[player_id] += tokens
    if artifact:
        working.terraforming_progress = _clamp_progress(working.terraforming_progress + config.artifact_progress)

    currency = ctx.mode.currency
    gains = [f"+{tokens} {currency}"]
    if ore or ice:
        gains.append(f"+{ore} ore, +{ice} ice")
    if artifact:
        gains.append("+1 artifact")
    if rare_item:
        gains.append("+1 rare item")
    message = f"{_label(ctx, player_id)} explored {cell_id} ({', '.join(gains)})."
    return _accept(working, ctx, player_id, "explore", cell_id, message)


def claim(state: EconomyState, ctx: RulesContext, player_id: str, cell_id: CellId | None) -> ActionResult:
    reason = claim_rejection(state, ctx, player_id, cell_id)
    if reason is not None:
        return rejected(state, reason)

    working = copy.deepcopy(state)
    working.wallets[player_id] -= ctx.mode.claim_price
    working.cells[cell_id] = OwnedCell(owner=player_id, listed_price=None, updated_at=ctx.clock())
    message = f"{_label(ctx, player_id)} claimed {cell_id} (-{ctx.mode.claim_price} {ctx.mode.currency})."
    return _accept(working, ctx, player_id, "claim", cell_id, message)


def list_cell(
    state: EconomyState,
    ctx: RulesContext,
    player_id: str,
    cell_id: CellId | None,
    price: Any,
) -> ActionResult:
    reason = list_rejection(state, ctx, player_id, cell_id, price)
    if reason == "not_owner":
        return _ignored(state, reason)
    if reason is not None:
        return rejected(state, reason)

    working = copy.deepcopy(state)
    owned = working.cells[cell_id]
    owned.listed_price = price
    owned.updated_at = ctx.clock()
    message = f"{_label(ctx, player_id)} listed {cell_id} at {price} {ctx.mode.currency}."
    return _accept(working, ctx, player_id, "list", cell_id, message)


def unlist_cell(state: EconomyState, ctx: RulesContext, player_id: str, cell_id: CellId | None) -> ActionResult:
    reason = unlist_rejection(state, ctx, player_id, cell_id)
    if reason == "not_owner":
        return _ignored(state, reason)
    if reason is not None:
        return rejected(state, reason)

    working = copy.deepcopy(state)
    owned = working.cells[cell_id]
    owned.listed_price = None
    owned.updated_at = ctx.clock()
    message = f"{_label(ctx, player_id)} removed the listing on {cell_id}."
    return _accept(working, ctx, player_id, "unlist", cell_id, message)


def buy(state: EconomyState, ctx: RulesContext, player_id: str, cell_id: CellId | None) -> ActionResult:
    reason = buy_rejection(state, ctx, player_id, cell_id)
    if reason is not None:
        return rejected(state, reason)

    working = copy.deepcopy(state)
    owned = working.cells[cell_id]
    seller = owned.owner
    price = owned.listed_price
    working.wallets[player_id] -= price
    working.wallets[seller] += price
    owned.owner = player_id
    owned.listed_price = None
    owned.updated_at = ctx.clock()
    message = f"{_label(ctx, player_id)} bought {cell_id} from {_label(ctx, seller)} for {price} {ctx.mode.currency}."
    return _accept(working, ctx, player_id, "buy", cell_id, message)


def build_base(state: EconomyState, ctx: RulesContext, player_id: str) -> ActionResult:
    reason = build_base_rejection(state, ctx, player_id)
    if reason is not None:
        return rejected(state, reason)

    config = ctx.mode.build_base
    working = copy.deepcopy(state)
    team = working.teams[player_id]
    working.wallets[player_id] -= config.token_cost
    _spend_energy(team, config.energy_cost)
    team.base_level += 1
    team.solar_panels += config.panel_gain
    if team.energy is not None:
        team.energy.capacity += config.capacity_gain
    working.terraforming_progress = _clamp_progress(working.terraforming_progress + config.progress_gain)
    message = f"{_label(ctx, player_id)} expanded base to Lv.{team.base_level}."
    return _accept(working, ctx, player_id, "build_base", team.landing_cell_id, message)


def mine(state: EconomyState, ctx: RulesContext, player_id: str, cell_id: CellId | None) -> ActionResult:
    reason = mine_rejection(state, ctx, player_id, cell_id)
    if reason is not None:
        return rejected(state, reason)

    config = ctx.mode.mine
    rng = ctx.rng.yields
    ore = rng.randint(*config.ore)
    ice = rng.randint(*config.ice)
    artifact = 1 if config.artifact_chance > 0 and rng.random() < config.artifact_chance else 0

    working = copy.deepcopy(state)
    team = working.teams[player_id]
    _spend_energy(team, config.energy_cost)
    team.inventory.ore += ore
    team.inventory.ice += ice
    team.inventory.artifact += artifact
    message = f"{_label(ctx, player_id)} mined {cell_id} (+{ore} ore, +{ice} ice{', +1 artifact' if artifact else ''})."
    return _accept(working, ctx, player_id, "mine", cell_id, message)


def terraform(state: EconomyState, ctx: RulesContext, player_id: str) -> ActionResult:
    reason = terraform_rejection(state, ctx, player_id)
    if reason is not None:
        return rejected(state, reason)

    config = ctx.mode.terraform
    working = copy.deepcopy(state)
    team = working.teams[player_id]
    gain = config.base_gain + team.base_level * config.per_level_gain
    if team.inventory.rare_item > 0:
        gain += config.rare_item_bonus
    _spend_energy(team, config.energy_cost)
    team.inventory.ore -= config.ore_cost
    team.inventory.ice -= config.ice_cost
    team.inventory.artifact -= config.artifact_cost
    working.terraforming_progress = _clamp_progress(working.terraforming_progress + gain)
    working.wallets[player_id] += config.token_reward
    message = f"{_label(ctx, player_id)} contributed to terraforming (+{gain:.1f}%)."
    if working.is_terraformed():
        message += " Terraforming complete!"
    return _accept(working, ctx, player_id, "terraform", None, message)


def harvest(state: EconomyState, ctx: RulesContext, player_id: str) -> ActionResult:
    reason = harvest_rejection(state, ctx, player_id)
    if reason is not None:
        return rejected(state, reason)

    config = ctx.mode.harvest
    working = copy.deepcopy(state)
    team = working.teams[player_id]
    gain = 0
    if team.energy is not None:
        raw_gain = team.solar_panels * config.panel_yield + team.base_level * config.base_yield + config.flat_yield
        gain = max(0, min(team.energy.capacity - team.energy.current, raw_gain))
        team.energy.current += gain
    message = f"{_label(ctx, player_id)} harvested {gain} energy from solar arrays."
    return _accept(working, ctx, player_id, "harvest", None, message)


def select_player(state: EconomyState, ctx: RulesContext, player_id: str) -> ActionResult:
    """Make ``player_id`` the active player; only free-rotation modes allow it."""
    if player_id not in state.player_order:
        return rejected(state, "unknown_player")
    if ctx.mode.rotation == "auto":
        return rejected(state, "rotation_locked")
    if state.active_player == player_id:
        return ActionResult(state=state, outcome=ACCEPTED, reason=None, message="")
    working = copy.deepcopy(state)
    working.active_player_index = working.player_order.index(player_id)
    return ActionResult(state=working, outcome=ACCEPTED, reason=None, message=f"{_label(ctx, player_id)} is now active.")


def reset(ctx: RulesContext) -> ActionResult:
    state = new_game_state(ctx)
    return ActionResult(state=state, outcome=ACCEPTED, reason=None, message=state.last_event)


def available_actions(
    state: EconomyState,
    ctx: RulesContext,
    player_id: str,
    cell_id: CellId | None,
    price: Any = None,
) -> dict[str, bool]:
    """Which actions would currently be accepted; for enabling UI controls only."""
    list_price = ctx.mode.default_list_price if price is None else price
    checks = {
        "explore": explore_rejection(state, ctx, player_id, cell_id),
        "claim": claim_rejection(state, ctx, player_id, cell_id),
        "list": list_rejection(state, ctx, player_id, cell_id, list_price),
        "unlist": unlist_rejection(state, ctx, player_id, cell_id),
        "buy": buy_rejection(state, ctx, player_id, cell_id),
        "build_base": build_base_rejection(state, ctx, player_id),
        "mine": mine_rejection(state, ctx, player_id, cell_id),
        "terraform": terraform_rejection(state, ctx, player_id),
        "harvest": harvest_rejection(state, ctx, player_id),
    }
    return {name: checks[name] is None for name in ACTION_NAMES}
