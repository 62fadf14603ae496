from __future__ import annotations

import random

import pytest

from hexclaim.content.modes import load_game_mode
from hexclaim.sim import actions
from hexclaim.sim.engine import COMMAND_TYPES, GameCommand, apply_command
from hexclaim.sim.spatial import AxialSpatialIndex
from hexclaim.sim.state import EconomyState, RulesContext, new_game_state
from hexclaim.sim.turns import illumination, regen_amount


def _clock() -> str:
    return "2026-01-01T00:00:00+00:00"


def _mars_game(seed: int = 21) -> tuple[RulesContext, EconomyState]:
    ctx = RulesContext.build(load_game_mode("mars"), AxialSpatialIndex(), seed=seed, clock=_clock)
    return ctx, new_game_state(ctx)


def _open_cell(ctx: RulesContext, state: EconomyState) -> str:
    for cell_id in ctx.zone.sorted_cells():
        if ctx.zone.is_tradable(cell_id) and cell_id not in state.cells and cell_id not in ctx.zone.monument_ring:
            return cell_id
    raise AssertionError("zone has no open cell")


def _expected_energy(ctx: RulesContext, state: EconomyState, player_id: str, spent_from: int) -> int:
    team = state.teams[player_id]
    light = illumination(state.elapsed_hours, ctx.zone.longitude_of(team.landing_cell_id), ctx.mode.time)
    return min(team.energy.capacity, spent_from + regen_amount(team, ctx.mode.energy, light))


def test_mars_teams_start_with_landers_energy_and_equipment() -> None:
    ctx, state = _mars_game()
    alice = state.teams["alice"]

    assert alice.lander_name == "Ares Lander A"
    assert alice.rover_name == "Aurora Rover"
    assert alice.energy is not None and (alice.energy.current, alice.energy.capacity) == (120, 180)
    assert alice.solar_panels == 2
    assert alice.equipment == ["Hab Kit", "Drill", "Spectrometer"]
    assert state.wallets == {"alice": 1000, "bob": 1000}


def test_explore_spends_energy_and_yields_resources() -> None:
    ctx, state = _mars_game()
    cell = _open_cell(ctx, state)

    result = actions.explore(state, ctx, "alice", cell)

    assert result.accepted
    team = result.state.teams["alice"]
    reward = result.state.wallets["alice"] - 1000
    assert 8 <= reward <= 28 + 12
    assert 2 <= team.inventory.ore <= 9
    assert 1 <= team.inventory.ice <= 6
    assert team.energy.current == _expected_energy(ctx, result.state, "alice", 120 - 15)
    assert result.state.elapsed_hours == state.elapsed_hours + 3


def test_explore_without_energy_is_rejected() -> None:
    ctx, state = _mars_game()
    state.teams["alice"].energy.current = 14

    result = actions.explore(state, ctx, "alice", _open_cell(ctx, state))

    assert result.reason == "insufficient_energy"
    assert result.state.teams["alice"].energy.current == 14


def test_mine_requires_explored_cell() -> None:
    ctx, state = _mars_game()
    landing = state.teams["alice"].landing_cell_id

    assert actions.mine(state, ctx, "alice", _open_cell(ctx, state)).reason == "not_explored"
    assert actions.mine(state, ctx, "alice", None).reason == "cell_not_selected"

    result = actions.mine(state, ctx, "alice", landing)
    assert result.accepted
    inventory = result.state.teams["alice"].inventory
    assert 5 <= inventory.ore <= 16
    assert 2 <= inventory.ice <= 10


def test_build_base_raises_level_panels_and_capacity() -> None:
    ctx, state = _mars_game()

    result = actions.build_base(state, ctx, "alice")

    assert result.accepted
    team = result.state.teams["alice"]
    assert result.state.wallets["alice"] == 880
    assert team.base_level == 1
    assert team.solar_panels == 3
    assert team.energy.capacity == 220
    assert team.energy.current == _expected_energy(ctx, result.state, "alice", 80)
    assert result.state.terraforming_progress == pytest.approx(2.5)
    assert result.message == "Alice expanded base to Lv.1."


def test_build_base_needs_tokens() -> None:
    ctx, state = _mars_game()
    state.wallets["alice"] = 119

    assert actions.build_base(state, ctx, "alice").reason == "insufficient_balance"


def test_terraform_rejections_in_order() -> None:
    ctx, state = _mars_game()
    team = state.teams["alice"]

    assert actions.terraform(state, ctx, "alice").reason == "no_base"

    team.base_level = 1
    assert actions.terraform(state, ctx, "alice").reason == "insufficient_resources"

    team.inventory.ore, team.inventory.ice, team.inventory.artifact = 20, 12, 1
    team.energy.current = 34
    assert actions.terraform(state, ctx, "alice").reason == "insufficient_energy"

    state.terraforming_progress = 100.0
    assert actions.terraform(state, ctx, "alice").reason == "terraforming_complete"


def test_terraform_consumes_resources_and_rewards_tokens() -> None:
    ctx, state = _mars_game()
    team = state.teams["alice"]
    team.base_level = 1
    team.inventory.ore, team.inventory.ice, team.inventory.artifact = 25, 12, 1

    result = actions.terraform(state, ctx, "alice")

    assert result.accepted
    after = result.state.teams["alice"]
    assert (after.inventory.ore, after.inventory.ice, after.inventory.artifact) == (5, 0, 0)
    assert result.state.terraforming_progress == pytest.approx(5.3)
    assert result.state.wallets["alice"] == 1035
    assert after.energy.current == _expected_energy(ctx, result.state, "alice", 120 - 35)


def test_terraform_rare_item_bonus_and_completion_cap() -> None:
    ctx, state = _mars_game()
    team = state.teams["alice"]
    team.base_level = 2
    team.inventory.ore, team.inventory.ice, team.inventory.artifact, team.inventory.rare_item = 20, 12, 1, 1
    state.terraforming_progress = 98.0

    result = actions.terraform(state, ctx, "alice")

    assert result.accepted
    assert result.state.terraforming_progress == 100.0
    assert result.state.is_terraformed()
    assert result.message.endswith("Terraforming complete!")
    assert "+8.1%" in result.message


def test_harvest_fills_energy_up_to_capacity() -> None:
    ctx, state = _mars_game()
    state.teams["alice"].energy.current = 170

    result = actions.harvest(state, ctx, "alice")

    assert result.accepted
    assert result.message == "Alice harvested 10 energy from solar arrays."
    assert result.state.teams["alice"].energy.current == 180


def _random_command(chooser: random.Random, ctx: RulesContext, state: EconomyState) -> GameCommand:
    command_type = chooser.choice([name for name in COMMAND_TYPES if name != "reset"])
    cells = ctx.zone.sorted_cells()
    return GameCommand(
        command_type=command_type,
        player_id=chooser.choice(state.player_order),
        cell_id=chooser.choice([None, *chooser.sample(cells, 3)]),
        params={"price": chooser.randint(-5, 200)},
    )


def test_random_play_respects_resource_bounds() -> None:
    ctx, state = _mars_game(seed=8)
    chooser = random.Random(1234)

    for _ in range(500):
        state = apply_command(state, ctx, _random_command(chooser, ctx, state)).state

        assert 0.0 <= state.terraforming_progress <= 100.0
        assert ctx.zone.monument_cell not in state.cells
        for player_id in state.player_order:
            team = state.teams[player_id]
            assert state.wallets[player_id] >= 0
            assert 0 <= team.energy.current <= team.energy.capacity
            assert team.energy.capacity >= ctx.mode.energy.min_capacity
            inventory = team.inventory
            assert min(inventory.ore, inventory.ice, inventory.artifact, inventory.rare_item) >= 0


def test_apply_command_defaults() -> None:
    ctx, state = _mars_game()
    landing = state.teams["alice"].landing_cell_id

    listed = apply_command(state, ctx, GameCommand(command_type="list", cell_id=landing))
    assert listed.accepted
    assert listed.state.cells[landing].listed_price == ctx.mode.default_list_price

    unknown = apply_command(state, ctx, GameCommand(command_type="teleport"))
    assert unknown.reason == "unknown_command"
    assert unknown.state is state


def test_game_command_validation_and_round_trip() -> None:
    with pytest.raises(ValueError, match="command_type"):
        GameCommand(command_type="")
    with pytest.raises(ValueError, match="params"):
        GameCommand(command_type="list", params=[50])

    command = GameCommand(command_type="list", player_id="bob", cell_id="1,2", params={"price": 60})
    assert GameCommand.from_dict(command.to_dict()) == command
