from __future__ import annotations

import json
from pathlib import Path

import pytest

from hexclaim.content.modes import DEFAULT_GAME_MODES_PATH, load_game_mode, load_game_modes_json


def _write_modes(path: Path, modes: list[dict]) -> Path:
    path.write_text(json.dumps({"schema_version": 1, "modes": modes}), encoding="utf-8")
    return path


def _minimal_mode(**overrides) -> dict:
    row = {
        "mode_id": "tiny",
        "storage_key": "tiny-v1",
        "players": [{"player_id": "alice"}, {"player_id": "bob"}],
        "initial_tokens": 100,
        "claim_price": 10,
        "min_list_price": 5,
        "default_list_price": 20,
        "zone": {"anchors": [{"lat": 0.0, "lon": 0.0, "ring": 2}]},
        "explore": {"tokens": [1, 3]},
    }
    row.update(overrides)
    return row


def test_default_registry_ships_lite_lite4_and_mars() -> None:
    registry = load_game_modes_json(DEFAULT_GAME_MODES_PATH)

    assert registry.schema_version == 1
    assert set(registry.by_id()) == {"lite", "lite4", "mars"}
    storage_keys = [mode.storage_key for mode in registry.modes]
    assert len(storage_keys) == len(set(storage_keys))


def test_lite_mode_constants() -> None:
    mode = load_game_mode("lite")

    assert mode.player_ids == ("alice", "bob")
    assert mode.rotation == "free"
    assert mode.initial_tokens == 300
    assert mode.claim_price == 20
    assert mode.min_list_price == 5
    assert mode.explore.tokens == (4, 14)
    assert mode.energy is None
    assert mode.mine is None and mode.build_base is None and mode.terraform is None and mode.harvest is None
    assert mode.zone.monument is None
    assert mode.seed_landing_cells is False


def test_lite4_rotates_and_has_monument_bonus() -> None:
    mode = load_game_mode("lite4")

    assert len(mode.players) == 4
    assert mode.rotation == "auto"
    assert mode.zone.monument is not None
    assert mode.zone.monument.threshold == 4
    assert mode.energy is not None
    assert mode.explore.illumination_scaled is True


def test_mars_mode_carries_full_resource_economy() -> None:
    mode = load_game_mode("mars")

    assert mode.initial_tokens == 1000
    assert mode.claim_price == 40
    assert mode.energy is not None and mode.energy.capacity == 180 and mode.energy.min_capacity == 50
    assert mode.terraform is not None and mode.terraform.token_reward == 35
    assert mode.build_base is not None and mode.build_base.token_cost == 120
    assert mode.harvest is not None
    assert mode.equipment == ("Hab Kit", "Drill", "Spectrometer")
    assert mode.player("alice").rover_name == "Aurora Rover"


def test_unknown_mode_id_is_reported_with_known_ids() -> None:
    with pytest.raises(ValueError, match="unknown game mode: nope"):
        load_game_mode("nope")


def test_minimal_mode_fills_defaults(tmp_path: Path) -> None:
    registry = load_game_modes_json(_write_modes(tmp_path / "modes.json", [_minimal_mode()]))
    mode = registry.get("tiny")

    assert mode.rotation == "free"
    assert mode.currency == "tokens"
    assert mode.time.hours_per_day == 24
    assert mode.label_for("alice") == "Alice"
    assert mode.label_for("mallory") == "mallory"


def test_rejects_duplicate_mode_ids(tmp_path: Path) -> None:
    path = _write_modes(tmp_path / "modes.json", [_minimal_mode(), _minimal_mode(storage_key="other")])

    with pytest.raises(ValueError, match="duplicate mode_id: tiny"):
        load_game_modes_json(path)


def test_rejects_unknown_rotation(tmp_path: Path) -> None:
    path = _write_modes(tmp_path / "modes.json", [_minimal_mode(rotation="sometimes")])

    with pytest.raises(ValueError, match=r"modes\[0\]\.rotation"):
        load_game_modes_json(path)


def test_rejects_three_players(tmp_path: Path) -> None:
    players = [{"player_id": "a"}, {"player_id": "b"}, {"player_id": "c"}]
    path = _write_modes(tmp_path / "modes.json", [_minimal_mode(players=players)])

    with pytest.raises(ValueError, match="2 or 4 players"):
        load_game_modes_json(path)


def test_rejects_resource_actions_without_energy(tmp_path: Path) -> None:
    mine = {"energy_cost": 5, "ore": [1, 2], "ice": [1, 2], "artifact_chance": 0.1}
    path = _write_modes(tmp_path / "modes.json", [_minimal_mode(mine=mine)])

    with pytest.raises(ValueError, match="require an energy section"):
        load_game_modes_json(path)


def test_rejects_inverted_yield_range(tmp_path: Path) -> None:
    path = _write_modes(tmp_path / "modes.json", [_minimal_mode(explore={"tokens": [9, 3]})])

    with pytest.raises(ValueError, match=r"explore\.tokens must satisfy"):
        load_game_modes_json(path)


def test_rejects_default_price_below_floor(tmp_path: Path) -> None:
    path = _write_modes(tmp_path / "modes.json", [_minimal_mode(default_list_price=2)])

    with pytest.raises(ValueError, match="default_list_price must be >= min_list_price"):
        load_game_modes_json(path)


def test_rejects_unsupported_schema_version(tmp_path: Path) -> None:
    path = tmp_path / "modes.json"
    path.write_text(json.dumps({"schema_version": 2, "modes": [_minimal_mode()]}), encoding="utf-8")

    with pytest.raises(ValueError, match="unsupported game mode schema_version"):
        load_game_modes_json(path)
