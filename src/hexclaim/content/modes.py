from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

GAME_MODES_SCHEMA_VERSION = 1
DEFAULT_GAME_MODES_PATH = "content/modes/game_modes.json"
VALID_ROTATIONS = {"auto", "free"}
SUPPORTED_PLAYER_COUNTS = {2, 4}


@dataclass(frozen=True)
class PlayerDef:
    player_id: str
    label: str
    lander_name: str
    rover_name: str


@dataclass(frozen=True)
class ZoneAnchorDef:
    lat: float
    lon: float
    ring: int


@dataclass(frozen=True)
class MonumentDef:
    lat: float
    lon: float
    threshold: int
    bonus: int


@dataclass(frozen=True)
class ZoneDef:
    anchors: tuple[ZoneAnchorDef, ...]
    monument: MonumentDef | None = None


@dataclass(frozen=True)
class TimeDef:
    start_hour: int = 6
    hours_per_turn: int = 2
    hours_per_day: int = 24
    sunrise_hour: int = 6
    daylight_hours: int = 12


@dataclass(frozen=True)
class EnergyDef:
    initial: int
    capacity: int
    min_capacity: int
    solar_panels: int
    solar_yield: int
    base_regen: int
    trickle: int


@dataclass(frozen=True)
class ExploreDef:
    energy_cost: int
    tokens: tuple[int, int]
    ore: tuple[int, int] = (0, 0)
    ice: tuple[int, int] = (0, 0)
    artifact_chance: float = 0.0
    rare_item_chance: float = 0.0
    rare_item_token_bonus: int = 0
    artifact_progress: float = 0.0
    illumination_scaled: bool = False


@dataclass(frozen=True)
class MineDef:
    energy_cost: int
    ore: tuple[int, int]
    ice: tuple[int, int]
    artifact_chance: float


@dataclass(frozen=True)
class BuildBaseDef:
    token_cost: int
    energy_cost: int
    capacity_gain: int
    panel_gain: int
    progress_gain: float


@dataclass(frozen=True)
class TerraformDef:
    energy_cost: int
    ore_cost: int
    ice_cost: int
    artifact_cost: int
    base_gain: float
    per_level_gain: float
    rare_item_bonus: float
    token_reward: int


@dataclass(frozen=True)
class HarvestDef:
    panel_yield: int
    base_yield: int
    flat_yield: int


@dataclass(frozen=True)
class GameModeDef:
    mode_id: str
    title: str
    storage_key: str
    currency: str
    players: tuple[PlayerDef, ...]
    rotation: str
    initial_tokens: int
    claim_price: int
    min_list_price: int
    default_list_price: int
    zone: ZoneDef
    seed_landing_cells: bool
    landing_separation: int
    time: TimeDef
    explore: ExploreDef
    energy: EnergyDef | None = None
    mine: MineDef | None = None
    build_base: BuildBaseDef | None = None
    terraform: TerraformDef | None = None
    harvest: HarvestDef | None = None
    equipment: tuple[str, ...] = ()

    @property
    def player_ids(self) -> tuple[str, ...]:
        return tuple(player.player_id for player in self.players)

    def player(self, player_id: str) -> PlayerDef:
        for player in self.players:
            if player.player_id == player_id:
                return player
        raise KeyError(player_id)

    def label_for(self, player_id: str) -> str:
        for player in self.players:
            if player.player_id == player_id:
                return player.label
        return player_id


@dataclass(frozen=True)
class GameModeRegistry:
    schema_version: int
    modes: tuple[GameModeDef, ...]

    def by_id(self) -> dict[str, GameModeDef]:
        return {mode.mode_id: mode for mode in self.modes}

    def get(self, mode_id: str) -> GameModeDef:
        modes = self.by_id()
        if mode_id not in modes:
            raise ValueError(f"unknown game mode: {mode_id} (known: {', '.join(sorted(modes))})")
        return modes[mode_id]


def load_game_modes_json(path: str | Path = DEFAULT_GAME_MODES_PATH) -> GameModeRegistry:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return _registry_from_payload(payload)


def load_game_mode(mode_id: str, path: str | Path = DEFAULT_GAME_MODES_PATH) -> GameModeDef:
    return load_game_modes_json(path).get(mode_id)


def _require_str(row: dict[str, Any], key: str, *, field_name: str) -> str:
    value = row.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"{field_name}.{key} must be a non-empty string")
    return value


def _require_int(row: dict[str, Any], key: str, *, field_name: str, minimum: int = 0, default: int | None = None) -> int:
    value = row.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name}.{key} must be an integer")
    if value < minimum:
        raise ValueError(f"{field_name}.{key} must be >= {minimum}")
    return value


def _require_number(row: dict[str, Any], key: str, *, field_name: str, default: float | None = None) -> float:
    value = row.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValueError(f"{field_name}.{key} must be a finite number")
    if value < 0:
        raise ValueError(f"{field_name}.{key} must be >= 0")
    return float(value)


def _require_chance(row: dict[str, Any], key: str, *, field_name: str) -> float:
    value = _require_number(row, key, field_name=field_name, default=0.0)
    if value > 1.0:
        raise ValueError(f"{field_name}.{key} must be <= 1")
    return value


def _require_range(row: dict[str, Any], key: str, *, field_name: str, default: tuple[int, int] | None = None) -> tuple[int, int]:
    value = row.get(key)
    if value is None and default is not None:
        return default
    if not isinstance(value, list) or len(value) != 2:
        raise ValueError(f"{field_name}.{key} must be a [min, max] pair")
    low, high = value
    if isinstance(low, bool) or isinstance(high, bool) or not isinstance(low, int) or not isinstance(high, int):
        raise ValueError(f"{field_name}.{key} bounds must be integers")
    if low < 0 or high < low:
        raise ValueError(f"{field_name}.{key} must satisfy 0 <= min <= max")
    return (low, high)


def _require_lat_lon(row: dict[str, Any], *, field_name: str) -> tuple[float, float]:
    lat = row.get("lat")
    lon = row.get("lon")
    for key, value in (("lat", lat), ("lon", lon)):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ValueError(f"{field_name}.{key} must be a finite number")
    if abs(lat) > 90:
        raise ValueError(f"{field_name}.lat must be within [-90, 90]")
    return float(lat), float(lon)


def _optional_section(row: dict[str, Any], key: str, *, field_name: str) -> dict[str, Any] | None:
    value = row.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValueError(f"{field_name}.{key} must be an object or null")
    return value


def _players_from_payload(value: Any, *, field_name: str) -> tuple[PlayerDef, ...]:
    if not isinstance(value, list):
        raise ValueError(f"{field_name} must be a list")
    if len(value) not in SUPPORTED_PLAYER_COUNTS:
        raise ValueError(f"{field_name} must contain 2 or 4 players")
    seen: set[str] = set()
    players: list[PlayerDef] = []
    for index, row in enumerate(value):
        row_name = f"{field_name}[{index}]"
        if not isinstance(row, dict):
            raise ValueError(f"{row_name} must be an object")
        player_id = _require_str(row, "player_id", field_name=row_name)
        if player_id in seen:
            raise ValueError(f"duplicate player_id: {player_id}")
        seen.add(player_id)
        label = row.get("label", player_id.title())
        if not isinstance(label, str) or not label:
            raise ValueError(f"{row_name}.label must be a non-empty string")
        players.append(
            PlayerDef(
                player_id=player_id,
                label=label,
                lander_name=str(row.get("lander_name", f"{label} Lander")),
                rover_name=str(row.get("rover_name", f"{label} Rover")),
            )
        )
    return tuple(players)


def _zone_from_payload(value: Any, *, field_name: str) -> ZoneDef:
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be an object")
    anchors_payload = value.get("anchors")
    if not isinstance(anchors_payload, list) or not anchors_payload:
        raise ValueError(f"{field_name}.anchors must be a non-empty list")
    anchors: list[ZoneAnchorDef] = []
    for index, row in enumerate(anchors_payload):
        row_name = f"{field_name}.anchors[{index}]"
        if not isinstance(row, dict):
            raise ValueError(f"{row_name} must be an object")
        lat, lon = _require_lat_lon(row, field_name=row_name)
        anchors.append(ZoneAnchorDef(lat=lat, lon=lon, ring=_require_int(row, "ring", field_name=row_name)))

    monument: MonumentDef | None = None
    monument_payload = _optional_section(value, "monument", field_name=field_name)
    if monument_payload is not None:
        monument_name = f"{field_name}.monument"
        lat, lon = _require_lat_lon(monument_payload, field_name=monument_name)
        monument = MonumentDef(
            lat=lat,
            lon=lon,
            threshold=_require_int(monument_payload, "threshold", field_name=monument_name, minimum=1, default=4),
            bonus=_require_int(monument_payload, "bonus", field_name=monument_name),
        )
    return ZoneDef(anchors=tuple(anchors), monument=monument)


def _time_from_payload(value: Any, *, field_name: str) -> TimeDef:
    if value is None:
        return TimeDef()
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be an object")
    defaults = TimeDef()
    time_def = TimeDef(
        start_hour=_require_int(value, "start_hour", field_name=field_name, default=defaults.start_hour),
        hours_per_turn=_require_int(value, "hours_per_turn", field_name=field_name, minimum=1, default=defaults.hours_per_turn),
        hours_per_day=_require_int(value, "hours_per_day", field_name=field_name, minimum=1, default=defaults.hours_per_day),
        sunrise_hour=_require_int(value, "sunrise_hour", field_name=field_name, default=defaults.sunrise_hour),
        daylight_hours=_require_int(value, "daylight_hours", field_name=field_name, minimum=1, default=defaults.daylight_hours),
    )
    if time_def.daylight_hours > time_def.hours_per_day:
        raise ValueError(f"{field_name}.daylight_hours must be <= hours_per_day")
    if time_def.sunrise_hour >= time_def.hours_per_day:
        raise ValueError(f"{field_name}.sunrise_hour must be < hours_per_day")
    return time_def


def _energy_from_payload(value: dict[str, Any], *, field_name: str) -> EnergyDef:
    energy = EnergyDef(
        initial=_require_int(value, "initial", field_name=field_name),
        capacity=_require_int(value, "capacity", field_name=field_name, minimum=1),
        min_capacity=_require_int(value, "min_capacity", field_name=field_name, minimum=1, default=1),
        solar_panels=_require_int(value, "solar_panels", field_name=field_name),
        solar_yield=_require_int(value, "solar_yield", field_name=field_name),
        base_regen=_require_int(value, "base_regen", field_name=field_name, default=0),
        trickle=_require_int(value, "trickle", field_name=field_name, default=0),
    )
    if energy.initial > energy.capacity:
        raise ValueError(f"{field_name}.initial must be <= capacity")
    if energy.min_capacity > energy.capacity:
        raise ValueError(f"{field_name}.min_capacity must be <= capacity")
    return energy


def _explore_from_payload(value: Any, *, field_name: str) -> ExploreDef:
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be an object")
    illumination_scaled = value.get("illumination_scaled", False)
    if not isinstance(illumination_scaled, bool):
        raise ValueError(f"{field_name}.illumination_scaled must be a boolean")
    return ExploreDef(
        energy_cost=_require_int(value, "energy_cost", field_name=field_name, default=0),
        tokens=_require_range(value, "tokens", field_name=field_name),
        ore=_require_range(value, "ore", field_name=field_name, default=(0, 0)),
        ice=_require_range(value, "ice", field_name=field_name, default=(0, 0)),
        artifact_chance=_require_chance(value, "artifact_chance", field_name=field_name),
        rare_item_chance=_require_chance(value, "rare_item_chance", field_name=field_name),
        rare_item_token_bonus=_require_int(value, "rare_item_token_bonus", field_name=field_name, default=0),
        artifact_progress=_require_number(value, "artifact_progress", field_name=field_name, default=0.0),
        illumination_scaled=illumination_scaled,
    )


def _mode_from_payload(row: dict[str, Any], *, field_name: str) -> GameModeDef:
    mode_id = _require_str(row, "mode_id", field_name=field_name)
    rotation = row.get("rotation", "free")
    if rotation not in VALID_ROTATIONS:
        raise ValueError(f"{field_name}.rotation must be one of: {', '.join(sorted(VALID_ROTATIONS))}")
    seed_landing_cells = row.get("seed_landing_cells", False)
    if not isinstance(seed_landing_cells, bool):
        raise ValueError(f"{field_name}.seed_landing_cells must be a boolean")
    equipment = row.get("equipment", [])
    if not isinstance(equipment, list) or not all(isinstance(item, str) for item in equipment):
        raise ValueError(f"{field_name}.equipment must be a list of strings")

    energy_payload = _optional_section(row, "energy", field_name=field_name)
    mine_payload = _optional_section(row, "mine", field_name=field_name)
    build_payload = _optional_section(row, "build_base", field_name=field_name)
    terraform_payload = _optional_section(row, "terraform", field_name=field_name)
    harvest_payload = _optional_section(row, "harvest", field_name=field_name)

    energy = _energy_from_payload(energy_payload, field_name=f"{field_name}.energy") if energy_payload is not None else None
    if energy is None and any(section is not None for section in (mine_payload, build_payload, terraform_payload, harvest_payload)):
        raise ValueError(f"{field_name}: mine/build_base/terraform/harvest require an energy section")

    mine = None
    if mine_payload is not None:
        section = f"{field_name}.mine"
        mine = MineDef(
            energy_cost=_require_int(mine_payload, "energy_cost", field_name=section),
            ore=_require_range(mine_payload, "ore", field_name=section),
            ice=_require_range(mine_payload, "ice", field_name=section),
            artifact_chance=_require_chance(mine_payload, "artifact_chance", field_name=section),
        )
    build_base = None
    if build_payload is not None:
        section = f"{field_name}.build_base"
        build_base = BuildBaseDef(
            token_cost=_require_int(build_payload, "token_cost", field_name=section),
            energy_cost=_require_int(build_payload, "energy_cost", field_name=section),
            capacity_gain=_require_int(build_payload, "capacity_gain", field_name=section),
            panel_gain=_require_int(build_payload, "panel_gain", field_name=section),
            progress_gain=_require_number(build_payload, "progress_gain", field_name=section),
        )
    terraform = None
    if terraform_payload is not None:
        section = f"{field_name}.terraform"
        terraform = TerraformDef(
            energy_cost=_require_int(terraform_payload, "energy_cost", field_name=section),
            ore_cost=_require_int(terraform_payload, "ore_cost", field_name=section),
            ice_cost=_require_int(terraform_payload, "ice_cost", field_name=section),
            artifact_cost=_require_int(terraform_payload, "artifact_cost", field_name=section),
            base_gain=_require_number(terraform_payload, "base_gain", field_name=section),
            per_level_gain=_require_number(terraform_payload, "per_level_gain", field_name=section),
            rare_item_bonus=_require_number(terraform_payload, "rare_item_bonus", field_name=section),
            token_reward=_require_int(terraform_payload, "token_reward", field_name=section),
        )
    harvest = None
    if harvest_payload is not None:
        section = f"{field_name}.harvest"
        harvest = HarvestDef(
            panel_yield=_require_int(harvest_payload, "panel_yield", field_name=section),
            base_yield=_require_int(harvest_payload, "base_yield", field_name=section),
            flat_yield=_require_int(harvest_payload, "flat_yield", field_name=section),
        )

    min_list_price = _require_int(row, "min_list_price", field_name=field_name, minimum=1)
    default_list_price = _require_int(row, "default_list_price", field_name=field_name, minimum=1)
    if default_list_price < min_list_price:
        raise ValueError(f"{field_name}.default_list_price must be >= min_list_price")

    return GameModeDef(
        mode_id=mode_id,
        title=str(row.get("title", mode_id)),
        storage_key=_require_str(row, "storage_key", field_name=field_name),
        currency=str(row.get("currency", "tokens")),
        players=_players_from_payload(row.get("players"), field_name=f"{field_name}.players"),
        rotation=rotation,
        initial_tokens=_require_int(row, "initial_tokens", field_name=field_name),
        claim_price=_require_int(row, "claim_price", field_name=field_name),
        min_list_price=min_list_price,
        default_list_price=default_list_price,
        zone=_zone_from_payload(row.get("zone"), field_name=f"{field_name}.zone"),
        seed_landing_cells=seed_landing_cells,
        landing_separation=_require_int(row, "landing_separation", field_name=field_name, default=1),
        time=_time_from_payload(row.get("time"), field_name=f"{field_name}.time"),
        explore=_explore_from_payload(row.get("explore"), field_name=f"{field_name}.explore"),
        energy=energy,
        mine=mine,
        build_base=build_base,
        terraform=terraform,
        harvest=harvest,
        equipment=tuple(equipment),
    )


def _registry_from_payload(payload: dict[str, Any]) -> GameModeRegistry:
    if not isinstance(payload, dict):
        raise ValueError("game mode payload must be an object")

    schema_version = payload.get("schema_version")
    if not isinstance(schema_version, int):
        raise ValueError("game mode payload must contain integer field: schema_version")
    if schema_version != GAME_MODES_SCHEMA_VERSION:
        raise ValueError(f"unsupported game mode schema_version: {schema_version}")

    modes = payload.get("modes")
    if not isinstance(modes, list) or not modes:
        raise ValueError("game mode payload must contain non-empty list field: modes")

    seen_ids: set[str] = set()
    seen_keys: set[str] = set()
    normalized: list[GameModeDef] = []
    for index, row in enumerate(modes):
        if not isinstance(row, dict):
            raise ValueError(f"modes[{index}] must be an object")
        mode = _mode_from_payload(row, field_name=f"modes[{index}]")
        if mode.mode_id in seen_ids:
            raise ValueError(f"duplicate mode_id: {mode.mode_id}")
        if mode.storage_key in seen_keys:
            raise ValueError(f"duplicate storage_key: {mode.storage_key}")
        seen_ids.add(mode.mode_id)
        seen_keys.add(mode.storage_key)
        normalized.append(mode)

    return GameModeRegistry(schema_version=schema_version, modes=tuple(normalized))
