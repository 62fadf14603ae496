from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from hexclaim.content.io import (
    DEFAULT_SAVE_DIR,
    JsonDirectoryStore,
    MemoryStore,
    SnapshotStore,
    decode_save_payload,
    encode_save_payload,
)
from hexclaim.content.modes import DEFAULT_GAME_MODES_PATH, GameModeDef, load_game_mode
from hexclaim.sim import actions
from hexclaim.sim.actions import ActionResult
from hexclaim.sim.rng import RngStreams
from hexclaim.sim.sanitize import sanitize_state
from hexclaim.sim.spatial import CellId, SpatialIndex, build_spatial_index
from hexclaim.sim.state import EconomyState, RulesContext, new_game_state
from hexclaim.sim.zone import TradeZone

logger = logging.getLogger(__name__)

COMMAND_TYPES = (
    "explore",
    "claim",
    "list",
    "unlist",
    "buy",
    "build_base",
    "mine",
    "terraform",
    "harvest",
    "select_player",
    "reset",
)


@dataclass
class GameCommand:
    command_type: str
    player_id: str | None = None
    cell_id: CellId | None = None
    params: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.command_type, str) or not self.command_type:
            raise ValueError("command_type must be a non-empty string")
        if self.player_id is not None and not isinstance(self.player_id, str):
            raise ValueError("player_id must be a string or None")
        if self.cell_id is not None and not isinstance(self.cell_id, str):
            raise ValueError("cell_id must be a string or None")
        if not isinstance(self.params, dict):
            raise ValueError("params must be a dict")

    def to_dict(self) -> dict[str, Any]:
        return {
            "command_type": self.command_type,
            "player_id": self.player_id,
            "cell_id": self.cell_id,
            "params": self.params,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameCommand":
        return cls(
            command_type=str(data["command_type"]),
            player_id=data.get("player_id"),
            cell_id=data.get("cell_id"),
            params=dict(data.get("params", {})),
        )


def apply_command(state: EconomyState, ctx: RulesContext, command: GameCommand) -> ActionResult:
    """Route one command to its transition; never raises for player input."""
    command_type = command.command_type
    player_id = command.player_id if command.player_id is not None else state.active_player
    cell_id = command.cell_id

    if command_type == "reset":
        return actions.reset(ctx)
    if command_type == "select_player":
        return actions.select_player(state, ctx, player_id)
    if command_type == "explore":
        return actions.explore(state, ctx, player_id, cell_id)
    if command_type == "claim":
        return actions.claim(state, ctx, player_id, cell_id)
    if command_type == "list":
        return actions.list_cell(state, ctx, player_id, cell_id, command.params.get("price", ctx.mode.default_list_price))
    if command_type == "unlist":
        return actions.unlist_cell(state, ctx, player_id, cell_id)
    if command_type == "buy":
        return actions.buy(state, ctx, player_id, cell_id)
    if command_type == "build_base":
        return actions.build_base(state, ctx, player_id)
    if command_type == "mine":
        return actions.mine(state, ctx, player_id, cell_id)
    if command_type == "terraform":
        return actions.terraform(state, ctx, player_id)
    if command_type == "harvest":
        return actions.harvest(state, ctx, player_id)
    return actions.rejected(state, "unknown_command")


class GameSession:
    """Single-writer owner of one mode's state and its persisted snapshot.

    Every accepted transition is written back to ``store`` under the mode's
    storage key. Write failures are logged; the in-memory state still moves
    forward.
    """

    def __init__(
        self,
        mode: GameModeDef,
        spatial: SpatialIndex,
        store: SnapshotStore | None = None,
        *,
        seed: int = 0,
        clock: Callable[[], str] | None = None,
    ) -> None:
        self.context = RulesContext.build(mode, spatial, seed=seed, clock=clock)
        self.store: SnapshotStore = store if store is not None else MemoryStore()
        self.state = new_game_state(self.context)
        self.last_result: ActionResult | None = None

    @property
    def mode(self) -> GameModeDef:
        return self.context.mode

    @property
    def zone(self) -> TradeZone:
        return self.context.zone

    @property
    def rng(self) -> RngStreams:
        return self.context.rng

    @property
    def storage_key(self) -> str:
        return self.mode.storage_key

    def load(self) -> bool:
        """Restore the persisted snapshot; returns False when a fresh game was started instead."""
        try:
            data = self.store.load(self.storage_key)
        except (OSError, ValueError) as exc:
            logger.warning("could not read snapshot %s: %s", self.storage_key, exc)
            data = None
        raw_state, raw_rng = decode_save_payload(data, mode_id=self.mode.mode_id)
        if raw_rng is not None:
            self.context.rng = RngStreams.from_dict(raw_rng, fallback_seed=self.rng.master_seed)
        self.state = sanitize_state(raw_state, self.context)
        if raw_state is None:
            self.save()
            return False
        return True

    def save(self) -> bool:
        try:
            self.store.save(self.storage_key, encode_save_payload(self.state, self.rng))
        except (OSError, ValueError) as exc:
            logger.error("could not persist snapshot %s: %s", self.storage_key, exc)
            return False
        return True

    def dispatch(self, command: GameCommand) -> ActionResult:
        result = apply_command(self.state, self.context, command)
        self.last_result = result
        if result.accepted:
            self.state = result.state
            self.save()
        return result

    def reset(self) -> ActionResult:
        return self.dispatch(GameCommand(command_type="reset"))

    def select_player(self, player_id: str) -> ActionResult:
        return self.dispatch(GameCommand(command_type="select_player", player_id=player_id))

    def available_actions(self, player_id: str | None, cell_id: CellId | None, price: Any = None) -> dict[str, bool]:
        actor = player_id if player_id is not None else self.state.active_player
        return actions.available_actions(self.state, self.context, actor, cell_id, price)


def open_session(
    mode_id: str,
    *,
    modes_path: str = DEFAULT_GAME_MODES_PATH,
    spatial_kind: str = "h3",
    save_dir: str = DEFAULT_SAVE_DIR,
    seed: int = 0,
) -> GameSession:
    """Build a session backed by ``save_dir`` and restore (or create) its snapshot."""
    mode = load_game_mode(mode_id, modes_path)
    session = GameSession(mode, build_spatial_index(spatial_kind), JsonDirectoryStore(save_dir), seed=seed)
    session.load()
    return session
