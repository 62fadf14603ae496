from __future__ import annotations

import argparse
import json
import logging
from typing import Callable, Sequence

from hexclaim.content.io import DEFAULT_SAVE_DIR
from hexclaim.content.metadata import DEFAULT_CELL_METADATA_PATH, CellMetadataStore
from hexclaim.content.modes import DEFAULT_GAME_MODES_PATH
from hexclaim.sim.engine import COMMAND_TYPES, GameCommand, GameSession, open_session
from hexclaim.sim.spatial import SPATIAL_INDEX_KINDS, HexCoord
from hexclaim.sim.turns import illumination, local_hour

OWNER_GLYPHS = "ABCD"
ACTION_VERBS = {
    "explore": "explore",
    "claim": "claim",
    "unlist": "unlist",
    "buy": "buy",
    "build": "build_base",
    "mine": "mine",
    "terraform": "terraform",
    "harvest": "harvest",
}
HELP_TEXT = (
    "commands: show | map | select <cell> | at <lat> <lon> | player <id> | actions | "
    "explore | claim | list [price] | unlist | buy | build | mine | terraform | harvest | "
    "log | note <json> | meta | reset | quit"
)


class AsciiViewer:
    """Read-only projection of a session for terminal display."""

    def render(self, session: GameSession, selected_cell: str | None = None) -> str:
        state = session.state
        mode = session.mode
        zone = session.zone
        lines: list[str] = []

        hour = local_hour(state.elapsed_hours, zone.longitude_of(zone.center_cell), mode.time)
        light = illumination(state.elapsed_hours, zone.longitude_of(zone.center_cell), mode.time)
        lines.append(
            f"{mode.title} | turn={state.turn} hour={hour:.0f} light={light:.2f} "
            f"active={mode.label_for(state.active_player)} progress={state.terraforming_progress:.1f}%"
        )
        if zone.monument_cell is not None:
            controller = mode.label_for(state.monument_controller) if state.monument_controller else "none"
            lines.append(f"monument={zone.monument_cell} controller={controller}")

        for player_id in state.player_order:
            team = state.teams[player_id]
            marker = "*" if player_id == state.active_player else " "
            row = (
                f"{marker} {mode.label_for(player_id):<8} wallet={state.wallets[player_id]} {mode.currency} "
                f"cells={len(state.cells_owned_by(player_id))} explored={len(team.explored)}"
            )
            if team.energy is not None:
                row += f" energy={team.energy.current}/{team.energy.capacity}"
            if mode.build_base is not None or mode.mine is not None:
                inventory = team.inventory
                row += (
                    f" base=Lv.{team.base_level} panels={team.solar_panels} "
                    f"ore={inventory.ore} ice={inventory.ice} artifact={inventory.artifact} rare={inventory.rare_item}"
                )
            lines.append(row)

        if selected_cell is not None:
            lines.append(self.render_cell(session, selected_cell))
        lines.append(f"last: {state.last_event}")
        return "\n".join(lines)

    def render_cell(self, session: GameSession, cell_id: str) -> str:
        state = session.state
        zone = session.zone
        if not zone.contains(cell_id):
            return f"cell {cell_id}: outside trade zone"
        if zone.is_monument(cell_id):
            return f"cell {cell_id}: monument (not tradable)"
        owned = state.cells.get(cell_id)
        owner = session.mode.label_for(owned.owner) if owned is not None else "none"
        price = owned.listed_price if owned is not None and owned.listed_price is not None else "-"
        explorers = [session.mode.label_for(player_id) for player_id in state.player_order if state.teams[player_id].has_explored(cell_id)]
        return f"cell {cell_id}: owner={owner} price={price} explored_by={','.join(explorers) or 'nobody'}"

    def render_map(self, session: GameSession, selected_cell: str | None = None) -> str:
        """Glyph grid for axial ids, north up: owner letter, '$' listed, 'M' monument, '@' selected."""
        state = session.state
        zone = session.zone
        placed: dict[int, dict[int, str]] = {}
        for cell_id in zone.sorted_cells():
            try:
                coord = HexCoord.from_cell_id(cell_id)
            except ValueError:
                return "<map view needs the axial spatial index>"
            if cell_id == selected_cell:
                glyph = "@"
            elif zone.is_monument(cell_id):
                glyph = "M"
            elif cell_id in state.cells:
                owned = state.cells[cell_id]
                glyph = "$" if owned.listed_price is not None else OWNER_GLYPHS[state.player_order.index(owned.owner)]
            else:
                glyph = "."
            placed.setdefault(coord.r, {})[2 * coord.q + coord.r] = glyph

        min_col = min(col for row in placed.values() for col in row)
        lines: list[str] = []
        for r in sorted(placed, reverse=True):
            row = placed[r]
            chars = [" "] * (max(row) - min_col + 1)
            for col, glyph in row.items():
                chars[col - min_col] = glyph
            lines.append(f"r={r:>5} " + "".join(chars).rstrip())
        return "\n".join(lines)


class ConsoleController:
    """Line command adapter; the session stays the source of truth."""

    def __init__(self, session: GameSession, metadata: CellMetadataStore | None = None) -> None:
        self.session = session
        self.metadata = metadata
        self.viewer = AsciiViewer()
        self.selected_cell: str | None = None

    def _run(self, command_type: str, **params: object) -> str:
        command = GameCommand(
            command_type=command_type,
            player_id=self.session.state.active_player,
            cell_id=self.selected_cell,
            params=dict(params),
        )
        result = self.session.dispatch(command)
        if result.outcome == "ignored":
            return "nothing to do"
        if not result.accepted:
            return f"rejected: {result.message} ({result.reason})"
        return result.message or "ok"

    def handle_line(self, raw: str) -> str:
        parts = raw.strip().split()
        if not parts:
            return ""
        verb, args = parts[0].lower(), parts[1:]

        if verb == "help":
            return HELP_TEXT
        if verb == "show":
            return self.viewer.render(self.session, self.selected_cell)
        if verb == "map":
            return self.viewer.render_map(self.session, self.selected_cell)
        if verb == "select" and len(args) == 1:
            self.selected_cell = args[0]
            return self.viewer.render_cell(self.session, args[0])
        if verb == "at" and len(args) == 2:
            try:
                self.selected_cell = self.session.context.spatial.cell_at(float(args[0]), float(args[1]))
            except ValueError as exc:
                return f"error: {exc}"
            return self.viewer.render_cell(self.session, self.selected_cell)
        if verb == "player" and len(args) == 1:
            result = self.session.select_player(args[0])
            return result.message if result.accepted else f"rejected: {result.message} ({result.reason})"
        if verb == "actions":
            available = self.session.available_actions(None, self.selected_cell)
            return " ".join(f"{name}={'yes' if allowed else 'no'}" for name, allowed in available.items())
        if verb in ACTION_VERBS and not args:
            return self._run(ACTION_VERBS[verb])
        if verb == "list" and len(args) <= 1:
            if not args:
                return self._run("list", price=self.session.mode.default_list_price)
            try:
                price = int(args[0])
            except ValueError:
                return f"rejected: price must be a whole number ({args[0]!r})"
            return self._run("list", price=price)
        if verb == "reset":
            self.selected_cell = None
            return self.session.reset().message
        if verb == "log":
            events = self.session.state.event_log[-10:]
            return "\n".join(f"[{event.turn}] {event.message}" for event in events) or "no events yet"
        if verb in {"note", "meta"}:
            return self._handle_metadata(verb, raw)
        if verb in COMMAND_TYPES:
            return f"usage: {HELP_TEXT}"
        return "unknown command"

    def _handle_metadata(self, verb: str, raw: str) -> str:
        if self.metadata is None:
            return "cell metadata is disabled"
        if self.selected_cell is None:
            return "select a cell first"
        if verb == "meta":
            record = self.metadata.get(self.selected_cell)
            if record is None:
                return "null"
            return json.dumps(record.props, sort_keys=True)
        body = raw.strip()[len("note"):].strip()
        try:
            props = json.loads(body)
            record = self.metadata.upsert(self.selected_cell, props)
        except ValueError as exc:
            return f"error: {exc}"
        return f"saved {record.cell_id} at {record.updated_at}"


def run_console(
    controller: ConsoleController,
    *,
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
) -> int:
    output_fn(f"{controller.session.mode.title}. Type 'help' for commands.")
    output_fn(controller.viewer.render(controller.session))
    while True:
        try:
            raw = input_fn("> ")
        except EOFError:
            break
        if raw.strip() in {"quit", "exit"}:
            break
        reply = controller.handle_line(raw)
        if reply:
            output_fn(reply)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hexclaim-console", description="Play hexclaim from a terminal.")
    parser.add_argument("--mode", default="lite", help="Game mode id from the mode config (default: lite).")
    parser.add_argument("--modes-path", default=DEFAULT_GAME_MODES_PATH, help="Path to game mode config JSON.")
    parser.add_argument("--spatial", choices=SPATIAL_INDEX_KINDS, default="h3", help="Spatial index implementation.")
    parser.add_argument("--save-dir", default=DEFAULT_SAVE_DIR, help="Directory holding per-mode snapshots.")
    parser.add_argument("--metadata-path", default=DEFAULT_CELL_METADATA_PATH, help="Cell metadata JSON path.")
    parser.add_argument("--seed", type=int, default=0, help="Master seed used when a new game is created.")
    parser.add_argument("--log-level", default="WARNING", help="Python logging level (default: WARNING).")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    try:
        session = open_session(
            args.mode,
            modes_path=args.modes_path,
            spatial_kind=args.spatial,
            save_dir=args.save_dir,
            seed=args.seed,
        )
        metadata = CellMetadataStore(args.metadata_path)
    except Exception as exc:
        print(f"error: {exc}")
        return 1
    return run_console(ConsoleController(session, metadata))


if __name__ == "__main__":
    raise SystemExit(main())
