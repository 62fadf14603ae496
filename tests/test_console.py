from __future__ import annotations

from pathlib import Path

from hexclaim.cli.console import HELP_TEXT, ConsoleController, main, run_console
from hexclaim.content.io import MemoryStore
from hexclaim.content.metadata import CellMetadataStore
from hexclaim.content.modes import load_game_mode
from hexclaim.sim.engine import GameSession
from hexclaim.sim.spatial import AxialSpatialIndex


def _clock() -> str:
    return "2026-01-01T00:00:00+00:00"


def _controller(tmp_path: Path | None = None, mode_id: str = "lite") -> ConsoleController:
    session = GameSession(load_game_mode(mode_id), AxialSpatialIndex(), MemoryStore(), seed=11, clock=_clock)
    session.load()
    metadata = CellMetadataStore(tmp_path / "cells.json", clock=_clock) if tmp_path is not None else None
    return ConsoleController(session, metadata)


def test_trade_round_through_commands() -> None:
    controller = _controller()
    cell = controller.session.zone.sorted_cells()[0]

    assert controller.handle_line(f"select {cell}") == f"cell {cell}: owner=none price=- explored_by=nobody"
    assert controller.handle_line("explore").startswith(f"Alice explored {cell}")
    assert controller.handle_line("claim") == f"Alice claimed {cell} (-20 LUNA)."
    assert controller.handle_line("list 3") == "rejected: Enter a whole-number price at or above the floor price. (invalid_price)"
    assert controller.handle_line("list abc") == "rejected: price must be a whole number ('abc')"
    assert controller.handle_line("list") == f"Alice listed {cell} at 35 LUNA."
    assert controller.handle_line("player bob") == "Bob is now active."
    assert controller.handle_line("unlist") == "nothing to do"
    assert controller.handle_line("buy") == f"Bob bought {cell} from Alice for 35 LUNA."
    assert controller.session.state.owner_of(cell) == "bob"


def test_show_map_log_and_actions() -> None:
    controller = _controller(mode_id="lite4")
    controller.handle_line(f"select {controller.session.zone.center_cell}")

    shown = controller.handle_line("show")
    assert "turn=1" in shown
    assert "monument=" in shown
    assert "monument (not tradable)" in shown

    drawn = controller.handle_line("map")
    assert "@" in drawn
    assert "A" in drawn

    assert "explore=yes" in controller.handle_line("actions")
    assert "claim=no" in controller.handle_line("actions")
    assert controller.handle_line("log") == "no events yet"
    assert controller.handle_line("player bob") == "rejected: Players rotate automatically in this game mode. (rotation_locked)"


def test_select_by_coordinates() -> None:
    controller = _controller()

    reply = controller.handle_line("at -69.367621 32.348126")

    assert controller.selected_cell == controller.session.zone.center_cell
    assert reply.startswith(f"cell {controller.selected_cell}:")
    assert controller.handle_line("at 95 0").startswith("error: latitude out of range")


def test_unknown_and_malformed_commands() -> None:
    controller = _controller()

    assert controller.handle_line("") == ""
    assert controller.handle_line("help") == HELP_TEXT
    assert controller.handle_line("dance") == "unknown command"
    assert controller.handle_line("explore now") == f"usage: {HELP_TEXT}"
    assert controller.handle_line("claim") == "rejected: Select a cell first. (cell_not_selected)"


def test_reset_clears_selection_and_game() -> None:
    controller = _controller()
    controller.handle_line(f"select {controller.session.zone.center_cell}")
    controller.handle_line("explore")

    reply = controller.handle_line("reset")

    assert reply == "Moon Grid Lite: new game with 2 players."
    assert controller.selected_cell is None
    assert controller.session.state.turn == 1


def test_cell_notes(tmp_path: Path) -> None:
    controller = _controller(tmp_path)

    assert controller.handle_line("meta") == "select a cell first"
    cell = controller.session.zone.center_cell
    controller.handle_line(f"select {cell}")
    assert controller.handle_line("meta") == "null"
    assert controller.handle_line('note {"name": "Base camp"}') == f"saved {cell} at {_clock()}"
    assert controller.handle_line("meta") == '{"name": "Base camp"}'
    assert controller.handle_line("note [1]").startswith("error: props must be an object")
    assert controller.handle_line("note {oops").startswith("error:")

    assert _controller().handle_line("meta") == "cell metadata is disabled"


def test_run_console_reads_until_quit() -> None:
    controller = _controller()
    inputs = iter(["help", "dance", "quit", "never read"])
    outputs: list[str] = []

    code = run_console(controller, input_fn=lambda prompt: next(inputs), output_fn=outputs.append)

    assert code == 0
    assert outputs[0] == "Moon Grid Lite. Type 'help' for commands."
    assert outputs[-2:] == [HELP_TEXT, "unknown command"]
    assert next(inputs) == "never read"


def test_run_console_stops_on_eof() -> None:
    def _eof(prompt: str) -> str:
        raise EOFError

    assert run_console(_controller(), input_fn=_eof, output_fn=lambda line: None) == 0


def test_console_main_reports_unknown_mode(tmp_path: Path, capsys) -> None:
    code = main(["--mode", "nope", "--spatial", "axial", "--save-dir", str(tmp_path), "--metadata-path", str(tmp_path / "m.json")])

    assert code == 1
    assert "error: unknown game mode: nope" in capsys.readouterr().out
