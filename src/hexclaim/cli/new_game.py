from __future__ import annotations

import argparse
import json
from typing import Sequence

from hexclaim.content.io import DEFAULT_SAVE_DIR, JsonDirectoryStore
from hexclaim.content.modes import DEFAULT_GAME_MODES_PATH, load_game_mode
from hexclaim.sim.engine import GameSession
from hexclaim.sim.hash import state_hash
from hexclaim.sim.spatial import SPATIAL_INDEX_KINDS, build_spatial_index


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hexclaim-new-game",
        description=(
            "Create a fresh snapshot for one game mode "
            "(schema_version + economy_state + rng_state + save_hash)."
        ),
    )
    parser.add_argument("mode_id", help="Game mode id from the mode config")
    parser.add_argument("--save-dir", default=DEFAULT_SAVE_DIR, help=f"Snapshot directory (default: {DEFAULT_SAVE_DIR})")
    parser.add_argument("--modes-path", default=DEFAULT_GAME_MODES_PATH, help="Path to game mode config JSON")
    parser.add_argument("--spatial", choices=SPATIAL_INDEX_KINDS, default="h3", help="Spatial index implementation")
    parser.add_argument("--seed", type=int, default=0, help="Master seed for the new game (default: 0)")
    parser.add_argument("--force", action="store_true", help="Overwrite the snapshot if it already exists")
    parser.add_argument(
        "--print-summary",
        action="store_true",
        help="Print concise zone/player/landing summary",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        mode = load_game_mode(args.mode_id, args.modes_path)
        store = JsonDirectoryStore(args.save_dir)
        save_path = store.path_for(mode.storage_key)
        if save_path.exists() and not args.force:
            raise ValueError(f"output exists: {save_path} (use --force to overwrite)")

        session = GameSession(mode, build_spatial_index(args.spatial), store, seed=args.seed)
        if not session.save():
            raise ValueError(f"could not write snapshot: {save_path}")

        save_payload = json.loads(save_path.read_text(encoding="utf-8"))
        if args.print_summary:
            landing = "-"
            if mode.seed_landing_cells:
                landing = ",".join(
                    f"{player_id}:{session.state.teams[player_id].landing_cell_id}" for player_id in session.state.player_order
                )
            print(
                "summary "
                f"mode={mode.mode_id} "
                f"players={len(mode.players)} "
                f"rotation={mode.rotation} "
                f"zone_cells={len(session.zone.cells)} "
                f"perimeter={len(session.zone.perimeter)} "
                f"monument={session.zone.monument_cell} "
                f"landing={landing}"
            )

        print(
            "ok "
            f"save_path={save_path} "
            f"seed={args.seed} "
            f"state_hash={state_hash(session.state)} "
            f"save_hash={save_payload['save_hash']}"
        )
    except Exception as exc:
        print(f"error: {exc}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
