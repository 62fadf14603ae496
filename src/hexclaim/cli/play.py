from __future__ import annotations

import argparse
import logging
from typing import Sequence

from hexclaim.cli.pygame_viewer import run_pygame_viewer
from hexclaim.content.io import DEFAULT_SAVE_DIR
from hexclaim.content.modes import DEFAULT_GAME_MODES_PATH
from hexclaim.sim.engine import open_session
from hexclaim.sim.spatial import SPATIAL_INDEX_KINDS

DEFAULT_MODE_ID = "lite"
DEFAULT_SEED = 7


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hexclaim-play", description="Canonical hexclaim launcher.")
    parser.add_argument("--mode", default=DEFAULT_MODE_ID, help="Game mode id to play.")
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Seed used when the snapshot must be created.")
    parser.add_argument("--save-dir", default=DEFAULT_SAVE_DIR, help="Directory holding per-mode snapshots.")
    parser.add_argument("--modes-path", default=DEFAULT_GAME_MODES_PATH, help="Path to game mode config JSON.")
    parser.add_argument("--spatial", choices=SPATIAL_INDEX_KINDS, default="h3", help="Spatial index implementation.")
    parser.add_argument("--headless", action="store_true", help="Run startup path in headless mode.")
    parser.add_argument("--log-level", default="WARNING", help="Python logging level (default: WARNING).")
    return parser


def _ensure_snapshot_exists(*, mode_id: str, modes_path: str, spatial_kind: str, save_dir: str, seed: int) -> None:
    session = open_session(mode_id, modes_path=modes_path, spatial_kind=spatial_kind, save_dir=save_dir, seed=seed)
    print(
        "[hexclaim.play] snapshot "
        f"mode={session.mode.mode_id} key={session.storage_key} turn={session.state.turn}"
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    try:
        _ensure_snapshot_exists(
            mode_id=args.mode,
            modes_path=args.modes_path,
            spatial_kind=args.spatial,
            save_dir=args.save_dir,
            seed=args.seed,
        )
    except Exception as exc:
        print(f"error: {exc}")
        return 1
    return run_pygame_viewer(
        args.mode,
        modes_path=args.modes_path,
        spatial_kind=args.spatial,
        save_dir=args.save_dir,
        seed=args.seed,
        headless=args.headless,
    )


if __name__ == "__main__":
    raise SystemExit(main())
