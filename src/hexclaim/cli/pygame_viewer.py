from __future__ import annotations

import argparse
import importlib.metadata
import logging
import os
import platform
import sys
from dataclasses import dataclass
from typing import Any, Sequence

from hexclaim.content.io import DEFAULT_SAVE_DIR
from hexclaim.content.modes import DEFAULT_GAME_MODES_PATH
from hexclaim.sim.engine import GameCommand, GameSession, open_session
from hexclaim.sim.spatial import SPATIAL_INDEX_KINDS, CellId, LatLon
from hexclaim.sim.turns import illumination

WINDOW_SIZE = (1280, 820)
PANEL_WIDTH = 420
VIEWPORT_MARGIN = 12
PANEL_MARGIN = 12
PRICE_STEP = 5

PLAYER_COLORS: tuple[tuple[int, int, int], ...] = (
    (230, 120, 70),
    (80, 160, 255),
    (120, 200, 110),
    (200, 110, 210),
)
OPEN_CELL_COLOR = (58, 60, 72)
EXPLORED_CELL_COLOR = (86, 92, 110)
MONUMENT_COLOR = (210, 60, 60)
MONUMENT_RING_OUTLINE = (250, 210, 90)
SELECTED_OUTLINE = (255, 255, 255)
GRID_OUTLINE = (28, 28, 34)

KEY_ACTIONS: dict[str, str] = {
    "e": "explore",
    "c": "claim",
    "l": "list",
    "u": "unlist",
    "b": "buy",
    "g": "build_base",
    "m": "mine",
    "t": "terraform",
    "h": "harvest",
}

pygame: Any | None = None


@dataclass(frozen=True)
class MapProjection:
    """Equirectangular fit of the trade zone into the viewport, north up."""

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float
    left: float
    top: float
    scale: float

    def to_pixel(self, lat: float, lon: float) -> tuple[float, float]:
        return (self.left + (lon - self.min_lon) * self.scale, self.top + (self.max_lat - lat) * self.scale)

    def to_lat_lon(self, pixel_x: float, pixel_y: float) -> LatLon:
        lon = self.min_lon + (pixel_x - self.left) / self.scale
        lat = self.max_lat - (pixel_y - self.top) / self.scale
        return (lat, lon)


def fit_projection(points: Sequence[LatLon], viewport: tuple[int, int, int, int], *, padding: int = 16) -> MapProjection:
    if not points:
        raise ValueError("cannot project an empty zone")
    x, y, width, height = viewport
    lats = [lat for lat, _ in points]
    lons = [lon for _, lon in points]
    min_lat, max_lat = min(lats), max(lats)
    min_lon, max_lon = min(lons), max(lons)
    span_lat = max(max_lat - min_lat, 1e-9)
    span_lon = max(max_lon - min_lon, 1e-9)
    scale = min((width - 2 * padding) / span_lon, (height - 2 * padding) / span_lat)
    left = x + (width - span_lon * scale) / 2.0
    top = y + (height - span_lat * scale) / 2.0
    return MapProjection(min_lat, max_lat, min_lon, max_lon, left, top, scale)


def zone_polygons(session: GameSession) -> dict[CellId, list[LatLon]]:
    spatial = session.context.spatial
    return {cell_id: spatial.boundary(cell_id) for cell_id in session.zone.sorted_cells()}


def cell_at_pixel(session: GameSession, projection: MapProjection, pixel: tuple[int, int]) -> CellId | None:
    lat, lon = projection.to_lat_lon(float(pixel[0]), float(pixel[1]))
    try:
        cell_id = session.context.spatial.cell_at(lat, lon)
    except ValueError:
        return None
    return cell_id if session.zone.contains(cell_id) else None


def cell_fill_color(session: GameSession, cell_id: CellId) -> tuple[int, int, int]:
    state = session.state
    if session.zone.is_monument(cell_id):
        return MONUMENT_COLOR
    owned = state.cells.get(cell_id)
    if owned is not None:
        color = PLAYER_COLORS[state.player_order.index(owned.owner) % len(PLAYER_COLORS)]
        if owned.listed_price is not None:
            return tuple(min(255, channel + 50) for channel in color)
        return color
    if state.teams[state.active_player].has_explored(cell_id):
        return EXPLORED_CELL_COLOR
    return OPEN_CELL_COLOR


def status_lines(session: GameSession, selected_cell: CellId | None, list_price: int, status_message: str | None) -> list[str]:
    state = session.state
    mode = session.mode
    zone = session.zone
    light = illumination(state.elapsed_hours, zone.longitude_of(zone.center_cell), mode.time)
    lines = [
        mode.title,
        f"turn {state.turn} | light {light:.2f} | terraforming {state.terraforming_progress:.1f}%",
        f"active: {mode.label_for(state.active_player)}",
    ]
    for player_id in state.player_order:
        team = state.teams[player_id]
        row = f"{mode.label_for(player_id)}: {state.wallets[player_id]} {mode.currency}, {len(state.cells_owned_by(player_id))} cells"
        if team.energy is not None:
            row += f", energy {team.energy.current}/{team.energy.capacity}"
        if mode.build_base is not None:
            row += f", base Lv.{team.base_level}, ore {team.inventory.ore}, ice {team.inventory.ice}, art {team.inventory.artifact}"
        lines.append(row)
    if zone.monument_cell is not None:
        controller = mode.label_for(state.monument_controller) if state.monument_controller else "none"
        lines.append(f"monument controller: {controller}")
    if selected_cell is not None:
        owned = state.cells.get(selected_cell)
        owner = mode.label_for(owned.owner) if owned is not None else "none"
        price = owned.listed_price if owned is not None and owned.listed_price is not None else "-"
        lines.append(f"selected: {selected_cell}")
        lines.append(f"owner: {owner} | price: {price}")
    available = session.available_actions(None, selected_cell, list_price)
    lines.append("ready: " + (", ".join(name for name, allowed in available.items() if allowed) or "nothing"))
    lines.append(f"list price: {list_price} (+/- to adjust)")
    lines.append("E explore C claim L list U unlist B buy")
    lines.append("G base M mine T terraform H harvest")
    lines.append("TAB next player | F2 reset | ESC quit")
    lines.append(f"last: {state.last_event}")
    if status_message:
        lines.append(f"status: {status_message}")
    return lines


def _viewport_rect() -> pygame.Rect:
    width = WINDOW_SIZE[0] - PANEL_WIDTH - PANEL_MARGIN - VIEWPORT_MARGIN * 2
    return pygame.Rect(VIEWPORT_MARGIN, VIEWPORT_MARGIN, width, WINDOW_SIZE[1] - VIEWPORT_MARGIN * 2)


def _panel_rect() -> pygame.Rect:
    panel_x = WINDOW_SIZE[0] - PANEL_WIDTH - PANEL_MARGIN
    return pygame.Rect(panel_x, PANEL_MARGIN, PANEL_WIDTH, WINDOW_SIZE[1] - PANEL_MARGIN * 2)


def _draw_zone(
    screen: pygame.Surface,
    session: GameSession,
    polygons: dict[CellId, list[LatLon]],
    projection: MapProjection,
    selected_cell: CellId | None,
) -> None:
    ring = set(session.zone.monument_ring)
    for cell_id, boundary in polygons.items():
        points = [projection.to_pixel(lat, lon) for lat, lon in boundary]
        pygame.draw.polygon(screen, cell_fill_color(session, cell_id), points)
        outline = MONUMENT_RING_OUTLINE if cell_id in ring else GRID_OUTLINE
        pygame.draw.polygon(screen, outline, points, 1)
    if selected_cell is not None and selected_cell in polygons:
        points = [projection.to_pixel(lat, lon) for lat, lon in polygons[selected_cell]]
        pygame.draw.polygon(screen, SELECTED_OUTLINE, points, 3)


def _draw_panel(screen: pygame.Surface, font: pygame.font.Font, lines: list[str]) -> None:
    panel = _panel_rect()
    pygame.draw.rect(screen, (26, 28, 36), panel)
    pygame.draw.rect(screen, (64, 68, 84), panel, 1)
    y = panel.y + 10
    for line in lines:
        surface = font.render(line, True, (235, 235, 235))
        screen.blit(surface, (panel.x + 10, y))
        y += 22


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hexclaim-viewer", description="Run the hexclaim pygame map viewer.")
    parser.add_argument("--mode", default="lite", help="Game mode id from the mode config (default: lite).")
    parser.add_argument("--modes-path", default=DEFAULT_GAME_MODES_PATH, help="Path to game mode config JSON.")
    parser.add_argument("--spatial", choices=SPATIAL_INDEX_KINDS, default="h3", help="Spatial index implementation.")
    parser.add_argument("--save-dir", default=DEFAULT_SAVE_DIR, help="Directory holding per-mode snapshots.")
    parser.add_argument("--seed", type=int, default=0, help="Master seed used when a new game is created.")
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Force SDL dummy video driver for CI/testing and exit after one frame.",
    )
    parser.add_argument("--log-level", default="WARNING", help="Python logging level (default: WARNING).")
    return parser


def _env_flag_enabled(var_name: str) -> bool:
    return os.environ.get(var_name, "").strip().lower() in {"1", "true", "yes", "on"}


def _print_startup_banner() -> None:
    try:
        pygame_version = importlib.metadata.version("pygame")
    except importlib.metadata.PackageNotFoundError:
        pygame_version = "not-installed"
    print(
        "[hexclaim.viewer] startup "
        f"python={platform.python_version()} "
        f"pygame={pygame_version} "
        f"platform={platform.platform()}"
    )
    for name in ("SDL_VIDEODRIVER", "SDL_AUDIODRIVER"):
        value = os.environ.get(name, "<unset>")
        print(f"[hexclaim.viewer] env {name}={value}")


def _ensure_pygame_imported() -> Any:
    global pygame
    if pygame is None:
        import pygame as pygame_module

        pygame = pygame_module
    return pygame


def _key_to_action(pygame_module: Any, key: int) -> str | None:
    for letter, action in KEY_ACTIONS.items():
        if key == getattr(pygame_module, f"K_{letter}"):
            return action
    return None


def run_pygame_viewer(
    mode_id: str = "lite",
    *,
    modes_path: str = DEFAULT_GAME_MODES_PATH,
    spatial_kind: str = "h3",
    save_dir: str = DEFAULT_SAVE_DIR,
    seed: int = 0,
    headless: bool = False,
) -> int:
    if headless:
        os.environ["SDL_VIDEODRIVER"] = "dummy"
        print("[hexclaim.viewer] warning: headless mode active; no window will open.")

    _print_startup_banner()
    pygame_module = _ensure_pygame_imported()

    try:
        pygame_module.init()
    except Exception as exc:
        print(
            "[hexclaim.viewer] failed during pygame.init(): "
            f"{exc}. Hint: verify a working SDL video driver (set SDL_VIDEODRIVER=dummy for headless mode).",
            file=sys.stderr,
        )
        return 1

    try:
        session = open_session(mode_id, modes_path=modes_path, spatial_kind=spatial_kind, save_dir=save_dir, seed=seed)
    except Exception as exc:
        print(f"[hexclaim.viewer] failed to initialize session: {exc}", file=sys.stderr)
        pygame_module.quit()
        return 1

    try:
        pygame_module.display.set_caption(f"hexclaim - {session.mode.title}")
        screen = pygame_module.display.set_mode(WINDOW_SIZE)
    except Exception as exc:
        print(
            "[hexclaim.viewer] failed during pygame.display.set_mode(...): "
            f"{exc}. Hint: GUI sessions require a valid display; use --headless or HEXCLAIM_HEADLESS=1.",
            file=sys.stderr,
        )
        pygame_module.quit()
        return 1

    print(
        f"[hexclaim.viewer] display initialized: {pygame_module.display.get_driver()}, "
        f"mode={session.mode.mode_id} zone_cells={len(session.zone.cells)}"
    )

    viewport = _viewport_rect()
    polygons = zone_polygons(session)
    projection = fit_projection(
        [point for boundary in polygons.values() for point in boundary],
        (viewport.x, viewport.y, viewport.width, viewport.height),
    )
    font = pygame_module.font.SysFont("consolas", 17)
    clock = pygame_module.time.Clock()

    selected_cell: CellId | None = None
    list_price = session.mode.default_list_price
    status_message: str | None = None
    running = True

    while running:
        for event in pygame_module.event.get():
            if event.type == pygame_module.QUIT:
                running = False
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_ESCAPE:
                running = False
            elif event.type == pygame_module.MOUSEBUTTONDOWN and event.button == 1 and viewport.collidepoint(event.pos):
                selected_cell = cell_at_pixel(session, projection, event.pos)
                status_message = None
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_TAB:
                order = session.state.player_order
                next_player = order[(order.index(session.state.active_player) + 1) % len(order)]
                result = session.select_player(next_player)
                status_message = None if result.accepted else result.message
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_F2:
                session.reset()
                selected_cell = None
                status_message = "game reset"
            elif event.type == pygame_module.KEYDOWN and event.key in (pygame_module.K_PLUS, pygame_module.K_EQUALS):
                list_price += PRICE_STEP
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_MINUS:
                list_price = max(session.mode.min_list_price, list_price - PRICE_STEP)
            elif event.type == pygame_module.KEYDOWN:
                action = _key_to_action(pygame_module, event.key)
                if action is not None:
                    result = session.dispatch(
                        GameCommand(
                            command_type=action,
                            player_id=session.state.active_player,
                            cell_id=selected_cell,
                            params={"price": list_price} if action == "list" else {},
                        )
                    )
                    status_message = result.message if not result.accepted else None

        screen.fill((17, 18, 25))
        _draw_zone(screen, session, polygons, projection, selected_cell)
        pygame_module.draw.rect(screen, (64, 68, 84), viewport, 1)
        _draw_panel(screen, font, status_lines(session, selected_cell, list_price, status_message))
        pygame_module.display.flip()

        if headless:
            break
        clock.tick(30)

    pygame_module.quit()
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    headless = args.headless or _env_flag_enabled("HEXCLAIM_HEADLESS")
    raise SystemExit(
        run_pygame_viewer(
            args.mode,
            modes_path=args.modes_path,
            spatial_kind=args.spatial,
            save_dir=args.save_dir,
            seed=args.seed,
            headless=headless,
        )
    )


if __name__ == "__main__":
    main()
