"""
Generals - Pygame Front-End

Draws the board as the human player sees it (fog of war included), turns
mouse clicks and keys into queued moves and advances the game session one
round every tick.

Controls:
    Left click      select a cell, click a neighbour to queue a move
    WASD / arrows   queue a move from the selected cell and follow it
    E               clear selection
    Q               clear queued moves
    F               toggle fog of war
    R               restart after the game is over
    ESC             quit

"""

import argparse
import logging
import sys
import time
from typing import Optional, Sequence, Tuple

import pygame

from game_runner import DELAY_BETWEEN_TICKS, GameParams, GameSession
from generals import PLAYER_COLORS, CellType, Move

logger = logging.getLogger(__name__)

# Display settings
WINDOW_WIDTH = 1000
WINDOW_HEIGHT = 800
PANEL_WIDTH = 220
BOARD_FILL = 0.95

# Colors
BLACK = (0, 0, 0)
WHITE = (255, 255, 255)
LIGHT_GRAY = (192, 192, 192)
MOUNTAIN_COLOR = (90, 80, 70)
FOG_OVERLAY = (77, 77, 77, 128)
SELECTION_OVERLAY = (51, 102, 204, 64)
ARMY_TEXT_COLOR = (178, 230, 255)

KEY_DIRECTIONS = {
    pygame.K_w: (-1, 0), pygame.K_UP: (-1, 0),
    pygame.K_s: (1, 0), pygame.K_DOWN: (1, 0),
    pygame.K_a: (0, -1), pygame.K_LEFT: (0, -1),
    pygame.K_d: (0, 1), pygame.K_RIGHT: (0, 1),
}


class GameRenderer:
    """
    Handles all rendering for a game session.

    The board is drawn from ``get_with_fog`` for the human player unless fog
    is disabled, in which case the raw grid is shown.
    """

    def __init__(self, screen: pygame.Surface):
        self.screen = screen
        self.font = pygame.font.Font(None, 20)
        self.small_font = pygame.font.Font(None, 16)

    def board_geometry(self, session: GameSession) -> Tuple[float, float, float]:
        """Cell size and top-left offset of the board."""
        width = self.screen.get_width() - PANEL_WIDTH
        height = self.screen.get_height()
        cell_size = min(height / session.map.n, width / session.map.m) * BOARD_FILL
        x_offset = (width - cell_size * session.map.m) * 0.5
        y_offset = (height - cell_size * session.map.n) * 0.5
        return cell_size, x_offset, y_offset

    def cell_at(self, session: GameSession, pos: Tuple[int, int]) -> Optional[Tuple[int, int]]:
        """Grid (row, col) under a screen position, or None."""
        cell_size, x_offset, y_offset = self.board_geometry(session)
        col = int((pos[0] - x_offset) // cell_size)
        row = int((pos[1] - y_offset) // cell_size)
        if session.map.in_bounds(row, col) and pos[0] >= x_offset and pos[1] >= y_offset:
            return row, col
        return None

    def render(self, session: GameSession, selected: Optional[Tuple[int, int]]) -> None:
        self.screen.fill(LIGHT_GRAY)
        cell_size, x_offset, y_offset = self.board_geometry(session)
        viewer = session.human_player
        use_fog = viewer is not None and not session.params.disable_fog_of_war
        size = max(1, int(cell_size))

        for y in range(session.map.n):
            for x in range(session.map.m):
                cell = session.map.get_with_fog(y, x, viewer) if use_fog else session.map.grid[y][x]
                rect = pygame.Rect(int(x_offset + x * cell_size), int(y_offset + y * cell_size),
                                   size, size)

                if cell.cell_type == CellType.MOUNTAIN:
                    color = MOUNTAIN_COLOR
                elif cell.owner is not None:
                    color = PLAYER_COLORS[cell.owner % len(PLAYER_COLORS)]
                else:
                    color = WHITE
                pygame.draw.rect(self.screen, color, rect)

                if cell.cell_type == CellType.CITY:
                    pygame.draw.circle(self.screen, BLACK, rect.center, int(cell_size * 0.4), 2)
                elif cell.cell_type == CellType.GENERAL:
                    self._draw_general_marker(rect.centerx, rect.centery)

                if cell.army_size > 0:
                    text = self.font.render(str(cell.army_size), True, ARMY_TEXT_COLOR)
                    self.screen.blit(text, text.get_rect(center=rect.center))

                if use_fog and not session.map.is_visible_to(y, x, viewer):
                    self._overlay(rect, FOG_OVERLAY)
                if selected == (y, x):
                    self._overlay(rect, SELECTION_OVERLAY)
                pygame.draw.rect(self.screen, BLACK, rect, 1)

        self._draw_panel(session)

    def _overlay(self, rect: pygame.Rect, rgba) -> None:
        surface = pygame.Surface(rect.size, pygame.SRCALPHA)
        surface.fill(rgba)
        self.screen.blit(surface, rect.topleft)

    def _draw_general_marker(self, center_x: int, center_y: int) -> None:
        """Draw a crown symbol for the general."""
        pygame.draw.polygon(self.screen, BLACK, [
            (center_x - 8, center_y - 8),
            (center_x - 4, center_y - 12),
            (center_x, center_y - 8),
            (center_x + 4, center_y - 12),
            (center_x + 8, center_y - 8),
            (center_x + 6, center_y + 8),
            (center_x - 6, center_y + 8)
        ], 2)

    def _draw_panel(self, session: GameSession) -> None:
        x = self.screen.get_width() - PANEL_WIDTH + 10
        y_offset = 10
        alive = set(session.alive_players())
        for player_id, stats in enumerate(session.statistics()):
            if player_id not in alive:
                continue
            text = f"Player {player_id + 1}: Army {stats.total_army}, Land {stats.total_fields}"
            if player_id == session.human_player:
                text = f"> {text}"
            surface = self.small_font.render(text, True, PLAYER_COLORS[player_id % len(PLAYER_COLORS)])
            self.screen.blit(surface, (x, y_offset))
            y_offset += 20

        info = [f"Turn: {session.map.turn}", f"Queued: {len(session.moves_queue)}"]
        if session.is_over():
            winner = session.winner()
            info.append("Game over" if winner is None else f"Player {winner + 1} wins! (R)")
        for line in info:
            surface = self.font.render(line, True, BLACK)
            self.screen.blit(surface, (x, y_offset + 10))
            y_offset += 22


class GameController:
    """Translates input events into session actions."""

    def __init__(self, session: GameSession, renderer: GameRenderer):
        self.session = session
        self.renderer = renderer
        self.selected: Optional[Tuple[int, int]] = None

    def handle_keydown(self, key: int) -> None:
        if key == pygame.K_e:
            self.selected = None
        elif key == pygame.K_q:
            self.session.clear_queue()
        elif key == pygame.K_f:
            self.session.params.disable_fog_of_war = not self.session.params.disable_fog_of_war
        elif key in KEY_DIRECTIONS and self.selected is not None:
            dy, dx = KEY_DIRECTIONS[key]
            y, x = self.selected
            self._queue(Move.new(y, x, y + dy, x + dx))
            if self.session.map.in_bounds(y + dy, x + dx):
                self.selected = (y + dy, x + dx)

    def handle_click(self, pos: Tuple[int, int]) -> None:
        target = self.renderer.cell_at(self.session, pos)
        if target is None:
            return
        if self.selected is not None:
            self._queue(Move(self.selected, target))
        self.selected = target

    def _queue(self, move: Move) -> None:
        if not self.session.queue_move(move):
            logger.debug("Move %s can never become valid", move)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Main game loop and entry point.

    Initializes pygame, creates a session from the command line settings and
    runs until the window is closed.
    """
    parser = argparse.ArgumentParser(description="Play Generals against path finder bots")
    parser.add_argument("--rows", type=int, default=30, help="Map height (10-50)")
    parser.add_argument("--cols", type=int, default=30, help="Map width (10-50)")
    parser.add_argument("--players", type=int, default=2, help="Number of players (2-16)")
    parser.add_argument("--strength", type=float, default=100.0, help="Bot strength in [0, 100]")
    parser.add_argument("--no-fog", action="store_true", help="Disable fog of war")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    params = GameParams(n=args.rows, m=args.cols, players_num=args.players,
                        bot_strength=args.strength, disable_fog_of_war=args.no_fog,
                        seed=args.seed)
    params.validate()

    pygame.init()
    screen = pygame.display.set_mode((WINDOW_WIDTH, WINDOW_HEIGHT))
    pygame.display.set_caption("Generals")
    clock = pygame.time.Clock()

    renderer = GameRenderer(screen)
    controller = GameController(GameSession(params), renderer)
    last_tick = 0.0

    running = True
    while running:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    running = False
                elif event.key == pygame.K_r and controller.session.is_over():
                    params.seed = None
                    controller = GameController(GameSession(params), renderer)
                else:
                    controller.handle_keydown(event.key)
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                controller.handle_click(event.pos)

        if not controller.session.is_over() and time.time() - last_tick > DELAY_BETWEEN_TICKS:
            controller.session.next_tick()
            last_tick = time.time()

        renderer.render(controller.session, controller.selected)
        pygame.display.flip()
        clock.tick(60)

    pygame.quit()
    sys.exit()


if __name__ == "__main__":
    main()
