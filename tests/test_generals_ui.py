import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")

import pygame  # noqa: E402
import pytest  # noqa: E402

from game_runner import GameParams, GameSession  # noqa: E402
from generals_ui import GameController, GameRenderer  # noqa: E402
from pathfinder_agent import Bot  # noqa: E402


class IdleBot(Bot):
    def get_best_move(self, strength):
        return None

    def update_from_map(self, game_map):
        pass


@pytest.fixture
def renderer():
    pygame.font.init()
    yield GameRenderer(pygame.Surface((820, 600)))
    pygame.font.quit()


@pytest.fixture
def session(build_map):
    game_map = build_map("aG5 . . .\n. . C30 bG2\n. M . .")
    params = GameParams(n=3, m=4, players_num=2, human_player=0)
    return GameSession(params, game_map=game_map, bots={1: IdleBot()})


def _center_of(renderer, session, row, col):
    cell_size, x_offset, y_offset = renderer.board_geometry(session)
    return (int(x_offset + (col + 0.5) * cell_size), int(y_offset + (row + 0.5) * cell_size))


def test_cell_at_maps_screen_to_grid(renderer, session):
    for row, col in [(0, 0), (1, 2), (2, 3)]:
        assert renderer.cell_at(session, _center_of(renderer, session, row, col)) == (row, col)
    assert renderer.cell_at(session, (-5, -5)) is None


def test_render_with_and_without_fog(renderer, session):
    renderer.render(session, selected=(0, 0))
    session.params.disable_fog_of_war = True
    renderer.render(session, selected=None)


def test_clicks_queue_moves(renderer, session):
    controller = GameController(session, renderer)
    controller.handle_click(_center_of(renderer, session, 0, 0))
    assert controller.selected == (0, 0)
    controller.handle_click(_center_of(renderer, session, 0, 1))
    assert [(m.from_pos, m.to_pos) for m in session.moves_queue] == [((0, 0), (0, 1))]
    assert controller.selected == (0, 1)


def test_keys_queue_moves_and_follow_selection(renderer, session):
    controller = GameController(session, renderer)
    controller.selected = (0, 0)
    controller.handle_keydown(pygame.K_d)
    controller.handle_keydown(pygame.K_s)
    assert [(m.from_pos, m.to_pos) for m in session.moves_queue] == [
        ((0, 0), (0, 1)), ((0, 1), (1, 1))]
    assert controller.selected == (1, 1)

    controller.handle_keydown(pygame.K_q)
    assert not session.moves_queue
    controller.handle_keydown(pygame.K_e)
    assert controller.selected is None


def test_fog_toggle(renderer, session):
    controller = GameController(session, renderer)
    controller.handle_keydown(pygame.K_f)
    assert session.params.disable_fog_of_war
