import random
from collections import deque

import pytest

import pathfinder_agent
from generals import GameMap, Move
from pathfinder_agent import (INF, NO_PARENT, PathFinderBot, RandomBot, VertexData,
                              find_paths, first_hop)


def _bot_for(real, color=0, seed=0, **kwargs):
    bot = PathFinderBot.from_map(real, color, rng=random.Random(seed), **kwargs)
    bot.update_from_map(real)
    return bot


# =============================================================================
# Path search
# =============================================================================

def test_find_paths_loses_one_unit_per_step(build_map):
    game_map = build_map("aG10 . . .")
    paths = find_paths(game_map, (0, 0))
    assert [p.dist for p in paths[0]] == [0, 1, 2, 3]
    assert [p.value for p in paths[0]] == [10, 9, 8, 7]
    assert paths[0][3].parent == (0, 2)
    assert paths[0][0].parent == NO_PARENT


def test_find_paths_absorbs_friends_and_pays_for_enemies(build_map):
    game_map = build_map("a10 a4 b3 .")
    paths = find_paths(game_map, (0, 0))
    assert paths[0][1].value == 10 - 1 + 4
    assert paths[0][2].value == 13 - 1 - 3
    assert paths[0][3].value == 9 - 1


def test_find_paths_projects_city_growth(build_map):
    game_map = build_map("a12 C5", turn=4)
    game_map.grid[0][1].last_update_time = 2
    paths = find_paths(game_map, (0, 0))
    assert paths[0][1].value == 12 - 1 - (5 + 1 + 2)


def test_find_paths_stops_when_force_is_spent(build_map):
    game_map = build_map("a3 b5 .\nM M M")
    paths = find_paths(game_map, (0, 0))
    assert paths[0][1].dist == INF
    assert paths[0][2].dist == INF


def test_find_paths_goes_around_mountains(build_map):
    game_map = build_map("a9 M .\n. . .")
    paths = find_paths(game_map, (0, 0))
    assert paths[0][1].dist == INF
    assert paths[0][2].dist == 4
    assert first_hop(paths, (0, 0), (0, 2)) == Move.new(0, 0, 1, 0)


def test_find_paths_prefers_stronger_path_of_equal_length(build_map):
    game_map = build_map("a9 b5\na6 .")
    paths = find_paths(game_map, (0, 0))
    target = paths[1][1]
    assert target.dist == 2
    assert target.parent == (1, 0)
    assert target.value == 9 - 1 + 6 - 1


@pytest.fixture
def counting_queue(monkeypatch):
    """Record every cell pushed to or popped from the search frontier."""
    log = {'pushed': [], 'pops': 0}

    class CountingDeque(deque):
        def __init__(self, items=()):
            items = list(items)
            log['pushed'].extend(items)
            super().__init__(items)

        def append(self, item):
            log['pushed'].append(item)
            super().append(item)

        def popleft(self):
            log['pops'] += 1
            return super().popleft()

    monkeypatch.setattr(pathfinder_agent, "deque", CountingDeque)
    return log


def _assert_search_bounded(game_map, start, log):
    find_paths(game_map, start)
    assert log['pops'] <= game_map.n * game_map.m * 4
    assert len(log['pushed']) == len(set(log['pushed']))


@pytest.mark.parametrize("seed", range(3))
def test_search_on_generated_map_is_bounded(seed, counting_queue):
    game_map = GameMap.new_random(15, 15, 2, random.Random(seed))
    for row in game_map.grid:
        for cell in row:
            if cell.owner == 0:
                cell.army_size = 60
    (_, y, x), = [g for g in game_map.general_positions() if g[0] == 0]
    _assert_search_bounded(game_map, (y, x), counting_queue)
    assert counting_queue['pops'] > 1


def test_search_through_friendly_territory_is_bounded(build_map, counting_queue):
    game_map = build_map("\n".join(" ".join(["a9"] * 6) for _ in range(5)))
    _assert_search_bounded(game_map, (2, 3), counting_queue)
    assert counting_queue['pops'] == 30


def test_vertex_merge():
    vertex = VertexData(3, 5, (0, 0), (0, 1))
    assert not vertex.merge(VertexData(3, 7, (0, 0), (1, 0)))
    assert (vertex.value, vertex.parent) == (7, (1, 0))
    assert not vertex.merge(VertexData(4, 20, (0, 0), (2, 0)))
    assert vertex.parent == (1, 0)
    assert vertex.merge(VertexData(2, 3, (0, 0), (3, 0)))
    assert (vertex.dist, vertex.value, vertex.parent) == (2, 3, (3, 0))


def test_first_hop_of_origin_is_none(build_map):
    game_map = build_map("a5 .")
    paths = find_paths(game_map, (0, 0))
    assert first_hop(paths, (0, 0), (0, 0)) is None


# =============================================================================
# Move selection
# =============================================================================

def test_bot_heads_for_visible_enemy_general(build_map):
    real = build_map(". . . . .\naG10 a1 bG3 . .\n. . . . .")
    bot = _bot_for(real)
    assert bot.get_best_move(100) == Move.new(1, 0, 1, 1)


def test_bot_prefers_city_it_can_take(build_map):
    real = build_map(". C10 aG20 . .")
    assert _bot_for(real).get_best_move(100) == Move.new(0, 2, 0, 1)


def test_bot_skips_city_it_cannot_take(build_map):
    real = build_map(". C10 aG5 . .")
    assert _bot_for(real).get_best_move(100) == Move.new(0, 2, 0, 3)


def test_bot_without_moves_returns_none(build_map):
    real = build_map("aG1 . bG4")
    bot = _bot_for(real)
    assert bot.get_all_moves() == []
    assert bot.get_best_move(100) is None


def test_bot_without_targets_returns_none(build_map):
    real = build_map("aG5 a1 a1", players_num=1)
    bot = _bot_for(real)
    assert bot.get_all_moves()
    assert bot.get_best_move(100) is None


def test_bot_only_plays_its_own_color(build_map):
    real = build_map("aG5 . bG7 .")
    bot = _bot_for(real, color=1)
    move = bot.get_best_move(100)
    assert move is not None and move.from_pos == (0, 2)
    assert bot.color == 1


def test_weak_bot_plays_random_legal_moves(build_map):
    real = build_map(". . .\n. aG9 .\n. . .")
    bot = _bot_for(real, seed=5)
    legal = bot.get_all_moves()
    assert len(legal) == 4
    for _ in range(20):
        assert bot.get_best_move(0) in legal


def test_exhausted_time_budget_falls_back_to_random(build_map):
    real = build_map(". C10 aG20 . .")
    bot = _bot_for(real, time_budget=-1.0)
    assert bot.get_best_move(100) in bot.get_all_moves()


def test_general_is_ranked_below_similar_armies(build_map):
    real = build_map("aG20 a8 a3 .")
    bot = _bot_for(real)
    assert bot._rank_origins() == [(0, 1), (0, 0), (0, 2)]


def test_stale_cells_are_not_targets(build_map):
    real = build_map("aG5 . . . b4", turn=0)
    bot = _bot_for(real)
    bot.map.grid[0][1].last_update_time = bot.map.turn - 1
    assert bot.eval_target_cell((0, 1)) == float('-inf')
    assert bot.eval_target_cell((0, 0)) == float('-inf')


def test_bot_map_is_private(build_map):
    real = build_map("aG5 b4")
    bot = _bot_for(real)
    assert bot.map is not real
    real.grid[0][1].army_size = 40
    assert bot.map.grid[0][1].army_size == 4


def test_bot_only_sees_through_fog(build_map):
    real = build_map("aG5 . . bG9 C40")
    bot = _bot_for(real)
    assert bot.map.grid[0][3].owner is None
    assert bot.map.grid[0][3].army_size == 0


@pytest.mark.parametrize("seed", range(4))
def test_search_on_generated_map_returns_legal_move(seed):
    real = GameMap.new_random(12, 12, 2, random.Random(seed))
    for row in real.grid:
        for cell in row:
            if cell.owner == 0:
                cell.army_size = 15
    bot = _bot_for(real, seed=seed)
    move = bot.get_best_move(100)
    assert move is not None
    assert real.is_a_valid_move(move)


def test_random_bot_moves_are_legal(build_map):
    real = build_map("aG5 . .\n. . .")
    bot = RandomBot.from_map(real, 0, rng=random.Random(1))
    bot.update_from_map(real)
    assert bot.get_best_move() in real.get_all_moves()
