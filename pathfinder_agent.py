"""
Path Finder Agent for Generals

This module implements the search-based bots that play non-human players.
Each bot keeps its own fog-limited belief map, resynchronized from the real
map once per round, and on its turn searches outward from its strongest
armies for the most desirable target it can actually conquer.

"""

from __future__ import annotations

import logging
import random
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import List, Optional, Tuple

from generals import CellType, GameMap, GameStateError, Move, DIRECTIONS

logger = logging.getLogger(__name__)

# =============================================================================
# Search Constants
# =============================================================================

INF = 10 ** 10
NO_PARENT = (-1, -1)

# Number of strongest source cells searched from each turn
SEARCH_ORIGINS = 5

# The general's garrison counts for less when ranking source cells
GENERAL_PRIORITY_OFFSET = 10
GENERAL_PRIORITY_FACTOR = 0.5

# Target desirability, by (owner relation, cell type)
UNCLAIMED_DESIRABILITY = {
    CellType.EMPTY: 6.0,
    CellType.CITY: 250.0,
}
ENEMY_DESIRABILITY = {
    CellType.EMPTY: 100.0,
    CellType.CITY: 1500.0,
    CellType.GENERAL: 1e18,
}
NOT_A_TARGET = float('-inf')


# =============================================================================
# Bot Capability
# =============================================================================

class Bot(ABC):
    """A non-human player: decides a move from its own view of the game."""

    @abstractmethod
    def get_best_move(self, strength: float) -> Optional[Move]:
        """
        Choose this turn's move.

        Args:
            strength: Difficulty in [0, 100]; lower plays more randomly

        Returns:
            The chosen move, or None to skip the turn
        """

    @abstractmethod
    def update_from_map(self, game_map: GameMap) -> None:
        """Refresh the bot's belief map from the authoritative map."""


class BeliefBot(Bot):
    """
    Shared plumbing for bots that act on a private fog-limited map.

    Attributes:
        map: The bot's belief map; its curr_color is the bot's player id
        rng: Random generator used for every random decision
    """

    def __init__(self, game_map: GameMap, color: int, rng: Optional[random.Random] = None):
        self.map = GameMap(game_map.n, game_map.m, game_map.players_num,
                           curr_color=color, turn=game_map.turn)
        self.rng = rng if rng is not None else random.Random()

    @classmethod
    def from_map(cls, game_map: GameMap, color: int, **kwargs) -> "BeliefBot":
        return cls(game_map, color, **kwargs)

    @property
    def color(self) -> int:
        return self.map.curr_color

    def update_from_map(self, game_map: GameMap) -> None:
        self.map.update_from(game_map)

    def get_all_moves(self) -> List[Move]:
        return self.map.get_all_moves()

    def get_random_move(self) -> Optional[Move]:
        moves = self.get_all_moves()
        if not moves:
            return None
        return self.rng.choice(moves)


class RandomBot(BeliefBot):
    """Plays a uniformly random legal move every turn."""

    def get_best_move(self, strength: float = 0.0) -> Optional[Move]:
        return self.get_random_move()


# =============================================================================
# Path Search
# =============================================================================

@dataclass
class VertexData:
    """
    Best known way of reaching one cell from the search origin.

    Attributes:
        dist: Number of moves from the origin
        value: Army expected to arrive here along that path
        coords: This cell's (row, col)
        parent: Previous cell on the path, NO_PARENT if none
    """
    dist: int
    value: int
    coords: Tuple[int, int]
    parent: Tuple[int, int] = NO_PARENT

    def merge(self, other: "VertexData") -> bool:
        """
        Keep the better of the two paths.

        Shorter paths win and, at equal length, stronger ones. Only a
        strictly shorter path asks for the cell to be expanded again.

        Returns:
            True if the cell should be (re)enqueued
        """
        add_to_queue = other.dist < self.dist
        if (other.dist, -other.value) < (self.dist, -self.value):
            self.dist = other.dist
            self.value = other.value
            self.parent = other.parent
        return add_to_queue


def find_paths(game_map: GameMap, start: Tuple[int, int]) -> List[List[VertexData]]:
    """
    Relax paths outward from ``start`` over the belief map.

    Each step leaves one unit behind, absorbs the army of friendly cells and
    pays for the army of anything else, with cities and generals projected
    forward to the arrival time. A cell is only expanded while more than
    one unit would still be standing on it.

    The frontier is plain FIFO: every edge costs one move.

    Args:
        game_map: The searching player's map (its curr_color is "us")
        start: Origin cell

    Returns:
        Per-cell VertexData grid; unreachable cells keep dist INF, value 0
    """
    result = [[VertexData(INF, 0, (y, x)) for x in range(game_map.m)]
              for y in range(game_map.n)]
    sy, sx = start
    result[sy][sx].dist = 0
    result[sy][sx].value = game_map.grid[sy][sx].army_size

    queue = deque([start])
    while queue:
        y, x = queue.popleft()
        current = result[y][x]
        if current.value <= 1:
            continue
        for dy, dx in DIRECTIONS:
            ny, nx = y + dy, x + dx
            if not game_map.could_become_a_valid_move(Move.new(y, x, ny, nx)):
                continue
            target = game_map.grid[ny][nx]
            new_dist = current.dist + 1
            army = target.army_after_time(game_map, new_dist)
            delta = army if target.owner == game_map.curr_color else -army
            new_value = current.value - 1 + delta
            if new_value <= 1:
                continue
            if result[ny][nx].merge(VertexData(new_dist, new_value, (ny, nx), (y, x))):
                queue.append((ny, nx))
    return result


def first_hop(paths: List[List[VertexData]], origin: Tuple[int, int],
              target: Tuple[int, int]) -> Optional[Move]:
    """Walk parents back from ``target`` and return the move leaving ``origin``."""
    if target == origin or paths[target[0]][target[1]].parent == NO_PARENT:
        return None
    current = target
    while True:
        parent = paths[current[0]][current[1]].parent
        if parent == origin:
            return Move(origin, current)
        if parent == NO_PARENT:
            raise GameStateError(f"Path to {target} does not lead back to {origin}")
        current = parent


# =============================================================================
# Path Finder Bot
# =============================================================================

class PathFinderBot(BeliefBot):
    """
    Search-based bot.

    Each turn it ranks its own armies, runs a path search from the strongest
    few and moves one step along the path to the best scoring target
    (desirability divided by distance). The rest of the path is not kept;
    the search is redone next turn.

    Attributes:
        time_budget: Optional limit in seconds for one decision
    """

    def __init__(self, game_map: GameMap, color: int, rng: Optional[random.Random] = None,
                 time_budget: Optional[float] = None):
        super().__init__(game_map, color, rng)
        self.time_budget = time_budget

    def get_best_move(self, strength: float = 100.0) -> Optional[Move]:
        if self.rng.random() * 100.0 > strength:
            return self.get_random_move()

        started = time.monotonic()
        best_score = 0.0
        best_move = None
        for origin in self._rank_origins()[:SEARCH_ORIGINS]:
            if self.time_budget is not None and time.monotonic() - started > self.time_budget:
                logger.debug("Player %d search out of time", self.color)
                if best_move is None:
                    return self.get_random_move()
                break
            paths = find_paths(self.map, origin)
            for y in range(self.map.n):
                for x in range(self.map.m):
                    info = paths[y][x]
                    if info.value < 1 or info.dist == 0 or info.dist >= INF:
                        continue
                    score = self.eval_target_cell((y, x)) / info.dist
                    if score <= best_score:
                        continue
                    move = first_hop(paths, origin, (y, x))
                    if move is None:
                        continue
                    if not self.map.is_a_valid_move(move):
                        raise GameStateError(f"Search produced an illegal move {move}")
                    best_move = move
                    best_score = score
        return best_move

    def _rank_origins(self) -> List[Tuple[int, int]]:
        """Own cells with a movable army and fresh knowledge, biggest first."""
        ranked = []
        for y in range(self.map.n):
            for x in range(self.map.m):
                cell = self.map.grid[y][x]
                if (cell.owner != self.color or cell.army_size <= 1
                        or cell.last_update_time != self.map.turn):
                    continue
                priority = cell.army_size
                if cell.cell_type == CellType.GENERAL:
                    priority = int((priority - GENERAL_PRIORITY_OFFSET) * GENERAL_PRIORITY_FACTOR)
                ranked.append((-priority, self.rng.getrandbits(32), y, x))
        ranked.sort()
        return [(y, x) for _, _, y, x in ranked]

    def eval_target_cell(self, coords: Tuple[int, int]) -> float:
        """How much the bot wants to conquer this cell."""
        cell = self.map.grid[coords[0]][coords[1]]
        if (cell.cell_type == CellType.MOUNTAIN or cell.is_friend
                or cell.last_update_time != self.map.turn):
            return NOT_A_TARGET
        if cell.owner is None:
            if cell.cell_type == CellType.GENERAL:
                raise GameStateError(f"General at {coords} has no owner")
            return UNCLAIMED_DESIRABILITY[cell.cell_type]
        if cell.owner != self.color:
            return ENEMY_DESIRABILITY[cell.cell_type]
        return NOT_A_TARGET
