"""
Generals - Turn Based Territory Conquest Engine

Game-state simulation for a Generals.io style strategy game. Players own
cells on a grid, grow armies over time and capture adjacent cells by moving
armies into them. Capturing an enemy general eliminates that player and hands
their whole territory to the attacker.

This module holds the authoritative map (turn model, move legality, combat
resolution) together with per-player fog-of-war projection and the belief
synchronization used by bots.

"""

import logging
import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# =============================================================================
# GAME CONSTANTS
# =============================================================================

# Map generation
MOUNTAIN_PROBABILITY = 0.15
CITY_PROBABILITY = 0.05
CITY_ARMY_RANGE = (20, 50)  # inclusive

# Army growth (in rounds)
TERRITORY_GROWTH_INTERVAL = 50
CITY_GROWTH_INTERVAL = 2

# Movement directions as (dy, dx): up, left, right, down
DIRECTIONS = [(-1, 0), (0, -1), (0, 1), (1, 0)]

# Player colors (16 players max, indexed by player id)
PLAYER_COLORS = [
    (204, 0, 0),
    (0, 89, 181),
    (0, 102, 0),
    (0, 102, 102),
    (204, 114, 0),
    (178, 12, 165),
    (102, 0, 102),
    (127, 0, 0),
    (153, 153, 38),
    (127, 76, 25),
    (0, 25, 191),
    (76, 63, 127),
    (102, 127, 25),
    (153, 0, 0),
    (89, 51, 114),
    (114, 102, 63),
]

# Observation channels: owner, army, is_city, is_general, is_mountain, is_visible
OBSERVATION_CHANNELS = 6
VISIBLE_CHANNEL = 5


class GameStateError(RuntimeError):
    """Raised when the game state breaks one of its own invariants."""


# =============================================================================
# GAME ENUMS AND CLASSES
# =============================================================================

class CellType(Enum):
    """Enumeration of different cell types on the game board."""
    EMPTY = 0
    MOUNTAIN = 1
    CITY = 2
    GENERAL = 3


@dataclass
class Cell:
    """
    Represents the state of a single grid square.

    Attributes:
        army_size: Number of army units present
        owner: Player ID who owns this cell (None for unclaimed)
        cell_type: Type of cell (empty, mountain, city, general)
        is_friend: Search-local marker for cells known to belong to the viewer
        last_seen_type: Cell type the viewer last observed here
        last_update_time: Turn at which the viewer last saw this cell
    """
    army_size: int = 0
    owner: Optional[int] = None
    cell_type: CellType = CellType.EMPTY
    is_friend: bool = False
    last_seen_type: CellType = CellType.EMPTY
    last_update_time: int = 0

    def copy(self) -> "Cell":
        return replace(self)

    def is_empty_not_owned(self) -> bool:
        return self.cell_type == CellType.EMPTY and self.owner is None

    def city_or_general(self) -> bool:
        return self.cell_type in (CellType.CITY, CellType.GENERAL)

    def army_after_time(self, game_map: "GameMap", path_len: int) -> int:
        """
        Project this cell's army forward to the moment an attack arrives.

        Cities and generals keep growing while unobserved and while the
        attacking army travels; other cells are assumed static.

        Args:
            game_map: Map whose turn counter is the "now" of the projection
            path_len: Number of moves before the attack lands

        Returns:
            Expected army size on arrival
        """
        if self.city_or_general():
            return self.army_size + path_len + (game_map.turn - self.last_update_time)
        return self.army_size


@dataclass(frozen=True)
class Move:
    """
    A single army move between two 4-adjacent cells.

    Validity is never stored on the move; it is always judged against a
    specific map.

    Attributes:
        from_pos: Source position (row, col)
        to_pos: Destination position (row, col)
    """
    from_pos: Tuple[int, int]
    to_pos: Tuple[int, int]

    @classmethod
    def new(cls, y1: int, x1: int, y2: int, x2: int) -> "Move":
        return cls((y1, x1), (y2, x2))


@dataclass
class PlayerStatistics:
    """Totals shown in the side panel and tournament results."""
    total_army: int = 0
    total_fields: int = 0


# =============================================================================
# GAME MAP
# =============================================================================

class GameMap:
    """
    Authoritative game state and the rules that mutate it.

    This class handles:
    - Random map generation with guaranteed connectivity
    - Player-slot and round advancement with army growth
    - Move validation and combat resolution
    - Fog of war projection for a given player
    - Rebuilding a fog-limited belief copy from the real map

    Coordinates are (row, col) with row in [0, n) and col in [0, m).
    """

    def __init__(self, n: int, m: int, players_num: int,
                 grid: Optional[List[List[Cell]]] = None,
                 curr_color: int = 0, turn: int = 0):
        self.n = n
        self.m = m
        self.players_num = players_num
        self.curr_color = curr_color
        self.turn = turn
        if grid is None:
            grid = [[Cell() for _ in range(m)] for _ in range(n)]
        self.grid = grid

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    @classmethod
    def new_random(cls, n: int, m: int, players_num: int,
                   rng: Optional[random.Random] = None) -> "GameMap":
        """
        Generate a new random map.

        Mountains are scattered first, then one general per player, then
        neutral cities. Any mountain or city that would split the passable
        cells into separate regions is rolled back.

        Args:
            n: Number of rows
            m: Number of columns
            players_num: Number of players (one general each)
            rng: Random generator, a fresh unseeded one if omitted

        Returns:
            The generated map, turn 0, player 0 to move

        Raises:
            ValueError: If the dimensions or player count are unusable
        """
        if n <= 0 or m <= 0:
            raise ValueError(f"Map dimensions must be positive, got {n}x{m}")
        if players_num <= 0:
            raise ValueError(f"Need at least one player, got {players_num}")
        if rng is None:
            rng = random.Random()

        grid = [[Cell() for _ in range(m)] for _ in range(n)]

        for y in range(n):
            for x in range(m):
                if rng.random() < MOUNTAIN_PROBABILITY:
                    grid[y][x].cell_type = CellType.MOUNTAIN
                    if not cls._is_connected(n, m, grid):
                        grid[y][x].cell_type = CellType.EMPTY

        free_cells = [(y, x) for y in range(n) for x in range(m)
                      if grid[y][x].is_empty_not_owned()]
        if len(free_cells) < players_num:
            raise ValueError(f"Not enough free cells for {players_num} generals")
        for player_id, (y, x) in enumerate(rng.sample(free_cells, players_num)):
            cell = grid[y][x]
            cell.owner = player_id
            cell.cell_type = CellType.GENERAL
            cell.army_size = 1

        for y in range(n):
            for x in range(m):
                if rng.random() < CITY_PROBABILITY and grid[y][x].is_empty_not_owned():
                    grid[y][x].cell_type = CellType.CITY
                    grid[y][x].army_size = rng.randint(*CITY_ARMY_RANGE)
                    if not cls._is_connected(n, m, grid):
                        grid[y][x].cell_type = CellType.EMPTY
                        grid[y][x].army_size = 0

        for row in grid:
            for cell in row:
                cell.last_seen_type = cell.cell_type

        return cls(n, m, players_num, grid)

    @staticmethod
    def _is_connected(n: int, m: int, grid: List[List[Cell]]) -> bool:
        """Check that all non-mountain cells form one 4-connected region."""
        start = None
        for y in range(n):
            for x in range(m):
                if grid[y][x].cell_type != CellType.MOUNTAIN:
                    start = (y, x)
                    break
            if start is not None:
                break
        if start is None:
            return True

        used = [[False] * m for _ in range(n)]
        used[start[0]][start[1]] = True
        stack = [start]
        while stack:
            y, x = stack.pop()
            for dy, dx in DIRECTIONS:
                ny, nx = y + dy, x + dx
                if (0 <= ny < n and 0 <= nx < m and not used[ny][nx]
                        and grid[ny][nx].cell_type != CellType.MOUNTAIN):
                    used[ny][nx] = True
                    stack.append((ny, nx))

        return all(used[y][x] or grid[y][x].cell_type == CellType.MOUNTAIN
                   for y in range(n) for x in range(m))

    def is_connected(self) -> bool:
        return self._is_connected(self.n, self.m, self.grid)

    def copy(self) -> "GameMap":
        grid = [[cell.copy() for cell in row] for row in self.grid]
        return GameMap(self.n, self.m, self.players_num, grid, self.curr_color, self.turn)

    def in_bounds(self, y: int, x: int) -> bool:
        return 0 <= y < self.n and 0 <= x < self.m

    def neighbors(self, y: int, x: int) -> List[Tuple[int, int]]:
        """4-directional in-bounds neighbours, in DIRECTIONS order."""
        result = []
        for dy, dx in DIRECTIONS:
            ny, nx = y + dy, x + dx
            if self.in_bounds(ny, nx):
                result.append((ny, nx))
        return result

    # -------------------------------------------------------------------------
    # Turn model
    # -------------------------------------------------------------------------

    def skip_turn(self) -> None:
        """Pass the current player-slot; a wrap to player 0 ends the round."""
        self.curr_color += 1
        if self.curr_color >= self.players_num:
            self.curr_color = 0
            self._next_turn()

    def _next_turn(self) -> None:
        """Advance the round counter and apply passive army growth."""
        self.turn += 1
        territory_tick = self.turn % TERRITORY_GROWTH_INTERVAL == 0
        city_tick = self.turn % CITY_GROWTH_INTERVAL == 0
        for row in self.grid:
            for cell in row:
                if cell.owner is None:
                    continue
                if territory_tick or (city_tick and cell.city_or_general()):
                    cell.army_size += 1

    def stamp_update_time(self) -> None:
        """Mark every cell as observed at the current turn."""
        for row in self.grid:
            for cell in row:
                cell.last_update_time = self.turn

    # -------------------------------------------------------------------------
    # Move legality
    # -------------------------------------------------------------------------

    def _endpoints(self, move: Move) -> Optional[Tuple[Cell, Cell]]:
        (y1, x1), (y2, x2) = move.from_pos, move.to_pos
        if not (self.in_bounds(y1, x1) and self.in_bounds(y2, x2)):
            return None
        if abs(y1 - y2) + abs(x1 - x2) != 1:
            return None
        return self.grid[y1][x1], self.grid[y2][x2]

    def could_become_a_valid_move(self, move: Move) -> bool:
        """
        Fog-tolerant pre-check: adjacency and no remembered mountain at
        either end. Used to queue moves before they are actually legal.
        """
        endpoints = self._endpoints(move)
        if endpoints is None:
            return False
        source, target = endpoints
        return (source.last_seen_type != CellType.MOUNTAIN
                and target.last_seen_type != CellType.MOUNTAIN)

    def is_a_valid_move(self, move: Move) -> bool:
        """
        Strict legality for the player whose slot it is.

        The source must hold more than one unit, belong to the current
        player and have been observed this turn; neither end may be a
        mountain.
        """
        endpoints = self._endpoints(move)
        if endpoints is None:
            return False
        source, target = endpoints
        return (source.army_size > 1
                and source.cell_type != CellType.MOUNTAIN
                and source.owner == self.curr_color
                and target.cell_type != CellType.MOUNTAIN
                and source.last_update_time == self.turn)

    def get_all_moves(self) -> List[Move]:
        """Every strictly valid move for the current player, row-major."""
        moves = []
        for y in range(self.n):
            for x in range(self.m):
                for ny, nx in self.neighbors(y, x):
                    move = Move.new(y, x, ny, nx)
                    if self.is_a_valid_move(move):
                        moves.append(move)
        return moves

    # -------------------------------------------------------------------------
    # Combat resolution
    # -------------------------------------------------------------------------

    def make_move(self, move: Move) -> None:
        """
        Execute a move and resolve any resulting battle.

        All but one unit leave the source. Same-owner destinations simply
        add the armies. Otherwise the defender loses units and, if it drops
        below zero, the cell changes hands with the leftover attackers. A
        captured general eliminates its owner: all of their cells pass to
        the attacker and the general becomes a city.

        The move always consumes the current player-slot. A move that is
        not legal for the current player is logged and played as a skip.

        Args:
            move: The move to execute
        """
        if not self.is_a_valid_move(move):
            logger.warning("Rejected illegal move %s from player %d at turn %d",
                           move, self.curr_color, self.turn)
            self.skip_turn()
            return

        (y1, x1), (y2, x2) = move.from_pos, move.to_pos
        source = self.grid[y1][x1].copy()
        target = self.grid[y2][x2].copy()
        moving = source.army_size - 1

        if target.owner == source.owner:
            target.army_size += moving
        else:
            target.army_size -= moving
            if target.army_size < 0:
                target.army_size = -target.army_size
                if target.cell_type == CellType.GENERAL:
                    if target.owner is None:
                        raise GameStateError(f"General at {move.to_pos} has no owner")
                    logger.debug("Player %s eliminated by player %s at turn %d",
                                 target.owner, source.owner, self.turn)
                    self._destroy_player(target.owner, source.owner)
                    target.cell_type = CellType.CITY
                else:
                    logger.debug("Player %s captured %s at turn %d",
                                 source.owner, move.to_pos, self.turn)
                target.owner = source.owner

        source.army_size = 1
        self.grid[y1][x1] = source
        self.grid[y2][x2] = target
        self.skip_turn()

    def _destroy_player(self, player_id: int, new_owner: Optional[int]) -> None:
        for row in self.grid:
            for cell in row:
                if cell.owner == player_id:
                    cell.owner = new_owner

    # -------------------------------------------------------------------------
    # Fog of war
    # -------------------------------------------------------------------------

    def is_visible_to(self, y: int, x: int, player_id: int) -> bool:
        """A cell is visible if the player owns it or any of its 8 neighbours."""
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                ny, nx = y + dy, x + dx
                if self.in_bounds(ny, nx) and self.grid[ny][nx].owner == player_id:
                    return True
        return False

    def get_with_fog(self, y: int, x: int, player_id: int) -> Cell:
        """
        Return the cell as the given player sees it.

        Hidden mountains and cities both look like mountains; any other
        hidden cell looks like unclaimed empty land. Terrain memory
        (last_seen_type, last_update_time) is always carried over.

        Args:
            y, x: Grid coordinates
            player_id: Viewing player

        Returns:
            A copy of the cell, masked if not currently visible
        """
        cell = self.grid[y][x]
        if self.is_visible_to(y, x, player_id):
            return cell.copy()
        if cell.cell_type in (CellType.MOUNTAIN, CellType.CITY):
            masked_type = CellType.MOUNTAIN
        else:
            masked_type = CellType.EMPTY
        return Cell(
            army_size=0,
            owner=None,
            cell_type=masked_type,
            is_friend=False,
            last_seen_type=cell.last_seen_type,
            last_update_time=cell.last_update_time,
        )

    def update_from(self, other: "GameMap") -> None:
        """
        Rebuild this map as a fog-limited view of ``other``.

        The viewer is ``self.curr_color``, which survives the resync.
        Visible cells are copied exactly and stamped with the current turn;
        hidden cells that were seen before keep their old memory; cells
        never seen remember only their masked type.

        Args:
            other: The authoritative map
        """
        viewer = self.curr_color
        old_grid = self.grid
        self.n = other.n
        self.m = other.m
        self.players_num = other.players_num
        self.turn = other.turn
        self.curr_color = viewer

        grid = []
        for y in range(other.n):
            row = []
            for x in range(other.m):
                visible = other.is_visible_to(y, x, viewer)
                cell = other.get_with_fog(y, x, viewer)
                old = _old_cell(old_grid, y, x)
                if visible:
                    cell.last_update_time = other.turn
                    cell.last_seen_type = cell.cell_type
                elif old is not None and old.last_update_time > 0:
                    cell.last_update_time = old.last_update_time
                    cell.last_seen_type = old.last_seen_type
                else:
                    cell.last_seen_type = cell.cell_type
                cell.is_friend = cell.owner == viewer
                row.append(cell)
            grid.append(row)
        self.grid = grid

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def get_statistics(self) -> List[PlayerStatistics]:
        """Army and land totals, indexed by player id."""
        stats = [PlayerStatistics() for _ in range(self.players_num)]
        for row in self.grid:
            for cell in row:
                if cell.owner is not None and 0 <= cell.owner < self.players_num:
                    stats[cell.owner].total_army += cell.army_size
                    stats[cell.owner].total_fields += 1
        return stats

    def general_positions(self) -> List[Tuple[int, int, int]]:
        """(owner, row, col) for every general on the map."""
        return [(cell.owner, y, x)
                for y, row in enumerate(self.grid)
                for x, cell in enumerate(row)
                if cell.cell_type == CellType.GENERAL]

    def observation(self, player_id: int) -> np.ndarray:
        """
        Get the player's fog-masked view as a multi-channel array.

        Returns:
            np.ndarray: Array of shape (n, m, 6)
                Channels: [owner, army, is_city, is_general, is_mountain, is_visible]
        """
        obs = np.zeros((self.n, self.m, OBSERVATION_CHANNELS), dtype=np.float32)
        for y in range(self.n):
            for x in range(self.m):
                cell = self.get_with_fog(y, x, player_id)
                obs[y, x, 0] = -1 if cell.owner is None else cell.owner
                obs[y, x, 1] = cell.army_size
                obs[y, x, 2] = float(cell.cell_type == CellType.CITY)
                obs[y, x, 3] = float(cell.cell_type == CellType.GENERAL)
                obs[y, x, 4] = float(cell.cell_type == CellType.MOUNTAIN)
                obs[y, x, VISIBLE_CHANNEL] = float(self.is_visible_to(y, x, player_id))
        return obs

    def __repr__(self) -> str:
        return (f"GameMap(n={self.n}, m={self.m}, players_num={self.players_num}, "
                f"curr_color={self.curr_color}, turn={self.turn})")


def _old_cell(grid: List[List[Cell]], y: int, x: int) -> Optional[Cell]:
    if y < len(grid) and x < len(grid[y]):
        return grid[y][x]
    return None

