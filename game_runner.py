"""
Game Session Orchestration for Generals

Drives a game one round at a time: every player-slot asks either the human
move queue or a bot for a move, checks it against the authoritative map and
applies it. After the round all bots (and the human's own view) are
resynchronized through fog-of-war projection, so no player ever reads the
real map directly.

"""

from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional

from generals import CellType, GameMap, GameStateError, Move, PlayerStatistics
from pathfinder_agent import Bot, PathFinderBot

logger = logging.getLogger(__name__)

# =============================================================================
# CONFIGURATION
# =============================================================================

MIN_SIDE, MAX_SIDE = 10, 50
MIN_PLAYERS, MAX_PLAYERS = 2, 16
DELAY_BETWEEN_TICKS = 0.2  # seconds between rounds in the interactive game


@dataclass
class GameParams:
    """
    Settings for a single game.

    Attributes:
        n: Number of rows
        m: Number of columns
        players_num: Number of players, human included
        bot_strength: Bot difficulty in [0, 100]
        human_player: Player id controlled through the move queue, None for all bots
        disable_fog_of_war: Render the real map instead of the human's view
        seed: Seed for map generation and bot decisions
        bot_time_budget: Optional per-decision search limit in seconds
    """
    n: int = 30
    m: int = 30
    players_num: int = 2
    bot_strength: float = 100.0
    human_player: Optional[int] = 0
    disable_fog_of_war: bool = False
    seed: Optional[int] = None
    bot_time_budget: Optional[float] = None

    def validate(self) -> None:
        if not (MIN_SIDE <= self.n <= MAX_SIDE and MIN_SIDE <= self.m <= MAX_SIDE):
            raise ValueError(f"Map sides must be in [{MIN_SIDE}, {MAX_SIDE}], got {self.n}x{self.m}")
        if not MIN_PLAYERS <= self.players_num <= MAX_PLAYERS:
            raise ValueError(f"Player count must be in [{MIN_PLAYERS}, {MAX_PLAYERS}]")
        if not 0 <= self.bot_strength <= 100:
            raise ValueError(f"Bot strength must be in [0, 100], got {self.bot_strength}")
        if self.human_player is not None and not 0 <= self.human_player < self.players_num:
            raise ValueError(f"Human player {self.human_player} is not in the game")


# =============================================================================
# GAME SESSION
# =============================================================================

class GameSession:
    """
    Owns the authoritative map for one game and advances it.

    Attributes:
        params: Game settings
        map: The authoritative map
        bots: Bot per non-human player id
        human_view: The human player's belief map, None if no human plays
        moves_queue: Pending human moves, executed one per round
    """

    def __init__(self, params: GameParams, game_map: Optional[GameMap] = None,
                 bots: Optional[Dict[int, Bot]] = None):
        self.params = params
        self.rng = random.Random(params.seed)
        if game_map is None:
            params.validate()
            game_map = GameMap.new_random(params.n, params.m, params.players_num, self.rng)
        self.map = game_map
        self.moves_queue: Deque[Move] = deque()
        self.eliminated: List[int] = []

        if bots is None:
            bots = {
                player_id: PathFinderBot.from_map(self.map, player_id,
                                                  rng=random.Random(self.rng.getrandbits(32)),
                                                  time_budget=params.bot_time_budget)
                for player_id in range(self.map.players_num)
                if player_id != params.human_player
            }
        self.bots = bots

        self.human_view = None
        if params.human_player is not None:
            self.human_view = GameMap(self.map.n, self.map.m, self.map.players_num,
                                      curr_color=params.human_player, turn=self.map.turn)
        self._resync_views()

    @property
    def human_player(self) -> Optional[int]:
        return self.params.human_player

    # -------------------------------------------------------------------------
    # Human input
    # -------------------------------------------------------------------------

    def queue_move(self, move: Move) -> bool:
        """
        Queue a human move if it could ever become legal.

        Returns:
            True if the move was queued
        """
        if self.human_view is None or not self.human_view.could_become_a_valid_move(move):
            return False
        self.moves_queue.append(move)
        return True

    def clear_queue(self) -> None:
        self.moves_queue.clear()

    # -------------------------------------------------------------------------
    # Round processing
    # -------------------------------------------------------------------------

    def next_tick(self) -> None:
        """Play one full round: one slot per player, then resync every view."""
        for player_id in range(self.map.players_num):
            if self.map.curr_color != player_id:
                raise GameStateError(
                    f"Slot {player_id} but map expects player {self.map.curr_color}")
            if player_id == self.human_player:
                self._play_human_slot()
            else:
                self._play_bot_slot(player_id)
        self.map.stamp_update_time()
        self._resync_views()
        self._track_eliminations()

    def _play_human_slot(self) -> None:
        if not self.moves_queue:
            self.map.skip_turn()
            return
        move = self.moves_queue.popleft()
        if self.map.is_a_valid_move(move):
            self.map.make_move(move)
        else:
            logger.warning("Incorrect move %s", move)
            self.map.skip_turn()

    def _play_bot_slot(self, player_id: int) -> None:
        bot = self.bots.get(player_id)
        move = bot.get_best_move(self.params.bot_strength) if bot is not None else None
        if move is None:
            self.map.skip_turn()
        elif self.map.is_a_valid_move(move):
            self.map.make_move(move)
        else:
            logger.warning("Bad bot move from player %d: %s", player_id, move)
            self.map.skip_turn()

    def _resync_views(self) -> None:
        for bot in self.bots.values():
            bot.update_from_map(self.map)
        if self.human_view is not None:
            self.human_view.update_from(self.map)

    def _track_eliminations(self) -> None:
        alive = set(self.alive_players())
        for player_id in range(self.map.players_num):
            if player_id not in alive and player_id not in self.eliminated:
                self.eliminated.append(player_id)
                logger.info("Player %d eliminated at turn %d", player_id, self.map.turn)
        if self.is_over():
            logger.info("Game over at turn %d, winner %s", self.map.turn, self.winner())

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def alive_players(self) -> List[int]:
        """Players that still hold a general."""
        return sorted({cell.owner for row in self.map.grid for cell in row
                       if cell.cell_type == CellType.GENERAL and cell.owner is not None})

    def is_over(self) -> bool:
        return len(self.alive_players()) <= 1

    def winner(self) -> Optional[int]:
        alive = self.alive_players()
        return alive[0] if len(alive) == 1 else None

    def statistics(self) -> List[PlayerStatistics]:
        return self.map.get_statistics()

    def run(self, max_rounds: int) -> Optional[int]:
        """
        Play rounds until one player is left or the round limit is hit.

        Returns:
            The winner, or None if the game did not finish
        """
        for _ in range(max_rounds):
            if self.is_over():
                break
            self.next_tick()
        return self.winner()
