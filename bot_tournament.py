"""
Headless bot tournament for Generals.

Plays a series of all-bot games without rendering and reports how often each
player won, together with per-game army, territory and visible-cell totals. Any player can
be switched to the random-mover baseline to measure the path finder against
it.

"""

import argparse
import csv
import logging
import random
import time
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import numpy as np

from game_runner import GameParams, GameSession
from generals import VISIBLE_CHANNEL, GameMap
from pathfinder_agent import Bot, PathFinderBot, RandomBot

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS = 2000


def build_bots(game_map: GameMap, params: GameParams, rng: random.Random,
               random_players: Sequence[int] = ()) -> Dict[int, Bot]:
    """Create one bot per player, random movers for the listed ids."""
    bots = {}
    for player_id in range(game_map.players_num):
        bot_rng = random.Random(rng.getrandbits(32))
        if player_id in random_players:
            bots[player_id] = RandomBot.from_map(game_map, player_id, rng=bot_rng)
        else:
            bots[player_id] = PathFinderBot.from_map(game_map, player_id, rng=bot_rng,
                                                     time_budget=params.bot_time_budget)
    return bots


def visible_cells(game_map: GameMap, player_id: int) -> int:
    """Number of cells the player can currently see through the fog."""
    obs = game_map.observation(player_id)
    return int(np.count_nonzero(obs[:, :, VISIBLE_CHANNEL]))


def play_game(params: GameParams, max_rounds: int,
              random_players: Sequence[int] = ()) -> Dict[str, object]:
    """
    Play one game to completion or to the round limit.

    Returns:
        Row for the results table: game outcome plus per-player totals
    """
    rng = random.Random(params.seed)
    game_map = GameMap.new_random(params.n, params.m, params.players_num, rng)
    session = GameSession(params, game_map=game_map,
                          bots=build_bots(game_map, params, rng, random_players))

    started = time.time()
    winner = session.run(max_rounds)
    row = {
        'winner': '' if winner is None else winner,
        'rounds': session.map.turn,
        'time': f"{time.time() - started:.1f}",
    }
    for player_id, stats in enumerate(session.statistics()):
        row[f'p{player_id}_armies'] = stats.total_army
        row[f'p{player_id}_territory'] = stats.total_fields
        row[f'p{player_id}_visible'] = visible_cells(session.map, player_id)
    return row


def run_tournament(params: GameParams, num_games: int,
                   max_rounds: int = DEFAULT_MAX_ROUNDS,
                   random_players: Sequence[int] = (),
                   csv_filename: Optional[str] = None) -> List[Dict[str, object]]:
    """
    Play ``num_games`` games and collect their results.

    Game ``i`` uses seed ``params.seed + i`` when a seed is given, so a
    tournament can be replayed exactly.

    Args:
        params: Shared game settings (human_player is ignored)
        num_games: Number of games to play
        max_rounds: Round limit per game; unfinished games have no winner
        random_players: Player ids that play random moves
        csv_filename: Where to write the results table, if anywhere

    Returns:
        One result row per game
    """
    results = []
    for game in range(num_games):
        seed = None if params.seed is None else params.seed + game
        game_params = GameParams(
            n=params.n, m=params.m, players_num=params.players_num,
            bot_strength=params.bot_strength, human_player=None,
            seed=seed, bot_time_budget=params.bot_time_budget,
        )
        game_params.validate()
        row = {'game': game + 1}
        row.update(play_game(game_params, max_rounds, random_players))
        results.append(row)
        logger.info("Game %d/%d: winner %s after %s rounds",
                    game + 1, num_games, row['winner'], row['rounds'])

    if csv_filename and results:
        with open(csv_filename, 'w', newline='') as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=list(results[0].keys()))
            writer.writeheader()
            writer.writerows(results)
    return results


def summarize(results: List[Dict[str, object]], players_num: int) -> Dict[str, int]:
    """Count wins per player plus unfinished games."""
    summary = {f'player_{player_id}': 0 for player_id in range(players_num)}
    summary['unfinished'] = 0
    for row in results:
        if row['winner'] == '':
            summary['unfinished'] += 1
        else:
            summary[f"player_{row['winner']}"] += 1
    return summary


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Run a headless tournament between Generals bots",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--games", type=int, default=20, help="Number of games to play")
    parser.add_argument("--rows", type=int, default=20, help="Map height")
    parser.add_argument("--cols", type=int, default=20, help="Map width")
    parser.add_argument("--players", type=int, default=2, help="Number of bots per game")
    parser.add_argument("--strength", type=float, default=100.0, help="Bot strength in [0, 100]")
    parser.add_argument("--max-rounds", type=int, default=DEFAULT_MAX_ROUNDS,
                        help="Round limit per game")
    parser.add_argument("--random-players", type=int, nargs="*", default=[],
                        help="Player ids that play random moves")
    parser.add_argument("--time-budget", type=float, default=None,
                        help="Search time limit per bot decision in seconds")
    parser.add_argument("--seed", type=int, default=None, help="Base random seed")
    parser.add_argument("--csv", type=str, default=None,
                        help="Results file (default: timestamped name)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)
    if args.games < 1:
        parser.error("--games must be at least 1")

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")

    params = GameParams(n=args.rows, m=args.cols, players_num=args.players,
                        bot_strength=args.strength, human_player=None,
                        seed=args.seed, bot_time_budget=args.time_budget)
    csv_filename = args.csv or f"tournament_results_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"

    print(f"\nStarting tournament: {args.players} bots, {args.games} games "
          f"on {args.rows}x{args.cols}")
    print("=" * 50)
    results = run_tournament(params, args.games, args.max_rounds,
                             args.random_players, csv_filename)

    print("\nTournament Results:")
    print("=" * 50)
    for name, wins in summarize(results, args.players).items():
        print(f"{name}: {wins} ({wins / args.games * 100:.1f}%)")
    print(f"Average rounds per game: {sum(r['rounds'] for r in results) / args.games:.1f}")
    print(f"\nDetailed results have been saved to: {csv_filename}")


if __name__ == "__main__":
    main()
