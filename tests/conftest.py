import re
import string

import pytest

from generals import Cell, CellType, GameMap

_TOKEN = re.compile(r'^(?P<owner>[a-p])?(?P<kind>[GC])?(?P<army>\d+)?$')


def parse_map(text: str, players_num: int = 2, turn: int = 0) -> GameMap:
    """
    Build a map from a whitespace separated token grid.

    ``.`` empty, ``M`` mountain, ``C20`` neutral city with 20 army,
    ``aG5`` player 0 general with 5 army, ``b3`` player 1 land with 3 army.
    Every cell starts as seen at ``turn``.
    """
    grid = []
    for line in text.strip().splitlines():
        row = []
        for token in line.split():
            cell = Cell(last_update_time=turn)
            if token == 'M':
                cell.cell_type = CellType.MOUNTAIN
            elif token != '.':
                match = _TOKEN.match(token)
                if match is None:
                    raise ValueError(f"bad map token {token!r}")
                if match['owner']:
                    cell.owner = string.ascii_lowercase.index(match['owner'])
                if match['kind'] == 'G':
                    cell.cell_type = CellType.GENERAL
                elif match['kind'] == 'C':
                    cell.cell_type = CellType.CITY
                cell.army_size = int(match['army'] or 0)
            cell.last_seen_type = cell.cell_type
            row.append(cell)
        grid.append(row)
    return GameMap(len(grid), len(grid[0]), players_num, grid, turn=turn)


@pytest.fixture
def build_map():
    return parse_map
