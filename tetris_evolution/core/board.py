"""
Grid representation and board feature extraction.

A grid is a fixed-size matrix of occupied/empty cells with row 0 at the top.
The four features below are the inputs of the heuristic evaluator:

- aggregate_height: sum of column heights
- holes: empty cells with at least one occupied cell above them
- bumpiness: sum of absolute height differences of adjacent columns
- complete_lines: rows in which every cell is occupied

All features are reported as raw non-negative magnitudes. The evaluator
is responsible for the sign convention.
"""

from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Tuple

import numpy as np

from ..errors import InvalidGrid


DEFAULT_WIDTH = 10
DEFAULT_HEIGHT = 20


@dataclass(frozen=True)
class BoardFeatures:
    """Feature vector extracted from a single grid."""
    aggregate_height: int
    holes: int
    bumpiness: int
    complete_lines: int
    column_heights: Tuple[int, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d['column_heights'] = list(self.column_heights)
        return d


def empty_grid(width: int = DEFAULT_WIDTH, height: int = DEFAULT_HEIGHT) -> np.ndarray:
    """Create an empty boolean grid of shape (height, width)."""
    if width <= 0 or height <= 0:
        raise InvalidGrid(f"Grid dimensions must be positive, got {width}x{height}")
    return np.zeros((height, width), dtype=bool)


def as_grid(cells) -> np.ndarray:
    """
    Normalise caller input into a boolean grid.

    Accepts nested lists or numpy arrays of numbers/booleans; any non-zero
    cell counts as occupied.

    Raises:
        InvalidGrid: if the input is empty, ragged, not 2-D or non-numeric
    """
    if isinstance(cells, np.ndarray) and cells.dtype == bool and cells.ndim == 2:
        if cells.size == 0:
            raise InvalidGrid("Grid is empty")
        return cells

    try:
        arr = np.asarray(cells)
    except (ValueError, TypeError) as e:
        raise InvalidGrid(f"Grid is not rectangular: {e}") from e

    if arr.ndim != 2:
        raise InvalidGrid(f"Grid must be two-dimensional, got {arr.ndim} dimension(s)")
    if arr.size == 0:
        raise InvalidGrid("Grid is empty")
    if arr.dtype.kind not in 'biuf':
        raise InvalidGrid(f"Grid cells must be numeric or boolean, got dtype {arr.dtype}")

    return arr != 0


def column_heights(grid: np.ndarray) -> np.ndarray:
    """
    Height of every column, measured from the topmost occupied cell down.

    Empty columns have height 0.
    """
    grid = as_grid(grid)
    rows = grid.shape[0]
    has_block = grid.any(axis=0)
    top = grid.argmax(axis=0)
    return np.where(has_block, rows - top, 0)


def aggregate_height(grid: np.ndarray) -> int:
    """Sum of all column heights."""
    return int(column_heights(grid).sum())


def count_holes(grid: np.ndarray) -> int:
    """Count empty cells that sit below an occupied cell in the same column."""
    grid = as_grid(grid)
    covered = np.logical_or.accumulate(grid, axis=0)
    return int(np.count_nonzero(covered & ~grid))


def bumpiness(grid: np.ndarray) -> int:
    """Sum of absolute height differences between adjacent columns."""
    heights = column_heights(grid)
    return int(np.abs(np.diff(heights)).sum())


def complete_lines(grid: np.ndarray) -> int:
    """Number of rows where every cell is occupied."""
    grid = as_grid(grid)
    return int(np.count_nonzero(grid.all(axis=1)))


def extract_features(grid) -> BoardFeatures:
    """
    Compute all four board features in one pass.

    Args:
        grid: Grid-like input (see as_grid)

    Returns:
        BoardFeatures with non-negative magnitudes

    Raises:
        InvalidGrid: if the grid is malformed
    """
    grid = as_grid(grid)
    heights = column_heights(grid)
    covered = np.logical_or.accumulate(grid, axis=0)

    return BoardFeatures(
        aggregate_height=int(heights.sum()),
        holes=int(np.count_nonzero(covered & ~grid)),
        bumpiness=int(np.abs(np.diff(heights)).sum()),
        complete_lines=int(np.count_nonzero(grid.all(axis=1))),
        column_heights=tuple(int(h) for h in heights),
    )


def clear_lines(grid) -> Tuple[np.ndarray, int]:
    """
    Remove complete rows, shifting everything above them down.

    Returns:
        Tuple of (new grid, number of rows cleared). The input is not modified.
    """
    grid = as_grid(grid)
    keep = ~grid.all(axis=1)
    cleared = int(grid.shape[0] - np.count_nonzero(keep))
    if cleared == 0:
        return grid.copy(), 0

    new_grid = np.zeros_like(grid)
    new_grid[cleared:] = grid[keep]
    return new_grid, cleared


def grid_to_rows(grid: np.ndarray) -> List[str]:
    """Render a grid as text rows ('#' occupied, '.' empty)."""
    grid = as_grid(grid)
    return [''.join('#' if cell else '.' for cell in row) for row in grid]


def grid_from_rows(rows: List[str]) -> np.ndarray:
    """Parse text rows produced by grid_to_rows (any non-'.' char is occupied)."""
    if not rows:
        raise InvalidGrid("Grid is empty")
    widths = {len(r) for r in rows}
    if len(widths) != 1:
        raise InvalidGrid(f"Rows have differing widths: {sorted(widths)}")
    return as_grid([[ch not in '. ' for ch in row] for row in rows])
