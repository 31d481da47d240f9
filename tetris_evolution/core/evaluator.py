"""
Heuristic placement evaluator and placement search.

The score of a grid is a linear combination of its board features:

    score = lines * complete_lines
          + height * (-aggregate_height)
          + holes * (-holes)
          + bumpiness * (-bumpiness)

No clamping or normalisation is applied; identical (grid, weights) pairs
always produce identical scores.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .board import as_grid, extract_features, BoardFeatures
from .pieces import rotations, shape_bounds, Shape
from .weights import Weights, validate_weights
from ..errors import InvalidGrid


def score_features(features: BoardFeatures, weights: Weights) -> float:
    """Combine a feature vector with a weight vector (no validation)."""
    return (
        weights.lines * features.complete_lines
        + weights.height * -features.aggregate_height
        + weights.holes * -features.holes
        + weights.bumpiness * -features.bumpiness
    )


def evaluate_board(grid, weights: Weights) -> float:
    """
    Score a grid with the given weights.

    Raises:
        InvalidGenome: if the weights are not a valid vector
        InvalidGrid: if the grid is malformed
    """
    validate_weights(weights)
    return score_features(extract_features(grid), weights)


class HeuristicEvaluator:
    """
    Evaluator bound to one weight vector.

    Weights are validated once at construction so repeated scoring during a
    placement search skips the check.
    """

    def __init__(self, weights: Weights):
        self.weights = validate_weights(weights)

    def score(self, grid) -> float:
        return score_features(extract_features(grid), self.weights)

    def __repr__(self) -> str:
        return f"HeuristicEvaluator({self.weights!r})"


@dataclass
class Placement:
    """A legal resting position for a piece and the board it produces."""
    piece_type: str
    rotation: int
    column: int
    row: int
    cells: Tuple[Tuple[int, int], ...]
    grid: np.ndarray                 # board with the piece locked, before line clears
    score: Optional[float] = None


def _fits(grid: np.ndarray, shape: Shape, top: int, left: int) -> bool:
    rows, cols = grid.shape
    for dr, dc in shape:
        r = top + dr
        c = left + dc
        if c < 0 or c >= cols or r >= rows:
            return False
        if r >= 0 and grid[r, c]:
            return False
    return True


def drop_row(grid: np.ndarray, shape: Shape, left: int) -> Optional[int]:
    """
    Drop a shape straight down from above the board.

    Returns:
        The top row at which the shape comes to rest, or None if it cannot
        enter the column at all.
    """
    _, max_row, _, _ = shape_bounds(shape)
    top = -max_row - 1
    if not _fits(grid, shape, top, left):
        return None
    while _fits(grid, shape, top + 1, left):
        top += 1
    return top


def enumerate_placements(grid, piece_type: str) -> Iterator[Placement]:
    """
    Yield every legal placement of a piece.

    Every distinct rotation is tried at every horizontal offset that keeps
    the piece inside the walls; the piece falls with gravity until it
    collides. Placements that would leave a cell above the top row are
    skipped. Order: rotation index, then column left to right.
    """
    grid = as_grid(grid)
    _, cols = grid.shape

    for rot_idx, shape in enumerate(rotations(piece_type)):
        _, _, min_col, max_col = shape_bounds(shape)
        for left in range(-min_col, cols - max_col):
            top = drop_row(grid, shape, left)
            if top is None:
                continue
            cells = tuple((top + dr, left + dc) for dr, dc in shape)
            if any(r < 0 for r, _ in cells):
                continue
            placed = grid.copy()
            for r, c in cells:
                placed[r, c] = True
            yield Placement(
                piece_type=piece_type,
                rotation=rot_idx,
                column=left,
                row=top,
                cells=cells,
                grid=placed,
            )


def find_best_placement(
    grid,
    piece_type: str,
    evaluator: HeuristicEvaluator,
) -> Optional[Placement]:
    """
    Choose the highest-scoring placement for a piece.

    Ties keep the first placement encountered, so a genome's play is
    reproducible for a fixed piece sequence.

    Returns:
        The best Placement, or None when the piece has no legal placement
    """
    best: Optional[Placement] = None
    for placement in enumerate_placements(grid, piece_type):
        placement.score = evaluator.score(placement.grid)
        if best is None or placement.score > best.score:
            best = placement
    return best


def rank_placements(grid, piece_type: str, evaluator: HeuristicEvaluator) -> List[Placement]:
    """All legal placements, best first (stable for equal scores)."""
    placements = list(enumerate_placements(grid, piece_type))
    for placement in placements:
        placement.score = evaluator.score(placement.grid)
    return sorted(placements, key=lambda p: -p.score)


def score_placement(
    grid,
    cells: Sequence[Tuple[int, int]],
    evaluator: HeuristicEvaluator,
) -> float:
    """
    Score a placement supplied by an external rules engine.

    The cells are written onto a copy of the grid and the result is scored.
    Legality is the caller's concern; only out-of-bounds cells are rejected.

    Raises:
        InvalidGrid: if the grid is malformed or a cell lies outside it
    """
    grid = as_grid(grid)
    rows, cols = grid.shape
    placed = grid.copy()
    for r, c in cells:
        if not (0 <= r < rows and 0 <= c < cols):
            raise InvalidGrid(f"Cell ({r}, {c}) lies outside a {rows}x{cols} grid")
        placed[r, c] = True
    return evaluator.score(placed)
