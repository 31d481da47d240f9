"""Tetromino shapes and their rotation states."""

from typing import Dict, List, Tuple

Cell = Tuple[int, int]  # (row, col) offset from the piece's top-left corner
Shape = Tuple[Cell, ...]

# Distinct rotation states only; the O piece has a single one.
PIECES: Dict[str, List[Shape]] = {
    'I': [
        ((0, 0), (0, 1), (0, 2), (0, 3)),
        ((0, 2), (1, 2), (2, 2), (3, 2)),
    ],
    'O': [
        ((0, 0), (0, 1), (1, 0), (1, 1)),
    ],
    'T': [
        ((0, 1), (1, 0), (1, 1), (1, 2)),
        ((0, 1), (1, 1), (1, 2), (2, 1)),
        ((1, 0), (1, 1), (1, 2), (2, 1)),
        ((0, 1), (1, 0), (1, 1), (2, 1)),
    ],
    'S': [
        ((0, 1), (0, 2), (1, 0), (1, 1)),
        ((0, 1), (1, 1), (1, 2), (2, 2)),
    ],
    'Z': [
        ((0, 0), (0, 1), (1, 1), (1, 2)),
        ((0, 2), (1, 1), (1, 2), (2, 1)),
    ],
    'J': [
        ((0, 0), (1, 0), (1, 1), (1, 2)),
        ((0, 1), (0, 2), (1, 1), (2, 1)),
        ((1, 0), (1, 1), (1, 2), (2, 2)),
        ((0, 1), (1, 1), (2, 1), (2, 0)),
    ],
    'L': [
        ((0, 2), (1, 0), (1, 1), (1, 2)),
        ((0, 1), (1, 1), (2, 1), (2, 2)),
        ((1, 0), (1, 1), (1, 2), (2, 0)),
        ((0, 0), (0, 1), (1, 1), (2, 1)),
    ],
}

PIECE_TYPES: Tuple[str, ...] = ('I', 'O', 'T', 'S', 'Z', 'J', 'L')


def rotations(piece_type: str) -> List[Shape]:
    """Return the rotation states of a piece type."""
    try:
        return PIECES[piece_type]
    except KeyError:
        raise ValueError(f"Unknown piece type: {piece_type!r}") from None


def shape_bounds(shape: Shape) -> Tuple[int, int, int, int]:
    """Return (min_row, max_row, min_col, max_col) of a shape's offsets."""
    rows = [r for r, _ in shape]
    cols = [c for _, c in shape]
    return min(rows), max(rows), min(cols), max(cols)
