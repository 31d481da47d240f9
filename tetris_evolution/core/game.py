"""
Headless Tetris simulator used as the fitness oracle.

Each game owns its grid; nothing here is shared between games, so games
for different genomes can run in separate processes.
"""

import random
from dataclasses import dataclass, asdict, field
from typing import Dict, Any, Iterable, List, Tuple

from .board import empty_grid, clear_lines, DEFAULT_WIDTH, DEFAULT_HEIGHT
from .evaluator import HeuristicEvaluator, find_best_placement
from .pieces import PIECE_TYPES
from .weights import Weights


# Points per placement by number of rows cleared (capped at four)
LINE_SCORES = (0, 100, 300, 500, 800)

# Seconds of play credited per piece
SECONDS_PER_PIECE = 2


@dataclass
class GameConfig:
    """Rules of a simulated game."""
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    max_pieces: int = 500
    line_scores: Tuple[int, ...] = field(default=LINE_SCORES)

    def __post_init__(self):
        if self.max_pieces <= 0:
            raise ValueError(f"max_pieces must be positive, got {self.max_pieces}")
        self.line_scores = tuple(self.line_scores)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d['line_scores'] = list(self.line_scores)
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GameConfig':
        return cls(**data)


@dataclass
class GameResult:
    """Outcome of one simulated game."""
    score: int
    lines: int
    pieces: int
    survival_time: float
    game_over: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GameResult':
        return cls(**data)


def points_for(cleared: int, line_scores: Tuple[int, ...] = LINE_SCORES) -> int:
    return line_scores[min(cleared, len(line_scores) - 1)]


def play_game(
    weights: Weights,
    seed=None,
    config: GameConfig = None,
) -> GameResult:
    """
    Play one game with the heuristic defined by ``weights``.

    Pieces are drawn uniformly from a random stream seeded with ``seed``.
    The game ends when a piece has no legal placement or when
    ``config.max_pieces`` pieces have been placed.

    Raises:
        InvalidGenome: if the weights are invalid
    """
    config = config or GameConfig()
    evaluator = HeuristicEvaluator(weights)
    rng = random.Random(seed)

    grid = empty_grid(config.width, config.height)
    score = 0
    lines = 0
    pieces = 0
    game_over = False

    while pieces < config.max_pieces:
        piece_type = rng.choice(PIECE_TYPES)
        placement = find_best_placement(grid, piece_type, evaluator)
        if placement is None:
            game_over = True
            break

        grid, cleared = clear_lines(placement.grid)
        lines += cleared
        score += points_for(cleared, config.line_scores)
        pieces += 1

    return GameResult(
        score=score,
        lines=lines,
        pieces=pieces,
        survival_time=float(pieces * SECONDS_PER_PIECE),
        game_over=game_over,
    )


def play_games(
    weights: Weights,
    seeds: Iterable,
    config: GameConfig = None,
) -> List[GameResult]:
    """Play one game per seed."""
    return [play_game(weights, seed, config) for seed in seeds]
