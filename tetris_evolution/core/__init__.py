"""Board features, heuristic evaluation and the game simulator.

The genome store lives in ``tetris_evolution.core.persistence``; it is not
imported here because it depends on the evolution package.
"""

from .board import (
    BoardFeatures,
    empty_grid,
    as_grid,
    extract_features,
    clear_lines,
)
from .pieces import PIECES, PIECE_TYPES, rotations
from .weights import Weights, WEIGHT_FIELDS, validate_weights
from .evaluator import (
    HeuristicEvaluator,
    Placement,
    evaluate_board,
    find_best_placement,
)
from .game import GameConfig, GameResult, play_game, play_games

__all__ = [
    'BoardFeatures',
    'empty_grid',
    'as_grid',
    'extract_features',
    'clear_lines',
    'PIECES',
    'PIECE_TYPES',
    'rotations',
    'Weights',
    'WEIGHT_FIELDS',
    'validate_weights',
    'HeuristicEvaluator',
    'Placement',
    'evaluate_board',
    'find_best_placement',
    'GameConfig',
    'GameResult',
    'play_game',
    'play_games',
]
