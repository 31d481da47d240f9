"""Evolving heuristic weights for a one-piece-lookahead Tetris player."""

from .errors import TetrisEvolutionError, InvalidGenome, InvalidGrid, PopulationTooSmall
from .core import Weights, HeuristicEvaluator, GameConfig, play_game
from .evolution import Genome, EvolutionEngine, EvolutionConfig, run_tournament
from .core.persistence import GenomeStore

__version__ = '0.1.0'

__all__ = [
    'TetrisEvolutionError',
    'InvalidGenome',
    'InvalidGrid',
    'PopulationTooSmall',
    'Weights',
    'HeuristicEvaluator',
    'GameConfig',
    'play_game',
    'Genome',
    'EvolutionEngine',
    'EvolutionConfig',
    'run_tournament',
    'GenomeStore',
]
