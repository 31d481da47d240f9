"""
Tetris Evolution: genetic search over placement heuristics

This module provides a genetic algorithm framework for discovering weight
vectors that make a one-piece-lookahead Tetris player score well.

Key components:
- Genome: Four heuristic weights plus lineage and a fitness record
- FitnessRecord: Running game statistics
- EvolutionEngine: Main evolutionary optimization loop
- Operators: Selection, crossover, and mutation operations
- run_tournament: Ranked head-to-head play between evolved genomes

Example usage:
    from tetris_evolution.core import GameConfig
    from tetris_evolution.evolution import EvolutionEngine, EvolutionConfig

    # Configure evolution
    config = EvolutionConfig(
        population_size=30,
        games_per_genome=3,
        game=GameConfig(max_pieces=300),
        n_workers=4,
    )

    # Create and run engine
    engine = EvolutionEngine(config, seed=42)
    engine.initialize_population()
    result = engine.evolve(n_generations=20)

    print(result.summary())
"""

from .genome import Genome, create_random_genome, genome_from_weights, generate_genome_id
from .fitness import FitnessRecord, compute_fitness, fitness_value
from .operators import (
    tournament_selection,
    select_parents,
    elitism_selection,
    blend_crossover,
    mutate_genome,
    breed,
    clone_genome,
    mix_genomes,
)
from .population import (
    Population,
    create_initial_population,
    compute_genome_distance,
    find_similar_genomes,
    population_diversity,
    analyze_convergence,
)
from .engine import EvolutionEngine, EvolutionConfig, EvolutionResult, load_config
from .checkpoint import EvolutionCheckpoint, EvolutionHistory
from .tournament import TournamentConfig, TournamentResult, run_tournament

__all__ = [
    # Core classes
    'Genome',
    'FitnessRecord',
    'Population',
    'EvolutionEngine',
    'EvolutionConfig',
    'EvolutionResult',
    'EvolutionCheckpoint',
    'EvolutionHistory',
    'load_config',
    # Genome helpers
    'create_random_genome',
    'genome_from_weights',
    'generate_genome_id',
    # Fitness
    'compute_fitness',
    'fitness_value',
    # Operators
    'tournament_selection',
    'select_parents',
    'elitism_selection',
    'blend_crossover',
    'mutate_genome',
    'breed',
    'clone_genome',
    'mix_genomes',
    # Population
    'create_initial_population',
    'compute_genome_distance',
    'find_similar_genomes',
    'population_diversity',
    'analyze_convergence',
    # Tournaments
    'TournamentConfig',
    'TournamentResult',
    'run_tournament',
]
