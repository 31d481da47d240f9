"""
Main evolutionary optimization engine.

Orchestrates the evolution loop, one generation per pass:
1. Evaluate fitness of unplayed genomes (serial or parallel)
2. Record statistics and update champions
3. Carry the elite forward unchanged
4. Select parents by tournament
5. Blend parents (crossover), then mutate the child
6. Replace the population
7. Checkpoint progress

The loop has no terminal state of its own: evolve() runs a caller-chosen
number of generations and run() continues until the caller sets a stop
event.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Callable, Sequence
from pathlib import Path
from datetime import datetime
from multiprocessing import Pool, cpu_count
import json
import logging
import random
import threading
import time

from ..core.game import GameConfig, GameResult, play_game
from ..core.weights import Weights, validate_weights
from ..errors import InvalidGenome, PopulationTooSmall
from .genome import Genome
from .fitness import fitness_value
from .operators import (
    elitism_selection,
    select_parents,
    breed,
    mutate_genome,
    clone_genome,
)
from .population import Population, create_initial_population
from .checkpoint import (
    EvolutionCheckpoint,
    EvolutionHistory,
    GenerationStats,
    generate_run_id,
)

logger = logging.getLogger(__name__)

FitnessFn = Callable[[Weights, Any], GameResult]

POPULATION_TOO_SMALL = PopulationTooSmall.__name__


@dataclass
class EvolutionResult:
    """Results from an evolution run."""
    run_id: str
    generations_completed: int
    total_evaluations: int
    best_fitness: float
    best_score: float
    champions: List[Genome]  # Top performers
    history: EvolutionHistory
    final_population: List[Genome]
    runtime_seconds: float
    stopped_by_caller: bool = False

    def get_best_genome(self) -> Optional[Genome]:
        """Return the single best genome found."""
        if not self.champions:
            return None
        return max(self.champions, key=fitness_value)

    def summary(self) -> str:
        """Generate summary string."""
        best = self.get_best_genome()
        lines = [
            f"Evolution Run: {self.run_id}",
            f"Generations: {self.generations_completed}",
            f"Total games: {self.total_evaluations}",
            f"Best fitness: {self.best_fitness:.1f}",
            f"Best score: {self.best_score:.0f}",
            f"Runtime: {self.runtime_seconds:.1f}s",
        ]
        if best:
            lines.append(f"Best genome: {best.genome_id} {best.weights!r}")
        return '\n'.join(lines)


@dataclass
class EvolutionConfig:
    """Configuration for evolution run."""
    # Population parameters
    population_size: int = 50
    n_elite: int = 1
    tournament_size: int = 3

    # Variation
    crossover_alpha: Optional[float] = 0.6   # None draws alpha per crossover
    mutation_rate: float = 0.2
    mutation_strength: float = 0.1

    # Evaluation
    games_per_genome: int = 3
    game: GameConfig = field(default_factory=GameConfig)

    # Champions kept across generations
    n_champions: int = 10

    # Checkpointing
    checkpoint_every: int = 5
    checkpoint_dir: Optional[str] = None

    # Parallelization
    n_workers: Optional[int] = 1

    def __post_init__(self):
        if isinstance(self.game, dict):
            self.game = GameConfig.from_dict(self.game)
        if self.population_size <= 0:
            raise ValueError(f"population_size must be positive, got {self.population_size}")
        if not 0 <= self.n_elite <= self.population_size:
            raise ValueError(
                f"n_elite must be within [0, {self.population_size}], got {self.n_elite}"
            )
        if self.tournament_size <= 0:
            raise ValueError(f"tournament_size must be positive, got {self.tournament_size}")
        if not 0.0 <= self.mutation_rate <= 1.0:
            raise ValueError(f"mutation_rate must be within [0, 1], got {self.mutation_rate}")
        if self.mutation_strength < 0:
            raise ValueError(f"mutation_strength must be non-negative, got {self.mutation_strength}")
        if self.games_per_genome <= 0:
            raise ValueError(f"games_per_genome must be positive, got {self.games_per_genome}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'population_size': self.population_size,
            'n_elite': self.n_elite,
            'tournament_size': self.tournament_size,
            'crossover_alpha': self.crossover_alpha,
            'mutation_rate': self.mutation_rate,
            'mutation_strength': self.mutation_strength,
            'games_per_genome': self.games_per_genome,
            'game': self.game.to_dict(),
            'n_champions': self.n_champions,
            'checkpoint_every': self.checkpoint_every,
            'checkpoint_dir': self.checkpoint_dir,
            'n_workers': self.n_workers,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EvolutionConfig':
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)


def load_config(path) -> EvolutionConfig:
    """Load an EvolutionConfig from a JSON file."""
    with open(path, 'r') as f:
        return EvolutionConfig.from_dict(json.load(f))


class EvolutionEngine:
    """
    Main evolutionary optimization engine.

    Evolves heuristic weight vectors to maximise the score they reach in
    simulated games. The engine is the only writer of the population and
    of fitness records.
    """

    def __init__(
        self,
        config: EvolutionConfig,
        fitness_fn: Optional[FitnessFn] = None,
        seed: Optional[int] = None,
        run_id: Optional[str] = None,
        store=None,
    ):
        """
        Initialize evolution engine.

        Args:
            config: Evolution configuration
            fitness_fn: Optional oracle fitness_fn(weights, seed) -> GameResult;
                defaults to playing a simulated game
            seed: Random seed for reproducibility
            run_id: Optional run identifier (auto-generated if not provided)
            store: Optional GenomeStore that receives every generation
        """
        self.config = config
        self.fitness_fn = fitness_fn
        self.rng = random.Random(seed)
        self.run_id = run_id or generate_run_id()
        self.store = store

        self.population = Population(capacity=config.population_size)
        self.champions: List[Genome] = []
        self.history = EvolutionHistory()
        self.generation = 0
        self.total_evaluations = 0
        self.skipped_genomes: List[str] = []
        self.last_condition: Optional[str] = None

        self.n_workers = config.n_workers or max(1, cpu_count() - 1)

        if config.checkpoint_dir:
            self.checkpoint_dir = Path(config.checkpoint_dir)
            self.checkpoint_dir.mkdir(parents=True, exist_ok=True)
        else:
            self.checkpoint_dir = None

    def initialize_population(self, seed_genomes: Optional[Sequence] = None) -> None:
        """
        Create initial population.

        Args:
            seed_genomes: Optional genomes or weight vectors placed first
        """
        self.population = create_initial_population(
            population_size=self.config.population_size,
            seed_genomes=seed_genomes,
            rng=self.rng,
        )

        self.generation = 0
        self.total_evaluations = 0
        self.champions = []
        self.history = EvolutionHistory()

    def evaluate_population(self) -> int:
        """
        Play games for every genome that has not played yet.

        Genomes with invalid weights are excluded and reported; their ids
        are kept in ``skipped_genomes``.

        Returns:
            Number of games played
        """
        to_evaluate = []
        skipped = []
        for genome in self.population:
            if genome.fitness.evaluated:
                continue
            try:
                validate_weights(genome.weights)
            except InvalidGenome as e:
                label = _skip_label(genome)
                logger.warning("Skipping genome %s: %s", label, e)
                skipped.append(label)
                continue
            to_evaluate.append(genome)

        self.skipped_genomes = skipped
        if not to_evaluate:
            return 0

        seeds = [
            [self.rng.randrange(2 ** 32) for _ in range(self.config.games_per_genome)]
            for _ in to_evaluate
        ]

        if self.fitness_fn is None and self.n_workers > 1 and len(to_evaluate) > 1:
            results = self._parallel_evaluate(to_evaluate, seeds)
        else:
            results = [
                [self._play(genome.weights, s) for s in genome_seeds]
                for genome, genome_seeds in zip(to_evaluate, seeds)
            ]

        # Fitness records are only written here, after all games finished
        evaluations = 0
        for genome, games in zip(to_evaluate, results):
            genome.fitness.record_games(games)
            evaluations += len(games)

        self.total_evaluations += evaluations
        return evaluations

    def _play(self, weights: Weights, seed) -> GameResult:
        if self.fitness_fn is not None:
            return self.fitness_fn(weights, seed)
        return play_game(weights, seed, self.config.game)

    def _parallel_evaluate(
        self,
        genomes: List[Genome],
        seeds: List[List[int]],
    ) -> List[List[GameResult]]:
        """
        Evaluate genomes in parallel.

        Each worker plays on its own grid; results come back in input order.
        """
        args_list = [
            (g.weights.to_dict(), genome_seeds, self.config.game.to_dict())
            for g, genome_seeds in zip(genomes, seeds)
        ]

        with Pool(self.n_workers) as pool:
            results = pool.map(_evaluate_worker, args_list)

        return [[GameResult.from_dict(r) for r in games] for games in results]

    def run_generation(self) -> GenerationStats:
        """Execute one generation of evolution."""
        self.generation += 1

        # 1. Evaluate fitness
        evaluations = self.evaluate_population()
        eligible = [g for g in self.population if g.fitness.evaluated]

        condition = None
        if len(eligible) < 2:
            condition = POPULATION_TOO_SMALL
            logger.warning(
                "Generation %d: not enough genomes to select two parents (%d eligible)",
                self.generation, len(eligible),
            )
        self.last_condition = condition

        # 2. Record statistics
        stats = self.history.record_generation(
            generation=self.generation,
            population=self.population,
            evaluations=evaluations,
            skipped=self.skipped_genomes,
            condition=condition,
        )
        logger.info(
            "Generation %d: best=%.1f mean=%.1f unique=%d",
            self.generation, stats.best_fitness, stats.mean_fitness, stats.unique_genomes,
        )

        # 3. Update champions and persist
        self._update_champions()
        if self.store is not None:
            self.store.sync([g for g in self.population if g.is_valid()])

        if not eligible:
            # Nothing to breed from; hold the population unchanged
            return stats

        # 4. Elitism
        elite = elitism_selection(eligible, self.config.n_elite)

        # 5. Breeding
        offspring = []
        for _ in range(self.population.capacity - len(elite)):
            offspring.append(self._make_offspring(eligible))

        # 6. Replacement
        self.population.replace(elite + offspring)
        return stats

    def _make_offspring(self, eligible: List[Genome]) -> Genome:
        if len(eligible) < 2:
            # Asexual fallback: mutate the only parent, or clone it when no
            # weight changed
            parent = eligible[0]
            child = mutate_genome(
                parent,
                mutation_rate=self.config.mutation_rate,
                mutation_strength=self.config.mutation_strength,
                rng=self.rng,
            )
            if child.weights == parent.weights:
                return clone_genome(parent)
            return child

        parent1, parent2 = select_parents(eligible, self.config.tournament_size, self.rng)
        return breed(
            parent1,
            parent2,
            alpha=self.config.crossover_alpha,
            mutation_rate=self.config.mutation_rate,
            mutation_strength=self.config.mutation_strength,
            rng=self.rng,
        )

    def _update_champions(self) -> None:
        """Update the list of best genomes found so far."""
        evaluated = [g for g in self.population if g.fitness.evaluated]

        sorted_candidates = sorted(
            self.champions + evaluated,
            key=fitness_value,
            reverse=True,
        )

        # Keep top n_champions, deduplicated by genome id
        seen_ids = set()
        new_champions = []
        for g in sorted_candidates:
            if g.genome_id not in seen_ids:
                seen_ids.add(g.genome_id)
                new_champions.append(g.copy())
                if len(new_champions) >= self.config.n_champions:
                    break

        self.champions = new_champions

    def _progress_stats(self) -> Dict[str, Any]:
        last = self.history.generations[-1]
        return {
            'generation': self.generation,
            'best_fitness': last.best_fitness,
            'mean_fitness': last.mean_fitness,
            'best_score': last.best_score,
            'evaluations': self.total_evaluations,
            'improvement': self.history.get_improvement_rate(),
            'condition': last.condition,
        }

    def _after_generation(self, progress_callback) -> None:
        if progress_callback:
            progress_callback(self.generation, self._progress_stats())

        if self.checkpoint_dir and self.config.checkpoint_every > 0:
            if self.generation % self.config.checkpoint_every == 0:
                self.save_checkpoint()

    def evolve(
        self,
        n_generations: int,
        progress_callback: Optional[Callable[[int, Dict], None]] = None,
    ) -> EvolutionResult:
        """
        Run a fixed number of generations.

        Args:
            n_generations: Number of generations to run
            progress_callback: Optional callback(generation, stats)

        Returns:
            EvolutionResult with final population and statistics
        """
        if not len(self.population):
            self.initialize_population()

        start_time = time.time()
        for _ in range(n_generations):
            self.run_generation()
            self._after_generation(progress_callback)

        return self._finish(time.time() - start_time, stopped_by_caller=False)

    def run(
        self,
        stop_event: threading.Event,
        progress_callback: Optional[Callable[[int, Dict], None]] = None,
    ) -> EvolutionResult:
        """
        Run generations until ``stop_event`` is set.

        The event is checked between generations; a generation in progress
        always completes.
        """
        if not len(self.population):
            self.initialize_population()

        start_time = time.time()
        while not stop_event.is_set():
            self.run_generation()
            self._after_generation(progress_callback)

        return self._finish(time.time() - start_time, stopped_by_caller=True)

    def _finish(self, runtime: float, stopped_by_caller: bool) -> EvolutionResult:
        if self.checkpoint_dir:
            self.save_checkpoint()

        trajectory = self.history.fitness_trajectory
        best_score = max((g.fitness.best_score for g in self.champions), default=0.0)

        return EvolutionResult(
            run_id=self.run_id,
            generations_completed=self.generation,
            total_evaluations=self.total_evaluations,
            best_fitness=max(trajectory) if trajectory else 0.0,
            best_score=best_score,
            champions=self.champions,
            history=self.history,
            final_population=self.population.genomes,
            runtime_seconds=runtime,
            stopped_by_caller=stopped_by_caller,
        )

    def save_checkpoint(self, path: Optional[Path] = None) -> Path:
        """Save current evolution state to checkpoint file."""
        checkpoint = EvolutionCheckpoint(
            run_id=self.run_id,
            generation=self.generation,
            population=[g.to_dict() for g in self.population if g.is_valid()],
            champions=[g.to_dict() for g in self.champions],
            history=self.history.to_dict(),
            config=self.config.to_dict(),
            timestamp=datetime.now().isoformat(),
            total_evaluations=self.total_evaluations,
        )

        if path is None:
            directory = self.checkpoint_dir or Path('data/evolution')
            path = directory / f"{self.run_id}_gen{self.generation:03d}.json"
        checkpoint.save(Path(path))
        logger.info("Saved checkpoint %s", path)
        return Path(path)

    def load_checkpoint(self, checkpoint_path: Path) -> None:
        """Resume evolution from a checkpoint."""
        checkpoint = EvolutionCheckpoint.load(checkpoint_path)

        population = checkpoint.get_population()
        self.run_id = checkpoint.run_id
        self.generation = checkpoint.generation
        self.population = Population(
            population,
            capacity=max(self.config.population_size, len(population)),
        )
        self.champions = checkpoint.get_champions()
        self.history = EvolutionHistory.from_dict(checkpoint.history)
        self.total_evaluations = checkpoint.total_evaluations


def _skip_label(genome: Genome) -> str:
    """Genome id, or the raw weights when they are too malformed to hash."""
    try:
        return genome.genome_id
    except InvalidGenome:
        return repr(genome.weights.to_dict())


def _evaluate_worker(args: tuple) -> List[Dict[str, Any]]:
    """
    Worker function for parallel fitness evaluation.

    This is a module-level function to enable pickling for multiprocessing.
    """
    weights_dict, seeds, game_config_dict = args

    weights = Weights.from_dict(weights_dict)
    config = GameConfig.from_dict(game_config_dict)

    return [play_game(weights, seed, config).to_dict() for seed in seeds]
