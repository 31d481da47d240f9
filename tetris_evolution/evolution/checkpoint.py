"""
Checkpointing for evolutionary runs.

Enables:
- Saving evolution state for resumption
- Recording generation history
- Preserving the best genomes found so far (champions)
"""

from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional, Sequence
from pathlib import Path
from datetime import datetime
import json
import uuid

import numpy as np

from .genome import Genome
from .fitness import fitness_value
from .population import mean_weights, population_diversity


@dataclass
class EvolutionCheckpoint:
    """
    Checkpoint for resuming evolutionary runs.

    Contains all state needed to continue evolution from a saved point.
    """
    run_id: str
    generation: int
    population: List[Dict[str, Any]]  # Serialized genomes
    champions: List[Dict[str, Any]]   # Best individuals found so far
    history: Dict[str, Any]           # Generation-by-generation stats
    config: Dict[str, Any]            # Evolution configuration
    timestamp: str
    total_evaluations: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EvolutionCheckpoint':
        """Create from dictionary."""
        return cls(**data)

    def save(self, path: Path) -> None:
        """Save checkpoint to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Path) -> 'EvolutionCheckpoint':
        """Load checkpoint from JSON file."""
        with open(path, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    def get_population(self) -> List[Genome]:
        """Deserialize population to Genome objects."""
        return [Genome.from_dict(g) for g in self.population]

    def get_champions(self) -> List[Genome]:
        """Deserialize champions to Genome objects."""
        return [Genome.from_dict(g) for g in self.champions]


@dataclass
class GenerationStats:
    """Statistics for a single generation."""
    generation: int
    best_fitness: float
    mean_fitness: float
    min_fitness: float
    std_fitness: float
    best_score: float
    population_size: int
    unique_genomes: int
    mean_weights: Dict[str, float]
    diversity: float
    evaluations_this_gen: int
    timestamp: str
    skipped_genomes: List[str] = field(default_factory=list)
    condition: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EvolutionHistory:
    """
    Tracks evolution progress over generations.

    Records per-generation statistics for analysis and checkpoints.
    """

    def __init__(self):
        self.generations: List[GenerationStats] = []
        self.best_genome_per_gen: List[Optional[Dict[str, Any]]] = []
        self.fitness_trajectory: List[float] = []
        self.diversity_trajectory: List[float] = []

    def record_generation(
        self,
        generation: int,
        population: Sequence[Genome],
        evaluations: int,
        skipped: Sequence[str] = (),
        condition: Optional[str] = None,
    ) -> GenerationStats:
        """
        Record statistics for a completed generation.

        Args:
            generation: Generation number
            population: Current population with fitness evaluated
            evaluations: Number of games played this generation
            skipped: Labels of genomes excluded from evaluation
            condition: Reported condition, e.g. 'PopulationTooSmall'

        Returns:
            GenerationStats for this generation
        """
        population = list(population)
        evaluated = [g for g in population if g.fitness.evaluated]
        if not evaluated:
            fitnesses = [0.0]
            best_scores = [0.0]
        else:
            fitnesses = [fitness_value(g) for g in evaluated]
            best_scores = [g.fitness.best_score for g in evaluated]

        if evaluated:
            best_genome = max(evaluated, key=fitness_value)
            self.best_genome_per_gen.append(best_genome.to_dict())
        else:
            self.best_genome_per_gen.append(None)

        # Weight statistics cover only genomes whose weights can be read
        valid = [g for g in population if g.is_valid()]
        diversity = population_diversity(valid)

        stats = GenerationStats(
            generation=generation,
            best_fitness=max(fitnesses),
            mean_fitness=float(np.mean(fitnesses)),
            min_fitness=min(fitnesses),
            std_fitness=float(np.std(fitnesses)),
            best_score=max(best_scores),
            population_size=len(population),
            unique_genomes=len({g.genome_id for g in valid}),
            mean_weights=mean_weights(valid),
            diversity=diversity,
            evaluations_this_gen=evaluations,
            timestamp=datetime.now().isoformat(),
            skipped_genomes=list(skipped),
            condition=condition,
        )

        self.generations.append(stats)
        self.fitness_trajectory.append(stats.best_fitness)
        self.diversity_trajectory.append(diversity)

        return stats

    def to_dict(self) -> Dict[str, Any]:
        """Convert history to dictionary for serialization."""
        return {
            'generations': [g.to_dict() for g in self.generations],
            'best_genome_per_gen': self.best_genome_per_gen,
            'fitness_trajectory': self.fitness_trajectory,
            'diversity_trajectory': self.diversity_trajectory,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EvolutionHistory':
        """Restore history from dictionary."""
        history = cls()
        history.generations = [
            GenerationStats(**g) for g in data.get('generations', [])
        ]
        history.best_genome_per_gen = data.get('best_genome_per_gen', [])
        history.fitness_trajectory = data.get('fitness_trajectory', [])
        history.diversity_trajectory = data.get('diversity_trajectory', [])
        return history

    def get_improvement_rate(self, window: int = 5) -> float:
        """
        Calculate recent improvement rate.

        Args:
            window: Number of recent generations to consider

        Returns:
            Improvement rate (positive = improving), inf with too little data
        """
        if len(self.fitness_trajectory) < window + 1:
            return float('inf')

        recent_best = max(self.fitness_trajectory[-window:])
        older_best = max(self.fitness_trajectory[:-window])

        return recent_best - older_best


def generate_run_id() -> str:
    """Generate unique run identifier."""
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    short_uuid = uuid.uuid4().hex[:6]
    return f"evo_{timestamp}_{short_uuid}"
