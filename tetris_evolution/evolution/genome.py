"""
Genome representation for evolving Tetris placement heuristics.

A Genome is a four-weight vector plus lineage and a fitness record. Its
identifier is derived from the weights alone, so two genomes with equal
weights always share an id regardless of how they were produced. This is
what deduplication and convergence detection key on.

Genomes are immutable once created apart from the fitness record, which
accumulates across games.
"""

import hashlib
import random
from dataclasses import dataclass, field
from datetime import datetime
from numbers import Real
from typing import Dict, Any, Optional, Tuple

from ..core.weights import Weights, WEIGHT_FIELDS, validate_weights
from ..errors import InvalidGenome
from .fitness import FitnessRecord


# Founder sampling ranges (documentation for tuning, not enforced)
WEIGHT_RANGES: Dict[str, Tuple[float, float]] = {
    'height': (0.0, 0.8),
    'lines': (0.6, 1.2),
    'holes': (0.1, 1.5),
    'bumpiness': (0.0, 0.8),
}

ORIGINS = ('random', 'mutation', 'crossover', 'clone', 'imported', 'mix')

ID_PREFIX = 'TETRIS'
ID_PRECISION = 6


def canonical_encoding(weights: Weights) -> str:
    """
    Fixed-precision text encoding of the weights, negative zero normalised.

    Raises:
        InvalidGenome: if a weight is not a real number
    """
    parts = []
    for name in WEIGHT_FIELDS:
        value = getattr(weights, name)
        if isinstance(value, bool) or not isinstance(value, Real):
            raise InvalidGenome(f"Weight {name} is not numeric: {value!r}")
        value = round(value, ID_PRECISION) + 0.0
        parts.append(f"{value:.{ID_PRECISION}f}")
    return '|'.join(parts)


def generate_genome_id(weights: Weights) -> str:
    """
    Derive a genome identifier from its weights.

    Pure function of the weight vector: SHA-256 over the canonical encoding,
    truncated to 64 bits.
    """
    digest = hashlib.sha256(canonical_encoding(weights).encode('ascii')).hexdigest()
    return f"{ID_PREFIX}-{digest[:16].upper()}"


def classify_strategy(weights: Weights) -> str:
    """
    Name the dominant focus of a weight vector.

    Based on each weight's share of the total absolute weight.
    """
    magnitudes = {name: abs(getattr(weights, name)) for name in WEIGHT_FIELDS}
    total = sum(magnitudes.values())
    if total == 0:
        return 'balanced'
    share = {name: m / total for name, m in magnitudes.items()}

    if share['lines'] > 0.4:
        return 'aggressive-line-clearer'
    if share['height'] > 0.4:
        return 'height-manager'
    if share['holes'] > 0.4:
        return 'hole-avoider'
    if share['bumpiness'] > 0.3:
        return 'smooth-builder'
    return 'balanced'


@dataclass
class Genome:
    """
    Genetic representation of a placement heuristic.

    Attributes:
        weights: The four heuristic weights
        generation: 0 for founders, otherwise one more than the oldest parent
        parents: Ids of the 0, 1 or 2 parents
        origin: How the genome was produced (see ORIGINS)
        mutation_field: Weight that changed the most under mutation, if any
        mutation_delta: Magnitude of that change
        fitness: Accumulated game statistics
        created_at: ISO timestamp
    """
    weights: Weights
    generation: int = 0
    parents: Tuple[str, ...] = ()
    origin: str = 'random'
    mutation_field: Optional[str] = None
    mutation_delta: float = 0.0
    fitness: FitnessRecord = field(default_factory=FitnessRecord)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def __post_init__(self):
        """Validate lineage consistency."""
        self.parents = tuple(self.parents)
        if len(self.parents) > 2:
            raise ValueError(f"A genome has at most 2 parents, got {len(self.parents)}")
        if self.generation < 0:
            raise ValueError(f"Generation must be non-negative, got {self.generation}")
        if self.origin not in ORIGINS:
            raise ValueError(f"Unknown origin: {self.origin}")

    @property
    def genome_id(self) -> str:
        return generate_genome_id(self.weights)

    @property
    def strategy(self) -> str:
        return classify_strategy(self.weights)

    def is_valid(self) -> bool:
        """True if the weights can be evaluated."""
        try:
            validate_weights(self.weights)
        except ValueError:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            'genome_id': self.genome_id,
            'weights': self.weights.to_dict(),
            'generation': self.generation,
            'parents': list(self.parents),
            'origin': self.origin,
            'mutation_field': self.mutation_field,
            'mutation_delta': self.mutation_delta,
            'strategy': self.strategy,
            'fitness': self.fitness.to_dict(),
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Genome':
        """
        Create Genome from dictionary (e.g., loaded from JSON).

        The stored id and strategy are ignored; both are re-derived.

        Raises:
            InvalidGenome: if the weights are missing or non-numeric
        """
        fitness = FitnessRecord()
        if data.get('fitness') is not None:
            fitness = FitnessRecord.from_dict(data['fitness'])

        return cls(
            weights=Weights.from_dict(data['weights']),
            generation=data.get('generation', 0),
            parents=tuple(data.get('parents', ())),
            origin=data.get('origin', 'random'),
            mutation_field=data.get('mutation_field'),
            mutation_delta=data.get('mutation_delta', 0.0),
            fitness=fitness,
            created_at=data.get('created_at') or datetime.now().isoformat(),
        )

    def copy(self) -> 'Genome':
        """Copy with an independent fitness record."""
        return Genome(
            weights=self.weights,
            generation=self.generation,
            parents=self.parents,
            origin=self.origin,
            mutation_field=self.mutation_field,
            mutation_delta=self.mutation_delta,
            fitness=FitnessRecord.from_dict(self.fitness.to_dict()),
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        fitness_str = f", avg={self.fitness.avg_score:.1f}" if self.fitness.evaluated else ""
        return (
            f"Genome(id={self.genome_id}, {self.weights!r}, "
            f"gen={self.generation}{fitness_str})"
        )


def create_random_genome(rng: Optional[random.Random] = None) -> Genome:
    """
    Create a generation-0 founder with weights drawn from WEIGHT_RANGES.

    Args:
        rng: Random source (defaults to the module-level generator)
    """
    rng = rng or random
    values = {
        name: rng.uniform(*WEIGHT_RANGES[name])
        for name in WEIGHT_FIELDS
    }
    return Genome(weights=Weights(**values), generation=0, parents=(), origin='random')


def genome_from_weights(weights, origin: str = 'imported') -> Genome:
    """
    Create a founder from known weights, e.g. a published or imported vector.

    Args:
        weights: Weights instance or a mapping accepted by Weights.from_dict
    """
    if not isinstance(weights, Weights):
        weights = Weights.from_dict(weights)
    return Genome(weights=weights, generation=0, parents=(), origin=origin)
