"""
Population management for evolutionary search.

Handles:
- The Population value passed into the evolution engine
- Initial population creation (seeded + random)
- Weight-space distance, similarity search and convergence analysis
"""

import random
from itertools import combinations
from typing import List, Dict, Any, Iterable, Iterator, Optional, Sequence

import numpy as np

from ..core.weights import Weights, WEIGHT_FIELDS
from .genome import Genome, create_random_genome, genome_from_weights
from .fitness import fitness_value


class Population:
    """
    Ordered collection of genomes with a fixed capacity.

    The engine owns one Population and replaces its members each
    generation; its size never exceeds the capacity.
    """

    def __init__(self, genomes: Iterable[Genome] = (), capacity: int = 50):
        if capacity <= 0:
            raise ValueError(f"Capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._genomes: List[Genome] = []
        self.replace(genomes)

    def replace(self, genomes: Iterable[Genome]) -> None:
        """Swap in a new set of members."""
        genomes = list(genomes)
        if len(genomes) > self.capacity:
            raise ValueError(
                f"Population of {len(genomes)} exceeds capacity {self.capacity}"
            )
        self._genomes = genomes

    def add(self, genome: Genome) -> None:
        if len(self._genomes) >= self.capacity:
            raise ValueError(f"Population is full (capacity {self.capacity})")
        self._genomes.append(genome)

    @property
    def genomes(self) -> List[Genome]:
        return list(self._genomes)

    def __len__(self) -> int:
        return len(self._genomes)

    def __iter__(self) -> Iterator[Genome]:
        return iter(list(self._genomes))

    def __getitem__(self, index: int) -> Genome:
        return self._genomes[index]

    def ranked(self) -> List[Genome]:
        """Members sorted by fitness, best first (stable)."""
        return sorted(self._genomes, key=fitness_value, reverse=True)

    def best(self) -> Optional[Genome]:
        if not self._genomes:
            return None
        return max(self._genomes, key=fitness_value)

    def unique_ids(self) -> List[str]:
        seen = []
        for g in self._genomes:
            gid = g.genome_id
            if gid not in seen:
                seen.append(gid)
        return seen

    def to_dict(self) -> Dict[str, Any]:
        return {
            'capacity': self.capacity,
            'genomes': [g.to_dict() for g in self._genomes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Population':
        return cls(
            genomes=[Genome.from_dict(g) for g in data.get('genomes', [])],
            capacity=data['capacity'],
        )

    def __repr__(self) -> str:
        return f"Population(size={len(self)}, capacity={self.capacity})"


def create_initial_population(
    population_size: int = 50,
    seed_genomes: Optional[Sequence] = None,
    seed: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> Population:
    """
    Create initial population with mix of seeded and random individuals.

    Args:
        population_size: Total population size
        seed_genomes: Known genomes or weight vectors placed first
        seed: Random seed for reproducibility (ignored when rng is given)
        rng: Random source

    Returns:
        Population of founders
    """
    if rng is None:
        rng = random.Random(seed)

    genomes = []
    for item in (seed_genomes or [])[:population_size]:
        if isinstance(item, Genome):
            genomes.append(item)
        else:
            genomes.append(genome_from_weights(item, origin='imported'))

    while len(genomes) < population_size:
        genomes.append(create_random_genome(rng))

    return Population(genomes, capacity=population_size)


# =============================================================================
# Weight-space analysis
# =============================================================================

def weight_distance(w1: Weights, w2: Weights) -> float:
    """L1 distance between two weight vectors."""
    return sum(abs(getattr(w1, name) - getattr(w2, name)) for name in WEIGHT_FIELDS)


def compute_genome_distance(g1: Genome, g2: Genome) -> float:
    """L1 distance between two genomes' weights."""
    return weight_distance(g1.weights, g2.weights)


def find_similar_genomes(
    weights: Weights,
    genomes: Iterable[Genome],
    threshold: float = 0.1,
) -> List[Dict[str, Any]]:
    """
    Find genomes whose weights are close to, but not equal to, ``weights``.

    Genomes reached from different lineages that land near each other are a
    sign of convergent evolution.

    Returns:
        List of {'genome': Genome, 'difference': float}, closest first
    """
    similar = []
    for genome in genomes:
        diff = weight_distance(weights, genome.weights)
        if 0 < diff < threshold:
            similar.append({'genome': genome, 'difference': diff})
    similar.sort(key=lambda s: s['difference'])
    return similar


def mean_weights(genomes: Sequence[Genome]) -> Dict[str, float]:
    """Average of every weight over the genomes."""
    if not genomes:
        return {name: 0.0 for name in WEIGHT_FIELDS}
    matrix = np.array([g.weights.as_tuple() for g in genomes], dtype=float)
    means = matrix.mean(axis=0)
    return {name: float(means[i]) for i, name in enumerate(WEIGHT_FIELDS)}


def population_diversity(genomes: Sequence[Genome]) -> float:
    """Mean pairwise L1 distance; 0 for fewer than two genomes."""
    if len(genomes) < 2:
        return 0.0
    distances = [compute_genome_distance(a, b) for a, b in combinations(genomes, 2)]
    return float(np.mean(distances))


def analyze_convergence(genomes: Iterable[Genome]) -> List[Dict[str, Any]]:
    """
    Track how the weights converge across generations.

    Groups genomes by generation and reports the mean weights and the
    diversity of each group.

    Returns:
        One entry per generation, oldest first
    """
    groups: Dict[int, List[Genome]] = {}
    for genome in genomes:
        groups.setdefault(genome.generation, []).append(genome)

    return [
        {
            'generation': gen,
            'size': len(members),
            'weights': mean_weights(members),
            'diversity': population_diversity(members),
        }
        for gen, members in sorted(groups.items())
    ]


def get_population_stats(population: Iterable[Genome]) -> Dict[str, Any]:
    """
    Compute statistics about the population.

    Args:
        population: Population or list of genomes

    Returns:
        Dictionary with population statistics
    """
    genomes = list(population)
    if not genomes:
        return {'size': 0}

    generations = [g.generation for g in genomes]

    strategy_counts: Dict[str, int] = {}
    for g in genomes:
        strategy_counts[g.strategy] = strategy_counts.get(g.strategy, 0) + 1

    evaluated = [g for g in genomes if g.fitness.evaluated]
    if evaluated:
        fitnesses = [fitness_value(g) for g in evaluated]
        fitness_stats = {
            'min_fitness': min(fitnesses),
            'max_fitness': max(fitnesses),
            'mean_fitness': float(np.mean(fitnesses)),
            'best_score': max(g.fitness.best_score for g in evaluated),
            'evaluated_count': len(evaluated),
        }
    else:
        fitness_stats = {'evaluated_count': 0}

    return {
        'size': len(genomes),
        'unique_genomes': len({g.genome_id for g in genomes}),
        'generation_range': (min(generations), max(generations)),
        'mean_weights': mean_weights(genomes),
        'diversity': population_diversity(genomes),
        'strategy_counts': strategy_counts,
        **fitness_stats,
    }
