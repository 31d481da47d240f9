"""
Evolutionary operators: selection, crossover, and mutation.

These operators drive the evolutionary search by:
- Selecting fit individuals for reproduction
- Blending parent weight vectors through crossover
- Introducing variation through bounded mutation

Derived genomes get generation = max(parent generations) + 1.
"""

import random
from typing import List, Optional, Sequence, Tuple

from ..core.weights import Weights, WEIGHT_FIELDS
from ..errors import PopulationTooSmall
from .genome import Genome
from .fitness import fitness_value


DEFAULT_ALPHA = 0.6
DEFAULT_MUTATION_STRENGTH = 0.1


# =============================================================================
# Selection Operators
# =============================================================================

def tournament_selection(
    population: Sequence[Genome],
    n_select: int,
    tournament_size: int = 3,
    rng: Optional[random.Random] = None,
) -> List[Genome]:
    """
    Tournament selection with replacement.

    Randomly samples tournament_size individuals and keeps the fittest.
    Repeat n_select times. The tournament shrinks to the population size
    when the population is smaller.

    Args:
        population: Current population with fitness scores
        n_select: Number of individuals to select
        tournament_size: Number of individuals per tournament
        rng: Random source

    Returns:
        List of selected genomes (may contain duplicates)

    Raises:
        PopulationTooSmall: if the population is empty
    """
    if not population:
        raise PopulationTooSmall(0, required=1)

    rng = rng or random
    population = list(population)
    size = max(1, min(tournament_size, len(population)))

    selected = []
    for _ in range(n_select):
        contestants = rng.sample(population, size)
        # max() keeps the first of equally fit contestants
        selected.append(max(contestants, key=fitness_value))

    return selected


def select_parents(
    population: Sequence[Genome],
    tournament_size: int = 3,
    rng: Optional[random.Random] = None,
) -> Tuple[Genome, Genome]:
    """
    Pick two parents with independent tournaments, fitter parent first.

    With a single genome it is returned as both parents.

    Raises:
        PopulationTooSmall: if the population is empty
    """
    first, second = tournament_selection(population, 2, tournament_size, rng)
    if fitness_value(second) > fitness_value(first):
        first, second = second, first
    return first, second


def elitism_selection(
    population: Sequence[Genome],
    n_elite: int = 1,
) -> List[Genome]:
    """
    Preserve the top n_elite individuals unchanged.

    Returns:
        The n_elite fittest genomes (same objects, fitness records intact)
    """
    if n_elite <= 0:
        return []
    ranked = sorted(population, key=fitness_value, reverse=True)
    return ranked[:n_elite]


# =============================================================================
# Crossover Operators
# =============================================================================

def crossover_weights(w1: Weights, w2: Weights, alpha: float) -> Weights:
    """child = w1 * alpha + w2 * (1 - alpha), independently per weight."""
    return Weights(**{
        name: getattr(w1, name) * alpha + getattr(w2, name) * (1.0 - alpha)
        for name in WEIGHT_FIELDS
    })


def blend_crossover(
    parent1: Genome,
    parent2: Genome,
    alpha: Optional[float] = DEFAULT_ALPHA,
    rng: Optional[random.Random] = None,
) -> Genome:
    """
    Weighted blend of two parents.

    Args:
        parent1: First (usually fitter) parent
        parent2: Second parent
        alpha: Share of parent1 in every weight; None draws it uniformly
            from [0, 1) for this crossover event
        rng: Random source, used only when alpha is None

    Returns:
        Child genome with both parents recorded
    """
    if alpha is None:
        alpha = (rng or random).random()

    return Genome(
        weights=crossover_weights(parent1.weights, parent2.weights, alpha),
        generation=max(parent1.generation, parent2.generation) + 1,
        parents=(parent1.genome_id, parent2.genome_id),
        origin='crossover',
    )


# =============================================================================
# Mutation Operators
# =============================================================================

def mutate_weights(
    weights: Weights,
    mutation_rate: float = 0.2,
    mutation_strength: float = DEFAULT_MUTATION_STRENGTH,
    rng: Optional[random.Random] = None,
) -> Tuple[Weights, Optional[str], float]:
    """
    Perturb each weight independently.

    With probability mutation_rate a weight gets a uniform offset from
    [-mutation_strength, +mutation_strength].

    Returns:
        Tuple of (new weights, field with the largest change or None,
        magnitude of that change)
    """
    rng = rng or random
    values = weights.to_dict()
    changed_field = None
    largest = 0.0

    for name in WEIGHT_FIELDS:
        if rng.random() < mutation_rate:
            delta = rng.uniform(-mutation_strength, mutation_strength)
            values[name] += delta
            if abs(delta) > largest:
                largest = abs(delta)
                changed_field = name

    return Weights(**values), changed_field, largest


def mutate_genome(
    genome: Genome,
    mutation_rate: float = 0.2,
    mutation_strength: float = DEFAULT_MUTATION_STRENGTH,
    rng: Optional[random.Random] = None,
) -> Genome:
    """
    Asexual reproduction: copy a genome's weights and mutate them.

    Returns:
        New genome with the source as its only parent (the source is not modified)
    """
    new_weights, changed_field, delta = mutate_weights(
        genome.weights, mutation_rate, mutation_strength, rng
    )
    return Genome(
        weights=new_weights,
        generation=genome.generation + 1,
        parents=(genome.genome_id,),
        origin='mutation',
        mutation_field=changed_field,
        mutation_delta=delta,
    )


def breed(
    parent1: Genome,
    parent2: Genome,
    alpha: Optional[float] = DEFAULT_ALPHA,
    mutation_rate: float = 0.2,
    mutation_strength: float = DEFAULT_MUTATION_STRENGTH,
    rng: Optional[random.Random] = None,
) -> Genome:
    """
    Crossover followed by mutation, producing one child.

    The child's lineage names both crossover parents.
    """
    child = blend_crossover(parent1, parent2, alpha, rng)
    new_weights, changed_field, delta = mutate_weights(
        child.weights, mutation_rate, mutation_strength, rng
    )
    return Genome(
        weights=new_weights,
        generation=child.generation,
        parents=child.parents,
        origin='crossover',
        mutation_field=changed_field,
        mutation_delta=delta,
    )


def clone_genome(genome: Genome) -> Genome:
    """Child with identical weights and a fresh fitness record."""
    return Genome(
        weights=genome.weights,
        generation=genome.generation + 1,
        parents=(genome.genome_id,),
        origin='clone',
    )


def mix_genomes(
    genomes: Sequence[Genome],
    ratios: Optional[Sequence[float]] = None,
) -> Genome:
    """
    Weighted average of several genomes' weights.

    Args:
        genomes: Genomes to mix (at least one)
        ratios: Mixing ratio per genome; defaults to uniform

    Returns:
        New founder-style genome of origin 'mix'. With more than two
        sources only the first two are recorded as parents.

    Raises:
        ValueError: if genomes is empty or ratios has the wrong length
    """
    if not genomes:
        raise ValueError("Cannot mix an empty list of genomes")
    if ratios is None:
        ratios = [1.0 / len(genomes)] * len(genomes)
    if len(ratios) != len(genomes):
        raise ValueError(
            f"Got {len(ratios)} ratios for {len(genomes)} genomes"
        )

    mixed = {name: 0.0 for name in WEIGHT_FIELDS}
    for genome, ratio in zip(genomes, ratios):
        for name in WEIGHT_FIELDS:
            mixed[name] += getattr(genome.weights, name) * ratio

    return Genome(
        weights=Weights(**mixed),
        generation=max(g.generation for g in genomes) + 1,
        parents=tuple(g.genome_id for g in genomes[:2]),
        origin='mix',
    )
