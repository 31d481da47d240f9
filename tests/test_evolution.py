"""
Tests for the evolutionary search module.

Run with: python -m pytest tests/test_evolution.py -v
"""

import json
import random
import threading
import pytest
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tetris_evolution.core.game import GameConfig, GameResult
from tetris_evolution.core.weights import Weights
from tetris_evolution.core.persistence import GenomeStore
from tetris_evolution.errors import InvalidGenome, PopulationTooSmall
from tetris_evolution.evolution.genome import (
    Genome,
    create_random_genome,
    genome_from_weights,
    generate_genome_id,
    classify_strategy,
    canonical_encoding,
)
from tetris_evolution.evolution.fitness import (
    FitnessRecord,
    fitness_value,
    best_fitness,
    compute_fitness,
)
from tetris_evolution.evolution.operators import (
    tournament_selection,
    select_parents,
    elitism_selection,
    crossover_weights,
    blend_crossover,
    mutate_weights,
    mutate_genome,
    breed,
    clone_genome,
    mix_genomes,
)
from tetris_evolution.evolution.population import (
    Population,
    create_initial_population,
    compute_genome_distance,
    find_similar_genomes,
    mean_weights,
    population_diversity,
    analyze_convergence,
    get_population_stats,
)
from tetris_evolution.evolution.checkpoint import (
    EvolutionCheckpoint,
    EvolutionHistory,
)
from tetris_evolution.evolution.engine import (
    EvolutionConfig,
    EvolutionEngine,
    load_config,
)


def make_genome(height=0.5, lines=0.8, holes=0.4, bumpiness=0.2, scores=(), **kwargs):
    genome = Genome(weights=Weights(height, lines, holes, bumpiness), **kwargs)
    for score in scores:
        genome.fitness.record_game(GameResult(score=score, lines=0, pieces=10, survival_time=20.0))
    return genome


def oracle(weights, seed):
    """Deterministic fitness: rewards lines weight, punishes holes weight."""
    score = 1000.0 * (weights.lines - abs(weights.holes - 0.5))
    return GameResult(score=score, lines=0, pieces=1, survival_time=2.0)


class TestGenome:
    """Tests for Genome class."""

    def test_genome_creation(self):
        genome = make_genome()
        assert genome.generation == 0
        assert genome.parents == ()
        assert genome.origin == 'random'
        assert not genome.fitness.evaluated
        assert genome.is_valid()

    def test_id_is_pure_function_of_weights(self):
        """Identical weights give identical ids regardless of lineage."""
        a = make_genome(generation=0, origin='random')
        b = make_genome(generation=7, parents=('TETRIS-X', 'TETRIS-Y'), origin='crossover')
        assert a.genome_id == b.genome_id
        assert a.genome_id == generate_genome_id(Weights(0.5, 0.8, 0.4, 0.2))

    def test_id_format(self):
        genome_id = make_genome().genome_id
        assert genome_id.startswith('TETRIS-')
        assert len(genome_id) == len('TETRIS-') + 16

    def test_id_distinguishes_weights(self):
        assert make_genome(lines=0.8).genome_id != make_genome(lines=0.81).genome_id

    def test_negative_zero_normalised(self):
        assert canonical_encoding(Weights(-0.0, 1, 1, 1)) == canonical_encoding(Weights(0.0, 1, 1, 1))
        assert make_genome(height=-0.0).genome_id == make_genome(height=0.0).genome_id

    def test_genome_validation(self):
        with pytest.raises(ValueError):
            make_genome(parents=('a', 'b', 'c'))
        with pytest.raises(ValueError):
            make_genome(generation=-1)
        with pytest.raises(ValueError):
            make_genome(origin='alien')

    def test_invalid_weights_detected(self):
        assert not make_genome(holes=float('nan')).is_valid()

    @pytest.mark.parametrize('bad_value', ['x', None])
    def test_non_numeric_weights_have_no_id(self, bad_value):
        genome = make_genome(lines=bad_value)
        assert not genome.is_valid()
        with pytest.raises(InvalidGenome):
            canonical_encoding(genome.weights)
        with pytest.raises(InvalidGenome):
            genome.genome_id

    def test_genome_serialization(self):
        genome = make_genome(scores=(100, 300), generation=3, parents=('TETRIS-A',), origin='mutation')
        data = json.loads(json.dumps(genome.to_dict()))
        restored = Genome.from_dict(data)

        assert restored.weights == genome.weights
        assert restored.genome_id == genome.genome_id
        assert restored.generation == 3
        assert restored.parents == ('TETRIS-A',)
        assert restored.fitness == genome.fitness

    def test_copy_has_independent_fitness(self):
        genome = make_genome(scores=(100,))
        copy = genome.copy()
        copy.fitness.record_game(GameResult(score=900, lines=0, pieces=1, survival_time=2.0))
        assert genome.fitness.games_played == 1
        assert copy.fitness.games_played == 2

    def test_create_random_genome(self):
        rng = random.Random(42)
        genome = create_random_genome(rng)
        assert genome.generation == 0
        assert genome.origin == 'random'
        assert 0.6 <= genome.weights.lines <= 1.2
        assert create_random_genome(random.Random(42)).weights == genome.weights

    def test_genome_from_weights(self):
        genome = genome_from_weights({'height': 0.1, 'lines': 0.2, 'holes': 0.3, 'bumpiness': 0.4})
        assert genome.origin == 'imported'
        assert genome.weights == Weights(0.1, 0.2, 0.3, 0.4)

    def test_classify_strategy(self):
        assert classify_strategy(Weights(0.1, 1.0, 0.1, 0.1)) == 'aggressive-line-clearer'
        assert classify_strategy(Weights(1.0, 0.1, 0.1, 0.1)) == 'height-manager'
        assert classify_strategy(Weights(0.1, 0.1, 1.0, 0.1)) == 'hole-avoider'
        assert classify_strategy(Weights(0.2, 0.2, 0.25, 0.35)) == 'smooth-builder'
        assert classify_strategy(Weights(0.25, 0.25, 0.25, 0.25)) == 'balanced'
        assert classify_strategy(Weights(0.0, 0.0, 0.0, 0.0)) == 'balanced'


class TestFitness:
    """Tests for fitness records."""

    def test_running_statistics(self):
        record = FitnessRecord()
        record.record_game(GameResult(score=100, lines=1, pieces=10, survival_time=20.0))
        record.record_game(GameResult(score=300, lines=3, pieces=30, survival_time=60.0))

        assert record.games_played == 2
        assert record.best_score == 300
        assert record.avg_score == pytest.approx(200.0)
        assert record.max_lines == 3
        assert record.avg_survival_time == pytest.approx(40.0)

    def test_unplayed_fitness_is_zero(self):
        genome = make_genome()
        assert fitness_value(genome) == 0.0
        assert best_fitness([genome]) is None

    def test_fitness_value_is_average(self):
        genome = make_genome(scores=(100, 200, 600))
        assert fitness_value(genome) == pytest.approx(300.0)

    def test_fitness_serialization(self):
        record = FitnessRecord(best_score=500, games_played=2, avg_score=250.0)
        assert FitnessRecord.from_dict(record.to_dict()) == record

    def test_compute_fitness(self):
        genome = make_genome()
        results = compute_fitness(genome, [1, 2], GameConfig(max_pieces=5))
        assert len(results) == 2
        assert genome.fitness.games_played == 2


class TestOperators:
    """Tests for evolutionary operators."""

    @pytest.fixture
    def sample_population(self):
        """Create a sample population with fitness scores."""
        return [
            make_genome(lines=0.1 * (i + 1), scores=(100 * (i + 1),))
            for i in range(10)
        ]

    def test_tournament_selection(self, sample_population):
        selected = tournament_selection(sample_population, n_select=5, tournament_size=3,
                                        rng=random.Random(0))
        assert len(selected) == 5
        assert all(g in sample_population for g in selected)

    def test_full_tournament_picks_fittest(self, sample_population):
        best = max(sample_population, key=fitness_value)
        selected = tournament_selection(sample_population, n_select=4, tournament_size=10,
                                        rng=random.Random(1))
        assert all(g is best for g in selected)

    def test_tournament_larger_than_population(self, sample_population):
        selected = tournament_selection(sample_population[:2], n_select=3, tournament_size=5)
        assert len(selected) == 3

    def test_single_genome_is_both_parents(self):
        """Population of one does not throw."""
        only = make_genome(scores=(100,))
        first, second = select_parents([only], tournament_size=3, rng=random.Random(0))
        assert first is only
        assert second is only

    def test_empty_population(self):
        with pytest.raises(PopulationTooSmall):
            tournament_selection([], n_select=1)
        with pytest.raises(PopulationTooSmall):
            select_parents([])

    def test_fitter_parent_first(self, sample_population):
        rng = random.Random(3)
        for _ in range(20):
            first, second = select_parents(sample_population, rng=rng)
            assert fitness_value(first) >= fitness_value(second)

    def test_elitism_selection(self, sample_population):
        elite = elitism_selection(sample_population, n_elite=2)
        assert [fitness_value(g) for g in elite] == [1000.0, 900.0]
        assert elitism_selection(sample_population, n_elite=0) == []

    def test_crossover_alpha_one_copies_first_parent(self):
        p1 = make_genome(0.3, 0.9, -0.4, 0.17)
        p2 = make_genome(-0.6, 0.1, 1.4, 0.05)
        child = blend_crossover(p1, p2, alpha=1.0)
        assert child.weights == p1.weights

    def test_crossover_alpha_zero_copies_second_parent(self):
        p1 = make_genome(0.3, 0.9, -0.4, 0.17)
        p2 = make_genome(-0.6, 0.1, 1.4, 0.05)
        child = blend_crossover(p1, p2, alpha=0.0)
        assert child.weights == p2.weights

    def test_crossover_blend(self):
        w = crossover_weights(Weights(1.0, 1.0, 0.0, 0.0), Weights(0.0, 0.0, 1.0, 1.0), 0.6)
        assert w.as_tuple() == pytest.approx((0.6, 0.6, 0.4, 0.4))

    def test_crossover_lineage(self):
        p1 = make_genome(lines=0.1, generation=2)
        p2 = make_genome(lines=0.2, generation=5)
        child = blend_crossover(p1, p2)
        assert child.generation == 6
        assert child.parents == (p1.genome_id, p2.genome_id)
        assert child.origin == 'crossover'
        assert not child.fitness.evaluated

    def test_random_alpha_stays_between_parents(self):
        p1 = make_genome(0.0, 0.0, 0.0, 0.0)
        p2 = make_genome(1.0, 1.0, 1.0, 1.0)
        child = blend_crossover(p1, p2, alpha=None, rng=random.Random(9))
        values = child.weights.as_tuple()
        assert all(0.0 <= v <= 1.0 for v in values)
        assert len(set(values)) == 1

    def test_mutation_zero_strength_is_identity(self):
        genome = make_genome(0.3, 0.9, 0.4, 0.17)
        mutated = mutate_genome(genome, mutation_rate=1.0, mutation_strength=0.0,
                                rng=random.Random(0))
        assert mutated.weights == genome.weights
        assert mutated.genome_id == genome.genome_id

    def test_mutation_zero_rate_is_identity(self):
        weights = Weights(0.3, 0.9, 0.4, 0.17)
        mutated, changed, delta = mutate_weights(weights, mutation_rate=0.0, rng=random.Random(0))
        assert mutated == weights
        assert changed is None
        assert delta == 0.0

    def test_mutation_bounded(self):
        weights = Weights(0.3, 0.9, 0.4, 0.17)
        rng = random.Random(4)
        for _ in range(50):
            mutated, _, _ = mutate_weights(weights, mutation_rate=1.0, mutation_strength=0.1, rng=rng)
            for before, after in zip(weights.as_tuple(), mutated.as_tuple()):
                assert abs(after - before) <= 0.1 + 1e-12

    def test_mutation_lineage(self):
        genome = make_genome(generation=4)
        mutated = mutate_genome(genome, mutation_rate=1.0, rng=random.Random(2))
        assert mutated.generation == 5
        assert mutated.parents == (genome.genome_id,)
        assert mutated.origin == 'mutation'
        assert mutated.mutation_field in ('height', 'lines', 'holes', 'bumpiness')
        # Original untouched
        assert genome.weights == Weights(0.5, 0.8, 0.4, 0.2)

    def test_breed(self):
        p1 = make_genome(lines=0.1, generation=1)
        p2 = make_genome(lines=0.9, generation=1)
        child = breed(p1, p2, alpha=0.5, mutation_rate=0.0, rng=random.Random(0))
        assert child.weights.lines == pytest.approx(0.5)
        assert child.generation == 2
        assert child.parents == (p1.genome_id, p2.genome_id)

    def test_clone(self):
        genome = make_genome(scores=(100,))
        clone = clone_genome(genome)
        assert clone.genome_id == genome.genome_id
        assert clone.origin == 'clone'
        assert not clone.fitness.evaluated

    def test_mix_genomes(self):
        a = make_genome(0.0, 1.0, 0.0, 0.0, generation=2)
        b = make_genome(1.0, 0.0, 1.0, 0.0, generation=4)
        c = make_genome(0.0, 0.0, 0.0, 1.0)

        mixed = mix_genomes([a, b])
        assert mixed.weights.as_tuple() == pytest.approx((0.5, 0.5, 0.5, 0.0))
        assert mixed.generation == 5
        assert mixed.origin == 'mix'

        weighted = mix_genomes([a, b, c], ratios=[0.5, 0.25, 0.25])
        assert weighted.weights.as_tuple() == pytest.approx((0.25, 0.5, 0.25, 0.25))
        assert weighted.parents == (a.genome_id, b.genome_id)

    def test_mix_genomes_errors(self):
        with pytest.raises(ValueError):
            mix_genomes([])
        with pytest.raises(ValueError):
            mix_genomes([make_genome()], ratios=[0.5, 0.5])


class TestPopulation:
    """Tests for population management."""

    def test_capacity(self):
        population = Population([make_genome()], capacity=2)
        population.add(make_genome(lines=0.1))
        assert len(population) == 2
        with pytest.raises(ValueError):
            population.add(make_genome(lines=0.2))
        with pytest.raises(ValueError):
            population.replace([make_genome(lines=x / 10) for x in range(3)])

    def test_ranked_and_best(self):
        low = make_genome(lines=0.1, scores=(100,))
        high = make_genome(lines=0.2, scores=(500,))
        population = Population([low, high], capacity=5)
        assert population.ranked() == [high, low]
        assert population.best() is high

    def test_serialization(self):
        population = Population([make_genome(scores=(50,)), make_genome(lines=0.1)], capacity=4)
        restored = Population.from_dict(json.loads(json.dumps(population.to_dict())))
        assert restored.capacity == 4
        assert restored.unique_ids() == population.unique_ids()

    def test_create_initial_population(self):
        seeds = [Weights(0.5, 0.7, 0.3, 0.1), make_genome(lines=1.1)]
        population = create_initial_population(population_size=10, seed_genomes=seeds, seed=42)

        assert len(population) == 10
        assert population.capacity == 10
        assert population[0].weights == Weights(0.5, 0.7, 0.3, 0.1)
        assert population[0].origin == 'imported'
        assert population[1].weights.lines == 1.1
        assert all(g.generation == 0 for g in population)

    def test_initial_population_reproducible(self):
        a = create_initial_population(population_size=5, seed=7)
        b = create_initial_population(population_size=5, seed=7)
        assert a.unique_ids() == b.unique_ids()

    def test_genome_distance(self):
        g1 = make_genome(0.5, 0.8, 0.4, 0.2)
        g2 = make_genome(0.6, 0.8, 0.2, 0.2)
        assert compute_genome_distance(g1, g1) == 0.0
        assert compute_genome_distance(g1, g2) == pytest.approx(0.3)

    def test_find_similar_excludes_identical(self):
        base = Weights(0.5, 0.8, 0.4, 0.2)
        genomes = [
            make_genome(0.5, 0.8, 0.4, 0.2),
            make_genome(0.52, 0.8, 0.4, 0.2),
            make_genome(0.5, 0.8, 0.45, 0.21),
            make_genome(0.9, 0.8, 0.4, 0.2),
        ]
        similar = find_similar_genomes(base, genomes, threshold=0.1)
        assert [s['genome'] for s in similar] == [genomes[1], genomes[2]]
        assert similar[0]['difference'] == pytest.approx(0.02)

    def test_diversity(self):
        same = [make_genome() for _ in range(3)]
        assert population_diversity(same) == 0.0
        assert population_diversity(same[:1]) == 0.0

        spread = [make_genome(0.0, 0.0, 0.0, 0.0), make_genome(1.0, 0.0, 0.0, 0.0)]
        assert population_diversity(spread) == pytest.approx(1.0)

    def test_mean_weights(self):
        genomes = [make_genome(0.0, 1.0, 0.0, 0.0), make_genome(1.0, 0.0, 0.0, 0.0)]
        assert mean_weights(genomes) == pytest.approx(
            {'height': 0.5, 'lines': 0.5, 'holes': 0.0, 'bumpiness': 0.0}
        )

    def test_analyze_convergence(self):
        genomes = [
            make_genome(0.0, 1.0, 0.0, 0.0, generation=0),
            make_genome(1.0, 1.0, 0.0, 0.0, generation=0),
            make_genome(0.5, 1.0, 0.0, 0.0, generation=1),
        ]
        report = analyze_convergence(genomes)
        assert [r['generation'] for r in report] == [0, 1]
        assert report[0]['diversity'] == pytest.approx(1.0)
        assert report[1]['diversity'] == 0.0
        assert report[0]['weights']['height'] == pytest.approx(0.5)

    def test_population_stats(self):
        population = create_initial_population(population_size=10, seed=42)
        stats = get_population_stats(population)
        assert stats['size'] == 10
        assert stats['evaluated_count'] == 0
        assert sum(stats['strategy_counts'].values()) == 10


class TestCheckpoint:
    """Tests for checkpointing and history."""

    def test_evolution_checkpoint(self, tmp_path):
        genomes = [make_genome(lines=0.1 * i, scores=(10 * i,)) for i in range(1, 4)]
        checkpoint = EvolutionCheckpoint(
            run_id='test_run',
            generation=5,
            population=[g.to_dict() for g in genomes],
            champions=[genomes[-1].to_dict()],
            history={},
            config={'population_size': 3},
            timestamp='2024-01-01T00:00:00',
            total_evaluations=15,
        )

        checkpoint_path = tmp_path / 'checkpoint.json'
        checkpoint.save(checkpoint_path)
        loaded = EvolutionCheckpoint.load(checkpoint_path)

        assert loaded.run_id == 'test_run'
        assert loaded.generation == 5
        assert [g.genome_id for g in loaded.get_population()] == [g.genome_id for g in genomes]
        assert loaded.get_champions()[0].fitness.avg_score == 30.0

    def test_evolution_history(self):
        history = EvolutionHistory()
        for gen in range(1, 4):
            population = [make_genome(lines=0.1 * i, scores=(gen * 100 + i,)) for i in range(3)]
            history.record_generation(gen, population, evaluations=3)

        assert len(history.generations) == 3
        assert history.fitness_trajectory == [102.0, 202.0, 302.0]
        assert history.generations[0].unique_genomes == 3

        restored = EvolutionHistory.from_dict(json.loads(json.dumps(history.to_dict())))
        assert restored.fitness_trajectory == history.fitness_trajectory
        assert restored.generations[2].best_fitness == 302.0

    def test_history_records_condition(self):
        history = EvolutionHistory()
        stats = history.record_generation(1, [make_genome()], evaluations=0,
                                          skipped=['TETRIS-X'], condition='PopulationTooSmall')
        assert stats.condition == 'PopulationTooSmall'
        assert stats.skipped_genomes == ['TETRIS-X']
        assert stats.best_fitness == 0.0

    def test_improvement_rate(self):
        history = EvolutionHistory()
        history.fitness_trajectory = [10.0, 20.0, 30.0, 30.0, 30.0]
        assert history.get_improvement_rate(window=2) == 0.0
        assert history.get_improvement_rate(window=3) == 10.0
        assert history.get_improvement_rate(window=10) == float('inf')


class TestEvolutionConfig:
    """Tests for engine configuration."""

    def test_defaults(self):
        config = EvolutionConfig()
        assert config.population_size == 50
        assert config.n_elite == 1
        assert config.tournament_size == 3
        assert config.crossover_alpha == 0.6
        assert config.mutation_strength == 0.1

    def test_round_trip(self, tmp_path):
        config = EvolutionConfig(population_size=8, game=GameConfig(max_pieces=40))
        path = tmp_path / 'config.json'
        path.write_text(json.dumps(config.to_dict()))

        loaded = load_config(path)
        assert loaded.population_size == 8
        assert loaded.game.max_pieces == 40

    def test_unknown_key(self):
        with pytest.raises(ValueError):
            EvolutionConfig.from_dict({'population_size': 5, 'crossover_rate': 0.5})

    def test_validation(self):
        with pytest.raises(ValueError):
            EvolutionConfig(population_size=0)
        with pytest.raises(ValueError):
            EvolutionConfig(population_size=4, n_elite=5)
        with pytest.raises(ValueError):
            EvolutionConfig(mutation_rate=1.5)


class TestEngine:
    """Tests for the evolution loop."""

    @pytest.fixture
    def config(self):
        return EvolutionConfig(
            population_size=12,
            n_elite=1,
            games_per_genome=1,
            mutation_rate=0.5,
            mutation_strength=0.2,
            n_workers=1,
        )

    def test_initialize_population(self, config):
        engine = EvolutionEngine(config, fitness_fn=oracle, seed=0)
        engine.initialize_population()
        assert len(engine.population) == 12
        assert engine.generation == 0

    def test_elitism_keeps_best_fitness_monotonic(self, config):
        """Best fitness never decreases on a fixed oracle."""
        engine = EvolutionEngine(config, fitness_fn=oracle, seed=1)
        engine.initialize_population()
        result = engine.evolve(n_generations=10)

        trajectory = result.history.fitness_trajectory
        assert len(trajectory) == 10
        assert all(b >= a for a, b in zip(trajectory, trajectory[1:]))
        assert result.generations_completed == 10

    def test_population_size_constant(self, config):
        engine = EvolutionEngine(config, fitness_fn=oracle, seed=2)
        engine.initialize_population()
        for _ in range(3):
            engine.run_generation()
            assert len(engine.population) == 12

    def test_elites_are_not_replayed(self, config):
        calls = []

        def counting_oracle(weights, seed):
            calls.append(weights)
            return oracle(weights, seed)

        engine = EvolutionEngine(config, fitness_fn=counting_oracle, seed=3)
        engine.initialize_population()
        engine.run_generation()
        assert len(calls) == 12
        engine.run_generation()
        assert len(calls) == 12 + 11

    def test_offspring_generations(self, config):
        engine = EvolutionEngine(config, fitness_fn=oracle, seed=4)
        engine.initialize_population()
        engine.run_generation()
        offspring = [g for g in engine.population if g.origin != 'random']
        assert len(offspring) == 11
        assert all(g.generation == 1 for g in offspring)
        assert all(len(g.parents) == 2 for g in offspring)

    def test_invalid_genomes_skipped(self, config):
        bad = make_genome(holes=float('nan'))
        engine = EvolutionEngine(config, fitness_fn=oracle, seed=5)
        engine.initialize_population(seed_genomes=[bad])
        stats = engine.run_generation()

        assert stats.skipped_genomes == [bad.genome_id]
        assert not bad.fitness.evaluated
        assert all(g.is_valid() for g in engine.population)
        assert all(c.is_valid() for c in engine.champions)

    @pytest.mark.parametrize('bad_value', ['x', None])
    def test_non_numeric_genome_skipped(self, config, bad_value, tmp_path):
        bad = make_genome(height=bad_value)
        store = GenomeStore(tmp_path / 'store')
        engine = EvolutionEngine(config, fitness_fn=oracle, seed=12, store=store)
        engine.initialize_population(seed_genomes=[bad])

        stats = engine.run_generation()

        assert len(stats.skipped_genomes) == 1
        assert repr(bad_value) in stats.skipped_genomes[0]
        assert not bad.fitness.evaluated
        assert stats.unique_genomes == 11
        assert all(g.is_valid() for g in engine.population)
        assert len(store) == 11

    def test_single_eligible_genome_falls_back_to_cloning(self):
        config = EvolutionConfig(population_size=3, n_elite=1, games_per_genome=1, mutation_rate=1.0)
        good = make_genome()
        engine = EvolutionEngine(config, fitness_fn=oracle, seed=6)
        engine.initialize_population(seed_genomes=[
            good,
            make_genome(holes=float('nan')),
            make_genome(lines=float('inf')),
        ])

        stats = engine.run_generation()

        assert stats.condition == 'PopulationTooSmall'
        assert engine.last_condition == 'PopulationTooSmall'
        assert len(engine.population) == 3
        assert engine.population[0] is good
        for child in engine.population.genomes[1:]:
            assert child.parents == (good.genome_id,)
            assert child.origin == 'mutation'
            assert child.is_valid()

    def test_unmutated_fallback_child_is_a_clone(self):
        config = EvolutionConfig(population_size=2, n_elite=1, games_per_genome=1, mutation_rate=0.0)
        good = make_genome()
        engine = EvolutionEngine(config, fitness_fn=oracle, seed=13)
        engine.initialize_population(seed_genomes=[good, make_genome(holes=float('nan'))])

        engine.run_generation()

        child = engine.population[1]
        assert child.origin == 'clone'
        assert child.weights == good.weights
        assert child.parents == (good.genome_id,)
        assert not child.fitness.evaluated

    def test_no_eligible_genomes_holds_population(self):
        config = EvolutionConfig(population_size=2, games_per_genome=1)
        bad = [make_genome(holes=float('nan')), make_genome(lines=float('nan'))]
        engine = EvolutionEngine(config, fitness_fn=oracle, seed=7)
        engine.initialize_population(seed_genomes=bad)

        stats = engine.run_generation()

        assert stats.condition == 'PopulationTooSmall'
        assert engine.population.genomes == bad
        assert engine.total_evaluations == 0

    def test_population_of_one(self):
        config = EvolutionConfig(population_size=1, n_elite=1, games_per_genome=1)
        engine = EvolutionEngine(config, fitness_fn=oracle, seed=8)
        engine.initialize_population()
        result = engine.evolve(n_generations=3)
        assert result.generations_completed == 3
        assert len(engine.population) == 1

    def test_run_until_stopped(self, config):
        stop = threading.Event()
        seen = []

        def callback(generation, stats):
            seen.append(generation)
            if generation == 4:
                stop.set()

        engine = EvolutionEngine(config, fitness_fn=oracle, seed=9)
        result = engine.run(stop, progress_callback=callback)

        assert seen == [1, 2, 3, 4]
        assert result.generations_completed == 4
        assert result.stopped_by_caller

    def test_progress_reports_improvement(self, config):
        seen = []
        engine = EvolutionEngine(config, fitness_fn=oracle, seed=14)
        engine.evolve(n_generations=7, progress_callback=lambda gen, stats: seen.append(stats))

        assert seen[0]['improvement'] == float('inf')
        assert seen[-1]['improvement'] == engine.history.get_improvement_rate()
        assert seen[-1]['improvement'] >= 0.0

    def test_champions_deduplicated(self, config):
        engine = EvolutionEngine(config, fitness_fn=oracle, seed=10)
        engine.initialize_population()
        result = engine.evolve(n_generations=5)

        ids = [c.genome_id for c in result.champions]
        assert len(ids) == len(set(ids))
        assert len(ids) <= config.n_champions
        best = result.get_best_genome()
        assert fitness_value(best) == max(result.history.fitness_trajectory)
        assert 'Best fitness' in result.summary()

    def test_simulator_fitness(self):
        config = EvolutionConfig(
            population_size=4, games_per_genome=1, game=GameConfig(max_pieces=5),
        )
        engine = EvolutionEngine(config, seed=11)
        engine.initialize_population()
        engine.run_generation()
        assert engine.total_evaluations == 4
        assert engine.history.generations[0].evaluations_this_gen == 4

    def test_parallel_evaluation(self):
        config = EvolutionConfig(
            population_size=4, games_per_genome=1, game=GameConfig(max_pieces=5), n_workers=2,
        )
        engine = EvolutionEngine(config, seed=12)
        engine.initialize_population()
        assert engine.evaluate_population() == 4
        assert all(g.fitness.games_played == 1 for g in engine.population)

    def test_checkpoint_resume(self, config, tmp_path):
        engine = EvolutionEngine(config, fitness_fn=oracle, seed=13)
        engine.initialize_population()
        engine.evolve(n_generations=2)
        path = engine.save_checkpoint(tmp_path / 'evo.json')

        resumed = EvolutionEngine(config, fitness_fn=oracle, seed=14)
        resumed.load_checkpoint(path)

        assert resumed.run_id == engine.run_id
        assert resumed.generation == 2
        assert resumed.population.unique_ids() == engine.population.unique_ids()
        assert resumed.history.fitness_trajectory == engine.history.fitness_trajectory

        resumed.run_generation()
        assert resumed.generation == 3

    def test_periodic_checkpoints(self, tmp_path):
        config = EvolutionConfig(
            population_size=4, games_per_genome=1,
            checkpoint_every=2, checkpoint_dir=str(tmp_path / 'ckpt'),
        )
        engine = EvolutionEngine(config, fitness_fn=oracle, seed=15, run_id='run')
        engine.initialize_population()
        engine.evolve(n_generations=4)

        names = sorted(p.name for p in (tmp_path / 'ckpt').iterdir())
        assert names == ['run_gen002.json', 'run_gen004.json']

    def test_store_receives_generations(self, config, tmp_path):
        store = GenomeStore(tmp_path / 'store')
        engine = EvolutionEngine(config, fitness_fn=oracle, seed=16, store=store)
        engine.initialize_population()
        engine.evolve(n_generations=2)

        assert len(store) >= 12
        best = engine.history.best_genome_per_gen[-1]
        stored = store.get(best['genome_id'])
        assert stored.fitness.games_played == 1
