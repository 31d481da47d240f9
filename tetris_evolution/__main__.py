"""
Command-line entry point.

Usage:
    python -m tetris_evolution evolve [options]       Evolve heuristic weights
    python -m tetris_evolution play [options]         Play one game with given weights
    python -m tetris_evolution tournament [options]   Run a tournament over stored genomes
    python -m tetris_evolution lineage ID [options]   Show a stored genome's ancestry
"""

import argparse
import logging
import math
import signal
import sys
import threading
from pathlib import Path

from .core.game import GameConfig, play_game
from .core.persistence import GenomeStore
from .core.weights import Weights
from .errors import TetrisEvolutionError
from .evolution.engine import EvolutionEngine, EvolutionConfig, load_config
from .evolution.tournament import TournamentConfig, run_tournament


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='tetris_evolution',
        description='Evolve weights for a heuristic Tetris player'
    )
    parser.add_argument(
        '-v', '--verbose', action='store_true',
        help='Log debug output'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    evolve = subparsers.add_parser('evolve', help='Run the genetic algorithm')
    evolve.add_argument(
        '--config', type=str, default=None,
        help='JSON file with EvolutionConfig fields'
    )
    evolve.add_argument(
        '--population', type=int, default=None,
        help='Population size (default: 50)'
    )
    evolve.add_argument(
        '--generations', type=int, default=30,
        help='Number of generations, 0 to run until interrupted (default: 30)'
    )
    evolve.add_argument(
        '--games', type=int, default=None,
        help='Games per genome (default: 3)'
    )
    evolve.add_argument(
        '--max-pieces', type=int, default=None,
        help='Piece cap per game (default: 500)'
    )
    evolve.add_argument(
        '--workers', type=int, default=None,
        help='Number of parallel workers (default: 1)'
    )
    evolve.add_argument(
        '--seed', type=int, default=None,
        help='Random seed for reproducibility'
    )
    evolve.add_argument(
        '--checkpoint-dir', type=str, default=None,
        help='Directory for checkpoints'
    )
    evolve.add_argument(
        '--resume', type=str, default=None,
        help='Path to checkpoint file to resume from'
    )
    evolve.add_argument(
        '--store', type=str, default=None,
        help='Genome store directory; every generation is saved there'
    )

    play = subparsers.add_parser('play', help='Play one game')
    play.add_argument(
        '--weights', type=float, nargs=4, metavar=('HEIGHT', 'LINES', 'HOLES', 'BUMPINESS'),
        default=None, help='Heuristic weights'
    )
    play.add_argument('--genome', type=str, default=None, help='Stored genome id')
    play.add_argument('--store', type=str, default='data/genomes', help='Genome store directory')
    play.add_argument('--seed', type=int, default=None, help='Piece sequence seed')
    play.add_argument('--max-pieces', type=int, default=500, help='Piece cap (default: 500)')

    tournament = subparsers.add_parser('tournament', help='Run a tournament')
    tournament.add_argument('--store', type=str, default='data/genomes', help='Genome store directory')
    tournament.add_argument('--seed', type=int, default=None, help='Tournament seed')
    tournament.add_argument('--games', type=int, default=10, help='Games per genome (default: 10)')
    tournament.add_argument('--max-pieces', type=int, default=2000, help='Piece cap (default: 2000)')

    lineage = subparsers.add_parser('lineage', help='Show ancestry of a stored genome')
    lineage.add_argument('genome_id', type=str)
    lineage.add_argument('--store', type=str, default='data/genomes', help='Genome store directory')
    lineage.add_argument('--depth', type=int, default=3, help='Ancestor depth (default: 3)')

    return parser.parse_args(argv)


def print_banner(title: str):
    print("=" * 70)
    print(f"   TETRIS EVOLUTION - {title}")
    print("=" * 70)


def print_config(config: EvolutionConfig, n_generations: int):
    print("\nConfiguration:")
    print(f"   Population size:    {config.population_size}")
    print(f"   Generations:        {n_generations or 'until interrupted'}")
    print(f"   Elite count:        {config.n_elite}")
    print(f"   Tournament size:    {config.tournament_size}")
    print(f"   Crossover alpha:    {config.crossover_alpha}")
    print(f"   Mutation rate:      {config.mutation_rate}")
    print(f"   Mutation strength:  {config.mutation_strength}")
    print(f"   Games per genome:   {config.games_per_genome}")
    print(f"   Max pieces:         {config.game.max_pieces}")
    print(f"   Workers:            {config.n_workers}")


def progress_callback(gen: int, stats: dict):
    """Print progress during evolution."""
    condition = f" | {stats['condition']}" if stats.get('condition') else ''
    improvement = stats.get('improvement', float('inf'))
    trend = f" | Trend: {improvement:+.1f}" if math.isfinite(improvement) else ''
    print(
        f"\r   Gen {gen:3d} | "
        f"Best fitness: {stats.get('best_fitness', 0):9.1f} | "
        f"Mean: {stats.get('mean_fitness', 0):9.1f} | "
        f"Games: {stats.get('evaluations', 0):,}{trend}{condition}",
        end='', flush=True
    )


def build_config(args) -> EvolutionConfig:
    data = load_config(args.config).to_dict() if args.config else EvolutionConfig().to_dict()
    if args.population is not None:
        data['population_size'] = args.population
    if args.games is not None:
        data['games_per_genome'] = args.games
    if args.max_pieces is not None:
        data['game']['max_pieces'] = args.max_pieces
    if args.workers is not None:
        data['n_workers'] = args.workers
    if args.checkpoint_dir is not None:
        data['checkpoint_dir'] = args.checkpoint_dir
    return EvolutionConfig.from_dict(data)


def cmd_evolve(args) -> int:
    print_banner("Evolution")
    config = build_config(args)
    print_config(config, args.generations)

    store = GenomeStore(args.store) if args.store else None
    engine = EvolutionEngine(config, seed=args.seed, store=store)

    if args.resume:
        print(f"\n   Resuming from: {args.resume}")
        engine.load_checkpoint(Path(args.resume))
        print(f"   Resumed at generation {engine.generation}")
    else:
        print("\n   Initializing population...")
        engine.initialize_population()
        print(f"   Population initialized: {len(engine.population)} genomes")

    print("\n   Starting evolution...")
    if args.generations > 0:
        result = engine.evolve(args.generations, progress_callback=progress_callback)
    else:
        stop_event = threading.Event()
        signal.signal(signal.SIGINT, lambda signum, frame: stop_event.set())
        print("   Press Ctrl+C to stop after the current generation")
        result = engine.run(stop_event, progress_callback=progress_callback)
    print()  # New line after progress

    print("\n   Results:")
    print("   --------")
    for line in result.summary().splitlines():
        print(f"   {line}")

    print("\n   Top champions:")
    for i, genome in enumerate(result.champions[:5], 1):
        print(f"   {i}. {genome.genome_id} avg={genome.fitness.avg_score:.1f} {genome.weights!r}")
    return 0


def cmd_play(args) -> int:
    if args.genome:
        try:
            weights = GenomeStore(args.store).get(args.genome).weights
        except KeyError:
            print(f"Unknown genome: {args.genome}", file=sys.stderr)
            return 1
    elif args.weights:
        weights = Weights.from_sequence(args.weights)
    else:
        print("Either --weights or --genome is required", file=sys.stderr)
        return 2

    result = play_game(weights, args.seed, GameConfig(max_pieces=args.max_pieces))
    print(f"Weights:  {weights!r}")
    print(f"Score:    {result.score}")
    print(f"Lines:    {result.lines}")
    print(f"Pieces:   {result.pieces}{' (game over)' if result.game_over else ''}")
    return 0


def cmd_tournament(args) -> int:
    print_banner("Tournament")
    store = GenomeStore(args.store)
    config = TournamentConfig(games_per_genome=args.games, max_pieces=args.max_pieces)

    candidates = store.tournament_candidates(limit=config.max_participants)
    print(f"\n   Participants: {len(candidates)}")
    result = run_tournament(candidates, config, seed=args.seed)
    path = store.record_tournament(result)

    print()
    print(result.summary())
    print(f"\n   Seed: {result.seed}")
    print(f"   Saved to {path}")
    return 0


def print_lineage(node: dict, indent: int = 0):
    pad = '   ' * indent
    if node.get('missing'):
        print(f"{pad}{node['genome_id']} (not stored)")
        return
    print(
        f"{pad}{node['genome_id']}  gen={node['generation']}  {node['origin']}  "
        f"{node['strategy']}  best={node['best_score']:.0f}"
    )
    for parent in node['parents']:
        print_lineage(parent, indent + 1)


def cmd_lineage(args) -> int:
    store = GenomeStore(args.store)
    try:
        tree = store.lineage(args.genome_id, depth=args.depth)
    except KeyError:
        print(f"Unknown genome: {args.genome_id}", file=sys.stderr)
        return 1
    print_lineage(tree)
    return 0


COMMANDS = {
    'evolve': cmd_evolve,
    'play': cmd_play,
    'tournament': cmd_tournament,
    'lineage': cmd_lineage,
}


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    try:
        return COMMANDS[args.command](args)
    except TetrisEvolutionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
