"""
Persistence layer for evolved genomes.

Provides JSON file-based storage for genomes, their lineage, tournament
results and saved populations.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Any, Sequence, Union
from filelock import FileLock

from ..evolution.fitness import FitnessRecord
from ..evolution.genome import Genome
from ..evolution.operators import mix_genomes
from ..evolution.population import Population, find_similar_genomes
from .game import GameResult
from .weights import Weights

logger = logging.getLogger(__name__)

# Tournament eligibility
SUBMIT_MIN_SCORE = 100000
SUBMIT_MIN_GAMES = 5


class GenomeStore:
    """
    File-based storage for genomes.

    Storage structure:
        data/
        ├── index.json              # Quick lookup index
        ├── genomes/
        │   └── TETRIS-<hash>.json  # Genome, fitness, offspring
        ├── tournaments/
        │   └── tournament_<timestamp>_<hash>.json
        └── populations/
            └── <name>.json

    A single lock on the index guards every read-modify-write.
    """

    def __init__(self, base_path: Union[str, Path]):
        self.base_path = Path(base_path)
        self.genomes_dir = self.base_path / 'genomes'
        self.tournaments_dir = self.base_path / 'tournaments'
        self.populations_dir = self.base_path / 'populations'
        self.index_file = self.base_path / 'index.json'

        # Ensure directories exist
        for directory in (self.genomes_dir, self.tournaments_dir, self.populations_dir):
            directory.mkdir(parents=True, exist_ok=True)

        # Initialize index if needed
        with self._get_lock():
            if not self.index_file.exists():
                self._write_index({'version': '1.0', 'genomes': {}, 'tournaments': []})

    def _get_lock(self) -> FileLock:
        """Get the store lock for atomic operations."""
        return FileLock(str(self.index_file) + '.lock')

    def _read_index(self) -> Dict:
        """Read the index file (caller should hold lock for read-modify-write)."""
        if self.index_file.exists():
            return json.loads(self.index_file.read_text())
        return {'version': '1.0', 'genomes': {}, 'tournaments': []}

    def _write_index(self, index: Dict):
        """Write the index file (caller should hold lock for read-modify-write)."""
        self.index_file.write_text(json.dumps(index, indent=2))

    def _genome_file(self, genome_id: str) -> Path:
        return self.genomes_dir / f'{genome_id}.json'

    def _read_record(self, genome_id: str) -> Dict[str, Any]:
        path = self._genome_file(genome_id)
        if not path.exists():
            raise KeyError(genome_id)
        return json.loads(path.read_text())

    def _write_record(self, record: Dict[str, Any]):
        self._genome_file(record['genome_id']).write_text(json.dumps(record, indent=2))

    @staticmethod
    def _summary(record: Dict[str, Any]) -> Dict[str, Any]:
        fitness = record['fitness']
        summary = {
            'genome_id': record['genome_id'],
            'generation': record['generation'],
            'origin': record['origin'],
            'strategy': record['strategy'],
            'best_score': fitness['best_score'],
            'avg_score': fitness['avg_score'],
            'games_played': fitness['games_played'],
            'tournament_wins': fitness['tournament_wins'],
            'created_at': record['created_at'],
        }
        if record.get('elite'):
            summary['elite'] = record['elite']
        return summary

    def _register_locked(self, index: Dict, genome: Genome) -> Dict[str, Any]:
        """Insert a genome unless its id is known (caller holds the lock)."""
        genome_id = genome.genome_id
        if genome_id in index['genomes']:
            return self._read_record(genome_id)

        record = genome.to_dict()
        record['offspring'] = []
        record['registered_at'] = datetime.now().isoformat()
        self._write_record(record)

        for parent_id in genome.parents:
            if parent_id not in index['genomes']:
                continue
            parent = self._read_record(parent_id)
            if genome_id not in parent['offspring']:
                parent['offspring'].append(genome_id)
                self._write_record(parent)

        index['genomes'][genome_id] = self._summary(record)
        return record

    def _save_locked(self, index: Dict, genome: Genome) -> Dict[str, Any]:
        record = self._register_locked(index, genome)
        record['fitness'] = genome.fitness.to_dict()
        self._write_record(record)
        index['genomes'][record['genome_id']] = self._summary(record)
        return record

    # -------------------------------------------------------------------------
    # Genomes
    # -------------------------------------------------------------------------

    def register(self, genome: Genome) -> Dict[str, Any]:
        """
        Store a genome and link it into its parents' offspring lists.

        Registering an id that is already stored changes nothing.

        Returns:
            The stored record
        """
        with self._get_lock():
            index = self._read_index()
            record = self._register_locked(index, genome)
            self._write_index(index)
        return record

    def save_genome(self, genome: Genome) -> Dict[str, Any]:
        """Register if needed, then overwrite the stored fitness record."""
        with self._get_lock():
            index = self._read_index()
            record = self._save_locked(index, genome)
            self._write_index(index)
        return record

    def sync(self, genomes: Sequence[Genome]) -> int:
        """
        Persist a whole generation under one lock.

        Returns:
            Number of genomes written
        """
        with self._get_lock():
            index = self._read_index()
            count = 0
            for genome in genomes:
                self._save_locked(index, genome)
                count += 1
            self._write_index(index)
        logger.debug("Synced %d genomes to %s", count, self.base_path)
        return count

    def get_record(self, genome_id: str) -> Dict[str, Any]:
        """Raw stored record including offspring. Raises KeyError if unknown."""
        return self._read_record(genome_id)

    def get(self, genome_id: str) -> Genome:
        """Load a genome. Raises KeyError if unknown."""
        return Genome.from_dict(self._read_record(genome_id))

    def __contains__(self, genome_id: str) -> bool:
        return genome_id in self._read_index()['genomes']

    def __len__(self) -> int:
        return len(self._read_index()['genomes'])

    def list_genomes(
        self,
        limit: int = 100,
        offset: int = 0,
        strategy: Optional[str] = None,
    ) -> List[Dict]:
        """
        List genomes ranked by best score.

        Returns index entries (not full records) for efficiency.
        """
        index = self._read_index()
        genomes = [
            info for info in index['genomes'].values()
            if strategy is None or info.get('strategy') == strategy
        ]

        genomes.sort(key=lambda x: x.get('best_score', 0), reverse=True)

        # Apply pagination
        return genomes[offset:offset + limit]

    def all_genomes(self) -> List[Genome]:
        index = self._read_index()
        return [self.get(genome_id) for genome_id in index['genomes']]

    def update_performance(self, genome_id: str, result: GameResult) -> FitnessRecord:
        """Fold one game result into a stored genome's fitness."""
        with self._get_lock():
            index = self._read_index()
            if genome_id not in index['genomes']:
                raise KeyError(genome_id)
            record = self._read_record(genome_id)
            fitness = FitnessRecord.from_dict(record['fitness'])
            fitness.record_game(result)
            record['fitness'] = fitness.to_dict()
            self._write_record(record)
            index['genomes'][genome_id] = self._summary(record)
            self._write_index(index)
        return fitness

    # -------------------------------------------------------------------------
    # Lineage and similarity
    # -------------------------------------------------------------------------

    def lineage(self, genome_id: str, depth: int = 3) -> Dict[str, Any]:
        """
        Ancestry tree of a genome.

        Each node carries id, generation, origin, strategy and best score;
        parents are expanded up to ``depth`` levels. Parents missing from
        the store appear with ``missing: True``.

        Raises:
            KeyError: if genome_id is unknown
        """
        record = self._read_record(genome_id)
        return self._lineage_node(record, depth)

    def _lineage_node(self, record: Dict[str, Any], depth: int) -> Dict[str, Any]:
        node = {
            'genome_id': record['genome_id'],
            'generation': record['generation'],
            'origin': record['origin'],
            'strategy': record['strategy'],
            'best_score': record['fitness']['best_score'],
            'parents': [],
        }
        if depth <= 0:
            return node

        for parent_id in record['parents']:
            try:
                parent = self._read_record(parent_id)
            except KeyError:
                node['parents'].append({'genome_id': parent_id, 'missing': True})
                continue
            node['parents'].append(self._lineage_node(parent, depth - 1))
        return node

    def find_similar(self, weights: Weights, threshold: float = 0.1) -> List[Dict[str, Any]]:
        """Stored genomes within L1 distance ``threshold`` (exact matches excluded)."""
        return find_similar_genomes(weights, self.all_genomes(), threshold)

    # -------------------------------------------------------------------------
    # Tournaments and elites
    # -------------------------------------------------------------------------

    def can_submit(self, genome: Union[Genome, str]) -> bool:
        """True if a genome qualifies for a tournament."""
        if isinstance(genome, str):
            genome = self.get(genome)
        return (
            genome.fitness.best_score >= SUBMIT_MIN_SCORE
            and genome.fitness.games_played >= SUBMIT_MIN_GAMES
        )

    def tournament_candidates(self, limit: int = 50) -> List[Genome]:
        """Stored genomes that have not entered a tournament, best score first."""
        index = self._read_index()
        entered = set()
        for tournament_id in index.get('tournaments', []):
            data = json.loads((self.tournaments_dir / f'{tournament_id}.json').read_text())
            entered.update(e['genome_id'] for e in data['entries'])

        fresh = [
            info for info in index['genomes'].values()
            if info['genome_id'] not in entered
        ]
        fresh.sort(key=lambda x: x.get('best_score', 0), reverse=True)
        return [self.get(info['genome_id']) for info in fresh[:limit]]

    def record_tournament(self, result) -> Path:
        """
        Store a TournamentResult.

        Participants are registered if unknown, the winner's tournament_wins
        is incremented and the elites are marked with their dominance score.
        """
        path = self.tournaments_dir / f'{result.tournament_id}.json'
        elites = {e.genome_id: e for e in result.elites}

        with self._get_lock():
            index = self._read_index()
            path.write_text(json.dumps(result.to_dict(), indent=2))

            for entry in result.entries:
                record = self._register_locked(index, entry.genome)
                if entry.genome_id == result.winner.genome_id:
                    record['fitness']['tournament_wins'] += 1
                elite = elites.get(entry.genome_id)
                if elite is not None:
                    previous = record.get('elite') or {}
                    record['elite'] = {
                        'tournament_id': result.tournament_id,
                        'avg_tournament_score': elite.avg_score,
                        'dominance_score': elite.dominance_score,
                        'times_elite': previous.get('times_elite', 0) + 1,
                    }
                self._write_record(record)
                index['genomes'][entry.genome_id] = self._summary(record)

            index.setdefault('tournaments', []).append(result.tournament_id)
            self._write_index(index)

        logger.info("Recorded tournament %s", result.tournament_id)
        return path

    def load_tournament(self, tournament_id: str) -> Dict[str, Any]:
        path = self.tournaments_dir / f'{tournament_id}.json'
        if not path.exists():
            raise KeyError(tournament_id)
        return json.loads(path.read_text())

    def elite_genomes(self, limit: int = 10) -> List[Dict]:
        """Index entries of elite genomes, highest dominance first."""
        index = self._read_index()
        elites = [info for info in index['genomes'].values() if info.get('elite')]
        elites.sort(key=lambda x: x['elite']['dominance_score'], reverse=True)
        return elites[:limit]

    def import_elite(self, genome_id: str) -> Genome:
        """
        Founder copy of a stored genome, ready to seed a population.

        The copy is generation 0 with origin 'imported' and keeps the
        source's best score; it has not played any games yet.
        """
        source = self.get(genome_id)
        return Genome(
            weights=source.weights,
            generation=0,
            parents=(),
            origin='imported',
            fitness=FitnessRecord(best_score=source.fitness.best_score),
        )

    def mix_strategies(
        self,
        genome_ids: Sequence[str],
        ratios: Optional[Sequence[float]] = None,
    ) -> Genome:
        """Blend stored genomes into a new registered genome."""
        genomes = [self.get(gid) for gid in genome_ids]
        child = mix_genomes(genomes, ratios)
        self.register(child)
        return child

    # -------------------------------------------------------------------------
    # Statistics and populations
    # -------------------------------------------------------------------------

    def strategy_distribution(self) -> Dict[str, Dict[str, float]]:
        """Count, mean best score and top best score per strategy."""
        index = self._read_index()
        stats: Dict[str, Dict[str, float]] = {}

        for info in index['genomes'].values():
            strategy = info.get('strategy', 'unknown')
            entry = stats.setdefault(strategy, {'count': 0, 'total': 0.0, 'best_score': 0.0})
            entry['count'] += 1
            entry['total'] += info.get('best_score', 0)
            entry['best_score'] = max(entry['best_score'], info.get('best_score', 0))

        return {
            strategy: {
                'count': entry['count'],
                'avg_best_score': entry['total'] / entry['count'],
                'best_score': entry['best_score'],
            }
            for strategy, entry in stats.items()
        }

    def save_population(self, name: str, population: Population) -> Path:
        """Save a population snapshot and register its members."""
        path = self.populations_dir / f'{name}.json'
        with self._get_lock():
            index = self._read_index()
            for genome in population:
                self._save_locked(index, genome)
            path.write_text(json.dumps(population.to_dict(), indent=2))
            self._write_index(index)
        return path

    def load_population(self, name: str) -> Population:
        path = self.populations_dir / f'{name}.json'
        if not path.exists():
            raise KeyError(name)
        return Population.from_dict(json.loads(path.read_text()))

    def get_statistics(self) -> Dict:
        """Get aggregate statistics about stored genomes."""
        index = self._read_index()
        genomes = index['genomes']

        stats = {
            'total': len(genomes),
            'tournaments': len(index.get('tournaments', [])),
            'by_origin': {},
            'by_generation': {},
        }

        for info in genomes.values():
            origin = info.get('origin', 'unknown')
            stats['by_origin'][origin] = stats['by_origin'].get(origin, 0) + 1

            generation = str(info.get('generation', 0))
            stats['by_generation'][generation] = stats['by_generation'].get(generation, 0) + 1

        return stats
