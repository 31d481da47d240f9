"""
Simulated tournaments between evolved genomes.

Every participant plays the same number of games on its own grid, with a
piece stream seeded from the tournament seed and its genome id. Entries are
ranked by average score; the top fraction become elites, each scored by how
far it stands above the weakest elite.
"""

import logging
import math
import random
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import List, Dict, Any, Optional, Sequence

import numpy as np

from ..core.board import DEFAULT_WIDTH, DEFAULT_HEIGHT
from ..core.game import GameConfig, GameResult, play_game
from ..errors import PopulationTooSmall
from .genome import Genome

logger = logging.getLogger(__name__)


@dataclass
class TournamentConfig:
    """Rules for a tournament."""
    games_per_genome: int = 10
    max_pieces: int = 2000
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    max_participants: int = 50
    elite_fraction: float = 0.1

    def __post_init__(self):
        if self.games_per_genome <= 0:
            raise ValueError(f"games_per_genome must be positive, got {self.games_per_genome}")
        if not 0.0 <= self.elite_fraction <= 1.0:
            raise ValueError(f"elite_fraction must be within [0, 1], got {self.elite_fraction}")

    def game_config(self) -> GameConfig:
        return GameConfig(width=self.width, height=self.height, max_pieces=self.max_pieces)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TournamentConfig':
        return cls(**data)


@dataclass
class TournamentEntry:
    """One participant's tournament performance."""
    genome: Genome
    games: List[GameResult]
    rank: int = 0

    @property
    def genome_id(self) -> str:
        return self.genome.genome_id

    @property
    def avg_score(self) -> float:
        return float(np.mean([g.score for g in self.games]))

    @property
    def max_score(self) -> int:
        return max(g.score for g in self.games)

    @property
    def avg_lines(self) -> float:
        return float(np.mean([g.lines for g in self.games]))

    @property
    def avg_survival_time(self) -> float:
        return float(np.mean([g.survival_time for g in self.games]))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'genome_id': self.genome_id,
            'rank': self.rank,
            'weights': self.genome.weights.to_dict(),
            'strategy': self.genome.strategy,
            'avg_score': self.avg_score,
            'max_score': self.max_score,
            'avg_lines': self.avg_lines,
            'avg_survival_time': self.avg_survival_time,
            'games_played': len(self.games),
        }


@dataclass
class EliteEntry:
    genome_id: str
    rank: int
    avg_score: float
    dominance_score: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TournamentResult:
    """Ranked outcome of one tournament."""
    tournament_id: str
    config: TournamentConfig
    entries: List[TournamentEntry]
    elites: List[EliteEntry]
    strategy_stats: Dict[str, Dict[str, float]]
    seed: Optional[int] = None
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())
    completed_at: Optional[str] = None

    @property
    def winner(self) -> TournamentEntry:
        return self.entries[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tournament_id': self.tournament_id,
            'config': self.config.to_dict(),
            'seed': self.seed,
            'started_at': self.started_at,
            'completed_at': self.completed_at,
            'winner': self.winner.genome_id,
            'entries': [e.to_dict() for e in self.entries],
            'elites': [e.to_dict() for e in self.elites],
            'strategy_stats': self.strategy_stats,
        }

    def summary(self) -> str:
        lines = [f"Tournament {self.tournament_id}: {len(self.entries)} participants"]
        for entry in self.entries[:10]:
            lines.append(
                f"  {entry.rank:>2}. {entry.genome_id}  avg={entry.avg_score:.0f}  "
                f"max={entry.max_score}  ({entry.genome.strategy})"
            )
        lines.append(f"Elites: {', '.join(e.genome_id for e in self.elites)}")
        return '\n'.join(lines)


def generate_tournament_id() -> str:
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    return f"tournament_{timestamp}_{uuid.uuid4().hex[:6]}"


def select_participants(genomes: Sequence[Genome], max_participants: int) -> List[Genome]:
    """Distinct genomes, best recorded score first, capped at max_participants."""
    seen = set()
    unique = []
    for genome in sorted(genomes, key=lambda g: g.fitness.best_score, reverse=True):
        if genome.genome_id in seen:
            continue
        seen.add(genome.genome_id)
        unique.append(genome)
    return unique[:max_participants]


def participant_seeds(seed, genome_id: str, n_games: int) -> List[str]:
    """Per-game seeds for one participant, derived from the tournament seed."""
    base = f"{seed}{genome_id}"
    return [f"{base}:{game}" for game in range(n_games)]


def compute_elites(entries: Sequence[TournamentEntry], elite_fraction: float) -> List[EliteEntry]:
    """
    Top max(1, floor(n * elite_fraction)) entries of a ranked list.

    dominance_score = avg_score / max(1, avg_score of the last elite)
    """
    if not entries:
        return []
    n_elite = max(1, math.floor(len(entries) * elite_fraction))
    floor_score = max(1.0, entries[n_elite - 1].avg_score)
    return [
        EliteEntry(
            genome_id=entry.genome_id,
            rank=entry.rank,
            avg_score=entry.avg_score,
            dominance_score=entry.avg_score / floor_score,
        )
        for entry in entries[:n_elite]
    ]


def strategy_statistics(entries: Sequence[TournamentEntry]) -> Dict[str, Dict[str, float]]:
    """Count, mean average score and best score per strategy."""
    groups: Dict[str, List[TournamentEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.genome.strategy, []).append(entry)

    return {
        strategy: {
            'count': len(members),
            'avg_score': float(np.mean([m.avg_score for m in members])),
            'best_score': max(m.max_score for m in members),
        }
        for strategy, members in sorted(groups.items())
    }


def run_tournament(
    genomes: Sequence[Genome],
    config: Optional[TournamentConfig] = None,
    seed: Optional[int] = None,
) -> TournamentResult:
    """
    Play a full tournament.

    Args:
        genomes: Candidate genomes; duplicates by id are dropped
        config: Tournament rules
        seed: Tournament seed; with the same seed and participants the
            result is identical. A fresh seed is drawn when None and
            recorded on the result.

    Returns:
        TournamentResult with entries ranked by average score

    Raises:
        PopulationTooSmall: with fewer than two distinct participants
        InvalidGenome: if a participant's weights are invalid
    """
    config = config or TournamentConfig()
    participants = select_participants(genomes, config.max_participants)
    if len(participants) < 2:
        raise PopulationTooSmall(len(participants), required=2)

    if seed is None:
        seed = random.randrange(1_000_000)

    tournament_id = generate_tournament_id()
    started_at = datetime.now().isoformat()
    game_config = config.game_config()
    logger.info(
        "Tournament %s: %d participants, seed %s", tournament_id, len(participants), seed,
    )

    entries = []
    for genome in participants:
        seeds = participant_seeds(seed, genome.genome_id, config.games_per_genome)
        games = [play_game(genome.weights, s, game_config) for s in seeds]
        entries.append(TournamentEntry(genome=genome, games=games))

    # Stable sort keeps input order among equal averages
    entries.sort(key=lambda e: e.avg_score, reverse=True)
    for rank, entry in enumerate(entries, start=1):
        entry.rank = rank

    result = TournamentResult(
        tournament_id=tournament_id,
        config=config,
        entries=entries,
        elites=compute_elites(entries, config.elite_fraction),
        strategy_stats=strategy_statistics(entries),
        seed=seed,
        started_at=started_at,
        completed_at=datetime.now().isoformat(),
    )
    logger.info(
        "Tournament %s won by %s (avg %.0f)",
        tournament_id, result.winner.genome_id, result.winner.avg_score,
    )
    return result
