"""
Fitness bookkeeping for genomes.

A genome's fitness record accumulates across every game it plays:
- best_score: highest score seen (never decreases)
- games_played: number of games folded in
- avg_score: running mean score, the scalar used for selection
- max_lines / avg_survival_time: secondary statistics
- tournament_wins: tournaments won
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any, Iterable, List, Optional, TYPE_CHECKING

from ..core.game import GameConfig, GameResult, play_games

if TYPE_CHECKING:
    from .genome import Genome


@dataclass
class FitnessRecord:
    """Accumulated game statistics for one genome."""
    best_score: float = 0.0
    games_played: int = 0
    avg_score: float = 0.0
    max_lines: int = 0
    avg_survival_time: float = 0.0
    tournament_wins: int = 0

    @property
    def evaluated(self) -> bool:
        return self.games_played > 0

    def record_game(self, result: GameResult) -> None:
        """Fold one game into the running statistics."""
        self.games_played += 1
        n = self.games_played
        self.best_score = max(self.best_score, result.score)
        self.avg_score = ((n - 1) * self.avg_score + result.score) / n
        self.avg_survival_time = ((n - 1) * self.avg_survival_time + result.survival_time) / n
        self.max_lines = max(self.max_lines, result.lines)

    def record_games(self, results: Iterable[GameResult]) -> None:
        for result in results:
            self.record_game(result)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FitnessRecord':
        return cls(**data)

    def __repr__(self) -> str:
        if not self.evaluated:
            return "FitnessRecord(unplayed)"
        return (
            f"FitnessRecord(best={self.best_score:.0f}, avg={self.avg_score:.1f}, "
            f"games={self.games_played})"
        )


def fitness_value(genome: 'Genome') -> float:
    """Scalar fitness used for selection; 0.0 for genomes that have not played."""
    if genome.fitness is None or not genome.fitness.evaluated:
        return 0.0
    return genome.fitness.avg_score


def best_fitness(genomes: Iterable['Genome']) -> Optional[float]:
    """Highest fitness among evaluated genomes, or None if none has played."""
    values = [fitness_value(g) for g in genomes if g.fitness.evaluated]
    return max(values) if values else None


def compute_fitness(
    genome: 'Genome',
    seeds: Iterable,
    game_config: Optional[GameConfig] = None,
) -> List[GameResult]:
    """
    Play one game per seed with the genome's weights and record the results.

    Returns:
        The individual game results

    Raises:
        InvalidGenome: if the genome's weights are invalid
    """
    results = play_games(genome.weights, seeds, game_config)
    genome.fitness.record_games(results)
    return results
