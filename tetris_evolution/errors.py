"""
Exceptions raised by the evaluation and evolution core.

Validation failures subclass ValueError so callers that already guard
against bad input with ``except ValueError`` keep working.
"""


class TetrisEvolutionError(Exception):
    """Base class for all errors raised by this package."""


class InvalidGenome(TetrisEvolutionError, ValueError):
    """A weight vector is missing a field, non-numeric, NaN or infinite."""

    def __init__(self, message: str, genome_id: str = None):
        super().__init__(message)
        self.genome_id = genome_id


class InvalidGrid(TetrisEvolutionError, ValueError):
    """A grid is empty, ragged, or not two-dimensional."""


class PopulationTooSmall(TetrisEvolutionError):
    """Not enough genomes to select the parents an operation needs."""

    def __init__(self, available: int, required: int = 2):
        super().__init__(
            f"Not enough genomes: {available} available, {required} required"
        )
        self.available = available
        self.required = required
