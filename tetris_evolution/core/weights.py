"""
The four-weight vector that parameterises the placement heuristic.

Every per-weight loop in the package iterates WEIGHT_FIELDS, so the same
code path handles any subset of the weights without dynamic key lookups.
"""

import math
from dataclasses import dataclass
from numbers import Real
from typing import Dict, Any, Tuple

from ..errors import InvalidGenome


WEIGHT_FIELDS: Tuple[str, ...] = ('height', 'lines', 'holes', 'bumpiness')

# Keys used by the browser client and the tournament server
LEGACY_KEYS = {
    'height': ('aggregateHeight', 'heightWeight', 'w_height'),
    'lines': ('completeLines', 'linesWeight', 'w_lines'),
    'holes': ('holesWeight', 'w_holes'),
    'bumpiness': ('bumpinessWeight', 'w_bump'),
}


@dataclass(frozen=True)
class Weights:
    """
    Weight vector for the heuristic evaluator.

    Sign and magnitude are unconstrained. Because height, holes and
    bumpiness are fed to the evaluator negated, a positive weight on those
    three penalises them; a positive lines weight rewards clears.
    """
    height: float
    lines: float
    holes: float
    bumpiness: float

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return tuple(getattr(self, name) for name in WEIGHT_FIELDS)

    def replace(self, **changes: float) -> 'Weights':
        values = self.to_dict()
        values.update(changes)
        return Weights(**values)

    def to_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in WEIGHT_FIELDS}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Weights':
        """
        Build weights from a mapping.

        Accepts the canonical field names as well as the camelCase keys used
        by the browser client.

        Raises:
            InvalidGenome: if a field is missing or non-numeric
        """
        if not isinstance(data, dict):
            raise InvalidGenome(f"Weights must be a mapping, got {type(data).__name__}")

        values = {}
        for name in WEIGHT_FIELDS:
            for key in (name,) + LEGACY_KEYS[name]:
                if key in data:
                    values[name] = _coerce(name, data[key])
                    break
            else:
                raise InvalidGenome(f"Missing weight field: {name}")

        return cls(**values)

    @classmethod
    def from_sequence(cls, values) -> 'Weights':
        values = list(values)
        if len(values) != len(WEIGHT_FIELDS):
            raise InvalidGenome(
                f"Expected {len(WEIGHT_FIELDS)} weights, got {len(values)}"
            )
        return cls(**{name: _coerce(name, v) for name, v in zip(WEIGHT_FIELDS, values)})

    def __repr__(self) -> str:
        inner = ', '.join(f"{name}={getattr(self, name):.4f}" for name in WEIGHT_FIELDS)
        return f"Weights({inner})"


def _coerce(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidGenome(f"Weight {name} is not numeric: {value!r}")
    return float(value)


def validate_weights(weights: Weights) -> Weights:
    """
    Check that a weight vector can be evaluated.

    Raises:
        InvalidGenome: on a missing field, non-numeric value, NaN or infinity
    """
    if not isinstance(weights, Weights):
        raise InvalidGenome(f"Expected Weights, got {type(weights).__name__}")

    for name in WEIGHT_FIELDS:
        value = getattr(weights, name, None)
        if isinstance(value, bool) or not isinstance(value, Real):
            raise InvalidGenome(f"Weight {name} is not numeric: {value!r}")
        if not math.isfinite(value):
            raise InvalidGenome(f"Weight {name} is not finite: {value!r}")

    return weights
