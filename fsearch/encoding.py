"""
Subset encoding: the bridge between optimizer parameter vectors and the
boolean feature mask the evaluator consumes.

The GA searches {0,1}^n directly (``encode_ga`` is the identity). PSO and SA
search the box [0,1]^n; ``decode_continuous`` rounds each coordinate, with
0.5 going to 1. Coordinates outside the box are clamped before rounding.

PSO and SA minimise, so their objective is the negated fitness. The sign
flip happens only in ``to_objective``/``from_objective``.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

import numpy as np

from fsearch.errors import InvalidMaskLength

Fitness = Callable[[np.ndarray], float]

TIE_THRESHOLD = 0.5


def _check_dimension(vector: np.ndarray, n_features: Optional[int]) -> None:
    if vector.ndim != 1:
        raise InvalidMaskLength(n_features if n_features is not None else -1, vector.size)
    if n_features is not None and vector.shape[0] != n_features:
        raise InvalidMaskLength(n_features, vector.shape[0])


def encode_ga(bits: Sequence[Any], n_features: Optional[int] = None) -> np.ndarray:
    bits = np.asarray(bits)
    _check_dimension(bits, n_features)
    return bits.astype(bool)


def decode_continuous(vector: Sequence[float], n_features: Optional[int] = None) -> np.ndarray:
    vector = np.asarray(vector, dtype=float)
    _check_dimension(vector, n_features)
    return np.clip(vector, 0.0, 1.0) >= TIE_THRESHOLD


def to_objective(score: float) -> float:
    return -float(score)


def from_objective(value: float) -> float:
    return -float(value)


def mask_fitness(fitness: Fitness, bits: Sequence[Any], n_features: int) -> float:
    return float(fitness(encode_ga(bits, n_features)))


def negated_fitness(fitness: Fitness, vector: Sequence[float], n_features: int) -> float:
    return to_objective(fitness(decode_continuous(vector, n_features)))
