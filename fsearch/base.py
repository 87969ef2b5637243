from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, List, Optional

import numpy as np
from deap import tools

from fsearch.errors import ConfigurationError
from fsearch.evaluator import EvaluationPool

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class OptimizerResult:
    """Outcome of one optimizer run. ``trace`` holds one record per
    generation/iteration/call with at least ``avg`` and ``max`` fitness."""

    name: str
    best_mask: np.ndarray
    best_score: float
    n_evals: int
    trace: tools.Logbook
    aborted: bool = False
    population: Optional[np.ndarray] = None  # GA: final population, one row per individual
    best_params: Optional[np.ndarray] = None  # PSO/SA: best point in [0,1]^n before decoding

    @property
    def n_selected(self) -> int:
        return int(np.count_nonzero(self.best_mask))


class SearchOptimizer:
    """Shared plumbing: budget accounting, deadline checks and batch evaluation.

    ``fitness`` maps a boolean mask to a score to maximise. Errors it raises
    are not caught here; they end the run.
    """

    name = "base"

    def __init__(
        self,
        fitness,
        n_features: int,
        config: Any,
        seed: Optional[int] = None,
        n_procs: int = 1,
        time_limit: Optional[float] = None,
    ) -> None:
        if int(n_features) <= 0:
            raise ConfigurationError(f"n_features must be positive, got {n_features!r}")
        self.fitness = fitness
        self.n_features = int(n_features)
        self.config = config
        self.seed = seed
        self.n_procs = int(n_procs)
        self.time_limit = time_limit
        self.n_evals = 0
        self._deadline: Optional[float] = None

    def run(self) -> OptimizerResult:
        self.config.validate()
        self.n_evals = 0
        self._deadline = time.monotonic() + float(self.time_limit) if self.time_limit else None
        t0 = time.time()
        logger.info("[%s] start: n_features=%d seed=%s", self.name.upper(), self.n_features, self.seed)
        with EvaluationPool(self.fitness, self.n_procs) as pool:
            result = self._search(pool)
        logger.info(
            "[%s] done in %.2fs: best=%.4f selected=%d/%d evals=%d%s",
            self.name.upper(),
            time.time() - t0,
            result.best_score,
            result.n_selected,
            self.n_features,
            result.n_evals,
            " (deadline reached)" if result.aborted else "",
        )
        return result

    def _search(self, pool: EvaluationPool) -> OptimizerResult:
        raise NotImplementedError

    def deadline_passed(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def _evaluate_masks(self, pool: EvaluationPool, masks: List[np.ndarray]) -> List[float]:
        scores = pool.map(masks)
        self.n_evals += len(masks)
        return scores
