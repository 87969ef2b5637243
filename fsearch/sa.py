"""
Simulated annealing on a single trajectory in [0,1]^n.

Each proposal jitters every coordinate with Gaussian noise and redraws one
coordinate uniformly, so any proposal can change the decoded mask. A worse
candidate is accepted with probability exp(-gap / T); T falls geometrically
from ``initial_temperature`` to ``final_temperature`` over the call budget.
The best point visited is returned, not the last one.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np
from deap import tools

from fsearch.base import OptimizerResult, SearchOptimizer
from fsearch.config import SAConfig
from fsearch.encoding import decode_continuous, from_objective, negated_fitness
from fsearch.evaluator import EvaluationPool

logger = logging.getLogger(__name__)


def temperature(step: int, n_steps: int, t0: float, t_end: float) -> float:
    if n_steps <= 1:
        return t0
    return t0 * (t_end / t0) ** (step / (n_steps - 1))


class AnnealingSearch(SearchOptimizer):
    name = "sa"

    def __init__(self, fitness, n_features: int, config: Optional[SAConfig] = None, **kwargs) -> None:
        super().__init__(fitness, n_features, config if config is not None else SAConfig(), **kwargs)
        # One trajectory: nothing to evaluate in parallel
        self.n_procs = 1

    def _objective(self, x: np.ndarray) -> float:
        self.n_evals += 1
        return negated_fitness(self.fitness, x, self.n_features)

    def _neighbour(self, x: np.ndarray, rng: np.random.RandomState) -> np.ndarray:
        cand = x + rng.normal(0.0, self.config.step_size, size=x.shape)
        cand[rng.randint(x.shape[0])] = rng.uniform(0.0, 1.0)
        return np.clip(cand, 0.0, 1.0)

    def _search(self, pool: EvaluationPool) -> OptimizerResult:
        cfg = self.config
        rng = np.random.RandomState(self.seed)

        x = rng.uniform(0.0, 1.0, size=self.n_features)
        fx = self._objective(x)
        best_x, best_f = x.copy(), fx

        logbook = tools.Logbook()
        logbook.header = ["call", "temperature", "accepted", "current", "max"]
        logbook.record(call=1, temperature=cfg.initial_temperature, accepted=True, current=from_objective(fx), max=from_objective(best_f))

        n_steps = cfg.max_call - 1
        aborted = False
        for step in range(n_steps):
            if self.deadline_passed():
                aborted = True
                break
            t = temperature(step, n_steps, cfg.initial_temperature, cfg.final_temperature)
            cand = self._neighbour(x, rng)
            fc = self._objective(cand)
            gap = fc - fx
            accepted = gap <= 0.0 or rng.uniform() < math.exp(-gap / t)
            if accepted:
                x, fx = cand, fc
                if fx < best_f:
                    best_x, best_f = x.copy(), fx
            logbook.record(call=step + 2, temperature=t, accepted=bool(accepted), current=from_objective(fx), max=from_objective(best_f))

        logger.debug("[SA] %d calls, best=%.4f", self.n_evals, from_objective(best_f))
        return OptimizerResult(
            name=self.name,
            best_mask=decode_continuous(best_x, self.n_features),
            best_score=from_objective(best_f),
            n_evals=self.n_evals,
            trace=logbook,
            aborted=aborted,
            best_params=best_x,
        )
