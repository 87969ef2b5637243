"""
Particle swarm optimisation over the box [0,1]^n.

Standard PSO constants (inertia 1/(2 ln 2), acceleration 0.5 + ln 2) and a
global-best topology. Positions leaving the box are clamped to the face they
crossed and the velocity of that coordinate is zeroed. The swarm minimises
the negated fitness of the decoded mask.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np
from deap import tools

from fsearch.base import OptimizerResult, SearchOptimizer
from fsearch.config import PSOConfig
from fsearch.encoding import decode_continuous, from_objective, to_objective
from fsearch.evaluator import EvaluationPool

logger = logging.getLogger(__name__)


def default_swarm_size(n_features: int) -> int:
    return int(math.floor(10 + 2 * math.sqrt(n_features)))


class ParticleSwarmSearch(SearchOptimizer):
    name = "pso"

    def __init__(self, fitness, n_features: int, config: Optional[PSOConfig] = None, **kwargs) -> None:
        super().__init__(fitness, n_features, config if config is not None else PSOConfig(), **kwargs)

    @property
    def swarm_size(self) -> int:
        return self.config.swarm_size or default_swarm_size(self.n_features)

    def _objectives(self, pool: EvaluationPool, positions: np.ndarray) -> np.ndarray:
        masks = [decode_continuous(x, self.n_features) for x in positions]
        return np.array([to_objective(s) for s in self._evaluate_masks(pool, masks)])

    def _search(self, pool: EvaluationPool) -> OptimizerResult:
        cfg = self.config
        rng = np.random.RandomState(self.seed)
        s, n = self.swarm_size, self.n_features

        X = rng.uniform(0.0, 1.0, size=(s, n))
        V = (rng.uniform(0.0, 1.0, size=(s, n)) - X) / 2.0
        f = self._objectives(pool, X)
        P, fP = X.copy(), f.copy()
        g = int(np.argmin(fP))
        G, fG = P[g].copy(), float(fP[g])

        logbook = tools.Logbook()
        logbook.header = ["iter", "nevals", "avg", "max", "selected"]
        logbook.record(iter=0, nevals=s, avg=from_objective(f.mean()), max=from_objective(fG), selected=int(decode_continuous(G).sum()))

        aborted = False
        for it in range(1, cfg.maxit + 1):
            if self.deadline_passed():
                aborted = True
                break
            r_p = rng.uniform(0.0, 1.0, size=(s, n))
            r_g = rng.uniform(0.0, 1.0, size=(s, n))
            V = cfg.inertia * V + cfg.cognitive * r_p * (P - X) + cfg.social * r_g * (G - X)
            X = X + V
            outside = (X < 0.0) | (X > 1.0)
            X = np.clip(X, 0.0, 1.0)
            V[outside] = 0.0

            f = self._objectives(pool, X)
            improved = f < fP
            P[improved] = X[improved]
            fP[improved] = f[improved]
            g = int(np.argmin(fP))
            if fP[g] < fG:
                G, fG = P[g].copy(), float(fP[g])

            logbook.record(iter=it, nevals=s, avg=from_objective(f.mean()), max=from_objective(fG), selected=int(decode_continuous(G).sum()))
            logger.debug("[PSO] iter=%d avg=%.4f best=%.4f", it, from_objective(f.mean()), from_objective(fG))

        return OptimizerResult(
            name=self.name,
            best_mask=decode_continuous(G, n),
            best_score=from_objective(fG),
            n_evals=self.n_evals,
            trace=logbook,
            aborted=aborted,
            best_params=G,
        )
