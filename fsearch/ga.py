"""
Genetic algorithm over bit strings, built on DEAP's toolbox.

Selection is fitness-proportionate, crossover is one-point, mutation flips
each bit independently. The best ``elitism`` individuals pass unchanged (with
their fitness) into the next generation, so the per-generation best never
decreases. Operators draw from the optimizer's own ``random.Random``.
"""

from __future__ import annotations

import logging
import math
import random
from typing import List, Optional

import numpy as np
from deap import base, creator, tools

from fsearch.base import OptimizerResult, SearchOptimizer
from fsearch.config import GAConfig
from fsearch.encoding import encode_ga
from fsearch.evaluator import EvaluationPool

logger = logging.getLogger(__name__)

if "MaskFitness" not in creator.__dict__:
    creator.create("MaskFitness", base.Fitness, weights=(1.0,))
if "MaskIndividual" not in creator.__dict__:
    creator.create("MaskIndividual", list, fitness=creator.MaskFitness)


def sel_roulette(individuals: List, k: int, rng: random.Random) -> List:
    """``tools.selRoulette`` drawing from ``rng``; uniform when no individual has positive fitness."""
    weights = [max(ind.fitness.values[0], 0.0) for ind in individuals]
    if sum(weights) <= 0.0:
        return [rng.choice(individuals) for _ in range(k)]
    return rng.choices(individuals, weights=weights, k=k)


def cx_one_point(ind1, ind2, rng: random.Random):
    """``tools.cxOnePoint`` drawing the cut point from ``rng``."""
    size = min(len(ind1), len(ind2))
    if size < 2:
        return ind1, ind2
    pt = rng.randint(1, size - 1)
    ind1[pt:], ind2[pt:] = ind2[pt:], ind1[pt:]
    return ind1, ind2


def mut_flip_bit(individual, indpb: float, rng: random.Random):
    """``tools.mutFlipBit`` drawing from ``rng``."""
    for i in range(len(individual)):
        if rng.random() < indpb:
            individual[i] = 1 - int(individual[i])
    return (individual,)


class GeneticSearch(SearchOptimizer):
    name = "ga"

    def __init__(self, fitness, n_features: int, config: Optional[GAConfig] = None, **kwargs) -> None:
        super().__init__(fitness, n_features, config if config is not None else GAConfig(), **kwargs)

    def _toolbox(self, rng: random.Random) -> base.Toolbox:
        cfg = self.config
        toolbox = base.Toolbox()
        # Attribute generator: 1 with probability init_prob, else 0
        toolbox.register("attr_bool", lambda: 1 if rng.random() < cfg.init_prob else 0)
        toolbox.register("individual", tools.initRepeat, creator.MaskIndividual, toolbox.attr_bool, n=self.n_features)
        toolbox.register("population", tools.initRepeat, list, toolbox.individual)
        toolbox.register("select", sel_roulette, rng=rng)
        toolbox.register("mate", cx_one_point, rng=rng)
        toolbox.register("mutate", mut_flip_bit, indpb=cfg.pmutation, rng=rng)
        return toolbox

    def _search(self, pool: EvaluationPool) -> OptimizerResult:
        cfg = self.config
        rng = random.Random(self.seed)
        toolbox = self._toolbox(rng)

        hof = tools.HallOfFame(maxsize=1)
        stats = tools.Statistics(lambda ind: ind.fitness.values[0])
        stats.register("avg", np.mean)
        stats.register("std", np.std)
        stats.register("min", np.min)
        stats.register("max", np.max)
        logbook = tools.Logbook()
        logbook.header = ["gen", "nevals", "selected", "stagnation"] + stats.fields

        population = toolbox.population(n=cfg.pop_size)
        best_so_far = -math.inf
        stagnation = 0
        aborted = False

        for gen in range(cfg.maxiter):
            invalid_ind = [ind for ind in population if not ind.fitness.valid]
            scores = self._evaluate_masks(pool, [encode_ga(ind, self.n_features) for ind in invalid_ind])
            for ind, score in zip(invalid_ind, scores):
                ind.fitness.values = (score,)
            hof.update(population)

            record = stats.compile(population)
            if record["max"] > best_so_far:
                best_so_far = record["max"]
                stagnation = 0
            else:
                stagnation += 1
            logbook.record(gen=gen, nevals=len(invalid_ind), selected=sum(hof[0]), stagnation=stagnation, **record)
            logger.debug("[GA] gen=%d avg=%.4f max=%.4f stagnation=%d", gen, record["avg"], record["max"], stagnation)

            if stagnation >= cfg.run:
                logger.info("[GA] no improvement for %d generations; stopping at gen=%d", cfg.run, gen)
                break
            if gen == cfg.maxiter - 1:
                break
            if self.deadline_passed():
                aborted = True
                break

            elites = [toolbox.clone(ind) for ind in tools.selBest(population, cfg.elitism)]
            offspring = list(map(toolbox.clone, toolbox.select(population, cfg.pop_size - cfg.elitism)))
            parents = [list(ind) for ind in offspring]
            for i in range(1, len(offspring), 2):
                if rng.random() < cfg.pcrossover:
                    toolbox.mate(offspring[i - 1], offspring[i])
            for ind in offspring:
                toolbox.mutate(ind)
            # Only changed individuals are re-evaluated
            for ind, before in zip(offspring, parents):
                if list(ind) != before:
                    del ind.fitness.values
            population = elites + offspring

        best = hof[0]
        return OptimizerResult(
            name=self.name,
            best_mask=encode_ga(best, self.n_features),
            best_score=float(best.fitness.values[0]),
            n_evals=self.n_evals,
            trace=logbook,
            aborted=aborted,
            population=np.asarray(population, dtype=int),
        )
