import random

import numpy as np
import pytest
from deap import creator

from fsearch.config import GAConfig
from fsearch.errors import ConfigurationError, InvalidMaskLength
from fsearch.ga import GeneticSearch, cx_one_point, mut_flip_bit, sel_roulette


def count_fitness(mask):
    return float(np.count_nonzero(mask)) / mask.size


def _individual(bits, score=None):
    ind = creator.MaskIndividual(bits)
    if score is not None:
        ind.fitness.values = (score,)
    return ind


def test_best_fitness_never_decreases():
    cfg = GAConfig(pop_size=10, maxiter=20, run=20, pmutation=0.2)
    result = GeneticSearch(count_fitness, 12, cfg, seed=1).run()
    maxima = result.trace.select("max")
    assert all(b >= a for a, b in zip(maxima, maxima[1:]))
    assert result.best_score == pytest.approx(max(maxima))
    assert result.best_mask.shape == (12,) and result.best_mask.dtype == bool
    assert result.best_score == pytest.approx(count_fitness(result.best_mask))
    assert result.n_evals <= cfg.pop_size * cfg.maxiter
    assert result.population.shape == (cfg.pop_size, 12)


def test_same_seed_same_run():
    cfg = GAConfig(pop_size=8, maxiter=6, run=6)
    a = GeneticSearch(count_fitness, 10, cfg, seed=7).run()
    b = GeneticSearch(count_fitness, 10, cfg, seed=7).run()
    assert np.array_equal(a.best_mask, b.best_mask)
    assert a.trace.select("max") == b.trace.select("max")
    assert a.n_evals == b.n_evals


def test_stops_after_patience_without_improvement():
    cfg = GAConfig(pop_size=6, maxiter=30, run=3)
    result = GeneticSearch(lambda m: 0.5, 8, cfg, seed=0).run()
    # gen 0 sets the best; gens 1..3 do not improve it
    assert len(result.trace) == 4
    assert result.trace[-1]["stagnation"] == 3


def test_zero_fitness_population_still_evolves():
    cfg = GAConfig(pop_size=6, maxiter=4, run=10)
    result = GeneticSearch(lambda m: 0.0, 5, cfg, seed=2).run()
    assert len(result.trace) == 4
    assert result.best_score == 0.0


def test_fitness_errors_end_the_run():
    def bad_fitness(mask):
        raise InvalidMaskLength(3, mask.size)

    with pytest.raises(InvalidMaskLength):
        GeneticSearch(bad_fitness, 5, GAConfig(pop_size=4, maxiter=2), seed=0).run()


def test_invalid_config_is_rejected_before_evaluation():
    calls = []

    def fitness(mask):
        calls.append(1)
        return 0.0

    with pytest.raises(ConfigurationError):
        GeneticSearch(fitness, 5, GAConfig(pop_size=4, elitism=4), seed=0).run()
    assert calls == []


def test_process_pool_needs_picklable_evaluator():
    with pytest.raises(ConfigurationError):
        GeneticSearch(count_fitness, 5, GAConfig(pop_size=4, maxiter=2), seed=0, n_procs=2).run()


def test_roulette_falls_back_to_uniform():
    pop = [_individual([0, 1], 0.0), _individual([1, 0], 0.0)]
    chosen = sel_roulette(pop, 5, random.Random(0))
    assert len(chosen) == 5
    assert all(c in pop for c in chosen)


def test_roulette_never_picks_zero_weight():
    pop = [_individual([0, 0], 0.0), _individual([1, 1], 1.0)]
    chosen = sel_roulette(pop, 20, random.Random(0))
    assert all(c is pop[1] for c in chosen)


def test_one_point_crossover_swaps_tails():
    a, b = _individual([0] * 6), _individual([1] * 6)
    cx_one_point(a, b, random.Random(5))
    cut = a.index(1)
    assert 1 <= cut <= 5
    assert list(a) == [0] * cut + [1] * (6 - cut)
    assert list(b) == [1] * cut + [0] * (6 - cut)


def test_flip_bit_probabilities():
    ind = _individual([0, 1, 0, 1])
    mut_flip_bit(ind, 1.0, random.Random(0))
    assert list(ind) == [1, 0, 1, 0]
    mut_flip_bit(ind, 0.0, random.Random(0))
    assert list(ind) == [1, 0, 1, 0]


def test_deadline_keeps_best_so_far():
    cfg = GAConfig(pop_size=8, maxiter=10, run=5)
    result = GeneticSearch(count_fitness, 10, cfg, seed=0, time_limit=1e-9).run()
    assert result.aborted
    assert len(result.trace) == 1
    assert result.n_evals == cfg.pop_size
    assert result.best_mask.shape == (10,)
    assert result.best_score == pytest.approx(count_fitness(result.best_mask))
    assert result.best_score == pytest.approx(result.trace[0]["max"])


def test_run_leaves_global_random_untouched():
    random.seed(123)
    state = random.getstate()
    GeneticSearch(count_fitness, 8, GAConfig(pop_size=6, maxiter=3), seed=4).run()
    assert random.getstate() == state
