import numpy as np
import pytest

from conftest import target_match_fitness
from fsearch.config import PSOConfig, SAConfig
from fsearch.encoding import decode_continuous
from fsearch.pso import ParticleSwarmSearch, default_swarm_size
from fsearch.sa import AnnealingSearch, temperature

TARGET = np.array([1, 0, 1, 1, 0, 0, 1, 0, 0, 1], dtype=bool)


def test_default_swarm_size():
    assert default_swarm_size(1) == 12
    assert default_swarm_size(10) == 16
    assert default_swarm_size(100) == 30


def test_pso_approaches_target_mask():
    result = ParticleSwarmSearch(target_match_fitness(TARGET), 10, PSOConfig(maxit=60), seed=0).run()
    assert result.best_score >= 0.8
    assert np.mean(result.best_mask == TARGET) == pytest.approx(result.best_score)


def test_pso_bookkeeping():
    cfg = PSOConfig(maxit=5, swarm_size=7)
    result = ParticleSwarmSearch(target_match_fitness(TARGET), 10, cfg, seed=3).run()
    assert result.n_evals == 7 * 6
    assert len(result.trace) == 6
    maxima = result.trace.select("max")
    assert all(b >= a for a, b in zip(maxima, maxima[1:]))
    assert np.all((result.best_params >= 0.0) & (result.best_params <= 1.0))
    assert np.array_equal(decode_continuous(result.best_params), result.best_mask)


def test_pso_same_seed_same_run():
    cfg = PSOConfig(maxit=4)
    a = ParticleSwarmSearch(target_match_fitness(TARGET), 10, cfg, seed=9).run()
    b = ParticleSwarmSearch(target_match_fitness(TARGET), 10, cfg, seed=9).run()
    assert np.array_equal(a.best_params, b.best_params)


def test_pso_deadline_stops_early():
    result = ParticleSwarmSearch(
        target_match_fitness(TARGET), 10, PSOConfig(maxit=50), seed=0, time_limit=1e-9
    ).run()
    assert result.aborted
    assert len(result.trace) == 1


def test_temperature_schedule():
    assert temperature(0, 10, 0.1, 0.001) == pytest.approx(0.1)
    assert temperature(9, 10, 0.1, 0.001) == pytest.approx(0.001)
    temps = [temperature(s, 10, 0.1, 0.001) for s in range(10)]
    assert all(b < a for a, b in zip(temps, temps[1:]))
    assert temperature(0, 1, 0.1, 0.001) == 0.1


def test_sa_approaches_target_mask():
    result = AnnealingSearch(target_match_fitness(TARGET), 10, SAConfig(max_call=400), seed=0).run()
    assert result.best_score >= 0.9


def test_sa_spends_exactly_its_call_budget():
    result = AnnealingSearch(target_match_fitness(TARGET), 10, SAConfig(max_call=25), seed=1).run()
    assert result.n_evals == 25
    assert len(result.trace) == 25
    assert result.trace[-1]["call"] == 25
    # best visited, not last
    assert result.best_score == pytest.approx(max(result.trace.select("current")))


def test_sa_ignores_process_count():
    search = AnnealingSearch(target_match_fitness(TARGET), 10, SAConfig(max_call=5), seed=1, n_procs=4)
    assert search.n_procs == 1
    assert search.run().n_evals == 5


def test_sa_deadline_keeps_best_so_far():
    fitness = target_match_fitness(TARGET)
    result = AnnealingSearch(fitness, 10, SAConfig(max_call=200), seed=0, time_limit=1e-9).run()
    assert result.aborted
    assert result.n_evals == 1
    assert len(result.trace) == 1
    assert result.best_mask.shape == (10,)
    assert result.best_score == pytest.approx(fitness(result.best_mask))
