"""
Wires dataset, evaluator, optimizers and aggregation into one search run.

Configuration is validated before any optimizer starts. Each optimizer gets
its own evaluator (own seed stream) and its own state; a fitness error ends
only that optimizer, and the report marks it failed.
"""

from __future__ import annotations

import logging
import multiprocessing
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from fsearch.aggregate import ComparisonReport, Outcome, aggregate_results
from fsearch.base import OptimizerResult, SearchOptimizer
from fsearch.classifiers import ClassifierBackend, make_classifier
from fsearch.config import OPTIMIZER_NAMES, SearchConfig
from fsearch.data import Dataset, split_dataset
from fsearch.errors import FeatureSearchError
from fsearch.evaluator import FitnessEvaluator
from fsearch.ga import GeneticSearch
from fsearch.pso import ParticleSwarmSearch
from fsearch.sa import AnnealingSearch

logger = logging.getLogger(__name__)

OPTIMIZERS = {
    "ga": GeneticSearch,
    "pso": ParticleSwarmSearch,
    "sa": AnnealingSearch,
}


@dataclass(frozen=True)
class SearchOutcome:
    results: Dict[str, Outcome]
    report: ComparisonReport

    def result(self, name: str) -> OptimizerResult:
        outcome = self.results[name]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _evaluator_seed(base_seed: Optional[int], name: str) -> Optional[int]:
    if base_seed is None:
        return None
    return int(base_seed) + 101 * (OPTIMIZER_NAMES.index(name) + 1)


def build_evaluator(
    split: Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray],
    config: SearchConfig,
    classifier: Optional[ClassifierBackend] = None,
    seed: Optional[int] = None,
) -> FitnessEvaluator:
    train_X, train_y, test_X, test_y = split
    if classifier is None:
        classifier = make_classifier(config.evaluator.classifier, threads=config.evaluator.threads)
    return FitnessEvaluator(
        train_X,
        train_y,
        test_X,
        test_y,
        model_budget=config.evaluator.model_budget,
        classifier=classifier,
        seed=seed,
    )


def build_optimizer(name: str, fitness, n_features: int, config: SearchConfig) -> SearchOptimizer:
    cls = OPTIMIZERS[name]
    return cls(
        fitness,
        n_features,
        getattr(config, name),
        seed=config.optimizer_seed(name),
        n_procs=config.n_procs,
        time_limit=config.time_limit,
    )


def run_optimizer(name: str, fitness, n_features: int, config: SearchConfig) -> Outcome:
    """Run one optimizer; a search error is returned instead of raised."""
    try:
        return build_optimizer(name, fitness, n_features, config).run()
    except FeatureSearchError as e:
        logger.error("[%s] run aborted: %s: %s", name.upper(), type(e).__name__, e)
        return e


def _run_optimizer_task(task: Tuple[str, FitnessEvaluator, int, SearchConfig]) -> Outcome:
    return run_optimizer(*task)


def run_search(
    split: Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray],
    config: SearchConfig,
    feature_names: Optional[Sequence[str]] = None,
    classifier: Optional[ClassifierBackend] = None,
) -> SearchOutcome:
    config.validate()
    n_features = int(split[0].shape[1])
    names: List[str] = list(config.optimizers)
    base_seed = config.evaluator.seed
    tasks = [
        (name, build_evaluator(split, config, classifier, seed=_evaluator_seed(base_seed, name)), n_features, config)
        for name in names
    ]

    if config.concurrent_optimizers and len(tasks) > 1:
        logger.info("[RUN] running %s in %d processes", names, len(tasks))
        with multiprocessing.Pool(processes=len(tasks)) as pool:
            outcomes = pool.map(_run_optimizer_task, tasks)
        results: Dict[str, Outcome] = dict(zip(names, outcomes))
    else:
        results = {}
        for task in tasks:
            results[task[0]] = _run_optimizer_task(task)

    final_evaluator = build_evaluator(split, config, classifier, seed=base_seed)
    report = aggregate_results(results, final_evaluator, config.evaluator.final_budget, feature_names)
    return SearchOutcome(results=results, report=report)


def search_dataset(dataset: Dataset, config: SearchConfig, classifier: Optional[ClassifierBackend] = None) -> SearchOutcome:
    """Validate, split with the configured ratio and seed, then run the search."""
    config.validate()
    split = split_dataset(dataset, ratio=config.split_ratio, seed=config.split_seed)
    return run_search(split, config, feature_names=dataset.feature_names, classifier=classifier)
