"""
Fitness evaluator: train a classifier on the selected columns of the training
set and score macro-F1 on the held-out test set.

The score for a mask is not cached. The forest is stochastic, so the same
mask can legitimately score differently on two calls.
"""

from __future__ import annotations

import logging
import multiprocessing
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from fsearch.classifiers import ClassifierBackend, RandomForestBackend
from fsearch.errors import ConfigurationError, InvalidMaskLength, LabelMismatch
from fsearch.metrics import macro_f1

logger = logging.getLogger(__name__)

# Returned for a mask that selects no column; the classifier is not trained.
EMPTY_MASK_FITNESS = 0.0


def as_mask(mask: Sequence[Any]) -> np.ndarray:
    return np.asarray(mask, dtype=bool).reshape(-1)


def _check_inputs(mask: np.ndarray, train_X, train_y, test_X, test_y) -> None:
    n_train_cols = train_X.shape[1]
    if mask.shape[0] != n_train_cols:
        raise InvalidMaskLength(n_train_cols, mask.shape[0])
    if test_X.shape[1] != n_train_cols:
        raise InvalidMaskLength(n_train_cols, test_X.shape[1], what="test matrix width")
    if len(train_y) != train_X.shape[0]:
        raise LabelMismatch(f"{len(train_y)} training labels for {train_X.shape[0]} training rows")
    if len(test_y) != test_X.shape[0]:
        raise LabelMismatch(f"{len(test_y)} test labels for {test_X.shape[0]} test rows")


def evaluate(
    mask: Sequence[Any],
    train_X: np.ndarray,
    train_y: np.ndarray,
    test_X: np.ndarray,
    test_y: np.ndarray,
    model_budget: int,
    classifier: Optional[ClassifierBackend] = None,
    random_state: Optional[int] = None,
) -> float:
    """Macro-F1 on the test set of a classifier trained on the columns ``mask`` selects."""
    mask = as_mask(mask)
    _check_inputs(mask, train_X, train_y, test_X, test_y)
    if not mask.any():
        return EMPTY_MASK_FITNESS

    if classifier is None:
        classifier = RandomForestBackend()
    model = classifier.train(train_X[:, mask], train_y, model_budget, random_state=random_state)
    proba = classifier.predict_proba(model, test_X[:, mask])
    if proba.shape[0] != test_X.shape[0]:
        raise LabelMismatch(f"classifier returned {proba.shape[0]} probability rows for {test_X.shape[0]} test rows")
    if proba.shape[1] == 0:
        raise LabelMismatch("classifier returned no class columns")

    classes = proba.columns.to_numpy()
    y_pred = classes[np.argmax(proba.to_numpy(), axis=1)]
    return macro_f1(test_y, y_pred)


def seed_from_mask(mask: Sequence[Any], base_seed: int) -> int:
    # Stable seed derived from base_seed and the mask's bit pattern
    h = 0
    for b in as_mask(mask):
        h = ((h << 1) ^ int(b)) & 0x7fffffff
    return int((base_seed * 1315423911) ^ h) & 0x7fffffff


class FitnessEvaluator:
    """Binds the train/test split, classifier and tree budget into ``mask -> score``.

    Each call draws a fresh classifier seed from the evaluator's own
    RandomState, so a run is repeatable given ``seed`` while repeated masks
    still see independent forests.
    """

    def __init__(
        self,
        train_X: np.ndarray,
        train_y: np.ndarray,
        test_X: np.ndarray,
        test_y: np.ndarray,
        model_budget: int = 25,
        classifier: Optional[ClassifierBackend] = None,
        seed: Optional[int] = None,
    ) -> None:
        self.train_X = train_X
        self.train_y = train_y
        self.test_X = test_X
        self.test_y = test_y
        self.model_budget = int(model_budget)
        self.classifier = classifier if classifier is not None else RandomForestBackend()
        self.seed = seed
        self.rng = np.random.RandomState(seed)
        self.n_evals = 0

    @property
    def n_features(self) -> int:
        return int(self.train_X.shape[1])

    def __call__(self, mask: Sequence[Any]) -> float:
        return self.evaluate_with_seed(mask, int(self.rng.randint(0, 2**31 - 1)))

    def evaluate_with_seed(self, mask: Sequence[Any], random_state: Optional[int]) -> float:
        self.n_evals += 1
        return evaluate(
            mask,
            self.train_X,
            self.train_y,
            self.test_X,
            self.test_y,
            self.model_budget,
            classifier=self.classifier,
            random_state=random_state,
        )

    def with_budget(self, model_budget: int) -> "FitnessEvaluator":
        return FitnessEvaluator(
            self.train_X,
            self.train_y,
            self.test_X,
            self.test_y,
            model_budget=model_budget,
            classifier=self.classifier,
            seed=self.seed,
        )


# --- Per-process evaluation context for multiprocessing ---
_EVAL_CTX: Dict[str, Any] = {}


def _init_eval_worker(ctx: Dict[str, Any]) -> None:
    """Pool initializer: keep the evaluator in the worker so it is pickled once, not per task."""
    global _EVAL_CTX
    _EVAL_CTX = dict(ctx)


def _evaluate_in_worker(mask: List[int]) -> float:
    evaluator = _EVAL_CTX["evaluator"]
    base_seed = int(_EVAL_CTX.get("base_seed", 0))
    return evaluator.evaluate_with_seed(mask, seed_from_mask(mask, base_seed))


class EvaluationPool:
    """Evaluates a batch of masks, serially or on a process pool when ``n_procs > 1``.

    Batch members are independent: each reads the shared split and writes only
    its own result slot, so evaluation order does not matter.
    """

    def __init__(self, fitness, n_procs: int = 1) -> None:
        self.fitness = fitness
        self.n_procs = int(n_procs)
        self._pool = None

    def __enter__(self) -> "EvaluationPool":
        if self.n_procs > 1:
            if not isinstance(self.fitness, FitnessEvaluator):
                raise ConfigurationError("n_procs > 1 requires a FitnessEvaluator (picklable) as fitness")
            base_seed = self.fitness.seed if self.fitness.seed is not None else 0
            ctx = {"evaluator": self.fitness, "base_seed": int(base_seed)}
            self._pool = multiprocessing.Pool(processes=self.n_procs, initializer=_init_eval_worker, initargs=(ctx,))
            logger.info("[EVAL] process pool started with n_procs=%d", self.n_procs)
        return self

    def map(self, masks: List[np.ndarray]) -> List[float]:
        if self._pool is not None:
            return [float(v) for v in self._pool.map(_evaluate_in_worker, [as_mask(m).astype(int).tolist() for m in masks])]
        return [float(self.fitness(m)) for m in masks]

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._pool is None:
            return
        if exc_type is None:
            self._pool.close()
        else:
            self._pool.terminate()
        self._pool.join()
        self._pool = None
