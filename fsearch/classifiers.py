"""
Classifier capability used by the fitness evaluator: ``train`` and
``predict_proba``. Optimizers never see a classifier directly.
"""

from __future__ import annotations

from typing import Any, Optional

import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier

from fsearch.errors import TrainingError


class ClassifierBackend:
    """Interface: ``train(X, y, num_trees) -> model`` and ``predict_proba(model, X)``.

    ``predict_proba`` returns a DataFrame with one row per sample and one
    column per class, labelled by the class value.
    """

    name = "base"

    def train(self, X: np.ndarray, y: np.ndarray, num_trees: int, random_state: Optional[int] = None) -> Any:
        raise NotImplementedError

    def predict_proba(self, model: Any, X: np.ndarray) -> pd.DataFrame:
        raise NotImplementedError


def _require_two_classes(y: np.ndarray) -> None:
    n_classes = len(np.unique(y))
    if n_classes < 2:
        raise TrainingError(f"training labels contain {n_classes} distinct class(es); need at least 2")


class RandomForestBackend(ClassifierBackend):
    """Random forest with a per-call tree budget; ``threads`` is passed to n_jobs."""

    name = "rf"

    def __init__(self, threads: int = 1) -> None:
        self.threads = threads

    def train(self, X, y, num_trees, random_state=None):
        _require_two_classes(y)
        clf = RandomForestClassifier(n_estimators=int(num_trees), random_state=random_state, n_jobs=self.threads)
        try:
            clf.fit(X, y)
        except ValueError as e:
            raise TrainingError(f"random forest failed to fit: {e}") from e
        return clf

    def predict_proba(self, model, X):
        return pd.DataFrame(model.predict_proba(X), columns=model.classes_)


class CentroidStub(ClassifierBackend):
    """Deterministic nearest-centroid stand-in for tests.

    Probabilities are a softmax over negative squared distances to the class
    centroids; the tree budget and seed are ignored. ``train_calls`` counts
    how often ``train`` ran.
    """

    name = "stub"

    def __init__(self) -> None:
        self.train_calls = 0

    def train(self, X, y, num_trees, random_state=None):
        self.train_calls += 1
        _require_two_classes(y)
        X = np.asarray(X, dtype=float)
        classes = np.unique(y)
        centroids = np.vstack([X[y == c].mean(axis=0) for c in classes])
        return {"classes": classes, "centroids": centroids}

    def predict_proba(self, model, X):
        X = np.asarray(X, dtype=float)
        d2 = ((X[:, None, :] - model["centroids"][None, :, :]) ** 2).sum(axis=2)
        logits = -d2 - (-d2).max(axis=1, keepdims=True)
        p = np.exp(logits)
        p /= p.sum(axis=1, keepdims=True)
        return pd.DataFrame(p, columns=model["classes"])


def make_classifier(name: str, threads: int = 1) -> ClassifierBackend:
    name = name.lower()
    if name == "rf":
        return RandomForestBackend(threads=threads)
    if name == "stub":
        return CentroidStub()
    raise ValueError("Unsupported classifier. Choose rf|stub")
