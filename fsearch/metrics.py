"""
Macro-averaged F1 over the union of true and predicted labels.

Per-class F1 = 2PR / (P + R) from a full confusion matrix (rows: true,
columns: predicted). Any ratio with a zero denominator gives F1 = 0 for that
class; the mean is taken uniformly over all classes in the union.
"""

from __future__ import annotations

from typing import Set, Tuple

import numpy as np
from sklearn.metrics import confusion_matrix

from fsearch.errors import LabelMismatch


def _label_kinds(labels: np.ndarray) -> Set[bool]:
    # True for text labels, False for anything else
    if labels.dtype.kind in "US":
        return {True}
    if labels.dtype.kind != "O":
        return {False}
    return {isinstance(v, (str, bytes)) for v in labels.tolist()}


def label_union(y_true: np.ndarray, y_pred: np.ndarray) -> np.ndarray:
    """Sorted union of both label sets; text and numeric labels cannot be mixed."""
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)
    if len(_label_kinds(y_true) | _label_kinds(y_pred)) > 1:
        raise LabelMismatch(
            f"cannot mix text and numeric labels: true {y_true.dtype} vs predicted {y_pred.dtype}"
        )
    return np.union1d(y_true, y_pred)


def union_confusion(y_true: np.ndarray, y_pred: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Return (confusion matrix, labels) over the union of both label sets."""
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)
    if y_true.shape[0] != y_pred.shape[0]:
        raise LabelMismatch(f"{y_true.shape[0]} true labels vs {y_pred.shape[0]} predictions")
    labels = label_union(y_true, y_pred)
    try:
        cm = confusion_matrix(y_true, y_pred, labels=labels)
    except ValueError as e:
        raise LabelMismatch(f"true and predicted labels cannot be reconciled: {e}") from e
    return cm, labels


def per_class_f1(cm: np.ndarray) -> np.ndarray:
    cm = np.asarray(cm, dtype=float)
    tp = np.diag(cm)
    with np.errstate(divide="ignore", invalid="ignore"):
        precision = tp / cm.sum(axis=0)
        recall = tp / cm.sum(axis=1)
        f1 = 2.0 * precision * recall / (precision + recall)
    return np.where(np.isfinite(f1), f1, 0.0)


def macro_f1_from_confusion(cm: np.ndarray) -> float:
    cm = np.asarray(cm)
    if cm.ndim != 2 or cm.shape[0] != cm.shape[1]:
        raise ValueError(f"confusion matrix must be square, got shape {cm.shape}")
    if cm.shape[0] == 0:
        return 0.0
    return float(np.mean(per_class_f1(cm)))


def macro_f1(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    cm, _labels = union_confusion(y_true, y_pred)
    return macro_f1_from_confusion(cm)
