import numpy as np
import pytest

from fsearch.errors import LabelMismatch
from fsearch.metrics import macro_f1, macro_f1_from_confusion, per_class_f1, union_confusion


def test_macro_f1_by_hand():
    # class 0: P=1, R=1/2 -> 2/3 ; class 1: P=2/3, R=1 -> 4/5
    score = macro_f1(np.array([0, 0, 1, 1]), np.array([0, 1, 1, 1]))
    assert score == pytest.approx((2.0 / 3.0 + 0.8) / 2.0)


def test_perfect_prediction_scores_one():
    y = np.array(["a", "b", "c", "a"])
    assert macro_f1(y, y.copy()) == pytest.approx(1.0)


def test_zero_denominator_classes_count_as_zero():
    # label 1 is never predicted, label 2 never occurs: both contribute 0
    y_true = np.array([0, 0, 1])
    y_pred = np.array([0, 0, 2])
    cm, labels = union_confusion(y_true, y_pred)
    assert list(labels) == [0, 1, 2]
    assert cm.shape == (3, 3)
    assert list(per_class_f1(cm)) == [1.0, 0.0, 0.0]
    assert macro_f1(y_true, y_pred) == pytest.approx(1.0 / 3.0)


def test_union_includes_labels_missing_from_truth():
    y_true = np.array([1, 1, 1, 1])
    y_pred = np.array([1, 1, 1, 0])
    _cm, labels = union_confusion(y_true, y_pred)
    assert list(labels) == [0, 1]
    # class 1: P=1, R=3/4 -> 6/7 ; class 0: 0
    assert macro_f1(y_true, y_pred) == pytest.approx((6.0 / 7.0) / 2.0)


def test_confusion_edge_cases():
    assert macro_f1_from_confusion(np.zeros((0, 0))) == 0.0
    assert macro_f1_from_confusion(np.zeros((2, 2))) == 0.0
    with pytest.raises(ValueError):
        macro_f1_from_confusion(np.zeros((2, 3)))


def test_length_mismatch_raises():
    with pytest.raises(LabelMismatch):
        macro_f1(np.array([0, 1, 1]), np.array([0, 1]))


def test_text_and_numeric_labels_raise_label_mismatch():
    with pytest.raises(LabelMismatch):
        macro_f1(np.array(["neg", "pos", "pos"]), np.array([0, 1, 1]))
    with pytest.raises(LabelMismatch):
        macro_f1(np.array([0, "pos", 1], dtype=object), np.array([0, 1, 1]))
