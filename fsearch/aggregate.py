"""
Result aggregation: re-score each optimizer's best mask with a larger forest
and collect a comparison table. An optimizer that failed still gets a row,
marked ``failed`` with its error.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from fsearch.base import OptimizerResult
from fsearch.errors import FeatureSearchError
from fsearch.evaluator import FitnessEvaluator

logger = logging.getLogger(__name__)

Outcome = Union[OptimizerResult, BaseException]


@dataclass(frozen=True)
class ComparisonRow:
    optimizer: str
    status: str  # "ok" | "failed"
    final_f1: float = float("nan")
    n_selected: Optional[int] = None
    search_f1: float = float("nan")
    n_evals: Optional[int] = None
    aborted: bool = False
    selected_features: Tuple[str, ...] = ()
    error: str = ""


@dataclass(frozen=True)
class ComparisonReport:
    rows: Tuple[ComparisonRow, ...]
    final_budget: int

    def row(self, optimizer: str) -> ComparisonRow:
        for r in self.rows:
            if r.optimizer == optimizer:
                return r
        raise KeyError(optimizer)

    @property
    def failed(self) -> List[str]:
        return [r.optimizer for r in self.rows if r.status == "failed"]

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame([asdict(r) for r in self.rows])
        if not df.empty:
            df["selected_features"] = df["selected_features"].map(lambda names: ";".join(names))
        return df

    def to_csv(self, path: str) -> None:
        self.to_frame().to_csv(path, index=False)

    def format_table(self) -> str:
        df = self.to_frame()
        if df.empty:
            return "(no optimizer results)"
        cols = ["optimizer", "status", "final_f1", "n_selected", "search_f1", "n_evals", "error"]
        return df[cols].to_string(index=False, float_format=lambda v: f"{v:.4f}")


def _names_for(mask: np.ndarray, feature_names: Optional[Sequence[str]]) -> Tuple[str, ...]:
    idx = np.flatnonzero(mask)
    if feature_names is None:
        return tuple(f"f{i}" for i in idx)
    return tuple(str(feature_names[i]) for i in idx)


def aggregate_results(
    outcomes: Dict[str, Outcome],
    evaluator: FitnessEvaluator,
    final_budget: int,
    feature_names: Optional[Sequence[str]] = None,
) -> ComparisonReport:
    """Score every successful optimizer's mask once with ``final_budget`` trees.

    ``outcomes`` maps optimizer name to its result or to the exception that
    ended it. Errors during final scoring are not retried: they are logged
    against the optimizer and re-raised.
    """
    final = evaluator.with_budget(final_budget)
    rows: List[ComparisonRow] = []
    for name, outcome in outcomes.items():
        if isinstance(outcome, BaseException):
            rows.append(ComparisonRow(optimizer=name, status="failed", error=f"{type(outcome).__name__}: {outcome}"))
            continue
        try:
            score = float(final(outcome.best_mask))
        except FeatureSearchError as e:
            logger.error("[FINAL] %s: final evaluation failed: %s", name, e)
            raise
        logger.info("[FINAL] %s: macro-F1=%.4f with %d features", name, score, outcome.n_selected)
        rows.append(
            ComparisonRow(
                optimizer=name,
                status="ok",
                final_f1=score,
                n_selected=outcome.n_selected,
                search_f1=float(outcome.best_score),
                n_evals=int(outcome.n_evals),
                aborted=bool(outcome.aborted),
                selected_features=_names_for(outcome.best_mask, feature_names),
            )
        )
    return ComparisonReport(rows=tuple(rows), final_budget=int(final_budget))


def selection_frequency(population: np.ndarray, feature_names: Optional[Sequence[str]] = None) -> pd.Series:
    """Fraction of individuals selecting each feature (histogram input)."""
    population = np.asarray(population, dtype=float)
    if population.ndim != 2 or population.shape[0] == 0:
        raise ValueError("population must be a non-empty 2-D array")
    if feature_names is None:
        feature_names = [f"f{i}" for i in range(population.shape[1])]
    return pd.Series(population.mean(axis=0), index=list(feature_names), name="selection_frequency")


def trace_frame(result: OptimizerResult) -> pd.DataFrame:
    return pd.DataFrame(result.trace)
