"""
Dataset provider: load a labelled feature matrix, drop identifier columns,
standardise numeric columns and split it into stratified train/test parts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.datasets import fetch_openml, load_breast_cancer, load_iris, load_wine
from sklearn.model_selection import train_test_split
from sklearn.preprocessing import StandardScaler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dataset:
    X: np.ndarray
    y: np.ndarray
    feature_names: List[str]


def _read_only(a: np.ndarray) -> np.ndarray:
    a = np.array(a, copy=True)
    a.setflags(write=False)
    return a


def _encode_target(y_series: pd.Series) -> np.ndarray:
    if str(getattr(y_series, "dtype", "")) == "category":
        return np.asarray(y_series.astype(str))
    return np.asarray(y_series)


def _finish(X_df: pd.DataFrame, y: np.ndarray, drop_cols: Sequence[str], standardize: bool) -> Dataset:
    drop = [c for c in drop_cols if c in X_df.columns]
    if drop:
        X_df = X_df.drop(columns=drop)
    non_numeric = [c for c in X_df.columns if not pd.api.types.is_numeric_dtype(X_df[c])]
    if non_numeric:
        raise ValueError(f"Non-numeric feature columns must be removed or encoded first: {non_numeric}")
    X = X_df.to_numpy(dtype=float)
    if standardize:
        X = StandardScaler().fit_transform(X)
    return Dataset(X=_read_only(X), y=_read_only(y), feature_names=[str(c) for c in X_df.columns])


def load_dataset(
    csv: Optional[str] = None,
    target_col: Optional[str] = None,
    sklearn_dataset: Optional[str] = None,
    openml_name: Optional[str] = None,
    openml_id: Optional[str] = None,
    openml_version: Optional[int] = None,
    data_home: Optional[str] = None,
    drop_cols: Sequence[str] = (),
    standardize: bool = True,
) -> Dataset:
    if csv:
        if not target_col:
            raise ValueError("--target-col is required when using --csv")
        df = pd.read_csv(csv)
        if target_col not in df.columns:
            raise ValueError(f"Target column '{target_col}' not found in CSV")
        y = _encode_target(df[target_col])
        return _finish(df.drop(columns=[target_col]), y, drop_cols, standardize)

    if sklearn_dataset:
        name = sklearn_dataset.lower()
        if name == "breast_cancer":
            data = load_breast_cancer(as_frame=True)
        elif name == "iris":
            data = load_iris(as_frame=True)
        elif name == "wine":
            data = load_wine(as_frame=True)
        else:
            raise ValueError("Unsupported sklearn dataset. Choose breast_cancer|iris|wine")
        return _finish(data.data, np.asarray(data.target), drop_cols, standardize)

    if openml_name or openml_id:
        # Requires network access unless data_home already holds the cache
        fetch_kwargs = {"as_frame": True, "parser": "auto"}
        if data_home:
            fetch_kwargs["data_home"] = data_home
        if openml_version is not None:
            fetch_kwargs["version"] = openml_version
        if openml_name:
            ds = fetch_openml(name=openml_name, **fetch_kwargs)
        else:
            try:
                data_id = int(openml_id)
            except ValueError:
                raise ValueError("--openml-id must be an integer")
            ds = fetch_openml(data_id=data_id, **fetch_kwargs)

        if target_col:
            if target_col not in ds.frame.columns:
                raise ValueError(f"Target column '{target_col}' not found in OpenML dataset")
            return _finish(ds.frame.drop(columns=[target_col]), _encode_target(ds.frame[target_col]), drop_cols, standardize)
        return _finish(ds.data, _encode_target(ds.target), drop_cols, standardize)

    raise ValueError("Provide either --csv with --target-col, --sklearn-dataset or an OpenML dataset")


def make_majority_vote_dataset(
    n_samples: int = 600,
    n_features: int = 10,
    informative: Sequence[int] = (2, 5, 7),
    seed: Optional[int] = 0,
) -> Dataset:
    """Synthetic data where the label is the majority vote of the informative
    columns thresholded at 0; every other column is pure noise."""
    rng = np.random.RandomState(seed)
    X = rng.normal(size=(n_samples, n_features))
    votes = (X[:, list(informative)] > 0.0).sum(axis=1)
    y = (votes * 2 > len(informative)).astype(int)
    names = [f"f{i}" for i in range(n_features)]
    return Dataset(X=_read_only(X), y=_read_only(y), feature_names=names)


def split_dataset(
    dataset: Dataset, ratio: float = 0.7, seed: Optional[int] = 42
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Stratified split into (train_X, train_y, test_X, test_y); ``ratio`` is the train share."""
    train_X, test_X, train_y, test_y = train_test_split(
        dataset.X, dataset.y, train_size=ratio, stratify=dataset.y, random_state=seed
    )
    logger.info("[DATA] split %d rows into %d train / %d test", dataset.X.shape[0], train_X.shape[0], test_X.shape[0])
    return _read_only(train_X), _read_only(train_y), _read_only(test_X), _read_only(test_y)
