import numpy as np
import pytest

from fsearch.classifiers import CentroidStub
from fsearch.data import make_majority_vote_dataset, split_dataset

INFORMATIVE = (2, 5, 7)


@pytest.fixture(scope="session")
def majority_data():
    return make_majority_vote_dataset(n_samples=300, n_features=10, informative=INFORMATIVE, seed=0)


@pytest.fixture(scope="session")
def majority_split(majority_data):
    return split_dataset(majority_data, ratio=0.7, seed=42)


@pytest.fixture
def stub():
    return CentroidStub()


def target_match_fitness(target):
    """Share of positions where the mask agrees with ``target``; peaks at 1.0."""
    target = np.asarray(target, dtype=bool)

    def fitness(mask):
        return float(np.mean(np.asarray(mask, dtype=bool) == target))

    return fitness
