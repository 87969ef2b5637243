import numpy as np
import pytest

from fsearch.encoding import (
    decode_continuous,
    encode_ga,
    from_objective,
    mask_fitness,
    negated_fitness,
    to_objective,
)
from fsearch.errors import InvalidMaskLength


def test_binary_vectors_decode_to_themselves():
    rng = np.random.RandomState(3)
    for _ in range(20):
        bits = rng.randint(0, 2, size=9)
        assert np.array_equal(decode_continuous(bits.astype(float), 9), bits.astype(bool))
        assert np.array_equal(encode_ga(bits, 9), bits.astype(bool))


def test_half_goes_to_one():
    assert decode_continuous(np.full(6, 0.5)).all()
    assert not decode_continuous(np.full(6, 0.4999)).any()


def test_out_of_box_values_are_clamped():
    mask = decode_continuous([-0.3, 1.7, 0.49, 0.51])
    assert list(mask) == [False, True, False, True]


def test_wrong_dimension_raises():
    with pytest.raises(InvalidMaskLength):
        decode_continuous(np.zeros(4), n_features=5)
    with pytest.raises(InvalidMaskLength):
        encode_ga([1, 0, 1], n_features=2)
    with pytest.raises(InvalidMaskLength):
        decode_continuous(np.zeros((2, 2)))


def test_objective_is_negated_fitness():
    def fitness(mask):
        return mask.sum() / mask.size

    v = np.array([0.9, 0.1, 0.6, 0.2])
    assert negated_fitness(fitness, v, 4) == pytest.approx(-0.5)
    assert mask_fitness(fitness, [1, 1, 0, 1], 4) == pytest.approx(0.75)
    assert from_objective(to_objective(0.42)) == pytest.approx(0.42)
