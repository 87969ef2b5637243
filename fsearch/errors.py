from __future__ import annotations


class FeatureSearchError(Exception):
    """Base class for errors raised by the feature-subset search."""


class InvalidMaskLength(FeatureSearchError, ValueError):
    """A mask, parameter vector or test matrix does not match the number of feature columns."""

    def __init__(self, expected: int, got: int, what: str = "mask length") -> None:
        # keep every field in args so the error survives pickling from pool workers
        super().__init__(expected, got, what)
        self.expected = expected
        self.got = got
        self.what = what

    def __str__(self) -> str:
        return f"{self.what} {self.got} does not match {self.expected} feature columns"


class LabelMismatch(FeatureSearchError, ValueError):
    """Train/test label sets (or their alignment with the matrices) cannot be reconciled."""


class TrainingError(FeatureSearchError, RuntimeError):
    """The classifier could not be trained on the given subset."""


class ConfigurationError(FeatureSearchError, ValueError):
    """Invalid run configuration, detected before any optimizer starts."""
