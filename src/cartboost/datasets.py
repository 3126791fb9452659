"""
Datasets consumed by the tree builders and boosting orchestrators.

A dataset is a fixed-width sample matrix whose columns are either continuous
(numeric) or categorical (any hashable, compared by equality). Labeled
datasets carry a parallel label array.
"""

import logging
import numbers
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from .exceptions import InvalidInput

logger = logging.getLogger(__name__)


class DataType(Enum):
    """Type of a feature column."""

    CONTINUOUS = "continuous"
    CATEGORICAL = "categorical"


def as_matrix(samples) -> np.ndarray:
    """
    Coerce samples to a 2-D array.

    Fully numeric input becomes float64. Anything else (strings mixed with
    numbers) is kept as an object array so categories survive untouched.
    """
    if isinstance(samples, Dataset):
        return samples.samples()

    try:
        matrix = np.asarray(samples)
        if matrix.dtype.kind in "biuf":
            matrix = matrix.astype(np.float64)
        else:
            matrix = np.asarray(samples, dtype=object)
    except ValueError as e:
        raise InvalidInput(f"Samples must have the same number of features: {e}") from e

    if matrix.ndim == 1 and matrix.size == 0:
        matrix = matrix.reshape(0, 0)

    if matrix.ndim != 2:
        raise InvalidInput(f"Samples must be a 2-D matrix, got {matrix.ndim} dimension(s)")

    return matrix


def infer_type(values: np.ndarray) -> DataType:
    """Continuous if every value is a real number, categorical otherwise."""
    if values.dtype != object:
        return DataType.CONTINUOUS

    for value in values:
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            return DataType.CATEGORICAL

    return DataType.CONTINUOUS


def goes_left(values: np.ndarray, value, data_type: DataType) -> np.ndarray:
    """Boolean mask of the samples routed to the left branch of a split."""
    if data_type is DataType.CONTINUOUS:
        return values < value

    return values == value


class Dataset:
    """Sample matrix with typed columns."""

    def __init__(self, samples, types: Optional[List[DataType]] = None):
        self._samples = as_matrix(samples)

        if types is None:
            types = [infer_type(self._samples[:, i]) for i in range(self._samples.shape[1])]
        elif len(types) != self._samples.shape[1]:
            raise InvalidInput(
                f"Expected {self._samples.shape[1]} column types, got {len(types)}"
            )

        self._types = list(types)

        self._columns = []
        for i, data_type in enumerate(self._types):
            column = self._samples[:, i]
            if data_type is DataType.CONTINUOUS:
                column = column.astype(np.float64)
            self._columns.append(column)

    def samples(self) -> np.ndarray:
        return self._samples

    def num_rows(self) -> int:
        return self._samples.shape[0]

    def num_columns(self) -> int:
        return self._samples.shape[1]

    def column(self, index: int) -> np.ndarray:
        """Values of one column; float64 for continuous columns."""
        return self._columns[index]

    def column_type(self, index: int) -> DataType:
        return self._types[index]

    def types(self) -> List[DataType]:
        return list(self._types)

    def empty(self) -> bool:
        return self.num_rows() == 0

    def __len__(self) -> int:
        return self.num_rows()


class Unlabeled(Dataset):
    """Dataset without labels, used for inference."""


class Labeled(Dataset):
    """
    Dataset with one label per sample.

    Parameters
    ----------
    samples : array-like, shape (n, d)
        Feature matrix; strings mark categorical columns.
    labels : array-like, shape (n,)
        Class labels or continuous targets.
    types : list of DataType, optional
        Column types. Inferred from the samples if omitted.
    """

    def __init__(self, samples, labels, types: Optional[List[DataType]] = None):
        super().__init__(samples, types=types)

        labels = np.asarray(labels)
        if labels.ndim != 1:
            labels = labels.ravel()

        if labels.shape[0] != self.num_rows():
            raise InvalidInput(
                f"Number of labels must equal number of samples: "
                f"{labels.shape[0]} vs {self.num_rows()}"
            )

        self._labels = labels

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, label: str) -> "Labeled":
        """Build a labeled dataset from a DataFrame and the name of its label column."""
        if label not in frame.columns:
            raise InvalidInput(f"Label column '{label}' not found in frame")

        features = frame.drop(columns=[label])
        return cls(features.to_numpy(), frame[label].to_numpy())

    def labels(self) -> np.ndarray:
        return self._labels

    def possible_outcomes(self) -> np.ndarray:
        """Distinct labels in order of first appearance."""
        return pd.unique(self._labels)

    def subset(self, indices: np.ndarray) -> "Labeled":
        indices = np.asarray(indices, dtype=np.intp)
        return Labeled(self._samples[indices], self._labels[indices], types=self._types)

    def partition(self, column: int, value) -> Tuple["Labeled", "Labeled"]:
        """
        Split into (left, right) on a column.

        Continuous columns send values strictly below ``value`` left,
        categorical columns send values equal to ``value`` left.
        """
        mask = goes_left(self.column(column), value, self.column_type(column))
        return self.subset(np.flatnonzero(mask)), self.subset(np.flatnonzero(~mask))

    def randomize(self, rng: np.random.Generator) -> "Labeled":
        """Copy with the rows shuffled."""
        return self.subset(rng.permutation(self.num_rows()))

    def split(self, ratio: float = 0.5) -> Tuple["Labeled", "Labeled"]:
        """Split into the first ``ratio`` of the rows and the rest, keeping row order."""
        if ratio <= 0.0 or ratio >= 1.0:
            raise InvalidInput(f"Ratio must be strictly between 0 and 1, {ratio} given")

        k = int(round(ratio * self.num_rows()))
        indices = np.arange(self.num_rows())
        return self.subset(indices[:k]), self.subset(indices[k:])

    def random_subset(self, size: int, rng: np.random.Generator) -> "Labeled":
        """Uniform random subset of ``size`` rows drawn without replacement."""
        if size < 1 or size > self.num_rows():
            raise InvalidInput(
                f"Subset size must be between 1 and {self.num_rows()}, {size} given"
            )

        return self.subset(rng.choice(self.num_rows(), size=size, replace=False))

    def random_weighted_subset_with_replacement(
        self,
        size: int,
        weights: np.ndarray,
        rng: np.random.Generator
    ) -> "Labeled":
        """Draw ``size`` rows with replacement, each with probability proportional to its weight."""
        weights = np.asarray(weights, dtype=np.float64)

        if weights.shape[0] != self.num_rows():
            raise InvalidInput(
                f"Number of weights must equal number of samples: "
                f"{weights.shape[0]} vs {self.num_rows()}"
            )

        if size < 1:
            raise InvalidInput(f"Subset size must be at least 1, {size} given")

        p = weights / np.sum(weights)
        return self.subset(rng.choice(self.num_rows(), size=size, replace=True, p=p))
