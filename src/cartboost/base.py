"""
Behaviour shared by every cartboost estimator.
"""

import logging
from abc import ABC, abstractmethod

import numpy as np

from .datasets import Dataset, Labeled, Unlabeled
from .exceptions import InvalidInput, NotFitted


class Learner(ABC):
    """
    Abstract base class for estimators trained on a ``Labeled`` dataset.

    Subclasses implement ``train(dataset)``, ``trained()`` and ``predict(X)``
    and set ``n_features_`` when training.
    """

    @abstractmethod
    def trained(self) -> bool:
        pass

    @abstractmethod
    def train(self, dataset: Labeled) -> "Learner":
        pass

    @abstractmethod
    def predict(self, X) -> np.ndarray:
        pass

    def fit(self, X, y) -> "Learner":
        """Train on a feature matrix and label vector."""
        return self.train(Labeled(X, y))

    def predict_sample(self, sample):
        """Predict a single sample."""
        return self.predict(Unlabeled([sample]))[0]

    def _check_fitted(self) -> None:
        if not self.trained():
            raise NotFitted(f"{type(self).__name__} must be fitted before prediction")

    def _check_dataset(self, dataset: Labeled) -> None:
        if not isinstance(dataset, Labeled):
            raise InvalidInput(f"{type(self).__name__} requires a labeled training set")

        if dataset.empty():
            raise InvalidInput("Training set must contain at least one sample")

    def _as_dataset(self, X) -> Dataset:
        """Coerce inference input and check it has the trained number of features."""
        dataset = X if isinstance(X, Dataset) else Unlabeled(X)

        if dataset.num_columns() != self.n_features_:
            raise InvalidInput(
                f"{type(self).__name__} was trained on {self.n_features_} features, "
                f"{dataset.num_columns()} given"
            )

        return dataset

    def _setup_logging(self) -> None:
        if getattr(self, "verbose", False):
            logging.basicConfig(level=logging.INFO)


def as_labels(classes: np.ndarray) -> list:
    """Class labels as plain Python values, e.g. ``np.str_('a')`` becomes ``'a'``."""
    return [c.item() if isinstance(c, np.generic) else c for c in classes]
