"""
Constant predictors used as the initial model of gradient boosting.
"""

import logging
from typing import Optional

import numpy as np
from sklearn.base import BaseEstimator, RegressorMixin

from .base import Learner
from .datasets import Labeled
from .exceptions import InvalidInput

logger = logging.getLogger(__name__)


class DummyRegressor(RegressorMixin, Learner, BaseEstimator):
    """
    Predicts one value for every sample.

    Parameters
    ----------
    strategy : {"mean", "median", "constant"}, default="mean"
        Statistic of the training targets to predict. For squared error the
        mean is the loss-minimising constant, f_0 = argmin_γ Σ L(y_i, γ).
    constant : float, optional
        Value predicted by the "constant" strategy.
    """

    STRATEGIES = ("mean", "median", "constant")

    def __init__(self, strategy: str = "mean", constant: Optional[float] = None):
        if strategy not in self.STRATEGIES:
            raise InvalidInput(f"Strategy must be one of {self.STRATEGIES}, '{strategy}' given")

        if strategy == "constant" and constant is None:
            raise InvalidInput("The constant strategy requires a constant value")

        self.strategy = strategy
        self.constant = constant

        self.value_: Optional[float] = None

    def trained(self) -> bool:
        return self.value_ is not None

    def train(self, dataset: Labeled) -> "DummyRegressor":
        self._check_dataset(dataset)

        try:
            y = np.asarray(dataset.labels(), dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"Regression targets must be continuous: {e}") from e

        if self.strategy == "mean":
            self.value_ = float(np.mean(y))
        elif self.strategy == "median":
            self.value_ = float(np.median(y))
        else:
            self.value_ = float(self.constant)

        self.n_features_ = dataset.num_columns()
        logger.debug(f"Constant prediction = {self.value_:.6f}")

        return self

    def predict(self, X) -> np.ndarray:
        self._check_fitted()
        dataset = self._as_dataset(X)
        return np.full(dataset.num_rows(), self.value_, dtype=np.float64)
