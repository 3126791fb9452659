"""
Validation metrics and reporting helpers.

Metrics follow the convention that higher is better: error metrics are
reported negated so early stopping can always look for an increase.
"""

from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np
from sklearn.metrics import (
    accuracy_score, f1_score, mean_absolute_error, mean_squared_error, r2_score
)

from .exceptions import InvalidInput


class Metric(ABC):
    """Abstract base class for validation metrics."""

    #: (min, max) of the metric's output.
    range: Tuple[float, float] = (-np.inf, np.inf)

    def score(self, predictions, labels) -> float:
        """
        Score predictions against ground truth labels.

        Returns 0 for an empty set of predictions.

        Raises
        ------
        InvalidInput
            If the number of predictions and labels differ.
        """
        predictions = np.asarray(predictions)
        labels = np.asarray(labels)

        if len(predictions) != len(labels):
            raise InvalidInput(
                f"Number of labels must equal number of predictions: "
                f"{len(labels)} vs {len(predictions)}"
            )

        if len(predictions) == 0:
            return 0.0

        return float(self._score(predictions, labels))

    @abstractmethod
    def _score(self, predictions: np.ndarray, labels: np.ndarray) -> float:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class RSquared(Metric):
    """Coefficient of determination. Scores fewer than two samples as 0."""

    range = (-np.inf, 1.0)

    def _score(self, predictions, labels):
        if len(labels) < 2:
            return 0.0
        return r2_score(labels, predictions)


class MeanAbsoluteError(Metric):
    """Negated mean absolute error."""

    range = (-np.inf, 0.0)

    def _score(self, predictions, labels):
        return -mean_absolute_error(labels, predictions)


class MeanSquaredError(Metric):
    """Negated mean squared error."""

    range = (-np.inf, 0.0)

    def _score(self, predictions, labels):
        return -mean_squared_error(labels, predictions)


class Accuracy(Metric):
    """Fraction of predictions equal to their label."""

    range = (0.0, 1.0)

    def _score(self, predictions, labels):
        return accuracy_score(labels, predictions)


# ===========================
# Reporting
# ===========================

def mse_loss(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Mean squared residual: mean((y - f)^2)."""
    return float(np.mean((np.asarray(y_true) - np.asarray(y_pred)) ** 2))


def compute_metrics_regression(
    y_true: np.ndarray,
    y_pred: np.ndarray
) -> dict:
    """Compute regression metrics."""
    mse = mean_squared_error(y_true, y_pred)
    rmse = np.sqrt(mse)
    mae = mean_absolute_error(y_true, y_pred)

    return {
        "mse": mse,
        "rmse": rmse,
        "mae": mae,
        "r2": r2_score(y_true, y_pred)
    }


def compute_metrics_classification(
    y_true: np.ndarray,
    y_pred: np.ndarray
) -> dict:
    """Compute classification metrics."""
    return {
        "accuracy": accuracy_score(y_true, y_pred),
        "f1_macro": f1_score(y_true, y_pred, average="macro")
    }
