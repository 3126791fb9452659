"""
Feature importance bookkeeping.

Importance of a feature is the total impurity decrease of the splits made on
it, each decrease scaled by the share of the training weight that reached the
split. Totals are normalised to sum to one when read.
"""

from typing import Dict

import numpy as np


class FeatureImportances:
    """
    Running sum of impurity decrease per feature column.

    Parameters
    ----------
    n_features : int
        Number of feature columns being tracked.
    """

    def __init__(self, n_features: int):
        self.n_features = n_features
        self.totals_ = np.zeros(n_features, dtype=np.float64)

    def record(self, feature: int, decrease: float, weight: float = 1.0) -> None:
        """Attribute one split's impurity decrease to ``feature``."""
        self.totals_[feature] += max(decrease, 0.0) * weight

    def merge(self, other: "FeatureImportances", scale: float = 1.0) -> None:
        """Add another accumulator's raw totals, e.g. from one tree of an ensemble."""
        if other.n_features != self.n_features:
            raise ValueError(
                f"Cannot merge importances over {other.n_features} features "
                f"into {self.n_features}"
            )
        self.totals_ += scale * other.totals_

    def total(self) -> float:
        return float(np.sum(self.totals_))

    def normalized(self) -> Dict[int, float]:
        """Importance per feature index; sums to 1, or all zero if nothing was split."""
        total = self.total()

        if total <= 0:
            return {i: 0.0 for i in range(self.n_features)}

        return {i: float(v / total) for i, v in enumerate(self.totals_)}
