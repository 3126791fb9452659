"""
Impurity criteria used to score candidate splits.

Every criterion maps a group of (optionally weighted) labels to a
non-negative scalar where lower is better and 0 means the group is pure.
Classification criteria operate on class labels, regression criteria on
continuous targets.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple, Union

import numpy as np
from scipy.special import xlogy
from scipy.stats import entropy

from .exceptions import InvalidInput


def _as_weights(labels: np.ndarray, weights: Optional[np.ndarray]) -> np.ndarray:
    if weights is None:
        return np.ones(labels.shape[0], dtype=np.float64)
    return np.asarray(weights, dtype=np.float64)


def class_weights(labels: np.ndarray, weights: Optional[np.ndarray] = None) -> np.ndarray:
    """Total weight of each distinct class present in ``labels``."""
    _, inverse = np.unique(labels, return_inverse=True)
    return np.bincount(inverse.ravel(), weights=_as_weights(labels, weights))


def _prefix_class_weights(
    labels: np.ndarray,
    weights: np.ndarray,
    sizes: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """Per-class weight totals of the left and right group for each prefix cut."""
    _, inverse = np.unique(labels, return_inverse=True)
    inverse = inverse.ravel()

    onehot = np.zeros((len(labels), inverse.max() + 1), dtype=np.float64)
    onehot[np.arange(len(labels)), inverse] = weights

    cumulative = np.cumsum(onehot, axis=0)
    left = cumulative[sizes - 1]
    right = cumulative[-1] - left
    return left, right


class Impurity(ABC):
    """Abstract base class for split criteria."""

    #: Either "classification" or "regression".
    task: str = ""

    @abstractmethod
    def compute(self, labels: np.ndarray, weights: Optional[np.ndarray] = None) -> float:
        """
        Impurity of a group of labels.

        Parameters
        ----------
        labels : np.ndarray, shape (n,)
            Class labels or targets of the group.
        weights : np.ndarray, shape (n,), optional
            Per-sample weights. Uniform if omitted.

        Returns
        -------
        impurity : float
            Non-negative, 0 for a pure group. An empty group scores 0.
        """
        pass

    def split_impurities(
        self,
        labels: np.ndarray,
        weights: np.ndarray,
        sizes: np.ndarray
    ) -> np.ndarray:
        """
        Impurity of every prefix split of an ordered group.

        For each k in ``sizes`` the group is cut into ``labels[:k]`` and
        ``labels[k:]`` and the two children's impurities are averaged by their
        share of the total weight. Subclasses override this with a cumulative
        sum sweep; the fallback scores each cut independently.

        Parameters
        ----------
        labels : np.ndarray, shape (n,)
            Labels ordered by the feature being split.
        weights : np.ndarray, shape (n,)
            Sample weights in the same order.
        sizes : np.ndarray of int, shape (m,)
            Left group sizes to score, each in [1, n - 1].

        Returns
        -------
        scores : np.ndarray, shape (m,)
        """
        total = np.sum(weights)
        scores = np.empty(len(sizes), dtype=np.float64)

        for i, k in enumerate(sizes):
            w_left = np.sum(weights[:k])
            left = self.compute(labels[:k], weights[:k])
            right = self.compute(labels[k:], weights[k:])
            scores[i] = (w_left * left + (total - w_left) * right) / total

        return scores

    def __call__(self, labels: np.ndarray, weights: Optional[np.ndarray] = None) -> float:
        return self.compute(labels, weights)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Gini(Impurity):
    """Gini index: 1 - Σ p_c²."""

    task = "classification"

    def compute(self, labels, weights=None):
        if len(labels) == 0:
            return 0.0

        counts = class_weights(labels, weights)
        total = np.sum(counts)
        if total <= 0:
            return 0.0

        p = counts / total
        return float(1.0 - np.sum(p ** 2))

    def split_impurities(self, labels, weights, sizes):
        left, right = _prefix_class_weights(labels, weights, sizes)
        w_left = np.sum(left, axis=1)
        w_right = np.sum(right, axis=1)

        # W * (1 - Σ (c / W)²) == W - Σ c² / W
        with np.errstate(divide="ignore", invalid="ignore"):
            g_left = np.where(w_left > 0, w_left - np.sum(left ** 2, axis=1) / w_left, 0.0)
            g_right = np.where(w_right > 0, w_right - np.sum(right ** 2, axis=1) / w_right, 0.0)

        return np.maximum((g_left + g_right) / (w_left + w_right), 0.0)


class Entropy(Impurity):
    """Shannon entropy in bits: -Σ p_c log2 p_c."""

    task = "classification"

    def compute(self, labels, weights=None):
        if len(labels) == 0:
            return 0.0

        counts = class_weights(labels, weights)
        if np.sum(counts) <= 0:
            return 0.0

        # scipy normalises the counts to probabilities
        return float(entropy(counts, base=2))

    def split_impurities(self, labels, weights, sizes):
        left, right = _prefix_class_weights(labels, weights, sizes)
        w_left = np.sum(left, axis=1)
        w_right = np.sum(right, axis=1)

        # W * H == W log W - Σ c log c
        h_left = xlogy(w_left, w_left) - np.sum(xlogy(left, left), axis=1)
        h_right = xlogy(w_right, w_right) - np.sum(xlogy(right, right), axis=1)

        return np.maximum((h_left + h_right) / ((w_left + w_right) * np.log(2.0)), 0.0)


class Variance(Impurity):
    """Weighted variance of the targets."""

    task = "regression"

    def compute(self, labels, weights=None):
        if len(labels) == 0:
            return 0.0

        y = np.asarray(labels, dtype=np.float64)
        w = _as_weights(y, weights)
        total = np.sum(w)
        if total <= 0:
            return 0.0

        mean = np.sum(w * y) / total
        return float(np.sum(w * (y - mean) ** 2) / total)

    def split_impurities(self, labels, weights, sizes):
        y = np.asarray(labels, dtype=np.float64)

        s0 = np.cumsum(weights)
        s1 = np.cumsum(weights * y)
        s2 = np.cumsum(weights * y ** 2)

        l0, l1, l2 = s0[sizes - 1], s1[sizes - 1], s2[sizes - 1]
        r0, r1, r2 = s0[-1] - l0, s1[-1] - l1, s2[-1] - l2

        # W * var == Σ w y² - (Σ w y)² / W
        with np.errstate(divide="ignore", invalid="ignore"):
            v_left = np.where(l0 > 0, l2 - l1 ** 2 / l0, 0.0)
            v_right = np.where(r0 > 0, r2 - r1 ** 2 / r0, 0.0)

        return np.maximum((v_left + v_right) / s0[-1], 0.0)


class MeanAbsoluteDeviation(Impurity):
    """Weighted mean absolute deviation from the weighted mean."""

    task = "regression"

    def compute(self, labels, weights=None):
        if len(labels) == 0:
            return 0.0

        y = np.asarray(labels, dtype=np.float64)
        w = _as_weights(y, weights)
        total = np.sum(w)
        if total <= 0:
            return 0.0

        mean = np.sum(w * y) / total
        return float(np.sum(w * np.abs(y - mean)) / total)


CRITERIA = {
    "gini": Gini,
    "entropy": Entropy,
    "variance": Variance,
    "mad": MeanAbsoluteDeviation,
}


def get_impurity(criterion: Union[str, Impurity], task: str) -> Impurity:
    """
    Resolve a criterion name or instance for a given task.

    Raises
    ------
    InvalidInput
        If the name is unknown or the criterion does not fit the task.
    """
    if isinstance(criterion, str):
        if criterion not in CRITERIA:
            raise InvalidInput(
                f"Unknown impurity '{criterion}', expected one of {sorted(CRITERIA)}"
            )
        criterion = CRITERIA[criterion]()

    if not isinstance(criterion, Impurity):
        raise InvalidInput(f"Impurity must be a name or an Impurity, {type(criterion).__name__} given")

    if criterion.task != task:
        raise InvalidInput(
            f"{type(criterion).__name__} is a {criterion.task} criterion, "
            f"cannot be used for {task}"
        )

    return criterion
