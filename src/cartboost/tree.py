"""
Binary decision trees grown with the CART algorithm.

The builder grows a tree depth-first. At every node it either emits a leaf or
searches the candidate splits for the one whose children have the lowest
weighted impurity, then recurses into both children. Extremely randomized
("extra") trees replace the exhaustive search with one random threshold per
sampled feature.

References:
- Breiman, L., Friedman, J., Olshen, R., & Stone, C. (1984). Classification
  and Regression Trees. Wadsworth.
- Geurts, P., Ernst, D., & Wehenkel, L. (2006). Extremely randomized trees.
  Machine Learning, 63(1), 3-42.
"""

import logging
import math
from abc import abstractmethod
from typing import List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, ClassifierMixin, RegressorMixin

from .base import Learner, as_labels
from .datasets import Dataset, DataType, Labeled, goes_left
from .exceptions import InvalidInput
from .importance import FeatureImportances
from .impurity import Impurity, get_impurity

logger = logging.getLogger(__name__)

# Nodes at or below this impurity are treated as pure.
IMPURITY_TOLERANCE = 1e-7


class Leaf:
    """
    Terminal node holding a prediction.

    Attributes
    ----------
    outcome : object
        Predicted class (classification) or weighted mean target (regression).
    n_samples : int
        Number of training samples that reached the leaf.
    impurity : float
        Impurity of those samples.
    proba : np.ndarray or None
        Weighted class distribution, aligned with the tree's ``classes_``.
    """

    def __init__(self, outcome, n_samples: int, impurity: float = 0.0,
                 proba: Optional[np.ndarray] = None):
        self.outcome = outcome
        self.n_samples = n_samples
        self.impurity = impurity
        self.proba = proba

    def __repr__(self) -> str:
        return f"Leaf(outcome={self.outcome!r}, n_samples={self.n_samples})"


class Split:
    """
    Decision node testing one feature.

    Continuous features send ``value < threshold`` left, categorical features
    send ``value == threshold`` left. Both children are owned by the node.
    """

    def __init__(self, feature: int, threshold, data_type: DataType, impurity: float,
                 n_samples: int, left: "Node", right: "Node"):
        self.feature = feature
        self.threshold = threshold
        self.data_type = data_type
        self.impurity = impurity
        self.n_samples = n_samples
        self.left = left
        self.right = right

    def __repr__(self) -> str:
        op = "<" if self.data_type is DataType.CONTINUOUS else "=="
        return f"Split(x[{self.feature}] {op} {self.threshold!r}, impurity={self.impurity:.4f})"


Node = Union[Split, Leaf]


class CART(Learner, BaseEstimator):
    """
    Base class for CART-family trees.

    Parameters
    ----------
    max_depth : int, optional
        Maximum number of edges from the root to any leaf. Unlimited if None.
    min_samples_leaf : int, default=1
        Nodes with fewer samples become leaves, and no split may leave a
        child with fewer samples.
    max_features : int, optional
        Number of feature columns sampled at each node. All columns if None.
    min_purity_increase : float, default=0.0
        Minimum impurity decrease a split must achieve.
    impurity : str or Impurity, optional
        Split criterion. Defaults to Gini for classification and variance for
        regression.
    random_state : int, optional
        Seed of the generator used for feature sampling and random thresholds.
    verbose : bool, default=False
        Enable logging output.
    """

    task: str = ""
    default_impurity: str = ""

    def __init__(
        self,
        max_depth: Optional[int] = None,
        min_samples_leaf: int = 1,
        max_features: Optional[int] = None,
        min_purity_increase: float = 0.0,
        impurity: Optional[Union[str, Impurity]] = None,
        random_state: Optional[int] = None,
        verbose: bool = False
    ):
        if max_depth is not None and max_depth < 1:
            raise InvalidInput(f"Tree must have depth greater than 0, {max_depth} given")

        if min_samples_leaf < 1:
            raise InvalidInput(
                f"At least one sample is required to form a leaf, {min_samples_leaf} given"
            )

        if max_features is not None and max_features < 1:
            raise InvalidInput(f"Tree must consider at least 1 feature, {max_features} given")

        if min_purity_increase < 0.0:
            raise InvalidInput(
                f"Minimum purity increase must be non-negative, {min_purity_increase} given"
            )

        if impurity is not None:
            get_impurity(impurity, self.task)

        self.max_depth = max_depth
        self.min_samples_leaf = min_samples_leaf
        self.max_features = max_features
        self.min_purity_increase = min_purity_increase
        self.impurity = impurity
        self.random_state = random_state
        self.verbose = verbose

        self.root_: Optional[Node] = None

    def trained(self) -> bool:
        return self.root_ is not None

    def fit(self, X, y, sample_weight: Optional[np.ndarray] = None) -> "CART":
        """
        Grow the tree from a feature matrix and label vector.

        Args:
            X: Features, shape (n_samples, n_features).
            y: Labels, shape (n_samples,).
            sample_weight: Optional non-negative weight per sample.

        Returns:
            self
        """
        return self.train(Labeled(X, y), weights=sample_weight)

    def train(self, dataset: Labeled, weights: Optional[np.ndarray] = None) -> "CART":
        self._setup_logging()

        if self.verbose:
            logger.info(f"Learner init {self!r}")

        self.root_ = self.build(dataset, weights)

        if self.verbose:
            logger.info(f"Tree grown: height={self.height()}, leaves={self.n_leaves()}")

        return self

    def build(self, dataset: Labeled, weights: Optional[np.ndarray] = None) -> Node:
        """
        Grow a tree and return its root node.

        Parameters
        ----------
        dataset : Labeled
            Training samples and labels.
        weights : np.ndarray, shape (n_samples,), optional
            Per-sample weights. Uniform if omitted.

        Returns
        -------
        root : Split or Leaf

        Raises
        ------
        InvalidInput
            If the dataset is empty or the weights do not match it.
        """
        self._check_dataset(dataset)

        n = dataset.num_rows()

        if weights is None:
            weights = np.ones(n, dtype=np.float64)
        else:
            weights = np.asarray(weights, dtype=np.float64).ravel()

            if weights.shape[0] != n:
                raise InvalidInput(
                    f"Number of weights must equal number of samples: {weights.shape[0]} vs {n}"
                )

            if np.any(weights < 0) or np.sum(weights) <= 0:
                raise InvalidInput("Sample weights must be non-negative with a positive sum")

        self.impurity_ = get_impurity(self.impurity or self.default_impurity, self.task)
        self.n_features_ = dataset.num_columns()
        self.importances_ = FeatureImportances(self.n_features_)
        self.rng_ = np.random.default_rng(self.random_state)

        self._columns = [dataset.column(i) for i in range(self.n_features_)]
        self._types = dataset.types()
        self._y = self._encode_labels(dataset.labels())
        self._w = weights
        self._total_weight = float(np.sum(weights))

        try:
            return self._grow(np.arange(n), depth=0)
        finally:
            del self._columns, self._types, self._y, self._w

    def _grow(self, indices: np.ndarray, depth: int) -> Node:
        y = self._y[indices]
        w = self._w[indices]
        n = len(indices)

        impurity = self.impurity_.compute(y, w)

        if (
            n < self.min_samples_leaf
            or (self.max_depth is not None and depth >= self.max_depth)
            or np.all(y == y[0])
            or impurity <= IMPURITY_TOLERANCE
        ):
            return self._terminate(y, w, impurity)

        best = self._split(indices, y, w)

        if best is None:
            return self._terminate(y, w, impurity)

        feature, threshold, split_impurity, mask = best
        decrease = impurity - split_impurity

        if self.min_purity_increase > 0.0 and decrease < self.min_purity_increase:
            return self._terminate(y, w, impurity)

        self.importances_.record(feature, decrease, np.sum(w) / self._total_weight)

        left = self._grow(indices[mask], depth + 1)
        right = self._grow(indices[~mask], depth + 1)

        return Split(feature, threshold, self._types[feature], split_impurity, n, left, right)

    def _candidate_features(self) -> np.ndarray:
        max_features = self._max_features()

        if max_features >= self.n_features_:
            return np.arange(self.n_features_)

        return self.rng_.permutation(self.n_features_)[:max_features]

    def _max_features(self) -> int:
        return self.max_features if self.max_features is not None else self.n_features_

    def _split(
        self,
        indices: np.ndarray,
        y: np.ndarray,
        w: np.ndarray
    ) -> Optional[Tuple[int, object, float, np.ndarray]]:
        """
        Exhaustive search for the lowest impurity split.

        Returns (feature, threshold, impurity, left mask) or None if no
        candidate leaves both children with enough samples. Ties keep the
        first candidate in feature then threshold order.
        """
        n = len(indices)
        m = self.min_samples_leaf

        best = None
        best_impurity = np.inf

        for feature in self._candidate_features():
            values = self._columns[feature][indices]

            if self._types[feature] is DataType.CONTINUOUS:
                order = np.argsort(values, kind="stable")
                ordered = values[order]

                # cut before every position where the sorted value changes
                sizes = np.flatnonzero(ordered[1:] > ordered[:-1]) + 1
                sizes = sizes[(sizes >= m) & (n - sizes >= m)]

                if len(sizes) == 0:
                    continue

                scores = self.impurity_.split_impurities(y[order], w[order], sizes)
                i = int(np.argmin(scores))

                if scores[i] < best_impurity:
                    k = sizes[i]
                    threshold = float((ordered[k - 1] + ordered[k]) / 2.0)
                    if threshold <= ordered[k - 1]:
                        threshold = float(ordered[k])
                    best_impurity = float(scores[i])
                    best = (int(feature), threshold, best_impurity, values < threshold)
            else:
                for category in pd.unique(values):
                    mask = values == category
                    impurity = self._split_impurity(y, w, mask)

                    if impurity is not None and impurity < best_impurity:
                        best_impurity = impurity
                        best = (int(feature), category, impurity, mask)

        return best

    def _split_impurity(self, y: np.ndarray, w: np.ndarray, mask: np.ndarray) -> Optional[float]:
        """Weighted impurity of the children of a split, or None if a child is too small."""
        n_left = int(np.sum(mask))

        if n_left < self.min_samples_leaf or len(mask) - n_left < self.min_samples_leaf:
            return None

        w_left = np.sum(w[mask])
        w_right = np.sum(w[~mask])
        total = w_left + w_right

        left = self.impurity_.compute(y[mask], w[mask])
        right = self.impurity_.compute(y[~mask], w[~mask])

        return float((w_left * left + w_right * right) / total)

    @abstractmethod
    def _encode_labels(self, labels: np.ndarray) -> np.ndarray:
        """Labels as the array the impurity criterion consumes."""

    @abstractmethod
    def _terminate(self, y: np.ndarray, w: np.ndarray, impurity: float) -> Leaf:
        """Leaf for the samples that reached a node."""

    def apply(self, X) -> List[Leaf]:
        """Return the leaf each sample lands in."""
        self._check_fitted()
        dataset = self._as_dataset(X)

        leaves: List[Optional[Leaf]] = [None] * dataset.num_rows()
        self._route(self.root_, dataset, np.arange(dataset.num_rows()), leaves)
        return leaves

    def _route(self, node: Node, dataset: Dataset, indices: np.ndarray, leaves: list) -> None:
        if len(indices) == 0:
            return

        if isinstance(node, Leaf):
            for i in indices:
                leaves[i] = node
            return

        values = dataset.column(node.feature)[indices]
        mask = goes_left(values, node.threshold, node.data_type)

        self._route(node.left, dataset, indices[mask], leaves)
        self._route(node.right, dataset, indices[~mask], leaves)

    def predict(self, X) -> np.ndarray:
        """
        Predict the outcome of each sample.

        Raises
        ------
        NotFitted
            If the tree has not been grown.
        """
        return np.array([leaf.outcome for leaf in self.apply(X)])

    def feature_importances(self) -> dict:
        """Normalised impurity decrease per feature index."""
        self._check_fitted()
        return self.importances_.normalized()

    def height(self) -> int:
        """Number of edges on the longest root-to-leaf path."""
        self._check_fitted()

        def _height(node: Node) -> int:
            if isinstance(node, Leaf):
                return 0
            return 1 + max(_height(node.left), _height(node.right))

        return _height(self.root_)

    def n_leaves(self) -> int:
        self._check_fitted()

        def _count(node: Node) -> int:
            if isinstance(node, Leaf):
                return 1
            return _count(node.left) + _count(node.right)

        return _count(self.root_)


class ClassificationTree(ClassifierMixin, CART):
    """
    CART classifier. Leaves hold the weighted class distribution of the
    samples that reached them and predict its most probable class.
    """

    task = "classification"
    default_impurity = "gini"

    def _encode_labels(self, labels):
        # codes follow first appearance, so ties resolve to the earliest class
        codes, classes = pd.factorize(labels)
        self.classes_ = np.asarray(classes)
        return codes

    def _terminate(self, y, w, impurity):
        counts = np.bincount(y, weights=w, minlength=len(self.classes_))
        total = np.sum(counts)
        proba = counts / total if total > 0 else np.full(len(counts), 1.0 / len(counts))

        return Leaf(self.classes_[int(np.argmax(proba))], len(y), impurity, proba)

    def predict_proba(self, X) -> List[dict]:
        """Class probabilities of each sample as ``{class: probability}``."""
        leaves = self.apply(X)
        classes = as_labels(self.classes_)

        return [
            {c: float(p) for c, p in zip(classes, leaf.proba)}
            for leaf in leaves
        ]


class RegressionTree(RegressorMixin, CART):
    """CART regressor. Leaves predict the weighted mean target."""

    task = "regression"
    default_impurity = "variance"

    def _encode_labels(self, labels):
        try:
            return np.asarray(labels, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"Regression targets must be continuous: {e}") from e

    def _terminate(self, y, w, impurity):
        total = np.sum(w)
        mean = np.sum(w * y) / total if total > 0 else np.mean(y)
        return Leaf(float(mean), len(y), impurity)

    def predict(self, X) -> np.ndarray:
        return np.array([leaf.outcome for leaf in self.apply(X)], dtype=np.float64)


class ExtraTree(CART):
    """
    Extremely randomized tree.

    Each node samples ``max_features`` columns (``ceil(sqrt(n_features))`` by
    default) and draws a single threshold per column: uniform within the
    observed range for continuous columns, a random observed category for
    categorical ones. The search stops early once a pure split is found.
    """

    def _max_features(self) -> int:
        if self.max_features is not None:
            return self.max_features
        return int(math.ceil(math.sqrt(self.n_features_)))

    def _split(self, indices, y, w):
        best = None
        best_impurity = np.inf

        for feature in self.rng_.permutation(self.n_features_)[:self._max_features()]:
            values = self._columns[feature][indices]

            if self._types[feature] is DataType.CONTINUOUS:
                low, high = np.min(values), np.max(values)
                if low == high:
                    continue
                threshold = float(self.rng_.uniform(low, high))
            else:
                categories = pd.unique(values)
                if len(categories) < 2:
                    continue
                threshold = categories[self.rng_.integers(len(categories))]

            mask = goes_left(values, threshold, self._types[feature])
            impurity = self._split_impurity(y, w, mask)

            if impurity is None:
                continue

            if impurity < best_impurity:
                best_impurity = impurity
                best = (int(feature), threshold, impurity, mask)

            if impurity <= IMPURITY_TOLERANCE:
                break

        return best


class ExtraTreeClassifier(ExtraTree, ClassificationTree):
    """Extremely randomized classification tree."""


class ExtraTreeRegressor(ExtraTree, RegressionTree):
    """Extremely randomized regression tree."""
