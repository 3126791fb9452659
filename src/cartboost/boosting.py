"""
Boosting ensembles of decision trees.

AdaBoost re-weights the training samples after every round so that the next
learner focuses on the samples the ensemble gets wrong (SAMME for more than
two classes). Gradient boosting fits each new tree to the residuals of the
current additive model, with shrinkage, row subsampling and early stopping
on a held-out validation set.

References:
- Freund, Y., & Schapire, R. E. (1997). A decision-theoretic generalization
  of on-line learning and an application to boosting. JCSS, 55(1), 119-139.
- Zhu, J., Zou, H., Rosset, S., & Hastie, T. (2009). Multi-class AdaBoost.
  Statistics and Its Interface, 2(3), 349-360.
- Friedman, J. H. (2002). Stochastic gradient boosting. Computational
  Statistics & Data Analysis, 38(4), 367-378.
- Hastie, T., Tibshirani, R., & Friedman, J. (2009). The Elements of
  Statistical Learning (2nd ed.). Springer. Chapter 10.
"""

from dataclasses import dataclass
from typing import List, Optional
import logging

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, ClassifierMixin, RegressorMixin, clone, is_classifier, is_regressor
from sklearn.model_selection import train_test_split

from .base import Learner, as_labels
from .datasets import Labeled
from .dummy import DummyRegressor
from .exceptions import InvalidInput
from .importance import FeatureImportances
from .metrics import Metric, RSquared, mse_loss
from .tree import ClassificationTree, RegressionTree

logger = logging.getLogger(__name__)

# Floor on the weighted error, keeps the influence finite for perfect rounds.
EPSILON = 1e-8


def _reseed(estimator, rng: np.random.Generator):
    """Give a cloned learner its own seed so rounds do not repeat each other."""
    if "random_state" in estimator.get_params(deep=False):
        estimator.set_params(random_state=int(rng.integers(np.iinfo(np.int32).max)))
    return estimator


def _merge_importances(n_features: int, estimators: list) -> FeatureImportances:
    importances = FeatureImportances(n_features)
    for estimator in estimators:
        if hasattr(estimator, "importances_"):
            importances.merge(estimator.importances_)
    return importances


@dataclass
class EarlyStopping:
    """
    Tracks validation scores and decides when to stop boosting.

    A round improves when its score exceeds the best seen so far by more
    than ``min_change``. Training stops after ``window`` consecutive rounds
    without improvement.
    """

    window: int = 10
    min_change: float = 1e-4
    best_score: float = -np.inf
    best_round: int = 0
    since_best: int = 0
    rounds: int = 0

    def update(self, score: float) -> bool:
        """Record one round's score and return True if training should stop."""
        self.rounds += 1

        if score - self.best_score > self.min_change:
            self.best_score = score
            self.best_round = self.rounds
            self.since_best = 0
        else:
            self.since_best += 1

        return self.since_best >= self.window


class AdaBoost(ClassifierMixin, Learner, BaseEstimator):
    """
    Adaptive boosting of a weak classifier.

    Each round trains a fresh copy of the base learner on a weighted
    bootstrap of the training set, measures its weighted error e on the full
    set and gives it the influence

        α = rate · (ln((1 - e) / max(e, ε)) + ln(k - 1))

    where k is the number of classes. Misclassified samples are then
    up-weighted by exp(α) and the weights renormalised.

    Parameters
    ----------
    base : Learner, optional
        Classifier to boost. Defaults to a decision stump
        (``ClassificationTree(max_depth=1)``).
    estimators : int, default=100
        Maximum number of boosting rounds.
    rate : float, default=1.0
        Learning rate applied to every influence.
    ratio : float, default=0.8
        Size of each round's bootstrap as a fraction of the training set.
    random_state : int, optional
        Seed for subsampling and for seeding randomized base learners.
    verbose : bool, default=False
        Enable logging output.
    """

    def __init__(
        self,
        base: Optional[Learner] = None,
        estimators: int = 100,
        rate: float = 1.0,
        ratio: float = 0.8,
        random_state: Optional[int] = None,
        verbose: bool = False
    ):
        if base is not None and not is_classifier(base):
            raise InvalidInput(f"Base estimator must be a classifier, {type(base).__name__} given")

        if estimators < 1:
            raise InvalidInput(f"Ensemble must contain at least 1 estimator, {estimators} given")

        if rate < 0.0:
            raise InvalidInput(f"Learning rate must be non-negative, {rate} given")

        if ratio <= 0.0 or ratio > 1.0:
            raise InvalidInput(f"Ratio must be in (0, 1], {ratio} given")

        self.base = base
        self.estimators = estimators
        self.rate = rate
        self.ratio = ratio
        self.random_state = random_state
        self.verbose = verbose

        self.ensemble_: List[Learner] = []
        self.influences_: List[float] = []
        self.steps_: List[float] = []
        self.weights_: Optional[np.ndarray] = None

    def trained(self) -> bool:
        return len(self.ensemble_) > 0

    def train(self, dataset: Labeled) -> "AdaBoost":
        """
        Train the boosted ensemble.

        Training ends early, without error, when a round's weighted error is
        not a number or falls below ``EPSILON``, or when the sample weights
        degenerate.

        Raises
        ------
        InvalidInput
            If the dataset is empty or has fewer than two classes.
        """
        self._check_dataset(dataset)
        self._setup_logging()

        if self.verbose:
            logger.info(f"Learner init {self!r}")

        self.classes_ = np.asarray(dataset.possible_outcomes())

        k = len(self.classes_)
        if k < 2:
            raise InvalidInput(f"AdaBoost requires at least 2 classes, {k} given")

        base = self.base if self.base is not None else ClassificationTree(max_depth=1)
        rng = np.random.default_rng(self.random_state)

        labels = dataset.labels()
        n = dataset.num_rows()
        p = max(1, int(round(self.ratio * n)))

        self.n_features_ = dataset.num_columns()
        self.weights_ = np.full(n, 1.0 / n)
        self.ensemble_, self.influences_, self.steps_ = [], [], []

        for epoch in range(1, self.estimators + 1):
            estimator = _reseed(clone(base), rng)

            subset = dataset.random_weighted_subset_with_replacement(p, self.weights_, rng)
            estimator.train(subset)

            missed = estimator.predict(dataset) != labels

            loss = float(np.sum(self.weights_[missed]) / np.sum(self.weights_))

            influence = self.rate * (
                np.log((1.0 - loss) / max(loss, EPSILON)) + np.log(k - 1)
            )

            self.ensemble_.append(estimator)
            self.influences_.append(float(influence))
            self.steps_.append(loss)

            if self.verbose:
                logger.info(f"Epoch {epoch}/{self.estimators}: loss={loss:.6f}, influence={influence:.6f}")

            if np.isnan(loss) or loss < EPSILON:
                logger.info(f"Stopping at epoch {epoch}: loss={loss}")
                break

            self.weights_[missed] *= np.exp(influence)

            total = np.sum(self.weights_)
            if not np.isfinite(total) or total <= 0.0:
                logger.warning(f"Sample weights degenerated at epoch {epoch}, stopping")
                break

            self.weights_ /= total

        if self.verbose:
            logger.info("Training complete")

        return self

    def _score(self, X) -> np.ndarray:
        """Sum of the influences voting for each class, shape (n_samples, n_classes)."""
        self._check_fitted()
        dataset = self._as_dataset(X)

        n = dataset.num_rows()
        scores = np.zeros((n, len(self.classes_)))
        index = pd.Index(self.classes_)

        for estimator, influence in zip(self.ensemble_, self.influences_):
            codes = index.get_indexer(estimator.predict(dataset))
            known = codes >= 0
            scores[np.flatnonzero(known), codes[known]] += influence

        return scores

    def predict(self, X) -> np.ndarray:
        """
        Predict the class with the largest summed influence.

        Ties go to the class seen first in the training labels.
        """
        scores = self._score(X)
        return self.classes_[np.argmax(scores, axis=1)]

    def predict_proba(self, X) -> List[dict]:
        """
        Summed influences normalised to a distribution, as ``{class: probability}``.

        Samples whose influences sum to zero get a uniform distribution.
        """
        scores = self._score(X)
        classes = as_labels(self.classes_)

        totals = np.sum(scores, axis=1)
        uniform = totals == 0
        scores[uniform] = 1.0 / len(classes)
        totals[uniform] = 1.0

        return [
            {c: float(s / total) for c, s in zip(classes, row)}
            for row, total in zip(scores, totals)
        ]

    def feature_importances(self) -> dict:
        self._check_fitted()
        return _merge_importances(self.n_features_, self.ensemble_).normalized()

    def steps(self) -> List[float]:
        """Weighted training error of each round."""
        return list(self.steps_)

    def influences(self) -> List[float]:
        return list(self.influences_)

    def weights(self) -> Optional[np.ndarray]:
        """Sample weights after the last completed round."""
        return self.weights_


class GradientBoost(RegressorMixin, Learner, BaseEstimator):
    """
    Stochastic gradient tree boosting for regression (squared-error loss).

    Implements:
    1. Initialisation: f_0 = base learner fit on the training partition
       (the target mean by default).
    2. For m = 1 to M:
       a. Residuals: r_i = y_i - f_{m-1}(x_i).
       b. Draw a random subsample of ratio·n rows without replacement.
       c. Fit a booster tree to {(x_i, r_i)} on the subsample.
       d. Update: f_m(x) = f_{m-1}(x) + ν · tree_m(x).
       e. Score f_m on the held-out partition; stop after ``window`` rounds
          without an improvement greater than ``min_change``.

    Parameters
    ----------
    booster : Learner, optional
        Regressor fit to the residuals each round. Defaults to
        ``RegressionTree(max_depth=3)``.
    rate : float, default=0.1
        Shrinkage parameter ν applied to every booster.
    ratio : float, default=0.5
        Fraction of the training partition drawn for each booster.
    estimators : int, default=100
        Maximum number of boosting rounds.
    min_change : float, default=1e-4
        Minimum validation score increase that counts as an improvement.
    window : int, default=10
        Consecutive non-improving rounds tolerated before stopping.
    holdout : float, default=0.1
        Fraction of the dataset held out for validation, in (0, 0.5].
    metric : Metric, optional
        Validation metric, higher is better. Defaults to ``RSquared()``.
    base : Learner, optional
        Initial regressor f_0. Defaults to ``DummyRegressor("mean")``.
    random_state : int, optional
        Seed for the holdout split, subsampling and randomized boosters.
    verbose : bool, default=False
        Enable logging output.
    """

    def __init__(
        self,
        booster: Optional[Learner] = None,
        rate: float = 0.1,
        ratio: float = 0.5,
        estimators: int = 100,
        min_change: float = 1e-4,
        window: int = 10,
        holdout: float = 0.1,
        metric: Optional[Metric] = None,
        base: Optional[Learner] = None,
        random_state: Optional[int] = None,
        verbose: bool = False
    ):
        if booster is not None and not is_regressor(booster):
            raise InvalidInput(f"Booster must be a regressor, {type(booster).__name__} given")

        if base is not None and not is_regressor(base):
            raise InvalidInput(f"Base estimator must be a regressor, {type(base).__name__} given")

        if rate <= 0.0:
            raise InvalidInput(f"Learning rate must be greater than 0, {rate} given")

        if ratio <= 0.0 or ratio > 1.0:
            raise InvalidInput(f"Ratio must be in (0, 1], {ratio} given")

        if estimators < 1:
            raise InvalidInput(f"Ensemble must contain at least 1 estimator, {estimators} given")

        if min_change < 0.0:
            raise InvalidInput(f"Minimum change must be non-negative, {min_change} given")

        if window < 1:
            raise InvalidInput(f"Window must be at least 1 epoch, {window} given")

        if holdout <= 0.0 or holdout > 0.5:
            raise InvalidInput(f"Holdout ratio must be in (0, 0.5], {holdout} given")

        if metric is not None and not isinstance(metric, Metric):
            raise InvalidInput(f"Metric must be a Metric, {type(metric).__name__} given")

        self.booster = booster
        self.rate = rate
        self.ratio = ratio
        self.estimators = estimators
        self.min_change = min_change
        self.window = window
        self.holdout = holdout
        self.metric = metric
        self.base = base
        self.random_state = random_state
        self.verbose = verbose

        self.base_: Optional[Learner] = None
        self.ensemble_: List[Learner] = []
        self.steps_: List[float] = []
        self.scores_: List[float] = []

    def trained(self) -> bool:
        return self.base_ is not None and len(self.ensemble_) > 0

    def train(self, dataset: Labeled) -> "GradientBoost":
        """
        Fit the stage-wise additive model.

        Raises
        ------
        InvalidInput
            If the targets are not continuous, or the holdout or subsample
            ratio leaves an empty partition.
        """
        self._check_dataset(dataset)
        self._setup_logging()

        if self.verbose:
            logger.info(f"Learner init {self!r}")

        try:
            targets = np.asarray(dataset.labels(), dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"Regression targets must be continuous: {e}") from e

        n = dataset.num_rows()
        n_val = int(round(self.holdout * n))

        if n_val < 1 or n - n_val < 1:
            raise InvalidInput(
                f"Holdout ratio {self.holdout} leaves {n_val} validation and "
                f"{n - n_val} training samples out of {n}"
            )

        dataset = Labeled(dataset.samples(), targets, types=dataset.types())

        train_idx, val_idx = train_test_split(
            np.arange(n), test_size=n_val, random_state=self.random_state
        )
        training = dataset.subset(train_idx)
        testing = dataset.subset(val_idx)

        p = int(round(self.ratio * training.num_rows()))
        if p < 1:
            raise InvalidInput(
                f"Ratio {self.ratio} leaves no samples to train boosters on "
                f"out of {training.num_rows()}"
            )

        booster = self.booster if self.booster is not None else RegressionTree(max_depth=3)
        base = self.base if self.base is not None else DummyRegressor("mean")
        metric = self.metric if self.metric is not None else RSquared()

        rng = np.random.default_rng(self.random_state)

        self.n_features_ = dataset.num_columns()
        self.ensemble_, self.steps_, self.scores_ = [], [], []

        # Step 1: f_0 fit once on the training partition
        self.base_ = _reseed(clone(base), rng).train(training)

        y = training.labels()
        F_train = self.base_.predict(training)
        F_val = self.base_.predict(testing)

        if self.verbose:
            logger.info(f"Training on {training.num_rows()} samples, validating on {n_val}")

        stopping = EarlyStopping(window=self.window, min_change=self.min_change)

        # Step 2: Boosting loop
        for m in range(self.estimators):
            # (a) Residuals of the current model
            residuals = y - F_train

            # (b) Subsample rows paired with their residuals
            subset = Labeled(
                training.samples(), residuals, types=training.types()
            ).random_subset(p, rng)

            # (c) Fit booster to residuals
            tree = _reseed(clone(booster), rng)
            tree.train(subset)

            # (d) Update predictions with shrinkage
            F_train = F_train + self.rate * tree.predict(training)
            F_val = F_val + self.rate * tree.predict(testing)

            self.ensemble_.append(tree)

            # (e) Track loss and validation score
            loss = mse_loss(y, F_train)

            if np.isnan(loss):
                self.steps_.append(loss)
                self.scores_.append(np.nan)
                logger.warning(f"Loss is not a number at iteration {m+1}, stopping")
                break

            score = metric.score(F_val, testing.labels())

            self.steps_.append(loss)
            self.scores_.append(score)

            if self.verbose and (m + 1) % 10 == 0:
                logger.info(
                    f"Iteration {m+1}/{self.estimators}: "
                    f"loss={loss:.6f}, score={score:.6f}"
                )

            if stopping.update(score):
                if self.verbose:
                    logger.info(
                        f"Early stopping at iteration {m+1}: best score "
                        f"{stopping.best_score:.6f} at iteration {stopping.best_round}"
                    )
                break

        if self.verbose:
            logger.info("Training complete")

        return self

    def _predict_raw(self, X, up_to_iteration: Optional[int] = None) -> np.ndarray:
        """
        Predictions of the additive model.

        Args:
            X: Features, shape (n_samples, n_features), or a Dataset.
            up_to_iteration: Use only the first k boosters (staged predictions).

        Returns:
            Predictions, shape (n_samples,).
        """
        self._check_fitted()
        dataset = self._as_dataset(X)

        n_estimators = up_to_iteration if up_to_iteration is not None else len(self.ensemble_)

        F = self.base_.predict(dataset)

        for tree in self.ensemble_[:n_estimators]:
            F = F + self.rate * tree.predict(dataset)

        return F

    def predict(self, X) -> np.ndarray:
        """Predict regression targets."""
        return self._predict_raw(X)

    def staged_predict(self, X):
        """Yield the model's predictions after each boosting round."""
        for m in range(1, len(self.ensemble_) + 1):
            yield self._predict_raw(X, up_to_iteration=m)

    def feature_importances(self) -> dict:
        self._check_fitted()
        return _merge_importances(self.n_features_, self.ensemble_).normalized()

    def steps(self) -> List[float]:
        """Mean squared training residual after each round."""
        return list(self.steps_)

    def scores(self) -> List[float]:
        """Validation score after each round."""
        return list(self.scores_)
