"""
Tests for the AdaBoost and GradientBoost ensembles.

Coverage:
- AdaBoost influence formula and sign, weight renormalisation
- Early termination on a perfect round
- Multi-class and string labels
- Gradient boosting convergence on a linear target
- Early stopping policy, in isolation and inside training
- Not-a-number loss handling
- Staged predictions, feature importances, determinism
- Error contracts
"""

import sys
from pathlib import Path

import numpy as np
import pytest
from sklearn.datasets import make_classification, make_regression

# ---------- path setup ----------
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from cartboost.boosting import EPSILON, AdaBoost, EarlyStopping, GradientBoost
from cartboost.dummy import DummyRegressor
from cartboost.exceptions import InvalidInput, NotFitted
from cartboost.metrics import MeanAbsoluteError
from cartboost.tree import (
    ClassificationTree, ExtraTreeClassifier, ExtraTreeRegressor, RegressionTree
)


@pytest.fixture
def binary_data():
    return make_classification(
        n_samples=200, n_features=5, n_informative=3, random_state=42
    )


@pytest.fixture
def linear_data():
    X = np.linspace(0, 10, 100).reshape(-1, 1)
    y = 3.0 * X.ravel() + 1.0
    return X, y


# =============================================================================
# AdaBoost
# =============================================================================


class TestAdaBoost:
    """Weight-reweighting ensemble of classifiers."""

    def test_influence_matches_formula(self, binary_data):
        X, y = binary_data
        model = AdaBoost(estimators=20, rate=0.5, random_state=0).fit(X, y)

        for loss, influence in zip(model.steps(), model.influences()):
            expected = 0.5 * (np.log((1 - loss) / max(loss, EPSILON)) + np.log(2 - 1))
            assert influence == pytest.approx(expected)

    def test_influence_sign_follows_error(self, binary_data):
        """Binary case: error below 0.5 gives positive influence, above gives negative."""
        X, y = binary_data
        model = AdaBoost(estimators=30, random_state=1).fit(X, y)

        for loss, influence in zip(model.steps(), model.influences()):
            if loss < 0.5:
                assert influence > 0
            elif loss > 0.5:
                assert influence < 0

    def test_weights_sum_to_one(self, binary_data):
        X, y = binary_data
        model = AdaBoost(estimators=25, random_state=2).fit(X, y)

        assert np.sum(model.weights()) == pytest.approx(1.0)
        assert np.all(model.weights() > 0)

    def test_trace_lengths_agree(self, binary_data):
        X, y = binary_data
        model = AdaBoost(estimators=15, random_state=3).fit(X, y)

        assert len(model.steps()) == len(model.influences()) == len(model.ensemble_)
        assert 1 <= len(model.steps()) <= 15

    def test_stops_after_perfect_round(self):
        """Two well separated clusters: the first stump is perfect and training ends."""
        X = np.array([[0.0]] * 10 + [[1.0]] * 10)
        y = np.array(["neg"] * 10 + ["pos"] * 10)

        model = AdaBoost(estimators=50, ratio=1.0, random_state=0).fit(X, y)

        assert len(model.steps()) < 50
        assert model.steps()[-1] < EPSILON
        np.testing.assert_array_equal(model.predict(X), y)

    def test_boosting_beats_single_stump(self, binary_data):
        X, y = binary_data

        stump = ClassificationTree(max_depth=1).fit(X, y)
        model = AdaBoost(estimators=50, random_state=4).fit(X, y)

        assert np.mean(model.predict(X) == y) >= np.mean(stump.predict(X) == y)

    def test_multiclass_string_labels(self):
        X, y = make_classification(
            n_samples=300, n_features=5, n_informative=3, n_redundant=0,
            n_classes=3, n_clusters_per_class=1, random_state=7
        )
        labels = np.array(["setosa", "versicolor", "virginica"])[y]

        model = AdaBoost(
            base=ClassificationTree(max_depth=2), estimators=30, random_state=0
        ).fit(X, labels)
        pred = model.predict(X)

        assert set(pred) <= set(labels)
        assert np.mean(pred == labels) > 0.6

    def test_predict_proba_is_distribution(self, binary_data):
        X, y = binary_data
        model = AdaBoost(estimators=10, random_state=5).fit(X, y)

        proba = model.predict_proba(X[:20])

        assert len(proba) == 20
        for dist in proba:
            assert set(dist) == set(model.classes_)
            assert sum(dist.values()) == pytest.approx(1.0)

    def test_predict_is_argmax_of_proba(self, binary_data):
        X, y = binary_data
        model = AdaBoost(estimators=10, random_state=6).fit(X, y)

        for dist, label in zip(model.predict_proba(X[:30]), model.predict(X[:30])):
            assert dist[label] == max(dist.values())

    def test_zero_rate_gives_uniform_proba(self):
        X = np.array([[0.0], [1.0], [2.0], [3.0]])
        y = np.array(["A", "A", "B", "B"])

        model = AdaBoost(estimators=3, rate=0.0, random_state=0).fit(X, y)

        for dist in model.predict_proba(X):
            assert dist == {"A": pytest.approx(0.5), "B": pytest.approx(0.5)}

    def test_proba_keys_are_python_labels(self):
        X = np.array([[0.0], [1.0], [2.0], [3.0]])

        str_model = AdaBoost(estimators=2, random_state=0).fit(X, np.array(["A", "A", "B", "B"]))
        int_model = AdaBoost(estimators=2, random_state=0).fit(X, np.array([0, 0, 1, 1]))

        assert all(type(k) is str for k in str_model.predict_proba(X)[0])
        assert all(type(k) is int for k in int_model.predict_proba(X)[0])

    def test_determinism(self, binary_data):
        X, y = binary_data

        pred1 = AdaBoost(estimators=10, random_state=42).fit(X, y).predict(X)
        pred2 = AdaBoost(estimators=10, random_state=42).fit(X, y).predict(X)

        np.testing.assert_array_equal(pred1, pred2)

    def test_randomized_base_learner(self, binary_data):
        X, y = binary_data

        model = AdaBoost(
            base=ExtraTreeClassifier(max_depth=3), estimators=10, random_state=0
        ).fit(X, y)
        seeds = {m.random_state for m in model.ensemble_}

        assert len(seeds) == len(model.ensemble_)
        assert model.base.random_state is None

    def test_feature_importances(self, binary_data):
        X, y = binary_data
        importances = AdaBoost(estimators=20, random_state=0).fit(X, y).feature_importances()

        assert set(importances) == set(range(5))
        assert sum(importances.values()) == pytest.approx(1.0)

    def test_predict_before_fit_raises(self):
        model = AdaBoost()

        with pytest.raises(NotFitted, match="fitted"):
            model.predict([[1.0]])

        with pytest.raises(NotFitted):
            model.predict_proba([[1.0]])

    @pytest.mark.parametrize("params", [
        {"estimators": 0},
        {"rate": -0.1},
        {"ratio": 0.0},
        {"ratio": 1.5},
    ])
    def test_invalid_hyperparameters_raise(self, params):
        with pytest.raises(InvalidInput):
            AdaBoost(**params)

    def test_regressor_base_rejected(self):
        with pytest.raises(InvalidInput, match="classifier"):
            AdaBoost(base=RegressionTree())

    def test_single_class_rejected(self):
        with pytest.raises(InvalidInput, match="2 classes"):
            AdaBoost().fit([[1.0], [2.0], [3.0]], ["a", "a", "a"])


# =============================================================================
# Early stopping
# =============================================================================


class TestEarlyStopping:
    """The stopping rule on hand-written validation score sequences."""

    def test_stops_after_window_without_improvement(self):
        stopping = EarlyStopping(window=3, min_change=0.1)
        decisions = [stopping.update(s) for s in [0.5, 0.55, 0.58, 0.59]]

        assert decisions == [False, False, False, True]
        assert stopping.best_score == 0.5
        assert stopping.best_round == 1

    def test_improvement_resets_counter(self):
        stopping = EarlyStopping(window=3, min_change=0.0)
        scores = [0.1, 0.3, 0.3, 0.5, 0.5, 0.5, 0.5]
        decisions = [stopping.update(s) for s in scores]

        assert decisions == [False, False, False, False, False, False, True]
        assert stopping.best_round == 4

    def test_nan_score_counts_as_no_improvement(self):
        stopping = EarlyStopping(window=2, min_change=0.0)

        assert not stopping.update(0.2)
        assert not stopping.update(float("nan"))
        assert stopping.update(float("nan"))


# =============================================================================
# Gradient boosting
# =============================================================================


class TestGradientBoost:
    """Residual-fitting stage-wise regression ensemble."""

    def test_training_loss_decreases_on_linear_target(self, linear_data):
        X, y = linear_data
        model = GradientBoost(
            rate=0.5, estimators=50, ratio=1.0, window=50, random_state=0
        ).fit(X, y)
        steps = model.steps()

        assert len(steps) >= 10
        for i in range(9):
            assert steps[i + 1] < steps[i]

    def test_fits_linear_target(self, linear_data):
        X, y = linear_data
        model = GradientBoost(rate=0.5, estimators=100, random_state=0).fit(X, y)

        assert model.scores()[-1] > 0.9
        assert np.mean((model.predict(X) - y) ** 2) < 0.1 * np.var(y)

    def test_traces_have_one_entry_per_round(self, linear_data):
        X, y = linear_data
        model = GradientBoost(estimators=20, random_state=0).fit(X, y)

        assert len(model.steps()) == len(model.scores()) == len(model.ensemble_)
        assert len(model.steps()) <= 20

    def test_early_stopping_on_noise(self):
        """Pure noise cannot keep improving the validation score."""
        rng = np.random.default_rng(0)
        X = rng.standard_normal((200, 3))
        y = rng.standard_normal(200)

        model = GradientBoost(
            rate=0.5, estimators=300, window=5, holdout=0.2, random_state=0
        ).fit(X, y)

        assert len(model.steps()) < 300

    def test_nan_loss_stops_training(self, linear_data):
        X, y = linear_data
        y = y.copy()
        y[::2] = np.nan

        model = GradientBoost(estimators=20, random_state=0).fit(X, y)

        assert len(model.steps()) == 1
        assert np.isnan(model.steps()[0])
        assert model.trained()
        assert model.predict(X).shape == (len(X),)

    def test_base_learner_is_training_mean(self, linear_data):
        X, y = linear_data
        model = GradientBoost(estimators=5, holdout=0.1, random_state=0).fit(X, y)

        assert isinstance(model.base_, DummyRegressor)
        assert model.base_.value_ == pytest.approx(np.mean(y), rel=0.1)

    def test_staged_predict_ends_at_predict(self):
        X, y = make_regression(n_samples=150, n_features=4, noise=5.0, random_state=1)
        model = GradientBoost(estimators=15, window=15, random_state=1).fit(X, y)

        stages = list(model.staged_predict(X))

        assert len(stages) == len(model.ensemble_)
        np.testing.assert_allclose(stages[-1], model.predict(X))

    def test_feature_importances_find_signal(self):
        rng = np.random.default_rng(3)
        X = rng.uniform(-1, 1, size=(200, 3))
        y = 5.0 * X[:, 0]

        importances = GradientBoost(estimators=30, random_state=0).fit(X, y).feature_importances()

        assert sum(importances.values()) == pytest.approx(1.0)
        assert importances[0] > 0.9

    def test_custom_metric(self, linear_data):
        X, y = linear_data
        model = GradientBoost(
            estimators=10, metric=MeanAbsoluteError(), random_state=0
        ).fit(X, y)

        assert all(score <= 0.0 for score in model.scores())

    def test_randomized_booster_is_reproducible(self):
        X, y = make_regression(n_samples=120, n_features=5, random_state=2)

        def build():
            return GradientBoost(
                booster=ExtraTreeRegressor(max_depth=4), estimators=10, random_state=9
            ).fit(X, y)

        np.testing.assert_array_equal(build().predict(X), build().predict(X))

    def test_predict_before_fit_raises(self):
        with pytest.raises(NotFitted, match="fitted"):
            GradientBoost().predict([[1.0]])

    @pytest.mark.parametrize("params", [
        {"estimators": 0},
        {"rate": 0.0},
        {"ratio": 0.0},
        {"ratio": 1.1},
        {"window": 0},
        {"min_change": -1.0},
        {"holdout": 0.0},
        {"holdout": 0.6},
    ])
    def test_invalid_hyperparameters_raise(self, params):
        with pytest.raises(InvalidInput):
            GradientBoost(**params)

    def test_classifier_booster_rejected(self):
        with pytest.raises(InvalidInput, match="regressor"):
            GradientBoost(booster=ClassificationTree())

    def test_holdout_leaving_no_validation_samples_raises(self):
        X = np.arange(4, dtype=float).reshape(-1, 1)
        y = np.arange(4, dtype=float)

        with pytest.raises(InvalidInput, match="Holdout"):
            GradientBoost(holdout=0.1).fit(X, y)

    def test_ratio_leaving_no_training_samples_raises(self):
        X = np.arange(10, dtype=float).reshape(-1, 1)
        y = np.arange(10, dtype=float)

        with pytest.raises(InvalidInput, match="Ratio"):
            GradientBoost(ratio=0.01, holdout=0.1).fit(X, y)

    def test_categorical_targets_rejected(self):
        with pytest.raises(InvalidInput, match="continuous"):
            GradientBoost().fit([[1.0], [2.0], [3.0]], ["a", "b", "c"])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
