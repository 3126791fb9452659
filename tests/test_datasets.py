"""
Tests for datasets, validation metrics and the constant regressor.
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# ---------- path setup ----------
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from cartboost.datasets import DataType, Labeled, Unlabeled, as_matrix, goes_left
from cartboost.dummy import DummyRegressor
from cartboost.exceptions import InvalidInput, NotFitted
from cartboost.metrics import (
    Accuracy, MeanAbsoluteError, MeanSquaredError, RSquared,
    compute_metrics_classification, compute_metrics_regression, mse_loss
)


@pytest.fixture
def mixed():
    samples = [
        [1.0, "red", 3],
        [2.5, "blue", 1],
        [0.5, "red", 2],
        [4.0, "green", 5],
    ]
    return Labeled(samples, ["x", "y", "x", "z"])


# =============================================================================
# Datasets
# =============================================================================


class TestDataset:

    def test_column_types_inferred(self, mixed):
        assert mixed.types() == [
            DataType.CONTINUOUS, DataType.CATEGORICAL, DataType.CONTINUOUS
        ]
        assert mixed.column(0).dtype == np.float64
        assert list(mixed.column(1)) == ["red", "blue", "red", "green"]

    def test_numeric_matrix_is_float(self):
        matrix = as_matrix([[1, 2], [3, 4]])

        assert matrix.dtype == np.float64
        assert matrix.shape == (2, 2)

    def test_digit_strings_stay_categorical(self):
        dataset = Unlabeled([["1"], ["2"]])

        assert dataset.column_type(0) is DataType.CATEGORICAL

    def test_ragged_samples_raise(self):
        with pytest.raises(InvalidInput):
            Unlabeled([[1.0, 2.0], [3.0]])

    def test_label_count_mismatch_raises(self):
        with pytest.raises(InvalidInput, match="labels"):
            Labeled([[1.0], [2.0]], ["a"])

    def test_empty_dataset(self):
        dataset = Unlabeled([])

        assert dataset.empty()
        assert len(dataset) == 0

    def test_goes_left(self):
        values = np.array([1.0, 2.0, 3.0])
        np.testing.assert_array_equal(
            goes_left(values, 2.0, DataType.CONTINUOUS), [True, False, False]
        )

        categories = np.array(["a", "b", "a"], dtype=object)
        np.testing.assert_array_equal(
            goes_left(categories, "a", DataType.CATEGORICAL), [True, False, True]
        )

    def test_partition_continuous(self, mixed):
        left, right = mixed.partition(0, 2.0)

        assert list(left.labels()) == ["x", "x"]
        assert list(right.labels()) == ["y", "z"]

    def test_partition_categorical(self, mixed):
        left, right = mixed.partition(1, "red")

        assert left.num_rows() == 2
        assert right.num_rows() == 2
        assert set(right.column(1)) == {"blue", "green"}
        assert left.types() == mixed.types()

    def test_possible_outcomes_in_first_seen_order(self, mixed):
        assert list(mixed.possible_outcomes()) == ["x", "y", "z"]

    def test_random_subset_without_replacement(self):
        dataset = Labeled(np.arange(20, dtype=float).reshape(-1, 1), np.arange(20))
        subset = dataset.random_subset(10, np.random.default_rng(0))

        assert subset.num_rows() == 10
        assert len(set(subset.labels())) == 10

        with pytest.raises(InvalidInput):
            dataset.random_subset(21, np.random.default_rng(0))

    def test_randomize_keeps_rows_paired(self):
        dataset = Labeled(np.arange(10, dtype=float).reshape(-1, 1), np.arange(10))
        shuffled = dataset.randomize(np.random.default_rng(1))

        np.testing.assert_array_equal(shuffled.column(0), shuffled.labels())
        assert sorted(shuffled.labels()) == list(range(10))

    def test_split(self):
        dataset = Labeled(np.arange(10, dtype=float).reshape(-1, 1), np.arange(10))
        left, right = dataset.split(0.7)

        assert list(left.labels()) == list(range(7))
        assert list(right.labels()) == [7, 8, 9]

        with pytest.raises(InvalidInput):
            dataset.split(1.0)

    def test_weighted_subset_follows_weights(self):
        dataset = Labeled([[0.0], [1.0], [2.0]], ["a", "b", "c"])
        weights = np.array([0.0, 1.0, 0.0])

        subset = dataset.random_weighted_subset_with_replacement(
            50, weights, np.random.default_rng(0)
        )

        assert subset.num_rows() == 50
        assert set(subset.labels()) == {"b"}

    def test_weighted_subset_weight_mismatch_raises(self):
        dataset = Labeled([[0.0], [1.0]], ["a", "b"])

        with pytest.raises(InvalidInput):
            dataset.random_weighted_subset_with_replacement(
                2, np.ones(3), np.random.default_rng(0)
            )

    def test_from_frame(self):
        frame = pd.DataFrame({
            "size": [1.0, 2.0, 3.0],
            "colour": ["red", "blue", "red"],
            "target": [0.5, 1.5, 2.5],
        })

        dataset = Labeled.from_frame(frame, "target")

        assert dataset.num_columns() == 2
        assert dataset.types() == [DataType.CONTINUOUS, DataType.CATEGORICAL]
        np.testing.assert_allclose(dataset.labels(), [0.5, 1.5, 2.5])

        with pytest.raises(InvalidInput, match="not found"):
            Labeled.from_frame(frame, "missing")


# =============================================================================
# Metrics
# =============================================================================


class TestMetrics:

    def test_r_squared(self):
        labels = np.array([1.0, 2.0, 3.0, 4.0])

        assert RSquared().score(labels, labels) == pytest.approx(1.0)
        assert RSquared().score(np.full(4, 2.5), labels) == pytest.approx(0.0)

    def test_r_squared_single_sample_is_zero(self):
        assert RSquared().score([1.0], [2.0]) == 0.0

    def test_error_metrics_are_negated(self):
        predictions = np.array([1.0, 2.0, 3.0])
        labels = np.array([2.0, 2.0, 5.0])

        assert MeanAbsoluteError().score(predictions, labels) == pytest.approx(-1.0)
        assert MeanSquaredError().score(predictions, labels) == pytest.approx(-5.0 / 3.0)

    def test_accuracy(self):
        assert Accuracy().score(["a", "b", "b"], ["a", "b", "a"]) == pytest.approx(2 / 3)

    def test_empty_scores_zero(self):
        assert MeanAbsoluteError().score([], []) == 0.0

    def test_count_mismatch_raises(self):
        with pytest.raises(InvalidInput):
            RSquared().score([1.0, 2.0], [1.0])

    def test_mse_loss(self):
        assert mse_loss(np.array([1.0, 2.0]), np.array([0.0, 4.0])) == pytest.approx(2.5)

    def test_reports(self):
        reg = compute_metrics_regression(np.array([1.0, 2.0, 3.0]), np.array([1.0, 2.0, 3.0]))
        assert reg["mse"] == pytest.approx(0.0)
        assert reg["r2"] == pytest.approx(1.0)

        clf = compute_metrics_classification(np.array([0, 1, 1]), np.array([0, 1, 1]))
        assert clf["accuracy"] == pytest.approx(1.0)
        assert clf["f1_macro"] == pytest.approx(1.0)


# =============================================================================
# DummyRegressor
# =============================================================================


class TestDummyRegressor:

    X = np.zeros((4, 2))
    y = np.array([1.0, 2.0, 3.0, 10.0])

    def test_mean(self):
        pred = DummyRegressor("mean").fit(self.X, self.y).predict(np.zeros((3, 2)))
        np.testing.assert_allclose(pred, 4.0)

    def test_median(self):
        model = DummyRegressor("median").fit(self.X, self.y)
        assert model.value_ == pytest.approx(2.5)

    def test_constant(self):
        model = DummyRegressor("constant", constant=-1.0).fit(self.X, self.y)
        assert model.predict_sample([0.0, 0.0]) == pytest.approx(-1.0)

    def test_invalid_strategy(self):
        with pytest.raises(InvalidInput):
            DummyRegressor("mode")

        with pytest.raises(InvalidInput):
            DummyRegressor("constant")

    def test_predict_before_fit_raises(self):
        with pytest.raises(NotFitted):
            DummyRegressor().predict(self.X)

    def test_feature_count_checked(self):
        model = DummyRegressor().fit(self.X, self.y)

        with pytest.raises(InvalidInput, match="features"):
            model.predict(np.zeros((2, 3)))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
