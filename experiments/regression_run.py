"""
Regression experiment on the Diabetes dataset.

Tracks the training loss and validation score of gradient boosting, the effect
of shrinkage and subsampling, and where early stopping ends training.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from sklearn.datasets import load_diabetes
from sklearn.model_selection import train_test_split

from cartboost import ExtraTreeRegressor, GradientBoost, RegressionTree
from cartboost.metrics import compute_metrics_regression

OUTPUT_DIR = Path(__file__).parent

# Set style
plt.style.use('seaborn-v0_8-darkgrid')
np.random.seed(42)


def load_and_prepare_data():
    """Load Diabetes dataset and split 80/20."""
    print("Loading Diabetes dataset...")
    X, y = load_diabetes(return_X_y=True)

    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=0.2, random_state=42
    )

    print(f"Train: {X_train.shape}, Test: {X_test.shape}")

    return X_train, X_test, y_train, y_test


def baseline_comparison(X_train, X_test, y_train, y_test):
    """Baseline: single RegressionTree."""
    print("\n" + "="*60)
    print("Baseline: Single Regression Tree")
    print("="*60)

    tree = RegressionTree(max_depth=3).fit(X_train, y_train)

    train_metrics = compute_metrics_regression(y_train, tree.predict(X_train))
    test_metrics = compute_metrics_regression(y_test, tree.predict(X_test))

    print(f"Train MSE: {train_metrics['mse']:.4f}")
    print(f"Test MSE:  {test_metrics['mse']:.4f}")
    print(f"Test R2:   {test_metrics['r2']:.4f}")

    return test_metrics


def experiment_learning_rate(X_train, X_test, y_train, y_test):
    """Experiment: effect of the learning rate (shrinkage)."""
    print("\n" + "="*60)
    print("Experiment 1: Effect of rate")
    print("="*60)

    rates = [0.05, 0.1, 0.3]
    results = []

    fig, axes = plt.subplots(1, 2, figsize=(15, 5))

    for rate in rates:
        print(f"\nFitting with rate={rate}...")

        model = GradientBoost(rate=rate, estimators=300, random_state=42)
        model.fit(X_train, y_train)

        metrics = compute_metrics_regression(y_test, model.predict(X_test))
        print(f"Rounds: {len(model.steps())}, Test MSE: {metrics['mse']:.4f}, "
              f"Test R2: {metrics['r2']:.4f}")

        results.append({'rate': rate, 'rounds': len(model.steps()), **metrics})

        axes[0].plot(model.steps(), label=f'rate={rate}', linewidth=2)
        axes[1].plot(model.scores(), label=f'rate={rate}', linewidth=2)

    axes[0].set_xlabel('Iteration')
    axes[0].set_ylabel('Training MSE')
    axes[0].set_title('Training Loss')
    axes[1].set_xlabel('Iteration')
    axes[1].set_ylabel('Validation R2')
    axes[1].set_title('Validation Score')

    for ax in axes:
        ax.legend()
        ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(OUTPUT_DIR / 'regression_learning_rate.png', dpi=150)
    print("\nSaved plot: regression_learning_rate.png")

    return pd.DataFrame(results)


def experiment_subsample(X_train, X_test, y_train, y_test):
    """Experiment: effect of stochastic subsampling and the booster type."""
    print("\n" + "="*60)
    print("Experiment 2: Effect of ratio (Stochastic Boosting)")
    print("="*60)

    results = []

    for booster_name, booster in [('cart', RegressionTree(max_depth=3)),
                                  ('extra', ExtraTreeRegressor(max_depth=4))]:
        for ratio in [0.3, 0.5, 1.0]:
            print(f"\nFitting {booster_name} with ratio={ratio}...")

            model = GradientBoost(booster=booster, ratio=ratio, estimators=300,
                                  random_state=42)
            model.fit(X_train, y_train)

            metrics = compute_metrics_regression(y_test, model.predict(X_test))
            print(f"Rounds: {len(model.steps())}, Test R2: {metrics['r2']:.4f}")

            results.append({
                'booster': booster_name,
                'ratio': ratio,
                'rounds': len(model.steps()),
                **metrics
            })

    return pd.DataFrame(results)


def experiment_early_stopping(X_train, X_test, y_train, y_test):
    """Experiment: test error of every stage against where training stopped."""
    print("\n" + "="*60)
    print("Experiment 3: Early Stopping")
    print("="*60)

    model = GradientBoost(rate=0.3, estimators=500, window=10, random_state=42)
    model.fit(X_train, y_train)

    test_mse = [
        np.mean((y_test - pred) ** 2) for pred in model.staged_predict(X_test)
    ]
    best = int(np.argmin(test_mse)) + 1

    print(f"Stopped after {len(model.steps())} of {model.estimators} rounds")
    print(f"Lowest test MSE {min(test_mse):.4f} at round {best}")

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.plot(range(1, len(test_mse) + 1), test_mse, linewidth=2, label='Test MSE')
    ax.axvline(best, color='k', linestyle='--', linewidth=1, label='Best round')
    ax.set_xlabel('Iteration')
    ax.set_ylabel('MSE')
    ax.set_title('Staged Test Error')
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(OUTPUT_DIR / 'regression_early_stopping.png', dpi=150)
    print("\nSaved plot: regression_early_stopping.png")


def main():
    """Run all regression experiments."""
    print("="*60)
    print("Gradient Boosting Regression Experiments")
    print("Diabetes Dataset")
    print("="*60)

    X_train, X_test, y_train, y_test = load_and_prepare_data()

    baseline_comparison(X_train, X_test, y_train, y_test)

    results_rate = experiment_learning_rate(X_train, X_test, y_train, y_test)
    results_ratio = experiment_subsample(X_train, X_test, y_train, y_test)

    results_rate.to_csv(OUTPUT_DIR / 'regression_learning_rate_results.csv', index=False)
    results_ratio.to_csv(OUTPUT_DIR / 'regression_subsample_results.csv', index=False)

    print("\n" + "="*60)
    print("Results Summary")
    print("="*60)
    print("\nEffect of rate:")
    print(results_rate.to_string(index=False))
    print("\nEffect of ratio:")
    print(results_ratio.to_string(index=False))

    experiment_early_stopping(X_train, X_test, y_train, y_test)

    print("\n" + "="*60)
    print("Regression Experiments Complete!")
    print("="*60)


if __name__ == "__main__":
    main()
