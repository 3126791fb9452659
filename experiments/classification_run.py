"""
Classification experiment on the Breast Cancer dataset.

Compares AdaBoost over decision stumps with a single stump and a depth-3
classification tree, then looks at the learning rate and the base learner.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from sklearn.datasets import load_breast_cancer
from sklearn.model_selection import train_test_split

from cartboost import AdaBoost, ClassificationTree, ExtraTreeClassifier
from cartboost.metrics import compute_metrics_classification

OUTPUT_DIR = Path(__file__).parent

# Set style
plt.style.use('seaborn-v0_8-darkgrid')
np.random.seed(42)


def load_and_prepare_data():
    """Load Breast Cancer dataset and split 80/20."""
    print("Loading Breast Cancer dataset...")
    data = load_breast_cancer()
    X, y = data.data, data.target_names[data.target]

    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=0.2, random_state=42, stratify=y
    )

    print(f"Train: {X_train.shape}, Test: {X_test.shape}")

    return X_train, X_test, y_train, y_test, list(data.feature_names)


def baseline_comparison(X_train, X_test, y_train, y_test):
    """Baselines: a decision stump and a depth-3 tree."""
    print("\n" + "="*60)
    print("Baseline: Single Classification Trees")
    print("="*60)

    results = []

    for depth in [1, 3]:
        tree = ClassificationTree(max_depth=depth).fit(X_train, y_train)
        metrics = compute_metrics_classification(y_test, tree.predict(X_test))

        print(f"max_depth={depth}: Test Accuracy {metrics['accuracy']:.4f}, "
              f"F1 {metrics['f1_macro']:.4f}")

        results.append({'model': f'tree(depth={depth})', **metrics})

    return results


def experiment_learning_rate(X_train, X_test, y_train, y_test):
    """Experiment: effect of the learning rate on the weighted training error."""
    print("\n" + "="*60)
    print("Experiment 1: Effect of rate")
    print("="*60)

    rates = [0.1, 0.5, 1.0]
    results = []

    fig, ax = plt.subplots(figsize=(10, 6))

    for rate in rates:
        print(f"\nFitting with rate={rate}...")

        model = AdaBoost(estimators=100, rate=rate, random_state=42)
        model.fit(X_train, y_train)

        metrics = compute_metrics_classification(y_test, model.predict(X_test))
        print(f"Rounds: {len(model.steps())}, Test Accuracy: {metrics['accuracy']:.4f}")

        results.append({'rate': rate, 'rounds': len(model.steps()), **metrics})

        ax.plot(model.steps(), label=f'rate={rate}', linewidth=2)

    ax.set_xlabel('Round')
    ax.set_ylabel('Weighted Training Error')
    ax.set_title('AdaBoost Training Error per Round')
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(OUTPUT_DIR / 'classification_learning_rate.png', dpi=150)
    print("\nSaved plot: classification_learning_rate.png")

    return pd.DataFrame(results)


def experiment_base_learner(X_train, X_test, y_train, y_test):
    """Experiment: stumps against deeper and randomized base learners."""
    print("\n" + "="*60)
    print("Experiment 2: Effect of base learner")
    print("="*60)

    bases = {
        'stump': ClassificationTree(max_depth=1),
        'tree(depth=2)': ClassificationTree(max_depth=2),
        'extra(depth=3)': ExtraTreeClassifier(max_depth=3),
    }
    results = []

    for name, base in bases.items():
        print(f"\nFitting with base={name}...")

        model = AdaBoost(base=base, estimators=50, random_state=42)
        model.fit(X_train, y_train)

        metrics = compute_metrics_classification(y_test, model.predict(X_test))
        print(f"Test Accuracy: {metrics['accuracy']:.4f}")

        results.append({'base': name, 'rounds': len(model.steps()), **metrics})

    return pd.DataFrame(results)


def plot_feature_importances(X_train, y_train, feature_names, top=10):
    """Bar chart of the ensemble's most important features."""
    print("\n" + "="*60)
    print("Feature Importances")
    print("="*60)

    model = AdaBoost(estimators=100, random_state=42).fit(X_train, y_train)

    importances = pd.Series(
        {feature_names[i]: v for i, v in model.feature_importances().items()}
    ).sort_values(ascending=False).head(top)

    print(importances.to_string())

    fig, ax = plt.subplots(figsize=(10, 6))
    importances[::-1].plot.barh(ax=ax)
    ax.set_xlabel('Normalised Impurity Decrease')
    ax.set_title(f'Top {top} Features - AdaBoost')

    plt.tight_layout()
    plt.savefig(OUTPUT_DIR / 'classification_importances.png', dpi=150)
    print("\nSaved plot: classification_importances.png")


def main():
    """Run all classification experiments."""
    print("="*60)
    print("AdaBoost Classification Experiments")
    print("Breast Cancer Dataset")
    print("="*60)

    X_train, X_test, y_train, y_test, feature_names = load_and_prepare_data()

    baseline = pd.DataFrame(baseline_comparison(X_train, X_test, y_train, y_test))
    results_rate = experiment_learning_rate(X_train, X_test, y_train, y_test)
    results_base = experiment_base_learner(X_train, X_test, y_train, y_test)

    results_rate.to_csv(OUTPUT_DIR / 'classification_learning_rate_results.csv', index=False)
    results_base.to_csv(OUTPUT_DIR / 'classification_base_results.csv', index=False)

    print("\n" + "="*60)
    print("Results Summary")
    print("="*60)
    print("\nBaselines:")
    print(baseline.to_string(index=False))
    print("\nEffect of rate:")
    print(results_rate.to_string(index=False))
    print("\nEffect of base learner:")
    print(results_base.to_string(index=False))

    plot_feature_importances(X_train, y_train, feature_names)

    print("\n" + "="*60)
    print("Classification Experiments Complete!")
    print("="*60)


if __name__ == "__main__":
    main()
