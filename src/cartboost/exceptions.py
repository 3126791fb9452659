"""
Exception types raised by cartboost estimators.

Numeric degeneracies during training (a not-a-number loss, a perfect round)
are never raised: they end the boosting loop early and leave a usable model.
"""


class InvalidInput(ValueError):
    """Malformed hyperparameters, or a dataset that cannot be trained on."""


class NotFitted(RuntimeError):
    """Inference attempted before a successful training round."""
