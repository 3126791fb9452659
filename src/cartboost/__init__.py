"""
CART decision trees and boosted tree ensembles from scratch.

Implements CART induction (Breiman et al., 1984), extremely randomized trees
(Geurts et al., 2006), multi-class AdaBoost (Zhu et al., 2009) and stochastic
gradient tree boosting (Friedman, 2002).
"""

from .boosting import AdaBoost, EarlyStopping, GradientBoost
from .datasets import DataType, Labeled, Unlabeled
from .dummy import DummyRegressor
from .exceptions import InvalidInput, NotFitted
from .tree import ClassificationTree, ExtraTreeClassifier, ExtraTreeRegressor, RegressionTree

__version__ = "0.1.0"
__all__ = [
    "AdaBoost",
    "GradientBoost",
    "EarlyStopping",
    "ClassificationTree",
    "RegressionTree",
    "ExtraTreeClassifier",
    "ExtraTreeRegressor",
    "DummyRegressor",
    "Labeled",
    "Unlabeled",
    "DataType",
    "InvalidInput",
    "NotFitted",
]
