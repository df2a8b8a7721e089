"""
neurofuzzy: two-input ANFIS with sigmoid antecedents and analytic gradient training.

This package provides:
  - A Takagi-Sugeno ANFIS over inputs (x, y) with sigmoid membership functions
  - Online and batch gradient descent with closed-form partial derivatives
  - Dataset reading / generation on an integer grid
  - Plain-text exports for plotting tools and a rule report
  - A small CLI (neurofuzzy train / generate / show-dataset)
"""

from .data import Dataset, Example, generate_dataset, goal_function, read_dataset
from .model import ANFIS, ConsequentFunction, MembershipFunction, Rule, RuleGradient
from .train import BatchUpdate, OnlineUpdate, TrainConfig, TrainResult, UpdateStrategy

__all__ = [
    "__version__",
    "ANFIS",
    "BatchUpdate",
    "ConsequentFunction",
    "Dataset",
    "Example",
    "MembershipFunction",
    "OnlineUpdate",
    "Rule",
    "RuleGradient",
    "TrainConfig",
    "TrainResult",
    "UpdateStrategy",
    "generate_dataset",
    "goal_function",
    "read_dataset",
]

__version__ = "0.1.0"
