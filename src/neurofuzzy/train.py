"""
neurofuzzy.train

Training utilities for the two-input ANFIS.

Responsibilities:
  - Hold the training configuration (TrainConfig), optionally loaded from YAML.
  - Provide the two parameter-update disciplines behind one interface:
        - OnlineUpdate: apply each example's gradient immediately
        - BatchUpdate : sum gradients over the epoch, apply once at the end
  - Run the epoch loop until the error threshold or the epoch budget is reached,
    recording the error after every epoch.

Design choices:
  - Both strategies consume the same per-example gradient (ANFIS.gradients).
  - Dataset order is the epoch order; nothing is shuffled here.
  - Not converging is a normal outcome (TrainResult.converged is False), not an error.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from .utils import load_yaml

if TYPE_CHECKING:
    from .data import Dataset
    from .model import ANFIS, Rule, RuleGradient

logger = logging.getLogger(__name__)

MAX_EPOCHS = 50000
MEAN_SQUARED_ERROR_THRESHOLD = 1e-5
ETA_PQR = 8e-4
ETA_AB = 1e-4


def _coerce(kind: type, name: str, value: object):
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}.")
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}.") from None


@dataclass
class TrainConfig:
    """
    Training configuration for ANFIS.
    """
    number_of_rules: int = 2
    batch: bool = False  # False -> online (per-example) updates
    max_epochs: int = MAX_EPOCHS
    error_threshold: float = MEAN_SQUARED_ERROR_THRESHOLD
    eta_pqr: float = ETA_PQR  # learning rate for p, q, r
    eta_ab: float = ETA_AB  # learning rate for a, b, c, d
    seed: Optional[int] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if isinstance(self.number_of_rules, bool) or not isinstance(self.number_of_rules, int):
            raise ValueError("number_of_rules must be a positive integer.")
        if self.number_of_rules < 1:
            raise ValueError("number_of_rules must be a positive integer.")

        # YAML reads exponent floats without a dot (1e-5) as strings
        self.max_epochs = _coerce(int, "max_epochs", self.max_epochs)
        self.error_threshold = _coerce(float, "error_threshold", self.error_threshold)
        self.eta_pqr = _coerce(float, "eta_pqr", self.eta_pqr)
        self.eta_ab = _coerce(float, "eta_ab", self.eta_ab)

        if math.isnan(self.error_threshold):
            raise ValueError("error_threshold must be a number, got nan.")
        if self.max_epochs < 0:
            raise ValueError("max_epochs must be >= 0.")
        if self.eta_pqr < 0.0 or self.eta_ab < 0.0:
            raise ValueError("Learning rates must be non-negative.")

    @property
    def mode(self) -> str:
        return "batch" if self.batch else "online"

    def updated(self, **overrides) -> "TrainConfig":
        """
        Copy with every non-None override applied.
        """
        values = asdict(self)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return TrainConfig(**values)

    @staticmethod
    def from_yaml(path: str | Path) -> "TrainConfig":
        raw = load_yaml(path) or {}
        # Allow either a flat mapping or a "train:" section
        raw = raw.get("train", raw) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"The 'train' section of {path} must be a mapping.")
        known = {f.name for f in fields(TrainConfig)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ValueError(f"Unknown training config keys: {unknown}")
        return TrainConfig(**raw)


@dataclass
class TrainResult:
    """
    Outcome of a training run. history holds (epoch, error) after each epoch.
    """
    mode: str
    epochs: int
    initial_error: float
    final_error: float
    converged: bool
    history: List[Tuple[int, float]] = field(default_factory=list)

    def summary(self) -> Dict[str, float]:
        return {
            "epochs": float(self.epochs),
            "initial_error": self.initial_error,
            "final_error": self.final_error,
            "converged": float(self.converged),
        }


class UpdateStrategy:
    """
    How per-example gradients turn into parameter updates.
    """

    def __init__(self, eta_pqr: float = ETA_PQR, eta_ab: float = ETA_AB):
        self.eta_pqr = eta_pqr
        self.eta_ab = eta_ab

    def begin_epoch(self, model: "ANFIS") -> None:
        pass

    def step(self, rule: "Rule", grad: "RuleGradient") -> None:
        raise NotImplementedError

    def end_epoch(self, model: "ANFIS") -> None:
        pass


class OnlineUpdate(UpdateStrategy):
    """
    Stochastic gradient descent: every example updates the parameters at once.
    """

    def step(self, rule: "Rule", grad: "RuleGradient") -> None:
        rule.descend(grad.as_array(), self.eta_pqr, self.eta_ab)


class BatchUpdate(UpdateStrategy):
    """
    Batch gradient descent: partials are summed (not averaged) over the epoch and
    applied once, after every example has been visited.
    """

    def begin_epoch(self, model: "ANFIS") -> None:
        for rule in model.rules:
            rule.reset_gradient()

    def step(self, rule: "Rule", grad: "RuleGradient") -> None:
        rule.accumulate(grad)

    def end_epoch(self, model: "ANFIS") -> None:
        for rule in model.rules:
            rule.descend(rule.gradient, self.eta_pqr, self.eta_ab)


def make_strategy(cfg: TrainConfig) -> UpdateStrategy:
    if cfg.batch:
        return BatchUpdate(eta_pqr=cfg.eta_pqr, eta_ab=cfg.eta_ab)
    return OnlineUpdate(eta_pqr=cfg.eta_pqr, eta_ab=cfg.eta_ab)


def run_epoch(model: "ANFIS", dataset: "Dataset", strategy: UpdateStrategy) -> None:
    """
    Visit every example once, in dataset order.
    """
    strategy.begin_epoch(model)
    for example in dataset:
        grads = model.gradients(example)
        for rule, grad in zip(model.rules, grads):
            strategy.step(rule, grad)
    strategy.end_epoch(model)


def run_training(
    model: "ANFIS",
    dataset: "Dataset",
    cfg: TrainConfig,
    on_epoch: Optional[Callable[[int, float], None]] = None,
) -> TrainResult:
    """
    Train model in place until error <= cfg.error_threshold or cfg.max_epochs epochs ran.

    Args:
      model: ANFIS instance (mutated)
      dataset: training examples, visited in order each epoch
      cfg: training configuration (number_of_rules and seed are not used here)
      on_epoch: optional callback receiving (epoch, error) after each epoch

    Returns:
      TrainResult with the per-epoch error history
    """
    if dataset is None:
        raise TypeError("dataset must not be None.")

    strategy = make_strategy(cfg)

    error = model.mean_squared_error(dataset)
    initial_error = error
    history: List[Tuple[int, float]] = []

    epoch = 1
    while error > cfg.error_threshold and epoch <= cfg.max_epochs:
        run_epoch(model, dataset, strategy)

        error = model.mean_squared_error(dataset)
        history.append((epoch, error))
        logger.debug("Epoch: %d, Error: %.10g", epoch, error)
        if on_epoch is not None:
            on_epoch(epoch, error)
        epoch += 1

    converged = error <= cfg.error_threshold
    logger.info(
        "%s training finished after %d epoch(s): error %.6g -> %.6g (%s)",
        cfg.mode.capitalize(),
        len(history),
        initial_error,
        error,
        "converged" if converged else "epoch budget exhausted",
    )
    return TrainResult(
        mode=cfg.mode,
        epochs=len(history),
        initial_error=initial_error,
        final_error=error,
        converged=converged,
        history=history,
    )
