"""
neurofuzzy.model

This module implements a **two-input Takagi–Sugeno ANFIS** with sigmoid membership
functions and an analytically derived gradient.

Design goals:
  - Fixed number of fuzzy rules (user-controlled), two inputs (x, y).
  - Sigmoid membership functions, product T-norm.
  - First-order TSK consequents: a linear model per rule.
  - Gradient computed in closed form (no autograd), so every partial derivative
    can be inspected and tested on its own.
  - Explicit random source: no global RNG state is touched.

Model structure (conceptual):
  For each rule i:
    IF x is A_i AND y is B_i
    THEN z_i = p_i * x + q_i * y + r_i

  with
    A_i(x) = 1 / (1 + exp(b_i * (x - a_i)))
    B_i(y) = 1 / (1 + exp(d_i * (y - c_i)))

  Final output:
    o = sum_i (alpha_i * z_i) / sum_i alpha_i,   alpha_i = A_i(x) * B_i(y)

Notes:
  - Each rule owns a row of a shared (R, 7) gradient buffer; the column order is
    p, q, r, a, b, c, d.
  - A zero total firing strength is NOT guarded: the output is the IEEE result of
    dividing by 0.0 (inf or nan). Set ``warn_degenerate=True`` to get a log line.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .data import Dataset, Example
from .train import TrainConfig, TrainResult, run_training

logger = logging.getLogger(__name__)

DEFAULT_NUMBER_OF_RULES = 2

# Number of learnable parameters per rule: p, q, r, a, b, c, d
PARAMS_PER_RULE = 7


def _safe_divide(numerator: float, denominator: float) -> float:
    """
    IEEE division: returns +-inf or nan instead of raising on a zero denominator.
    """
    if denominator != 0.0:
        return numerator / denominator
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(numerator) / np.float64(denominator))


class MembershipFunction:
    """
    Sigmoid membership function:

      mu(x) = 1 / (1 + exp(b * (x - a)))

    Parameters (learnable, no constraints):
      - a : inflection point
      - b : steepness; the sign decides whether the curve falls (b > 0) or rises (b < 0).
            b = 0 degenerates to the constant 0.5.
    """

    __slots__ = ("a", "b")

    def __init__(self, a: float = 0.0, b: float = 0.0):
        self.a = float(a)
        self.b = float(b)

    def apply(self, x: float) -> float:
        z = self.b * (x - self.a)
        # Only ever exponentiate a non-positive number
        if z >= 0.0:
            e = math.exp(-z)
            return e / (1.0 + e)
        return 1.0 / (1.0 + math.exp(z))

    __call__ = apply

    def derivative_by_a(self, x: float) -> float:
        mu = self.apply(x)
        return self.b * mu * (1.0 - mu)

    def derivative_by_b(self, x: float) -> float:
        mu = self.apply(x)
        return -(x - self.a) * mu * (1.0 - mu)

    def __repr__(self) -> str:
        return f"MembershipFunction(a={self.a!r}, b={self.b!r})"


class ConsequentFunction:
    """
    First-order TSK consequent:

      z(x, y) = p * x + q * y + r
    """

    __slots__ = ("p", "q", "r")

    def __init__(self, p: float = 0.0, q: float = 0.0, r: float = 0.0):
        self.p = float(p)
        self.q = float(q)
        self.r = float(r)

    def apply(self, x: float, y: float) -> float:
        return self.p * x + self.q * y + self.r

    __call__ = apply

    def __repr__(self) -> str:
        return f"ConsequentFunction(p={self.p!r}, q={self.q!r}, r={self.r!r})"


@dataclass(frozen=True)
class RuleGradient:
    """
    Partial derivatives of the per-example squared error by one rule's parameters.
    """
    p: float
    q: float
    r: float
    a: float
    b: float
    c: float
    d: float

    def as_array(self) -> np.ndarray:
        return np.array([self.p, self.q, self.r, self.a, self.b, self.c, self.d], dtype=np.float64)


class Rule:
    """
    One fuzzy rule: the antecedent pair (A_i, B_i), the consequent z_i and a view
    onto this rule's row of the model gradient buffer.
    """

    def __init__(
        self,
        membership_x: MembershipFunction,
        membership_y: MembershipFunction,
        consequent: ConsequentFunction,
        gradient: Optional[np.ndarray] = None,
    ):
        self.membership_x = membership_x
        self.membership_y = membership_y
        self.consequent = consequent
        if gradient is None:
            gradient = np.zeros(PARAMS_PER_RULE, dtype=np.float64)
        if gradient.shape != (PARAMS_PER_RULE,):
            raise ValueError(f"Rule gradient buffer must have shape ({PARAMS_PER_RULE},).")
        self.gradient = gradient

    def firing_strength(self, x: float, y: float) -> float:
        # Product T-norm
        return self.membership_x.apply(x) * self.membership_y.apply(y)

    def parameters(self) -> np.ndarray:
        """
        Current parameters in buffer order: p, q, r, a, b, c, d.
        """
        z, ma, mb = self.consequent, self.membership_x, self.membership_y
        return np.array([z.p, z.q, z.r, ma.a, ma.b, mb.a, mb.b], dtype=np.float64)

    def set_parameters(self, values: Sequence[float]) -> None:
        p, q, r, a, b, c, d = (float(v) for v in values)
        self.consequent.p, self.consequent.q, self.consequent.r = p, q, r
        self.membership_x.a, self.membership_x.b = a, b
        self.membership_y.a, self.membership_y.b = c, d

    def accumulate(self, grad: RuleGradient) -> None:
        self.gradient += grad.as_array()

    def descend(self, partials: Sequence[float], eta_pqr: float, eta_ab: float) -> None:
        """
        Gradient step: param <- param - eta * partial.
        """
        z, ma, mb = self.consequent, self.membership_x, self.membership_y
        dp, dq, dr, da, db, dc, dd = (float(v) for v in partials)

        z.p -= eta_pqr * dp
        z.q -= eta_pqr * dq
        z.r -= eta_pqr * dr

        ma.a -= eta_ab * da
        ma.b -= eta_ab * db

        mb.a -= eta_ab * dc
        mb.b -= eta_ab * dd

    def reset_gradient(self) -> None:
        self.gradient.fill(0.0)

    def __repr__(self) -> str:
        return f"Rule(A={self.membership_x!r}, B={self.membership_y!r}, z={self.consequent!r})"


class ANFIS:
    """
    Two-input ANFIS with sigmoid antecedents and linear consequents.

    Forward pass:
      1) Fuzzify x and y through A_i and B_i
      2) Firing strength alpha_i = A_i(x) * B_i(y)
      3) Rule outputs f_i = z_i(x, y)
      4) Output = sum(alpha_i * f_i) / sum(alpha_i)
    """

    def __init__(
        self,
        number_of_rules: int = DEFAULT_NUMBER_OF_RULES,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
        warn_degenerate: bool = False,
    ):
        """
        Args:
          number_of_rules: R >= 1
          seed: seed for a fresh numpy Generator (ignored when rng is given)
          rng: explicit random source for parameter initialization
          warn_degenerate: log a warning whenever the total firing strength is zero
        """
        if isinstance(number_of_rules, bool) or not isinstance(number_of_rules, (int, np.integer)):
            raise ValueError("The number of rules must be a positive integer.")
        if number_of_rules < 1:
            raise ValueError("The number of rules must be a positive integer.")

        self.number_of_rules = int(number_of_rules)
        self.warn_degenerate = warn_degenerate
        self._gradient_buffer = np.zeros((self.number_of_rules, PARAMS_PER_RULE), dtype=np.float64)

        if rng is None:
            rng = np.random.default_rng(seed)

        self.rules: List[Rule] = []
        for i in range(self.number_of_rules):
            a, b, c, d, p, q = (float(v) for v in rng.standard_normal(6))
            self.rules.append(
                Rule(
                    membership_x=MembershipFunction(a, b),
                    membership_y=MembershipFunction(c, d),
                    consequent=ConsequentFunction(p, q, 0.0),
                    gradient=self._gradient_buffer[i],
                )
            )

    @classmethod
    def from_rules(cls, rules: Iterable[Rule], warn_degenerate: bool = False) -> "ANFIS":
        """
        Build a model from explicit rules. Each rule is rebound to a row of the new
        model's gradient buffer.
        """
        rules = list(rules)
        if not rules:
            raise ValueError("The number of rules must be a positive integer.")
        model = cls(number_of_rules=len(rules), rng=np.random.default_rng(0), warn_degenerate=warn_degenerate)
        for i, rule in enumerate(rules):
            rule.gradient = model._gradient_buffer[i]
            rule.reset_gradient()
        model.rules = rules
        return model

    # ---------- views ----------

    @property
    def fuzzy_sets_a(self) -> List[MembershipFunction]:
        return [rule.membership_x for rule in self.rules]

    @property
    def fuzzy_sets_b(self) -> List[MembershipFunction]:
        return [rule.membership_y for rule in self.rules]

    @property
    def consequents(self) -> List[ConsequentFunction]:
        return [rule.consequent for rule in self.rules]

    @property
    def gradient_buffer(self) -> np.ndarray:
        return self._gradient_buffer

    def parameters(self) -> np.ndarray:
        """
        (R, 7) snapshot of all parameters, columns p, q, r, a, b, c, d.
        """
        return np.stack([rule.parameters() for rule in self.rules], axis=0)

    # ---------- inference ----------

    def forward(self, x: float, y: float) -> Tuple[List[float], List[float], float]:
        """
        Returns:
          alphas: firing strength per rule
          fis: consequent value per rule
          output: firing-strength-weighted average of fis
        """
        alphas = [rule.firing_strength(x, y) for rule in self.rules]
        fis = [rule.consequent.apply(x, y) for rule in self.rules]

        numerator = 0.0
        denominator = 0.0
        for alpha, fi in zip(alphas, fis):
            numerator += alpha * fi
            denominator += alpha

        if denominator == 0.0 and self.warn_degenerate:
            logger.warning("Total firing strength is zero at (x=%g, y=%g); output is not finite.", x, y)
        return alphas, fis, _safe_divide(numerator, denominator)

    def predict(self, example: Example) -> float:
        _alphas, _fis, output = self.forward(example.x, example.y)
        return output

    def predict_dataset(self, dataset: Iterable[Example]) -> np.ndarray:
        return np.array([self.predict(example) for example in dataset], dtype=np.float64)

    def mean_squared_error(self, dataset: Iterable[Example]) -> float:
        """
        E = 0.5 * sum_k (label_k - output_k)^2
        """
        total = 0.0
        for example in dataset:
            err = example.label - self.predict(example)
            total += err * err
        return 0.5 * total

    # ---------- gradient ----------

    def gradients(self, example: Example) -> List[RuleGradient]:
        """
        Analytic partial derivatives of E_k = 0.5 * (label - o)^2 for every rule.

        All partials are evaluated on the current parameter snapshot; nothing is
        updated here.
        """
        x, y = example.x, example.y
        alphas, fis, output = self.forward(x, y)
        delta = example.label - output
        alpha_sum = sum(alphas)

        grads: List[RuleGradient] = []
        for i, rule in enumerate(self.rules):
            mu_a = rule.membership_x.apply(x)
            mu_b = rule.membership_y.apply(y)
            a, b = rule.membership_x.a, rule.membership_x.b
            c, d = rule.membership_y.a, rule.membership_y.b

            # d(output) / d(alpha_i)
            nominator = 0.0
            for alpha_j, f_j in zip(alphas, fis):
                nominator += alpha_j * (fis[i] - f_j)
            output_by_tnorm = _safe_divide(nominator, alpha_sum * alpha_sum)

            # d(output) / d(f_i)
            output_by_consequent = _safe_divide(alphas[i], alpha_sum)

            grads.append(
                RuleGradient(
                    p=-delta * output_by_consequent * x,
                    q=-delta * output_by_consequent * y,
                    r=-delta * output_by_consequent,
                    a=-delta * output_by_tnorm * mu_b * b * mu_a * (1.0 - mu_a),
                    b=delta * output_by_tnorm * mu_b * (x - a) * mu_a * (1.0 - mu_a),
                    c=-delta * output_by_tnorm * mu_a * d * mu_b * (1.0 - mu_b),
                    d=delta * output_by_tnorm * mu_a * (y - c) * mu_b * (1.0 - mu_b),
                )
            )
        return grads

    # ---------- training ----------

    def fit(
        self,
        dataset: Dataset,
        batch: bool = False,
        max_epochs: Optional[int] = None,
        error_threshold: Optional[float] = None,
        eta_pqr: Optional[float] = None,
        eta_ab: Optional[float] = None,
        on_epoch: Optional[Callable[[int, float], None]] = None,
    ) -> TrainResult:
        """
        Train in place. Unset arguments fall back to TrainConfig defaults.
        """
        overrides = {
            "max_epochs": max_epochs,
            "error_threshold": error_threshold,
            "eta_pqr": eta_pqr,
            "eta_ab": eta_ab,
        }
        cfg = TrainConfig(
            number_of_rules=self.number_of_rules,
            batch=batch,
            **{k: v for k, v in overrides.items() if v is not None},
        )
        return run_training(self, dataset, cfg, on_epoch=on_epoch)

    def __repr__(self) -> str:
        return f"ANFIS(number_of_rules={self.number_of_rules})"
