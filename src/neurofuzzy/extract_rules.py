"""
neurofuzzy.extract_rules

Extract human-inspectable fuzzy rules from a trained ANFIS.

What "rule extraction" means here:
  - Antecedent parameters:
      sigmoid inflection (a) and steepness (b) of A_i over x and of B_i over y.
  - Consequent parameters:
      p, q, r of z_i = p*x + q*y + r.
  - Rule importance statistics computed on a dataset:
      - avg_firing: mean normalized firing strength of each rule over the dataset
      - coverage: fraction of samples where the normalized firing > threshold
      - top_examples: indices of samples where the rule fires strongest

Outputs:
  - rules.json: structured representation
  - rules.csv : flattened table for analysis
  - rules.md  : a readable markdown report
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import numpy as np
import pandas as pd

from .data import Dataset
from .model import ANFIS, MembershipFunction
from .utils import write_json

INPUTS = ("x", "y")


def _shape(mf: MembershipFunction) -> str:
    if mf.b > 0.0:
        return "decreasing"
    if mf.b < 0.0:
        return "increasing"
    return "constant"


def _describe(mf: MembershipFunction, var: str) -> str:
    shape = _shape(mf)
    if shape == "constant":
        return f"{var} is anything (mu = 0.5)"
    side = "below" if shape == "decreasing" else "above"
    return f"{var} is {side} {mf.a:.4g}"


def compute_firing(model: ANFIS, dataset: Dataset) -> np.ndarray:
    """
    Normalized firing strengths, shape (N, R). Rows with zero total firing are non-finite.
    """
    rows = []
    for example in dataset:
        alphas, _fis, _out = model.forward(example.x, example.y)
        rows.append(alphas)
    if not rows:
        return np.zeros((0, model.number_of_rules), dtype=np.float64)
    firing = np.asarray(rows, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        return firing / firing.sum(axis=1, keepdims=True)


def extract_rules_from_model(model: ANFIS) -> Dict[str, Any]:
    """
    Extract raw rule parameters from the model (no data-dependent importance yet).

    Returns a dict:
      {
        "num_rules": R,
        "inputs": ["x", "y"],
        "rules": [
          {
            "rule_id": i,
            "antecedent": { "x": { "mf": "sigmoid", "a": .., "b": .. }, "y": {...} },
            "consequent": { "p": .., "q": .., "r": .. },
            "text": "IF x is ... AND y is ... THEN z = ..."
          }, ...
        ]
      }
    """
    rules = []
    for i, rule in enumerate(model.rules):
        ma, mb, z = rule.membership_x, rule.membership_y, rule.consequent
        text = (
            f"IF {_describe(ma, 'x')} AND {_describe(mb, 'y')} "
            f"THEN z = {z.p:+.4g}*x {z.q:+.4g}*y {z.r:+.4g}"
        )
        rules.append(
            {
                "rule_id": int(i),
                "antecedent": {
                    "x": {"mf": "sigmoid", "a": ma.a, "b": ma.b, "shape": _shape(ma)},
                    "y": {"mf": "sigmoid", "a": mb.a, "b": mb.b, "shape": _shape(mb)},
                },
                "consequent": {"p": z.p, "q": z.q, "r": z.r},
                "text": text,
            }
        )

    return {
        "num_rules": int(model.number_of_rules),
        "inputs": list(INPUTS),
        "rules": rules,
    }


def attach_importance(
    rules_obj: Dict[str, Any],
    firing_all: np.ndarray,
    firing_threshold: float = 0.1,
    top_examples_per_rule: int = 5,
) -> Dict[str, Any]:
    """
    Attach data-driven importance metrics to each rule in rules_obj in-place.

    Returns the updated object.
    """
    R = rules_obj["num_rules"]
    if firing_all.ndim != 2 or firing_all.shape[1] != R:
        raise ValueError("firing_all does not match number of rules.")

    if firing_all.shape[0] == 0:
        avg_firing = np.full(R, np.nan)
        coverage = np.full(R, np.nan)
    else:
        avg_firing = firing_all.mean(axis=0)
        coverage = (firing_all > firing_threshold).mean(axis=0)

    for i, rule in enumerate(rules_obj["rules"]):
        rule["importance"] = {
            "avg_firing": float(avg_firing[i]),
            "coverage": float(coverage[i]),
            "firing_threshold": float(firing_threshold),
        }
        col = np.nan_to_num(firing_all[:, i], nan=-np.inf)
        top_idx = np.argsort(-col, kind="stable")[:top_examples_per_rule]
        rule["top_examples"] = [
            {"row_index": int(idx), "firing": float(firing_all[idx, i])} for idx in top_idx
        ]

    rules_obj["importance_summary"] = {
        "avg_firing_max": float(np.nanmax(avg_firing)) if np.isfinite(avg_firing).any() else float("nan"),
        "coverage_mean": float(np.nanmean(coverage)) if np.isfinite(coverage).any() else float("nan"),
        "firing_threshold": float(firing_threshold),
    }
    return rules_obj


def rules_to_dataframe(rules_obj: Dict[str, Any]) -> pd.DataFrame:
    rows = []
    for rule in rules_obj["rules"]:
        imp = rule.get("importance", {})
        ant = rule["antecedent"]
        con = rule["consequent"]
        rows.append(
            {
                "rule_id": rule["rule_id"],
                "avg_firing": imp.get("avg_firing", np.nan),
                "coverage": imp.get("coverage", np.nan),
                "a": ant["x"]["a"],
                "b": ant["x"]["b"],
                "c": ant["y"]["a"],
                "d": ant["y"]["b"],
                "p": con["p"],
                "q": con["q"],
                "r": con["r"],
            }
        )
    return pd.DataFrame(rows)


def rules_to_markdown(rules_obj: Dict[str, Any]) -> str:
    """
    Render the rules sorted by avg_firing (highest first).
    """
    rules = sorted(
        rules_obj["rules"],
        key=lambda r: np.nan_to_num(r.get("importance", {}).get("avg_firing", 0.0), nan=0.0),
        reverse=True,
    )

    lines: List[str] = []
    lines.append("# Extracted ANFIS Rules")
    lines.append("")
    lines.append(f"- Num rules: {rules_obj['num_rules']}")
    lines.append("")

    for rule in rules:
        imp = rule.get("importance", {})
        ant = rule["antecedent"]
        lines.append(f"## Rule {rule['rule_id'] + 1}")
        lines.append("")
        lines.append(f"`{rule['text']}`")
        lines.append("")
        lines.append(f"- avg_firing: {imp.get('avg_firing', float('nan')):.6g}")
        lines.append(f"- coverage  : {imp.get('coverage', float('nan')):.6g}")
        lines.append("")
        lines.append("**Antecedent (sigmoid MF params):**")
        for var in INPUTS:
            lines.append(f"- {var}: a={ant[var]['a']:.4f}, b={ant[var]['b']:.4f} ({ant[var]['shape']})")
        lines.append("")
        con = rule["consequent"]
        lines.append("**Consequent (TSK linear):**")
        lines.append(f"- p={con['p']:.6g}, q={con['q']:.6g}, r={con['r']:.6g}")
        lines.append("")
        if rule.get("top_examples"):
            lines.append("**Top examples (row indices):**")
            for ex in rule["top_examples"]:
                lines.append(f"- idx={ex['row_index']}, firing={ex['firing']:.6g}")
            lines.append("")
    return "\n".join(lines)


def write_rules_report(
    model: ANFIS,
    dataset: Dataset,
    out_dir: str | Path,
    firing_threshold: float = 0.1,
    top_examples_per_rule: int = 5,
) -> Dict[str, Any]:
    """
    Extract rules, attach importance on dataset and save rules.{json,csv,md}.
    """
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)

    rules_obj = extract_rules_from_model(model)
    rules_obj = attach_importance(
        rules_obj,
        compute_firing(model, dataset),
        firing_threshold=firing_threshold,
        top_examples_per_rule=top_examples_per_rule,
    )

    write_json(rules_obj, out / "rules.json", sort_keys=False)
    rules_to_dataframe(rules_obj).to_csv(out / "rules.csv", index=False)
    (out / "rules.md").write_text(rules_to_markdown(rules_obj), encoding="utf-8")

    return rules_obj
