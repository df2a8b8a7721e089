"""
neurofuzzy.export

Line-oriented text exports for plotting tools such as gnuplot.

Every file has one '#' header line followed by whitespace-separated numeric rows.
The column order is fixed per file:

  error.dat            epoch  mean_squared_error
  dataset.dat          x  y  label
  learned-function.dat x  y  predicted
  deviations.dat       x  y  predicted - label
  fuzzy-sets.dat       x  A1(x)  B1(x)  ...  Am(x)  Bm(x)
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Sequence, Tuple

from .data import FEATURE_LOWER_BOUND, FEATURE_UPPER_BOUND, Dataset

if TYPE_CHECKING:
    from .model import ANFIS

ERROR_FILE = "error.dat"
DATASET_FILE = "dataset.dat"
LEARNED_FUNCTION_FILE = "learned-function.dat"
DEVIATIONS_FILE = "deviations.dat"
FUZZY_SETS_FILE = "fuzzy-sets.dat"


def _write_lines(path: str | Path, header: str, rows: Iterable[Sequence[object]]) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    lines: List[str] = [header]
    lines.extend(" ".join(repr(float(v)) if isinstance(v, float) else str(v) for v in row) for row in rows)
    p.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return p


def write_error_trace(history: Iterable[Tuple[int, float]], path: str | Path) -> Path:
    return _write_lines(
        path,
        "# Epoch, Mean Squared Error",
        ((int(epoch), float(error)) for epoch, error in history),
    )


def write_dataset(dataset: Dataset, path: str | Path) -> Path:
    return _write_lines(
        path,
        "# X, Y, f(X, Y)",
        ((e.x, e.y, e.label) for e in dataset),
    )


def write_learned_function(model: "ANFIS", dataset: Dataset, path: str | Path) -> Path:
    return _write_lines(
        path,
        "# X, Y, f(x, y)",
        ((e.x, e.y, model.predict(e)) for e in dataset),
    )


def write_deviations(model: "ANFIS", dataset: Dataset, path: str | Path) -> Path:
    return _write_lines(
        path,
        "# X, Y, Deviation",
        ((e.x, e.y, model.predict(e) - e.label) for e in dataset),
    )


def write_fuzzy_sets(
    model: "ANFIS",
    path: str | Path,
    lower: int = FEATURE_LOWER_BOUND,
    upper: int = FEATURE_UPPER_BOUND,
) -> Path:
    """
    Sample every A_i and B_i on the integers in [lower, upper].
    """
    m = model.number_of_rules
    names = ", ".join(f"A{i}, B{i}" for i in range(1, m + 1))

    rows = []
    for x in range(int(lower), int(upper) + 1):
        row: List[object] = [x]
        for rule in model.rules:
            row.append(rule.membership_x.apply(x))
            row.append(rule.membership_y.apply(x))
        rows.append(row)

    return _write_lines(path, f"# X, {names}", rows)


def write_all(model: "ANFIS", dataset: Dataset, history: Iterable[Tuple[int, float]], out_dir: str | Path) -> List[Path]:
    """
    Write the error trace, learned function, deviations and fuzzy sets into out_dir.
    """
    out = Path(out_dir)
    return [
        write_error_trace(history, out / ERROR_FILE),
        write_learned_function(model, dataset, out / LEARNED_FUNCTION_FILE),
        write_deviations(model, dataset, out / DEVIATIONS_FILE),
        write_fuzzy_sets(model, out / FUZZY_SETS_FILE),
    ]
