from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional

import numpy as np
import pandas as pd


FEATURE_LOWER_BOUND = -4
FEATURE_UPPER_BOUND = 4

COLUMNS = ["x", "y", "label"]


@dataclass(frozen=True)
class Example:
    """
    One labeled sample: inputs x, y and the target value of the learned function.
    """
    x: float
    y: float
    label: float

    def __post_init__(self):
        # numpy scalars would leak into predictions and exports
        for name in ("x", "y", "label"):
            object.__setattr__(self, name, float(getattr(self, name)))


class Dataset:
    """
    Insertion-ordered collection of Example.

    Iteration always yields the examples in the order they were added, so every
    training epoch sees the same sequence.
    """

    def __init__(self, examples: Optional[Iterable[Example]] = None):
        self._examples: List[Example] = []
        for example in examples or []:
            self.add(example)

    def add(self, example: Example) -> None:
        if not isinstance(example, Example):
            raise TypeError(f"Expected an Example, got {type(example).__name__}.")
        self._examples.append(example)

    def _check_index(self, index: int) -> None:
        if index < 0 or index >= len(self._examples):
            raise IndexError(f"Example index {index} is out of bounds for dataset of size {len(self._examples)}.")

    def get(self, index: int) -> Example:
        self._check_index(index)
        return self._examples[index]

    def remove(self, index: int) -> None:
        self._check_index(index)
        del self._examples[index]

    def size(self) -> int:
        return len(self._examples)

    @property
    def examples(self) -> List[Example]:
        return list(self._examples)

    def __len__(self) -> int:
        return len(self._examples)

    def __getitem__(self, index: int) -> Example:
        return self.get(index)

    def __iter__(self) -> Iterator[Example]:
        return iter(list(self._examples))

    def __repr__(self) -> str:
        return f"Dataset(size={len(self._examples)})"

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(e.x, e.y, e.label) for e in self._examples],
            columns=COLUMNS,
            dtype=np.float64,
        )

    def to_numpy(self) -> np.ndarray:
        """
        (N, 3) float64 array with columns x, y, label.
        """
        if not self._examples:
            return np.zeros((0, 3), dtype=np.float64)
        return self.to_frame().to_numpy(dtype=np.float64)

    @staticmethod
    def from_frame(df: pd.DataFrame) -> "Dataset":
        return Dataset(
            Example(float(x), float(y), float(label))
            for x, y, label in df[COLUMNS].itertuples(index=False, name=None)
        )


def goal_function(x: float, y: float) -> float:
    """
    Reference function learned by the demo:

      f(x, y) = cos(x / 5)^2 * ((x - 1)^2 + (y + 2)^2 - 5xy + 3)
    """
    c = math.cos(x / 5.0)
    return c * c * ((x - 1.0) ** 2 + (y + 2.0) ** 2 - 5.0 * x * y + 3.0)


def generate_dataset(
    func: Callable[[float, float], float] = goal_function,
    lower: int = FEATURE_LOWER_BOUND,
    upper: int = FEATURE_UPPER_BOUND,
) -> Dataset:
    """
    Sample func on the integer grid [lower, upper] x [lower, upper], x-major order.
    """
    if lower > upper:
        raise ValueError(f"lower ({lower}) must not exceed upper ({upper}).")
    dataset = Dataset()
    for i in range(int(lower), int(upper) + 1):
        for j in range(int(lower), int(upper) + 1):
            dataset.add(Example(float(i), float(j), float(func(float(i), float(j)))))
    return dataset


def read_dataset(path: str | Path) -> Dataset:
    """
    Read whitespace-delimited "x y label" lines. '#' comments and blank lines are skipped.
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Dataset file not found: {p}")

    try:
        df = pd.read_csv(p, sep=r"\s+", comment="#", header=None, skip_blank_lines=True, dtype=str)
    except pd.errors.EmptyDataError:
        return Dataset()
    except pd.errors.ParserError as e:
        raise ValueError(f"Malformed dataset file {p}: {e}") from e

    if df.shape[1] != len(COLUMNS):
        raise ValueError(f"Dataset file {p} must have exactly 3 columns (x y label), found {df.shape[1]}.")
    df.columns = COLUMNS

    numeric = df.apply(pd.to_numeric, errors="coerce")
    bad_rows = numeric.isna().any(axis=1)
    if bad_rows.any():
        first = int(np.flatnonzero(bad_rows.to_numpy())[0])
        raise ValueError(f"Dataset file {p} contains a non-numeric value in data row {first + 1}.")

    return Dataset.from_frame(numeric)
