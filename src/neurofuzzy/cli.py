"""
neurofuzzy.cli

Command Line Interface for the neurofuzzy project.

Commands:
  - train:        Train a two-input ANFIS on a dataset file (or the generated demo grid)
                  and write plotting exports + a rule report
  - generate:     Write the reference-function grid dataset
  - show-dataset: Print a quick summary of a dataset file

Usage examples:

  # Train 3 rules online on the demo grid
  neurofuzzy train --rules 3 --out runs/exp1

  # Batch training on a dataset file, settings from YAML
  neurofuzzy train --dataset dataset.dat --mode batch --config train.yaml --out runs/exp2

  # Generate the demo dataset
  neurofuzzy generate --out dataset.dat
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .data import FEATURE_LOWER_BOUND, FEATURE_UPPER_BOUND, generate_dataset, read_dataset
from .export import DATASET_FILE, write_all, write_dataset
from .extract_rules import write_rules_report
from .model import ANFIS
from .train import TrainConfig
from .utils import ensure_dir, write_json

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()

MODES = ("online", "batch")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(code=2)


@app.command("train")
def cmd_train(
    dataset: Optional[Path] = typer.Option(
        None, "--dataset", help="Whitespace-separated 'x y label' file. Default: generated demo grid."
    ),
    out: Path = typer.Option(Path("runs/anfis"), "--out", help="Output directory for exports."),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML file with training settings."),
    rules: Optional[int] = typer.Option(None, "--rules", help="Number of fuzzy rules."),
    mode: Optional[str] = typer.Option(None, "--mode", help="'online' (per-example) or 'batch' updates."),
    max_epochs: Optional[int] = typer.Option(None, "--max-epochs", help="Epoch budget."),
    error_threshold: Optional[float] = typer.Option(None, "--error-threshold", help="Stop once error <= threshold."),
    eta_pqr: Optional[float] = typer.Option(None, "--eta-pqr", help="Learning rate for consequent params."),
    eta_ab: Optional[float] = typer.Option(None, "--eta-ab", help="Learning rate for membership params."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for parameter initialization."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log the error after every epoch."),
):
    _setup_logging(verbose)

    if mode is not None and mode not in MODES:
        _fail(f"--mode must be one of {', '.join(MODES)}, got '{mode}'.")

    try:
        cfg = TrainConfig.from_yaml(config) if config is not None else TrainConfig()
        cfg = cfg.updated(
            number_of_rules=rules,
            batch=None if mode is None else mode == "batch",
            max_epochs=max_epochs,
            error_threshold=error_threshold,
            eta_pqr=eta_pqr,
            eta_ab=eta_ab,
            seed=seed,
        )
    except (OSError, ValueError, TypeError) as e:
        _fail(f"Invalid training configuration: {e}")

    if dataset is None:
        console.print("[bold]Generating demo dataset...[/bold]")
        train_set = generate_dataset()
    else:
        console.print(f"[bold]Loading dataset from {dataset}...[/bold]")
        try:
            train_set = read_dataset(dataset)
        except (FileNotFoundError, ValueError) as e:
            _fail(str(e))
    console.print(f"Dataset size: {train_set.size()}")

    model = ANFIS(number_of_rules=cfg.number_of_rules, seed=cfg.seed, warn_degenerate=True)

    console.print(f"[bold]Training ANFIS ({cfg.number_of_rules} rules, {cfg.mode})...[/bold]")
    result = model.fit(
        train_set,
        batch=cfg.batch,
        max_epochs=cfg.max_epochs,
        error_threshold=cfg.error_threshold,
        eta_pqr=cfg.eta_pqr,
        eta_ab=cfg.eta_ab,
    )

    out_dir = ensure_dir(out)
    write_all(model, train_set, result.history, out_dir)
    rules_obj = write_rules_report(model, train_set, out_dir)
    write_json(
        {
            "config": cfg.__dict__,
            "summary": result.summary(),
            "history": [{"epoch": e, "error": err} for e, err in result.history],
        },
        out_dir / "train_log.json",
    )

    table = Table(title="Training Summary")
    table.add_column("Metric")
    table.add_column("Value")
    table.add_row("mode", result.mode)
    table.add_row("epochs", str(result.epochs))
    table.add_row("initial_error", f"{result.initial_error:.6g}")
    table.add_row("final_error", f"{result.final_error:.6g}")
    table.add_row("converged", str(result.converged))
    console.print(table)

    rules_table = Table(title="Rules")
    rules_table.add_column("#")
    rules_table.add_column("Rule")
    rules_table.add_column("avg_firing")
    for rule in rules_obj["rules"]:
        rules_table.add_row(
            str(rule["rule_id"] + 1),
            rule["text"],
            f"{rule['importance']['avg_firing']:.4g}",
        )
    console.print(rules_table)

    console.print(f"[green]Done.[/green] Artifacts saved to: {out_dir}")


@app.command("generate")
def cmd_generate(
    out: Path = typer.Option(Path(DATASET_FILE), "--out", help="Output dataset file."),
    lower: int = typer.Option(FEATURE_LOWER_BOUND, "--lower", help="Lowest grid value for x and y."),
    upper: int = typer.Option(FEATURE_UPPER_BOUND, "--upper", help="Highest grid value for x and y."),
):
    """
    Sample the reference function on an integer grid and write it as 'x y label' lines.
    """
    try:
        ds = generate_dataset(lower=lower, upper=upper)
    except ValueError as e:
        _fail(str(e))
    write_dataset(ds, out)
    console.print(f"[green]Done.[/green] Wrote {ds.size()} examples to: {out}")


@app.command("show-dataset")
def cmd_show_dataset(
    dataset: Path = typer.Option(..., "--dataset", help="Dataset file to summarize."),
):
    try:
        ds = read_dataset(dataset)
    except (FileNotFoundError, ValueError) as e:
        _fail(str(e))

    console.print(f"Examples: {ds.size()}")
    table = Table(title="Dataset Summary")
    table.add_column("Column")
    table.add_column("min")
    table.add_column("max")
    table.add_column("mean")
    if ds.size() > 0:
        stats = ds.to_frame().agg(["min", "max", "mean"])
        for col in stats.columns:
            table.add_row(col, *(f"{stats.at[s, col]:.6g}" for s in ("min", "max", "mean")))
    console.print(table)


if __name__ == "__main__":
    app()
