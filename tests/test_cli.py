import json

import pytest
from typer.testing import CliRunner

from neurofuzzy.cli import app
from neurofuzzy import read_dataset


@pytest.fixture
def runner():
    return CliRunner()


def test_generate(runner, tmp_path):
    out = tmp_path / "dataset.dat"
    result = runner.invoke(app, ["generate", "--out", str(out), "--lower", "-1", "--upper", "1"])
    assert result.exit_code == 0, result.output
    assert read_dataset(out).size() == 9


def test_generate_rejects_inverted_bounds(runner, tmp_path):
    result = runner.invoke(app, ["generate", "--out", str(tmp_path / "d.dat"), "--lower", "3", "--upper", "1"])
    assert result.exit_code == 2


def test_train_writes_artifacts(runner, tmp_path):
    data = tmp_path / "dataset.dat"
    runner.invoke(app, ["generate", "--out", str(data)])
    out = tmp_path / "run"

    result = runner.invoke(
        app,
        ["train", "--dataset", str(data), "--rules", "2", "--max-epochs", "3", "--seed", "1", "--out", str(out)],
    )

    assert result.exit_code == 0, result.output
    for name in ["error.dat", "learned-function.dat", "deviations.dat", "fuzzy-sets.dat",
                 "rules.json", "rules.md", "train_log.json"]:
        assert (out / name).exists(), name
    log = json.loads((out / "train_log.json").read_text(encoding="utf-8"))
    assert log["config"]["number_of_rules"] == 2
    assert len(log["history"]) == 3
    assert len((out / "error.dat").read_text(encoding="utf-8").splitlines()) == 4


def test_train_with_yaml_config(runner, tmp_path):
    cfg = tmp_path / "train.yaml"
    cfg.write_text("number_of_rules: 3\nbatch: true\nmax_epochs: 2\neta_pqr: 1.0e-5\neta_ab: 1.0e-6\n", encoding="utf-8")
    out = tmp_path / "run"

    # CLI flags override the file
    result = runner.invoke(app, ["train", "--config", str(cfg), "--max-epochs", "1", "--out", str(out)])

    assert result.exit_code == 0, result.output
    log = json.loads((out / "train_log.json").read_text(encoding="utf-8"))
    assert log["config"]["number_of_rules"] == 3
    assert log["config"]["batch"] is True
    assert log["config"]["max_epochs"] == 1
    header = (out / "fuzzy-sets.dat").read_text(encoding="utf-8").splitlines()[0]
    assert header == "# X, A1, B1, A2, B2, A3, B3"


def test_train_rejects_bad_rule_count(runner, tmp_path):
    result = runner.invoke(app, ["train", "--rules", "0", "--out", str(tmp_path / "run")])
    assert result.exit_code == 2


def test_train_missing_dataset(runner, tmp_path):
    result = runner.invoke(app, ["train", "--dataset", str(tmp_path / "missing.dat"), "--out", str(tmp_path)])
    assert result.exit_code == 2


def test_show_dataset(runner, tmp_path):
    data = tmp_path / "dataset.dat"
    data.write_text("# X, Y, f(X, Y)\n1 2 3\n3 4 5\n", encoding="utf-8")
    result = runner.invoke(app, ["show-dataset", "--dataset", str(data)])
    assert result.exit_code == 0, result.output
    assert "Examples: 2" in result.output


def test_train_with_exponent_threshold_in_yaml(runner, tmp_path):
    cfg = tmp_path / "train.yaml"
    cfg.write_text("max_epochs: 1\nerror_threshold: 1e-5\n", encoding="utf-8")
    out = tmp_path / "run"

    result = runner.invoke(app, ["train", "--config", str(cfg), "--seed", "0", "--out", str(out)])

    assert result.exit_code == 0, result.output
    log = json.loads((out / "train_log.json").read_text(encoding="utf-8"))
    assert log["config"]["error_threshold"] == 1e-5


def test_train_rejects_non_numeric_yaml_value(runner, tmp_path):
    cfg = tmp_path / "train.yaml"
    cfg.write_text("error_threshold: tiny\n", encoding="utf-8")
    result = runner.invoke(app, ["train", "--config", str(cfg), "--out", str(tmp_path / "run")])
    assert result.exit_code == 2
