import numpy as np
import pytest

from neurofuzzy import ANFIS, BatchUpdate, Dataset, Example, OnlineUpdate, TrainConfig, generate_dataset
from neurofuzzy.train import make_strategy, run_epoch, run_training


@pytest.fixture
def grid():
    """The 81-point demo grid on [-4, 4] x [-4, 4]."""
    return generate_dataset()


@pytest.fixture
def small_dataset():
    return Dataset([
        Example(-2.0, 1.0, 3.0),
        Example(0.5, -1.5, -1.0),
        Example(3.0, 2.0, 4.5),
        Example(-1.0, -3.0, 0.25),
        Example(1.5, 0.0, 2.0),
    ])


def reversed_dataset(dataset):
    return Dataset(reversed(dataset.examples))


def test_config_defaults_and_validation():
    cfg = TrainConfig()
    assert cfg.max_epochs == 50000
    assert cfg.eta_pqr == 8e-4
    assert cfg.eta_ab == 1e-4
    assert cfg.mode == "online"
    assert TrainConfig(batch=True).mode == "batch"
    with pytest.raises(ValueError):
        TrainConfig(number_of_rules=0)
    with pytest.raises(ValueError):
        TrainConfig(max_epochs=-1)
    with pytest.raises(ValueError):
        TrainConfig(eta_ab=-0.1)


def test_config_updated_ignores_none():
    cfg = TrainConfig(max_epochs=10).updated(max_epochs=None, batch=True, seed=3)
    assert cfg.max_epochs == 10
    assert cfg.batch is True
    assert cfg.seed == 3


def test_config_from_yaml(tmp_path):
    path = tmp_path / "train.yaml"
    path.write_text("train:\n  number_of_rules: 4\n  batch: true\n  max_epochs: 12\n", encoding="utf-8")
    cfg = TrainConfig.from_yaml(path)
    assert (cfg.number_of_rules, cfg.batch, cfg.max_epochs) == (4, True, 12)

    bad = tmp_path / "bad.yaml"
    bad.write_text("epochs: 5\n", encoding="utf-8")
    with pytest.raises(ValueError):
        TrainConfig.from_yaml(bad)


def test_make_strategy_selects_discipline():
    assert isinstance(make_strategy(TrainConfig(batch=True)), BatchUpdate)
    assert isinstance(make_strategy(TrainConfig(batch=False)), OnlineUpdate)


def test_online_step_applies_gradient_immediately():
    model = ANFIS(number_of_rules=2, seed=1)
    example = Example(1.0, -2.0, 3.0)
    before = model.parameters()
    grads = np.stack([g.as_array() for g in model.gradients(example)])

    run_epoch(model, Dataset([example]), OnlineUpdate(eta_pqr=8e-4, eta_ab=1e-4))

    eta = np.array([8e-4] * 3 + [1e-4] * 4)
    np.testing.assert_allclose(model.parameters(), before - eta * grads, rtol=1e-12, atol=1e-15)


def test_batch_accumulates_whole_epoch_before_updating(small_dataset):
    model = ANFIS(number_of_rules=3, seed=2)
    before = model.parameters()
    # Batch mode sees one parameter snapshot for the whole epoch
    expected_sum = sum(
        np.stack([g.as_array() for g in model.gradients(e)]) for e in small_dataset
    )

    run_epoch(model, small_dataset, BatchUpdate(eta_pqr=1e-3, eta_ab=1e-3))

    np.testing.assert_allclose(model.gradient_buffer, expected_sum, rtol=1e-12, atol=1e-15)
    np.testing.assert_allclose(model.parameters(), before - 1e-3 * expected_sum, rtol=1e-12, atol=1e-15)


def test_batch_buffer_is_zeroed_each_epoch(small_dataset):
    model = ANFIS(number_of_rules=2, seed=4)
    strategy = BatchUpdate()
    run_epoch(model, small_dataset, strategy)

    second_sum = sum(
        np.stack([g.as_array() for g in model.gradients(e)]) for e in small_dataset
    )
    run_epoch(model, small_dataset, strategy)
    np.testing.assert_allclose(model.gradient_buffer, second_sum, rtol=1e-12, atol=1e-15)


def test_batch_training_is_order_invariant(small_dataset):
    forward = ANFIS(number_of_rules=2, seed=9)
    backward = ANFIS(number_of_rules=2, seed=9)

    forward.fit(small_dataset, batch=True, max_epochs=5, error_threshold=0.0)
    backward.fit(reversed_dataset(small_dataset), batch=True, max_epochs=5, error_threshold=0.0)

    np.testing.assert_allclose(forward.parameters(), backward.parameters(), rtol=1e-9, atol=1e-12)


def test_online_training_is_order_dependent(small_dataset):
    forward = ANFIS(number_of_rules=2, seed=9)
    backward = ANFIS(number_of_rules=2, seed=9)

    forward.fit(small_dataset, batch=False, max_epochs=5, error_threshold=0.0)
    backward.fit(reversed_dataset(small_dataset), batch=False, max_epochs=5, error_threshold=0.0)

    assert not np.allclose(forward.parameters(), backward.parameters(), rtol=1e-12, atol=0.0)


def test_online_training_decreases_error_on_grid(grid):
    model = ANFIS(number_of_rules=2, seed=0)
    result = model.fit(grid, batch=False, max_epochs=20)

    assert result.mode == "online"
    assert result.epochs == 20
    assert len(result.history) == 20
    assert np.isfinite(result.final_error)
    assert result.final_error < result.initial_error
    assert result.converged is False


def test_batch_training_decreases_error_on_grid(grid):
    model = ANFIS(number_of_rules=2, seed=0)
    result = model.fit(grid, batch=True, max_epochs=10, eta_pqr=1e-5, eta_ab=1e-6)

    assert result.mode == "batch"
    assert result.final_error < result.initial_error


def test_training_stops_once_threshold_reached(small_dataset):
    model = ANFIS(number_of_rules=2, seed=3)
    initial = model.mean_squared_error(small_dataset)
    result = model.fit(small_dataset, max_epochs=100, error_threshold=initial * 10)

    assert result.epochs == 0
    assert result.converged is True
    assert result.final_error == initial


def test_training_exhausts_budget_without_error(small_dataset):
    model = ANFIS(number_of_rules=2, seed=3)
    seen = []
    result = run_training(
        model,
        small_dataset,
        TrainConfig(max_epochs=3, error_threshold=0.0),
        on_epoch=lambda epoch, err: seen.append((epoch, err)),
    )

    assert result.epochs == 3
    assert seen == result.history
    assert [e for e, _ in seen] == [1, 2, 3]
    assert result.final_error == seen[-1][1]
    assert result.converged is False


def test_zero_epoch_budget_leaves_parameters_untouched(small_dataset):
    model = ANFIS(number_of_rules=2, seed=3)
    before = model.parameters()
    result = model.fit(small_dataset, max_epochs=0)
    assert result.epochs == 0
    np.testing.assert_array_equal(before, model.parameters())


def test_config_from_yaml_coerces_exponent_strings(tmp_path):
    # PyYAML reads 1e-5 (no dot) as a string
    path = tmp_path / "train.yaml"
    path.write_text("error_threshold: 1e-5\neta_pqr: 8e-4\nmax_epochs: '7'\n", encoding="utf-8")
    cfg = TrainConfig.from_yaml(path)
    assert cfg.error_threshold == 1e-5
    assert cfg.eta_pqr == 8e-4
    assert cfg.max_epochs == 7
    assert isinstance(cfg.error_threshold, float) and isinstance(cfg.max_epochs, int)


@pytest.mark.parametrize(
    "overrides",
    [
        {"error_threshold": "small"},
        {"error_threshold": float("nan")},
        {"eta_ab": None},
        {"max_epochs": "many"},
        {"max_epochs": True},
    ],
)
def test_config_rejects_non_numeric_values(overrides):
    with pytest.raises(ValueError):
        TrainConfig(**overrides)


def test_config_from_yaml_empty_or_bad_train_section(tmp_path):
    empty = tmp_path / "empty.yaml"
    empty.write_text("train:\n", encoding="utf-8")
    assert TrainConfig.from_yaml(empty) == TrainConfig()

    bad = tmp_path / "bad.yaml"
    bad.write_text("train:\n  - 1\n  - 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        TrainConfig.from_yaml(bad)
