import numpy as np
import pandas as pd
import pytest

from shortrate.analytics import analytic_spot_curve
from shortrate.calibration import (
    PENALTY,
    ObservedCurve,
    calibrate_model,
    curve_objective,
    fit_report,
    load_observed_curve,
)
from shortrate.config import TimeGrid
from shortrate.curves import spot_curve
from shortrate.errors import ConfigurationError, NonConvergenceWarning
from shortrate.models import HullWhite, Merton, TwoFactorGaussian, Vasicek, get_model_preset
from shortrate.simulate import simulate_paths

OBSERVED_STEPS = [12, 24, 36, 48, 60]


def _observed_from(model, grid, n_paths, r0, seed, steps):
    _, R = simulate_paths(model, grid, n_paths, r0, seed=seed)
    spot = spot_curve(R, grid.dt)
    return ObservedCurve.from_pairs((k, spot[k - 1]) for k in steps)


def test_observed_curve_is_sorted_and_read_only():
    curve = ObservedCurve.from_pairs([(24, 0.02), (12, 0.01)])
    assert curve.maturities.tolist() == [12, 24]
    assert curve.yields.tolist() == [0.01, 0.02]
    assert len(curve) == 2
    with pytest.raises(ValueError):
        curve.yields[0] = 0.5


@pytest.mark.parametrize(
    "pairs",
    [
        [(0, 0.01)],
        [(1.5, 0.01)],
        [(3, 0.01), (3, 0.02)],
        [(3, float("nan"))],
        [],
    ],
)
def test_observed_curve_rejects_invalid_points(pairs):
    with pytest.raises(ConfigurationError):
        ObservedCurve.from_pairs(pairs)


def test_observed_curve_from_years(monthly_grid):
    curve = ObservedCurve.from_years([1.0, 0.5, 5.0], [0.02, 0.015, 0.03], monthly_grid)
    assert curve.maturities.tolist() == [6, 12, 60]
    assert curve.yields.tolist() == [0.015, 0.02, 0.03]
    df = curve.to_frame(monthly_grid)
    assert list(df.columns) == ["maturity_steps", "T", "yield"]


def test_load_observed_curve_from_steps(tmp_path):
    path = tmp_path / "curve.csv"
    pd.DataFrame({"maturity_steps": [12, 60], "yield": [0.016, 0.017]}).to_csv(path, index=False)
    curve = load_observed_curve(path)
    assert curve.maturities.tolist() == [12, 60]


def test_load_observed_curve_from_years(tmp_path, monthly_grid):
    path = tmp_path / "curve.csv"
    pd.DataFrame({"maturity_years": [1.0, 5.0], "yield": [0.016, 0.017]}).to_csv(path, index=False)
    with pytest.raises(ConfigurationError, match="grid"):
        load_observed_curve(path)
    assert load_observed_curve(path, grid=monthly_grid).maturities.tolist() == [12, 60]


def test_load_observed_curve_requires_maturity_column(tmp_path):
    path = tmp_path / "curve.csv"
    pd.DataFrame({"tenor": [1.0], "yield": [0.016]}).to_csv(path, index=False)
    with pytest.raises(ConfigurationError):
        load_observed_curve(path)


def test_objective_is_zero_at_the_generating_parameters(monthly_grid, vasicek_params):
    observed = _observed_from(vasicek_params, monthly_grid, 300, 0.015, 7, OBSERVED_STEPS)
    x = vasicek_params.to_vector()
    loss = curve_objective(x, vasicek_params, observed, monthly_grid, 300, 0.015, seed=7)
    assert loss == 0.0


def test_objective_is_deterministic(monthly_grid, vasicek_params):
    observed = ObservedCurve.from_pairs([(12, 0.02), (60, 0.025)])
    x = np.array([0.04, 0.2, 0.01])
    first = curve_objective(x, vasicek_params, observed, monthly_grid, 200, 0.015, seed=3)
    second = curve_objective(x, vasicek_params, observed, monthly_grid, 200, 0.015, seed=3)
    assert first == second


def test_non_finite_trial_is_penalised(monthly_grid):
    template = Merton(alpha=0.0, sigma=0.002)
    observed = ObservedCurve.from_pairs([(12, 0.02), (60, 0.025)])
    loss = curve_objective(
        np.array([1e6, 0.002]), template, observed, monthly_grid, 50, 0.015, seed=1
    )
    assert loss == PENALTY


def test_objective_rejects_unseeded_calls(monthly_grid, vasicek_params):
    observed = ObservedCurve.from_pairs([(12, 0.02)])
    with pytest.raises(ConfigurationError, match="seed"):
        curve_objective(
            vasicek_params.to_vector(), vasicek_params, observed, monthly_grid, 50, 0.015, seed=None
        )


def test_objective_rejects_maturities_past_the_grid(vasicek_params):
    grid = TimeGrid(horizon=1.0, n_steps=12)
    observed = ObservedCurve.from_pairs([(6, 0.02), (24, 0.025)])
    with pytest.raises(ConfigurationError, match="exceeds"):
        curve_objective(vasicek_params.to_vector(), vasicek_params, observed, grid, 50, 0.015, seed=1)


def test_invalid_trial_is_penalised(monthly_grid):
    template = Merton(alpha=0.0, sigma=0.002)
    observed = ObservedCurve.from_pairs([(12, 0.02)])
    loss = curve_objective(
        np.array([0.01, -1.0]), template, observed, monthly_grid, 50, 0.015, seed=1
    )
    assert loss == PENALTY


@pytest.mark.filterwarnings("ignore::shortrate.errors.NonConvergenceWarning")
def test_calibration_against_closed_form_curve_from_truth(monthly_grid, vasicek_params):
    maturities = [k * monthly_grid.dt for k in OBSERVED_STEPS]
    observed = ObservedCurve.from_pairs(
        zip(OBSERVED_STEPS, analytic_spot_curve(vasicek_params, 0.015, maturities))
    )
    result = calibrate_model(
        observed, vasicek_params, monthly_grid, n_paths=5000, r0=0.015, seed=42, max_iter=30
    )
    assert result.initial_fun < 1e-8
    assert result.fun <= result.initial_fun
    assert isinstance(result.params, Vasicek)


@pytest.mark.filterwarnings("ignore::shortrate.errors.NonConvergenceWarning")
def test_calibration_starting_at_truth_stays_there(monthly_grid, vasicek_params):
    observed = _observed_from(vasicek_params, monthly_grid, 300, 0.015, 7, OBSERVED_STEPS)
    result = calibrate_model(
        observed, vasicek_params, monthly_grid, n_paths=300, r0=0.015, seed=7, max_iter=20
    )
    assert result.initial_fun == 0.0
    assert result.fun < 1e-12
    assert isinstance(result.params, Vasicek)


@pytest.mark.filterwarnings("ignore::shortrate.errors.NonConvergenceWarning")
def test_vasicek_calibration_reduces_error(monthly_grid):
    true_params = Vasicek(alpha=0.05, beta=0.5, sigma=0.01)
    observed = ObservedCurve.from_pairs(
        zip(
            OBSERVED_STEPS,
            analytic_spot_curve(true_params, 0.02, [k * monthly_grid.dt for k in OBSERVED_STEPS]),
        )
    )
    initial = Vasicek(alpha=0.03, beta=0.3, sigma=0.01)
    result = calibrate_model(
        observed, initial, monthly_grid, n_paths=500, r0=0.02, seed=3, max_iter=150
    )
    assert result.fun < 0.05 * result.initial_fun
    assert result.history == sorted(result.history, reverse=True)
    assert result.nfev > 1


def test_budget_exhaustion_is_reported_not_raised(monthly_grid, vasicek_params):
    observed = ObservedCurve.from_pairs([(12, 0.02), (60, 0.025)])
    with pytest.warns(NonConvergenceWarning):
        result = calibrate_model(
            observed, vasicek_params, monthly_grid, n_paths=200, r0=0.015, seed=1, max_iter=2
        )
    assert not result.success
    assert result.fun <= result.initial_fun
    assert isinstance(result.params, Vasicek)


def test_calibration_requires_a_seed(monthly_grid, vasicek_params):
    observed = ObservedCurve.from_pairs([(12, 0.02)])
    with pytest.raises(ConfigurationError, match="seed"):
        calibrate_model(observed, vasicek_params, monthly_grid, 100, 0.015, seed=None)


def test_observed_maturity_beyond_grid_is_rejected(vasicek_params):
    grid = TimeGrid(horizon=1.0, n_steps=12)
    observed = ObservedCurve.from_pairs([(24, 0.02)])
    with pytest.raises(ConfigurationError, match="exceeds"):
        calibrate_model(observed, vasicek_params, grid, 100, 0.015)


def test_hull_white_vector_length_must_match_grid(monthly_grid):
    observed = ObservedCurve.from_pairs([(12, 0.02)])
    initial = HullWhite(alpha=np.full(12, 0.03), beta=0.1, sigma=0.002)
    with pytest.raises(ConfigurationError, match="per time step"):
        calibrate_model(observed, initial, monthly_grid, 100, 0.015)


@pytest.mark.filterwarnings("ignore::shortrate.errors.NonConvergenceWarning")
def test_two_factor_calibration_keeps_correlation(monthly_grid):
    initial = get_model_preset("two-factor")
    observed = ObservedCurve.from_pairs([(12, 0.02), (36, 0.022), (60, 0.025)])
    result = calibrate_model(
        observed, initial, monthly_grid, n_paths=100, r0=0.015, seed=2, max_iter=10
    )
    assert isinstance(result.params, TwoFactorGaussian)
    assert result.params.rho == -0.1
    assert result.raw_solution.shape == (6,)


@pytest.mark.filterwarnings("ignore::shortrate.errors.NonConvergenceWarning")
def test_hull_white_vector_calibration_improves_fit():
    grid = TimeGrid(horizon=30.0, n_steps=360)
    truth = HullWhite(alpha=np.linspace(0.02, 0.05, 360), beta=0.1, sigma=0.002)
    steps = list(range(30, 361, 30))
    observed = _observed_from(truth, grid, 150, 0.02, 11, steps)
    initial = get_model_preset("hull-white", n_steps=360)

    result = calibrate_model(
        observed,
        initial,
        grid,
        n_paths=150,
        r0=0.02,
        seed=11,
        max_iter=200,
        max_fev=800,
        restarts=1,
    )

    assert result.raw_solution.shape == (362,)
    assert len(result.params.alpha) == 360
    assert len(result.history) == 2
    assert result.history[0] >= result.history[1]
    assert result.history[-1] == result.fun
    assert result.fun < result.initial_fun


def test_fit_report_columns(monthly_grid, vasicek_params):
    observed = ObservedCurve.from_pairs([(12, 0.02), (60, 0.025)])
    df = fit_report(observed, vasicek_params, monthly_grid, 200, 0.015, seed=4)
    assert list(df.columns) == ["maturity_steps", "T", "observed", "fitted", "abs_error"]
    assert df["T"].tolist() == pytest.approx([1.0, 5.0])
