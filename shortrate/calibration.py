"""Calibration of short-rate models to an observed spot curve.

The objective for a trial parameter vector ``x`` is

    SSE(x) = sum_k (y_obs[k] - spot_x[k])^2

over the observed maturities, where ``spot_x`` is the Monte Carlo spot curve
of a fresh simulation with a fixed seed. Re-seeding on every evaluation makes
the objective a deterministic function of ``x``, which keeps the simplex
search meaningful despite the Monte Carlo noise.

Models with scalar parameters are searched in a handful of dimensions;
Hull–White searches ``beta``, ``sigma`` and one mean level per grid step.
"""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Generic, Iterable, Sequence, TypeVar

import numpy as np
import pandas as pd
from scipy.optimize import minimize

from .config import TimeGrid
from .curves import spot_curve
from .errors import ConfigurationError, NonConvergenceWarning, NumericalDegeneracyWarning
from .models import HullWhite, ShortRateModel
from .sde import validate_run
from .simulate import simulate_paths

__all__ = [
    "PENALTY",
    "ObservedCurve",
    "CalibrationResult",
    "curve_objective",
    "calibrate_model",
    "fit_report",
    "load_observed_curve",
]

logger = logging.getLogger(__name__)

ParamsT = TypeVar("ParamsT")

PENALTY = 1e10


@dataclass(frozen=True)
class ObservedCurve:
    """Market yields at a few grid steps.

    ``maturities`` are 1-based step indices (step ``k`` matures at ``k * dt``),
    ``yields`` are continuously-compounded decimal rates. Both arrays are
    sorted by maturity and read-only.
    """

    maturities: np.ndarray
    yields: np.ndarray

    def __post_init__(self) -> None:
        mats = np.asarray(self.maturities)
        ylds = np.asarray(self.yields, dtype=float)
        if mats.ndim != 1 or ylds.ndim != 1 or mats.size == 0 or mats.size != ylds.size:
            raise ConfigurationError(
                "maturities and yields must be 1-D with the same non-zero length."
            )
        if not np.all(np.isfinite(ylds)):
            raise ConfigurationError("observed yields must be finite.")
        as_int = np.rint(mats.astype(float))
        if np.any(as_int != mats) or np.any(as_int < 1):
            raise ConfigurationError("maturities must be positive integer step indices.")
        mats = as_int.astype(int)
        if np.unique(mats).size != mats.size:
            raise ConfigurationError("maturities must not repeat.")
        order = np.argsort(mats)
        mats, ylds = mats[order], ylds[order]
        mats.setflags(write=False)
        ylds.setflags(write=False)
        object.__setattr__(self, "maturities", mats)
        object.__setattr__(self, "yields", ylds)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[int, float]]) -> ObservedCurve:
        items = list(pairs)
        if not items:
            raise ConfigurationError("observed curve must contain at least one point.")
        mats, ylds = zip(*items)
        return cls(maturities=np.array(mats), yields=np.array(ylds, dtype=float))

    @classmethod
    def from_years(
        cls, maturities: Sequence[float], yields: Sequence[float], grid: TimeGrid
    ) -> ObservedCurve:
        """Place tenors quoted in years on the nearest grid step."""

        steps = [grid.step_of(float(m)) for m in maturities]
        return cls(maturities=np.array(steps), yields=np.asarray(yields, dtype=float))

    def __len__(self) -> int:
        return int(self.maturities.size)

    def check_grid(self, grid: TimeGrid) -> None:
        if int(self.maturities[-1]) > grid.n_steps:
            raise ConfigurationError(
                f"observed maturity {int(self.maturities[-1])} exceeds the grid size {grid.n_steps}."
            )

    def to_frame(self, grid: TimeGrid | None = None) -> pd.DataFrame:
        df = pd.DataFrame({"maturity_steps": self.maturities, "yield": self.yields})
        if grid is not None:
            df.insert(1, "T", self.maturities * grid.dt)
        return df


@dataclass
class CalibrationResult(Generic[ParamsT]):
    params: ParamsT
    success: bool
    message: str
    fun: float
    nit: int | None
    raw_solution: np.ndarray | None = None
    nfev: int | None = None
    initial_fun: float | None = None
    history: list[float] = field(default_factory=list)
    n_penalized: int = 0


def curve_objective(
    x: np.ndarray,
    template: ShortRateModel,
    observed: ObservedCurve,
    grid: TimeGrid,
    n_paths: int,
    r0: float | tuple[float, float],
    seed: int,
    penalty: float = PENALTY,
) -> float:
    """Sum of squared spot-rate errors for the trial vector ``x``.

    Trials that cannot form a valid model, or whose curve is not finite, score
    ``penalty`` so the search can move on. A missing seed or maturities past
    the grid are configuration errors and raise instead.
    """

    if seed is None:
        raise ConfigurationError("the curve objective needs a fixed seed to compare trials.")
    observed.check_grid(grid)

    try:
        model = template.from_vector(x)
    except ConfigurationError:
        return penalty

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", NumericalDegeneracyWarning)
        with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
            _, rates = simulate_paths(model, grid, n_paths, r0, seed=seed)
            spot = spot_curve(rates, grid.dt)

    residuals = observed.yields - spot[observed.maturities - 1]
    with np.errstate(over="ignore", invalid="ignore"):
        loss = float(np.sum(residuals**2))
    if not math.isfinite(loss):
        return penalty
    return loss


def _clip_to_bounds(x: np.ndarray, bounds: Sequence[tuple[float | None, float | None]]) -> np.ndarray:
    lower = np.array([-np.inf if lo is None else lo for lo, _ in bounds])
    upper = np.array([np.inf if hi is None else hi for _, hi in bounds])
    return np.clip(x, lower, upper)


def calibrate_model(
    observed: ObservedCurve,
    initial: ShortRateModel,
    grid: TimeGrid,
    n_paths: int,
    r0: float | tuple[float, float],
    seed: int | None = 42,
    max_iter: int | None = None,
    max_fev: int | None = None,
    xatol: float = 1e-6,
    fatol: float = 1e-12,
    restarts: int = 0,
    adaptive: bool | None = None,
    penalty: float = PENALTY,
) -> CalibrationResult[ShortRateModel]:
    """Fit ``initial``'s parameters to ``observed`` with a Nelder–Mead search.

    Each objective evaluation re-simulates ``n_paths`` trajectories on ``grid``
    with the same ``seed``. ``restarts`` reruns the search from the best point
    found so far; ``max_iter`` and ``max_fev`` bound each round. ``history``
    records the best objective after each round and never increases.

    Running out of iterations is not an error: the best point is returned
    with ``success=False`` and a :class:`NonConvergenceWarning` is issued.
    The search is local, so the result depends on the initial guess.
    """

    if seed is None:
        raise ConfigurationError("calibration needs a fixed seed to compare trials.")
    if restarts < 0:
        raise ConfigurationError("restarts must be non-negative.")
    if max_iter is not None and max_iter <= 0:
        raise ConfigurationError("max_iter must be positive when provided.")
    if max_fev is not None and max_fev <= 0:
        raise ConfigurationError("max_fev must be positive when provided.")
    validate_run(initial, grid, n_paths)
    observed.check_grid(grid)

    x0 = np.asarray(initial.to_vector(), dtype=float)
    bounds = initial.bounds()
    x0 = _clip_to_bounds(x0, bounds)
    if adaptive is None:
        adaptive = x0.size > 10
    mode = "vector" if isinstance(initial, HullWhite) else "scalar"

    n_penalized = 0

    def objective(x: np.ndarray) -> float:
        nonlocal n_penalized
        value = curve_objective(x, initial, observed, grid, n_paths, r0, seed, penalty)
        if value >= penalty:
            n_penalized += 1
        logger.debug("objective=%.6e", value)
        return value

    initial_fun = objective(x0)
    logger.info(
        "Calibrating %s (%s mode, %d parameters, %d observed points), initial SSE=%.6e",
        initial.name,
        mode,
        x0.size,
        len(observed),
        initial_fun,
    )

    options: dict[str, object] = {"xatol": xatol, "fatol": fatol, "adaptive": adaptive}
    if max_iter is not None:
        options["maxiter"] = max_iter
    if max_fev is not None:
        options["maxfev"] = max_fev

    best_x, best_fun = x0, initial_fun
    history: list[float] = []
    total_nit = 0
    total_nfev = 1
    success = False
    message = ""

    for round_idx in range(restarts + 1):
        result = minimize(objective, x0=best_x, method="Nelder-Mead", bounds=bounds, options=options)
        total_nit += int(result.nit)
        total_nfev += int(result.nfev)
        success = bool(result.success)
        message = str(result.message)
        if float(result.fun) <= best_fun:
            best_x = _clip_to_bounds(np.asarray(result.x, dtype=float), bounds)
            best_fun = float(result.fun)
        history.append(best_fun)
        logger.info("Round %d: SSE=%.6e (%s)", round_idx, best_fun, message)

    if n_penalized:
        logger.warning(
            "%d trial parameter vectors produced a non-finite curve and were penalised.",
            n_penalized,
        )
    if not success:
        logger.warning("Calibration of %s did not converge: %s", initial.name, message)
        warnings.warn(
            f"Calibration of {initial.name} stopped before convergence ({message}); "
            f"best SSE={best_fun:.6e}.",
            NonConvergenceWarning,
            stacklevel=2,
        )

    return CalibrationResult(
        params=initial.from_vector(best_x),
        success=success,
        message=message,
        fun=best_fun,
        nit=total_nit,
        raw_solution=best_x,
        nfev=total_nfev,
        initial_fun=initial_fun,
        history=history,
        n_penalized=n_penalized,
    )


def fit_report(
    observed: ObservedCurve,
    model: ShortRateModel,
    grid: TimeGrid,
    n_paths: int,
    r0: float | tuple[float, float],
    seed: int | None,
) -> pd.DataFrame:
    """Observed vs simulated spot rates at the observed maturities."""

    _, rates = simulate_paths(model, grid, n_paths, r0, seed=seed)
    spot = spot_curve(rates, grid.dt)
    fitted = spot[observed.maturities - 1]
    return pd.DataFrame(
        {
            "maturity_steps": observed.maturities,
            "T": observed.maturities * grid.dt,
            "observed": observed.yields,
            "fitted": fitted,
            "abs_error": np.abs(fitted - observed.yields),
        }
    )


def load_observed_curve(path: str | Path, grid: TimeGrid | None = None) -> ObservedCurve:
    """Read an observed curve from CSV.

    Expects a ``yield`` column plus either ``maturity_steps`` or
    ``maturity_years`` (the latter needs ``grid`` to map tenors onto steps).
    """

    df = pd.read_csv(path)
    if "yield" not in df.columns:
        raise ConfigurationError("observed curve CSV must contain a 'yield' column.")
    df = df.dropna(subset=["yield"])
    yields = df["yield"].astype(float).to_numpy()
    if "maturity_steps" in df.columns:
        return ObservedCurve(maturities=df["maturity_steps"].to_numpy(), yields=yields)
    if "maturity_years" in df.columns:
        if grid is None:
            raise ConfigurationError("a grid is required to map 'maturity_years' onto steps.")
        return ObservedCurve.from_years(df["maturity_years"].astype(float).to_numpy(), yields, grid)
    raise ConfigurationError(
        "observed curve CSV must contain 'maturity_steps' or 'maturity_years'."
    )
