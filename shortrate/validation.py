"""Validation helpers comparing Monte Carlo curves to closed-form references."""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd

from .analytics import analytic_spot_curve
from .config import TimeGrid
from .curves import estimate_curve
from .models import ShortRateModel
from .simulate import simulate_paths

__all__ = ["compare_spot_curves", "spot_error_by_paths"]


def compare_spot_curves(
    params: ShortRateModel,
    r0: float,
    grid: TimeGrid,
    n_paths: int,
    seed: int | None,
) -> pd.DataFrame:
    """Return Monte Carlo vs analytical spot rates for every grid maturity.

    The first row carries the ``r0`` boundary value, so its error is the gap
    between ``r0`` and the analytical one-step yield.
    """

    _, paths = simulate_paths(params, grid, n_paths, r0, seed=seed)
    estimate = estimate_curve(paths, grid)
    analytic = analytic_spot_curve(params, r0, grid.maturities)
    df = estimate.to_frame().rename(columns={"spot": "mc_spot"})
    df["analytic_spot"] = analytic
    df["abs_error"] = np.abs(df["mc_spot"] - df["analytic_spot"])
    return df


def spot_error_by_paths(
    params: ShortRateModel,
    r0: float,
    grid: TimeGrid,
    paths_list: Sequence[int],
    seed: int | None,
) -> pd.DataFrame:
    """Absolute spot error at the final maturity as the ensemble grows."""

    if not paths_list:
        raise ValueError("paths_list must contain at least one element.")

    analytic = float(analytic_spot_curve(params, r0, grid.maturities[-1:])[0])
    rows = []
    for n_paths in sorted({int(n) for n in paths_list}):
        if n_paths <= 0:
            raise ValueError("entries in paths_list must be positive integers.")
        _, paths = simulate_paths(params, grid, n_paths, r0, seed=seed)
        estimate = estimate_curve(paths, grid)
        rows.append(
            {
                "n_paths": n_paths,
                "mc_spot": float(estimate.spot[-1]),
                "stderr_price": float(estimate.stderr[-1]),
                "analytic_spot": analytic,
                "abs_error": abs(float(estimate.spot[-1]) - analytic),
            }
        )

    return pd.DataFrame(rows)
