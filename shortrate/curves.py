"""Monte Carlo zero-coupon prices and spot curves from simulated ensembles."""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .config import TimeGrid
from .errors import ConfigurationError, NumericalDegeneracyWarning

__all__ = [
    "CurveEstimate",
    "discount_factors_from_paths",
    "zero_coupon_prices",
    "spot_curve",
    "estimate_curve",
]

logger = logging.getLogger(__name__)


def _as_ensemble(R: np.ndarray) -> np.ndarray:
    rates = np.asarray(R, dtype=float)
    if rates.ndim != 2 or rates.shape[0] == 0 or rates.shape[1] == 0:
        raise ConfigurationError("R must be a non-empty 2-D array with shape (n_steps, n_paths).")
    return rates


def discount_factors_from_paths(R: np.ndarray, dt: float) -> np.ndarray:
    """Per-path discount factors ``exp(-dt * sum_{j<=k} r_j)`` for every row ``k``.

    The rate integral up to ``t_{k+1}`` is the left-point sum over rows
    ``0 ... k``, the first row included.
    """

    if dt <= 0:
        raise ConfigurationError("dt must be positive.")
    rates = _as_ensemble(R)
    with np.errstate(over="ignore", invalid="ignore"):
        integrals = dt * np.cumsum(rates, axis=0)
        return np.exp(-integrals)


def zero_coupon_prices(R: np.ndarray, dt: float) -> tuple[np.ndarray, np.ndarray]:
    """Monte Carlo zero-coupon prices ``P(0, t_{k+1})`` and their standard errors."""

    dfs = discount_factors_from_paths(R, dt)
    n_paths = dfs.shape[1]
    with np.errstate(over="ignore", invalid="ignore"):
        prices = dfs.mean(axis=1)
        if n_paths > 1:
            stderr = dfs.std(axis=1, ddof=1) / math.sqrt(n_paths)
        else:
            stderr = np.zeros_like(prices)
    return prices, stderr


def _spot_from_prices(prices: np.ndarray, dt: float, r0: float) -> np.ndarray:
    maturities = dt * np.arange(1, prices.size + 1)
    with np.errstate(divide="ignore", invalid="ignore"):
        spot = -np.log(prices) / maturities
    spot[0] = r0

    degenerate = ~np.isfinite(spot)
    if degenerate.any():
        spot[degenerate] = np.inf
        first = int(np.argmax(degenerate))
        warnings.warn(
            f"Discount factor estimate is not positive and finite at {int(degenerate.sum())} "
            f"maturities (first at step {first + 1}); spot rate reported as +inf.",
            NumericalDegeneracyWarning,
            stacklevel=3,
        )
    return spot


def spot_curve(R: np.ndarray, dt: float, r0: float | None = None) -> np.ndarray:
    """Continuously-compounded spot curve implied by an ensemble.

    ``spot[0]`` is the initial short rate (``R[0, 0]`` unless ``r0`` is
    given); ``spot[k] = -ln P(0, t_{k+1}) / t_{k+1}`` for ``k >= 1``. A price
    estimate that underflows to zero (or is otherwise non-finite) yields
    ``+inf`` and a :class:`NumericalDegeneracyWarning` instead of an error.
    """

    rates = _as_ensemble(R)
    prices, _ = zero_coupon_prices(rates, dt)
    start = float(rates[0, 0]) if r0 is None else float(r0)
    return _spot_from_prices(prices, dt, start)


@dataclass
class CurveEstimate:
    """Monte Carlo term structure on a grid."""

    maturities: np.ndarray
    prices: np.ndarray
    stderr: np.ndarray
    spot: np.ndarray

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "step": np.arange(1, self.maturities.size + 1),
                "T": self.maturities,
                "price": self.prices,
                "stderr": self.stderr,
                "spot": self.spot,
            }
        )


def estimate_curve(R: np.ndarray, grid: TimeGrid, r0: float | None = None) -> CurveEstimate:
    """Prices, standard errors and spot rates for every maturity of ``grid``."""

    rates = _as_ensemble(R)
    if rates.shape[0] != grid.n_steps:
        raise ConfigurationError(
            f"ensemble has {rates.shape[0]} rows but the grid has {grid.n_steps} steps."
        )
    prices, stderr = zero_coupon_prices(rates, grid.dt)
    start = float(rates[0, 0]) if r0 is None else float(r0)
    spot = _spot_from_prices(prices, grid.dt, start)
    logger.debug(
        "Estimated curve from %d paths: spot[%d]=%.6g", rates.shape[1], grid.n_steps, spot[-1]
    )
    return CurveEstimate(maturities=grid.maturities, prices=prices, stderr=stderr, spot=spot)
