"""Closed-form zero-coupon prices used as a reference for the Monte Carlo engine.

These formulas are never called by the simulator or the calibrator; they serve
validation and tests only.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from shortrate.models import CIR, Merton, ShortRateModel, Vasicek

__all__ = [
    "vasicek_affine_coefficients",
    "vasicek_zero_coupon_price",
    "vasicek_mean_short_rate",
    "vasicek_variance_short_rate",
    "merton_zero_coupon_price",
    "cir_affine_coefficients",
    "cir_zero_coupon_price",
    "analytic_spot_curve",
]


def vasicek_affine_coefficients(params: Vasicek, maturity: float) -> tuple[float, float]:
    """Return ``(A, B)`` with ``P(t, T) = A exp(-B r_t)`` for ``T - t = maturity``."""

    if maturity < 0:
        raise ValueError("maturity must be non-negative.")
    beta, alpha, sigma = params.beta, params.alpha, params.sigma
    if beta == 0:
        return math.exp(sigma**2 * maturity**3 / 6.0), maturity
    B = (1 - math.exp(-beta * maturity)) / beta
    log_A = (alpha - sigma**2 / (2 * beta**2)) * (B - maturity) - sigma**2 * B**2 / (4 * beta)
    return math.exp(log_A), B


def vasicek_zero_coupon_price(params: Vasicek, r0: float, maturity: float) -> float:
    """Closed-form zero-coupon price for the Vasicek model."""

    if maturity == 0:
        return 1.0
    A, B = vasicek_affine_coefficients(params, maturity)
    return A * math.exp(-B * r0)


def vasicek_mean_short_rate(params: Vasicek, r0: float, T: float) -> float:
    """Analytical mean of r_T."""

    if T < 0:
        raise ValueError("T must be non-negative.")
    return params.alpha + (r0 - params.alpha) * math.exp(-params.beta * T)


def vasicek_variance_short_rate(params: Vasicek, T: float) -> float:
    """Analytical variance of r_T."""

    if T < 0:
        raise ValueError("T must be non-negative.")
    if params.beta == 0:
        return params.sigma**2 * T
    return params.sigma**2 * (1 - math.exp(-2 * params.beta * T)) / (2 * params.beta)


def merton_zero_coupon_price(params: Merton, r0: float, maturity: float) -> float:
    """Zero-coupon price when ``dr = alpha dt + sigma dW``."""

    if maturity < 0:
        raise ValueError("maturity must be non-negative.")
    return math.exp(
        -r0 * maturity - params.alpha * maturity**2 / 2 + params.sigma**2 * maturity**3 / 6
    )


def cir_affine_coefficients(params: CIR, maturity: float) -> tuple[float, float]:
    """Return ``(A, B)`` with ``P(t, T) = A exp(-B r_t)`` under CIR.

    Written in ``q = exp(-h tau)`` with ``h = sqrt(beta^2 + 2 sigma^2)`` so that
    long maturities do not overflow; both coefficients share the denominator
    ``d = (beta + h)(1 - q) + 2 h q``.
    """

    if maturity < 0:
        raise ValueError("maturity must be non-negative.")
    beta, alpha, sigma = params.beta, params.alpha, params.sigma
    if sigma <= 0 or beta <= 0:
        raise ValueError("beta and sigma must be positive for analytical price.")
    if maturity == 0:
        return 1.0, 0.0

    h = math.hypot(beta, math.sqrt(2.0) * sigma)
    q = math.exp(-h * maturity)
    d = (beta + h) * (1 - q) + 2 * h * q
    B = 2 * (1 - q) / d
    log_A = (2 * beta * alpha / sigma**2) * (math.log(2 * h / d) + 0.5 * (beta - h) * maturity)
    return math.exp(log_A), B


def cir_zero_coupon_price(params: CIR, r0: float, maturity: float) -> float:
    """Closed-form zero-coupon price for the CIR model."""

    A, B = cir_affine_coefficients(params, maturity)
    return A * math.exp(-B * r0)


def analytic_spot_curve(
    params: ShortRateModel, r0: float, maturities: Sequence[float]
) -> np.ndarray:
    """Continuously-compounded spot rates ``-ln P(0, T) / T`` at ``maturities``."""

    pricers = {
        Vasicek: vasicek_zero_coupon_price,
        Merton: merton_zero_coupon_price,
        CIR: cir_zero_coupon_price,
    }
    try:
        pricer = pricers[type(params)]
    except KeyError as exc:
        raise ValueError(f"No closed-form curve for model '{params.name}'.") from exc

    mats = np.asarray(maturities, dtype=float)
    if mats.size == 0:
        raise ValueError("maturities must not be empty.")
    if np.any(mats <= 0):
        raise ValueError("maturities must be positive.")
    return np.array([-math.log(pricer(params, r0, float(T))) / T for T in mats])
