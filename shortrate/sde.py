"""Euler–Maruyama propagation of short-rate models over a time grid.

For a model with drift ``mu`` and diffusion ``s`` the scheme reads

    r_{k+1} = r_k + mu(r_k, t_k) dt + s(r_k, t_k) z_k sqrt(dt),   z_k ~ N(0, 1)

with the model-specific form of ``mu`` and ``s`` (and any floor rule) living in
:meth:`shortrate.models.ShortRateModel.step`. Rows of the returned ensemble are
grid times ``t_0 ... t_{N-1}``, columns are independent trajectories.
"""

from __future__ import annotations

import logging

import numpy as np

from .config import TimeGrid
from .errors import ConfigurationError
from .models import ShortRateModel
from .rng import RandomSource

Array = np.ndarray

__all__ = ["euler_maruyama", "euler_maruyama_from_shocks", "validate_run"]

logger = logging.getLogger(__name__)


def validate_run(model: ShortRateModel, grid: TimeGrid, n_paths: int) -> None:
    """Reject invalid configurations before any random draw is made."""

    if isinstance(n_paths, bool) or int(n_paths) != n_paths or n_paths <= 0:
        raise ConfigurationError(f"n_paths must be a positive integer (received {n_paths}).")
    if grid.dt <= 0:
        raise ConfigurationError("dt must be positive.")
    model.check_grid(grid)


def euler_maruyama(
    model: ShortRateModel,
    grid: TimeGrid,
    n_paths: int,
    r0: float | tuple[float, float],
    rng: RandomSource,
) -> Array:
    """Simulate an ``(n_steps, n_paths)`` ensemble of short-rate paths.

    Examples
    --------
    >>> from shortrate.models import get_model_preset
    >>> grid = TimeGrid(horizon=1.0, n_steps=4)
    >>> euler_maruyama(get_model_preset("vasicek"), grid, 2, 0.015, RandomSource(0)).shape
    (4, 2)
    """

    validate_run(model, grid, n_paths)
    dt = grid.dt
    rates = np.empty((grid.n_steps, n_paths), dtype=float)
    state = model.initial_state(r0, n_paths)
    rates[0] = model.observe(state)

    for k in range(grid.n_steps - 1):
        z = model.draw_shocks(rng, n_paths)
        state = model.step(state, dt, z, k)
        rates[k + 1] = model.observe(state)

    logger.debug(
        "Simulated %s: %d steps x %d paths (dt=%.6g)", model.name, grid.n_steps, n_paths, dt
    )
    return rates


def euler_maruyama_from_shocks(
    model: ShortRateModel,
    dt: float,
    shocks: Array,
    r0: float | tuple[float, float],
) -> Array:
    """Propagate ``model`` with caller-supplied standard-normal shocks.

    ``shocks`` has shape ``(n_steps - 1, n_paths)`` for one-factor models and
    ``(n_steps - 1, 2, n_paths)`` for the two-factor model; row ``k`` drives
    the move from grid row ``k`` to ``k + 1``.
    """

    if dt <= 0:
        raise ConfigurationError("dt must be positive.")
    z_all = np.asarray(shocks, dtype=float)
    expected_ndim = 2 if model.n_factors == 1 else 3
    if z_all.ndim != expected_ndim or (model.n_factors == 2 and z_all.shape[1] != 2):
        raise ConfigurationError(
            f"{model.name}: shocks must have shape "
            + ("(n_steps - 1, n_paths)." if model.n_factors == 1 else "(n_steps - 1, 2, n_paths).")
        )
    n_moves, n_paths = z_all.shape[0], z_all.shape[-1]
    if n_paths <= 0:
        raise ConfigurationError("shocks must cover at least one path.")
    model.check_grid(TimeGrid(horizon=dt * (n_moves + 1), n_steps=n_moves + 1))

    rates = np.empty((n_moves + 1, n_paths), dtype=float)
    state = model.initial_state(r0, n_paths)
    rates[0] = model.observe(state)
    for k in range(n_moves):
        state = model.step(state, dt, z_all[k], k)
        rates[k + 1] = model.observe(state)
    return rates
