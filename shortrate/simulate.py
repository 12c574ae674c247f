"""High-level simulation helpers for short-rate path generation."""

from __future__ import annotations

import numpy as np

from .config import RunConfig, TimeGrid
from .models import ShortRateModel
from .rng import RandomSource
from .sde import euler_maruyama

__all__ = ["simulate_paths", "simulate_run"]


def simulate_paths(
    model: ShortRateModel,
    grid: TimeGrid,
    n_paths: int,
    r0: float | tuple[float, float],
    seed: int | None = None,
    rng: RandomSource | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Simulate short-rate sample paths for any registered model.

    Parameters
    ----------
    model
        A :class:`shortrate.models.ShortRateModel` instance.
    grid
        Shared time grid; the ensemble has one row per grid step.
    n_paths
        Number of Monte Carlo trajectories to generate.
    r0
        Initial short rate, or ``(x0, y0)`` for the two-factor model.
    seed
        Seed for a fresh :class:`shortrate.rng.RandomSource`. Repeating a call
        with the same seed reproduces the ensemble bit for bit.
    rng
        Optional caller-owned source, advanced in place.

    Returns
    -------
    t, R
        ``t`` holds the row times ``t_0 ... t_{N-1}`` and ``R`` has shape
        ``(n_steps, n_paths)`` with ``R[0] == r0``.
    """

    if rng is not None and seed is not None:
        raise ValueError("Provide either rng or seed, not both.")

    source = rng if rng is not None else RandomSource(seed)
    rates = euler_maruyama(model=model, grid=grid, n_paths=n_paths, r0=r0, rng=source)
    return grid.times, rates


def simulate_run(config: RunConfig) -> tuple[np.ndarray, np.ndarray]:
    """Simulate the model described by a :class:`shortrate.config.RunConfig`."""

    return simulate_paths(
        model=config.build_model(),
        grid=config.grid,
        n_paths=config.n_paths,
        r0=config.r0,
        seed=config.seed,
    )
