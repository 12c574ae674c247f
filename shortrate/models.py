"""Short-rate model definitions.

Each model is a frozen dataclass holding its parameters plus a vectorised
Euler–Maruyama step

    r_{k+1} = r_k + mu(r_k, t_k) dt + s(r_k, t_k) z sqrt(dt)

evaluated for a whole ensemble at once (one array entry per trajectory).
Models carry no simulation logic of their own; :mod:`shortrate.sde` drives
them over a :class:`shortrate.config.TimeGrid`.

Naming follows the usual mean-reverting form ``beta (alpha - r)``: ``alpha``
is the long-run level (the drift rate for Merton), ``beta`` the reversion
speed and ``sigma`` the volatility.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import MISSING, dataclass, fields
from typing import TYPE_CHECKING, ClassVar, Mapping, Sequence

import numpy as np

from .errors import ConfigurationError

if TYPE_CHECKING:
    from .config import TimeGrid
    from .rng import RandomSource

Array = np.ndarray
Bounds = list[tuple[float | None, float | None]]

__all__ = [
    "ShortRateModel",
    "Merton",
    "Vasicek",
    "Dothan",
    "BrennanSchwartz",
    "CIR",
    "TwoFactorGaussian",
    "HullWhite",
    "MODEL_REGISTRY",
    "build_model",
    "get_model_preset",
]


def _check_non_negative(model: str, **values: float) -> None:
    for name, value in values.items():
        if not math.isfinite(value) or value < 0:
            raise ConfigurationError(
                f"{model}: {name} must be a finite non-negative number (received {value})."
            )


def _check_finite(model: str, **values: float) -> None:
    for name, value in values.items():
        if not math.isfinite(value):
            raise ConfigurationError(f"{model}: {name} must be finite (received {value}).")


class ShortRateModel(ABC):
    """Drift/diffusion contract shared by all model variants."""

    name: ClassVar[str]
    n_factors: ClassVar[int] = 1

    @abstractmethod
    def step(self, prior: Array, dt: float, z: Array, step_index: int) -> Array:
        """Advance ``prior`` by one step of size ``dt`` using shocks ``z``.

        ``step_index`` is the grid row of ``prior``; only time-dependent models
        use it.
        """

    def draw_shocks(self, rng: RandomSource, n_paths: int) -> Array:
        """Standard-normal shocks for one step, shaped like the model state."""

        return rng.standard_normal(n_paths)

    def initial_state(self, r0: float | Sequence[float], n_paths: int) -> Array:
        if not np.isscalar(r0):
            raise ConfigurationError(
                f"{self.name}: r0 must be a scalar for a one-factor model (received {r0!r})."
            )
        return np.full(n_paths, float(r0), dtype=float)

    def observe(self, state: Array) -> Array:
        """Map a model state to the observable short rate."""

        return state

    def check_grid(self, grid: TimeGrid) -> None:
        """Raise ``ConfigurationError`` if the model cannot run on ``grid``."""

    @property
    def param_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in fields(self))

    def to_vector(self) -> Array:
        return np.array([getattr(self, name) for name in self.param_names], dtype=float)

    def from_vector(self, x: Sequence[float]) -> ShortRateModel:
        """Return a copy of this model carrying the parameter values ``x``."""

        names = self.param_names
        if len(x) != len(names):
            raise ConfigurationError(
                f"{self.name} expects {len(names)} parameters ({', '.join(names)}), received {len(x)}."
            )
        return type(self)(**{name: float(value) for name, value in zip(names, x)})

    def bounds(self) -> Bounds:
        """Optimiser bounds aligned with :meth:`to_vector`."""

        return [(0.0, None) if name.startswith(("beta", "sigma")) else (None, None)
                for name in self.param_names]

    def as_dict(self) -> dict[str, object]:
        return {name: getattr(self, name) for name in self.param_names}


@dataclass(frozen=True)
class Merton(ShortRateModel):
    """Arithmetic Brownian motion with constant drift."""

    name: ClassVar[str] = "merton"

    alpha: float
    sigma: float

    def __post_init__(self) -> None:
        _check_finite(self.name, alpha=self.alpha)
        _check_non_negative(self.name, sigma=self.sigma)

    def step(self, prior: Array, dt: float, z: Array, step_index: int) -> Array:
        return prior + self.alpha * dt + self.sigma * z * math.sqrt(dt)


@dataclass(frozen=True)
class Vasicek(ShortRateModel):
    """Ornstein–Uhlenbeck short rate, additive noise."""

    name: ClassVar[str] = "vasicek"

    alpha: float
    beta: float
    sigma: float

    def __post_init__(self) -> None:
        _check_finite(self.name, alpha=self.alpha)
        _check_non_negative(self.name, beta=self.beta, sigma=self.sigma)

    def step(self, prior: Array, dt: float, z: Array, step_index: int) -> Array:
        return prior + self.beta * (self.alpha - prior) * dt + self.sigma * z * math.sqrt(dt)


@dataclass(frozen=True)
class Dothan(ShortRateModel):
    """Driftless lognormal-type short rate."""

    name: ClassVar[str] = "dothan"

    sigma: float

    def __post_init__(self) -> None:
        _check_non_negative(self.name, sigma=self.sigma)

    def step(self, prior: Array, dt: float, z: Array, step_index: int) -> Array:
        return prior + self.sigma * prior * z * math.sqrt(dt)


@dataclass(frozen=True)
class BrennanSchwartz(ShortRateModel):
    """Mean reversion with volatility proportional to the rate."""

    name: ClassVar[str] = "brennan-schwartz"

    alpha: float
    beta: float
    sigma: float

    def __post_init__(self) -> None:
        _check_finite(self.name, alpha=self.alpha)
        _check_non_negative(self.name, beta=self.beta, sigma=self.sigma)

    def step(self, prior: Array, dt: float, z: Array, step_index: int) -> Array:
        drift = self.beta * (self.alpha - prior) * dt
        return prior + drift + self.sigma * prior * z * math.sqrt(dt)


@dataclass(frozen=True)
class CIR(ShortRateModel):
    """Cox–Ingersoll–Ross square-root diffusion with an absorbing floor.

    A trajectory whose prior state is negative is set to exactly zero for
    that step with no stochastic update; the following step evolves normally
    from zero.
    """

    name: ClassVar[str] = "cir"

    alpha: float
    beta: float
    sigma: float

    def __post_init__(self) -> None:
        _check_finite(self.name, alpha=self.alpha)
        _check_non_negative(self.name, beta=self.beta, sigma=self.sigma)

    def step(self, prior: Array, dt: float, z: Array, step_index: int) -> Array:
        floored = prior < 0
        level = np.where(floored, 0.0, prior)
        drift = self.beta * (self.alpha - level) * dt
        diffusion = self.sigma * np.sqrt(level) * z * math.sqrt(dt)
        return np.where(floored, 0.0, level + drift + diffusion)


@dataclass(frozen=True)
class TwoFactorGaussian(ShortRateModel):
    """Two Vasicek factors with correlated shocks; the short rate is ``x + y``.

    The state array has shape ``(2, n_paths)``. ``rho`` is held fixed during
    calibration and is not part of the parameter vector.
    """

    name: ClassVar[str] = "two-factor"
    n_factors: ClassVar[int] = 2

    alpha_x: float
    beta_x: float
    sigma_x: float
    alpha_y: float
    beta_y: float
    sigma_y: float
    rho: float = -0.1

    def __post_init__(self) -> None:
        _check_finite(self.name, alpha_x=self.alpha_x, alpha_y=self.alpha_y)
        _check_non_negative(
            self.name,
            beta_x=self.beta_x,
            sigma_x=self.sigma_x,
            beta_y=self.beta_y,
            sigma_y=self.sigma_y,
        )
        if not -1.0 <= self.rho <= 1.0:
            raise ConfigurationError(f"{self.name}: rho must lie in [-1, 1] (received {self.rho}).")

    @property
    def param_names(self) -> tuple[str, ...]:
        return ("alpha_x", "beta_x", "sigma_x", "alpha_y", "beta_y", "sigma_y")

    def from_vector(self, x: Sequence[float]) -> TwoFactorGaussian:
        if len(x) != 6:
            raise ConfigurationError(f"{self.name} expects 6 parameters, received {len(x)}.")
        return TwoFactorGaussian(*(float(v) for v in x), rho=self.rho)

    def as_dict(self) -> dict[str, object]:
        return {**super().as_dict(), "rho": self.rho}

    def initial_state(self, r0: float | Sequence[float], n_paths: int) -> Array:
        if np.isscalar(r0):
            x0 = y0 = 0.5 * float(r0)
        else:
            values = list(r0)
            if len(values) != 2:
                raise ConfigurationError(
                    f"{self.name}: initial state must be a scalar r0 or a pair (x0, y0), "
                    f"received {len(values)} values."
                )
            x0, y0 = (float(v) for v in values)
        state = np.empty((2, n_paths), dtype=float)
        state[0] = x0
        state[1] = y0
        return state

    def draw_shocks(self, rng: RandomSource, n_paths: int) -> Array:
        return rng.correlated_normals(self.rho, n_paths)

    def observe(self, state: Array) -> Array:
        return state[0] + state[1]

    def step(self, prior: Array, dt: float, z: Array, step_index: int) -> Array:
        sqrt_dt = math.sqrt(dt)
        x, y = prior
        new = np.empty_like(prior)
        new[0] = x + self.beta_x * (self.alpha_x - x) * dt + self.sigma_x * z[0] * sqrt_dt
        new[1] = y + self.beta_y * (self.alpha_y - y) * dt + self.sigma_y * z[1] * sqrt_dt
        return new


@dataclass(frozen=True, eq=False)
class HullWhite(ShortRateModel):
    """Vasicek with a per-step mean level ``alpha[k]``.

    ``alpha`` must hold exactly one value per grid row. The update leaving row
    ``k`` reverts towards ``alpha[k]``, so the final entry only matters once the
    grid is extended.
    """

    name: ClassVar[str] = "hull-white"

    alpha: Sequence[float]
    beta: float
    sigma: float

    def __post_init__(self) -> None:
        if np.isscalar(self.alpha):
            raise ConfigurationError(
                f"{self.name}: alpha must be a per-step vector, received the scalar {self.alpha!r}."
            )
        alpha = np.array(self.alpha, dtype=float)
        if alpha.ndim != 1 or alpha.size == 0:
            raise ConfigurationError(f"{self.name}: alpha must be a non-empty 1-D sequence.")
        if not np.all(np.isfinite(alpha)):
            raise ConfigurationError(f"{self.name}: alpha entries must be finite.")
        alpha.setflags(write=False)
        object.__setattr__(self, "alpha", alpha)
        _check_non_negative(self.name, beta=self.beta, sigma=self.sigma)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HullWhite):
            return NotImplemented
        return (
            self.beta == other.beta
            and self.sigma == other.sigma
            and np.array_equal(self.alpha, other.alpha)
        )

    @property
    def param_names(self) -> tuple[str, ...]:
        return ("beta", "sigma") + tuple(f"alpha[{k}]" for k in range(len(self.alpha)))

    def to_vector(self) -> Array:
        return np.concatenate(([self.beta, self.sigma], self.alpha))

    def from_vector(self, x: Sequence[float]) -> HullWhite:
        values = np.asarray(x, dtype=float)
        if values.size < 3:
            raise ConfigurationError(
                f"{self.name} expects beta, sigma and at least one alpha value, received {values.size}."
            )
        return HullWhite(alpha=values[2:], beta=float(values[0]), sigma=float(values[1]))

    def bounds(self) -> Bounds:
        return [(0.0, None), (0.0, None)] + [(None, None)] * len(self.alpha)

    def as_dict(self) -> dict[str, object]:
        return {"alpha": self.alpha.tolist(), "beta": self.beta, "sigma": self.sigma}

    def check_grid(self, grid: TimeGrid) -> None:
        if len(self.alpha) != grid.n_steps:
            raise ConfigurationError(
                f"{self.name}: alpha must hold one mean level per time step "
                f"(expected {grid.n_steps}, received {len(self.alpha)})."
            )

    def step(self, prior: Array, dt: float, z: Array, step_index: int) -> Array:
        level = self.alpha[step_index]
        return prior + self.beta * (level - prior) * dt + self.sigma * z * math.sqrt(dt)


MODEL_REGISTRY: dict[str, type[ShortRateModel]] = {
    cls.name: cls
    for cls in (Merton, Vasicek, Dothan, BrennanSchwartz, CIR, TwoFactorGaussian, HullWhite)
}


def build_model(name: str, params: Mapping[str, object]) -> ShortRateModel:
    """Instantiate a registered model from a parameter mapping."""

    try:
        cls = MODEL_REGISTRY[name.lower()]
    except KeyError as exc:
        raise ConfigurationError(
            f"Unknown model '{name}'. Valid options: {', '.join(sorted(MODEL_REGISTRY))}"
        ) from exc
    expected = {f.name for f in fields(cls)}
    required = {
        f.name for f in fields(cls) if f.default is MISSING and f.default_factory is MISSING
    }
    given = set(params)
    missing = sorted(required - given)
    unknown = sorted(given - expected)
    if missing or unknown:
        raise ConfigurationError(
            f"{cls.name}: wrong parameters (missing: {missing or 'none'}, unknown: {unknown or 'none'})."
        )
    return cls(**params)


_PRESETS: dict[str, ShortRateModel] = {
    "merton": Merton(alpha=0.002, sigma=0.002),
    "vasicek": Vasicek(alpha=0.03, beta=0.01, sigma=0.002),
    "dothan": Dothan(sigma=0.1),
    "brennan-schwartz": BrennanSchwartz(alpha=0.03, beta=0.1, sigma=0.1),
    "cir": CIR(alpha=0.03, beta=0.5, sigma=0.05),
    "two-factor": TwoFactorGaussian(
        alpha_x=0.02, beta_x=0.3, sigma_x=0.004, alpha_y=0.01, beta_y=0.05, sigma_y=0.002
    ),
}


def get_model_preset(name: str, n_steps: int | None = None) -> ShortRateModel:
    """Return a reference parameter set for ``name``.

    Hull–White has no fixed-size preset; pass ``n_steps`` to get a flat
    ``alpha`` of the right length.
    """

    key = name.lower()
    if key == HullWhite.name:
        if n_steps is None or n_steps <= 0:
            raise ConfigurationError("hull-white preset needs a positive n_steps.")
        return HullWhite(alpha=np.full(n_steps, 0.03), beta=0.1, sigma=0.002)
    try:
        return _PRESETS[key]
    except KeyError as exc:
        raise ConfigurationError(
            f"Unknown preset '{name}'. Valid options: {', '.join(sorted(MODEL_REGISTRY))}"
        ) from exc
