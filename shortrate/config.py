"""Run configuration: the shared time grid and per-run settings.

A :class:`TimeGrid` is built once per run and handed to the simulator, the
curve estimator and the calibrator alike, so every component agrees on the
number of steps and on ``dt``.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Sequence

import numpy as np

from .errors import ConfigurationError
from .models import ShortRateModel, build_model, get_model_preset

__all__ = ["TimeGrid", "RunConfig", "load_run_config"]


@dataclass(frozen=True)
class TimeGrid:
    """Uniform grid ``0 = t_0 < t_1 < ... < t_N = horizon``.

    Ensemble rows live at ``t_0 ... t_{N-1}``; spot-curve entry ``k`` has
    maturity ``t_{k+1}``.
    """

    horizon: float
    n_steps: int

    def __post_init__(self) -> None:
        if not math.isfinite(self.horizon) or self.horizon <= 0:
            raise ConfigurationError(f"horizon must be positive (received {self.horizon}).")
        if isinstance(self.n_steps, bool) or int(self.n_steps) != self.n_steps or self.n_steps <= 0:
            raise ConfigurationError(
                f"n_steps must be a positive integer (received {self.n_steps})."
            )
        object.__setattr__(self, "n_steps", int(self.n_steps))

    @classmethod
    def from_steps_per_year(cls, horizon: float, steps_per_year: int) -> TimeGrid:
        if steps_per_year <= 0:
            raise ConfigurationError("steps_per_year must be positive.")
        return cls(horizon=horizon, n_steps=max(1, int(math.ceil(horizon * steps_per_year))))

    @property
    def dt(self) -> float:
        return self.horizon / self.n_steps

    @property
    def points(self) -> np.ndarray:
        return np.linspace(0.0, self.horizon, self.n_steps + 1)

    @property
    def times(self) -> np.ndarray:
        """Times of the ensemble rows."""

        return self.points[:-1]

    @property
    def maturities(self) -> np.ndarray:
        """Maturities of the spot-curve entries."""

        return self.points[1:]

    def step_of(self, maturity: float) -> int:
        """Nearest step index (1-based, as used by observed curves) for a maturity in years."""

        if maturity <= 0 or maturity > self.horizon + 0.5 * self.dt:
            raise ConfigurationError(
                f"maturity {maturity} lies outside the grid (0, {self.horizon}]."
            )
        return min(self.n_steps, max(1, int(round(maturity / self.dt))))


@dataclass(frozen=True)
class RunConfig:
    """Everything needed to reproduce one simulation or calibration run."""

    model: str
    horizon: float = 5.0
    n_steps: int = 60
    n_paths: int = 10_000
    r0: float | tuple[float, float] = 0.015
    seed: int | None = 42
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.n_paths, bool) or int(self.n_paths) != self.n_paths or self.n_paths <= 0:
            raise ConfigurationError(
                f"n_paths must be a positive integer (received {self.n_paths})."
            )
        if not np.isscalar(self.r0):
            object.__setattr__(self, "r0", tuple(float(v) for v in self.r0))  # type: ignore[union-attr]
        TimeGrid(horizon=self.horizon, n_steps=self.n_steps)

    @property
    def grid(self) -> TimeGrid:
        return TimeGrid(horizon=self.horizon, n_steps=self.n_steps)

    def build_model(self) -> ShortRateModel:
        """Model from ``params``, falling back to the named preset when empty."""

        if self.params:
            model = build_model(self.model, self.params)
        else:
            model = get_model_preset(self.model, n_steps=self.n_steps)
        model.check_grid(self.grid)
        return model

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RunConfig:
        known = {"model", "horizon", "n_steps", "n_paths", "r0", "seed", "params"}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}.")
        if "model" not in data:
            raise ConfigurationError("Configuration must name a model.")
        values = dict(data)
        r0 = values.get("r0")
        if isinstance(r0, Sequence) and not isinstance(r0, str):
            values["r0"] = tuple(r0)
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "horizon": self.horizon,
            "n_steps": self.n_steps,
            "n_paths": self.n_paths,
            "r0": list(self.r0) if isinstance(self.r0, tuple) else self.r0,
            "seed": self.seed,
            "params": dict(self.params),
        }


def load_run_config(path: str | Path) -> RunConfig:
    """Read a JSON run configuration."""

    config_path = Path(path)
    with config_path.open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"{config_path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path} must contain a JSON object.")
    return RunConfig.from_dict(data)
