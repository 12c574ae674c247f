"""Exception and warning types shared across the short-rate engine."""

from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "NumericalDegeneracyWarning",
    "NonConvergenceWarning",
]


class ConfigurationError(ValueError):
    """Invalid run configuration, detected before any simulation work."""


class NumericalDegeneracyWarning(RuntimeWarning):
    """A Monte Carlo estimate collapsed to a non-finite value."""


class NonConvergenceWarning(RuntimeWarning):
    """The calibration search stopped on its budget rather than its tolerance."""
