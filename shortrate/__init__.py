"""Short-rate simulation, Monte Carlo spot curves and curve calibration."""

from .calibration import (
    CalibrationResult,
    ObservedCurve,
    calibrate_model,
    curve_objective,
    fit_report,
    load_observed_curve,
)
from .config import RunConfig, TimeGrid, load_run_config
from .curves import (
    CurveEstimate,
    discount_factors_from_paths,
    estimate_curve,
    spot_curve,
    zero_coupon_prices,
)
from .errors import ConfigurationError, NonConvergenceWarning, NumericalDegeneracyWarning
from .models import (
    CIR,
    MODEL_REGISTRY,
    BrennanSchwartz,
    Dothan,
    HullWhite,
    Merton,
    ShortRateModel,
    TwoFactorGaussian,
    Vasicek,
    build_model,
    get_model_preset,
)
from .rng import RandomSource, make_rng
from .simulate import simulate_paths, simulate_run

__all__ = [
    "CIR",
    "MODEL_REGISTRY",
    "BrennanSchwartz",
    "CalibrationResult",
    "ConfigurationError",
    "CurveEstimate",
    "Dothan",
    "HullWhite",
    "Merton",
    "NonConvergenceWarning",
    "NumericalDegeneracyWarning",
    "ObservedCurve",
    "RandomSource",
    "RunConfig",
    "ShortRateModel",
    "TimeGrid",
    "TwoFactorGaussian",
    "Vasicek",
    "build_model",
    "calibrate_model",
    "curve_objective",
    "discount_factors_from_paths",
    "estimate_curve",
    "fit_report",
    "get_model_preset",
    "load_observed_curve",
    "load_run_config",
    "make_rng",
    "simulate_paths",
    "simulate_run",
    "spot_curve",
    "zero_coupon_prices",
]
