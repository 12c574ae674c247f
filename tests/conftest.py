"""Pytest fixtures and configuration for short-rate engine tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from shortrate.config import TimeGrid
from shortrate.models import Vasicek, get_model_preset


@pytest.fixture
def vasicek_params() -> Vasicek:
    """Reference Vasicek parameters (alpha=0.03, beta=0.01, sigma=0.002)."""

    return get_model_preset("vasicek")


@pytest.fixture
def monthly_grid() -> TimeGrid:
    """Five years of monthly steps."""

    return TimeGrid(horizon=5.0, n_steps=60)
