"""Command-line interface for short-rate simulation and calibration."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd
import typer

from .calibration import calibrate_model, fit_report, load_observed_curve
from .config import RunConfig, load_run_config
from .curves import estimate_curve
from .errors import ConfigurationError
from .models import MODEL_REGISTRY
from .simulate import simulate_run
from .validation import compare_spot_curves, spot_error_by_paths

app = typer.Typer(help="Short-rate model utilities", no_args_is_help=True)

DATA_DIR = Path("data")


def _parse_int_list(value: str) -> List[int]:
    try:
        ints = [int(item.strip()) for item in value.split(",") if item.strip()]
    except ValueError as exc:
        raise typer.BadParameter("Provide a comma-separated list of integers.") from exc
    if not ints:
        raise typer.BadParameter("Provide at least one integer.")
    return ints


def _resolve_config(
    config: Optional[Path],
    model: Optional[str],
    horizon: Optional[float],
    n_steps: Optional[int],
    n_paths: Optional[int],
    r0: Optional[float],
    seed: Optional[int],
) -> RunConfig:
    """Start from the JSON file (if any) and apply command-line overrides."""

    try:
        if config is not None:
            base = load_run_config(config)
        elif model is not None:
            base = RunConfig(model=model)
        else:
            raise typer.BadParameter("Provide --config or --model.")
        overrides = {
            "model": model,
            "horizon": horizon,
            "n_steps": n_steps,
            "n_paths": n_paths,
            "r0": r0,
            "seed": seed,
        }
        changes = {key: value for key, value in overrides.items() if value is not None}
        if "model" in changes and changes["model"] != base.model:
            changes["params"] = {}
        resolved = replace(base, **changes)
        resolved.build_model()
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    return resolved


def _write_csv(df: pd.DataFrame, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress to stderr."),
) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


_MODEL_HELP = f"Model name ({', '.join(sorted(MODEL_REGISTRY))})."


@app.command("simulate")
def simulate(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="JSON run configuration."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help=_MODEL_HELP),
    horizon: Optional[float] = typer.Option(None, "--horizon", help="Horizon in years."),
    n_steps: Optional[int] = typer.Option(None, "--n-steps", help="Number of grid steps."),
    n_paths: Optional[int] = typer.Option(None, "--n-paths", help="Ensemble size."),
    r0: Optional[float] = typer.Option(None, "--r0", help="Initial short rate."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed."),
    paths_out: Path = typer.Option(DATA_DIR / "paths.csv", "--paths-out"),
    curve_out: Path = typer.Option(DATA_DIR / "spot_curve.csv", "--curve-out"),
) -> None:
    """Simulate an ensemble and store it with its Monte Carlo spot curve."""

    run = _resolve_config(config, model, horizon, n_steps, n_paths, r0, seed)
    t, paths = simulate_run(run)
    estimate = estimate_curve(paths, run.grid)

    paths_df = pd.DataFrame(paths, columns=[f"path_{j}" for j in range(paths.shape[1])])
    paths_df.insert(0, "t", t)
    typer.echo(f"Saved {_write_csv(paths_df, paths_out)}")
    typer.echo(f"Saved {_write_csv(estimate.to_frame(), curve_out)}")


@app.command("spot-curve")
def spot_curve_cmd(
    config: Optional[Path] = typer.Option(None, "--config", "-c"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help=_MODEL_HELP),
    horizon: Optional[float] = typer.Option(None, "--horizon"),
    n_steps: Optional[int] = typer.Option(None, "--n-steps"),
    n_paths: Optional[int] = typer.Option(None, "--n-paths"),
    r0: Optional[float] = typer.Option(None, "--r0"),
    seed: Optional[int] = typer.Option(None, "--seed"),
    out: Optional[Path] = typer.Option(None, "--out", help="Optional CSV destination."),
) -> None:
    """Print the Monte Carlo spot curve with price standard errors."""

    run = _resolve_config(config, model, horizon, n_steps, n_paths, r0, seed)
    _, paths = simulate_run(run)
    df = estimate_curve(paths, run.grid).to_frame()
    typer.echo(df.to_string(index=False))
    if out is not None:
        typer.echo(f"Saved {_write_csv(df, out)}")


@app.command("calibrate")
def calibrate(
    observed: Path = typer.Option(..., "--observed", "-o", help="CSV with maturity_steps,yield."),
    config: Optional[Path] = typer.Option(None, "--config", "-c"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help=_MODEL_HELP),
    horizon: Optional[float] = typer.Option(None, "--horizon"),
    n_steps: Optional[int] = typer.Option(None, "--n-steps"),
    n_paths: Optional[int] = typer.Option(None, "--n-paths"),
    r0: Optional[float] = typer.Option(None, "--r0"),
    seed: Optional[int] = typer.Option(None, "--seed"),
    max_iter: Optional[int] = typer.Option(None, "--max-iter", help="Iteration budget per round."),
    restarts: int = typer.Option(0, "--restarts", min=0, help="Restarts from the best point."),
    params_out: Path = typer.Option(DATA_DIR / "calibration_params.json", "--params-out"),
    curve_out: Path = typer.Option(DATA_DIR / "calibration_curve.csv", "--curve-out"),
) -> None:
    """Fit model parameters to an observed yield curve."""

    if not observed.exists():
        raise typer.BadParameter(f"File {observed} not found.")
    run = _resolve_config(config, model, horizon, n_steps, n_paths, r0, seed)
    try:
        curve = load_observed_curve(observed, grid=run.grid)
        result = calibrate_model(
            observed=curve,
            initial=run.build_model(),
            grid=run.grid,
            n_paths=run.n_paths,
            r0=run.r0,
            seed=run.seed,
            max_iter=max_iter,
            restarts=restarts,
        )
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    compare_df = fit_report(curve, result.params, run.grid, run.n_paths, run.r0, run.seed)
    _write_csv(compare_df, curve_out)

    params_out.parent.mkdir(parents=True, exist_ok=True)
    params_data = {
        "model": run.model,
        "params": result.params.as_dict(),
        "success": result.success,
        "message": result.message,
        "loss": result.fun,
        "initial_loss": result.initial_fun,
        "history": result.history,
        "n_penalized": result.n_penalized,
        "run": {**run.to_dict(), "params": {}},
    }
    params_out.write_text(json.dumps(params_data, indent=2))

    if not result.success:
        typer.echo(f"Warning: search did not converge ({result.message}).", err=True)
    typer.echo(f"SSE: {result.initial_fun:.6e} -> {result.fun:.6e}")
    typer.echo(f"Saved comparison curve to {curve_out}")
    typer.echo(f"Saved calibrated params to {params_out}")


@app.command("validate")
def validate(
    config: Optional[Path] = typer.Option(None, "--config", "-c"),
    model: Optional[str] = typer.Option(
        None, "--model", "-m", help="vasicek, merton or cir (default vasicek without --config)."
    ),
    horizon: Optional[float] = typer.Option(None, "--horizon"),
    n_steps: Optional[int] = typer.Option(None, "--n-steps"),
    r0: Optional[float] = typer.Option(None, "--r0"),
    seed: Optional[int] = typer.Option(None, "--seed"),
    paths: str = typer.Option("1000,10000,100000", "--paths", help="Comma-separated ensemble sizes."),
    out: Path = typer.Option(DATA_DIR / "validation.csv", "--out"),
) -> None:
    """Compare Monte Carlo spot rates with the closed-form curve."""

    paths_list = _parse_int_list(paths)
    if config is None and model is None:
        model = "vasicek"
    run = _resolve_config(config, model, horizon, n_steps, max(paths_list), r0, seed)
    if isinstance(run.r0, tuple):
        raise typer.BadParameter("validation needs a scalar r0.")
    try:
        params = run.build_model()
        by_paths = spot_error_by_paths(params, run.r0, run.grid, paths_list, run.seed)
        curve_df = compare_spot_curves(params, run.r0, run.grid, max(paths_list), run.seed)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    typer.echo(by_paths.to_string(index=False))
    if len(curve_df) > 1:
        max_error = float(np.max(curve_df["abs_error"].iloc[1:]))
        typer.echo(f"Max abs spot error: {max_error:.3e}")
    typer.echo(f"Saved {_write_csv(curve_df, out)}")


def app_main() -> None:
    app()


if __name__ == "__main__":
    app_main()
