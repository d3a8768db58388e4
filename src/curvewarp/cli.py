from __future__ import annotations

"""Command line interface for curvewarp using Typer."""

from pathlib import Path
from typing import Dict, List, NoReturn, Optional

import json
import logging

import numpy as np
import typer
import yaml
from pydantic import ValidationError

from ._typer import bad_parameter
from .config import Settings, load_settings
from .core.alignment import align as align_series
from .core.basis import build_basis
from .core.fitting import FittedCurve, fit_curve
from .core.sampling import resample as resample_curve
from .errors import ConfigurationError, CurvewarpError
from .utils.logging import set_verbosity

app = typer.Typer(help="Curve fitting, sparse resampling and time warping")
logger = logging.getLogger(__name__)


def _parse_override_value(raw: str) -> object:
    lower = raw.lower()
    if lower in {"true", "false"}:
        return lower == "true"
    if lower in {"null", "none"}:
        return None
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        pass
    if raw.startswith("[") or raw.startswith("{"):
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            bad_parameter(f"invalid JSON override value: {raw}", param_hint="--set")
    return raw


def _ensure_path(settings: Settings, keys: List[str]) -> None:
    current: object = settings
    for key in keys[:-1]:
        if not hasattr(current, key):
            bad_parameter(f"unknown configuration key: {'.'.join(keys)}", param_hint="--set")
        current = getattr(current, key)
    if not hasattr(current, keys[-1]):
        bad_parameter(f"unknown configuration key: {'.'.join(keys)}", param_hint="--set")


def _apply_override(data: Dict[str, object], keys: List[str], value: object) -> None:
    target = data
    for key in keys[:-1]:
        existing = target.get(key)
        if not isinstance(existing, dict):
            existing = {}
            target[key] = existing
        target = existing
    target[keys[-1]] = value


def _fail(exc: BaseException, param_hint: Optional[str] = None) -> NoReturn:
    """Turn a library error into a usage error or a non-zero exit."""

    if isinstance(exc, (ConfigurationError, IndexError)):
        bad_parameter(str(exc), param_hint=param_hint, cause=exc)
    logger.debug("command failed", exc_info=exc)
    typer.secho(f"error: {exc}", err=True)
    raise typer.Exit(code=1)


def _read_table(path: Path) -> np.ndarray:
    """Read a comma separated table; a non-numeric header row is skipped."""

    data = np.genfromtxt(path, delimiter=",", ndmin=2)
    if data.size and np.all(np.isnan(data[0])):
        data = data[1:]
    if data.size == 0:
        bad_parameter(f"no numeric rows in {path}")
    return data


def _read_column(path: Path) -> np.ndarray:
    """Read one number per line."""

    try:
        return np.loadtxt(path, delimiter=",", ndmin=1)
    except ValueError as exc:
        bad_parameter(f"cannot read numbers from {path}: {exc}", cause=exc)


def _fit_table(cfg: Settings, table: np.ndarray) -> FittedCurve:
    if table.shape[1] < 2:
        bad_parameter("input needs a time column and at least one value column")
    times, values = table[:, 0], table[:, 1:]
    basis = build_basis(
        cfg.basis.family,
        (float(times.min()), float(times.max())),
        cfg.basis.count,
        cfg.basis.order,
    )
    return fit_curve(values, basis, times=times, settings=cfg)


def _write(path: Path, array: np.ndarray) -> None:
    if path.suffix.lower() == ".csv":
        np.savetxt(path, array, delimiter=",")
    else:
        np.save(path, array)


@app.callback()
def init(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        dir_okay=False,
        file_okay=True,
        exists=False,
        help="Path to a YAML or JSON configuration file.",
    ),
    set_overrides: List[str] = typer.Option(
        [],
        "--set",
        help="Override configuration values using dotted paths, e.g. smoothing.lam=0.1",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug messages"),
) -> None:
    """Initialise the Typer context with validated settings."""

    set_verbosity(verbose)

    if config is not None and not config.exists():
        bad_parameter(f"configuration file not found: {config}", param_hint="--config")

    try:
        settings = load_settings(config) if config else Settings()
    except (TypeError, ValidationError, json.JSONDecodeError, yaml.YAMLError) as exc:
        bad_parameter(f"failed to load configuration: {exc}", param_hint="--config", cause=exc)

    if set_overrides:
        data = settings.model_dump()
        for override in set_overrides:
            if "=" not in override:
                bad_parameter(
                    "overrides must be of the form --set section.key=value",
                    param_hint="--set",
                )
            key, raw_value = override.split("=", 1)
            if not key:
                bad_parameter("override key cannot be empty", param_hint="--set")
            keys = key.split(".")
            _ensure_path(settings, keys)
            value = _parse_override_value(raw_value)
            _apply_override(data, keys, value)
        try:
            settings = Settings.model_validate(data)
        except ValidationError as exc:
            bad_parameter(f"invalid configuration override: {exc}", param_hint="--set", cause=exc)

    ctx.obj = settings


@app.command()
def fit(
    ctx: typer.Context,
    input: Path = typer.Argument(..., exists=True, dir_okay=False),
    eval_at: Optional[Path] = typer.Option(
        None, "--eval-at", exists=True, dir_okay=False, help="File of times to evaluate the fit at"
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o"),
) -> None:
    """Fit a smooth curve to every value column of ``INPUT``.

    ``INPUT`` is a CSV file whose first column holds the sample times and
    whose remaining columns are replicates.  Without ``--eval-at`` the basis
    coefficients are reported; with it the fitted values at the given times.
    """

    cfg: Settings = ctx.obj
    table = _read_table(input)
    try:
        curve = _fit_table(cfg, table)
        if eval_at is not None:
            times = _read_column(eval_at)
            values = curve.evaluate(times).reshape(times.size, -1)
            result = np.column_stack([times, values])
        else:
            result = curve.coefficients
    except CurvewarpError as exc:
        _fail(exc)

    typer.echo(f"df={curve.df:.6g}")
    typer.echo("gcv=" + ",".join(f"{g:.6g}" for g in curve.gcv))
    if output:
        _write(output, result)
        typer.echo(f"Wrote {output}")
    else:
        for row in np.atleast_2d(result):
            typer.echo(",".join(f"{v:.10g}" for v in row))


@app.command()
def resample(
    ctx: typer.Context,
    input: Path = typer.Argument(..., exists=True, dir_okay=False),
    targets: Path = typer.Argument(..., exists=True, dir_okay=False),
    replicate: int = typer.Option(0, "--replicate", "-r"),
    x_stretch: Optional[float] = typer.Option(None, "--x-stretch"),
    y_stretch: Optional[float] = typer.Option(None, "--y-stretch"),
    noise_sd: Optional[float] = typer.Option(None, "--noise-sd"),
    extrapolate: bool = typer.Option(False, "--extrapolate"),
    output: Optional[Path] = typer.Option(None, "--output", "-o"),
) -> None:
    """Fit ``INPUT`` and observe one replicate at the times in ``TARGETS``.

    Distortion parameters not given on the command line come from the
    ``sampler`` configuration section.
    """

    cfg: Settings = ctx.obj
    table = _read_table(input)
    target_times = _read_column(targets)
    try:
        curve = _fit_table(cfg, table)
        series = resample_curve(
            curve,
            replicate,
            target_times,
            x_stretch,
            y_stretch,
            noise_sd,
            extrapolate=extrapolate,
            settings=cfg,
        )
    except IndexError as exc:
        _fail(exc, param_hint="--replicate")
    except CurvewarpError as exc:
        _fail(exc)

    rows = np.column_stack([series.times, series.values])
    if output:
        _write(output, rows)
        typer.echo(f"Wrote {output}")
    else:
        for t, v in rows:
            typer.echo(f"{t:.10g},{v:.10g}")


@app.command()
def align(
    ctx: typer.Context,
    query: Path = typer.Argument(..., exists=True, dir_okay=False),
    reference: Path = typer.Argument(..., exists=True, dir_okay=False),
    step_pattern: Optional[str] = typer.Option(None, "--step-pattern", "-p"),
    open_begin: Optional[bool] = typer.Option(None, "--open-begin/--closed-begin"),
    open_end: Optional[bool] = typer.Option(None, "--open-end/--closed-end"),
) -> None:
    """Align ``QUERY`` against ``REFERENCE`` and report the distance.

    Both files hold one value per line.  Options not given fall back to the
    ``alignment`` configuration section.
    """

    cfg: Settings = ctx.obj
    q = _read_column(query)
    r = _read_column(reference)
    try:
        result = align_series(q, r, step_pattern, open_begin, open_end, settings=cfg)
    except CurvewarpError as exc:
        _fail(exc)

    typer.echo(f"normalized_distance={result.normalized_distance:.10g}")
    typer.echo(f"distance={result.distance:.10g}")
    typer.echo(f"path_length={result.path_length}")


def main() -> None:
    """Execute the Typer application."""

    app()


if __name__ == "__main__":
    main()
