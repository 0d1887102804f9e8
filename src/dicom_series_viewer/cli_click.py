"""Click-based command-line interface for dicom-series-viewer."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional
from types import SimpleNamespace

import click

from .constants import (
    DEFAULT_CINE_FRAME_COUNT,
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_FPS,
    DEFAULT_IMAGE_QUALITY,
    DEFAULT_MAX_WORKERS,
    MAX_FPS,
    MIN_FPS,
)
from .cli_core import (
    setup_logging,
    info_command,
    render_command,
    load_command,
    cine_command,
)


CommandCallable = Callable[[object, logging.Logger], int]


def _invoke_command(func: CommandCallable, **kwargs: Any) -> None:
    """Invoke command helpers and map failures to Click exceptions."""
    args = kwargs
    setup_logging(bool(args.get("verbose", False)))
    logger = logging.getLogger(__name__)
    rc = func(SimpleNamespace(**args), logger)
    if rc != 0:
        raise click.ClickException(f"{func.__name__} failed with exit code {rc}")


def common_options(
    *,
    include_contrast: bool = True,
    include_quality: bool = True,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator adding shared contrast/quality/verbose options."""

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        func = click.option(
            "-v",
            "--verbose",
            is_flag=True,
            help="Enable detailed logging",
        )(func)
        if include_quality:
            func = click.option(
                "-q",
                "--quality",
                type=click.IntRange(0, 100),
                default=DEFAULT_IMAGE_QUALITY,
                show_default=True,
                help="Output image quality 0-100. Recommended 70+ for JPEG",
            )(func)
        if include_contrast:
            func = click.option(
                "-c",
                "--contrast",
                help="Contrast preset ('lung', 'bone', 'brain', 'embedded', ...) or custom WW/WC such as '1500/500'",
            )(func)
        return func

    return decorator


def series_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator adding series loading options."""
    func = click.option(
        "--quiet",
        is_flag=True,
        help="Do not print per-slice progress to stderr.",
    )(func)
    func = click.option(
        "--timeout",
        type=click.FloatRange(min=0, min_open=True),
        default=DEFAULT_FETCH_TIMEOUT,
        show_default=True,
        help="Seconds allowed per slice fetch.",
    )(func)
    func = click.option(
        "--workers",
        type=click.IntRange(min=1),
        default=DEFAULT_MAX_WORKERS,
        show_default=True,
        help="Concurrent fetch/decode workers.",
    )(func)
    func = click.option(
        "--description",
        default="",
        help="Free-text series description.",
    )(func)
    func = click.option(
        "--modality",
        help="Modality hint (CT, MRI, X-Ray, Ultrasound) used when slices carry no Modality tag.",
    )(func)
    return func


@click.group()
def cli() -> None:
    """Decode, render and page through DICOM series from local files, HTTP or S3."""


@cli.command("info")
@click.argument("file")
@click.option(
    "--indent",
    type=int,
    default=2,
    show_default=True,
    help="JSON indentation (0 disables pretty printing).",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=DEFAULT_FETCH_TIMEOUT,
    show_default=True,
    help="Seconds allowed for the fetch.",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable detailed logging",
)
def info_click(
    *,
    file: str,
    indent: int,
    timeout: float,
    verbose: bool,
) -> None:
    """Print the decoded image metadata of a single DICOM file as JSON."""
    _invoke_command(
        info_command,
        file=file,
        indent=indent,
        timeout=timeout,
        verbose=verbose,
    )


@cli.command("render")
@click.argument("file")
@click.argument("output")
@common_options()
@click.option(
    "-w",
    "--width",
    type=click.IntRange(min=1),
    help="Width of the output image in pixels.",
)
def render_click(
    *,
    file: str,
    output: str,
    contrast: Optional[str],
    quality: int,
    verbose: bool,
    width: Optional[int],
) -> None:
    """Render one DICOM file to PNG, WebP or JPEG."""
    _invoke_command(
        render_command,
        file=file,
        output=output,
        contrast=contrast,
        quality=quality,
        verbose=verbose,
        width=width,
    )


@cli.command("load")
@click.argument("paths", nargs=-1, required=True)
@series_options
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable detailed logging",
)
def load_click(
    *,
    paths: tuple[str, ...],
    modality: Optional[str],
    description: str,
    workers: int,
    timeout: float,
    quiet: bool,
    verbose: bool,
) -> None:
    """Load a series from files, directories or URLs and print a JSON summary."""
    _invoke_command(
        load_command,
        paths=list(paths),
        modality=modality,
        description=description,
        workers=workers,
        timeout=timeout,
        quiet=quiet,
        verbose=verbose,
    )


@cli.command("cine")
@click.argument("paths", nargs=-1, required=True)
@click.argument("output")
@common_options()
@series_options
@click.option(
    "--fps",
    type=click.IntRange(MIN_FPS, MAX_FPS),
    default=DEFAULT_FPS,
    show_default=True,
    help="Playback rate in frames per second.",
)
@click.option(
    "-n",
    "--frames",
    type=click.IntRange(min=0),
    default=DEFAULT_CINE_FRAME_COUNT,
    show_default=True,
    help="Number of frames to write (0 plays the series once).",
)
def cine_click(
    *,
    paths: tuple[str, ...],
    output: str,
    contrast: Optional[str],
    quality: int,
    verbose: bool,
    modality: Optional[str],
    description: str,
    workers: int,
    timeout: float,
    quiet: bool,
    fps: int,
    frames: int,
) -> None:
    """Write an animated GIF or WebP that plays the series as the cine loop does."""
    _invoke_command(
        cine_command,
        paths=list(paths),
        output=output,
        contrast=contrast,
        quality=quality,
        verbose=verbose,
        modality=modality,
        description=description,
        workers=workers,
        timeout=timeout,
        quiet=quiet,
        fps=fps,
        frames=frames,
    )


__all__ = ["cli"]
