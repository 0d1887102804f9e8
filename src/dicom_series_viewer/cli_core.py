"""
DICOM Series Viewer command implementations.

Each command takes parsed arguments plus a logger and returns a process exit
code; cli_click wires them to Click commands.
"""

import json
import logging
import sys
from pathlib import Path
from typing import List

from PIL import Image

from .constants import DEFAULT_FETCH_TIMEOUT
from .contrast import ContrastPresets, parse_contrast_arg
from .decoder import decode
from .errors import DecodeError, FetchError, RenderError, SeriesLoadError
from .image_utils import save_image, to_pil_image, transform
from .playback import PlaybackController
from .retriever import SliceFetcher, SliceSource
from .series import LoadProgress, SeriesManager
from .slice_sorting import sort_sources


_URL_SCHEMES = ("s3://", "http://", "https://", "file://")
SINGLE_IMAGE_SUFFIXES = {".png", ".webp", ".jpg", ".jpeg"}
ANIMATION_SUFFIXES = {".gif", ".webp"}


def setup_logging(verbose=False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.WARNING
    format_str = '%(levelname)s: %(message)s' if not verbose else '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    logging.basicConfig(
        level=level,
        format=format_str
    )


def expand_paths(paths) -> List[SliceSource]:
    """
    Turn command-line paths into slice sources sorted by slice number.

    Directories contribute every regular, non-hidden file they contain.
    URLs are passed through unchanged.
    """
    sources = []
    for value in paths:
        value = str(value)
        if value.startswith(_URL_SCHEMES):
            sources.append(SliceSource(name=value.rsplit("/", 1)[-1], bytes_or_url=value))
            continue

        path = Path(value)
        if path.is_dir():
            for child in sorted(path.iterdir()):
                if child.is_file() and not child.name.startswith("."):
                    sources.append(SliceSource(name=child.name, bytes_or_url=str(child)))
        else:
            sources.append(SliceSource(name=path.name, bytes_or_url=str(path)))
    return sort_sources(sources)


def _fetch_single(args, logger):
    """Fetch and decode the single file named by args.file; None on failure."""
    source = SliceSource(name=Path(str(args.file)).name, bytes_or_url=str(args.file))
    fetcher = SliceFetcher(timeout=getattr(args, "timeout", DEFAULT_FETCH_TIMEOUT))
    try:
        data = fetcher.fetch(source)
        return decode(data, source.name)
    except FetchError as e:
        logger.error(f"Could not read {args.file}: {e}")
    except DecodeError as e:
        logger.error(f"Could not decode {args.file}: {e}")
        for attempt in e.attempts:
            logger.info(f"  {attempt.strategy}: {attempt.reason}")
    return None


def _window_from_args(args, image, logger):
    """Resolve the contrast option to a WindowLevel; None means invalid."""
    contrast = getattr(args, "contrast", None)
    if contrast:
        try:
            window = parse_contrast_arg(contrast)
        except ValueError as e:
            logger.error(f"Invalid contrast argument: {e}")
            return None
        if window is not None:
            return window
    return ContrastPresets.default_for(image)


def info_command(args, logger):
    """Decode one DICOM file and print its metadata as JSON."""
    image = _fetch_single(args, logger)
    if image is None:
        return 1

    window = ContrastPresets.default_for(image)
    summary = image.summary()
    summary["default_window"] = {
        "window_center": window.center,
        "window_width": window.width,
    }
    indent = args.indent if args.indent and args.indent > 0 else None
    print(json.dumps(summary, indent=indent))
    return 0


def render_command(args, logger):
    """Render one DICOM file to a PNG, WebP or JPEG image."""
    output_path = Path(args.output)
    if output_path.suffix.lower() not in SINGLE_IMAGE_SUFFIXES:
        logger.error("Output file must be .png, .webp or .jpg/.jpeg")
        return 1

    image = _fetch_single(args, logger)
    if image is None:
        return 1

    window = _window_from_args(args, image, logger)
    if window is None:
        return 1

    if args.verbose:
        logger.info(f"Rendering {image.source_name} with WW={window.width:g} WC={window.center:g}")

    try:
        raster = transform(image, window.center, window.width)
    except RenderError as e:
        logger.exception(f"Render failed: {e}")
        return 1

    output_image = to_pil_image(raster)
    if args.width:
        height = max(1, int(args.width * image.height / image.width))
        output_image = output_image.resize((args.width, height), Image.Resampling.LANCZOS)

    if not save_image(output_image, output_path, quality=args.quality):
        logger.error("Failed to save image")
        return 1
    return 0


def _load_series(args, logger):
    """Load the series named by args.paths; None on SeriesLoadError."""
    sources = expand_paths(args.paths)
    if not sources:
        logger.error("No slice files found")
        return None

    def report(progress: LoadProgress):
        status = "ok" if progress.succeeded else "FAILED"
        if not args.quiet:
            print(
                f"[{progress.current_index}/{progress.total}] {progress.current_file_name}: {status}",
                file=sys.stderr,
            )

    manager = SeriesManager(
        sources,
        modality=args.modality,
        description=args.description or "",
        max_workers=args.workers,
        fetch_timeout=args.timeout,
        on_progress=report,
    )
    try:
        return manager.load()
    except SeriesLoadError as e:
        logger.error(f"Series failed to load: {e}")
        for failure in e.failures:
            logger.error(f"  {failure.name}: {failure.error}")
        return None


def load_command(args, logger):
    """Load a series and print a JSON summary."""
    series = _load_series(args, logger)
    if series is None:
        return 1

    summary = {
        "modality": series.modality.value,
        "description": series.description,
        "loaded": len(series),
        "requested": series.requested_count,
        "degraded": series.is_degraded,
        "default_window": {
            "window_center": series.default_window.center,
            "window_width": series.default_window.width,
        },
        "slices": [image.source_name for image in series.slices],
        "failures": [
            {"index": failure.index, "name": failure.name, "error": str(failure.error)}
            for failure in series.failures
        ],
    }
    print(json.dumps(summary, indent=2))

    if series.is_degraded:
        logger.warning(f"Degraded series: loaded {len(series)} of {series.requested_count} slices")
    return 0


def cine_command(args, logger):
    """Write an animated GIF/WebP by stepping through the series as cine playback does."""
    output_path = Path(args.output)
    if output_path.suffix.lower() not in ANIMATION_SUFFIXES:
        logger.error("Output file must be .gif or .webp")
        return 1

    series = _load_series(args, logger)
    if series is None:
        return 1

    window = series.default_window
    if args.contrast:
        try:
            window = parse_contrast_arg(args.contrast) or window
        except ValueError as e:
            logger.error(f"Invalid contrast argument: {e}")
            return 1

    playback = PlaybackController(len(series), fps=args.fps)
    frame_count = args.frames if args.frames and args.frames > 0 else len(series)

    frames = []
    size = None
    try:
        for _ in range(frame_count):
            image = series[playback.current_index]
            frame = to_pil_image(transform(image, window.center, window.width))
            if size is None:
                size = frame.size
            elif frame.size != size:
                frame = frame.resize(size, Image.Resampling.LANCZOS)
            frames.append(frame)
            playback.step()
    except RenderError as e:
        logger.exception(f"Render failed: {e}")
        return 1
    finally:
        playback.close()

    duration = int(1000 / playback.fps)
    try:
        if output_path.suffix.lower() == ".webp":
            frames[0].save(
                output_path,
                "WEBP",
                save_all=True,
                append_images=frames[1:],
                duration=duration,
                loop=0,
                quality=args.quality,
            )
        else:
            frames[0].save(
                output_path,
                "GIF",
                save_all=True,
                append_images=frames[1:],
                duration=duration,
                loop=0,
            )
    except OSError as e:
        logger.error(f"Failed to save animation: {e}")
        return 1

    if args.verbose:
        logger.info(f"Wrote {len(frames)} frames at {playback.fps} fps to {output_path}")
    return 0
