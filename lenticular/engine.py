"""Strip interlacing engine for lenticular composites.

This module implements the two coupled stages of lenticular generation:
sizing a common canvas from independently sized sources, and filling that
canvas with contiguous strips cycled from each source in list order.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from lenticular.errors import (
    EmptyGeometry,
    IncompatibleSources,
    InsufficientSources,
    InvalidParameter,
)

logger = logging.getLogger(__name__)

ORIENTATIONS = ("vertical", "horizontal")
SIZE_POLICIES = ("min", "max")

DEFAULT_SETTINGS: Dict = {
    "lines_per_unit": 75.0,
    "base_resolution": 300.0,
    "orientation": "vertical",
    "size_policy": "min",
    "fill_value": 0,
}


def _positive_real(name: str, value) -> float:
    """Coerce a setting to a finite positive float or raise InvalidParameter."""
    if isinstance(value, bool):
        raise InvalidParameter(f"{name} must be a number, got {value!r}")
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidParameter(f"{name} must be a number, got {value!r}") from None

    if not math.isfinite(value) or value <= 0:
        raise InvalidParameter(f"{name} must be a positive finite number, got {value}")

    return value


def strip_width_px(lines_per_unit: float = 75.0, base_resolution: float = 300.0) -> int:
    """Convert a lenticule pitch into a strip width in pixels.

    The real-valued pitch ``base_resolution / lines_per_unit`` is rounded up
    so that a strip is never narrower than one pixel.

    Args:
        lines_per_unit: Lenticule density of the lens sheet (LPI)
        base_resolution: Print resolution (DPI)

    Returns:
        Strip width in pixels, at least 1
    """
    lines_per_unit = _positive_real("lines_per_unit", lines_per_unit)
    base_resolution = _positive_real("base_resolution", base_resolution)

    pitch = base_resolution / lines_per_unit
    if not math.isfinite(pitch):
        raise InvalidParameter(
            f"Pitch {base_resolution}/{lines_per_unit} is not representable"
        )

    return max(1, math.ceil(pitch))


def image_size(image: np.ndarray) -> Tuple[int, int]:
    """Return (width, height) of a decoded raster.

    Args:
        image: HxW or HxWxC array

    Returns:
        Tuple of (width, height)
    """
    if not isinstance(image, np.ndarray):
        raise IncompatibleSources(f"Expected a numpy array, got {type(image).__name__}")
    if image.ndim not in (2, 3):
        raise IncompatibleSources(f"Expected an HxW or HxWxC array, got shape {image.shape}")

    height, width = image.shape[:2]
    if width == 0 or height == 0:
        raise EmptyGeometry(f"Source image has empty geometry {width}x{height}")

    return int(width), int(height)


def compute_canvas_size(
    sources: Sequence[np.ndarray], policy: str = "min"
) -> Tuple[int, int]:
    """Compute the common output raster size for a list of sources.

    The ``min`` policy clamps the canvas to the smallest common footprint,
    so every source covers every canvas pixel. The ``max`` policy spans the
    largest footprint; smaller sources are padded before interlacing.

    Args:
        sources: Ordered list of decoded rasters
        policy: Sizing policy, "min" or "max"

    Returns:
        Tuple of (canvas_width, canvas_height)
    """
    if policy not in SIZE_POLICIES:
        raise InvalidParameter(
            f"Unknown size policy {policy!r}, expected one of {SIZE_POLICIES}"
        )
    if len(sources) == 0:
        raise InsufficientSources("No source images supplied")

    sizes = [image_size(image) for image in sources]
    widths = [w for w, _ in sizes]
    heights = [h for _, h in sizes]

    reduce = min if policy == "min" else max
    canvas = (reduce(widths), reduce(heights))

    logger.debug(f"Canvas size ({policy}) over {len(sources)} sources: {canvas[0]}x{canvas[1]}")
    return canvas


def source_index_map(length: int, strip_width: int, n_sources: int) -> np.ndarray:
    """Assign a source index to every position along the interlacing axis.

    Position ``i`` is taken from source ``(i // strip_width) % n_sources``.

    Args:
        length: Canvas extent along the axis (width for vertical strips)
        strip_width: Strip width in pixels
        n_sources: Number of sources in the cycle

    Returns:
        Integer array of length ``length``
    """
    if strip_width < 1 or n_sources < 1:
        raise InvalidParameter(
            f"strip_width and n_sources must be >= 1, got {strip_width}, {n_sources}"
        )
    return (np.arange(length) // strip_width) % n_sources


def _resolve_settings(settings: Optional[Dict], overrides: Dict) -> Dict:
    params = dict(DEFAULT_SETTINGS)
    if settings:
        params.update(settings)
    params.update(overrides)

    unknown = set(params) - set(DEFAULT_SETTINGS)
    if unknown:
        raise InvalidParameter(f"Unknown interlace settings: {sorted(unknown)}")

    orientation = params["orientation"]
    if not isinstance(orientation, str) or orientation.lower() not in ORIENTATIONS:
        raise InvalidParameter(
            f"Unknown orientation {orientation!r}, expected one of {ORIENTATIONS}"
        )
    params["orientation"] = orientation.lower()

    return params


def _check_layout(sources: Sequence[np.ndarray]) -> Tuple[np.dtype, Tuple[int, ...]]:
    """Verify all sources share dtype and channel shape."""
    dtype = sources[0].dtype
    channels = sources[0].shape[2:]
    for idx, image in enumerate(sources[1:], start=1):
        if image.dtype != dtype or image.shape[2:] != channels:
            raise IncompatibleSources(
                f"Source {idx} has layout {image.dtype}{list(image.shape[2:])}, "
                f"expected {dtype}{list(channels)}"
            )
    return dtype, channels


def _fit_to_canvas(
    image: np.ndarray, width: int, height: int, fill_value
) -> np.ndarray:
    """Crop (or pad with ``fill_value``) a source to exactly width x height."""
    cropped = image[:height, :width]
    if cropped.shape[0] == height and cropped.shape[1] == width:
        return cropped

    padded = np.full((height, width) + image.shape[2:], fill_value, dtype=image.dtype)
    padded[: cropped.shape[0], : cropped.shape[1]] = cropped
    return padded


def _check_fill_value(fill_value, dtype: np.dtype):
    if isinstance(fill_value, bool) or not isinstance(fill_value, (int, float, np.number)):
        raise InvalidParameter(f"fill_value must be a number, got {fill_value!r}")
    if np.issubdtype(dtype, np.integer):
        info = np.iinfo(dtype)
        if not info.min <= fill_value <= info.max:
            raise InvalidParameter(
                f"fill_value {fill_value} outside the range of {dtype} [{info.min}, {info.max}]"
            )
    return fill_value


def interlace(
    sources: Sequence[np.ndarray], settings: Optional[Dict] = None, **overrides
) -> np.ndarray:
    """Interlace strips from an ordered list of sources into one composite.

    For vertical orientation, column ``x`` of the composite is copied from
    source ``(x // strip_width) % len(sources)``; horizontal orientation
    applies the same rule to rows. The last strip is truncated when the
    canvas is not a multiple of the strip width.

    Args:
        sources: Ordered list of at least two decoded rasters sharing dtype
            and channel layout
        settings: Optional dict with any of ``lines_per_unit``,
            ``base_resolution``, ``orientation``, ``size_policy`` and
            ``fill_value``
        **overrides: Individual settings taking precedence over ``settings``

    Returns:
        Freshly allocated composite raster of the canvas size
    """
    sources = list(sources)
    n_sources = len(sources)
    if n_sources < 2:
        raise InsufficientSources(f"At least 2 source images required, got {n_sources}")

    params = _resolve_settings(settings, overrides)
    strip = strip_width_px(params["lines_per_unit"], params["base_resolution"])
    orientation = params["orientation"]

    width, height = compute_canvas_size(sources, params["size_policy"])
    dtype, channels = _check_layout(sources)

    if params["size_policy"] == "max":
        fill_value = _check_fill_value(params["fill_value"], dtype)
    else:
        fill_value = params["fill_value"]
    fitted: List[np.ndarray] = [
        _fit_to_canvas(image, width, height, fill_value) for image in sources
    ]

    logger.info(
        f"Interlacing {n_sources} sources into {width}x{height} "
        f"({orientation}, strip width {strip}px)"
    )

    composite = np.empty((height, width) + channels, dtype=dtype)
    axis_length = width if orientation == "vertical" else height

    # Each strip write touches a disjoint slice of the composite
    for k, start in enumerate(range(0, axis_length, strip)):
        end = min(start + strip, axis_length)
        src = fitted[k % n_sources]
        if orientation == "vertical":
            composite[:, start:end] = src[:, start:end]
        else:
            composite[start:end] = src[start:end]

    n_strips = math.ceil(axis_length / strip)
    if n_strips < n_sources:
        logger.warning(
            f"Canvas holds only {n_strips} strips; sources {n_strips}..{n_sources - 1} "
            f"do not appear in the composite"
        )
    logger.debug(f"Wrote {n_strips} strips, last strip {axis_length - (n_strips - 1) * strip}px")

    return composite
