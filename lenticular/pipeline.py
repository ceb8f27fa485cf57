"""End-to-end lenticular generation from uploaded image bytes.

Runs the two-phase flow used by hosts: decode every upload first, then
size, interlace and encode the composite. Errors are reported on the
returned result rather than raised, so a bad upload or setting never
takes down the host.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from lenticular.codec import decode_images, encode_png
from lenticular.config import merge_config
from lenticular.engine import interlace, strip_width_px
from lenticular.errors import InvalidParameter, LenticularError
from lenticular.evaluate import GenerationMetrics, Timer, source_coverage

logger = logging.getLogger(__name__)


class GenerationResult(NamedTuple):
    """Outcome of one generation run."""

    ok: bool
    sources: List[str]
    rejected: List[Tuple[str, str]]
    metrics: Dict
    png: Optional[bytes] = None
    width: int = 0
    height: int = 0
    error: Optional[str] = None
    message: Optional[str] = None


def check_limits(settings: Dict, limits: Dict) -> None:
    """Enforce the host-level bounds on pitch and resolution.

    Args:
        settings: Interlace settings
        limits: Dict with ``min_value`` and ``max_value``
    """
    low = limits.get("min_value", 10.0)
    high = limits.get("max_value", 300.0)

    for key in ("lines_per_unit", "base_resolution"):
        value = settings.get(key)
        try:
            in_range = low <= float(value) <= high
        except (TypeError, ValueError):
            raise InvalidParameter(f"{key} must be a number, got {value!r}") from None
        if not in_range:
            raise InvalidParameter(f"{key} must be between {low:g} and {high:g}, got {value}")


def generate(
    blobs: Iterable[bytes],
    settings: Optional[Dict] = None,
    names: Optional[Sequence[str]] = None,
    config: Optional[Dict] = None,
    show_progress: bool = False,
) -> GenerationResult:
    """Generate a lenticular PNG from encoded source images.

    Args:
        blobs: Encoded source images, in cycle order
        settings: Interlace settings overriding the ``interlace`` config section
        names: Optional display names for the uploads
        config: Configuration dictionary (see ``lenticular.config``)
        show_progress: Show a progress bar while decoding

    Returns:
        GenerationResult with PNG bytes on success, or the error type and
        message on failure
    """
    metrics = GenerationMetrics()
    accepted: List[str] = []
    rejected: List[Tuple[str, str]] = []

    try:
        # Partial configs keep the defaults for every missing section and key
        config = merge_config(config)
        params = dict(config["interlace"])
        if settings:
            params.update(settings)

        check_limits(params, config["limits"])

        with Timer("Decode") as timer:
            images, accepted, rejected = decode_images(blobs, names, show_progress)
        metrics.update_stage_timing("decode", timer.elapsed)
        metrics.update("n_inputs", len(accepted) + len(rejected))
        metrics.update("n_sources", len(images))
        metrics.update("n_rejected", len(rejected))

        with Timer("Interlace") as timer:
            composite = interlace(images, params)
        metrics.update_stage_timing("interlace", timer.elapsed)

        with Timer("Encode") as timer:
            png = encode_png(composite, config["output"]["png_compression"])
        metrics.update_stage_timing("encode", timer.elapsed)

    except LenticularError as e:
        logger.error(f"Generation failed ({type(e).__name__}): {e}")
        return GenerationResult(
            ok=False,
            sources=accepted,
            rejected=rejected,
            error=type(e).__name__,
            message=str(e),
            metrics=metrics.to_dict(),
        )

    height, width = composite.shape[:2]
    strip = strip_width_px(params["lines_per_unit"], params["base_resolution"])
    orientation = params["orientation"].lower()

    metrics.update("canvas_size", (width, height))
    metrics.update("strip_width_px", strip)
    metrics.update("orientation", orientation)
    metrics.update("coverage", source_coverage((width, height), strip, len(images), orientation))
    metrics.update("output_bytes", len(png))
    logger.info("\n" + metrics.summary())

    return GenerationResult(
        ok=True,
        png=png,
        width=width,
        height=height,
        sources=accepted,
        rejected=rejected,
        metrics=metrics.to_dict(),
    )
