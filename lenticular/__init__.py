"""Lenticular image generation from interlaced source strips.

Combines an ordered list of images into a single composite by cycling
narrow strips from each source, ready for printing under a lenticular
lens sheet.
"""

from __future__ import annotations

from lenticular.errors import (
    DecodeError,
    EmptyGeometry,
    IncompatibleSources,
    InsufficientSources,
    InvalidParameter,
    LenticularError,
)
from lenticular.engine import compute_canvas_size, interlace, strip_width_px

__version__ = "0.1.0"

__all__ = [
    "DecodeError",
    "EmptyGeometry",
    "IncompatibleSources",
    "InsufficientSources",
    "InvalidParameter",
    "LenticularError",
    "compute_canvas_size",
    "interlace",
    "strip_width_px",
]
