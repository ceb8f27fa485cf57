"""Error types raised by the interlacing engine and its codec boundary."""

from __future__ import annotations


class LenticularError(ValueError):
    """Base class for recoverable errors reported back to the caller."""


class InsufficientSources(LenticularError):
    """Fewer than two source images were supplied."""


class InvalidParameter(LenticularError):
    """A pitch, resolution, orientation or sizing setting is not usable."""


class EmptyGeometry(LenticularError):
    """A source image has zero width or zero height."""


class IncompatibleSources(LenticularError):
    """Source images do not share a dtype and channel layout."""


class DecodeError(LenticularError):
    """Raw image bytes could not be decoded into a raster."""
