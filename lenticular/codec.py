"""Decode and encode boundary for the interlacing engine.

Uploads arrive as raw bytes in any format OpenCV can read and are
normalised to 8-bit BGRA so every source shares one channel layout.
Composites leave as lossless PNG bytes.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np
from tqdm import tqdm

from lenticular.errors import DecodeError, EmptyGeometry, InvalidParameter
from lenticular.engine import image_size

logger = logging.getLogger(__name__)

OUTPUT_FILENAME = "lenticular-image.png"


def to_bgra(image: np.ndarray) -> np.ndarray:
    """Normalise a decoded raster to 8-bit, 4-channel BGRA.

    Args:
        image: Raster as returned by ``cv2.imdecode`` with IMREAD_UNCHANGED

    Returns:
        HxWx4 uint8 array
    """
    # Reduce bit depth first; cvtColor keeps the dtype it is given
    if image.dtype == np.uint16:
        image = (image >> 8).astype(np.uint8)
    elif np.issubdtype(image.dtype, np.floating):
        image = np.round(np.clip(image, 0.0, 1.0) * 255).astype(np.uint8)
    elif image.dtype != np.uint8:
        raise DecodeError(f"Unsupported pixel depth {image.dtype}")

    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGRA)
    if image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2BGRA)
    if image.shape[2] == 4:
        return np.ascontiguousarray(image)

    raise DecodeError(f"Unsupported channel count {image.shape[2]}")


def decode_image(data: bytes) -> np.ndarray:
    """Decode raw image bytes into a BGRA raster.

    Args:
        data: Encoded image file contents (PNG, JPEG, BMP, WebP, ...)

    Returns:
        HxWx4 uint8 array
    """
    if not data:
        raise DecodeError("Empty image data")

    buffer = np.frombuffer(data, dtype=np.uint8)
    try:
        image = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise DecodeError(f"OpenCV failed to decode image: {e}") from e

    if image is None:
        raise DecodeError(f"Unrecognised or corrupt image data ({len(data)} bytes)")

    # Zero-sized rasters are a geometry problem, not a decode problem
    image_size(image)

    return to_bgra(image)


def encode_png(raster: np.ndarray, compression: int = 3) -> bytes:
    """Encode a raster as lossless PNG bytes.

    Args:
        raster: HxW or HxWxC uint8 array
        compression: zlib compression level, 0-9

    Returns:
        PNG file contents
    """
    if not 0 <= int(compression) <= 9:
        raise InvalidParameter(f"PNG compression must be in [0, 9], got {compression}")

    image_size(raster)

    ok, buffer = cv2.imencode(".png", raster, [cv2.IMWRITE_PNG_COMPRESSION, int(compression)])
    if not ok:
        raise RuntimeError(f"PNG encoding failed for raster of shape {raster.shape}")

    return buffer.tobytes()


def read_image(path: Union[str, Path]) -> np.ndarray:
    """Read and decode an image file into a BGRA raster."""
    # Read bytes ourselves; cv2.imread mishandles non-ASCII paths on some platforms
    return decode_image(Path(path).read_bytes())


def write_image(path: Union[str, Path], raster: np.ndarray, compression: int = 3) -> Path:
    """Encode a raster as PNG and write it to ``path``.

    Returns:
        The written path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode_png(raster, compression))
    logger.info(f"Wrote {raster.shape[1]}x{raster.shape[0]} composite to {path}")
    return path


def decode_images(
    blobs: Iterable[bytes],
    names: Optional[Sequence[str]] = None,
    show_progress: bool = False,
) -> Tuple[List[np.ndarray], List[str], List[Tuple[str, str]]]:
    """Decode a batch of uploads, rejecting unreadable ones.

    A file that fails to decode is reported and skipped; the remaining
    files are still decoded and keep their relative order.

    Args:
        blobs: Encoded image file contents, in cycle order
        names: Optional display names, one per blob
        show_progress: Show a tqdm progress bar

    Returns:
        Tuple of (images, accepted_names, rejected) where ``rejected`` is a
        list of (name, reason) pairs
    """
    blobs = list(blobs)
    if names is None:
        names = [f"image {i}" for i in range(len(blobs))]
    elif len(names) != len(blobs):
        raise InvalidParameter(f"Got {len(names)} names for {len(blobs)} images")

    images: List[np.ndarray] = []
    accepted: List[str] = []
    rejected: List[Tuple[str, str]] = []

    for name, data in tqdm(
        zip(names, blobs), total=len(blobs), desc="Decoding images", disable=not show_progress
    ):
        try:
            image = decode_image(data)
        except (DecodeError, EmptyGeometry) as e:
            logger.warning(f"Rejected {name}: {e}")
            rejected.append((name, str(e)))
            continue

        logger.debug(f"Decoded {name}: {image.shape[1]}x{image.shape[0]}")
        images.append(image)
        accepted.append(name)

    logger.info(f"Decoded {len(images)} of {len(blobs)} images")
    return images, accepted, rejected
