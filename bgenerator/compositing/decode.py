"""Bitmap decoding for overlay uploads and image analysis.

Decoding runs off the caller's thread via a shared ThreadPoolExecutor and is
exposed as a ``concurrent.futures.Future``; the result is handed to the
(synchronous) compositor only once the future resolves. A failed decode
raises DecodeError from ``future.result()`` and touches no shared state.

Output bitmaps are always (h, w, 4) uint8 RGBA, straight alpha, with EXIF
orientation applied.
"""

import io
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

DECODE_WORKERS = 2

_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


class DecodeError(ValueError):
    """Raised when bytes cannot be decoded into an image."""

    pass


def decode_bitmap(data: Union[bytes, bytearray, memoryview]) -> np.ndarray:
    """Decode encoded image bytes into an RGBA8 array.

    Raises
    ------
    DecodeError
        If the bytes are empty or not a readable image
    """
    if not data:
        raise DecodeError("Empty image data")

    try:
        with Image.open(io.BytesIO(bytes(data))) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            rgba = img.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, EOFError, SyntaxError) as e:
        # Pillow reports malformed chunks as SyntaxError/EOFError
        logger.warning(f"Bitmap decode failed: {e}")
        raise DecodeError(f"Not a decodable image: {e}") from e

    bitmap = np.asarray(rgba, dtype=np.uint8).copy()
    logger.debug(f"Decoded bitmap {bitmap.shape[1]}x{bitmap.shape[0]}")
    return bitmap


def decode_file(path: Union[str, Path]) -> np.ndarray:
    """Read and decode an image file (FileNotFoundError if missing)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")
    return decode_bitmap(path.read_bytes())


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=DECODE_WORKERS, thread_name_prefix="decode")
        return _executor


def decode_bitmap_async(
    data: Union[bytes, bytearray, memoryview],
    executor: Optional[ThreadPoolExecutor] = None
) -> 'Future[np.ndarray]':
    """Schedule :func:`decode_bitmap` on a worker thread.

    Parameters
    ----------
    data : bytes
        Encoded image bytes (copied before scheduling)
    executor : ThreadPoolExecutor, optional
        Pool to run on; defaults to the module's shared pool

    Returns
    -------
    Future
        Resolves to the RGBA8 bitmap, or raises DecodeError. Cancelling or
        dropping the future discards the result.
    """
    pool = executor if executor is not None else _get_executor()
    return pool.submit(decode_bitmap, bytes(data))


def shutdown_executor(wait: bool = True) -> None:
    """Stop the shared decode pool (a new one is created on next use)."""
    global _executor
    with _executor_lock:
        if _executor is not None:
            _executor.shutdown(wait=wait)
            _executor = None
