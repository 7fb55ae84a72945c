"""Raster buffer → PNG / JPEG / WebP bytes.

Formats:
    - png:  lossless, RGBA preserved
    - jpg:  RGB (alpha dropped), quality 95
    - webp: RGBA, quality 95

Filenames follow ``bgenerator-{size}x{size}.{ext}``.

Encoding never mutates the buffer; on failure EncodeError is raised and no
bytes are emitted.
"""

import io
import logging
from pathlib import Path
from typing import Dict, Tuple, Union

from PIL import Image

from bgenerator.synth.raster import RasterBuffer
from bgenerator.utils import fs
from bgenerator.utils.validators import ExportFormat

logger = logging.getLogger(__name__)

LOSSY_QUALITY = 95

MIME_TYPES: Dict[ExportFormat, str] = {
    ExportFormat.PNG: "image/png",
    ExportFormat.JPEG: "image/jpeg",
    ExportFormat.WEBP: "image/webp",
}

_PIL_FORMATS: Dict[ExportFormat, str] = {
    ExportFormat.PNG: "PNG",
    ExportFormat.JPEG: "JPEG",
    ExportFormat.WEBP: "WEBP",
}


class EncodeError(RuntimeError):
    """Raised when a buffer cannot be encoded to the requested format."""

    pass


def mime_type(fmt: Union[ExportFormat, str]) -> str:
    return MIME_TYPES[ExportFormat(fmt)]


def export_filename(size: int, fmt: Union[ExportFormat, str]) -> str:
    """Download filename, e.g. ``bgenerator-2048x2048.png``."""
    return f"bgenerator-{size}x{size}.{ExportFormat(fmt).value}"


def encode(buffer: RasterBuffer, fmt: Union[ExportFormat, str]) -> Tuple[bytes, str]:
    """Encode a buffer.

    Parameters
    ----------
    buffer : RasterBuffer
        Rendered buffer (read only)
    fmt : ExportFormat or str
        "png", "jpg" or "webp"

    Returns
    -------
    data : bytes
        Encoded image
    mime : str
        MIME type of ``data``

    Raises
    ------
    EncodeError
        If the format is unknown or the encoder fails
    """
    try:
        fmt = ExportFormat(fmt)
    except ValueError as e:
        raise EncodeError(f"Unsupported export format: {fmt!r}") from e

    image = Image.fromarray(buffer.pixels)
    save_kwargs = {}
    if fmt is ExportFormat.JPEG:
        image = image.convert("RGB")
        save_kwargs["quality"] = LOSSY_QUALITY
    elif fmt is ExportFormat.WEBP:
        save_kwargs["quality"] = LOSSY_QUALITY

    out = io.BytesIO()
    try:
        image.save(out, format=_PIL_FORMATS[fmt], **save_kwargs)
    except (OSError, ValueError) as e:
        logger.error(f"Encoding {buffer!r} as {fmt.value} failed: {e}")
        raise EncodeError(f"Failed to encode {fmt.value}: {e}") from e

    data = out.getvalue()
    logger.debug(f"Encoded {fmt.value}: {len(data)} bytes")
    return data, MIME_TYPES[fmt]


def write_export(data: bytes, filename: str, out_dir: Union[str, Path]) -> Path:
    """Atomically write encoded bytes to ``out_dir/filename``."""
    path = fs.atomic_write_bytes(Path(out_dir) / filename, data)
    logger.info(f"Wrote {path} ({len(data)} bytes)")
    return path
