"""User overlay images and their ordered stack.

Each overlay is a decoded RGBA8 bitmap with placement in canvas percent:

    scaled size  w = max(1, round(w0 * scale / 100)),  h likewise
    top-left     x0 = floor(x/100 * W - w/2 + 0.5),    y0 likewise
    coverage     bitmap alpha * opacity / 100

and is painted source-over in insertion order, clipped to the canvas.
Pixels outside every overlay's footprint are left bit-identical.

Percent fields are clamped (not rejected) on construction and on every
assignment: opacity [0, 100], scale [10, 200], x/y [0, 100]. NaN and
infinities are rejected.

A stack holds at most MAX_OVERLAYS items; adding one more raises
OverlayCapacityError and leaves the stack unchanged (no eviction).
"""

import logging
import math
import uuid
from typing import Any, Generic, Iterator, List, Optional, Tuple, TypeVar

import cv2
import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from bgenerator.synth.raster import RasterBuffer
from bgenerator.utils import color as color_utils
from bgenerator.utils import compositing
from bgenerator.utils.validators import ConfigError

logger = logging.getLogger(__name__)

MAX_OVERLAYS = 10


class OverlayCapacityError(RuntimeError):
    """Raised when adding to a full overlay stack."""

    pass


def clamp_finite(value: float, lo: float, hi: float) -> float:
    if not math.isfinite(value):
        raise ValueError(f"must be a finite number, got {value}")
    return float(min(max(value, lo), hi))


def new_id() -> str:
    return uuid.uuid4().hex[:12]


class OverlayImage(BaseModel):
    """Decoded bitmap plus placement.

    Attributes
    ----------
    id : str
        Stable identifier within a stack
    bitmap : np.ndarray
        (h, w, 4) uint8, straight alpha (RGB input gains an opaque alpha)
    opacity : float
        Percent [0, 100]
    scale : float
        Percent of native size [10, 200]
    x, y : float
        Center position in percent of canvas width/height [0, 100]
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=True, extra='forbid')

    id: str = Field(default_factory=new_id)
    bitmap: np.ndarray
    opacity: float = 100.0
    scale: float = 100.0
    x: float = 50.0
    y: float = 50.0

    @field_validator('bitmap')
    @classmethod
    def validate_bitmap(cls, v: np.ndarray) -> np.ndarray:
        v = np.asarray(v)
        if v.dtype != np.uint8:
            raise ValueError(f"bitmap must be uint8, got {v.dtype}")
        if v.ndim != 3 or v.shape[2] not in (3, 4) or v.shape[0] == 0 or v.shape[1] == 0:
            raise ValueError(f"bitmap must be a non-empty (h, w, 3|4) array, got {v.shape}")
        if v.shape[2] == 3:
            alpha = np.full(v.shape[:2] + (1,), 255, dtype=np.uint8)
            v = np.concatenate([v, alpha], axis=2)
        return v

    @field_validator('opacity', 'x', 'y')
    @classmethod
    def clamp_percent(cls, v: float) -> float:
        return clamp_finite(v, 0.0, 100.0)

    @field_validator('scale')
    @classmethod
    def clamp_scale(cls, v: float) -> float:
        return clamp_finite(v, 10.0, 200.0)

    @property
    def native_size(self) -> Tuple[int, int]:
        """(width, height) of the decoded bitmap."""
        return self.bitmap.shape[1], self.bitmap.shape[0]

    def scaled_size(self) -> Tuple[int, int]:
        w0, h0 = self.native_size
        factor = self.scale / 100.0
        return max(1, int(round(w0 * factor))), max(1, int(round(h0 * factor)))

    def placement(self, canvas_w: int, canvas_h: int) -> Tuple[int, int, int, int]:
        """Top-left and size on a canvas: (x0, y0, w, h), may be off-canvas."""
        w, h = self.scaled_size()
        x0 = int(np.floor(self.x / 100.0 * canvas_w - w / 2.0 + 0.5))
        y0 = int(np.floor(self.y / 100.0 * canvas_h - h / 2.0 + 0.5))
        return x0, y0, w, h

    def scaled_bitmap(self) -> np.ndarray:
        """Bitmap resampled to :meth:`scaled_size` (the original when unscaled).

        Bitmaps with any transparency are resampled premultiplied, so fully
        transparent texels do not bleed their (arbitrary) color into edges.
        """
        w, h = self.scaled_size()
        w0, h0 = self.native_size
        if (w, h) == (w0, h0):
            return self.bitmap
        interpolation = cv2.INTER_AREA if w < w0 else cv2.INTER_LINEAR
        if (self.bitmap[..., 3] == 255).all():
            return cv2.resize(self.bitmap, (w, h), interpolation=interpolation)

        premul = self.bitmap.astype(np.float32)
        premul[..., :3] *= premul[..., 3:4] / 255.0
        resized = cv2.resize(premul, (w, h), interpolation=interpolation)
        alpha = resized[..., 3:4]
        rgb = np.where(alpha > 0.0, resized[..., :3] * 255.0 / np.maximum(alpha, 1e-6), 0.0)
        return color_utils.to_uint8(np.concatenate([rgb, alpha], axis=2))


T = TypeVar('T', bound=BaseModel)


class LayerStack(Generic[T]):
    """Ordered, id-addressed list of layer models (insertion order = paint order).

    Parameters
    ----------
    capacity : int, optional
        Maximum number of items (None = unbounded)
    """

    capacity_error = OverlayCapacityError

    def __init__(self, capacity: Optional[int] = None):
        self.capacity = capacity
        self._items: List[T] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __contains__(self, item_id: object) -> bool:
        return any(item.id == item_id for item in self._items)

    @property
    def is_full(self) -> bool:
        return self.capacity is not None and len(self._items) >= self.capacity

    def ids(self) -> List[str]:
        return [item.id for item in self._items]

    def snapshot(self) -> Tuple[T, ...]:
        """Immutable view of the current order for one render."""
        return tuple(self._items)

    def _index(self, item_id: str) -> int:
        for i, item in enumerate(self._items):
            if item.id == item_id:
                return i
        raise KeyError(f"No layer with id '{item_id}'")

    def get(self, item_id: str) -> T:
        return self._items[self._index(item_id)]

    def add(self, item: T) -> T:
        """Append ``item`` on top of the stack.

        Raises
        ------
        OverlayCapacityError
            If the stack is full (the stack is unchanged)
        ValueError
            If an item with the same id is already present
        """
        if self.is_full:
            logger.warning(f"Layer stack full ({self.capacity}); rejecting {item.id}")
            raise self.capacity_error(f"Stack is full ({self.capacity} items)")
        if item.id in self:
            raise ValueError(f"Duplicate layer id '{item.id}'")
        self._items.append(item)
        return item

    def remove(self, item_id: str) -> T:
        return self._items.pop(self._index(item_id))

    def update(self, item_id: str, **changes: Any) -> T:
        """Replace an item with a re-validated copy carrying ``changes``.

        Percent fields are clamped; unknown fields or bad types raise
        ConfigError and leave the stack unchanged.
        """
        if 'id' in changes:
            raise ConfigError("Layer id cannot be changed")
        index = self._index(item_id)
        current = self._items[index]
        fields = {name: getattr(current, name) for name in type(current).model_fields}
        try:
            updated = type(current).model_validate({**fields, **changes})
        except ValidationError as e:
            raise ConfigError(f"Invalid update for '{item_id}': {e.errors()[0]['msg']}") from e
        self._items[index] = updated
        return updated

    def clear(self) -> None:
        self._items.clear()


class OverlayStack(LayerStack[OverlayImage]):
    """At most MAX_OVERLAYS overlay images."""

    def __init__(self, capacity: int = MAX_OVERLAYS):
        super().__init__(capacity=capacity)


def composite_overlay(buffer: RasterBuffer, overlay: OverlayImage) -> None:
    """Paint one overlay source-over (clipped)."""
    x0, y0, w, h = overlay.placement(buffer.width, buffer.height)
    if overlay.opacity <= 0.0:
        return
    compositing.paste_rgba(buffer.pixels, overlay.scaled_bitmap(), x0, y0, overlay.opacity / 100.0)
    logger.debug(f"overlay {overlay.id}: {w}x{h} at ({x0}, {y0}), opacity {overlay.opacity:.0f}%")


def composite_overlays(buffer: RasterBuffer, overlays) -> RasterBuffer:
    """Paint every overlay in iteration order (later ones on top)."""
    for overlay in overlays:
        composite_overlay(buffer, overlay)
    return buffer
