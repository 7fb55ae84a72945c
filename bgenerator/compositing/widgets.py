"""Mock UI widgets rasterized onto exported backgrounds.

Widgets are drawn only on export (the preview leaves them to a live layer of
the caller). Each widget is a fixed template drawn around its center with
Pillow ImageDraw onto a transparent layer, scaled by ``scale / 100``, then
composited source-over at (x% * W, y% * H). Widgets paint in insertion order.

Templates (unscaled px, centered on the widget position):
    button  text width (16px) + 2*24 wide, 40 tall; variants default /
            outline / ghost / destructive
    card    300x150 white box, 1px #e4e4e7 border, bold 20px title,
            14px description, 13px body (#71717a)
    input   250x40 white box, border, 14px placeholder (#a1a1aa) at x+12
    navbar  600x60 white box, bottom rule, bold 18px brand at x+24,
            14px Home / About / Contact links
    badge   text width (16px) + 2*16 wide, 24 tall, 12px text; variants
            default / secondary / outline / destructive
    avatar  40px #f4f4f5 circle, 14px initials

Button and badge widths are measured with the 16px font even though the
badge label is drawn at 12px.

Fonts: DejaVu Sans when available, otherwise Pillow's bundled default font.
"""

import logging
import math
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from bgenerator.compositing.overlays import LayerStack, clamp_finite, new_id
from bgenerator.synth.raster import RasterBuffer
from bgenerator.utils import compositing
from bgenerator.utils.validators import WidgetKind

logger = logging.getLogger(__name__)

# Palette
FOREGROUND = "#18181b"
BORDER = "#e4e4e7"
MUTED = "#71717a"
PLACEHOLDER = "#a1a1aa"
SECONDARY = "#f4f4f5"
DESTRUCTIVE = "#ef4444"
WHITE = "#ffffff"

DEFAULT_TEXT: Dict[WidgetKind, str] = {
    WidgetKind.BUTTON: "Button",
    WidgetKind.CARD: "Card Title",
    WidgetKind.INPUT: "Enter text...",
    WidgetKind.NAVBAR: "Brand",
    WidgetKind.BADGE: "Badge",
    WidgetKind.AVATAR: "JD",
}

# variant -> (fill, outline, text color)
BUTTON_STYLES: Dict[str, Tuple[Optional[str], Optional[str], str]] = {
    "default": (FOREGROUND, None, WHITE),
    "outline": (None, BORDER, FOREGROUND),
    "ghost": (None, None, FOREGROUND),
    "destructive": (DESTRUCTIVE, None, WHITE),
}

BADGE_STYLES: Dict[str, Tuple[Optional[str], Optional[str], str]] = {
    "default": (FOREGROUND, None, WHITE),
    "secondary": (SECONDARY, None, FOREGROUND),
    "outline": (None, BORDER, FOREGROUND),
    "destructive": (DESTRUCTIVE, None, WHITE),
}

VARIANTS: Dict[WidgetKind, Tuple[str, ...]] = {
    WidgetKind.BUTTON: tuple(BUTTON_STYLES),
    WidgetKind.BADGE: tuple(BADGE_STYLES),
}

NAV_ITEMS = ("Home", "About", "Contact")

_FONT_FILES = {False: "DejaVuSans.ttf", True: "DejaVuSans-Bold.ttf"}


class MockWidget(BaseModel):
    """One mock widget instance.

    Percent fields are clamped on construction and assignment: x/y to
    [0, 100], scale to [50, 150]; non-finite values are rejected. ``variant`` is checked for buttons and
    badges and ignored by the other kinds.
    """

    model_config = ConfigDict(validate_assignment=True, extra='forbid')

    id: str = Field(default_factory=new_id)
    kind: WidgetKind
    x: float = 50.0
    y: float = 50.0
    scale: float = 100.0
    text: Optional[str] = None
    variant: Optional[str] = None

    @field_validator('x', 'y')
    @classmethod
    def clamp_position(cls, v: float) -> float:
        return clamp_finite(v, 0.0, 100.0)

    @field_validator('scale')
    @classmethod
    def clamp_scale(cls, v: float) -> float:
        return clamp_finite(v, 50.0, 150.0)

    @model_validator(mode='after')
    def validate_variant(self) -> 'MockWidget':
        allowed = VARIANTS.get(self.kind)
        if allowed and self.variant is not None and self.variant not in allowed:
            raise ValueError(f"{self.kind.value} variant must be one of {allowed}, got '{self.variant}'")
        return self

    @property
    def label(self) -> str:
        """Text actually drawn (the kind's default when text is None or empty)."""
        return self.text or DEFAULT_TEXT[self.kind]


class WidgetStack(LayerStack[MockWidget]):
    """Unbounded, insertion-ordered widget list."""

    def __init__(self):
        super().__init__(capacity=None)


# ============================================================================
# FONTS
# ============================================================================

@lru_cache(maxsize=64)
def load_font(size: int, bold: bool = False) -> ImageFont.FreeTypeFont:
    """Sans font at ``size`` px (cached)."""
    size = max(1, int(size))
    try:
        return ImageFont.truetype(_FONT_FILES[bold], size)
    except OSError:
        logger.debug(f"{_FONT_FILES[bold]} not found; using Pillow default font")
        return ImageFont.load_default(size=size)


def text_width(text: str, size: int, bold: bool = False) -> float:
    return float(load_font(size, bold).getlength(text))


# ============================================================================
# TEMPLATES
# ============================================================================
# A template is a list of draw ops in unscaled px relative to the widget
# center:
#   ("rect", (x0, y0, x1, y1), fill, outline)
#   ("line", (x0, y0, x1, y1), color)
#   ("ellipse", (x0, y0, x1, y1), fill)
#   ("text", (x, y), text, size, bold, color, anchor)

def _boxed_label(text: str, height: float, padding: float, text_size: int, style) -> List[tuple]:
    fill, outline, fg = style
    width = text_width(text, 16) + padding * 2
    box = (-width / 2, -height / 2, width / 2, height / 2)
    ops: List[tuple] = []
    if fill is not None or outline is not None:
        ops.append(("rect", box, fill, outline))
    ops.append(("text", (0.0, 0.0), text, text_size, False, fg, "mm"))
    return ops


def _button(widget: MockWidget) -> List[tuple]:
    style = BUTTON_STYLES[widget.variant or "default"]
    return _boxed_label(widget.label, 40, 24, 16, style)


def _badge(widget: MockWidget) -> List[tuple]:
    style = BADGE_STYLES[widget.variant or "default"]
    return _boxed_label(widget.label, 24, 16, 12, style)


def _card(widget: MockWidget) -> List[tuple]:
    left, top = -150.0, -75.0
    return [
        ("rect", (left, top, 150.0, 75.0), WHITE, BORDER),
        ("text", (left + 20, top + 30), widget.label, 20, True, FOREGROUND, "lm"),
        ("text", (left + 20, top + 55), "Card description goes here", 14, False, MUTED, "lm"),
        ("text", (left + 20, top + 90), "This is a sample card component.", 13, False, MUTED, "lm"),
    ]


def _input(widget: MockWidget) -> List[tuple]:
    return [
        ("rect", (-125.0, -20.0, 125.0, 20.0), WHITE, BORDER),
        ("text", (-125.0 + 12, 0.0), widget.label, 14, False, PLACEHOLDER, "lm"),
    ]


def _navbar(widget: MockWidget) -> List[tuple]:
    ops = [
        ("rect", (-300.0, -30.0, 300.0, 30.0), WHITE, None),
        ("line", (-300.0, 30.0, 300.0, 30.0), BORDER),
        ("text", (-300.0 + 24, 0.0), widget.label, 18, True, FOREGROUND, "lm"),
    ]
    for i, item in enumerate(NAV_ITEMS):
        ops.append(("text", (300.0 - 200 + i * 80, 0.0), item, 14, False, FOREGROUND, "lm"))
    return ops


def _avatar(widget: MockWidget) -> List[tuple]:
    return [
        ("ellipse", (-20.0, -20.0, 20.0, 20.0), SECONDARY),
        ("text", (0.0, 0.0), widget.label, 14, False, FOREGROUND, "mm"),
    ]


TEMPLATES = {
    WidgetKind.BUTTON: _button,
    WidgetKind.CARD: _card,
    WidgetKind.INPUT: _input,
    WidgetKind.NAVBAR: _navbar,
    WidgetKind.BADGE: _badge,
    WidgetKind.AVATAR: _avatar,
}


def template_ops(widget: MockWidget) -> List[tuple]:
    return TEMPLATES[widget.kind](widget)


# ============================================================================
# RASTERIZATION
# ============================================================================

def _scaled_font(op: tuple, s: float) -> ImageFont.FreeTypeFont:
    return load_font(int(round(op[3] * s)), op[4])


def _op_bounds(op: tuple, s: float) -> Tuple[float, float, float, float]:
    """Scaled bounding box of one op, relative to the widget center."""
    if op[0] == "text":
        x, y = op[1][0] * s, op[1][1] * s
        left, top, right, bottom = _scaled_font(op, s).getbbox(op[2], anchor=op[6])
        return x + left, y + top, x + right, y + bottom
    x0, y0, x1, y1 = op[1]
    return x0 * s, y0 * s, x1 * s, y1 * s


def rasterize_widget(widget: MockWidget, canvas_w: int, canvas_h: int) -> Tuple[np.ndarray, int, int]:
    """Draw one widget on its own transparent layer.

    Returns
    -------
    layer : np.ndarray
        (h, w, 4) uint8 RGBA, straight alpha
    x0, y0 : int
        Canvas position of the layer's top-left corner
    """
    s = widget.scale / 100.0
    ops = template_ops(widget)

    bounds = [_op_bounds(op, s) for op in ops]
    min_x = min(b[0] for b in bounds) - 1
    min_y = min(b[1] for b in bounds) - 1
    max_x = max(b[2] for b in bounds) + 1
    max_y = max(b[3] for b in bounds) + 1

    cx = widget.x / 100.0 * canvas_w
    cy = widget.y / 100.0 * canvas_h
    x0 = int(math.floor(cx + min_x))
    y0 = int(math.floor(cy + min_y))
    width = int(math.ceil(cx + max_x)) - x0 + 1
    height = int(math.ceil(cy + max_y)) - y0 + 1

    # Widget center in layer coordinates (keeps the sub-pixel offset)
    ox, oy = cx - x0, cy - y0
    stroke = max(1, int(round(s)))

    layer = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    for op in ops:
        kind = op[0]
        if kind == "text":
            pos = (ox + op[1][0] * s, oy + op[1][1] * s)
            draw.text(pos, op[2], fill=op[5], font=_scaled_font(op, s), anchor=op[6])
            continue
        x_0, y_0, x_1, y_1 = op[1]
        box = [ox + x_0 * s, oy + y_0 * s, ox + x_1 * s, oy + y_1 * s]
        if kind == "rect":
            draw.rectangle(box, fill=op[2], outline=op[3], width=stroke if op[3] else 0)
        elif kind == "line":
            draw.line(box, fill=op[2], width=stroke)
        elif kind == "ellipse":
            draw.ellipse(box, fill=op[2])

    return np.asarray(layer, dtype=np.uint8), x0, y0


def rasterize_widgets(buffer: RasterBuffer, widgets) -> RasterBuffer:
    """Composite every widget onto ``buffer`` in iteration order."""
    for widget in widgets:
        layer, x0, y0 = rasterize_widget(widget, buffer.width, buffer.height)
        compositing.paste_rgba(buffer.pixels, layer, x0, y0)
        logger.debug(f"widget {widget.id} ({widget.kind.value}) at ({x0}, {y0})")
    return buffer


def make_widget(kind: Any, **fields: Any) -> MockWidget:
    """Widget with control-panel defaults (centered, 100 %, default variant)."""
    kind = WidgetKind(kind)
    fields.setdefault('text', DEFAULT_TEXT[kind])
    fields.setdefault('variant', "default")
    return MockWidget(kind=kind, **fields)
