"""Layers painted on top of the synthesized background.

Modules:
    - overlays: OverlayImage, OverlayStack (max 10), composite_overlays
    - decode: Bitmap decoding (sync + Future-based async)
    - widgets: MockWidget, WidgetStack, rasterize_widgets (export only)

All layers are painted in insertion order with Porter-Duff source-over
(see utils.compositing) and clipped to the canvas.
"""
