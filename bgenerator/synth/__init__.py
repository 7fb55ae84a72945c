"""Background synthesis: raster buffer, noise, tone curve, stages, encoder.

Modules:
    - raster: RasterBuffer (square RGBA8 numpy buffer)
    - noise: Injectable NoiseSource implementations and grain distributions
    - tone: Brightness / contrast / saturation curve
    - stages: fill, tint, grain, blur, vignette
    - pipeline: render / render_preview / render_export / export
    - encoder: PNG / JPEG / WebP encoding and atomic export writing

Stage order (owned by pipeline):
    fill → tint → grain → tone → blur → vignette → overlays → (export) widgets

Invariants:
    - One RasterBuffer per run, allocated by the pipeline
    - No global random state: noise comes from the NoiseSource passed in
    - Neutral parameters are exact identities (no rounding drift)
"""
