"""bgenerator: procedural background synthesis and export.

This package renders square, procedurally textured backgrounds from a small
set of numeric/color parameters, composites user overlays and mock UI widgets
onto them, and encodes the result to PNG/JPEG/WebP.

Architecture layers (strict one-way dependency):
    scripts/ → bgenerator/session.py → bgenerator/{synth,compositing,analysis}/ → bgenerator/utils/

Key invariants:
    - Square canvases only (1024, 2048 or 4096 px)
    - RGBA8 buffers, one freshly allocated buffer per pipeline run
    - Every channel clamped to [0, 255] after any stage that can leave the range
    - Noise comes from an injected source, never from global random state
    - YAML-only configs, validated with pydantic before any pixel work
"""

__version__ = "1.4.0"
