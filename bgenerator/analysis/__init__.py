"""Image analysis tools.

Modules:
    - palette: Dominant-color analyzer and palette swatch rendering
"""
