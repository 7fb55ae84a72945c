"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Config validation and preset catalogs (validators)
    - Color parsing and formatting (color)
    - Porter-Duff source-over blending (compositing)
    - Atomic I/O (fs)
    - Hashing for provenance and seeds (hashing)
    - Unified logging (logging_config)
    - Profiling (profiler)

No module in utils/ may import from upper layers (synth, compositing, analysis, session).

Convenience imports:
    from bgenerator.utils import fs, color, validators
    from bgenerator.utils.logging_config import setup_logging, get_logger
"""

# Re-export commonly used modules for convenience
from . import color
from . import compositing
from . import fs
from . import hashing
from . import logging_config
from . import profiler
from . import validators

# Common functions for direct import
from .logging_config import get_logger, push_context, setup_logging

__all__ = [
    # Modules
    'color',
    'compositing',
    'fs',
    'hashing',
    'logging_config',
    'profiler',
    'validators',
    # Direct exports
    'setup_logging',
    'get_logger',
    'push_context',
]
