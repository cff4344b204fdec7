"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Render config validation (validators)
    - Plane ↔ pixel coordinate conversions (compute)
    - Atomic I/O (fs)
    - Profiling (profiler)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (engine, export, wizard).

Convenience imports:
    from nebulae.utils import fs, compute, validators
    from nebulae.utils.logging_config import setup_logging, push_context
"""

# Re-export commonly used modules for convenience
from . import compute
from . import fs
from . import logging_config
from . import profiler
from . import validators

# Common functions for direct import
from .logging_config import push_context, setup_logging

__all__ = [
    # Modules
    'compute',
    'fs',
    'logging_config',
    'profiler',
    'validators',
    # Direct exports
    'setup_logging',
    'push_context',
]
