"""
Security utilities for loopcast.

Validates manifest-provided file names before they are joined onto the
video directory.
"""

from .validators import validate_filename

__all__ = [
    'validate_filename',
]
