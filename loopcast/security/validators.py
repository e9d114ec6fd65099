"""
File name validation for manifest entries.

Manifest keys become local file names inside the video directory, so they
must not carry path separators or parent directory references.
"""

import os


def validate_filename(filename: str) -> bool:
    """True if filename names a plain file directly inside the video directory."""
    # No path separators
    if '/' in filename or '\\' in filename or os.sep in filename:
        return False

    # No parent directory references
    if filename == '.' or '..' in filename:
        return False

    # Not representable as a path
    if '\x00' in filename:
        return False

    return True
