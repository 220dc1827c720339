"""
Storage primitives for daybook.

Provides the directory-backed ``DocumentBundle`` (async disk I/O via
aiofiles) and resolution of the configured library folder.
"""

from .bundle import DocumentBundle
from .location import (
    APP_DIRECTORY_NAME,
    LIBRARY_SUBFOLDER_NAME,
    LibraryLocation,
    parse_location,
    resolve_library_folder,
)

__all__ = [
    "APP_DIRECTORY_NAME",
    "LIBRARY_SUBFOLDER_NAME",
    "DocumentBundle",
    "LibraryLocation",
    "parse_location",
    "resolve_library_folder",
]
