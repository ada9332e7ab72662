"""
Windows Platform Adapters

Thin wrappers over the registry, the Service Control Manager and WMI.
Windows-only modules are imported when first used so the package
imports on every platform.
"""

import sys

from ..errors import UnsupportedPlatformError


def require_windows(facility: str) -> None:
    """Raise UnsupportedPlatformError unless running on Windows."""
    if sys.platform != "win32":
        raise UnsupportedPlatformError(
            f"{facility} is only available on Windows",
            facility=facility,
            platform=sys.platform
        )
