"""
Registry Lookups

Locates installed tools (installutil.exe, ss.exe) from HKEY_LOCAL_MACHINE.
"""

import ntpath
from typing import Optional

from . import require_windows

NET_FRAMEWORK_KEY = r"SOFTWARE\Microsoft\.NETFramework"

SOURCESAFE_KEYS = {
    "6d": (
        [
            r"SOFTWARE\Microsoft\VisualStudio\6.0\Setup\Microsoft Visual SourceSafe Server",
            r"SOFTWARE\Microsoft\VisualStudio\6.0\Setup\Microsoft Visual SourceSafe",
        ],
        r"win32\ss.exe",
    ),
    "2005": (
        [r"SOFTWARE\Microsoft\VisualStudio\8.0\Setup\VS\VSS"],
        "ss.exe",
    ),
}


def read_local_machine_value(subkey: str, value_name: str) -> Optional[str]:
    """
    Read a value below HKEY_LOCAL_MACHINE.

    Returns:
        The value as a string, or None when the key or value is missing
    """
    require_windows("Registry access")
    import winreg

    try:
        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, subkey) as key:
            value, _value_type = winreg.QueryValueEx(key, value_name)
    except FileNotFoundError:
        return None

    return str(value)


def get_installutil_path(framework_version: str) -> Optional[str]:
    """Return the path of installutil.exe for a .NET framework version."""
    install_root = read_local_machine_value(NET_FRAMEWORK_KEY, "InstallRoot")
    if install_root is None:
        return None
    return ntpath.join(install_root, framework_version, "installutil.exe")


def get_sourcesafe_path(version: str) -> Optional[str]:
    """
    Return the path of ss.exe for a SourceSafe version.

    Args:
        version: "6d" or "2005"

    Returns:
        Full path when the product is registered, otherwise None
    """
    subkeys, executable = SOURCESAFE_KEYS[version]
    for subkey in subkeys:
        product_dir = read_local_machine_value(subkey, "ProductDir")
        if product_dir is not None:
            return ntpath.join(product_dir, executable)
    return None
