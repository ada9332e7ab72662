"""
Environment Variable Store

Reads and writes environment variables in the Process, User or Machine scope.
"""

import os
from enum import Enum
from typing import Optional

import structlog

from .errors import ValidationError
from .windows import require_windows

USER_ENVIRONMENT_KEY = "Environment"
MACHINE_ENVIRONMENT_KEY = r"SYSTEM\CurrentControlSet\Control\Session Manager\Environment"

HWND_BROADCAST = 0xFFFF
WM_SETTINGCHANGE = 0x001A
SMTO_ABORTIFHUNG = 0x0002
BROADCAST_TIMEOUT_MS = 5000

logger = structlog.get_logger(__name__)


class EnvironmentTarget(Enum):
    """Where an environment variable lives."""

    PROCESS = "Process"
    USER = "User"
    MACHINE = "Machine"

    @classmethod
    def parse(cls, value: str) -> "EnvironmentTarget":
        for target in cls:
            if target.value == value:
                return target
        raise ValidationError(
            f"The value '{value}' is not a valid target. Use Process, User or Machine.",
            field='target',
            value=value
        )


def _registry_location(target: EnvironmentTarget):
    import winreg

    if target is EnvironmentTarget.USER:
        return winreg.HKEY_CURRENT_USER, USER_ENVIRONMENT_KEY
    return winreg.HKEY_LOCAL_MACHINE, MACHINE_ENVIRONMENT_KEY


def get_variable(name: str, target: EnvironmentTarget = EnvironmentTarget.PROCESS) -> Optional[str]:
    """
    Read an environment variable.

    Returns:
        The value, or None when the variable is not defined for the target
    """
    if target is EnvironmentTarget.PROCESS:
        return os.environ.get(name)

    require_windows(f"{target.value} environment variables")
    import winreg

    root, subkey = _registry_location(target)
    try:
        with winreg.OpenKey(root, subkey) as key:
            value, _value_type = winreg.QueryValueEx(key, name)
    except FileNotFoundError:
        return None
    return str(value)


def set_variable(name: str, value: Optional[str],
                 target: EnvironmentTarget = EnvironmentTarget.PROCESS) -> None:
    """
    Write an environment variable. An empty or None value removes it.
    """
    if target is EnvironmentTarget.PROCESS:
        if value:
            os.environ[name] = value
        else:
            os.environ.pop(name, None)
        return

    require_windows(f"{target.value} environment variables")
    import winreg

    root, subkey = _registry_location(target)
    with winreg.OpenKey(root, subkey, 0, winreg.KEY_SET_VALUE) as key:
        if value:
            value_type = winreg.REG_EXPAND_SZ if "%" in value else winreg.REG_SZ
            winreg.SetValueEx(key, name, 0, value_type, value)
        else:
            try:
                winreg.DeleteValue(key, name)
            except FileNotFoundError:
                pass

    _broadcast_environment_change()


def _broadcast_environment_change() -> None:
    """Tell running applications that the persisted environment changed."""
    import win32gui

    logger.debug("Broadcasting environment change")
    win32gui.SendMessageTimeout(
        HWND_BROADCAST, WM_SETTINGCHANGE, 0, "Environment",
        SMTO_ABORTIFHUNG, BROADCAST_TIMEOUT_MS
    )
