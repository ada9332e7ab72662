"""
Tasks Package

Contains the build task implementations.
"""

from .base import Task
from .environment_variable import EnvironmentVariableTask
from .windows_service import WindowsServiceTask
from .source_safe import SourceSafeTask

__all__ = [
    "Task",
    "EnvironmentVariableTask",
    "WindowsServiceTask",
    "SourceSafeTask"
]
