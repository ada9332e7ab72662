"""
Build Extension Tasks

Build-automation tasks for environment variables, Windows services and
Visual SourceSafe, plus a small engine and CLI to run them.
"""

__version__ = "1.0.0"
__author__ = "Automation Team"

from .engine import Engine
from .registry import TaskRegistry
from .cli import cli

__all__ = ["Engine", "TaskRegistry", "cli"]
