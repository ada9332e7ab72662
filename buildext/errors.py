"""
Custom Exceptions

Defines custom exceptions with context for the build task pack.
"""

from typing import Dict, Any, Optional


class BuildTaskError(Exception):
    """Base exception for build task errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self):
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (Context: {context_str})"
        return self.message


class TaskExecutionError(BuildTaskError):
    """Exception raised when a task fails to execute."""

    def __init__(self, message: str, task_name: Optional[str] = None,
                 task_type: Optional[str] = None, **kwargs):
        context = kwargs.copy()
        if task_name:
            context['task_name'] = task_name
        if task_type:
            context['task_type'] = task_type

        super().__init__(message, context)


class BuildExecutionError(BuildTaskError):
    """Exception raised when a build file fails to execute."""

    def __init__(self, message: str, build_name: Optional[str] = None,
                 failed_task: Optional[str] = None, **kwargs):
        context = kwargs.copy()
        if build_name:
            context['build_name'] = build_name
        if failed_task:
            context['failed_task'] = failed_task

        super().__init__(message, context)


class ConfigurationError(BuildTaskError):
    """Exception raised when configuration is invalid."""

    def __init__(self, message: str, config_file: Optional[str] = None,
                 config_path: Optional[str] = None, **kwargs):
        context = kwargs.copy()
        if config_file:
            context['config_file'] = config_file
        if config_path:
            context['config_path'] = config_path

        super().__init__(message, context)


class ValidationError(BuildTaskError):
    """Exception raised when a parameter value is invalid."""

    def __init__(self, message: str, field: Optional[str] = None,
                 value: Optional[Any] = None, **kwargs):
        context = kwargs.copy()
        if field:
            context['field'] = field
        if value is not None:
            context['value'] = value

        super().__init__(message, context)


class UnsupportedPlatformError(BuildTaskError):
    """Exception raised when a Windows-only facility is used elsewhere."""

    def __init__(self, message: str, facility: Optional[str] = None,
                 platform: Optional[str] = None, **kwargs):
        context = kwargs.copy()
        if facility:
            context['facility'] = facility
        if platform:
            context['platform'] = platform

        super().__init__(message, context)


def format_error_context(error: Exception, **task_fields: Any) -> Dict[str, Any]:
    """
    Format error context for logging.

    Args:
        error: Exception instance
        task_fields: Fields of the failing task (task_action, machine_name)
            added to the context; the error's own context wins on conflict

    Returns:
        Dictionary with error_type, message and context
    """
    context = {k: v for k, v in task_fields.items() if v is not None}

    if isinstance(error, BuildTaskError):
        context.update(error.context)
        message = error.message
    else:
        message = str(error)

    return {
        'error_type': error.__class__.__name__,
        'message': message,
        'context': context
    }
