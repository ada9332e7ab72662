"""
Base Task

Abstract base class for all build tasks.
"""

import os
import platform
import re
import socket
import time
import structlog
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, Set

from ..errors import TaskExecutionError, ValidationError, format_error_context
from ..loggingx import log_task_start, log_task_completion
from ..settings import Settings

MASK = "********"


def to_snake_case(name: str) -> str:
    """Convert a PascalCase parameter name (TaskAction, SSVersion) to snake_case."""
    name = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', name)
    name = re.sub(r'([a-z\d])([A-Z])', r'\1_\2', name)
    return name.lower()


def normalize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    return {to_snake_case(key): value for key, value in config.items()}


def local_machine_names() -> Set[str]:
    """Names under which the local machine may be addressed."""
    hostname = socket.gethostname()
    names = {
        ".",
        "localhost",
        hostname,
        hostname.split(".")[0],
        platform.node(),
        os.environ.get("COMPUTERNAME", ""),
    }
    return {name.lower() for name in names if name}


class Task(ABC):
    """Abstract base class for build tasks."""

    # Task metadata
    task_type: str = "base"
    description: str = "Base task class"

    # Valid values of task_action
    actions: List[str] = []

    # Parameter specifications
    parameters: Dict[str, Dict[str, Any]] = {
        'name': {'type': str, 'description': 'Label used in logs'},
        'task_action': {'type': str, 'description': 'Operation to perform'},
        'machine_name': {'type': str, 'description': 'Target machine, defaults to the local machine'},
        'user_name': {'type': str, 'description': 'Account used for remote or tool access'},
        'user_password': {'type': str, 'description': 'Password for user_name'},
    }
    required_parameters: List[str] = ['task_action']
    sensitive_parameters: List[str] = ['user_password', 'password']

    def __init__(self, config: Dict[str, Any], settings: Optional[Settings] = None):
        """
        Initialize task with configuration.

        Args:
            config: Task parameters, snake_case or PascalCase keys
            settings: Shared runtime settings
        """
        self.config = normalize_config(config)
        self.settings = settings or Settings()
        self.logger = structlog.get_logger(f"{__name__}.{self.__class__.__name__}")
        self.errors: List[str] = []
        self.warnings: List[str] = []

        self._validate_config()

        self.task_action: str = self.config['task_action']
        self.machine_name: str = self.get_parameter('machine_name') or socket.gethostname()
        self.user_name: Optional[str] = self.get_parameter('user_name')
        self.user_password: Optional[str] = self.get_parameter('user_password')

    def _validate_config(self) -> None:
        """Validate task configuration."""
        errors = []

        for param in self.required_parameters:
            if self.config.get(param) in (None, ""):
                errors.append(f"Missing required parameter: {param}")

        for param_name, param_value in self.config.items():
            if param_value is None or param_name not in self.parameters:
                continue
            expected_type = self.parameters[param_name].get('type')
            if expected_type and not isinstance(param_value, expected_type):
                if isinstance(expected_type, tuple):
                    type_name = " or ".join(t.__name__ for t in expected_type)
                else:
                    type_name = expected_type.__name__
                errors.append(
                    f"Parameter {param_name} must be {type_name}, "
                    f"got {type(param_value).__name__}"
                )

        if errors:
            raise TaskExecutionError(
                f"Configuration validation failed: {'; '.join(errors)}",
                task_name=self.config.get('name', 'unknown'),
                task_type=self.task_type
            )

    @property
    def task_name(self) -> str:
        return self.config.get('name') or self.task_type

    @property
    def remote_machine(self) -> Optional[str]:
        """The target machine name, or None when it is the local machine."""
        if self.is_local_machine():
            return None
        return self.machine_name

    def is_local_machine(self) -> bool:
        return self.machine_name.lower() in local_machine_names()

    @abstractmethod
    def execute(self) -> Dict[str, Any]:
        """
        Perform the selected task action.

        Returns:
            Dictionary of output parameters

        Raises:
            BuildTaskError: If the action cannot be carried out
        """
        pass

    def pre_execute(self) -> None:
        """
        Pre-execution validation.

        Override in subclasses for custom pre-execution logic.
        """
        if self.task_action not in self.actions:
            raise ValidationError(
                f"Invalid TaskAction passed: {self.task_action}",
                field='task_action',
                value=self.task_action
            )

        self.logger.debug("Task parameters", parameters=self.safe_config())

    def post_execute(self, result: Dict[str, Any]) -> None:
        """
        Post-execution processing.

        Args:
            result: Output parameters returned by execute()
        """
        self.logger.debug("Task post-execution completed",
                          task_name=self.task_name,
                          task_type=self.task_type,
                          result_keys=list(result.keys()))

    def run(self) -> Dict[str, Any]:
        """
        Run the complete task execution cycle.

        Errors never propagate: they are logged and reported through
        the '_metadata' entry of the returned dictionary.

        Returns:
            Output parameters plus '_metadata'
        """
        start_time = time.time()
        result: Dict[str, Any] = {}

        log_task_start(self.task_name, self.task_type, self.task_action,
                       machine_name=self.machine_name, logger=self.logger)

        try:
            self.pre_execute()
            result = self.execute() or {}
            self.post_execute(result)
        except Exception as e:
            error = format_error_context(e, task_action=self.task_action,
                                         machine_name=self.machine_name)
            self.log_error(error['message'], error_type=error['error_type'],
                           context=error['context'])

        duration = time.time() - start_time
        status = 'failed' if self.errors else 'completed'

        result['_metadata'] = {
            'task_name': self.task_name,
            'task_type': self.task_type,
            'task_action': self.task_action,
            'duration': duration,
            'status': status,
            'timestamp': time.time(),
            'errors': list(self.errors),
            'warnings': list(self.warnings)
        }

        outputs = {k: v for k, v in result.items() if k != '_metadata'}
        log_task_completion(self.task_name, duration, status,
                            result=outputs,
                            error_count=len(self.errors),
                            warning_count=len(self.warnings),
                            logger=self.logger)

        return result

    def get_parameter(self, name: str, default: Any = None) -> Any:
        """
        Get a parameter value from configuration.

        Args:
            name: Parameter name
            default: Default value if parameter is missing or empty

        Returns:
            Parameter value or default
        """
        value = self.config.get(name)
        if value is None or value == "":
            return default
        return value

    def require_parameter(self, name: str) -> Any:
        """
        Get a required parameter value from configuration.

        Raises:
            TaskExecutionError: If parameter is missing or empty
        """
        value = self.get_parameter(name)
        if value is None:
            raise TaskExecutionError(
                f"Required parameter '{name}' not found in configuration",
                task_name=self.task_name,
                task_type=self.task_type,
                task_action=self.task_action
            )
        return value

    def safe_config(self) -> Dict[str, Any]:
        """Configuration with sensitive values masked, for logging."""
        return {
            key: (MASK if key in self.sensitive_parameters and value else value)
            for key, value in self.config.items()
        }

    def log_message(self, message: str, importance: str = "normal", **fields: Any) -> None:
        """
        Log an informational message.

        Args:
            message: Event text
            importance: 'low' logs at debug level, 'normal' and 'high' at info
        """
        if importance == "low":
            self.logger.debug(message, **fields)
        else:
            self.logger.info(message, **fields)

    def log_warning(self, message: str, **fields: Any) -> None:
        self.warnings.append(message)
        self.logger.warning(message, **fields)

    def log_error(self, message: str, **fields: Any) -> None:
        """Log an error; any logged error fails the task."""
        self.errors.append(message)
        self.logger.error(message, task_name=self.task_name, **fields)
