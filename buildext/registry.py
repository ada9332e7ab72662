"""
Task Registry

Manages task discovery and registration for the build engine.
"""

import importlib
import inspect
import structlog
from typing import Dict, Type, Any, List
from pathlib import Path
from .tasks.base import Task


class TaskRegistry:
    """Registry mapping task types to task classes."""

    def __init__(self):
        self.logger = structlog.get_logger(__name__)
        self._tasks: Dict[str, Type[Task]] = {}
        self._task_metadata: Dict[str, Dict[str, Any]] = {}

        self._discover_tasks()

    def _discover_tasks(self) -> None:
        """Import every module in the tasks package and register its Task subclasses."""
        tasks_dir = Path(__file__).parent / "tasks"

        for task_file in sorted(tasks_dir.glob("*.py")):
            if task_file.name in ["__init__.py", "base.py"]:
                continue

            module_name = f"{__package__}.tasks.{task_file.stem}"
            module = importlib.import_module(module_name)

            for name, obj in inspect.getmembers(module, inspect.isclass):
                if issubclass(obj, Task) and obj is not Task and obj.__module__ == module_name:
                    task_type = getattr(obj, 'task_type', name.lower())
                    self.register_task(task_type, obj)

                    self.logger.debug("Discovered task",
                                      task_type=task_type,
                                      module=module_name)

    def register_task(self, task_type: str, task_class: Type[Task]) -> None:
        """Register a task class with the registry."""
        if not (inspect.isclass(task_class) and issubclass(task_class, Task)):
            raise ValueError(f"Task class must inherit from Task: {task_class}")

        self._tasks[task_type] = task_class

        self._task_metadata[task_type] = {
            'description': getattr(task_class, 'description', 'No description'),
            'actions': list(getattr(task_class, 'actions', [])),
            'parameters': getattr(task_class, 'parameters', {}),
            'required_parameters': getattr(task_class, 'required_parameters', []),
            'class': task_class
        }

        self.logger.debug("Registered task", task_type=task_type)

    def get_task(self, task_type: str) -> Type[Task]:
        """Get a task class by type."""
        if task_type not in self._tasks:
            raise KeyError(f"Unknown task type: {task_type}")

        return self._tasks[task_type]

    def list_tasks(self) -> Dict[str, Dict[str, Any]]:
        """List all registered tasks with their metadata."""
        return {
            task_type: {
                'description': metadata['description'],
                'actions': metadata['actions'],
                'parameters': metadata['parameters'],
                'required_parameters': metadata['required_parameters']
            }
            for task_type, metadata in self._task_metadata.items()
        }

    def validate_task_config(self, task_type: str, config: Dict[str, Any]) -> List[str]:
        """Validate task configuration and return list of errors."""
        if task_type not in self._task_metadata:
            return [f"Unknown task type: {task_type}"]

        errors = []
        metadata = self._task_metadata[task_type]

        for param in metadata.get('required_parameters', []):
            if config.get(param) in (None, ""):
                errors.append(f"Missing required parameter: {param}")

        task_action = config.get('task_action')
        if task_action and task_action not in metadata['actions']:
            errors.append(f"Invalid TaskAction passed: {task_action}")

        return errors

    def get_available_task_types(self) -> List[str]:
        """Get list of available task types."""
        return list(self._tasks.keys())

    def has_task(self, task_type: str) -> bool:
        """Check if a task type is registered."""
        return task_type in self._tasks
