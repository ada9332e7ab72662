"""
Build Engine

Runs single tasks and YAML build files made of tasks.
"""
import os
import re
import time
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional

from .registry import TaskRegistry
from .settings import Settings
from .errors import BuildExecutionError, ConfigurationError, TaskExecutionError
from .loggingx import get_logger, log_build_start, log_build_completion
from .tasks.base import normalize_config, to_snake_case

logger = get_logger(__name__)

# Keys of a build file task entry that are consumed by the engine
ENGINE_KEYS = ('type', 'outputs', 'continue_on_error')


def _is_true(value: Any) -> bool:
    # Substituted or quoted YAML values arrive as strings
    if isinstance(value, str):
        return value.strip().lower() == 'true'
    return value is True


class Engine:
    """Executes tasks and build files."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.registry = TaskRegistry()

    def _substitute_variables(self, value: str, properties: Dict[str, Any]) -> str:
        """
        Substitute ${NAME} placeholders in a string value.

        Build properties take precedence over environment variables;
        unknown names are left untouched.
        """
        if not isinstance(value, str):
            return value

        def replace_var(match):
            var_name = match.group(1)
            if var_name in properties:
                replacement = properties[var_name]
                if isinstance(replacement, list):
                    return ';'.join(str(v) for v in replacement)
                return str(replacement)
            return os.environ.get(var_name, match.group(0))

        return re.sub(r'\$\{([^}]+)\}', replace_var, value)

    def _substitute_in_config(self, config: Any, properties: Dict[str, Any]) -> Any:
        """Recursively substitute placeholders in configuration."""
        if isinstance(config, dict):
            return {k: self._substitute_in_config(v, properties) for k, v in config.items()}
        elif isinstance(config, list):
            return [self._substitute_in_config(item, properties) for item in config]
        elif isinstance(config, str):
            return self._substitute_variables(config, properties)
        else:
            return config

    def load_build_file(self, path: str) -> Dict[str, Any]:
        """Load and validate a YAML build file."""
        build_path = Path(path)
        try:
            with open(build_path, 'r') as f:
                build_config = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read build file: {e}", config_file=str(build_path))
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}", config_file=str(build_path))

        self._validate_build_config(build_config, str(build_path))
        return build_config

    def _validate_build_config(self, config: Any, config_file: Optional[str] = None) -> None:
        if not isinstance(config, dict):
            raise ConfigurationError("Build file must contain a mapping", config_file=config_file)
        tasks = config.get('tasks')
        if not isinstance(tasks, list) or not tasks:
            raise ConfigurationError("Build file missing 'tasks' list", config_file=config_file)
        properties = config.get('properties', {})
        if properties is not None and not isinstance(properties, dict):
            raise ConfigurationError("'properties' must be a mapping", config_file=config_file)

        for index, task_cfg in enumerate(tasks):
            if not isinstance(task_cfg, dict) or not task_cfg.get('type'):
                raise ConfigurationError(
                    f"Task #{index + 1} is missing its 'type'", config_file=config_file
                )
            if not self.registry.has_task(task_cfg['type']):
                raise ConfigurationError(
                    f"Unknown task type: {task_cfg['type']}", config_file=config_file
                )

    def run_task(self, task_type: str, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run a single task.

        Args:
            task_type: Registered task type
            config: Task parameters

        Returns:
            The task result including '_metadata'
        """
        task_class = self.registry.get_task(task_type)
        task = task_class(config, settings=self.settings)
        return task.run()

    def run_build(self, build_config: Dict[str, Any],
                  properties: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run the tasks of a build file in order.

        Each task's 'outputs' mapping copies output parameters into build
        properties that later tasks can reference as ${NAME}. The build
        stops at the first failed task unless it sets continue_on_error.

        Args:
            build_config: Parsed build file
            properties: Property overrides, e.g. from the command line

        Returns:
            Summary with per-task results and final properties
        """
        self._validate_build_config(build_config)

        build_name = build_config.get('name', 'build')
        tasks = build_config['tasks']
        build_properties: Dict[str, Any] = dict(build_config.get('properties') or {})
        build_properties.update(properties or {})

        start_time = time.time()
        log_build_start(build_name, len(tasks), logger=logger)

        results: List[Dict[str, Any]] = []
        failed_task = None

        for index, raw_config in enumerate(tasks):
            task_config = normalize_config(self._substitute_in_config(raw_config, build_properties))
            task_type = task_config['type']
            task_label = task_config.get('name', f"{task_type}#{index + 1}")
            continue_on_error = _is_true(task_config.get('continue_on_error', False))

            params = {k: v for k, v in task_config.items() if k not in ENGINE_KEYS}
            params.setdefault('name', task_label)

            errors = self.registry.validate_task_config(task_type, params)
            result = None
            if not errors:
                try:
                    result = self.run_task(task_type, params)
                except TaskExecutionError as e:
                    errors = [e.message]

            if errors:
                result = {'_metadata': {
                    'task_name': task_label,
                    'task_type': task_type,
                    'status': 'failed',
                    'errors': errors,
                    'warnings': []
                }}
                logger.error("Task configuration invalid", task_name=task_label, errors=errors)

            results.append(result)

            if result['_metadata']['status'] == 'completed':
                for output_name, property_name in (task_config.get('outputs') or {}).items():
                    output_key = to_snake_case(output_name)
                    if output_key in result:
                        build_properties[property_name] = result[output_key]
            elif continue_on_error:
                logger.warning("Task failed, continuing", task_name=task_label)
            else:
                failed_task = task_label
                break

        duration = time.time() - start_time
        status = 'failed' if failed_task else 'completed'
        completed = sum(1 for r in results if r['_metadata']['status'] == 'completed')

        log_build_completion(build_name, duration, completed, len(tasks), status, logger=logger)

        return {
            'build_name': build_name,
            'status': status,
            'failed_task': failed_task,
            'duration': duration,
            'total_tasks': len(tasks),
            'completed_tasks': completed,
            'results': results,
            'properties': build_properties
        }

    def run_build_file(self, path: str,
                       properties: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Load a build file and run it; raise BuildExecutionError on failure."""
        build_config = self.load_build_file(path)
        summary = self.run_build(build_config, properties)
        if summary['status'] != 'completed':
            raise BuildExecutionError(
                "Build failed",
                build_name=summary['build_name'],
                failed_task=summary['failed_task']
            )
        return summary
