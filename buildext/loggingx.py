"""
Structured Logging Setup

Configures structured logging with proper formatting and output handling.
"""

import sys
import logging
import structlog
from typing import Optional
from pathlib import Path


def setup_logging(level: str = "INFO", verbose: bool = False,
                 log_file: Optional[str] = None) -> None:
    """
    Setup structured logging for the build tasks.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        verbose: Enable verbose console output instead of JSON lines
        log_file: Optional file path for logging output
    """
    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper())
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if verbose:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

        logging.getLogger().addHandler(file_handler)


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structured logger
    """
    return structlog.get_logger(name)


def log_task_start(task_name: str, task_type: str, task_action: Optional[str],
                  machine_name: Optional[str] = None,
                  logger: Optional[structlog.BoundLogger] = None) -> None:
    """
    Log task execution start.

    Args:
        task_name: Name of the task
        task_type: Type of the task
        task_action: TaskAction the task was invoked with
        machine_name: Machine the task acts on
        logger: Optional logger instance
    """
    if logger is None:
        logger = get_logger(__name__)

    logger.info("Task execution started",
               task_name=task_name,
               task_type=task_type,
               task_action=task_action,
               machine_name=machine_name)


def log_task_completion(task_name: str, duration: float, status: str,
                       result: Optional[dict] = None,
                       error_count: int = 0, warning_count: int = 0,
                       logger: Optional[structlog.BoundLogger] = None) -> None:
    """
    Log task execution completion.

    Args:
        task_name: Name of the task
        duration: Execution duration in seconds
        status: Task status (completed, failed)
        result: Optional task outputs
        error_count: Errors logged by the task
        warning_count: Warnings logged by the task
        logger: Optional logger instance
    """
    if logger is None:
        logger = get_logger(__name__)

    log_data = {
        "task_name": task_name,
        "duration": duration,
        "status": status,
        "error_count": error_count,
        "warning_count": warning_count
    }

    if result:
        log_data["result"] = result

    logger.info("Task execution completed", **log_data)


def log_build_start(build_name: str, task_count: int,
                   logger: Optional[structlog.BoundLogger] = None) -> None:
    """Log build file execution start."""
    if logger is None:
        logger = get_logger(__name__)

    logger.info("Build execution started",
               build_name=build_name,
               task_count=task_count)


def log_build_completion(build_name: str, duration: float,
                        completed_tasks: int, total_tasks: int,
                        status: str,
                        logger: Optional[structlog.BoundLogger] = None) -> None:
    """Log build file execution completion."""
    if logger is None:
        logger = get_logger(__name__)

    logger.info("Build execution completed",
               build_name=build_name,
               duration=duration,
               completed_tasks=completed_tasks,
               total_tasks=total_tasks,
               status=status)
