"""
External Command Runner

Runs external tools (installutil.exe, sc.exe, ss.exe) with captured output.
"""

import os
import subprocess
import structlog
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from .errors import TaskExecutionError

CENSORED = "***CENSORED***"

logger = structlog.get_logger(__name__)


@dataclass
class CommandResult:
    """Captured outcome of an external command."""

    command: str
    stdout: str
    stderr: str
    return_code: int

    @property
    def succeeded(self) -> bool:
        return self.return_code == 0


def redact(text: str, secrets: Sequence[Optional[str]]) -> str:
    """Replace every non-empty secret in text with a censor marker."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, CENSORED)
    return text


def format_command(args: Union[str, Sequence[str]]) -> str:
    """Render an argument list the way it would be typed on a Windows console."""
    if isinstance(args, str):
        return args
    return subprocess.list2cmdline(list(args))


def run_command(args: Union[str, List[str]], env: Optional[Dict[str, str]] = None,
                cwd: Optional[str] = None, timeout: Optional[int] = None,
                redact_values: Sequence[Optional[str]] = ()) -> CommandResult:
    """
    Execute a command without a shell and capture its output.

    Args:
        args: Executable followed by its arguments, or a complete Windows
            command line passed to the child unchanged
        env: Extra environment variables layered over the current environment
        cwd: Working directory for the child process
        timeout: Timeout in seconds
        redact_values: Strings to hide when the command line is logged

    Returns:
        CommandResult; a non-zero exit code is not an exception

    Raises:
        TaskExecutionError: If the command times out or cannot be started
    """
    command = redact(format_command(args), redact_values)

    child_env = os.environ.copy()
    if env:
        child_env.update(env)

    logger.debug("Running command", command=command, working_dir=cwd, timeout=timeout)

    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=child_env,
            cwd=cwd,
            check=False  # Non-zero exit codes are reported, not raised
        )
    except subprocess.TimeoutExpired:
        raise TaskExecutionError(
            f"Command timed out after {timeout} seconds",
            command=command
        )
    except FileNotFoundError as e:
        raise TaskExecutionError(
            f"Command not found: {e}",
            command=command
        )

    return CommandResult(
        command=command,
        stdout=result.stdout or "",
        stderr=result.stderr or "",
        return_code=result.returncode
    )
