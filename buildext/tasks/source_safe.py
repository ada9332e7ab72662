"""
SourceSafe Task

Drives the Visual SourceSafe command-line client (ss.exe).
"""

import getpass
import os
from typing import Dict, Any, Optional

from .base import Task, MASK
from ..errors import TaskExecutionError, ValidationError
from ..process import format_command, redact, run_command
from ..settings import Settings
from ..windows import registry

SS_VERSIONS = ('6d', '2005')
DEFAULT_ARGUMENTS = "-I-"


class SourceSafeTask(Task):
    """
    Run a SourceSafe command against a database.

    Actions:
        Checkout, Checkin, Cloak, Create, Decloak, Delete, Destroy, Get
        (required: file_path; optional: arguments, ss_version, database,
        working_directory)

    arguments defaults to -I-, which answers every prompt with its default
    so ss.exe never waits for input. Remote execution is not supported.
    """

    task_type = "source_safe"
    description = "Run Visual SourceSafe commands"

    actions = ['Checkout', 'Checkin', 'Cloak', 'Create', 'Decloak', 'Delete', 'Destroy', 'Get']

    parameters = {
        **Task.parameters,
        'file_path': {'type': str, 'description': 'SourceSafe project or file, e.g. $/Project/*.*'},
        'arguments': {'type': str, 'description': 'Extra ss.exe switches. Defaults to -I-'},
        'ss_version': {'type': (str, int), 'description': '6d or 2005. Defaults to 2005'},
        'database': {'type': str, 'description': 'Folder holding srcsafe.ini (SSDIR)'},
        'working_directory': {'type': str, 'description': 'Working folder for ss.exe'},
    }

    required_parameters = ['task_action', 'file_path']

    def __init__(self, config: Dict[str, Any], settings: Optional[Settings] = None):
        super().__init__(config, settings)
        self.file_path: str = self.config['file_path']
        self.arguments: str = self.get_parameter('arguments', DEFAULT_ARGUMENTS)
        self.ss_version: str = str(self.get_parameter('ss_version', '2005'))

    def pre_execute(self) -> None:
        super().pre_execute()

        if self.ss_version not in SS_VERSIONS:
            raise ValidationError(
                "Invalid SSVersion. Valid options are 6d or 2005",
                field='ss_version',
                value=self.ss_version
            )

        working_directory = self.get_parameter('working_directory')
        if working_directory and not os.path.isdir(working_directory):
            raise TaskExecutionError(
                f"Working directory does not exist: {working_directory}",
                task_type=self.task_type
            )

    def execute(self) -> Dict[str, Any]:
        executable = self._executable()
        env = self._environment()
        command_line = self._command_line(executable)
        self.log_message(f"Executing: {redact(command_line, [self.user_password])}",
                         importance="low")

        result = run_command(command_line,
                             env=env,
                             cwd=self.get_parameter('working_directory'),
                             timeout=self.settings.command_timeout,
                             redact_values=[self.user_password])

        if result.stdout.strip():
            self.log_message(result.stdout)
        if result.stderr.strip():
            self.log_message(result.stderr)
        if not result.succeeded:
            self.log_error(f"{result.stderr}({result.return_code})",
                           return_code=result.return_code)

        return {'exit_code': result.return_code}

    def _executable(self) -> str:
        self.log_message("Getting version information", importance="low",
                         ss_version=self.ss_version)
        path = registry.get_sourcesafe_path(self.ss_version)
        if path is None:
            self.log_message("SourceSafe is not registered, using ss.exe from PATH",
                             importance="low")
            return "ss.exe"
        return path

    def _environment(self) -> Dict[str, str]:
        env = {}
        database = self.get_parameter('database')
        if database:
            env['SSDIR'] = database

        user_name = self.user_name or getpass.getuser()
        env['SSUSER'] = user_name
        if self.user_password:
            env['SSPWD'] = self.user_password

        self.log_message(f"Using UserName: {user_name} and Password: "
                         f"{MASK if self.user_password else ''}",
                         importance="low")
        return env

    def _command_line(self, executable: str) -> str:
        """Quote the fixed part and append arguments exactly as given."""
        command_line = format_command([executable, self.task_action, self.file_path])
        if self.arguments:
            command_line = f"{command_line} {self.arguments}"
        return command_line
