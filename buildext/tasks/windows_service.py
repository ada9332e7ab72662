"""
Windows Service Task

Installs, uninstalls, starts, stops and reconfigures Windows services.
"""

import os
import time
from typing import Dict, Any, List, Optional

from .base import Task
from ..errors import TaskExecutionError
from ..process import CommandResult, run_command
from ..settings import Settings
from ..windows import registry
from ..windows.management import ManagementScope, quote_wql
from ..windows.services import ServiceController, ServiceStatus, list_service_names

STARTUP_TYPES = {
    'Disable': 'Disabled',
    'SetManual': 'Manual',
    'SetAutomatic': 'Automatic',
}


class WindowsServiceTask(Task):
    """
    Manage a Windows service.

    Actions:
        Install (required: service_name, service_path; optional: user, password)
        Uninstall (required: service_name, service_path)
        Start, Stop, Disable, SetManual, SetAutomatic (required: service_name)
        CheckExists (required: service_name; output: exists)
        UpdateIdentity (required: service_name, user, password)

    Remote execution is supported for every action except Install and Uninstall.
    """

    task_type = "windows_service"
    description = "Manage Windows services"

    actions = ['Install', 'Uninstall', 'Start', 'Stop', 'Disable', 'SetManual',
               'SetAutomatic', 'CheckExists', 'UpdateIdentity']

    parameters = {
        **Task.parameters,
        'service_name': {'type': str, 'description': 'Name of the service'},
        'service_path': {'type': str, 'description': 'Path of the service executable'},
        'user': {'type': str, 'description': 'Account the service runs as'},
        'password': {'type': str, 'description': 'Password for user'},
        'framework_version': {'type': str, 'description': '.NET framework folder holding installutil.exe'},
    }

    required_parameters = ['task_action', 'service_name']

    def __init__(self, config: Dict[str, Any], settings: Optional[Settings] = None):
        super().__init__(config, settings)
        self.service_name: str = self.config['service_name']
        self.user: Optional[str] = self.get_parameter('user')
        self.password: Optional[str] = self.get_parameter('password')

    def pre_execute(self) -> None:
        super().pre_execute()

        if self.task_action in ('Install', 'Uninstall') and self.remote_machine:
            raise TaskExecutionError(
                f"{self.task_action} is only supported on the local machine",
                machine_name=self.machine_name
            )

        if self.task_action in ('Install', 'CheckExists'):
            return
        if not self.service_exists():
            raise TaskExecutionError(
                f"Service does not exist: {self.service_name}",
                machine_name=self.machine_name
            )

    def execute(self) -> Dict[str, Any]:
        if self.task_action == 'Install':
            self.install()
        elif self.task_action == 'Uninstall':
            self.uninstall()
        elif self.task_action == 'Start':
            self.start()
        elif self.task_action == 'Stop':
            self.stop()
        elif self.task_action in STARTUP_TYPES:
            self.set_startup_type(STARTUP_TYPES[self.task_action])
        elif self.task_action == 'CheckExists':
            return {'exists': self.check_exists()}
        elif self.task_action == 'UpdateIdentity':
            self.update_identity()
        return {}

    def service_exists(self) -> bool:
        wanted = self.service_name.lower()
        return any(name.lower() == wanted for name in list_service_names(self.remote_machine))

    def check_exists(self) -> bool:
        if self.service_exists():
            self.log_message(f"Service: {self.service_name} exists on: {self.machine_name}.",
                             importance="low")
            return True

        self.log_message(f"Service: {self.service_name} does not exist on: {self.machine_name}.")
        return False

    def start(self) -> bool:
        """Start the service, waiting until it reports Running."""
        controller = ServiceController(self.service_name, self.remote_machine)
        attempts = self.settings.poll_attempts

        for attempt in range(1, attempts + 1):
            status = controller.refresh()
            if status is ServiceStatus.RUNNING:
                self.log_message(f"Started: {self.service_name}")
                return True
            if status.is_pending:
                self.log_message(f"Please wait, service state: {self.service_name} - {status.name}...",
                                 attempt=attempt)
            elif status is ServiceStatus.PAUSED:
                self.log_message(f"Resuming: {self.service_name} - {status.name}...")
                controller.resume()
            else:
                self.log_message(f"Starting: {self.service_name} - {status.name}...")
                controller.start()

            if attempt == attempts:
                break
            time.sleep(self.settings.poll_interval)

        self.log_error(f"Could not start: {self.service_name}", attempts=attempts)
        return False

    def stop(self) -> bool:
        """Stop the service, waiting until it reports Stopped."""
        controller = ServiceController(self.service_name, self.remote_machine)
        attempts = self.settings.poll_attempts

        for attempt in range(1, attempts + 1):
            status = controller.refresh()
            if status is ServiceStatus.STOPPED:
                self.log_message(f"Stopped: {self.service_name}")
                return True
            if status.is_pending:
                self.log_message(f"Please wait, service state: {self.service_name} - {status.name}...",
                                 attempt=attempt)
            else:
                self.log_message(f"Stopping: {self.service_name} - {status.name}...")
                controller.stop()

            if attempt == attempts:
                break
            time.sleep(self.settings.poll_interval)

        self.log_error(f"Could not stop: {self.service_name}", attempts=attempts)
        return False

    def set_startup_type(self, startup: str) -> None:
        self.log_message(f"Setting startup type to {startup} for {self.service_name}.")
        for service in self._query_service():
            result = service.ChangeStartMode(StartMode=startup)
            if self._return_value(result) != 0:
                self.log_error(f"Error setting startup type of {self.service_name} to {startup}",
                               return_value=self._return_value(result))
                return

    def update_identity(self) -> None:
        user = self.require_parameter('user')
        password = self.require_parameter('password')

        self.log_message(f"Updating identity: {self.service_name}", user=user)
        for service in self._query_service():
            result = service.Change(StartName=user, StartPassword=password)
            if self._return_value(result) != 0:
                self.log_error(f"Error changing service identity of {self.service_name} to {user}",
                               return_value=self._return_value(result))
                return

    def _query_service(self) -> List[Any]:
        scope = ManagementScope(self.remote_machine,
                                user_name=self.user_name,
                                password=self.user_password)
        return scope.query(
            f"SELECT * FROM Win32_Service WHERE Name = '{quote_wql(self.service_name)}'"
        )

    @staticmethod
    def _return_value(result: Any) -> int:
        # wmi method calls return a tuple of out parameters, ReturnValue first
        if isinstance(result, tuple):
            result = result[0]
        return int(result)

    def install(self) -> None:
        service_path = self._validated_service_path()

        installutil = self._installutil_path()
        result = run_command([installutil, service_path],
                             timeout=self.settings.command_timeout)
        self._report(result, "InstallUtil.exe")
        if not result.succeeded:
            return

        if not self.user:
            return

        result = run_command(
            ["sc.exe", "config", self.service_name, "obj=", self.user,
             "password=", self.password or ""],
            timeout=self.settings.command_timeout,
            redact_values=[self.password]
        )
        self._report(result, "sc.exe")

    def uninstall(self) -> None:
        service_path = self._validated_service_path()

        if not self.stop():
            return

        installutil = self._installutil_path()
        result = run_command(
            [installutil, "/u", service_path, f"/LogFile={self.service_name} Uninstall.txt"],
            timeout=self.settings.command_timeout
        )
        self._report(result, "InstallUtil.exe")

    def _validated_service_path(self) -> str:
        service_path = self.get_parameter('service_path')
        if not service_path:
            raise TaskExecutionError("ServicePath was not provided.",
                                     task_action=self.task_action)
        if not os.path.isfile(service_path):
            raise TaskExecutionError(f"ServicePath does not exist: {service_path}",
                                     task_action=self.task_action)
        return service_path

    def _installutil_path(self) -> str:
        version = self.get_parameter('framework_version', self.settings.framework_version)
        path = registry.get_installutil_path(version)
        if path is None:
            raise TaskExecutionError(
                rf"Error reading registry key: {registry.NET_FRAMEWORK_KEY}\InstallRoot"
            )
        return path

    def _report(self, result: CommandResult, tool: str) -> None:
        """Log captured output of a tool run and fail on a non-zero exit code."""
        if result.stdout.strip():
            self.log_message(result.stdout, importance="low")
        if result.stderr.strip():
            self.log_error(result.stderr.strip(), tool=tool)
        if not result.succeeded:
            self.log_error(f"Non-zero exit code from {tool}: {result.return_code}",
                           return_code=result.return_code)
