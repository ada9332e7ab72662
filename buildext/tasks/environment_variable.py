"""
Environment Variable Task

Gets and sets environment variables in the Process, User or Machine store.
Get also works against remote machines through WMI.
"""

from typing import Dict, Any, List, Optional

from .base import Task
from .. import envstore
from ..envstore import EnvironmentTarget
from ..errors import TaskExecutionError
from ..settings import Settings
from ..windows.management import ManagementScope, quote_wql


def split_value(value: str) -> List[str]:
    return value.split(';')


class EnvironmentVariableTask(Task):
    """
    Get or set an environment variable.

    Actions:
        Get (required: variable; output: value)
        Set (required: variable, value)

    Remote execution is supported for Get only.
    """

    task_type = "environment_variable"
    description = "Get or set environment variables"

    actions = ['Get', 'Set']

    parameters = {
        **Task.parameters,
        'variable': {'type': str, 'description': 'Name of the environment variable'},
        'value': {'type': (str, list), 'description': 'Value to set; output of Get'},
        'target': {'type': str, 'description': 'Process, User or Machine. Defaults to Process'},
    }

    required_parameters = ['task_action', 'variable']

    def __init__(self, config: Dict[str, Any], settings: Optional[Settings] = None):
        super().__init__(config, settings)
        self.variable: str = self.config['variable']
        self.target: Optional[EnvironmentTarget] = None

    def pre_execute(self) -> None:
        super().pre_execute()
        self.target = EnvironmentTarget.parse(self.get_parameter('target', 'Process'))

    def execute(self) -> Dict[str, Any]:
        if self.task_action == 'Get':
            return self._get()
        return self._set()

    def _get(self) -> Dict[str, Any]:
        self.log_message("Getting environment variable",
                         variable=self.variable,
                         target=self.target.value,
                         machine_name=self.machine_name)

        if self.is_local_machine():
            value = envstore.get_variable(self.variable, self.target)
            if value:
                return {'value': split_value(value)}
        else:
            values = self._get_remote()
            if values is not None:
                return {'value': values}

        self.log_warning(f"The environment variable was not found: {self.variable}",
                         variable=self.variable)
        return {'value': []}

    def _get_remote(self) -> Optional[List[str]]:
        scope = ManagementScope(self.machine_name,
                                user_name=self.user_name,
                                password=self.user_password)

        wql = f"SELECT * FROM Win32_Environment WHERE Name = '{quote_wql(self.variable)}'"
        if self.target is EnvironmentTarget.MACHINE:
            wql += " AND SystemVariable = TRUE"
        elif self.target is EnvironmentTarget.USER:
            wql += " AND SystemVariable = FALSE"

        values = None
        for item in scope.query(wql):
            if item.VariableValue is not None:
                values = split_value(str(item.VariableValue))
        return values

    def _set(self) -> Dict[str, Any]:
        if not self.is_local_machine():
            raise TaskExecutionError(
                "Set is only supported on the local machine",
                task_type=self.task_type,
                machine_name=self.machine_name
            )

        value = self.require_parameter('value')
        if isinstance(value, list):
            value = ';'.join(str(v) for v in value)

        self.log_message("Setting environment variable",
                         variable=self.variable,
                         target=self.target.value,
                         value=value)
        envstore.set_variable(self.variable, value, self.target)

        return {'value': split_value(value)}
