"""
WMI Management Scope

Connects to the WMI service of a local or remote machine and runs WQL queries.
"""

from typing import Any, Dict, List, Optional

import structlog

from . import require_windows
from ..errors import TaskExecutionError

DEFAULT_NAMESPACE = "root/cimv2"


def quote_wql(value: str) -> str:
    """Escape a string for use inside a single-quoted WQL literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class ManagementScope:
    """A lazily connected WMI namespace on one machine."""

    def __init__(self, machine_name: Optional[str] = None,
                 namespace: str = DEFAULT_NAMESPACE,
                 user_name: Optional[str] = None,
                 password: Optional[str] = None):
        """
        Args:
            machine_name: Remote machine, or None for the local machine
            namespace: WMI namespace
            user_name: Account for remote connections
            password: Password for user_name
        """
        self.machine_name = machine_name
        self.namespace = namespace
        self.user_name = user_name
        self.password = password
        self.logger = structlog.get_logger(__name__)
        self._wmi = None
        self._connection = None

    @property
    def path(self) -> str:
        machine = self.machine_name or "."
        return "\\\\" + machine + "\\" + self.namespace.replace("/", "\\")

    def connect(self) -> Any:
        """Open the connection if it is not open yet and return it."""
        if self._connection is not None:
            return self._connection

        require_windows("WMI")
        import wmi

        kwargs: Dict[str, Any] = {'namespace': self.namespace}
        if self.machine_name:
            kwargs['computer'] = self.machine_name
            # WMI rejects explicit credentials for local connections
            if self.user_name:
                kwargs['user'] = self.user_name
                kwargs['password'] = self.password or ""

        self.logger.debug("Connecting management scope",
                          path=self.path,
                          user_name=self.user_name)
        try:
            self._connection = wmi.WMI(**kwargs)
        except wmi.x_wmi as e:
            raise TaskExecutionError(
                f"Could not connect to {self.path}: {e}",
                machine_name=self.machine_name
            )

        self._wmi = wmi
        return self._connection

    def query(self, wql: str) -> List[Any]:
        """Run a WQL query and return the matching objects."""
        connection = self.connect()
        self.logger.debug("Running WQL query", path=self.path, query=wql)
        try:
            return list(connection.query(wql))
        except self._wmi.x_wmi as e:
            raise TaskExecutionError(f"WQL query failed: {e}", query=wql)
