"""
Service Control Manager Access

Local and remote service status and lifecycle control through pywin32.
"""

from enum import Enum
from typing import List, Optional

from . import require_windows


class ServiceStatus(Enum):
    """Service states as reported by the Service Control Manager."""

    STOPPED = 1
    START_PENDING = 2
    STOP_PENDING = 3
    RUNNING = 4
    CONTINUE_PENDING = 5
    PAUSE_PENDING = 6
    PAUSED = 7

    @property
    def is_pending(self) -> bool:
        return self in (ServiceStatus.START_PENDING, ServiceStatus.STOP_PENDING,
                        ServiceStatus.CONTINUE_PENDING, ServiceStatus.PAUSE_PENDING)


def list_service_names(machine_name: Optional[str] = None) -> List[str]:
    """
    List the names of all Win32 services on a machine.

    Args:
        machine_name: Remote machine, or None for the local machine
    """
    require_windows("Service Control Manager")
    import win32service

    handle = win32service.OpenSCManager(
        machine_name, None, win32service.SC_MANAGER_ENUMERATE_SERVICE
    )
    try:
        statuses = win32service.EnumServicesStatus(
            handle, win32service.SERVICE_WIN32, win32service.SERVICE_STATE_ALL
        )
    finally:
        win32service.CloseServiceHandle(handle)

    return [name for name, _display_name, _status in statuses]


class ServiceController:
    """Controls a single service on a local or remote machine."""

    def __init__(self, service_name: str, machine_name: Optional[str] = None):
        require_windows("Service Control Manager")
        self.service_name = service_name
        self.machine_name = machine_name
        self.status: Optional[ServiceStatus] = None

    def refresh(self) -> ServiceStatus:
        """Re-read the current state of the service."""
        import win32serviceutil

        status = win32serviceutil.QueryServiceStatus(self.service_name, self.machine_name)
        self.status = ServiceStatus(status[1])
        return self.status

    def start(self) -> None:
        import win32serviceutil

        win32serviceutil.StartService(self.service_name, None, self.machine_name)

    def stop(self) -> None:
        import win32serviceutil

        win32serviceutil.StopService(self.service_name, self.machine_name)

    def resume(self) -> None:
        """Continue a paused service."""
        import win32service
        import win32serviceutil

        win32serviceutil.ControlService(
            self.service_name, win32service.SERVICE_CONTROL_CONTINUE, self.machine_name
        )
