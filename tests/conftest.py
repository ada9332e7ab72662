"""Pytest configuration and shared fixtures for the build task tests."""

import pytest
from unittest.mock import MagicMock, patch

from buildext.settings import Settings
from buildext.windows.services import ServiceStatus


class FakeServiceController:
    """Stands in for ServiceController, replaying a sequence of states."""

    def __init__(self, statuses):
        self.statuses = list(statuses)
        self.status = None
        self.calls = []

    def refresh(self):
        # The last state repeats once the sequence is exhausted
        if len(self.statuses) > 1:
            self.status = self.statuses.pop(0)
        else:
            self.status = self.statuses[0]
        return self.status

    def start(self):
        self.calls.append('start')

    def stop(self):
        self.calls.append('stop')

    def resume(self):
        self.calls.append('resume')


@pytest.fixture(autouse=True)
def clean_settings_environment(monkeypatch):
    """Keep BUILDEXT_* setting overrides from the shell out of the tests."""
    for name in Settings.model_fields:
        monkeypatch.delenv(f"BUILDEXT_{name.upper()}", raising=False)


@pytest.fixture
def settings() -> Settings:
    """Settings with a short, sleep-free poll loop."""
    return Settings(poll_attempts=5, poll_interval=0)


@pytest.fixture
def services():
    """Patch the service list seen by the WindowsService task."""
    with patch("buildext.tasks.windows_service.list_service_names",
               return_value=["MSSQLSERVER", "W3SVC"]) as mock_list:
        yield mock_list


@pytest.fixture
def controller_factory():
    """Patch ServiceController; call the fixture with the states to replay."""
    with patch("buildext.tasks.windows_service.ServiceController") as mock_class:
        def factory(*statuses: ServiceStatus) -> FakeServiceController:
            fake = FakeServiceController(statuses)
            mock_class.return_value = fake
            return fake

        factory.mock_class = mock_class
        yield factory


@pytest.fixture
def management_scope():
    """Patch ManagementScope wherever tasks use it; yields the scope instance."""
    scope = MagicMock()
    scope.query.return_value = []
    with patch("buildext.tasks.windows_service.ManagementScope", return_value=scope) as ws_class, \
            patch("buildext.tasks.environment_variable.ManagementScope", return_value=scope) as ev_class:
        scope.windows_service_class = ws_class
        scope.environment_variable_class = ev_class
        yield scope
