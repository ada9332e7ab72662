"""Unit tests for the WindowsService task."""

import pytest
from unittest.mock import MagicMock, patch

from buildext.process import CommandResult
from buildext.tasks.windows_service import WindowsServiceTask
from buildext.windows.services import ServiceStatus

INSTALLUTIL = r"C:\Windows\Microsoft.NET\Framework\v2.0.50727\installutil.exe"


def ok(command="cmd", stdout=""):
    return CommandResult(command=command, stdout=stdout, stderr="", return_code=0)


@pytest.fixture
def installutil():
    with patch("buildext.windows.registry.get_installutil_path", return_value=INSTALLUTIL) as mock_path:
        yield mock_path


@pytest.fixture
def run_command():
    with patch("buildext.tasks.windows_service.run_command", return_value=ok()) as mock_run:
        yield mock_run


@pytest.fixture
def service_exe(tmp_path):
    path = tmp_path / "MyService.exe"
    path.write_bytes(b"MZ")
    return str(path)


@pytest.mark.unit
class TestDispatch:
    """Test action validation and the existence check."""

    def test_invalid_action(self, services, settings):
        result = WindowsServiceTask({'task_action': 'Restart', 'service_name': 'W3SVC'}, settings).run()

        assert result['_metadata']['errors'] == ["Invalid TaskAction passed: Restart"]

    def test_missing_service_fails(self, services, settings, controller_factory):
        result = WindowsServiceTask({'task_action': 'Start', 'service_name': 'Nope'}, settings).run()

        assert result['_metadata']['status'] == 'failed'
        assert result['_metadata']['errors'][0].startswith("Service does not exist: Nope")
        controller_factory.mock_class.assert_not_called()

    def test_check_exists_true_is_case_insensitive(self, services, settings):
        result = WindowsServiceTask({'task_action': 'CheckExists', 'service_name': 'mssqlserver'},
                                    settings).run()

        assert result['exists'] is True
        assert result['_metadata']['status'] == 'completed'

    def test_check_exists_false_is_not_an_error(self, services, settings):
        result = WindowsServiceTask({'task_action': 'CheckExists', 'service_name': 'Nope'},
                                    settings).run()

        assert result['exists'] is False
        assert result['_metadata']['status'] == 'completed'

    def test_remote_machine_passed_to_scm(self, services, settings):
        WindowsServiceTask({'task_action': 'CheckExists', 'service_name': 'W3SVC',
                            'machine_name': 'build-agent-that-does-not-exist'}, settings).run()

        services.assert_called_once_with('build-agent-that-does-not-exist')


@pytest.mark.unit
class TestStartStop:
    """Test the bounded poll loop."""

    def test_start_stopped_service(self, services, settings, controller_factory):
        fake = controller_factory(ServiceStatus.STOPPED, ServiceStatus.START_PENDING,
                                  ServiceStatus.RUNNING)

        result = WindowsServiceTask({'task_action': 'Start', 'service_name': 'W3SVC'}, settings).run()

        assert result['_metadata']['status'] == 'completed'
        assert fake.calls == ['start']
        controller_factory.mock_class.assert_called_once_with('W3SVC', None)

    def test_start_running_service_is_noop(self, services, settings, controller_factory):
        fake = controller_factory(ServiceStatus.RUNNING)

        result = WindowsServiceTask({'task_action': 'Start', 'service_name': 'W3SVC'}, settings).run()

        assert result['_metadata']['status'] == 'completed'
        assert fake.calls == []

    def test_start_paused_service_resumes(self, services, settings, controller_factory):
        fake = controller_factory(ServiceStatus.PAUSED, ServiceStatus.RUNNING)

        WindowsServiceTask({'task_action': 'Start', 'service_name': 'W3SVC'}, settings).run()

        assert fake.calls == ['resume']

    def test_start_gives_up_after_attempts(self, services, settings, controller_factory):
        fake = controller_factory(ServiceStatus.STOPPED)

        result = WindowsServiceTask({'task_action': 'Start', 'service_name': 'W3SVC'}, settings).run()

        assert result['_metadata']['status'] == 'failed'
        assert result['_metadata']['errors'] == ["Could not start: W3SVC"]
        assert fake.calls == ['start'] * settings.poll_attempts

    def test_start_waits_between_attempts(self, services, settings, controller_factory):
        controller_factory(ServiceStatus.START_PENDING, ServiceStatus.RUNNING)
        settings.poll_interval = 2.0

        with patch("buildext.tasks.windows_service.time.sleep") as mock_sleep:
            WindowsServiceTask({'task_action': 'Start', 'service_name': 'W3SVC'}, settings).run()

        mock_sleep.assert_called_once_with(2.0)

    def test_stop_running_service(self, services, settings, controller_factory):
        fake = controller_factory(ServiceStatus.RUNNING, ServiceStatus.STOP_PENDING,
                                  ServiceStatus.STOPPED)

        result = WindowsServiceTask({'task_action': 'Stop', 'service_name': 'W3SVC'}, settings).run()

        assert result['_metadata']['status'] == 'completed'
        assert fake.calls == ['stop']

    def test_stop_paused_service(self, services, settings, controller_factory):
        fake = controller_factory(ServiceStatus.PAUSED, ServiceStatus.STOPPED)

        result = WindowsServiceTask({'task_action': 'Stop', 'service_name': 'W3SVC'}, settings).run()

        assert result['_metadata']['status'] == 'completed'
        assert fake.calls == ['stop']

    def test_stop_stuck_pending(self, services, settings, controller_factory):
        fake = controller_factory(ServiceStatus.STOP_PENDING)

        result = WindowsServiceTask({'task_action': 'Stop', 'service_name': 'W3SVC'}, settings).run()

        assert result['_metadata']['errors'] == ["Could not stop: W3SVC"]
        assert fake.calls == []


@pytest.mark.unit
class TestManagementActions:
    """Test startup type and identity changes through WMI."""

    @pytest.mark.parametrize("action,mode", [
        ("Disable", "Disabled"),
        ("SetManual", "Manual"),
        ("SetAutomatic", "Automatic"),
    ])
    def test_set_startup_type(self, services, settings, management_scope, action, mode):
        service = MagicMock()
        service.ChangeStartMode.return_value = (0,)
        management_scope.query.return_value = [service]

        result = WindowsServiceTask({'task_action': action, 'service_name': 'MSSQLSERVER'},
                                    settings).run()

        assert result['_metadata']['status'] == 'completed'
        service.ChangeStartMode.assert_called_once_with(StartMode=mode)
        management_scope.query.assert_called_once_with(
            "SELECT * FROM Win32_Service WHERE Name = 'MSSQLSERVER'"
        )

    def test_set_startup_type_failure(self, services, settings, management_scope):
        service = MagicMock()
        service.ChangeStartMode.return_value = (2,)
        management_scope.query.return_value = [service]

        result = WindowsServiceTask({'task_action': 'Disable', 'service_name': 'W3SVC'},
                                    settings).run()

        assert result['_metadata']['status'] == 'failed'

    def test_update_identity(self, services, settings, management_scope):
        service = MagicMock()
        service.Change.return_value = (0,)
        management_scope.query.return_value = [service]

        result = WindowsServiceTask({'task_action': 'UpdateIdentity', 'service_name': 'W3SVC',
                                     'user': 'AUser', 'password': 'APassword'}, settings).run()

        assert result['_metadata']['status'] == 'completed'
        service.Change.assert_called_once_with(StartName='AUser', StartPassword='APassword')

    def test_update_identity_failure(self, services, settings, management_scope):
        service = MagicMock()
        service.Change.return_value = (22,)
        management_scope.query.return_value = [service]

        result = WindowsServiceTask({'task_action': 'UpdateIdentity', 'service_name': 'W3SVC',
                                     'user': 'AUser', 'password': 'APassword'}, settings).run()

        assert result['_metadata']['errors'] == ["Error changing service identity of W3SVC to AUser"]

    def test_update_identity_requires_password(self, services, settings, management_scope):
        result = WindowsServiceTask({'task_action': 'UpdateIdentity', 'service_name': 'W3SVC',
                                     'user': 'AUser'}, settings).run()

        assert result['_metadata']['status'] == 'failed'
        assert "Required parameter 'password'" in result['_metadata']['errors'][0]


@pytest.mark.unit
class TestInstall:
    """Test installation and removal through installutil.exe."""

    def test_install_runs_installutil(self, services, settings, installutil, run_command, service_exe):
        result = WindowsServiceTask({'task_action': 'Install', 'service_name': 'MySvc',
                                     'service_path': service_exe}, settings).run()

        assert result['_metadata']['status'] == 'completed'
        run_command.assert_called_once()
        assert run_command.call_args[0][0] == [INSTALLUTIL, service_exe]
        installutil.assert_called_once_with("v2.0.50727")

    def test_install_sets_identity_with_sc(self, services, settings, installutil, run_command, service_exe):
        WindowsServiceTask({'task_action': 'Install', 'service_name': 'MySvc',
                            'service_path': service_exe, 'user': r'DOMAIN\svc',
                            'password': 'S3cret'}, settings).run()

        assert run_command.call_count == 2
        sc_call = run_command.call_args_list[1]
        assert sc_call[0][0] == ["sc.exe", "config", "MySvc", "obj=", r"DOMAIN\svc",
                                 "password=", "S3cret"]
        assert sc_call[1]['redact_values'] == ['S3cret']

    def test_install_stops_on_installutil_failure(self, services, settings, installutil,
                                                  run_command, service_exe):
        run_command.return_value = CommandResult("installutil", "", "", 1)

        result = WindowsServiceTask({'task_action': 'Install', 'service_name': 'MySvc',
                                     'service_path': service_exe, 'user': 'svc'}, settings).run()

        assert result['_metadata']['errors'] == ["Non-zero exit code from InstallUtil.exe: 1"]
        run_command.assert_called_once()

    def test_install_reports_stderr(self, services, settings, installutil, run_command, service_exe):
        run_command.return_value = CommandResult("installutil", "", "Access denied\n", 0)

        result = WindowsServiceTask({'task_action': 'Install', 'service_name': 'MySvc',
                                     'service_path': service_exe}, settings).run()

        assert result['_metadata']['errors'] == ["Access denied"]

    def test_install_framework_version_parameter(self, services, settings, installutil,
                                                 run_command, service_exe):
        WindowsServiceTask({'task_action': 'Install', 'service_name': 'MySvc',
                            'service_path': service_exe,
                            'framework_version': 'v4.0.30319'}, settings).run()

        installutil.assert_called_once_with("v4.0.30319")

    def test_install_requires_service_path(self, services, settings, run_command):
        result = WindowsServiceTask({'task_action': 'Install', 'service_name': 'MySvc'},
                                    settings).run()

        assert result['_metadata']['errors'][0].startswith("ServicePath was not provided.")
        run_command.assert_not_called()

    def test_install_service_path_must_exist(self, services, settings, run_command, tmp_path):
        missing = str(tmp_path / "missing.exe")

        result = WindowsServiceTask({'task_action': 'Install', 'service_name': 'MySvc',
                                     'service_path': missing}, settings).run()

        assert result['_metadata']['errors'][0].startswith(f"ServicePath does not exist: {missing}")

    def test_install_without_framework_registry_key(self, services, settings, run_command, service_exe):
        with patch("buildext.windows.registry.get_installutil_path", return_value=None):
            result = WindowsServiceTask({'task_action': 'Install', 'service_name': 'MySvc',
                                         'service_path': service_exe}, settings).run()

        assert result['_metadata']['errors'][0].startswith(
            r"Error reading registry key: SOFTWARE\Microsoft\.NETFramework\InstallRoot"
        )
        run_command.assert_not_called()

    def test_install_on_remote_machine_rejected(self, services, settings, run_command, service_exe):
        result = WindowsServiceTask({'task_action': 'Install', 'service_name': 'MySvc',
                                     'service_path': service_exe,
                                     'machine_name': 'build-agent-that-does-not-exist'},
                                    settings).run()

        assert result['_metadata']['status'] == 'failed'
        run_command.assert_not_called()

    def test_uninstall_stops_then_removes(self, services, settings, installutil, run_command,
                                          controller_factory, service_exe):
        fake = controller_factory(ServiceStatus.RUNNING, ServiceStatus.STOPPED)

        result = WindowsServiceTask({'task_action': 'Uninstall', 'service_name': 'W3SVC',
                                     'service_path': service_exe}, settings).run()

        assert result['_metadata']['status'] == 'completed'
        assert fake.calls == ['stop']
        assert run_command.call_args[0][0] == [INSTALLUTIL, "/u", service_exe,
                                               "/LogFile=W3SVC Uninstall.txt"]

    def test_uninstall_skipped_when_stop_fails(self, services, settings, installutil, run_command,
                                               controller_factory, service_exe):
        controller_factory(ServiceStatus.STOP_PENDING)

        result = WindowsServiceTask({'task_action': 'Uninstall', 'service_name': 'W3SVC',
                                     'service_path': service_exe}, settings).run()

        assert result['_metadata']['errors'] == ["Could not stop: W3SVC"]
        run_command.assert_not_called()
