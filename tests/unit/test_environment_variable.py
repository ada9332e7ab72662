"""Unit tests for the EnvironmentVariable task."""

import os
import pytest
from types import SimpleNamespace
from unittest.mock import patch

from buildext.envstore import EnvironmentTarget
from buildext.tasks.environment_variable import EnvironmentVariableTask

REMOTE = "build-agent-that-does-not-exist"


def run(**config):
    return EnvironmentVariableTask(config).run()


@pytest.mark.unit
class TestLocalGet:
    """Test reading variables on the local machine."""

    def test_get_splits_on_semicolon(self, monkeypatch):
        monkeypatch.setenv("BUILDEXT_SAMPLE", "first;second")

        result = run(task_action="Get", variable="BUILDEXT_SAMPLE")

        assert result['value'] == ["first", "second"]
        assert result['_metadata']['status'] == 'completed'

    def test_get_missing_variable_warns(self, monkeypatch):
        monkeypatch.delenv("BUILDEXT_MISSING", raising=False)

        result = run(task_action="Get", variable="BUILDEXT_MISSING")

        assert result['value'] == []
        assert result['_metadata']['status'] == 'completed'
        assert result['_metadata']['warnings'] == [
            "The environment variable was not found: BUILDEXT_MISSING"
        ]

    def test_get_machine_target_reads_store(self):
        with patch("buildext.tasks.environment_variable.envstore.get_variable",
                   return_value=r"C:\Tools;C:\Bin") as mock_get:
            result = run(task_action="Get", variable="PATH", target="Machine")

        mock_get.assert_called_once_with("PATH", EnvironmentTarget.MACHINE)
        assert result['value'] == [r"C:\Tools", r"C:\Bin"]

    def test_pascal_case_parameters(self, monkeypatch):
        monkeypatch.setenv("BUILDEXT_SAMPLE", "value")

        result = EnvironmentVariableTask({"TaskAction": "Get", "Variable": "BUILDEXT_SAMPLE"}).run()

        assert result['value'] == ["value"]

    def test_invalid_target(self):
        result = run(task_action="Get", variable="PATH", target="Session")

        assert result['_metadata']['status'] == 'failed'
        assert result['_metadata']['errors'] == [
            "The value 'Session' is not a valid target. Use Process, User or Machine."
        ]


@pytest.mark.unit
class TestRemoteGet:
    """Test reading variables from a remote machine through WMI."""

    def test_remote_get_queries_win32_environment(self, management_scope):
        management_scope.query.return_value = [SimpleNamespace(VariableValue="a;b")]

        result = run(task_action="Get", variable="INOCULAN", target="Machine",
                     machine_name=REMOTE, user_name="Administrator", user_password="passw")

        management_scope.environment_variable_class.assert_called_once_with(
            REMOTE, user_name="Administrator", password="passw"
        )
        management_scope.query.assert_called_once_with(
            "SELECT * FROM Win32_Environment WHERE Name = 'INOCULAN' AND SystemVariable = TRUE"
        )
        assert result['value'] == ["a", "b"]
        assert result['_metadata']['status'] == 'completed'

    def test_remote_user_target_filters_user_variables(self, management_scope):
        run(task_action="Get", variable="FT", target="User", machine_name=REMOTE)

        management_scope.query.assert_called_once_with(
            "SELECT * FROM Win32_Environment WHERE Name = 'FT' AND SystemVariable = FALSE"
        )

    def test_remote_get_skips_null_values(self, management_scope):
        management_scope.query.return_value = [
            SimpleNamespace(VariableValue="kept"),
            SimpleNamespace(VariableValue=None),
        ]

        result = run(task_action="Get", variable="FT", machine_name=REMOTE)

        assert result['value'] == ["kept"]

    def test_remote_get_not_found_warns(self, management_scope):
        result = run(task_action="Get", variable="FT", machine_name=REMOTE)

        assert result['value'] == []
        assert result['_metadata']['warnings'] == ["The environment variable was not found: FT"]

    def test_remote_query_escapes_quotes(self, management_scope):
        run(task_action="Get", variable="O'Brien", machine_name=REMOTE)

        query = management_scope.query.call_args[0][0]
        assert "Name = 'O\\'Brien'" in query


@pytest.mark.unit
class TestSet:
    """Test writing variables."""

    def test_set_process_variable(self, monkeypatch):
        monkeypatch.setenv("BUILDEXT_SAMPLE", "old")

        result = run(task_action="Set", variable="BUILDEXT_SAMPLE", value="new")

        assert os.environ["BUILDEXT_SAMPLE"] == "new"
        assert result['value'] == ["new"]
        assert result['_metadata']['status'] == 'completed'

    def test_set_list_value_is_joined(self, monkeypatch):
        monkeypatch.setenv("BUILDEXT_SAMPLE", "old")

        run(task_action="Set", variable="BUILDEXT_SAMPLE", value=["a", "b"])

        assert os.environ["BUILDEXT_SAMPLE"] == "a;b"

    def test_set_user_target_writes_store(self):
        with patch("buildext.tasks.environment_variable.envstore.set_variable") as mock_set:
            run(task_action="Set", variable="ANewEnvSample", value="bddd", target="User")

        mock_set.assert_called_once_with("ANewEnvSample", "bddd", EnvironmentTarget.USER)

    def test_set_requires_value(self):
        result = run(task_action="Set", variable="BUILDEXT_SAMPLE")

        assert result['_metadata']['status'] == 'failed'
        assert "Required parameter 'value'" in result['_metadata']['errors'][0]

    def test_set_remote_is_rejected(self, management_scope):
        result = run(task_action="Set", variable="X", value="1", machine_name=REMOTE)

        assert result['_metadata']['status'] == 'failed'
        assert "only supported on the local machine" in result['_metadata']['errors'][0]
        management_scope.query.assert_not_called()
