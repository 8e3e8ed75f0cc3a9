"""
CLI Tests - option dispatch and exit codes.
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from oms_maintenance.cli import cli

from conftest import AGENT_GUID, WORKSPACE_ID, http_response, topology_response


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def inputs(agent_files):
    return [
        str(agent_files.config),
        str(agent_files.cert),
        str(agent_files.key),
        str(agent_files.pid),
        str(agent_files.proxy),
        str(agent_files.os_info),
        str(agent_files.install_info),
    ]


@pytest.fixture
def test_mode(monkeypatch):
    monkeypatch.setenv("TEST_WORKSPACE_ID", WORKSPACE_ID)


@pytest.fixture
def agent_user(monkeypatch):
    """Run as the agent service account, outside test mode."""
    monkeypatch.delenv("TEST_WORKSPACE_ID", raising=False)
    monkeypatch.delenv("TEST_SHARED_KEY", raising=False)
    monkeypatch.setattr("oms_maintenance.cli.is_current_user_root", lambda: False)
    monkeypatch.setattr("oms_maintenance.agent.maintenance.is_current_user_root", lambda: False)
    monkeypatch.setattr("oms_maintenance.agent.maintenance.current_user_name", lambda: "omsagent")


class TestUsage:
    def test_too_few_inputs(self, runner, test_mode):
        result = runner.invoke(cli, ["-h", "omsadmin.conf"])

        assert result.exit_code == 0
        assert "Maintenance tool for OMS Agent onboarded to workspace" in result.output

    def test_no_operation(self, runner, test_mode, inputs):
        result = runner.invoke(cli, inputs)

        assert result.exit_code == 0
        assert "Renew certificates:" in result.output

    def test_help_is_long_option_only(self, runner):
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "--heartbeat" in result.output


class TestUserCheck:
    def test_non_privileged_user(self, runner, agent_user, inputs, monkeypatch):
        monkeypatch.setattr("oms_maintenance.agent.maintenance.current_user_name", lambda: "nobody")

        with patch("requests.Session.post") as mock_post:
            result = runner.invoke(cli, ["-h"] + inputs)

        assert result.exit_code == 77
        mock_post.assert_not_called()

    def test_agent_user_allowed(self, runner, agent_user, inputs):
        with patch("requests.Session.post") as mock_post:
            mock_post.return_value = http_response(200, topology_response())
            result = runner.invoke(cli, ["-h"] + inputs)

        assert result.exit_code == 0


class TestHeartbeat:
    def test_success(self, runner, test_mode, inputs):
        with patch("requests.Session.post") as mock_post:
            mock_post.return_value = http_response(200, topology_response())
            result = runner.invoke(cli, ["--heartbeat"] + inputs)

        assert result.exit_code == 0
        assert "info\tOMS agent management service topology request success" in result.output

    def test_missing_config_file(self, runner, test_mode, inputs, agent_files):
        agent_files.config.unlink()

        result = runner.invoke(cli, ["-h"] + inputs)

        assert result.exit_code == 4
        assert "error\t" in result.output

    def test_http_failure(self, runner, test_mode, inputs):
        with patch("requests.Session.post") as mock_post:
            mock_post.return_value = http_response(500)
            result = runner.invoke(cli, ["-h", "-v"] + inputs)

        assert result.exit_code == 7
        assert "response code: 500" in result.output

    def test_debug_lines_without_verbose(self, runner, test_mode, inputs):
        with patch("requests.Session.post") as mock_post:
            mock_post.return_value = http_response(200, topology_response())
            result = runner.invoke(cli, ["-h"] + inputs)

        assert "debug\tNo Telemetry data was appended" in result.output
        assert "response code" not in result.output

    @pytest.mark.parametrize("flags,shown", [
        (["-s", "-v"], True),
        (["-v", "-s"], False),
    ])
    def test_last_verbosity_flag_wins(self, runner, test_mode, inputs, flags, shown):
        with patch("requests.Session.post") as mock_post:
            mock_post.return_value = http_response(500)
            result = runner.invoke(cli, flags + ["-h"] + inputs)

        assert result.exit_code == 7
        assert ("response code: 500" in result.output) is shown

    def test_undecodable_proxy_file(self, runner, test_mode, inputs, agent_files):
        agent_files.proxy.write_bytes(b"http://us\xe9r:pw@proxy:8080\n")

        with patch("requests.Session.post") as mock_post:
            result = runner.invoke(cli, ["-h"] + inputs)

        assert result.exit_code == 8
        mock_post.assert_not_called()


class TestGenerateCerts:
    def test_generates(self, runner, test_mode, inputs, agent_files):
        before = agent_files.cert.read_bytes()

        result = runner.invoke(cli, ["-c", "-w", WORKSPACE_ID, "-a", AGENT_GUID] + inputs)

        assert result.exit_code == 0
        assert agent_files.cert.read_bytes() != before

    def test_requires_both_ids(self, runner, test_mode, inputs):
        result = runner.invoke(cli, ["-c", "-w", WORKSPACE_ID] + inputs)

        assert result.exit_code == 64

    def test_reserved_for_onboarding(self, runner, agent_user, inputs, agent_files):
        before = agent_files.cert.read_bytes()

        result = runner.invoke(cli, ["-c", "-w", WORKSPACE_ID, "-a", AGENT_GUID] + inputs)

        assert result.exit_code == 64
        assert agent_files.cert.read_bytes() == before


class TestRenewCerts:
    def test_renew_rejected(self, runner, test_mode, inputs):
        with patch("requests.Session.post") as mock_post:
            mock_post.return_value = http_response(401)
            result = runner.invoke(cli, ["-r"] + inputs)

        assert result.exit_code == 7


class TestEndpoints:
    def test_applies_file(self, runner, test_mode, inputs, tmp_path):
        xml_path = tmp_path / "response.xml"
        xml_path.write_text(topology_response())
        output = tmp_path / "endpoints.txt"

        result = runner.invoke(cli, ["--endpoints", f"{xml_path},{output}"] + inputs)

        assert result.exit_code == 0
        assert len(output.read_text().splitlines()) == 2

    def test_requires_two_paths(self, runner, test_mode, inputs, tmp_path):
        result = runner.invoke(cli, ["--endpoints", str(tmp_path / "response.xml")] + inputs)

        assert result.exit_code == 64
