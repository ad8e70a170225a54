"""
End-to-end tests for CLI commands
"""

import json
import os
import subprocess
import sys
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
import yaml
from click.testing import CliRunner

from weatherstack.cli import cli
from weatherstack.core.exceptions import TopologyStartupError

REPO_ROOT = Path(__file__).resolve().parents[2]


@pytest.mark.e2e
class TestCLICommands:
    """Test CLI command execution"""

    def run_cli(self, *args):
        """Helper to run CLI commands"""
        cmd = [sys.executable, "-m", "weatherstack"] + list(args)
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(REPO_ROOT / "src"), env.get("PYTHONPATH")]))
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=30,
            env=env,
        )
        return result

    def test_cli_help(self):
        """Test --help command"""
        result = self.run_cli("--help")

        assert result.returncode == 0, \
            f"--help should succeed: {result.stderr}"
        for command in ("up", "api", "doctor", "topology"):
            assert command in result.stdout, f"Help should list {command}"

    def test_topology_command(self):
        """Test topology prints the declared resources"""
        result = self.run_cli("topology", "--format", "json")

        assert result.returncode == 0, \
            f"topology should succeed: {result.stderr}"
        description = json.loads(result.stdout)
        assert [c["name"] for c in description["containers"]] == ["grafana", "prometheus"]
        assert description["projects"][0]["name"] == "weatherapi"

    def test_invalid_command(self):
        """Test that invalid commands fail gracefully"""
        result = self.run_cli("nonexistent-command")

        assert result.returncode != 0, \
            "Invalid command should fail"
        assert "no such command" in result.stderr.lower()


@pytest.mark.e2e
class TestCLIInProcess:
    """Commands exercised through click's runner with external systems mocked"""

    @pytest.fixture
    def runner(self):
        return CliRunner()

    @pytest.fixture(autouse=True)
    def no_root_handler(self):
        # the runner's captured stderr is closed after invoke
        with patch("weatherstack.core.structured_logger.configure_logging"):
            yield

    def test_topology_yaml(self, runner):
        result = runner.invoke(cli, ["topology", "--base-dir", str(REPO_ROOT)])

        assert result.exit_code == 0, result.output
        description = yaml.safe_load(result.output)
        grafana = description["containers"][0]
        assert grafana["endpoints"][0]["name"] == "grafana-http"
        assert description["projects"][0]["environment"]["GRAFANA_URL"] == "{grafana.bindings.grafana-http.url}"

    def test_topology_base_dir_without_deploy(self, runner, temp_dir):
        result = runner.invoke(cli, ["topology", "--base-dir", str(temp_dir)])

        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_doctor_all_healthy(self, runner):
        real_client = httpx.Client
        transport = httpx.MockTransport(lambda request: httpx.Response(200))

        with patch("weatherstack.cli.httpx.Client", lambda **kw: real_client(transport=transport, **kw)):
            result = runner.invoke(cli, ["doctor"])

        assert result.exit_code == 0, result.output
        assert result.output.count("[OK]") == 5
        assert "All checks passed" in result.output

    def test_doctor_reports_failures(self, runner):
        real_client = httpx.Client

        def handler(request):
            if request.url.port == 3000:
                raise httpx.ConnectError("refused", request=request)
            if request.url.path == "/health":
                return httpx.Response(503)
            return httpx.Response(200)

        transport = httpx.MockTransport(handler)
        with patch("weatherstack.cli.httpx.Client", lambda **kw: real_client(transport=transport, **kw)):
            result = runner.invoke(cli, ["doctor"])

        assert result.exit_code == 1
        assert "[FAIL] weatherapi /health: HTTP 503" in result.output
        assert "[FAIL] grafana: unreachable (ConnectError)" in result.output

    def test_up_runs_topology(self, runner):
        with patch("weatherstack.topology.TopologyRunner") as runner_cls:
            runner_cls.return_value.run.return_value = 0
            result = runner.invoke(cli, ["up", "--skip-port-check", "--base-dir", str(REPO_ROOT)])

        assert result.exit_code == 0, result.output
        (topology,), _ = runner_cls.call_args
        assert topology.resource_names == ["grafana", "prometheus", "weatherapi"]

    def test_up_startup_failure_exits_1(self, runner):
        with patch("weatherstack.topology.TopologyRunner") as runner_cls:
            runner_cls.return_value.run.side_effect = TopologyStartupError("grafana", "Container grafana failed")
            result = runner.invoke(cli, ["up", "--skip-port-check"])

        assert result.exit_code == 1
        assert "Container grafana failed" in result.output

    def test_up_port_conflict(self, runner):
        with patch("weatherstack.cli._check_ports_available", return_value=["  Port 3000 (grafana) is already in use."]):
            result = runner.invoke(cli, ["up"])

        assert result.exit_code == 1
        assert "Port conflict detected" in result.output

    def test_api_invalid_config(self, runner, temp_dir):
        result = runner.invoke(cli, ["api", "--config", str(temp_dir / "missing.yaml")])

        assert result.exit_code == 1
        assert "Config file not found" in result.output
