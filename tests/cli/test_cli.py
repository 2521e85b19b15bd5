"""Tests for the command line interface."""

import pytest
from typer.testing import CliRunner

from kubesim import __version__
from kubesim.cli.main import app

runner = CliRunner()


@pytest.mark.unit
class TestRunCommand:
    def test_run_script(self):
        result = runner.invoke(
            app,
            ["run", "kubectl create deployment web --replicas=2", "kubectl get pods"],
        )

        assert result.exit_code == 0
        assert 'Deployment "web" created with 2 replica(s)' in result.output
        assert "web-pod-1" in result.output
        assert "Running" in result.output

    def test_json_output(self):
        result = runner.invoke(app, ["run", "-o", "json", "kubectl get nodes"])

        assert result.exit_code == 0
        assert '"success": true' in result.output
        assert '"name": "node-3"' in result.output

    def test_yaml_output(self):
        result = runner.invoke(app, ["run", "--output", "yaml", "kubectl get nodes"])

        assert result.exit_code == 0
        assert "items:" in result.output
        assert "name: node-1" in result.output

    def test_failed_command_exits_nonzero(self):
        result = runner.invoke(app, ["run", "kubectl get pods", "kubectl delete pod ghost"])

        assert result.exit_code == 1
        assert 'Pod "ghost" not found' in result.output

    def test_show_events(self):
        result = runner.invoke(app, ["run", "--show-events", "kubectl create pod a"])

        assert result.exit_code == 0
        assert "podCreated" in result.output
        assert "podRunning" in result.output

    def test_config_file(self, tmp_path):
        config_file = tmp_path / "cluster.yaml"
        config_file.write_text("node_count: 1\nnode_capacity: 1\nallow_overcommit: false\n")

        result = runner.invoke(
            app,
            ["run", "-c", str(config_file), "kubectl create pod a", "kubectl create pod b"],
        )

        assert result.exit_code == 1
        assert 'No node has free capacity for pod "b"' in result.output

    def test_invalid_config_file(self, tmp_path):
        config_file = tmp_path / "cluster.yaml"
        config_file.write_text("reconcile_interval: 0.5\n")

        result = runner.invoke(app, ["run", "-c", str(config_file), "kubectl get pods"])

        assert result.exit_code == 1
        assert "invalid config" in result.output


@pytest.mark.unit
class TestOtherCommands:
    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert f"kubesim version {__version__}" in result.output

    def test_demo(self):
        result = runner.invoke(app, ["demo", "--no-events"])

        assert result.exit_code == 0
        assert 'Deployment "web" scaled to 5 replicas' in result.output
        assert 'Deployment "web" scaled to 2 replicas' in result.output
        assert "podCreated" not in result.output

    def test_shell_session(self):
        session = "help\nkubectl create pod a\ntick\nkubectl get pods\nexit\n"

        result = runner.invoke(app, ["shell"], input=session)

        assert result.exit_code == 0
        assert 'Pod "a" created on node-1' in result.output
        assert "PODS:" in result.output

    def test_shell_ends_on_eof(self):
        result = runner.invoke(app, ["shell"], input="kubectl get nodes\n")

        assert result.exit_code == 0
        assert "NODES:" in result.output
