"""Tests for rollout CLI commands."""

import base64
import json
import tempfile
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from conftest import deployment
from kubekit.cli import cli
from kubekit.client import ApiError
from kubekit.config import KubeKitConfig


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def cluster(fake_client):
    """Route the command to the in-memory cluster."""
    with patch("kubekit.commands.rollout.get_config") as mock_config:
        mock_config.return_value = KubeKitConfig(server="https://cluster.example")
        with patch("kubekit.commands.rollout.ApiClient", return_value=fake_client):
            yield fake_client


class TestRolloutResume:
    """Tests for rollout resume command."""

    def test_already_resumed_then_resumed(self, runner, cluster):
        """Test the mixed batch prints each status in order."""
        cluster.add(deployment("a"))
        cluster.add(deployment("b", paused=True))

        result = runner.invoke(cli, ["rollout", "resume", "deployment/a", "deployment/b"])

        assert result.exit_code == 0
        assert result.output.splitlines() == [
            "deployment/a already resumed",
            "deployment/b resumed",
        ]
        assert len(cluster.writes) == 1
        assert "paused" not in cluster.objects[("deployments", "default", "b")]["spec"]

    def test_no_arguments(self, runner):
        """Test that no resources is a usage error without touching the cluster."""
        with patch("kubekit.commands.rollout.get_config") as mock_config:
            with patch("kubekit.commands.rollout.ApiClient") as mock_client:
                result = runner.invoke(cli, ["rollout", "resume"])

        assert result.exit_code == 2
        assert "You must provide one or more resources" in result.output
        mock_config.assert_not_called()
        mock_client.assert_not_called()

    def test_mixed_forms_usage_error(self, runner, cluster):
        """Test that malformed arguments are a usage error."""
        result = runner.invoke(cli, ["rollout", "resume", "deployment", "deployment/a"])

        assert result.exit_code == 2
        assert cluster.calls == []

    def test_failures_reported_together(self, runner, cluster):
        """Test that every failure is printed and the exit status is non-zero."""
        cluster.add(deployment("a", paused=True))
        cluster.add(deployment("c", paused=True))
        cluster.patch_errors["a"] = ApiError("the object has been modified", status_code=409)

        result = runner.invoke(
            cli,
            ["rollout", "resume", "deployment/a", "deployment/missing", "deployment/c"],
        )

        assert result.exit_code == 1
        assert "deployment/c resumed" in result.output
        assert 'error: deployments.apps "missing" not found' in result.output
        assert (
            'error: deployments.apps "a": failed to patch: the object has been modified'
            in result.output
        )
        assert len(cluster.writes) == 2

    def test_unsupported_kind(self, runner, cluster):
        """Test that a kind without a resume transform is an error, not a no-op."""
        cluster.add({"apiVersion": "v1", "kind": "Pod", "metadata": {"name": "p", "namespace": "default"}})

        result = runner.invoke(cli, ["rollout", "resume", "pod/p"])

        assert result.exit_code == 1
        assert 'pods "p": resuming is not supported' in result.output
        assert cluster.writes == []

    def test_fatal_config_error(self, runner):
        """Test that an unusable configuration aborts the command."""
        with patch("kubekit.commands.rollout.get_config") as mock_config:
            mock_config.return_value = KubeKitConfig()
            result = runner.invoke(cli, ["rollout", "resume", "deployment/a"])

        assert result.exit_code == 1
        assert "NOT_CONFIGURED" in result.output

    def test_fatal_locator_error(self, runner, cluster):
        """Test that an unknown resource type aborts before any patch."""
        result = runner.invoke(cli, ["rollout", "resume", "widget/a"])

        assert result.exit_code == 1
        assert "doesn't have a resource type" in result.output
        assert cluster.calls == []

    def test_from_file(self, runner, cluster, tmp_path):
        """Test resuming resources listed in a manifest."""
        cluster.add(deployment("a", paused=True))
        manifest = tmp_path / "app.yaml"
        manifest.write_text(yaml.safe_dump(deployment("a")))

        result = runner.invoke(cli, ["rollout", "resume", "-f", str(manifest)])

        assert result.exit_code == 0
        assert result.output.strip() == "deployment/a resumed"

    def test_output_json(self, runner, cluster):
        """Test that -o json prints the updated object."""
        cluster.add(deployment("b", paused=True))

        result = runner.invoke(cli, ["rollout", "resume", "deployment/b", "-o", "json"])

        assert result.exit_code == 0
        obj = json.loads(result.output)
        assert obj["metadata"]["resourceVersion"] == "2"
        assert "paused" not in obj["spec"]

    def test_json_mode_success(self, runner, cluster):
        """Test the JSON envelope on success."""
        cluster.add(deployment("a"))

        result = runner.invoke(cli, ["--json", "rollout", "resume", "deployment/a"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["success"] is True
        assert data["data"]["resources"] == [
            {"resource": "deployment/a", "namespace": "default", "operation": "already resumed"}
        ]

    def test_json_mode_failure(self, runner, cluster):
        """Test the JSON envelope lists every error."""
        cluster.add(deployment("a", paused=True))

        result = runner.invoke(
            cli,
            ["--json", "rollout", "resume", "deployment/a", "deployment/x", "deployment/y"],
        )

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["success"] is False
        assert data["error"]["code"] == "RESUME_FAILED"
        assert data["error"]["errors"] == [
            'deployments.apps "x" not found',
            'deployments.apps "y" not found',
        ]
        assert data["data"]["resources"][0]["operation"] == "resumed"

    def test_connection_options_passed(self, runner, fake_client):
        """Test that global options reach the configuration loader."""
        fake_client.add(deployment("a", namespace="ops"))
        with patch("kubekit.commands.rollout.get_config") as mock_config:
            mock_config.return_value = KubeKitConfig(
                server="https://cluster.example", namespace="ops", namespace_enforced=True
            )
            with patch("kubekit.commands.rollout.ApiClient", return_value=fake_client):
                result = runner.invoke(
                    cli,
                    ["-n", "ops", "--server", "https://cluster.example", "rollout", "resume", "deploy/a"],
                )

        assert result.exit_code == 0
        kwargs = mock_config.call_args.kwargs
        assert kwargs["namespace"] == "ops"
        assert kwargs["server"] == "https://cluster.example"
        assert result.output.strip() == "deployment/a already resumed"


class TestKubeconfigHandling:
    """Tests for the command reading a real kubeconfig file."""

    def write_kubeconfig(self, path, user):
        path.write_text(
            yaml.safe_dump(
                {
                    "current-context": "dev",
                    "contexts": [{"name": "dev", "context": {"cluster": "c", "user": "u"}}],
                    "clusters": [{"name": "c", "cluster": {"server": "https://cluster.example"}}],
                    "users": [{"name": "u", "user": user}],
                }
            )
        )
        return path

    def test_unreadable_token_file(self, runner, fake_client, tmp_path):
        """Test that a broken tokenFile is reported instead of crashing."""
        path = self.write_kubeconfig(tmp_path / "config", {"tokenFile": "/nonexistent/token"})

        with patch("kubekit.commands.rollout.ApiClient", return_value=fake_client):
            result = runner.invoke(cli, ["--kubeconfig", str(path), "rollout", "resume", "deployment/a"])

        assert result.exit_code == 1
        assert "INVALID_KUBECONFIG" in result.output
        assert not isinstance(result.exception, FileNotFoundError)
        assert fake_client.calls == []

    def test_inline_credentials_removed(self, runner, fake_client, tmp_path, monkeypatch):
        """Test that files written for inline credentials are gone after the command."""
        temp_dir = tmp_path / "tmp"
        temp_dir.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(temp_dir))
        path = self.write_kubeconfig(
            tmp_path / "config",
            {
                "client-certificate-data": base64.b64encode(b"CERT").decode(),
                "client-key-data": base64.b64encode(b"KEY").decode(),
            },
        )
        fake_client.add(deployment("a", paused=True))

        with patch("kubekit.commands.rollout.ApiClient", return_value=fake_client) as mock_client:
            result = runner.invoke(cli, ["--kubeconfig", str(path), "rollout", "resume", "deployment/a"])

        assert result.exit_code == 0
        assert result.output.strip() == "deployment/a resumed"
        config = mock_client.call_args.args[0]
        assert config.client_certificate is not None
        assert not config.client_certificate.exists()
        assert list(temp_dir.iterdir()) == []

    def test_inline_credentials_removed_on_failure(self, runner, fake_client, tmp_path, monkeypatch):
        """Test that the files are removed when the command fails too."""
        temp_dir = tmp_path / "tmp"
        temp_dir.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(temp_dir))
        path = self.write_kubeconfig(
            tmp_path / "config",
            {
                "client-certificate-data": base64.b64encode(b"CERT").decode(),
                "client-key-data": base64.b64encode(b"KEY").decode(),
            },
        )

        with patch("kubekit.commands.rollout.ApiClient", return_value=fake_client):
            result = runner.invoke(cli, ["--kubeconfig", str(path), "rollout", "resume", "deployment/x"])

        assert result.exit_code == 1
        assert list(temp_dir.iterdir()) == []
