"""
Tests for the Bootguard operator CLI.

Every command runs against a temporary DuckDB backend; resource limits are
simulated so that results do not depend on the machine running the tests.
"""

import pytest
from typer.testing import CliRunner

from bootguard_cli import __version__
from bootguard_cli.main import app
from bootguard_orchestrator import create_bootstrap_service, load_bootguard_config
from bootguard_orchestrator.config.paths import get_project_root

from tests.fixtures import ACTIVATION_CALLS, fresh_inspector

runner = CliRunner()

FULL_ENV = [
    "--memory-limit", "512M",
    "--memory-used", "40M",
    "--execution-time", "300",
    "--runtime-version", "3.12.1",
]
CONSTRAINED_ENV = [
    "--memory-limit", "32M",
    "--memory-used", "28M",
    "--execution-time", "5",
    "--runtime-version", "3.12.1",
]


@pytest.fixture
def cli(duckdb_config_file):
    """Invoke a command with the temporary configuration."""
    def invoke(*args):
        command, *rest = args
        return runner.invoke(app, [command, "--config", str(duckdb_config_file), *rest])
    return invoke


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"Bootguard v{__version__}" in result.output


def test_package_readme_is_the_project_readme():
    pyproject = (get_project_root() / "pyproject.toml").read_text()
    assert 'readme = "README.md"' in pyproject
    assert "bootguard" in (get_project_root() / "README.md").read_text()


class TestProbe:
    def test_full_environment(self, cli):
        result = cli("probe", *FULL_ENV)
        assert result.exit_code == 0
        assert "Using simulated resource limits" in result.output
        assert "100/100" in result.output
        assert "No resource constraints detected" in result.output

    def test_constrained_environment(self, cli):
        result = cli("probe", *CONSTRAINED_ENV)
        assert result.exit_code == 0
        assert "15/100" in result.output
        assert "Constraints" in result.output

    def test_invalid_memory_value(self, cli):
        result = cli("probe", "--memory-limit", "lots")
        assert result.exit_code == 1
        assert "Failed to probe environment" in result.output

    def test_invalid_config(self, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("scoring: {unclosed")
        result = runner.invoke(app, ["probe", "--config", str(bad), *FULL_ENV])
        assert result.exit_code == 1


class TestInstallationFlow:
    def test_run_requires_setup_first(self, cli):
        result = cli("run", *FULL_ENV)
        assert result.exit_code == 0
        assert "guided setup required" in result.output

    def test_setup_then_run_completes(self, cli):
        cli("run", *FULL_ENV)

        setup = cli("setup", "-f", "bookings,analytics")
        assert setup.exit_code == 0
        assert "2 feature(s) queued" in setup.output

        run = cli("run", *FULL_ENV)
        assert run.exit_code == 0
        assert "Installation complete" in run.output

        status = cli("status", "--detailed")
        assert status.exit_code == 0
        assert "complete" in status.output
        assert "2/2 settled" in status.output
        assert "analytics" in status.output

    def test_setup_with_mode_ceiling(self, cli):
        result = cli("setup", "--mode", "progressive")
        assert result.exit_code == 0
        assert "Loading mode capped at progressive" in result.output

    def test_setup_unknown_mode(self, cli):
        result = cli("setup", "--mode", "turbo")
        assert result.exit_code == 1
        assert "Unknown loading mode" in result.output

    def test_setup_unknown_feature(self, cli):
        result = cli("setup", "-f", "teleportation")
        assert result.exit_code == 1
        assert "Invalid feature selection" in result.output

    def test_setup_twice_fails(self, cli):
        cli("setup")
        result = cli("setup")
        assert result.exit_code == 1
        assert "Setup failed" in result.output

    def test_skip_setup_queues_defaults(self, cli):
        result = cli("skip-setup")
        assert result.exit_code == 0
        assert "bookings, reviews" in result.output

    def test_constrained_run_keeps_features_pending(self, cli):
        cli("skip-setup")
        result = cli("run", *CONSTRAINED_ENV)
        assert result.exit_code == 0

        status = cli("status")
        assert "0/2 settled, 2 pending" in status.output

    def test_enable_after_completion(self, cli):
        cli("setup", "-f", "bookings")
        cli("run", *FULL_ENV)

        result = cli("enable", "analytics")
        assert result.exit_code == 0
        assert "Queued 1 feature(s)" in result.output

        again = cli("enable", "analytics")
        assert "Nothing to queue" in again.output

    def test_enable_before_setup_fails(self, cli):
        result = cli("enable", "analytics")
        assert result.exit_code == 1

    def test_reset(self, cli):
        cli("setup", "-f", "bookings")
        cli("run", *FULL_ENV)

        result = cli("reset", "--yes")
        assert result.exit_code == 0
        assert "Installation reset" in result.output

        status = cli("status")
        assert "not_started" in status.output

    def test_reset_cancelled(self, cli):
        result = runner.invoke(app, ["reset"], input="n\n")
        assert result.exit_code == 0
        assert "Reset cancelled" in result.output


class TestWorker:
    def test_nothing_due(self, cli):
        result = cli("worker")
        assert result.exit_code == 0
        assert "No deferred tasks due" in result.output

    def test_deferred_run(self, cli):
        cli("skip-setup")
        result = cli("run", "--deferred", *FULL_ENV)
        assert result.exit_code == 0
        assert "deferred" in result.output
        assert "Installation complete" in result.output


def test_features(cli):
    result = cli("features")
    assert result.exit_code == 0
    assert "core" in result.output
    assert "bookings" in result.output
    assert "analytics" in result.output


class TestHostActivators:
    def test_run_uses_configured_activators(self, cli):
        ACTIVATION_CALLS.clear()
        cli("setup", "-f", "analytics")

        result = cli("run", *FULL_ENV)

        assert result.exit_code == 0
        assert ACTIVATION_CALLS == ["core", "analytics"]

    def test_run_without_activators_is_refused(self, bare_duckdb_config_file):
        result = runner.invoke(app, ["run", "--config", str(bare_duckdb_config_file), *FULL_ENV])
        assert result.exit_code == 1
        assert "No feature activators configured" in result.output

    def test_worker_without_activators_is_refused(self, bare_duckdb_config_file):
        result = runner.invoke(app, ["worker", "--config", str(bare_duckdb_config_file)])
        assert result.exit_code == 1

    def test_cli_does_not_preempt_host_activators(self, bare_duckdb_config_file):
        options = ["--config", str(bare_duckdb_config_file)]
        runner.invoke(app, ["skip-setup", *options])
        runner.invoke(app, ["run", *options, *FULL_ENV])
        runner.invoke(app, ["worker", *options])

        calls = []
        activators = {
            feature_id: (lambda feature_id=feature_id: calls.append(feature_id))
            for feature_id in ("core", "bookings", "reviews")
        }
        service = create_bootstrap_service(
            load_bootguard_config(bare_duckdb_config_file, env_overrides=False),
            activators=activators,
            inspector=fresh_inspector(),
            register_exit_hook=False,
        )
        report = service.run_invocation()

        assert report.activated == ["core", "bookings", "reviews"]
        assert calls == ["core", "bookings", "reviews"]
