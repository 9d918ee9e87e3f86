"""
Unit tests for basketlever.cli.commands.simulate.

Tests cover:
- Running a scenario end to end with an explicit config file
- Error reporting for failing scenarios and invalid config
- Option validation (missing file, log level)
"""

import pytest
from click.testing import CliRunner

from basketlever.cli.commands.simulate import simulate_command
from basketlever.cli.main import main
from basketlever.system import LoggerFactory
from basketlever.system.config import reload_system_config


@pytest.fixture
def cli_runner():
    """Fixture providing Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def restore_global_state(tmp_path, monkeypatch):
    monkeypatch.delenv("BASKETLEVER_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    LoggerFactory.reset()
    reload_system_config()


@pytest.fixture
def config_file(tmp_path):
    config = tmp_path / "basketlever.yaml"
    config.write_text("logging:\n  level: WARNING\nleverage:\n  protocol_fee_bps: 0\n")
    return config


@pytest.fixture
def scenario_file(tmp_path):
    scenario = tmp_path / "scenario.yaml"
    scenario.write_text(
        """
name: cli_lever
description: Lever once.
steps:
  - action: enter_collateral
  - action: lever
    params:
      borrow: "1000"
      min_receive: "0.3"
"""
    )
    return scenario


class TestSimulateCommand:
    def test_runs_scenario(self, cli_runner, scenario_file, config_file):
        # Act
        result = cli_runner.invoke(simulate_command, ["--file", str(scenario_file), "--config", str(config_file)])

        # Assert
        assert result.exit_code == 0, result.output
        assert "cli_lever" in result.output
        assert "levered" in result.output
        assert "RESULTS" in result.output

    def test_log_level_option(self, cli_runner, scenario_file, config_file):
        result = cli_runner.invoke(
            simulate_command, ["-f", str(scenario_file), "-c", str(config_file), "-l", "error"]
        )

        assert result.exit_code == 0, result.output

    def test_failing_step_exits_with_error(self, cli_runner, tmp_path, config_file):
        # Arrange
        scenario = tmp_path / "failing.yaml"
        scenario.write_text("name: failing\nsteps:\n  - action: lever\n    params:\n      borrow: '1000'\n")

        # Act
        result = cli_runner.invoke(simulate_command, ["-f", str(scenario), "-c", str(config_file)])

        # Assert
        assert result.exit_code == 1
        assert "Simulation failed" in result.output

    def test_invalid_config_exits_with_error(self, cli_runner, tmp_path, scenario_file):
        config = tmp_path / "bad.yaml"
        config.write_text("leverage:\n  protocol_fee_bps: 20000\n")

        result = cli_runner.invoke(simulate_command, ["-f", str(scenario_file), "-c", str(config)])

        assert result.exit_code == 1
        assert "Simulation failed" in result.output

    def test_missing_scenario_file(self, cli_runner, tmp_path):
        result = cli_runner.invoke(simulate_command, ["--file", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 2

    def test_registered_on_main_group(self, cli_runner):
        result = cli_runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "simulate" in result.output
        assert "convert" in result.output
