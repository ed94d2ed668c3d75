"""Tests for CLI commands."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from src.cli.main import app
from src.domain.errors import CIProviderError
from src.domain.value_objects.check_enums import PollStrategyType

runner = CliRunner()


@pytest.fixture(autouse=True)
def log_dir(tmp_path: Path):
    with patch("src.cli.main.get_log_dir", return_value=tmp_path / "logs"):
        yield


@pytest.fixture
def no_tools():
    probe = MagicMock()
    probe.is_available = AsyncMock(return_value=False)
    with patch("src.cli.runner.PathToolProbe", return_value=probe):
        yield probe


def write_config(directory: Path, **content: object) -> Path:
    path = directory / "mergepilot.json"
    path.write_text(json.dumps(content))
    return path


class TestDetect:
    def test_nodejs_project(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text('{"name": "app"}')
        (tmp_path / "yarn.lock").write_text("")

        result = runner.invoke(app, ["detect", str(tmp_path)])

        assert result.exit_code == 0
        assert "nodejs (95%)" in result.output
        assert "yarn" in result.output

    def test_invalid_config_exits_2(self, tmp_path: Path) -> None:
        config = write_config(tmp_path, ci={"timeoutS": -5})

        result = runner.invoke(app, ["detect", str(tmp_path), "--config", str(config)])

        assert result.exit_code == 2
        assert "Invalid config" in result.output

    def test_missing_config_exits_2(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["detect", str(tmp_path), "--config", str(tmp_path / "nope.json")]
        )

        assert result.exit_code == 2


class TestResolve:
    def test_config_and_makefile_sources(self, tmp_path: Path, no_tools: MagicMock) -> None:
        (tmp_path / "go.mod").write_text("module example.com/x\n")
        (tmp_path / "Makefile").write_text("test:\n\tgo test ./...\nbuild:\n\tgo build\n")
        config = write_config(tmp_path, commands={"lint": "golangci-lint run --fast"})

        result = runner.invoke(app, ["resolve", str(tmp_path), "--config", str(config)])

        assert result.exit_code == 0, result.output
        assert "golangci-lint run --fast" in result.output
        assert "make test" in result.output
        assert "optional, skipped" in result.output

    def test_missing_required_task_exits_1(self, tmp_path: Path, no_tools: MagicMock) -> None:
        (tmp_path / "go.mod").write_text("module example.com/x\n")

        result = runner.invoke(app, ["resolve", str(tmp_path), "--task", "lint"])

        assert result.exit_code == 1
        assert "No command for: lint" in result.output
        assert "Install a tool" in result.output


class TestVerify:
    def test_all_tasks_pass(self, tmp_path: Path, no_tools: MagicMock) -> None:
        config = write_config(
            tmp_path,
            tasks=["lint", "test"],
            commands={"lint": "true", "test": "echo 1 passed"},
        )

        result = runner.invoke(app, ["verify", str(tmp_path), "--config", str(config)])

        assert result.exit_code == 0, result.output
        assert "Verification passed" in result.output

    def test_failing_task_exits_1(self, tmp_path: Path, no_tools: MagicMock) -> None:
        config = write_config(
            tmp_path,
            tasks=["lint", "test"],
            commands={"lint": "echo 'error  no-var' && exit 1", "test": "true"},
        )

        result = runner.invoke(
            app, ["verify", str(tmp_path), "--config", str(config), "--stop-on-failure"]
        )

        assert result.exit_code == 1
        assert "Verification failed" in result.output
        assert "error  no-var" in result.output


class TestChecks:
    @pytest.mark.parametrize("code", [0, 1, 3])
    def test_exit_code_comes_from_outcome(self, tmp_path: Path, code: int) -> None:
        with patch("src.cli.commands.checks._checks", new=AsyncMock(return_value=code)):
            result = runner.invoke(app, ["checks", "42", "--repo", str(tmp_path)])

        assert result.exit_code == code

    def test_provider_error_exits_2(self, tmp_path: Path) -> None:
        error = CIProviderError("GitHub API GET /pulls/42 returned 401", status_code=401)
        with patch("src.cli.commands.checks._checks", new=AsyncMock(side_effect=error)):
            result = runner.invoke(app, ["checks", "42", "--repo", str(tmp_path)])

        assert result.exit_code == 2
        assert "returned 401" in result.output

    def test_flags_override_config(self, tmp_path: Path) -> None:
        config = write_config(tmp_path, ci={"timeoutS": 600, "failFast": True})
        mock_checks = AsyncMock(return_value=0)

        with patch("src.cli.commands.checks._checks", new=mock_checks):
            result = runner.invoke(
                app,
                [
                    "checks",
                    "42",
                    "--repo",
                    str(tmp_path),
                    "--config",
                    str(config),
                    "--wait",
                    "--timeout",
                    "120",
                    "--no-fail-fast",
                    "--exponential",
                ],
            )

        assert result.exit_code == 0, result.output
        pr_number, _, passed_config, wait, auto_fix, dry_run = mock_checks.await_args.args
        assert pr_number == 42
        assert wait is True
        assert (auto_fix, dry_run) == (False, False)
        assert passed_config.ci.timeout_s == 120
        assert passed_config.ci.fail_fast is False
        assert passed_config.ci.strategy == PollStrategyType.EXPONENTIAL
        assert passed_config.ci.poll_interval_s == 10.0
