"""Tests for the callsim validate and clean CLI commands."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from callsim.cli.main import app
from callsim.errors import InfrastructureError

runner = CliRunner()

EXAMPLE = Path(__file__).resolve().parent.parent / "test_sets" / "example.yaml"

VALID = "name: s\ngroups:\n  - name: g\n    test_cases:\n      - name: call\n"
TYPO = "name: s\ngroups:\n  - name: g\n    test_cases:\n      - name: call\n        duraton: 30\n"


class TestValidateCommand:
    """Tests for callsim validate CLI command."""

    def test_valid_test_set_exits_zero(self):
        """callsim validate with a valid file exits 0 and prints success."""
        result = runner.invoke(app, ["validate", str(EXAMPLE)])
        assert result.exit_code == 0
        assert "valid" in result.output.lower()
        assert "1/1 test sets valid" in result.output

    def test_invalid_test_set_exits_nonzero(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(TYPO)
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "0/1 test sets valid" in result.output

    def test_ci_mode_concise_format(self, tmp_path):
        """callsim validate --ci prints file:line:col -- field: message."""
        path = tmp_path / "bad.yaml"
        path.write_text(TYPO)
        result = runner.invoke(app, ["validate", "--ci", str(path)])
        assert result.exit_code == 1
        assert f"{path}:6:9 -- groups.0.test_cases.0.duraton" in result.output
        assert "Did you mean 'duration'?" in result.output

    def test_mixed_files(self, tmp_path):
        good = tmp_path / "good.yaml"
        good.write_text(VALID)
        bad = tmp_path / "bad.yaml"
        bad.write_text(TYPO)
        result = runner.invoke(app, ["validate", "--ci", str(good), str(bad)])
        assert result.exit_code == 1
        assert "1/2 test sets valid" in result.output

    def test_no_args_scans_test_sets_dir(self, tmp_path, monkeypatch):
        (tmp_path / "test_sets").mkdir()
        (tmp_path / "test_sets" / "smoke.yaml").write_text(VALID)
        (tmp_path / "callsim.yaml").write_text("output_dir: out\n")
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["validate"])
        assert result.exit_code == 0
        assert "1/1 test sets valid" in result.output

    def test_no_files_found(self, tmp_path, monkeypatch):
        (tmp_path / "callsim.yaml").write_text("")
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["validate"])
        assert result.exit_code == 1
        assert "No test-set files found" in result.output

    def test_nonexistent_file(self):
        result = runner.invoke(app, ["validate", "/nonexistent/file.yaml"])
        assert result.exit_code == 1
        assert "not found" in result.output.lower()


class TestCleanCommand:
    def test_removes_everything(self, tmp_path):
        manager = MagicMock()
        manager.clean_all = AsyncMock()
        with patch("callsim.cli.clean_cmd.ParticipantManager", return_value=manager):
            result = runner.invoke(app, ["clean", "--root", str(tmp_path)])
        assert result.exit_code == 0
        assert "Cleaned up" in result.output
        manager.clean_all.assert_awaited_once()

    def test_infrastructure_error_exits_two(self, tmp_path):
        manager = MagicMock()
        manager.clean_all = AsyncMock(side_effect=InfrastructureError("docker executable not found"))
        with patch("callsim.cli.clean_cmd.ParticipantManager", return_value=manager):
            result = runner.invoke(app, ["clean", "--root", str(tmp_path)])
        assert result.exit_code == 2

    def test_bad_config_exits_one(self, tmp_path):
        (tmp_path / "callsim.yaml").write_text("bogus: 1\n")
        result = runner.invoke(app, ["clean", "--root", str(tmp_path)])
        assert result.exit_code == 1
