"""
Tests for sftpartifact.cli module.
"""

from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from sftpartifact.cli import main
from sftpartifact.upload import UploadOutcome, UploadResult

NO_CI = {"GITHUB_ACTIONS": None, "GITHUB_OUTPUT": None}
BASE_ARGS = ["--server", "sftp.example.com", "--user", "ci", "--server-path", "/srv"]


class TestCli:
    """Tests for CLI commands."""

    def test_version_flag(self) -> None:
        """Test --version flag displays version."""
        runner = CliRunner()
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert "sftp-artifact version" in result.output

    def test_help_flag(self) -> None:
        """Test --help flag displays help."""
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "Archive files into a zip" in result.output
        assert "--compression-level" in result.output
        assert "--if-no-files-found" in result.output

    def test_invalid_compression_level_fails_before_upload(self) -> None:
        """Test that validation happens before any filesystem or network work."""
        runner = CliRunner()
        with patch("sftpartifact.cli.upload") as mock_upload:
            result = runner.invoke(
                main, ["-p", "dist/*", "-c", "12", *BASE_ARGS], env=NO_CI
            )

        assert result.exit_code == 1
        assert "0-9" in result.output
        mock_upload.assert_not_called()

    def test_missing_path_fails(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, BASE_ARGS, env={**NO_CI, "INPUT_PATH": None})

        assert result.exit_code == 1
        assert "path" in result.output

    def test_no_files_ignored_succeeds(self, temp_dir: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            main,
            ["-p", f"{temp_dir}/none/*", "--if-no-files-found", "ignore", *BASE_ARGS],
            env=NO_CI,
        )

        assert result.exit_code == 0
        assert "No files were found" not in result.output

    def test_no_files_error_fails(self, temp_dir: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            main,
            ["-p", f"{temp_dir}/none/*", "--if-no-files-found", "error", *BASE_ARGS],
            env=NO_CI,
        )

        assert result.exit_code == 1
        assert "No files were found" in result.output


class TestCliActionInputs:
    """Tests for GitHub Actions integration."""

    def test_inputs_from_environment(self) -> None:
        """Test that INPUT_* variables are used when options are absent."""
        runner = CliRunner()
        env = {
            **NO_CI,
            "INPUT_NAME": "build.zip",
            "INPUT_PATH": "out/*",
            "INPUT_SERVER": "files.example.com",
            "INPUT_USER": "deploy",
            "INPUT_COMPRESSION-LEVEL": "9",
            "INPUT_IF-NO-FILES-FOUND": "error",
            "INPUT_SERVER-PATH": "/srv/builds",
        }
        with patch("sftpartifact.cli.upload") as mock_upload:
            mock_upload.return_value = UploadResult(
                UploadOutcome.UPLOADED, "/srv/builds/build.zip", 1, 100
            )
            result = runner.invoke(main, [], env=env)

        assert result.exit_code == 0
        request = mock_upload.call_args[0][0]
        assert request.artifact_name == "build.zip"
        assert request.compression_level == 9
        assert request.destination.server == "files.example.com"
        assert request.remote_file == "/srv/builds/build.zip"

    def test_default_server_path_is_announced(self) -> None:
        runner = CliRunner()
        env = {
            **NO_CI,
            "GITHUB_REPOSITORY": "acme/widgets",
            "GITHUB_REF_NAME": "main",
            "GITHUB_SHA": "0123456789",
            "GITHUB_JOB": "build",
            "GITHUB_REF_TYPE": None,
            "GITHUB_WORKFLOW": "CI",
        }
        with patch("sftpartifact.cli.upload") as mock_upload:
            mock_upload.return_value = UploadResult(UploadOutcome.SKIPPED)
            result = runner.invoke(
                main,
                ["-p", "x", "--server", "h", "--user", "u", "--server-root", "/data"],
                env=env,
            )

        assert result.exit_code == 0
        expected = "/data/acme/widgets/main/0123456/CI/build"
        assert f"Set server-path to default: {expected}" in result.output

    def test_outputs_written_on_runner(self, temp_dir: Path) -> None:
        """Test step outputs and workflow commands on a GitHub runner."""
        output_file = temp_dir / "github_output"
        output_file.touch()
        runner = CliRunner()
        env = {"GITHUB_ACTIONS": "true", "GITHUB_OUTPUT": str(output_file)}
        with patch("sftpartifact.cli.upload") as mock_upload:
            mock_upload.return_value = UploadResult(
                UploadOutcome.UPLOADED, "/srv/a.zip", 1, 100
            )
            result = runner.invoke(main, ["-p", "x", *BASE_ARGS], env=env)

        assert result.exit_code == 0
        outputs = output_file.read_text().splitlines()
        assert "outcome=uploaded" in outputs
        assert "artifact-path=/srv/a.zip" in outputs

    def test_errors_use_workflow_commands_on_runner(self) -> None:
        runner = CliRunner()
        env = {"GITHUB_ACTIONS": "true", "GITHUB_OUTPUT": None}
        result = runner.invoke(main, ["-p", "x", "-c", "abc", *BASE_ARGS], env=env)

        assert result.exit_code == 1
        assert "::error::" in result.output
