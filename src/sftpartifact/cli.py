"""
CLI entry point for sftpartifact.

Provides the command-line interface using Click. Every option falls back to
the matching GitHub Actions input variable (INPUT_<NAME>).
"""

import logging
import os
import sys
import time
from typing import Optional

import click

from sftpartifact import __version__
from sftpartifact.config import (
    DEFAULT_ARTIFACT_NAME,
    DEFAULT_COMPRESSION_LEVEL,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    build_request,
)
from sftpartifact.errors import SftpArtifactError
from sftpartifact.report import default_reporter
from sftpartifact.upload import UploadOutcome, upload
from sftpartifact.utils import format_elapsed

# Suppress paramiko's verbose error messages
logging.getLogger("paramiko").setLevel(logging.CRITICAL)


def version_callback(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Callback to display version and exit."""
    if value and not ctx.resilient_parsing:
        click.echo(f"sftp-artifact version {__version__}")
        ctx.exit()


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--version",
    "-v",
    is_flag=True,
    callback=version_callback,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.option(
    "-n",
    "--name",
    envvar="INPUT_NAME",
    default=DEFAULT_ARTIFACT_NAME,
    show_default=True,
    help="Artifact (archive file) name.",
)
@click.option(
    "-p",
    "--path",
    "search_path",
    envvar="INPUT_PATH",
    default=None,
    help="A file, directory or wildcard pattern that describes what to upload. One pattern per line.",
)
@click.option(
    "--if-no-files-found",
    envvar="INPUT_IF-NO-FILES-FOUND",
    default="warn",
    show_default=True,
    help="Behavior when no files match: warn, error or ignore.",
)
@click.option(
    "-c",
    "--compression-level",
    envvar="INPUT_COMPRESSION-LEVEL",
    default=str(DEFAULT_COMPRESSION_LEVEL),
    show_default=True,
    help="Zlib compression level for the archive, 0 (none) to 9 (best).",
)
@click.option(
    "--include-hidden-files",
    envvar="INPUT_INCLUDE-HIDDEN-FILES",
    default="false",
    show_default=True,
    help="Include files and directories whose name starts with '.' (true/false).",
)
@click.option(
    "--method",
    envvar="INPUT_METHOD",
    default="SFTP",
    show_default=True,
    help="Upload method. Only SFTP is supported.",
)
@click.option("--server", envvar="INPUT_SERVER", help="SFTP server host name.")
@click.option("--user", envvar="INPUT_USER", help="SFTP user name.")
@click.option(
    "--password",
    envvar="INPUT_PASSWORD",
    default="",
    help="SFTP password (passphrase when a private key is given).",
)
@click.option(
    "--private-key",
    envvar="INPUT_PRIVATE-KEY",
    default="",
    help="Private key text used for authentication.",
)
@click.option(
    "--server-path",
    envvar="INPUT_SERVER-PATH",
    default="",
    help="Directory on the server to upload to. Defaults to one derived from the CI run.",
)
@click.option(
    "--server-root",
    envvar="INPUT_SERVER-ROOT",
    default="",
    help="Prefix of the default server path.",
)
@click.option(
    "--port", envvar="INPUT_PORT", default=DEFAULT_PORT, type=int, show_default=True
)
@click.option(
    "--timeout",
    envvar="INPUT_TIMEOUT",
    default=DEFAULT_TIMEOUT,
    type=float,
    show_default=True,
    help="Connection and socket timeout in seconds.",
)
@click.option("--verbose", is_flag=True, help="Show debug messages.")
def main(
    name: str,
    search_path: Optional[str],
    if_no_files_found: str,
    compression_level: str,
    include_hidden_files: str,
    method: str,
    server: Optional[str],
    user: Optional[str],
    password: str,
    private_key: str,
    server_path: str,
    server_root: str,
    port: int,
    timeout: float,
    verbose: bool,
) -> None:
    """
    Archive files into a zip and upload it to an SFTP server.

    \b
    The archive is streamed while it is built, so no temporary file is
    written. It ends up at SERVER_PATH/NAME on the server; missing
    directories are created.

    \b
    When --server-path is empty the path is derived from the GitHub Actions
    run: SERVER_ROOT/repository/ref/short-sha/workflow/job.

    \b
    Examples:
      sftp-artifact -p "dist/*" --server files.example.com --user ci
      sftp-artifact -n build.zip -p "out/**/*.txt" --server-path /srv/artifacts ...
    """
    reporter = default_reporter(verbose)

    try:
        request = build_request(
            name=name,
            path=search_path,
            server=server,
            user=user,
            if_no_files_found=if_no_files_found,
            compression_level=compression_level,
            include_hidden_files=include_hidden_files,
            method=method,
            password=password,
            private_key=private_key,
            server_path=server_path,
            server_root=server_root,
            port=port,
            timeout=timeout,
            env=os.environ,
        )
        if not server_path:
            reporter.info(
                f"Set server-path to default: {request.destination.remote_path}"
            )

        start_time = time.time()
        result = upload(request, reporter)
    except SftpArtifactError as e:
        reporter.error(e.format_message())
        sys.exit(e.exit_code)

    reporter.set_output("outcome", result.outcome.value)
    if result.outcome == UploadOutcome.UPLOADED:
        reporter.set_output("artifact-path", result.remote_file or "")
        reporter.info(
            f"⏱️  Upload completed in {format_elapsed(time.time() - start_time)}"
        )


if __name__ == "__main__":
    main()
