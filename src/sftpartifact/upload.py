"""
End-to-end upload pipeline for sftpartifact.

Discovers the files, applies the if-no-files-found policy and streams the
archive to the server.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import paramiko

from sftpartifact.archive import build_entries
from sftpartifact.config import NoFilesPolicy, UploadRequest
from sftpartifact.errors import NoFilesFoundError
from sftpartifact.protocols.sftp import upload_sftp
from sftpartifact.report import MemoryReporter, Reporter
from sftpartifact.search import find_files


class UploadOutcome(str, Enum):
    UPLOADED = "uploaded"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class UploadResult:
    outcome: UploadOutcome
    remote_file: Optional[str] = None
    file_count: int = 0
    bytes_sent: int = 0


def upload(
    request: UploadRequest,
    reporter: Optional[Reporter] = None,
    client_factory: Callable[[], Any] = paramiko.SSHClient,
) -> UploadResult:
    """
    Archive the files matched by the request and upload them over SFTP.

    When nothing matches, the 'error' policy raises NoFilesFoundError while
    'warn' and 'ignore' return a SKIPPED result ('warn' also reports a
    warning). No connection is opened in that case.

    Args:
        request: Validated upload request.
        reporter: Event sink.
        client_factory: Builds the SSH client.

    Returns:
        UploadResult describing what happened.
    """
    reporter = reporter or MemoryReporter()
    result = find_files(
        request.search_path,
        exclude_hidden=not request.include_hidden_files,
        reporter=reporter,
    )

    if not result.files_to_upload:
        message = (
            f"No files were found with the provided path: {request.search_path}. "
            "No artifacts will be uploaded."
        )
        if request.if_no_files_found == NoFilesPolicy.ERROR:
            raise NoFilesFoundError(message)
        if request.if_no_files_found == NoFilesPolicy.WARN:
            reporter.warning(message)
        return UploadResult(outcome=UploadOutcome.SKIPPED)

    file_count = len(result.files_to_upload)
    reporter.info(
        f"With the provided path, there will be {file_count} file(s) uploaded"
    )
    reporter.debug(f"Root artifact directory is {result.root_dir}")

    entries = build_entries(result)
    bytes_sent = upload_sftp(request, entries, reporter, client_factory)

    reporter.info(
        f"Finished uploading artifact to {request.remote_file} ({bytes_sent} bytes)"
    )
    return UploadResult(
        outcome=UploadOutcome.UPLOADED,
        remote_file=request.remote_file,
        file_count=file_count,
        bytes_sent=bytes_sent,
    )
