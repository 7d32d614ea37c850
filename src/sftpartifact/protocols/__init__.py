"""
Protocols subpackage for sftpartifact.

Re-exports the SFTP upload functions.
"""

from sftpartifact.protocols.sftp import UploadSession, ensure_directory, upload_sftp

__all__ = [
    "UploadSession",
    "ensure_directory",
    "upload_sftp",
]
