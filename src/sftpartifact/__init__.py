"""
sftpartifact - Archive CI build outputs and upload them to an SFTP server

License: MIT License
"""

__version__ = "1.0.0"

# Public API exports
from sftpartifact.config import UploadRequest, Destination, NoFilesPolicy, build_request
from sftpartifact.search import find_files
from sftpartifact.upload import UploadOutcome, UploadResult, upload

__all__ = [
    "__version__",
    "UploadRequest",
    "Destination",
    "NoFilesPolicy",
    "build_request",
    "find_files",
    "upload",
    "UploadOutcome",
    "UploadResult",
]
