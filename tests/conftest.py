"""
Shared pytest fixtures for sftpartifact tests.
"""

import errno
import io
import posixpath
import stat
import tempfile
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, Generator, List, Optional, Set
from unittest.mock import MagicMock

import pytest

from sftpartifact.config import Destination, UploadRequest
from sftpartifact.report import MemoryReporter


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def reporter() -> MemoryReporter:
    return MemoryReporter()


@pytest.fixture
def sample_file_structure(temp_dir: Path) -> Path:
    """Create a build output tree under temp_dir/out."""
    out = temp_dir / "out"
    (out / "sub").mkdir(parents=True)
    (out / "a.txt").write_text("alpha")
    (out / "sub" / "b.txt").write_text("bravo")
    (out / ".hidden").write_text("secret")
    (out / ".cache").mkdir()
    (out / ".cache" / "c.txt").write_text("cached")
    return temp_dir


class FakeRemoteFile:
    """In-memory stand-in for paramiko.SFTPFile."""

    def __init__(self, server: "FakeSFTP", path: str) -> None:
        self.server = server
        self.path = path
        self.buffer = io.BytesIO()
        self.pipelined = False
        self.closed = False

    def set_pipelined(self, pipelined: bool = True) -> None:
        self.pipelined = pipelined

    def write(self, data: bytes) -> int:
        if self.server.fail_writes:
            raise OSError("Socket exception: Connection reset by peer")
        self.buffer.write(data)
        return len(data)

    def close(self) -> None:
        if not self.closed:
            self.server.files[self.path] = self.buffer.getvalue()
        self.closed = True


class FakeSFTP:
    """In-memory stand-in for paramiko.SFTPClient."""

    def __init__(self) -> None:
        self.dirs: Set[str] = {"", "/"}
        self.files: Dict[str, bytes] = {}
        self.denied: Set[str] = set()
        self.mkdir_calls: List[str] = []
        self.removed: List[str] = []
        self.fail_writes = False
        self.closed = False

    def stat(self, path: str) -> SimpleNamespace:
        if path in self.dirs:
            return SimpleNamespace(st_mode=stat.S_IFDIR | 0o755)
        if path in self.files:
            return SimpleNamespace(st_mode=stat.S_IFREG | 0o644)
        raise FileNotFoundError(errno.ENOENT, "No such file")

    def mkdir(self, path: str, mode: int = 0o777) -> None:
        self.mkdir_calls.append(path)
        if path in self.denied:
            raise PermissionError(errno.EACCES, "Permission denied")
        if path in self.dirs or path in self.files:
            raise OSError("Failure")
        if posixpath.dirname(path) not in self.dirs:
            raise FileNotFoundError(errno.ENOENT, "No such file")
        self.dirs.add(path)

    def open(self, path: str, mode: str = "r") -> FakeRemoteFile:
        if posixpath.dirname(path) not in self.dirs:
            raise FileNotFoundError(errno.ENOENT, "No such file")
        return FakeRemoteFile(self, path)

    def remove(self, path: str) -> None:
        self.removed.append(path)
        self.files.pop(path, None)

    def get_channel(self) -> MagicMock:
        return MagicMock()

    def close(self) -> None:
        self.closed = True


class FakeSSHClient:
    """In-memory stand-in for paramiko.SSHClient."""

    def __init__(
        self,
        sftp: Optional[FakeSFTP] = None,
        connect_error: Optional[BaseException] = None,
        sftp_error: Optional[BaseException] = None,
    ) -> None:
        self.sftp = sftp or FakeSFTP()
        self.connect_error = connect_error
        self.sftp_error = sftp_error
        self.connect_kwargs: Dict[str, Any] = {}
        self.closed = False

    def set_missing_host_key_policy(self, policy: Any) -> None:
        self.policy = policy

    def connect(self, **kwargs: Any) -> None:
        self.connect_kwargs = kwargs
        if self.connect_error is not None:
            raise self.connect_error

    def open_sftp(self) -> FakeSFTP:
        if self.sftp_error is not None:
            raise self.sftp_error
        return self.sftp

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_sftp() -> FakeSFTP:
    return FakeSFTP()


@pytest.fixture
def fake_client(fake_sftp: FakeSFTP) -> FakeSSHClient:
    return FakeSSHClient(fake_sftp)


@pytest.fixture
def destination() -> Destination:
    return Destination(
        server="sftp.example.com",
        user="ci",
        password="secret",
        remote_path="/srv/artifacts/build",
    )


@pytest.fixture
def make_request(destination: Destination):
    """Build an UploadRequest with overridable fields."""

    def _make(**overrides: Any) -> UploadRequest:
        values: Dict[str, Any] = {
            "artifact_name": "artifact.zip",
            "search_path": "*",
            "destination": destination,
            "compression_level": 6,
        }
        values.update(overrides)
        return UploadRequest(**values)

    return _make
