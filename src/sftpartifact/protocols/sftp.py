"""
SFTP protocol implementation for sftpartifact.

Handles remote directory creation and the connection lifecycle used to stream
the archive to the server.
"""

import io
import posixpath
import stat
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import paramiko

from sftpartifact.archive import ArchiveEntry, create_archive
from sftpartifact.config import Destination, UploadRequest
from sftpartifact.errors import (
    AuthenticationError,
    DirectoryCreationError,
    SftpArtifactError,
    SubsystemError,
    TransportError,
)
from sftpartifact.pipe import StreamPipe
from sftpartifact.report import MemoryReporter, Reporter

# Errors paramiko lets through when the connection breaks
CONNECTION_ERRORS = (paramiko.SSHException, OSError, EOFError)


def _is_dir(sftp: paramiko.SFTPClient, remote_path: str) -> bool:
    try:
        return stat.S_ISDIR(sftp.stat(remote_path).st_mode)
    except OSError:
        return False


def ensure_directory(
    sftp: paramiko.SFTPClient,
    remote_path: str,
    reporter: Optional[Reporter] = None,
    separator: str = "/",
) -> List[str]:
    """
    Create remote_path and any missing parents, one segment at a time.

    Existing segments are skipped, so calling this repeatedly is safe.

    Args:
        sftp: Active SFTP connection.
        remote_path: Directory to create ('/a/b/c' or relative 'a/b').
        reporter: Event sink.
        separator: Remote path separator.

    Returns:
        The directories that were created, in order.

    Raises:
        DirectoryCreationError: If a segment is missing and cannot be created.
    """
    reporter = reporter or MemoryReporter()
    parts = [part for part in remote_path.split(separator) if part]
    current = separator if remote_path.startswith(separator) else ""
    created: List[str] = []

    for part in parts:
        if current in ("", separator):
            current = f"{current}{part}"
        else:
            current = f"{current}{separator}{part}"

        if _is_dir(sftp, current):
            reporter.debug(f"Remote directory {current} already exists")
            continue

        try:
            sftp.mkdir(current)
        except OSError as e:
            # Created by someone else in the meantime
            if _is_dir(sftp, current):
                continue
            raise DirectoryCreationError(
                f"Could not create remote directory '{current}': {e}"
            ) from e
        reporter.debug(f"Created remote directory {current}")
        created.append(current)

    return created


def load_private_key(key_text: str, passphrase: Optional[str] = None) -> paramiko.PKey:
    """
    Parse an OpenSSH/PEM private key given as text.

    Raises:
        AuthenticationError: If the key cannot be parsed by any supported type.
    """
    last_error: Optional[Exception] = None
    for key_class in (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey):
        try:
            return key_class.from_private_key(
                io.StringIO(key_text), password=passphrase or None
            )
        except paramiko.SSHException as e:
            last_error = e
    raise AuthenticationError(f"Could not load private key: {last_error}")


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    SUBSYSTEM_OPEN = "subsystem-open"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    CLOSED = "closed"
    ERRORED = "errored"


class UploadSession:
    """
    One SFTP upload: connect, authenticate, open the subsystem, stream the
    archive to a remote file and close.

    Each step is a method that either moves the session to the next state or
    raises. The connection is always closed when the session is used as a
    context manager, whatever the outcome. A session is never reused.

    Args:
        destination: Server and credentials.
        reporter: Event sink.
        timeout: Connect and socket timeout in seconds.
        client_factory: Builds the SSH client (paramiko.SSHClient by default).
    """

    def __init__(
        self,
        destination: Destination,
        reporter: Optional[Reporter] = None,
        timeout: float = 60,
        client_factory: Callable[[], Any] = paramiko.SSHClient,
    ) -> None:
        self.destination = destination
        self.reporter = reporter or MemoryReporter()
        self.timeout = timeout
        self.client_factory = client_factory
        self.state = SessionState.DISCONNECTED
        self.remote_file: Optional[str] = None
        self.bytes_sent = 0
        self._client: Any = None
        self._sftp: Optional[paramiko.SFTPClient] = None
        self._file: Any = None
        self._pipe: Optional[StreamPipe] = None

    def __enter__(self) -> "UploadSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            self._set_state(SessionState.ERRORED)
            self.discard()
        self.close()

    def _set_state(self, state: SessionState) -> None:
        self.reporter.debug(f"SFTP session: {self.state.value} -> {state.value}")
        self.state = state

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            raise TransportError(
                f"Invalid SFTP session state '{self.state.value}' "
                f"(expected {', '.join(s.value for s in states)})"
            )

    def _fail(self, error: SftpArtifactError) -> SftpArtifactError:
        self._set_state(SessionState.ERRORED)
        return error

    def connect(self) -> None:
        """Open the SSH connection and authenticate."""
        self._require(SessionState.DISCONNECTED)
        self._set_state(SessionState.CONNECTING)

        dest = self.destination
        connect_kwargs: Dict[str, Any] = {
            "hostname": dest.server,
            "port": dest.port,
            "username": dest.user,
            "timeout": self.timeout,
            "banner_timeout": self.timeout,
            "auth_timeout": self.timeout,
            "allow_agent": False,
            "look_for_keys": False,
        }
        if dest.private_key:
            # The password doubles as the passphrase of an encrypted key
            try:
                connect_kwargs["pkey"] = load_private_key(
                    dest.private_key, dest.password
                )
            except AuthenticationError as e:
                raise self._fail(e)
        elif dest.password:
            connect_kwargs["password"] = dest.password

        self._client = self.client_factory()
        self._client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            self._client.connect(**connect_kwargs)
        except paramiko.AuthenticationException as e:
            raise self._fail(
                AuthenticationError(
                    f"Authentication failed for {dest.user}@{dest.server}: {e}"
                )
            ) from e
        except CONNECTION_ERRORS as e:
            raise self._fail(
                TransportError(f"Could not connect to {dest.server}:{dest.port}: {e}")
            ) from e

        self._set_state(SessionState.AUTHENTICATED)
        self.reporter.info("Established SSH tunnel to SFTP server")

    def open_subsystem(self) -> None:
        """Start the SFTP subsystem on the authenticated connection."""
        self._require(SessionState.AUTHENTICATED)
        try:
            self._sftp = self._client.open_sftp()
            channel = self._sftp.get_channel()
            if channel is not None:
                channel.settimeout(self.timeout)
        except CONNECTION_ERRORS as e:
            self._set_state(SessionState.ERRORED)
            self.close()
            raise SubsystemError(f"Could not open SFTP connection: {e}") from e
        self._set_state(SessionState.SUBSYSTEM_OPEN)

    def open_stream(self, remote_file: str) -> StreamPipe:
        """
        Create the parent directories of remote_file, open it for writing and
        return the pipe the archive should be written to.
        """
        self._require(SessionState.SUBSYSTEM_OPEN)
        remote_dir = posixpath.dirname(remote_file)
        try:
            if remote_dir:
                ensure_directory(self._sftp, remote_dir, self.reporter)
            self._file = self._sftp.open(remote_file, "wb")
            self._file.set_pipelined(True)
        except DirectoryCreationError as e:
            raise self._fail(e)
        except CONNECTION_ERRORS as e:
            raise self._fail(
                TransportError(f"Could not open remote file '{remote_file}': {e}")
            ) from e

        self.remote_file = remote_file
        self._pipe = StreamPipe(self._file)
        self._set_state(SessionState.STREAMING)
        return self._pipe

    def finalize(self) -> None:
        """Wait for every queued byte to reach the server, then close the file."""
        self._require(SessionState.STREAMING)
        self._set_state(SessionState.FINALIZING)
        try:
            self._pipe.close()
            # Closing a pipelined file waits for the outstanding write acks
            self._file.close()
        except TransportError as e:
            raise self._fail(e)
        except CONNECTION_ERRORS as e:
            raise self._fail(
                TransportError(f"Failed to finish writing '{self.remote_file}': {e}")
            ) from e
        self.bytes_sent = self._pipe.bytes_written
        self._file = None

    def discard(self) -> None:
        """Remove a partially written remote file."""
        if self._pipe is not None:
            self._pipe.abort()
        if self._file is None or self._sftp is None:
            return
        try:
            self._file.close()
            self._sftp.remove(self.remote_file)
            self.reporter.debug(f"Removed partial archive {self.remote_file}")
        except CONNECTION_ERRORS as e:
            self.reporter.warning(
                f"Could not remove partial archive '{self.remote_file}': {e}"
            )
        self._file = None

    def close(self) -> None:
        """Close the subsystem and the connection. Safe to call more than once."""
        if self._pipe is not None:
            self._pipe.abort()
        for resource in (self._file, self._sftp, self._client):
            if resource is None:
                continue
            try:
                resource.close()
            except CONNECTION_ERRORS as e:
                self.reporter.debug(f"Error while closing SFTP session: {e}")
        if self._client is not None:
            self.reporter.info("Closed SFTP connection")
        self._file = self._sftp = self._client = None
        if self.state != SessionState.ERRORED:
            self._set_state(SessionState.CLOSED)


def upload_sftp(
    request: UploadRequest,
    entries: List[ArchiveEntry],
    reporter: Optional[Reporter] = None,
    client_factory: Callable[[], Any] = paramiko.SSHClient,
) -> int:
    """
    Stream the archive of entries to request.remote_file over SFTP.

    Args:
        request: Validated upload request.
        entries: Files and their archive member names.
        reporter: Event sink.
        client_factory: Builds the SSH client.

    Returns:
        Number of archive bytes written to the server.
    """
    reporter = reporter or MemoryReporter()
    with UploadSession(
        request.destination, reporter, request.timeout, client_factory
    ) as session:
        session.connect()
        session.open_subsystem()
        pipe = session.open_stream(request.remote_file)
        create_archive(entries, pipe, request.compression_level, reporter)
        session.finalize()
    return session.bytes_sent
