"""
Error taxonomy for sftpartifact.

Every error raised by the upload pipeline derives from SftpArtifactError, a
click.ClickException, so the CLI prints a single message and exits with 1.
"""

import click


class SftpArtifactError(click.ClickException):
    """Base class for all upload failures."""

    exit_code = 1


class ConfigurationError(SftpArtifactError):
    """Invalid input (compression level, no-files policy, method...)."""


class NoFilesFoundError(SftpArtifactError):
    """The search path matched no files and the policy is 'error'."""


class ArchiveError(SftpArtifactError):
    """A source file could not be read or compressed."""


class TransportError(SftpArtifactError):
    """Connection-level failure (reset, timeout, protocol error)."""


class AuthenticationError(TransportError):
    """The server rejected the supplied credentials."""


class SubsystemError(TransportError):
    """The SFTP subsystem could not be opened on the connection."""


class DirectoryCreationError(SftpArtifactError):
    """A remote directory segment could not be created."""


class InvalidArgumentError(ValueError):
    """A function was called in violation of its contract."""
