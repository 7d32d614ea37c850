"""
Upload configuration for sftpartifact.

Turns raw string inputs (CLI options or GitHub Actions INPUT_* variables)
into a validated, immutable UploadRequest, and derives the default server
path from the CI run metadata.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

from sftpartifact.errors import ConfigurationError

DEFAULT_ARTIFACT_NAME = "artifact"
DEFAULT_COMPRESSION_LEVEL = 6
DEFAULT_PORT = 22
DEFAULT_TIMEOUT = 60
SUPPORTED_METHODS = ("SFTP",)


class NoFilesPolicy(str, Enum):
    """What to do when the search path matches nothing."""

    WARN = "warn"
    ERROR = "error"
    IGNORE = "ignore"


@dataclass(frozen=True)
class Destination:
    """Where and how to connect."""

    server: str
    user: str
    remote_path: str
    password: str = field(default="", repr=False)
    private_key: str = field(default="", repr=False)
    port: int = DEFAULT_PORT


@dataclass(frozen=True)
class UploadRequest:
    """A fully validated upload. Construction fails fast on bad values."""

    artifact_name: str
    search_path: str
    destination: Destination
    if_no_files_found: NoFilesPolicy = NoFilesPolicy.WARN
    compression_level: int = DEFAULT_COMPRESSION_LEVEL
    include_hidden_files: bool = False
    method: str = "SFTP"
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        if not self.artifact_name:
            raise ConfigurationError("Artifact name must not be empty")
        if not self.search_path.strip():
            raise ConfigurationError("A search path is required")
        if isinstance(self.compression_level, bool) or not isinstance(
            self.compression_level, int
        ):
            raise ConfigurationError("Invalid compression-level")
        if not 0 <= self.compression_level <= 9:
            raise ConfigurationError(
                "Invalid compression level. Valid values are 0-9"
            )
        if not isinstance(self.if_no_files_found, NoFilesPolicy):
            raise ConfigurationError(
                f"Unrecognized 'if-no-files-found' input: {self.if_no_files_found}"
            )

    @property
    def remote_file(self) -> str:
        """Full remote path of the archive."""
        base = self.destination.remote_path.rstrip("/")
        if not base:
            return (
                f"/{self.artifact_name}"
                if self.destination.remote_path.startswith("/")
                else self.artifact_name
            )
        return f"{base}/{self.artifact_name}"


def parse_compression_level(value: Optional[str]) -> int:
    """Parse the compression-level input; empty means the default."""
    if value is None or str(value).strip() == "":
        return DEFAULT_COMPRESSION_LEVEL
    try:
        level = int(str(value).strip())
    except ValueError:
        raise ConfigurationError(f"Invalid compression-level: {value!r}")
    if not 0 <= level <= 9:
        raise ConfigurationError("Invalid compression level. Valid values are 0-9")
    return level


def parse_no_files_policy(value: Optional[str]) -> NoFilesPolicy:
    if value is None or value.strip() == "":
        return NoFilesPolicy.WARN
    try:
        return NoFilesPolicy(value.strip().lower())
    except ValueError:
        valid = ", ".join(p.value for p in NoFilesPolicy)
        raise ConfigurationError(
            f"Unrecognized 'if-no-files-found' input: {value}. Provide one of: {valid}"
        )


def parse_bool(value, name: str) -> bool:
    """
    Parse a YAML 1.2 core-schema boolean, as GitHub Actions inputs are.

    Args:
        value: Raw input (str or bool).
        name: Input name, used in the error message.

    Returns:
        Parsed boolean; an empty value is False.
    """
    if isinstance(value, bool):
        return value
    if value is None or value.strip() == "":
        return False
    if value.strip() in ("true", "True", "TRUE"):
        return True
    if value.strip() in ("false", "False", "FALSE"):
        return False
    raise ConfigurationError(
        f"Input does not meet YAML 1.2 'Core Schema' specification: {name}"
    )


def workflow_path_part(workflow: str) -> str:
    """
    Shorten a workflow identifier to something usable as a path segment.

    When the workflow looks like a file path, only the .yml/.yaml file name is
    kept; a path without such a segment yields an empty string.
    """
    if "/" not in workflow:
        return workflow
    for part in workflow.split("/"):
        if "yaml" in part or "yml" in part:
            return part
    return ""


def default_server_path(env: Mapping[str, str], server_root: str = "") -> str:
    """
    Build the default server path from GitHub Actions run metadata.

    Joins with '/' the non-empty values of: server_root, repository, ref name,
    short commit SHA (omitted for tags), workflow and job.

    Args:
        env: Environment mapping (usually os.environ).
        server_root: Optional prefix directory on the server.

    Returns:
        The synthesized server path.
    """
    sha_part = env.get("GITHUB_SHA", "")[:7]
    if env.get("GITHUB_REF_TYPE") == "tag":
        sha_part = ""

    parts = [
        server_root,
        env.get("GITHUB_REPOSITORY", ""),
        env.get("GITHUB_REF_NAME", ""),
        sha_part,
        workflow_path_part(env.get("GITHUB_WORKFLOW", "")),
        env.get("GITHUB_JOB", ""),
    ]
    return "/".join(part for part in parts if part)


def build_request(
    *,
    name: Optional[str],
    path: Optional[str],
    server: Optional[str],
    user: Optional[str],
    if_no_files_found: Optional[str] = None,
    compression_level: Optional[str] = None,
    include_hidden_files=None,
    method: Optional[str] = None,
    password: Optional[str] = None,
    private_key: Optional[str] = None,
    server_path: Optional[str] = None,
    server_root: Optional[str] = None,
    port: int = DEFAULT_PORT,
    timeout: float = DEFAULT_TIMEOUT,
    env: Optional[Mapping[str, str]] = None,
) -> UploadRequest:
    """
    Validate raw inputs and build an UploadRequest.

    All validation happens here, before any filesystem or network activity.

    Raises:
        ConfigurationError: On any invalid or missing input.
    """
    if not path or not path.strip():
        raise ConfigurationError("Input required and not supplied: path")
    if not server:
        raise ConfigurationError("Input required and not supplied: server")
    if not user:
        raise ConfigurationError("Input required and not supplied: user")

    method = (method or "SFTP").strip().upper()
    if method not in SUPPORTED_METHODS:
        raise ConfigurationError(
            f"Unsupported method '{method}'. Supported: {', '.join(SUPPORTED_METHODS)}"
        )

    level = parse_compression_level(compression_level)
    policy = parse_no_files_policy(if_no_files_found)
    include_hidden = parse_bool(include_hidden_files, "include-hidden-files")

    if not server_path:
        server_path = default_server_path(env or {}, server_root or "")

    destination = Destination(
        server=server,
        user=user,
        remote_path=server_path,
        password=password or "",
        private_key=private_key or "",
        port=port,
    )
    return UploadRequest(
        artifact_name=name or DEFAULT_ARTIFACT_NAME,
        search_path=path,
        destination=destination,
        if_no_files_found=policy,
        compression_level=level,
        include_hidden_files=include_hidden,
        method=method,
        timeout=timeout,
    )
