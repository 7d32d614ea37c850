"""
Streaming zip archive builder.

Entries are compressed straight into a ByteSink. The sink is never seeked:
zipfile falls back to data descriptors, so the output can go to a socket.
"""

import zipfile
import zlib
from typing import List, NamedTuple, Optional

from sftpartifact.errors import ArchiveError, ConfigurationError
from sftpartifact.pipe import ByteSink
from sftpartifact.report import MemoryReporter, Reporter
from sftpartifact.search import SearchResult
from sftpartifact.utils import member_name

READ_CHUNK_SIZE = 64 * 1024


class ArchiveEntry(NamedTuple):
    source_path: str
    member_name: str


def build_entries(result: SearchResult) -> List[ArchiveEntry]:
    """Pair every discovered file with its name inside the archive."""
    root_dir = str(result.root_dir)
    return [
        ArchiveEntry(str(path), member_name(str(path), root_dir))
        for path in result.files_to_upload
    ]


class ArchiveBuilder:
    """
    Writes a zip archive incrementally.

    Call add() for each entry, then finalize() exactly once to write the
    central directory. Any read or compression error raises ArchiveError and
    leaves the archive unusable.
    """

    def __init__(
        self,
        sink: ByteSink,
        compression_level: int,
        reporter: Optional[Reporter] = None,
    ) -> None:
        if not 0 <= compression_level <= 9:
            raise ConfigurationError(
                f"Invalid compression level {compression_level}. Valid values are 0-9"
            )
        self.reporter = reporter or MemoryReporter()
        self.compression_level = compression_level
        self.entries_written = 0
        self.finalized = False
        self._zip = zipfile.ZipFile(
            sink,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=compression_level,
            allowZip64=True,
        )

    def add(self, source_path: str, name: str) -> None:
        """Compress one file into the archive under the given member name."""
        if self.finalized:
            raise ArchiveError("Archive already finalized")

        try:
            info = zipfile.ZipInfo.from_file(
                source_path, arcname=name, strict_timestamps=False
            )
            info.compress_type = zipfile.ZIP_DEFLATED
            # ZipFile.open() does not apply the archive-wide level to a ZipInfo.
            # Python 3.13 renamed the private _compresslevel to compress_level.
            if hasattr(info, "compress_level"):
                info.compress_level = self.compression_level
            else:
                info._compresslevel = self.compression_level
            expected = info.file_size
            copied = 0
            with open(source_path, "rb") as src, self._zip.open(info, mode="w") as dest:
                while True:
                    chunk = src.read(READ_CHUNK_SIZE)
                    if not chunk:
                        break
                    dest.write(chunk)
                    copied += len(chunk)
        except (OSError, zlib.error, zipfile.LargeZipFile, RuntimeError) as e:
            raise ArchiveError(f"Failed to add '{source_path}' to archive: {e}") from e

        if copied != expected:
            self.reporter.warning(
                f"Warning while zipping the artifact: '{source_path}' changed size "
                f"while being read ({expected} -> {copied} bytes)"
            )
        self.entries_written += 1
        self.reporter.debug(f"Added {name} ({copied} bytes)")

    def add_entries(self, entries: List[ArchiveEntry]) -> None:
        for entry in entries:
            self.add(entry.source_path, entry.member_name)

    def finalize(self) -> None:
        """Write the central directory. Must be called exactly once."""
        if self.finalized:
            raise ArchiveError("Archive already finalized")
        self.finalized = True
        try:
            self._zip.close()
        except (OSError, zlib.error) as e:
            raise ArchiveError(f"Failed to finalize archive: {e}") from e
        self.reporter.debug("Finished zipping the artifact")


def create_archive(
    entries: List[ArchiveEntry],
    sink: ByteSink,
    compression_level: int,
    reporter: Optional[Reporter] = None,
) -> int:
    """
    Write all entries to sink as one zip archive.

    Returns:
        Number of entries written.
    """
    builder = ArchiveBuilder(sink, compression_level, reporter)
    builder.add_entries(entries)
    builder.finalize()
    return builder.entries_written

