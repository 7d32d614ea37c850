"""
Byte sinks and the bounded pipe between the archive writer and the network.

The archive writer produces bytes on the calling thread; a consumer thread
drains them into the destination sink. The queue between them is bounded, so
a slow sink blocks the producer instead of letting the archive pile up in
memory.
"""

from queue import Empty, Full, Queue
from threading import Event, Thread
from typing import Optional, Protocol

from sftpartifact.errors import TransportError

DEFAULT_CHUNK_SIZE = 32 * 1024
DEFAULT_MAX_CHUNKS = 16


class ByteSink(Protocol):
    """Anything bytes can be written to: local files, SFTP file handles."""

    def write(self, data: bytes) -> int: ...

    def flush(self) -> None: ...

    def close(self) -> None: ...


class FileSink:
    """ByteSink backed by a local file."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._file = open(path, "wb")

    def write(self, data: bytes) -> int:
        return self._file.write(data)

    def flush(self) -> None:
        self._file.flush()

    def close(self) -> None:
        self._file.close()


class StreamPipe:
    """
    Bounded producer/consumer pipe.

    write() and flush() are called by the producer; a background thread
    forwards chunks to the sink in order. The pipe has no tell() or seek(),
    so zipfile writes it as an unseekable stream.

    Args:
        sink: Destination ByteSink. The pipe never closes it.
        chunk_size: Bytes accumulated before a chunk is queued.
        max_chunks: Queue capacity; producers block when it is full.
    """

    def __init__(
        self,
        sink: ByteSink,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_chunks: int = DEFAULT_MAX_CHUNKS,
    ) -> None:
        self.sink = sink
        self.chunk_size = chunk_size
        self.bytes_written = 0
        self._buffer = bytearray()
        self._queue: Queue = Queue(maxsize=max_chunks)
        self._error: Optional[BaseException] = None
        self._stopped = Event()
        self._closed = False
        self._aborted = False
        self._thread = Thread(target=self._drain, name="sftpartifact-pipe", daemon=True)
        self._thread.start()

    def _drain(self) -> None:
        while True:
            chunk = self._queue.get()
            if chunk is None:
                return
            if self._stopped.is_set():
                continue
            try:
                self.sink.write(chunk)
            except Exception as e:
                self._error = e
                self._stopped.set()
                return
            self.bytes_written += len(chunk)

    def _check(self) -> None:
        if self._error is not None:
            raise TransportError(f"Write stream failed: {self._error}") from self._error
        if self._stopped.is_set():
            raise TransportError("Write stream was aborted")

    def _put(self, chunk: Optional[bytes]) -> None:
        while True:
            self._check()
            try:
                self._queue.put(chunk, timeout=0.1)
                return
            except Full:
                continue

    def write(self, data: bytes) -> int:
        if self._aborted:
            return len(data)
        if self._closed:
            raise ValueError("write to closed pipe")
        self._check()
        self._buffer += data
        while len(self._buffer) >= self.chunk_size:
            self._put(bytes(self._buffer[: self.chunk_size]))
            del self._buffer[: self.chunk_size]
        return len(data)

    def flush(self) -> None:
        if self._buffer and not self._aborted:
            self._put(bytes(self._buffer))
            self._buffer.clear()

    def close(self) -> None:
        """Push the remaining bytes and wait until the sink received them all."""
        if self._closed:
            return
        self._closed = True
        try:
            self.flush()
            self._put(None)
        finally:
            if self._error is not None or self._stopped.is_set():
                self._wake()
            self._thread.join()
        self._check()

    def abort(self) -> None:
        """Stop the consumer. Queued and later writes are discarded."""
        self._closed = True
        self._aborted = True
        self._stopped.set()
        self._buffer.clear()
        self._wake()
        self._thread.join()

    def _wake(self) -> None:
        # Make room for the sentinel so the consumer can exit.
        while True:
            try:
                self._queue.get_nowait()
            except Empty:
                break
        try:
            self._queue.put_nowait(None)
        except Full:
            pass
