"""Record framing for minigit objects.

A record is the zlib stream of ``"<kind> <size>\\0" || payload``; its name is
the SHA-1 of those same bytes before compression. The writers here hash and
compress in a single pass, the readers decompress lazily and stop at the
declared payload size.
"""

import hashlib
import io
import re
import zlib
from enum import Enum
from typing import BinaryIO

from minigit.errors import CorruptStream, MalformedHeader, UnknownKind

CHUNK_SIZE = 64 * 1024

# "commit " + 20 digits + NUL fits comfortably
MAX_HEADER_LENGTH = 64

_SIZE_RE = re.compile(r"[0-9]+")


class Kind(Enum):
    """The closed set of object kinds; the value is the on-disk header name."""

    BLOB = "blob"
    TREE = "tree"
    COMMIT = "commit"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_name(cls, name: str) -> "Kind":
        try:
            return cls(name)
        except ValueError:
            raise UnknownKind("unknown object kind", name) from None


def encode_header(kind: Kind, size: int) -> bytes:
    """Render the ``"<kind> <size>\\0"`` header."""
    return f"{kind.value} {size}\0".encode("ascii")


def write_header(writer: "HashWriter", kind: Kind, size: int) -> None:
    writer.write_all(encode_header(kind, size))


def read_header(reader: BinaryIO) -> tuple[Kind, int]:
    """Parse a header from an already-decompressed buffered reader.

    Consumes bytes up to and including the first NUL and nothing more, so the
    reader is left positioned at the first payload byte.
    """
    raw = bytearray()
    while len(raw) < MAX_HEADER_LENGTH:
        byte = reader.read(1)
        if not byte:
            raise MalformedHeader("record ended inside header", bytes(raw))
        if byte == b"\0":
            break
        raw += byte
    else:
        raise MalformedHeader(f"no header terminator within {MAX_HEADER_LENGTH} bytes", bytes(raw))

    try:
        header = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedHeader("header is not valid utf-8", bytes(raw)) from exc

    name, sep, size_text = header.partition(" ")
    if not sep:
        raise MalformedHeader("header has no size field", header)
    kind = Kind.from_name(name)
    if not _SIZE_RE.fullmatch(size_text):
        raise MalformedHeader("header has invalid size", header)
    return kind, int(size_text)


class NullSink:
    """Accepts and discards everything written to it."""

    def write(self, data: bytes) -> int:
        return len(data)

    def flush(self) -> None:
        pass


class ZlibWriter:
    """Compresses everything written to it into ``sink``."""

    def __init__(self, sink: BinaryIO, level: int = zlib.Z_DEFAULT_COMPRESSION) -> None:
        self._sink = sink
        self._compressor = zlib.compressobj(level)

    def write(self, data: bytes) -> int:
        compressed = self._compressor.compress(data)
        if compressed:
            self._sink.write(compressed)
        return len(data)

    def flush(self) -> None:
        self._sink.write(self._compressor.flush(zlib.Z_SYNC_FLUSH))
        self._sink.flush()

    def finish(self) -> None:
        self._sink.write(self._compressor.flush(zlib.Z_FINISH))
        self._sink.flush()


class HashWriter:
    """Feeds the bytes its writer accepts into a running SHA-1.

    The digest covers the uncompressed stream, counted by what the wrapped
    writer reports as accepted rather than what the caller offered.
    """

    def __init__(self, writer) -> None:
        self._writer = writer
        self._hasher = hashlib.sha1()

    def write(self, data: bytes) -> int:
        n = self._writer.write(data)
        if n is None:
            n = len(data)
        self._hasher.update(memoryview(data)[:n])
        return n

    def write_all(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            n = self.write(view)
            if n <= 0:
                raise OSError("writer accepted no bytes")
            view = view[n:]

    def flush(self) -> None:
        self._writer.flush()

    def finish(self) -> bytes:
        """Finalise the wrapped writer, then return the 20-byte digest."""
        finish = getattr(self._writer, "finish", None)
        if finish is not None:
            finish()
        return self._hasher.digest()


class ZlibReader(io.RawIOBase):
    """Incrementally decompresses a zlib stream read from ``raw``."""

    def __init__(self, raw: BinaryIO, name: object = None) -> None:
        self._raw = raw
        self._name = name
        self._decompressor = zlib.decompressobj()
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._pending:
            if self._decompressor.eof:
                return 0
            data = self._decompressor.unconsumed_tail
            if not data:
                data = self._raw.read(CHUNK_SIZE)
                if not data:
                    raise CorruptStream("record is truncated", self._name)
            try:
                self._pending = self._decompressor.decompress(data, CHUNK_SIZE)
            except zlib.error as exc:
                raise CorruptStream(f"cannot decompress record ({exc})", self._name) from exc
        n = min(len(buffer), len(self._pending))
        buffer[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n

    def close(self) -> None:
        if not self.closed:
            self._raw.close()
        super().close()


class BoundedReader(io.RawIOBase):
    """Yields at most ``size`` bytes of ``inner``, then end-of-stream."""

    def __init__(self, inner: BinaryIO, size: int) -> None:
        self._inner = inner
        self.remaining = size

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self.remaining <= 0:
            return 0
        view = memoryview(buffer)[: self.remaining]
        n = self._inner.readinto(view) or 0
        self.remaining -= n
        return n

    def close(self) -> None:
        if not self.closed:
            self._inner.close()
        super().close()
