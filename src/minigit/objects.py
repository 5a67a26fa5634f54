"""The Object payload abstraction: a kind, a declared size and a byte source."""

import io
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from minigit.codec import (
    CHUNK_SIZE,
    BoundedReader,
    HashWriter,
    Kind,
    ZlibReader,
    ZlibWriter,
    read_header,
    write_header,
)
from minigit.errors import IoFailure, SizeMismatch

if TYPE_CHECKING:
    from minigit.object_store import ObjectStore


@dataclass
class Object:
    """A single object on its way into or out of the store.

    ``expected_size`` must match what ``reader`` yields. Writes do not check
    this: a lying size ends up verbatim in the header, and the digest covers
    whatever bytes were actually streamed.
    """

    kind: Kind
    expected_size: int
    reader: BinaryIO

    @classmethod
    def blob_from_file(cls, path: Path | str) -> "Object":
        path = Path(path)
        try:
            size = path.stat().st_size
            # the file may still change between stat and streaming
            reader = open(path, "rb")
        except OSError as exc:
            raise IoFailure("open blob source", path, exc) from exc
        return cls(Kind.BLOB, size, reader)

    @classmethod
    def from_bytes(cls, kind: Kind, data: bytes) -> "Object":
        return cls(kind, len(data), io.BytesIO(data))

    @classmethod
    def decode(cls, stream: BinaryIO, name: object = None) -> "Object":
        """Decode a compressed record read from ``stream``.

        The returned object's reader decompresses lazily and is bounded to
        the declared size. ``name`` only labels errors.
        """
        decompressed = io.BufferedReader(ZlibReader(stream, name), CHUNK_SIZE)
        try:
            kind, size = read_header(decompressed)
        except BaseException:
            decompressed.close()
            raise
        return cls(kind, size, BoundedReader(decompressed, size))

    def write(self, destination: BinaryIO) -> bytes:
        """Stream ``header || payload`` compressed into ``destination``.

        Returns the 20-byte SHA-1 of the uncompressed stream.
        """
        writer = HashWriter(ZlibWriter(destination))
        write_header(writer, self.kind, self.expected_size)
        while True:
            try:
                chunk = self.reader.read(CHUNK_SIZE)
            except OSError as exc:
                source = getattr(self.reader, "name", f"<{self.kind} payload>")
                raise IoFailure("read payload source", str(source), exc) from exc
            if not chunk:
                break
            writer.write_all(chunk)
        return writer.finish()

    def write_to_store(self, store: "ObjectStore") -> bytes:
        return store.write_object_sync(self)

    def read_all(self) -> bytes:
        """Drain the payload, checking it against the declared size."""
        data = self.reader.read()
        if len(data) != self.expected_size:
            raise SizeMismatch(self.expected_size, len(data), self.kind.value)
        return data

    def close(self) -> None:
        close = getattr(self.reader, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "Object":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
