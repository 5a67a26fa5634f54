"""Content-addressable object store for minigit.

Stores immutable zlib records named by SHA-1 in a prefix-sharded directory
structure compatible with git's loose objects (.git/objects/ab/cdef...).
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import BinaryIO

from minigit.errors import IoFailure, NotFound
from minigit.objects import Object

log = logging.getLogger("minigit.store")

_DIGEST_RE = re.compile(r"[0-9a-f]{40}")

RECORD_MODE = 0o444


class ObjectStore:
    """Manages the loose object directory on disk.

    The root directory is expected to exist already; creating it is the
    repository's job (see ``Repository.init``).
    """

    TEMP_PREFIX = "tmp_obj_"

    def __init__(self, objects_dir: Path) -> None:
        self.objects_dir = Path(objects_dir)

    def object_path(self, obj_hash: str) -> Path:
        """Return the filesystem path for a given object hash.

        Uses 2-char prefix sharding: objects/b6/fc4c620b67d95f953a5c1c1230aaab5db5a1b0
        """
        return self.objects_dir / obj_hash[:2] / obj_hash[2:]

    def exists(self, obj_hash: str) -> bool:
        return self.object_path(obj_hash).exists()

    def open_record(self, obj_hash: str) -> BinaryIO:
        """Open the compressed record for ``obj_hash`` for reading."""
        if not _DIGEST_RE.fullmatch(obj_hash):
            raise NotFound(obj_hash, "not a valid object name")
        path = self.object_path(obj_hash)
        try:
            return open(path, "rb")
        except FileNotFoundError as exc:
            raise NotFound(obj_hash) from exc
        except OSError as exc:
            raise IoFailure("open object", path, exc) from exc

    def create_temp(self) -> tuple[BinaryIO, Path]:
        """Create a uniquely named temporary file in the store root."""
        try:
            fd, name = tempfile.mkstemp(dir=self.objects_dir, prefix=self.TEMP_PREFIX)
        except OSError as exc:
            raise IoFailure("create temporary object file", self.objects_dir, exc) from exc
        return os.fdopen(fd, "wb"), Path(name)

    def place(self, tmp_path: Path, obj_hash: str) -> Path:
        """Atomically move a finished temp file to its content-derived path."""
        obj_path = self.object_path(obj_hash)
        try:
            # another writer may create the shard first
            obj_path.parent.mkdir(exist_ok=True)
        except OSError as exc:
            raise IoFailure("create shard directory", obj_path.parent, exc) from exc
        try:
            os.replace(tmp_path, obj_path)
        except OSError as exc:
            raise IoFailure("move object into place", obj_path, exc) from exc
        return obj_path

    def write_object_sync(self, obj: Object) -> bytes:
        """Store ``obj`` as an immutable record. Returns the 20-byte digest.

        Identical content converges on the same path; rewriting it replaces
        the record with identical bytes.
        """
        out, tmp_path = self.create_temp()
        try:
            try:
                with out:
                    digest = obj.write(out)
                    out.flush()
                    os.fsync(out.fileno())
                # loose objects are read-only and world-readable, as git writes them
                os.chmod(tmp_path, RECORD_MODE)
            except OSError as exc:
                raise IoFailure("write temporary object file", tmp_path, exc) from exc
            obj_path = self.place(tmp_path, digest.hex())
        except BaseException:
            # Clean up temp file on any failure
            tmp_path.unlink(missing_ok=True)
            raise
        log.debug(
            "stored %s %s (%d bytes) at %s", obj.kind, digest.hex(), obj.expected_size, obj_path
        )
        return digest

    def read_object_sync(self, obj_hash: str) -> Object:
        """Open the object named by ``obj_hash``.

        The payload is decompressed lazily as the caller reads it; close the
        returned object (or use it as a context manager) when done.
        """
        obj = Object.decode(self.open_record(obj_hash), obj_hash)
        log.debug("opened %s %s (%d bytes)", obj.kind, obj_hash, obj.expected_size)
        return obj

    async def write_object(self, obj: Object) -> bytes:
        """Store ``obj`` without blocking the event loop (trio worker thread)."""
        import trio

        return await trio.to_thread.run_sync(self.write_object_sync, obj)

    async def read_object(self, obj_hash: str) -> Object:
        """Async version of read_object_sync(), using a trio worker thread."""
        import trio

        return await trio.to_thread.run_sync(self.read_object_sync, obj_hash)
