"""Tree records: hashing a directory into tree objects and listing them back."""

import logging
import os
import re
import stat
from pathlib import Path
from typing import NamedTuple

from minigit.codec import Kind
from minigit.errors import IoFailure, MalformedTree
from minigit.object_store import ObjectStore
from minigit.objects import Object

log = logging.getLogger("minigit.tree")

MODE_FILE = "100644"
MODE_EXECUTABLE = "100755"
MODE_SYMLINK = "120000"
MODE_TREE = "40000"

DIGEST_SIZE = 20

_MODE_RE = re.compile(rb"[0-7]+")


class TreeEntry(NamedTuple):
    mode: str
    name: str
    digest: bytes

    @property
    def kind(self) -> Kind:
        return Kind.TREE if self.mode == MODE_TREE else Kind.BLOB

    @property
    def hex(self) -> str:
        return self.digest.hex()


def _sort_key(entry: TreeEntry) -> bytes:
    # git compares directory names as if they ended in "/"
    name = os.fsencode(entry.name)
    return name + b"/" if entry.mode == MODE_TREE else name


def encode_tree(entries: list[TreeEntry]) -> bytes:
    return b"".join(
        entry.mode.encode("ascii") + b" " + os.fsencode(entry.name) + b"\0" + entry.digest
        for entry in sorted(entries, key=_sort_key)
    )


def parse_tree(payload: bytes) -> list[TreeEntry]:
    """Decode a tree payload into its entries, in stored order."""
    entries = []
    pos = 0
    while pos < len(payload):
        space = payload.find(b" ", pos)
        nul = payload.find(b"\0", space + 1) if space >= 0 else -1
        if nul < 0 or nul + 1 + DIGEST_SIZE > len(payload):
            raise MalformedTree("truncated tree entry", pos)
        if not _MODE_RE.fullmatch(payload[pos:space]):
            raise MalformedTree("invalid tree entry mode", payload[pos:space])
        mode = payload[pos:space].decode("ascii")
        name = os.fsdecode(payload[space + 1 : nul])
        digest = payload[nul + 1 : nul + 1 + DIGEST_SIZE]
        entries.append(TreeEntry(mode, name, digest))
        pos = nul + 1 + DIGEST_SIZE
    return entries


def format_entry(entry: TreeEntry, name_only: bool = False) -> str:
    """Render an entry the way ``ls-tree`` prints it."""
    if name_only:
        return entry.name
    return f"{int(entry.mode):06d} {entry.kind} {entry.hex}\t{entry.name}"


def write_tree_for(
    path: Path, store: ObjectStore, ignore: frozenset[str] = frozenset({".git"})
) -> bytes | None:
    """Store ``path`` recursively as tree and blob objects.

    Returns the root tree digest, or None for a directory with nothing to
    record. Empty subdirectories are left out of their parent.
    """
    entries = []
    try:
        children = list(path.iterdir())
    except OSError as exc:
        raise IoFailure("list directory", path, exc) from exc
    for child in children:
        if child.name in ignore:
            continue
        try:
            st = child.lstat()
            target = os.fsencode(os.readlink(child)) if stat.S_ISLNK(st.st_mode) else None
        except OSError as exc:
            raise IoFailure("inspect worktree entry", child, exc) from exc
        if target is not None:
            digest = Object.from_bytes(Kind.BLOB, target).write_to_store(store)
            mode = MODE_SYMLINK
        elif stat.S_ISDIR(st.st_mode):
            digest = write_tree_for(child, store, ignore)
            if digest is None:
                continue
            mode = MODE_TREE
        elif stat.S_ISREG(st.st_mode):
            with Object.blob_from_file(child) as obj:
                digest = obj.write_to_store(store)
            mode = MODE_EXECUTABLE if st.st_mode & stat.S_IXUSR else MODE_FILE
        else:
            log.debug("skipping special file %s", child)
            continue
        entries.append(TreeEntry(mode, child.name, digest))

    if not entries:
        return None
    digest = Object.from_bytes(Kind.TREE, encode_tree(entries)).write_to_store(store)
    log.debug("tree %s for %s (%d entries)", digest.hex(), path, len(entries))
    return digest
