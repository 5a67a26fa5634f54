"""Commit records: assembling commit text and storing it as a commit object."""

import os
from collections.abc import Mapping
from datetime import datetime
from typing import NamedTuple

from minigit.codec import Kind
from minigit.object_store import ObjectStore
from minigit.objects import Object

DEFAULT_NAME = "minigit"
DEFAULT_EMAIL = "minigit@localhost"


class Identity(NamedTuple):
    name: str
    email: str


def commit_identity(env: Mapping[str, str] = os.environ) -> Identity:
    """Author identity from $NAME and $EMAIL, or the default identity."""
    name = env.get("NAME")
    email = env.get("EMAIL")
    if name and email:
        return Identity(name, email)
    return Identity(DEFAULT_NAME, DEFAULT_EMAIL)


def _format_offset(when: datetime) -> str:
    offset = when.utcoffset()
    minutes = int(offset.total_seconds() // 60) if offset is not None else 0
    sign = "-" if minutes < 0 else "+"
    hours, minutes = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}{minutes:02d}"


def build_commit(
    tree_hash: str,
    parent_hash: str | None,
    message: str,
    identity: Identity,
    when: datetime | None = None,
) -> str:
    if when is None:
        when = datetime.now().astimezone()
    signature = f"{identity.name} <{identity.email}> {int(when.timestamp())} {_format_offset(when)}"

    lines = [f"tree {tree_hash}"]
    if parent_hash:
        lines.append(f"parent {parent_hash}")
    lines.append(f"author {signature}")
    lines.append(f"committer {signature}")
    lines.append("")
    lines.append(message if message.endswith("\n") else message + "\n")
    return "\n".join(lines)


def write_commit(
    store: ObjectStore,
    tree_hash: str,
    parent_hash: str | None,
    message: str,
    identity: Identity | None = None,
    when: datetime | None = None,
) -> bytes:
    """Store a commit object and return its digest."""
    text = build_commit(tree_hash, parent_hash, message, identity or commit_identity(), when)
    return Object.from_bytes(Kind.COMMIT, text.encode("utf-8")).write_to_store(store)
