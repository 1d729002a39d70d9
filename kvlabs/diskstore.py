"""On-disk storage of key/value shards, one file per key.

Each shard lives in its own directory ``shard-<n>`` under the store's root.
A key is kept in a file named ``key-`` followed by the base32 encoding of
the key, so keys may hold any characters, and file names stay distinct on
case-insensitive file systems. Writes go through a temporary file and a
rename, so a crash never leaves a half-written value.
"""

from __future__ import annotations

import base64
import os
import shutil
from pathlib import Path

__all__ = ["encode_key", "decode_key", "key2shard", "ShardStore"]

_KEY_PREFIX = "key-"
_TEMP_PREFIX = "temp-"


def encode_key(key: str) -> str:
    """File-name-safe base32 encoding of a key."""
    return base64.b32encode(key.encode()).decode("ascii")


def decode_key(filename: str) -> str:
    """Inverse of :func:`encode_key`; raises ValueError on a bad name."""
    return base64.b32decode(filename.encode("ascii")).decode()


def key2shard(key: str, nshards: int) -> int:
    """The shard a key belongs to: its first byte modulo ``nshards``."""
    data = key.encode()
    first = data[0] if data else 0
    return first % nshards


class ShardStore:
    """Key files for every shard, kept under one directory."""

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self.directory = Path(directory)

    def shard_dir(self, shard: int) -> Path:
        """The directory of a shard, created if it does not exist."""
        path = self.directory / f"shard-{shard}"
        path.mkdir(exist_ok=True)
        return path

    def get(self, shard: int, key: str) -> str:
        """Content of a key's file; raises FileNotFoundError if absent."""
        path = self.shard_dir(shard) / (_KEY_PREFIX + encode_key(key))
        return path.read_bytes().decode()

    def put(self, shard: int, key: str, content: str) -> None:
        """Replace the content of a key's file atomically."""
        directory = self.shard_dir(shard)
        encoded = encode_key(key)
        temp = directory / (_TEMP_PREFIX + encoded)
        temp.write_bytes(content.encode())
        os.replace(temp, directory / (_KEY_PREFIX + encoded))

    def read_shard(self, shard: int) -> dict[str, str]:
        """Every key in a shard with its content."""
        directory = self.shard_dir(shard)
        contents: dict[str, str] = {}
        for entry in directory.iterdir():
            if not entry.name.startswith(_KEY_PREFIX):
                continue
            try:
                key = decode_key(entry.name[len(_KEY_PREFIX):])
            except ValueError as exc:
                raise ValueError(f"bad file name {entry.name!r}") from exc
            contents[key] = entry.read_bytes().decode()
        return contents

    def replace_shard(self, shard: int, contents: dict[str, str]) -> None:
        """Discard a shard's files and store ``contents`` in their place."""
        shutil.rmtree(self.shard_dir(shard), ignore_errors=True)
        self.shard_dir(shard)
        for key, value in contents.items():
            self.put(shard, key, value)