"""Request and reply types shared by the key/value services."""

from __future__ import annotations

import enum
from dataclasses import dataclass

__all__ = ["Err", "PutAppendArgs", "PutAppendReply", "GetArgs", "GetReply"]


class Err(str, enum.Enum):
    """Outcome of a key/value request."""

    OK = "OK"
    NO_KEY = "ErrNoKey"
    WRONG_GROUP = "ErrWrongGroup"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PutAppendArgs:
    """A Put or Append request; ``op`` is ``"Put"`` or ``"Append"``."""

    key: str
    value: str
    op: str


@dataclass(frozen=True)
class PutAppendReply:
    """Reply to a Put or Append request."""

    err: Err = Err.OK
    wrong_leader: bool = False


@dataclass(frozen=True)
class GetArgs:
    """A Get request."""

    key: str


@dataclass(frozen=True)
class GetReply:
    """Reply to a Get request; ``value`` is empty when the key is absent."""

    err: Err = Err.OK
    value: str = ""
    wrong_leader: bool = False