"""Command-line entry points for the lock service.

``lockd -p|-b primaryport backupport`` runs a primary or backup server.
``lockc -l|-u primaryport backupport lockname`` locks or unlocks a lock.
"""

from __future__ import annotations

import sys
import time

from kvlabs.lockservice import Clerk, start_server

__all__ = ["lockd_main", "lockc_main"]

_LOCKD_USAGE = "Usage: lockd -p|-b primaryport backupport"
_LOCKC_USAGE = "Usage: lockc -l|-u primaryport backupport lockname"


def _usage(text: str) -> None:
    print(text)
    raise SystemExit(1)


def lockd_main(argv: list[str] | None = None) -> None:
    """Run a lock server until it dies."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) == 3 and args[0] in ("-p", "-b"):
        server = start_server(args[1], args[2], args[0] == "-p")
    else:
        _usage(_LOCKD_USAGE)
        return
    while not server.dead:
        time.sleep(0.5)


def lockc_main(argv: list[str] | None = None) -> None:
    """Send one Lock or Unlock request and print the reply."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 4:
        _usage(_LOCKC_USAGE)
        return
    flag, primary, backup, lockname = args
    ck = Clerk(primary, backup)
    if flag == "-l":
        ok = ck.lock(lockname)
    elif flag == "-u":
        ok = ck.unlock(lockname)
    else:
        _usage(_LOCKC_USAGE)
        return
    print(f"reply: {str(ok).lower()}")