"""A lock service replicated on a primary and a backup server.

Servers listen on Unix-domain sockets and speak newline-delimited JSON:
a request is ``{"method": "LockServer.Lock", "args": {...}}`` and a reply
is ``{"reply": {...}}`` or ``{"error": "..."}``.

The primary forwards every operation to the backup before applying it, so
the backup can take over when the primary fails. Each client operation
carries a random request id. Both servers remember the reply given for
each id, so a request sent again to the backup after the primary failed
gets the same answer and is not applied twice.
"""

from __future__ import annotations

import contextlib
import enum
import json
import os
import secrets
import socket
import threading
from typing import Any

from kvlabs.labrpc import RPCFailed

__all__ = ["LockServer", "Clerk", "call", "start_server"]

# How long a dying primary holds a connection open before hanging up.
_DEAF_LINGER = 2.0
_ACCEPT_POLL = 0.1


class _Op(enum.Enum):
    LOCK = "Lock"
    UNLOCK = "Unlock"

    @property
    def rpcname(self) -> str:
        return f"LockServer.{self.value}"


_RPC_OPS = {op.rpcname: op for op in _Op}


def _nrand() -> int:
    return secrets.randbits(62)


def call(srv: str, rpcname: str, args: Any) -> Any:
    """Send one RPC to the server listening on socket path ``srv``.

    Returns the reply. Raises :class:`RPCFailed` if the server could not be
    contacted, hung up without replying, or reported an error.
    """
    request = json.dumps({"method": rpcname, "args": args}).encode() + b"\n"
    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.connect(srv)
            sock.sendall(request)
            with sock.makefile("rb") as reader:
                line = reader.readline()
    except OSError as exc:
        raise RPCFailed(f"{rpcname} to {srv}: {exc}") from exc
    if not line:
        raise RPCFailed(f"{rpcname} to {srv}: connection closed before reply")
    try:
        message = json.loads(line)
    except ValueError as exc:
        raise RPCFailed(f"{rpcname} to {srv}: malformed reply") from exc
    if "error" in message:
        raise RPCFailed(str(message["error"]))
    return message["reply"]


class Clerk:
    """Client side of the lock service; tries the primary, then the backup."""

    def __init__(self, primary: str, backup: str) -> None:
        self.servers = (primary, backup)

    def _request(self, op: _Op, lockname: str) -> bool:
        args = {"lockname": lockname, "request_id": _nrand()}
        for srv in self.servers:
            try:
                reply = call(srv, op.rpcname, args)
            except RPCFailed:
                continue
            return bool(reply["ok"])
        return False

    def lock(self, lockname: str) -> bool:
        """Ask for a lock; True if it was granted, False otherwise."""
        return self._request(_Op.LOCK, lockname)

    def unlock(self, lockname: str) -> bool:
        """Release a lock; True if it was held, False otherwise."""
        return self._request(_Op.UNLOCK, lockname)


class LockServer:
    """One replica of the lock service.

    Set :attr:`dying` to make the server accept one more connection, carry
    out its requests without replying, hang up two seconds later and die.
    """

    def __init__(self, primary: str, backup: str, am_primary: bool) -> None:
        self.primary = primary
        self.backup = backup
        self.am_primary = am_primary
        self.dead = False
        self.dying = False
        self._mu = threading.Lock()
        self._locks: dict[str, bool] = {}
        self._replies: dict[int, bool] = {}
        self._listener: socket.socket | None = None

    @property
    def me(self) -> str:
        """The socket path this server listens on."""
        return self.primary if self.am_primary else self.backup

    def lock(self, lockname: str) -> bool:
        """Take a lock; True if it was free."""
        return self._apply(_Op.LOCK, lockname, _nrand())

    def unlock(self, lockname: str) -> bool:
        """Release a lock; True if it was held."""
        return self._apply(_Op.UNLOCK, lockname, _nrand())

    def kill(self) -> None:
        """Stop accepting connections."""
        self.dead = True
        if self._listener is not None:
            self._listener.close()

    def _apply(self, op: _Op, lockname: str, request_id: int) -> bool:
        with self._mu:
            if request_id in self._replies:
                return self._replies[request_id]
            if self.am_primary:
                # A dead backup simply stops receiving updates.
                with contextlib.suppress(RPCFailed):
                    call(
                        self.backup,
                        op.rpcname,
                        {"lockname": lockname, "request_id": request_id},
                    )
            held = self._locks.get(lockname, False)
            if op is _Op.LOCK:
                ok = not held
                self._locks[lockname] = True
            else:
                ok = held
                self._locks[lockname] = False
            self._replies[request_id] = ok
            return ok

    def _handle(self, line: bytes) -> bytes:
        try:
            message = json.loads(line)
            method = message["method"]
            op = _RPC_OPS.get(method)
            if op is None:
                body: dict[str, Any] = {
                    "error": f"unknown method {method!r}; "
                    f"expecting one of {sorted(_RPC_OPS)}"
                }
            else:
                args = message["args"]
                ok = self._apply(op, str(args["lockname"]), int(args["request_id"]))
                body = {"reply": {"ok": ok}}
        except (ValueError, KeyError, TypeError) as exc:
            body = {"error": f"bad request: {exc!r}"}
        return json.dumps(body).encode() + b"\n"

    def _serve(self, conn: socket.socket, deaf: bool = False) -> None:
        with conn:
            try:
                with conn.makefile("rb") as reader:
                    for line in reader:
                        reply = self._handle(line)
                        if not deaf:
                            conn.sendall(reply)
            except OSError:
                pass

    def _listen(self) -> None:
        with contextlib.suppress(FileNotFoundError):
            os.remove(self.me)
        listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            listener.bind(self.me)
            listener.listen(128)
        except OSError:
            listener.close()
            raise
        listener.settimeout(_ACCEPT_POLL)
        self._listener = listener
        threading.Thread(
            target=self._accept_loop, name=f"LockServer({self.me})", daemon=True
        ).start()

    def _accept_loop(self) -> None:
        assert self._listener is not None
        while not self.dead:
            try:
                conn, _ = self._listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if not self.dead:
                    print(f"LockServer({self.me}) accept: {exc}")
                    self.kill()
                continue
            conn.settimeout(None)
            if self.dead:
                conn.close()
            elif self.dying:
                timer = threading.Timer(_DEAF_LINGER, _hang_up, args=(conn,))
                timer.daemon = True
                timer.start()
                self._listener.close()
                self._serve(conn, deaf=True)
                self.dead = True
            else:
                threading.Thread(target=self._serve, args=(conn,), daemon=True).start()


def _hang_up(conn: socket.socket) -> None:
    with contextlib.suppress(OSError):
        conn.shutdown(socket.SHUT_RDWR)


def start_server(primary: str, backup: str, am_primary: bool) -> LockServer:
    """Start a lock server listening on the primary's or the backup's socket."""
    server = LockServer(primary, backup, am_primary)
    server._listen()
    return server