"""In-process RPC network that can drop, delay and cut connections.

A :class:`Network` holds client end-points and servers. A client end-point
is created with :meth:`Network.make_end`, attached to a server name with
:meth:`Network.connect` and switched on with :meth:`Network.enable`.
:meth:`ClientEnd.call` sends a request such as ``"Raft.append_entries"``
and returns the handler's reply, or raises :class:`RPCFailed` if the
request or reply was lost or the server is gone.

Arguments and replies are serialised with :mod:`pickle` on the way through,
so a handler never shares objects with its caller.

A :class:`Server` is a collection of :class:`Service` objects sharing one
end-point. A :class:`Service` wraps a receiver object: every public method
that takes exactly one argument is a handler, and its return value is the
reply.
"""

from __future__ import annotations

import pickle
import random
import threading
import time
from typing import Any, Callable, Hashable

__all__ = [
    "RPCFailed",
    "UnknownServiceError",
    "UnknownMethodError",
    "ClientEnd",
    "Network",
    "Server",
    "Service",
]

_POLL_INTERVAL = 0.1
_CO_VARARGS = 0x04


class RPCFailed(Exception):
    """The request or the reply was lost, or the server could not be reached."""


class UnknownServiceError(LookupError):
    """A request named a service that the server does not have."""


class UnknownMethodError(LookupError):
    """A request named a method that the service does not have."""


class ClientEnd:
    """A client end-point that sends requests to one server."""

    def __init__(self, network: "Network", endname: Hashable) -> None:
        self._network = network
        self.endname = endname

    def call(self, svc_meth: str, args: Any) -> Any:
        """Send an RPC and wait for the reply.

        Returns the handler's reply. Raises :class:`RPCFailed` if the server
        could not be contacted or the reply was lost.
        """
        payload = pickle.dumps(args)
        reply = self._network._process(self.endname, svc_meth, payload)
        return pickle.loads(reply)

    def __repr__(self) -> str:
        return f"ClientEnd({self.endname!r})"


class Network:
    """Holds the end-points, the servers and the wiring between them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reliable = True
        self._long_delays = False
        self._long_reordering = False
        self._ends: dict[Hashable, ClientEnd] = {}
        self._enabled: dict[Hashable, bool] = {}
        self._servers: dict[Hashable, Server | None] = {}
        self._connections: dict[Hashable, Hashable | None] = {}

    def set_reliable(self, yes: bool) -> None:
        """When not reliable, requests and replies are delayed and dropped."""
        with self._lock:
            self._reliable = yes

    def set_long_reordering(self, yes: bool) -> None:
        """Sometimes hold replies back for a long while."""
        with self._lock:
            self._long_reordering = yes

    def set_long_delays(self, yes: bool) -> None:
        """Pause a long time before failing a send on a disabled connection."""
        with self._lock:
            self._long_delays = yes

    def make_end(self, endname: Hashable) -> ClientEnd:
        """Create a client end-point; it starts disabled and unconnected."""
        with self._lock:
            if endname in self._ends:
                raise ValueError(f"end-point {endname!r} already exists")
            end = ClientEnd(self, endname)
            self._ends[endname] = end
            self._enabled[endname] = False
            self._connections[endname] = None
            return end

    def add_server(self, servername: Hashable, server: "Server") -> None:
        with self._lock:
            self._servers[servername] = server

    def delete_server(self, servername: Hashable) -> None:
        """Remove a server; calls waiting on it fail."""
        with self._lock:
            self._servers[servername] = None

    def connect(self, endname: Hashable, servername: Hashable) -> None:
        """Attach a client end-point to a server name."""
        with self._lock:
            self._connections[endname] = servername

    def enable(self, endname: Hashable, enabled: bool) -> None:
        with self._lock:
            self._enabled[endname] = enabled

    def get_count(self, servername: Hashable) -> int:
        """Number of requests the named server has received."""
        with self._lock:
            server = self._servers.get(servername)
        if server is None:
            raise KeyError(servername)
        return server.count

    def _read_endname_info(self, endname: Hashable):
        with self._lock:
            enabled = self._enabled.get(endname, False)
            servername = self._connections.get(endname)
            server = self._servers.get(servername) if servername is not None else None
            return enabled, servername, server, self._reliable, self._long_reordering

    def _is_server_dead(
        self, endname: Hashable, servername: Hashable, server: "Server"
    ) -> bool:
        with self._lock:
            return (
                not self._enabled.get(endname, False)
                or self._servers.get(servername) is not server
            )

    def _process(self, endname: Hashable, svc_meth: str, payload: bytes) -> bytes:
        enabled, servername, server, reliable, long_reordering = (
            self._read_endname_info(endname)
        )

        if not (enabled and servername is not None and server is not None):
            # Simulate no reply and an eventual timeout.
            with self._lock:
                long_delays = self._long_delays
            ms = random.randrange(7000) if long_delays else random.randrange(100)
            time.sleep(ms / 1000)
            raise RPCFailed(f"no connection from {endname!r}")

        if not reliable:
            time.sleep(random.randrange(27) / 1000)
            if random.randrange(1000) < 100:
                raise RPCFailed("request dropped")

        outcome: dict[str, Any] = {}
        done = threading.Event()

        def run() -> None:
            try:
                outcome["reply"] = server.dispatch(svc_meth, payload)
            except BaseException as exc:  # handed back to the caller
                outcome["error"] = exc
            finally:
                done.set()

        threading.Thread(target=run, daemon=True).start()

        # Wait for the handler, but give up if the server is deleted.
        while not done.wait(_POLL_INTERVAL):
            if self._is_server_dead(endname, servername, server):
                break

        # Never reply once the server has been deleted, even if the handler
        # finished: its effects may belong to a superseded instance.
        if not done.is_set() or self._is_server_dead(endname, servername, server):
            raise RPCFailed("server is gone")
        if "error" in outcome:
            raise outcome["error"]
        if not reliable and random.randrange(1000) < 100:
            raise RPCFailed("reply dropped")
        if long_reordering and random.randrange(900) < 600:
            ms = 200 + random.randrange(1 + random.randrange(2000))
            time.sleep(ms / 1000)
        return outcome["reply"]


class Server:
    """A collection of services sharing one end-point."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._services: dict[str, Service] = {}
        self._count = 0

    def add_service(self, service: "Service") -> None:
        with self._lock:
            self._services[service.name] = service

    @property
    def count(self) -> int:
        """Number of requests received."""
        with self._lock:
            return self._count

    def dispatch(self, svc_meth: str, payload: bytes) -> bytes:
        """Route a serialised request such as ``"Raft.vote"`` to its service."""
        with self._lock:
            self._count += 1
            service_name, dot, method_name = svc_meth.rpartition(".")
            service = self._services.get(service_name) if dot else None
            choices = sorted(self._services)
        if service is None:
            raise UnknownServiceError(
                f"unknown service {service_name!r} in {svc_meth!r}; "
                f"expecting one of {choices}"
            )
        return service.dispatch(method_name, payload)


def _is_handler(member: Any) -> bool:
    """True if ``member`` can be called with exactly one positional argument."""
    if not callable(member):
        return False
    func = getattr(member, "__func__", member)
    code = getattr(func, "__code__", None)
    if code is None:
        return False
    bound = getattr(member, "__self__", None) is not None
    positional = code.co_argcount - (1 if bound else 0)
    defaults = len(getattr(func, "__defaults__", None) or ())
    required = max(positional - defaults, 0)
    kwonly_defaults = getattr(func, "__kwdefaults__", None) or {}
    if code.co_kwonlyargcount > len(kwonly_defaults):
        return False
    takes_one = positional >= 1 or bool(code.co_flags & _CO_VARARGS)
    return takes_one and required <= 1


class Service:
    """An object whose one-argument public methods can be called by RPC."""

    def __init__(self, receiver: Any, name: str | None = None) -> None:
        self.receiver = receiver
        self.name = name if name is not None else type(receiver).__name__
        self._methods: dict[str, Callable[[Any], Any]] = {}
        for attr in dir(receiver):
            if attr.startswith("_"):
                continue
            member = getattr(receiver, attr, None)
            if _is_handler(member):
                self._methods[attr] = member

    @property
    def methods(self) -> list[str]:
        return sorted(self._methods)

    def dispatch(self, method_name: str, payload: bytes) -> bytes:
        """Decode the argument, run the handler and encode its reply."""
        method = self._methods.get(method_name)
        if method is None:
            raise UnknownMethodError(
                f"unknown method {method_name!r} in {self.name}; "
                f"expecting one of {self.methods}"
            )
        args = pickle.loads(payload)
        return pickle.dumps(method(args))