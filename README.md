# kvlabs

Small, self-contained pieces for experimenting with fault-tolerant key/value
services in Python. No third-party libraries are needed. The lock service
uses Unix-domain sockets, so it runs on POSIX systems only.

## What is inside

- `kvlabs.labrpc` is an in-process simulated RPC network. A `Network` holds
  named client ends (`ClientEnd`) and servers (`Server`). Each server carries
  one or more `Service` objects, and every public method of a service's
  receiver that takes one argument answers calls such as
  `"JunkServer.Handler2"`.
  - `make_end()` creates an end. An end starts disabled and unconnected. The
    same name cannot be used twice (`ValueError`).
  - `connect()` attaches an end to a server name, and `enable()` switches it
    on or off.
  - `delete_server()` removes a server. Any call still waiting on that server
    then fails.
  - `set_reliable(False)` makes the network delay and drop requests and
    replies. `set_long_delays()` and `set_long_reordering()` add longer pauses.
  - `get_count()` reports how many requests a server has received.

  Arguments and replies are pickled on the way through. `ClientEnd.call()`
  returns the handler's return value. It raises `RPCFailed` when the request
  or the reply was lost, or when the server could not be reached. It raises
  `UnknownServiceError` or `UnknownMethodError` when a name does not match,
  and it passes on any exception the handler raises.
- `kvlabs.lockservice` is a lock service replicated on a primary and a backup.
  - `start_server(primary, backup, am_primary)` starts a `LockServer`. The
    server listens on the primary's or the backup's socket path and speaks
    newline-delimited JSON.
  - The primary forwards each operation to the backup before applying it.
  - Each request carries a random id, and both servers remember the answer
    given to it. A request sent again to the backup after the primary failed
    therefore gets the same answer and is not applied twice.
  - `Clerk(primary, backup)` has `lock()` and `unlock()`. Each tries the
    primary, then the backup, and returns whether the lock was granted or was
    held. It returns `False` if neither server answers.
  - `call(srv, rpcname, args)` sends a single request and returns the reply.
  - `LockServer.kill()` stops a server.
  - Setting `LockServer.dying = True` makes the server handle one more
    connection without replying, hang up two seconds later and die.
- `kvlabs.lockcli` holds the `lockd` and `lockc` commands, described below.
- `kvlabs.kvtypes` defines the request and reply records for Get, Put and
  Append (`GetArgs`, `GetReply`, `PutAppendArgs`, `PutAppendReply`) and the
  `Err` codes `OK`, `ErrNoKey` and `ErrWrongGroup`.
- `kvlabs.diskstore` provides `ShardStore`, which keeps one directory per shard
  and one file per key. File names are the base32 encoding of the key, and
  values are replaced through a temporary file and a rename. The module also
  provides `encode_key`, `decode_key` and `key2shard(key, nshards)`, which
  returns the first byte of the key modulo `nshards`.

## Installing

```
pip install .
```

## Example: simulated RPC

```python
from kvlabs.labrpc import Network, Server, Service

class Echo:
    def Shout(self, text):
        return text.upper()

net = Network()
end = net.make_end("client-1")
server = Server()
server.add_service(Service(Echo()))
net.add_server("server-1", server)
net.connect("client-1", "server-1")
net.enable("client-1", True)

print(end.call("Echo.Shout", "hello"))   # HELLO
print(net.get_count("server-1"))         # 1
```

## Example: on-disk shards

```python
from kvlabs.diskstore import ShardStore, key2shard

store = ShardStore("/tmp/store")
shard = key2shard("a", 10)
store.put(shard, "a", "x")
print(store.get(shard, "a"))      # x
print(store.read_shard(shard))    # {'a': 'x'}
```

## Lock service from the command line

Start a primary and a backup, each on its own socket path:

```
lockd -p /tmp/lock-a /tmp/lock-b &
lockd -b /tmp/lock-a /tmp/lock-b &
```

`lockd` runs until its server dies.

Then take and release a lock:

```
lockc -l /tmp/lock-a /tmp/lock-b lx
lockc -u /tmp/lock-a /tmp/lock-b lx
```

Each `lockc` run prints `reply: true` or `reply: false`. Either command prints
its usage and exits with status 1 when given the wrong arguments.

## What it does not do

There is no key/value server or client here. `kvtypes` and `diskstore` supply
the request records and the shard storage, but the package does not contain
the following:

- a replicated Get/Put/Append service
- a shard-assignment service
- a consensus log

## Running the tests

```
pip install .[test]
pytest
```