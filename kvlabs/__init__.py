"""Simulated RPC network, primary/backup lock service, key/value request types and on-disk shard storage."""

__version__ = "0.1.0"
__all__ = ["labrpc", "lockservice", "lockcli", "kvtypes", "diskstore"]