import fnmatch
import inspect
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

from src.commands.interfaces.command import Arg
from src.core.errors import BackendCommandError
from src.core.store.interface import BatchReply, StoreBatch, StoreConnection

logger = logging.getLogger(__name__)

OK = "OK"
WRONGTYPE = "WRONGTYPE Operation against a key holding the wrong kind of value"
NOT_INTEGER = "ERR value is not an integer or out of range"
SYNTAX_ERROR = "ERR syntax error"
EXECABORT = "EXECABORT Transaction discarded because of previous errors."


def _to_bytes(arg: Arg) -> bytes:
    if isinstance(arg, bytes):
        return arg
    if isinstance(arg, str):
        return arg.encode("utf-8")
    if isinstance(arg, bool):
        return b"1" if arg else b"0"
    if isinstance(arg, (int, float)):
        return str(arg).encode("ascii")
    raise BackendCommandError(
        f"ERR invalid argument type {type(arg).__name__}, convert to bytes, string, int or float first"
    )


def _positional_limit(handler: Callable[..., Any]) -> Optional[int]:
    """Most positional args a handler takes, None when variadic"""
    params = inspect.signature(handler).parameters.values()
    if any(p.kind == inspect.Parameter.VAR_POSITIONAL for p in params):
        return None
    return len(params)


def _to_int(raw: bytes) -> int:
    try:
        return int(raw)
    except ValueError:
        raise BackendCommandError(NOT_INTEGER)


class MemoryStore:
    """
    In-process key-value store speaking a subset of Redis commands.

    Used for development and tests where no Redis server is available.
    Replies follow the raw protocol shapes: bulk strings are bytes, status
    replies are text ("OK", "PONG"), integers are ints and nil is None.
    """

    def __init__(self) -> None:
        self._data: Dict[bytes, Any] = {}
        self._expires: Dict[bytes, float] = {}
        self._handlers: Dict[str, Tuple[Callable[..., Any], int]] = {
            # name: (handler, minimum arg count)
            "PING": (self._ping, 0),
            "ECHO": (self._echo, 1),
            "GET": (self._get, 1),
            "SET": (self._set, 2),
            "SETNX": (self._setnx, 2),
            "GETDEL": (self._getdel, 1),
            "MGET": (self._mget, 1),
            "MSET": (self._mset, 2),
            "INCR": (self._incr, 1),
            "INCRBY": (self._incrby, 2),
            "DECR": (self._decr, 1),
            "DECRBY": (self._decrby, 2),
            "APPEND": (self._append, 2),
            "STRLEN": (self._strlen, 1),
            "DEL": (self._del, 1),
            "EXISTS": (self._exists, 1),
            "TYPE": (self._type, 1),
            "EXPIRE": (self._expire, 2),
            "TTL": (self._ttl, 1),
            "PERSIST": (self._persist, 1),
            "HSET": (self._hset, 3),
            "HGET": (self._hget, 2),
            "HGETALL": (self._hgetall, 1),
            "HDEL": (self._hdel, 2),
            "HLEN": (self._hlen, 1),
            "HEXISTS": (self._hexists, 2),
            "LPUSH": (self._lpush, 2),
            "RPUSH": (self._rpush, 2),
            "LPOP": (self._lpop, 1),
            "RPOP": (self._rpop, 1),
            "LRANGE": (self._lrange, 3),
            "LLEN": (self._llen, 1),
            "SADD": (self._sadd, 2),
            "SREM": (self._srem, 2),
            "SMEMBERS": (self._smembers, 1),
            "SISMEMBER": (self._sismember, 2),
            "SCARD": (self._scard, 1),
            "DBSIZE": (self._dbsize, 0),
            "KEYS": (self._keys, 1),
            "FLUSHDB": (self._flush, 0),
            "FLUSHALL": (self._flush, 0),
        }
        self._max_args = {
            name: _positional_limit(handler) for name, (handler, _) in self._handlers.items()
        }

    def supports(self, name: str) -> bool:
        return name.upper() in self._handlers

    def execute(self, name: str, args: Sequence[Arg]) -> Any:
        """Run one command synchronously"""
        cmd = name.upper()
        if cmd not in self._handlers:
            rendered = " ".join(f"'{a}'" for a in args)
            raise BackendCommandError(
                f"ERR unknown command '{name}', with args beginning with: {rendered}".rstrip()
            )
        handler, min_args = self._handlers[cmd]
        max_args = self._max_args[cmd]
        if len(args) < min_args or (max_args is not None and len(args) > max_args):
            raise BackendCommandError(
                f"ERR wrong number of arguments for '{name.lower()}' command"
            )
        encoded = [_to_bytes(arg) for arg in args]
        return handler(*encoded)

    # Keyspace helpers

    def _purge_expired(self, key: bytes) -> None:
        deadline = self._expires.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self._data.pop(key, None)
            self._expires.pop(key, None)

    def _lookup(self, key: bytes, expected: type) -> Any:
        self._purge_expired(key)
        value = self._data.get(key)
        if value is not None and not isinstance(value, expected):
            raise BackendCommandError(WRONGTYPE)
        return value

    def _store(self, key: bytes, value: Any) -> None:
        self._data[key] = value
        self._expires.pop(key, None)

    # Server

    def _ping(self, *args: bytes) -> Any:
        return args[0] if args else "PONG"

    def _echo(self, message: bytes) -> bytes:
        return message

    def _dbsize(self) -> int:
        for key in list(self._data):
            self._purge_expired(key)
        return len(self._data)

    def _keys(self, pattern: bytes) -> List[bytes]:
        for key in list(self._data):
            self._purge_expired(key)
        glob = pattern.decode("utf-8", "replace")
        return sorted(
            key
            for key in self._data
            if fnmatch.fnmatchcase(key.decode("utf-8", "replace"), glob)
        )

    def _flush(self, *args: bytes) -> str:
        self._data.clear()
        self._expires.clear()
        return OK

    # Strings

    def _get(self, key: bytes) -> Optional[bytes]:
        return self._lookup(key, bytes)

    def _set(self, key: bytes, value: bytes, *options: bytes) -> Optional[str]:
        ttl: Optional[float] = None
        nx = xx = False
        i = 0
        while i < len(options):
            option = options[i].upper()
            if option in (b"EX", b"PX") and i + 1 < len(options):
                amount = _to_int(options[i + 1])
                if amount <= 0:
                    raise BackendCommandError("ERR invalid expire time in 'set' command")
                ttl = amount if option == b"EX" else amount / 1000.0
                i += 2
            elif option == b"NX":
                nx = True
                i += 1
            elif option == b"XX":
                xx = True
                i += 1
            else:
                raise BackendCommandError(SYNTAX_ERROR)
        if nx and xx:
            raise BackendCommandError(SYNTAX_ERROR)

        self._purge_expired(key)
        exists = key in self._data
        if (nx and exists) or (xx and not exists):
            return None

        self._store(key, value)
        if ttl is not None:
            self._expires[key] = time.monotonic() + ttl
        return OK

    def _setnx(self, key: bytes, value: bytes) -> int:
        return 1 if self._set(key, value, b"NX") == OK else 0

    def _getdel(self, key: bytes) -> Optional[bytes]:
        value = self._lookup(key, bytes)
        if value is not None:
            self._data.pop(key, None)
            self._expires.pop(key, None)
        return value

    def _mget(self, *keys: bytes) -> List[Optional[bytes]]:
        replies: List[Optional[bytes]] = []
        for key in keys:
            self._purge_expired(key)
            value = self._data.get(key)
            replies.append(value if isinstance(value, bytes) else None)
        return replies

    def _mset(self, *pairs: bytes) -> str:
        if len(pairs) % 2 != 0:
            raise BackendCommandError("ERR wrong number of arguments for 'mset' command")
        for key, value in zip(pairs[::2], pairs[1::2]):
            self._store(key, value)
        return OK

    def _incrby(self, key: bytes, amount: bytes) -> int:
        current = self._lookup(key, bytes)
        result = (_to_int(current) if current is not None else 0) + _to_int(amount)
        deadline = self._expires.get(key)
        self._data[key] = str(result).encode("ascii")
        if deadline is not None:
            self._expires[key] = deadline
        return result

    def _incr(self, key: bytes) -> int:
        return self._incrby(key, b"1")

    def _decr(self, key: bytes) -> int:
        return self._incrby(key, b"-1")

    def _decrby(self, key: bytes, amount: bytes) -> int:
        return self._incrby(key, str(-_to_int(amount)).encode("ascii"))

    def _append(self, key: bytes, value: bytes) -> int:
        current = self._lookup(key, bytes) or b""
        self._data[key] = current + value
        return len(current) + len(value)

    def _strlen(self, key: bytes) -> int:
        value = self._lookup(key, bytes)
        return len(value) if value is not None else 0

    # Keys

    def _del(self, *keys: bytes) -> int:
        removed = 0
        for key in keys:
            self._purge_expired(key)
            if self._data.pop(key, None) is not None:
                removed += 1
            self._expires.pop(key, None)
        return removed

    def _exists(self, *keys: bytes) -> int:
        count = 0
        for key in keys:
            self._purge_expired(key)
            if key in self._data:
                count += 1
        return count

    def _type(self, key: bytes) -> str:
        self._purge_expired(key)
        value = self._data.get(key)
        if value is None:
            return "none"
        if isinstance(value, bytes):
            return "string"
        if isinstance(value, dict):
            return "hash"
        if isinstance(value, list):
            return "list"
        return "set"

    def _expire(self, key: bytes, seconds: bytes) -> int:
        self._purge_expired(key)
        if key not in self._data:
            return 0
        amount = _to_int(seconds)
        if amount <= 0:
            self._del(key)
        else:
            self._expires[key] = time.monotonic() + amount
        return 1

    def _ttl(self, key: bytes) -> int:
        self._purge_expired(key)
        if key not in self._data:
            return -2
        deadline = self._expires.get(key)
        if deadline is None:
            return -1
        return max(0, round(deadline - time.monotonic()))

    def _persist(self, key: bytes) -> int:
        self._purge_expired(key)
        if key in self._data and key in self._expires:
            del self._expires[key]
            return 1
        return 0

    # Hashes

    def _hset(self, key: bytes, *pairs: bytes) -> int:
        if len(pairs) % 2 != 0:
            raise BackendCommandError("ERR wrong number of arguments for 'hset' command")
        current = self._lookup(key, dict)
        if current is None:
            current = {}
            self._data[key] = current
        added = 0
        for field, value in zip(pairs[::2], pairs[1::2]):
            if field not in current:
                added += 1
            current[field] = value
        return added

    def _hget(self, key: bytes, field: bytes) -> Optional[bytes]:
        current = self._lookup(key, dict)
        return current.get(field) if current else None

    def _hgetall(self, key: bytes) -> List[bytes]:
        current = self._lookup(key, dict) or {}
        flat: List[bytes] = []
        for field, value in current.items():
            flat.extend([field, value])
        return flat

    def _hdel(self, key: bytes, *fields: bytes) -> int:
        current = self._lookup(key, dict)
        if not current:
            return 0
        removed = sum(1 for field in fields if current.pop(field, None) is not None)
        if not current:
            self._data.pop(key, None)
        return removed

    def _hlen(self, key: bytes) -> int:
        return len(self._lookup(key, dict) or {})

    def _hexists(self, key: bytes, field: bytes) -> int:
        return 1 if field in (self._lookup(key, dict) or {}) else 0

    # Lists

    def _list_for_write(self, key: bytes) -> List[bytes]:
        current = self._lookup(key, list)
        if current is None:
            current = []
            self._data[key] = current
        return current

    def _lpush(self, key: bytes, *values: bytes) -> int:
        current = self._list_for_write(key)
        for value in values:
            current.insert(0, value)
        return len(current)

    def _rpush(self, key: bytes, *values: bytes) -> int:
        current = self._list_for_write(key)
        current.extend(values)
        return len(current)

    def _pop(self, key: bytes, index: int) -> Optional[bytes]:
        current = self._lookup(key, list)
        if not current:
            return None
        value = current.pop(index)
        if not current:
            self._data.pop(key, None)
        return value

    def _lpop(self, key: bytes) -> Optional[bytes]:
        return self._pop(key, 0)

    def _rpop(self, key: bytes) -> Optional[bytes]:
        return self._pop(key, -1)

    def _lrange(self, key: bytes, start: bytes, stop: bytes) -> List[bytes]:
        current = self._lookup(key, list) or []
        length = len(current)
        first, last = _to_int(start), _to_int(stop)
        if first < 0:
            first = max(length + first, 0)
        if last < 0:
            last = length + last
        return current[first : last + 1] if first <= last else []

    def _llen(self, key: bytes) -> int:
        return len(self._lookup(key, list) or [])

    # Sets

    def _sadd(self, key: bytes, *members: bytes) -> int:
        current = self._lookup(key, set)
        if current is None:
            current = set()
            self._data[key] = current
        before = len(current)
        current.update(members)
        return len(current) - before

    def _srem(self, key: bytes, *members: bytes) -> int:
        current: Optional[Set[bytes]] = self._lookup(key, set)
        if not current:
            return 0
        removed = sum(1 for member in members if member in current)
        current.difference_update(members)
        if not current:
            self._data.pop(key, None)
        return removed

    def _smembers(self, key: bytes) -> List[bytes]:
        return sorted(self._lookup(key, set) or set())

    def _sismember(self, key: bytes, member: bytes) -> int:
        return 1 if member in (self._lookup(key, set) or set()) else 0

    def _scard(self, key: bytes) -> int:
        return len(self._lookup(key, set) or set())


class MemoryBatch(StoreBatch):
    """Pipeline or MULTI/EXEC batch against a MemoryStore"""

    def __init__(self, store: MemoryStore, atomic: bool):
        self._store = store
        self._atomic = atomic
        self._queued: List[Tuple[str, List[Arg]]] = []

    def call(self, name: str, args: Sequence[Arg]) -> None:
        self._queued.append((name, list(args)))

    def __len__(self) -> int:
        return len(self._queued)

    async def execute(self) -> Optional[BatchReply]:
        # Unknown commands are rejected at queue time by Redis, discarding the whole transaction
        if self._atomic and any(not self._store.supports(name) for name, _ in self._queued):
            raise BackendCommandError(EXECABORT)

        replies: BatchReply = []
        for name, args in self._queued:
            try:
                replies.append((None, self._store.execute(name, args)))
            except BackendCommandError as e:
                replies.append((e, None))
        return replies


class MemoryConnection(StoreConnection):
    """Connection handle onto a shared MemoryStore"""

    def __init__(self, store: MemoryStore, label: str = "Memory"):
        super().__init__(label)
        self._store = store
        self._ready = False

    @property
    def store(self) -> MemoryStore:
        return self._store

    async def connect(self) -> None:
        self._ready = True
        logger.debug(f"[{self.label}] Connected")

    def is_ready(self) -> bool:
        return self._ready

    async def call(self, name: str, args: Sequence[Arg]) -> Any:
        return self._store.execute(name, args)

    def open_pipeline(self) -> StoreBatch:
        return MemoryBatch(self._store, atomic=False)

    def open_transaction(self) -> StoreBatch:
        return MemoryBatch(self._store, atomic=True)

    async def close(self) -> None:
        self._ready = False
        logger.debug(f"[{self.label}] Connection closed")
