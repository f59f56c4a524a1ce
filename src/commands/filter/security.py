import hmac
import logging
import re
from urllib.parse import urlsplit, urlunsplit

logger = logging.getLogger(__name__)

# Commands blocked by default. They can destroy data, reconfigure the
# server, run arbitrary code, stop the server, copy data to other hosts,
# disrupt cluster or client state, or enumerate the whole keyspace.
DANGEROUS_COMMANDS = frozenset(
    [
        # Data destruction
        "FLUSHALL",
        "FLUSHDB",
        # Server configuration
        "CONFIG",
        "ACL",
        "BGREWRITEAOF",
        "BGSAVE",
        "SAVE",
        # Scripting
        "EVAL",
        "EVALSHA",
        "EVALSHA_RO",
        "EVAL_RO",
        "SCRIPT",
        "FUNCTION",
        "FCALL",
        "FCALL_RO",
        # Module loading
        "MODULE",
        # Server control
        "SHUTDOWN",
        "DEBUG",
        "SLOWLOG",
        # Replication
        "SLAVEOF",
        "REPLICAOF",
        "MIGRATE",
        "RESTORE",
        "DUMP",
        # Cluster manipulation
        "CLUSTER",
        "READONLY",
        "READWRITE",
        # Client manipulation
        "CLIENT",
        # Key enumeration and introspection
        "KEYS",
        "OBJECT",
        "MEMORY",
        # Pub/Sub management
        "PUNSUBSCRIBE",
        "UNSUBSCRIBE",
        "LATENCY",
        "MONITOR",
    ]
)

# Commands permitted in allowlist mode
SAFE_COMMANDS = frozenset(
    [
        # String
        "GET", "SET", "SETNX", "SETEX", "PSETEX", "MGET", "MSET", "MSETNX",
        "INCR", "INCRBY", "INCRBYFLOAT", "DECR", "DECRBY", "APPEND", "STRLEN",
        "GETRANGE", "SETRANGE", "GETSET", "GETEX", "GETDEL",
        # Hash
        "HGET", "HSET", "HSETNX", "HMGET", "HMSET", "HGETALL", "HDEL",
        "HEXISTS", "HINCRBY", "HINCRBYFLOAT", "HKEYS", "HVALS", "HLEN",
        "HSCAN", "HRANDFIELD",
        # List
        "LPUSH", "RPUSH", "LPUSHX", "RPUSHX", "LPOP", "RPOP", "LRANGE",
        "LLEN", "LINDEX", "LSET", "LINSERT", "LREM", "LTRIM", "BLPOP",
        "BRPOP", "LPOS", "LMOVE", "BLMOVE",
        # Set
        "SADD", "SREM", "SMEMBERS", "SISMEMBER", "SMISMEMBER", "SCARD",
        "SUNION", "SINTER", "SDIFF", "SUNIONSTORE", "SINTERSTORE",
        "SDIFFSTORE", "SPOP", "SRANDMEMBER", "SMOVE", "SSCAN", "SINTERCARD",
        # Sorted set
        "ZADD", "ZREM", "ZRANGE", "ZRANGEBYSCORE", "ZRANGEBYLEX", "ZREVRANGE",
        "ZREVRANGEBYSCORE", "ZREVRANGEBYLEX", "ZSCORE", "ZMSCORE", "ZCARD",
        "ZCOUNT", "ZLEXCOUNT", "ZINCRBY", "ZRANK", "ZREVRANK", "ZUNIONSTORE",
        "ZINTERSTORE", "ZSCAN", "ZPOPMIN", "ZPOPMAX", "BZPOPMIN", "BZPOPMAX",
        "ZRANDMEMBER", "ZRANGESTORE", "ZMPOP", "BZMPOP", "ZINTER", "ZUNION",
        "ZDIFF", "ZDIFFSTORE", "ZINTERCARD",
        # Keys
        "DEL", "UNLINK", "EXISTS", "EXPIRE", "EXPIREAT", "PEXPIRE",
        "PEXPIREAT", "EXPIRETIME", "PEXPIRETIME", "TTL", "PTTL", "PERSIST",
        "TYPE", "RENAME", "RENAMENX", "SCAN", "SORT", "SORT_RO", "TOUCH",
        "COPY",
        # Server info (read-only)
        "PING", "ECHO", "INFO", "DBSIZE", "TIME",
        # Transactions
        "MULTI", "EXEC", "DISCARD", "WATCH", "UNWATCH",
        # Pub/Sub publishing
        "PUBLISH", "PUBSUB",
        # Streams
        "XADD", "XREAD", "XRANGE", "XREVRANGE", "XLEN", "XTRIM", "XDEL",
        "XGROUP", "XREADGROUP", "XACK", "XCLAIM", "XAUTOCLAIM", "XPENDING",
        "XINFO", "XSETID",
        # HyperLogLog
        "PFADD", "PFCOUNT", "PFMERGE",
        # Geo
        "GEOADD", "GEODIST", "GEOHASH", "GEOPOS", "GEORADIUS",
        "GEORADIUSBYMEMBER", "GEOSEARCH", "GEOSEARCHSTORE",
        # Bitmap
        "SETBIT", "GETBIT", "BITCOUNT", "BITOP", "BITPOS", "BITFIELD",
        "BITFIELD_RO",
        # RedisJSON
        "JSON.GET", "JSON.SET", "JSON.DEL", "JSON.MGET", "JSON.TYPE",
        "JSON.NUMINCRBY", "JSON.STRAPPEND", "JSON.STRLEN", "JSON.ARRAPPEND",
        "JSON.ARRINDEX", "JSON.ARRINSERT", "JSON.ARRLEN", "JSON.ARRPOP",
        "JSON.ARRTRIM", "JSON.OBJKEYS", "JSON.OBJLEN",
    ]
)


def is_dangerous_command(command: str) -> bool:
    """Check whether a command is in the builtin dangerous set"""
    return command.upper() in DANGEROUS_COMMANDS


def is_safe_command(command: str) -> bool:
    """Check whether a command is in the builtin safe set"""
    return command.upper() in SAFE_COMMANDS


def secure_compare(a: str, b: str) -> bool:
    """Constant-time string comparison for credentials"""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def mask_redis_url(url: str) -> str:
    """
    Mask credentials in a store URL so it can be logged.

    The password is always replaced; a username other than "default" is
    replaced as well.
    """
    try:
        parts = urlsplit(url)
        if not parts.hostname:
            raise ValueError(f"no host in {url}")
        username, password = parts.username, parts.password
        if username is None and password is None:
            return url

        masked_user = username or ""
        if masked_user and masked_user != "default":
            masked_user = "****"
        userinfo = masked_user
        if password is not None:
            userinfo = f"{masked_user}:****"

        host = parts.hostname
        if ":" in host:
            host = f"[{host}]"
        netloc = f"{userinfo}@{host}"
        if parts.port is not None:
            netloc += f":{parts.port}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
    except ValueError:
        masked = re.sub(r"//([^:@/]+):([^@]+)@", "//****:****@", url)
        return re.sub(r":([^@/:]+)@", ":****@", masked)
