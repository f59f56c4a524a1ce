import pytest

from src.core.errors import BackendCommandError
from src.core.store.memory import MemoryConnection, MemoryStore


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
async def connection(store: MemoryStore) -> MemoryConnection:
    connection = MemoryConnection(store, label="Test")
    await connection.connect()
    return connection


class TestMemoryStoreCommands:
    def test_set_get_use_protocol_shapes(self, store: MemoryStore) -> None:
        assert store.execute("SET", ["k", "v"]) == "OK"
        assert store.execute("GET", ["k"]) == b"v"
        assert store.execute("GET", ["missing"]) is None

    def test_set_nx_xx(self, store: MemoryStore) -> None:
        assert store.execute("SET", ["k", "1", "NX"]) == "OK"
        assert store.execute("SET", ["k", "2", "NX"]) is None
        assert store.execute("SET", ["other", "1", "XX"]) is None

    def test_set_with_expiry(self, store: MemoryStore) -> None:
        store.execute("SET", ["k", "v", "EX", 100])

        assert 0 < store.execute("TTL", ["k"]) <= 100

    def test_numbers_are_stored_as_text(self, store: MemoryStore) -> None:
        store.execute("SET", ["n", 10])

        assert store.execute("INCRBY", ["n", 5]) == 15
        assert store.execute("GET", ["n"]) == b"15"

    def test_incr_on_text_fails(self, store: MemoryStore) -> None:
        store.execute("SET", ["k", "abc"])

        with pytest.raises(BackendCommandError) as exc_info:
            store.execute("INCR", ["k"])

        assert exc_info.value.message.startswith("ERR value is not an integer")

    def test_wrong_type(self, store: MemoryStore) -> None:
        store.execute("LPUSH", ["list", "a"])

        with pytest.raises(BackendCommandError) as exc_info:
            store.execute("GET", ["list"])

        assert exc_info.value.message.startswith("WRONGTYPE")

    def test_hgetall_is_flat(self, store: MemoryStore) -> None:
        store.execute("HSET", ["h", "f1", "v1", "f2", "v2"])

        assert store.execute("HGETALL", ["h"]) == [b"f1", b"v1", b"f2", b"v2"]

    def test_lists(self, store: MemoryStore) -> None:
        store.execute("RPUSH", ["l", "a", "b", "c"])

        assert store.execute("LRANGE", ["l", 0, -1]) == [b"a", b"b", b"c"]
        assert store.execute("LPOP", ["l"]) == b"a"
        assert store.execute("LLEN", ["l"]) == 2

    def test_sets(self, store: MemoryStore) -> None:
        assert store.execute("SADD", ["s", "b", "a", "a"]) == 2
        assert store.execute("SMEMBERS", ["s"]) == [b"a", b"b"]

    def test_unknown_command(self, store: MemoryStore) -> None:
        with pytest.raises(BackendCommandError) as exc_info:
            store.execute("NOPE", ["x"])

        assert exc_info.value.message.startswith("ERR unknown command 'NOPE'")

    def test_wrong_number_of_arguments(self, store: MemoryStore) -> None:
        with pytest.raises(BackendCommandError) as exc_info:
            store.execute("GET", [])

        assert exc_info.value.message == "ERR wrong number of arguments for 'get' command"

    def test_too_many_arguments(self, store: MemoryStore) -> None:
        with pytest.raises(BackendCommandError) as exc_info:
            store.execute("GET", ["a", "b"])

        assert exc_info.value.message == "ERR wrong number of arguments for 'get' command"

    def test_variadic_commands_accept_many_arguments(self, store: MemoryStore) -> None:
        assert store.execute("DEL", ["a", "b", "c", "d"]) == 0

    def test_handler_bugs_are_not_reported_as_arity_errors(
        self, store: MemoryStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def broken_get(key: bytes) -> bytes:
            raise TypeError("unsupported operand")

        monkeypatch.setitem(store._handlers, "GET", (broken_get, 1))

        with pytest.raises(TypeError, match="unsupported operand"):
            store.execute("GET", ["k"])

    def test_del_exists_type(self, store: MemoryStore) -> None:
        store.execute("SET", ["a", "1"])
        store.execute("HSET", ["h", "f", "v"])

        assert store.execute("TYPE", ["h"]) == "hash"
        assert store.execute("EXISTS", ["a", "h", "x"]) == 2
        assert store.execute("DEL", ["a", "x"]) == 1
        assert store.execute("TYPE", ["a"]) == "none"


class TestMemoryConnection:
    async def test_connect_and_close(self, store: MemoryStore) -> None:
        connection = MemoryConnection(store)
        assert not connection.is_ready()

        await connection.connect()
        assert connection.is_ready()

        await connection.close()
        assert not connection.is_ready()

    async def test_call(self, connection: MemoryConnection) -> None:
        assert await connection.call("PING", []) == "PONG"

    async def test_pipeline_reports_each_outcome(self, connection: MemoryConnection) -> None:
        batch = connection.open_pipeline()
        batch.call("SET", ["k", "v"])
        batch.call("LPUSH", ["k", "x"])
        batch.call("GET", ["k"])

        reply = await batch.execute()

        assert len(reply) == 3
        assert reply[0] == (None, "OK")
        assert isinstance(reply[1][0], BackendCommandError)
        assert reply[2] == (None, b"v")

    async def test_transaction_with_unknown_command_is_discarded(
        self, connection: MemoryConnection, store: MemoryStore
    ) -> None:
        batch = connection.open_transaction()
        batch.call("SET", ["k", "v"])
        batch.call("NOPE", [])

        with pytest.raises(BackendCommandError) as exc_info:
            await batch.execute()

        assert exc_info.value.message.startswith("EXECABORT")
        assert store.execute("GET", ["k"]) is None

    async def test_connections_share_the_store(self, store: MemoryStore) -> None:
        first, second = MemoryConnection(store), MemoryConnection(store)

        await first.call("SET", ["shared", "1"])

        assert await second.call("GET", ["shared"]) == b"1"
