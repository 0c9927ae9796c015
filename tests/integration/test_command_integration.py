"""Integration tests for the command surface against a real server.

These tests drive a ValkeyClient over list, geo, function and scripting
commands and check the typed replies.

Run with: VALKEY_HOSTNAME=localhost pytest tests/integration -v

Requires Valkey (or Redis 7+) listening on port 6379 of VALKEY_HOSTNAME.
"""

import asyncio

import pytest

from valkeywire import (
    ByRadius,
    ByteReader,
    ClientConfiguration,
    FromLonLat,
    GeoCoordinates,
    GeoMember,
    GeoUnit,
    HostnameAddress,
    ListWhere,
    ServerError,
    ValkeyClient,
)
from valkeywire.testing import run_client, with_key

pytestmark = [
    pytest.mark.integration,
    pytest.mark.valkey,
]

LIBRARY_NAME = "_valkey_wire_tests"

LIBRARY_CODE = f"""#!lua name={LIBRARY_NAME}

local function test_get(keys, args)
    return redis.call("GET", keys[1])
end

local function test_set(keys, args)
    return redis.call("SET", keys[1], args[1])
end

redis.register_function('valkey_wire_test_set', test_set)
redis.register_function('valkey_wire_test_get', test_get)
"""


@pytest.fixture
def client(valkey_hostname) -> ValkeyClient:
    return ValkeyClient(
        HostnameAddress(valkey_hostname, 6379),
        ClientConfiguration(connect_timeout=2.0, command_timeout=5.0),
        name="integration",
    )


@pytest.mark.asyncio
async def test_role(client):
    """Test that the test server is a primary."""

    async def operation(c):
        return await c.role()

    role = await run_client(client, operation)
    assert role.kind == "primary"
    assert role.replication_offset is not None


@pytest.mark.asyncio
async def test_lmpop(client):
    """Test popping from the first non-empty list, with and without COUNT."""

    async def operation(c):
        async with with_key(c) as key, with_key(c) as key2:
            await c.lpush(key, "a")
            await c.lpush(key2, "b")
            await c.lpush(key2, "c")
            await c.lpush(key2, "d")

            first = await c.lmpop([key, key2], ListWhere.RIGHT)
            assert first.key == key
            assert first.values.decode_elements(str) == "a"

            second = await c.lmpop([key, key2], ListWhere.RIGHT)
            assert second.key == key2
            assert second.values.decode(list[str]) == ["b"]

            third = await c.lmpop([key, key2], ListWhere.RIGHT, count=2)
            assert third.key == key2
            assert third.values.decode(list[str]) == ["c", "d"]

            assert await c.lmpop([key, key2], ListWhere.RIGHT) is None

    await run_client(client, operation)


@pytest.mark.asyncio
async def test_lmove(client):
    """Test moving every element from the tail of one list to the head of another."""

    async def operation(c):
        async with with_key(c) as key, with_key(c) as key2:
            assert await c.lmove(key, key2, ListWhere.RIGHT, ListWhere.LEFT) is None

            for element in ("a", "b", "c", "d"):
                await c.lpush(key, element)
            assert (await c.lrange(key, 0, -1)).decode(list[str]) == ["d", "c", "b", "a"]
            assert (await c.lrange(key2, 0, -1)).decode(list[str]) == []

            for expected in ("a", "b", "c", "d"):
                moved = await c.lmove(key, key2, ListWhere.RIGHT, ListWhere.LEFT)
                assert moved is not None
                assert ByteReader(moved).read_string(1) == expected

            assert (await c.lrange(key, 0, -1)).decode(list[str]) == []
            assert (await c.lrange(key2, 0, -1)).decode(list[str]) == ["d", "c", "b", "a"]

    await run_client(client, operation)


@pytest.mark.asyncio
async def test_geosearch_with_attributes(client):
    """Test that distance, hash and coordinates are readable by position."""

    async def operation(c):
        async with with_key(c) as key:
            count = await c.geoadd(
                key,
                [GeoMember(1.0, 53.0, "Edinburgh"), GeoMember(1.4, 53.5, "Glasgow")],
            )
            assert count == 2

            entries = await c.geosearch(
                key,
                FromLonLat(0.0, 53.0),
                ByRadius(10000, GeoUnit.MI),
                withcoord=True,
                withdist=True,
                withhash=True,
            )
            assert {entry.member for entry in entries} == {"Edinburgh", "Glasgow"}
            for entry in entries:
                distance = entry.attributes[0].decode(float)
                geohash = entry.attributes[1].decode(str)
                coordinates = entry.attributes[2].decode(GeoCoordinates)
                assert distance > 0
                assert geohash.isdigit()
                assert coordinates.latitude == pytest.approx(
                    53.0 if entry.member == "Edinburgh" else 53.5, abs=1e-4
                )

            positions = await c.geopos(key, "Edinburgh", "Nowhere")
            assert positions[0].longitude == pytest.approx(1.0, abs=1e-4)
            assert positions[1] is None

    await run_client(client, operation)


@pytest.mark.asyncio
async def test_function_list(client):
    """Test loading, listing and deleting a function library."""

    async def operation(c):
        assert await c.function_load(LIBRARY_CODE, replace=True) == LIBRARY_NAME
        try:
            libraries = await c.function_list(LIBRARY_NAME, withcode=True)
            assert len(libraries) == 1
            library = libraries[0]
            assert library.library_name == LIBRARY_NAME
            assert library.engine == "LUA"
            assert library.library_code.startswith(f"#!lua name={LIBRARY_NAME}")
            assert {function.name for function in library.functions} == {
                "valkey_wire_test_set",
                "valkey_wire_test_get",
            }

            async with with_key(c) as key:
                await c.fcall("valkey_wire_test_set", keys=[key], args=["value"])
                reply = await c.fcall("valkey_wire_test_get", keys=[key])
                assert reply.decode(str) == "value"
        finally:
            await c.function_delete(LIBRARY_NAME)

        assert await c.function_list(LIBRARY_NAME) == []

    await run_client(client, operation)


@pytest.mark.asyncio
async def test_scripts(client):
    """Test the script cache and EVALSHA."""
    script = 'return redis.call("GET", KEYS[1])'

    async def operation(c):
        sha1 = await c.script_load(script)
        assert len(sha1) == 40
        assert await c.script_exists(sha1, "0" * 40) == [True, False]

        async with with_key(c) as key:
            await c.set(key, "cached")
            assert (await c.evalsha(sha1, keys=[key])).decode(str) == "cached"
            assert (await c.eval(script, keys=[key])).decode(str) == "cached"

        with pytest.raises(ServerError) as exc_info:
            await c.evalsha("0" * 40)
        assert exc_info.value.kind == "NOSCRIPT"

    await run_client(client, operation)


@pytest.mark.asyncio
async def test_concurrent_commands(client):
    """Test many concurrent commands on one client."""

    async def operation(c):
        async with with_key(c) as key:
            lengths = await asyncio.gather(*(c.rpush(key, i) for i in range(100)))
            assert sorted(lengths) == list(range(1, 101))
            assert await c.llen(key) == 100

    await run_client(client, operation)
