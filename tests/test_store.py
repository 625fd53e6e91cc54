"""
Tests for the game stores. Shared behaviour runs against both backends,
Redis through fakeredis.
"""

import asyncio

import fakeredis
import pytest

from backend.app.store import ConcurrencyConflict, InMemoryGameStore, RedisGameStore, build_store


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    return InMemoryGameStore(clock=clock)


@pytest.fixture(params=["memory", "redis"])
def store(request, clock):
    if request.param == "memory":
        return InMemoryGameStore(clock=clock)
    return RedisGameStore(fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True))


class TestGames:
    def test_save_and_load(self, store, make_game, card):
        game = make_game([[card("5")], [card("7")]], score=12)

        async def scenario():
            await store.save(game)
            return await store.load("g1")

        loaded = asyncio.run(scenario())
        assert loaded == game
        assert loaded.version == 1

    def test_missing_game(self, store):
        assert asyncio.run(store.load("nope")) is None

    def test_stale_save_conflicts(self, store, make_game, card):
        async def scenario():
            await store.save(make_game([[card("5")], [card("7")]]))
            first = await store.load("g1")
            second = await store.load("g1")
            first.score = 5
            await store.save(first)
            second.score = 9
            with pytest.raises(ConcurrencyConflict):
                await store.save(second)
            return await store.load("g1")

        stored = asyncio.run(scenario())
        assert stored.score == 5
        assert stored.version == 2

    def test_loaded_games_are_independent(self, store, make_game, card):
        async def scenario():
            await store.save(make_game([[card("5")], [card("7")]]))
            loaded = await store.load("g1")
            loaded.players[0].hand.clear()
            return await store.load("g1")

        assert len(asyncio.run(scenario()).players[0].hand) == 1

    def test_games_for_client(self, store, make_game, card):
        async def scenario():
            await store.save(make_game([[card("5")], [card("7")]], game_id="a"))
            await store.save(make_game([[card("5")]], game_id="b"))
            return await store.games_for_client("p1")

        assert [g.id for g in asyncio.run(scenario())] == ["a"]

    def test_delete(self, store, make_game, card):
        async def scenario():
            await store.save(make_game([[card("5")], [card("7")]]))
            await store.mark_absent("g1", "p1", 300)
            await store.delete("g1")
            return await store.load("g1"), await store.disconnected("g1")

        assert asyncio.run(scenario()) == (None, set())


class TestAbsenceMarkers:
    def test_marker_expires(self, memory_store, clock):
        store = memory_store

        async def scenario():
            await store.mark_absent("g1", "p1", 300)
            open_window = await store.is_absent("g1", "p1")
            clock.now += 301
            return open_window, await store.is_absent("g1", "p1"), await store.disconnected("g1")

        assert asyncio.run(scenario()) == (True, False, {"p1"})

    def test_clear_absence(self, store):
        async def scenario():
            await store.mark_absent("g1", "p1", 300)
            await store.clear_absence("g1", "p1")
            return await store.is_absent("g1", "p1"), await store.disconnected("g1")

        assert asyncio.run(scenario()) == (False, set())

    def test_forget_disconnected(self, store):
        async def scenario():
            await store.mark_absent("g1", "p1", 300)
            await store.mark_absent("g1", "p2", 300)
            await store.forget_disconnected("g1", "p1")
            return await store.disconnected("g1")

        assert asyncio.run(scenario()) == {"p2"}


def test_build_store_defaults_to_memory():
    assert isinstance(build_store("memory", "redis://localhost:6379/0"), InMemoryGameStore)


def test_redis_keys(make_game, card):
    redis = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    store = RedisGameStore(redis)

    async def scenario():
        await store.save(make_game([[card("5")], [card("7")]]))
        await store.mark_absent("g1", "p1", 300)
        keys = sorted(await redis.keys("*"))
        ttl = await redis.ttl("absent:g1:p1")
        await store.close()
        return keys, ttl

    keys, ttl = asyncio.run(scenario())
    assert keys == ["absent:g1:p1", "dc:g1", "game:g1"]
    assert 0 < ttl <= 300


def test_redis_save_conflicts_when_game_was_deleted(make_game, card):
    redis = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    store = RedisGameStore(redis)

    async def scenario():
        await store.save(make_game([[card("5")], [card("7")]]))
        game = await store.load("g1")
        await redis.delete("game:g1")
        with pytest.raises(ConcurrencyConflict):
            await store.save(game)
        return await store.load("g1")

    assert asyncio.run(scenario()) is None
