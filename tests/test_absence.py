"""
Tests for the absence grace window.
"""

import asyncio

import pytest

from backend.app.absence import AbsenceManager
from backend.app.store import InMemoryGameStore
from ninetynine import GameStatus


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def absence(clock):
    return AbsenceManager(InMemoryGameStore(clock=clock), grace_seconds=300)


def test_mark_absent_in_every_seated_game(absence, make_game, card):
    async def scenario():
        await absence.store.save(make_game([[card("5")], [card("7")]], game_id="a"))
        await absence.store.save(make_game([[card("5")], [card("7")]], game_id="b"))
        await absence.store.save(make_game([[card("5")]], game_id="c"))
        return await absence.mark_client_absent("p1")

    assert sorted(asyncio.run(scenario())) == ["a", "b"]


def test_nothing_reaped_within_grace(absence, clock, make_game, card):
    game = make_game([[card("5")], [card("7")], [card("8")]])

    async def scenario():
        await absence.store.save(game)
        await absence.mark_client_absent("p1")
        clock.now += 299
        return await absence.reap_expired(game)

    assert asyncio.run(scenario()) == []
    assert game.has_player("p1")


def test_expired_player_is_reaped(absence, clock, make_game, card):
    game = make_game([[card("5")], [card("7")], [card("8")]])

    async def scenario():
        await absence.store.save(game)
        await absence.mark_client_absent("p1")
        clock.now += 301
        reaped = await absence.reap_expired(game)
        pending = await absence.store.disconnected(game.id)
        await absence.acknowledge(game.id, reaped)
        return reaped, pending, await absence.store.disconnected(game.id)

    reaped, pending, after = asyncio.run(scenario())
    assert reaped == ["p1"]
    assert pending == {"p1"}
    assert after == set()
    assert [p.client_id for p in game.players] == ["p0", "p2"]
    assert game.discard_pile[0].id == "7-of-spades"


def test_reaping_second_to_last_player_finishes(absence, clock, make_game, card):
    game = make_game([[card("5")], [card("7")]])

    async def scenario():
        await absence.store.save(game)
        await absence.mark_client_absent("p1")
        clock.now += 301
        return await absence.reap_expired(game)

    asyncio.run(scenario())
    assert game.status == GameStatus.FINISHED
    assert game.winner_client_id == "p0"


def test_rejoin_clears_the_window(absence, clock, make_game, card):
    game = make_game([[card("5")], [card("7")]])

    async def scenario():
        await absence.store.save(game)
        await absence.mark_client_absent("p1")
        await absence.clear_absence(game.id, "p1")
        clock.now += 301
        return await absence.reap_expired(game)

    assert asyncio.run(scenario()) == []
    assert game.has_player("p1")


def test_stale_marker_for_unseated_client_is_dropped(absence, clock, make_game, card):
    game = make_game([[card("5")], [card("7")]])

    async def scenario():
        await absence.store.mark_absent(game.id, "ghost", 300)
        clock.now += 301
        reaped = await absence.reap_expired(game)
        return reaped, await absence.store.disconnected(game.id)

    assert asyncio.run(scenario()) == ([], set())


def test_reconnect_clears_every_window(absence, clock, make_game, card):
    games = [make_game([[card("5")], [card("7")], [card("8")]], game_id=g) for g in ("a", "b")]

    async def scenario():
        for game in games:
            await absence.store.save(game)
        await absence.mark_client_absent("p1")
        cleared = await absence.clear_client_absence("p1")
        clock.now += 301
        return sorted(cleared), [await absence.reap_expired(game) for game in games]

    cleared, reaped = asyncio.run(scenario())
    assert cleared == ["a", "b"]
    assert reaped == [[], []]
