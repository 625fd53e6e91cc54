"""
Game state storage.

Games are stored as JSON documents carrying a version stamp. ``save`` is a
conditional write: it only succeeds when the stored version still matches
the one the game was loaded with, so two handlers racing on the same game
cannot silently overwrite each other.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Set, Tuple

from redis.asyncio import Redis
from redis.exceptions import WatchError

from ninetynine import Game

logger = logging.getLogger(__name__)


class ConcurrencyConflict(Exception):
    """The stored game changed since it was loaded."""

    def __init__(self, game_id: str):
        super().__init__(f"Game {game_id} was modified concurrently.")
        self.game_id = game_id


def _stored_version(raw: Optional[str]) -> int:
    return int(json.loads(raw).get("version", 0)) if raw else 0


class GameStore(ABC):
    @abstractmethod
    async def load(self, game_id: str) -> Optional[Game]: ...

    @abstractmethod
    async def save(self, game: Game) -> Game:
        """Write ``game`` if nobody else did since it was loaded; bumps its version."""

    @abstractmethod
    async def delete(self, game_id: str) -> None: ...

    @abstractmethod
    async def games_for_client(self, client_id: str) -> List[Game]: ...

    # --- Absence bookkeeping ---

    @abstractmethod
    async def mark_absent(self, game_id: str, client_id: str, ttl_seconds: int) -> None: ...

    @abstractmethod
    async def clear_absence(self, game_id: str, client_id: str) -> None: ...

    @abstractmethod
    async def disconnected(self, game_id: str) -> Set[str]: ...

    @abstractmethod
    async def is_absent(self, game_id: str, client_id: str) -> bool:
        """True while the grace window of a disconnected client is still open."""

    @abstractmethod
    async def forget_disconnected(self, game_id: str, client_id: str) -> None: ...

    async def close(self) -> None:
        pass


class InMemoryGameStore(GameStore):
    """Single-process store. Keeps JSON so loaded games never alias stored ones."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._games: Dict[str, str] = {}
        self._disconnected: Dict[str, Set[str]] = {}
        self._absent_until: Dict[Tuple[str, str], float] = {}

    async def load(self, game_id: str) -> Optional[Game]:
        raw = self._games.get(game_id)
        return Game.from_dict(json.loads(raw)) if raw else None

    async def save(self, game: Game) -> Game:
        if _stored_version(self._games.get(game.id)) != game.version:
            raise ConcurrencyConflict(game.id)
        game.version += 1
        self._games[game.id] = json.dumps(game.to_dict())
        return game

    async def delete(self, game_id: str) -> None:
        self._games.pop(game_id, None)
        for client_id in self._disconnected.pop(game_id, set()):
            self._absent_until.pop((game_id, client_id), None)

    async def games_for_client(self, client_id: str) -> List[Game]:
        games = [Game.from_dict(json.loads(raw)) for raw in self._games.values()]
        return [g for g in games if g.has_player(client_id)]

    async def mark_absent(self, game_id: str, client_id: str, ttl_seconds: int) -> None:
        self._disconnected.setdefault(game_id, set()).add(client_id)
        self._absent_until[(game_id, client_id)] = self.clock() + ttl_seconds

    async def clear_absence(self, game_id: str, client_id: str) -> None:
        self._absent_until.pop((game_id, client_id), None)
        self._disconnected.get(game_id, set()).discard(client_id)

    async def disconnected(self, game_id: str) -> Set[str]:
        return set(self._disconnected.get(game_id, set()))

    async def is_absent(self, game_id: str, client_id: str) -> bool:
        deadline = self._absent_until.get((game_id, client_id))
        return deadline is not None and self.clock() < deadline

    async def forget_disconnected(self, game_id: str, client_id: str) -> None:
        self._disconnected.get(game_id, set()).discard(client_id)
        self._absent_until.pop((game_id, client_id), None)


def _game_key(game_id: str) -> str:
    return f"game:{game_id}"


def _dc_key(game_id: str) -> str:
    return f"dc:{game_id}"


def _absent_key(game_id: str, client_id: str) -> str:
    return f"absent:{game_id}:{client_id}"


class RedisGameStore(GameStore):
    """Shared store for several server processes."""

    def __init__(self, redis: Redis):
        self.redis = redis

    @classmethod
    def from_url(cls, url: str) -> "RedisGameStore":
        return cls(Redis.from_url(url, decode_responses=True))

    async def load(self, game_id: str) -> Optional[Game]:
        raw = await self.redis.get(_game_key(game_id))
        return Game.from_dict(json.loads(raw)) if raw else None

    async def save(self, game: Game) -> Game:
        key = _game_key(game.id)
        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                if _stored_version(await pipe.get(key)) != game.version:
                    raise ConcurrencyConflict(game.id)
                payload = game.to_dict()
                payload["version"] = game.version + 1
                pipe.multi()
                pipe.set(key, json.dumps(payload))
                await pipe.execute()
            except WatchError as e:
                raise ConcurrencyConflict(game.id) from e
        game.version += 1
        return game

    async def delete(self, game_id: str) -> None:
        members = await self.redis.smembers(_dc_key(game_id))
        keys = [_game_key(game_id), _dc_key(game_id)] + [_absent_key(game_id, c) for c in members]
        await self.redis.delete(*keys)

    async def games_for_client(self, client_id: str) -> List[Game]:
        keys = [key async for key in self.redis.scan_iter(match="game:*")]
        if not keys:
            return []
        games = [Game.from_dict(json.loads(raw)) for raw in await self.redis.mget(keys) if raw]
        return [g for g in games if g.has_player(client_id)]

    async def mark_absent(self, game_id: str, client_id: str, ttl_seconds: int) -> None:
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.sadd(_dc_key(game_id), client_id)
            pipe.set(_absent_key(game_id, client_id), "1", ex=ttl_seconds)
            await pipe.execute()

    async def clear_absence(self, game_id: str, client_id: str) -> None:
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.delete(_absent_key(game_id, client_id))
            pipe.srem(_dc_key(game_id), client_id)
            await pipe.execute()

    async def disconnected(self, game_id: str) -> Set[str]:
        return set(await self.redis.smembers(_dc_key(game_id)))

    async def is_absent(self, game_id: str, client_id: str) -> bool:
        return bool(await self.redis.exists(_absent_key(game_id, client_id)))

    async def forget_disconnected(self, game_id: str, client_id: str) -> None:
        await self.redis.srem(_dc_key(game_id), client_id)

    async def close(self) -> None:
        await self.redis.aclose()


def build_store(backend: str, redis_url: str) -> GameStore:
    if backend == "redis":
        logger.info("Using Redis game store at %s", redis_url)
        return RedisGameStore.from_url(redis_url)
    logger.info("Using in-memory game store")
    return InMemoryGameStore()
