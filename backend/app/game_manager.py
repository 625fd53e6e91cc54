"""
The GameManager singleton.
"""

import asyncio
import logging
import random
import uuid
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

from ninetynine import (
    Game,
    GameNotFoundError,
    GameStatus,
    InvalidActionError,
    JoinDeniedError,
    PreconditionError,
    add_player,
    play_card,
    restart_game,
    select_target,
    start_game,
)

from .absence import AbsenceManager
from .connection_manager import ConnectionManager
from .schemas import (
    CreateGame,
    GetGame,
    JoinGame,
    KingSelectTarget,
    PlayCard,
    RestartGame,
    StartGame,
    parse_action,
)
from .store import ConcurrencyConflict, GameStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreBusyError(InvalidActionError):
    code = "busy"


class GameManager:
    """
    Applies client actions to stored games and broadcasts the results.

    Each action runs load -> reap absences -> mutate -> save. Actions on one
    game are serialised by a per-game lock; saves are versioned so a write
    from another process makes the whole cycle start over.
    """

    def __init__(
        self,
        store: GameStore,
        conn_manager: ConnectionManager,
        absence: AbsenceManager,
        retry_limit: int = 5,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.conn_manager = conn_manager
        self.absence = absence
        self.retry_limit = retry_limit
        self.rng = rng
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._handlers = {
            CreateGame: self._create_game,
            JoinGame: self._join_game,
            GetGame: self._get_game,
            StartGame: self._start_game,
            PlayCard: self._play_card,
            KingSelectTarget: self._king_select_target,
            RestartGame: self._restart_game,
        }

    @asynccontextmanager
    async def _game_lock(self, game_id: str):
        """Serialise actions on one game. The entry goes once nobody holds or awaits it."""
        lock = self._locks.setdefault(game_id, asyncio.Lock())
        self._lock_users[game_id] = self._lock_users.get(game_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[game_id] -= 1
            if not self._lock_users[game_id]:
                del self._lock_users[game_id]
                del self._locks[game_id]

    async def handle_message(self, client_id: str, raw: Any):
        """
        Main entry point from the WebSocket loop. Refusals go back to the
        sender only; nothing raised here escapes to the connection.
        """
        method = raw.get("method") if isinstance(raw, dict) else None
        try:
            action = parse_action(raw)
            await self._handlers[type(action)](client_id, action)
        except InvalidActionError as e:
            logger.warning("Refused %s from %s: %s", method, client_id, e.reason)
            await self.send_error(client_id, method, e)
        except Exception:
            logger.exception("Unexpected error handling %s from %s", method, client_id)
            await self.send_error(client_id, method, InvalidActionError("A server error occurred.", code="internal"))

    async def handle_connect(self, client_id: str):
        await self.absence.clear_client_absence(client_id)

    async def handle_disconnect(self, client_id: str, websocket: Any = None):
        self.conn_manager.disconnect(client_id, websocket)
        if self.conn_manager.is_connected(client_id):
            return
        await self.absence.mark_client_absent(client_id)

    async def send_error(self, client_id: str, method: Optional[str], error: InvalidActionError):
        await self.conn_manager.send_to_user(client_id, {
            "method": "error",
            "code": error.code,
            "reason": error.reason,
            "request": method,
        })

    async def broadcast_game_state(
        self,
        game: Game,
        method: str,
        hints: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        """Send every seated player their own projection of ``game``."""
        for player in game.players:
            msg = {"method": method, "game": game.get_redacted_state(player.client_id)}
            msg.update((hints or {}).get(player.client_id, {}))
            await self.conn_manager.send_to_user(player.client_id, msg)

    async def _transact(
        self,
        game_id: str,
        mutate: Callable[[Game], T],
        persist: bool = True,
    ) -> Tuple[Game, T]:
        """Load, reap, apply ``mutate`` and save, starting over on a write conflict."""
        for attempt in range(1, self.retry_limit + 1):
            game = await self.store.load(game_id)
            if game is None:
                raise GameNotFoundError(game_id)
            try:
                reaped = await self.absence.reap_expired(game)
                if reaped:
                    if not game.players:
                        await self.store.delete(game_id)
                        logger.info("Game %s deleted: every player left", game_id)
                        raise GameNotFoundError(game_id)
                    await self.store.save(game)
                    await self.absence.acknowledge(game_id, reaped)
                result = mutate(game)
                if persist:
                    await self.store.save(game)
                return game, result
            except ConcurrencyConflict:
                logger.info("Game %s changed during attempt %d, retrying", game_id, attempt)
        logger.warning("Game %s: giving up after %d conflicting attempts", game_id, self.retry_limit)
        raise StoreBusyError("The game is busy, please try again.")

    @staticmethod
    def _require_leader(game: Game, client_id: str):
        if game.leader_client_id != client_id:
            raise PreconditionError("Only the game leader can do that", code="not_leader")

    async def _create_game(self, client_id: str, action: CreateGame):
        game = Game(id=str(uuid.uuid4()), leader_client_id=client_id)
        add_player(game, client_id, action.name)
        await self.store.save(game)
        logger.info("Game %s created by %s", game.id, client_id)
        await self.conn_manager.send_to_user(
            client_id, {"method": "createGame", "game": game.get_redacted_state(client_id)}
        )

    async def _join_game(self, client_id: str, action: JoinGame):
        async with self._game_lock(action.game_id):
            try:
                game, added = await self._transact(
                    action.game_id, lambda g: add_player(g, client_id, action.name)
                )
            except JoinDeniedError as e:
                logger.info("Client %s denied join for game %s: %s", client_id, action.game_id, e.reason)
                await self.conn_manager.send_to_user(client_id, {
                    "method": "joinDenied",
                    "gameId": action.game_id,
                    "reason": e.reason,
                })
                return
            await self.absence.clear_absence(game.id, client_id)
            logger.info(
                "Client %s %s game %s. Total players: %d",
                client_id, "joined" if added else "rejoined", game.id, len(game.players),
            )
            await self.broadcast_game_state(game, "joinGame")

    async def _get_game(self, client_id: str, action: GetGame):
        async with self._game_lock(action.game_id):
            try:
                game, _ = await self._transact(action.game_id, lambda g: None, persist=False)
            except GameNotFoundError:
                await self.conn_manager.send_to_user(client_id, {"method": "getGame", "game": None})
                return
            if not game.has_player(client_id) and game.status != GameStatus.LOBBY:
                view = game.get_minimal_state()
            else:
                view = game.get_redacted_state(client_id)
            await self.conn_manager.send_to_user(client_id, {"method": "getGame", "game": view})

    async def _start_game(self, client_id: str, action: StartGame):
        def mutate(game: Game):
            self._require_leader(game, client_id)
            start_game(game, self.rng)

        async with self._game_lock(action.game_id):
            game, _ = await self._transact(action.game_id, mutate)
            logger.info("Game %s started with %d players", game.id, len(game.players))
            await self.broadcast_game_state(game, "startGame")

    async def _play_card(self, client_id: str, action: PlayCard):
        async with self._game_lock(action.game_id):
            game, outcome = await self._transact(
                action.game_id,
                lambda g: play_card(g, client_id, action.card_id, action.options(), self.rng),
            )
            hints = {client_id: {"kingPlayed": True}} if outcome.challenge_started else None
            await self.broadcast_game_state(game, "playCard", hints)

    async def _king_select_target(self, client_id: str, action: KingSelectTarget):
        async with self._game_lock(action.game_id):
            game, outcome = await self._transact(
                action.game_id, lambda g: select_target(g, client_id, action.target_client_id)
            )
            await self.broadcast_game_state(game, "playCard" if outcome.eliminated else "kingTurn")

    async def _restart_game(self, client_id: str, action: RestartGame):
        def mutate(game: Game) -> bool:
            self._require_leader(game, client_id)
            return restart_game(game, self.rng)

        async with self._game_lock(action.game_id):
            game, started = await self._transact(action.game_id, mutate)
            logger.info("Game %s restarted (%s)", game.id, "new round" if started else "waiting in lobby")
            await self.broadcast_game_state(game, "startGame" if started else "getGame")
