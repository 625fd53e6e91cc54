import logging
from typing import List

from ninetynine import Game, remove_player

from .store import GameStore

logger = logging.getLogger(__name__)


class AbsenceManager:
    """
    Keeps a disconnected player's seat for a grace window.

    A client that rejoins within the window keeps its hand; once the window
    lapses the next action on the game removes the seat for good.
    """

    def __init__(self, store: GameStore, grace_seconds: int = 300):
        self.store = store
        self.grace_seconds = grace_seconds

    async def mark_client_absent(self, client_id: str) -> List[str]:
        """Start the grace window in every game the client is seated in."""
        game_ids = []
        for game in await self.store.games_for_client(client_id):
            await self.store.mark_absent(game.id, client_id, self.grace_seconds)
            game_ids.append(game.id)
        if game_ids:
            logger.info("Client %s marked absent in games %s", client_id, ", ".join(game_ids))
        return game_ids

    async def clear_absence(self, game_id: str, client_id: str) -> None:
        await self.store.clear_absence(game_id, client_id)

    async def clear_client_absence(self, client_id: str) -> List[str]:
        """Close the grace window in every game the client is seated in."""
        game_ids = []
        for game in await self.store.games_for_client(client_id):
            await self.store.clear_absence(game.id, client_id)
            game_ids.append(game.id)
        if game_ids:
            logger.info("Client %s is back in games %s", client_id, ", ".join(game_ids))
        return game_ids

    async def reap_expired(self, game: Game) -> List[str]:
        """
        Remove players whose grace window is over from ``game``.

        Returns the reaped client ids. Their markers stay in the store until
        ``acknowledge`` is called, so a reap lost to a save conflict is
        simply redone on the next attempt.
        """
        reaped = []
        for client_id in sorted(await self.store.disconnected(game.id)):
            if await self.store.is_absent(game.id, client_id):
                continue
            if remove_player(game, client_id):
                logger.info("Game %s: reaped absent player %s", game.id, client_id)
                reaped.append(client_id)
            else:
                await self.store.forget_disconnected(game.id, client_id)
        return reaped

    async def acknowledge(self, game_id: str, client_ids: List[str]) -> None:
        """Drop the markers of players whose removal has been saved."""
        for client_id in client_ids:
            await self.store.forget_disconnected(game_id, client_id)
