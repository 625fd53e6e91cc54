"""
Turn engine for the 99 card game.

Every public transition validates before it mutates: a raised
``InvalidActionError`` always leaves the game exactly as it was.
"""

import logging
import random
from dataclasses import dataclass
from typing import Optional

from .deck import shuffle_in_place, shuffled_deck
from .errors import GameIntegrityError, IllegalPlayError, JoinDeniedError, PreconditionError
from .models import Card, Game, GameStatus, Player, PlayerStatus
from .ranks import CHALLENGE_RANK, PlayOptions, minimal_delta, resolve_delta

logger = logging.getLogger(__name__)

MIN_PLAYERS = 2
MAX_PLAYERS = 10
TARGET_SCORE = 99
HAND_SIZE = 2


@dataclass
class PlayOutcome:
    """What an accepted play did to the game."""

    card: Optional[Card] = None
    delta: int = 0
    eliminated: bool = False
    won: bool = False
    challenge_started: bool = False


# --- Lobby and roster ---

def can_start_game(game: Game) -> bool:
    return game.status == GameStatus.LOBBY and MIN_PLAYERS <= len(game.players) <= MAX_PLAYERS


def add_player(game: Game, client_id: str, name: str) -> bool:
    """Seat ``client_id``. Returns False when the client was already seated."""
    if game.has_player(client_id):
        return False
    if game.status == GameStatus.PLAYING:
        raise JoinDeniedError("Game is already in progress", code="in_progress")
    if game.status == GameStatus.FINISHED:
        raise JoinDeniedError("Game is finished", code="finished")
    if len(game.players) >= MAX_PLAYERS:
        raise JoinDeniedError("Game is full", code="full")
    game.players.append(Player(client_id=client_id, name=name))
    return True


def remove_player(game: Game, client_id: str) -> bool:
    """
    Remove a seat for good, keeping turn and challenge indices pointing at
    the same people. Returns False when the client was not seated.
    """
    idx = game.find_player_index(client_id)
    if idx is None:
        return False

    challenge = game.challenge
    involved = challenge is not None and client_id in (challenge.challenger_id, challenge.target_id)
    was_current = idx == game.current_player_idx

    player = game.players.pop(idx)
    if game.status == GameStatus.PLAYING:
        game.discard_pile[0:0] = player.hand
    player.hand = []

    if not game.players:
        game.current_player_idx = 0
        game.challenge = None
        return True

    if game.leader_client_id == client_id:
        game.leader_client_id = game.players[0].client_id

    count = len(game.players)
    if idx < game.current_player_idx:
        game.current_player_idx -= 1
    game.current_player_idx %= count
    if challenge is not None:
        if idx < challenge.return_idx:
            challenge.return_idx -= 1
        challenge.return_idx %= count

    if game.status != GameStatus.PLAYING:
        return True
    if finish_if_last_standing(game):
        return True
    if involved:
        game.challenge = None
        settle_turn(game, challenge.return_idx)
        eliminate_chain_if_needed(game)
    elif was_current:
        settle_turn(game, game.current_player_idx)
        eliminate_chain_if_needed(game)
    return True


def start_game(game: Game, rng: Optional[random.Random] = None) -> None:
    if not can_start_game(game):
        raise PreconditionError(
            f"Cannot start: status={game.status.value}, players={len(game.players)}",
            code="cannot_start",
        )
    deck = shuffled_deck(rng)
    for player in game.players:
        player.hand = []
        player.status = PlayerStatus.PLAYING
    for _ in range(HAND_SIZE):
        for player in game.players:
            if deck:
                player.hand.append(deck.pop())
    game.draw_pile = deck
    game.discard_pile = []
    game.score = 0
    game.current_player_idx = 0
    game.challenge = None
    game.winner_client_id = None
    game.status = GameStatus.PLAYING


def reset_to_lobby(game: Game) -> None:
    game.score = 0
    game.status = GameStatus.LOBBY
    game.current_player_idx = 0
    game.draw_pile = []
    game.discard_pile = []
    game.challenge = None
    game.winner_client_id = None
    for player in game.players:
        player.hand = []
        player.status = PlayerStatus.LOBBY


def restart_game(game: Game, rng: Optional[random.Random] = None) -> bool:
    """Back to the lobby, then straight into a new round when possible."""
    reset_to_lobby(game)
    if can_start_game(game):
        start_game(game, rng)
        return True
    return False


# --- Turn order and elimination ---

def has_legal_move(game: Game, player_idx: int) -> bool:
    player = game.players[player_idx]
    return any(game.score + minimal_delta(c.rank) <= TARGET_SCORE for c in player.hand)


def advance_to_next_alive(game: Game) -> None:
    count = len(game.players)
    for step in range(1, count + 1):
        idx = (game.current_player_idx + step) % count
        if game.players[idx].is_alive:
            game.current_player_idx = idx
            return
    raise GameIntegrityError(f"Game {game.id} has no alive player to pass the turn to.")


def settle_turn(game: Game, idx: int) -> None:
    """Hand the turn to seat ``idx``, or the next alive seat after it."""
    game.current_player_idx = idx % len(game.players)
    if not game.players[game.current_player_idx].is_alive:
        advance_to_next_alive(game)


def discard_hand_to_bottom(game: Game, player_idx: int) -> None:
    """Slide a hand under the discard pile so the visible top card is unchanged."""
    player = game.players[player_idx]
    game.discard_pile[0:0] = player.hand
    player.hand = []


def eliminate_player(game: Game, player_idx: int) -> None:
    player = game.players[player_idx]
    discard_hand_to_bottom(game, player_idx)
    player.status = PlayerStatus.DEAD
    logger.info("Game %s: %s eliminated at score %d", game.id, player.client_id, game.score)


def finish_if_last_standing(game: Game) -> bool:
    alive = game.alive_players()
    if len(alive) > 1:
        return False
    game.status = GameStatus.FINISHED
    game.challenge = None
    game.winner_client_id = alive[0].client_id if alive else None
    logger.info("Game %s finished. Winner: %s", game.id, game.winner_client_id or "none")
    return True


def eliminate_chain_if_needed(game: Game) -> None:
    """
    Eliminate the current player while they cannot move, passing the turn on.

    Each pass removes one alive player and the game finishes once at most
    one is left, so the loop ends after fewer passes than there are seats.
    """
    while game.status == GameStatus.PLAYING:
        idx = game.current_player_idx
        if not game.players[idx].is_alive:
            advance_to_next_alive(game)
            continue
        if has_legal_move(game, idx):
            return
        eliminate_player(game, idx)
        if finish_if_last_standing(game):
            return
        advance_to_next_alive(game)


def _replenish(game: Game, player: Player, rng: Optional[random.Random]) -> None:
    if not game.draw_pile and len(game.discard_pile) > 1:
        top = game.discard_pile.pop()
        rest = game.discard_pile
        shuffle_in_place(rest, rng)
        game.draw_pile = rest
        game.discard_pile = [top]
    if game.draw_pile:
        player.hand.append(game.draw_pile.pop())


def apply_play(
    game: Game,
    client_id: str,
    card_id: str,
    options: Optional[PlayOptions] = None,
    forced_zero: bool = False,
    advance_turn: bool = True,
    rng: Optional[random.Random] = None,
) -> PlayOutcome:
    """
    The central transition: play ``card_id`` from ``client_id``'s hand.

    ``forced_zero`` applies to a Four only. With ``advance_turn`` False the
    caller decides who moves next (used while answering a challenge).
    """
    options = options or PlayOptions()
    if game.status != GameStatus.PLAYING:
        raise PreconditionError("Game is not in progress", code="not_playing")
    idx = game.find_player_index(client_id)
    if idx is None or idx != game.current_player_idx or not game.players[idx].is_alive:
        raise PreconditionError("Not your turn", code="not_your_turn")
    player = game.players[idx]
    card = player.get_card_from_hand(card_id)
    if card is None:
        raise PreconditionError("Card not in hand", code="card_not_in_hand")

    delta = resolve_delta(card.rank, options, forced_zero=forced_zero and card.rank == "4")
    if card.rank == "Q" and delta < 0 and game.score + delta < 0:
        raise IllegalPlayError("A Queen can only subtract 20 when the score is at least 20", code="below_zero")

    if game.score + delta > TARGET_SCORE:
        if has_legal_move(game, idx):
            raise IllegalPlayError(f"Playing {card.id} would exceed {TARGET_SCORE}", code="exceeds_target")
        eliminate_player(game, idx)
        if not finish_if_last_standing(game):
            advance_to_next_alive(game)
            eliminate_chain_if_needed(game)
        return PlayOutcome(card=card, delta=delta, eliminated=True)

    game.score += delta
    player.hand.remove(card)
    game.discard_pile.append(card)

    if game.score == TARGET_SCORE:
        for other in game.players:
            if other is not player:
                other.status = PlayerStatus.DEAD
        game.status = GameStatus.FINISHED
        game.challenge = None
        game.winner_client_id = player.client_id
        logger.info("Game %s: %s reached %d and wins", game.id, client_id, TARGET_SCORE)
        return PlayOutcome(card=card, delta=delta, won=True)

    _replenish(game, player, rng)

    if advance_turn and card.rank != CHALLENGE_RANK:
        advance_to_next_alive(game)
        eliminate_chain_if_needed(game)
    return PlayOutcome(card=card, delta=delta)
