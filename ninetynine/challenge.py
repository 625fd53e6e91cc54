"""
King challenge.

Playing a King while no challenge is open keeps the turn with the
challenger until they name a target. A target holding neither a King nor a
Four is eliminated on the spot; otherwise the target gets a one-off turn in
which only a King or a Four may be played. A Four counts for zero and ends
the challenge quietly, a King sends the challenger out instead. Either way
the turn then goes to the seat after the challenger.
"""

import logging
import random
from dataclasses import dataclass
from typing import Optional

from .engine import (
    PlayOutcome,
    apply_play,
    eliminate_chain_if_needed,
    eliminate_player,
    finish_if_last_standing,
    settle_turn,
)
from .errors import IllegalPlayError, PreconditionError
from .models import ChallengeState, Game, GameStatus
from .ranks import CHALLENGE_RANK, FORCED_ZERO_RANK, PlayOptions

logger = logging.getLogger(__name__)

RESPONSE_RANKS = (CHALLENGE_RANK, FORCED_ZERO_RANK)


@dataclass
class TargetOutcome:
    target_id: str
    eliminated: bool


def start_challenge(game: Game, challenger_idx: int) -> ChallengeState:
    challenger = game.players[challenger_idx]
    game.current_player_idx = challenger_idx
    game.challenge = ChallengeState(
        return_idx=(challenger_idx + 1) % len(game.players),
        challenger_id=challenger.client_id,
    )
    logger.info("Game %s: %s opened a King challenge", game.id, challenger.client_id)
    return game.challenge


def _close_challenge(game: Game, return_idx: int) -> None:
    game.challenge = None
    if finish_if_last_standing(game):
        return
    settle_turn(game, return_idx)
    eliminate_chain_if_needed(game)


def select_target(game: Game, challenger_id: str, target_id: str) -> TargetOutcome:
    if game.status != GameStatus.PLAYING:
        raise PreconditionError("Game is not in progress", code="not_playing")
    challenge = game.challenge
    if challenge is None or challenge.challenger_id != challenger_id or challenge.target_id is not None:
        raise PreconditionError("No challenge target to choose", code="no_challenge")
    if target_id == challenger_id:
        raise PreconditionError("You cannot challenge yourself", code="invalid_target")
    target_idx = game.find_player_index(target_id)
    if target_idx is None or not game.players[target_idx].is_alive:
        raise PreconditionError(f"Invalid challenge target {target_id}", code="invalid_target")

    target = game.players[target_idx]
    if not target.holds_rank(*RESPONSE_RANKS):
        eliminate_player(game, target_idx)
        _close_challenge(game, challenge.return_idx)
        return TargetOutcome(target_id=target_id, eliminated=True)

    challenge.target_id = target_id
    game.current_player_idx = target_idx
    logger.info("Game %s: %s must answer %s's challenge", game.id, target_id, challenger_id)
    return TargetOutcome(target_id=target_id, eliminated=False)


def _respond(
    game: Game,
    client_id: str,
    card_id: str,
    options: Optional[PlayOptions],
    rng: Optional[random.Random],
) -> PlayOutcome:
    challenge = game.challenge
    idx = game.find_player_index(client_id)
    player = game.players[idx]

    if not player.holds_rank(*RESPONSE_RANKS):
        card = player.get_card_from_hand(card_id)
        eliminate_player(game, idx)
        _close_challenge(game, challenge.return_idx)
        return PlayOutcome(card=card, eliminated=True)

    card = player.get_card_from_hand(card_id)
    if card is None:
        raise PreconditionError("Card not in hand", code="card_not_in_hand")
    if card.rank not in RESPONSE_RANKS:
        raise IllegalPlayError("Answer the challenge with a King or a Four", code="challenge_response")

    outcome = apply_play(game, client_id, card_id, options, forced_zero=True, advance_turn=False, rng=rng)
    if game.status != GameStatus.PLAYING:
        game.challenge = None
        return outcome

    if card.rank == CHALLENGE_RANK:
        challenger_idx = game.find_player_index(challenge.challenger_id)
        if challenger_idx is not None and game.players[challenger_idx].is_alive:
            eliminate_player(game, challenger_idx)
    _close_challenge(game, challenge.return_idx)
    return outcome


def play_card(
    game: Game,
    client_id: str,
    card_id: str,
    options: Optional[PlayOptions] = None,
    rng: Optional[random.Random] = None,
) -> PlayOutcome:
    """Route a play through the challenge rules, then the turn engine."""
    if game.status != GameStatus.PLAYING:
        raise PreconditionError("Game is not in progress", code="not_playing")

    challenge = game.challenge
    if challenge is not None:
        if challenge.target_id is None:
            if challenge.challenger_id == client_id:
                raise PreconditionError("Choose a challenge target first", code="select_target")
            raise PreconditionError("Not your turn", code="not_your_turn")
        if challenge.target_id == client_id:
            return _respond(game, client_id, card_id, options, rng)

    outcome = apply_play(game, client_id, card_id, options, rng=rng)
    if (
        challenge is None
        and outcome.card.rank == CHALLENGE_RANK
        and not outcome.eliminated
        and game.status == GameStatus.PLAYING
    ):
        start_challenge(game, game.find_player_index(client_id))
        outcome.challenge_started = True
    return outcome
