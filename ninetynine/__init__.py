"""
Rules engine for the 99 card game.

Plain dataclasses and functions, no FastAPI or Redis imports. A host loads a
`Game`, calls one transition (`start_game`, `play_card`, `select_target`,
`remove_player`, ...) and stores the result; refusals raise
`InvalidActionError` before anything is changed.
"""

from .models import Card, ChallengeState, Game, GameStatus, Player, PlayerStatus
from .errors import (
    GameIntegrityError,
    GameNotFoundError,
    IllegalPlayError,
    InvalidActionError,
    JoinDeniedError,
    MalformedActionError,
    PreconditionError,
)
from .ranks import PlayOptions, minimal_delta, resolve_delta
from .deck import build_deck, shuffle_in_place, shuffled_deck
from .engine import (
    PlayOutcome,
    add_player,
    advance_to_next_alive,
    apply_play,
    can_start_game,
    eliminate_chain_if_needed,
    has_legal_move,
    remove_player,
    reset_to_lobby,
    restart_game,
    start_game,
)
from .challenge import TargetOutcome, play_card, select_target

__all__ = [
    "Card",
    "ChallengeState",
    "Game",
    "GameStatus",
    "Player",
    "PlayerStatus",
    "GameIntegrityError",
    "GameNotFoundError",
    "IllegalPlayError",
    "InvalidActionError",
    "JoinDeniedError",
    "MalformedActionError",
    "PreconditionError",
    "PlayOptions",
    "minimal_delta",
    "resolve_delta",
    "build_deck",
    "shuffle_in_place",
    "shuffled_deck",
    "PlayOutcome",
    "add_player",
    "advance_to_next_alive",
    "apply_play",
    "can_start_game",
    "eliminate_chain_if_needed",
    "has_legal_move",
    "remove_player",
    "reset_to_lobby",
    "restart_game",
    "start_game",
    "TargetOutcome",
    "play_card",
    "select_target",
]
