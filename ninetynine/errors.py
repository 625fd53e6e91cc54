"""Typed refusals raised by the engine and the game service."""

from typing import Optional


class InvalidActionError(ValueError):
    """Raised when a player attempts an action that cannot be applied.

    The game state is never mutated when this is raised.
    """

    code = "invalid_action"

    def __init__(self, reason: str, code: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        if code:
            self.code = code


class PreconditionError(InvalidActionError):
    """Wrong turn, wrong phase, not the leader, unknown card or target."""

    code = "precondition"


class IllegalPlayError(InvalidActionError):
    """The play breaks a rule while a legal alternative exists."""

    code = "illegal_play"


class MalformedActionError(InvalidActionError):
    """The inbound message could not be understood."""

    code = "malformed"


class GameNotFoundError(InvalidActionError):
    code = "game_not_found"

    def __init__(self, game_id: str):
        super().__init__(f"Game {game_id} not found.")
        self.game_id = game_id


class JoinDeniedError(PreconditionError):
    """A join was refused because the game already left the lobby or is full."""

    code = "join_denied"


class GameIntegrityError(RuntimeError):
    """A structural invariant of the game was broken. Always a bug."""
