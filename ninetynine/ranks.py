"""Maps a played card and the player's chosen options to a score delta."""

from dataclasses import dataclass
from typing import Optional

ACE_VALUES = (1, 11)
QUEEN_DELTAS = (-20, 20)

CHALLENGE_RANK = "K"
FORCED_ZERO_RANK = "4"


@dataclass(frozen=True)
class PlayOptions:
    ace_value: Optional[int] = None
    queen_delta: Optional[int] = None

    @property
    def resolved_ace_value(self) -> int:
        return self.ace_value if self.ace_value in ACE_VALUES else 1

    @property
    def resolved_queen_delta(self) -> int:
        return self.queen_delta if self.queen_delta in QUEEN_DELTAS else 20


def resolve_delta(rank: str, options: Optional[PlayOptions] = None, forced_zero: bool = False) -> int:
    """
    Return how much playing ``rank`` moves the shared score.

    ``forced_zero`` is set only for a Four answering a King challenge; any
    numeric rank played under it counts for nothing.
    """
    options = options or PlayOptions()
    rank = str(rank).upper()
    if rank == "A":
        return options.resolved_ace_value
    if rank == "J":
        return 0
    if rank == "Q":
        return options.resolved_queen_delta
    if rank == CHALLENGE_RANK:
        return 0
    if forced_zero:
        return 0
    try:
        return int(rank)
    except ValueError:
        return 0


def minimal_delta(rank: str) -> int:
    """Smallest delta ``rank`` could produce under any option choice."""
    rank = str(rank).upper()
    if rank == "A":
        return 1
    if rank == "Q":
        return min(QUEEN_DELTAS)
    if rank in ("J", CHALLENGE_RANK):
        return 0
    try:
        return int(rank)
    except ValueError:
        return 0
