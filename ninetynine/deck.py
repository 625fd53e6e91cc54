"""Deck creation and shuffling for the 99 card game."""

import random
from typing import List, MutableSequence, Optional, TypeVar

from .models import Card

T = TypeVar("T")

SUITS = ("spades", "hearts", "diamonds", "clubs")
RANKS = ("A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K")

# Ace and Queen carry a default here; the played value is chosen at play time.
SPECIAL_VALUES = {"A": 1, "J": 0, "Q": 20, "K": 0}


def base_value(rank: str) -> int:
    if rank in SPECIAL_VALUES:
        return SPECIAL_VALUES[rank]
    return int(rank)


def card_id(rank: str, suit: str) -> str:
    return f"{rank}-of-{suit}"


def build_deck() -> List[Card]:
    """Return the ordered 52-card deck, one card per rank and suit."""
    return [
        Card(id=card_id(rank, suit), rank=rank, suit=suit, value=base_value(rank))
        for suit in SUITS
        for rank in RANKS
    ]


def shuffle_in_place(cards: MutableSequence[T], rng: Optional[random.Random] = None) -> None:
    """Fisher-Yates shuffle. Every permutation is equally likely."""
    rng = rng or random.Random()
    for i in range(len(cards) - 1, 0, -1):
        j = rng.randrange(i + 1)
        cards[i], cards[j] = cards[j], cards[i]


def shuffled_deck(rng: Optional[random.Random] = None) -> List[Card]:
    deck = build_deck()
    shuffle_in_place(deck, rng)
    return deck
