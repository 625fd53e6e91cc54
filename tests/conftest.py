"""
Pytest fixtures for the 99 engine and service tests.
"""

import random
from typing import List, Optional, Sequence

import pytest

from ninetynine import Card, Game, GameStatus, Player, PlayerStatus
from ninetynine.deck import base_value, card_id


def _card(rank: str, suit: str = "spades") -> Card:
    return Card(id=card_id(rank, suit), rank=rank, suit=suit, value=base_value(rank))


def _game(
    hands: Sequence[Sequence[Card]],
    score: int = 0,
    current: int = 0,
    draw: Optional[List[Card]] = None,
    discard: Optional[List[Card]] = None,
    game_id: str = "g1",
) -> Game:
    """A game already in progress, seats p0..pN holding ``hands``."""
    players = [
        Player(client_id=f"p{i}", name=f"Player {i}", hand=list(hand), status=PlayerStatus.PLAYING)
        for i, hand in enumerate(hands)
    ]
    return Game(
        id=game_id,
        leader_client_id="p0",
        players=players,
        draw_pile=list(draw or []),
        discard_pile=list(discard or []),
        current_player_idx=current,
        score=score,
        status=GameStatus.PLAYING,
    )


@pytest.fixture
def card():
    """Factory: card('7', 'hearts')."""
    return _card


@pytest.fixture
def make_game():
    return _game


@pytest.fixture
def rng():
    return random.Random(1234)
