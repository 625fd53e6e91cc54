from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class GameStatus(str, Enum):
    LOBBY = "lobby"
    PLAYING = "playing"
    FINISHED = "finished"


class PlayerStatus(str, Enum):
    LOBBY = "lobby"
    PLAYING = "playing"
    DEAD = "dead"


@dataclass(frozen=True)
class Card:
    """Immutable playing card. ``id`` is derived from rank and suit."""

    id: str
    rank: str
    suit: str
    value: int

    def to_public_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "rank": self.rank, "suit": self.suit, "value": self.value}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Card":
        return cls(id=raw["id"], rank=raw["rank"], suit=raw["suit"], value=int(raw["value"]))


@dataclass
class Player:
    client_id: str
    name: str
    hand: List[Card] = field(default_factory=list)
    status: PlayerStatus = PlayerStatus.LOBBY

    @property
    def is_alive(self) -> bool:
        return self.status == PlayerStatus.PLAYING

    def get_card_from_hand(self, card_id: str) -> Optional[Card]:
        return next((c for c in self.hand if c.id == card_id), None)

    def holds_rank(self, *ranks: str) -> bool:
        return any(c.rank in ranks for c in self.hand)

    def to_public_dict(self, include_hand: bool = True) -> Dict[str, Any]:
        return {
            "clientId": self.client_id,
            "name": self.name,
            "hand": [c.to_public_dict() for c in self.hand] if include_hand else [],
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Player":
        return cls(
            client_id=raw["clientId"],
            name=raw["name"],
            hand=[Card.from_dict(c) for c in raw.get("hand", [])],
            status=PlayerStatus(raw.get("status", PlayerStatus.LOBBY.value)),
        )


@dataclass
class ChallengeState:
    """An unresolved King challenge. At most one per game."""

    return_idx: int
    challenger_id: str
    target_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "returnIdx": self.return_idx,
            "challengerId": self.challenger_id,
            "targetId": self.target_id,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ChallengeState":
        return cls(
            return_idx=int(raw["returnIdx"]),
            challenger_id=raw["challengerId"],
            target_id=raw.get("targetId"),
        )


@dataclass
class Game:
    id: str
    leader_client_id: str
    players: List[Player] = field(default_factory=list)
    draw_pile: List[Card] = field(default_factory=list)
    discard_pile: List[Card] = field(default_factory=list)
    current_player_idx: int = 0
    score: int = 0
    status: GameStatus = GameStatus.LOBBY
    challenge: Optional[ChallengeState] = None
    winner_client_id: Optional[str] = None
    # Optimistic concurrency stamp, owned by the store.
    version: int = 0

    def find_player_index(self, client_id: str) -> Optional[int]:
        for idx, player in enumerate(self.players):
            if player.client_id == client_id:
                return idx
        return None

    def get_player(self, client_id: str) -> Optional[Player]:
        idx = self.find_player_index(client_id)
        return self.players[idx] if idx is not None else None

    def has_player(self, client_id: str) -> bool:
        return self.find_player_index(client_id) is not None

    @property
    def current_player(self) -> Optional[Player]:
        if not self.players:
            return None
        return self.players[self.current_player_idx]

    def alive_players(self) -> List[Player]:
        return [p for p in self.players if p.is_alive]

    def to_dict(self) -> Dict[str, Any]:
        """Full state, hidden information included. For the store only."""
        return {
            "id": self.id,
            "leaderClientId": self.leader_client_id,
            "players": [p.to_public_dict() for p in self.players],
            "drawPile": [c.to_public_dict() for c in self.draw_pile],
            "discardPile": [c.to_public_dict() for c in self.discard_pile],
            "currentPlayerIdx": self.current_player_idx,
            "score": self.score,
            "status": self.status.value,
            "challenge": self.challenge.to_dict() if self.challenge else None,
            "winnerClientId": self.winner_client_id,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Game":
        challenge = raw.get("challenge")
        return cls(
            id=raw["id"],
            leader_client_id=raw["leaderClientId"],
            players=[Player.from_dict(p) for p in raw.get("players", [])],
            draw_pile=[Card.from_dict(c) for c in raw.get("drawPile", [])],
            discard_pile=[Card.from_dict(c) for c in raw.get("discardPile", [])],
            current_player_idx=int(raw.get("currentPlayerIdx", 0)),
            score=int(raw.get("score", 0)),
            status=GameStatus(raw.get("status", GameStatus.LOBBY.value)),
            challenge=ChallengeState.from_dict(challenge) if challenge else None,
            winner_client_id=raw.get("winnerClientId"),
            version=int(raw.get("version", 0)),
        )

    def get_redacted_state(self, viewer_id: str) -> Dict[str, Any]:
        """
        Projection of the game as ``viewer_id`` may see it.

        Only the viewer's own hand is included; every other hand is emptied
        and the draw pile is reduced to its size. The discard pile is public.
        """
        return {
            "id": self.id,
            "leaderClientId": self.leader_client_id,
            "players": [p.to_public_dict(include_hand=p.client_id == viewer_id) for p in self.players],
            "discardPile": [c.to_public_dict() for c in self.discard_pile],
            "drawPile": [],
            "drawPileCount": len(self.draw_pile),
            "currentPlayerIdx": self.current_player_idx,
            "score": self.score,
            "status": self.status.value,
            "challenge": {
                "challengerId": self.challenge.challenger_id,
                "targetId": self.challenge.target_id,
            } if self.challenge else None,
            "winnerClientId": self.winner_client_id,
        }

    def get_minimal_state(self) -> Dict[str, Any]:
        """What an outsider sees of a game that already left the lobby."""
        return {"id": self.id, "status": self.status.value}
