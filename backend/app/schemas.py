"""Inbound websocket actions. Every message names its ``method``."""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ninetynine import MalformedActionError, PlayOptions


class ActionBase(BaseModel):
    class Config:
        populate_by_name = True


class CreateGame(ActionBase):
    method: Literal["createGame"]
    name: str = Field(min_length=1, max_length=40)


class JoinGame(ActionBase):
    method: Literal["joinGame"]
    game_id: str = Field(alias="gameId", min_length=1)
    name: str = Field(min_length=1, max_length=40)


class GetGame(ActionBase):
    method: Literal["getGame"]
    game_id: str = Field(alias="gameId", min_length=1)


class StartGame(ActionBase):
    method: Literal["startGame"]
    game_id: str = Field(alias="gameId", min_length=1)


class PlayCard(ActionBase):
    method: Literal["playCard"]
    game_id: str = Field(alias="gameId", min_length=1)
    card_id: str = Field(alias="cardId", min_length=1)
    # Out-of-range choices fall back to the rank's default value.
    ace_value: Optional[int] = Field(default=None, alias="aceValue")
    queen_delta: Optional[int] = Field(default=None, alias="queenDelta")

    def options(self) -> PlayOptions:
        return PlayOptions(ace_value=self.ace_value, queen_delta=self.queen_delta)


class KingSelectTarget(ActionBase):
    method: Literal["kingSelectTarget"]
    game_id: str = Field(alias="gameId", min_length=1)
    target_client_id: str = Field(alias="targetClientId", min_length=1)


class RestartGame(ActionBase):
    method: Literal["restartGame"]
    game_id: str = Field(alias="gameId", min_length=1)


Action = Annotated[
    Union[CreateGame, JoinGame, GetGame, StartGame, PlayCard, KingSelectTarget, RestartGame],
    Field(discriminator="method"),
]

_action_adapter = TypeAdapter(Action)


def parse_action(raw: Any) -> Action:
    """Validate a decoded message into its action model."""
    try:
        return _action_adapter.validate_python(raw)
    except ValidationError as e:
        method = raw.get("method") if isinstance(raw, dict) else None
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'message'}: {err['msg']}" for err in e.errors()
        )
        raise MalformedActionError(f"Malformed {method or 'message'}: {problems}") from e
