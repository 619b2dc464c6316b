"""Pydantic schemas for the frames exchanged over the relay websocket.

Inbound frames form a closed set: a frame is parsed once into either a
:class:`PositionUpdate` or a :class:`JoinRoom` and anything else is rejected
with :class:`InvalidMessage`. Outbound frames are serialised from
:class:`JoinAck` and :class:`OthersUpdate`.
"""
from __future__ import annotations

import json
import math
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictBool, StrictFloat, StrictInt, StrictStr, ValidationError, field_validator

from .constants import OTHERS_MESSAGE_TYPE


class InvalidMessage(ValueError):
    """Raised when an inbound frame is not one of the known message shapes."""


# -----------------------------
# Inbound (client -> server)
# -----------------------------

# Numbers must arrive as JSON numbers; strings and booleans are rejected.
Number = Union[StrictInt, StrictFloat]


class PositionPayload(BaseModel):
    x: Number
    y: Number
    z: Number
    direction: Number
    isRunning: StrictBool

    @field_validator("x", "y", "z", "direction")
    @classmethod
    def finite_float(cls, value):
        # Stored state must always fit the float fields of PlayerSnapshot.
        try:
            value = float(value)
        except OverflowError:
            raise ValueError("number out of range") from None
        if not math.isfinite(value):
            raise ValueError("number must be finite")
        return value


class PositionUpdate(BaseModel):
    """``{"pos": {...}}`` - the client's own position, heading and motion flag."""

    pos: PositionPayload


class JoinRoom(BaseModel):
    """``{"room": ..., "name": ...}`` - join (or create) a room under a display name."""

    room: StrictStr
    name: StrictStr = Field(min_length=1)


ClientMessage = Union[PositionUpdate, JoinRoom]


def parse_client_message(raw: Union[str, bytes]) -> ClientMessage:
    """Decode *raw* and classify it as one of the inbound message variants.

    A non-null ``pos`` wins over ``room`` when both are present.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidMessage(f"frame is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise InvalidMessage("frame must be a JSON object")

    if data.get("pos") is not None:
        model = PositionUpdate
    elif "room" in data:
        model = JoinRoom
    else:
        raise InvalidMessage(f"unrecognised message keys: {sorted(data)}")

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise InvalidMessage(str(exc)) from exc


# -----------------------------
# Outbound (server -> client)
# -----------------------------

class JoinAck(BaseModel):
    roomid: str
    id: str


class PlayerSnapshot(BaseModel):
    """Public view of another room occupant."""

    id: str
    name: Optional[str] = None  # omitted from the frame until the player has a name
    x: float
    y: float
    z: float
    dir: float
    isRunning: bool


class OthersUpdate(BaseModel):
    type: Literal["others"] = OTHERS_MESSAGE_TYPE
    players: List[PlayerSnapshot] = []


def encode(message: BaseModel) -> str:
    """Serialise an outbound model to the JSON text sent over the wire."""
    return message.model_dump_json(exclude_none=True)


__all__ = [
    "InvalidMessage",
    "PositionPayload",
    "PositionUpdate",
    "JoinRoom",
    "ClientMessage",
    "parse_client_message",
    "JoinAck",
    "PlayerSnapshot",
    "OthersUpdate",
    "encode",
]
