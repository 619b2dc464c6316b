"""In-memory runtime state shared by the websocket endpoint and the broadcast loop.

One :class:`RelayState` is created per application (see ``relay.app``) and
handed to the handler, lifecycle and scheduler functions explicitly.
"""
from __future__ import annotations

from typing import Optional, Tuple

from .constants import SPAWN_POINT
from .player import ConnectionRegistry
from .room import RoomDirectory


class RelayState:
    def __init__(
        self,
        players: Optional[ConnectionRegistry] = None,
        rooms: Optional[RoomDirectory] = None,
        spawn_point: Tuple[float, float, float] = SPAWN_POINT,
    ):
        self.players = players if players is not None else ConnectionRegistry()
        self.rooms = rooms if rooms is not None else RoomDirectory()
        self.spawn_point = spawn_point

    def __repr__(self) -> str:
        return f"RelayState(players={len(self.players)}, rooms={len(self.rooms)})"


__all__ = ["RelayState"]
