from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Protocol, Tuple

from .constants import SPAWN_POINT
from .schemas import PlayerSnapshot, PositionPayload


class Channel(Protocol):
    """Outbound half of a client connection (a Starlette ``WebSocket`` in production)."""

    async def send_text(self, data: str) -> None: ...


class Player:
    """Mutable relay state for a single connected client."""

    def __init__(
        self,
        identity: str,
        channel: Channel,
        position: Tuple[float, float, float] = SPAWN_POINT,
    ):
        self.identity = identity
        self.channel = channel
        self.display_name: Optional[str] = None
        self.position: Tuple[float, float, float] = tuple(position)
        self.heading: float = 0
        self.moving: bool = False
        self.room_id: Optional[str] = None
        self.ready: bool = False

    def __repr__(self) -> str:
        return f"Player({self.identity!r}, room={self.room_id!r}, ready={self.ready})"

    def apply_position(self, pos: PositionPayload) -> None:
        # Last write wins; no ordering or bounds checks.
        self.position = (pos.x, pos.y, pos.z)
        self.heading = pos.direction
        self.moving = pos.isRunning

    def snapshot(self) -> PlayerSnapshot:
        x, y, z = self.position
        return PlayerSnapshot(
            id=self.identity,
            name=self.display_name,
            x=x,
            y=y,
            z=z,
            dir=self.heading,
            isRunning=self.moving,
        )


class ConnectionRegistry:
    """Maps connection identity -> :class:`Player`."""

    def __init__(self) -> None:
        self._players: Dict[str, Player] = {}

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, identity: object) -> bool:
        return identity in self._players

    def __iter__(self) -> Iterator[Player]:
        return iter(list(self._players.values()))

    def add(self, player: Player) -> None:
        if player.identity in self._players:
            raise ValueError(f"identity {player.identity!r} is already registered")
        self._players[player.identity] = player

    def get(self, identity: str) -> Optional[Player]:
        return self._players.get(identity)

    def remove(self, identity: str) -> Optional[Player]:
        """Drop *identity*; returns the removed player or ``None`` if it was already gone."""
        return self._players.pop(identity, None)

    def ready_players(self) -> List[Player]:
        return [p for p in self._players.values() if p.ready]


__all__ = ["Channel", "Player", "ConnectionRegistry"]
