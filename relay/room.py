from __future__ import annotations

import logging
import secrets
from typing import Callable, Dict, FrozenSet, List, Optional, Set

from .constants import ROOM_ID_ALPHABET, ROOM_ID_LENGTH, ROOM_ID_MAX_ATTEMPTS

logger = logging.getLogger(__name__)


def random_room_id() -> str:
    """Return a short numeric room code such as ``"482913"``."""
    return "".join(secrets.choice(ROOM_ID_ALPHABET) for _ in range(ROOM_ID_LENGTH))


class RoomDirectory:
    """Maps room id -> set of member identities.

    A room exists only while it has at least one member: every operation that
    empties a room deletes it before returning.
    """

    def __init__(self, id_factory: Callable[[], str] = random_room_id):
        self._rooms: Dict[str, Set[str]] = {}
        self._id_factory = id_factory

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def room_ids(self) -> List[str]:
        return list(self._rooms)

    def get(self, room_id: str) -> Optional[FrozenSet[str]]:
        """Return a read-only copy of the member set, or ``None`` if the room is gone."""
        members = self._rooms.get(room_id)
        return frozenset(members) if members is not None else None

    # -------------------- Membership -------------------- #

    def create(self, room_id: str, identity: str) -> None:
        if room_id in self._rooms:
            raise ValueError(f"room {room_id!r} already exists")
        self._rooms[room_id] = {identity}
        logger.info("Room %s created by %s", room_id, identity)

    def add_member(self, room_id: str, identity: str) -> bool:
        """Add *identity* to an existing room. Returns ``False`` if it was already a member."""
        members = self._rooms[room_id]
        if identity in members:
            return False
        members.add(identity)
        return True

    def remove_member(self, room_id: str, identity: str) -> bool:
        """Remove *identity* from *room_id*. Returns ``True`` if the room was deleted."""
        members = self._rooms.get(room_id)
        if members is None:
            return False
        members.discard(identity)
        if members:
            return False
        del self._rooms[room_id]
        logger.info("Room %s deleted (empty)", room_id)
        return True

    def discard_everywhere(self, identity: str) -> List[str]:
        """Remove *identity* from every room; returns the ids of rooms deleted as a result."""
        deleted = []
        for room_id in list(self._rooms):
            if identity in self._rooms[room_id] and self.remove_member(room_id, identity):
                deleted.append(room_id)
        return deleted

    # -------------------- Id allocation -------------------- #

    def allocate_id(self) -> str:
        """Return an id that no live room is using."""
        for _ in range(ROOM_ID_MAX_ATTEMPTS):
            room_id = self._id_factory()
            if room_id not in self._rooms:
                return room_id
        raise RuntimeError("could not allocate a free room id")


__all__ = ["RoomDirectory", "random_room_id"]
