"""Inbound message handling.

Every function here operates on a :class:`relay.state.RelayState` and the
identity of the sending connection. Frames that reference a player who has
already disconnected are dropped, as are frames that fail to parse.
"""
from __future__ import annotations

import logging
from typing import Union

from .player import Player
from .schemas import (
    InvalidMessage,
    JoinAck,
    JoinRoom,
    PositionUpdate,
    encode,
    parse_client_message,
)
from .state import RelayState

logger = logging.getLogger(__name__)


def handle_position(state: RelayState, identity: str, msg: PositionUpdate) -> None:
    player = state.players.get(identity)
    if player is None:
        return
    player.apply_position(msg.pos)


def _leave_current_room(state: RelayState, player: Player) -> None:
    if player.room_id is None:
        return
    state.rooms.remove_member(player.room_id, player.identity)
    player.room_id = None
    player.ready = False


async def handle_join(state: RelayState, identity: str, msg: JoinRoom) -> None:
    """Put the player into ``msg.room``, creating the room if it is not live.

    An empty room id asks the server to pick a fresh one. Re-joining a room the
    player is already in only updates the display name.
    """
    player = state.players.get(identity)
    if player is None:
        return

    player.display_name = msg.name
    rooms = state.rooms

    if msg.room and msg.room in rooms:
        room_id = msg.room
        if identity in rooms.get(room_id):
            return
        _leave_current_room(state, player)
        rooms.add_member(room_id, identity)
    else:
        _leave_current_room(state, player)
        room_id = msg.room or rooms.allocate_id()
        rooms.create(room_id, identity)

    player.room_id = room_id
    player.ready = True
    logger.info("Player %s (%s) joined room %s", identity, player.display_name, room_id)

    try:
        await player.channel.send_text(encode(JoinAck(roomid=room_id, id=identity)))
    except Exception as exc:
        logger.warning("Failed to acknowledge join for player %s: %s", identity, exc)


async def handle_message(state: RelayState, identity: str, raw: Union[str, bytes]) -> None:
    """Parse one inbound frame and apply it."""
    try:
        msg = parse_client_message(raw)
    except InvalidMessage as exc:
        logger.debug("Dropping frame from %s: %s", identity, exc)
        return

    if isinstance(msg, PositionUpdate):
        handle_position(state, identity, msg)
    elif isinstance(msg, JoinRoom):
        await handle_join(state, identity, msg)


__all__ = ["handle_position", "handle_join", "handle_message"]
