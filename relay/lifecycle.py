"""Connection open/close bookkeeping."""
from __future__ import annotations

import logging
import uuid

from .player import Channel, Player
from .state import RelayState

logger = logging.getLogger(__name__)


def new_identity() -> str:
    return uuid.uuid4().hex


def on_open(state: RelayState, channel: Channel) -> Player:
    """Register a freshly connected client at the spawn point, not yet in any room."""
    player = Player(new_identity(), channel, position=state.spawn_point)
    state.players.add(player)
    logger.info("Player %s connected (%d online)", player.identity, len(state.players))
    return player


def on_close(state: RelayState, identity: str) -> None:
    """Forget *identity* and its room memberships. Safe to call more than once."""
    player = state.players.remove(identity)
    deleted = state.rooms.discard_everywhere(identity)
    if player is None and not deleted:
        return
    if player is not None:
        player.ready = False
        player.room_id = None
    logger.info("Player %s disconnected (%d online)", identity, len(state.players))


__all__ = ["new_identity", "on_open", "on_close"]
