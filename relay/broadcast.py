"""Fixed-rate broadcast of room snapshots.

Each tick every ready player is sent an ``others`` frame listing the current
state of every other member of their room. Snapshots are built from a single
consistent view of the registries before any send is awaited.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple

from .player import Player
from .schemas import OthersUpdate, encode
from .state import RelayState

logger = logging.getLogger(__name__)


def build_others(state: RelayState, player: Player) -> Optional[OthersUpdate]:
    """Return the snapshot *player* should receive, or ``None`` if their room is gone."""
    if player.room_id is None:
        return None
    members = state.rooms.get(player.room_id)
    if members is None:
        return None

    others = []
    for identity in sorted(members):
        if identity == player.identity:
            continue
        other = state.players.get(identity)
        if other is None:
            # Disconnected between room lookup and player lookup.
            continue
        others.append(other.snapshot())
    return OthersUpdate(players=others)


async def _send(player: Player, payload: str, timeout: Optional[float] = None) -> bool:
    try:
        await asyncio.wait_for(player.channel.send_text(payload), timeout)
    except asyncio.TimeoutError:
        logger.warning("Timed out sending snapshot to player %s", player.identity)
        return False
    except Exception as exc:
        # Cleanup is left to the connection's own close handling.
        logger.warning("Failed to send snapshot to player %s: %s", player.identity, exc)
        return False
    return True


async def broadcast_others(state: RelayState, send_timeout: Optional[float] = None) -> int:
    """Run one broadcast tick. Returns the number of snapshots delivered.

    A send still pending after *send_timeout* seconds is abandoned, so a client
    that stops reading cannot hold up the next tick.
    """
    outgoing: List[Tuple[Player, str]] = []
    for player in state.players.ready_players():
        try:
            update = build_others(state, player)
        except Exception:
            logger.exception("Could not build snapshot for player %s", player.identity)
            continue
        if update is None:
            continue
        outgoing.append((player, encode(update)))

    if not outgoing:
        return 0
    results = await asyncio.gather(*(_send(player, payload, send_timeout) for player, payload in outgoing))
    return sum(results)


class BroadcastScheduler:
    """Owns the background task that calls :func:`broadcast_others` every *interval* seconds.

    Usable as an async context manager; leaving the block cancels the task.
    """

    def __init__(self, state: RelayState, interval: float):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.state = state
        self.interval = interval
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_rate(cls, state: RelayState, tick_rate: float) -> "BroadcastScheduler":
        return cls(state, 1.0 / tick_rate)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Broadcast scheduler started (%.1f Hz)", 1.0 / self.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Broadcast scheduler stopped after %d ticks", self.ticks)

    async def __aenter__(self) -> "BroadcastScheduler":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while True:
            deadline += self.interval
            try:
                await broadcast_others(self.state, send_timeout=self.interval)
            except Exception:
                logger.exception("Broadcast tick failed")
            self.ticks += 1

            delay = deadline - loop.time()
            if delay < 0:
                # Fell behind; resync instead of bursting to catch up.
                deadline = loop.time()
                delay = 0
            await asyncio.sleep(delay)


__all__ = ["build_others", "broadcast_others", "BroadcastScheduler"]
