from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..handlers import handle_message
from ..lifecycle import on_close, on_open
from ..state import RelayState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["ws"])


def _frame_text(message: dict) -> Optional[str]:
    """Extract the payload of a ``websocket.receive`` message; binary frames are decoded as UTF-8."""
    text = message.get("text")
    if text is not None:
        return text
    data = message.get("bytes")
    if data is not None:
        return data.decode("utf-8", errors="replace")
    return None


@router.websocket("/")
@router.websocket("/ws")
async def relay_ws_endpoint(ws: WebSocket):
    state: RelayState = ws.app.state.relay
    await ws.accept()
    player = on_open(state, ws)
    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = _frame_text(message)
            if raw is None:
                continue
            await handle_message(state, player.identity, raw)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WebSocket error for player %s", player.identity)
    finally:
        on_close(state, player.identity)


__all__ = ["router"]
