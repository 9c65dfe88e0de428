from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class PlayerWebSocketHub:
    """Pushes dialog events to the sockets watching a player.

    A socket joins with `connect(player_id, websocket)`; `broadcast()` sends a
    JSON-serializable dict to every socket of that player concurrently and
    forgets the ones that fail.
    """

    def __init__(self) -> None:
        self._sockets: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, player_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._sockets[player_id].add(websocket)

    async def disconnect(self, player_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            self._discard(player_id, [websocket])

    def _discard(self, player_id: str, sockets: list[WebSocket]) -> None:
        watching = self._sockets.get(player_id)
        if watching is None:
            return
        watching.difference_update(sockets)
        if not watching:
            del self._sockets[player_id]

    def watchers(self, player_id: str) -> int:
        return len(self._sockets.get(player_id, ()))

    async def broadcast(self, player_id: str, payload: dict[str, object]) -> int:
        """Send `payload` to the player's sockets; returns how many received it."""

        async with self._lock:
            targets = list(self._sockets.get(player_id, ()))
        if not targets:
            return 0

        results = await asyncio.gather(*(ws.send_json(payload) for ws in targets), return_exceptions=True)
        failed = [ws for ws, result in zip(targets, results) if isinstance(result, BaseException)]
        if failed:
            logger.debug("Dropping %d dead socket(s) for %s", len(failed), player_id)
            async with self._lock:
                self._discard(player_id, failed)
        return len(targets) - len(failed)


hub = PlayerWebSocketHub()
