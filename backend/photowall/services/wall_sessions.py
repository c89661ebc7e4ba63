"""In-memory registry of per-client walls."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar, Union

from ..models.schemas import PhotoPayload
from ..models.wall import Photo
from .wall import PhotoWall

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WallSessionManager:
    """Keep one independent ``PhotoWall`` per client and serialize access to it."""

    def __init__(self, wall_factory: Optional[Callable[..., PhotoWall]] = None) -> None:
        self._lock = asyncio.Lock()
        self._walls: Dict[str, PhotoWall] = {}
        self._wall_factory = wall_factory or PhotoWall

    async def create(
        self,
        client_id: str,
        *,
        viewport_width: Optional[float] = None,
        viewport_height: Optional[float] = None,
        photos: Iterable[Union[Photo, PhotoPayload, dict]] = (),
        seed: Optional[int] = None,
    ) -> Dict[str, Any]:
        rng = random.Random(seed) if seed is not None else None
        wall = self._wall_factory(viewport_width, viewport_height, rng=rng)
        wall.load(photos)
        async with self._lock:
            previous = self._walls.get(client_id)
            self._walls[client_id] = wall
        if previous is not None:
            logger.info("Replaced wall for client %s", client_id)
        return wall.to_payload()

    async def get(self, client_id: str) -> Optional[PhotoWall]:
        async with self._lock:
            return self._walls.get(client_id)

    async def drop(self, client_id: str) -> bool:
        async with self._lock:
            return self._walls.pop(client_id, None) is not None

    async def list_clients(self) -> List[Dict[str, Any]]:
        async with self._lock:
            items = [(client_id, len(wall.engine)) for client_id, wall in self._walls.items()]
        items.sort(key=lambda item: item[0])
        return [{"client_id": client_id, "photo_count": count} for client_id, count in items]

    async def run(self, client_id: str, operation: Callable[[PhotoWall], T]) -> Optional[T]:
        """Apply ``operation`` to one wall under the lock; None if the wall is unknown."""
        async with self._lock:
            wall = self._walls.get(client_id)
            if wall is None:
                return None
            return operation(wall)

    async def apply_event(self, client_id: str, message: Any) -> Optional[bool]:
        return await self.run(client_id, lambda wall: wall.on_live_event(message))

    async def broadcast_event(self, message: Any) -> Dict[str, bool]:
        """Apply one live event to every wall; each keeps its own layout."""
        async with self._lock:
            return {client_id: wall.on_live_event(message) for client_id, wall in self._walls.items()}


wall_sessions = WallSessionManager()
