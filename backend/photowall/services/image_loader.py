"""Fetch and decode photo images for the composite export."""

from __future__ import annotations

import asyncio
import logging
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Sequence

import httpx
from fastapi.concurrency import run_in_threadpool
from PIL import Image, ImageOps, UnidentifiedImageError

from ..config import Settings, settings as default_settings
from ..utils.fs import safe_basename

logger = logging.getLogger(__name__)


def _prepare(img: Image.Image) -> Image.Image:
    img.load()
    img = ImageOps.exif_transpose(img)
    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA" if "A" in img.getbands() or "transparency" in img.info else "RGB")
    return img


def decode_image(data: bytes) -> Image.Image:
    return _prepare(Image.open(BytesIO(data)))


def open_image_file(path: Path) -> Image.Image:
    with Image.open(path) as img:
        return _prepare(img)


class ImageLoader:
    """Resolve image references to decoded Pillow images.

    ``http://`` and ``https://`` references are fetched with httpx; anything
    else names a file inside ``photos_dir``.
    """

    def __init__(
        self,
        *,
        config: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        cfg = config or default_settings
        self._photos_dir = Path(cfg.photos_dir)
        self._timeout = cfg.image_fetch_timeout
        self._client = client

    def resolve_path(self, image_ref: str) -> Path:
        name = safe_basename(image_ref)
        if not name:
            raise ValueError(f"image reference has no file name: {image_ref!r}")
        return self._photos_dir / name

    async def load(self, image_ref: str) -> Image.Image:
        if image_ref.startswith(("http://", "https://")):
            data = await self._fetch(image_ref)
            return await run_in_threadpool(decode_image, data)
        path = self.resolve_path(image_ref)
        if not path.is_file():
            raise FileNotFoundError(f"image not found: {path}")
        return await run_in_threadpool(open_image_file, path)

    async def load_all(self, image_refs: Sequence[str]) -> List[Optional[Image.Image]]:
        """Load every reference concurrently; failed slots come back as None."""
        return list(await asyncio.gather(*(self._load_or_none(ref) for ref in image_refs)))

    async def _load_or_none(self, image_ref: str) -> Optional[Image.Image]:
        try:
            return await self.load(image_ref)
        except (
            httpx.HTTPError,
            OSError,
            UnidentifiedImageError,
            Image.DecompressionBombError,
            ValueError,
        ) as exc:
            logger.warning("Failed to load image %s: %s", image_ref, exc)
            return None

    async def _fetch(self, url: str) -> bytes:
        if self._client is not None:
            response = await self._client.get(url)
            response.raise_for_status()
            return response.content
        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content
