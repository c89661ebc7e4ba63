"""Composite raster export of the whole wall, independent of on-screen layout."""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from io import BytesIO
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

import numpy as np
from fastapi.concurrency import run_in_threadpool
from PIL import Image, ImageChops, ImageDraw, ImageFilter, ImageFont, ImageOps

from ..config import Settings, settings as default_settings
from ..models.wall import (
    CAPTION_MARGIN,
    CARD_HEIGHT,
    CARD_PADDING,
    CARD_RADIUS,
    CARD_WIDTH,
    IMAGE_HEIGHT,
    IMAGE_RADIUS,
    Photo,
)
from ..utils.fs import ensure_dirs
from ..utils.metadata import compute_sha256, utc_now_iso_z, write_metadata
from .image_loader import ImageLoader

logger = logging.getLogger(__name__)

QUALITY_TIERS: Dict[str, int] = {"standard": 2, "high": 3, "ultra": 4}
FORMATS: Dict[str, str] = {"png": "image/png", "jpeg": "image/jpeg"}

CELL_MARGIN = 50
FONT_SIZE = 16
LINE_HEIGHT_RATIO = 1.2
CAPTION_SIDE_PADDING = 20
SHADOW_BLUR = 25
SHADOW_OFFSET_Y = 20
SHADOW_ALPHA = 0.4

BACKGROUND_START = (0x66, 0x7E, 0xEA)
BACKGROUND_END = (0x76, 0x4B, 0xA2)
CARD_COLOR = (255, 255, 255)
CAPTION_COLOR = (0x2C, 0x3E, 0x50)

TimestampFactory = Callable[[], datetime]


class ExportError(ValueError):
    """Export request that cannot produce a file."""


class EmptyWallError(ExportError):
    def __init__(self) -> None:
        super().__init__("No photos to export!")


class UnsupportedExportOption(ExportError):
    pass


class SupportsLoadAll(Protocol):
    async def load_all(self, image_refs: Sequence[str]) -> List[Optional[Image.Image]]: ...


@dataclass
class CardMetrics:
    """Pixel geometry of one exported card at a given scale."""

    scale: int
    width: int
    height: int
    padding: int
    image_width: int
    image_height: int
    caption_margin: int
    font_size: int
    radius: int
    image_radius: int
    cell_size: int

    @classmethod
    def for_scale(cls, scale: int) -> "CardMetrics":
        width = CARD_WIDTH * scale
        height = CARD_HEIGHT * scale
        padding = CARD_PADDING * scale
        return cls(
            scale=scale,
            width=width,
            height=height,
            padding=padding,
            image_width=width - 2 * padding,
            image_height=IMAGE_HEIGHT * scale,
            caption_margin=CAPTION_MARGIN * scale,
            font_size=FONT_SIZE * scale,
            radius=CARD_RADIUS * scale,
            image_radius=IMAGE_RADIUS * scale,
            cell_size=max(width, height) + CELL_MARGIN * scale,
        )

    @property
    def caption_max_width(self) -> int:
        return self.image_width - CAPTION_SIDE_PADDING

    @property
    def line_height(self) -> float:
        return self.font_size * LINE_HEIGHT_RATIO


@dataclass
class ExportResult:
    filename: str
    content: bytes
    media_type: str
    format: str
    quality: str
    width: int
    height: int
    photo_keys: List[str]
    failed_keys: List[str] = field(default_factory=list)

    def to_metadata(self) -> Dict[str, Any]:
        return {
            "generation_type": "wall_export",
            "output_image": self.filename,
            "output_format": self.format,
            "quality": self.quality,
            "output_size": {"width": self.width, "height": self.height},
            "photos": self.photo_keys,
            "failed_photos": self.failed_keys,
            "created_at": utc_now_iso_z(),
        }


def resolve_options(quality: str, fmt: str) -> Tuple[str, int, str]:
    """Normalize a quality tier and format; returns ``(tier, scale, format)``."""
    tier = (quality or "standard").strip().lower()
    if tier not in QUALITY_TIERS:
        raise UnsupportedExportOption(
            f"unknown quality tier: {quality!r} (expected one of {', '.join(QUALITY_TIERS)})"
        )
    fmt_norm = (fmt or "png").strip().lower()
    if fmt_norm == "jpg":
        fmt_norm = "jpeg"
    if fmt_norm not in FORMATS:
        raise UnsupportedExportOption(f"unknown format: {fmt!r} (expected png or jpeg)")
    return tier, QUALITY_TIERS[tier], fmt_norm


def grid_shape(count: int) -> Tuple[int, int]:
    """Square-ish ``(rows, cols)`` for ``count`` cards."""
    if count <= 0:
        return 0, 0
    cols = math.ceil(math.sqrt(count))
    rows = math.ceil(count / cols)
    return rows, cols


def build_filename(tier: str, fmt: str, timestamp: datetime) -> str:
    stamp = timestamp.strftime("%Y-%m-%dT%H:%M:%S").replace(":", "-")
    return f"polaroid-wall-{tier}-{stamp}.{fmt}"


@lru_cache(maxsize=16)
def get_caption_font(px: int, font_path: Optional[str] = None) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load the caption font at ``px`` pixels with fallback; cached."""
    candidates = [font_path] if font_path else []
    candidates += ["DejaVuSans-Bold.ttf", "DejaVuSans.ttf"]
    for candidate in candidates:
        try:
            return ImageFont.truetype(candidate, px)
        except OSError:
            continue
    return ImageFont.load_default(size=px)


def wrap_caption(text: str, font: ImageFont.FreeTypeFont | ImageFont.ImageFont, max_width: float) -> List[str]:
    """Greedy word wrap: fill each line until the next word would overflow.

    A single word wider than ``max_width`` keeps a line to itself.
    """
    words = text.split()
    if not words:
        return [""]
    lines: List[str] = []
    line = ""
    for index, word in enumerate(words):
        test_line = f"{line}{word} "
        if font.getlength(test_line) > max_width and index > 0:
            lines.append(line.strip())
            line = f"{word} "
        else:
            line = test_line
    lines.append(line.strip())
    return lines


def gradient_background(width: int, height: int, chunk_rows: int = 512) -> Image.Image:
    """Diagonal linear gradient from top-left to bottom-right."""
    start = np.array(BACKGROUND_START, dtype=np.float32)
    delta = np.array(BACKGROUND_END, dtype=np.float32) - start
    norm = float(width * width + height * height) or 1.0
    xs = np.arange(width, dtype=np.float32) * width
    out = np.empty((height, width, 3), dtype=np.uint8)
    # chunked so ultra-tier canvases do not need a full float buffer
    for top in range(0, height, chunk_rows):
        ys = np.arange(top, min(height, top + chunk_rows), dtype=np.float32)[:, None] * height
        t = np.clip((xs[None, :] + ys) / norm, 0.0, 1.0)
        out[top : top + t.shape[0]] = (start + t[..., None] * delta).round().astype(np.uint8)
    return Image.fromarray(out)


def rounded_mask(size: Tuple[int, int], radius: int, fill: int = 255) -> Image.Image:
    mask = Image.new("L", size, 0)
    ImageDraw.Draw(mask).rounded_rectangle((0, 0, size[0] - 1, size[1] - 1), radius=radius, fill=fill)
    return mask


def cover_fit(img: Image.Image, size: Tuple[int, int]) -> Image.Image:
    """Scale to fill ``size`` and center-crop the overflow."""
    return ImageOps.fit(img, size, Image.Resampling.LANCZOS, centering=(0.5, 0.5))


class ExportCompositor:
    """Render the tracked photos as Polaroid cards on one canvas."""

    def __init__(
        self,
        *,
        loader: Optional[SupportsLoadAll] = None,
        config: Optional[Settings] = None,
        timestamp_factory: Optional[TimestampFactory] = None,
    ) -> None:
        self._config = config or default_settings
        self._loader = loader or ImageLoader(config=self._config)
        self._timestamp_factory: TimestampFactory = timestamp_factory or (lambda: datetime.now(timezone.utc))

    async def export(self, photos: Sequence[Photo], quality: str = "standard", fmt: str = "png") -> ExportResult:
        photos = list(photos)
        if not photos:
            raise EmptyWallError()
        tier, scale, fmt_norm = resolve_options(quality, fmt)

        images = await self._loader.load_all([photo.image_ref for photo in photos])
        failed = [photo.key for photo, img in zip(photos, images) if img is None]

        canvas = await run_in_threadpool(self.render, photos, images, scale)
        content = await run_in_threadpool(self.encode, canvas, fmt_norm)
        filename = build_filename(tier, fmt_norm, self._timestamp_factory())

        logger.info(
            "Exported %d photos as %s (%dx%d, %d without image)",
            len(photos),
            filename,
            canvas.width,
            canvas.height,
            len(failed),
        )
        return ExportResult(
            filename=filename,
            content=content,
            media_type=FORMATS[fmt_norm],
            format=fmt_norm,
            quality=tier,
            width=canvas.width,
            height=canvas.height,
            photo_keys=[photo.key for photo in photos],
            failed_keys=failed,
        )

    def render(
        self,
        photos: Sequence[Photo],
        images: Sequence[Optional[Image.Image]],
        scale: int,
    ) -> Image.Image:
        metrics = CardMetrics.for_scale(scale)
        rows, cols = grid_shape(len(photos))
        canvas = gradient_background(cols * metrics.cell_size, rows * metrics.cell_size)
        font = get_caption_font(metrics.font_size, self._config.caption_font_path)
        shadow = self._shadow_patch(metrics)

        for index, photo in enumerate(photos):
            x, y = self.card_origin(index, cols, metrics)
            img = images[index] if index < len(images) else None
            self._draw_card(canvas, metrics, shadow, font, x, y, photo, img)
        return canvas

    @staticmethod
    def card_origin(index: int, cols: int, metrics: CardMetrics) -> Tuple[int, int]:
        col = index % cols
        row = index // cols
        x = col * metrics.cell_size + (metrics.cell_size - metrics.width) // 2
        y = row * metrics.cell_size + (metrics.cell_size - metrics.height) // 2
        return x, y

    def encode(self, canvas: Image.Image, fmt: str) -> bytes:
        buffer = BytesIO()
        params: Dict[str, Any] = {}
        img = canvas
        if fmt == "jpeg":
            params["quality"] = self._config.export_jpeg_quality
            if img.mode in ("RGBA", "LA"):
                img = img.convert("RGB")
        img.save(buffer, format=fmt.upper(), **params)
        return buffer.getvalue()

    def save(self, result: ExportResult, directory: Optional[str] = None) -> Tuple[str, str]:
        """Write the composite and a JSON sidecar; returns both paths."""
        target_dir = directory or self._config.export_dir
        ensure_dirs([target_dir])
        output_path = os.path.join(target_dir, result.filename)
        with open(output_path, "wb") as f:
            f.write(result.content)
        metadata = result.to_metadata()
        metadata["sha256"] = compute_sha256(output_path)
        metadata_path = write_metadata(metadata, os.path.splitext(result.filename)[0], target_dir)
        return output_path, metadata_path

    def _shadow_patch(self, metrics: CardMetrics) -> Tuple[Image.Image, int]:
        sigma = SHADOW_BLUR * metrics.scale / 2
        pad = int(math.ceil(sigma * 3))
        patch = Image.new("L", (metrics.width + 2 * pad, metrics.height + 2 * pad), 0)
        ImageDraw.Draw(patch).rounded_rectangle(
            (pad, pad, pad + metrics.width - 1, pad + metrics.height - 1),
            radius=metrics.radius,
            fill=int(round(255 * SHADOW_ALPHA)),
        )
        return patch.filter(ImageFilter.GaussianBlur(radius=sigma)), pad

    def _draw_card(
        self,
        canvas: Image.Image,
        metrics: CardMetrics,
        shadow: Tuple[Image.Image, int],
        font: ImageFont.FreeTypeFont | ImageFont.ImageFont,
        x: int,
        y: int,
        photo: Photo,
        img: Optional[Image.Image],
    ) -> None:
        shadow_mask, pad = shadow
        sx = x - pad
        sy = y - pad + SHADOW_OFFSET_Y * metrics.scale
        canvas.paste((0, 0, 0), (sx, sy, sx + shadow_mask.width, sy + shadow_mask.height), shadow_mask)

        draw = ImageDraw.Draw(canvas)
        draw.rounded_rectangle(
            (x, y, x + metrics.width - 1, y + metrics.height - 1),
            radius=metrics.radius,
            fill=CARD_COLOR,
        )

        if img is not None:
            size = (metrics.image_width, metrics.image_height)
            fitted = cover_fit(img, size)
            mask = rounded_mask(size, metrics.image_radius)
            if fitted.mode == "RGBA":
                mask = ImageChops.multiply(mask, fitted.getchannel("A"))
            canvas.paste(fitted.convert("RGB"), (x + metrics.padding, y + metrics.padding), mask)

        self._draw_caption(draw, metrics, font, x, y, photo.display_caption)

    def _draw_caption(
        self,
        draw: ImageDraw.ImageDraw,
        metrics: CardMetrics,
        font: ImageFont.FreeTypeFont | ImageFont.ImageFont,
        x: int,
        y: int,
        caption: str,
    ) -> None:
        lines = wrap_caption(caption, font, metrics.caption_max_width)
        line_height = metrics.line_height
        start_y = y + metrics.padding + metrics.image_height + metrics.caption_margin + line_height / 2
        center_x = x + metrics.width / 2
        for line_index, text in enumerate(lines):
            if not text:
                continue
            center_y = start_y + line_index * line_height
            left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
            tx = center_x - (left + right) / 2
            ty = center_y - (top + bottom) / 2
            draw.text((round(tx), round(ty)), text, font=font, fill=CAPTION_COLOR)
