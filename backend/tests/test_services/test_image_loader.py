"""Tests for image reference resolution and decoding."""

from io import BytesIO
from pathlib import Path

import httpx
import pytest
from PIL import Image

from photowall.services.image_loader import ImageLoader


def _png_bytes(color=(10, 20, 30), size=(8, 6)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def test_resolve_path_strips_directories(test_settings) -> None:
    loader = ImageLoader(config=test_settings)
    assert loader.resolve_path("../../etc/passwd") == Path(test_settings.photos_dir) / "passwd"
    assert loader.resolve_path("/api/photos/proxy/abc123") == Path(test_settings.photos_dir) / "abc123"
    with pytest.raises(ValueError):
        loader.resolve_path("../")


@pytest.mark.asyncio
async def test_loads_file_from_photos_dir(test_settings, write_photo) -> None:
    write_photo("cat.png", color=(200, 100, 50), size=(12, 9))
    loader = ImageLoader(config=test_settings)

    img = await loader.load("cat.png")

    assert img.size == (12, 9)
    assert img.mode == "RGB"
    assert img.getpixel((0, 0)) == (200, 100, 50)


@pytest.mark.asyncio
async def test_load_all_isolates_failures(test_settings, write_photo) -> None:
    write_photo("ok.png")
    (Path(test_settings.photos_dir) / "broken.png").write_bytes(b"not an image")
    loader = ImageLoader(config=test_settings)

    images = await loader.load_all(["ok.png", "missing.png", "broken.png"])

    assert images[0] is not None
    assert images[1] is None
    assert images[2] is None


@pytest.mark.asyncio
async def test_fetches_http_references(test_settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/good.png":
            return httpx.Response(200, content=_png_bytes())
        return httpx.Response(404)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        loader = ImageLoader(config=test_settings, client=client)
        images = await loader.load_all(["https://photos.test/good.png", "https://photos.test/gone.png"])

    assert images[0] is not None
    assert images[0].size == (8, 6)
    assert images[1] is None


@pytest.mark.asyncio
async def test_oversized_image_fails_only_its_slot(test_settings, write_photo, monkeypatch) -> None:
    write_photo("ok.png", size=(8, 8))
    write_photo("huge.png", size=(64, 64))
    # 64x64 is more than twice the limit, which Pillow treats as a decompression bomb
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    loader = ImageLoader(config=test_settings)

    images = await loader.load_all(["ok.png", "huge.png"])

    assert images[0] is not None
    assert images[0].size == (8, 8)
    assert images[1] is None
