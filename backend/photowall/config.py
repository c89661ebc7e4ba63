import os
from dataclasses import dataclass
from typing import Optional


def _load_dotenv_if_present() -> None:
    try:
        from dotenv import load_dotenv
    except Exception:
        return
    # Root first, then backend/.env (later does not override earlier by default)
    here = os.path.dirname(__file__)
    backend_dir = os.path.abspath(os.path.join(here, ".."))
    project_root = os.path.abspath(os.path.join(backend_dir, ".."))
    load_dotenv(dotenv_path=os.path.join(project_root, ".env"), override=False)
    load_dotenv(dotenv_path=os.path.join(backend_dir, ".env"), override=False)


_load_dotenv_if_present()


@dataclass
class Settings:
    # Wall geometry
    base_cell_size: float = float(os.getenv("PHOTOWALL_BASE_CELL_SIZE", "250"))
    default_viewport_width: int = int(os.getenv("PHOTOWALL_VIEWPORT_WIDTH", "1920"))
    default_viewport_height: int = int(os.getenv("PHOTOWALL_VIEWPORT_HEIGHT", "1080"))

    # Image sources and export output
    photos_dir: str = os.getenv("PHOTOS_DIR", "backend/photos")
    export_dir: str = os.getenv("EXPORT_DIR", "backend/exports")
    export_jpeg_quality: int = int(os.getenv("EXPORT_JPEG_QUALITY", "95"))
    image_fetch_timeout: float = float(os.getenv("IMAGE_FETCH_TIMEOUT", "10"))
    # Optional TrueType font for export captions; falls back to DejaVu / Pillow default
    caption_font_path: Optional[str] = os.getenv("CAPTION_FONT_PATH")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    def __post_init__(self) -> None:
        here = os.path.dirname(__file__)
        backend_dir = os.path.abspath(os.path.join(here, ".."))
        project_root = os.path.abspath(os.path.join(backend_dir, ".."))

        def resolve(p: str) -> str:
            p_expanded = os.path.expanduser(p)
            if os.path.isabs(p_expanded):
                return p_expanded
            return os.path.abspath(os.path.join(project_root, p_expanded))

        self.photos_dir = resolve(self.photos_dir)
        self.export_dir = resolve(self.export_dir)
        if self.caption_font_path:
            self.caption_font_path = resolve(self.caption_font_path)
        self.log_level = self.log_level.upper()


settings = Settings()
