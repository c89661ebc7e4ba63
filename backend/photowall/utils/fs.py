import os
from typing import Iterable


def ensure_dirs(dirs: Iterable[str]) -> None:
    for d in dirs:
        os.makedirs(d, exist_ok=True)


def safe_basename(name: str) -> str:
    """Strip any directory part so references cannot escape their root."""
    base = os.path.basename(name.replace("\\", "/").rstrip("/"))
    return "" if base in (".", "..") else base
