"""API routers for feature modules."""

from .wall import router as wall_router

__all__ = [
    "wall_router",
]
