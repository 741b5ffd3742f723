"""Routers package."""
from hub_engine.routers.hub_router import router as hub_router, set_hub_handler

__all__ = ["hub_router", "set_hub_handler"]
