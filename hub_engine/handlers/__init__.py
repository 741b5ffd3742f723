"""HTTP request handlers."""
from hub_engine.handlers.hub_handler import HubHandler

__all__ = ["HubHandler"]
