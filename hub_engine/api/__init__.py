"""External HTTP API clients."""
from hub_engine.api.friction_inputs_client import FrictionInputsClient
from hub_engine.api.hub_sync_client import HubSyncClient

__all__ = ["FrictionInputsClient", "HubSyncClient"]
