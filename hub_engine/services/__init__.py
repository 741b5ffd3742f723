"""Services package."""
from hub_engine.services.transition_broadcaster import TransitionBroadcaster
from hub_engine.services.venue_state_service import VenueStateService
from hub_engine.services.friction_refresher_service import FrictionRefresherService
from hub_engine.services.sync_service import SyncService
from hub_engine.services.seed_service import SeedService

__all__ = [
    "TransitionBroadcaster",
    "VenueStateService",
    "FrictionRefresherService",
    "SyncService",
    "SeedService",
]
