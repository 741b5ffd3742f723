"""Dependency injection container for application components."""
import logging
from typing import Optional

import redis
import redis.asyncio as aioredis

from hub_engine.api import FrictionInputsClient, HubSyncClient
from hub_engine.config import Settings
from hub_engine.dao import HubEventLog, RedisVenueDAO
from hub_engine.db import GeoRedisClient
from hub_engine.handlers import HubHandler
from hub_engine.models import FilterRules, OpenDoorRules
from hub_engine.realtime import (
    HubSession,
    InMemoryCursorStore,
    ReconnectPolicy,
    RedisCursorStore,
    RedisTransport,
)
from hub_engine.services import (
    FrictionRefresherService,
    SeedService,
    SyncService,
    VenueStateService,
)

logger = logging.getLogger(__name__)


class Container:
    """Dependency injection container.

    Initializes and wires up all application dependencies.
    """

    def __init__(self, settings: Settings, redis_internal_client: Optional[redis.Redis] = None):
        """Initialize container with all dependencies.

        Args:
            settings: Application settings
            redis_internal_client: Pre-built redis-py client (a real connection is made if None)
        """
        logger.info("[Container] Initializing container")
        self.settings = settings

        if redis_internal_client is None:
            logger.info(
                f"[Container] Connecting to Redis at {settings.redis_host}:{settings.redis_port}"
            )
            redis_internal_client = redis.Redis(
                host=settings.redis_host,
                port=settings.redis_port,
                password=settings.redis_password or None,
                db=settings.redis_db,
                decode_responses=True,
            )

        # GeoRedisClient pings on construction and raises if Redis is unreachable
        self.redis_client = GeoRedisClient(redis_internal_client)

        # Data access
        self.redis_venue_dao = RedisVenueDAO(self.redis_client)
        self.hub_event_log = HubEventLog(self.redis_client, max_length=settings.event_log_max_length)

        # External API clients
        self.friction_inputs_client = FrictionInputsClient(
            base_url=settings.friction_inputs_base_url,
            api_key=settings.friction_inputs_api_key,
            timeout=settings.friction_inputs_timeout_seconds,
        )

        # Services
        self.venue_state_service = VenueStateService(
            self.redis_venue_dao,
            self.hub_event_log,
            required_confirmations=settings.transition_confirmations,
            window_seconds=settings.transition_batch_window_seconds,
            max_jitter_seconds=settings.transition_max_jitter_seconds,
        )
        logger.info("[Container] Venue state service initialized")

        self.friction_refresher_service = FrictionRefresherService(
            self.redis_venue_dao, self.friction_inputs_client
        )
        logger.info("[Container] Friction refresher service initialized")

        self.sync_service = SyncService(
            self.redis_venue_dao,
            self.hub_event_log,
            default_rules=FilterRules(
                open_door=OpenDoorRules(
                    max_wait_minutes=settings.default_max_wait_minutes,
                    max_friction=settings.default_max_friction,
                )
            ),
            default_rules_version=settings.default_filter_rules_version,
        )

        self.seed_service = SeedService(self.redis_venue_dao)

        # Handlers
        self.hub_handler = HubHandler(
            self.redis_venue_dao,
            self.sync_service,
            self.venue_state_service,
            gravity_max_iterations=settings.gravity_cluster_max_iterations,
        )

        logger.info("[Container] Container initialized successfully")

    def create_hub_session(
        self, hub_id: str, server_base_url: str, client_id: Optional[str] = None
    ) -> HubSession:
        """Build a realtime client session for a hub.

        Must be called from a running event loop. With a client_id the sync
        cursor is persisted in Redis, otherwise it is kept in memory.
        """
        settings = self.settings
        sync_client = HubSyncClient(server_base_url)
        async_redis = aioredis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password or None,
            db=settings.redis_db,
            decode_responses=True,
        )
        cursor_store = (
            RedisCursorStore(self.redis_venue_dao, client_id) if client_id else InMemoryCursorStore()
        )
        return HubSession(
            hub_id,
            RedisTransport(async_redis, sync_client.fetch_sync),
            sync_client,
            cursor_store=cursor_store,
            policy=ReconnectPolicy.from_settings(settings),
            background_grace_seconds=settings.realtime_background_grace_seconds,
        )

    async def shutdown(self):
        """Clean up resources on shutdown."""
        logger.info("[Container] Shutting down")

        try:
            await self.venue_state_service.close()
            logger.info("[Container] Transition broadcaster closed")
        except Exception as e:
            logger.error(f"[Container] Error closing transition broadcaster: {e}")

        try:
            await self.friction_inputs_client.close()
            logger.info("[Container] Friction inputs client closed")
        except Exception as e:
            logger.error(f"[Container] Error closing friction inputs client: {e}")
