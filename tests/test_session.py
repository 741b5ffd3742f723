"""Tests for the realtime hub session and the HTTP clients it uses."""
import asyncio

import httpx
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, Mock

from hub_engine.api import FrictionInputsClient, HubSyncClient
from hub_engine.exceptions import CursorExpiredError, HubNotFoundError
from hub_engine.models import (
    FilterRules,
    FilterRulesRecord,
    HubSnapshot,
    OpenDoorRules,
    Venue,
    VenueStateId,
)
from hub_engine.realtime import (
    ChannelMessage,
    ConnectionState,
    HubSession,
    InMemoryCursorStore,
    TransportEvent,
)

NOW = 1_700_000_000_000


def make_venue(venue_id: str, **overrides) -> Venue:
    fields = dict(
        venue_id=venue_id,
        hub_id="h",
        venue_name=venue_id,
        venue_lat=27.94,
        venue_lng=-82.45,
        state_id=VenueStateId.SOCIAL,
        state_timestamp=NOW,
        friction_score=35.0,
    )
    fields.update(overrides)
    return Venue(**fields)


@pytest.fixture
def mock_transport():
    transport = Mock()
    transport.aclose = AsyncMock()
    return transport


@pytest.fixture
def mock_sync_client():
    client = Mock()
    client.fetch_snapshot = AsyncMock(
        return_value=HubSnapshot(
            hub_id="h",
            last_event_id="50-0",
            filter_rules=FilterRulesRecord(hub_id="h", version="1.0.0"),
            venues=[make_venue("a"), make_venue("b", friction_score=90.0)],
        )
    )
    client.fetch_sync = AsyncMock()
    client.fetch_filter_rules = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def cursor_store():
    return InMemoryCursorStore()


@pytest_asyncio.fixture
async def session(mock_transport, mock_sync_client, cursor_store):
    session = HubSession(
        "h",
        mock_transport,
        mock_sync_client,
        cursor_store=cursor_store,
        background_grace_seconds=0.01,
        clock=lambda: NOW,
    )
    yield session
    await session.close()


class TestHubSession:
    """Test session lifecycle on a real event loop."""

    @pytest.mark.asyncio
    async def test_start_without_cache_drops_cursor_and_snapshots(
        self, session, mock_sync_client, cursor_store
    ):
        cursor_store.save("h", "10-0")

        session.start()
        assert session.state == ConnectionState.CONNECTING
        assert session.manager.last_event_id is None

        session.manager.handle_transport_event(TransportEvent.CONNECTED)
        await session._snapshot_task

        mock_sync_client.fetch_snapshot.assert_awaited_once_with("h")
        assert len(session.venue_cache) == 2
        assert cursor_store.load("h") == "50-0"

    @pytest.mark.asyncio
    async def test_open_door_from_cache(self, session):
        await session.load_snapshot()

        assert [v.venue_id for v in session.open_door_venues()] == ["a"]

    @pytest.mark.asyncio
    async def test_snapshot_is_single_flight(self, session, mock_sync_client):
        session.start()

        session.manager.on_snapshot_required("h")
        session.manager.on_snapshot_required("h")
        await session._snapshot_task

        assert mock_sync_client.fetch_snapshot.await_count == 1

    @pytest.mark.asyncio
    async def test_deltas_after_snapshot(self, session, mock_transport):
        session.start()
        await session.load_snapshot()
        session.manager.handle_transport_event(TransportEvent.CONNECTED)

        session.manager.handle_message(
            ChannelMessage(
                "venue_state",
                "51-0",
                {"venueId": "a", "stateId": 3, "confidence": "live", "timestamp": NOW},
            )
        )

        assert session.venue_cache.get("a").state_id == VenueStateId.PARTY
        mock_transport.send.assert_called_once_with(
            "hub:h", "request_sync", {"lastEventId": "50-0"}
        )

    @pytest.mark.asyncio
    async def test_delta_during_snapshot_recovered_by_sync(
        self, session, mock_sync_client, mock_transport
    ):
        released = asyncio.Event()
        snapshot = mock_sync_client.fetch_snapshot.return_value

        async def slow_snapshot(hub_id):
            await released.wait()
            return snapshot

        mock_sync_client.fetch_snapshot.side_effect = slow_snapshot
        session.start()
        session.manager.handle_transport_event(TransportEvent.CONNECTED)
        await asyncio.sleep(0)

        # Arrives before the snapshot lands and is dropped against the empty cache
        a_party = {"venueId": "a", "stateId": 3, "confidence": "live", "timestamp": NOW}
        session.manager.handle_message(ChannelMessage("venue_state", "51-0", a_party))

        released.set()
        await session._snapshot_task

        mock_transport.send.assert_called_once_with(
            "hub:h", "request_sync", {"lastEventId": "50-0"}
        )

        b_quiet = {"venueId": "b", "stateId": 1, "confidence": "live", "timestamp": NOW}
        session.manager.handle_message(ChannelMessage("venue_state", "52-0", b_quiet))
        session.manager.handle_message(
            ChannelMessage(
                "sync",
                None,
                {"type": "sync", "lastEventId": "52-0", "deltas": [a_party, b_quiet]},
            )
        )

        assert session.venue_cache.get("a").state_id == VenueStateId.PARTY
        assert session.venue_cache.get("b").state_id == VenueStateId.QUIET
        assert session.manager.last_event_id == "52-0"
        assert mock_sync_client.fetch_snapshot.await_count == 1

    @pytest.mark.asyncio
    async def test_background_grace_then_foreground(self, session):
        session.start()
        session.manager.handle_transport_event(TransportEvent.CONNECTED)
        await session._snapshot_task

        session.on_app_background()
        await asyncio.sleep(0.05)
        assert session.state == ConnectionState.DISCONNECTED

        session.on_app_foreground()
        assert session.state == ConnectionState.CONNECTING

    @pytest.mark.asyncio
    async def test_foreground_within_grace_keeps_connection(self, session):
        session.start()
        session.manager.handle_transport_event(TransportEvent.CONNECTED)

        session.on_app_background()
        session.on_app_foreground()
        await asyncio.sleep(0.05)

        assert session.state == ConnectionState.CONNECTED

    @pytest.mark.asyncio
    async def test_minor_advertisement_fetches_rules(self, session, mock_sync_client):
        mock_sync_client.fetch_filter_rules.return_value = FilterRulesRecord(
            hub_id="h",
            version="1.3.0",
            rules=FilterRules(open_door=OpenDoorRules(max_wait_minutes=20)),
        )
        session.start()

        session.manager.handle_message(ChannelMessage("filter_rules", None, {"version": "1.3.0"}))
        await asyncio.sleep(0.01)

        assert session.rules_cache.version == "1.3.0"
        assert session.rules_cache.rules.open_door.max_wait_minutes == 20

    @pytest.mark.asyncio
    async def test_close_releases_resources(self, session, mock_transport, mock_sync_client):
        session.start()

        await session.close()

        mock_transport.aclose.assert_awaited_once()
        mock_sync_client.close.assert_awaited_once()
        assert session.manager.on_snapshot_required is None


class TestHubSyncClient:
    """Test the snapshot/sync HTTP client against a mock transport."""

    @staticmethod
    def make_client(handler) -> HubSyncClient:
        return HubSyncClient(
            "http://hub-engine:8080/",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

    @pytest.mark.asyncio
    async def test_fetch_sync(self):
        def handler(request):
            assert request.url.path == "/v1/hubs/h/sync"
            assert request.url.params["last_event_id"] == "4-0"
            return httpx.Response(200, json={"type": "sync", "lastEventId": "5-0", "deltas": []})

        client = self.make_client(handler)
        response = await client.fetch_sync("h", "4-0")
        await client.close()

        assert response.last_event_id == "5-0"

    @pytest.mark.asyncio
    async def test_fetch_sync_410_raises_cursor_expired(self):
        client = self.make_client(lambda request: httpx.Response(410, json={"detail": "gone"}))

        with pytest.raises(CursorExpiredError):
            await client.fetch_sync("h", "1-0")
        await client.close()

    @pytest.mark.asyncio
    async def test_404_raises_hub_not_found(self):
        client = self.make_client(lambda request: httpx.Response(404, json={"detail": "nope"}))

        with pytest.raises(HubNotFoundError):
            await client.fetch_snapshot("nope")
        await client.close()

    @pytest.mark.asyncio
    async def test_server_error_raises_http_error(self):
        client = self.make_client(lambda request: httpx.Response(500))

        with pytest.raises(httpx.HTTPStatusError):
            await client.fetch_filter_rules("h")
        await client.close()


class TestFrictionInputsClient:
    """Test the friction inputs gateway client."""

    @pytest.mark.asyncio
    async def test_get_friction_inputs(self):
        def handler(request):
            assert request.url.path == "/v1/friction-inputs"
            assert request.url.params["venue_id"] == "v1"
            assert request.headers["Authorization"] == "Bearer secret"
            return httpx.Response(
                200,
                json={"uber_surge": 2.0, "foot_traffic_count": None, "garage_occupancy": 55},
            )

        client = FrictionInputsClient(
            "http://friction-inputs:8000",
            api_key="secret",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        inputs = await client.get_friction_inputs("v1")
        await client.close()

        assert inputs.uber_surge == 2.0
        assert inputs.foot_traffic_count is None
        assert inputs.active_source_count() == 2

    @pytest.mark.asyncio
    async def test_http_error_is_raised(self):
        client = FrictionInputsClient(
            "http://friction-inputs:8000",
            client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(503))),
        )

        with pytest.raises(httpx.HTTPStatusError):
            await client.get_friction_inputs("v1")
        await client.close()
