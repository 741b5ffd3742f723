"""Tests for configuration, middleware, container wiring and the Redis transport."""
import json

import pytest
from unittest.mock import AsyncMock, Mock

from hub_engine.config import Settings, flatten_json_config, load_json_config
from hub_engine.container import Container
from hub_engine.exceptions import CursorExpiredError
from hub_engine.middleware import PrometheusMiddleware
from hub_engine.models import SyncResponse
from hub_engine.realtime import (
    ChannelMessage,
    InMemoryCursorStore,
    RedisCursorStore,
    RedisTransport,
)


class TestConfig:
    """Test JSON config flattening and precedence."""

    def test_flatten_skips_comments(self):
        config = {
            "_comment": "ignored",
            "redis": {"redis_host": "cache", "redis_port": 6380},
            "realtime": {"realtime_max_retries": 7},
            "log_level": "DEBUG",
        }

        assert flatten_json_config(config) == {
            "redis_host": "cache",
            "redis_port": 6380,
            "realtime_max_retries": 7,
            "log_level": "DEBUG",
        }

    def test_missing_config_file(self, tmp_path):
        assert load_json_config(str(tmp_path / "absent.json")) == {}

    def test_invalid_json_config_file(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{nope")

        assert load_json_config(str(path)) == {}

    def test_json_config_applied(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"jobs": {"friction_refresh_minutes": 2}}))
        monkeypatch.setenv("CONFIG_FILE", str(path))
        monkeypatch.delenv("FRICTION_REFRESH_MINUTES", raising=False)

        assert Settings().friction_refresh_minutes == 2

    def test_env_overrides_json_config(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"friction_refresh_minutes": 2}))
        monkeypatch.setenv("CONFIG_FILE", str(path))
        monkeypatch.setenv("FRICTION_REFRESH_MINUTES", "9")

        assert Settings().friction_refresh_minutes == 9

    def test_resource_path(self, monkeypatch):
        monkeypatch.delenv("CONFIG_FILE", raising=False)
        settings = Settings(project_root="/srv/hub-engine")

        assert str(settings.get_resource_path("seed.json")) == "/srv/hub-engine/resources/seed.json"
        assert settings.redis_address == f"{settings.redis_host}:{settings.redis_port}"


class TestPrometheusMiddleware:
    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/v1/hubs/water-street-tampa/sync", "/v1/hubs/{id}/sync"),
            ("/v1/hubs/water-street-tampa/open-door", "/v1/hubs/{id}/open-door"),
            ("/v1/venues/predalina/occupancy", "/v1/venues/{id}/occupancy"),
            ("/", "/"),
        ],
    )
    def test_normalize_endpoint(self, path, expected):
        middleware = PrometheusMiddleware(app=Mock())
        assert middleware._normalize_endpoint(path) == expected


class TestContainer:
    """Test dependency wiring without a live Redis."""

    @pytest.fixture
    def settings(self, monkeypatch):
        monkeypatch.delenv("CONFIG_FILE", raising=False)
        return Settings(
            transition_confirmations=3,
            transition_batch_window_seconds=60,
            default_max_wait_minutes=25,
            gravity_cluster_max_iterations=4,
        )

    def test_wiring_uses_settings(self, settings):
        redis_client = Mock()

        container = Container(settings, redis_internal_client=redis_client)

        redis_client.ping.assert_called_once()
        assert container.venue_state_service.required_confirmations == 3
        assert container.venue_state_service.broadcaster.window_seconds == 60
        assert container.sync_service.default_rules.open_door.max_wait_minutes == 25
        assert container.hub_handler.gravity_max_iterations == 4
        assert container.hub_handler.sync_service is container.sync_service

    @pytest.mark.asyncio
    async def test_shutdown_closes_clients(self, settings):
        container = Container(settings, redis_internal_client=Mock())
        container.friction_inputs_client.close = AsyncMock()

        await container.shutdown()

        container.friction_inputs_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_create_hub_session(self, settings):
        container = Container(settings, redis_internal_client=Mock())

        durable = container.create_hub_session("h", "http://hub-engine:8080", client_id="c1")
        ephemeral = container.create_hub_session("h", "http://hub-engine:8080")

        assert isinstance(durable.cursor_store, RedisCursorStore)
        assert durable.cursor_store.client_id == "c1"
        assert isinstance(ephemeral.cursor_store, InMemoryCursorStore)
        assert durable.manager.policy.max_retries == settings.realtime_max_retries

        await durable.close()
        await ephemeral.close()


class TestRedisTransport:
    """Test envelope decoding and sync answering without a live Redis."""

    @pytest.fixture
    def on_message(self):
        return Mock()

    def make_transport(self, sync_reader, on_message) -> RedisTransport:
        transport = RedisTransport(Mock(), sync_reader)
        transport.set_listeners(Mock(), on_message)
        return transport

    def test_raw_envelope_delivered(self, on_message):
        transport = self.make_transport(AsyncMock(), on_message)

        transport._on_raw_message(json.dumps({"name": "venue_state", "id": "1-0", "data": {}}))

        on_message.assert_called_once_with(ChannelMessage("venue_state", "1-0", {}))

    def test_undecodable_envelope_dropped(self, on_message):
        transport = self.make_transport(AsyncMock(), on_message)

        transport._on_raw_message("{not json")
        transport._on_raw_message(json.dumps({"id": "1-0"}))

        on_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_sync_answer_delivered_as_sync_message(self, on_message):
        reader = AsyncMock(return_value=SyncResponse(last_event_id="5-0", deltas=[]))
        transport = self.make_transport(reader, on_message)

        await transport._answer_sync("h", "4-0")

        reader.assert_awaited_once_with("h", "4-0")
        message = on_message.call_args.args[0]
        assert message.name == "sync"
        assert message.data["lastEventId"] == "5-0"

    @pytest.mark.asyncio
    async def test_expired_cursor_delivered_as_sync_expired(self, on_message):
        reader = AsyncMock(side_effect=CursorExpiredError("h", "1-0"))
        transport = self.make_transport(reader, on_message)

        await transport._answer_sync("h", "1-0")

        on_message.assert_called_once_with(
            ChannelMessage("sync_expired", None, {"lastEventId": "1-0"})
        )
