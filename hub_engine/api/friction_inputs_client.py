"""Friction inputs gateway client with async HTTP support.

The gateway aggregates the four external providers (ride-share surge,
traffic flow, pedestrian counters, garage occupancy) and returns one
normalized-unit reading per provider, each nullable when that provider is
down.
"""
import logging
import time
from typing import Optional

import httpx

from hub_engine.metrics import (
    FRICTION_INPUTS_API_CALLS_TOTAL,
    FRICTION_INPUTS_API_CALL_DURATION_SECONDS,
    FRICTION_INPUTS_API_ERRORS_TOTAL,
)
from hub_engine.models import FrictionInputs

logger = logging.getLogger(__name__)

FRICTION_INPUTS_ENDPOINT = "/v1/friction-inputs"


class FrictionInputsClient:
    """Async HTTP client for the friction inputs gateway."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the gateway client.

        Args:
            base_url: Base URL of the gateway (e.g., "http://friction-inputs:8000")
            api_key: Bearer token, empty for none
            timeout: Request timeout in seconds
            client: Pre-built AsyncClient (tests inject a MockTransport-backed one)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
        )

    async def close(self):
        """Close the HTTP client and clean up resources."""
        await self.client.aclose()

    async def _request(self, method: str, endpoint: str, params: Optional[dict] = None) -> dict:
        """Make an HTTP request to the gateway.

        Raises:
            httpx.HTTPStatusError: If response status is not 2xx
            httpx.RequestError: If request fails
        """
        url = f"{self.base_url}{endpoint}"
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        logger.debug(f"[FrictionInputsClient] {method} {url} params={params}")

        start_time = time.perf_counter()

        try:
            response = await self.client.request(
                method=method, url=url, params=params, headers=headers
            )
            response.raise_for_status()
            response_json = response.json()

            duration = time.perf_counter() - start_time
            FRICTION_INPUTS_API_CALL_DURATION_SECONDS.labels(endpoint=endpoint).observe(duration)
            FRICTION_INPUTS_API_CALLS_TOTAL.labels(endpoint=endpoint, status="success").inc()

            return response_json

        except httpx.HTTPStatusError as e:
            self._record_error(endpoint, start_time, "http_error")
            logger.error(f"[FrictionInputsClient] HTTP error on {method} {endpoint}: {e}")
            raise
        except httpx.TimeoutException as e:
            self._record_error(endpoint, start_time, "timeout")
            logger.error(f"[FrictionInputsClient] Timeout on {method} {endpoint}: {e}")
            raise
        except httpx.RequestError as e:
            self._record_error(endpoint, start_time, "connection_error")
            logger.error(f"[FrictionInputsClient] Request error on {method} {endpoint}: {e}")
            raise

    def _record_error(self, endpoint: str, start_time: float, error_type: str) -> None:
        duration = time.perf_counter() - start_time
        FRICTION_INPUTS_API_CALL_DURATION_SECONDS.labels(endpoint=endpoint).observe(duration)
        FRICTION_INPUTS_API_CALLS_TOTAL.labels(endpoint=endpoint, status="error").inc()
        FRICTION_INPUTS_API_ERRORS_TOTAL.labels(endpoint=endpoint, error_type=error_type).inc()

    async def get_friction_inputs(self, venue_id: str) -> FrictionInputs:
        """Fetch the current raw readings for one venue.

        Returns:
            FrictionInputs with None for every provider that is down
        """
        response = await self._request("GET", FRICTION_INPUTS_ENDPOINT, params={"venue_id": venue_id})
        return FrictionInputs.model_validate(response)
