"""FastAPI routes for hub endpoints."""
import logging

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from hub_engine.exceptions import CursorExpiredError, HubNotFoundError, VenueNotFoundError
from hub_engine.models import (
    FilterRulesRecord,
    HubSnapshot,
    OpenDoorVenue,
    SyncResponse,
    VenueGravityWell,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Global handler reference - set during startup
_hub_handler = None


def set_hub_handler(handler):
    """Set the hub handler instance (called during startup)."""
    global _hub_handler
    _hub_handler = handler
    logger.info("[HubRouter] Handler injected successfully")


def get_handler():
    """Get the hub handler, raising error if not initialized."""
    if _hub_handler is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return _hub_handler


class OccupancyReading(BaseModel):
    occupancy: int = Field(..., ge=0)


@router.get(
    "/v1/hubs/{hub_id}/open-door",
    response_model=list[OpenDoorVenue],
    summary="Open Door venues",
    description="Venues passing the Open Door predicate; failing venues are never returned",
)
def get_open_door(hub_id: str) -> list[OpenDoorVenue]:
    try:
        return get_handler().get_open_door_venues(hub_id)
    except HTTPException:
        raise
    except HubNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"[HubRouter] Error in get_open_door: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get(
    "/v1/hubs/{hub_id}/snapshot",
    response_model=HubSnapshot,
    summary="Hub snapshot",
    description="Full venue set with the cursor to hold for subsequent delta syncs",
)
def get_snapshot(hub_id: str) -> HubSnapshot:
    try:
        return get_handler().get_snapshot(hub_id)
    except HTTPException:
        raise
    except HubNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"[HubRouter] Error in get_snapshot: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get(
    "/v1/hubs/{hub_id}/sync",
    response_model=SyncResponse,
    response_model_by_alias=True,
    summary="Delta sync",
    description="State changes after the given cursor; 410 means a new snapshot is required",
)
def get_sync(
    hub_id: str,
    last_event_id: str = Query(..., description="Last event id held by the client"),
) -> SyncResponse:
    try:
        return get_handler().get_sync(hub_id, last_event_id)
    except HTTPException:
        raise
    except HubNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CursorExpiredError as e:
        raise HTTPException(status_code=410, detail=str(e))
    except Exception as e:
        logger.error(f"[HubRouter] Error in get_sync: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get(
    "/v1/hubs/{hub_id}/filter-rules",
    response_model=FilterRulesRecord,
    summary="Hub filter rules",
)
def get_filter_rules(hub_id: str) -> FilterRulesRecord:
    try:
        return get_handler().get_filter_rules(hub_id)
    except HTTPException:
        raise
    except HubNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"[HubRouter] Error in get_filter_rules: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get(
    "/v1/hubs/{hub_id}/gravity-wells",
    response_model=list[VenueGravityWell],
    summary="Gravity wells",
    description="Resolved visibility radius and glow color per venue",
)
def get_gravity_wells(hub_id: str) -> list[VenueGravityWell]:
    try:
        return get_handler().get_gravity_wells(hub_id)
    except HTTPException:
        raise
    except HubNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"[HubRouter] Error in get_gravity_wells: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post(
    "/v1/venues/{venue_id}/occupancy",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Ingest occupancy reading",
    description="Raw head count from a venue sensor; only the debounced bucket is ever published",
)
async def post_occupancy(venue_id: str, reading: OccupancyReading) -> dict[str, str]:
    # async so the debouncer's batch window is scheduled on the running loop
    try:
        get_handler().record_occupancy(venue_id, reading.occupancy)
        return {"status": "accepted"}
    except HTTPException:
        raise
    except VenueNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"[HubRouter] Error in post_occupancy for {venue_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get(
    "/ping",
    summary="Health check",
)
def ping() -> dict[str, str]:
    return get_handler().ping()
