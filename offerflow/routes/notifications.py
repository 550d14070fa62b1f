from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter

from offerflow.application import get_offer_coordinator

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def drain_notifications() -> dict:
    """Return and clear the notifications raised since the last call."""
    coordinator = get_offer_coordinator()
    return {"items": [asdict(item) for item in coordinator.notifications.drain()]}
