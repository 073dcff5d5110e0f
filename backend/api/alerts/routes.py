import asyncio
import logging
from typing import List, Optional
from fastapi import APIRouter, Body, Depends, HTTPException
from api.auth.schemas import UserResponseSchema
from api.auth.security import get_optional_user
from api.alerts.intake import IntakeRejected
from api.alerts.schemas import AlertAccepted, AlertIn, AlertResponse
from core.alert_store import AlertStoreError
from services import AlarmServices, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Alerts"])


@router.post("/alert", response_model=AlertAccepted)
async def receive_alert(payload: Optional[AlertIn] = Body(None), services: AlarmServices = Depends(get_services)):
    """Stores an alert from the device gateway; notification and capture continue in the background."""
    logger.info(f"Alert received: {payload.model_dump(exclude_none=True) if payload else None}")
    try:
        alert = await services.intake.submit(payload)
    except IntakeRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)

    return {"message": "Alert received and stored", "alert_id": alert.id}


@router.get("/alerts", response_model=List[AlertResponse])
async def get_alerts(services: AlarmServices = Depends(get_services),
                     current_user: Optional[UserResponseSchema] = Depends(get_optional_user)):
    """Fetch alerts, newest first. Non-admin users only see their own devices."""
    try:
        device_ids = None
        if current_user is not None and not current_user.is_admin:
            device_ids = await asyncio.to_thread(services.resolver.device_ids_for_user, current_user.id)
        return await asyncio.to_thread(services.store.list, device_ids)
    except AlertStoreError as e:
        logger.error(f"Listing alerts failed: {e}")
        raise HTTPException(status_code=500, detail="Error fetching alerts")


@router.get("/alerts/{alert_id}", response_model=AlertResponse)
async def get_alert(alert_id: int, services: AlarmServices = Depends(get_services)):
    """Fetch an alert by ID."""
    alert = await asyncio.to_thread(services.store.get, alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    return alert


@router.delete("/alerts/{alert_id}")
async def delete_alert(alert_id: int, services: AlarmServices = Depends(get_services)):
    """Delete an alert and its video clip."""
    if services.orchestrator.cancel(alert_id):
        logger.info(f"Cancelled in-flight capture for alert {alert_id}")

    alert = await asyncio.to_thread(services.store.delete, alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")

    clip = services.orchestrator.owned_clip(alert.id, alert.video_path)
    if clip is not None:
        try:
            clip.unlink()
            logger.info(f"Deleted clip {clip}")
        except FileNotFoundError:
            logger.info(f"Clip {clip} already gone")

    return {"message": "Alert deleted successfully"}
