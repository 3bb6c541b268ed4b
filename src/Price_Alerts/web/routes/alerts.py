"""Owner CRUD routes for price alerts."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from Price_Alerts.models.alert import AlertCreate, AlertUpdate, PriceAlert
from Price_Alerts.services.alerts import AlertService
from Price_Alerts.web.deps import get_alert_service, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.get("", response_model=list[PriceAlert])
async def list_alerts(
    user_id: Annotated[str, Depends(get_current_user)],
    service: Annotated[AlertService, Depends(get_alert_service)],
) -> list[PriceAlert]:
    """Return the caller's alerts, newest first."""
    return await service.list_alerts(user_id)


@router.post("", response_model=PriceAlert, status_code=201)
async def create_alert(
    payload: AlertCreate,
    user_id: Annotated[str, Depends(get_current_user)],
    service: Annotated[AlertService, Depends(get_alert_service)],
) -> PriceAlert:
    """Create an alert; its direction is fixed from the current market price."""
    return await service.create_alert(user_id, payload)


@router.patch("/{alert_id}", response_model=PriceAlert)
async def update_alert(
    alert_id: str,
    payload: AlertUpdate,
    user_id: Annotated[str, Depends(get_current_user)],
    service: Annotated[AlertService, Depends(get_alert_service)],
) -> PriceAlert:
    """Edit an alert's target, comment, expiry, or active flag."""
    return await service.update_alert(user_id, alert_id, payload)


@router.delete("/{alert_id}")
async def delete_alert(
    alert_id: str,
    user_id: Annotated[str, Depends(get_current_user)],
    service: Annotated[AlertService, Depends(get_alert_service)],
) -> dict[str, bool]:
    await service.delete_alert(user_id, alert_id)
    return {"success": True}
