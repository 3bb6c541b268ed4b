"""Scan trigger route, called by the scheduler."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from Price_Alerts.engine.coordinator import ScanCoordinator
from Price_Alerts.models.scan import ScanReport
from Price_Alerts.web.deps import get_coordinator, verify_cron_secret

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.get(
    "/check",
    response_model=ScanReport,
    dependencies=[Depends(verify_cron_secret)],
)
async def run_check(
    coordinator: Annotated[ScanCoordinator, Depends(get_coordinator)],
) -> ScanReport:
    """Run one scan pass and return its counts.

    A failure to load active alerts surfaces as HTTP 500 through the
    ``AlertStoreError`` handler.
    """
    logger.info("Scan triggered via HTTP")
    return await coordinator.run()
