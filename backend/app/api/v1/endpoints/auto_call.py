"""
Auto-Call API Endpoints
Start/stop the auto-call scheduler, change its settings and preview eligible leads
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from app.api.v1.dependencies import CurrentUser, get_auto_call_scheduler, get_current_user
from app.domain.models.auto_call import AutoCallSettingsUpdate, EligibleLeadsFilter
from app.workers.auto_call_scheduler import AutoCallScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auto-call", tags=["auto-call"])


class AutoCallResponse(BaseModel):
    """Envelope for auto-call endpoints"""
    success: bool
    message: str
    data: Optional[Any] = None


@router.post("/start", response_model=AutoCallResponse)
async def start_auto_calling(
    settings: Optional[AutoCallSettingsUpdate] = None,
    current_user: CurrentUser = Depends(get_current_user),
    scheduler: AutoCallScheduler = Depends(get_auto_call_scheduler)
):
    """
    Start the auto-call scheduler.

    Optional body applies settings before starting. Starting a running
    scheduler is a no-op.
    """
    if settings is not None:
        scheduler.update_settings(
            call_delay=settings.call_delay,
            max_calls_per_batch=settings.max_calls_per_batch
        )

    started = scheduler.start()
    logger.info(f"Auto-call start requested by user {current_user.id} (started={started})")

    return AutoCallResponse(
        success=True,
        message="Auto calling service started" if started else "Auto calling is already running",
        data=scheduler.get_status()
    )


@router.post("/stop", response_model=AutoCallResponse)
async def stop_auto_calling(
    current_user: CurrentUser = Depends(get_current_user),
    scheduler: AutoCallScheduler = Depends(get_auto_call_scheduler)
):
    """Stop the scheduler; calls already placed keep being tracked."""
    stopped = scheduler.stop()
    logger.info(f"Auto-call stop requested by user {current_user.id} (stopped={stopped})")

    return AutoCallResponse(
        success=True,
        message="Auto calling service stopped" if stopped else "Auto calling is not running",
        data=scheduler.get_status()
    )


@router.get("/status", response_model=AutoCallResponse)
async def get_auto_call_status(
    current_user: CurrentUser = Depends(get_current_user),
    scheduler: AutoCallScheduler = Depends(get_auto_call_scheduler)
):
    return AutoCallResponse(
        success=True,
        message="Auto call status retrieved successfully",
        data=scheduler.get_status()
    )


@router.put("/settings", response_model=AutoCallResponse)
async def update_auto_call_settings(
    settings: AutoCallSettingsUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    scheduler: AutoCallScheduler = Depends(get_auto_call_scheduler)
):
    """Change interval and/or batch size without losing the running state."""
    try:
        status = scheduler.update_settings(
            call_delay=settings.call_delay,
            max_calls_per_batch=settings.max_calls_per_batch
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return AutoCallResponse(
        success=True,
        message="Auto call settings updated successfully",
        data=status
    )


@router.get("/eligible-leads", response_model=AutoCallResponse)
async def get_eligible_leads(
    project_name: Optional[str] = Query(None, description="Only leads for this project"),
    limit: Optional[int] = Query(None, ge=1, le=100),
    mine_only: bool = Query(False, description="Only leads owned by the caller"),
    current_user: CurrentUser = Depends(get_current_user),
    scheduler: AutoCallScheduler = Depends(get_auto_call_scheduler)
):
    """Leads the next cycle could dial, oldest first."""
    lead_filter = EligibleLeadsFilter(
        project_name=project_name,
        user_id=current_user.id if mine_only else None,
        limit=limit
    )

    try:
        leads = await scheduler.get_eligible_leads(lead_filter)
    except Exception as e:
        logger.error(f"Failed to load eligible leads: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load eligible leads")

    data: Dict[str, Any] = {
        "count": len(leads),
        "leads": [lead.model_dump(mode="json") for lead in leads]
    }
    return AutoCallResponse(
        success=True,
        message="Eligible leads retrieved successfully",
        data=data
    )
