"""
Free trial routes and the admin view of the trial server pool.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends

from app.core.clock import Clock, get_clock
from app.dependencies.auth import get_current_admin
from app.dependencies.services import get_server_pool, get_trial_service
from app.models.admin_user import AdminUser
from app.schemas.trial import (
    StartTrialRequest,
    TrialResponse,
    TrialServerAdminView,
    TrialServerCreate,
    TrialServerInfo,
    TrialServerRequest,
    TrialServerResponse,
)
from app.services.server_pool import ServerPool
from app.services.trials import TrialService

router = APIRouter()


@router.post("/start-trial", response_model=TrialResponse)
async def start_trial(
    body: StartTrialRequest,
    trials: TrialService = Depends(get_trial_service),
    clock: Clock = Depends(get_clock),
):
    """Start the device's free trial. 403 when it is already running, has expired, or the email is bound elsewhere."""
    status = trials.start(body.device_id, body.email, clock())
    return TrialResponse(message="Trial started", trial_active=True, expires_in=status.expires_in)


@router.post("/get-trial-server", response_model=TrialServerResponse)
async def get_trial_server(
    body: Optional[TrialServerRequest] = None,
    pool: ServerPool = Depends(get_server_pool),
    trials: TrialService = Depends(get_trial_service),
    clock: Clock = Depends(get_clock),
):
    """Hand out a trial server. A device that identifies itself must have a running trial."""
    now = clock()
    device_id = body.device_id if body else None
    if device_id:
        trials.require_active(device_id, now)
    allocated = pool.allocate(device_id, now)
    return TrialServerResponse(server=TrialServerInfo(**allocated.as_dict()))


@router.get("/trial-servers", response_model=List[TrialServerAdminView])
async def list_trial_servers(
    pool: ServerPool = Depends(get_server_pool),
    admin: AdminUser = Depends(get_current_admin),
):
    return pool.list_servers()


@router.post("/trial-servers", response_model=TrialServerAdminView)
async def add_trial_server(
    body: TrialServerCreate,
    pool: ServerPool = Depends(get_server_pool),
    admin: AdminUser = Depends(get_current_admin),
    clock: Clock = Depends(get_clock),
):
    return pool.add_server(
        ip=body.ip,
        username=body.username,
        password=body.password,
        location=body.location,
        tags=body.tags,
        capacity=body.capacity,
        created_at=clock(),
    )


@router.post("/trial-servers/{server_id}/release", response_model=TrialServerAdminView)
async def release_trial_server_slot(
    server_id: int,
    pool: ServerPool = Depends(get_server_pool),
    admin: AdminUser = Depends(get_current_admin),
):
    return pool.release_server(server_id)
