"""
Admin registry of the paid VPN servers shown to premium users.
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, ValidationError
from app.db.session import get_db
from app.dependencies.auth import get_current_admin
from app.models.admin_user import AdminUser
from app.models.vpn_server import VpnServer
from app.schemas.vpn_server import VpnServerCreate, VpnServerResponse

router = APIRouter()


@router.post("/vpn-servers")
async def add_vpn_server(
    body: VpnServerCreate,
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin),
):
    if not body.country or not body.location:
        raise ValidationError("Country and location are required.")

    count = db.query(VpnServer).count()
    server = VpnServer(id=count + 1, **body.model_dump())
    db.add(server)
    db.commit()
    return {"message": "VPN server added successfully."}


@router.get("/vpn-servers", response_model=List[VpnServerResponse])
async def list_vpn_servers(
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin),
):
    return db.query(VpnServer).order_by(VpnServer.id).all()


@router.delete("/vpn-servers/{server_id}")
async def delete_vpn_server(
    server_id: int,
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin),
):
    server = db.get(VpnServer, server_id)
    if server is None:
        raise NotFoundError("Server not found.")

    db.delete(server)
    db.flush()
    # Keep ids contiguous (1..n) in list order
    remaining = db.query(VpnServer).filter(VpnServer.id > server_id).order_by(VpnServer.id).all()
    for s in remaining:
        s.id = s.id - 1
        db.flush()
    db.commit()
    return {"message": "VPN server deleted successfully."}
