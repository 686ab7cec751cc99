from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.errors import AuthenticationError
from app.db.session import get_db
from app.models.admin_user import AdminUser
from app.schemas.auth import AdminLogin, LoginResponse
from app.utils.auth import create_access_token, verify_password

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: AdminLogin,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Admin login. The returned bearer token unlocks the server management routes."""
    admin = db.query(AdminUser).filter(AdminUser.username == credentials.username).first()
    if not admin or not verify_password(credentials.password, admin.hashed_password):
        raise AuthenticationError("Invalid credentials")

    token = create_access_token({"sub": admin.username}, settings)
    return LoginResponse(
        message="Login successful",
        subscribed=admin.subscribed,
        access_token=token,
    )
