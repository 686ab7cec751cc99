from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.errors import AuthenticationError
from app.db.session import get_db
from app.models.admin_user import AdminUser
from app.utils.auth import verify_token


def get_current_admin(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> AdminUser:
    """Resolve the admin from an `Authorization: Bearer <token>` header."""
    if not authorization:
        raise AuthenticationError("Missing authorization token")

    token = authorization.replace("Bearer ", "").strip()
    payload = verify_token(token, settings)
    if not payload or not payload.get("sub"):
        raise AuthenticationError("Invalid or expired token")

    admin = db.query(AdminUser).filter(AdminUser.username == payload["sub"]).first()
    if not admin:
        raise AuthenticationError("Invalid or expired token")
    return admin
