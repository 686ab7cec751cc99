"""
Payment page and landing routes for the browser flow.
"""
from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse, PlainTextResponse, RedirectResponse

from app.core.config import Settings, get_settings
from app.core.errors import NotFoundError

router = APIRouter()


def _page(settings: Settings, name: str) -> FileResponse:
    path = Path(settings.public_dir) / name
    if not path.is_file():
        raise NotFoundError(f"{name} is not available")
    return FileResponse(path)


@router.get("/", response_class=PlainTextResponse)
async def root(settings: Settings = Depends(get_settings)):
    return f"{settings.app_name} backend is running!"


@router.get("/subscribe")
async def subscribe_page(settings: Settings = Depends(get_settings)):
    return _page(settings, "payment.html")


@router.get("/payment.html")
async def legacy_payment_page():
    return RedirectResponse("/subscribe")


@router.get("/admin")
async def admin_page(settings: Settings = Depends(get_settings)):
    return _page(settings, "admin.html")


@router.get("/success", response_class=PlainTextResponse)
async def success(settings: Settings = Depends(get_settings)):
    return f"Payment successful. Thank you for subscribing to {settings.app_name}."
