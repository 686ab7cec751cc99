"""
Jephshield VPN backend API
Paystack checkout, payment webhooks, premium status and free trials.
"""
from dotenv import load_dotenv
load_dotenv()

import logging
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True  # Override any existing configuration
)

logger = logging.getLogger(__name__)


def run_migrations() -> None:
    """Run Alembic migrations on startup. Uses alembic.ini and DATABASE_URL.
    Fails startup if migrations fail, so the DB is never left out of sync."""
    project_root = Path(__file__).resolve().parent.parent
    alembic_ini = project_root / "alembic.ini"
    if not alembic_ini.exists():
        logger.warning("alembic.ini not found, skipping Alembic migrations")
        return
    try:
        alembic_cfg = Config(str(alembic_ini))
        alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
        alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
        command.upgrade(alembic_cfg, "head")
        logger.info("Alembic migrations completed successfully")
    except Exception as e:
        logger.exception("Alembic migration failed: %s", e)
        raise  # Fail startup so DB is not left out of sync; fix migration or env and redeploy


from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from app.api.routes import auth, billing, pages, trials, vpn_servers, webhooks
from app.core.config import settings
from app.core.errors import ProviderError, ServiceError
from app.db.base import Base
from app.db.session import engine
from app import models  # noqa: F401 (registers all models with Base)

app = FastAPI(title="Jephshield VPN Backend")


@app.on_event("startup")
async def startup_event():
    """Run Alembic migrations on every server restart, then create any missing tables."""
    run_migrations()
    # Safety net for tables a migration has not been written for yet
    Base.metadata.create_all(bind=engine)

    if not settings.webhook_secret:
        logger.warning("PAYSTACK_SECRET_KEY is not set: every webhook will be rejected with 401")
    if not settings.callback_url:
        logger.warning("CALLBACK_URL is not set: Paystack will use the dashboard callback URL")


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if isinstance(exc, ProviderError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        fields.append(".".join(loc) or "body")
    message = f"Missing or invalid fields: {', '.join(fields)}" if fields else "Invalid request"
    return JSONResponse(status_code=400, content={"message": message})


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pages.router, tags=["Pages"])
app.include_router(webhooks.router, tags=["Webhooks"])
app.include_router(billing.router, prefix="/api", tags=["Billing"])
app.include_router(trials.router, prefix="/api", tags=["Trials"])
app.include_router(auth.router, prefix="/api", tags=["Auth"])
app.include_router(vpn_servers.router, prefix="/api", tags=["VPN Servers"])

# Serve payment.html, admin.html and their assets
public_dir = Path(settings.public_dir)
if public_dir.is_dir():
    app.mount("/static", StaticFiles(directory=str(public_dir)), name="static")
else:
    logger.warning("Public directory %s not found; static assets are not served", public_dir)
