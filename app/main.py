"""
Entitlement & Compliance Gate API
Trials, account modes, agent access and campaign calling hours.
"""
from dotenv import load_dotenv
load_dotenv()

import logging
import os
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config

# Render captures stdout; force=True overrides uvicorn's handlers
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True
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
    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        logger.error("DATABASE_URL is not set. Alembic migrations will not run.")
        return
    if db_url.startswith("postgres://"):
        db_url = "postgresql://" + db_url[10:]
    try:
        alembic_cfg = Config(str(alembic_ini))
        alembic_cfg.set_main_option("sqlalchemy.url", db_url)
        command.upgrade(alembic_cfg, "head")
        logger.info("Alembic migrations completed successfully")
    except Exception as e:
        logger.exception("Alembic migration failed: %s", e)
        raise


from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from app.api.routes import account, admin, campaigns, trial
from app.core.errors import EntitlementError
from app.db.base import Base
from app.db.session import engine
from app.services.billing import StripeBilling
from app.services.billing_email import TrialEmailNotifier
from app.utils.disposable_email import load_blocklist
# Import all models to ensure they're registered with Base
from app.models import Profile, Subscription, TrialEligibility, CallCampaign  # noqa: F401

app = FastAPI(title="Entitlement & Compliance Gate")

# Built once; routes receive them through app.dependencies.services
app.state.billing = StripeBilling.from_env()
app.state.notifier = TrialEmailNotifier.from_env()


@app.on_event("startup")
async def startup_event():
    """Create tables, run Alembic migrations, load the disposable email blocklist."""
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created")
    except Exception as e:
        logger.error("Error creating tables: %s", e)
        raise

    # Raises on failure so a bad migration never serves traffic
    run_migrations()

    logger.info("Disposable email blocklist ready: %s domains", len(load_blocklist()))


@app.exception_handler(EntitlementError)
async def entitlement_error_handler(request: Request, exc: EntitlementError):
    # Denials are expected outcomes, not server errors
    logger.info("%s %s denied: %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Database temporarily unavailable. Please try again in a moment."},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:3001",
        os.getenv("FRONTEND_URL", "http://localhost:3000"),
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(trial.router, prefix="/api/trial", tags=["Trial"])
app.include_router(account.router, prefix="/api", tags=["Account"])
app.include_router(campaigns.router, prefix="/api/campaigns", tags=["Campaigns"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


@app.get("/health")
def health():
    return {"status": "ok"}
