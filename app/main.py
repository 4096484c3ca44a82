"""
ZapCodes Backend API
AI website builder with BL coin metering, daily caps and plan tiers.
"""
from dotenv import load_dotenv
load_dotenv()

import logging
import os
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

VERSION = "1.0.0"


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
        logger.warning("DATABASE_URL is not set; using the local SQLite database without Alembic")
        return
    # Normalize postgres:// -> postgresql:// for SQLAlchemy
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


from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.api.routes import admin, auth, build, coins, scan, stripe as stripe_router, users, webhooks
from app.db.session import engine
from app.db.base import Base
# Import all models to ensure they're registered with Base
from app.models import User, CoinTransaction, DeployedSite, Subscription, ProcessedWebhookEvent, AdminLog

app = FastAPI(title="ZapCodes API", version=VERSION)


@app.on_event("startup")
async def startup_event():
    """Create tables, then run Alembic migrations on every server restart."""
    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.exception("Error creating tables: %s", e)
        raise

    run_migrations()


def _cors_origins():
    raw = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173,https://zapcodes.net,https://www.zapcodes.net")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_origin_regex=r"https://.*\.zapcodes\.net",  # Deployed user sites
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(coins.router, prefix="/api/coins", tags=["Coins"])
app.include_router(build.router, prefix="/api/build", tags=["Build"])
app.include_router(scan.router, prefix="/api/scan", tags=["Scan"])
app.include_router(stripe_router.router, prefix="/api/stripe", tags=["Stripe"])
app.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


@app.get("/health")
def health():
    return {"status": "ok", "version": VERSION}
