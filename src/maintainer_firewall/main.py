"""FastAPI entry point for Maintainer Firewall."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI

from .actions import failures_router, get_action_dispatcher, get_action_executor
from .common import get_clock
from .config import settings
from .intake import webhook_router
from .metrics import metrics_router
from .rules import seed_default_rules
from .storage import get_database
from .sync import get_event_sync_worker, sync_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)


async def _connect_database(db, logger) -> bool:
    """Connect to database with a few retries."""
    for attempt in range(3):
        try:
            logger.info(f"Connecting to database (attempt {attempt + 1}/3)...")
            await asyncio.wait_for(db.connect(), timeout=30)
            logger.info("Database connected successfully")
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Database connection timeout (attempt {attempt + 1})")
        except Exception as e:
            logger.warning(f"Database connection failed (attempt {attempt + 1}): {e}")
        if attempt < 2:
            await asyncio.sleep(5)
    logger.error("Failed to connect to database after 3 attempts")
    return False


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger = logging.getLogger("maintainer_firewall.startup")
    logger.info("Starting Maintainer Firewall...")

    if not settings.github_webhook_secret:
        logger.warning("Webhook secret is not configured; deliveries will be rejected")
    if not settings.github_token:
        logger.warning("GitHub token is not configured; label/comment actions will be rejected")

    db = get_database()
    if await _connect_database(db, logger) and settings.seed_default_rules:
        await seed_default_rules(db, get_clock())

    dispatcher = get_action_dispatcher()
    await dispatcher.start()

    sync_worker = get_event_sync_worker()
    await sync_worker.start()

    logger.info(f"Maintainer Firewall accepting requests (actions={dispatcher.mode})")
    yield

    logger.info("Shutting down Maintainer Firewall...")
    await sync_worker.stop()
    await dispatcher.stop()
    await get_action_executor().close()
    await db.close()


app = FastAPI(
    title="Maintainer Firewall",
    description="Rule-based triage of GitHub webhook events",
    version="0.1.0",
    lifespan=lifespan,
)

# Register routers
app.include_router(webhook_router)
app.include_router(metrics_router)
app.include_router(failures_router)
app.include_router(sync_router)


@app.get("/api/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


def run() -> None:
    """Run the application."""
    uvicorn.run(
        "maintainer_firewall.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )


if __name__ == "__main__":
    run()
