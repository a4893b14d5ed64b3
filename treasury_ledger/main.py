"""
Treasury Ledger: FastAPI application.

This is the entry point for the application.
All routers are registered here.
"""

import logging

import uvicorn
from fastapi import FastAPI

from treasury_ledger.config import get_settings
from treasury_ledger.api.health import router as health_router
from treasury_ledger.api.accounts import router as accounts_router
from treasury_ledger.api.ledger import router as ledger_router
from treasury_ledger.api.events import router as events_router

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Treasury accounts kept consistent with an append-only ledger",
)

# Register routers
app.include_router(health_router)
app.include_router(accounts_router)
app.include_router(ledger_router)
app.include_router(events_router)


def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    uvicorn.run(
        "treasury_ledger.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
