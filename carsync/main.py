import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from carsync.api.routes import router as api_router
from carsync.db import init_db
from carsync.utils import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Ensure database tables are created on startup
    init_db()
    scheduler = None
    if os.getenv("ENABLE_SCHEDULER", "0") == "1":
        from carsync.scheduler import start_scheduler
        scheduler = start_scheduler()
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


# create FastAPI instance
app = FastAPI(title="carsync", lifespan=lifespan)
app.include_router(api_router)
