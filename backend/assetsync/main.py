from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from assetsync.api.routes import fmp_client, router
from assetsync.config.settings import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    fmp_client.close()


app = FastAPI(title="assetsync", lifespan=lifespan)
app.include_router(router)
