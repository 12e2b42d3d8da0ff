import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from sms_service.api import metrics_router, router
from sms_service.config import get_settings
from sms_service.db import dispose_engine
from sms_service.errors import register_exception_handlers

settings = get_settings()
logging.basicConfig(level=settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await dispose_engine()


app = FastAPI(title="SMS Service", lifespan=lifespan)
app.include_router(router)
app.include_router(metrics_router)
register_exception_handlers(app)


if __name__ == "__main__":
    uvicorn.run("sms_service.main:app", host=settings.HOST, port=settings.PORT)
