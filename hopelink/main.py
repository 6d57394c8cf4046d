# hopelink/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hopelink.core.config import settings
from hopelink.core.logging import setup_logging
from hopelink.routers import matching as matching_router

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)
    logger.info("starting matching service (mongo=%s)", settings.use_mongo)
    yield
    if settings.use_mongo:
        from hopelink.core.db import get_client
        get_client().close()

app = FastAPI(lifespan=lifespan, title="HopeLink Matching API")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(matching_router.router)      # /api/matching

# Health
@app.get("/health")
def health():
    return {"ok": True}
