from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from database import close_db, init_db
from api.lender_sync import router as lender_sync_router
from api.lenders import router as lenders_router
from api.sync_requests import router as sync_requests_router
from utils.log_config import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_db()
    structlog.get_logger(__name__).info("startup", app=settings.app_name, environment=settings.environment)
    yield
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Lender database with Flex sync ingestion and review",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(lenders_router)
app.include_router(lender_sync_router)
app.include_router(sync_requests_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
