# foodlink/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from foodlink.core.config import settings
from foodlink.core.errors import install_error_handlers
from foodlink.deps import get_store
from foodlink.middleware.access_log import AccessLogMiddleware
from foodlink.routers import assignments as assignments_router
from foodlink.routers import donations as donations_router
from foodlink.routers import notifications as notifications_router
from foodlink.routers import requests as requests_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # honour test overrides of the store dependency
    store = app.dependency_overrides.get(get_store, get_store)()
    await store.ensure_indexes()
    logger.info(f"Store ready: {type(store).__name__}")
    yield
    store.close()


app = FastAPI(lifespan=lifespan, title="FoodLink API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(AccessLogMiddleware)
install_error_handlers(app)

# ---------------- Include routers ----------------
app.include_router(donations_router.router)       # /api/donations
app.include_router(requests_router.router)        # /api/requests
app.include_router(assignments_router.router)     # /api/assignments
app.include_router(notifications_router.router)   # /api/notifications


@app.get("/health")
def health():
    return {"ok": True}
