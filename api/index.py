"""
CartSync - Main FastAPI Application

Single entry point for the cart API and its realtime stream.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cartsync import __version__
from cartsync.logging import get_logger
from cartsync.routers.cart import router as cart_router
from cartsync.routers.deps import get_registry_if_created
from cartsync.routers.realtime import router as realtime_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    yield
    # Shutdown: let fire-and-forget remote writes finish
    registry = get_registry_if_created()
    if registry is not None:
        await registry.drain()
        logger.info("Pending remote cart writes drained")


app = FastAPI(
    title="CartSync",
    description="Device and user cart reconciliation API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cart_router, prefix="/api")
app.include_router(realtime_router, prefix="/api")


# ==================== HEALTH CHECK ====================

@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok", "service": "cartsync"}
