import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .database import engine
from .errors import MarketplaceError
from .models import Base
from .routers import (
    admin_router,
    complaint_router,
    notification_router,
    order_router,
    product_router,
    review_router,
    user_router,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Marketplace Order Service",
    description="Orders, stock reservation, reviews and notifications for the marketplace",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create database tables
Base.metadata.create_all(bind=engine)

app.include_router(order_router.router)
app.include_router(product_router.router)
app.include_router(review_router.router)
app.include_router(notification_router.router)
app.include_router(complaint_router.router)
app.include_router(user_router.router)
app.include_router(admin_router.router)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "Unexpected server error"},
    )


@app.get("/")
def root():
    return {
        "service": "Marketplace Order Service",
        "status": "running",
        "version": "1.0.0"
    }


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "service": "marketplace-order-service"
    }


def run() -> None:
    import uvicorn

    uvicorn.run("marketplace.main:app", host="0.0.0.0", port=8000)
