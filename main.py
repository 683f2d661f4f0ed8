"""
Wedding RSVP Manager - FastAPI Backend
Main application entry point
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
import uvicorn

from rsvp_manager.core.config import settings
from rsvp_manager.core.db import engine, Base
from rsvp_manager.core.exceptions import RateLimitExceededError, ServiceError
from rsvp_manager.api import (
    routes_admin, routes_automation, routes_checkin, routes_cron, routes_events, routes_guests,
    routes_messaging, routes_public, routes_seating, routes_webhooks, ws
)
from rsvp_manager.utils.responses import error_response

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    # Create database tables
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")
    yield
    logger.info("Application shutdown")

# Create FastAPI application
app = FastAPI(
    title="Wedding RSVP Manager",
    description="Guest lists, RSVPs, seating and automated WhatsApp/SMS messaging for weddings",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount static files (QR codes and generated invitations)
os.makedirs("static", exist_ok=True)
app.mount("/static", StaticFiles(directory="static"), name="static")

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    response = error_response(
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details or None,
        status_code=exc.status_code
    )
    if isinstance(exc, RateLimitExceededError):
        response.headers["Retry-After"] = str(exc.retry_after)
    return response

# Include routers
app.include_router(routes_public.router, tags=["public"])
app.include_router(routes_events.router, prefix="/events", tags=["events"])
app.include_router(routes_guests.router, prefix="/events", tags=["guests"])
app.include_router(routes_seating.router, prefix="/events", tags=["seating"])
app.include_router(routes_checkin.router, prefix="/events", tags=["hostess"])
app.include_router(routes_automation.router, prefix="/events", tags=["automation"])
app.include_router(routes_messaging.router, prefix="/events", tags=["messaging"])
app.include_router(routes_admin.router, prefix="/admin", tags=["admin"])
app.include_router(routes_cron.router, prefix="/cron", tags=["cron"])
app.include_router(routes_webhooks.router, prefix="/webhooks", tags=["webhooks"])
app.include_router(ws.router, prefix="/ws", tags=["websocket"])

# Note: Run this ASGI app directly with Uvicorn or Hypercorn. For Gunicorn,
# use `uvicorn.workers.UvicornWorker` instead of wrapping the app.

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=True
    )
