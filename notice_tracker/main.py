from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import os
import logging

from notice_tracker import __version__
from notice_tracker import billing_routes, dashboard_routes, notice_routes, poa_routes, system_routes
from notice_tracker.config import load_settings
from notice_tracker.services import build_services
from notice_tracker.supabase_client import create_supabase

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

settings = load_settings()

app = FastAPI(
    title="IRS Notice Tracker API",
    description="Notice escalation, POA coverage and response billing",
    version=__version__
)

app.state.settings = settings
app.state.services = None

allowed_origins = ["*"] + settings.cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Connect to the store and wire services, unless they were provided already."""
    port = os.environ.get("PORT", "8000")
    logger.info(f"IRS Notice Tracker API starting on port {port}")

    if app.state.services is None:
        supabase = create_supabase(settings)
        if supabase is not None:
            app.state.services = build_services(supabase, settings)

    logger.info(f"Store connected: {app.state.services is not None}")


@app.get("/")
async def root():
    return {
        "name": "IRS Notice Tracker API",
        "version": __version__,
        "docs": "/docs",
        "health": "/api/system/health"
    }


# Register Routers
app.include_router(system_routes.router)
app.include_router(notice_routes.router)
app.include_router(poa_routes.router)
app.include_router(billing_routes.router)
app.include_router(dashboard_routes.router)
