"""
Placement Portal - Main Application

FastAPI backend with:
- MongoDB for every entity
- JWT authentication with role-scoped routes
- SMTP notification emails
- Excel/CSV import and export
- Dashboard frontend served from /frontend when present

Run: uvicorn app.main:app --reload
"""

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse

from app.api.routes import api_router
from app.core.config import get_settings
from app.core.errors import register_exception_handlers
from app.db.mongodb import init_mongo_indexes, test_mongo_connection
from app.services.accounts import seed_super_admin

logger = logging.getLogger(__name__)

# Get the project root directory
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
FRONTEND_DIR = os.path.join(PROJECT_ROOT, "frontend", "public")


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Placement Portal",
        description="""
        Placement management for colleges, students, companies and agencies.

        ## Roles
        - **Super admin**: approvals, platform settings, users, download limits
        - **College admin**: students, bulk import, verification, placement reports
        - **Company / agency**: jobs, student search, invitations, shortlist
        - **Student**: profile, resume, applications, offers
        """,
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # Include API routes
    app.include_router(api_router, prefix="/api")

    # Serve static files (for any additional assets)
    if os.path.exists(FRONTEND_DIR):
        app.mount("/static", StaticFiles(directory=FRONTEND_DIR), name="static")

    @app.on_event("startup")
    async def startup_event():
        """Create indexes and seed the super admin."""
        try:
            init_mongo_indexes()
            logger.info("MongoDB indexes initialized")
        except Exception as e:
            logger.warning("MongoDB index initialization failed: %s", e)
            return
        if settings.super_admin_email and settings.super_admin_password:
            seed_super_admin(settings.super_admin_email, settings.super_admin_password)

    @app.get("/", tags=["Frontend"])
    async def serve_frontend():
        """Serve the dashboard frontend."""
        index_path = os.path.join(FRONTEND_DIR, "index.html")
        if os.path.exists(index_path):
            return FileResponse(index_path)
        return {"status": "healthy", "app": "Placement Portal", "message": "Frontend not found. API is running."}

    @app.get("/health", tags=["Health"])
    async def health_check():
        mongo_ok = test_mongo_connection()
        return {
            "status": "healthy" if mongo_ok else "degraded",
            "mongodb": "connected" if mongo_ok else "disconnected",
        }

    return app


app = create_app()
