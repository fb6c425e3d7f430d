"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from app.api.routes.auth_routes import router as auth_router
from app.api.routes.super_admin_routes import router as super_admin_router
from app.api.routes.settings_routes import router as settings_router, public_router as public_settings_router
from app.api.routes.college_routes import router as college_router
from app.api.routes.company_routes import router as company_router
from app.api.routes.shortlist_routes import router as shortlist_router
from app.api.routes.job_routes import router as job_router
from app.api.routes.student_routes import router as student_router
from app.api.routes.notification_routes import router as notification_router
from app.api.routes.activity_log_routes import router as activity_log_router
from app.api.routes.upload_routes import router as upload_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(settings_router)
api_router.include_router(public_settings_router)
api_router.include_router(super_admin_router)
api_router.include_router(college_router)
api_router.include_router(company_router)
api_router.include_router(shortlist_router)
api_router.include_router(job_router)
api_router.include_router(student_router)
api_router.include_router(notification_router)
api_router.include_router(activity_log_router)
api_router.include_router(upload_router)
