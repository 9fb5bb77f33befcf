"""
Top-level API router.
Combines all sub-routers into a single router.
"""

from fastapi import APIRouter

from docintake.api.health import router as health_router
from docintake.api.auth import router as auth_router
from docintake.api.documents import router as documents_router
from docintake.api.invoices import router as invoices_router
from docintake.api.review import router as review_router
from docintake.api.dashboard import router as dashboard_router
from docintake.api.transport import router as transport_router
from docintake.api.users import router as users_router
from docintake.api.audit import router as audit_router
from docintake.api.files import router as files_router

api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(auth_router)
api_router.include_router(documents_router)
api_router.include_router(invoices_router)
api_router.include_router(review_router)
api_router.include_router(dashboard_router)
api_router.include_router(transport_router)
api_router.include_router(users_router)
api_router.include_router(audit_router)
api_router.include_router(files_router)
