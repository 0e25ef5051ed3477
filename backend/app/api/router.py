"""
API router.
Aggregates all endpoints mounted under API_PREFIX.
"""
from fastapi import APIRouter

from backend.app.api import auth
from backend.app.api.account import account_router
from backend.app.api.admin import admin_router

router = APIRouter()

# Include sub-routers
router.include_router(auth.router)
router.include_router(account_router)
router.include_router(admin_router)
