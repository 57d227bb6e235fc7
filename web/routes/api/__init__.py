"""
API routes split by domain.

Each sub-module defines its own APIRouter which is composed
into the top-level router exposed by this package.
"""
from fastapi import APIRouter

from .health import router as health_router
from .webhook import router as webhook_router
from .buyers import router as buyers_router
from .admin import router as admin_router

router = APIRouter(tags=["api"])

router.include_router(health_router)
router.include_router(webhook_router)
router.include_router(buyers_router)
router.include_router(admin_router)
