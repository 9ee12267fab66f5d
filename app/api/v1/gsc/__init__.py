"""
Google Search Console API endpoints
Handles the session connection, site listing, imports and stored data queries
"""

from fastapi import APIRouter
from .auth import router as auth_router
from .sites import router as sites_router
from .imports import router as imports_router
from .data import router as data_router

router = APIRouter()

# Include all GSC sub-routers
router.include_router(auth_router, tags=["GSC Auth"])
router.include_router(sites_router, tags=["GSC Sites"])
router.include_router(imports_router, tags=["GSC Imports"])
router.include_router(data_router, tags=["GSC Data"])
