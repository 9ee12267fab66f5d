"""
Ahrefs API endpoints
Handles CSV export imports
"""

from fastapi import APIRouter
from .imports import router as imports_router

router = APIRouter()

router.include_router(imports_router, tags=["Ahrefs Imports"])
