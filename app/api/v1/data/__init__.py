"""
Stored data management endpoints
"""

from fastapi import APIRouter
from .clear import router as clear_router

router = APIRouter()

router.include_router(clear_router, tags=["Data Management"])
