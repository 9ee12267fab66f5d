"""
Dashboard API endpoints
Quick-overview cards, chart series, tables and performance clusters, each computed per section filter
"""

from fastapi import APIRouter
from .presets import router as presets_router
from .overview import router as overview_router
from .chart import router as chart_router
from .table import router as table_router
from .clusters import router as clusters_router

router = APIRouter()

# Include all dashboard sub-routers
router.include_router(presets_router, tags=["Dashboard Presets"])
router.include_router(overview_router, tags=["Dashboard Overview"])
router.include_router(chart_router, tags=["Dashboard Chart"])
router.include_router(table_router, tags=["Dashboard Table"])
router.include_router(clusters_router, tags=["Dashboard Clusters"])
