"""
GSC Imports - Import Search Console data and list import history
"""

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from typing import Optional, Dict, Any
from app.core.dependencies import get_gsc_client, get_import_service, get_repository
from app.services.imports.import_service import ImportService, validate_gsc_import_request
from app.services.ingest.gsc_client import SearchConsoleClient
from app.services.storage.reporting_repository import ReportingRepository
from app.utils.error_handlers import AppError
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

IMPORT_FIELDS = {
    "importId": "import_id",
    "source": "source",
    "siteUrl": "site_url",
    "startDate": "start_date",
    "endDate": "end_date",
    "fileName": "file_name",
    "recordCount": "record_count",
    "status": "status",
    "createdAt": "created_at",
    "completedAt": "completed_at",
    "error": "error",
    "dimensions": "dimensions",
    "replacedPreviousData": "replaced_previous_data",
}


def serialize_import(record: Dict[str, Any]) -> Dict[str, Any]:
    return {api_field: record.get(field) for field, api_field in IMPORT_FIELDS.items()}


async def _import_params(
    site_url: Optional[str] = Body(None, alias="siteUrl"),
    start_date: Optional[str] = Body(None, alias="startDate"),
    end_date: Optional[str] = Body(None, alias="endDate"),
):
    # missing fields are reported before credentials are looked up
    validate_gsc_import_request(site_url, start_date, end_date)
    return {"site_url": site_url, "start_date": start_date, "end_date": end_date}


@router.post("/import")
async def import_gsc_data(
    params: Dict[str, str] = Depends(_import_params),
    client: SearchConsoleClient = Depends(get_gsc_client),
    service: ImportService = Depends(get_import_service)
) -> Dict[str, Any]:
    """
    Import GSC data for a site and date range, replacing previously stored data for that site

    Fetches daily totals (chart data) and date/query/page rows (table data).
    """
    try:
        return await service.import_gsc(
            client,
            params["site_url"],
            params["start_date"],
            params["end_date"]
        )
    except AppError:
        raise
    except Exception as e:
        logger.error(f"GSC import failed: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to import data from Google Search Console: {str(e)}"
        )


@router.get("/imports")
async def get_import_history(
    site_url: Optional[str] = Query(None, alias="siteUrl"),
    source: Optional[str] = Query(None, description="gsc or ahrefs"),
    status: Optional[str] = Query(None, description="pending, completed, failed"),
    limit: int = Query(10, ge=1, le=100),
    repository: ReportingRepository = Depends(get_repository)
) -> Dict[str, Any]:
    """
    Import history, newest first
    """
    try:
        imports = await repository.list_imports(site_url=site_url, source=source, status=status, limit=limit)
        logger.info(f"Import history query returned {len(imports)} records")
        return {
            "success": True,
            "imports": [serialize_import(record) for record in imports]
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error fetching import history: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to retrieve import history: {str(e)}"
        )
