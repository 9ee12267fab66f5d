"""
Ahrefs Imports - Upload Ahrefs CSV exports
"""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from typing import Dict, Any
from app.core.dependencies import get_import_service
from app.services.imports.import_service import ImportService
from app.services.ingest.ahrefs_csv_parser import validate_upload
from app.utils.error_handlers import AppError
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


async def _read_upload(file: UploadFile) -> bytes:
    content = await file.read()
    validate_upload(file.filename, len(content))
    return content


@router.post("/import")
async def import_ahrefs_csv(
    file: UploadFile = File(..., description="Ahrefs CSV export"),
    service: ImportService = Depends(get_import_service)
) -> Dict[str, Any]:
    """
    Import an Ahrefs CSV export, replacing all previously stored Ahrefs data
    """
    try:
        content = await _read_upload(file)
        return await service.import_ahrefs(content, file.filename)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Ahrefs import failed: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to import Ahrefs CSV data: {str(e)}"
        )


@router.post("/parse")
async def parse_ahrefs_csv(
    file: UploadFile = File(..., description="Ahrefs CSV export"),
    service: ImportService = Depends(get_import_service)
) -> Dict[str, Any]:
    """
    Parse and normalize an Ahrefs CSV without storing it
    """
    try:
        content = await _read_upload(file)
        metrics, parse_result = service.parse_ahrefs(content)
        return {
            "success": True,
            "file_name": file.filename,
            "data": [metric.model_dump(exclude_none=True) for metric in metrics],
            "total_rows": parse_result["total_rows"],
            "valid_rows": parse_result["valid_rows"],
            "errors": parse_result["errors"]
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Ahrefs CSV parse failed: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to parse Ahrefs CSV: {str(e)}"
        )
