"""
Dashboard Presets - Date range and comparison preset catalogue
"""

from fastapi import APIRouter, HTTPException, Query
from typing import Optional, Dict, Any
from app.utils.date_helpers import (
    CUSTOM_PRESET,
    DATE_RANGE_PRESETS,
    DEFAULT_COMPARISON_PRESET,
    get_comparison_preset_ranges,
    get_date_range_preset,
    list_comparison_presets,
    parse_date,
)
from app.utils.error_handlers import AppError, ValidationError
from app.utils.validators import validate_date_format
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/presets")
async def get_presets() -> Dict[str, Any]:
    """
    Every comparison preset with its resolved primary and comparison ranges
    """
    try:
        return {
            "comparison_presets": list_comparison_presets(),
            "date_range_presets": {
                name: get_date_range_preset(name).model_dump() for name in DATE_RANGE_PRESETS
            },
            "default_comparison_preset": DEFAULT_COMPARISON_PRESET,
            "custom_preset": CUSTOM_PRESET
        }
    except Exception as e:
        logger.error(f"Error listing presets: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to list presets: {str(e)}"
        )


@router.get("/presets/{preset}")
async def get_preset(
    preset: str,
    today: Optional[str] = Query(None, description="Reference day (YYYY-MM-DD), defaults to today")
) -> Dict[str, Any]:
    """
    Resolve one comparison preset
    """
    try:
        if today and not validate_date_format(today):
            raise ValidationError(f"Invalid date '{today}', expected YYYY-MM-DD")

        ranges = get_comparison_preset_ranges(preset, parse_date(today) if today else None)
        return {
            "preset": preset,
            "primary": ranges["primary"].model_dump(),
            "comparison": ranges["comparison"].model_dump()
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error resolving preset {preset}: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to resolve preset: {str(e)}"
        )
