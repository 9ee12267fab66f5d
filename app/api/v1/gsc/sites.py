"""
GSC Sites - Properties available to the connected session
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import Dict, Any
from app.core.dependencies import get_gsc_client
from app.services.ingest.gsc_client import SearchConsoleClient
from app.utils.error_handlers import AppError
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/sites")
async def list_sites(
    client: SearchConsoleClient = Depends(get_gsc_client)
) -> Dict[str, Any]:
    """
    List verified Search Console sites
    """
    try:
        sites = await client.list_sites()
        return {"sites": sites, "total": len(sites)}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error fetching GSC sites: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch sites: {str(e)}"
        )
