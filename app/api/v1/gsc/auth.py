"""
GSC Auth - Connect a session to Google Search Console
"""

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query
from typing import Optional, Dict, Any
from app.core.dependencies import (
    SESSION_HEADER,
    get_credential_store,
    get_gsc_auth_service,
)
from app.services.auth.credential_store import CredentialStore
from app.services.auth.gsc_auth_service import GSCAuthService, PLATFORM
from app.utils.error_handlers import AppError
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/auth/url")
async def get_auth_url(
    auth: GSCAuthService = Depends(get_gsc_auth_service)
) -> Dict[str, Any]:
    """
    Google consent URL; the session id travels as the OAuth state
    """
    try:
        return {"auth_url": auth.get_auth_url(state=auth.session_id)}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error generating GSC auth URL: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to generate authentication URL: {str(e)}"
        )


@router.post("/auth")
async def exchange_code(
    code: Optional[str] = Body(None, embed=True),
    auth: GSCAuthService = Depends(get_gsc_auth_service)
) -> Dict[str, Any]:
    """
    Exchange an authorization code for tokens and store them for this session
    """
    try:
        await auth.exchange_code(code)
        return {"success": True}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"GSC token exchange failed: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to exchange authorization code for tokens: {str(e)}"
        )


@router.get("/auth/callback")
async def auth_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None, description="Session id sent with the consent URL"),
    store: CredentialStore = Depends(get_credential_store)
) -> Dict[str, Any]:
    """
    OAuth redirect target: stores tokens under the session carried in state
    """
    try:
        if not state:
            return {"success": False, "error": "Missing state"}
        await GSCAuthService(store, state).exchange_code(code)
        return {"success": True}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"GSC auth callback failed: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to complete authentication: {str(e)}"
        )


@router.post("/auth/sync")
async def sync_tokens(
    tokens: Optional[Dict[str, Any]] = Body(None, embed=True),
    auth: GSCAuthService = Depends(get_gsc_auth_service)
) -> Dict[str, Any]:
    """
    Store tokens obtained by the client for this session
    """
    try:
        logger.info(
            f"Syncing GSC tokens (access token: {bool(tokens and tokens.get('access_token'))}, "
            f"refresh token: {bool(tokens and tokens.get('refresh_token'))})"
        )
        await auth.sync_tokens(tokens)
        return {"success": True}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"GSC token sync failed: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to sync tokens: {str(e)}"
        )


@router.get("/auth/status")
async def get_auth_status(
    x_session_id: Optional[str] = Header(None, alias=SESSION_HEADER),
    store: CredentialStore = Depends(get_credential_store)
) -> Dict[str, Any]:
    """
    Whether the calling session is connected to Search Console
    """
    try:
        if not x_session_id:
            return {"connected": False}
        tokens = await store.get(x_session_id, PLATFORM)
        return {
            "connected": bool(tokens and tokens.get("access_token")),
            "has_refresh_token": bool(tokens and tokens.get("refresh_token"))
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error checking GSC auth status: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to check authentication status: {str(e)}"
        )


@router.delete("/auth")
async def disconnect(
    auth: GSCAuthService = Depends(get_gsc_auth_service)
) -> Dict[str, Any]:
    """
    Forget this session's Search Console credentials
    """
    try:
        removed = await auth.disconnect()
        return {"success": True, "disconnected": removed}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error disconnecting GSC: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to disconnect: {str(e)}"
        )
