"""
GSC Auth Service - Google OAuth tokens for Search Console, scoped to a session
"""

from typing import Any, Dict, Optional
from datetime import datetime, timedelta
from urllib.parse import urlencode
import logging
import httpx

from app.core.config import settings
from app.services.auth.credential_store import CredentialStore
from app.utils.error_handlers import AuthenticationError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

PLATFORM = "gsc"
SCOPES = ["https://www.googleapis.com/auth/webmasters.readonly"]

# refresh slightly before Google's expiry
EXPIRY_MARGIN_SECONDS = 60


class GSCAuthService:
    """
    Single source of truth for a session's Search Console credentials
    """

    def __init__(
        self,
        store: CredentialStore,
        session_id: str,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.store = store
        self.session_id = session_id
        self.http_client = http_client

    def get_auth_url(self, state: Optional[str] = None) -> str:
        """Build the Google consent URL (offline access, forced consent)"""
        if not settings.GOOGLE_CLIENT_ID:
            raise ValidationError("GOOGLE_CLIENT_ID is not configured")

        params = {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "redirect_uri": settings.GOOGLE_REDIRECT_URI,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{settings.GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for tokens and store them for this session"""
        if not code:
            raise ValidationError("Authorization code is required")

        tokens = await self._token_request({
            "code": code,
            "client_id": settings.GOOGLE_CLIENT_ID,
            "client_secret": settings.GOOGLE_CLIENT_SECRET,
            "redirect_uri": settings.GOOGLE_REDIRECT_URI,
            "grant_type": "authorization_code",
        })
        await self.store.save(self.session_id, PLATFORM, tokens)
        return tokens

    async def sync_tokens(self, tokens: Optional[Dict[str, Any]]):
        """Store tokens obtained by the client"""
        if not tokens or not tokens.get("access_token"):
            raise ValidationError("Tokens are required")

        stored = dict(tokens)
        if "expires_in" in stored and "expiry" not in stored:
            stored["expiry"] = _expiry_from(stored["expires_in"])
        await self.store.save(self.session_id, PLATFORM, stored)

    async def is_connected(self) -> bool:
        tokens = await self.store.get(self.session_id, PLATFORM)
        return bool(tokens and tokens.get("access_token"))

    async def disconnect(self) -> bool:
        return await self.store.delete(self.session_id, PLATFORM)

    async def get_access_token(self) -> str:
        """
        Return a valid access token, refreshing it when expired

        Raises:
            AuthenticationError: session is not connected or refresh failed
        """
        tokens = await self.store.get(self.session_id, PLATFORM)
        if not tokens or not tokens.get("access_token"):
            raise AuthenticationError("Not authenticated with Google Search Console")

        if not _is_expired(tokens):
            return tokens["access_token"]

        refresh_token = tokens.get("refresh_token")
        if not refresh_token:
            raise AuthenticationError("Google Search Console session expired, please reconnect")

        logger.info(f"Refreshing GSC access token for session {self.session_id[:8]}...")
        try:
            refreshed = await self._token_request({
                "refresh_token": refresh_token,
                "client_id": settings.GOOGLE_CLIENT_ID,
                "client_secret": settings.GOOGLE_CLIENT_SECRET,
                "grant_type": "refresh_token",
            })
        except UpstreamError as e:
            raise AuthenticationError(f"Failed to refresh Google credentials: {e.message}")

        tokens.update(refreshed)
        await self.store.save(self.session_id, PLATFORM, tokens)
        return tokens["access_token"]

    async def _token_request(self, data: Dict[str, Any]) -> Dict[str, Any]:
        client = self.http_client or httpx.AsyncClient(timeout=30.0)
        try:
            response = await client.post(settings.GOOGLE_TOKEN_URL, data=data)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Google token request failed: {str(e)}")
        finally:
            if self.http_client is None:
                await client.aclose()

        if response.status_code >= 400:
            logger.error(f"Google token endpoint returned {response.status_code}: {response.text}")
            raise UpstreamError(f"Google token request failed ({response.status_code})")

        tokens = response.json()
        if "expires_in" in tokens:
            tokens["expiry"] = _expiry_from(tokens["expires_in"])
        return tokens


def _expiry_from(expires_in: Any) -> str:
    return (datetime.utcnow() + timedelta(seconds=int(expires_in))).isoformat()


def _is_expired(tokens: Dict[str, Any]) -> bool:
    expiry = tokens.get("expiry")
    if not expiry:
        return False
    try:
        expires_at = datetime.fromisoformat(expiry)
    except (TypeError, ValueError):
        return True
    return datetime.utcnow() >= expires_at - timedelta(seconds=EXPIRY_MARGIN_SECONDS)
