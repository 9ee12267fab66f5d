"""
FastAPI dependencies for dependency injection
"""

from typing import Callable
from fastapi import Depends, Header, HTTPException, status
from app.core.database import get_database
from app.services.auth.credential_store import CredentialStore
from app.services.auth.gsc_auth_service import GSCAuthService
from app.services.cache.redis_service import RedisService
from app.services.imports.import_service import ImportService
from app.services.ingest.gsc_client import SearchConsoleClient
from app.services.storage.cluster_repository import ClusterRepository
from app.services.storage.reporting_repository import ReportingRepository
from app.utils.error_handlers import AuthenticationError
from motor.motor_asyncio import AsyncIOMotorDatabase
import logging

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-Id"


async def get_db() -> AsyncIOMotorDatabase:
    """
    Database dependency
    """
    db = await get_database()
    if db is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection not available"
        )
    return db


def get_redis() -> RedisService:
    """
    Redis service dependency
    """
    return RedisService()


def get_session_id(x_session_id: str = Header(None, alias=SESSION_HEADER)) -> str:
    """
    Session the caller's GSC credentials are stored under
    """
    if not x_session_id:
        raise AuthenticationError(f"Missing {SESSION_HEADER} header; connect Google Search Console first")
    return x_session_id


def get_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> ReportingRepository:
    return ReportingRepository(db)


def get_cluster_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> ClusterRepository:
    return ClusterRepository(db)


def get_credential_store(db: AsyncIOMotorDatabase = Depends(get_db)) -> CredentialStore:
    return CredentialStore(db)


def get_gsc_auth_service(
    session_id: str = Depends(get_session_id),
    store: CredentialStore = Depends(get_credential_store),
) -> GSCAuthService:
    return GSCAuthService(store, session_id)


def get_gsc_client_factory() -> Callable[[str], SearchConsoleClient]:
    """
    Builds Search Console clients from an access token (tests override this)
    """
    return SearchConsoleClient


async def get_gsc_client(
    auth: GSCAuthService = Depends(get_gsc_auth_service),
    factory: Callable[[str], SearchConsoleClient] = Depends(get_gsc_client_factory),
):
    """
    Search Console client for the caller's session; 401 when not connected
    """
    access_token = await auth.get_access_token()
    client = factory(access_token)
    try:
        yield client
    finally:
        await client.close()


def get_import_service(
    repository: ReportingRepository = Depends(get_repository),
    cache: RedisService = Depends(get_redis),
) -> ImportService:
    return ImportService(repository, cache=cache)
