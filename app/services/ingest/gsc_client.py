"""
Search Console Client - Wrapper for the Google Search Console (webmasters v3) API
"""

import logging
from typing import Dict, Any, List, Optional
from urllib.parse import quote
import httpx

from app.core.config import settings
from app.utils.error_handlers import AuthenticationError, UpstreamError

logger = logging.getLogger(__name__)

DIMENSION_KEYS = ("date", "query", "page", "country", "device")


class SearchConsoleClient:
    """
    Async client for the Search Analytics API, authenticated with an OAuth access token
    """

    def __init__(self, access_token: str, http_client: Optional[httpx.AsyncClient] = None):
        """
        Initialize Search Console client

        Args:
            access_token: Google OAuth access token
            http_client: Optional pre-configured client (tests inject a MockTransport)
        """
        self.access_token = access_token
        self.base_url = settings.GSC_API_BASE_URL.rstrip("/")
        self.row_limit = settings.GSC_ROW_LIMIT
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=settings.GSC_REQUEST_TIMEOUT)

    async def close(self):
        """Close HTTP client"""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json"
        }

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self.client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Search Console request failed: {str(e)}")
            raise UpstreamError(f"Search Console request failed: {str(e)}")

        if response.status_code == 401:
            raise AuthenticationError("Google Search Console authorization expired or revoked")
        if response.status_code >= 400:
            message = _error_message(response)
            logger.error(f"Search Console API error {response.status_code}: {message}")
            raise UpstreamError(f"Search Console API error ({response.status_code}): {message}")

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Search Console returned an unreadable response: {str(e)}")
            raise UpstreamError("Search Console returned an invalid JSON response")

    async def list_sites(self) -> List[Dict[str, Any]]:
        """
        List Search Console properties the user has access to

        Returns:
            [{"site_url": ..., "permission_level": ...}]
        """
        data = await self._request("GET", f"{self.base_url}/sites")
        sites = [
            {
                "site_url": entry.get("siteUrl"),
                "permission_level": entry.get("permissionLevel")
            }
            for entry in data.get("siteEntry", [])
        ]
        logger.info(f"Found {len(sites)} Search Console sites")
        return sites

    async def query_search_analytics(
        self,
        site_url: str,
        start_date: str,
        end_date: str,
        dimensions: List[str],
    ) -> List[Dict[str, Any]]:
        """
        Fetch every Search Analytics row for a site and date range

        Pages with startRow until a short page comes back.

        Returns:
            GSC-shaped rows: {date, query, page, country, device, clicks, impressions, ctr, position}
        """
        url = f"{self.base_url}/sites/{quote(site_url, safe='')}/searchAnalytics/query"
        all_rows: List[Dict[str, Any]] = []
        start_row = 0

        while True:
            body = {
                "startDate": start_date,
                "endDate": end_date,
                "dimensions": dimensions,
                "rowLimit": self.row_limit,
                "startRow": start_row
            }
            data = await self._request("POST", url, json=body)
            rows = data.get("rows", [])
            if not rows:
                break

            all_rows.extend(self._transform_row(row, dimensions, end_date) for row in rows)
            logger.info(f"Fetched {len(all_rows)} rows from Search Console ({','.join(dimensions)})")

            if len(rows) < self.row_limit:
                break
            start_row += self.row_limit

        return all_rows

    async def fetch_time_series(self, site_url: str, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        """Daily site totals (no query/page)"""
        return await self.query_search_analytics(site_url, start_date, end_date, ["date"])

    async def fetch_detail_rows(self, site_url: str, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        """Daily rows per query and page"""
        return await self.query_search_analytics(site_url, start_date, end_date, ["date", "query", "page"])

    @staticmethod
    def _transform_row(row: Dict[str, Any], dimensions: List[str], end_date: str) -> Dict[str, Any]:
        keys = row.get("keys", [])
        transformed: Dict[str, Any] = {key: None for key in DIMENSION_KEYS}
        for index, dimension in enumerate(dimensions):
            if index < len(keys):
                transformed[dimension] = keys[index]

        # aggregated queries have no date key
        if "date" not in dimensions:
            transformed["date"] = end_date

        transformed.update({
            "clicks": row.get("clicks", 0),
            "impressions": row.get("impressions", 0),
            "ctr": row.get("ctr", 0),
            "position": row.get("position", 0)
        })
        return transformed


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("error", {}).get("message") or response.text
    except ValueError:
        return response.text
