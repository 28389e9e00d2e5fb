"""Async client for the JSMon REST API."""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from jsmon_cli.models.config import DEFAULT_BASE_URL
from jsmon_cli.models.scan import ApiResult
from jsmon_cli.utils.exceptions import ApiError

logger = structlog.get_logger()

SCAN_SOURCE = "cliScan"

# User-facing field names -> intelligence "options" values
FIELD_OPTIONS = {
    "apipaths": "apipaths",
    "urls": "urls",
    "domains": "domains",
    "ip": "ipaddresses",
    "emails": "emails",
    "s3buckets": "s3domains",
    "s3takeovers": "s3invalid",
    "gqlqueries": "gqlqueries",
    "gqlmutaions": "gqlmutations",
    "gqlfragments": "gqlfragments",
    "param": "parameters",
    "npmpackages": "validnodemodules",
    "npmconfusion": "invalidnodemodules",
    "guids": "guids",
    "localhost": "localhost",
    "activedomains": "domainsstatus",
    "inactivedomains": "domainsstatus",
    "awsassets": "awsassets",
    "queryparam": "queryparams",
    "socialurls": "socialmediaurls",
    "porturls": "filteredporturls",
    "extensionurls": "fileextensionurls",
}

FIELD_STATUS = {
    "activedomains": "active",
    "inactivedomains": "inactive",
}


def map_field_to_options(field: str) -> str:
    """Translate a field name to the API's ``options`` value."""
    key = field.lower()
    return FIELD_OPTIONS.get(key, key)


def status_for_field(field: str) -> Optional[str]:
    """Return the ``status`` filter implied by a field, if any."""
    return FIELD_STATUS.get(field.lower())


def extract_error_message(body: str) -> str:
    """Pull a human-readable error out of an API error body."""
    try:
        data = json.loads(body)
    except (ValueError, TypeError):
        return body.strip()

    if isinstance(data, dict):
        for key in ("message", "error", "errorMessage", "msg"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return body.strip()


class ScanSubmitter(ABC):
    """Remote scan submission used by the batch upload engine

    Implementations report failures as ApiResult values instead of raising,
    so the engine can classify every outcome the same way.
    """

    @abstractmethod
    async def upload_url(self, url: str, workspace_id: str) -> ApiResult:
        """Submit one URL for scanning

        Args:
            url: Target URL
            workspace_id: Workspace receiving the scan

        Returns:
            ApiResult, success or failure with status code and message
        """
        pass


class JsmonClient(ScanSubmitter):
    """JSMon API client

    Use as an async context manager so the underlying session is closed:

        async with JsmonClient(api_key) as client:
            workspaces = await client.get_workspaces()
    """

    def __init__(
        self,
        api_key: str,
        headers: Optional[Dict[str, str]] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        max_attempts: int = 3,
        retry_wait: float = 1.0,
    ):
        self.api_key = api_key.strip()
        self.headers = dict(headers or {})
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "JsmonClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    def _request_headers(self, forward_custom: bool) -> Dict[str, str]:
        headers = {"X-Jsmon-Key": self.api_key}
        if forward_custom:
            headers.update(self.headers)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
        forward_custom: bool = True,
        idempotent: bool = True,
    ) -> Tuple[int, str]:
        """Send one request, retrying connection-level failures.

        Requests that create something on the server are only retried when
        the connection could not be opened, never after a timeout.

        Returns:
            (status, body text)

        Raises:
            ApiError: If no response could be obtained (status is None)
        """
        session = self._get_session()
        send = session.post if method == "POST" else session.get
        url = f"{self.base_url}{path}"
        query = {k: v for k, v in (params or {}).items() if v not in (None, "")}
        retry_on = (
            (aiohttp.ClientConnectionError, asyncio.TimeoutError)
            if idempotent
            else (aiohttp.ClientConnectorError,)
        )

        try:
            async for attempt in AsyncRetrying(
                reraise=True,
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self.retry_wait, max=8),
                retry=retry_if_exception_type(retry_on),
            ):
                with attempt:
                    async with send(
                        url,
                        params=query,
                        json=payload,
                        headers=self._request_headers(forward_custom),
                    ) as response:
                        body = await response.text()
                        return response.status, body
        except asyncio.TimeoutError:
            logger.error("api_timeout", path=path)
            raise ApiError("Request timed out")
        except aiohttp.ClientError as e:
            logger.error("api_unreachable", path=path, error=str(e))
            raise ApiError(f"Failed to send request: {e}")

        raise ApiError("Request was not attempted")  # pragma: no cover

    async def _get_json(
        self, operation: str, path: str, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        status, body = await self._request("GET", path, params=params)
        return self._decode(operation, status, body)

    def _decode(self, operation: str, status: int, body: str) -> Any:
        if status < 200 or status >= 300:
            logger.debug("api_error", operation=operation, status=status, body=body)
            raise ApiError(f"{operation} failed: {extract_error_message(body)}", status)
        try:
            return json.loads(body)
        except ValueError:
            raise ApiError(f"{operation}: failed to parse response", status)

    # Scan submission

    async def _submit(
        self, path: str, workspace_id: str, payload: Dict[str, Any]
    ) -> ApiResult:
        if self.headers:
            # Custom headers travel in the payload so the scanner uses them
            # against the target, not against the API.
            payload["headers"] = self.headers

        try:
            status, body = await self._request(
                "POST",
                path,
                params={"wkspId": workspace_id, "source": SCAN_SOURCE},
                payload=payload,
                forward_custom=False,
                idempotent=False,
            )
        except ApiError as e:
            return ApiResult.failure(None, e.message)

        if 200 <= status < 300:
            return ApiResult.ok()

        message = extract_error_message(body) or f"HTTP {status}"
        return ApiResult.failure(status, message)

    async def upload_url(self, url: str, workspace_id: str) -> ApiResult:
        """Submit a URL for scanning."""
        return await self._submit("/uploadUrl", workspace_id, {"url": url})

    async def scan_domain(self, domain: str, workspace_id: str) -> ApiResult:
        """Submit a domain for an automated scan."""
        return await self._submit(
            "/automateScanDomain", workspace_id, {"domain": domain}
        )

    # Workspaces

    async def create_workspace(self, name: str) -> str:
        """Create a workspace and return its ID."""
        status, body = await self._request(
            "POST", "/createWorkspace", payload={"name": name}, idempotent=False
        )
        data = self._decode("createWorkspace", status, body)
        workspace_id = data.get("workspaceId") if isinstance(data, dict) else None
        if not isinstance(workspace_id, str):
            raise ApiError("createWorkspace: workspaceId not found in response", status)
        return workspace_id

    async def get_workspaces(self) -> List[Dict[str, Any]]:
        data = await self._get_json("getWorkspaces", "/getWorkspaces")
        return list(data.get("workspaces") or [])

    # Reports

    async def get_total_count_analysis(
        self, workspace_id: str, run_id: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._get_json(
            "getTotalCountAnalysis",
            "/totalCountAnalysis",
            {"wkspId": workspace_id, "runId": run_id},
        )

    async def get_scans(
        self, workspace_id: str, category: str, page: int = 1, limit: int = 100
    ) -> Dict[str, Any]:
        """Fetch scan records; category is ``fileScan`` or ``domainScan``."""
        return await self._get_json(
            "fetchScans",
            "/fetchScans",
            {
                "wkspId": workspace_id,
                "page": page,
                "category": category,
                "limit": limit,
            },
        )

    async def get_intelligence(
        self,
        workspace_id: str,
        field: str,
        page: int = 1,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Fetch reconnaissance data for one field."""
        return await self._get_json(
            "getIntelligence",
            "/intelligence",
            {
                "wkspId": workspace_id,
                "options": map_field_to_options(field),
                "page": page,
                "search": search,
                "status": status_for_field(field),
            },
        )

    async def get_secrets(
        self, workspace_id: str, page: int = 1, limit: int = 100
    ) -> Dict[str, Any]:
        return await self._get_json(
            "getSecrets",
            "/keysAndSecrets",
            {"wkspId": workspace_id, "page": page, "limit": limit},
        )

    async def reverse_search(
        self, workspace_id: str, field: str, value: str
    ) -> List[Dict[str, Any]]:
        """Find where a reconnaissance value was found.

        The endpoint answers either ``{"data": [...]}`` or a bare list; a
        bare object without ``data`` is treated as a single result.
        """
        status, body = await self._request(
            "POST",
            "/intelligenceSearch",
            params={"wkspId": workspace_id, "options": map_field_to_options(field)},
            payload={"value": value},
        )
        data = self._decode("reverseSearch", status, body)

        if isinstance(data, list):
            return [item for item in data if isinstance(item, dict)]
        if isinstance(data, dict):
            if isinstance(data.get("data"), list):
                return [item for item in data["data"] if isinstance(item, dict)]
            if data.get("data") is None and "data" in data:
                return []
            if data:
                return [data]
        return []
