"""
Read-only client for the API Management REST surface of Azure Resource Manager.

Tokens come from azure-identity's AzureCliCredential by default, so the
Azure CLI must be logged in; any TokenCredential can be passed instead.
"""
import time
from typing import Any, Callable, Dict, List, Optional

import httpx
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import AzureCliCredential

from apimextract.errors import MissingParameter, SourceUnavailable
from apimextract.models.template import APIM_API_VERSION

MANAGEMENT_URL = "https://management.azure.com"
MANAGEMENT_SCOPE = MANAGEMENT_URL + "/.default"
SUBSCRIPTIONS_API_VERSION = "2020-01-01"
_RETRY_STATUSES = {429, 500, 502, 503, 504}


def management_token(credential) -> str:
    try:
        return credential.get_token(MANAGEMENT_SCOPE).token
    except ClientAuthenticationError as exc:
        raise SourceUnavailable(f"could not get a management token: {exc}", stage="authenticate")


def default_subscription(
    token: str, timeout: float = 60.0, transport: Optional[httpx.BaseTransport] = None
) -> str:
    """The one enabled subscription the token can see; otherwise subscriptionId is required."""
    headers = {"Accept": "application/json", "Authorization": f"Bearer {token}"}
    with httpx.Client(headers=headers, timeout=timeout, transport=transport) as http:
        try:
            resp = http.get(
                f"{MANAGEMENT_URL}/subscriptions", params={"api-version": SUBSCRIPTIONS_API_VERSION}
            )
        except httpx.TransportError as exc:
            raise SourceUnavailable(f"listing subscriptions failed: {exc}", stage="authenticate")
    if resp.status_code >= 400:
        raise SourceUnavailable(
            f"listing subscriptions returned {resp.status_code}: {resp.text[:200]}",
            stage="authenticate",
        )
    enabled = [
        s["subscriptionId"] for s in resp.json().get("value", [])
        if s.get("state", "Enabled") == "Enabled"
    ]
    if len(enabled) != 1:
        raise MissingParameter("subscriptionId")
    return enabled[0]


class ManagementClient:
    """
    Paged GET access to one APIM service.

    Paths are relative to the service, e.g. "apis" or "apis/echo-api/operations".
    """

    def __init__(
        self,
        subscription_id: str,
        resource_group: str,
        service_name: str,
        token: Optional[str] = None,
        max_retries: int = 5,
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = (
            f"{MANAGEMENT_URL}/subscriptions/{subscription_id}/resourceGroups/{resource_group}"
            f"/providers/Microsoft.ApiManagement/service/{service_name}"
        )
        self.max_retries = max(1, max_retries)
        self._sleep = sleep
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.Client(headers=headers, timeout=timeout, transport=transport)

    @classmethod
    def from_config(
        cls,
        config,
        credential=None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "ManagementClient":
        credential = credential or AzureCliCredential(process_timeout=int(config.timeout))
        token = management_token(credential)
        subscription_id = config.subscription_id or default_subscription(
            token, timeout=config.timeout, transport=transport
        )
        return cls(
            subscription_id,
            config.resource_group,
            config.source_apim_name,
            token=token,
            max_retries=config.max_retries,
            timeout=config.timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "ManagementClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}" if path else self.base_url

    def _request(self, url: str, params: Optional[Dict[str, Any]]) -> Optional[httpx.Response]:
        for attempt in range(self.max_retries):
            try:
                resp = self._http.get(url, params=params)
            except httpx.TransportError as exc:
                if attempt + 1 >= self.max_retries:
                    raise SourceUnavailable(f"GET {url} failed: {exc}")
                self._sleep(min(30, 2 ** attempt))
                continue

            if resp.status_code == 404:
                return None
            if resp.status_code in _RETRY_STATUSES:
                if attempt + 1 >= self.max_retries:
                    break
                retry_after = resp.headers.get("Retry-After")
                wait = int(retry_after) if retry_after and retry_after.isdigit() else min(30, 2 ** attempt)
                self._sleep(wait)
                continue
            if resp.status_code >= 400:
                raise SourceUnavailable(
                    f"GET {url} returned {resp.status_code}: {resp.text[:200]}"
                )
            return resp
        raise SourceUnavailable(f"GET {url} gave up after {self.max_retries} attempts")

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        query = {"api-version": APIM_API_VERSION}
        query.update(params or {})
        resp = self._request(self._url(path), query)
        return resp.json() if resp is not None else None

    def list(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        url: Optional[str] = self._url(path)
        query: Optional[Dict[str, Any]] = {"api-version": APIM_API_VERSION}
        query.update(params or {})
        while url:
            resp = self._request(url, query)
            if resp is None:
                break
            page = resp.json()
            items.extend(page.get("value", []))
            # nextLink already carries api-version and the skip token
            url = page.get("nextLink")
            query = None
        return items
