"""Platform API client.

This client extends BaseAPIClient with the resource endpoints the sync
adapters need: paginated listing with tag filters, detail fetches, and the
nested sub-resources (device tokens and parameters, dashboard widgets,
dictionary languages, analysis scripts, run users).
"""

from typing import Any

from profile_bridge.client.base_client import BaseAPIClient
from profile_bridge.config import AccountConfig, PerformanceConfig
from profile_bridge.utils.logging import get_logger

logger = get_logger(__name__)

# Collection endpoints per resource, relative to the API root
RESOURCE_PATHS: dict[str, str] = {
    "devices": "device",
    "analysis": "analysis",
    "dashboards": "dashboard",
    "access": "am",
    "actions": "action",
    "networks": "integration/network",
    "connectors": "integration/connector",
    "dictionaries": "dictionary",
    "run_users": "run/users",
    "secrets": "secrets",
}


def unwrap(response: Any) -> Any:
    """Strip the ``{"status": ..., "result": ...}`` envelope from a response."""
    if isinstance(response, dict) and "result" in response:
        return response["result"]
    return response


class PlatformClient(BaseAPIClient):
    """Client for one platform account (profile)."""

    def __init__(
        self,
        config: AccountConfig,
        performance: PerformanceConfig | None = None,
        log_payloads: bool = False,
        max_payload_size: int = 10000,
        transport: Any = None,
    ):
        """Initialize platform client.

        Args:
            config: Account connection settings (url, token, timeout, TLS)
            performance: Throttling and pooling settings
            log_payloads: Enable request/response payload logging
            max_payload_size: Maximum payload size to log before truncation
            transport: Optional httpx transport, used by tests
        """
        performance = performance or PerformanceConfig()
        super().__init__(
            base_url=config.url,
            token=config.token,
            verify_ssl=config.verify_ssl,
            timeout=config.timeout,
            rate_limit=performance.rate_limit,
            max_connections=performance.max_connections,
            max_keepalive_connections=performance.max_keepalive_connections,
            retry_attempts=performance.retry_attempts,
            log_payloads=log_payloads,
            max_payload_size=max_payload_size,
            transport=transport,
        )
        self.page_size = performance.page_size
        self.label = config.label

    # ------------------------------------------------------------------
    # Generic resource operations
    # ------------------------------------------------------------------

    async def list_all(
        self,
        resource: str,
        fields: list[str] | None = None,
        tag_key: str | None = None,
        filters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """List every item of a resource, following pages until exhausted.

        Args:
            resource: Resource name (key of RESOURCE_PATHS)
            fields: Fields to request; the platform returns a minimal set otherwise
            tag_key: Only return items carrying a tag with this key
            filters: Extra ``filter[...]`` query parameters

        Returns:
            All items across all pages
        """
        endpoint = RESOURCE_PATHS[resource]
        params: dict[str, Any] = {"amount": self.page_size}
        if fields:
            params["fields"] = ",".join(fields)
        if tag_key:
            params["filter[tags][0][key]"] = tag_key
        for key, value in (filters or {}).items():
            params[f"filter[{key}]"] = value

        items: list[dict[str, Any]] = []
        page = 1
        while True:
            params["page"] = page
            batch = unwrap(await self.get(endpoint, params=params)) or []
            items.extend(batch)

            logger.debug(
                "page_fetched",
                resource=resource,
                page=page,
                items_this_page=len(batch),
                total_items_so_far=len(items),
            )

            if len(batch) < self.page_size:
                break
            page += 1

        return items

    async def info(self, resource: str, item_id: str) -> dict[str, Any]:
        return unwrap(await self.get(f"{RESOURCE_PATHS[resource]}/{item_id}"))

    async def create(self, resource: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Create an item; returns the result object (shape varies per resource)."""
        return unwrap(await self.post(RESOURCE_PATHS[resource], json_data=payload))

    async def edit(self, resource: str, item_id: str, payload: dict[str, Any]) -> Any:
        return unwrap(await self.put(f"{RESOURCE_PATHS[resource]}/{item_id}", json_data=payload))

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    async def device_tokens(
        self, device_id: str, fields: list[str] | None = None
    ) -> list[dict[str, Any]]:
        params = {"fields": ",".join(fields or ["name", "token", "permission", "serie_number"])}
        return unwrap(await self.get(f"device/token/{device_id}", params=params)) or []

    async def device_token(self, device_id: str, name: str | None = None) -> str | None:
        """Return a device's token, by token name when given, else its first token."""
        tokens = await self.device_tokens(device_id, fields=["name", "token"])
        if not tokens:
            return None
        if name:
            for token in tokens:
                if token.get("name") == name:
                    return token.get("token")
            return None
        return tokens[0].get("token")

    async def create_device_token(self, device_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return unwrap(await self.post("device/token", json_data={"device": device_id, **payload}))

    async def delete_device_token(self, token: str) -> Any:
        return unwrap(await self.delete(f"device/token/{token}"))

    async def device_params(self, device_id: str) -> list[dict[str, Any]]:
        return unwrap(await self.get(f"device/{device_id}/params")) or []

    async def set_device_params(self, device_id: str, params: list[dict[str, Any]]) -> Any:
        return unwrap(await self.post(f"device/{device_id}/params", json_data=params))

    # ------------------------------------------------------------------
    # Analysis scripts
    # ------------------------------------------------------------------

    async def analysis_download_url(self, analysis_id: str) -> str:
        result = unwrap(await self.get(f"analysis/{analysis_id}/download"))
        return result["url"]

    async def upload_analysis_script(
        self, analysis_id: str, content_b64: str, language: str, name: str
    ) -> Any:
        payload = {"content": content_b64, "language": language, "name": name}
        return unwrap(await self.post(f"analysis/{analysis_id}/upload", json_data=payload))

    # ------------------------------------------------------------------
    # Dashboards and widgets
    # ------------------------------------------------------------------

    async def widget_info(self, dashboard_id: str, widget_id: str) -> dict[str, Any]:
        return unwrap(await self.get(f"dashboard/{dashboard_id}/widget/{widget_id}"))

    async def create_widget(self, dashboard_id: str, payload: dict[str, Any]) -> str:
        result = unwrap(await self.post(f"dashboard/{dashboard_id}/widget", json_data=payload))
        return result["widget"]

    async def edit_widget(self, dashboard_id: str, widget_id: str, payload: dict[str, Any]) -> Any:
        return unwrap(
            await self.put(f"dashboard/{dashboard_id}/widget/{widget_id}", json_data=payload)
        )

    async def delete_widget(self, dashboard_id: str, widget_id: str) -> Any:
        return unwrap(await self.delete(f"dashboard/{dashboard_id}/widget/{widget_id}"))

    # ------------------------------------------------------------------
    # Dictionaries
    # ------------------------------------------------------------------

    async def dictionary_language(self, dictionary_id: str, language: str) -> dict[str, Any]:
        return unwrap(await self.get(f"dictionary/{dictionary_id}/{language}")) or {}

    async def edit_dictionary_language(
        self, dictionary_id: str, language: str, content: dict[str, Any]
    ) -> Any:
        payload = {"dictionary": content, "active": True}
        return unwrap(await self.put(f"dictionary/{dictionary_id}/{language}", json_data=payload))

    # ------------------------------------------------------------------
    # Run, files, profile
    # ------------------------------------------------------------------

    async def run_info(self) -> dict[str, Any]:
        return unwrap(await self.get("run")) or {}

    async def edit_run(self, payload: dict[str, Any]) -> Any:
        return unwrap(await self.put("run", json_data=payload))

    async def upload_files(self, files: list[dict[str, Any]]) -> Any:
        """Upload base64 files: each item is ``{filename, file, public}``."""
        return unwrap(await self.post("files", json_data=files))

    async def profile_info(self) -> dict[str, Any]:
        return unwrap(await self.get("profile/current")) or {}

    async def edit_profile(self, profile_id: str, payload: dict[str, Any]) -> Any:
        return unwrap(await self.put(f"profile/{profile_id}", json_data=payload))
