"""Shared fixtures: an in-memory platform account and test configuration."""

import copy
import gzip
import json
from collections import defaultdict
from pathlib import Path
from typing import Any

import pytest

from profile_bridge.client.exceptions import NotFoundError, ServerError
from profile_bridge.config import AccountConfig, PerformanceConfig, SyncConfig
from profile_bridge.resources import EntityType
from profile_bridge.sync.archive import BackupArchive

# Key holding the new id in each resource's create response
CREATE_ID_KEYS = {
    "devices": "device_id",
    "analysis": "id",
    "dashboards": "dashboard",
    "access": "am_id",
    "actions": "action",
    "networks": "network",
    "connectors": "connector",
    "dictionaries": "dictionary",
    "run_users": "user",
    "secrets": "id",
}


class FakePlatformClient:
    """In-memory stand-in for PlatformClient.

    Ids are ``<name><6 digits>`` so no id is a prefix of another. Failures are
    injected per ``(operation, resource)`` pair or per item name.
    """

    def __init__(self, name: str, page_size: int = 100):
        self.name = name
        self.token = f"{name}-account-token"
        self.label = name
        self.page_size = page_size

        self.items: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.device_token_store: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.params: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.scripts: dict[str, dict[str, Any]] = {}
        self.script_downloads: dict[str, bytes] = {}
        self.widgets: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.languages: dict[str, dict[str, Any]] = defaultdict(dict)
        self.run: dict[str, Any] = {}
        self.profile: dict[str, Any] = {"info": {"id": f"{name}-profile", "name": name}}
        self.uploaded_files: list[dict[str, Any]] = []
        self.profile_edits: list[tuple[str, dict[str, Any]]] = []

        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[tuple[str, str], Exception] = {}
        self.fail_names: set[str] = set()
        self._counter = 0

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def new_id(self) -> str:
        self._counter += 1
        return f"{self.name}{self._counter:06d}"

    def add(self, resource: str, payload: dict[str, Any]) -> str:
        item_id = payload.get("id") or self.new_id()
        self.items[resource][item_id] = {**copy.deepcopy(payload), "id": item_id}
        return item_id

    def add_device(self, name: str, export_id: str | None = None, **extra: Any) -> str:
        tags = [{"key": "export_id", "value": export_id}] if export_id else []
        device_id = self.add("devices", {"name": name, "tags": tags, "type": "mutable", **extra})
        self.device_token_store[device_id].append(
            {"name": "Default", "token": f"tok-{device_id}", "permission": "full"}
        )
        return device_id

    def tagged(self, resource: str, export_id: str, **payload: Any) -> str:
        return self.add(resource, {"tags": [{"key": "export_id", "value": export_id}], **payload})

    def _check(self, operation: str, resource: str, name: Any = None) -> None:
        error = self.failures.get((operation, resource))
        if error is not None:
            raise error
        if name is not None and name in self.fail_names:
            raise ServerError(f"Rejected {name}", status_code=500)

    def _get(self, resource: str, item_id: str) -> dict[str, Any]:
        if item_id not in self.items[resource]:
            raise NotFoundError(f"{resource} {item_id} not found", status_code=404)
        return self.items[resource][item_id]

    # ------------------------------------------------------------------
    # Generic resources
    # ------------------------------------------------------------------

    async def list_all(self, resource, fields=None, tag_key=None, filters=None):
        self.calls.append(("list", resource))
        self._check("list", resource)
        items = [copy.deepcopy(item) for item in self.items[resource].values()]
        if tag_key:
            items = [i for i in items if any(t.get("key") == tag_key for t in i.get("tags") or [])]
        return items

    async def info(self, resource, item_id):
        self._check("info", resource)
        return copy.deepcopy(self._get(resource, item_id))

    async def create(self, resource, payload):
        self.calls.append(("create", resource, copy.deepcopy(payload)))
        self._check("create", resource, payload.get("name") or payload.get("label"))
        item_id = self.new_id()
        self.items[resource][item_id] = {**copy.deepcopy(payload), "id": item_id}
        if resource == "devices":
            token = f"tok-{item_id}"
            self.device_token_store[item_id].append({"name": "Default", "token": token})
            return {"device_id": item_id, "token": token}
        return {CREATE_ID_KEYS[resource]: item_id}

    async def edit(self, resource, item_id, payload):
        self.calls.append(("edit", resource, item_id, copy.deepcopy(payload)))
        current = self._get(resource, item_id)
        self._check("edit", resource, payload.get("name") or current.get("name"))
        current.update(copy.deepcopy(payload))
        return "Successfully Updated"

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    async def device_tokens(self, device_id, fields=None):
        return copy.deepcopy(self.device_token_store.get(device_id, []))

    async def device_token(self, device_id, name=None):
        self.calls.append(("device_token", device_id))
        tokens = self.device_token_store.get(device_id) or []
        return tokens[0]["token"] if tokens else None

    async def create_device_token(self, device_id, payload):
        token = f"tok-{self.new_id()}"
        self.device_token_store[device_id].append({**payload, "token": token})
        return {"token": token}

    async def delete_device_token(self, token):
        for tokens in self.device_token_store.values():
            tokens[:] = [t for t in tokens if t["token"] != token]

    async def device_params(self, device_id):
        return copy.deepcopy(self.params.get(device_id, []))

    async def set_device_params(self, device_id, params):
        self._check("params", "devices")
        self.params[device_id].extend(copy.deepcopy(params))

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def analysis_download_url(self, analysis_id):
        return f"https://download.example/{self.name}/{analysis_id}"

    async def download(self, url):
        analysis_id = url.rsplit("/", 1)[-1]
        if analysis_id not in self.script_downloads:
            raise NotFoundError(f"no script at {url}", status_code=404)
        return self.script_downloads[analysis_id]

    async def upload_analysis_script(self, analysis_id, content_b64, language, name):
        self.scripts[analysis_id] = {"content": content_b64, "language": language, "name": name}

    # ------------------------------------------------------------------
    # Widgets, dictionaries, run, files, profile
    # ------------------------------------------------------------------

    async def widget_info(self, dashboard_id, widget_id):
        return copy.deepcopy(self.widgets[dashboard_id][widget_id])

    async def create_widget(self, dashboard_id, payload):
        self.calls.append(("create_widget", dashboard_id, copy.deepcopy(payload)))
        self._check("create", "widgets")
        widget_id = self.new_id()
        self.widgets[dashboard_id][widget_id] = {**copy.deepcopy(payload), "id": widget_id}
        return widget_id

    async def edit_widget(self, dashboard_id, widget_id, payload):
        self.calls.append(("edit_widget", dashboard_id, widget_id, copy.deepcopy(payload)))
        self.widgets[dashboard_id][widget_id] = {**copy.deepcopy(payload), "id": widget_id}

    async def delete_widget(self, dashboard_id, widget_id):
        self.calls.append(("delete_widget", dashboard_id, widget_id))
        if widget_id not in self.widgets[dashboard_id]:
            raise NotFoundError("widget not found", status_code=404)
        del self.widgets[dashboard_id][widget_id]

    async def dictionary_language(self, dictionary_id, language):
        return copy.deepcopy(self.languages[dictionary_id].get(language, {}))

    async def edit_dictionary_language(self, dictionary_id, language, content):
        self.languages[dictionary_id][language] = copy.deepcopy(content)

    async def run_info(self):
        return copy.deepcopy(self.run)

    async def edit_run(self, payload):
        self.calls.append(("edit_run", copy.deepcopy(payload)))
        self.run.update(copy.deepcopy(payload))

    async def upload_files(self, files):
        self._check("upload", "files", files[0]["filename"] if files else None)
        self.uploaded_files.extend(copy.deepcopy(files))

    async def profile_info(self):
        return copy.deepcopy(self.profile)

    async def edit_profile(self, profile_id, payload):
        self.profile_edits.append((profile_id, copy.deepcopy(payload)))

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


def make_config(**overrides: Any) -> SyncConfig:
    """Config with throttling disabled so tests run instantly."""
    performance = PerformanceConfig(
        rate_limit=0,
        widget_delay_ms=0,
        delay_ms={t.value: 0 for t in EntityType},
    )
    values: dict[str, Any] = {
        "source": AccountConfig(token="source-token", label="source"),
        "target": AccountConfig(token="target-token", label="target"),
        "performance": performance,
        **overrides,
    }
    return SyncConfig(**values)


def write_archive(root: Path, files: dict[str, Any]) -> Path:
    """Write an extracted backup: JSON documents, attachments and scripts.

    Keys ending in ``.json`` are dumped as JSON; other keys are written as raw
    bytes (gzip-compressed when below ``analysis/``).
    """
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if name.endswith(".json"):
            path.write_text(json.dumps(content))
        elif name.startswith("analysis/"):
            path.write_bytes(gzip.compress(content))
        else:
            path.write_bytes(content)
    return root


@pytest.fixture
def config() -> SyncConfig:
    return make_config()


@pytest.fixture
def source() -> FakePlatformClient:
    return FakePlatformClient("src")


@pytest.fixture
def target() -> FakePlatformClient:
    return FakePlatformClient("tgt")


@pytest.fixture
def make_archive(tmp_path):
    """Factory writing an extracted backup below ``tmp_path`` and opening it."""

    def factory(files: dict[str, Any]) -> BackupArchive:
        return BackupArchive(write_archive(tmp_path / "backup", files))

    return factory
