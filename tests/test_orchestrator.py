"""Integration tests for the sync orchestrator against in-memory accounts.

Tests cover:
    - Export of devices and analysis with id and token rewriting
    - Idempotent re-export (second run updates, creates nothing)
    - Pre-flight checks (same profile, non-exportable types, run disabled)
    - Identity-only passes for dependencies outside the selection
    - Dependency blocking after a failed phase
    - Per item failures not failing the phase
    - Id mappings kept when a follow-up step fails after creation
    - Abort between phases
    - Full restore from an extracted archive
"""

import base64
import gzip

import pytest

from profile_bridge.client.exceptions import ConfigurationError, ServerError
from profile_bridge.resources import EntityType
from profile_bridge.sync.orchestrator import SyncOrchestrator

SCRIPT = b"module.exports = async (ctx) => ctx.log('hello');"


def seed_source(source):
    """One tagged device and one analysis embedding its id and token."""
    device_id = source.add_device("Sensor", export_id="sensor-1")
    analysis_id = source.tagged(
        "analysis",
        "analysis-1",
        name="Processor",
        runtime="node",
        variables=[
            {"key": "DEVICE_ID", "value": device_id},
            {"key": "DEVICE_TOKEN", "value": f"tok-{device_id}"},
        ],
    )
    source.script_downloads[analysis_id] = gzip.compress(SCRIPT)
    return device_id, analysis_id


def only(items):
    assert len(items) == 1
    return next(iter(items.values()))


# ============================================
# Export Tests
# ============================================


class TestExport:
    @pytest.mark.asyncio
    async def test_export_creates_and_rewrites(self, config, source, target):
        device_id, _ = seed_source(source)
        orchestrator = SyncOrchestrator(config, target, source=source)

        report = await orchestrator.run_export([EntityType.DEVICES, EntityType.ANALYSIS])

        assert report.exit_code == 0
        new_device = only(target.items["devices"])
        assert orchestrator.identity.get(EntityType.DEVICES, device_id) == new_device["id"]
        assert orchestrator.identity.tokens[f"tok-{device_id}"] == f"tok-{new_device['id']}"

        analysis = only(target.items["analysis"])
        variables = {v["key"]: v["value"] for v in analysis["variables"]}
        assert variables == {"DEVICE_ID": new_device["id"], "DEVICE_TOKEN": f"tok-{new_device['id']}"}

        script = target.scripts[analysis["id"]]
        assert base64.b64decode(script["content"]) == SCRIPT
        assert script["language"] == "node"
        assert report.get(EntityType.DEVICES).created == 1
        assert report.get(EntityType.ANALYSIS).created == 1

    @pytest.mark.asyncio
    async def test_second_export_only_updates(self, config, source, target):
        seed_source(source)
        await SyncOrchestrator(config, target, source=source).run_export(
            [EntityType.DEVICES, EntityType.ANALYSIS]
        )
        devices_before = dict(target.items["devices"])

        report = await SyncOrchestrator(config, target, source=source).run_export(
            [EntityType.DEVICES, EntityType.ANALYSIS]
        )

        for entity_type in (EntityType.DEVICES, EntityType.ANALYSIS):
            result = report.get(entity_type)
            assert (result.created, result.updated, result.failed) == (0, 1, 0)
        assert target.items["devices"].keys() == devices_before.keys()

    @pytest.mark.asyncio
    async def test_export_edits_only_allowed_device_fields(self, config, source, target):
        source.add_device("Source name", export_id="sensor-1", parse_function="return 1")
        existing = target.add_device("Target name", export_id="sensor-1")

        await SyncOrchestrator(config, target, source=source).run_export([EntityType.DEVICES])

        device = target.items["devices"][existing]
        assert device["name"] == "Target name"
        assert device["parse_function"] == "return 1"

    @pytest.mark.asyncio
    async def test_untagged_source_items_are_ignored(self, config, source, target):
        source.add_device("Untagged")
        source.add_device("Tagged", export_id="sensor-1")

        report = await SyncOrchestrator(config, target, source=source).run_export(
            [EntityType.DEVICES]
        )

        assert report.get(EntityType.DEVICES).created == 1
        assert only(target.items["devices"])["name"] == "Tagged"

    @pytest.mark.asyncio
    async def test_item_failure_does_not_fail_phase(self, config, source, target):
        source.add_device("Good", export_id="good")
        source.add_device("Bad", export_id="bad")
        target.fail_names.add("Bad")

        report = await SyncOrchestrator(config, target, source=source).run_export(
            [EntityType.DEVICES]
        )

        result = report.get(EntityType.DEVICES)
        assert (result.created, result.failed) == (1, 1)
        assert result.failures[0].name == "Bad"
        assert not result.phase_failed
        assert report.exit_code == 0

    @pytest.mark.asyncio
    async def test_failed_follow_up_step_keeps_new_device_mapped(self, config, source, target):
        """A device created before its params fail is still used by later phases."""
        device_id, _ = seed_source(source)
        source.params[device_id] = [{"id": "p1", "key": "interval", "value": "60"}]
        target.failures[("params", "devices")] = ServerError("params rejected", status_code=500)
        orchestrator = SyncOrchestrator(config, target, source=source)

        report = await orchestrator.run_export([EntityType.DEVICES, EntityType.ANALYSIS])

        devices = report.get(EntityType.DEVICES)
        assert (devices.created, devices.failed) == (0, 1)
        new_device = only(target.items["devices"])
        assert orchestrator.identity.get(EntityType.DEVICES, device_id) == new_device["id"]
        assert orchestrator.identity.tokens[f"tok-{device_id}"] == f"tok-{new_device['id']}"

        variables = {v["key"]: v["value"] for v in only(target.items["analysis"])["variables"]}
        assert variables == {"DEVICE_ID": new_device["id"], "DEVICE_TOKEN": f"tok-{new_device['id']}"}

    @pytest.mark.asyncio
    async def test_source_token_read_once_per_device(self, config, source, target):
        device_id = source.add_device("Sensor", export_id="sensor-1")
        orchestrator = SyncOrchestrator(config, target, source=source)

        await orchestrator.run_export([EntityType.DEVICES])

        assert source.calls.count(("device_token", device_id)) == 1
        new_device = only(target.items["devices"])
        assert dict(orchestrator.identity.tokens) == {f"tok-{device_id}": f"tok-{new_device['id']}"}

    @pytest.mark.asyncio
    async def test_failed_widget_keeps_new_dashboard_mapped(self, config, source, target):
        dashboard_id = source.tagged(
            "dashboards", "dash-1", label="Overview", arrangement=[{"widget_id": "w1"}]
        )
        source.widgets[dashboard_id]["w1"] = {"id": "w1", "label": "Chart", "type": "line"}
        target.failures[("create", "widgets")] = ServerError("widget rejected", status_code=500)
        orchestrator = SyncOrchestrator(config, target, source=source)

        report = await orchestrator.run_export([EntityType.DASHBOARDS])

        assert report.get(EntityType.DASHBOARDS).failed == 1
        new_dashboard = only(target.items["dashboards"])
        assert orchestrator.identity.get(EntityType.DASHBOARDS, dashboard_id) == new_dashboard["id"]

    @pytest.mark.asyncio
    async def test_export_snapshots_originals(self, config, source, target, tmp_path):
        from profile_bridge.sync.backup_store import ExportBackupStore

        device_id = source.add_device("Sensor", export_id="sensor-1")
        existing = target.add_device("Sensor", export_id="sensor-1")

        await SyncOrchestrator(
            config, target, source=source, backup_store=ExportBackupStore(tmp_path)
        ).run_export([EntityType.DEVICES])

        assert (tmp_path / "original" / "devices" / f"{device_id}.json").is_file()
        assert (tmp_path / "target" / "devices" / f"{existing}.json").is_file()


# ============================================
# Pre-flight Tests
# ============================================


class TestPreflight:
    @pytest.mark.asyncio
    async def test_same_profile_is_rejected(self, config, source, target):
        target.profile = {"info": {"id": "src-profile"}}

        with pytest.raises(ConfigurationError, match="same profile"):
            await SyncOrchestrator(config, target, source=source).run_export()

        assert not [c for c in target.calls if c[0] == "create"]

    @pytest.mark.asyncio
    async def test_restore_only_type_cannot_be_exported(self, config, source, target):
        with pytest.raises(ConfigurationError, match="secrets"):
            await SyncOrchestrator(config, target, source=source).run_export([EntityType.SECRETS])

    @pytest.mark.asyncio
    async def test_export_without_source(self, config, target):
        with pytest.raises(ConfigurationError):
            await SyncOrchestrator(config, target).run_export()

    @pytest.mark.asyncio
    async def test_run_phase_blocked_when_target_run_disabled(self, config, source, target):
        source.run = {"name": "Source app", "url": "src.run.example"}

        report = await SyncOrchestrator(config, target, source=source).run_export([EntityType.RUN])

        result = report.get(EntityType.RUN)
        assert "not enabled" in result.phase_error
        assert report.exit_code == 1
        assert not [c for c in target.calls if c[0] == "edit_run"]


# ============================================
# Dependency Tests
# ============================================


class TestDependencies:
    @pytest.mark.asyncio
    async def test_identity_pass_for_unselected_dependency(self, config, source, target):
        source_device = source.add_device("Sensor", export_id="sensor-1")
        target_device = target.add_device("Sensor", export_id="sensor-1")
        source.tagged(
            "actions",
            "alert-1",
            name="Alert",
            trigger=[{"device": source_device, "value": "", "second_value": None}],
        )

        report = await SyncOrchestrator(config, target, source=source).run_export(
            [EntityType.ACTIONS]
        )

        assert report.results[0].entity_type == EntityType.DEVICES
        assert report.results[0].identity_only
        assert report.get(EntityType.DEVICES) is None
        assert not [c for c in target.calls if c[0] == "edit" and c[1] == "devices"]

        action = only(target.items["actions"])
        assert action["trigger"] == [{"device": target_device}]

    @pytest.mark.asyncio
    async def test_failed_dependency_blocks_dependents(self, config, source, target):
        seed_source(source)
        source.failures[("list", "devices")] = ServerError("listing unavailable", status_code=503)

        report = await SyncOrchestrator(config, target, source=source).run_export(
            [EntityType.DEVICES, EntityType.ANALYSIS, EntityType.DICTIONARIES]
        )

        assert report.get(EntityType.DEVICES).phase_failed
        assert "dependency unavailable: devices" in report.get(EntityType.ANALYSIS).phase_error
        assert not report.get(EntityType.DICTIONARIES).phase_failed
        assert report.exit_code == 1
        assert target.items["analysis"] == {}

    @pytest.mark.asyncio
    async def test_duplicate_tags_fail_the_phase(self, config, source, target):
        source.add_device("One", export_id="dup")
        source.add_device("Two", export_id="dup")

        report = await SyncOrchestrator(config, target, source=source).run_export(
            [EntityType.DEVICES]
        )

        assert "duplicate correlation key" in report.get(EntityType.DEVICES).phase_error
        assert target.items["devices"] == {}


# ============================================
# Abort Tests
# ============================================


class TestAbort:
    @pytest.mark.asyncio
    async def test_declined_phase_stops_run(self, config, source, target):
        seed_source(source)
        orchestrator = SyncOrchestrator(
            config,
            target,
            source=source,
            confirm_phase=lambda entity_type: entity_type != EntityType.ANALYSIS,
        )

        report = await orchestrator.run_export([EntityType.DEVICES, EntityType.ANALYSIS])

        assert report.aborted
        assert [r.entity_type for r in report.results] == [EntityType.DEVICES]
        assert target.items["analysis"] == {}
        assert report.finished_at is not None


# ============================================
# Run Export Tests
# ============================================


class TestRunExport:
    @pytest.mark.asyncio
    async def test_run_buttons_follow_dashboards(self, config, source, target):
        source_dash = source.tagged("dashboards", "main", label="Main")
        target_dash = target.tagged("dashboards", "main", label="Main")
        source.run = {
            "name": "Source app",
            "url": "src.run.example",
            "anonymous_token": "anon-src",
            "sidebar_buttons": [
                {"type": "dashboard", "value": source_dash},
                {"type": "link", "value": "https://docs.example"},
            ],
            "signin_buttons": [{"label": "Guest", "url": "https://src.run.example/auth?t=anon-src"}],
            "email_templates": {"welcome": {"subject": "Hi"}},
            "custom_fields": [{"name": "Company"}],
        }
        target.run = {
            "name": "Target app",
            "url": "tgt.run.example",
            "anonymous_token": "anon-tgt",
            "email_templates": {"reset": {"subject": "Reset"}},
        }

        report = await SyncOrchestrator(config, target, source=source).run_export([EntityType.RUN])

        assert report.get(EntityType.RUN).updated == 1
        assert target.run["name"] == "Target app"
        assert target.run["sidebar_buttons"][0]["value"] == target_dash
        assert target.run["sidebar_buttons"][1]["value"] == "https://docs.example"
        assert target.run["signin_buttons"][0]["url"] == "https://tgt.run.example/auth?t=anon-tgt"
        assert set(target.run["email_templates"]) == {"welcome", "reset"}
        assert target.run["custom_fields"] == [{"name": "Company"}]


# ============================================
# Restore Tests
# ============================================


@pytest.fixture
def archive(make_archive):
    return make_archive(
        {
            "networks.json": [{"id": "net-old-1", "name": "LoRa"}],
            "connectors.json": [{"id": "con-old-1", "name": "Decoder"}],
            "devices.json": [
                {
                    "id": "dev-old-1",
                    "name": "Sensor",
                    "network": "net-old-1",
                    "connector": "con-old-1",
                    "type": "immutable",
                    "created_at": "2024-01-01T00:00:00Z",
                }
            ],
            "analysis.json": [
                {
                    "id": "ana-old-1",
                    "name": "Processor",
                    "runtime": "python-3.11",
                    "variables": [{"key": "DEVICE", "value": "dev-old-1"}],
                }
            ],
            "analysis/ana-old-1.tar.gz": b"print('hello')",
            "dashboards.json": [
                {
                    "id": "dash-old-1",
                    "label": "Overview",
                    "arrangement": [{"widget_id": "wid-old-1", "x": 0}],
                    "widgets": [
                        {
                            "id": "wid-old-1",
                            "label": "Temperature",
                            "data": [{"origin": "dev-old-1", "qty": "10"}],
                        }
                    ],
                }
            ],
            "access_management.json": [
                {"id": "am-old-1", "name": "Viewers", "targets": [["device", "id", "dev-old-1"]]}
            ],
            "actions.json": [
                {"id": "act-old-1", "name": "Alert", "action": {"script": ["ana-old-1"]}}
            ],
            "dictionaries.json": [
                {
                    "id": "dict-old-1",
                    "slug": "MAIN",
                    "name": "Main",
                    "languages": [
                        {"code": "en-US", "active": True, "dictionary": {"HELLO": "Hello"}}
                    ],
                }
            ],
            "run_users.json": [
                {"id": "usr-old-1", "name": "Ann", "email": "ann@example.com", "password": "x"}
            ],
            "run.json": {
                "name": "App",
                "sidebar_buttons": [{"type": "dashboard", "value": "dash-old-1"}],
                "created_at": "2024-01-01T00:00:00Z",
            },
            "secrets.json": [{"id": "sec-old-1", "key": "API_KEY", "value": "s3cret", "tags": []}],
            "files/img/logo.png": b"\x89PNG",
            "profile.json": {
                "id": "prof-old",
                "name": "Restored",
                "logo_url": "https://cdn.example/logo.png",
                "resource_allocation": {"devices": 10},
            },
        }
    )


class TestRestore:
    @pytest.mark.asyncio
    async def test_full_restore(self, config, target, archive):
        orchestrator = SyncOrchestrator(config, target, archive=archive)

        report = await orchestrator.run_restore()

        assert report.exit_code == 0
        assert report.summary()["total_failed"] == 0
        identity = orchestrator.identity

        network_id = identity.get(EntityType.NETWORKS, "net-old-1")
        connector_id = identity.get(EntityType.CONNECTORS, "con-old-1")
        device = only(target.items["devices"])
        assert device["network"] == network_id
        assert device["connector"] == connector_id
        assert "created_at" not in device
        assert identity.get(EntityType.DEVICES, "dev-old-1") == device["id"]

        analysis = only(target.items["analysis"])
        assert analysis["variables"][0]["value"] == device["id"]
        assert target.scripts[analysis["id"]]["language"] == "python"
        assert base64.b64decode(target.scripts[analysis["id"]]["content"]) == b"print('hello')"

        dashboard = only(target.items["dashboards"])
        widget = only(target.widgets[dashboard["id"]])
        assert widget["data"] == [{"origin": device["id"], "qty": 10}]
        assert dashboard["arrangement"] == [{"widget_id": widget["id"], "x": 0}]

        assert only(target.items["access"])["targets"] == [["device", "id", device["id"]]]
        assert only(target.items["actions"])["action"] == {"script": [analysis["id"]]}

        dictionary = only(target.items["dictionaries"])
        assert dictionary["languages"] == [{"code": "en-US", "active": True}]
        assert target.languages[dictionary["id"]]["en-US"] == {"HELLO": "Hello"}

        user = only(target.items["run_users"])
        assert user["email"] == "ann@example.com"
        assert user["password"] != "x"

        assert target.run["sidebar_buttons"] == [{"type": "dashboard", "value": dashboard["id"]}]
        assert "created_at" not in target.run

        assert only(target.items["secrets"])["value"] == "s3cret"
        assert target.uploaded_files == [
            {"filename": "/img/logo.png", "file": base64.b64encode(b"\x89PNG").decode(), "public": False}
        ]
        assert target.profile_edits == [
            (
                "tgt-profile",
                {
                    "info": {"name": "Restored", "logo_url": "https://cdn.example/logo.png"},
                    "allocation": {"devices": 10},
                },
            )
        ]

    @pytest.mark.asyncio
    async def test_restore_matches_existing_by_natural_key(self, config, target, archive):
        existing = target.add("secrets", {"key": "API_KEY", "value": "old", "tags": []})

        report = await SyncOrchestrator(config, target, archive=archive).run_restore(
            [EntityType.SECRETS]
        )

        assert report.get(EntityType.SECRETS).updated == 1
        assert target.items["secrets"][existing]["value"] == "s3cret"
        assert len(target.items["secrets"]) == 1

    @pytest.mark.asyncio
    async def test_restore_requires_archive(self, config, target):
        with pytest.raises(ConfigurationError):
            await SyncOrchestrator(config, target).run_restore()
