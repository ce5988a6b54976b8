"""Tests for run results, report rendering and log payload helpers.

Tests cover:
    - Result tallies and exit codes
    - Summary and failure tables
    - JSON report file
    - Progress display when disabled
    - Payload redaction and truncation
"""

import json

from rich.console import Console

from profile_bridge.reporting import (
    SyncProgressDisplay,
    format_duration,
    render_failures_table,
    render_summary_table,
    write_json_report,
)
from profile_bridge.resources import EntityType
from profile_bridge.sync.result import SyncAction, SyncOutcome, SyncReport, SyncResult
from profile_bridge.utils.logging import sanitize_payload, truncate_payload


def make_report():
    report = SyncReport(mode="export")

    devices = SyncResult(EntityType.DEVICES)
    devices.record_outcome(SyncOutcome(SyncAction.CREATED, "d1"))
    devices.record_outcome(SyncOutcome(SyncAction.UPDATED, "d2"))
    devices.record_failure("Broken sensor", RuntimeError("rejected"))
    report.add(devices)

    report.add(SyncResult(EntityType.ANALYSIS, identity_only=True))
    report.add(SyncResult(EntityType.DASHBOARDS, phase_error="listing failed"))
    report.finish()
    return report


def render(table):
    console = Console(width=200, record=True)
    console.print(table)
    return console.export_text()


# ============================================
# Result Tests
# ============================================


class TestSyncReport:
    def test_item_failures_keep_exit_code_zero(self):
        report = SyncReport(mode="restore")
        result = SyncResult(EntityType.SECRETS)
        result.record_failure("API_KEY", "rejected")
        report.add(result)

        assert report.exit_code == 0

    def test_phase_failure_sets_exit_code(self):
        report = make_report()

        assert report.exit_code == 1
        assert [r.entity_type for r in report.failed_phases] == [EntityType.DASHBOARDS]

    def test_summary_excludes_identity_passes_from_totals(self):
        summary = make_report().summary()

        assert summary["total_created"] == 1
        assert summary["total_updated"] == 1
        assert summary["total_failed"] == 1
        assert summary["failed_phases"] == ["dashboards"]
        assert len(summary["results"]) == 3

    def test_get_skips_identity_results(self):
        report = make_report()

        assert report.get(EntityType.ANALYSIS) is None
        assert report.get(EntityType.DEVICES).processed == 3


# ============================================
# Rendering Tests
# ============================================


class TestRendering:
    def test_format_duration(self):
        assert format_duration(None) == "N/A"
        assert format_duration(4.3) == "4.3s"
        assert format_duration(125) == "2m 5s"

    def test_summary_table(self):
        text = render(render_summary_table(make_report()))

        assert "Devices" in text
        assert "phase failed: listing failed" in text
        assert "Analysis scripts" not in text

    def test_failures_table(self):
        text = render(render_failures_table(make_report()))

        assert "Broken sensor" in text
        assert "rejected" in text

    def test_no_failures(self):
        assert render_failures_table(SyncReport(mode="export")) is None

    def test_json_report(self, tmp_path):
        path = write_json_report(make_report(), tmp_path / "reports")

        document = json.loads(path.read_text())
        assert path.name.startswith("export_report_")
        assert document["exit_code"] == 1
        assert document["results"][0]["failures"] == [{"name": "Broken sensor", "error": "rejected"}]


class TestDisabledProgress:
    def test_calls_are_no_ops(self):
        display = SyncProgressDisplay(enabled=False)
        result = SyncResult(EntityType.DEVICES)

        with display:
            display.set_total_phases(2)
            display.start_phase(EntityType.DEVICES, 3)
            display.update_phase(EntityType.DEVICES, result)
            display.complete_phase(EntityType.DEVICES, result)

        assert display.phase_states == {}


# ============================================
# Payload Helper Tests
# ============================================


class TestPayloadHelpers:
    def test_sanitize_redacts_sensitive_keys(self):
        payload = {"name": "dev", "token": "abc", "nested": [{"Password": "x", "value": 1}]}

        assert sanitize_payload(payload) == {
            "name": "dev",
            "token": "[REDACTED]",
            "nested": [{"Password": "[REDACTED]", "value": 1}],
        }

    def test_truncate(self):
        text = truncate_payload({"data": "x" * 500}, max_size=100)

        assert text.startswith("{")
        assert "TRUNCATED" in text
