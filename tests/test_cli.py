# ==============================================================================
# Tests for CLI Commands
# ==============================================================================
"""
Tests for the visitguard CLI commands against an in-memory engine.

The engine factory used by the commands is replaced with one that returns a
shared in-memory engine, so state written by one invocation is visible to
the next.
"""

import json

import pytest
import redis
from typer.testing import CliRunner

from visitguard.app import app
from visitguard.base.signals import StaticSignalProvider
from visitguard.cli.ingest import read_payloads, summarize
from visitguard.cli.status import collect_status
from visitguard.core.ingestion import IngestResult
from visitguard.core.models import SignalBundle
from visitguard.engine import build_engine
from visitguard.utils.config import EngineSettings, FingerprintSettings, Settings

runner = CliRunner()


@pytest.fixture()
def cli_provider():
    """Every request id scores 80 unless registered otherwise."""
    return StaticSignalProvider(default=SignalBundle(suspect_score=80))


@pytest.fixture()
def cli_engine(memory_stores, cli_provider, monkeypatch):
    engine = build_engine(stores=memory_stores, provider=cli_provider)
    monkeypatch.setattr("visitguard.cli.shared.build_engine", lambda: engine)
    return engine


@pytest.fixture()
def payload_file(tmp_path, make_payload):
    lines = [
        json.dumps(make_payload(path="/")),
        json.dumps(make_payload(path="/cart", session_key="req-2")),
        "",
        "{not json",
        json.dumps(make_payload(visitor_id="visitor-2", session_key="req-3")),
    ]
    path = tmp_path / "visits.jsonl"
    path.write_text("\n".join(lines) + "\n")
    return path


def _json(result):
    return json.loads(result.stdout)


# ==============================================================================
# ingest
# ==============================================================================


class TestIngest:
    def test_read_payloads_keeps_positions(self, payload_file):
        items = read_payloads(payload_file)
        assert len(items) == 4
        assert isinstance(items[2], IngestResult)
        assert "line 4" in items[2].error

    def test_summarize(self):
        results = [
            IngestResult(success=True, visit_id="a", is_new_session=True, alert_id="alert-a"),
            IngestResult(success=True, visit_id="b", is_new_session=False),
            IngestResult(success=False, error="bad"),
        ]
        assert summarize(results) == {
            "total": 3,
            "succeeded": 2,
            "failed": 1,
            "new_sessions": 1,
            "alerts": 1,
        }

    def test_ingest_json(self, cli_engine, payload_file):
        result = runner.invoke(app, ["ingest", str(payload_file), "--workers", "2", "--json"])
        assert result.exit_code == 0
        data = _json(result)
        assert data["summary"]["total"] == 4
        assert data["summary"]["succeeded"] == 3
        assert data["summary"]["alerts"] == 3
        assert [r["success"] for r in data["results"]] == [True, True, False, True]
        assert len(cli_engine.stores.visitors.list_for_store("shop-1")) == 2

    def test_ingest_formatted(self, cli_engine, payload_file):
        result = runner.invoke(app, ["ingest", str(payload_file)])
        assert result.exit_code == 0
        assert "INGEST" in result.stdout
        assert "invalid JSON" in result.stdout

    def test_all_failed_exits_nonzero(self, cli_engine, tmp_path):
        path = tmp_path / "bad.jsonl"
        path.write_text('{"page": "/"}\n[1, 2]\n')
        result = runner.invoke(app, ["ingest", str(path), "--json"])
        assert result.exit_code == 1
        assert _json(result)["summary"]["failed"] == 2

    def test_missing_file(self, cli_engine, tmp_path):
        result = runner.invoke(app, ["ingest", str(tmp_path / "nope.jsonl")])
        assert result.exit_code != 0


# ==============================================================================
# Dashboard views
# ==============================================================================


class TestDashboard:
    @pytest.fixture(autouse=True)
    def ingested(self, cli_engine, payload_file):
        runner.invoke(app, ["ingest", str(payload_file), "--json"])

    def test_dashboard_json(self):
        result = runner.invoke(app, ["dashboard", "shop-1", "--json"])
        assert result.exit_code == 0
        data = _json(result)
        assert data["total_visitors"] == 2
        assert data["new_alerts"] == 3
        assert data["critical_threats"] == 2

    def test_dashboard_formatted(self):
        result = runner.invoke(app, ["dashboard", "shop-1"])
        assert result.exit_code == 0
        assert "DASHBOARD shop-1" in result.stdout
        assert "Top Threats" in result.stdout

    def test_visitors_list(self):
        result = runner.invoke(app, ["visitors", "list", "shop-1", "--json"])
        assert result.exit_code == 0
        assert sorted(p["visitor_id"] for p in _json(result)) == ["visitor-1", "visitor-2"]

    def test_visitors_list_paging(self):
        result = runner.invoke(app, ["visitors", "list", "shop-1", "-n", "1", "--json"])
        assert len(_json(result)) == 1

    def test_visitor_show(self):
        result = runner.invoke(app, ["visitors", "show", "shop-1", "visitor-1", "--json"])
        assert result.exit_code == 0
        data = _json(result)
        assert data["profile"]["session_count"] == 2
        assert sorted(v["path"] for v in data["visits"]) == ["/", "/cart"]

    def test_unknown_visitor_exits_nonzero(self):
        result = runner.invoke(app, ["visitors", "show", "shop-1", "ghost"])
        assert result.exit_code == 1

    def test_activity(self):
        result = runner.invoke(app, ["activity", "shop-1", "--limit", "2", "--json"])
        assert result.exit_code == 0
        assert len(_json(result)) == 2


# ==============================================================================
# Alerts
# ==============================================================================


class TestAlerts:
    @pytest.fixture()
    def alert_id(self, cli_engine, make_payload):
        result = cli_engine.pipeline.ingest(make_payload())
        return result.alert_id

    def test_list(self, alert_id):
        result = runner.invoke(app, ["alerts", "list", "shop-1", "--json"])
        assert result.exit_code == 0
        assert [a["alert_id"] for a in _json(result)] == [alert_id]

    def test_update_and_filter(self, alert_id):
        result = runner.invoke(app, ["alerts", "update", alert_id, "reviewed", "--json"])
        assert result.exit_code == 0
        assert _json(result)["status"] == "reviewed"

        result = runner.invoke(app, ["alerts", "list", "shop-1", "--status", "new", "--json"])
        assert _json(result) == []

    def test_forbidden_transition(self, alert_id):
        runner.invoke(app, ["alerts", "update", alert_id, "dismissed"])
        result = runner.invoke(app, ["alerts", "update", alert_id, "reviewed", "--json"])
        assert result.exit_code == 1
        assert "error" in _json(result)

    def test_unknown_alert(self, cli_engine):
        result = runner.invoke(app, ["alerts", "update", "alert-missing", "reviewed"])
        assert result.exit_code == 1

    def test_invalid_status_value(self, alert_id):
        result = runner.invoke(app, ["alerts", "update", alert_id, "escalated"])
        assert result.exit_code != 0


# ==============================================================================
# data reset
# ==============================================================================


class TestDataReset:
    def test_reset_with_yes(self, cli_engine, make_payload):
        cli_engine.pipeline.ingest(make_payload())
        result = runner.invoke(app, ["data", "reset", "-y"])
        assert result.exit_code == 0
        assert "Deleted" in result.stdout
        assert cli_engine.stores.visitors.list_for_store("shop-1") == []

    def test_reset_aborted(self, cli_engine, make_payload):
        cli_engine.pipeline.ingest(make_payload())
        result = runner.invoke(app, ["data", "reset"], input="n\n")
        assert result.exit_code != 0
        assert len(cli_engine.stores.visitors.list_for_store("shop-1")) == 1


# ==============================================================================
# status
# ==============================================================================


class TestStatus:
    def test_memory_backend(self):
        settings = Settings(
            engine=EngineSettings(store_backend="memory"),
            fingerprint=FingerprintSettings(secret_api_key=None),
        )
        status = collect_status(settings)
        assert status["backend"] == "memory"
        assert status["valkey"]["status"] == "not_used"
        assert status["provider"]["name"] == "none"

    def test_valkey_unreachable(self, monkeypatch):
        def fail(url):
            raise redis.exceptions.ConnectionError("refused")

        monkeypatch.setattr("visitguard.cli.status._valkey_stats_with_retry", fail)
        settings = Settings(
            engine=EngineSettings(store_backend="valkey"),
            fingerprint=FingerprintSettings(secret_api_key="sk-test", region="ap"),
        )
        status = collect_status(settings)
        assert status["valkey"]["status"] == "unreachable"
        assert status["provider"]["configured"] is True
        assert status["provider"]["api_base"] == "https://ap.api.fpjs.io"
