import asyncio
import json

import pytest
from typer.testing import CliRunner

import wonlink.cli as cli
import wonlink.persistence as persistence
from wonlink.cli import app
from wonlink.models import Capability, WorkflowRecord, WorkflowStatus
from wonlink.persistence import InMemoryWorkflowStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)
    monkeypatch.setattr(persistence, "_store_instance", None)
    monkeypatch.setenv("WONLINK_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("WONLINK_DATABASE_URL", f"sqlite://{tmp_path / 'wf.db'}")


def _setup_store() -> InMemoryWorkflowStore:
    store = InMemoryWorkflowStore()
    persistence._store_instance = store
    return store


def test_run_prints_response_and_persists():
    result = runner.invoke(
        app,
        [
            "run",
            "hwp convert 한글 file conversion",
            "--org",
            "acme",
            "--correlation-id",
            "corr-cli",
        ],
    )
    assert result.exit_code == 0, result.stdout
    response = json.loads(result.stdout)
    assert response["success"] is True
    assert response["capability"] == "hwp_converter"

    shown = runner.invoke(app, ["workflow", "show", "corr-cli"])
    assert shown.exit_code == 0, shown.stdout
    assert "completed" in shown.stdout
    assert "document_conversion" in shown.stdout


def test_workflow_list_and_stats():
    store = _setup_store()
    asyncio.run(
        store.upsert(
            WorkflowRecord(
                correlation_id="corr-a",
                organization_id="acme",
                user_query="q",
                current_capability=Capability.CHINA_SOURCE,
                status=WorkflowStatus.COMPLETED,
                estimated_cost=0.1,
            )
        )
    )

    listed = runner.invoke(app, ["workflow", "list", "--org", "acme"])
    assert listed.exit_code == 0, listed.stdout
    assert "corr-a" in listed.stdout
    assert "china_source" in listed.stdout

    empty = runner.invoke(app, ["workflow", "list", "--org", "nobody"])
    assert "No workflows found" in empty.stdout

    stats = runner.invoke(app, ["workflow", "stats", "--org", "acme"])
    assert stats.exit_code == 0, stats.stdout
    data = json.loads(stats.stdout)
    assert data["completed_count"] == 1
    assert data["capability_usage_counts"] == {"china_source": 1}


def test_workflow_show_missing():
    _setup_store()
    result = runner.invoke(app, ["workflow", "show", "missing-id"])
    assert result.exit_code == 1
    assert "Workflow not found" in result.stdout


def test_approve_missing_workflow():
    _setup_store()
    result = runner.invoke(app, ["approve", "missing-id"])
    assert result.exit_code == 1
    assert "Workflow not found" in result.stdout


def test_capability_list():
    result = runner.invoke(app, ["capability", "list"])
    assert result.exit_code == 0
    for capability in Capability:
        assert capability.value in result.stdout
    assert "bizplan_master\tBusiness Plan Master\t$0.150 [approval]" in result.stdout
