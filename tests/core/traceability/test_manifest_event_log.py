# tests/core/traceability/test_manifest_event_log.py
"""
Testes do Event Log do Manifest.

Os testes asseguram que:
- eventos são registrados apenas por chamadas explícitas
- a ordem do Event Log reflete a ordem das chamadas
- eventos podem ter escopo de job ou de run
- a API aceita tanto `StageflowManifest` quanto o dict serializado
"""

import pytest
from datetime import datetime, timezone

try:
    from stageflow.core.traceability.manifest import add_event, create_manifest
except Exception as e:
    add_event = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing manifest module. Implement:\n"
            "- src/stageflow/core/traceability/manifest.py (add_event)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def _manifest():
    return create_manifest(
        run_id="run-001",
        started_at=datetime(2026, 1, 16, tzinfo=timezone.utc),
        stageflow_version="0.1.0",
        definition_hash="h",
        trigger_ref={"name": "main", "kind": "branch"},
    )


def test_events_keep_call_order():
    _require_imports()
    m = _manifest()
    ts = datetime(2026, 1, 16, 0, 0, 1, tzinfo=timezone.utc)

    add_event(m, event_type="run_started", ts=ts, payload={"trigger_ref": {"name": "main"}})
    add_event(m, event_type="job_started", ts=ts, job="build")
    add_event(m, event_type="cache_saved", ts=ts, job="build", payload={"cache": {"key": "build"}})

    assert [e["event_type"] for e in m.events] == ["run_started", "job_started", "cache_saved"]
    assert "job" not in m.events[0]
    assert m.events[1] == {
        "event_type": "job_started",
        "timestamp": "2026-01-16T00:00:01+00:00",
        "job": "build",
    }
    assert m.events[2]["payload"] == {"cache": {"key": "build"}}


def test_add_event_on_dict_manifest_is_synced():
    """
    Um Manifest em forma de dict (ex.: recém-lido de JSON) é atualizado
    in-place.
    """
    _require_imports()
    data = _manifest().to_dict()

    add_event(data, event_type="run_started", ts=datetime(2026, 1, 16, tzinfo=timezone.utc))

    assert data["events"][0]["event_type"] == "run_started"
