# tests/core/traceability/test_manifest_create.py
"""
Testes de criação do Manifest (traceability).

Os testes asseguram que:
- o Manifest é criado com identificação da run, ref disparadora e hashes
- coleções de stages, jobs e events existem desde a criação
- nenhum evento é registrado implicitamente

Invariantes:
    - `run.run_id`, `run.started_at` e `run.stageflow_version` sempre presentes
    - `inputs.definition_hash` sempre presente
    - timestamps são normalizados para UTC
"""

import pytest
from datetime import datetime, timedelta, timezone

try:
    from stageflow.core.traceability.manifest import StageflowManifest, create_manifest
except Exception as e:
    create_manifest = None
    StageflowManifest = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    """
    Garante que o módulo de Manifest esteja disponível para os testes.

    Falha imediatamente quando `core.traceability.manifest` ou seus
    símbolos canônicos não podem ser importados.
    """
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing manifest module. Implement:\n"
            "- src/stageflow/core/traceability/manifest.py (create_manifest, StageflowManifest)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_create_manifest_minimal_fields():
    _require_imports()
    started = datetime(2026, 1, 16, 12, 0, 0, tzinfo=timezone.utc)

    m = create_manifest(
        run_id="run-001",
        started_at=started,
        stageflow_version="0.1.0",
        definition_hash="a" * 64,
        trigger_ref={"name": "v1.0.0", "kind": "tag"},
        settings_hash="b" * 64,
    )

    assert isinstance(m, StageflowManifest)
    assert m.run == {
        "run_id": "run-001",
        "started_at": "2026-01-16T12:00:00+00:00",
        "stageflow_version": "0.1.0",
        "trigger_ref": {"name": "v1.0.0", "kind": "tag"},
    }
    assert m.inputs == {"definition_hash": "a" * 64, "settings_hash": "b" * 64}
    assert m.stages == {}
    assert m.jobs == {}
    assert m.events == []


def test_create_manifest_normalizes_timezones():
    """
    Timestamps naive são tratados como UTC; timestamps com outro fuso são
    convertidos para UTC.
    """
    _require_imports()
    naive = create_manifest(
        run_id="r",
        started_at=datetime(2026, 1, 16, 12, 0, 0),
        stageflow_version="0.1.0",
        definition_hash="h",
        trigger_ref={"name": "main", "kind": "branch"},
    )
    assert naive.run["started_at"] == "2026-01-16T12:00:00+00:00"

    brt = timezone(timedelta(hours=-3))
    shifted = create_manifest(
        run_id="r",
        started_at=datetime(2026, 1, 16, 9, 0, 0, tzinfo=brt),
        stageflow_version="0.1.0",
        definition_hash="h",
        trigger_ref={"name": "main", "kind": "branch"},
    )
    assert shifted.run["started_at"] == "2026-01-16T12:00:00+00:00"
    assert shifted.inputs["settings_hash"] is None
