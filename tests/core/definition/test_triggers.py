# tests/core/definition/test_triggers.py
"""
Testes do Trigger Gate.

O Trigger Gate decide, uma vez por job por run, se o job é admitido para
a ref que disparou a run. É a única primitiva de execução condicional.

Os testes asseguram que:
- jobs sem cláusulas são sempre admitidos
- `only: [tags]` admite apenas refs classificadas como tag
- `except` nega a admissão
- predicados compostos são serializáveis via `describe()`
"""

import pytest

try:
    from stageflow.core.definition.triggers import (
        ALWAYS,
        AllOf,
        Not,
        RefKind,
        RefKindGate,
        RefNameGate,
        TriggerGate,
        TriggerRef,
        admits,
        gate_from_clauses,
    )
    from stageflow.core.definition.types import JobDefinition
except Exception as e:  # noqa: BLE001
    TriggerRef = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing triggers module. Implement:\n"
            "- src/stageflow/core/definition/triggers.py\n"
            f"Import error: {_IMPORT_ERR}"
        )


def _job(**kw):
    return JobDefinition(name="j", stage="deploy", script=("true",), **kw)


def test_default_gate_admits_everything():
    _require_imports()
    job = _job()
    assert job.trigger is ALWAYS
    assert admits(job, TriggerRef.branch("feature/x"))
    assert admits(job, TriggerRef.tag("v1.0.0"))


def test_only_tags_admits_tags_only():
    """
    Cenário de release: `deploy:docker` roda apenas em tags.
    """
    _require_imports()
    job = _job(trigger=gate_from_clauses(only=["tags"]))
    assert admits(job, TriggerRef.tag("v1.0.0"))
    assert not admits(job, TriggerRef.branch("master"))


def test_only_names_and_except():
    _require_imports()
    gate = gate_from_clauses(only=["master", "tags"], except_=["v0.0.1"])

    assert gate.admits(TriggerRef.branch("master"))
    assert gate.admits(TriggerRef.tag("v1.0.0"))
    assert not gate.admits(TriggerRef.tag("v0.0.1"))
    assert not gate.admits(TriggerRef.branch("develop"))
    assert isinstance(gate, AllOf)


def test_except_branches():
    _require_imports()
    gate = gate_from_clauses(except_=["branches"])
    assert gate == Not(RefKindGate(RefKind.BRANCH))
    assert gate.admits(TriggerRef.tag("v2"))
    assert not gate.admits(TriggerRef.branch("main"))


def test_empty_clauses_are_always():
    _require_imports()
    assert gate_from_clauses(only=[], except_=None) is ALWAYS


def test_gates_describe_is_serializable():
    _require_imports()
    gate = gate_from_clauses(only=["tags", "master"])
    assert gate.describe() == {"any_of": ["tags", ["master"]]}
    assert RefNameGate(frozenset({"b", "a"})).describe() == ["a", "b"]
    assert isinstance(gate, TriggerGate)


@pytest.mark.parametrize(
    "raw, name, kind",
    [
        ("refs/tags/v1.2.3", "v1.2.3", RefKind.TAG),
        ("refs/heads/master", "master", RefKind.BRANCH),
        ("feature/x", "feature/x", RefKind.BRANCH),
    ],
)
def test_trigger_ref_parse(raw, name, kind):
    _require_imports()
    ref = TriggerRef.parse(raw)
    assert ref.name == name
    assert ref.kind == kind
    assert ref.to_dict() == {"name": name, "kind": kind.value}


def test_trigger_ref_parse_rejects_empty():
    _require_imports()
    with pytest.raises(ValueError):
        TriggerRef.parse("  ")


def test_admits_accepts_string_refs():
    _require_imports()
    job = _job(trigger=gate_from_clauses(only=["tags"]))
    assert admits(job, "refs/tags/v1")
    assert not admits(job, "master")
