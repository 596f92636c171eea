# tests/core/pipeline/test_job_execution.py
"""
Testes das transições de estado de `JobExecution` e do status de stage.

Invariantes:
    - pending → running → succeeded | failed
    - pending → skipped
    - pending → failed (falha antes dos comandos)
    - Um estado terminal nunca é alterado
"""

import pytest

try:
    from stageflow.core.errors import StageflowErrorPayload
    from stageflow.core.pipeline.types import (
        JobExecution,
        JobStatus,
        StageResult,
        StageStatus,
        stage_status_from,
    )
except Exception as e:  # noqa: BLE001
    JobExecution = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing pipeline types. Implement:\n"
            "- src/stageflow/core/pipeline/types.py (JobExecution, JobStatus, StageStatus)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def _error():
    return StageflowErrorPayload(type="COMMAND_FAILURE", message="boom", details={})


def test_happy_path_transitions():
    _require_imports()
    ex = JobExecution(job="build", stage="build")
    assert ex.status == JobStatus.PENDING
    assert not ex.status.is_terminal

    ex.mark_running()
    assert ex.status == JobStatus.RUNNING
    assert ex.started_at is not None

    ex.mark_succeeded(artifacts=("target/kernel",))
    assert ex.status == JobStatus.SUCCEEDED
    assert ex.status.is_terminal
    assert ex.artifacts == ("target/kernel",)
    assert ex.duration_ms is not None and ex.duration_ms >= 0


def test_failure_before_running_sets_started_at():
    _require_imports()
    ex = JobExecution(job="build", stage="build")
    ex.mark_failed(error=_error())
    assert ex.status == JobStatus.FAILED
    assert ex.started_at is not None
    assert ex.exit_code is None


def test_skip_records_reason():
    _require_imports()
    ex = JobExecution(job="deploy:docker", stage="deploy")
    ex.mark_skipped(reason="trigger")
    assert ex.status == JobStatus.SKIPPED
    assert ex.reason == "trigger"
    assert ex.started_at is None
    assert ex.duration_ms is None


@pytest.mark.parametrize(
    "prepare, attempt",
    [
        (lambda ex: None, lambda ex: ex.mark_succeeded()),
        (lambda ex: ex.mark_running(), lambda ex: ex.mark_skipped(reason="trigger")),
        (lambda ex: ex.mark_running(), lambda ex: ex.mark_running()),
        (lambda ex: ex.mark_skipped(reason="trigger"), lambda ex: ex.mark_running()),
        (lambda ex: (ex.mark_running(), ex.mark_succeeded()), lambda ex: ex.mark_failed(error=_error())),
        (lambda ex: ex.mark_failed(error=_error()), lambda ex: ex.mark_skipped(reason="dependency")),
    ],
)
def test_invalid_transitions_raise(prepare, attempt):
    """
    Transições fora do ciclo de vida (inclusive qualquer alteração após
    um estado terminal) são rejeitadas.
    """
    _require_imports()
    ex = JobExecution(job="j", stage="test")
    prepare(ex)
    before = ex.status
    with pytest.raises(ValueError):
        attempt(ex)
    assert ex.status == before


def test_to_dict_is_serializable():
    _require_imports()
    ex = JobExecution(job="test:qemu", stage="test")
    ex.mark_running()
    ex.mark_failed(error=_error(), exit_code=2)

    data = ex.to_dict()

    assert data["status"] == "failed"
    assert data["exit_code"] == 2
    assert data["error"]["type"] == "COMMAND_FAILURE"
    assert isinstance(data["started_at"], str)


def test_stage_status_derivation():
    _require_imports()

    def _ex(status):
        ex = JobExecution(job=status.value, stage="test")
        ex.status = status
        return ex

    assert stage_status_from([_ex(JobStatus.SUCCEEDED), _ex(JobStatus.FAILED)]) == StageStatus.FAILED
    assert stage_status_from([_ex(JobStatus.SUCCEEDED), _ex(JobStatus.SKIPPED)]) == StageStatus.SUCCESS
    assert stage_status_from([_ex(JobStatus.SKIPPED)]) == StageStatus.SKIPPED
    assert stage_status_from([]) == StageStatus.SKIPPED


def test_stage_result_to_dict():
    _require_imports()
    result = StageResult(stage="test", status=StageStatus.CANCELED, jobs=("a", "b"))
    assert result.to_dict() == {"stage": "test", "status": "canceled", "jobs": ["a", "b"]}
