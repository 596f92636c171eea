# tests/report/test_job_table.py
"""
Testes da tabela de jobs (pandas.DataFrame) de uma run.
"""

import pandas as pd
import pytest

try:
    from stageflow.core.errors import StageflowErrorPayload
    from stageflow.core.pipeline.types import JobExecution
    from stageflow.report.job_table import COLUMNS, job_table
except Exception as e:  # noqa: BLE001
    job_table = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing job table. Implement:\n"
            "- src/stageflow/report/job_table.py (job_table)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_one_row_per_execution_in_order():
    """
    Uma linha por JobExecution, na ordem recebida; exit code ausente
    (job pulado) permanece nulo, sem conversão para float.
    """
    _require_imports()
    build = JobExecution(job="build", stage="build")
    build.mark_running()
    build.exit_code = 0
    build.mark_succeeded()

    qemu = JobExecution(job="test:qemu", stage="test")
    qemu.mark_running()
    qemu.mark_failed(error=StageflowErrorPayload(type="COMMAND_FAILURE", message="x", details={}), exit_code=2)

    deploy = JobExecution(job="deploy:docker", stage="deploy")
    deploy.mark_skipped(reason="trigger")

    df = job_table([build, qemu, deploy])

    assert list(df.columns) == COLUMNS
    assert df["job"].tolist() == ["build", "test:qemu", "deploy:docker"]
    assert df["status"].tolist() == ["succeeded", "failed", "skipped"]
    assert str(df["exit_code"].dtype) == "Int64"
    assert df["exit_code"].iloc[0] == 0
    assert df["exit_code"].iloc[1] == 2
    assert pd.isna(df["exit_code"].iloc[2])
    assert df["reason"].iloc[2] == "trigger"


def test_empty_table_keeps_columns():
    _require_imports()
    df = job_table([])
    assert df.empty
    assert list(df.columns) == COLUMNS
