"""
src/stageflow/report/job_table.py

Tabela de jobs de uma run como `pandas.DataFrame`.

Uma linha por JobExecution, na ordem recebida (ordem de registro na run),
com colunas estáveis para impressão na CLI e inspeção em notebooks.
"""

from __future__ import annotations

from typing import Iterable, List

import pandas as pd

from stageflow.core.pipeline.types import JobExecution


COLUMNS: List[str] = [
    "job",
    "stage",
    "status",
    "exit_code",
    "started_at",
    "finished_at",
    "duration_ms",
    "reason",
]


def job_table(executions: Iterable[JobExecution]) -> pd.DataFrame:
    rows = []
    for ex in executions:
        rows.append(
            {
                "job": ex.job,
                "stage": ex.stage,
                "status": ex.status.value,
                "exit_code": ex.exit_code,
                "started_at": ex.started_at,
                "finished_at": ex.finished_at,
                "duration_ms": ex.duration_ms,
                "reason": ex.reason,
            }
        )
    df = pd.DataFrame(rows, columns=COLUMNS)
    # exit_code ausente (job pulado) não deve virar float
    df["exit_code"] = df["exit_code"].astype("Int64")
    return df
