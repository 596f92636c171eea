# src/stageflow/core/pipeline/__init__.py
"""
# Pipeline Core — Stageflow

Este pacote define as estruturas de execução de uma run do pipeline.

## Componentes

- **types**
  - `JobStatus`, `StageStatus`, `PipelineStatus`: estados canônicos
  - `JobExecution`: registro mutável e monotônico da execução de um job
  - `StageResult`: resultado imutável de um stage

- **context**
  - `RunContext`: estado com escopo de run (logs, warnings, execuções)
  - `ArtifactBag`: artefatos publicados pelos jobs da run

## Invariantes

- Cada job possui no máximo uma `JobExecution` por run
- Estado compartilhado é sempre explícito e protegido por lock
"""

from .context import ArtifactBag, RunContext
from .types import (
    SKIP_REASON_DEPENDENCY,
    SKIP_REASON_TRIGGER,
    JobExecution,
    JobStatus,
    PipelineStatus,
    StageResult,
    StageStatus,
    stage_status_from,
)

__all__ = [
    "ArtifactBag",
    "RunContext",
    "JobExecution",
    "JobStatus",
    "PipelineStatus",
    "StageResult",
    "StageStatus",
    "SKIP_REASON_DEPENDENCY",
    "SKIP_REASON_TRIGGER",
    "stage_status_from",
]
