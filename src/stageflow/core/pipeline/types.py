# src/stageflow/core/pipeline/types.py
"""
Tipos canônicos de execução do Stageflow.

Este módulo define os enums e estruturas que padronizam a comunicação
entre Job Runner, Stage Scheduler, Engine e camadas de rastreabilidade.

Componentes principais:
    - JobStatus       → ciclo de vida de um job em uma run
    - StageStatus     → resultado de um stage
    - PipelineStatus  → resultado final da run
    - JobExecution    → registro mutável da execução de um job
    - StageResult     → resultado imutável de um stage

Invariantes:
    - Transições de JobStatus são monotônicas:
        pending → running → succeeded | failed
        pending → skipped
    - Um status terminal nunca é alterado
    - Os valores textuais dos enums são estáveis (usados no Manifest)

Limites explícitos:
    - Não executa jobs
    - Não registra eventos
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from stageflow.core.errors import StageflowErrorPayload


class JobStatus(str, Enum):
    """
    Estado de um job dentro de uma run.

    Valores:
        - PENDING: criado pelo Stage Scheduler, ainda não iniciado
        - RUNNING: resolução de ambiente e comandos em andamento
        - SUCCEEDED: todos os comandos retornaram 0 e os artefatos existem
        - FAILED: falha de ambiente, comando ou artefato
        - SKIPPED: rejeitado pelo Trigger Gate ou por dependência não satisfeita
    """

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.SKIPPED)


class StageStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELED = "canceled"


class PipelineStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    DEFINITION_ERROR = "definition_error"


SKIP_REASON_TRIGGER = "trigger"
SKIP_REASON_DEPENDENCY = "dependency"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class JobExecution:
    """
    Registro da execução de um job em uma run.

    Criado pelo Stage Scheduler com status `pending` e conduzido pelo Job
    Runner até um estado terminal. As transições são feitas apenas pelos
    métodos `mark_*`, que rejeitam qualquer alteração após o estado terminal.

    Campos:
        - job / stage: identificação do job
        - status: JobStatus atual
        - exit_code: código de saída do último comando executado
        - started_at / finished_at: timestamps UTC
        - reason: motivo de skip (`trigger` ou `dependency`)
        - error: payload canônico de erro (jobs `failed`)
        - cache_hit: None (sem cache declarado), True ou False
        - artifacts: caminhos publicados na ArtifactBag
    """

    job: str
    stage: str
    status: JobStatus = JobStatus.PENDING
    exit_code: Optional[int] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    reason: Optional[str] = None
    error: Optional[StageflowErrorPayload] = None
    cache_hit: Optional[bool] = None
    artifacts: Tuple[str, ...] = ()

    def _require(self, *allowed: JobStatus, target: JobStatus) -> None:
        if self.status not in allowed:
            raise ValueError(
                f"Invalid job transition for '{self.job}': "
                f"{self.status.value} -> {target.value}"
            )

    def mark_running(self) -> None:
        self._require(JobStatus.PENDING, target=JobStatus.RUNNING)
        self.status = JobStatus.RUNNING
        self.started_at = _now()

    def mark_succeeded(self, *, artifacts: Tuple[str, ...] = ()) -> None:
        self._require(JobStatus.RUNNING, target=JobStatus.SUCCEEDED)
        self.status = JobStatus.SUCCEEDED
        self.artifacts = tuple(artifacts)
        self.finished_at = _now()

    def mark_failed(
        self,
        *,
        error: StageflowErrorPayload,
        exit_code: Optional[int] = None,
    ) -> None:
        # falha de ambiente pode ocorrer antes do início dos comandos
        self._require(JobStatus.PENDING, JobStatus.RUNNING, target=JobStatus.FAILED)
        if self.started_at is None:
            self.started_at = _now()
        self.status = JobStatus.FAILED
        self.error = error
        if exit_code is not None:
            self.exit_code = exit_code
        self.finished_at = _now()

    def mark_skipped(self, *, reason: str) -> None:
        self._require(JobStatus.PENDING, target=JobStatus.SKIPPED)
        self.status = JobStatus.SKIPPED
        self.reason = reason
        self.finished_at = _now()

    @property
    def duration_ms(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return round((self.finished_at - self.started_at).total_seconds() * 1000.0, 3)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job": self.job,
            "stage": self.stage,
            "status": self.status.value,
            "exit_code": self.exit_code,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_ms": self.duration_ms,
            "reason": self.reason,
            "error": self.error.to_dict() if self.error is not None else None,
            "cache_hit": self.cache_hit,
            "artifacts": list(self.artifacts),
        }


@dataclass(frozen=True)
class StageResult:
    """Resultado imutável de um stage (jobs na ordem do plano)."""

    stage: str
    status: StageStatus
    jobs: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {"stage": self.stage, "status": self.status.value, "jobs": list(self.jobs)}


def stage_status_from(executions: List[JobExecution]) -> StageStatus:
    """Deriva o status de um stage a partir dos estados terminais dos seus jobs."""
    if any(e.status == JobStatus.FAILED for e in executions):
        return StageStatus.FAILED
    if any(e.status == JobStatus.SUCCEEDED for e in executions):
        return StageStatus.SUCCESS
    return StageStatus.SKIPPED
