# src/stageflow/core/engine/engine.py
"""
Engine (Pipeline Controller) do Stageflow.

Este módulo implementa a orquestração de uma run completa do pipeline:
validação estática da definição, execução sequencial dos stages na ordem
declarada e consolidação do resultado final.

Decisões arquiteturais:
    - Erros de definição encerram a run com `definition_error` antes de
      qualquer job ser executado
    - Após o primeiro stage com falha, os stages seguintes são registrados
      como `canceled` e nunca são agendados (seus jobs não recebem
      JobExecution)
    - O status da run é `success` apenas se nenhum job admitido falhou
    - Manifest e relatório são persistidos no diretório da run conforme
      a configuração

Invariantes:
    - Stages executam estritamente em sequência
    - O resultado reflete explicitamente o estado de cada stage e job
    - Nenhum retry automático

Limites explícitos:
    - Não executa comandos diretamente (Job Runner)
    - Não decide concorrência intra-stage (Stage Scheduler)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from stageflow import __version__
from stageflow.core.config.hashing import compute_config_hash
from stageflow.core.config.settings import Settings, load_settings
from stageflow.core.definition.triggers import TriggerRef
from stageflow.core.definition.types import PipelineDefinition
from stageflow.core.errors import StageflowErrorPayload, payload_from_exception, stage_failure
from stageflow.core.exceptions import DefinitionError
from stageflow.core.pipeline.context import RunContext
from stageflow.core.pipeline.types import (
    JobExecution,
    JobStatus,
    PipelineStatus,
    StageResult,
    StageStatus,
)
from stageflow.core.traceability.manifest import (
    StageflowManifest,
    add_event,
    create_manifest,
    run_finished,
    save_manifest,
    stage_finished,
)
from stageflow.persistence.cache_store import CacheStore

from .executors import Executor, build_executors
from .planner import validate_definition
from .runner import JobRunner
from .scheduler import StageScheduler


MANIFEST_FILE = "manifest.json"
REPORT_FILE = "report.md"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_run_id(ts: Optional[datetime] = None) -> str:
    ts = ts or _now()
    return f"{ts.strftime('%Y%m%dT%H%M%SZ')}-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class RunResult:
    """Resultado agregado e imutável de uma run do pipeline."""

    run_id: str
    status: PipelineStatus
    trigger_ref: TriggerRef
    stages: Tuple[StageResult, ...] = ()
    jobs: Dict[str, JobExecution] = field(default_factory=dict)
    artifacts: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    error: Optional[StageflowErrorPayload] = None
    run_dir: Optional[Path] = None
    warnings: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    manifest: Optional[StageflowManifest] = field(default=None, compare=False, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.status == PipelineStatus.SUCCESS

    def stage(self, name: str) -> StageResult:
        for result in self.stages:
            if result.stage == name:
                return result
        raise KeyError(name)

    def job_table(self):
        """Tabela (pandas.DataFrame) com uma linha por job executado ou pulado."""
        from stageflow.report.job_table import job_table

        return job_table(self.jobs.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "trigger_ref": self.trigger_ref.to_dict(),
            "stages": [s.to_dict() for s in self.stages],
            "jobs": {name: ex.to_dict() for name, ex in self.jobs.items()},
            "artifacts": {name: list(paths) for name, paths in self.artifacts.items()},
            "error": self.error.to_dict() if self.error is not None else None,
            "run_dir": str(self.run_dir) if self.run_dir is not None else None,
        }


class Engine:
    """Engine canônico do Stageflow (planner + scheduler + runner)."""

    def __init__(
        self,
        *,
        workdir: Union[str, Path],
        settings: Optional[Settings] = None,
        executors: Optional[Sequence[Executor]] = None,
        cache: Optional[CacheStore] = None,
    ):
        self.workdir = Path(workdir)
        self.settings = settings if settings is not None else load_settings()
        self.executors = list(executors) if executors is not None else build_executors(self.settings)
        self.cache = cache if cache is not None else CacheStore(
            cache_dir=self.settings.resolve_dir(self.settings.cache_dir, workdir=self.workdir)
        )

    def run_dir_for(self, run_id: str) -> Path:
        return self.settings.resolve_dir(self.settings.runs_dir, workdir=self.workdir) / run_id

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run(
        self,
        definition: PipelineDefinition,
        trigger_ref: Union[TriggerRef, str],
        *,
        run_id: Optional[str] = None,
    ) -> RunResult:
        """
        Executa uma run completa para a ref informada.

        Args:
            definition (PipelineDefinition): Definição carregada.
            trigger_ref (Union[TriggerRef, str]): Ref que disparou a run.
            run_id (Optional[str]): Identificador explícito da run.

        Returns:
            RunResult: Status final, stages, jobs, artefatos e erro da run.
        """
        ref = trigger_ref if isinstance(trigger_ref, TriggerRef) else TriggerRef.parse(trigger_ref)
        created_at = _now()
        run_id = run_id or new_run_id(created_at)
        run_dir = self.run_dir_for(run_id)
        run_dir.mkdir(parents=True, exist_ok=True)

        manifest = create_manifest(
            run_id=run_id,
            started_at=created_at,
            stageflow_version=__version__,
            definition_hash=self._definition_hash(definition),
            trigger_ref=ref.to_dict(),
            settings_hash=self.settings.config_hash,
        )
        ctx = RunContext(
            run_id=run_id,
            created_at=created_at,
            trigger_ref=ref,
            workdir=self.workdir,
            run_dir=run_dir,
            config={"max_parallel_jobs": self.settings.max_parallel_jobs},
            variables=dict(getattr(definition, "variables", {}) or {}),
            manifest=manifest,
        )
        add_event(manifest, event_type="run_started", ts=created_at, payload={"trigger_ref": ref.to_dict()})
        ctx.log(job=None, level="info", message="run started", trigger_ref=ref.name)

        try:
            plan = validate_definition(definition)
        except DefinitionError as exc:
            error = payload_from_exception(exc)
            ctx.log(job=None, level="error", message=error.message, error_type=error.type)
            return self._finalize(ctx, status=PipelineStatus.DEFINITION_ERROR, error=error)

        scheduler = StageScheduler(
            runner=JobRunner(
                cache=self.cache,
                executors=self.executors,
                default_image=definition.default_image,
            ),
            max_parallel_jobs=self.settings.max_parallel_jobs,
        )

        failed: Optional[StageResult] = None
        for stage in plan.stages:
            jobs = plan.jobs_for(stage)
            if failed is not None:
                result = StageResult(
                    stage=stage,
                    status=StageStatus.CANCELED,
                    jobs=tuple(j.name for j in jobs),
                )
                ctx.log(job=None, level="info", message="stage canceled", stage=stage)
            else:
                result = scheduler.run_stage(stage, jobs, ctx)
                if result.status == StageStatus.FAILED:
                    failed = result

            with ctx.lock:
                ctx.stages.append(result)
                stage_finished(manifest, stage=stage, status=result.status.value, jobs=list(result.jobs), ts=_now())

        if failed is None:
            return self._finalize(ctx, status=PipelineStatus.SUCCESS, error=None)

        error = stage_failure(
            stage=failed.stage,
            failed_jobs=[
                name for name in failed.jobs
                if ctx.executions[name].status == JobStatus.FAILED
            ],
            canceled_stages=[s.stage for s in ctx.stages if s.status == StageStatus.CANCELED],
        )
        return self._finalize(ctx, status=PipelineStatus.FAILED, error=error)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _definition_hash(self, definition: Any) -> Optional[str]:
        if not isinstance(definition, PipelineDefinition):
            return None
        return compute_config_hash(definition.to_dict())

    def _finalize(
        self,
        ctx: RunContext,
        *,
        status: PipelineStatus,
        error: Optional[StageflowErrorPayload],
    ) -> RunResult:
        manifest = ctx.manifest
        run_finished(
            manifest,
            status=status.value,
            ts=_now(),
            error=error.to_dict() if error is not None else None,
        )
        ctx.log(job=None, level="info", message="run finished", status=status.value)

        if self.settings.persist_manifest:
            save_manifest(manifest, ctx.run_dir / MANIFEST_FILE)
        if self.settings.write_report:
            from stageflow.report.report_md import generate_report_md

            (ctx.run_dir / REPORT_FILE).write_text(generate_report_md(manifest), encoding="utf-8")

        return RunResult(
            run_id=ctx.run_id,
            status=status,
            trigger_ref=ctx.trigger_ref,
            stages=tuple(ctx.stages),
            jobs=dict(ctx.executions),
            artifacts={job: tuple(paths) for job, paths in ctx.artifacts.to_dict().items()},
            error=error,
            run_dir=ctx.run_dir,
            warnings={job: tuple(msgs) for job, msgs in ctx.warnings.items()},
            manifest=manifest,
        )
