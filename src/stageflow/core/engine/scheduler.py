# src/stageflow/core/engine/scheduler.py
"""
Stage Scheduler: execução concorrente dos jobs de um stage.

Responsabilidades:
    - criar uma JobExecution (`pending`) por job do stage
    - avaliar o Trigger Gate de cada job uma única vez (rejeitado → `skipped`)
    - iniciar um job somente quando todas as suas dependências estão `succeeded`
    - pular transitivamente jobs cujas dependências falharam ou foram puladas
    - derivar o status do stage a partir dos estados terminais dos jobs

Decisões arquiteturais:
    - Concorrência via `ThreadPoolExecutor` limitada por `max_parallel_jobs`
    - Jobs já em execução sempre chegam ao seu próprio estado terminal;
      a falha de um job nunca interrompe seus irmãos
    - Jobs prontos são submetidos na ordem topológica do plano

Invariantes:
    - Um job com dependências nunca inicia antes de todas terem sucesso
    - Um job pulado por dependência nunca é executado
    - Todo job admitido termina em `succeeded`, `failed` ou `skipped`
"""

from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Dict, List, Sequence

from stageflow.core.definition.triggers import admits
from stageflow.core.definition.types import JobDefinition
from stageflow.core.errors import engine_execution_error
from stageflow.core.pipeline.context import RunContext
from stageflow.core.pipeline.types import (
    SKIP_REASON_DEPENDENCY,
    SKIP_REASON_TRIGGER,
    JobExecution,
    JobStatus,
    StageResult,
    StageStatus,
    stage_status_from,
)
from stageflow.core.traceability.manifest import job_finished, job_skipped

from .runner import JobRunner


READY = "ready"
BLOCKED = "blocked"
WAIT = "wait"


class StageScheduler:
    def __init__(self, *, runner: JobRunner, max_parallel_jobs: int = 4):
        if max_parallel_jobs < 1:
            raise ValueError("max_parallel_jobs must be >= 1")
        self.runner = runner
        self.max_parallel_jobs = max_parallel_jobs

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _skip(self, job: JobDefinition, ctx: RunContext, *, reason: str) -> None:
        with ctx.lock:
            execution = ctx.executions[job.name]
            execution.mark_skipped(reason=reason)
            if ctx.manifest is not None:
                job_skipped(
                    ctx.manifest,
                    job=job.name,
                    stage=job.stage,
                    ts=execution.finished_at,
                    reason=reason,
                )
        ctx.log(job=job.name, level="info", message="job skipped", reason=reason)

    def _verdict(self, job: JobDefinition, ctx: RunContext) -> str:
        with ctx.lock:
            statuses = [
                ctx.executions[dep].status if dep in ctx.executions else None
                for dep in job.dependencies
            ]
        if any(s is None or s in (JobStatus.FAILED, JobStatus.SKIPPED) for s in statuses):
            return BLOCKED
        if all(s == JobStatus.SUCCEEDED for s in statuses):
            return READY
        return WAIT

    def _fail_unexpected(self, job: JobDefinition, ctx: RunContext, exc: BaseException) -> None:
        with ctx.lock:
            execution = ctx.executions[job.name]
            if execution.status.is_terminal:
                return
            execution.mark_failed(error=engine_execution_error(exc=exc, job=job.name))
            if ctx.manifest is not None:
                job_finished(
                    ctx.manifest,
                    job=job.name,
                    ts=execution.finished_at or datetime.now(timezone.utc),
                    result=execution.to_dict(),
                )
        ctx.log(job=job.name, level="error", message=str(exc) or exc.__class__.__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run_stage(self, stage: str, jobs: Sequence[JobDefinition], ctx: RunContext) -> StageResult:
        """
        Executa os jobs de `stage` até que todos atinjam um estado terminal.

        Args:
            stage (str): Nome do stage.
            jobs (Sequence[JobDefinition]): Jobs do stage em ordem topológica.
            ctx (RunContext): Contexto da run.

        Returns:
            StageResult: Status do stage e jobs na ordem do plano.
        """
        executions: List[JobExecution] = [
            ctx.register(JobExecution(job=job.name, stage=stage)) for job in jobs
        ]

        pending: List[JobDefinition] = []
        for job in jobs:
            if admits(job, ctx.trigger_ref):
                pending.append(job)
            else:
                self._skip(job, ctx, reason=SKIP_REASON_TRIGGER)

        if not pending:
            ctx.log(job=None, level="info", message="stage skipped", stage=stage)
            return StageResult(stage=stage, status=StageStatus.SKIPPED, jobs=tuple(j.name for j in jobs))

        running: Dict[Future, JobDefinition] = {}
        with ThreadPoolExecutor(
            max_workers=self.max_parallel_jobs,
            thread_name_prefix=f"stageflow-{stage}",
        ) as pool:
            while pending or running:
                changed = True
                while changed:
                    changed = False
                    for job in list(pending):
                        verdict = self._verdict(job, ctx)
                        if verdict == BLOCKED:
                            pending.remove(job)
                            self._skip(job, ctx, reason=SKIP_REASON_DEPENDENCY)
                            changed = True
                        elif verdict == READY:
                            pending.remove(job)
                            running[pool.submit(self.runner.execute, job, ctx)] = job

                if not running:
                    # só resta espera por dependências que nunca terminarão
                    for job in pending:
                        self._skip(job, ctx, reason=SKIP_REASON_DEPENDENCY)
                    pending = []
                    break

                done, _ = wait(list(running), return_when=FIRST_COMPLETED)
                for future in done:
                    job = running.pop(future)
                    exc = future.exception()
                    if exc is not None:
                        self._fail_unexpected(job, ctx, exc)

        status = stage_status_from(executions)
        ctx.log(job=None, level="info", message="stage finished", stage=stage, status=status.value)
        return StageResult(stage=stage, status=status, jobs=tuple(j.name for j in jobs))
