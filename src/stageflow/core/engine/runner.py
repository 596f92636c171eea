# src/stageflow/core/engine/runner.py
"""
Job Runner: ciclo de vida de um único job.

Fases, na ordem:
    1. resolução de ambiente (executor + imagem)
    2. diretório de trabalho isolado: cópia limpa do projeto em
       `<run_dir>/jobs/<job>/`
    3. restauração de cache (ausência não é erro; `cache_hit` registrado)
    4. materialização dos artefatos das dependências declaradas, depois do
       cache: artefatos frescos prevalecem sobre cópias antigas do cache
    5. execução dos comandos em ordem, fail-fast no primeiro exit code não zero
    6. em caso de sucesso: verificação dos artefatos declarados, publicação
       na ArtifactBag e, por último, gravação do cache (sobrescrita)

Decisões arquiteturais:
    - Um job só enxerga o projeto, o próprio cache e os artefatos das
      dependências declaradas; nada do que outro job escreve o alcança
    - Um job com falha não publica artefatos e não altera o cache
    - Falhas de I/O do cache viram warnings do job, nunca falhas
    - Exceções são convertidas em payloads canônicos (sem stack trace)
    - Sem retry em nenhuma fase

Limites explícitos:
    - Não avalia Trigger Gates nem dependências (Stage Scheduler)
    - Não decide o status do stage ou da run
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from stageflow.core.definition.types import JobDefinition
from stageflow.core.definition.variables import predefined_variables
from stageflow.core.errors import command_failure, payload_from_exception
from stageflow.core.exceptions import (
    ArtifactNotFound,
    CommandFailure,
    EnvironmentResolutionError,
)
from stageflow.core.fs import copy_workspace, missing_paths, slugify
from stageflow.core.pipeline.context import RunContext
from stageflow.core.pipeline.types import JobExecution
from stageflow.core.traceability.manifest import add_event, job_finished, job_started
from stageflow.persistence.cache_store import CacheStore

from .environment import ResolvedEnvironment, resolve_environment
from .executors import Executor


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobRunner:
    """Executa jobs admitidos em um ambiente resolvido."""

    def __init__(
        self,
        *,
        cache: CacheStore,
        executors: Sequence[Executor],
        default_image: Optional[str] = None,
    ):
        self.cache = cache
        self.executors = list(executors)
        self.default_image = default_image

    def log_path(self, job: JobDefinition, ctx: RunContext) -> Path:
        return ctx.logs_dir / f"{slugify(job.name)}.log"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def execute(self, job: JobDefinition, ctx: RunContext) -> JobExecution:
        """
        Conduz o job até um estado terminal (`succeeded` ou `failed`).

        A JobExecution pendente é criada pelo Stage Scheduler; quando o
        runner é usado isoladamente, ela é registrada aqui.
        """
        with ctx.lock:
            execution = ctx.executions.get(job.name)
            if execution is None:
                execution = ctx.register(JobExecution(job=job.name, stage=job.stage))
            execution.mark_running()
            if ctx.manifest is not None:
                job_started(ctx.manifest, job=job.name, stage=job.stage, ts=execution.started_at)
        ctx.log(job=job.name, level="info", message="job started", stage=job.stage)

        try:
            env = self._resolve(job, ctx)
            workspace = self._prepare_workspace(job, ctx)
            self._restore_cache(job, ctx, execution, workspace)
            self._materialize_dependencies(job, ctx, workspace)
            self._run_commands(job, ctx, env, execution, workspace)
            self._verify_artifacts(job, workspace)
            published = ctx.artifacts.publish(job.name, job.artifacts, source_dir=workspace)
            self._save_cache(job, ctx, workspace)
        except Exception as exc:
            payload = payload_from_exception(exc, job=job.name)
            exit_code = exc.exit_code if isinstance(exc, CommandFailure) else None
            with ctx.lock:
                execution.mark_failed(error=payload, exit_code=exit_code)
            ctx.log(
                job=job.name,
                level="error",
                message=payload.message,
                error_type=payload.type,
            )
        else:
            with ctx.lock:
                execution.mark_succeeded(artifacts=published)
            ctx.log(job=job.name, level="info", message="job succeeded")

        self._record_finished(job, ctx, execution)
        return execution

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    def _resolve(self, job: JobDefinition, ctx: RunContext) -> ResolvedEnvironment:
        env = resolve_environment(job, self.executors, default_image=self.default_image)
        ctx.log(job=job.name, level="info", message="environment resolved", **env.describe())
        if ctx.manifest is not None:
            with ctx.lock:
                add_event(
                    ctx.manifest,
                    event_type="environment_resolved",
                    ts=_now(),
                    job=job.name,
                    payload=env.describe(),
                )
        return env

    def _prepare_workspace(self, job: JobDefinition, ctx: RunContext) -> Path:
        workspace = ctx.job_workdir(job.name)
        try:
            copy_workspace(
                ctx.workdir,
                workspace,
                exclude=(ctx.run_dir.parent, self.cache.cache_dir),
            )
        except OSError as exc:
            raise EnvironmentResolutionError(
                message=f"Diretório de trabalho de '{job.name}' não pôde ser preparado: {exc}",
                details={"job": job.name, "workspace": str(workspace)},
            ) from exc
        ctx.log(job=job.name, level="info", message="workspace prepared", workspace=str(workspace))
        return workspace

    def _materialize_dependencies(self, job: JobDefinition, ctx: RunContext, workspace: Path) -> None:
        for dep in job.dependencies:
            if not ctx.artifacts.has(dep):
                continue
            copied = ctx.artifacts.materialize(dep, workspace)
            ctx.log(
                job=job.name,
                level="info",
                message="artifacts materialized",
                dependency=dep,
                paths=copied,
            )

    def _restore_cache(
        self,
        job: JobDefinition,
        ctx: RunContext,
        execution: JobExecution,
        workspace: Path,
    ) -> None:
        if job.cache is None:
            return
        try:
            entry = self.cache.restore(job.cache.key, dest_dir=workspace)
        except OSError as exc:
            execution.cache_hit = False
            ctx.add_warning(job=job.name, message=f"cache restore failed for key '{job.cache.key}': {exc}")
            return
        execution.cache_hit = entry is not None
        ctx.log(
            job=job.name,
            level="info",
            message="cache hit" if entry is not None else "cache miss",
            cache_key=job.cache.key,
        )

    def _run_commands(
        self,
        job: JobDefinition,
        ctx: RunContext,
        env: ResolvedEnvironment,
        execution: JobExecution,
        workspace: Path,
    ) -> None:
        command_env = {
            **ctx.variables,
            **predefined_variables(
                run_id=ctx.run_id,
                job_name=job.name,
                stage=job.stage,
                trigger_ref=ctx.trigger_ref,
                project_dir=workspace,
            ),
        }
        log_path = self.log_path(job, ctx)

        for index, command in enumerate(job.script):
            try:
                exit_code = env.executor.run(
                    command,
                    image=env.image,
                    workdir=workspace,
                    env=command_env,
                    log_path=log_path,
                )
            except OSError as exc:
                raise EnvironmentResolutionError(
                    message=f"Executor '{env.executor.name}' não conseguiu iniciar o comando: {exc}",
                    details={"job": job.name, "executor": env.executor.name, "command_index": index},
                ) from exc

            execution.exit_code = exit_code
            ctx.log(
                job=job.name,
                level="info" if exit_code == 0 else "error",
                message="command finished",
                command_index=index,
                exit_code=exit_code,
            )
            if exit_code != 0:
                payload = command_failure(
                    job=job.name,
                    command=command,
                    index=index,
                    exit_code=exit_code,
                )
                raise CommandFailure(
                    message=payload.message,
                    details={**payload.details, "log": str(log_path)},
                    hint=payload.hint,
                )

    def _verify_artifacts(self, job: JobDefinition, workspace: Path) -> None:
        missing = missing_paths(job.artifacts, root=workspace)
        if missing:
            raise ArtifactNotFound(
                message=f"Artefatos declarados por '{job.name}' não foram produzidos: {', '.join(missing)}",
                details={"job": job.name, "missing": missing},
                hint="Verifique se o script gera os caminhos declarados em `artifacts.paths`.",
            )

    def _save_cache(self, job: JobDefinition, ctx: RunContext, workspace: Path) -> None:
        if job.cache is None:
            return
        for rel in missing_paths(job.cache.paths, root=workspace):
            ctx.add_warning(job=job.name, message=f"cache path not found, skipped: {rel}")
        try:
            entry = self.cache.save(
                job.cache.key,
                job.cache.paths,
                source_dir=workspace,
                run_id=ctx.run_id,
            )
        except OSError as exc:
            ctx.add_warning(job=job.name, message=f"cache save failed for key '{job.cache.key}': {exc}")
            return
        ctx.log(job=job.name, level="info", message="cache saved", cache_key=entry.key)
        if ctx.manifest is not None:
            with ctx.lock:
                add_event(
                    ctx.manifest,
                    event_type="cache_saved",
                    ts=_now(),
                    job=job.name,
                    payload={"cache": entry.to_dict()},
                )

    def _record_finished(self, job: JobDefinition, ctx: RunContext, execution: JobExecution) -> None:
        if ctx.manifest is None:
            return
        with ctx.lock:
            result = execution.to_dict()
            result["cache_key"] = job.cache.key if job.cache is not None else None
            result["warnings"] = list(ctx.warnings.get(job.name, []))
            job_finished(ctx.manifest, job=job.name, ts=execution.finished_at or _now(), result=result)
