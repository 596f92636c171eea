# src/stageflow/core/pipeline/context.py
"""
Contexto de execução compartilhado de uma run do pipeline.

Este módulo define o `RunContext`, a estrutura canônica que carrega o
estado explícito de uma run entre Engine, Stage Scheduler e Job Runner,
e a `ArtifactBag`, o armazenamento de artefatos com escopo de run.

Princípios fundamentais:
    - Isolamento por execução (cada run possui seu próprio contexto)
    - Ausência de estado global compartilhado
    - Jobs concorrentes acessam o contexto apenas sob `lock`

Invariantes:
    - Logs sempre incluem `run_id` e `job`
    - Warnings são agrupados por job
    - Um job publica artefatos no máximo uma vez por run
    - Artefatos publicados nunca são revertidos

Limites explícitos:
    - Não executa jobs
    - Não persiste o Manifest automaticamente
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from stageflow.core.definition.triggers import TriggerRef
from stageflow.core.exceptions import ArtifactNotFound
from stageflow.core.fs import copy_paths, missing_paths, remove_tree, stable_dirname

from .types import JobExecution, StageResult


class ArtifactBag:
    """
    Armazenamento de artefatos de uma run.

    Cada publicação tira um snapshot dos caminhos declarados a partir do
    diretório de trabalho do job para `<root>/<job>/`. Jobs dependentes leem
    exatamente o conjunto publicado, materializado no seu próprio diretório
    de trabalho antes dos comandos. Uma publicação que falha no meio da
    cópia não deixa snapshot parcial.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._published: Dict[str, Tuple[str, ...]] = {}
        self._lock = threading.Lock()

    def snapshot_dir(self, job: str) -> Path:
        return self.root / stable_dirname(job)

    def publish(self, job: str, paths: Iterable[str], *, source_dir: Path) -> Tuple[str, ...]:
        paths = tuple(paths)
        with self._lock:
            if job in self._published:
                raise ValueError(f"Job '{job}' already published its artifacts")

            missing = missing_paths(paths, root=source_dir)
            if missing:
                raise ArtifactNotFound(
                    message=f"Artefatos declarados por '{job}' não existem: {', '.join(missing)}",
                    details={"job": job, "missing": missing},
                )

            target = self.snapshot_dir(job)
            target.mkdir(parents=True, exist_ok=True)
            try:
                copy_paths(paths, src_root=Path(source_dir), dst_root=target)
            except OSError:
                remove_tree(target)
                raise
            self._published[job] = paths
            return paths

    def has(self, job: str) -> bool:
        with self._lock:
            return job in self._published

    def read(self, job: str) -> Tuple[str, ...]:
        with self._lock:
            if job not in self._published:
                raise KeyError(job)
            return self._published[job]

    def materialize(self, job: str, dest_dir: Path) -> List[str]:
        """Copia o snapshot publicado por `job` para `dest_dir`."""
        paths = self.read(job)
        return copy_paths(paths, src_root=self.snapshot_dir(job), dst_root=Path(dest_dir))

    def to_dict(self) -> Dict[str, List[str]]:
        with self._lock:
            return {job: list(paths) for job, paths in sorted(self._published.items())}


@dataclass
class RunContext:
    """
    Contexto de execução de uma run.

    O RunContext consolida:
        - identidade da run (`run_id`, `created_at`, `trigger_ref`)
        - diretório do projeto (`workdir`, somente leitura para jobs) e
          diretório da run (`run_dir`, com logs, artefatos e o diretório de
          trabalho isolado de cada job)
        - configuração efetiva e variáveis resolvidas
        - JobExecutions e StageResults
        - ArtifactBag, Event Log estruturado, warnings e o Manifest

    Todas as mutações feitas por jobs concorrentes ocorrem sob `lock`.
    """

    run_id: str
    created_at: datetime
    trigger_ref: TriggerRef
    workdir: Path
    run_dir: Path
    config: Dict[str, Any] = field(default_factory=dict)
    variables: Dict[str, str] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)
    manifest: Optional[Any] = None

    executions: Dict[str, JobExecution] = field(default_factory=dict, init=False)
    stages: List[StageResult] = field(default_factory=list, init=False)
    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)
    artifacts: ArtifactBag = field(init=False, repr=False)
    lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)

    def __post_init__(self) -> None:
        self.workdir = Path(self.workdir)
        self.run_dir = Path(self.run_dir)
        self.artifacts = ArtifactBag(self.run_dir / "artifacts")

    @property
    def logs_dir(self) -> Path:
        return self.run_dir / "logs"

    @property
    def jobs_dir(self) -> Path:
        return self.run_dir / "jobs"

    def job_workdir(self, job: str) -> Path:
        """Diretório de trabalho isolado de `job` nesta run."""
        return self.jobs_dir / stable_dirname(job)

    # -----------------------------
    # Executions
    # -----------------------------
    def register(self, execution: JobExecution) -> JobExecution:
        with self.lock:
            if execution.job in self.executions:
                raise ValueError(f"Job '{execution.job}' already has an execution in this run")
            self.executions[execution.job] = execution
            return execution

    def execution(self, job: str) -> JobExecution:
        with self.lock:
            return self.executions[job]

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, job: Optional[str], level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "job": job,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        with self.lock:
            self.events.append(event)

    def add_warning(self, *, job: str, message: str) -> None:
        with self.lock:
            self.warnings.setdefault(job, []).append(message)
        self.log(job=job, level="warning", message=message)
