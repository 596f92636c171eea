# src/stageflow/core/traceability/manifest.py
"""
Manifest v1 — rastreabilidade de execuções no Stageflow.

Este módulo define a estrutura e as operações canônicas do Manifest,
o artefato central de rastreabilidade de uma run do pipeline.

O Manifest consolida, de forma determinística e auditável:
    - metadados da execução (run)
    - hashes semânticos de entradas (definição e configuração)
    - estado incremental de stages e jobs
    - Event Log ordenado de eventos explícitos

Princípios fundamentais:
    - Nenhum evento é emitido implicitamente
    - Toda mutação ocorre por chamadas explícitas da API
    - A ordem do Event Log reflete a ordem real de execução
    - O Manifest é serializável e reconstruível (round-trip)

Decisões arquiteturais:
    - UTC é o timezone canônico para todos os timestamps
    - O formato de persistência é JSON determinístico
    - O Manifest é independente de engine, executores e CLI

Limites explícitos:
    - Não executa pipeline
    - Não é thread-safe: chamadores concorrentes devem serializar o acesso
      (o Engine usa o lock do RunContext)
    - Não realiza migração de versões de schema
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union


def _ensure_tzaware_utc(dt: datetime) -> datetime:
    """Normaliza um timestamp para timezone-aware em UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _iso(dt: datetime) -> str:
    return _ensure_tzaware_utc(dt).isoformat()


def _ms_between(start: datetime, end: datetime) -> int:
    s = _ensure_tzaware_utc(start)
    e = _ensure_tzaware_utc(end)
    return max(0, int((e - s).total_seconds() * 1000))


@dataclass
class StageflowManifest:
    """
    Manifest v1 — registro de uma run do pipeline.

    Campos principais:
        - run: identidade, ref disparadora, timestamps e status final
        - inputs: hashes da definição e da configuração
        - stages: estado por stage, na ordem de registro
        - jobs: estado por job (status, exit code, cache, artefatos, erro)
        - events: Event Log ordenado

    Invariantes:
        - `events` é sempre uma lista ordenada
        - `jobs` é sempre um dicionário indexado pelo nome do job
    """

    run: Dict[str, Any]
    inputs: Dict[str, Any]
    stages: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    jobs: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run": dict(self.run),
            "inputs": dict(self.inputs),
            "stages": {k: dict(v) for k, v in self.stages.items()},
            "jobs": {k: dict(v) for k, v in self.jobs.items()},
            "events": [dict(e) for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StageflowManifest":
        return cls(
            run=dict(data.get("run", {})),
            inputs=dict(data.get("inputs", {})),
            stages={k: dict(v) for k, v in (data.get("stages", {}) or {}).items()},
            jobs={k: dict(v) for k, v in (data.get("jobs", {}) or {}).items()},
            events=[dict(e) for e in (data.get("events", []) or [])],
        )


def create_manifest(
    *,
    run_id: str,
    started_at: datetime,
    stageflow_version: str,
    definition_hash: str,
    trigger_ref: Dict[str, Any],
    settings_hash: Optional[str] = None,
) -> StageflowManifest:
    """
    Cria o Manifest inicial de uma run.

    ⚠️ Importante: esta função **não emite eventos implicitamente**.
    O Event Log inicia vazio e só é preenchido por chamadas explícitas.

    Args:
        run_id (str): Identificador único da run.
        started_at (datetime): Timestamp de início da run.
        stageflow_version (str): Versão do Stageflow utilizada.
        definition_hash (str): Hash semântico da definição resolvida.
        trigger_ref (Dict[str, Any]): Ref disparadora (`name`, `kind`).
        settings_hash (Optional[str]): Hash da configuração efetiva.

    Returns:
        StageflowManifest: Manifest v1 inicializado.
    """
    started_at = _ensure_tzaware_utc(started_at)

    return StageflowManifest(
        run={
            "run_id": run_id,
            "started_at": _iso(started_at),
            "stageflow_version": stageflow_version,
            "trigger_ref": dict(trigger_ref),
        },
        inputs={
            "definition_hash": definition_hash,
            "settings_hash": settings_hash,
        },
        stages={},
        jobs={},
        events=[],
    )


def _get_manifest(
    manifest: Union[StageflowManifest, Dict[str, Any]],
) -> Tuple[StageflowManifest, bool]:
    if isinstance(manifest, StageflowManifest):
        return manifest, False
    return StageflowManifest.from_dict(manifest), True


def _sync(original: Union[StageflowManifest, Dict[str, Any]], m: StageflowManifest, is_dict: bool) -> None:
    if is_dict:
        original.clear()
        original.update(m.to_dict())


def add_event(
    manifest: Union[StageflowManifest, Dict[str, Any]],
    *,
    event_type: str,
    ts: datetime,
    job: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Adiciona um evento explícito ao Event Log do Manifest.

    O evento pode estar associado a um job ou ter escopo de run
    (ex.: `run_started`, `stage_finished`).
    """
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    ev: Dict[str, Any] = {"event_type": event_type, "timestamp": _iso(ts)}
    if job is not None:
        ev["job"] = job
    if payload is not None:
        ev["payload"] = payload

    m.events.append(ev)
    _sync(manifest, m, is_dict)


def job_started(
    manifest: Union[StageflowManifest, Dict[str, Any]],
    *,
    job: str,
    stage: str,
    ts: datetime,
    environment: Optional[Dict[str, Any]] = None,
) -> None:
    """Marca um job como `running` e registra o evento `job_started`."""
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    m.jobs.setdefault(job, {})
    m.jobs[job].update(
        {
            "job": job,
            "stage": stage,
            "status": "running",
            "started_at": _iso(ts),
            "environment": environment,
        }
    )

    add_event(m, event_type="job_started", ts=ts, job=job, payload={"stage": stage})
    _sync(manifest, m, is_dict)


def job_finished(
    manifest: Union[StageflowManifest, Dict[str, Any]],
    *,
    job: str,
    ts: datetime,
    result: Dict[str, Any],
) -> None:
    """
    Registra o estado terminal (succeeded/failed) de um job.

    `result` segue o formato de `JobExecution.to_dict()`, opcionalmente
    enriquecido com `cache_key` e `warnings`.
    """
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    j = m.jobs.setdefault(job, {"job": job})
    started_iso = j.get("started_at") or result.get("started_at")
    started_dt = datetime.fromisoformat(started_iso) if started_iso else ts

    status = result.get("status", "succeeded")
    j.update(
        {
            "stage": result.get("stage", j.get("stage")),
            "status": status,
            "finished_at": _iso(ts),
            "duration_ms": _ms_between(started_dt, ts),
            "exit_code": result.get("exit_code"),
            "cache_key": result.get("cache_key"),
            "cache_hit": result.get("cache_hit"),
            "artifacts": list(result.get("artifacts", []) or []),
            "warnings": list(result.get("warnings", []) or []),
            "error": result.get("error"),
        }
    )

    add_event(
        m,
        event_type="job_finished",
        ts=ts,
        job=job,
        payload={"status": status, "exit_code": j.get("exit_code"), "duration_ms": j["duration_ms"]},
    )
    _sync(manifest, m, is_dict)


def job_skipped(
    manifest: Union[StageflowManifest, Dict[str, Any]],
    *,
    job: str,
    stage: str,
    ts: datetime,
    reason: str,
) -> None:
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    m.jobs[job] = {
        "job": job,
        "stage": stage,
        "status": "skipped",
        "reason": reason,
        "finished_at": _iso(ts),
    }

    add_event(m, event_type="job_skipped", ts=ts, job=job, payload={"reason": reason})
    _sync(manifest, m, is_dict)


def stage_finished(
    manifest: Union[StageflowManifest, Dict[str, Any]],
    *,
    stage: str,
    status: str,
    jobs: List[str],
    ts: datetime,
) -> None:
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    m.stages[stage] = {"stage": stage, "status": status, "jobs": list(jobs), "finished_at": _iso(ts)}

    add_event(m, event_type="stage_finished", ts=ts, payload={"stage": stage, "status": status})
    _sync(manifest, m, is_dict)


def run_finished(
    manifest: Union[StageflowManifest, Dict[str, Any]],
    *,
    status: str,
    ts: datetime,
    error: Optional[Dict[str, Any]] = None,
) -> None:
    """Registra o status final da run e o evento `run_finished`."""
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    started_iso = m.run.get("started_at")
    started_dt = datetime.fromisoformat(started_iso) if started_iso else ts
    m.run.update(
        {
            "status": status,
            "finished_at": _iso(ts),
            "duration_ms": _ms_between(started_dt, ts),
            "error": error,
        }
    )

    add_event(m, event_type="run_finished", ts=ts, payload={"status": status})
    _sync(manifest, m, is_dict)


def save_manifest(manifest: Union[StageflowManifest, Dict[str, Any]], path: Path) -> None:
    """
    Persiste um Manifest em disco no formato JSON determinístico.

    Raises:
        OSError: Em caso de falha ao criar diretórios ou escrever o arquivo.
        TypeError: Se o conteúdo do Manifest não for serializável em JSON.
    """
    data = manifest.to_dict() if isinstance(manifest, StageflowManifest) else manifest
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")


def load_manifest(path: Path) -> StageflowManifest:
    """Carrega um Manifest persistido (round-trip com `save_manifest`)."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return StageflowManifest.from_dict(data)
