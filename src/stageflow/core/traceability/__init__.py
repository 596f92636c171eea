# src/stageflow/core/traceability/__init__.py
"""
Pacote de rastreabilidade do Stageflow — Manifest v1.

API pública exposta:
    - StageflowManifest → estrutura canônica do Manifest
    - create_manifest   → criação explícita do Manifest
    - add_event         → registro explícito de eventos no Event Log
    - job_started       → marca início de execução de um job
    - job_finished      → registra o estado terminal de um job executado
    - job_skipped       → registra um job pulado (trigger ou dependência)
    - stage_finished    → registra o resultado de um stage
    - run_finished      → registra o status final da run
    - save_manifest     → persistência do Manifest em JSON
    - load_manifest     → restauração determinística do Manifest

Invariantes:
    - O Manifest inicia com `stages`, `jobs` e `events` vazios
    - Eventos nunca são reordenados automaticamente
"""

from .manifest import (
    StageflowManifest,
    create_manifest,
    add_event,
    job_started,
    job_finished,
    job_skipped,
    stage_finished,
    run_finished,
    save_manifest,
    load_manifest,
)

__all__ = [
    "StageflowManifest",
    "create_manifest",
    "add_event",
    "job_started",
    "job_finished",
    "job_skipped",
    "stage_finished",
    "run_finished",
    "save_manifest",
    "load_manifest",
]
