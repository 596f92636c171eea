# src/stageflow/core/definition/types.py
"""
Tipos canônicos da definição de pipeline do Stageflow.

Este módulo define o modelo estático do pipeline, produzido pelo loader a
partir do documento declarativo (após substituição de variáveis) e
consumido pelo planner, pelo Stage Scheduler e pelo Job Runner.

Componentes principais:
    - CacheSpec          → chave + caminhos de cache de um job
    - JobDefinition      → unidade de trabalho declarada
    - PipelineDefinition → stages ordenados, jobs e variáveis

Invariantes:
    - Definições são imutáveis após o load
    - A ordem de `stages` é a ordem de execução
    - `to_dict()` é serializável em JSON e determinístico (usado no hash)

Limites explícitos:
    - Não valida o grafo de dependências (ver `core.engine.planner`)
    - Não executa jobs
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .triggers import ALWAYS, TriggerGate


DEFAULT_STAGES: Tuple[str, ...] = ("prepare", "build", "test", "deploy")
DEFAULT_JOB_STAGE = "test"
DEFAULT_CACHE_KEY = "default"


@dataclass(frozen=True)
class CacheSpec:
    """
    Descritor de cache de um job.

    A chave é declarada pelo usuário e tem escopo de pipeline (não de run):
    entradas persistem e são reutilizadas entre runs. O cache é consultivo,
    nunca uma dependência de correção.
    """

    key: str
    paths: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "paths": list(self.paths)}


@dataclass(frozen=True)
class JobDefinition:
    """
    Job declarado no pipeline.

    Campos:
        - name: identificador único do job
        - stage: stage dono do job
        - script: comandos executados em ordem (fail-fast)
        - image: imagem de container (None → executor de host)
        - tags: tags de seleção de executor (igualdade simples)
        - artifacts: caminhos publicados na ArtifactBag da run em caso de sucesso
        - cache: descritor de cache (opcional)
        - dependencies: jobs cujos artefatos este job pode ler; também ordenam a execução
        - trigger: predicado de admissão por run (padrão: sempre)
    """

    name: str
    stage: str
    script: Tuple[str, ...]
    image: Optional[str] = None
    tags: Tuple[str, ...] = ()
    artifacts: Tuple[str, ...] = ()
    cache: Optional[CacheSpec] = None
    dependencies: Tuple[str, ...] = ()
    trigger: TriggerGate = field(default=ALWAYS, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "stage": self.stage,
            "script": list(self.script),
            "image": self.image,
            "tags": list(self.tags),
            "artifacts": list(self.artifacts),
            "cache": self.cache.to_dict() if self.cache is not None else None,
            "dependencies": list(self.dependencies),
            "trigger": self.trigger.describe(),
        }


@dataclass(frozen=True)
class PipelineDefinition:
    """Definição estática e resolvida de um pipeline."""

    stages: Tuple[str, ...] = DEFAULT_STAGES
    jobs: Tuple[JobDefinition, ...] = ()
    variables: Dict[str, str] = field(default_factory=dict, compare=False)
    default_image: Optional[str] = None

    def job(self, name: str) -> JobDefinition:
        for job in self.jobs:
            if job.name == name:
                return job
        raise KeyError(name)

    def has_job(self, name: str) -> bool:
        return any(job.name == name for job in self.jobs)

    def jobs_in_stage(self, stage: str) -> List[JobDefinition]:
        return [job for job in self.jobs if job.stage == stage]

    def stage_index(self, stage: str) -> int:
        return self.stages.index(stage)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stages": list(self.stages),
            "variables": dict(sorted(self.variables.items())),
            "default_image": self.default_image,
            "jobs": [job.to_dict() for job in self.jobs],
        }
