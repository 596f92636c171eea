# src/stageflow/core/engine/planner.py
"""
Planejador de execução do pipeline.

Este módulo é responsável por validar a estrutura estática da definição
do pipeline e produzir, para cada stage, uma ordem topológica
determinística dos jobs declarados.

O planner opera exclusivamente em nível estrutural, analisando:
    - stages declarados e a associação job → stage
    - dependências declaradas entre jobs
    - formação de ciclos
    - caminhos de artefato/cache e chaves de cache

Princípios fundamentais:
    - O grafo de dependências deve formar um DAG válido
    - Um job só pode depender de jobs do mesmo stage ou de stages anteriores
    - A ordenação é determinística para a mesma entrada
    - Validação estrutural ocorre antes de qualquer execução

Decisões arquiteturais:
    - Utiliza ordenação topológica determinística (Kahn modificado)
    - Empates são resolvidos por ordem lexicográfica do nome do job
    - Erros estruturais são `DefinitionError` e nunca chegam ao runtime

Invariantes:
    - Nenhum job aparece antes de suas dependências do mesmo stage
    - Todos os jobs aparecem exatamente uma vez no plano
    - A mesma definição produz sempre o mesmo plano

Limites explícitos:
    - Não executa jobs
    - Não avalia Trigger Gates (decisão por run, no Stage Scheduler)
    - Não interage com RunContext nem Manifest
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath, PureWindowsPath
from typing import Dict, Iterable, List, Set, Tuple

from stageflow.core.definition.types import JobDefinition, PipelineDefinition
from stageflow.core.exceptions import (
    CycleDetectedError,
    DuplicateJobError,
    ForwardDependencyError,
    InvalidDefinitionError,
    InvalidPathError,
    UnknownDependencyError,
    UnknownStageError,
)


@dataclass(frozen=True)
class ExecutionPlan:
    """
    Plano de execução validado.

    Campos:
        - stages: stages na ordem declarada
        - order: para cada stage, os jobs em ordem topológica determinística
    """

    stages: Tuple[str, ...]
    order: Dict[str, Tuple[JobDefinition, ...]]

    def jobs_for(self, stage: str) -> List[JobDefinition]:
        return list(self.order.get(stage, ()))

    def job_names(self) -> List[str]:
        return [job.name for stage in self.stages for job in self.order.get(stage, ())]


def _check_relative_path(value: str, *, job: str, field: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise InvalidPathError(
            message=f"Job '{job}': {field} contém caminho vazio",
            details={"job": job, "field": field},
        )
    posix = PurePosixPath(value)
    if posix.is_absolute() or PureWindowsPath(value).is_absolute():
        raise InvalidPathError(
            message=f"Job '{job}': {field} deve ser relativo ao diretório do projeto: {value}",
            details={"job": job, "field": field, "path": value},
        )
    if ".." in posix.parts:
        raise InvalidPathError(
            message=f"Job '{job}': {field} escapa do diretório do projeto: {value}",
            details={"job": job, "field": field, "path": value},
            hint="Declare caminhos dentro do diretório do projeto, sem '..'.",
        )


def _check_stages(stages: Tuple[str, ...]) -> None:
    if not stages:
        raise UnknownStageError(message="A definição deve declarar ao menos um stage")
    seen: Set[str] = set()
    for stage in stages:
        if not isinstance(stage, str) or not stage.strip():
            raise UnknownStageError(message="Nome de stage deve ser string não vazia")
        if stage in seen:
            raise UnknownStageError(
                message=f"Stage duplicado: {stage}",
                details={"stage": stage},
            )
        seen.add(stage)


def _check_job_fields(job: JobDefinition) -> None:
    if not job.script or any(not isinstance(c, str) or not c.strip() for c in job.script):
        raise InvalidPathError(
            message=f"Job '{job.name}' deve declarar ao menos um comando não vazio",
            details={"job": job.name, "field": "script"},
        )
    for path in job.artifacts:
        _check_relative_path(path, job=job.name, field="artifacts.paths")
    if job.cache is not None:
        if not isinstance(job.cache.key, str) or not job.cache.key.strip():
            raise InvalidPathError(
                message=f"Job '{job.name}': cache.key vazio",
                details={"job": job.name, "field": "cache.key"},
            )
        if not job.cache.paths:
            raise InvalidPathError(
                message=f"Job '{job.name}': cache.paths vazio",
                details={"job": job.name, "field": "cache.paths"},
            )
        for path in job.cache.paths:
            _check_relative_path(path, job=job.name, field="cache.paths")


def _detect_cycle(by_name: Dict[str, JobDefinition]) -> None:
    incoming: Dict[str, int] = {name: 0 for name in by_name}
    outgoing: Dict[str, Set[str]] = {name: set() for name in by_name}
    for name, job in by_name.items():
        deps = set(job.dependencies)
        incoming[name] = len(deps)
        for dep in deps:
            outgoing[dep].add(name)

    ready = sorted(n for n, c in incoming.items() if c == 0)
    visited = 0
    while ready:
        name = ready.pop(0)
        visited += 1
        for child in sorted(outgoing[name]):
            incoming[child] -= 1
            if incoming[child] == 0:
                ready.append(child)
                ready.sort()

    if visited != len(by_name):
        involved = sorted(n for n, c in incoming.items() if c > 0)
        raise CycleDetectedError(
            message="Ciclo detectado no grafo de dependências de jobs",
            details={"jobs": involved},
        )


def _toposort(jobs: Iterable[JobDefinition]) -> List[JobDefinition]:
    """Kahn determinístico restrito às arestas internas ao conjunto."""
    by_name = {job.name: job for job in jobs}
    incoming: Dict[str, int] = {name: 0 for name in by_name}
    outgoing: Dict[str, Set[str]] = {name: set() for name in by_name}

    for name, job in by_name.items():
        local = {d for d in job.dependencies if d in by_name}
        incoming[name] = len(local)
        for dep in local:
            outgoing[dep].add(name)

    ready: List[str] = sorted(n for n, c in incoming.items() if c == 0)
    order: List[str] = []
    while ready:
        name = ready.pop(0)  # smallest lexicographic
        order.append(name)
        for child in sorted(outgoing[name]):
            incoming[child] -= 1
            if incoming[child] == 0:
                ready.append(child)
                ready.sort()

    return [by_name[n] for n in order]


def validate_definition(definition: PipelineDefinition) -> ExecutionPlan:
    """
    Valida a definição e produz o plano de execução por stage.

    Ordem das validações:
        1. stages não vazios e únicos
        2. nomes de job únicos
        3. stage de cada job declarado
        4. dependências existentes
        5. scripts, caminhos e chaves de cache
        6. ausência de dependências para stages posteriores
        7. ausência de ciclos (auto-dependência incluída)

    Raises:
        DefinitionError: Subclasse específica da primeira violação encontrada.
    """
    if not isinstance(definition, PipelineDefinition):
        raise InvalidDefinitionError(
            message="validate_definition espera uma PipelineDefinition",
            details={"received": type(definition).__name__},
        )

    stages = tuple(definition.stages)
    _check_stages(stages)
    stage_index = {stage: i for i, stage in enumerate(stages)}

    by_name: Dict[str, JobDefinition] = {}
    for job in definition.jobs:
        if job.name in by_name:
            raise DuplicateJobError(
                message=f"Duplicate job name: {job.name}",
                details={"job": job.name},
            )
        by_name[job.name] = job

    for job in by_name.values():
        if job.stage not in stage_index:
            raise UnknownStageError(
                message=f"Job '{job.name}' pertence a stage não declarado '{job.stage}'",
                details={"job": job.name, "stage": job.stage, "stages": list(stages)},
                hint="Declare o stage em `stages:` ou corrija o campo `stage` do job.",
            )

    for job in by_name.values():
        for dep in job.dependencies:
            if dep not in by_name:
                raise UnknownDependencyError(
                    message=f"Job '{job.name}' depende de job inexistente '{dep}'",
                    details={"job": job.name, "dependency": dep},
                )

    for job in by_name.values():
        _check_job_fields(job)

    for job in by_name.values():
        for dep in job.dependencies:
            if stage_index[by_name[dep].stage] > stage_index[job.stage]:
                raise ForwardDependencyError(
                    message=(
                        f"Job '{job.name}' (stage '{job.stage}') depende de "
                        f"'{dep}' de um stage posterior ('{by_name[dep].stage}')"
                    ),
                    details={"job": job.name, "dependency": dep},
                )

    _detect_cycle(by_name)

    order = {
        stage: tuple(_toposort(definition.jobs_in_stage(stage)))
        for stage in stages
    }
    return ExecutionPlan(stages=stages, order=order)
