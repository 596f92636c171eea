# src/stageflow/core/engine/environment.py
"""
Resolução do ambiente de execução de um job.

Regras:
    - candidatos são os executores cujas tags contêm todas as tags do job
      (igualdade simples, sem padrões)
    - job com imagem → primeiro candidato com suporte a imagens
    - job sem imagem → primeiro executor de host; na ausência dele, um
      candidato com suporte a imagens usando a imagem padrão do pipeline
    - nenhum candidato, ou falha em `prepare` → `EnvironmentResolutionError`

Não há retry: uma falha de resolução é registrada como falha do job e
nenhum comando é executado.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from stageflow.core.definition.types import JobDefinition
from stageflow.core.exceptions import EnvironmentResolutionError

from .executors import Executor


@dataclass(frozen=True)
class ResolvedEnvironment:
    executor: Executor
    image: Optional[str] = None

    def describe(self) -> Dict[str, Any]:
        return {"executor": self.executor.name, "image": self.image}


def _candidates(job: JobDefinition, executors: Sequence[Executor]) -> List[Executor]:
    required = set(job.tags)
    return [ex for ex in executors if required.issubset(set(ex.tags))]


def resolve_environment(
    job: JobDefinition,
    executors: Sequence[Executor],
    *,
    default_image: Optional[str] = None,
) -> ResolvedEnvironment:
    """
    Escolhe e prepara o executor de um job.

    Raises:
        EnvironmentResolutionError: Sem executor compatível ou imagem indisponível.
    """
    candidates = _candidates(job, executors)
    if not candidates:
        raise EnvironmentResolutionError(
            message=f"Nenhum executor atende às tags do job '{job.name}'",
            details={
                "job": job.name,
                "tags": list(job.tags),
                "executors": {ex.name: list(ex.tags) for ex in executors},
            },
            hint="Declare um executor com essas tags na configuração ou ajuste `tags` do job.",
        )

    resolved: Optional[ResolvedEnvironment] = None
    if job.image is not None:
        for ex in candidates:
            if ex.supports_images:
                resolved = ResolvedEnvironment(executor=ex, image=job.image)
                break
    else:
        host = [ex for ex in candidates if not ex.supports_images]
        if host:
            resolved = ResolvedEnvironment(executor=host[0])
        elif default_image is not None:
            resolved = ResolvedEnvironment(executor=candidates[0], image=default_image)

    if resolved is None:
        raise EnvironmentResolutionError(
            message=f"Nenhum executor compatível com o job '{job.name}'",
            details={
                "job": job.name,
                "tags": list(job.tags),
                "image": job.image,
                "candidates": [ex.name for ex in candidates],
            },
        )

    try:
        resolved.executor.prepare(resolved.image)
    except EnvironmentResolutionError as exc:
        raise EnvironmentResolutionError(
            message=exc.message,
            details={**exc.details, "job": job.name},
            hint=exc.hint,
        ) from exc

    return resolved
