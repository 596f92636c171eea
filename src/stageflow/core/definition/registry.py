# src/stageflow/core/definition/registry.py
"""
Registro estrutural de jobs da definição.

Este módulo define o `JobRegistry`, responsável por registrar jobs durante
o load da definição e garantir, antes de qualquer planejamento:
    - que cada job possua um nome válido
    - que não existam nomes duplicados
    - que a ordem de declaração seja preservada

Limites explícitos:
    - Não resolve dependências nem stages (ver `core.engine.planner`)
    - Não executa jobs
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from stageflow.core.exceptions import DuplicateJobError, InvalidDefinitionError

from .types import JobDefinition


@dataclass
class JobRegistry:
    """
    Registro canônico de jobs para validação estrutural pré-execução.

    Invariantes:
        - Cada nome de job é único no registry
        - `list()` reflete exatamente a ordem de registro
    """

    _jobs: Dict[str, JobDefinition] = field(default_factory=dict, init=False, repr=False)
    _order: List[str] = field(default_factory=list, init=False, repr=False)

    def add(self, job: JobDefinition) -> None:
        name = getattr(job, "name", None)
        if not isinstance(name, str) or not name.strip():
            raise InvalidDefinitionError(message="job name must be a non-empty string")

        if name in self._jobs:
            raise DuplicateJobError(
                message=f"Duplicate job name: {name}",
                details={"job": name},
            )

        self._jobs[name] = job
        self._order.append(name)

    def get(self, name: str) -> JobDefinition:
        return self._jobs[name]

    def list(self) -> List[JobDefinition]:
        return [self._jobs[n] for n in self._order]
