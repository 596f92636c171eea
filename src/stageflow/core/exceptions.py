"""
Stageflow — Exceções canônicas (v1)

Este módulo define as exceções tipadas internas do Stageflow.

Objetivo:
- Permitir que loader, planner, runner e engine levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para StageflowErrorPayload
- Evitar ValueError/RuntimeError genéricos nas fronteiras críticas

Taxonomia:
- DefinitionError: falha estática, detectada antes de qualquer execução
- EnvironmentResolutionError: ambiente de execução do job não pôde ser resolvido/iniciado
- CommandFailure: um comando do job terminou com código diferente de zero
- ArtifactNotFound: artefato declarado ausente após execução bem-sucedida
- StageFailure: agregado; um ou mais jobs de um stage falharam

Regras:
- Exceções carregam apenas dados estruturados (serializáveis) em `details`.
- Nenhuma exceção é re-tentada automaticamente pelo core.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional


@dataclass(frozen=True, eq=False)
class StageflowException(Exception):
    """Base class para exceções internas do Stageflow.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    code: ClassVar[str] = "ENGINE_EXECUTION_ERROR"

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover
        return self.message


# ---------------------------------------------------------------------------
# Definição (estático, pré-execução)
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class DefinitionError(StageflowException):
    """Definição de pipeline inválida; fatal para a run inteira."""

    code: ClassVar[str] = "DEFINITION_ERROR"


@dataclass(frozen=True, eq=False)
class DefinitionNotFoundError(DefinitionError):
    """Arquivo de definição não encontrado."""


@dataclass(frozen=True, eq=False)
class InvalidDefinitionError(DefinitionError):
    """Estrutura do documento de definição inválida (tipos, chaves, formato)."""


@dataclass(frozen=True, eq=False)
class DuplicateJobError(DefinitionError):
    """Dois jobs declarados com o mesmo nome."""


@dataclass(frozen=True, eq=False)
class UnknownStageError(DefinitionError):
    """Job atribuído a um stage não declarado, ou lista de stages inválida."""


@dataclass(frozen=True, eq=False)
class UnknownDependencyError(DefinitionError):
    """Job referencia em `dependencies` um job inexistente."""


@dataclass(frozen=True, eq=False)
class ForwardDependencyError(DefinitionError):
    """Job depende de um job de um stage posterior."""


@dataclass(frozen=True, eq=False)
class CycleDetectedError(DefinitionError):
    """O grafo de dependências entre jobs contém um ciclo."""


@dataclass(frozen=True, eq=False)
class UnresolvedVariableError(DefinitionError):
    """Placeholder de variável sem definição no momento do load."""


@dataclass(frozen=True, eq=False)
class InvalidPathError(DefinitionError):
    """Caminho de cache/artefato vazio, absoluto ou fora do diretório do projeto."""


# ---------------------------------------------------------------------------
# Execução de jobs
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class EnvironmentResolutionError(StageflowException):
    """Ambiente de execução declarado pelo job não pôde ser resolvido ou iniciado."""

    code: ClassVar[str] = "ENVIRONMENT_ERROR"


@dataclass(frozen=True, eq=False)
class CommandFailure(StageflowException):
    """Comando do job terminou com exit status diferente de zero."""

    code: ClassVar[str] = "COMMAND_FAILURE"

    @property
    def exit_code(self) -> Optional[int]:
        value = self.details.get("exit_code")
        return int(value) if value is not None else None


@dataclass(frozen=True, eq=False)
class ArtifactNotFound(StageflowException):
    """Caminho de artefato declarado não existe após os comandos do job."""

    code: ClassVar[str] = "ARTIFACT_NOT_FOUND"


@dataclass(frozen=True, eq=False)
class StageFailure(StageflowException):
    """Um ou mais jobs de um stage falharam; stages seguintes não são admitidos."""

    code: ClassVar[str] = "STAGE_FAILURE"
