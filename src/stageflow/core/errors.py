"""
Stageflow — Estruturas canônicas de erro (v1)

Este módulo define o padrão canônico de erros do Stageflow.
Erros fazem parte do contrato operacional do orquestrador: o status final
da run mais a tabela de status/exit code por job é toda a superfície de
erro exposta ao operador. Por isso, erros devem ser:

- explícitos
- serializáveis
- rastreáveis (persistidos no Manifest)
- acionáveis

Nenhum retry implícito é permitido.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from stageflow.core.exceptions import StageflowException


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StageflowErrorPayload:
    """
    Payload canônico de erro do Stageflow.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        # o chamador deve garantir que details seja serializável
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

DEFINITION_ERROR = "DEFINITION_ERROR"
ENVIRONMENT_ERROR = "ENVIRONMENT_ERROR"
COMMAND_FAILURE = "COMMAND_FAILURE"
ARTIFACT_NOT_FOUND = "ARTIFACT_NOT_FOUND"
STAGE_FAILURE = "STAGE_FAILURE"
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def command_failure(
    *,
    job: str,
    command: str,
    index: int,
    exit_code: int,
    hint: str = "Consulte o log do job para a saída completa do comando.",
) -> StageflowErrorPayload:
    return StageflowErrorPayload(
        type=COMMAND_FAILURE,
        message=f"Comando #{index + 1} do job '{job}' terminou com código {exit_code}",
        details={
            "job": job,
            "command": command,
            "command_index": index,
            "exit_code": exit_code,
        },
        hint=hint,
    )


def stage_failure(
    *,
    stage: str,
    failed_jobs: List[str],
    canceled_stages: List[str],
) -> StageflowErrorPayload:
    return StageflowErrorPayload(
        type=STAGE_FAILURE,
        message=f"Stage '{stage}' falhou",
        details={
            "stage": stage,
            "failed_jobs": list(failed_jobs),
            "canceled_stages": list(canceled_stages),
        },
        hint="Corrija os jobs com falha e dispare uma nova run.",
    )


def engine_execution_error(*, exc: BaseException, job: Optional[str] = None) -> StageflowErrorPayload:
    details: Dict[str, Any] = {"exception_class": exc.__class__.__name__}
    if job is not None:
        details["job"] = job
    return StageflowErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message=str(exc) or "Erro inesperado durante execução",
        details=details,
        hint="Verifique o log técnico e a configuração do orquestrador",
    )


def payload_from_exception(exc: BaseException, *, job: Optional[str] = None) -> StageflowErrorPayload:
    """Converte exceções em StageflowErrorPayload (serializável, acionável).

    Regras:
    - StageflowException: já vem com message/details/hint e código estável.
    - Outras exceções: encapsular como ENGINE_EXECUTION_ERROR sem expor stack trace.
    """
    if isinstance(exc, StageflowException):
        details = dict(exc.details or {})
        if job is not None:
            details.setdefault("job", job)
        return StageflowErrorPayload(
            type=exc.code,
            message=exc.message or "Erro de execução",
            details=details,
            hint=exc.hint,
        )
    return engine_execution_error(exc=exc, job=job)
