# src/stageflow/core/definition/variables.py
"""
Substituição de variáveis da definição de pipeline.

Variáveis são substituições nomeadas de strings, disponíveis para todos os
jobs. Elas são resolvidas em dois momentos distintos:

    - load da definição: campos estruturais (imagem, tags, caminhos de
      artefato, chave e caminhos de cache). Variável indefinida aqui é um
      `UnresolvedVariableError` (DefinitionError), nunca um erro de runtime.
    - execução de comandos: as variáveis (declaradas + predefinidas da run)
      são exportadas no ambiente do comando e expandidas pelo shell.

Sintaxe:
    - `${NOME}` e `$NOME` → valor da variável
    - `$$` → `$` literal
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from stageflow.core.exceptions import InvalidDefinitionError, UnresolvedVariableError

from .triggers import TriggerRef


_PLACEHOLDER = re.compile(
    r"\$\$|\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)"
)


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def substitute(value: str, variables: Mapping[str, str], *, where: str) -> str:
    """
    Substitui placeholders em `value` usando `variables`.

    Args:
        value (str): Texto com placeholders.
        variables (Mapping[str, str]): Variáveis disponíveis.
        where (str): Localização do campo na definição (para diagnóstico).

    Raises:
        UnresolvedVariableError: Se algum placeholder não tiver valor.
    """

    def _replace(match: "re.Match[str]") -> str:
        if match.group(0) == "$$":
            return "$"
        name = match.group(1) or match.group(2)
        if name not in variables:
            raise UnresolvedVariableError(
                message=f"Variável indefinida '{name}' em {where}",
                details={"variable": name, "where": where},
                hint="Declare a variável em `variables:` ou forneça-a via --var.",
            )
        return variables[name]

    return _PLACEHOLDER.sub(_replace, value)


def resolve_variables(
    declared: Optional[Mapping[str, Any]],
    external: Optional[Mapping[str, Any]] = None,
) -> Dict[str, str]:
    """
    Resolve o bloco `variables:` da definição.

    Regras:
        - Variáveis externas (ex.: `--var`) têm precedência sobre as declaradas
        - Um valor declarado pode referenciar variáveis externas e declaradas antes dele
        - A forma `{value: ...}` é aceita para cada variável
    """
    if declared is None:
        declared = {}
    if not isinstance(declared, Mapping):
        raise InvalidDefinitionError(
            message="`variables` deve ser um mapa nome -> valor",
            details={"received": type(declared).__name__},
        )

    overrides = {str(k): _stringify(v) for k, v in (external or {}).items()}
    resolved: Dict[str, str] = {}

    for name, raw in declared.items():
        name = str(name)
        if name in overrides:
            resolved[name] = overrides[name]
            continue
        if isinstance(raw, Mapping):
            raw = raw.get("value")
        if isinstance(raw, (list, dict)):
            raise InvalidDefinitionError(
                message=f"Variável '{name}' deve ser escalar",
                details={"variable": name},
            )
        resolved[name] = substitute(
            _stringify(raw),
            {**overrides, **resolved},
            where=f"variables.{name}",
        )

    for name, value in overrides.items():
        resolved.setdefault(name, value)

    return resolved


def predefined_variables(
    *,
    run_id: str,
    job_name: str,
    stage: str,
    trigger_ref: TriggerRef,
    project_dir: Path,
) -> Dict[str, str]:
    """Variáveis predefinidas exportadas para cada comando de um job."""
    env = {
        "CI": "true",
        "CI_PIPELINE_ID": run_id,
        "CI_JOB_NAME": job_name,
        "CI_JOB_STAGE": stage,
        "CI_COMMIT_REF_NAME": trigger_ref.name,
        "CI_PROJECT_DIR": str(project_dir),
    }
    if trigger_ref.is_tag:
        env["CI_COMMIT_TAG"] = trigger_ref.name
    else:
        env["CI_COMMIT_BRANCH"] = trigger_ref.name
    return env
