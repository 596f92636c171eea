# src/stageflow/core/definition/loader.py
"""
Loader canônico da definição de pipeline do Stageflow.

Este módulo lê o documento declarativo do pipeline (YAML, subconjunto da
sintaxe GitLab CI efetivamente utilizada) e produz uma `PipelineDefinition`
imutável e resolvida.

Formato reconhecido:
    - `variables:` substituições nomeadas de strings
    - `stages:`    lista ordenada de stages (padrão: prepare, build, test, deploy)
    - `image:`     imagem padrão do pipeline
    - `.nome:`     templates ocultos, ignorados
    - demais chaves de topo → jobs

Chaves aceitas por job:
    stage, script, image, tags, artifacts.paths, cache.key, cache.paths,
    dependencies, only, except

Princípios fundamentais:
    - Toda falha de definição é um `DefinitionError`, detectado antes de
      qualquer execução
    - Chaves desconhecidas são rejeitadas, nunca ignoradas silenciosamente
    - A mesma entrada sempre produz a mesma definição

Limites explícitos:
    - Não suporta include, matrix, rules ou workflow
    - Não executa jobs
"""

from __future__ import annotations

from collections.abc import Hashable
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple, Union

import yaml  # PyYAML

from stageflow.core.exceptions import (
    DefinitionNotFoundError,
    InvalidDefinitionError,
)

from .registry import JobRegistry
from .triggers import gate_from_clauses
from .types import (
    DEFAULT_CACHE_KEY,
    DEFAULT_JOB_STAGE,
    DEFAULT_STAGES,
    CacheSpec,
    JobDefinition,
    PipelineDefinition,
)
from .variables import resolve_variables, substitute


RESERVED_KEYS = frozenset({"variables", "stages", "image"})

JOB_KEYS = frozenset(
    {"stage", "script", "image", "tags", "artifacts", "cache", "dependencies", "only", "except"}
)


class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader que rejeita chaves duplicadas no mesmo mapa."""

    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if not isinstance(key, Hashable):
                continue
            if key in seen:
                raise InvalidDefinitionError(
                    message=f"Chave duplicada '{key}' na definição",
                    details={"key": str(key), "line": key_node.start_mark.line + 1},
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _string_list(raw: Any, *, where: str, allow_scalar: bool = False) -> List[str]:
    if raw is None:
        return []
    if allow_scalar and isinstance(raw, str):
        return [raw]
    if not isinstance(raw, list) or not all(isinstance(v, str) for v in raw):
        raise InvalidDefinitionError(
            message=f"{where} deve ser uma lista de strings",
            details={"where": where},
        )
    return list(raw)


def _parse_image(raw: Any, variables: Mapping[str, str], *, where: str) -> Optional[str]:
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        raw = raw.get("name")
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidDefinitionError(
            message=f"{where} deve ser um nome de imagem não vazio",
            details={"where": where},
        )
    return substitute(raw.strip(), variables, where=where)


def _parse_stages(raw: Any) -> Tuple[str, ...]:
    if raw is None:
        return DEFAULT_STAGES
    return tuple(_string_list(raw, where="stages"))


def _parse_cache(raw: Any, variables: Mapping[str, str], *, job: str) -> Optional[CacheSpec]:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise InvalidDefinitionError(
            message=f"{job}.cache deve ser um mapa com key/paths",
            details={"job": job},
        )
    unknown = sorted(set(raw) - {"key", "paths"})
    if unknown:
        raise InvalidDefinitionError(
            message=f"{job}.cache: chaves não suportadas: {', '.join(unknown)}",
            details={"job": job, "keys": unknown},
        )
    key_raw = raw.get("key", DEFAULT_CACHE_KEY)
    if isinstance(key_raw, (list, dict)) or key_raw is None:
        raise InvalidDefinitionError(
            message=f"{job}.cache.key deve ser escalar",
            details={"job": job},
        )
    key = substitute(str(key_raw), variables, where=f"{job}.cache.key")
    paths = tuple(
        substitute(p, variables, where=f"{job}.cache.paths")
        for p in _string_list(raw.get("paths"), where=f"{job}.cache.paths")
    )
    if not paths:
        raise InvalidDefinitionError(
            message=f"{job}.cache.paths deve declarar ao menos um caminho",
            details={"job": job},
        )
    return CacheSpec(key=key, paths=paths)


def _parse_artifacts(raw: Any, variables: Mapping[str, str], *, job: str) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, Mapping):
        raise InvalidDefinitionError(
            message=f"{job}.artifacts deve ser um mapa com paths",
            details={"job": job},
        )
    unknown = sorted(set(raw) - {"paths"})
    if unknown:
        raise InvalidDefinitionError(
            message=f"{job}.artifacts: chaves não suportadas: {', '.join(unknown)}",
            details={"job": job, "keys": unknown},
        )
    return tuple(
        substitute(p, variables, where=f"{job}.artifacts.paths")
        for p in _string_list(raw.get("paths"), where=f"{job}.artifacts.paths")
    )


def _parse_job(name: str, body: Any, variables: Mapping[str, str]) -> JobDefinition:
    if not isinstance(body, Mapping):
        raise InvalidDefinitionError(
            message=f"Job '{name}' deve ser um mapa",
            details={"job": name, "received": type(body).__name__},
        )

    unknown = sorted(str(k) for k in set(body) - JOB_KEYS)
    if unknown:
        raise InvalidDefinitionError(
            message=f"Job '{name}': chaves não suportadas: {', '.join(unknown)}",
            details={"job": name, "keys": unknown},
        )

    stage = body.get("stage", DEFAULT_JOB_STAGE)
    if not isinstance(stage, str):
        raise InvalidDefinitionError(
            message=f"{name}.stage deve ser string",
            details={"job": name},
        )

    script = _string_list(body.get("script"), where=f"{name}.script", allow_scalar=True)
    if not script or any(not line.strip() for line in script):
        raise InvalidDefinitionError(
            message=f"Job '{name}' deve declarar script com comandos não vazios",
            details={"job": name},
        )

    tags = tuple(
        substitute(t, variables, where=f"{name}.tags")
        for t in _string_list(body.get("tags"), where=f"{name}.tags")
    )

    return JobDefinition(
        name=name,
        stage=stage,
        script=tuple(script),
        image=_parse_image(body.get("image"), variables, where=f"{name}.image"),
        tags=tags,
        artifacts=_parse_artifacts(body.get("artifacts"), variables, job=name),
        cache=_parse_cache(body.get("cache"), variables, job=name),
        dependencies=tuple(_string_list(body.get("dependencies"), where=f"{name}.dependencies")),
        trigger=gate_from_clauses(
            only=_string_list(body.get("only"), where=f"{name}.only", allow_scalar=True),
            except_=_string_list(body.get("except"), where=f"{name}.except", allow_scalar=True),
        ),
    )


def parse_definition(
    data: Any,
    *,
    variables: Optional[Mapping[str, Any]] = None,
    validate: bool = True,
) -> PipelineDefinition:
    """
    Constrói a `PipelineDefinition` a partir de um documento já parseado.

    Args:
        data (Any): Documento raiz (mapa).
        variables (Optional[Mapping[str, Any]]): Variáveis externas, com
            precedência sobre as declaradas.
        validate (bool): Executa a validação estática do planner ao final.

    Returns:
        PipelineDefinition: Definição resolvida.

    Raises:
        DefinitionError: Em qualquer violação estrutural ou de variáveis.
    """
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise InvalidDefinitionError(
            message=f"Definição raiz deve ser um mapa, recebido: {type(data).__name__}",
        )

    resolved_vars = resolve_variables(data.get("variables"), variables)
    stages = _parse_stages(data.get("stages"))
    default_image = _parse_image(data.get("image"), resolved_vars, where="image")

    registry = JobRegistry()
    for key, body in data.items():
        name = str(key)
        if name in RESERVED_KEYS or name.startswith("."):
            continue
        registry.add(_parse_job(name, body, resolved_vars))

    jobs = registry.list()
    if not jobs:
        raise InvalidDefinitionError(message="A definição não declara nenhum job")

    definition = PipelineDefinition(
        stages=stages,
        jobs=tuple(jobs),
        variables=resolved_vars,
        default_image=default_image,
    )

    if validate:
        # import tardio: o planner depende dos tipos deste pacote
        from stageflow.core.engine.planner import validate_definition

        validate_definition(definition)

    return definition


def load_definition(
    path: Union[str, Path],
    *,
    variables: Optional[Mapping[str, Any]] = None,
    validate: bool = True,
) -> PipelineDefinition:
    """Lê e resolve um arquivo de definição YAML."""
    path = Path(path)
    if not path.exists():
        raise DefinitionNotFoundError(
            message=f"Arquivo de definição não encontrado: {path}",
            details={"path": str(path)},
        )

    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.load(f, Loader=_UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise InvalidDefinitionError(
            message=f"YAML inválido em {path}",
            details={"path": str(path), "error": str(exc)},
        ) from exc

    return parse_definition(data, variables=variables, validate=validate)


def loads_definition(
    text: str,
    *,
    variables: Optional[Mapping[str, Any]] = None,
    validate: bool = True,
) -> PipelineDefinition:
    """Variante de `load_definition` para conteúdo YAML em memória."""
    try:
        data = yaml.load(text, Loader=_UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise InvalidDefinitionError(
            message="YAML inválido",
            details={"error": str(exc)},
        ) from exc
    return parse_definition(data, variables=variables, validate=validate)


__all__ = ["load_definition", "loads_definition", "parse_definition"]
