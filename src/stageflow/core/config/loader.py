# src/stageflow/core/config/loader.py
"""
Loader de configuração do orquestrador Stageflow.

A configuração efetiva é resolvida em duas camadas:
    1. defaults empacotados (`stageflow/core/config/defaults.yaml`), obrigatórios
    2. arquivo local do operador (`--config`), opcional

A camada local é aplicada por `deep_merge`; portanto, declarar `executors`
localmente substitui por completo a lista de executores default.

Limites explícitos:
    - Não interpreta a definição do pipeline (ver `core.definition`)
    - Não valida valores semânticos (ver `core.config.settings`)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import yaml  # PyYAML

from .errors import (
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .merge import deep_merge


_PARSERS: Dict[str, Callable[[str], Any]] = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.loads,
}


def read_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Lê um arquivo de settings (YAML ou JSON) e retorna seu mapa raiz.

    Um arquivo vazio equivale a `{}`.

    Raises:
        DefaultsNotFoundError: Se o arquivo não existir.
        UnsupportedConfigFormatError: Se a extensão não for .yaml/.yml/.json.
        InvalidConfigRootTypeError: Se a raiz não for um mapa.
    """
    path = Path(path)
    if not path.exists():
        raise DefaultsNotFoundError(f"Arquivo de configuração não encontrado: {path}")

    parser = _PARSERS.get(path.suffix.lower())
    if parser is None:
        raise UnsupportedConfigFormatError(
            f"Formato não suportado: {path.suffix or '(sem extensão)'} "
            f"(esperado um de {', '.join(sorted(_PARSERS))})"
        )

    text = path.read_text(encoding="utf-8")
    data = parser(text) if text.strip() else None
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigRootTypeError(
            f"{path.name}: raiz da configuração deve ser um mapa, recebido: {type(data).__name__}"
        )
    return data


def load_config(
    *,
    defaults_path: str,
    local_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Resolve a configuração efetiva (defaults + overrides locais).

    Um `local_path` inexistente em disco é ignorado; os defaults são usados
    integralmente.

    Raises:
        ConfigError: Em qualquer falha de leitura ou de merge.
    """
    effective = read_config_file(defaults_path)
    if local_path is None or not Path(local_path).exists():
        return effective
    return deep_merge(effective, read_config_file(local_path))
