# src/stageflow/core/config/merge.py
"""
Deep-merge dos settings do orquestrador (defaults empacotados + arquivo local).

Política (v1):
    - mapa × mapa → merge recursivo
    - lista no override → substitui a lista inteira (ex.: `executors`)
    - escalar → sobrescreve; um valor `null` na base aceita qualquer tipo
    - tipos incompatíveis → `ConfigTypeConflictError` com o caminho da chave

Nenhum dos inputs é mutado.
"""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, Tuple

from .errors import ConfigTypeConflictError


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Retorna um novo dict com `override` aplicado sobre `base`."""
    if not isinstance(base, dict) or not isinstance(override, dict):
        raise ConfigTypeConflictError(
            "Deep-merge requer mapas no nível raiz, recebido: "
            f"{type(base).__name__} vs {type(override).__name__}"
        )
    return _merge(base, override, ())


def _merge(base: Dict[str, Any], override: Dict[str, Any], path: Tuple[str, ...]) -> Dict[str, Any]:
    merged = deepcopy(base)
    for key, new in override.items():
        where = path + (str(key),)
        old = merged.get(key)

        if isinstance(old, dict) and isinstance(new, dict):
            merged[key] = _merge(old, new, where)
        elif key not in merged or old is None or isinstance(new, list) or type(old) is type(new):
            merged[key] = deepcopy(new)
        else:
            raise ConfigTypeConflictError(
                f"Conflito de tipo em '{'.'.join(where)}': "
                f"{type(old).__name__} vs {type(new).__name__}"
            )
    return merged
