"""
Hashing canônico de estruturas declarativas do Stageflow.

Este módulo gera o hash determinístico utilizado para identificar tanto os
settings efetivos do orquestrador quanto a definição de pipeline resolvida
(após substituição de variáveis). Os hashes são registrados no Manifest de
cada run, permitindo responder "com qual definição esta run executou?".

Política de hashing (v1):
    - Serialização JSON canônica (chaves ordenadas, separadores compactos)
    - Codificação UTF-8
    - SHA-256

Invariantes:
    - Estruturas equivalentes produzem o mesmo hash
    - O valor gerado é sempre uma string hexadecimal de 64 caracteres
"""


import json
import hashlib
from typing import Dict, Any


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera um hash SHA-256 determinístico de um dicionário serializável.

    Args:
        config (Dict[str, Any]): Settings efetivos ou definição serializada.

    Returns:
        str: Hash SHA-256 hexadecimal.

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """

    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )

    canonical_json = json.dumps(
        config,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )

    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()
