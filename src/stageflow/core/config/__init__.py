# src/stageflow/core/config/__init__.py

"""
Camada de configuração do Stageflow.

Este pacote carrega, mescla, valida e identifica os settings do
orquestrador (paralelismo, diretórios de cache e de runs, executores
disponíveis). A configuração do orquestrador é separada da definição do
pipeline: a primeira descreve *onde e como* jobs podem rodar, a segunda
descreve *quais* jobs existem.

Princípios fundamentais:
    - Configuração não contém lógica de pipeline
    - Overrides são sempre explícitos (deep-merge sobre defaults empacotados)
    - A mesma entrada sempre produz os mesmos settings
"""

from .errors import (
    ConfigError,
    ConfigTypeConflictError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    InvalidSettingError,
    UnsupportedConfigFormatError,
)
from .hashing import compute_config_hash
from .loader import load_config
from .merge import deep_merge
from .settings import DEFAULTS_PATH, ExecutorConfig, Settings, load_settings

__all__ = [
    "ConfigError",
    "ConfigTypeConflictError",
    "DefaultsNotFoundError",
    "InvalidConfigRootTypeError",
    "InvalidSettingError",
    "UnsupportedConfigFormatError",
    "compute_config_hash",
    "load_config",
    "deep_merge",
    "DEFAULTS_PATH",
    "ExecutorConfig",
    "Settings",
    "load_settings",
]
