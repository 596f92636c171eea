# src/stageflow/core/config/errors.py
"""
Exceções canônicas da camada de configuração do Stageflow.

Este módulo define a hierarquia de exceções utilizadas durante o
carregamento, a resolução e a validação das configurações do orquestrador
(executores, diretórios de cache e de runs, paralelismo).

As exceções aqui definidas representam falhas de configuração do
orquestrador, e não erros da definição do pipeline (ver
`stageflow.core.exceptions.DefinitionError`) nem falhas de execução de jobs.

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção representa falha de job ou de stage
"""


class ConfigError(Exception):
    """
    Exceção base para erros relacionados à configuração do Stageflow.

    Todas as exceções levantadas durante carregamento, merge e validação
    de settings devem herdar desta classe.
    """


class DefaultsNotFoundError(ConfigError):
    """
    Exceção levantada quando o arquivo de configuração base (defaults)
    não é encontrado no caminho especificado.

    Decisões arquiteturais:
        - O arquivo de defaults é obrigatório
        - Não há criação implícita de defaults
    """


class UnsupportedConfigFormatError(ConfigError):
    """
    Exceção levantada quando o formato do arquivo de configuração
    não é suportado pelo loader.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


class InvalidConfigRootTypeError(ConfigError):
    """
    Exceção levantada quando o conteúdo raiz da configuração
    não é um dicionário (`dict`).
    """


class ConfigTypeConflictError(ConfigError):
    """
    Exceção levantada quando ocorre conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"engine": {"max_parallel_jobs": 4}}
        - override: {"engine": "fast"}

    Decisões arquiteturais:
        - O deep-merge é estritamente tipado por chave
        - Nenhum merge parcial é produzido em caso de conflito
    """


class InvalidSettingError(ConfigError):
    """
    Exceção levantada quando a configuração resolvida contém um valor
    inválido para o orquestrador (ex.: paralelismo menor que 1, executor
    com `kind` desconhecido, nomes de executores duplicados).
    """
