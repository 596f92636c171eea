# src/stageflow/core/engine/__init__.py
"""
Engine do Stageflow.

Este pacote contém a implementação responsável por **validar**,
**agendar** e **executar** pipelines de CI.

Componentes principais:
    - planner     → validação estática e ordem topológica determinística por stage
    - executors   → ambientes de execução (shell do host, container docker)
    - environment → seleção de executor por tags e imagem
    - runner      → ciclo de vida de um job (ambiente, cache, comandos, artefatos)
    - scheduler   → execução concorrente dos jobs de um stage
    - engine      → sequência de stages e resultado final da run

Princípios fundamentais:
    - Validação e execução são responsabilidades separadas
    - A ordem de execução é determinística para a mesma definição
    - Nenhuma decisão silenciosa é tomada durante a execução
"""

from .engine import Engine, RunResult, new_run_id
from .environment import ResolvedEnvironment, resolve_environment
from .executors import DockerExecutor, Executor, ShellExecutor, build_executors
from .planner import ExecutionPlan, validate_definition
from .runner import JobRunner
from .scheduler import StageScheduler

__all__ = [
    "Engine",
    "RunResult",
    "new_run_id",
    "ResolvedEnvironment",
    "resolve_environment",
    "DockerExecutor",
    "Executor",
    "ShellExecutor",
    "build_executors",
    "ExecutionPlan",
    "validate_definition",
    "JobRunner",
    "StageScheduler",
]
