# src/stageflow/core/definition/__init__.py
"""
Definição declarativa do pipeline.

Componentes principais:
    - types     → CacheSpec, JobDefinition, PipelineDefinition
    - triggers  → TriggerRef e Trigger Gates (`only` / `except`)
    - variables → substituição de variáveis e variáveis predefinidas da run
    - registry  → unicidade e ordem de declaração de jobs
    - loader    → leitura do documento YAML e construção da definição
"""

from .loader import load_definition, loads_definition, parse_definition
from .registry import JobRegistry
from .triggers import (
    ALWAYS,
    AllOf,
    AlwaysAdmit,
    AnyOf,
    Not,
    RefKind,
    RefKindGate,
    RefNameGate,
    TriggerGate,
    TriggerRef,
    admits,
    gate_from_clauses,
)
from .types import (
    DEFAULT_CACHE_KEY,
    DEFAULT_JOB_STAGE,
    DEFAULT_STAGES,
    CacheSpec,
    JobDefinition,
    PipelineDefinition,
)
from .variables import predefined_variables, resolve_variables, substitute

__all__ = [
    "load_definition",
    "loads_definition",
    "parse_definition",
    "JobRegistry",
    "ALWAYS",
    "AllOf",
    "AlwaysAdmit",
    "AnyOf",
    "Not",
    "RefKind",
    "RefKindGate",
    "RefNameGate",
    "TriggerGate",
    "TriggerRef",
    "admits",
    "gate_from_clauses",
    "DEFAULT_CACHE_KEY",
    "DEFAULT_JOB_STAGE",
    "DEFAULT_STAGES",
    "CacheSpec",
    "JobDefinition",
    "PipelineDefinition",
    "predefined_variables",
    "resolve_variables",
    "substitute",
]
