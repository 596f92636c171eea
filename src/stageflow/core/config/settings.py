# src/stageflow/core/config/settings.py
"""
Settings tipados do orquestrador Stageflow.

Este módulo converte a configuração resolvida (dict produzido por
`load_config`) em uma estrutura imutável e validada, consumida pelo Engine
e pela fábrica de executores.

Seções reconhecidas (v1):
    - engine.max_parallel_jobs → limite de jobs concorrentes por stage
    - engine.persist_manifest  → persistir `manifest.json` no diretório da run
    - engine.write_report      → gerar `report.md` ao final da run
    - storage.cache_dir        → namespace de cache compartilhado entre runs
    - storage.runs_dir         → diretório raiz das runs (logs, artefatos, manifest)
    - executors                → lista de executores disponíveis (name, kind, tags, opções)

Invariantes:
    - Settings são imutáveis após construção
    - Nomes de executores são únicos
    - `kind` de executor é um dos valores suportados
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .errors import InvalidSettingError
from .hashing import compute_config_hash
from .loader import load_config


DEFAULTS_PATH = Path(__file__).with_name("defaults.yaml")

EXECUTOR_KINDS = ("shell", "docker")


@dataclass(frozen=True)
class ExecutorConfig:
    """Declaração de um executor disponível (host shell ou container)."""

    name: str
    kind: str
    tags: Tuple[str, ...] = ()
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Settings:
    """Settings efetivos e validados do orquestrador."""

    max_parallel_jobs: int = 4
    persist_manifest: bool = True
    write_report: bool = True
    cache_dir: str = ".stageflow/cache"
    runs_dir: str = ".stageflow/runs"
    executors: Tuple[ExecutorConfig, ...] = ()
    config_hash: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        engine = data.get("engine", {}) or {}
        storage = data.get("storage", {}) or {}
        if not isinstance(engine, dict) or not isinstance(storage, dict):
            raise InvalidSettingError("Seções 'engine' e 'storage' devem ser mapas")

        max_parallel = engine.get("max_parallel_jobs", 4)
        if isinstance(max_parallel, bool) or not isinstance(max_parallel, int) or max_parallel < 1:
            raise InvalidSettingError(
                f"engine.max_parallel_jobs deve ser inteiro >= 1, recebido: {max_parallel!r}"
            )

        executors = tuple(_parse_executor(raw) for raw in (data.get("executors") or []))
        names = [e.name for e in executors]
        duplicated = sorted({n for n in names if names.count(n) > 1})
        if duplicated:
            raise InvalidSettingError(f"Executores duplicados: {', '.join(duplicated)}")

        return cls(
            max_parallel_jobs=max_parallel,
            persist_manifest=bool(engine.get("persist_manifest", True)),
            write_report=bool(engine.get("write_report", True)),
            cache_dir=str(storage.get("cache_dir", ".stageflow/cache")),
            runs_dir=str(storage.get("runs_dir", ".stageflow/runs")),
            executors=executors,
            config_hash=compute_config_hash(data),
        )

    def resolve_dir(self, value: str, *, workdir: Path) -> Path:
        path = Path(value)
        return path if path.is_absolute() else Path(workdir) / path


def _parse_executor(raw: Any) -> ExecutorConfig:
    if not isinstance(raw, dict):
        raise InvalidSettingError(f"Executor deve ser um mapa, recebido: {type(raw).__name__}")
    name = raw.get("name")
    kind = raw.get("kind")
    if not isinstance(name, str) or not name.strip():
        raise InvalidSettingError("Executor sem 'name'")
    if kind not in EXECUTOR_KINDS:
        raise InvalidSettingError(
            f"Executor '{name}': kind deve ser um de {EXECUTOR_KINDS}, recebido: {kind!r}"
        )
    tags = raw.get("tags") or []
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise InvalidSettingError(f"Executor '{name}': tags deve ser lista de strings")
    options = {k: v for k, v in raw.items() if k not in {"name", "kind", "tags"}}
    return ExecutorConfig(name=name, kind=kind, tags=tuple(tags), options=options)


def load_settings(local_path: Optional[str] = None) -> Settings:
    """Carrega os defaults empacotados, aplica overrides locais e valida."""
    data = load_config(defaults_path=str(DEFAULTS_PATH), local_path=local_path)
    return Settings.from_dict(data)
