"""Cache de pipeline com escopo entre runs (v1).

No Stageflow, o cache é um mecanismo **consultivo**: acelera jobs que
reconstroem o mesmo estado (ex.: `target/`, dependências baixadas) entre
runs, mas nunca é uma dependência de correção. Um job deve produzir o
mesmo resultado com cache frio ou quente.

Decisões (v1):
- Chave declarada pelo usuário, escopo de pipeline (não de run)
- Layout: `<cache_dir>/<slug>-<sha256[:12]>/{entry.json, data/}`
- Save é last-writer-wins: a entrada é montada em diretório temporário e
  substitui a anterior por inteiro (nunca há merge)
- Caminhos declarados ausentes no diretório de origem são ignorados
- O evento `cache_saved` do Manifest é registrado pelo Job Runner

Limites explícitos:
- Não expira entradas
- Não compartilha cache entre máquinas
- Não decide quando salvar (decisão do Job Runner)
"""

from __future__ import annotations

import json
import shutil
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from stageflow.core.fs import copy_paths, remove_tree, stable_dirname


ENTRY_FILE = "entry.json"
DATA_DIR = "data"


@dataclass(frozen=True)
class CacheEntry:
    """Metadata de uma entrada de cache persistida."""

    key: str
    paths: Tuple[str, ...]
    saved_at: str
    run_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "paths": list(self.paths),
            "saved_at": self.saved_at,
            "run_id": self.run_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        return cls(
            key=str(data["key"]),
            paths=tuple(data.get("paths", []) or []),
            saved_at=str(data.get("saved_at", "")),
            run_id=data.get("run_id"),
        )


class CacheStore:
    """Store canônica (v1) para entradas de cache por chave."""

    def __init__(self, *, cache_dir: Union[str, Path]):
        self.cache_dir = Path(cache_dir)
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------
    def entry_dir(self, key: str) -> Path:
        """Diretório determinístico da entrada para `key`."""
        return self.cache_dir / stable_dirname(key)

    # ------------------------------------------------------------------
    # Lookup / Restore / Save
    # ------------------------------------------------------------------
    def lookup(self, key: str) -> Optional[CacheEntry]:
        """Retorna a metadata da entrada, ou None se a chave nunca foi salva."""
        meta_path = self.entry_dir(key) / ENTRY_FILE
        if not meta_path.exists():
            return None
        return CacheEntry.from_dict(json.loads(meta_path.read_text(encoding="utf-8")))

    def restore(self, key: str, *, dest_dir: Union[str, Path]) -> Optional[CacheEntry]:
        """Copia os caminhos salvos para `dest_dir`.

        Chave ausente retorna None: o job segue com cache frio.
        """
        with self._lock:
            entry = self.lookup(key)
            if entry is None:
                return None
            copy_paths(entry.paths, src_root=self.entry_dir(key) / DATA_DIR, dst_root=Path(dest_dir))
            return entry

    def save(
        self,
        key: str,
        paths: Iterable[str],
        *,
        source_dir: Union[str, Path],
        run_id: Optional[str] = None,
    ) -> CacheEntry:
        """Substitui a entrada de `key` pelo conteúdo atual de `paths`.

        Args:
            key: chave de cache declarada.
            paths: caminhos relativos a `source_dir`.
            source_dir: diretório de trabalho do job.
            run_id: run que produziu a entrada.

        Returns:
            CacheEntry: metadata da entrada salva (apenas caminhos existentes).
        """
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=".staging-", dir=self.cache_dir))
        try:
            copied = copy_paths(paths, src_root=Path(source_dir), dst_root=staging / DATA_DIR)
            entry = CacheEntry(
                key=key,
                paths=tuple(copied),
                saved_at=datetime.now(timezone.utc).isoformat(),
                run_id=run_id,
            )
            (staging / ENTRY_FILE).write_text(
                json.dumps(entry.to_dict(), ensure_ascii=False, indent=2, sort_keys=True),
                encoding="utf-8",
            )

            target = self.entry_dir(key)
            with self._lock:
                remove_tree(target)
                staging.rename(target)
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

        return entry


__all__ = ["CacheStore", "CacheEntry"]
