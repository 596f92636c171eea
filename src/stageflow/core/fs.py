# src/stageflow/core/fs.py
"""
Utilitários de sistema de arquivos compartilhados por ArtifactBag e CacheStore.

Caminhos declarados na definição são sempre relativos a uma raiz (diretório
do projeto, snapshot de artefatos ou entrada de cache). Copiar um caminho
significa replicar o arquivo ou a árvore inteira sob a raiz de destino.
"""

from __future__ import annotations

import hashlib
import re
import shutil
from pathlib import Path
from typing import Iterable, List


_SLUG_RE = re.compile(r"[^A-Za-z0-9._-]+")


def slugify(value: str) -> str:
    """Nome seguro para arquivo/diretório derivado de um nome de job ou chave."""
    slug = _SLUG_RE.sub("_", value).strip("._")
    return slug or "_"


def stable_dirname(value: str) -> str:
    """Slug legível + prefixo SHA-256, imune a colisões entre slugs iguais."""
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:12]
    return f"{slugify(value)}-{digest}"


def copy_path(src_root: Path, rel: str, dst_root: Path) -> bool:
    """
    Copia `src_root/rel` para `dst_root/rel`.

    Returns:
        bool: False se a origem não existir.
    """
    src = Path(src_root) / rel
    dst = Path(dst_root) / rel
    if not src.exists():
        return False
    if src.is_dir():
        shutil.copytree(src, dst, dirs_exist_ok=True)
    else:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)
    return True


def copy_paths(paths: Iterable[str], *, src_root: Path, dst_root: Path) -> List[str]:
    """Copia cada caminho existente e retorna a lista dos efetivamente copiados."""
    copied: List[str] = []
    for rel in paths:
        if copy_path(src_root, rel, dst_root):
            copied.append(rel)
    return copied


def missing_paths(paths: Iterable[str], *, root: Path) -> List[str]:
    return [rel for rel in paths if not (Path(root) / rel).exists()]


def remove_tree(path: Path) -> None:
    path = Path(path)
    if path.is_dir():
        shutil.rmtree(path)
    elif path.exists():
        path.unlink()


def copy_workspace(src_root: Path, dst_root: Path, *, exclude: Iterable[Path] = ()) -> Path:
    """
    Cópia integral de `src_root` em `dst_root` (diretório de trabalho de um job).

    Raízes em `exclude` (diretório de runs, cache) nunca entram na cópia,
    mesmo quando ficam dentro do projeto. Symlinks são copiados como links.
    """
    src_root, dst_root = Path(src_root), Path(dst_root)
    skipped = {Path(p).resolve() for p in exclude}

    def _ignore(directory: str, names: List[str]) -> List[str]:
        base = Path(directory).resolve()
        return [name for name in names if base / name in skipped]

    if src_root.is_dir():
        shutil.copytree(src_root, dst_root, symlinks=True, ignore=_ignore, dirs_exist_ok=True)
    else:
        dst_root.mkdir(parents=True, exist_ok=True)
    return dst_root
