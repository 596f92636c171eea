# tests/core/pipeline/test_run_context_artifacts.py
"""
Testes da ArtifactBag do RunContext.

Este módulo valida o armazenamento de artefatos com escopo de run.

Os testes asseguram que:
- a publicação tira um snapshot dos caminhos declarados
- jobs dependentes leem exatamente o conjunto publicado
- um job publica no máximo uma vez por run
- caminhos declarados ausentes impedem a publicação
- runs distintas não compartilham artefatos

Decisões arquiteturais:
    - O snapshot é isolado do diretório do projeto: alterações posteriores
      no projeto não afetam o que foi publicado

Limites explícitos:
    - Não valida a materialização feita pelo Job Runner (ver test_runner.py)
"""

from pathlib import Path

import pytest

try:
    from stageflow.core.exceptions import ArtifactNotFound
    from stageflow.core.pipeline.context import ArtifactBag
except Exception as e:  # noqa: BLE001
    ArtifactBag = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    """
    Garante que a ArtifactBag esteja disponível para os testes.
    """
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing run context. Implement:\n"
            "- src/stageflow/core/pipeline/context.py (RunContext, ArtifactBag)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def _project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    (root / "target" / "kernel").mkdir(parents=True)
    (root / "target" / "kernel" / "hermit").write_text("v1", encoding="utf-8")
    (root / "README").write_text("readme", encoding="utf-8")
    return root


def test_publish_and_materialize_snapshot(make_ctx, tmp_path: Path):
    """
    Verifica que o dependente recebe o conteúdo publicado, e não o estado
    atual do diretório do projeto.
    """
    _require_imports()
    ctx = make_ctx()
    src = _project(tmp_path)

    published = ctx.artifacts.publish("build", ["target/kernel"], source_dir=src)
    (src / "target" / "kernel" / "hermit").write_text("changed later", encoding="utf-8")

    dest = tmp_path / "consumer"
    copied = ctx.artifacts.materialize("build", dest)

    assert published == ("target/kernel",)
    assert copied == ["target/kernel"]
    assert (dest / "target" / "kernel" / "hermit").read_text(encoding="utf-8") == "v1"
    assert not (dest / "README").exists()
    assert ctx.artifacts.to_dict() == {"build": ["target/kernel"]}


def test_publish_twice_is_rejected(tmp_path: Path):
    _require_imports()
    bag = ArtifactBag(tmp_path / "artifacts")
    src = _project(tmp_path)
    bag.publish("build", ["README"], source_dir=src)
    with pytest.raises(ValueError):
        bag.publish("build", ["README"], source_dir=src)
    assert bag.read("build") == ("README",)


def test_missing_path_blocks_publication(tmp_path: Path):
    _require_imports()
    bag = ArtifactBag(tmp_path / "artifacts")
    with pytest.raises(ArtifactNotFound) as exc:
        bag.publish("build", ["README", "dist"], source_dir=_project(tmp_path))
    assert exc.value.details["missing"] == ["dist"]
    assert not bag.has("build")


def test_unpublished_job_raises_key_error(tmp_path: Path):
    _require_imports()
    bag = ArtifactBag(tmp_path / "artifacts")
    with pytest.raises(KeyError):
        bag.read("build")


def test_empty_publication_is_recorded(tmp_path: Path):
    _require_imports()
    bag = ArtifactBag(tmp_path / "artifacts")
    assert bag.publish("lint", [], source_dir=tmp_path) == ()
    assert bag.has("lint")


def test_context_isolation(make_ctx, tmp_path: Path):
    _require_imports()
    ctx1 = make_ctx(run_id="run-a")
    ctx2 = make_ctx(run_id="run-b")
    ctx1.artifacts.publish("build", ["README"], source_dir=_project(tmp_path))

    assert ctx1.artifacts.has("build")
    assert not ctx2.artifacts.has("build")
    assert ctx1.run_dir != ctx2.run_dir
