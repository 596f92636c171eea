# tests/conftest.py
"""
Fixtures compartilhados para testes do Stageflow.

Este módulo define fixtures reutilizáveis que fornecem:
- definições de pipeline em YAML semelhantes ao uso real
- Settings isolados (cache e runs sob `tmp_path`, sem executores reais)
- diretório de projeto temporário
- fábrica de RunContext com Manifest inicializado

Decisões arquiteturais:
    - Nenhuma fixture executa docker ou processos externos
    - Executores são injetados pelos testes (ver tests/fixtures/executors.py)
    - Imports do core são realizados de forma lazy para
      melhorar a clareza de erros durante falhas

Invariantes:
    - Todo I/O ocorre dentro de `tmp_path`
    - Timestamps fixos são timezone-aware (UTC)

Limites explícitos:
    - Não substituir testes de integração com docker real
"""

import pytest
from datetime import datetime, timezone
from pathlib import Path


# =====================================================
# Definições de pipeline
# =====================================================

@pytest.fixture
def ci_definition_yaml() -> str:
    """
    Fixture que fornece uma definição no formato GitLab CI semelhante ao uso real.

    Estrutura:
        - prepare: `docker` (host shell, tags shell/linux)
        - build: `build` (imagem ${IMAGE}, cache `build`, artefatos em target/)
        - test: `test:cargo` (sem dependências), `test:uhyve` e `test:qemu` (dependem de build)
        - deploy: `deploy:docker` (only: tags, depende de build)

    Returns:
        str: Conteúdo YAML da definição.
    """
    return """\
variables:
  IMAGE: ubuntu:with-hermitcore
  FINAL: rwthos/hermitcore-rs

stages:
  - prepare
  - build
  - test
  - deploy

docker:
  stage: prepare
  script:
    - docker build -t ${IMAGE} .
  tags:
    - shell
    - linux

build:
  stage: build
  script:
    - make all
  image: ${IMAGE}
  cache:
    key: build
    paths:
      - target/kernel
  artifacts:
    paths:
      - target/kernel
  tags:
    - docker

test:cargo:
  stage: test
  script:
    - cargo test --lib
  image: ${IMAGE}
  tags:
    - docker

test:uhyve:
  stage: test
  script:
    - uhyve -v target/kernel/rusty_tests
  image: ${IMAGE}
  dependencies:
    - build
  tags:
    - docker

test:qemu:
  stage: test
  script:
    - make qemu
  image: ${IMAGE}
  dependencies:
    - build
  tags:
    - docker

deploy:docker:
  stage: deploy
  script:
    - docker build -t ${FINAL} .
    - docker push ${FINAL}:${CI_COMMIT_TAG}
  dependencies:
    - build
  tags:
    - shell
    - linux
  only:
    - tags
"""


# =====================================================
# Settings / projeto / contexto
# =====================================================

@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    """Diretório do projeto (checkout) isolado por teste."""
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path: Path):
    """
    Settings determinísticos para testes.

    Cache e runs ficam sob `tmp_path`; nenhum executor é declarado, pois
    os testes injetam executores fake diretamente no Engine.
    """
    from stageflow.core.config.settings import Settings

    return Settings(
        max_parallel_jobs=4,
        persist_manifest=True,
        write_report=True,
        cache_dir=str(tmp_path / "cache"),
        runs_dir=str(tmp_path / "runs"),
        executors=(),
    )


@pytest.fixture
def make_ctx(tmp_path: Path, workdir: Path):
    """
    Fábrica de RunContext com Manifest inicializado.

    Uso:
        ctx = make_ctx()                      # ref branch `main`
        ctx = make_ctx(ref=TriggerRef.tag("v1.0.0"), variables={"A": "1"})
    """
    from stageflow.core.definition.triggers import TriggerRef
    from stageflow.core.pipeline.context import RunContext
    from stageflow.core.traceability.manifest import create_manifest

    def _make(ref=None, variables=None, run_id: str = "run-test-001"):
        created_at = datetime(2026, 1, 16, 0, 0, 0, tzinfo=timezone.utc)
        trigger_ref = ref or TriggerRef.branch("main")
        manifest = create_manifest(
            run_id=run_id,
            started_at=created_at,
            stageflow_version="0.0.0",
            definition_hash="d" * 64,
            trigger_ref=trigger_ref.to_dict(),
        )
        return RunContext(
            run_id=run_id,
            created_at=created_at,
            trigger_ref=trigger_ref,
            workdir=workdir,
            run_dir=tmp_path / "runs" / run_id,
            variables=dict(variables or {}),
            meta={"source": "pytest"},
            manifest=manifest,
        )

    return _make


@pytest.fixture
def cache_store(tmp_path: Path):
    from stageflow.persistence.cache_store import CacheStore

    return CacheStore(cache_dir=tmp_path / "cache")
