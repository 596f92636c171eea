# tests/test_cli.py
"""
Testes da interface de linha de comando (`stageflow validate` / `stageflow run`).

Cobre:
- listagem do plano por stage e códigos de saída do `validate`
- run real com executor shell do host (configurado via --config)
- propagação de falha de comando → exit code 1
- erros de definição e de configuração → exit code 2

Os testes de `run` usam /bin/sh e são ignorados quando ele não existe.
"""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from stageflow.cli import EXIT_DEFINITION_ERROR, EXIT_FAILED, EXIT_SUCCESS, main
from stageflow.core.fs import stable_dirname


needs_sh = pytest.mark.skipif(shutil.which("sh") is None, reason="requires a POSIX shell")


DEFINITION = """\
variables:
  GREETING: hello

stages: [build, test, deploy]

build:
  stage: build
  script:
    - mkdir -p out
    - echo "$GREETING" > out/msg.txt
  artifacts:
    paths: [out]

check:
  stage: test
  script:
    - test -f out/msg.txt
  dependencies: [build]

release:
  stage: deploy
  script:
    - echo "$CI_COMMIT_TAG" > released.txt
  only: [tags]
"""

LOCAL_CONFIG = """\
engine:
  max_parallel_jobs: 2
storage:
  cache_dir: .sf/cache
  runs_dir: .sf/runs
executors:
  - name: host
    kind: shell
"""


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "proj"
    root.mkdir()
    (root / ".stageflow.yml").write_text(DEFINITION, encoding="utf-8")
    (root / "local.yaml").write_text(LOCAL_CONFIG, encoding="utf-8")
    return root


def _run_args(project: Path, *extra: str):
    return ["run", "--workdir", str(project), "--config", str(project / "local.yaml"), *extra]


def _published(project: Path, run_id: str, job: str, rel: str) -> Path:
    return project / ".sf" / "runs" / run_id / "artifacts" / stable_dirname(job) / rel


def _job_file(project: Path, run_id: str, job: str, rel: str) -> Path:
    return project / ".sf" / "runs" / run_id / "jobs" / stable_dirname(job) / rel


def test_validate_lists_plan(project: Path, capsys) -> None:
    code = main(["validate", "--workdir", str(project)])
    out = capsys.readouterr().out.splitlines()

    assert code == EXIT_SUCCESS
    assert out == ["build: build", "test: check", "deploy: release", "definition OK"]


def test_validate_rejects_forward_dependency(tmp_path: Path, capsys) -> None:
    path = tmp_path / "bad.yml"
    path.write_text(
        "stages: [build, test]\n"
        "a: {stage: build, script: [x], dependencies: [b]}\n"
        "b: {stage: test, script: [y]}\n",
        encoding="utf-8",
    )

    code = main(["validate", str(path)])

    assert code == EXIT_DEFINITION_ERROR
    assert capsys.readouterr().err.startswith("error:")


def test_missing_definition_is_exit_2(tmp_path: Path, capsys) -> None:
    code = main(["validate", "--workdir", str(tmp_path)])
    assert code == EXIT_DEFINITION_ERROR
    assert "error:" in capsys.readouterr().err


def test_invalid_config_is_exit_2(project: Path, capsys) -> None:
    (project / "local.yaml").write_text("engine:\n  max_parallel_jobs: 0\n", encoding="utf-8")

    code = main(_run_args(project, "--branch", "main"))

    assert code == EXIT_DEFINITION_ERROR
    assert "max_parallel_jobs" in capsys.readouterr().err


@needs_sh
def test_run_branch_succeeds(project: Path, capsys) -> None:
    code = main(_run_args(project, "--branch", "main", "--run-id", "cli-1"))
    out = capsys.readouterr().out

    assert code == EXIT_SUCCESS
    assert "run cli-1: success" in out
    assert _published(project, "cli-1", "build", "out/msg.txt").read_text(encoding="utf-8").strip() == "hello"
    assert not _job_file(project, "cli-1", "release", "released.txt").exists()
    assert not (project / "out").exists()
    assert (project / ".sf" / "runs" / "cli-1" / "manifest.json").is_file()


@needs_sh
def test_run_tag_with_variable_override(project: Path, capsys) -> None:
    code = main(_run_args(project, "--ref", "refs/tags/v1.2.0", "--var", "GREETING=bye", "--run-id", "cli-2"))

    assert code == EXIT_SUCCESS
    assert _job_file(project, "cli-2", "release", "released.txt").read_text(encoding="utf-8").strip() == "v1.2.0"
    assert _published(project, "cli-2", "build", "out/msg.txt").read_text(encoding="utf-8").strip() == "bye"
    assert "release" in capsys.readouterr().out


@needs_sh
def test_run_command_failure_is_exit_1(project: Path, capsys) -> None:
    text = DEFINITION.replace("test -f out/msg.txt", "exit 3")
    (project / ".stageflow.yml").write_text(text, encoding="utf-8")

    code = main(_run_args(project, "--tag", "v1.0.0", "--run-id", "cli-3"))
    captured = capsys.readouterr()

    assert code == EXIT_FAILED
    assert "run cli-3: failed" in captured.out
    assert "STAGE_FAILURE" in captured.err
    assert not _job_file(project, "cli-3", "release", "released.txt").exists()


def test_run_cycle_is_recorded_as_definition_error(project: Path, capsys) -> None:
    (project / ".stageflow.yml").write_text(
        "stages: [build]\n"
        "a: {stage: build, script: [x], dependencies: [b]}\n"
        "b: {stage: build, script: [y], dependencies: [a]}\n",
        encoding="utf-8",
    )

    code = main(_run_args(project, "--branch", "main", "--run-id", "cli-4"))
    captured = capsys.readouterr()

    assert code == EXIT_DEFINITION_ERROR
    assert "run cli-4: definition_error" in captured.out
    assert "DEFINITION_ERROR" in captured.err
    assert (project / ".sf" / "runs" / "cli-4" / "manifest.json").is_file()
