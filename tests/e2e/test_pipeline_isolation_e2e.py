"""
Isolation E2E — Stageflow

Valida a visibilidade de artefatos entre jobs de uma run:
- um job sem `dependencies` não enxerga o que o build produziu
- um job cujo cache cobre o artefato da dependência lê sempre o artefato
  da run atual, nunca a cópia antiga restaurada do cache
"""

from __future__ import annotations

from pathlib import Path

from stageflow.core.definition.loader import loads_definition
from stageflow.core.definition.triggers import TriggerRef
from stageflow.core.pipeline.types import PipelineStatus

from tests.e2e._helpers import make_engine
from tests.fixtures.executors import FakeExecutor, read_file, write_files


KERNEL_BIN = "out/kernel.bin"

DEFINITION = """\
stages: [build, test]

build:
  stage: build
  script: [make kernel]
  artifacts:
    paths: [out/kernel.bin]

consumer:
  stage: test
  script: [boot]
  dependencies: [build]
  cache:
    key: consumer
    paths: [out/kernel.bin]

unrelated:
  stage: test
  script: [lint]
"""


def _host(version: str, booted: dict, linted: dict) -> FakeExecutor:
    def _lint(workdir: Path, env) -> None:
        linted["kernel_visible"] = (workdir / KERNEL_BIN).exists()

    return FakeExecutor(
        "host",
        actions={
            "make kernel": write_files({KERNEL_BIN: version}),
            "boot": read_file(KERNEL_BIN, booted),
            "lint": _lint,
        },
    )


def test_job_without_dependencies_cannot_see_build_output(workdir: Path, settings) -> None:
    booted, linted = {}, {}
    engine = make_engine(workdir, settings, [_host("v1", booted, linted)])

    result = engine.run(loads_definition(DEFINITION), TriggerRef.branch("main"), run_id="run-iso")

    assert result.status == PipelineStatus.SUCCESS
    assert booted[KERNEL_BIN] == "v1"
    assert linted == {"kernel_visible": False}
    assert result.artifacts["build"] == (KERNEL_BIN,)
    assert not (workdir / "out").exists()


def test_fresh_artifact_wins_over_cached_copy_across_runs(workdir: Path, settings) -> None:
    definition = loads_definition(DEFINITION)

    booted_1 = {}
    first = make_engine(workdir, settings, [_host("v1", booted_1, {})]).run(
        definition, TriggerRef.branch("main"), run_id="run-1"
    )
    assert first.status == PipelineStatus.SUCCESS
    assert first.jobs["consumer"].cache_hit is False
    assert booted_1[KERNEL_BIN] == "v1"

    booted_2 = {}
    second = make_engine(workdir, settings, [_host("v2", booted_2, {})]).run(
        definition, TriggerRef.branch("main"), run_id="run-2"
    )

    assert second.status == PipelineStatus.SUCCESS
    assert second.jobs["consumer"].cache_hit is True
    assert booted_2[KERNEL_BIN] == "v2"
