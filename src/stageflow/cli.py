"""
Interface de linha de comando do Stageflow.

Comandos:
    stageflow run [DEFINITION] (--ref REF | --tag TAG | --branch BRANCH)
                  [--workdir DIR] [--config FILE] [--var NAME=VALUE]... [--run-id ID]
    stageflow validate [DEFINITION] [--var NAME=VALUE]...

Códigos de saída:
    0 → sucesso
    1 → run com falha
    2 → erro de definição ou de configuração
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Dict, List, Optional

from stageflow import __version__
from stageflow.core.config.errors import ConfigError
from stageflow.core.exceptions import DefinitionError


DEFAULT_DEFINITION = ".stageflow.yml"

EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_DEFINITION_ERROR = 2


def _parse_vars(values: Optional[List[str]]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for item in values or []:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise argparse.ArgumentTypeError(f"--var expects NAME=VALUE, got: {item!r}")
        out[name.strip()] = value
    return out


def _add_definition_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "definition",
        nargs="?",
        default=None,
        help=f"pipeline definition file (default: <workdir>/{DEFAULT_DEFINITION})",
    )
    parser.add_argument("--workdir", default=".", help="project directory (default: .)")
    parser.add_argument(
        "--var",
        action="append",
        metavar="NAME=VALUE",
        help="override a pipeline variable (repeatable)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stageflow", add_help=True)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the pipeline for a ref")
    _add_definition_args(run)
    ref = run.add_mutually_exclusive_group(required=True)
    ref.add_argument("--ref", help="trigger ref (refs/tags/X, refs/heads/X or a branch name)")
    ref.add_argument("--tag", help="trigger the run as a release tag")
    ref.add_argument("--branch", help="trigger the run as a branch")
    run.add_argument("--config", default=None, help="local settings file (YAML/JSON)")
    run.add_argument("--run-id", default=None, help="explicit run identifier")

    validate = sub.add_parser("validate", help="Validate the pipeline definition only")
    _add_definition_args(validate)

    return parser


def _definition_path(args: argparse.Namespace) -> Path:
    if args.definition:
        return Path(args.definition)
    return Path(args.workdir) / DEFAULT_DEFINITION


def _cmd_validate(args: argparse.Namespace) -> int:
    from stageflow.core.definition.loader import load_definition
    from stageflow.core.engine.planner import validate_definition

    definition = load_definition(_definition_path(args), variables=_parse_vars(args.var), validate=False)
    plan = validate_definition(definition)
    for stage in plan.stages:
        names = [job.name for job in plan.jobs_for(stage)]
        print(f"{stage}: {', '.join(names) if names else '-'}")
    print("definition OK")
    return EXIT_SUCCESS


def _cmd_run(args: argparse.Namespace) -> int:
    from stageflow.core.config.settings import load_settings
    from stageflow.core.definition.loader import load_definition
    from stageflow.core.definition.triggers import TriggerRef
    from stageflow.core.engine.engine import Engine
    from stageflow.core.pipeline.types import PipelineStatus

    if args.tag:
        trigger_ref = TriggerRef.tag(args.tag)
    elif args.branch:
        trigger_ref = TriggerRef.branch(args.branch)
    else:
        trigger_ref = TriggerRef.parse(args.ref)

    settings = load_settings(args.config)
    # erros de grafo são registrados pela run (status definition_error)
    definition = load_definition(_definition_path(args), variables=_parse_vars(args.var), validate=False)

    engine = Engine(workdir=Path(args.workdir), settings=settings)
    result = engine.run(definition, trigger_ref, run_id=args.run_id)

    table = result.job_table()
    if not table.empty:
        print(table.to_string(index=False))
    if result.error is not None:
        print(f"error: [{result.error.type}] {result.error.message}", file=sys.stderr)
    print(f"run {result.run_id}: {result.status.value}")
    print(f"run dir: {result.run_dir}")

    if result.status == PipelineStatus.SUCCESS:
        return EXIT_SUCCESS
    if result.status == PipelineStatus.DEFINITION_ERROR:
        return EXIT_DEFINITION_ERROR
    return EXIT_FAILED


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        if args.command == "validate":
            return _cmd_validate(args)
        if args.command == "run":
            return _cmd_run(args)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))
    except (DefinitionError, ConfigError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        hint = getattr(exc, "hint", None)
        if hint:
            print(f"hint: {hint}", file=sys.stderr)
        return EXIT_DEFINITION_ERROR

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
