"""
src/stageflow/report/report_md.py

Gerador canônico de `report.md` (v1) — Stageflow

Regras:
- O report.md é derivado EXCLUSIVAMENTE do Manifest final.
- Não infere, não recalcula, não acessa filesystem.
- Mesmo Manifest => mesmo report.md (determinismo por ordenação estável).

Estrutura mínima obrigatória:
# Pipeline Report

## Summary
## Stages
## Jobs
## Artifacts
## Caches
## Errors
## Execution Metadata
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Tuple


REQUIRED_SECTIONS: List[str] = [
    "# Pipeline Report",
    "## Summary",
    "## Stages",
    "## Jobs",
    "## Artifacts",
    "## Caches",
    "## Errors",
    "## Execution Metadata",
]


def _sorted_items(d: Any) -> List[Tuple[str, Any]]:
    if not isinstance(d, dict):
        return []
    return sorted(d.items(), key=lambda kv: kv[0])


def _as_pretty_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True, indent=2)


def _require_manifest(manifest: Any) -> Dict[str, Any]:
    if hasattr(manifest, "to_dict"):
        manifest = manifest.to_dict()
    if not isinstance(manifest, dict) or not manifest:
        raise ValueError("Manifest is required to generate report.md")
    return manifest


def _section(value: Any, kind: type) -> Any:
    return value if isinstance(value, kind) else kind()


def generate_report_md(manifest: Any) -> str:
    """Gera o conteúdo completo do report.md a partir do Manifest final."""
    manifest = _require_manifest(manifest)

    run = _section(manifest.get("run"), dict)
    inputs = _section(manifest.get("inputs"), dict)
    stages = _section(manifest.get("stages"), dict)
    jobs = _section(manifest.get("jobs"), dict)
    events = _section(manifest.get("events"), list)

    lines: List[str] = []

    lines.append("# Pipeline Report\n")

    # Summary
    lines.append("## Summary")
    ref = run.get("trigger_ref") if isinstance(run.get("trigger_ref"), dict) else {}
    lines.append(f"- **Run ID**: `{run.get('run_id', '<unknown>')}`")
    lines.append(f"- **Status**: `{run.get('status', '<unknown>')}`")
    lines.append(f"- **Trigger Ref**: `{ref.get('name', '<unknown>')}` ({ref.get('kind', 'unknown')})")
    lines.append(f"- **Started At (UTC)**: `{run.get('started_at', '<unknown>')}`")
    lines.append(f"- **Finished At (UTC)**: `{run.get('finished_at', '<unknown>')}`")
    lines.append(f"- **Stageflow Version**: `{run.get('stageflow_version', '<unknown>')}`")
    lines.append("")

    # Stages (ordem de registro = ordem declarada)
    lines.append("## Stages")
    if stages:
        for name, stage in stages.items():
            if not isinstance(stage, dict):
                continue
            job_names = ", ".join(stage.get("jobs", []) or []) or "-"
            lines.append(f"- **{name}** — status: `{stage.get('status', 'unknown')}` — jobs: {job_names}")
    else:
        lines.append("No stages recorded in the Manifest.")
    lines.append("")

    # Jobs
    lines.append("## Jobs")
    if jobs:
        lines.append("| job | stage | status | exit code | duration (ms) | reason |")
        lines.append("|---|---|---|---|---|---|")
        for name, job in _sorted_items(jobs):
            if not isinstance(job, dict):
                continue
            exit_code = job.get("exit_code")
            duration = job.get("duration_ms")
            lines.append(
                f"| {name} | {job.get('stage', '')} | {job.get('status', 'unknown')} | "
                f"{'' if exit_code is None else exit_code} | "
                f"{'' if duration is None else duration} | {job.get('reason') or ''} |"
            )
    else:
        lines.append("No jobs recorded in the Manifest.")
    lines.append("")

    # Artifacts
    lines.append("## Artifacts")
    published = [
        (name, job.get("artifacts"))
        for name, job in _sorted_items(jobs)
        if isinstance(job, dict) and job.get("artifacts")
    ]
    if published:
        for name, paths in published:
            for path in paths:
                lines.append(f"- `{path}` (produced_by: `{name}`)")
    else:
        lines.append("No artifacts published in this run.")
    lines.append("")

    # Caches
    lines.append("## Caches")
    cached = [
        (name, job)
        for name, job in _sorted_items(jobs)
        if isinstance(job, dict) and job.get("cache_key")
    ]
    if cached:
        for name, job in cached:
            hit = job.get("cache_hit")
            state = "hit" if hit else ("miss" if hit is False else "n/a")
            lines.append(f"- **{name}** — key: `{job['cache_key']}` — restore: `{state}`")
    else:
        lines.append("No cache keys used in this run.")
    saves = [
        e.get("payload", {}).get("cache", {})
        for e in events
        if isinstance(e, dict) and e.get("event_type") == "cache_saved"
    ]
    for entry in saves:
        lines.append(f"- saved `{entry.get('key')}`: {', '.join(entry.get('paths', []) or []) or '-'}")
    lines.append("")

    # Errors
    lines.append("## Errors")
    errors: List[Tuple[str, Dict[str, Any]]] = [
        (name, job["error"])
        for name, job in _sorted_items(jobs)
        if isinstance(job, dict) and isinstance(job.get("error"), dict)
    ]
    if isinstance(run.get("error"), dict):
        errors.append(("run", run["error"]))
    if errors:
        for scope, err in errors:
            lines.append(f"- **{scope}** — `{err.get('type')}`: {err.get('message')}")
            if err.get("hint"):
                lines.append(f"  - hint: {err['hint']}")
    else:
        lines.append("No errors recorded.")
    lines.append("")

    # Execution Metadata
    lines.append("## Execution Metadata")
    lines.append(f"- Events recorded: `{len(events)}`")
    lines.append("### run")
    lines.append("```json")
    lines.append(_as_pretty_json(run))
    lines.append("```")
    lines.append("### inputs")
    lines.append("```json")
    lines.append(_as_pretty_json(inputs))
    lines.append("```")

    content = "\n".join(lines)

    for sec in REQUIRED_SECTIONS:
        if sec not in content:
            raise RuntimeError(f"Report generation failed: missing required section: {sec}")

    return content
