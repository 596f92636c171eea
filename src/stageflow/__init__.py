# src/stageflow/__init__.py
"""
Stageflow — orquestrador declarativo de pipelines de CI em stages.

Um pipeline é uma sequência ordenada de stages; cada stage contém jobs
executados concorrentemente em ambientes resolvidos por tags e imagem.
Artefatos fluem de stages anteriores para posteriores, caches persistem
entre runs e jobs podem ser condicionados à ref que disparou a run.

Arquitetura em alto nível:
    - core.config       → defaults, overrides locais, hashing e Settings
    - core.definition   → modelo e loader da definição (YAML)
    - core.engine       → validação, executores, Job Runner, Stage Scheduler, Engine
    - core.pipeline     → estados de execução, RunContext e ArtifactBag
    - core.traceability → Manifest e Event Log
    - persistence       → cache entre runs
    - report            → report.md e tabela de jobs
    - cli               → `stageflow run` / `stageflow validate`
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
