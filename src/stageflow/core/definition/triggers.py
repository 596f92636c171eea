# src/stageflow/core/definition/triggers.py
"""
Trigger Gate: admissão condicional de jobs por run.

Este módulo define a referência que disparou a run (`TriggerRef`) e os
predicados compostos que decidem se um job é admitido naquela run.

O Trigger Gate é a única primitiva de execução condicional do Stageflow.
Ele é avaliado uma única vez por job por run, pelo Stage Scheduler, antes
da resolução de ambiente: um job rejeitado não consome ambiente nem
comandos, e é registrado com status `skipped`.

Componentes principais:
    - RefKind / TriggerRef → classificação da ref (branch ou tag)
    - TriggerGate          → protocolo de predicado sobre a ref
    - AlwaysAdmit, RefKindGate, RefNameGate, AnyOf, AllOf, Not → predicados compostos
    - gate_from_clauses    → tradução das cláusulas `only` / `except`
    - admits               → contrato `admits(job, trigger_ref) -> bool`

Invariantes:
    - O predicado padrão admite qualquer ref
    - Predicados são imutáveis e serializáveis via `describe()`
    - Novos tipos de trigger não exigem mudança no Job Runner
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, Iterable, Optional, Protocol, Tuple, Union, runtime_checkable


TAGS_KEYWORD = "tags"
BRANCHES_KEYWORD = "branches"


class RefKind(str, Enum):
    """Classificação da ref que disparou a run."""

    BRANCH = "branch"
    TAG = "tag"


@dataclass(frozen=True)
class TriggerRef:
    """
    Ref (branch ou tag) associada a uma invocação do pipeline.

    Uma ref classificada como `tag` representa uma release; é a condição
    exigida por jobs restritos com `only: tags`.
    """

    name: str
    kind: RefKind = RefKind.BRANCH

    @property
    def is_tag(self) -> bool:
        return self.kind == RefKind.TAG

    @classmethod
    def branch(cls, name: str) -> "TriggerRef":
        return cls(name=name, kind=RefKind.BRANCH)

    @classmethod
    def tag(cls, name: str) -> "TriggerRef":
        return cls(name=name, kind=RefKind.TAG)

    @classmethod
    def parse(cls, value: str, *, kind: Optional[RefKind] = None) -> "TriggerRef":
        """Interpreta `refs/tags/X`, `refs/heads/X` ou um nome simples."""
        if not isinstance(value, str) or not value.strip():
            raise ValueError("trigger ref must be a non-empty string")
        value = value.strip()
        if value.startswith("refs/tags/"):
            return cls.tag(value[len("refs/tags/"):])
        if value.startswith("refs/heads/"):
            return cls.branch(value[len("refs/heads/"):])
        return cls(name=value, kind=kind or RefKind.BRANCH)

    def to_dict(self) -> dict:
        return {"name": self.name, "kind": self.kind.value}


@runtime_checkable
class TriggerGate(Protocol):
    """Predicado sobre os metadados da run que decide a admissão de um job."""

    def admits(self, ref: TriggerRef) -> bool:
        ...

    def describe(self) -> Any:
        ...


@dataclass(frozen=True)
class AlwaysAdmit:
    def admits(self, ref: TriggerRef) -> bool:
        return True

    def describe(self) -> Any:
        return "always"


@dataclass(frozen=True)
class RefKindGate:
    """Admite apenas refs de um tipo (`tags` ou `branches`)."""

    kind: RefKind

    def admits(self, ref: TriggerRef) -> bool:
        return ref.kind == self.kind

    def describe(self) -> Any:
        return TAGS_KEYWORD if self.kind == RefKind.TAG else BRANCHES_KEYWORD


@dataclass(frozen=True)
class RefNameGate:
    """Admite refs cujo nome está em um conjunto literal."""

    names: FrozenSet[str]

    def admits(self, ref: TriggerRef) -> bool:
        return ref.name in self.names

    def describe(self) -> Any:
        return sorted(self.names)


@dataclass(frozen=True)
class AnyOf:
    gates: Tuple[TriggerGate, ...]

    def admits(self, ref: TriggerRef) -> bool:
        return any(g.admits(ref) for g in self.gates)

    def describe(self) -> Any:
        return {"any_of": [g.describe() for g in self.gates]}


@dataclass(frozen=True)
class AllOf:
    gates: Tuple[TriggerGate, ...]

    def admits(self, ref: TriggerRef) -> bool:
        return all(g.admits(ref) for g in self.gates)

    def describe(self) -> Any:
        return {"all_of": [g.describe() for g in self.gates]}


@dataclass(frozen=True)
class Not:
    gate: TriggerGate

    def admits(self, ref: TriggerRef) -> bool:
        return not self.gate.admits(ref)

    def describe(self) -> Any:
        return {"not": self.gate.describe()}


ALWAYS = AlwaysAdmit()


def _clause_gate(values: Iterable[str]) -> TriggerGate:
    gates = []
    names = []
    for value in values:
        if value == TAGS_KEYWORD:
            gates.append(RefKindGate(RefKind.TAG))
        elif value == BRANCHES_KEYWORD:
            gates.append(RefKindGate(RefKind.BRANCH))
        else:
            names.append(value)
    if names:
        gates.append(RefNameGate(frozenset(names)))
    if len(gates) == 1:
        return gates[0]
    return AnyOf(tuple(gates))


def gate_from_clauses(
    only: Optional[Iterable[str]] = None,
    except_: Optional[Iterable[str]] = None,
) -> TriggerGate:
    """
    Constrói o predicado de um job a partir das cláusulas `only` e `except`.

    Valores aceitos em cada cláusula:
        - `tags`     → refs classificadas como tag (release)
        - `branches` → refs classificadas como branch
        - qualquer outro valor → nome literal de ref

    Cláusulas ausentes ou vazias não restringem a admissão.
    """
    only_values = list(only or [])
    except_values = list(except_ or [])

    gates = []
    if only_values:
        gates.append(_clause_gate(only_values))
    if except_values:
        gates.append(Not(_clause_gate(except_values)))

    if not gates:
        return ALWAYS
    if len(gates) == 1:
        return gates[0]
    return AllOf(tuple(gates))


def admits(job: Any, trigger_ref: Union[TriggerRef, str]) -> bool:
    """Contrato do Trigger Gate: o job é admitido para esta ref?"""
    ref = trigger_ref if isinstance(trigger_ref, TriggerRef) else TriggerRef.parse(trigger_ref)
    gate = getattr(job, "trigger", None) or ALWAYS
    return bool(gate.admits(ref))
