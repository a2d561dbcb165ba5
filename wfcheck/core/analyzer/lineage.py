"""
Data Lineage Tracker — Artifact DAG With Provenance Tags
==========================================================
Walks the ordered operations once and resolves every input/output
reference to an Artifact. The result is an immutable LineageGraph that all
rules query, so no rule re-derives provenance on its own.

Provenance propagation:
  sources / no-input ops      → Full
  Split outputs               → Train | Test | Validation (by slot)
  DefineResample outputs      → Resample(parent)
  Define/PrepPreprocessor on
    Full (pre-split) data     → Full, kept verbatim for the leakage rules
  anything else               → Derived(primary input)

The primary input of an operation is its first data-role input, or its
first input when it consumes no data artifacts. Remaining inputs are
recorded as merged_from so branch queries see every contributing split.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional, Set, Tuple

from .errors import DanglingReferenceError, DuplicateArtifactError
from .pipeline_model import (
    ATTR_WORKFLOW, SPLIT_SLOTS, Operation, OperationKind, Pipeline,
)

logger = logging.getLogger(__name__)


class ProvenanceKind(str, Enum):
    FULL = "Full"
    TRAIN = "Train"
    VALIDATION = "Validation"
    TEST = "Test"
    RESAMPLE = "Resample"
    DERIVED = "Derived"


# Root branches a derivation chain can end in
BRANCH_KINDS = (
    ProvenanceKind.FULL, ProvenanceKind.TRAIN,
    ProvenanceKind.VALIDATION, ProvenanceKind.TEST,
)

_SLOT_PROVENANCE = {
    "train": ProvenanceKind.TRAIN,
    "training": ProvenanceKind.TRAIN,
    "test": ProvenanceKind.TEST,
    "testing": ProvenanceKind.TEST,
    "validation": ProvenanceKind.VALIDATION,
    "valid": ProvenanceKind.VALIDATION,
}


class ArtifactRole(str, Enum):
    DATA = "data"
    PREPROCESSOR = "preprocessor"
    RESAMPLE = "resample"
    WORKFLOW = "workflow"
    MODEL = "model"
    RESULTS = "results"
    PREDICTIONS = "predictions"
    METRICS = "metrics"


_ROLE_BY_KIND = {
    OperationKind.DEFINE_PREPROCESSOR: ArtifactRole.PREPROCESSOR,
    OperationKind.PREP_PREPROCESSOR: ArtifactRole.PREPROCESSOR,
    OperationKind.DEFINE_RESAMPLE: ArtifactRole.RESAMPLE,
    OperationKind.FINALIZE_WORKFLOW: ArtifactRole.WORKFLOW,
    OperationKind.TUNE: ArtifactRole.RESULTS,
    OperationKind.SELECT_BEST: ArtifactRole.RESULTS,
    OperationKind.FIT: ArtifactRole.MODEL,
    OperationKind.PREDICT: ArtifactRole.PREDICTIONS,
    OperationKind.EVALUATE: ArtifactRole.METRICS,
}

_PREPROCESSING_KINDS = (OperationKind.DEFINE_PREPROCESSOR, OperationKind.PREP_PREPROCESSOR)


@dataclass(frozen=True)
class Provenance:
    kind: ProvenanceKind
    parent_id: Optional[str] = None

    def __str__(self) -> str:
        if self.kind == ProvenanceKind.DERIVED:
            return f"Derived({self.parent_id})"
        return self.kind.value


@dataclass(frozen=True)
class Artifact:
    id: str
    provenance: Provenance
    role: ArtifactRole = ArtifactRole.DATA
    derived_from: Optional[str] = None
    merged_from: Tuple[str, ...] = ()
    producer: Optional[int] = None  # None for pipeline sources

    @property
    def label(self) -> str:
        return f"artifact:{self.id}"

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "provenance": str(self.provenance),
            "role": self.role.value,
            "derivedFrom": self.derived_from,
            "mergedFrom": list(self.merged_from),
            "producer": self.producer,
        }


class LineageGraph:
    """
    Immutable artifact DAG for one pipeline.
    All queries are pure and memoized; safe to share across rule workers
    once built.
    """

    def __init__(
        self,
        artifacts: Mapping[str, Artifact],
        consumers: Mapping[str, Tuple[int, ...]],
    ):
        self._artifacts = MappingProxyType(dict(artifacts))
        self._consumers = MappingProxyType(dict(consumers))
        self._ancestors: Dict[str, FrozenSet[str]] = {}
        for aid in self._artifacts:
            self._ancestors[aid] = self._compute_ancestors(aid)

    # ── Lookups ──

    def __contains__(self, artifact_id: str) -> bool:
        return artifact_id in self._artifacts

    def __len__(self) -> int:
        return len(self._artifacts)

    @property
    def artifacts(self) -> Mapping[str, Artifact]:
        return self._artifacts

    def get(self, artifact_id: str) -> Artifact:
        return self._artifacts[artifact_id]

    def provenance(self, artifact_id: str) -> Provenance:
        return self._artifacts[artifact_id].provenance

    def role(self, artifact_id: str) -> ArtifactRole:
        return self._artifacts[artifact_id].role

    def producer(self, artifact_id: str) -> Optional[int]:
        return self._artifacts[artifact_id].producer

    def consumers(self, artifact_id: str) -> Tuple[int, ...]:
        return self._consumers.get(artifact_id, ())

    # ── Derivation queries ──

    def _compute_ancestors(self, artifact_id: str) -> FrozenSet[str]:
        # Artifacts only reference earlier ones, so the walk terminates.
        found: Set[str] = set()
        stack = [artifact_id]
        while stack:
            art = self._artifacts[stack.pop()]
            for parent in (art.derived_from, *art.merged_from):
                if parent is not None and parent not in found:
                    found.add(parent)
                    stack.append(parent)
        return frozenset(found)

    def ancestors(self, artifact_id: str) -> FrozenSet[str]:
        return self._ancestors[artifact_id]

    def descendants(self, artifact_id: str) -> FrozenSet[str]:
        return frozenset(
            aid for aid, anc in self._ancestors.items() if artifact_id in anc
        )

    def is_derived_from(self, artifact_id: str, ancestor_id: str) -> bool:
        return ancestor_id in self._ancestors[artifact_id]

    def branch(self, artifact_id: str) -> ProvenanceKind:
        """Root split branch reached by following the primary derivation chain."""
        current: Optional[str] = artifact_id
        while current is not None:
            art = self._artifacts[current]
            if art.provenance.kind in BRANCH_KINDS:
                return art.provenance.kind
            current = art.derived_from
        return ProvenanceKind.FULL

    def branches(self, artifact_id: str) -> FrozenSet[ProvenanceKind]:
        """Every root branch that contributed to an artifact, merged inputs included."""
        out: Set[ProvenanceKind] = set()
        seen: Set[str] = set()
        stack = [artifact_id]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            art = self._artifacts[current]
            if art.provenance.kind in BRANCH_KINDS:
                out.add(art.provenance.kind)
                continue
            parents = [p for p in (art.derived_from, *art.merged_from) if p is not None]
            if not parents:
                out.add(ProvenanceKind.FULL)
            stack.extend(parents)
        return frozenset(out)

    def split_origin(self, artifact_id: str) -> Optional[int]:
        """Operation id of the Split whose output this artifact descends from."""
        current: Optional[str] = artifact_id
        while current is not None:
            art = self._artifacts[current]
            if art.provenance.kind in (
                ProvenanceKind.TRAIN, ProvenanceKind.TEST, ProvenanceKind.VALIDATION,
            ):
                return art.producer
            current = art.derived_from
        return None

    def resample_ancestors(self, artifact_id: str) -> FrozenSet[str]:
        """Resample-scheme artifacts among the artifact and its ancestors."""
        pool = {artifact_id} | set(self._ancestors[artifact_id])
        return frozenset(
            aid for aid in pool
            if self._artifacts[aid].provenance.kind == ProvenanceKind.RESAMPLE
        )

    def inputs_of_role(self, op: Operation, *roles: ArtifactRole) -> List[str]:
        return [aid for aid in op.input_ids if self._artifacts[aid].role in roles]

    def data_inputs(self, op: Operation) -> List[str]:
        return self.inputs_of_role(op, ArtifactRole.DATA)

    def upstream_operations(self, op: Operation) -> FrozenSet[int]:
        """Ids of every operation whose output feeds op, directly or transitively."""
        out: Set[int] = set()
        for aid in op.input_ids:
            for a in (aid, *self._ancestors[aid]):
                producer = self._artifacts[a].producer
                if producer is not None:
                    out.add(producer)
        return frozenset(out)

    def to_dict(self) -> Dict[str, object]:
        return {aid: art.to_dict() for aid, art in sorted(self._artifacts.items())}


class LineageTracker:
    """Builds a LineageGraph from a Pipeline. Raises on malformed pipelines."""

    def build(self, pipeline: Pipeline) -> LineageGraph:
        artifacts: Dict[str, Artifact] = {}
        consumers: Dict[str, List[int]] = {}

        for source_id in pipeline.sources:
            artifacts[source_id] = Artifact(
                id=source_id, provenance=Provenance(ProvenanceKind.FULL),
            )

        for op in pipeline.operations:
            for aid in op.input_ids:
                if aid not in artifacts:
                    raise DanglingReferenceError(aid, op.id)
                consumers.setdefault(aid, []).append(op.id)

            primary, merged = self._primary_input(op, artifacts)
            for position, ref in enumerate(op.outputs):
                if ref.artifact_id in artifacts:
                    raise DuplicateArtifactError(
                        ref.artifact_id, op.id, artifacts[ref.artifact_id].producer,
                    )
                artifacts[ref.artifact_id] = Artifact(
                    id=ref.artifact_id,
                    provenance=self._provenance(op, ref.slot, position, primary, artifacts),
                    role=self._role(op),
                    derived_from=primary,
                    merged_from=merged,
                    producer=op.id,
                )

        graph = LineageGraph(
            artifacts, {aid: tuple(ids) for aid, ids in consumers.items()},
        )
        logger.debug(
            f"Lineage built: {len(graph)} artifacts across {len(pipeline)} operations"
        )
        return graph

    @staticmethod
    def _primary_input(
        op: Operation, artifacts: Mapping[str, Artifact],
    ) -> Tuple[Optional[str], Tuple[str, ...]]:
        ids = op.input_ids
        if not ids:
            return None, ()
        data = [aid for aid in ids if artifacts[aid].role == ArtifactRole.DATA]
        primary = data[0] if data else ids[0]
        return primary, tuple(aid for aid in ids if aid != primary)

    @staticmethod
    def _role(op: Operation) -> ArtifactRole:
        if op.flag(ATTR_WORKFLOW):
            return ArtifactRole.WORKFLOW
        return _ROLE_BY_KIND.get(op.kind, ArtifactRole.DATA)

    @staticmethod
    def _slot_provenance(slot: Optional[str], position: int) -> ProvenanceKind:
        if slot is None:
            slot = SPLIT_SLOTS[position] if position < len(SPLIT_SLOTS) else "validation"
        return _SLOT_PROVENANCE.get(str(slot).lower(), ProvenanceKind.VALIDATION)

    def _provenance(
        self,
        op: Operation,
        slot: Optional[str],
        position: int,
        primary: Optional[str],
        artifacts: Mapping[str, Artifact],
    ) -> Provenance:
        if op.kind == OperationKind.SPLIT:
            return Provenance(self._slot_provenance(slot, position), primary)
        if primary is None:
            return Provenance(ProvenanceKind.FULL)
        if op.kind == OperationKind.DEFINE_RESAMPLE:
            return Provenance(ProvenanceKind.RESAMPLE, primary)
        if op.kind in _PREPROCESSING_KINDS and self._root_branch(primary, artifacts) == ProvenanceKind.FULL:
            return Provenance(ProvenanceKind.FULL, primary)
        return Provenance(ProvenanceKind.DERIVED, primary)

    @staticmethod
    def _root_branch(artifact_id: str, artifacts: Mapping[str, Artifact]) -> ProvenanceKind:
        current: Optional[str] = artifact_id
        while current is not None:
            art = artifacts[current]
            if art.provenance.kind in BRANCH_KINDS:
                return art.provenance.kind
            current = art.derived_from
        return ProvenanceKind.FULL
