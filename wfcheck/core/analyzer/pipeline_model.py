"""
Pipeline Model — Ordered Operations Over Data Artifacts
=========================================================
In-memory form of a modeling pipeline handed over by an external source
parser. The analyzer never parses host-language code; it only reads this.

  Pipeline
    ├── sources     — artifact ids that exist before the first operation
    ├── metadata    — pipeline-level flags surfaced by the parser
    └── operations  — ordered Operation records
          ├── kind        — closed OperationKind vocabulary
          ├── inputs      — ArtifactRef consumed
          ├── outputs     — ArtifactRef produced (Split uses slots)
          ├── location    — file + line range, reporting only
          └── attributes  — rule-relevant flags (read-only mapping)

Everything is frozen after construction. Rules may share one Pipeline
across threads without copying.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .errors import PipelineModelError


class OperationKind(str, Enum):
    SPLIT = "Split"
    DEFINE_PREPROCESSOR = "DefinePreprocessor"
    PREP_PREPROCESSOR = "PrepPreprocessor"
    APPLY_PREPROCESSOR = "ApplyPreprocessor"
    DEFINE_RESAMPLE = "DefineResample"
    TUNE = "Tune"
    SELECT_BEST = "SelectBest"
    FINALIZE_WORKFLOW = "FinalizeWorkflow"
    FIT = "Fit"
    PREDICT = "Predict"
    EVALUATE = "Evaluate"
    SET_SEED = "SetSeed"
    OTHER = "Other"


# Split output slots, in positional fallback order
SPLIT_SLOTS = ("train", "test", "validation")

# Attribute keys the rule catalog reads
ATTR_STRATIFIED = "stratified"
ATTR_OUTCOME_IMBALANCED = "outcomeImbalanced"
ATTR_TARGET_ENCODING = "targetEncoding"
ATTR_FEATURE_SELECTION = "featureSelection"
ATTR_SEED = "seed"
ATTR_RANDOMIZED = "randomized"
ATTR_METHOD = "method"
ATTR_WORKFLOW = "workflow"
ATTR_PARAMS = "params"
ATTR_METRICS = "metrics"
ATTR_MODE = "mode"
ATTR_PROBABILISTIC = "probabilistic"
ATTR_INTERVAL = "interval"
ATTR_VARIANCE = "variance"
ATTR_STD_ERR = "stdErr"
ATTR_COMPARISON = "comparison"
ATTR_MODEL_SELECTION = "modelSelection"
ATTR_IO = "io"
ATTR_PATH = "path"
ATTR_LITERAL_PATH = "literalPath"
ATTR_MARKER = "marker"

MARKER_NAMESPACE = "namespacePreference"
MARKER_SESSION = "sessionInfo"

# Pipeline-level metadata keys
META_OUTCOME_IMBALANCED = "outcomeImbalanced"
META_DEPENDENCY_LOCK = "dependencyLock"
META_STRICT_REPRODUCIBILITY = "strictReproducibility"


@dataclass(frozen=True)
class SourceLocation:
    file: Optional[str] = None
    line: Optional[int] = None
    end_line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.file is not None:
            out["file"] = self.file
        if self.line is not None:
            out["line"] = self.line
        if self.end_line is not None:
            out["endLine"] = self.end_line
        return out

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SourceLocation":
        if not data:
            return cls()
        return cls(
            file=data.get("file"),
            line=data.get("line"),
            end_line=data.get("endLine", data.get("end_line")),
        )


@dataclass(frozen=True)
class ArtifactRef:
    artifact_id: str
    slot: Optional[str] = None

    @classmethod
    def coerce(cls, value: Union[str, "ArtifactRef", Mapping[str, Any]]) -> "ArtifactRef":
        if isinstance(value, ArtifactRef):
            return value
        if isinstance(value, str):
            return cls(value)
        if isinstance(value, Mapping) and value.get("id"):
            return cls(str(value["id"]), value.get("slot"))
        raise PipelineModelError(f"Cannot interpret artifact reference: {value!r}")


def _freeze(value: Any) -> Any:
    """Recursively turn dicts into read-only mappings and lists into tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze(v) for v in value)
    return value


def _dedupe(refs: Iterable[ArtifactRef]) -> Tuple[ArtifactRef, ...]:
    seen = set()
    out = []
    for ref in refs:
        if ref.artifact_id in seen:
            continue
        seen.add(ref.artifact_id)
        out.append(ref)
    return tuple(out)


def _wire_list(value: Any, key: str, where: str) -> Tuple[Any, ...]:
    """A JSON array field; a bare string would otherwise split into characters."""
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise PipelineModelError(f"'{key}' of {where} must be a list, got {type(value).__name__}")
    return tuple(value)


def _wire_mapping(value: Any, key: str, where: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise PipelineModelError(f"'{key}' of {where} must be an object, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class Operation:
    id: int
    kind: OperationKind
    inputs: Tuple[ArtifactRef, ...] = ()
    outputs: Tuple[ArtifactRef, ...] = ()
    location: SourceLocation = field(default_factory=SourceLocation)
    attributes: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}), compare=False)

    def __post_init__(self):
        object.__setattr__(self, "kind", OperationKind(self.kind))
        object.__setattr__(self, "inputs", _dedupe(ArtifactRef.coerce(r) for r in self.inputs))
        object.__setattr__(self, "outputs", _dedupe(ArtifactRef.coerce(r) for r in self.outputs))
        if not isinstance(self.attributes, MappingProxyType):
            if self.attributes is not None and not isinstance(self.attributes, Mapping):
                raise PipelineModelError(f"Attributes of op#{self.id} must be a mapping")
            object.__setattr__(self, "attributes", _freeze(dict(self.attributes or {})))

    @property
    def label(self) -> str:
        return f"op#{self.id}"

    @property
    def input_ids(self) -> Tuple[str, ...]:
        return tuple(r.artifact_id for r in self.inputs)

    @property
    def output_ids(self) -> Tuple[str, ...]:
        return tuple(r.artifact_id for r in self.outputs)

    def attr(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def flag(self, key: str) -> bool:
        return self.attributes.get(key) is True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], position: int) -> "Operation":
        if not isinstance(data, Mapping):
            raise PipelineModelError(
                f"Operation at position {position} must be an object, got {type(data).__name__}"
            )
        try:
            kind = OperationKind(data.get("kind", "Other"))
        except ValueError:
            raise PipelineModelError(
                f"Unknown operation kind {data.get('kind')!r} at position {position}"
            ) from None
        op_id = data.get("id")
        if op_id is None:
            op_id = position
        if isinstance(op_id, bool) or not isinstance(op_id, int):
            raise PipelineModelError(f"Operation id must be an integer, got {op_id!r}")
        where = f"operation at position {position}"
        return cls(
            id=op_id,
            kind=kind,
            inputs=_wire_list(data.get("inputs"), "inputs", where),
            outputs=_wire_list(data.get("outputs"), "outputs", where),
            location=SourceLocation.from_dict(_wire_mapping(data.get("location"), "location", where)),
            attributes=_wire_mapping(data.get("attributes"), "attributes", where),
        )


@dataclass(frozen=True)
class Pipeline:
    operations: Tuple[Operation, ...] = ()
    sources: Tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    name: Optional[str] = None

    def __post_init__(self):
        ops = tuple(self.operations)
        last = None
        seen = set()
        for op in ops:
            if op.id in seen:
                raise PipelineModelError(f"Duplicate operation id {op.id}")
            if last is not None and op.id < last:
                raise PipelineModelError(
                    f"Operation ids must follow insertion order: op#{op.id} after op#{last}"
                )
            seen.add(op.id)
            last = op.id
        object.__setattr__(self, "operations", ops)
        object.__setattr__(self, "sources", tuple(dict.fromkeys(self.sources)))
        if not isinstance(self.metadata, MappingProxyType):
            object.__setattr__(self, "metadata", _freeze(dict(self.metadata or {})))

    def __len__(self) -> int:
        return len(self.operations)

    def __iter__(self):
        return iter(self.operations)

    @property
    def is_empty(self) -> bool:
        return not self.operations

    def of_kind(self, *kinds: OperationKind) -> List[Operation]:
        return [op for op in self.operations if op.kind in kinds]

    def before(self, op: Operation) -> List[Operation]:
        return [o for o in self.operations if o.id < op.id]

    def after(self, op: Operation) -> List[Operation]:
        return [o for o in self.operations if o.id > op.id]

    def between(self, start: Operation, end: Operation) -> List[Operation]:
        return [o for o in self.operations if start.id < o.id < end.id]

    def operation(self, op_id: int) -> Operation:
        for op in self.operations:
            if op.id == op_id:
                return op
        raise KeyError(op_id)

    def meta(self, key: str, default: Any = None) -> Any:
        return self.metadata.get(key, default)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Pipeline":
        """Build a Pipeline from the parser's JSON wire form."""
        if not isinstance(data, Mapping):
            raise PipelineModelError(f"Pipeline must be an object, got {type(data).__name__}")
        raw_ops = _wire_list(data.get("operations"), "operations", "pipeline")
        ops = tuple(Operation.from_dict(item, i) for i, item in enumerate(raw_ops))
        return cls(
            operations=ops,
            sources=tuple(str(s) for s in _wire_list(data.get("sources"), "sources", "pipeline")),
            metadata=_wire_mapping(data.get("metadata"), "metadata", "pipeline"),
            name=data.get("name"),
        )
