"""
evidencegate Ingestion Method Registry

Static rule table describing, per ingestion method, which evidence and scope
types may be declared, which fields each wizard step requires, which fields
must be ignored, what metadata is stamped on sealed evidence, how the step
transitions are gated, and where the payload digest comes from.

Configs are built once at import, validated, and frozen. Changing a method's
behaviour means changing this module and redeploying.
"""

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Iterator, List, Mapping, Optional, Sequence, Tuple

from .hashing import content_hash
from .rules import ATTACHMENTS_MIN_1, requirements_met, rule_for
from .taxonomy import (
    EvidenceType,
    HashComputedBy,
    HashSource,
    Mode,
    ReviewStatus,
    ScopeType,
    TrustLevel,
)

logger = logging.getLogger(__name__)

METHOD_ID_PATTERN = re.compile(r'^[A-Z][A-Z0-9_]*$')

Draft = Mapping[str, Any]
Attachments = Sequence[Mapping[str, Any]]


class RegistryError(ValueError):
    """A method configuration violates a registry invariant."""


@dataclass(frozen=True)
class MethodDefaults:
    """Metadata stamped onto sealed evidence when no override is supplied."""
    trust_level: TrustLevel
    review_status: ReviewStatus
    source_system: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trust_level": self.trust_level.value,
            "review_status": self.review_status.value,
            "source_system": self.source_system,
        }


@dataclass(frozen=True)
class HashBehavior:
    computed_by: HashComputedBy
    display_in_step2: bool
    display_in_step3: bool
    source: HashSource
    requires_attachments: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "computed_by": self.computed_by.value,
            "display_in_step2": self.display_in_step2,
            "display_in_step3": self.display_in_step3,
            "source": self.source.value,
            "requires_attachments": self.requires_attachments,
        }


@dataclass(frozen=True)
class IdempotencyPolicy:
    """Field used to deduplicate repeat submissions within a scope (tenant)."""
    enforced: bool
    key: str
    scope: str = "tenant"

    def to_dict(self) -> Dict[str, Any]:
        return {"enforced": self.enforced, "key": self.key, "scope": self.scope}


@dataclass(frozen=True)
class StepGating:
    """Transition predicates over caller-owned draft state."""
    step1_to_step2: Callable[[Draft], bool]
    step2_to_step3: Callable[[Draft, Attachments], bool]
    can_seal: Callable[[Draft, str, Attachments], bool]


@dataclass(frozen=True)
class IngestionMethodConfig:
    """
    Immutable configuration for one ingestion method.

    Invariants checked on construction:
    - id matches METHOD_ID_PATTERN
    - allowed evidence/scope sets are non-empty subsets of the enums
    - every required field resolves to a validation rule
    - required and forbidden fields are disjoint
    - hash behaviour declares who computes the digest
    """
    id: str
    label: str
    description: str
    allowed_evidence_types: FrozenSet[EvidenceType]
    allowed_scope_types: FrozenSet[ScopeType]
    step1_required: Tuple[str, ...]
    step2_required: Tuple[str, ...]
    forbidden_fields: FrozenSet[str]
    defaults: MethodDefaults
    step_gating: StepGating = field(repr=False, compare=False)
    hash_behavior: HashBehavior
    idempotency: Optional[IdempotencyPolicy] = None

    def __post_init__(self):
        # Normalize container types so configs stay hashable and read-only.
        object.__setattr__(self, "allowed_evidence_types", frozenset(self.allowed_evidence_types))
        object.__setattr__(self, "allowed_scope_types", frozenset(self.allowed_scope_types))
        object.__setattr__(self, "step1_required", tuple(self.step1_required))
        object.__setattr__(self, "step2_required", tuple(self.step2_required))
        object.__setattr__(self, "forbidden_fields", frozenset(self.forbidden_fields))
        self._validate()

    def _validate(self):
        if not METHOD_ID_PATTERN.match(self.id):
            raise RegistryError(f"Invalid method id '{self.id}': must be upper snake case")

        if not self.allowed_evidence_types:
            raise RegistryError(f"{self.id}: allowed_evidence_types must not be empty")
        for item in self.allowed_evidence_types:
            if not isinstance(item, EvidenceType):
                raise RegistryError(f"{self.id}: unknown evidence type {item!r}")

        if not self.allowed_scope_types:
            raise RegistryError(f"{self.id}: allowed_scope_types must not be empty")
        for item in self.allowed_scope_types:
            if not isinstance(item, ScopeType):
                raise RegistryError(f"{self.id}: unknown scope type {item!r}")

        for name in self.step1_required + self.step2_required:
            try:
                rule_for(name)
            except ValueError as exc:
                raise RegistryError(f"{self.id}: {exc}") from exc

        overlap = self.forbidden_fields.intersection(self.step1_required + self.step2_required)
        if overlap:
            raise RegistryError(
                f"{self.id}: fields both required and forbidden: {sorted(overlap)}"
            )

        if not self.hash_behavior.computed_by or not self.hash_behavior.source:
            raise RegistryError(f"{self.id}: hash behaviour must declare computed_by and source")

        if self.idempotency and self.idempotency.key in self.forbidden_fields:
            raise RegistryError(f"{self.id}: idempotency key cannot be a forbidden field")

    def required_fields(self, step: int) -> Tuple[str, ...]:
        if step == 1:
            return self.step1_required
        if step == 2:
            return self.step2_required
        return ()

    def allows_evidence_type(self, evidence_type: Any) -> bool:
        try:
            return EvidenceType(evidence_type) in self.allowed_evidence_types
        except ValueError:
            return False

    def allows_scope(self, scope: Any) -> bool:
        try:
            return ScopeType(scope) in self.allowed_scope_types
        except ValueError:
            return False

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view of the config. Gating predicates are not data."""
        d = {
            "id": self.id,
            "label": self.label,
            "description": self.description,
            "allowed_evidence_types": sorted(t.value for t in self.allowed_evidence_types),
            "allowed_scope_types": sorted(s.value for s in self.allowed_scope_types),
            "step1_required": list(self.step1_required),
            "step2_required": list(self.step2_required),
            "forbidden_fields": sorted(self.forbidden_fields),
            "defaults": self.defaults.to_dict(),
            "hash_behavior": self.hash_behavior.to_dict(),
        }
        if self.idempotency:
            d["idempotency"] = self.idempotency.to_dict()
        return d

    def get_hash(self) -> str:
        """Fingerprint of the config, bound into sealed evidence for provenance."""
        return content_hash(self.to_dict())


class MethodRegistry:
    """Lookup table of method id -> IngestionMethodConfig."""

    def __init__(self):
        self._methods: Dict[str, IngestionMethodConfig] = {}
        self._frozen = False

    def register(self, config: IngestionMethodConfig) -> None:
        if self._frozen:
            raise RegistryError("Registry is frozen; method configs are fixed at startup")
        if config.id in self._methods:
            raise RegistryError(f"Duplicate method id: {config.id}")
        self._methods[config.id] = config

    def freeze(self) -> "MethodRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, method_id: Any) -> Optional[IngestionMethodConfig]:
        """Return the config for method_id, or None for unknown ids."""
        if not isinstance(method_id, str):
            return None
        return self._methods.get(method_id)

    def list_methods(self) -> List[str]:
        return list(self._methods.keys())

    @property
    def methods(self) -> Mapping[str, IngestionMethodConfig]:
        return MappingProxyType(self._methods)

    def get_hash(self) -> str:
        """Fingerprint of the whole table."""
        return content_hash({mid: cfg.to_dict() for mid, cfg in self._methods.items()})

    def __contains__(self, method_id: Any) -> bool:
        return self.get(method_id) is not None

    def __iter__(self) -> Iterator[IngestionMethodConfig]:
        return iter(self._methods.values())

    def __len__(self) -> int:
        return len(self._methods)


# ============================================================
# Gating predicate builders
# ============================================================

def requirements_gate(fields: Sequence[str]) -> Callable[..., bool]:
    """Step transition predicate that passes iff every listed rule passes."""
    fields = tuple(fields)

    def gate(draft: Draft, attachments: Attachments = ()) -> bool:
        return requirements_met(fields, draft or {}, attachments or ())

    return gate


def seal_gate(*fields: str) -> Callable[[Draft, str, Attachments], bool]:
    """
    Seal predicate: production mode, not already sealed, and the listed
    method-specific rules pass.
    """
    def gate(draft: Draft, mode: str, attachments: Attachments = ()) -> bool:
        draft = draft or {}
        if mode != Mode.PRODUCTION.value:
            return False
        if draft.get("status") == "SEALED":
            return False
        return requirements_met(fields, draft, attachments or ())

    return gate


# ============================================================
# Built-in methods
# ============================================================

ALL_EVIDENCE_TYPES = frozenset(EvidenceType)

ERP_EVIDENCE_TYPES = frozenset({
    EvidenceType.SUPPLIER_MASTER,
    EvidenceType.PRODUCT_MASTER,
    EvidenceType.BOM,
    EvidenceType.TRANSACTION_LOG,
})

# UNKNOWN is accepted for open-ended methods; sealed records land QUARANTINED.
OPEN_SCOPE_TYPES = frozenset({
    ScopeType.PRODUCT_FAMILY,
    ScopeType.SKU,
    ScopeType.BOM,
    ScopeType.SUPPLIER,
    ScopeType.SITE,
    ScopeType.SHIPMENT,
    ScopeType.LEGAL_ENTITY,
    ScopeType.OTHER,
    ScopeType.UNKNOWN,
})

ERP_SCOPE_TYPES = frozenset({
    ScopeType.SUPPLIER,
    ScopeType.SITE,
    ScopeType.SKU,
    ScopeType.BOM,
    ScopeType.SHIPMENT,
    ScopeType.LEGAL_ENTITY,
})

DECLARATION_FIELDS = (
    "evidence_type",
    "declared_scope",
    "scope_target",
    "why_this_evidence",
    "purpose_tags",
    "retention_policy",
    "contains_personal_data",
)


def _method(
    id: str,
    label: str,
    description: str,
    evidence_types: FrozenSet[EvidenceType],
    scope_types: FrozenSet[ScopeType],
    step1_required: Sequence[str],
    step2_required: Sequence[str],
    forbidden_fields: Sequence[str],
    defaults: MethodDefaults,
    can_seal: Callable[[Draft, str, Attachments], bool],
    hash_behavior: HashBehavior,
    idempotency: Optional[IdempotencyPolicy] = None,
) -> IngestionMethodConfig:
    """Build a config whose step transitions derive from its required lists."""
    step1_gate = requirements_gate(step1_required)
    return IngestionMethodConfig(
        id=id,
        label=label,
        description=description,
        allowed_evidence_types=evidence_types,
        allowed_scope_types=scope_types,
        step1_required=tuple(step1_required),
        step2_required=tuple(step2_required),
        forbidden_fields=frozenset(forbidden_fields),
        defaults=defaults,
        step_gating=StepGating(
            step1_to_step2=lambda draft: step1_gate(draft, ()),
            step2_to_step3=requirements_gate(step2_required),
            can_seal=can_seal,
        ),
        hash_behavior=hash_behavior,
        idempotency=idempotency,
    )


def create_default_registry() -> MethodRegistry:
    """Build the five built-in ingestion methods."""
    registry = MethodRegistry()

    registry.register(_method(
        id="MANUAL_ENTRY",
        label="Manual Entry",
        description="Structured data entry via forms",
        evidence_types=ALL_EVIDENCE_TYPES,
        scope_types=OPEN_SCOPE_TYPES,
        step1_required=DECLARATION_FIELDS,
        step2_required=("attestation_notes", "payload_data_json"),
        forbidden_fields=(
            "file_uploader",
            "collaboration_submission_id",
            "supplier_portal_request_id",
            "payload_digest_sha256",
            "connector_id",
            "snapshot_datetime_utc",
        ),
        defaults=MethodDefaults(TrustLevel.LOW, ReviewStatus.NOT_REVIEWED, "Manual"),
        can_seal=seal_gate("attestation_notes"),
        hash_behavior=HashBehavior(
            computed_by=HashComputedBy.SERVER,
            display_in_step2=False,
            display_in_step3=True,
            source=HashSource.CANONICAL_JSON,
            requires_attachments=False,
        ),
    ))

    registry.register(_method(
        id="FILE_UPLOAD",
        label="File Upload",
        description="Upload documents and files",
        evidence_types=ALL_EVIDENCE_TYPES,
        scope_types=OPEN_SCOPE_TYPES,
        step1_required=DECLARATION_FIELDS,
        step2_required=(ATTACHMENTS_MIN_1,),
        forbidden_fields=(
            "payload_digest_sha256",
            "connector_id",
            "external_reference_id",
        ),
        defaults=MethodDefaults(TrustLevel.MEDIUM, ReviewStatus.NOT_REVIEWED, "File Upload"),
        can_seal=seal_gate(ATTACHMENTS_MIN_1),
        hash_behavior=HashBehavior(
            computed_by=HashComputedBy.SERVER,
            display_in_step2=True,
            display_in_step3=True,
            source=HashSource.FILE_BYTES,
            requires_attachments=True,
        ),
    ))

    registry.register(_method(
        id="API_PUSH_DIGEST",
        label="API Push Digest",
        description="External system pushes hash digest",
        evidence_types=ALL_EVIDENCE_TYPES,
        scope_types=OPEN_SCOPE_TYPES,
        step1_required=DECLARATION_FIELDS + ("external_reference_id",),
        step2_required=("payload_digest_sha256", "received_at_utc"),
        forbidden_fields=(
            "file_uploader",
            "attestation_notes",
            "collaboration_submission_id",
        ),
        defaults=MethodDefaults(TrustLevel.LOW, ReviewStatus.NOT_REVIEWED, "API"),
        can_seal=seal_gate("payload_digest_sha256"),
        hash_behavior=HashBehavior(
            computed_by=HashComputedBy.EXTERNAL,
            display_in_step2=True,
            display_in_step3=True,
            source=HashSource.PROVIDED_DIGEST,
            requires_attachments=False,
        ),
        idempotency=IdempotencyPolicy(enforced=True, key="external_reference_id", scope="tenant"),
    ))

    registry.register(_method(
        id="ERP_EXPORT_FILE",
        label="ERP Export File",
        description="Uploaded ERP export file",
        evidence_types=ERP_EVIDENCE_TYPES,
        scope_types=ERP_SCOPE_TYPES,
        step1_required=DECLARATION_FIELDS,
        step2_required=(ATTACHMENTS_MIN_1, "snapshot_datetime_utc", "erp_instance_name"),
        forbidden_fields=(
            "payload_digest_sha256",
            "connector_id",
        ),
        defaults=MethodDefaults(TrustLevel.HIGH, ReviewStatus.NOT_REVIEWED, "ERP Export"),
        can_seal=seal_gate(ATTACHMENTS_MIN_1, "snapshot_datetime_utc"),
        hash_behavior=HashBehavior(
            computed_by=HashComputedBy.SERVER,
            display_in_step2=True,
            display_in_step3=True,
            source=HashSource.FILE_BYTES,
            requires_attachments=True,
        ),
    ))

    registry.register(_method(
        id="ERP_API_PULL",
        label="ERP API Pull",
        description="Real-time pull from ERP connector",
        evidence_types=ERP_EVIDENCE_TYPES,
        scope_types=ERP_SCOPE_TYPES,
        step1_required=DECLARATION_FIELDS,
        step2_required=("connector_id", "snapshot_datetime_utc", "sync_run_id"),
        forbidden_fields=(
            "file_uploader",
            "attestation_notes",
            "payload_digest_sha256",
        ),
        defaults=MethodDefaults(TrustLevel.HIGH, ReviewStatus.NOT_REVIEWED, "ERP API"),
        can_seal=seal_gate("connector_id", "snapshot_datetime_utc"),
        hash_behavior=HashBehavior(
            computed_by=HashComputedBy.SERVER,
            display_in_step2=False,
            display_in_step3=True,
            source=HashSource.API_RESPONSE_CANONICAL,
            requires_attachments=False,
        ),
    ))

    logger.debug("Loaded %d ingestion methods: %s", len(registry), registry.list_methods())
    return registry


DEFAULT_REGISTRY = create_default_registry().freeze()

INGESTION_METHODS: Mapping[str, IngestionMethodConfig] = DEFAULT_REGISTRY.methods


def get_method_config(method_id: Any) -> Optional[IngestionMethodConfig]:
    """Pure lookup. Unknown ids yield None; callers treat that as a validation failure."""
    return DEFAULT_REGISTRY.get(method_id)
