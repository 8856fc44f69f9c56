"""
evidencegate: Evidence Ingestion Preflight

Version: 1.0.0

A closed registry of ingestion methods and the pure validators that decide,
for a caller-owned draft, whether each wizard step is complete, whether the
wizard may advance, and whether the draft may be sealed into an immutable,
retention-bearing evidence record.

The ingestion method (how data arrives) is orthogonal to the submission
channel (who handed it over). A supplier submitting a file is FILE_UPLOAD
with channel SUPPLIER; there is no "supplier portal" method.

Validators fail closed: unknown methods, unknown steps, simulation runs and
already sealed drafts all resolve to a negative result. Fields a method
forbids are ignored, never rejected.

Usage:
    from evidencegate import (
        validate_step,
        can_proceed_to_next_step,
        can_seal,
        should_show_field,
        prepare_seal,
        verify_seal_receipt,
    )

    draft = {
        "evidence_type": "CERTIFICATE",
        "declared_scope": "SUPPLIER",
        "scope_target": "supplier-42",
        "why_this_evidence": "ISO 14001 certificate for the annual audit",
        "purpose_tags": ["COMPLIANCE"],
        "retention_policy": "STANDARD_7_YEARS",
        "contains_personal_data": False,
    }
    attachments = [{"file_name": "iso14001.pdf", "sha256": "..."}]

    validate_step("FILE_UPLOAD", 1, draft)             # ValidationResult(valid=True)
    validate_step("FILE_UPLOAD", 2, draft, [])         # "At least one file attachment is required"
    can_seal("FILE_UPLOAD", draft, "production", attachments)

    # Sealing itself happens on the evidence platform; prepare the request
    request = prepare_seal("FILE_UPLOAD", draft, attachments, tenant_id="acme")

    # A 2xx response is not enough: the record must actually be SEALED
    result = verify_seal_receipt(platform_response, expected=request)

Service:
    uvicorn evidencegate.api:app
"""

__version__ = "1.0.0"

# Taxonomy
from .taxonomy import (
    EvidenceType,
    ScopeType,
    SubmissionChannel,
    Mode,
    TrustLevel,
    ReviewStatus,
    HashComputedBy,
    HashSource,
    RetentionPolicy,
    LedgerState,
    IngestionStep,
)

# Canonicalization and hashing
from .canonicalization import canonicalize, canonicalize_str
from .hashing import (
    sha256_hex,
    is_sha256_hex,
    content_hash,
    metadata_hash,
    payload_hash,
    verify_digest,
)

# Rules
from .rules import (
    FieldRule,
    rule_for,
    is_present,
    ATTACHMENTS_MIN_1,
    MIN_EXPLANATION_LENGTH,
)

# Registry
from .registry import (
    IngestionMethodConfig,
    MethodRegistry,
    MethodDefaults,
    HashBehavior,
    IdempotencyPolicy,
    StepGating,
    RegistryError,
    create_default_registry,
    get_method_config,
    INGESTION_METHODS,
    DEFAULT_REGISTRY,
)

# Validation and gating
from .validator import (
    ValidationResult,
    validate_step,
    can_proceed_to_next_step,
    can_seal,
    should_show_field,
    visible_fields,
    check_compatibility,
)

# Structured manual entry
from .manual_entry import (
    PayloadSchema,
    MANUAL_ENTRY_SCHEMAS,
    get_manual_entry_schema,
    validate_manual_entry_payload,
)

# Sealing
from .sealing import (
    SealRequest,
    SealReceipt,
    SealNotPermitted,
    IdempotencyConflict,
    IdempotencyOutcome,
    SealContractViolation,
    prepare_seal,
    idempotency_key,
    resolve_idempotency,
    retention_ends_at,
    verify_seal_receipt,
    require_sealed,
)

# Audit harness
from .audit import AuditReport, ScenarioResult, run_audit


__all__ = [
    # Version
    "__version__",

    # Taxonomy
    "EvidenceType",
    "ScopeType",
    "SubmissionChannel",
    "Mode",
    "TrustLevel",
    "ReviewStatus",
    "HashComputedBy",
    "HashSource",
    "RetentionPolicy",
    "LedgerState",
    "IngestionStep",

    # Canonicalization
    "canonicalize",
    "canonicalize_str",

    # Hashing
    "sha256_hex",
    "is_sha256_hex",
    "content_hash",
    "metadata_hash",
    "payload_hash",
    "verify_digest",

    # Rules
    "FieldRule",
    "rule_for",
    "is_present",
    "ATTACHMENTS_MIN_1",
    "MIN_EXPLANATION_LENGTH",

    # Registry
    "IngestionMethodConfig",
    "MethodRegistry",
    "MethodDefaults",
    "HashBehavior",
    "IdempotencyPolicy",
    "StepGating",
    "RegistryError",
    "create_default_registry",
    "get_method_config",
    "INGESTION_METHODS",
    "DEFAULT_REGISTRY",

    # Validation
    "ValidationResult",
    "validate_step",
    "can_proceed_to_next_step",
    "can_seal",
    "should_show_field",
    "visible_fields",
    "check_compatibility",

    # Manual entry
    "PayloadSchema",
    "MANUAL_ENTRY_SCHEMAS",
    "get_manual_entry_schema",
    "validate_manual_entry_payload",

    # Sealing
    "SealRequest",
    "SealReceipt",
    "SealNotPermitted",
    "IdempotencyConflict",
    "IdempotencyOutcome",
    "SealContractViolation",
    "prepare_seal",
    "idempotency_key",
    "resolve_idempotency",
    "retention_ends_at",
    "verify_seal_receipt",
    "require_sealed",

    # Audit
    "AuditReport",
    "ScenarioResult",
    "run_audit",
]
