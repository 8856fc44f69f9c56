"""
evidencegate Sealing

Bridges the pure gating core and the external platform that actually seals
evidence:

- prepare_seal turns a seal-ready draft into a SealRequest carrying the
  method defaults, server-side digests, retention horizon and ledger state.
- resolve_idempotency decides whether a push-based submission is a replay.
- verify_seal_receipt enforces the sealed-evidence contract on the platform's
  response. Network success is not business success: a response without the
  required fields or with a state other than SEALED is a failed ingestion.
"""

import calendar
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .hashing import is_sha256_hex, metadata_hash, payload_hash
from .logging_config import audit_log
from .manual_entry import get_manual_entry_schema, validate_manual_entry_payload
from .registry import MethodRegistry, DEFAULT_REGISTRY
from .taxonomy import (
    HashSource,
    LedgerState,
    Mode,
    RETENTION_YEARS,
    RetentionPolicy,
    ReviewStatus,
    ScopeType,
    TrustLevel,
)
from .validator import (
    INVALID_METHOD,
    ValidationResult,
    can_seal,
    check_compatibility,
    sanitized_draft,
    validate_step,
)

RECEIPT_REQUIRED_FIELDS = (
    "sealed_at_utc",
    "payload_hash_sha256",
    "metadata_hash_sha256",
    "state",
)


class SealNotPermitted(Exception):
    """The draft cannot be sealed; `errors` lists every reason."""

    def __init__(self, method_id: str, errors: List[str]):
        self.method_id = method_id
        self.errors = list(errors)
        super().__init__(f"Seal not permitted for {method_id}: {'; '.join(self.errors)}")


class IdempotencyConflict(Exception):
    """Same idempotency key, different payload."""

    def __init__(self, idempotency_key: str, existing_hash: str, provided_hash: str,
                 existing_evidence_id: Optional[str] = None):
        self.idempotency_key = idempotency_key
        self.existing_hash = existing_hash
        self.provided_hash = provided_hash
        self.existing_evidence_id = existing_evidence_id
        super().__init__(f"Same idempotency key {idempotency_key} but different payload")


class SealContractViolation(Exception):
    """The platform reported success but the sealed record breaks the contract."""

    def __init__(self, violations: List[str]):
        self.violations = list(violations)
        super().__init__("; ".join(self.violations))


class IdempotencyOutcome(str, Enum):
    NEW = "NEW"
    REPLAY = "REPLAY"


class SealRequest(BaseModel):
    """Everything the sealing platform needs, computed without touching it."""
    model_config = ConfigDict(frozen=True)

    method_id: str
    tenant_id: str
    evidence_type: str
    declared_scope: str
    scope_target: Optional[str] = None
    submission_channel: Optional[str] = None
    trust_level: TrustLevel
    review_status: ReviewStatus
    source_system: str
    hash_computed_by: str
    hash_source: str
    payload_hash_sha256: str
    metadata_hash_sha256: str
    method_config_hash: str
    retention_policy: str
    retention_ends_at_utc: Optional[str] = None
    ledger_state: LedgerState
    idempotency_key: Optional[str] = None
    attachment_count: int = 0
    prepared_at_utc: str


class SealReceipt(BaseModel):
    """Minimum shape of a sealed-evidence record returned by the platform."""
    model_config = ConfigDict(extra="allow")

    evidence_id: Optional[str] = None
    state: str
    sealed_at_utc: str
    payload_hash_sha256: str
    metadata_hash_sha256: str

    @field_validator("payload_hash_sha256", "metadata_hash_sha256")
    @classmethod
    def _hex_digest(cls, v: str) -> str:
        if not is_sha256_hex(v):
            raise ValueError("must be 64 hex characters")
        return v.lower()

    @field_validator("sealed_at_utc")
    @classmethod
    def _timestamp(cls, v: str) -> str:
        parse_utc(v)
        return v


def utc_rfc3339(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def parse_utc(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _add_years(dt: datetime, years: int) -> datetime:
    year = dt.year + years
    day = min(dt.day, calendar.monthrange(year, dt.month)[1])
    return dt.replace(year=year, day=day)


def retention_ends_at(
    sealed_at: datetime,
    policy: Any,
    custom_days: Optional[int] = None
) -> Optional[datetime]:
    """
    End of the retention window for a record sealed at sealed_at.

    Raises:
        ValueError: unknown policy, or CUSTOM without a positive day count
    """
    policy = RetentionPolicy(policy)
    if policy is RetentionPolicy.CUSTOM:
        if isinstance(custom_days, bool) or not isinstance(custom_days, int) or custom_days <= 0:
            raise ValueError("CUSTOM retention requires a positive retention_custom_days")
        return sealed_at + timedelta(days=custom_days)
    return _add_years(sealed_at, RETENTION_YEARS[policy])


def idempotency_key(
    method_id: str,
    tenant_id: str,
    draft: Mapping[str, Any],
    registry: Optional[MethodRegistry] = None
) -> Optional[str]:
    """
    Deduplication key for methods with an enforced idempotency policy.
    None when the method has no policy or the key field is absent.
    """
    config = (registry if registry is not None else DEFAULT_REGISTRY).get(method_id)
    if config is None or not config.idempotency or not config.idempotency.enforced:
        return None
    value = (draft or {}).get(config.idempotency.key)
    if not value:
        return None
    scope_value = tenant_id if config.idempotency.scope == "tenant" else config.idempotency.scope
    return f"{scope_value}/{draft.get('evidence_type')}/{value}"


def resolve_idempotency(
    key: Optional[str],
    existing: Optional[Mapping[str, Any]],
    provided_payload_hash: str
) -> IdempotencyOutcome:
    """
    Compare a submission with a previously stored record under the same key.

    Raises:
        IdempotencyConflict: the stored record has a different or unreadable
            payload digest
    """
    if key is None or not existing:
        return IdempotencyOutcome.NEW

    existing_hash = existing.get("payload_hash_sha256")
    if not isinstance(existing_hash, str):
        existing_hash = ""
    if existing_hash and existing_hash.lower() == provided_payload_hash.lower():
        audit_log.idempotent_replay(existing.get("method_id", ""), key, conflict=False)
        return IdempotencyOutcome.REPLAY

    audit_log.idempotent_replay(existing.get("method_id", ""), key, conflict=True)
    raise IdempotencyConflict(key, existing_hash, provided_payload_hash,
                              existing.get("evidence_id"))


def _seal_refusal_reason(draft: Mapping[str, Any], mode: str) -> str:
    if mode != Mode.PRODUCTION.value:
        return "Sealing requires production mode"
    if draft.get("status") == "SEALED":
        return "Draft is already sealed"
    return "Seal requirements not met"


def prepare_seal(
    method_id: str,
    draft: Mapping[str, Any],
    attachments: Optional[Sequence[Mapping[str, Any]]] = None,
    mode: str = "production",
    tenant_id: str = "DEFAULT",
    now: Optional[datetime] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    registry: Optional[MethodRegistry] = None
) -> SealRequest:
    """
    Build the seal request for a draft that has cleared every gate.

    Both steps are re-validated; the caller's earlier navigation is not
    trusted. Defaults come from the method config unless overridden.

    Raises:
        SealNotPermitted: with every reason the draft cannot be sealed
    """
    registry = registry if registry is not None else DEFAULT_REGISTRY
    attachments = list(attachments or [])
    mode = getattr(mode, "value", mode)

    config = registry.get(method_id)
    if config is None:
        audit_log.seal_refused(str(method_id), [INVALID_METHOD])
        raise SealNotPermitted(str(method_id), [INVALID_METHOD])

    view = sanitized_draft(config, draft)
    errors: List[str] = []
    errors.extend(validate_step(method_id, 1, view, attachments, registry).errors)
    errors.extend(validate_step(method_id, 2, view, attachments, registry).errors)
    errors.extend(check_compatibility(method_id, view, registry).errors)

    if (config.hash_behavior.source is HashSource.CANONICAL_JSON
            and get_manual_entry_schema(view.get("evidence_type")) is not None):
        payload = view.get("payload_data_json")
        if isinstance(payload, Mapping):
            errors.extend(validate_manual_entry_payload(view["evidence_type"], payload).errors)

    if not can_seal(method_id, view, mode, attachments, registry):
        errors.append(_seal_refusal_reason(view, mode))

    overrides = dict(overrides or {})
    stamped = {
        "trust_level": config.defaults.trust_level,
        "review_status": config.defaults.review_status,
        "source_system": config.defaults.source_system,
    }
    for name, enum_cls in (("trust_level", TrustLevel), ("review_status", ReviewStatus)):
        if name in overrides:
            try:
                stamped[name] = enum_cls(overrides[name])
            except ValueError:
                errors.append(f"Invalid {name} override: {overrides[name]}")
    if overrides.get("source_system"):
        stamped["source_system"] = str(overrides["source_system"])

    now = now or datetime.now(timezone.utc)
    retention_end = None
    try:
        end = retention_ends_at(now, view.get("retention_policy"), view.get("retention_custom_days"))
        retention_end = utc_rfc3339(end)
    except ValueError as exc:
        errors.append(f"Invalid retention_policy: {exc}")

    if errors:
        audit_log.seal_refused(method_id, errors)
        raise SealNotPermitted(method_id, errors)

    declared_scope = view["declared_scope"]
    channel = view.get("submission_channel")
    ledger_state = (LedgerState.QUARANTINED if declared_scope == ScopeType.UNKNOWN.value
                    else LedgerState.INGESTED)
    scope_target = view.get("scope_target") if declared_scope != ScopeType.UNKNOWN.value else None

    request = SealRequest(
        method_id=method_id,
        tenant_id=tenant_id,
        evidence_type=view["evidence_type"],
        declared_scope=declared_scope,
        scope_target=str(scope_target) if scope_target is not None else None,
        submission_channel=str(channel) if channel is not None else None,
        trust_level=stamped["trust_level"],
        review_status=stamped["review_status"],
        source_system=stamped["source_system"],
        hash_computed_by=config.hash_behavior.computed_by.value,
        hash_source=config.hash_behavior.source.value,
        payload_hash_sha256=payload_hash(config.hash_behavior.source, view, attachments),
        metadata_hash_sha256=metadata_hash(view),
        method_config_hash=config.get_hash(),
        retention_policy=RetentionPolicy(view["retention_policy"]).value,
        retention_ends_at_utc=retention_end,
        ledger_state=ledger_state,
        idempotency_key=idempotency_key(method_id, tenant_id, view, registry),
        attachment_count=len(attachments),
        prepared_at_utc=utc_rfc3339(now),
    )

    audit_log.seal_prepared(
        method_id,
        tenant_id,
        request.payload_hash_sha256,
        request.metadata_hash_sha256,
        request.ledger_state.value,
    )
    return request


def verify_seal_receipt(
    data: Optional[Mapping[str, Any]],
    expected: Optional[SealRequest] = None
) -> ValidationResult:
    """
    Check a seal response against the sealed-evidence contract.

    When the originating SealRequest is supplied, the metadata digest must
    match it, and so must the payload digest for externally computed hashes.
    """
    data = data or {}
    errors = [
        f"{name} is missing from seal response"
        for name in RECEIPT_REQUIRED_FIELDS
        if not data.get(name)
    ]

    receipt = None
    if not errors:
        try:
            receipt = SealReceipt.model_validate(dict(data))
        except ValidationError as exc:
            for err in exc.errors():
                location = ".".join(str(part) for part in err["loc"])
                errors.append(f"{location}: {err['msg']}")

    if data.get("state") and data.get("state") != LedgerState.SEALED.value:
        errors.append(f"Seal response state is {data.get('state')}, expected SEALED")

    if receipt is not None and expected is not None:
        if receipt.metadata_hash_sha256 != expected.metadata_hash_sha256:
            errors.append("metadata_hash_sha256 does not match the prepared seal request")
        if (expected.hash_computed_by == "external"
                and receipt.payload_hash_sha256 != expected.payload_hash_sha256):
            errors.append("payload_hash_sha256 does not match the externally supplied digest")

    if errors:
        audit_log.receipt_rejected(data.get("evidence_id"), errors)
    return ValidationResult.from_errors(errors)


def require_sealed(
    data: Optional[Mapping[str, Any]],
    expected: Optional[SealRequest] = None
) -> SealReceipt:
    """
    Like verify_seal_receipt, but raise on violation and return the parsed receipt.

    Raises:
        SealContractViolation: the response breaks the sealed-evidence contract
    """
    result = verify_seal_receipt(data, expected)
    if not result.valid:
        raise SealContractViolation(result.errors)
    return SealReceipt.model_validate(dict(data))
