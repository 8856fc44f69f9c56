"""
evidencegate Registry Audit Harness

Enumerates method x evidence type x scope x submission channel x mode,
skipping combinations a method does not allow, and checks the registry
invariants against synthetic drafts:

- a minimal valid draft passes step 1 and step 2
- poisoning the draft with forbidden fields changes nothing
- step transitions agree with validate_step
- simulation never seals; production seals a complete draft exactly once
- every method declares its hash behaviour
- no method is labelled as a supplier portal (channels are not methods)

The harness is the correctness oracle for the validators; the test suite
runs it over the full cartesian product.
"""

import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .logging_config import audit_log
from .registry import IngestionMethodConfig, MethodRegistry, DEFAULT_REGISTRY
from .rules import ATTACHMENTS_MIN_1
from .taxonomy import EvidenceType, Mode, ScopeType, SubmissionChannel
from .validator import can_proceed_to_next_step, can_seal, validate_step

POISON_VALUE = "should-be-ignored"
BANNED_LABEL = "Supplier Portal"

SAMPLE_ATTACHMENT = {"id": "1", "file_name": "evidence.pdf", "sha256": "b" * 64}

SAMPLE_PAYLOADS: Dict[EvidenceType, Dict[str, Any]] = {
    EvidenceType.SUPPLIER_MASTER: {"supplier_name": "Acme Metals GmbH", "country": "DE"},
    EvidenceType.PRODUCT_MASTER: {"product_name": "Steel bracket", "sku": "SKU-001"},
    EvidenceType.BOM: {
        "components": [{"component_sku_code": "C-100", "quantity": 2, "uom": "pcs"}]
    },
}

SAMPLE_VALUES: Dict[str, Any] = {
    "scope_target": "test-target-123",
    "why_this_evidence": "Supplier declaration needed for the annual CBAM compliance filing",
    "purpose_tags": ["COMPLIANCE"],
    "retention_policy": "STANDARD_7_YEARS",
    "contains_personal_data": False,
    "external_reference_id": "ext-ref-123",
    "attestation_notes": "Values transcribed from the signed supplier questionnaire",
    "payload_digest_sha256": "a" * 64,
    "received_at_utc": "2025-01-01T00:00:00Z",
    "snapshot_datetime_utc": "2025-01-01T00:00:00Z",
    "erp_instance_name": "SAP-PROD",
    "connector_id": "connector-123",
    "sync_run_id": "sync-456",
}


@dataclass
class CheckResult:
    test: str
    passed: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"test": self.test, "passed": self.passed, "errors": list(self.errors)}


@dataclass
class ScenarioResult:
    method: str
    evidence_type: str
    scope: str
    channel: str
    mode: str
    checks: List[CheckResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self.checks)

    def failed_checks(self) -> List[CheckResult]:
        return [c for c in self.checks if not c.passed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": {
                "method": self.method,
                "evidence_type": self.evidence_type,
                "scope": self.scope,
                "channel": self.channel,
                "mode": self.mode,
            },
            "passed": self.passed,
            "tests": [c.to_dict() for c in self.checks],
        }


@dataclass
class AuditReport:
    scenarios: List[ScenarioResult] = field(default_factory=list)
    registry_hash: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.scenarios)

    @property
    def passed_count(self) -> int:
        return sum(1 for s in self.scenarios if s.passed)

    @property
    def failed_count(self) -> int:
        return self.total - self.passed_count

    def passed(self) -> bool:
        return self.total > 0 and self.failed_count == 0

    def failures(self) -> List[ScenarioResult]:
        return [s for s in self.scenarios if not s.passed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "registry_hash": self.registry_hash,
            "summary": {
                "total": self.total,
                "passed": self.passed_count,
                "failed": self.failed_count,
            },
            "results": [s.to_dict() for s in self.scenarios],
        }


def build_minimal_draft(
    config: IngestionMethodConfig,
    evidence_type: EvidenceType,
    scope: ScopeType,
    channel: SubmissionChannel
) -> Dict[str, Any]:
    """A draft carrying only the method's required fields, all with valid values."""
    draft: Dict[str, Any] = {
        "evidence_type": evidence_type.value,
        "declared_scope": scope.value,
        "submission_channel": channel.value,
    }
    for name in config.step1_required + config.step2_required:
        if name in draft or name == ATTACHMENTS_MIN_1:
            continue
        if name == "scope_target":
            if scope.requires_target:
                draft[name] = SAMPLE_VALUES[name]
            continue
        if name == "payload_data_json":
            draft[name] = dict(SAMPLE_PAYLOADS.get(evidence_type, {"note": "structured entry"}))
            continue
        draft[name] = SAMPLE_VALUES[name]
    return draft


def build_attachments(config: IngestionMethodConfig) -> List[Dict[str, Any]]:
    if ATTACHMENTS_MIN_1 in config.step2_required or config.hash_behavior.requires_attachments:
        return [dict(SAMPLE_ATTACHMENT)]
    return []


def poison(config: IngestionMethodConfig, draft: Dict[str, Any]) -> Dict[str, Any]:
    poisoned = dict(draft)
    for name in config.forbidden_fields:
        poisoned[name] = POISON_VALUE
    return poisoned


def _check(test: str, passed: bool, errors: Iterable[str] = ()) -> CheckResult:
    return CheckResult(test=test, passed=bool(passed), errors=[] if passed else list(errors))


def audit_scenario(
    config: IngestionMethodConfig,
    evidence_type: EvidenceType,
    scope: ScopeType,
    channel: SubmissionChannel,
    mode: Mode,
    registry: MethodRegistry
) -> ScenarioResult:
    method = config.id
    result = ScenarioResult(method, evidence_type.value, scope.value, channel.value, mode.value)

    draft = build_minimal_draft(config, evidence_type, scope, channel)
    attachments = build_attachments(config)
    poisoned = poison(config, draft)

    step1 = validate_step(method, 1, draft, [], registry)
    step2 = validate_step(method, 2, draft, attachments, registry)
    result.checks.append(_check("Step 1 Required Fields", step1.valid, step1.errors))
    result.checks.append(_check("Step 2 Required Fields", step2.valid, step2.errors))

    poisoned1 = validate_step(method, 1, poisoned, [], registry)
    poisoned2 = validate_step(method, 2, poisoned, attachments, registry)
    unchanged = poisoned1 == step1 and poisoned2 == step2
    result.checks.append(_check(
        "Forbidden Fields Ignored",
        unchanged,
        poisoned1.errors + poisoned2.errors or ["Validation outcome changed by forbidden fields"],
    ))

    empty1 = validate_step(method, 1, {}, [], registry)
    gating1_agrees = (
        can_proceed_to_next_step(method, 1, draft, [], registry) == step1.valid
        and can_proceed_to_next_step(method, 1, poisoned, [], registry) == poisoned1.valid
        and can_proceed_to_next_step(method, 1, {}, [], registry) == empty1.valid
    )
    result.checks.append(_check(
        "Step 1 to Step 2 Gating", gating1_agrees, ["Step 1 gating disagrees with validation"]
    ))

    gating2_agrees = can_proceed_to_next_step(method, 2, draft, attachments, registry) == step2.valid
    result.checks.append(_check(
        "Step 2 to Step 3 Gating", gating2_agrees, ["Step 2 gating disagrees with validation"]
    ))

    sealable = can_seal(method, draft, mode.value, attachments, registry)
    expected = mode is Mode.PRODUCTION
    resealable = can_seal(method, dict(draft, status="SEALED"), mode.value, attachments, registry)
    result.checks.append(_check(
        "Seal Gating",
        sealable == expected and not resealable,
        [f"can_seal returned {sealable} in {mode.value} mode"
         if sealable != expected else "Sealed draft can be sealed again"],
    ))

    hb = config.hash_behavior
    result.checks.append(_check(
        "Hash Behavior Defined",
        bool(hb.computed_by) and bool(hb.source),
        ["Hash behavior not defined"],
    ))

    result.checks.append(_check(
        'No "Supplier Portal" Method',
        BANNED_LABEL not in config.label and method != "SUPPLIER_PORTAL",
        ["Supplier Portal found in method"],
    ))
    return result


def iter_scenarios(
    registry: MethodRegistry,
    evidence_types: Sequence[EvidenceType],
    scopes: Sequence[ScopeType],
    channels: Sequence[SubmissionChannel],
    modes: Sequence[Mode]
) -> Iterable[Tuple[IngestionMethodConfig, EvidenceType, ScopeType, SubmissionChannel, Mode]]:
    for config in registry:
        for evidence_type, scope, channel, mode in itertools.product(evidence_types, scopes, channels, modes):
            if evidence_type not in config.allowed_evidence_types:
                continue
            if scope not in config.allowed_scope_types:
                continue
            yield config, evidence_type, scope, channel, mode


def run_audit(
    registry: Optional[MethodRegistry] = None,
    evidence_types: Optional[Sequence[EvidenceType]] = None,
    scopes: Optional[Sequence[ScopeType]] = None,
    channels: Optional[Sequence[SubmissionChannel]] = None,
    modes: Optional[Sequence[Mode]] = None
) -> AuditReport:
    """Run the harness over the full (or a narrowed) scenario space."""
    registry = registry if registry is not None else DEFAULT_REGISTRY
    report = AuditReport(registry_hash=registry.get_hash())

    for config, evidence_type, scope, channel, mode in iter_scenarios(
        registry,
        list(evidence_types or EvidenceType),
        list(scopes or ScopeType),
        list(channels or SubmissionChannel),
        list(modes or Mode),
    ):
        report.scenarios.append(audit_scenario(config, evidence_type, scope, channel, mode, registry))

    audit_log.audit_completed(report.total, report.passed_count, report.failed_count)
    return report
