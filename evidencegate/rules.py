"""
evidencegate Field Rules

Every entry in a method's required-field lists resolves to exactly one rule.
Rules are deterministic, side-effect free, and never raise on malformed
draft values: anything that cannot be confirmed is a failure.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .hashing import is_sha256_hex
from .taxonomy import ScopeType

MIN_EXPLANATION_LENGTH = 20
ATTACHMENTS_MIN_1 = "attachments_min_1"

# Draft fields the wizard knows about. A required field outside this set and
# without a dedicated rule is a registry defect, not a pass.
KNOWN_DRAFT_FIELDS = frozenset({
    "evidence_type",
    "declared_scope",
    "scope_target",
    "why_this_evidence",
    "purpose_tags",
    "retention_policy",
    "retention_custom_days",
    "contains_personal_data",
    "submission_channel",
    "external_reference_id",
    "attestation_notes",
    "payload_data_json",
    "payload_digest_sha256",
    "received_at_utc",
    "snapshot_datetime_utc",
    "erp_instance_name",
    "connector_id",
    "sync_run_id",
    "file_uploader",
    "collaboration_submission_id",
    "supplier_portal_request_id",
    "status",
})


def is_present(value: Any) -> bool:
    """
    A declared value. None, empty strings and empty collections are absent;
    an explicit boolean False is a declaration and counts as present.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return True
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (list, tuple, dict, set, frozenset)):
        return len(value) > 0
    return True


class FieldRule(ABC):
    """Abstract base class for a single required-field check."""

    def __init__(self, field_name: str):
        self.field_name = field_name

    @abstractmethod
    def check(self, draft: Mapping[str, Any], attachments: Sequence[Any]) -> Optional[str]:
        """Return an error message, or None when the requirement is met."""

    def passes(self, draft: Mapping[str, Any], attachments: Sequence[Any]) -> bool:
        return self.check(draft, attachments) is None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.field_name!r})"


class PresenceRule(FieldRule):
    def check(self, draft, attachments):
        if is_present(draft.get(self.field_name)):
            return None
        return f"{self.field_name} is required"


class ScopeTargetRule(FieldRule):
    """scope_target is required unless the declared scope is UNKNOWN."""

    def check(self, draft, attachments):
        if draft.get("declared_scope") == ScopeType.UNKNOWN.value:
            return None
        if is_present(draft.get(self.field_name)):
            return None
        return "Scope target is required for known scopes"


class MinLengthTextRule(FieldRule):
    """Free-text explanations must carry at least MIN_EXPLANATION_LENGTH characters."""

    def __init__(self, field_name: str, message: str, min_length: int = MIN_EXPLANATION_LENGTH):
        super().__init__(field_name)
        self.message = message
        self.min_length = min_length

    def check(self, draft, attachments):
        value = draft.get(self.field_name)
        if isinstance(value, str) and len(value) >= self.min_length:
            return None
        return self.message


class AttachmentCountRule(FieldRule):
    def __init__(self, field_name: str, minimum: int = 1):
        super().__init__(field_name)
        self.minimum = minimum

    def check(self, draft, attachments):
        if len(attachments) >= self.minimum:
            return None
        return "At least one file attachment is required"


class Sha256DigestRule(FieldRule):
    def check(self, draft, attachments):
        if is_sha256_hex(draft.get(self.field_name)):
            return None
        return "Valid 64-character hex digest required"


SPECIAL_RULES: Dict[str, FieldRule] = {
    "scope_target": ScopeTargetRule("scope_target"),
    "why_this_evidence": MinLengthTextRule(
        "why_this_evidence", "Purpose explanation must be at least 20 characters"
    ),
    "attestation_notes": MinLengthTextRule(
        "attestation_notes", "Attestation notes must be at least 20 characters"
    ),
    ATTACHMENTS_MIN_1: AttachmentCountRule(ATTACHMENTS_MIN_1),
    "payload_digest_sha256": Sha256DigestRule("payload_digest_sha256"),
}

_PRESENCE_RULES: Dict[str, FieldRule] = {
    name: PresenceRule(name) for name in KNOWN_DRAFT_FIELDS if name not in SPECIAL_RULES
}


def rule_for(field_name: str) -> FieldRule:
    """Resolve a required-field name to its rule."""
    if field_name in SPECIAL_RULES:
        return SPECIAL_RULES[field_name]
    if field_name in _PRESENCE_RULES:
        return _PRESENCE_RULES[field_name]
    raise ValueError(f"No validation rule for field: {field_name}")


def collect_errors(
    fields: Sequence[str],
    draft: Mapping[str, Any],
    attachments: Sequence[Any]
) -> List[str]:
    """Run every rule in order and collect all failures (no short-circuit)."""
    errors = []
    for name in fields:
        message = rule_for(name).check(draft, attachments)
        if message is not None:
            errors.append(message)
    return errors


def requirements_met(
    fields: Sequence[str],
    draft: Mapping[str, Any],
    attachments: Sequence[Any]
) -> bool:
    return all(rule_for(name).passes(draft, attachments) for name in fields)
