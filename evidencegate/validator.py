"""
evidencegate Step Validation and Gating

Pure functions consulting the method registry against a caller-owned draft
and attachment list. Nothing here stores state or performs I/O; concurrent
callers never interfere.

Invalid input never raises. Unknown methods and unknown steps resolve to a
negative result (fail closed).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .registry import IngestionMethodConfig, MethodRegistry, DEFAULT_REGISTRY
from .rules import collect_errors
from .taxonomy import IngestionStep

INVALID_METHOD = "Invalid method"
INVALID_STEP = "Invalid step"


@dataclass
class ValidationResult:
    """Outcome of validating one step: all errors at once, in rule order."""
    valid: bool
    errors: List[str] = field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: List[str]) -> "ValidationResult":
        return cls(valid=not errors, errors=list(errors))

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors)}


def _resolve(method_id: Any, registry: Optional[MethodRegistry]) -> Optional[IngestionMethodConfig]:
    return (registry if registry is not None else DEFAULT_REGISTRY).get(method_id)


def sanitized_draft(config: IngestionMethodConfig, draft: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop the method's forbidden fields so they cannot influence any rule."""
    if not draft:
        return {}
    return {k: v for k, v in draft.items() if k not in config.forbidden_fields}


def validate_step(
    method_id: str,
    step: int,
    draft: Optional[Mapping[str, Any]],
    attachments: Optional[Sequence[Mapping[str, Any]]] = None,
    registry: Optional[MethodRegistry] = None
) -> ValidationResult:
    """
    Validate the required fields of one wizard step.

    Every failing rule contributes one message; nothing short-circuits so the
    caller can present a complete correction list in one pass.
    """
    config = _resolve(method_id, registry)
    if config is None:
        return ValidationResult(valid=False, errors=[INVALID_METHOD])

    if step not in (IngestionStep.DECLARATION, IngestionStep.PAYLOAD):
        return ValidationResult(valid=False, errors=[INVALID_STEP])

    view = sanitized_draft(config, draft)
    errors = collect_errors(config.required_fields(step), view, attachments or [])
    return ValidationResult.from_errors(errors)


def can_proceed_to_next_step(
    method_id: str,
    current_step: int,
    draft: Optional[Mapping[str, Any]],
    attachments: Optional[Sequence[Mapping[str, Any]]] = None,
    registry: Optional[MethodRegistry] = None
) -> bool:
    """
    Dispatch to the method's transition predicate.

    Step 3 has no successor: sealing is a distinct action, see can_seal.
    """
    config = _resolve(method_id, registry)
    if config is None:
        return False

    view = sanitized_draft(config, draft)
    if current_step == IngestionStep.DECLARATION:
        return bool(config.step_gating.step1_to_step2(view))
    if current_step == IngestionStep.PAYLOAD:
        return bool(config.step_gating.step2_to_step3(view, attachments or []))
    return False


def can_seal(
    method_id: str,
    draft: Optional[Mapping[str, Any]],
    mode: str = "production",
    attachments: Optional[Sequence[Mapping[str, Any]]] = None,
    registry: Optional[MethodRegistry] = None
) -> bool:
    """
    Whether the draft may be sealed into a retention-bearing record.

    Simulation runs and already sealed drafts are always refused.
    """
    config = _resolve(method_id, registry)
    if config is None:
        return False

    mode = getattr(mode, "value", mode)
    view = sanitized_draft(config, draft)
    return bool(config.step_gating.can_seal(view, mode, attachments or []))


def should_show_field(
    method_id: str,
    field_name: str,
    registry: Optional[MethodRegistry] = None
) -> bool:
    """Render a form control only if the field is not forbidden for the method."""
    config = _resolve(method_id, registry)
    if config is None:
        return False
    return field_name not in config.forbidden_fields


def visible_fields(
    method_id: str,
    fields: Iterable[str],
    registry: Optional[MethodRegistry] = None
) -> List[str]:
    return [f for f in fields if should_show_field(method_id, f, registry)]


def check_compatibility(
    method_id: str,
    draft: Optional[Mapping[str, Any]],
    registry: Optional[MethodRegistry] = None
) -> ValidationResult:
    """
    Check declared evidence type and scope against the method's allowed sets.

    Only values that are present are checked; missing ones are reported by
    validate_step.
    """
    config = _resolve(method_id, registry)
    if config is None:
        return ValidationResult(valid=False, errors=[INVALID_METHOD])

    draft = draft or {}
    errors = []

    evidence_type = draft.get("evidence_type")
    if evidence_type and not config.allows_evidence_type(evidence_type):
        errors.append(f"Evidence type {evidence_type} not allowed for {config.label}")

    scope = draft.get("declared_scope")
    if scope and not config.allows_scope(scope):
        errors.append(f"Scope {scope} not allowed for {config.label}")

    return ValidationResult.from_errors(errors)
