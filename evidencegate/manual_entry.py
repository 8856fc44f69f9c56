"""
evidencegate Manual Entry Schemas

Manual entry accepts structured form data only. Each supported evidence type
has a fixed set of required and optional payload fields; BOM payloads carry
per-component rules.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .rules import is_present
from .taxonomy import EvidenceType
from .validator import ValidationResult

ALLOWED_UOMS = ("pcs", "kg", "g", "m", "l")


@dataclass(frozen=True)
class PayloadSchema:
    evidence_type: EvidenceType
    required: Tuple[str, ...]
    optional: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "evidence_type": self.evidence_type.value,
            "required": list(self.required),
            "optional": list(self.optional),
        }


MANUAL_ENTRY_SCHEMAS: Dict[EvidenceType, PayloadSchema] = {
    EvidenceType.SUPPLIER_MASTER: PayloadSchema(
        EvidenceType.SUPPLIER_MASTER,
        required=("supplier_name",),
        optional=(
            "supplier_code", "vat_number", "lei_code", "duns_number", "country",
            "address", "primary_contact_email", "primary_contact_name",
        ),
    ),
    EvidenceType.PRODUCT_MASTER: PayloadSchema(
        EvidenceType.PRODUCT_MASTER,
        required=("product_name", "sku"),
        optional=("uom", "weight", "hs_code", "category", "description", "external_product_id"),
    ),
    EvidenceType.BOM: PayloadSchema(
        EvidenceType.BOM,
        required=("components",),
        optional=("parent_sku_id", "parent_sku_code_hint", "bom_version", "effective_date"),
    ),
}


def get_manual_entry_schema(evidence_type: Any) -> Optional[PayloadSchema]:
    try:
        return MANUAL_ENTRY_SCHEMAS.get(EvidenceType(evidence_type))
    except ValueError:
        return None


def _component_issues(component: Any) -> List[str]:
    if not isinstance(component, Mapping):
        return ["not an object"]

    issues = []
    if not component.get("component_sku_id") and not component.get("component_sku_code"):
        issues.append("missing identifier (SKU or code)")

    quantity = component.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, (int, float)) or quantity <= 0:
        issues.append("quantity must be > 0")

    if component.get("uom") not in ALLOWED_UOMS:
        issues.append(f"UOM must be one of: {', '.join(ALLOWED_UOMS)}")
    return issues


def validate_manual_entry_payload(evidence_type: Any, payload: Optional[Mapping[str, Any]]) -> ValidationResult:
    """
    Validate a manual-entry payload against its evidence type schema.

    Evidence types without a schema cannot be entered manually.
    """
    schema = get_manual_entry_schema(evidence_type)
    if schema is None:
        return ValidationResult(
            valid=False,
            errors=[f"Manual entry for {evidence_type} is not supported. Use FILE_UPLOAD instead."],
        )

    payload = payload or {}
    errors = []
    for name in schema.required:
        if not is_present(payload.get(name)):
            errors.append(f"{name} is required")

    if schema.evidence_type is EvidenceType.BOM and is_present(payload.get("components")):
        components = payload["components"]
        if not isinstance(components, (list, tuple)):
            errors.append("components must be a list")
        else:
            for index, component in enumerate(components, start=1):
                issues = _component_issues(component)
                if issues:
                    errors.append(f"Component {index}: {', '.join(issues)}")

    return ValidationResult.from_errors(errors)
