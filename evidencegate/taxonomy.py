"""
evidencegate Taxonomy

Closed enumerations shared by the method registry, the validators and the
sealing layer. Every value a draft may declare lives here.
"""

from enum import Enum, IntEnum
from typing import Dict


class EvidenceType(str, Enum):
    """Dataset classifications an ingestion method may declare."""
    SUPPLIER_MASTER = "SUPPLIER_MASTER"
    PRODUCT_MASTER = "PRODUCT_MASTER"
    BOM = "BOM"
    CERTIFICATE = "CERTIFICATE"
    TEST_REPORT = "TEST_REPORT"
    TRANSACTION_LOG = "TRANSACTION_LOG"
    OTHER = "OTHER"


class ScopeType(str, Enum):
    """Business entity classes an evidence record can be declared against."""
    PRODUCT_FAMILY = "PRODUCT_FAMILY"
    SKU = "SKU"
    BOM = "BOM"
    SUPPLIER = "SUPPLIER"
    SITE = "SITE"
    SHIPMENT = "SHIPMENT"
    LEGAL_ENTITY = "LEGAL_ENTITY"
    OTHER = "OTHER"
    UNKNOWN = "UNKNOWN"

    @property
    def requires_target(self) -> bool:
        return self is not ScopeType.UNKNOWN

    @property
    def label(self) -> str:
        return SCOPE_LABELS[self]


SCOPE_LABELS: Dict[ScopeType, str] = {
    ScopeType.PRODUCT_FAMILY: "Product Family",
    ScopeType.SKU: "SKU",
    ScopeType.BOM: "Bill of Materials",
    ScopeType.SUPPLIER: "Supplier",
    ScopeType.SITE: "Site/Facility",
    ScopeType.SHIPMENT: "Shipment",
    ScopeType.LEGAL_ENTITY: "Legal Entity",
    ScopeType.OTHER: "Other",
    ScopeType.UNKNOWN: "Unknown/Unlinked",
}


class SubmissionChannel(str, Enum):
    """Who handed the evidence over (orthogonal to the ingestion method)."""
    INTERNAL_USER = "INTERNAL_USER"
    SUPPLIER = "SUPPLIER"
    CONSULTANT = "CONSULTANT"
    SYSTEM = "SYSTEM"


class Mode(str, Enum):
    """Wizard run mode. Only production runs may seal."""
    SIMULATION = "simulation"
    PRODUCTION = "production"


class TrustLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ReviewStatus(str, Enum):
    NOT_REVIEWED = "NOT_REVIEWED"
    PENDING_REVIEW = "PENDING_REVIEW"


class HashComputedBy(str, Enum):
    """Where the payload integrity digest originates."""
    SERVER = "server"
    EXTERNAL = "external"


class HashSource(str, Enum):
    """What bytes the payload digest is computed over."""
    CANONICAL_JSON = "canonical_json"
    FILE_BYTES = "file_bytes"
    PROVIDED_DIGEST = "provided_digest"
    API_RESPONSE_CANONICAL = "api_response_canonical"


class RetentionPolicy(str, Enum):
    STANDARD_1_YEAR = "STANDARD_1_YEAR"
    THREE_YEARS = "3_YEARS"
    SEVEN_YEARS = "7_YEARS"
    STANDARD_7_YEARS = "STANDARD_7_YEARS"
    CUSTOM = "CUSTOM"


RETENTION_YEARS: Dict[RetentionPolicy, int] = {
    RetentionPolicy.STANDARD_1_YEAR: 1,
    RetentionPolicy.THREE_YEARS: 3,
    RetentionPolicy.SEVEN_YEARS: 7,
    RetentionPolicy.STANDARD_7_YEARS: 7,
}


class LedgerState(str, Enum):
    INGESTED = "INGESTED"
    QUARANTINED = "QUARANTINED"
    SEALED = "SEALED"


class IngestionStep(IntEnum):
    """Wizard steps. SEAL_READY has no successor; sealing is a separate action."""
    DECLARATION = 1
    PAYLOAD = 2
    SEAL_READY = 3
