"""
evidencegate Hashing

All digests use SHA-256 with lowercase hexadecimal output and no prefix,
matching the `payload_hash_sha256` / `metadata_hash_sha256` fields carried
by sealed evidence records.
"""

import hashlib
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .canonicalization import canonicalize
from .taxonomy import HashSource

SHA256_HEX_PATTERN = re.compile(r'[0-9a-fA-F]{64}')

# Declaration fields bound into the metadata digest.
METADATA_FIELDS = (
    "evidence_type",
    "declared_scope",
    "scope_target",
    "why_this_evidence",
    "purpose_tags",
    "contains_personal_data",
    "retention_policy",
    "submission_channel",
)

# Reference fields standing in for a server-side ERP fetch.
API_PULL_REFERENCE_FIELDS = ("connector_id", "snapshot_datetime_utc", "sync_run_id")


def sha256_hex(data: Union[bytes, str]) -> str:
    """Compute SHA-256 and return it as 64 lowercase hex characters."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def is_sha256_hex(value: Any) -> bool:
    """True iff value is a string of exactly 64 hexadecimal characters."""
    return isinstance(value, str) and bool(SHA256_HEX_PATTERN.fullmatch(value))


def content_hash(obj: Any) -> str:
    """SHA-256 over the canonical JSON encoding of obj."""
    return sha256_hex(canonicalize(obj))


def metadata_record(draft: Mapping[str, Any]) -> Dict[str, Any]:
    """Extract the declaration subset that the metadata digest covers."""
    return {name: draft.get(name) for name in METADATA_FIELDS}


def metadata_hash(draft: Mapping[str, Any]) -> str:
    """Digest of the declaration metadata, independent of key order."""
    return content_hash(metadata_record(draft))


def attachment_manifest(attachments: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Reduce attachments to the (file_name, sha256) pairs the digest binds."""
    return [
        {"file_name": a.get("file_name"), "sha256": (a.get("sha256") or "").lower()}
        for a in attachments
    ]


def payload_hash(
    source: HashSource,
    draft: Mapping[str, Any],
    attachments: Optional[Sequence[Mapping[str, Any]]] = None
) -> str:
    """
    Compute the payload digest for a draft according to the method's hash source.

    - canonical_json: canonical JSON of `payload_data_json`
    - file_bytes: canonical manifest of the attachments' per-file digests
    - provided_digest: the externally supplied `payload_digest_sha256`
    - api_response_canonical: canonical JSON of the pull reference

    Raises:
        ValueError: if a provided digest is not a SHA-256 hex string
    """
    source = HashSource(source)
    attachments = attachments or []

    if source is HashSource.CANONICAL_JSON:
        return content_hash(draft.get("payload_data_json"))
    if source is HashSource.FILE_BYTES:
        return content_hash(attachment_manifest(attachments))
    if source is HashSource.PROVIDED_DIGEST:
        digest = draft.get("payload_digest_sha256")
        if not is_sha256_hex(digest):
            raise ValueError("payload_digest_sha256 must be 64 hex characters")
        return digest.lower()
    return content_hash({name: draft.get(name) for name in API_PULL_REFERENCE_FIELDS})


def verify_digest(declared: str, data: Union[bytes, str]) -> bool:
    """Recompute the digest of data and compare it with a declared digest."""
    if not is_sha256_hex(declared):
        return False
    return sha256_hex(data) == declared.lower()
