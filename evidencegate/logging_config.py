"""
Logging setup for evidencegate.

Every ingestion decision (step validation, gating, seal preparation and
receipt checks) is emitted as one JSON line on the ``evidencegate.audit``
logger. Draft contents never reach the log; only method ids, steps,
outcomes and digests do.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, List, Optional

request_id_var: ContextVar[str] = ContextVar('request_id', default='')

PLAIN_FORMAT = '%(asctime)s %(levelname)-8s %(name)s: %(message)s'


class StructuredFormatter(logging.Formatter):
    """Render a record as a single JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        current = request_id_var.get()
        if current:
            entry["request_id"] = current
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(getattr(record, 'extra_fields', {}))
        return json.dumps(entry, default=str)


class AuditLogger:
    """
    Audit events for the ingestion preflight.

    Each method maps one decision to an ``event_type`` and the fields a
    reviewer needs to reconstruct it later.
    """

    def __init__(self, name: str = "evidencegate.audit"):
        self._logger = logging.getLogger(name)

    def _emit(self, level: int, event_type: str, summary: str, **fields: Any) -> None:
        fields["event_type"] = event_type
        fields["request_id"] = request_id_var.get()
        self._logger.log(level, "%s: %s", event_type, summary, extra={"extra_fields": fields})

    def step_validated(self, method_id: str, step: int, valid: bool, errors: List[str]) -> None:
        outcome = "valid" if valid else "invalid"
        self._emit(
            logging.INFO if valid else logging.WARNING,
            "STEP_VALIDATED",
            f"{method_id} step {step} {outcome}",
            method_id=method_id, step=step, valid=valid, error_count=len(errors),
        )

    def gate_decision(self, method_id: str, gate: str, allowed: bool, mode: Optional[str] = None) -> None:
        verdict = "allowed" if allowed else "refused"
        self._emit(
            logging.INFO, "GATE_DECISION", f"{gate} {verdict} for {method_id}",
            method_id=method_id, gate=gate, allowed=allowed, mode=mode,
        )

    def seal_prepared(self, method_id: str, tenant_id: str, payload_hash: str,
                      metadata_hash: str, ledger_state: str) -> None:
        self._emit(
            logging.INFO, "SEAL_PREPARED", f"Seal request prepared for {method_id}",
            method_id=method_id, tenant_id=tenant_id, payload_hash=payload_hash,
            metadata_hash=metadata_hash, ledger_state=ledger_state,
        )

    def seal_refused(self, method_id: str, reasons: List[str]) -> None:
        self._emit(
            logging.WARNING, "SEAL_REFUSED", f"Seal refused for {method_id}",
            method_id=method_id, reasons=reasons,
        )

    def idempotent_replay(self, method_id: str, idempotency_key: str, conflict: bool) -> None:
        if conflict:
            level, event, summary = logging.WARNING, "IDEMPOTENCY_CONFLICT", "Conflicting"
        else:
            level, event, summary = logging.INFO, "IDEMPOTENT_REPLAY", "Replayed"
        self._emit(
            level, event, f"{summary} submission for {idempotency_key}",
            method_id=method_id, idempotency_key=idempotency_key,
        )

    def receipt_rejected(self, evidence_id: Optional[str], violations: List[str]) -> None:
        self._emit(
            logging.ERROR, "RECEIPT_REJECTED", "Seal response violates the sealed-evidence contract",
            evidence_id=evidence_id, violations=violations,
        )

    def registry_loaded(self, method_count: int, registry_hash: str) -> None:
        self._emit(
            logging.INFO, "REGISTRY_LOADED", f"Method registry loaded with {method_count} methods",
            method_count=method_count, registry_hash=registry_hash,
        )

    def audit_completed(self, total: int, passed: int, failed: int) -> None:
        self._emit(
            logging.ERROR if failed else logging.INFO,
            "AUDIT_COMPLETED",
            f"Registry audit: {passed}/{total} scenarios passed",
            total=total, passed=passed, failed=failed,
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Install handlers on the root logger, replacing any already present.

    Output always goes to stderr; ``log_file`` adds a second destination with
    the same formatter. ``json_format=False`` switches to a plain one-line
    layout for local debugging.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    for existing in list(root.handlers):
        root.removeHandler(existing)

    formatter = StructuredFormatter() if json_format else logging.Formatter(PLAIN_FORMAT)
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind ``request_id`` (or a fresh UUID4) to the current context and return it."""
    value = request_id or str(uuid.uuid4())
    request_id_var.set(value)
    return value


def get_request_id() -> str:
    return request_id_var.get()


audit_log = AuditLogger()
