import logging

from fastapi import FastAPI, HTTPException
from pydantic import ValidationError

from .audit import run_audit
from .config import (
    DEFAULT_TENANT_ID,
    LOG_FILE,
    LOG_JSON,
    LOG_LEVEL,
    default_mode,
    is_debug,
    is_production,
    validate_config,
)
from .logging_config import audit_log, configure_logging, set_request_id
from .models import GateRequest, SealPrepareRequest, SealVerifyRequest, StepValidationRequest
from .registry import DEFAULT_REGISTRY
from .sealing import (
    IdempotencyConflict,
    SealContractViolation,
    SealNotPermitted,
    SealRequest,
    prepare_seal,
    require_sealed,
    resolve_idempotency,
)
from .validator import can_proceed_to_next_step, can_seal, validate_step

logger = logging.getLogger(__name__)

app = FastAPI(title="evidencegate ingestion preflight")

REGISTRY = DEFAULT_REGISTRY


@app.on_event("startup")
def _startup():
    invalid = sorted(name for name, ok in validate_config().items() if not ok)
    if is_debug():
        level = "DEBUG"
    else:
        level = "INFO" if "log_level" in invalid else LOG_LEVEL
    configure_logging(level, LOG_JSON, LOG_FILE)
    if invalid:
        if is_production():
            raise RuntimeError(f"Invalid configuration: {', '.join(invalid)}")
        logger.warning("Invalid configuration: %s", ", ".join(invalid))
    audit_log.registry_loaded(len(REGISTRY), REGISTRY.get_hash())


@app.get("/methods")
def list_methods():
    return {
        "registry_hash": REGISTRY.get_hash(),
        "methods": [config.to_dict() for config in REGISTRY],
    }


@app.get("/methods/{method_id}")
def get_method(method_id: str):
    config = REGISTRY.get(method_id)
    if config is None:
        raise HTTPException(404, "METHOD_NOT_FOUND")
    d = config.to_dict()
    d["config_hash"] = config.get_hash()
    d["scope_labels"] = {s.value: s.label for s in config.allowed_scope_types}
    return d


@app.post("/validate")
def validate(req: StepValidationRequest):
    set_request_id()
    attachments = [a.model_dump() for a in req.attachments]
    result = validate_step(req.method_id, req.step, req.draft, attachments, REGISTRY)
    audit_log.step_validated(req.method_id, req.step, result.valid, result.errors)
    return {"method_id": req.method_id, "step": req.step, **result.to_dict()}


@app.post("/gate")
def gate(req: GateRequest):
    set_request_id()
    if req.method_id not in REGISTRY:
        raise HTTPException(404, "METHOD_NOT_FOUND")
    mode = req.mode or default_mode()
    attachments = [a.model_dump() for a in req.attachments]

    can_proceed = can_proceed_to_next_step(req.method_id, req.current_step, req.draft, attachments, REGISTRY)
    sealable = can_seal(req.method_id, req.draft, mode, attachments, REGISTRY)
    audit_log.gate_decision(req.method_id, f"step{req.current_step}_next", can_proceed, mode)
    audit_log.gate_decision(req.method_id, "seal", sealable, mode)
    return {
        "method_id": req.method_id,
        "current_step": req.current_step,
        "mode": mode,
        "can_proceed": can_proceed,
        "can_seal": sealable,
    }


@app.post("/seal/prepare")
def seal_prepare(req: SealPrepareRequest):
    set_request_id()
    if req.method_id not in REGISTRY:
        raise HTTPException(404, "METHOD_NOT_FOUND")
    try:
        request = prepare_seal(
            req.method_id,
            req.draft,
            [a.model_dump() for a in req.attachments],
            mode=req.mode or default_mode(),
            tenant_id=req.tenant_id or DEFAULT_TENANT_ID,
            overrides=req.overrides,
            registry=REGISTRY,
        )
    except SealNotPermitted as e:
        raise HTTPException(422, {"code": "SEAL_NOT_PERMITTED", "errors": e.errors})

    try:
        outcome = resolve_idempotency(request.idempotency_key, req.existing, request.payload_hash_sha256)
    except IdempotencyConflict as e:
        raise HTTPException(409, {
            "code": "IDEMPOTENCY_CONFLICT",
            "idempotency_key": e.idempotency_key,
            "existing_evidence_id": e.existing_evidence_id,
        })

    return {"idempotency": outcome.value, "seal_request": request.model_dump(mode="json")}


@app.post("/seal/verify")
def seal_verify(req: SealVerifyRequest):
    set_request_id()
    expected = None
    if req.expected is not None:
        try:
            expected = SealRequest.model_validate(req.expected)
        except ValidationError:
            raise HTTPException(422, "INVALID_SEAL_REQUEST")
    try:
        receipt = require_sealed(req.receipt, expected)
    except SealContractViolation as e:
        raise HTTPException(422, {"code": "SEAL_CONTRACT_VIOLATION", "errors": e.violations})
    return {"valid": True, "receipt": receipt.model_dump()}


@app.get("/audit")
def audit(details: bool = False):
    set_request_id()
    report = run_audit(REGISTRY)
    d = report.to_dict()
    if not details:
        d["results"] = [s.to_dict() for s in report.failures()]
    return d
