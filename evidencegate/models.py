from pydantic import BaseModel, Field
from typing import Dict, Any, List, Optional


class Attachment(BaseModel):
    file_name: str
    sha256: str
    id: Optional[str] = None


class StepValidationRequest(BaseModel):
    method_id: str
    step: int
    draft: Dict[str, Any] = Field(default_factory=dict)
    attachments: List[Attachment] = Field(default_factory=list)


class GateRequest(BaseModel):
    method_id: str
    current_step: int
    draft: Dict[str, Any] = Field(default_factory=dict)
    attachments: List[Attachment] = Field(default_factory=list)
    mode: Optional[str] = None


class SealPrepareRequest(BaseModel):
    method_id: str
    draft: Dict[str, Any]
    attachments: List[Attachment] = Field(default_factory=list)
    mode: Optional[str] = None
    tenant_id: Optional[str] = None
    overrides: Dict[str, Any] = Field(default_factory=dict)
    existing: Optional[Dict[str, Any]] = None


class SealVerifyRequest(BaseModel):
    receipt: Dict[str, Any]
    expected: Optional[Dict[str, Any]] = None
