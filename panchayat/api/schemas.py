"""
Request and response models for the HTTP API.
"""

from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel

from ..core.kinds import KINDS
from ..core.schema import ApplicationRecord


class ErrorResponse(BaseModel):
    message: str


class ApplicationCreatedResponse(BaseModel):
    applicationId: str
    status: str
    message: str


class ApplicationResponse(BaseModel):
    id: str
    kind: str
    category: str
    citizen_id: str
    status: str
    status_label: str
    fields: Dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: ApplicationRecord) -> 'ApplicationResponse':
        kind = KINDS[record.kind]
        return cls(
            id=record.id,
            kind=record.kind,
            category=kind.category,
            citizen_id=record.citizen_id,
            status=record.status.value,
            status_label=kind.human_status(record.status),
            fields=record.fields,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class ApplicationListResponse(BaseModel):
    items: List[ApplicationResponse]


class HealthResponse(BaseModel):
    status: str
    version: str
    durable_store: bool
    cache_dir: str
    connections: int
